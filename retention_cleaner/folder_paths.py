"""
Folder path helpers - normalization and folder name filtering
"""

import asyncio
import logging
from typing import List

from retention_cleaner.errors import TransportError
from retention_cleaner.models import FolderRef


logger = logging.getLogger(__name__)

# EWS hands PR_FOLDER_PATHNAME back with U+FFFE where the separator should be
PATH_PLACEHOLDER = '\ufffe'
PATH_SEPARATOR = '\\'


def normalize_folder_path(raw_path: str, placeholder: str = PATH_PLACEHOLDER, separator: str = PATH_SEPARATOR) -> str:
    """Replace the transport's placeholder character with the path separator"""
    if not raw_path:
        return ''
    return raw_path.replace(placeholder, separator)


def resolve_folder_path(session, folder: FolderRef, strict: bool = False) -> str:
    """Look up the normalized path of a folder.

    With strict=False a lookup failure is logged and reported as an empty
    path. With strict=True the TransportError propagates.
    """
    try:
        return normalize_folder_path(session.get_folder_path(folder))
    except TransportError as error:
        if strict:
            raise
        logger.error(f"Failed to get folder path for {folder.folder_id}: {error}")
        return ''


async def filter_folders_by_path(session, folders: List[FolderRef], substring: str) -> List[FolderRef]:
    """Keep only folders whose path contains substring, preserving order.

    Any path lookup failure aborts the filter with TransportError.
    """
    if not substring:
        return list(folders)

    logger.info(f"Filtering the folder list because foldername \"{substring}\" was set")

    kept = []
    for folder in folders:
        folder_path = await asyncio.to_thread(resolve_folder_path, session, folder, True)
        if substring in folder_path:
            kept.append(folder)
        else:
            logger.debug(f"The folder \"{folder_path}\" does not match the filter \"{substring}\"")

    logger.info(f"{len(kept)} of {len(folders)} folders match \"{substring}\"")
    return kept
