"""
Folder Enumerator - Handles deep, paged traversal of a mailbox folder tree
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from retention_cleaner.errors import TransportError, TraversalError
from retention_cleaner.models import FolderPage, FolderRef


logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class FolderEnumerator:
    """Collects every folder below a root folder, one page at a time"""

    def __init__(
        self,
        session,  # folder service, see ews_session.EwsMailboxSession
        page_size: int = PAGE_SIZE,
        progress_callback: Optional[Callable] = None
    ):
        self.session = session
        self.page_size = page_size
        self.progress_callback = progress_callback
        self.interrupted = False

    # === Main Entry Point ===

    async def traverse(self, root: Any) -> List[FolderRef]:
        """Return all descendant folders of root in arrival order.

        Raises TraversalError (carrying the folders received so far) if any
        page fetch fails.
        """
        await self._report_progress("enumeration_started", {"page_size": self.page_size})

        folders: List[FolderRef] = []
        offset = 0
        pages = 0
        more_available = True

        while more_available and not self.interrupted:
            try:
                page = await self._fetch_page(root, offset)
            except TransportError as error:
                logger.error(f"Failed to fetch folders at offset {offset}: {error}")
                await self._report_progress("enumeration_failed", {
                    "offset": offset,
                    "folders_received": len(folders),
                    "error": str(error)
                })
                raise TraversalError(f"Failed to fetch folders: {error}", partial=folders) from error

            pages += 1
            folders.extend(page.folders)
            more_available = page.more_available

            await self._report_progress("page_fetched", {
                "page": pages,
                "offset": offset,
                "count": len(page.folders),
                "total": len(folders)
            })

            if more_available:
                offset += self.page_size

        logger.info(f"Found {len(folders)} folders in {pages} page(s)")
        await self._report_progress("enumeration_completed", {"pages": pages, "total": len(folders)})

        return folders

    # === Page Fetching ===

    async def _fetch_page(self, root: Any, offset: int) -> FolderPage:
        """Fetch one page, returns FolderPage"""
        return await asyncio.to_thread(self.session.find_folders, root, self.page_size, offset)

    # === Progress ===

    async def _report_progress(self, event: str, data: Dict) -> None:
        """Send progress update if callback is set"""
        if self.progress_callback:
            await self.progress_callback(event, data)
