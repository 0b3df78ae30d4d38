"""
Tag Remover - Inspects folders and clears personal retention tags
"""

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Set

from retention_cleaner.errors import PersistError, RetentionCleanerError, TagMutationError
from retention_cleaner.folder_paths import resolve_folder_path
from retention_cleaner.models import BoundFolder, FolderRef, RemovalConfig, RunSummary, TagSlot


logger = logging.getLogger(__name__)

TAG_SLOTS = (TagSlot.ARCHIVE, TagSlot.POLICY)


class TagRemover:
    """Clears archive and policy tags from a list of folders"""

    def __init__(
        self,
        session,  # folder service, see ews_session.EwsMailboxSession
        config: RemovalConfig,
        progress_callback: Optional[Callable] = None
    ):
        self.session = session
        self.config = config
        self.retention_filter = self.normalize_retention_filter(config.retention_filter)
        self.progress_callback = progress_callback
        self.interrupted = False

    # === Main Entry Point ===

    async def process(self, folders: List[FolderRef]) -> RunSummary:
        """Process folders in order, returns the run summary.

        Tag clear failures are logged and skipped. Transport and persist
        failures propagate with the partial summary attached as `summary`.
        """
        summary = RunSummary()

        await self._report_progress("removal_started", {
            "commit": self.config.commit,
            "retention_filter": sorted(self.retention_filter) if self.retention_filter else None,
            "folders_to_process": len(folders)
        })

        for folder in folders:
            if self.interrupted:
                logger.warning("Interrupted, stopping before the remaining folders")
                break

            try:
                await self._process_folder(folder, summary)
            except RetentionCleanerError as error:
                error.summary = summary
                raise

        logger.info(f"Folders with a personal retention tag found: {summary.found}")
        logger.info(f"Folders with a personal retention tag removed: {summary.changed}")
        await self._report_progress("removal_completed", summary.as_dict())

        return summary

    # === Folder Processing ===

    async def _process_folder(self, folder: FolderRef, summary: RunSummary) -> None:
        summary.examined += 1
        bound = await asyncio.to_thread(self.session.bind_folder, folder)

        folder_path = None
        folder_changed = False

        for slot in TAG_SLOTS:
            retention_id = bound.retention_id(slot)
            if retention_id is None:
                continue

            summary.found += 1
            if folder_path is None:
                folder_path = await asyncio.to_thread(resolve_folder_path, self.session, folder)

            logger.info(f"Folder with {slot.value} tag found, ID: {folder.folder_id}")
            logger.info(f"Folder name: {folder.display_name}")
            logger.info(f"Folder path: {folder_path}")
            logger.info(f"Retention id: {retention_id}")
            await self._report_progress("tag_found", {
                "folder_id": folder.folder_id,
                "name": folder.display_name,
                "path": folder_path,
                "slot": slot.value,
                "retention_id": retention_id
            })

            if not self.is_eligible(retention_id):
                logger.info(f"Retention id {retention_id} is not in the filter, keeping the {slot.value} tag")
                await self._report_progress("tag_skipped", {
                    "folder_id": folder.folder_id,
                    "slot": slot.value,
                    "retention_id": retention_id
                })
                continue

            if not self.config.commit:
                await self._report_progress("would_remove", {
                    "folder_id": folder.folder_id,
                    "path": folder_path,
                    "slot": slot.value,
                    "retention_id": retention_id
                })
                continue

            if await self._clear_tag(folder, bound, slot, folder_path):
                folder_changed = True

        if folder_changed:
            await self._update_folder(folder, bound, folder_path, summary)

    async def _clear_tag(self, folder: FolderRef, bound: BoundFolder, slot: TagSlot, folder_path: str) -> bool:
        """Clear one tag slot, returns success"""
        logger.info(f"Removing the {slot.value} tag")
        try:
            await asyncio.to_thread(self.session.clear_tag, bound, slot)
        except TagMutationError as error:
            logger.error(f"Error on removing {slot.value} tag from folder: {folder.folder_id}. Path: {folder_path}")
            logger.error(f"Exception: {error}")
            await self._report_progress("tag_clear_error", {
                "folder_id": folder.folder_id,
                "path": folder_path,
                "slot": slot.value,
                "error": str(error)
            })
            return False

        await self._report_progress("tag_cleared", {
            "folder_id": folder.folder_id,
            "path": folder_path,
            "slot": slot.value
        })
        return True

    async def _update_folder(self, folder: FolderRef, bound: BoundFolder, folder_path: str, summary: RunSummary) -> None:
        """Persist the cleared tags; a failure here is raised"""
        try:
            await asyncio.to_thread(self.session.update_folder, bound)
        except PersistError as error:
            logger.error(f"Error on saving folder: {folder.folder_id}. Path: {folder_path}. Exception: {error}")
            await self._report_progress("folder_update_error", {
                "folder_id": folder.folder_id,
                "path": folder_path,
                "error": str(error)
            })
            if error.folder_id is None:
                error.folder_id = folder.folder_id
            raise

        summary.changed += 1
        logger.info("Tag removed successfully")
        await self._report_progress("folder_updated", {
            "folder_id": folder.folder_id,
            "path": folder_path,
            "slots": sorted(slot.value for slot in bound.cleared)
        })

    # === Filtering ===

    def is_eligible(self, retention_id: str) -> bool:
        """No filter means every tag is eligible"""
        if not self.retention_filter:
            return True
        return retention_id.lower() in self.retention_filter

    @staticmethod
    def normalize_retention_filter(retention_ids: Optional[Iterable[str]]) -> Optional[Set[str]]:
        """Lowercase and strip ids, drop empties; an empty result means no filter"""
        if not retention_ids:
            return None
        normalized = {r.strip().lower() for r in retention_ids if r and r.strip()}
        return normalized or None

    # === Progress ===

    async def _report_progress(self, event: str, data: Dict) -> None:
        """Send progress update if callback is set"""
        if self.progress_callback:
            await self.progress_callback(event, data)
