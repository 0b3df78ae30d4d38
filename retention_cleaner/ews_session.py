"""
EWS Mailbox Session - folder operations on top of exchangelib
"""

import logging
import uuid
from typing import Any, Optional

from exchangelib import ExtendedProperty, Folder
from exchangelib.errors import EWSError
from exchangelib.fields import FieldPath
from exchangelib.folders import DEEP, FolderCollection

from retention_cleaner.errors import PersistError, TagMutationError, TransportError
from retention_cleaner.models import BoundFolder, FolderPage, FolderRef, TagSlot


logger = logging.getLogger(__name__)


# === MAPI properties not modelled by exchangelib ===

class ArchiveTag(ExtendedProperty):
    """PR_ARCHIVE_TAG"""
    property_tag = 0x3018
    property_type = 'Binary'


class PolicyTag(ExtendedProperty):
    """PR_POLICY_TAG"""
    property_tag = 0x3019
    property_type = 'Binary'


class FolderPathName(ExtendedProperty):
    """PR_FOLDER_PATHNAME"""
    property_tag = 0x66B5
    property_type = 'String'


SLOT_FIELDS = {
    TagSlot.ARCHIVE: 'personal_archive_tag',
    TagSlot.POLICY: 'personal_policy_tag',
}
FOLDER_PATH_FIELD = 'folder_path_name'

_registered = False


def register_folder_properties() -> None:
    """Register the tag and path properties on Folder once per process"""
    global _registered
    if _registered:
        return
    Folder.register(SLOT_FIELDS[TagSlot.ARCHIVE], ArchiveTag)
    Folder.register(SLOT_FIELDS[TagSlot.POLICY], PolicyTag)
    Folder.register(FOLDER_PATH_FIELD, FolderPathName)
    _registered = True


def retention_id_from_tag(value: Optional[bytes]) -> Optional[str]:
    """Render the GUID stored in a binary tag as a lowercase UUID string"""
    if value is None:
        return None
    if len(value) == 16:
        return str(uuid.UUID(bytes_le=bytes(value)))
    return bytes(value).hex()


class EwsMailboxSession:
    """Folder service backed by an exchangelib Account"""

    def __init__(self, account):
        register_folder_properties()
        self.account = account

    # === Roots ===

    def root_folder(self, archive: bool = False) -> Any:
        """Message folder root of the mailbox or of its archive"""
        try:
            if archive:
                return self.account.archive_msg_folder_root
            return self.account.msg_folder_root
        except EWSError as error:
            raise TransportError(f"Could not open the {'archive' if archive else 'mailbox'} root: {error}") from error

    # === Enumeration ===

    def find_folders(self, root: Any, page_size: int, offset: int) -> FolderPage:
        """One page of a deep traversal below root, id and display name only"""
        name_field = {FieldPath(field=Folder.get_field_by_fieldname('name'))}
        try:
            results = list(FolderCollection(account=self.account, folders=[root]).find_folders(
                depth=DEEP,
                additional_fields=name_field,
                page_size=page_size,
                max_items=page_size,
                offset=offset
            ))
        except EWSError as error:
            raise TransportError(str(error)) from error

        folders = []
        for result in results:
            if isinstance(result, Exception):
                raise TransportError(str(result)) from result
            folders.append(FolderRef(folder_id=result.id, display_name=result.name, handle=result))

        logger.debug(f"Fetched {len(folders)} folders at offset {offset}")
        # FindFolder does not expose IncludesLastItemInRange here, a full page means "maybe more"
        return FolderPage(folders=folders, more_available=len(results) >= page_size)

    # === Tags ===

    def bind_folder(self, folder: FolderRef) -> BoundFolder:
        """Re-read a folder so its tag properties are populated"""
        handle = folder.handle
        try:
            handle.refresh()
        except EWSError as error:
            raise TransportError(f"Could not bind folder {folder.folder_id}: {error}") from error

        return BoundFolder(
            folder_id=folder.folder_id,
            tags={slot: retention_id_from_tag(getattr(handle, field)) for slot, field in SLOT_FIELDS.items()},
            handle=handle
        )

    def clear_tag(self, bound: BoundFolder, slot: TagSlot) -> None:
        # Only the tag property itself; retention period and flags (0x301A, 0x301D, 0x301E) are left as they are
        try:
            setattr(bound.handle, SLOT_FIELDS[slot], None)
        except (AttributeError, TypeError, ValueError) as error:
            raise TagMutationError(str(error)) from error
        bound.tags[slot] = None
        bound.cleared.add(slot)

    def update_folder(self, bound: BoundFolder) -> None:
        """Save exactly the cleared tag fields in one call"""
        update_fields = [SLOT_FIELDS[slot] for slot in sorted(bound.cleared)]
        if not update_fields:
            return
        try:
            bound.handle.save(update_fields=update_fields)
        except EWSError as error:
            raise PersistError(str(error), folder_id=bound.folder_id) from error

    # === Paths ===

    def get_folder_path(self, folder: FolderRef) -> str:
        """Raw PR_FOLDER_PATHNAME of a folder (still carrying the placeholder character)"""
        path_field = {FieldPath(field=Folder.get_field_by_fieldname(FOLDER_PATH_FIELD))}
        try:
            results = list(FolderCollection(account=self.account, folders=[folder.handle]).get_folders(
                additional_fields=path_field
            ))
        except EWSError as error:
            raise TransportError(f"Could not get path of folder {folder.folder_id}: {error}") from error

        if not results:
            return ''
        if isinstance(results[0], Exception):
            raise TransportError(f"Could not get path of folder {folder.folder_id}: {results[0]}") from results[0]
        return getattr(results[0], FOLDER_PATH_FIELD, None) or ''
