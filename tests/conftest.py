"""
Shared test fixtures for Retention Cleaner tests
"""

import pytest
from typing import Dict, List, Optional, Set

from retention_cleaner.errors import PersistError, TagMutationError, TransportError
from retention_cleaner.models import BoundFolder, FolderPage, FolderRef, RemovalConfig, TagSlot


# === Mock Folder Service ===

class MockMailboxSession:
    """Simulates a mailbox folder tree with retention tags"""

    def __init__(
        self,
        folders: List[dict],
        fail_pages: Set[int] = None,
        fail_clear: Set[str] = None,
        fail_update: Set[str] = None,
        fail_path: Set[str] = None
    ):
        self._folders = folders
        self._by_id = {f['id']: f for f in folders}
        self._fail_pages = fail_pages or set()
        self._fail_clear = fail_clear or set()
        self._fail_update = fail_update or set()
        self._fail_path = fail_path or set()

        # Call records
        self.page_requests: List[int] = []
        self.bound: List[str] = []
        self.updates: List[str] = []

    def root_folder(self, archive: bool = False):
        return 'archive_root' if archive else 'msg_root'

    def find_folders(self, root, page_size: int, offset: int) -> FolderPage:
        self.page_requests.append(offset)
        if offset // page_size in self._fail_pages:
            raise TransportError(f"Page at offset {offset} failed")

        page = self._folders[offset:offset + page_size]
        refs = [FolderRef(folder_id=f['id'], display_name=f['name']) for f in page]
        return FolderPage(folders=refs, more_available=offset + page_size < len(self._folders))

    def bind_folder(self, folder: FolderRef) -> BoundFolder:
        self.bound.append(folder.folder_id)
        data = self._by_id[folder.folder_id]
        return BoundFolder(
            folder_id=folder.folder_id,
            tags={TagSlot.ARCHIVE: data.get('archive'), TagSlot.POLICY: data.get('policy')}
        )

    def clear_tag(self, bound: BoundFolder, slot: TagSlot) -> None:
        if bound.folder_id in self._fail_clear:
            raise TagMutationError(f"Cannot clear {slot.value} on {bound.folder_id}")
        bound.tags[slot] = None
        bound.cleared.add(slot)

    def update_folder(self, bound: BoundFolder) -> None:
        if bound.folder_id in self._fail_update:
            raise PersistError(f"Save failed for {bound.folder_id}")
        self.updates.append(bound.folder_id)
        data = self._by_id[bound.folder_id]
        for slot in bound.cleared:
            data[slot.value] = None

    def get_folder_path(self, folder: FolderRef) -> str:
        if folder.folder_id in self._fail_path:
            raise TransportError(f"No path for {folder.folder_id}")
        return self._by_id[folder.folder_id].get('path', '')

    # === Helpers for assertions ===

    def tags_of(self, folder_id: str) -> Dict[str, Optional[str]]:
        data = self._by_id[folder_id]
        return {'archive': data.get('archive'), 'policy': data.get('policy')}

    def refs(self) -> List[FolderRef]:
        return [FolderRef(folder_id=f['id'], display_name=f['name']) for f in self._folders]


# === Helper to create folder data ===

def make_folder(
    folder_id: str,
    name: str,
    archive: Optional[str] = None,
    policy: Optional[str] = None,
    path: Optional[str] = None
) -> dict:
    """Helper to create a folder dict; path uses the EWS placeholder character"""
    return {
        'id': folder_id,
        'name': name,
        'archive': archive,
        'policy': policy,
        'path': path if path is not None else '\ufffe' + name
    }


def make_folders(count: int, prefix: str = 'folder') -> List[dict]:
    return [make_folder(f'{prefix}_{i:03d}', f'{prefix.title()} {i}') for i in range(count)]


# === Fixtures ===

@pytest.fixture
def sample_folders() -> List[dict]:
    """A: archive tag x, B: policy tag y, C: untagged"""
    return [
        make_folder('A', 'Invoices', archive='x', path='\ufffeInbox\ufffeInvoices'),
        make_folder('B', 'Projects', policy='y', path='\ufffeInbox\ufffeProjects'),
        make_folder('C', 'Notes', path='\ufffeNotes'),
    ]


@pytest.fixture
def mock_session(sample_folders) -> MockMailboxSession:
    return MockMailboxSession(sample_folders)


@pytest.fixture
def dry_run_config() -> RemovalConfig:
    return RemovalConfig(commit=False)


@pytest.fixture
def commit_config() -> RemovalConfig:
    return RemovalConfig(commit=True)
