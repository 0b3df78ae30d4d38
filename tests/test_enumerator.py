"""
Tests for FolderEnumerator class
"""

import pytest
from retention_cleaner.enumerator import FolderEnumerator, PAGE_SIZE
from retention_cleaner.errors import TransportError, TraversalError

from conftest import MockMailboxSession, make_folders


@pytest.mark.asyncio
class TestTraverse:
    """Tests for the async traverse method"""

    async def test_single_page(self, mock_session):
        enumerator = FolderEnumerator(mock_session)
        folders = await enumerator.traverse('msg_root')

        assert [f.folder_id for f in folders] == ['A', 'B', 'C']
        assert mock_session.page_requests == [0]

    async def test_three_pages_three_requests(self):
        data = make_folders(250)
        session = MockMailboxSession(data)
        enumerator = FolderEnumerator(session)
        folders = await enumerator.traverse('msg_root')

        assert session.page_requests == [0, 100, 200]
        assert len(folders) == 250
        # arrival order across pages
        assert [f.folder_id for f in folders] == [d['id'] for d in data]

    async def test_small_page_size(self):
        session = MockMailboxSession(make_folders(7))
        enumerator = FolderEnumerator(session, page_size=3)
        folders = await enumerator.traverse('msg_root')

        assert session.page_requests == [0, 3, 6]
        assert len(folders) == 7

    async def test_empty_tree(self):
        session = MockMailboxSession([])
        enumerator = FolderEnumerator(session)
        folders = await enumerator.traverse('msg_root')

        assert folders == []
        assert session.page_requests == [0]

    async def test_failure_on_page_two_keeps_page_one(self):
        data = make_folders(300)
        session = MockMailboxSession(data, fail_pages={1})
        enumerator = FolderEnumerator(session)

        with pytest.raises(TraversalError) as excinfo:
            await enumerator.traverse('msg_root')

        assert isinstance(excinfo.value, TransportError)
        assert [f.folder_id for f in excinfo.value.partial] == [d['id'] for d in data[:100]]
        assert session.page_requests == [0, 100]

    async def test_failure_on_first_page_is_empty(self):
        session = MockMailboxSession(make_folders(5), fail_pages={0})
        enumerator = FolderEnumerator(session)

        with pytest.raises(TraversalError) as excinfo:
            await enumerator.traverse('msg_root')

        assert excinfo.value.partial == []

    async def test_progress_events(self):
        session = MockMailboxSession(make_folders(150))
        events = []

        async def capture_progress(event: str, data: dict):
            events.append((event, data))

        enumerator = FolderEnumerator(session, progress_callback=capture_progress)
        await enumerator.traverse('msg_root')

        event_types = [e[0] for e in events]
        assert event_types == ['enumeration_started', 'page_fetched', 'page_fetched', 'enumeration_completed']
        assert events[-1][1] == {'pages': 2, 'total': 150}

    async def test_failure_event(self):
        session = MockMailboxSession(make_folders(150), fail_pages={1})
        events = []

        async def capture_progress(event: str, data: dict):
            events.append((event, data))

        enumerator = FolderEnumerator(session, progress_callback=capture_progress)
        with pytest.raises(TraversalError):
            await enumerator.traverse('msg_root')

        assert events[-1][0] == 'enumeration_failed'
        assert events[-1][1]['folders_received'] == 100

    async def test_respects_interrupt(self):
        session = MockMailboxSession(make_folders(250))
        enumerator = FolderEnumerator(session)

        async def interrupt_after_first_page(event: str, data: dict):
            if event == 'page_fetched':
                enumerator.interrupted = True

        enumerator.progress_callback = interrupt_after_first_page
        folders = await enumerator.traverse('msg_root')

        assert len(folders) == 100
        assert session.page_requests == [0]


def test_default_page_size():
    assert PAGE_SIZE == 100
