"""Tests for debounced auto-sync."""
from unittest.mock import AsyncMock

import pytest

from activevocab.exceptions import NotAuthenticatedError, SyncError
from activevocab.models.entities import Profile, Word
from activevocab.services.auto_sync import AutoSyncService
from activevocab.services.sync_service import SyncReport


@pytest.fixture
def sync(mocker):
    """Sync service stub."""
    service = mocker.Mock()
    service.push_all = AsyncMock(return_value=SyncReport(direction="push"))
    return service


@pytest.fixture
async def auto_sync(store, sync):
    service = AutoSyncService(store, sync, debounce_seconds=0.01)
    await service.start()
    yield service
    await service.stop()


async def test_burst_collapses_into_one_push(auto_sync, store, sync):
    """Test that rapid mutations produce a single push."""
    for i in range(5):
        store.add_word(Word(text=f"word{i}"))

    await auto_sync.wait_idle()

    sync.push_all.assert_awaited_once()
    assert auto_sync.pushes == 1


async def test_separate_bursts_push_separately(auto_sync, store, sync):
    store.add_word(Word(text="one"))
    await auto_sync.wait_idle()
    store.add_word(Word(text="two"))
    await auto_sync.wait_idle()

    assert sync.push_all.await_count == 2


async def test_sync_and_cache_events_are_ignored(auto_sync, store, sync):
    store.hydrate_words([Word(text="remote")])
    store.hydrate_profile(Profile(name="Remote"))
    store.restore({"profile": {"name": "cached"}}, origin="cache")
    store.reset()

    await auto_sync.wait_idle()

    sync.push_all.assert_not_awaited()


async def test_push_errors_are_contained(auto_sync, store, sync):
    sync.push_all.side_effect = SyncError("down", table="words")
    store.add_word(Word(text="one"))
    await auto_sync.wait_idle()

    sync.push_all.side_effect = NotAuthenticatedError()
    store.add_word(Word(text="two"))
    await auto_sync.wait_idle()

    assert sync.push_all.await_count == 2
    assert auto_sync.pushes == 0


async def test_stop_drops_pending_push(store, sync):
    service = AutoSyncService(store, sync, debounce_seconds=10)
    await service.start()
    store.add_word(Word(text="one"))

    await service.stop()
    store.add_word(Word(text="two"))

    sync.push_all.assert_not_awaited()
    assert service.tasks == set()


def test_mutation_without_event_loop_is_ignored(store, sync):
    service = AutoSyncService(store, sync, debounce_seconds=0)
    service.running = True
    service._unsubscribe = store.subscribe(service._on_event)

    store.add_word(Word(text="offline"))

    assert service.tasks == set()


if __name__ == "__main__":
    pytest.main([__file__])
