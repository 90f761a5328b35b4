"""Tests for sync service."""
import asyncio

import pytest

from activevocab.config import CACHED_TRANSLATION_FALLBACK
from activevocab.exceptions import NotAuthenticatedError, SyncError
from activevocab.models.base import SessionLocal
from activevocab.models.entities import (
    CheckInRecord,
    Profile,
    ReadingArticle,
    SavedContext,
    TokenUsage,
    Word,
    WordExplanation,
)
from activevocab.models.remote import ProfileRow, WordRow
from activevocab.services.auth_service import AuthService
from activevocab.services.local_store import LocalStore
from activevocab.services.remote_store import RemoteStore
from activevocab.services.sync_service import (
    PROFILES,
    READING_ARTICLES,
    TOKEN_USAGE,
    WORD_EXPLANATIONS,
    WORDS,
    CoalescingRunner,
    SyncService,
)

USER_ID = "user-1"


@pytest.fixture
def remote():
    return RemoteStore()


@pytest.fixture
def auth():
    """Signed-in auth service."""
    return AuthService(USER_ID)


@pytest.fixture
def sync_service(store, remote, auth):
    """Create sync service instance."""
    return SyncService(store, remote, auth)


def word_rows():
    db = SessionLocal()
    try:
        return {row.id: (row.text, row.review_count) for row in db.query(WordRow).all()}
    finally:
        db.close()


async def test_push_words(sync_service, store, make_word):
    store.add_words([make_word(text="alpha"), make_word(text="beta")])

    assert await sync_service.push_words() == 2
    assert sorted(text for text, _ in word_rows().values()) == ["alpha", "beta"]


async def test_empty_push_leaves_remote_unchanged(sync_service, store, remote, make_word):
    """Test that a cleared device cannot wipe the remote word list."""
    words = [make_word(text="alpha"), make_word(text="beta")]
    remote.upsert_words(USER_ID, words)
    before = word_rows()

    assert store.words == []
    assert await sync_service.push_words() == 0
    assert await sync_service.push_articles() == 0
    assert await sync_service.push_explanations() == 0

    assert word_rows() == before


async def test_untouched_profile_and_usage_leave_remote_unchanged(
    sync_service, store, remote, clock, make_word
):
    """Test that a cleared device cannot wipe the remote profile or token counters."""
    profile = Profile(name="Ana")
    profile.saved_contexts.append(SavedContext(text="at the airport", created_at=clock.now))
    profile.check_in_history.append(CheckInRecord(date="2026-03-09", groups_completed=2, words_learned=["w1"]))
    remote.upsert_profile(USER_ID, profile)
    remote.upsert_token_usage(USER_ID, TokenUsage(5000, 900, 0.0076))
    store.add_word(make_word())

    report = await sync_service.push_all()

    assert report.succeeded == {WORDS: 1}
    assert PROFILES in report.skipped
    assert TOKEN_USAGE in report.skipped
    stored = remote.fetch_profile(USER_ID)
    assert stored.name == "Ana"
    assert len(stored.saved_contexts) == 1
    assert [r.date for r in stored.check_in_history] == ["2026-03-09"]
    usage = remote.fetch_token_usage(USER_ID)
    assert (usage.input_tokens, usage.output_tokens) == (5000, 900)


async def test_hydrated_profile_is_pushed_back(sync_service, store, remote):
    remote.upsert_profile(USER_ID, Profile(name="Ana"))
    await sync_service.load_from_cloud()
    store.add_saved_context("on the train")

    assert await sync_service.push_profile() == 1
    stored = remote.fetch_profile(USER_ID)
    assert stored.name == "Ana"
    assert [c.text for c in stored.saved_contexts] == ["on the train"]


async def test_reset_store_stops_profile_push(sync_service, store, remote):
    store.update_profile(name="Lin")
    store.add_token_usage(10, 20)
    assert await sync_service.push_profile() == 1

    store.reset()

    assert await sync_service.push_profile() == 0
    assert await sync_service.push_token_usage() == 0
    assert remote.fetch_profile(USER_ID).name == "Lin"
    assert remote.fetch_token_usage(USER_ID).output_tokens == 20


async def test_push_skips_explanations_without_meaning(sync_service, store, remote):
    store.set_word_explanation("w1", WordExplanation(meaning="意思"))
    store.set_word_explanation("w2", WordExplanation(meaning="  "))

    assert await sync_service.push_explanations() == 1
    assert set(remote.fetch_explanations(USER_ID)) == {"w1"}


async def test_operations_require_user(store, remote, make_word):
    """Test that every sync entry point raises without a user."""
    sync_service = SyncService(store, remote, AuthService())
    store.add_word(make_word())

    for operation in (
        sync_service.push_profile,
        sync_service.push_words,
        sync_service.push_explanations,
        sync_service.push_token_usage,
        sync_service.push_articles,
        sync_service.push_all,
        sync_service.load_from_cloud,
    ):
        with pytest.raises(NotAuthenticatedError):
            await operation()

    assert word_rows() == {}
    assert len(store.words) == 1


async def test_push_all(sync_service, store, remote, make_word):
    store.update_profile(name="Lin")
    store.add_word(make_word())
    store.add_token_usage(10, 20)

    report = await sync_service.push_all()

    assert report.ok
    assert report.succeeded == {PROFILES: 1, WORDS: 1, TOKEN_USAGE: 1}
    assert report.skipped == [WORD_EXPLANATIONS, READING_ARTICLES]
    assert remote.fetch_profile(USER_ID).name == "Lin"
    assert remote.fetch_token_usage(USER_ID).output_tokens == 20


async def test_push_all_continues_after_table_failure(sync_service, store, remote, mocker, make_word):
    store.add_word(make_word())
    store.update_profile(name="Lin")
    mocker.patch.object(remote, "upsert_profile", side_effect=SyncError("boom", table=PROFILES))

    report = await sync_service.push_all()

    assert not report.ok
    assert report.failures == {PROFILES: "boom"}
    assert report.succeeded[WORDS] == 1


async def test_coalescing_runner_folds_concurrent_calls():
    """Test that calls during a run cause exactly one re-run."""
    started = asyncio.Event()
    release = asyncio.Event()
    calls = []

    async def operation():
        calls.append(len(calls))
        if len(calls) == 1:
            started.set()
            await release.wait()
        return len(calls)

    runner = CoalescingRunner("words", operation)
    first = asyncio.ensure_future(runner.run())
    await started.wait()

    assert runner.in_flight
    second = asyncio.ensure_future(runner.run())
    third = asyncio.ensure_future(runner.run())
    await asyncio.sleep(0)
    release.set()

    results = await asyncio.gather(first, second, third)

    assert runner.runs == 2
    assert results == [2, 2, 2]
    assert not runner.in_flight


async def test_coalescing_runner_sequential_calls():
    async def operation():
        return "done"

    runner = CoalescingRunner("profiles", operation)
    assert await runner.run() == "done"
    assert await runner.run() == "done"
    assert runner.runs == 2


async def test_coalescing_runner_propagates_errors():
    async def operation():
        raise SyncError("down", table=WORDS)

    runner = CoalescingRunner("words", operation)
    with pytest.raises(SyncError):
        await runner.run()
    assert not runner.in_flight


async def test_load_from_cloud_hydrates(sync_service, store, remote, make_word):
    remote.upsert_profile(USER_ID, Profile(name="Remote"))
    remote_word = make_word(text="remote")
    remote.upsert_words(USER_ID, [remote_word])
    remote.upsert_token_usage(USER_ID, TokenUsage(1, 2, 0.1))
    remote.upsert_articles(USER_ID, [ReadingArticle(title="A", content="Hi.", sentences=["Hi."], created_at=1)])
    events = []
    store.subscribe(events.append)

    report = await sync_service.load_from_cloud()

    assert report.ok
    assert report.succeeded == {PROFILES: 1, WORDS: 1, TOKEN_USAGE: 1, READING_ARTICLES: 1}
    assert report.skipped == [WORD_EXPLANATIONS]
    assert store.profile.name == "Remote"
    assert [w.id for w in store.words] == [remote_word.id]
    assert store.token_usage == TokenUsage(1, 2, 0.1)
    assert store.articles[0].title == "A"
    assert {e.origin for e in events} == {"sync"}


async def test_load_keeps_local_when_remote_empty(sync_service, store, make_word):
    local = make_word(text="local")
    store.add_word(local)
    store.update_profile(name="Local")

    report = await sync_service.load_from_cloud()

    assert report.ok
    assert store.words == [local]
    assert store.profile.name == "Local"
    assert set(report.skipped) == {PROFILES, WORDS, WORD_EXPLANATIONS, TOKEN_USAGE, READING_ARTICLES}


async def test_load_merges_by_id(sync_service, store, remote, make_word):
    """Test that remote copies win and local-only words survive."""
    shared = make_word(text="shared", review_count=0)
    local_only = make_word(text="local-only")
    store.add_words([local_only, shared])

    remote_copy = Word.from_dict(shared.to_dict())
    remote_copy.review_count = 5
    remote.upsert_words(USER_ID, [remote_copy])

    await sync_service.load_from_cloud()

    assert [w.text for w in store.words] == ["local-only", "shared"]
    assert store.get_word(shared.id).review_count == 5


async def test_load_cleans_remote_explanations(sync_service, store, remote):
    remote.upsert_explanations(USER_ID, {"w1": WordExplanation(meaning="m", example_translation="...")})
    store.set_word_explanation("w2", WordExplanation(meaning="本地"))

    await sync_service.load_from_cloud()

    assert store.explanations["w1"].example_translation == CACHED_TRANSLATION_FALLBACK
    assert store.explanations["w2"].meaning == "本地"


async def test_load_reports_failing_table(sync_service, remote, mocker):
    mocker.patch.object(remote, "fetch_words", side_effect=SyncError("timeout", table=WORDS))

    report = await sync_service.load_from_cloud()

    assert report.failures == {WORDS: "timeout"}


async def test_check_auth(store, remote):
    remote.upsert_profile(USER_ID, Profile(name="Remote"))

    signed_out = SyncService(store, remote, AuthService())
    assert await signed_out.check_auth() is None
    assert store.profile.name == ""

    signed_in = SyncService(store, remote, AuthService(USER_ID))
    assert await signed_in.check_auth() == USER_ID
    assert store.profile.name == "Remote"


async def test_round_trip_between_devices(store, remote, clock, make_word):
    """Push from one device and load on another."""
    store.add_word(make_word(text="travel"))
    store.update_profile(name="Lin")
    await SyncService(store, remote, AuthService(USER_ID)).push_all()

    other = LocalStore(clock=clock)
    await SyncService(other, remote, AuthService(USER_ID)).load_from_cloud()

    assert [w.to_dict() for w in other.words] == [w.to_dict() for w in store.words]
    assert other.profile.name == "Lin"


def test_profile_rows_scoped_by_user(remote):
    remote.upsert_profile("a", Profile(name="A"))
    remote.upsert_profile("b", Profile(name="B"))
    db = SessionLocal()
    try:
        assert db.query(ProfileRow).count() == 2
    finally:
        db.close()
    assert remote.fetch_profile("a").name == "A"


if __name__ == "__main__":
    pytest.main([__file__])
