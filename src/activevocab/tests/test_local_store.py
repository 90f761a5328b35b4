"""Tests for the local store."""
from datetime import UTC, datetime

import pytest
from faker import Faker

from activevocab.models.entities import (
    CheckInRecord,
    Profile,
    ReadingArticle,
    TokenUsage,
    Word,
    WordExplanation,
)
from activevocab.services.local_store import (
    ARTICLES,
    CACHE,
    EXPLANATIONS,
    LOCAL,
    PROFILE,
    RESTORED,
    SYNC,
    TOKEN_USAGE,
    WORDS,
)

fake = Faker()


@pytest.fixture
def events(store):
    """Collect events emitted by the store."""
    received = []
    store.subscribe(received.append)
    return received


def test_add_words_prepends(store, events):
    """Test that new words go to the front of the list."""
    older = Word(text="older")
    newer_a = Word(text="alpha")
    newer_b = Word(text="beta")

    store.add_word(older)
    store.add_words([newer_a, newer_b])

    assert [w.text for w in store.words] == ["alpha", "beta", "older"]
    assert [e.kind for e in events] == [WORDS, WORDS]
    assert events[1].payload["word_ids"] == [newer_a.id, newer_b.id]
    assert events[1].origin == LOCAL


def test_add_words_empty_is_silent(store, events):
    store.add_words([])
    assert events == []


def test_unsubscribe(store):
    received = []
    unsubscribe = store.subscribe(received.append)
    store.add_word(Word(text="one"))

    unsubscribe()
    unsubscribe()
    store.add_word(Word(text="two"))

    assert len(received) == 1


def test_failing_listener_does_not_break_others(store):
    received = []

    def broken(event):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(received.append)
    store.add_word(Word(text="one"))

    assert len(received) == 1


def test_find_word_by_text(store):
    word = Word(text="Apple")
    store.add_word(word)
    store.remove_word(word.id)

    assert store.find_word_by_text("  apple ") is word
    assert store.find_word_by_text("apple", active_only=True) is None


def test_soft_delete_and_restore(store, clock):
    word = Word(text="ephemeral")
    store.add_word(word)

    store.remove_word(word.id)
    assert word.deleted is True
    assert word.deleted_at == clock.now
    assert store.active_words() == []
    assert store.deleted_words() == [word]

    store.restore_word(word.id)
    assert word.deleted is False
    assert word.deleted_at is None
    assert store.active_words() == [word]


def test_permanently_delete_word(store):
    word = Word(text="gone")
    store.add_word(word)
    store.permanently_delete_word(word.id)
    assert store.get_word(word.id) is None


def test_unknown_word_raises(store):
    with pytest.raises(KeyError):
        store.remove_word("missing")
    with pytest.raises(KeyError):
        store.record_review_success("missing")


def test_mark_learned_and_add_sentence(store, clock):
    word = Word(text="learn")
    store.add_word(word)

    store.mark_learned(word.id)
    entry = store.add_user_sentence(word.id, "I learn every day.", "我每天都学习。")

    assert word.learned is True
    assert word.next_review_date == datetime(2026, 3, 11, tzinfo=UTC)
    assert entry.created_at == clock.now
    assert word.user_sentences == [entry]
    assert store.due_words(clock.now.date()) == []


def test_review_outcomes_emit_events(store, events, make_word):
    word = make_word()
    store.add_word(word)
    events.clear()

    store.record_review_retry(word.id)
    store.record_review_skip(word.id)
    store.record_review_success(word.id)

    assert [e.payload["outcome"] for e in events] == ["retry", "skip", "success"]
    assert word.review_count == 1


def test_update_profile(store, events):
    name = fake.name()
    store.update_profile(name=name, city="Berlin")

    assert store.profile.name == name
    assert store.profile.city == "Berlin"
    assert events[-1].kind == PROFILE
    assert events[-1].payload["fields"] == ["city", "name"]


@pytest.mark.parametrize("field", ["nickname", "saved_contexts", "check_in_history"])
def test_update_profile_rejects_other_fields(store, field):
    with pytest.raises(AttributeError):
        store.update_profile(**{field: "x"})


def test_saved_contexts_newest_first(store):
    first = store.add_saved_context("At the airport")
    second = store.add_saved_context("At a restaurant")
    assert store.profile.saved_contexts == [second, first]

    store.remove_saved_context(first.id)
    assert store.profile.saved_contexts == [second]


def test_put_check_in_replaces_same_date(store):
    store.put_check_in(CheckInRecord(date="2026-03-09", groups_completed=1))
    store.put_check_in(CheckInRecord(date="2026-03-10", groups_completed=1))
    store.put_check_in(CheckInRecord(date="2026-03-09", groups_completed=3))

    history = store.profile.check_in_history
    assert [(r.date, r.groups_completed) for r in history] == [("2026-03-10", 1), ("2026-03-09", 3)]


def test_explanations_and_token_usage(store, events):
    store.set_word_explanation("w1", WordExplanation(meaning="意思"))
    store.add_token_usage(1000, 2000)
    store.add_token_usage(500, 0)

    assert store.explanations["w1"].meaning == "意思"
    assert store.token_usage.input_tokens == 1500
    assert store.token_usage.output_tokens == 2000
    assert store.token_usage.total_cost == pytest.approx(1500 / 1e6 * 0.80 + 2000 / 1e6 * 4.00)

    store.clear_explanations()
    store.reset_token_usage()
    assert store.explanations == {}
    assert store.token_usage == TokenUsage()
    assert [e.kind for e in events] == [EXPLANATIONS, TOKEN_USAGE, TOKEN_USAGE, EXPLANATIONS, TOKEN_USAGE]


def test_article_updates(store, clock):
    article = ReadingArticle(title="T", content="Hi.", sentences=["Hi."])
    store.add_article(article)

    store.update_article_audio(article.id, "ready", blob_key=article.id, duration=0.15)
    store.update_article_last_played(article.id)

    assert article.audio_status == "ready"
    assert article.audio_blob_key == article.id
    assert article.audio_duration == 0.15
    assert article.last_played_at == int(clock.now.timestamp() * 1000)

    store.remove_article(article.id)
    assert store.articles == []
    with pytest.raises(KeyError):
        store.update_article_audio(article.id, "error")


def test_hydration_uses_sync_origin(store, events):
    store.hydrate_words([Word(text="remote")])
    store.hydrate_profile(Profile(name="Remote"))
    store.hydrate_explanations({})
    store.hydrate_token_usage(TokenUsage(input_tokens=5))
    store.hydrate_articles([])

    assert [e.kind for e in events] == [WORDS, PROFILE, EXPLANATIONS, TOKEN_USAGE, ARTICLES]
    assert {e.origin for e in events} == {SYNC}
    assert store.words[0].text == "remote"
    assert store.token_usage.input_tokens == 5


def test_snapshot_restore(store, make_word):
    store.add_word(make_word(sentences=2))
    store.update_profile(name="Lin")
    store.set_word_explanation("w1", WordExplanation(meaning="意思", example_translation="例句。"))
    store.add_article(ReadingArticle(title="T", content="Hi.", sentences=["Hi."], created_at=1))
    snapshot = store.snapshot()

    store.reset()
    assert store.words == []
    assert store.profile == Profile()

    store.restore(snapshot)
    assert store.snapshot() == snapshot


def test_restore_and_reset_origins(store, events):
    store.restore({"profile": {"name": "x"}}, origin=CACHE)
    store.reset()
    assert [(e.kind, e.origin) for e in events] == [(RESTORED, CACHE), (RESTORED, CACHE)]



def test_profile_and_usage_dirty_flags(store):
    """Test that only loaded or edited profile and usage count as pushable."""
    assert not store.profile_dirty
    assert not store.token_usage_dirty

    store.restore({"profile": {}, "token_usage": {}}, origin=CACHE)
    assert not store.profile_dirty
    assert not store.token_usage_dirty

    store.restore({"profile": {"name": "cached"}, "token_usage": {"input_tokens": 3}}, origin=CACHE)
    assert store.profile_dirty
    assert store.token_usage_dirty

    store.reset()
    assert not store.profile_dirty
    assert not store.token_usage_dirty

    store.put_check_in(CheckInRecord(date="2026-03-10", groups_completed=1))
    store.add_token_usage(1, 1)
    assert store.profile_dirty
    assert store.token_usage_dirty


if __name__ == "__main__":
    pytest.main([__file__])
