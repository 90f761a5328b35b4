"""In-memory state container for the local-first data model."""
import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Callable, Dict, List, Optional

from activevocab.config import settings
from activevocab.models.entities import (
    CheckInRecord,
    Profile,
    ReadingArticle,
    SavedContext,
    TokenUsage,
    UserSentence,
    Word,
    WordExplanation,
)
from activevocab.monitoring import words_added
from activevocab.services.review_service import ReviewService

logger = logging.getLogger(__name__)

# Event kinds, one per synchronized collection
WORDS = "words"
PROFILE = "profile"
EXPLANATIONS = "explanations"
TOKEN_USAGE = "token_usage"
ARTICLES = "articles"
RESTORED = "restored"

LOCAL = "local"
SYNC = "sync"
CACHE = "cache"


@dataclass
class StoreEvent:
    """Notification delivered to subscribers after a mutation."""
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)
    origin: str = LOCAL


Listener = Callable[[StoreEvent], None]


class LocalStore:
    """Owns profile, words, explanations, token usage and reading articles.

    All in-session mutations go through this class. Subscribers are told
    about each change; changes applied from the remote store or the disk
    cache carry the ``sync`` or ``cache`` origin so they are not pushed
    straight back.
    """

    def __init__(
        self,
        review_service: Optional[ReviewService] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.review_service = review_service or ReviewService()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.profile = Profile()
        self.words: List[Word] = []
        self.explanations: Dict[str, WordExplanation] = {}
        self.token_usage = TokenUsage()
        self.articles: List[ReadingArticle] = []
        # False while profile or token usage still hold untouched defaults
        self.profile_dirty = False
        self.token_usage_dirty = False
        self._listeners: List[Listener] = []

    # Observers

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: str, origin: str = LOCAL, **payload: Any) -> None:
        event = StoreEvent(kind=kind, payload=payload, origin=origin)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Store listener failed on {kind}: {e}", exc_info=True)

    # Words

    def get_word(self, word_id: str) -> Optional[Word]:
        return next((w for w in self.words if w.id == word_id), None)

    def _require_word(self, word_id: str) -> Word:
        word = self.get_word(word_id)
        if word is None:
            raise KeyError(f"Word {word_id} not found")
        return word

    def find_word_by_text(self, text: str, active_only: bool = False) -> Optional[Word]:
        needle = text.strip().lower()
        for word in self.words:
            if active_only and word.deleted:
                continue
            if word.text.lower() == needle:
                return word
        return None

    def active_words(self) -> List[Word]:
        return [w for w in self.words if not w.deleted]

    def deleted_words(self) -> List[Word]:
        return [w for w in self.words if w.deleted]

    def due_words(self, today: date) -> List[Word]:
        return self.review_service.due_words(self.words, today)

    def add_words(self, words: List[Word]) -> None:
        """Insert new words, newest first."""
        if not words:
            return
        self.words = list(words) + self.words
        words_added.inc(len(words))
        self._emit(WORDS, action="add", word_ids=[w.id for w in words])

    def add_word(self, word: Word) -> None:
        self.add_words([word])

    def remove_word(self, word_id: str) -> None:
        """Soft-delete a word; it stays in the list for sync."""
        word = self._require_word(word_id)
        word.deleted = True
        word.deleted_at = self.clock()
        self._emit(WORDS, action="remove", word_ids=[word_id])

    def restore_word(self, word_id: str) -> None:
        word = self._require_word(word_id)
        word.deleted = False
        word.deleted_at = None
        self._emit(WORDS, action="restore", word_ids=[word_id])

    def permanently_delete_word(self, word_id: str) -> None:
        """Drop a word from the local list only; remote rows are untouched."""
        self.words = [w for w in self.words if w.id != word_id]
        self._emit(WORDS, action="purge", word_ids=[word_id])

    def mark_learned(self, word_id: str, now: Optional[datetime] = None) -> Word:
        word = self._require_word(word_id)
        self.review_service.mark_learned(word, now or self.clock())
        self._emit(WORDS, action="learned", word_ids=[word_id])
        return word

    def add_user_sentence(self, word_id: str, sentence: str, translation: str) -> UserSentence:
        word = self._require_word(word_id)
        entry = UserSentence(sentence=sentence, translation=translation, created_at=self.clock())
        word.user_sentences.append(entry)
        self._emit(WORDS, action="sentence", word_ids=[word_id])
        return entry

    # Review outcomes

    def record_review_success(self, word_id: str, now: Optional[datetime] = None) -> Word:
        word = self._require_word(word_id)
        self.review_service.record_success(word, now or self.clock())
        self._emit(WORDS, action="review", outcome="success", word_ids=[word_id])
        return word

    def record_review_retry(self, word_id: str) -> Word:
        word = self._require_word(word_id)
        self.review_service.record_retry(word)
        self._emit(WORDS, action="review", outcome="retry", word_ids=[word_id])
        return word

    def record_review_skip(self, word_id: str, now: Optional[datetime] = None) -> Word:
        word = self._require_word(word_id)
        self.review_service.record_skip(word, now or self.clock())
        self._emit(WORDS, action="review", outcome="skip", word_ids=[word_id])
        return word

    # Profile

    def update_profile(self, **fields: Any) -> Profile:
        """Update scalar profile fields (name, city, occupation, ...)."""
        for key, value in fields.items():
            if key in ("saved_contexts", "check_in_history") or not hasattr(self.profile, key):
                raise AttributeError(f"Unknown profile field: {key}")
            setattr(self.profile, key, value)
        self.profile_dirty = True
        self._emit(PROFILE, action="update", fields=sorted(fields))
        return self.profile

    def add_saved_context(self, text: str) -> SavedContext:
        context = SavedContext(text=text, created_at=self.clock())
        self.profile.saved_contexts.insert(0, context)
        self.profile_dirty = True
        self._emit(PROFILE, action="context_add", context_id=context.id)
        return context

    def remove_saved_context(self, context_id: str) -> None:
        self.profile.saved_contexts = [c for c in self.profile.saved_contexts if c.id != context_id]
        self.profile_dirty = True
        self._emit(PROFILE, action="context_remove", context_id=context_id)

    def put_check_in(self, record: CheckInRecord) -> None:
        """Insert or replace the check-in record of a date."""
        history = self.profile.check_in_history
        for index, existing in enumerate(history):
            if existing.date == record.date:
                history[index] = record
                break
        else:
            history.insert(0, record)
        self.profile_dirty = True
        self._emit(PROFILE, action="check_in", date=record.date)

    # Explanations

    def set_word_explanation(self, word_id: str, explanation: WordExplanation) -> None:
        self.explanations[word_id] = explanation
        self._emit(EXPLANATIONS, action="set", word_ids=[word_id])

    def clear_explanations(self) -> None:
        self.explanations = {}
        self._emit(EXPLANATIONS, action="clear")

    # Token usage

    def add_token_usage(self, input_tokens: int, output_tokens: int) -> TokenUsage:
        self.token_usage.add(
            input_tokens,
            output_tokens,
            settings.pricing.input_per_million,
            settings.pricing.output_per_million,
        )
        self.token_usage_dirty = True
        self._emit(TOKEN_USAGE, action="add")
        return self.token_usage

    def reset_token_usage(self) -> None:
        self.token_usage = TokenUsage()
        self.token_usage_dirty = True
        self._emit(TOKEN_USAGE, action="reset")

    # Reading articles

    def get_article(self, article_id: str) -> Optional[ReadingArticle]:
        return next((a for a in self.articles if a.id == article_id), None)

    def add_article(self, article: ReadingArticle) -> None:
        self.articles.insert(0, article)
        self._emit(ARTICLES, action="add", article_id=article.id)

    def remove_article(self, article_id: str) -> None:
        self.articles = [a for a in self.articles if a.id != article_id]
        self._emit(ARTICLES, action="remove", article_id=article_id)

    def update_article_audio(
        self,
        article_id: str,
        status: str,
        blob_key: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> None:
        article = self.get_article(article_id)
        if article is None:
            raise KeyError(f"Article {article_id} not found")
        article.audio_status = status
        if blob_key is not None:
            article.audio_blob_key = blob_key
        if duration is not None:
            article.audio_duration = duration
        self._emit(ARTICLES, action="audio", article_id=article_id, status=status)

    def update_article_last_played(self, article_id: str) -> None:
        article = self.get_article(article_id)
        if article is None:
            raise KeyError(f"Article {article_id} not found")
        article.last_played_at = int(self.clock().timestamp() * 1000)
        self._emit(ARTICLES, action="played", article_id=article_id)

    # Hydration from the remote store

    def hydrate_words(self, words: List[Word]) -> None:
        self.words = list(words)
        self._emit(WORDS, origin=SYNC, action="hydrate", count=len(words))

    def hydrate_profile(self, profile: Profile) -> None:
        self.profile = profile
        self.profile_dirty = True
        self._emit(PROFILE, origin=SYNC, action="hydrate")

    def hydrate_explanations(self, explanations: Dict[str, WordExplanation]) -> None:
        self.explanations = dict(explanations)
        self._emit(EXPLANATIONS, origin=SYNC, action="hydrate", count=len(explanations))

    def hydrate_token_usage(self, usage: TokenUsage) -> None:
        self.token_usage = usage
        self.token_usage_dirty = True
        self._emit(TOKEN_USAGE, origin=SYNC, action="hydrate")

    def hydrate_articles(self, articles: List[ReadingArticle]) -> None:
        self.articles = list(articles)
        self._emit(ARTICLES, origin=SYNC, action="hydrate", count=len(articles))

    # Snapshots

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict copy of the whole state."""
        return {
            "profile": self.profile.to_dict(),
            "words": [w.to_dict() for w in self.words],
            "word_explanations": {k: v.to_dict() for k, v in self.explanations.items()},
            "token_usage": self.token_usage.to_dict(),
            "reading_articles": [a.to_dict() for a in self.articles],
        }

    def restore(self, snapshot: Dict[str, Any], origin: str = LOCAL) -> None:
        """Replace the whole state from a snapshot produced by ``snapshot``."""
        self.profile = Profile.from_dict(snapshot.get("profile"))
        self.words = [Word.from_dict(w) for w in snapshot.get("words") or []]
        self.explanations = {
            k: WordExplanation.from_dict(v)
            for k, v in (snapshot.get("word_explanations") or {}).items()
        }
        self.token_usage = TokenUsage.from_dict(snapshot.get("token_usage"))
        self.articles = [ReadingArticle.from_dict(a) for a in snapshot.get("reading_articles") or []]
        self.profile_dirty = self.profile != Profile()
        self.token_usage_dirty = self.token_usage != TokenUsage()
        self._emit(RESTORED, origin=origin, words=len(self.words))

    def reset(self) -> None:
        """Drop all local state."""
        self.profile = Profile()
        self.words = []
        self.explanations = {}
        self.token_usage = TokenUsage()
        self.articles = []
        self.profile_dirty = False
        self.token_usage_dirty = False
        self._emit(RESTORED, origin=CACHE, words=0)
