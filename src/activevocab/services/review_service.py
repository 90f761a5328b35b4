"""Review due-ness, interval scheduling and the review session flow."""
import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING, Iterable, List, Optional

from activevocab.config import settings
from activevocab.models.entities import ReviewStats, UserSentence, Word, as_date, ensure_utc
from activevocab.monitoring import reviews_recorded
from activevocab.services.practice import SimilarityResult, compare_text_similarity

if TYPE_CHECKING:
    from activevocab.services.local_store import LocalStore

logger = logging.getLogger(__name__)


def start_of_day(day: date) -> datetime:
    """Midnight UTC of the given day."""
    return datetime.combine(day, time.min, tzinfo=UTC)


class ReviewService:
    """Decides which words are due and advances their review schedule."""

    def __init__(
        self,
        intervals: Optional[List[int]] = None,
        skip_reschedule_days: Optional[int] = None,
        first_review_days: Optional[int] = None,
    ):
        self.intervals = list(intervals or settings.review.intervals)
        self.skip_reschedule_days = (
            settings.review.skip_reschedule_days if skip_reschedule_days is None else skip_reschedule_days
        )
        self.first_review_days = (
            settings.review.first_review_days if first_review_days is None else first_review_days
        )

    @staticmethod
    def is_due(word: Word, today: date) -> bool:
        """Check whether a word is eligible for review on the given day.

        A word is due when it is learned, has at least one practice sentence,
        has a next review date, and that date (time of day ignored) is not
        after today. Words missing any of these are never due, even when
        they look overdue.
        """
        if not word.learned:
            return False
        if not word.user_sentences:
            return False
        if word.next_review_date is None:
            return False
        return as_date(ensure_utc(word.next_review_date)) <= today

    def due_words(self, words: Iterable[Word], today: date) -> List[Word]:
        """Active words due for review, earliest scheduled first."""
        due = [w for w in words if not w.deleted and self.is_due(w, today)]
        return sorted(due, key=lambda w: ensure_utc(w.next_review_date))

    def interval_for(self, review_count: int) -> int:
        index = min(max(review_count, 0), len(self.intervals) - 1)
        return self.intervals[index]

    def next_review_date(self, review_count: int, now: datetime) -> datetime:
        """Next review date after a successful review, at day granularity."""
        today = ensure_utc(now).date()
        return start_of_day(today + timedelta(days=self.interval_for(review_count)))

    def record_success(self, word: Word, now: datetime) -> Word:
        """Advance a word along the interval ladder.

        The new date is always at least one day after the previous one, so
        repeated successes on the same day (or at the top of the ladder)
        still move the review further out.
        """
        now = ensure_utc(now)
        next_date = self.next_review_date(word.review_count, now)
        if word.next_review_date is not None:
            floor = start_of_day(ensure_utc(word.next_review_date).date() + timedelta(days=1))
            next_date = max(next_date, floor)
        word.next_review_date = next_date
        word.review_count += 1
        stats = word.review_stats or ReviewStats()
        stats.retry_count = 0
        stats.skipped = False
        word.review_stats = stats
        word.last_practiced = now
        reviews_recorded.labels(outcome="success").inc()
        logger.debug(
            "Word %s reviewed (count=%s), next review %s",
            word.id,
            word.review_count,
            word.next_review_date.date(),
        )
        return word

    def record_retry(self, word: Word) -> Word:
        """Count a failed attempt. The schedule is left alone."""
        stats = word.review_stats or ReviewStats()
        stats.retry_count += 1
        word.review_stats = stats
        reviews_recorded.labels(outcome="retry").inc()
        return word

    def record_skip(self, word: Word, now: datetime) -> Word:
        """Skip a word and bring it back on the next calendar day."""
        now = ensure_utc(now)
        stats = word.review_stats or ReviewStats()
        stats.skipped = True
        word.review_stats = stats
        word.next_review_date = start_of_day(now.date() + timedelta(days=self.skip_reschedule_days))
        word.last_practiced = now
        reviews_recorded.labels(outcome="skip").inc()
        return word

    def mark_learned(self, word: Word, now: datetime) -> Word:
        """Mark a word learned and schedule its first review."""
        now = ensure_utc(now)
        word.learned = True
        word.review_count = 0
        word.last_practiced = now
        word.next_review_date = start_of_day(now.date() + timedelta(days=self.first_review_days))
        return word


SPEAKING = "speaking"
COMPARING = "comparing"


@dataclass
class ReviewSession:
    """Walks through the sentences of each due word.

    Every outcome goes through the store, which is the single writer of
    review statistics.
    """
    store: "LocalStore"
    queue: List[Word] = field(default_factory=list)
    word_index: Optional[int] = None
    sentence_index: int = 0
    step: str = SPEAKING
    retry_count: int = 0
    last_input: Optional[str] = None
    last_result: Optional[SimilarityResult] = None

    @property
    def is_active(self) -> bool:
        return self.word_index is not None

    @property
    def current_word(self) -> Optional[Word]:
        if self.word_index is None:
            return None
        return self.queue[self.word_index]

    @property
    def current_sentence(self) -> Optional[UserSentence]:
        word = self.current_word
        if word is None or not word.user_sentences:
            return None
        return word.user_sentences[self.sentence_index]

    def start(self, words: Optional[List[Word]] = None, today: Optional[date] = None) -> bool:
        """Start a session over the given words, or over today's due words."""
        if words is None:
            today = today or datetime.now(UTC).date()
            words = self.store.due_words(today)
        self.queue = list(words)
        self._reset_position(0 if self.queue else None)
        logger.info(f"Review session started with {len(self.queue)} words")
        return self.is_active

    def submit_attempt(self, text: str) -> SimilarityResult:
        """Compare an attempt with the current sentence; a miss counts as a retry."""
        sentence = self.current_sentence
        if sentence is None:
            raise RuntimeError("No active review sentence")
        result = compare_text_similarity(sentence.sentence, text)
        self.last_input = text
        self.last_result = result
        self.step = COMPARING
        if not result.is_correct:
            self.retry_count += 1
            self.store.record_review_retry(self.current_word.id)
        return result

    def retry(self) -> None:
        """Return to speaking the same sentence."""
        self.step = SPEAKING
        self.last_input = None
        self.last_result = None

    def next_sentence(self, now: Optional[datetime] = None) -> None:
        """Advance to the next sentence, completing the word after the last one."""
        word = self.current_word
        if word is None:
            return
        if self.sentence_index < len(word.user_sentences) - 1:
            self.sentence_index += 1
            self.retry()
            self.retry_count = 0
        else:
            self.complete_word(now)

    def complete_word(self, now: Optional[datetime] = None) -> None:
        word = self.current_word
        if word is None:
            return
        self.store.record_review_success(word.id, now)
        self._advance()

    def skip_word(self, now: Optional[datetime] = None) -> None:
        word = self.current_word
        if word is None:
            return
        self.store.record_review_skip(word.id, now)
        self._advance()

    def go_back(self) -> bool:
        """Step back one sentence, crossing into the previous word if needed."""
        if self.word_index is None:
            return False
        if self.sentence_index > 0:
            self.sentence_index -= 1
        elif self.word_index > 0:
            self.word_index -= 1
            previous = self.queue[self.word_index]
            self.sentence_index = max(len(previous.user_sentences), 1) - 1
        else:
            return False
        self.retry()
        self.retry_count = 0
        return True

    def exit(self) -> None:
        self.queue = []
        self._reset_position(None)

    def _advance(self) -> None:
        if self.word_index is not None and self.word_index < len(self.queue) - 1:
            self._reset_position(self.word_index + 1)
        else:
            logger.info("Review session complete")
            self.exit()

    def _reset_position(self, word_index: Optional[int]) -> None:
        self.word_index = word_index
        self.sentence_index = 0
        self.step = SPEAKING
        self.retry_count = 0
        self.last_input = None
        self.last_result = None
