"""Upsert and fetch operations against the remote relational store."""
import json
import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from activevocab.exceptions import SyncError
from activevocab.models.base import SessionLocal
from activevocab.models.entities import (
    CheckInRecord,
    Profile,
    ReadingArticle,
    ReviewStats,
    SavedContext,
    SentenceTime,
    TokenUsage,
    UserSentence,
    Word,
    WordExplanation,
    ensure_utc,
)
from activevocab.models.remote import (
    ProfileRow,
    ReadingArticleRow,
    TokenUsageRow,
    WordExplanationRow,
    WordRow,
)

logger = logging.getLogger(__name__)


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _loads(value: Optional[str], default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring malformed JSON column value: {value!r}")
        return default


def _ms_to_datetime(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _datetime_to_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return int(round(ensure_utc(value).timestamp() * 1000))


def word_from_row(row: WordRow) -> Word:
    """Convert a remote word row, reading legacy sentence columns when needed."""
    sentences = [UserSentence.from_dict(s) for s in _loads(row.user_sentences, [])]
    if not sentences and row.user_sentence:
        sentences = [
            UserSentence(
                sentence=row.user_sentence,
                translation=row.user_sentence_translation or "",
                created_at=ensure_utc(row.added_at or row.created_at) or datetime.now(UTC),
            )
        ]
    return Word(
        id=row.id,
        text=row.text,
        phonetic=row.phonetic or "",
        added_at=ensure_utc(row.added_at or row.created_at) or datetime.now(UTC),
        learned=bool(row.learned),
        user_sentences=sentences,
        review_stats=ReviewStats.from_dict(_loads(row.review_stats, None)),
        next_review_date=ensure_utc(row.next_review_date),
        review_count=row.review_count or 0,
        last_practiced=ensure_utc(row.last_practiced),
        deleted=bool(row.deleted),
        deleted_at=ensure_utc(row.deleted_at),
    )


def article_from_row(row: ReadingArticleRow) -> ReadingArticle:
    times = _loads(row.sentence_times, None)
    return ReadingArticle(
        id=row.id,
        title=row.title,
        content=row.content,
        sentences=_loads(row.sentences, []),
        sentence_times=[SentenceTime(t["start"], t["end"]) for t in times] if times is not None else None,
        created_at=_datetime_to_ms(row.article_created_at) or 0,
        last_played_at=_datetime_to_ms(row.last_played_at),
        audio_status=row.audio_status or "pending",
        audio_blob_key=row.audio_blob_key,
        audio_duration=row.audio_duration,
    )


class RemoteStore:
    """Row-level access to the remote store, scoped by user id.

    Every write is an upsert keyed on the table's natural key; nothing on
    this path deletes rows.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    @contextmanager
    def _session(self, table: str) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Remote store error on {table}: {e}")
            raise SyncError(f"Remote store error on {table}: {e}", table=table) from e
        finally:
            db.close()

    # Profiles

    def upsert_profile(self, user_id: str, profile: Profile) -> None:
        with self._session("profiles") as db:
            row = db.query(ProfileRow).filter(ProfileRow.user_id == user_id).first()
            if row is None:
                row = ProfileRow(user_id=user_id)
                db.add(row)
            row.name = profile.name
            row.city = profile.city
            row.occupation = profile.occupation
            row.hobbies = profile.hobbies
            row.frequent_places = profile.frequent_places
            row.saved_contexts = _dumps([c.to_dict() for c in profile.saved_contexts])
            row.check_in_history = _dumps([r.to_dict() for r in profile.check_in_history])

    def fetch_profile(self, user_id: str) -> Optional[Profile]:
        with self._session("profiles") as db:
            row = db.query(ProfileRow).filter(ProfileRow.user_id == user_id).first()
            if row is None:
                return None
            return Profile(
                name=row.name or "",
                city=row.city or "",
                occupation=row.occupation or "",
                hobbies=row.hobbies or "",
                frequent_places=row.frequent_places or "",
                saved_contexts=[SavedContext.from_dict(c) for c in _loads(row.saved_contexts, [])],
                check_in_history=[CheckInRecord.from_dict(r) for r in _loads(row.check_in_history, [])],
            )

    # Words

    def upsert_words(self, user_id: str, words: List[Word]) -> int:
        """Insert or overwrite word rows by id. Returns the number written."""
        if not words:
            return 0
        written = 0
        with self._session("words") as db:
            ids = [w.id for w in words]
            existing = {row.id: row for row in db.query(WordRow).filter(WordRow.id.in_(ids)).all()}
            for word in words:
                row = existing.get(word.id)
                if row is None:
                    row = WordRow(id=word.id, user_id=user_id)
                    db.add(row)
                elif row.user_id != user_id:
                    logger.warning(f"Word {word.id} belongs to another user, skipping")
                    continue
                row.text = word.text
                row.phonetic = word.phonetic or None
                row.added_at = word.added_at
                row.learned = word.learned
                row.user_sentences = _dumps([s.to_dict() for s in word.user_sentences])
                row.review_stats = _dumps(word.review_stats.to_dict()) if word.review_stats else None
                row.next_review_date = word.next_review_date
                row.review_count = word.review_count
                row.last_practiced = word.last_practiced
                row.deleted = word.deleted
                row.deleted_at = word.deleted_at
                written += 1
        return written

    def fetch_words(self, user_id: str) -> List[Word]:
        """All of a user's words, soft-deleted ones included, oldest first."""
        with self._session("words") as db:
            rows = (
                db.query(WordRow)
                .filter(WordRow.user_id == user_id)
                .order_by(WordRow.added_at.asc())
                .all()
            )
            return [word_from_row(row) for row in rows]

    # Explanations

    def upsert_explanations(self, user_id: str, explanations: Dict[str, WordExplanation]) -> int:
        if not explanations:
            return 0
        with self._session("word_explanations") as db:
            existing = {
                row.word_id: row
                for row in db.query(WordExplanationRow)
                .filter(
                    WordExplanationRow.user_id == user_id,
                    WordExplanationRow.word_id.in_(list(explanations)),
                )
                .all()
            }
            for word_id, explanation in explanations.items():
                row = existing.get(word_id)
                if row is None:
                    row = WordExplanationRow(user_id=user_id, word_id=word_id)
                    db.add(row)
                row.definition = explanation.meaning
                row.example = explanation.example or ""
                row.example_translation = explanation.example_translation or ""
                row.tips = explanation.tips or explanation.phonetic or ""
        return len(explanations)

    def fetch_explanations(self, user_id: str) -> Dict[str, WordExplanation]:
        with self._session("word_explanations") as db:
            rows = db.query(WordExplanationRow).filter(WordExplanationRow.user_id == user_id).all()
            return {
                row.word_id: WordExplanation(
                    meaning=row.definition,
                    example=row.example or "",
                    example_translation=row.example_translation or "",
                    tips=row.tips or "",
                )
                for row in rows
            }

    # Token usage

    def upsert_token_usage(self, user_id: str, usage: TokenUsage) -> None:
        with self._session("token_usage") as db:
            row = db.query(TokenUsageRow).filter(TokenUsageRow.user_id == user_id).first()
            if row is None:
                row = TokenUsageRow(user_id=user_id)
                db.add(row)
            row.input_tokens = usage.input_tokens
            row.output_tokens = usage.output_tokens
            row.total_cost = usage.total_cost

    def fetch_token_usage(self, user_id: str) -> Optional[TokenUsage]:
        with self._session("token_usage") as db:
            row = db.query(TokenUsageRow).filter(TokenUsageRow.user_id == user_id).first()
            if row is None:
                return None
            return TokenUsage(
                input_tokens=row.input_tokens or 0,
                output_tokens=row.output_tokens or 0,
                total_cost=row.total_cost or 0.0,
            )

    # Reading articles

    def upsert_articles(self, user_id: str, articles: List[ReadingArticle]) -> int:
        if not articles:
            return 0
        written = 0
        with self._session("reading_articles") as db:
            ids = [a.id for a in articles]
            existing = {
                row.id: row
                for row in db.query(ReadingArticleRow).filter(ReadingArticleRow.id.in_(ids)).all()
            }
            for article in articles:
                row = existing.get(article.id)
                if row is None:
                    row = ReadingArticleRow(id=article.id, user_id=user_id)
                    db.add(row)
                elif row.user_id != user_id:
                    logger.warning(f"Article {article.id} belongs to another user, skipping")
                    continue
                row.title = article.title
                row.content = article.content
                row.sentences = _dumps(article.sentences)
                row.article_created_at = _ms_to_datetime(article.created_at)
                row.last_played_at = _ms_to_datetime(article.last_played_at)
                row.audio_status = article.audio_status
                row.audio_blob_key = article.audio_blob_key
                row.audio_duration = article.audio_duration
                row.sentence_times = (
                    _dumps([{"start": t.start, "end": t.end} for t in article.sentence_times])
                    if article.sentence_times is not None else None
                )
                written += 1
        return written

    def fetch_articles(self, user_id: str) -> List[ReadingArticle]:
        """A user's articles, most recent first."""
        with self._session("reading_articles") as db:
            rows = (
                db.query(ReadingArticleRow)
                .filter(ReadingArticleRow.user_id == user_id)
                .order_by(ReadingArticleRow.article_created_at.desc())
                .all()
            )
            return [article_from_row(row) for row in rows]
