"""Domain types held by the local store."""
import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Dict, List, Optional


def new_id() -> str:
    return str(uuid.uuid4())


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp, accepting the trailing 'Z' form."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


def as_date(value: Any) -> date:
    """Reduce a datetime (or ISO string) to its calendar day."""
    if isinstance(value, str):
        value = from_iso(value)
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass
class UserSentence:
    """A practice sentence written by the user, with its translation."""
    sentence: str
    translation: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sentence": self.sentence,
            "translation": self.translation,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSentence":
        created = data.get("created_at") or data.get("createdAt")
        return cls(
            sentence=data.get("sentence", ""),
            translation=data.get("translation", ""),
            created_at=from_iso(created) if created else datetime.now(UTC),
        )


@dataclass
class ReviewStats:
    """Outcome counters of the last review. Written only by the review flow."""
    retry_count: int = 0
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"retry_count": self.retry_count, "skipped": self.skipped}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ReviewStats"]:
        if not data:
            return None
        return cls(
            retry_count=int(data.get("retry_count", data.get("retryCount", 0)) or 0),
            skipped=bool(data.get("skipped", False)),
        )


@dataclass
class Word:
    """A vocabulary word with its practice sentences and review schedule."""
    text: str
    id: str = field(default_factory=new_id)
    phonetic: str = ""
    added_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    learned: bool = False
    user_sentences: List[UserSentence] = field(default_factory=list)
    review_stats: Optional[ReviewStats] = None
    next_review_date: Optional[datetime] = None
    review_count: int = 0
    last_practiced: Optional[datetime] = None
    deleted: bool = False
    deleted_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return not self.deleted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "phonetic": self.phonetic,
            "added_at": to_iso(self.added_at),
            "learned": self.learned,
            "user_sentences": [s.to_dict() for s in self.user_sentences],
            "review_stats": self.review_stats.to_dict() if self.review_stats else None,
            "next_review_date": to_iso(self.next_review_date),
            "review_count": self.review_count,
            "last_practiced": to_iso(self.last_practiced),
            "deleted": self.deleted,
            "deleted_at": to_iso(self.deleted_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Word":
        return cls(
            id=data["id"],
            text=data["text"],
            phonetic=data.get("phonetic") or "",
            added_at=from_iso(data.get("added_at")) or datetime.now(UTC),
            learned=bool(data.get("learned", False)),
            user_sentences=[UserSentence.from_dict(s) for s in data.get("user_sentences") or []],
            review_stats=ReviewStats.from_dict(data.get("review_stats")),
            next_review_date=from_iso(data.get("next_review_date")),
            review_count=int(data.get("review_count") or 0),
            last_practiced=from_iso(data.get("last_practiced")),
            deleted=bool(data.get("deleted", False)),
            deleted_at=from_iso(data.get("deleted_at")),
        )


@dataclass
class SavedContext:
    """A reusable context string ("today I am at the airport...")."""
    text: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "created_at": to_iso(self.created_at)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedContext":
        return cls(
            id=data["id"],
            text=data.get("text", ""),
            created_at=from_iso(data.get("created_at") or data.get("createdAt")) or datetime.now(UTC),
        )


@dataclass
class CheckInRecord:
    """Daily check-in: completed practice groups and the words involved."""
    date: str  # ISO day, YYYY-MM-DD
    groups_completed: int
    words_learned: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "groups_completed": self.groups_completed,
            "words_learned": list(self.words_learned),
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckInRecord":
        return cls(
            date=data["date"],
            groups_completed=int(data.get("groups_completed", data.get("groupsCompleted", 0)) or 0),
            words_learned=list(data.get("words_learned", data.get("wordsLearned", [])) or []),
            created_at=from_iso(data.get("created_at") or data.get("createdAt")) or datetime.now(UTC),
        )


@dataclass
class Profile:
    """User profile used to personalize generated content."""
    name: str = ""
    city: str = ""
    occupation: str = ""
    hobbies: str = ""
    frequent_places: str = ""
    saved_contexts: List[SavedContext] = field(default_factory=list)
    check_in_history: List[CheckInRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "city": self.city,
            "occupation": self.occupation,
            "hobbies": self.hobbies,
            "frequent_places": self.frequent_places,
            "saved_contexts": [c.to_dict() for c in self.saved_contexts],
            "check_in_history": [r.to_dict() for r in self.check_in_history],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Profile":
        data = data or {}
        return cls(
            name=data.get("name") or "",
            city=data.get("city") or "",
            occupation=data.get("occupation") or "",
            hobbies=data.get("hobbies") or "",
            frequent_places=data.get("frequent_places") or "",
            saved_contexts=[SavedContext.from_dict(c) for c in data.get("saved_contexts") or []],
            check_in_history=[CheckInRecord.from_dict(r) for r in data.get("check_in_history") or []],
        )


@dataclass
class TokenUsage:
    """Monotonically accumulated token counters and their derived cost."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: float = 0.0

    def add(self, input_tokens: int, output_tokens: int, input_price: float, output_price: float) -> None:
        """Accumulate counters; prices are dollars per million tokens."""
        self.input_tokens += max(0, input_tokens)
        self.output_tokens += max(0, output_tokens)
        self.total_cost = (
            self.input_tokens / 1_000_000 * input_price
            + self.output_tokens / 1_000_000 * output_price
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_cost": self.total_cost,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TokenUsage":
        data = data or {}
        return cls(
            input_tokens=int(data.get("input_tokens") or 0),
            output_tokens=int(data.get("output_tokens") or 0),
            total_cost=float(data.get("total_cost") or 0.0),
        )


@dataclass
class WordExplanation:
    """Generated explanation cached per word."""
    meaning: str
    example: str = ""
    example_translation: str = ""
    phonetic: str = ""
    tips: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meaning": self.meaning,
            "example": self.example,
            "example_translation": self.example_translation,
            "phonetic": self.phonetic,
            "tips": self.tips,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordExplanation":
        return cls(
            meaning=data.get("meaning") or data.get("definition") or "",
            example=data.get("example") or "",
            example_translation=data.get("example_translation") or data.get("exampleTranslation") or "",
            phonetic=data.get("phonetic") or "",
            tips=data.get("tips") or "",
        )


@dataclass
class SentenceTime:
    start: float
    end: float


@dataclass
class ReadingArticle:
    """A pasted article split into sentences for listening practice."""
    title: str
    content: str
    sentences: List[str]
    id: str = field(default_factory=new_id)
    sentence_times: Optional[List[SentenceTime]] = None
    created_at: int = 0  # epoch milliseconds
    last_played_at: Optional[int] = None
    audio_status: str = "pending"  # pending, generating, ready, error
    audio_blob_key: Optional[str] = None
    audio_duration: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "sentences": list(self.sentences),
            "sentence_times": (
                [{"start": t.start, "end": t.end} for t in self.sentence_times]
                if self.sentence_times is not None else None
            ),
            "created_at": self.created_at,
            "last_played_at": self.last_played_at,
            "audio_status": self.audio_status,
            "audio_blob_key": self.audio_blob_key,
            "audio_duration": self.audio_duration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReadingArticle":
        times = data.get("sentence_times")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            sentences=list(data.get("sentences") or []),
            sentence_times=[SentenceTime(t["start"], t["end"]) for t in times] if times is not None else None,
            created_at=int(data.get("created_at") or 0),
            last_played_at=data.get("last_played_at"),
            audio_status=data.get("audio_status") or "pending",
            audio_blob_key=data.get("audio_blob_key"),
            audio_duration=data.get("audio_duration"),
        )
