"""Database models for the remote relational store."""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from activevocab.models.base import Base, TimestampMixin


class ProfileRow(Base, TimestampMixin):
    """User profile, one row per user."""

    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, default="")
    city = Column(String, default="")
    occupation = Column(String, default="")
    hobbies = Column(String, default="")
    frequent_places = Column(String, default="")
    saved_contexts = Column(Text, default="[]")  # JSON list of SavedContext
    check_in_history = Column(Text, default="[]")  # JSON list of CheckInRecord


class WordRow(Base, TimestampMixin):
    """Vocabulary word, keyed by the client-generated word id."""

    __tablename__ = "words"
    __table_args__ = (
        Index("idx_words_learned", "user_id", "learned"),
        Index("idx_words_deleted", "user_id", "deleted"),
        Index("idx_words_next_review", "user_id", "next_review_date"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    text = Column(String, nullable=False)
    phonetic = Column(String, nullable=True)
    added_at = Column(DateTime(timezone=True), nullable=True)
    learned = Column(Boolean, default=False)
    user_sentence = Column(Text, nullable=True)  # legacy single sentence
    user_sentence_translation = Column(Text, nullable=True)  # legacy
    user_sentences = Column(Text, nullable=True)  # JSON list of UserSentence
    review_stats = Column(Text, nullable=True)  # JSON ReviewStats
    next_review_date = Column(DateTime(timezone=True), nullable=True)
    review_count = Column(Integer, default=0)
    last_practiced = Column(DateTime(timezone=True), nullable=True)
    deleted = Column(Boolean, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class WordExplanationRow(Base, TimestampMixin):
    """Cached generated explanation for a word."""

    __tablename__ = "word_explanations"
    __table_args__ = (UniqueConstraint("user_id", "word_id", name="uq_word_explanations_user_word"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    word_id = Column(String, nullable=False)
    definition = Column(Text, nullable=False)
    example = Column(Text, nullable=False, default="")
    example_translation = Column(Text, nullable=False, default="")
    tips = Column(Text, nullable=False, default="")


class TokenUsageRow(Base, TimestampMixin):
    """Accumulated token counters, one row per user."""

    __tablename__ = "token_usage"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, unique=True, nullable=False, index=True)
    input_tokens = Column(Integer, default=0)
    output_tokens = Column(Integer, default=0)
    total_cost = Column(Float, default=0.0)


class ReadingArticleRow(Base, TimestampMixin):
    """Reading article with its sentence split and audio metadata."""

    __tablename__ = "reading_articles"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    sentences = Column(Text, nullable=False)  # JSON list of strings
    article_created_at = Column(DateTime(timezone=True), nullable=False)
    last_played_at = Column(DateTime(timezone=True), nullable=True)
    audio_status = Column(String, nullable=False, default="pending")
    audio_blob_key = Column(String, nullable=True)
    audio_duration = Column(Float, nullable=True)
    sentence_times = Column(Text, nullable=True)  # JSON list of {start, end}
