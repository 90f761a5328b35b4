"""Device-local tables for cached audio."""
from sqlalchemy import Column, DateTime, Integer, LargeBinary, String

from activevocab.models.base import LocalBase


class AudioBlob(LocalBase):
    """Cached synthesized audio, keyed by article id or text hash."""

    __tablename__ = "audio_blobs"

    key = Column(String, primary_key=True)
    data = Column(LargeBinary, nullable=False)
    content_type = Column(String, nullable=False, default="audio/mpeg")
    size = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    last_accessed_at = Column(DateTime(timezone=True), nullable=False, index=True)
