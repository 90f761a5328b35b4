"""Bounded local cache of synthesized audio."""
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from activevocab.config import settings
from activevocab.exceptions import CacheError
from activevocab.models.base import create_session_factory
from activevocab.models.cache import AudioBlob
from activevocab.monitoring import cache_bytes, cache_evictions

logger = logging.getLogger(__name__)


@dataclass
class CachedAudio:
    key: str
    data: bytes
    content_type: str


class AudioCache:
    """Blob cache with a byte budget.

    When a write would exceed the budget, entries are evicted oldest-created
    first until the new entry fits. Reads refresh ``last_accessed_at``, which
    eviction does not consult.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        max_bytes: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory or create_session_factory(settings.cache.url)
        self.max_bytes = max_bytes or settings.cache.max_storage_bytes
        self.clock = clock or (lambda: datetime.now(UTC))

    def save_audio(self, key: str, data: bytes, content_type: str = "audio/mpeg") -> List[str]:
        """Store a blob, evicting old entries first if needed.

        Returns the keys that were evicted.
        """
        size = len(data)
        now = self.clock()
        db = self.session_factory()
        try:
            # Replacing a key frees its old bytes first
            db.query(AudioBlob).filter(AudioBlob.key == key).delete(synchronize_session=False)

            evicted = self._evict_for(db, size)
            db.add(
                AudioBlob(
                    key=key,
                    data=data,
                    content_type=content_type,
                    size=size,
                    created_at=now,
                    last_accessed_at=now,
                )
            )
            db.commit()
            total = self._total(db)
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError(f"Failed to cache audio: {e}", cache_key=key, operation="save") from e
        finally:
            db.close()

        cache_bytes.set(total)
        logger.info(f"Audio cached: {key} ({size / 1024:.2f} KB)")
        return evicted

    def _evict_for(self, db, incoming: int) -> List[str]:
        current = self._total(db)
        needed = current + incoming - self.max_bytes
        if needed <= 0:
            return []

        if incoming > self.max_bytes:
            logger.warning(
                f"Audio entry of {incoming} bytes exceeds the cache budget of {self.max_bytes} bytes"
            )
        logger.info(f"Audio cache limit reached ({current / 1024 / 1024:.2f} MB), cleaning up")

        evicted = []
        freed = 0
        oldest_first = (
            db.query(AudioBlob.key, AudioBlob.size)
            .order_by(AudioBlob.created_at.asc(), AudioBlob.key.asc())
            .all()
        )
        for entry_key, entry_size in oldest_first:
            if freed >= needed:
                break
            freed += entry_size
            evicted.append(entry_key)
            logger.debug(f"Evicted cached audio: {entry_key} ({entry_size / 1024:.2f} KB)")
        if evicted:
            db.query(AudioBlob).filter(AudioBlob.key.in_(evicted)).delete(synchronize_session=False)
        cache_evictions.inc(len(evicted))
        logger.info(f"Cleanup complete, freed {freed / 1024:.2f} KB")
        return evicted

    @staticmethod
    def _total(db) -> int:
        return db.query(func.coalesce(func.sum(AudioBlob.size), 0)).scalar() or 0

    def get_entry(self, key: str) -> Optional[CachedAudio]:
        """Fetch a cached entry and refresh its access time."""
        db = self.session_factory()
        try:
            entry = db.get(AudioBlob, key)
            if entry is None:
                logger.debug(f"Audio not found in cache: {key}")
                return None
            entry.last_accessed_at = self.clock()
            db.commit()
            return CachedAudio(key=entry.key, data=entry.data, content_type=entry.content_type)
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError(f"Failed to read cached audio: {e}", cache_key=key, operation="get") from e
        finally:
            db.close()

    def get_audio(self, key: str) -> Optional[bytes]:
        entry = self.get_entry(key)
        return entry.data if entry else None

    def delete_audio(self, key: str) -> bool:
        db = self.session_factory()
        try:
            entry = db.get(AudioBlob, key)
            if entry is None:
                return False
            db.delete(entry)
            db.commit()
            cache_bytes.set(self._total(db))
            return True
        finally:
            db.close()

    def total_size(self) -> int:
        db = self.session_factory()
        try:
            return self._total(db)
        finally:
            db.close()

    def keys(self) -> List[str]:
        """Cached keys, oldest first."""
        db = self.session_factory()
        try:
            rows = db.query(AudioBlob.key).order_by(AudioBlob.created_at.asc(), AudioBlob.key.asc()).all()
            return [row.key for row in rows]
        finally:
            db.close()

    def clear_all(self) -> None:
        db = self.session_factory()
        try:
            db.query(AudioBlob).delete()
            db.commit()
        finally:
            db.close()
        cache_bytes.set(0)
        logger.info("Audio cache cleared")
