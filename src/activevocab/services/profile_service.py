"""Profile service for contexts and daily check-ins."""
import logging
from datetime import UTC, date, datetime, timedelta
from typing import Iterable, List, Optional

from activevocab.models.entities import CheckInRecord, SavedContext
from activevocab.services.local_store import LocalStore

logger = logging.getLogger(__name__)

MAKEUP_WINDOW_DAYS = 7


def _iso(day: date) -> str:
    return day.isoformat()


class ProfileService:
    """Service for managing profile contexts and the check-in calendar."""

    def __init__(self, store: LocalStore):
        """Initialize the service with the local store."""
        self.store = store

    def _today(self) -> date:
        return self.store.clock().astimezone(UTC).date()

    def add_context(self, text: str) -> Optional[SavedContext]:
        """Save a context string, ignoring blanks."""
        text = text.strip()
        if not text:
            return None
        return self.store.add_saved_context(text)

    def remove_context(self, context_id: str) -> None:
        self.store.remove_saved_context(context_id)

    def add_check_in(self, day: str, groups_completed: int, word_ids: Iterable[str]) -> CheckInRecord:
        """Record practice groups for a day.

        A second check-in on the same day replaces the group count and merges
        the word ids, keeping their first-seen order.
        """
        existing = self.get_check_in_record(day)
        if existing is not None:
            merged = list(dict.fromkeys([*existing.words_learned, *word_ids]))
            record = CheckInRecord(
                date=day,
                groups_completed=groups_completed,
                words_learned=merged,
                created_at=existing.created_at,
            )
        else:
            record = CheckInRecord(
                date=day,
                groups_completed=groups_completed,
                words_learned=list(dict.fromkeys(word_ids)),
                created_at=self.store.clock(),
            )
        self.store.put_check_in(record)
        return record

    def get_check_in_record(self, day: str) -> Optional[CheckInRecord]:
        return next((r for r in self.store.profile.check_in_history if r.date == day), None)

    def total_check_in_days(self) -> int:
        """Number of days with at least one completed group."""
        return sum(1 for r in self.store.profile.check_in_history if r.groups_completed > 0)

    def recent_check_ins(self, days: int, today: Optional[date] = None) -> List[CheckInRecord]:
        """Records from the last ``days`` days, newest first."""
        today = today or self._today()
        cutoff = today - timedelta(days=days)
        records = [
            r for r in self.store.profile.check_in_history
            if cutoff <= date.fromisoformat(r.date) <= today
        ]
        return sorted(records, key=lambda r: r.date, reverse=True)

    def makeup_eligible_dates(self, today: Optional[date] = None) -> List[str]:
        """Days in the past week without a completed group, newest first."""
        today = today or self._today()
        eligible = []
        for offset in range(1, MAKEUP_WINDOW_DAYS + 1):
            day = _iso(today - timedelta(days=offset))
            record = self.get_check_in_record(day)
            if record is None or record.groups_completed == 0:
                eligible.append(day)
        return eligible

    def makeup_check_in(self, target: str, today: Optional[date] = None) -> bool:
        """Move one completed group from today to a missed day.

        Today needs at least two groups so that it stays checked in.
        """
        today_key = _iso(today or self._today())
        today_record = self.get_check_in_record(today_key)
        if today_record is None or today_record.groups_completed < 2:
            logger.info(f"No spare groups today to make up {target}")
            return False

        word_ids = list(today_record.words_learned)
        self.add_check_in(today_key, today_record.groups_completed - 1, word_ids)
        target_record = self.get_check_in_record(target)
        target_groups = target_record.groups_completed if target_record else 0
        self.add_check_in(target, target_groups + 1, word_ids)
        logger.info(f"Made up check-in for {target}")
        return True
