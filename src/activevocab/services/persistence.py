"""On-disk snapshot of the local store and JSON backups."""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from activevocab.config import settings
from activevocab.exceptions import ValidationError
from activevocab.services.local_store import CACHE, LocalStore
from activevocab.services.validation import clean_explanations

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1


def dump_envelope(snapshot: Dict[str, Any]) -> str:
    """Serialize a snapshot deterministically."""
    return json.dumps(
        {"state": snapshot, "version": BACKUP_VERSION},
        sort_keys=True,
        ensure_ascii=False,
        indent=2,
    )


def parse_envelope(text: str) -> Dict[str, Any]:
    """Parse backup text and return its state, rejecting unknown formats."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError("Backup is not valid JSON", field="backup", details={"error": str(e)}) from e
    if not isinstance(data, dict):
        raise ValidationError("Invalid backup format", field="backup")
    state = data.get("state")
    if not isinstance(state, dict) or not state.get("profile"):
        raise ValidationError("Invalid backup format: missing state.profile", field="state.profile")
    return state


class PersistenceService:
    """Keeps the local store cached in a JSON file."""

    def __init__(self, store: LocalStore, path: Optional[Path] = None):
        self.store = store
        self.path = Path(path or settings.paths.local_store_file)

    def save(self) -> None:
        """Write the current snapshot to disk, replacing the previous file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(self.export_backup(), encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved local snapshot to {self.path}")

    def load(self) -> bool:
        """Restore the store from disk. Returns False when nothing is cached."""
        if not self.path.exists():
            logger.info(f"No local snapshot at {self.path}")
            return False
        state = parse_envelope(self.path.read_text(encoding="utf-8"))
        self.store.restore(state, origin=CACHE)
        clean_explanations(self.store.explanations)
        logger.info(f"Loaded {len(self.store.words)} words from local snapshot")
        return True

    def export_backup(self) -> str:
        """Return the whole local state as JSON text."""
        return dump_envelope(self.store.snapshot())

    def import_backup(self, text: str) -> None:
        """Replace local state with a backup produced by ``export_backup``."""
        state = parse_envelope(text)
        self.store.restore(state)
        self.save()
        logger.info(f"Imported backup with {len(self.store.words)} words")

    def clear_translation_cache(self) -> int:
        """Drop cached explanations, keeping progress and profile."""
        count = len(self.store.explanations)
        self.store.clear_explanations()
        self.save()
        return count

    def clear_all_data(self) -> None:
        """Reset local state and remove the snapshot file."""
        self.store.reset()
        if self.path.exists():
            self.path.unlink()
        logger.warning("All local data cleared")
