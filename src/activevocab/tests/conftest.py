"""Test configuration."""
import os
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"
TEST_DATA_DIR = tempfile.mkdtemp(prefix="activevocab-test-")
os.environ["DATA_DIR"] = TEST_DATA_DIR
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUDIO_CACHE_URL"] = "sqlite://"
os.environ["LOCAL_STORE_FILE"] = str(Path(TEST_DATA_DIR) / "store.json")
os.environ["AUTO_SYNC"] = "false"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from activevocab.config import ensure_directories  # noqa: E402
from activevocab.models.base import Base, engine, init_db  # noqa: E402
from activevocab.models.entities import UserSentence, Word  # noqa: E402
from activevocab.services.local_store import LocalStore  # noqa: E402

FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=UTC)


@dataclass
class FakeClock:
    """Manually advanced clock."""
    now: datetime = FIXED_NOW

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture(autouse=True)
def setup_database():
    """Recreate the remote schema for each test."""
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> LocalStore:
    """Create an empty local store on the fake clock."""
    return LocalStore(clock=clock)


@pytest.fixture
def make_word() -> Callable[..., Word]:
    """Factory for words in a chosen review state."""

    def _make(
        text: str = "serendipity",
        learned: bool = True,
        sentences: int = 1,
        next_review_date: Optional[datetime] = FIXED_NOW,
        review_count: int = 0,
        deleted: bool = False,
    ) -> Word:
        return Word(
            text=text,
            added_at=FIXED_NOW - timedelta(days=10),
            learned=learned,
            user_sentences=[
                UserSentence(
                    sentence=f"I found {text} in sentence number {i}.",
                    translation=f"我在第{i}个句子里找到了它。",
                    created_at=FIXED_NOW - timedelta(days=9),
                )
                for i in range(sentences)
            ],
            next_review_date=next_review_date,
            review_count=review_count,
            deleted=deleted,
        )

    return _make
