"""Configuration settings for ActiveVocab."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
CACHE_DIR = DATA_DIR / "cache"
BACKUPS_DIR = DATA_DIR / "backups"

# Review settings
REVIEW_INTERVALS = [1, 3, 7, 14, 30]  # days between reviews, indexed by review count
SKIP_RESCHEDULE_DAYS = 1

# Fallback strings substituted when generated translations stay invalid
TRANSLATION_FALLBACK = "（翻译失败，请重试）"
EXPLANATION_TRANSLATION_FALLBACK = "（翻译生成失败，请重试）"
CACHED_TRANSLATION_FALLBACK = "（翻译失败，请重新生成）"


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        CACHE_DIR,
        BACKUPS_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    cache_dir: Path = CACHE_DIR
    backups_dir: Path = BACKUPS_DIR
    local_store_file: Path = Path(os.getenv("LOCAL_STORE_FILE", str(DATA_DIR / "active-vocab-storage.json")))


@dataclass
class DatabaseSettings:
    """Remote store configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///activevocab.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class ReviewSettings:
    """Spaced review settings."""
    intervals: list[int] = field(default_factory=lambda: list(REVIEW_INTERVALS))
    skip_reschedule_days: int = SKIP_RESCHEDULE_DAYS
    first_review_days: int = int(os.getenv("FIRST_REVIEW_DAYS", "1"))


@dataclass
class GenerationSettings:
    """Remote generation service settings."""
    url: str = os.getenv("GENERATION_API_URL", "")
    api_key: str = os.getenv("GENERATION_API_KEY", "")
    timeout: float = float(os.getenv("GENERATION_TIMEOUT", "30"))
    max_retries: int = int(os.getenv("GENERATION_MAX_RETRIES", "2"))
    retry_delay: float = float(os.getenv("GENERATION_RETRY_DELAY", "0.5"))
    sentences_per_word: int = 3
    max_sentence_words: int = 12


@dataclass
class SpeechSettings:
    """Speech-to-text and text-to-speech settings."""
    stt_url: str = os.getenv("STT_API_URL", "")
    tts_url: str = os.getenv("TTS_API_URL", "")
    api_key: str = os.getenv("SPEECH_API_KEY", "")
    timeout: float = float(os.getenv("SPEECH_TIMEOUT", "60"))
    default_voice: str = os.getenv("TTS_VOICE", "en-US-AvaMultilingualNeural")
    fallback_lang: str = os.getenv("TTS_FALLBACK_LANG", "en")
    max_text_length: int = 1000


@dataclass
class DictionarySettings:
    """Dictionary lookup settings."""
    url: str = os.getenv("DICTIONARY_API_URL", "https://api.dictionaryapi.dev/api/v2/entries/en")
    timeout: float = float(os.getenv("DICTIONARY_TIMEOUT", "10"))


@dataclass
class CacheSettings:
    """Local audio cache settings."""
    url: str = os.getenv("AUDIO_CACHE_URL", f"sqlite:///{CACHE_DIR / 'audio_cache.db'}")
    max_storage_mb: float = float(os.getenv("AUDIO_CACHE_MAX_MB", "50"))

    @property
    def max_storage_bytes(self) -> int:
        return int(self.max_storage_mb * 1024 * 1024)


@dataclass
class SyncSettings:
    """Cloud synchronization settings."""
    auto_sync: bool = os.getenv("AUTO_SYNC", "true").lower() == "true"
    debounce_seconds: float = float(os.getenv("SYNC_DEBOUNCE_SECONDS", "0.1"))
    user_id: Optional[str] = os.getenv("ACTIVEVOCAB_USER_ID") or None


@dataclass
class MonitoringSettings:
    """Metrics exporter settings."""
    metrics_port: Optional[int] = int(os.getenv("METRICS_PORT")) if os.getenv("METRICS_PORT") else None


@dataclass
class PricingSettings:
    """Token pricing, in dollars per million tokens."""
    input_per_million: float = float(os.getenv("PRICE_INPUT_PER_MILLION", "0.80"))
    output_per_million: float = float(os.getenv("PRICE_OUTPUT_PER_MILLION", "4.00"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_review_settings() -> ReviewSettings:
    """Get review settings."""
    return ReviewSettings()


def get_generation_settings() -> GenerationSettings:
    """Get generation settings."""
    return GenerationSettings()


def get_speech_settings() -> SpeechSettings:
    """Get speech settings."""
    return SpeechSettings()


def get_dictionary_settings() -> DictionarySettings:
    """Get dictionary settings."""
    return DictionarySettings()


def get_cache_settings() -> CacheSettings:
    """Get cache settings."""
    return CacheSettings()


def get_sync_settings() -> SyncSettings:
    """Get sync settings."""
    return SyncSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


def get_pricing_settings() -> PricingSettings:
    """Get pricing settings."""
    return PricingSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    review: ReviewSettings = field(default_factory=get_review_settings)
    generation: GenerationSettings = field(default_factory=get_generation_settings)
    speech: SpeechSettings = field(default_factory=get_speech_settings)
    dictionary: DictionarySettings = field(default_factory=get_dictionary_settings)
    cache: CacheSettings = field(default_factory=get_cache_settings)
    sync: SyncSettings = field(default_factory=get_sync_settings)
    pricing: PricingSettings = field(default_factory=get_pricing_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if not self.review.intervals:
            raise ValueError("Review intervals must not be empty")

        if any(days < 1 for days in self.review.intervals):
            raise ValueError("Review intervals must be positive")

        if self.review.first_review_days < 1:
            raise ValueError("FIRST_REVIEW_DAYS must be positive")

        if self.generation.max_retries < 0:
            raise ValueError("GENERATION_MAX_RETRIES cannot be negative")

        if self.generation.retry_delay < 0:
            raise ValueError("GENERATION_RETRY_DELAY cannot be negative")

        if self.cache.max_storage_mb <= 0:
            raise ValueError("AUDIO_CACHE_MAX_MB must be positive")

        if self.sync.debounce_seconds < 0:
            raise ValueError("SYNC_DEBOUNCE_SECONDS cannot be negative")


# Create global settings instance
settings = Settings()
settings.validate()
