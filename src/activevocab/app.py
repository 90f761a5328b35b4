"""Application wiring."""
import logging
from datetime import UTC, datetime
from typing import Optional

from activevocab.clients.dictionary_client import DictionaryClient
from activevocab.clients.generation_client import GenerationClient
from activevocab.clients.speech_client import SpeechClient
from activevocab.config import ensure_directories, settings
from activevocab.exceptions import ConfigurationError, ValidationError
from activevocab.models.base import init_db
from activevocab.monitoring import start_monitoring
from activevocab.services.audio_cache import AudioCache
from activevocab.services.auth_service import AuthService
from activevocab.services.auto_sync import AutoSyncService
from activevocab.services.local_store import LocalStore
from activevocab.services.persistence import PersistenceService
from activevocab.services.profile_service import ProfileService
from activevocab.services.reading_service import ReadingService
from activevocab.services.remote_store import RemoteStore
from activevocab.services.review_service import ReviewSession
from activevocab.services.sync_service import SyncService
from activevocab.services.word_service import WordService


class ActiveVocabApp:
    """Main application class."""

    def __init__(
        self,
        store: Optional[LocalStore] = None,
        remote: Optional[RemoteStore] = None,
        auth: Optional[AuthService] = None,
        audio_cache: Optional[AudioCache] = None,
        persistence: Optional[PersistenceService] = None,
    ):
        """Initialize the application."""
        self.logger = logging.getLogger(__name__)
        self.store = store or LocalStore()
        self.persistence = persistence or PersistenceService(self.store)
        self.auth = auth or AuthService()
        self.remote = remote or RemoteStore()
        self.sync = SyncService(self.store, self.remote, self.auth)
        self.auto_sync = AutoSyncService(self.store, self.sync)
        self.audio_cache = audio_cache
        self.dictionary: Optional[DictionaryClient] = None
        self.speech: Optional[SpeechClient] = None
        self.generation: Optional[GenerationClient] = None
        self.words = WordService(self.store)
        self.profiles = ProfileService(self.store)
        self.reading = ReadingService(self.store)
        self.review_session = ReviewSession(self.store)
        self.running = False

    async def start(self) -> None:
        """Start the application."""
        if self.running:
            return

        try:
            ensure_directories()
            init_db()
            self.logger.info("Remote store initialized")

            if self.audio_cache is None:
                self.audio_cache = AudioCache()
            self.dictionary = DictionaryClient()
            self.speech = SpeechClient(cache=self.audio_cache)
            try:
                self.generation = GenerationClient(store=self.store)
            except ConfigurationError as e:
                self.logger.warning("Generation disabled: %s", e.message)
            self.words.dictionary = self.dictionary
            self.reading.speech = self.speech

            try:
                self.persistence.load()
            except ValidationError as e:
                self.logger.error("Ignoring unreadable local snapshot: %s", e.message)

            if settings.sync.auto_sync:
                await self.auto_sync.start()

            if settings.monitoring.metrics_port:
                start_monitoring(settings.monitoring.metrics_port)
                self.logger.info("Metrics exported on port %s", settings.monitoring.metrics_port)

            self.running = True
            self.logger.info("Application started")

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            await self.stop(force=True)
            raise

    async def stop(self, force: bool = False) -> None:
        """Stop the application, saving the local snapshot."""
        if not self.running and not force:
            return

        try:
            await self.auto_sync.stop()
            if self.running:
                self.persistence.save()
                self.logger.info("Local snapshot saved")
            for client in (self.dictionary, self.speech, self.generation):
                if client is not None:
                    await client.close()
            self.logger.info("Application stopped")
        finally:
            self.running = False

    def due_today(self):
        """Words due for review today."""
        return self.store.due_words(datetime.now(UTC).date())
