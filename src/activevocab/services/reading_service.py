"""Reading articles for listening practice."""
import logging
import re
from typing import List, Optional

from activevocab.exceptions import ActiveVocabError
from activevocab.models.entities import ReadingArticle, SentenceTime
from activevocab.services.local_store import LocalStore

logger = logging.getLogger(__name__)

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
SECONDS_PER_CHARACTER = 0.05
PAUSE_SECONDS = 0.3


def split_sentences(content: str) -> List[str]:
    return [s.strip() for s in SENTENCE_BOUNDARY.split(content) if s.strip()]


def estimate_sentence_times(sentences: List[str]) -> List[SentenceTime]:
    """Approximate playback offsets from sentence length."""
    times = []
    current = 0.0
    for sentence in sentences:
        duration = len(sentence) * SECONDS_PER_CHARACTER
        times.append(SentenceTime(start=current, end=current + duration))
        current += duration + PAUSE_SECONDS
    return times


class ReadingService:
    """Creates articles and manages their synthesized audio."""

    def __init__(self, store: LocalStore, speech=None):
        self.store = store
        self.speech = speech

    def add_article(self, title: str, content: str) -> ReadingArticle:
        sentences = split_sentences(content)
        article = ReadingArticle(
            title=title.strip() or "Untitled",
            content=content,
            sentences=sentences,
            sentence_times=estimate_sentence_times(sentences),
            created_at=int(self.store.clock().timestamp() * 1000),
        )
        self.store.add_article(article)
        logger.info(f"Added article {article.id} with {len(sentences)} sentences")
        return article

    async def generate_audio(self, article_id: str) -> bool:
        """Synthesize and cache the audio of an article.

        Failures are recorded on the article as the ``error`` status.
        """
        article = self.store.get_article(article_id)
        if article is None:
            raise KeyError(f"Article {article_id} not found")
        if self.speech is None:
            raise ActiveVocabError("Speech synthesis is not available", error_code="SPEECH_UNAVAILABLE")

        self.store.update_article_audio(article_id, "generating")
        try:
            await self.speech.synthesize_cached(article_id, article.content)
        except ActiveVocabError as e:
            logger.error(f"Failed to generate audio for article {article_id}: {e}")
            self.store.update_article_audio(article_id, "error")
            return False

        duration = len(article.content) * SECONDS_PER_CHARACTER
        self.store.update_article_audio(article_id, "ready", blob_key=article_id, duration=duration)
        return True

    def get_audio(self, article_id: str) -> Optional[bytes]:
        article = self.store.get_article(article_id)
        if article is None or not article.audio_blob_key or self.speech is None or self.speech.cache is None:
            return None
        return self.speech.cache.get_audio(article.audio_blob_key)

    def remove_article(self, article_id: str) -> None:
        article = self.store.get_article(article_id)
        self.store.remove_article(article_id)
        if article and article.audio_blob_key and self.speech is not None and self.speech.cache is not None:
            self.speech.cache.delete_audio(article.audio_blob_key)
