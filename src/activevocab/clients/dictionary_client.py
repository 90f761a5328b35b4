"""Dictionary lookups used for phonetic transcriptions."""
import logging
import re
from typing import Any, Dict, Optional

import eng_to_ipa as ipa
import httpx

from activevocab.config import settings

logger = logging.getLogger(__name__)

NON_WORD_PATTERN = re.compile(r"[^\w\s]|_")


class DictionaryClient:
    """Fetches dictionary entries over HTTP."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.dictionary.url).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.dictionary.timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_entry(self, word: str) -> Optional[Dict[str, Any]]:
        """Return the first dictionary entry for a word, or None."""
        clean = NON_WORD_PATTERN.sub("", word).strip()
        if not clean:
            return None
        try:
            response = await self._client.get(f"{self.base_url}/{clean}")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Dictionary lookup failed for word: {word}, error: {e}")
            return None
        if isinstance(data, list) and data:
            return data[0]
        return None

    async def lookup_phonetic(self, word: str) -> str:
        """Phonetic transcription for a word; empty when unknown."""
        entry = await self.fetch_entry(word)
        if entry:
            phonetic = entry.get("phonetic")
            if not phonetic:
                phonetic = next(
                    (p.get("text") for p in entry.get("phonetics") or [] if p.get("text")),
                    "",
                )
            if phonetic:
                return phonetic
        return self.generate_transcription(word)

    @staticmethod
    def generate_transcription(word: str) -> str:
        """Offline IPA transcription for a single English word."""
        if len(word.split()) != 1:
            return ""
        try:
            transcription = ipa.convert(word)
        except Exception as e:
            logger.error(f"Error generating transcription for word: {word}, error: {e}")
            return ""
        # Unknown words come back marked with an asterisk
        if not transcription or "*" in transcription:
            return ""
        return f"/{transcription}/"
