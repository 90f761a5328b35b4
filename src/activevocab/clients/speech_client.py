"""Speech-to-text and text-to-speech clients."""
import asyncio
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

import httpx
from gtts import gTTS

from activevocab.config import settings
from activevocab.exceptions import ConfigurationError, RemoteServiceError, ValidationError
from activevocab.services.audio_cache import AudioCache

logger = logging.getLogger(__name__)

AUDIO_CACHE_CONTROL = "public, max-age=86400"


@dataclass
class SpeechAudio:
    content: bytes
    content_type: str = "audio/mpeg"
    cache_control: str = AUDIO_CACHE_CONTROL


class SpeechClient:
    """Transcribes recordings and synthesizes speech.

    Synthesis falls back to gTTS when the remote service is unavailable.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        stt_url: Optional[str] = None,
        tts_url: Optional[str] = None,
        api_key: Optional[str] = None,
        cache: Optional[AudioCache] = None,
    ):
        self.stt_url = stt_url if stt_url is not None else settings.speech.stt_url
        self.tts_url = tts_url if tts_url is not None else settings.speech.tts_url
        self.api_key = api_key if api_key is not None else settings.speech.api_key
        self.cache = cache
        self._client = client or httpx.AsyncClient(timeout=settings.speech.timeout)

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    async def transcribe(self, audio: bytes, content_type: str = "audio/webm") -> str:
        """Transcript of a recording, or an empty string if nothing was recognized."""
        if not audio:
            raise ValidationError("No audio data provided", field="audio")
        if not self.stt_url:
            raise ConfigurationError("Speech recognition is not configured", config_key="STT_API_URL")

        headers = {**self._headers(), "Content-Type": content_type}
        try:
            response = await self._client.post(self.stt_url, content=audio, headers=headers)
        except httpx.HTTPError as e:
            raise RemoteServiceError(f"Transcription request failed: {e}", service_name="stt") from e
        if response.status_code >= 400:
            raise RemoteServiceError(
                f"Transcription failed with HTTP {response.status_code}",
                service_name="stt",
                status_code=response.status_code,
            )
        try:
            transcript = response.json().get("transcript") or ""
        except (ValueError, AttributeError):
            logger.warning("Transcription response was not a JSON object")
            return ""
        logger.info(f"Transcribed {len(audio)} bytes: {transcript[:100]}")
        return transcript

    def _check_text(self, text: str) -> str:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Text is required", field="text")
        if len(text) > settings.speech.max_text_length:
            raise ValidationError(
                f"Text too long (max {settings.speech.max_text_length} characters)",
                field="text",
                value=len(text),
            )
        return text

    async def _remote_synthesize(self, text: str, voice: str) -> SpeechAudio:
        try:
            response = await self._client.get(
                self.tts_url,
                params={"text": text, "voice": voice},
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise RemoteServiceError(f"Speech synthesis request failed: {e}", service_name="tts") from e
        if response.status_code >= 400 or not response.content:
            raise RemoteServiceError(
                f"Speech synthesis failed with HTTP {response.status_code}",
                service_name="tts",
                status_code=response.status_code,
            )
        return SpeechAudio(
            content=response.content,
            content_type=response.headers.get("Content-Type", "audio/mpeg"),
            cache_control=response.headers.get("Cache-Control", AUDIO_CACHE_CONTROL),
        )

    @staticmethod
    def _local_synthesize_sync(text: str, lang: str) -> bytes:
        buffer = BytesIO()
        gTTS(text=text, lang=lang).write_to_fp(buffer)
        return buffer.getvalue()

    async def synthesize(self, text: str, voice: Optional[str] = None) -> SpeechAudio:
        """Synthesize speech for 1 to 1000 characters of text."""
        text = self._check_text(text)
        voice = voice or settings.speech.default_voice

        if self.tts_url:
            try:
                audio = await self._remote_synthesize(text, voice)
                logger.info(f"Synthesized {len(audio.content)} bytes of audio")
                return audio
            except RemoteServiceError as e:
                logger.warning(f"Remote synthesis failed, using gTTS: {e}")

        try:
            content = await asyncio.to_thread(self._local_synthesize_sync, text, settings.speech.fallback_lang)
        except Exception as e:
            raise RemoteServiceError(f"Local speech synthesis failed: {e}", service_name="gtts") from e
        return SpeechAudio(content=content)

    async def synthesize_cached(self, key: str, text: str, voice: Optional[str] = None) -> SpeechAudio:
        """Synthesize through the audio cache."""
        if self.cache is not None:
            cached = self.cache.get_entry(key)
            if cached is not None:
                return SpeechAudio(content=cached.data, content_type=cached.content_type)
        audio = await self.synthesize(text, voice)
        if self.cache is not None:
            self.cache.save_audio(key, audio.content, audio.content_type)
        return audio
