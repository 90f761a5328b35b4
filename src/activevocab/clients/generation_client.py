"""Client for the remote text generation service."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from activevocab.config import (
    EXPLANATION_TRANSLATION_FALLBACK,
    TRANSLATION_FALLBACK,
    settings,
)
from activevocab.exceptions import ConfigurationError, RemoteServiceError, ValidationError
from activevocab.models.entities import Profile, WordExplanation
from activevocab.monitoring import generation_fallbacks, generation_retries
from activevocab.services.local_store import LocalStore
from activevocab.services.validation import is_valid_translation

logger = logging.getLogger(__name__)

GENERATE_EXPLANATION = "generateWordExplanation"
GENERATE_SENTENCES = "generateWordSentences"
EVALUATE_SHADOWING = "evaluateShadowing"
EVALUATE_SENTENCE = "evaluateUserSentence"
TRANSLATE = "translateToChinese"


@dataclass
class GeneratedSentence:
    sentence: str
    translation: str


@dataclass
class ShadowingEvaluation:
    is_correct: bool
    feedback: str


@dataclass
class SentenceEvaluation:
    is_correct: bool
    feedback: str
    better_way: str


def _field(data: Dict[str, Any], snake: str, camel: Optional[str] = None) -> Any:
    """Read a response field given in either snake_case or camelCase."""
    if snake in data:
        return data[snake]
    if camel is not None:
        return data.get(camel)
    return None


class GenerationClient:
    """Talks to the generation service with bounded retries and fallbacks.

    Transport failures, rate limits, server errors and responses that fail
    validation are retried a fixed number of times with a fixed delay. After
    that, translations degrade to placeholder text; actions without a
    meaningful placeholder raise the last error.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        store: Optional[LocalStore] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url or settings.generation.url
        if not self.url:
            raise ConfigurationError("Generation service URL is not configured", config_key="GENERATION_API_URL")
        self.api_key = api_key if api_key is not None else settings.generation.api_key
        self.store = store
        self.max_retries = settings.generation.max_retries if max_retries is None else max_retries
        self.retry_delay = settings.generation.retry_delay if retry_delay is None else retry_delay
        self._sleep = sleep
        self._client = client or httpx.AsyncClient(timeout=settings.generation.timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = await self._client.post(self.url, json={"action": action, **params}, headers=headers)
        except httpx.HTTPError as e:
            raise RemoteServiceError(f"{action} request failed: {e}", service_name="generation") from e

        if response.status_code >= 400:
            raise RemoteServiceError(
                f"{action} returned HTTP {response.status_code}",
                service_name="generation",
                status_code=response.status_code,
                details={"body": response.text[:500]},
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ValidationError(f"{action} returned invalid JSON", field="body") from e
        if not isinstance(data, dict):
            raise ValidationError(f"{action} returned a non-object response", field="body", value=data)

        self._record_usage(data)
        return data

    def _record_usage(self, data: Dict[str, Any]) -> None:
        usage = data.get("usage")
        if not self.store or not isinstance(usage, dict):
            return
        input_tokens = int(_field(usage, "input_tokens", "inputTokens") or 0)
        output_tokens = int(_field(usage, "output_tokens", "outputTokens") or 0)
        if input_tokens or output_tokens:
            self.store.add_token_usage(input_tokens, output_tokens)

    async def _request(
        self,
        action: str,
        params: Dict[str, Any],
        validate: Callable[[Dict[str, Any]], Any],
        fallback: Optional[Callable[[Optional[Dict[str, Any]]], Any]] = None,
    ) -> Any:
        """POST an action until it validates or the retry budget runs out."""
        last_error: Optional[Exception] = None
        last_data: Optional[Dict[str, Any]] = None
        attempts = self.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                data = await self._post(action, params)
                last_data = data
                return validate(data)
            except RemoteServiceError as e:
                if not e.is_transient:
                    raise
                last_error = e
            except ValidationError as e:
                last_error = e
            logger.warning(f"{action} attempt {attempt}/{attempts} failed: {last_error}")
            if attempt < attempts:
                generation_retries.labels(action=action).inc()
                await self._sleep(self.retry_delay)

        if fallback is not None:
            result = fallback(last_data)
            if result is not None:
                generation_fallbacks.labels(action=action).inc()
                logger.warning(f"{action} degraded to placeholder output")
                return result
        logger.error(f"{action} failed after {attempts} attempts")
        raise last_error

    # Explanations

    @staticmethod
    def _explanation_fields(data: Dict[str, Any]) -> WordExplanation:
        explanation = WordExplanation(
            meaning=(_field(data, "meaning") or "").strip(),
            phonetic=(_field(data, "phonetic") or "").strip(),
            example=(_field(data, "example") or "").strip(),
            example_translation=(_field(data, "example_translation", "exampleTranslation") or "").strip(),
            tips=(_field(data, "tips") or "").strip(),
        )
        if not (explanation.meaning and explanation.phonetic and explanation.example):
            raise ValidationError("Explanation is missing required fields", field="explanation", value=data)
        return explanation

    async def generate_word_explanation(self, word: str, profile: Profile, context: str) -> WordExplanation:
        """Explanation for a word; the example translation may degrade to a placeholder."""

        def validate(data: Dict[str, Any]) -> WordExplanation:
            explanation = self._explanation_fields(data)
            if not is_valid_translation(explanation.example_translation):
                raise ValidationError(
                    "Invalid example translation",
                    field="example_translation",
                    value=explanation.example_translation,
                )
            return explanation

        def fallback(data: Optional[Dict[str, Any]]) -> Optional[WordExplanation]:
            if data is None:
                return None
            try:
                explanation = self._explanation_fields(data)
            except ValidationError:
                return None
            explanation.example_translation = EXPLANATION_TRANSLATION_FALLBACK
            return explanation

        params = {"word": word, "profile": profile.to_dict(), "context": context}
        return await self._request(GENERATE_EXPLANATION, params, validate, fallback)

    # Sentences

    @staticmethod
    def _clean_sentences(data: Dict[str, Any]) -> List[GeneratedSentence]:
        items = data.get("sentences")
        if not isinstance(items, list):
            return []
        return [
            GeneratedSentence(
                sentence=str((item or {}).get("sentence") or "").strip(),
                translation=str((item or {}).get("translation") or "").strip(),
            )
            for item in items
            if isinstance(item, dict)
        ]

    async def generate_word_sentences(self, word: str, profile: Profile, context: str) -> List[GeneratedSentence]:
        """Example sentences for a word, padded with placeholders if they stay invalid."""
        count = settings.generation.sentences_per_word
        max_words = settings.generation.max_sentence_words

        def is_valid(s: GeneratedSentence) -> bool:
            return bool(s.sentence) and len(s.sentence.split()) <= max_words and is_valid_translation(s.translation)

        def validate(data: Dict[str, Any]) -> List[GeneratedSentence]:
            sentences = self._clean_sentences(data)
            if len(sentences) != count:
                raise ValidationError(f"Expected {count} sentences, got {len(sentences)}", field="sentences")
            if not all(is_valid(s) for s in sentences):
                raise ValidationError("Generated sentences failed validation", field="sentences")
            return sentences

        def fallback(data: Optional[Dict[str, Any]]) -> Optional[List[GeneratedSentence]]:
            if data is None:
                return None
            padded = []
            for s in self._clean_sentences(data)[:count]:
                padded.append(
                    GeneratedSentence(
                        sentence=s.sentence or f'I learned the word "{word}" today.',
                        translation=s.translation if is_valid_translation(s.translation) else EXPLANATION_TRANSLATION_FALLBACK,
                    )
                )
            while len(padded) < count:
                padded.append(GeneratedSentence(f'I learned the word "{word}" today.', EXPLANATION_TRANSLATION_FALLBACK))
            return padded

        params = {"word": word, "profile": profile.to_dict(), "context": context}
        return await self._request(GENERATE_SENTENCES, params, validate, fallback)

    # Evaluations

    async def evaluate_shadowing(self, target_sentence: str, user_transcript: str) -> ShadowingEvaluation:
        def validate(data: Dict[str, Any]) -> ShadowingEvaluation:
            is_correct = _field(data, "is_correct", "isCorrect")
            feedback = data.get("feedback")
            if not isinstance(is_correct, bool) or not feedback:
                raise ValidationError("Invalid shadowing evaluation response", field="evaluation", value=data)
            return ShadowingEvaluation(is_correct=is_correct, feedback=feedback)

        params = {"target_sentence": target_sentence, "user_transcript": user_transcript}
        return await self._request(EVALUATE_SHADOWING, params, validate)

    async def evaluate_user_sentence(self, word: str, user_sentence: str, context: str) -> SentenceEvaluation:
        def validate(data: Dict[str, Any]) -> SentenceEvaluation:
            is_correct = _field(data, "is_correct", "isCorrect")
            feedback = data.get("feedback")
            better_way = _field(data, "better_way", "betterWay")
            if not isinstance(is_correct, bool) or not feedback or not better_way:
                raise ValidationError("Invalid sentence evaluation response", field="evaluation", value=data)
            return SentenceEvaluation(is_correct=is_correct, feedback=feedback, better_way=better_way)

        params = {"word": word, "user_sentence": user_sentence, "context": context}
        return await self._request(EVALUATE_SENTENCE, params, validate)

    # Translation

    async def translate_to_chinese(self, text: str) -> str:
        """Chinese translation of a sentence, or a placeholder when none is valid."""

        def validate(data: Dict[str, Any]) -> str:
            translation = str(data.get("translation") or "").strip()
            if not is_valid_translation(translation):
                raise ValidationError("Invalid translation", field="translation", value=translation)
            return translation

        return await self._request(TRANSLATE, {"text": text}, validate, lambda _data: TRANSLATION_FALLBACK)
