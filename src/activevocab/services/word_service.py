"""Service for adding and searching words."""
import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from activevocab.clients.dictionary_client import DictionaryClient
from activevocab.models.entities import ReviewStats, UserSentence, Word
from activevocab.services.local_store import LocalStore

logger = logging.getLogger(__name__)

PHONETIC_BRACKETS = re.compile(r"\[.*?\]")
PHONETIC_SLASHES = re.compile(r"/.*?/")
CJK_TAIL = re.compile(r"[一-龥].*$")
PART_OF_SPEECH = re.compile(r"\b(adj|adv|v|n|prep|conj|pron|interj|det|aux)\b\.?", re.IGNORECASE)
PARENTHESES = re.compile(r"\(.*?\)")
FULLWIDTH_PARENTHESES = re.compile(r"（.*?）")
ENGLISH_TOKEN = re.compile(r"^[a-zA-Z'-]+$")
ENTRY_SEPARATOR = re.compile(r"[\n,]+")

MAX_PHRASE_WORDS = 4


def clean_word(raw: str) -> str:
    """Reduce a pasted vocabulary line to the English word or phrase.

    Phonetics, Chinese glosses, ``=`` translations, ``+`` grammar notes,
    part-of-speech tags and parenthesized notes are removed. Phrases of up to
    four words are kept; longer lines keep only their first word.
    """
    cleaned = PHONETIC_BRACKETS.sub("", raw)
    cleaned = PHONETIC_SLASHES.sub("", cleaned)
    cleaned = CJK_TAIL.sub("", cleaned)
    cleaned = cleaned.split("=")[0]
    cleaned = cleaned.split("+")[0]
    cleaned = PART_OF_SPEECH.sub("", cleaned)
    cleaned = PARENTHESES.sub("", cleaned)
    cleaned = FULLWIDTH_PARENTHESES.sub("", cleaned)

    tokens = [t for t in cleaned.split() if ENGLISH_TOKEN.match(t)]
    if not tokens:
        return ""
    if len(tokens) <= MAX_PHRASE_WORDS:
        cleaned = " ".join(tokens)
    else:
        cleaned = tokens[0]
    return cleaned.lower().strip()


def split_entries(text: str) -> List[str]:
    """Split bulk input on newlines and commas and clean each entry."""
    raw_entries = [t.strip() for t in ENTRY_SEPARATOR.split(text) if t.strip()]
    return [w for w in (clean_word(t) for t in raw_entries) if w]


def placeholder_sentences(text: str, now: datetime) -> List[UserSentence]:
    """Practice sentences for words imported as already learned."""
    return [
        UserSentence(f'I learned the word "{text}" today.', f'我今天学习了"{text}"这个词。', now),
        UserSentence(f'The word "{text}" is useful in conversations.', f'"{text}"这个词在对话中很有用。', now),
        UserSentence(f'I need to practice using "{text}" more often.', f'我需要更多地练习使用"{text}"。', now),
    ]


@dataclass
class AddWordResult:
    duplicate: bool
    word: Optional[Word] = None
    existing_word: Optional[Word] = None


@dataclass
class BulkAddResult:
    new_words: List[str] = field(default_factory=list)
    duplicates: List[Word] = field(default_factory=list)
    total_processed: int = 0


@dataclass
class QuickAddResult:
    added: int = 0
    duplicates: List[str] = field(default_factory=list)


class WordService:
    """Service for managing words in the local store."""

    def __init__(self, store: LocalStore, dictionary: Optional[DictionaryClient] = None):
        """Initialize the service with the store and a dictionary client."""
        self.store = store
        self.dictionary = dictionary

    async def _phonetic(self, text: str) -> str:
        if self.dictionary is None:
            return ""
        try:
            return await self.dictionary.lookup_phonetic(text)
        except Exception as e:
            logger.warning(f"Failed to fetch phonetic for word: {text}, error: {e}")
            return ""

    async def _build_words(self, texts: List[str]) -> List[Word]:
        now = self.store.clock()
        phonetics = await asyncio.gather(*(self._phonetic(t) for t in texts))
        return [Word(text=t, phonetic=p, added_at=now) for t, p in zip(texts, phonetics)]

    async def add_word(self, text: str) -> AddWordResult:
        """Add a single word unless one with the same text already exists."""
        text = text.strip().lower()
        if not text:
            raise ValueError("Word text must not be empty")
        existing = self.store.find_word_by_text(text)
        if existing is not None:
            return AddWordResult(duplicate=True, existing_word=existing)

        word = Word(text=text, phonetic=await self._phonetic(text), added_at=self.store.clock())
        self.store.add_word(word)
        logger.info(f"Added word: {text}")
        return AddWordResult(duplicate=False, word=word)

    async def bulk_add_words(self, text: str) -> BulkAddResult:
        """Add every new word from pasted text and report duplicates."""
        cleaned = split_entries(text)
        result = BulkAddResult(total_processed=len(cleaned))
        for entry in cleaned:
            existing = self.store.find_word_by_text(entry)
            if existing is not None:
                result.duplicates.append(existing)
            else:
                result.new_words.append(entry)

        if result.new_words:
            self.store.add_words(await self._build_words(result.new_words))
        logger.info(
            f"Bulk add: {len(cleaned)} cleaned, {len(result.new_words)} new, "
            f"{len(result.duplicates)} duplicates"
        )
        return result

    async def bulk_add_words_force(self, texts: List[str]) -> List[Word]:
        """Add words without duplicate checks, after the user confirmed them."""
        if not texts:
            return []
        words = await self._build_words(list(texts))
        self.store.add_words(words)
        return words

    async def quick_add_learned_words(self, text: str) -> QuickAddResult:
        """Import words that are already known, ready for review tomorrow."""
        cleaned = split_entries(text)
        result = QuickAddResult()
        new_texts = []
        for entry in cleaned:
            if self.store.find_word_by_text(entry, active_only=True) is not None:
                result.duplicates.append(entry)
            else:
                new_texts.append(entry)

        if new_texts:
            now = self.store.clock()
            words = await self._build_words(new_texts)
            for word in words:
                word.user_sentences = placeholder_sentences(word.text, now)
                word.review_stats = ReviewStats()
                self.store.review_service.mark_learned(word, now)
            self.store.add_words(words)
        result.added = len(new_texts)
        return result

    def search_words(self, query: str, include_deleted: bool = False) -> List[Word]:
        """Case-insensitive substring search over word texts."""
        needle = query.strip().lower()
        pool = self.store.words if include_deleted else self.store.active_words()
        if not needle:
            return list(pool)
        return [w for w in pool if needle in w.text.lower()]
