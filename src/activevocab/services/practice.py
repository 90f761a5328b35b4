"""Instant local checks for typed practice answers."""
import re
from dataclasses import dataclass
from typing import Optional

PUNCTUATION_PATTERN = re.compile(r"[^\w\s]", re.ASCII)
WHITESPACE_PATTERN = re.compile(r"\s+")
WORD_ENDING_PATTERN = re.compile(r"(ing|ed|s|es)$")

MIN_SENTENCE_WORDS = 4


@dataclass
class SimilarityResult:
    is_correct: bool
    similarity: float
    feedback: str


@dataclass
class SentenceCheck:
    passed: bool
    feedback: Optional[str] = None


def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    text = PUNCTUATION_PATTERN.sub("", text.lower())
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def compare_text_similarity(target: str, user_input: str) -> SimilarityResult:
    """Compare a typed answer with the target sentence by word overlap."""
    target_norm = normalize_text(target)
    input_norm = normalize_text(user_input)

    if target_norm == input_norm:
        return SimilarityResult(True, 1.0, "Perfect match!")

    target_words = target_norm.split(" ") if target_norm else []
    input_words = input_norm.split(" ") if input_norm else []
    target_set = set(target_words)
    matched = sum(1 for word in input_words if word in target_set)
    similarity = matched / len(target_words) if target_words else 0.0
    percent = round(similarity * 100)

    if similarity >= 0.9:
        return SimilarityResult(True, similarity, "Great! Minor differences but essentially correct.")
    if similarity >= 0.7:
        return SimilarityResult(
            True,
            similarity,
            f"Good effort! Match: {percent}%. Check for small differences.",
        )
    return SimilarityResult(
        False,
        similarity,
        f"Please review the target sentence. Match: {percent}%. Try again!",
    )


def quick_check_sentence(word: str, sentence: str, example: Optional[str] = None) -> SentenceCheck:
    """Reject obviously incomplete sentences before any remote evaluation.

    Spelling and grammar are left to the generation service; this only checks
    that the word stem appears, the sentence has a minimum length and it is
    not a copy of the example sentence.
    """
    trimmed = sentence.strip()
    sentence_lower = trimmed.lower()
    word_root = WORD_ENDING_PATTERN.sub("", word.lower())

    if word_root not in sentence_lower:
        return SentenceCheck(False, f'Please use the word "{word}" in your sentence.')

    word_count = len(trimmed.split()) if trimmed else 0
    if word_count < MIN_SENTENCE_WORDS:
        return SentenceCheck(
            False,
            f"Please write a complete sentence (at least {MIN_SENTENCE_WORDS} words). You wrote {word_count}.",
        )

    if example:
        example_norm = PUNCTUATION_PATTERN.sub("", example.lower())
        sentence_norm = PUNCTUATION_PATTERN.sub("", sentence_lower)
        if example_norm == sentence_norm:
            return SentenceCheck(False, "Please create your own sentence, not copy the example.")

    return SentenceCheck(True)
