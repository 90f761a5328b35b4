"""Validation of generated Chinese translations."""
import logging
import re
from typing import Dict

from activevocab.config import CACHED_TRANSLATION_FALLBACK
from activevocab.models.entities import WordExplanation

logger = logging.getLogger(__name__)

CJK_PATTERN = re.compile(r"[一-龥]")
# Only punctuation, digits or whitespace: nothing a reader could use
NO_LETTERS_PATTERN = re.compile(r"^[^一-龥a-zA-Z]+$")


def is_valid_translation(text: str) -> bool:
    """Check that a translation contains real Chinese text.

    The trimmed text must hold at least one CJK ideograph, be at least two
    characters long and not consist solely of characters that are neither
    CJK nor Latin letters.
    """
    if not text:
        return False
    trimmed = text.strip()
    if len(trimmed) < 2:
        return False
    if not CJK_PATTERN.search(trimmed):
        return False
    if NO_LETTERS_PATTERN.match(trimmed):
        return False
    return True


def clean_explanations(explanations: Dict[str, WordExplanation]) -> int:
    """Replace invalid cached translations with a placeholder.

    Returns the number of explanations that were repaired.
    """
    cleaned = 0
    for word_id, explanation in explanations.items():
        if explanation.example_translation and not is_valid_translation(explanation.example_translation):
            logger.warning(
                "Invalid cached translation for word %s: %r",
                word_id,
                explanation.example_translation,
            )
            explanation.example_translation = CACHED_TRANSLATION_FALLBACK
            cleaned += 1
    if cleaned:
        logger.info(f"Cleaned {cleaned} invalid cached translations")
    return cleaned
