"""Tests for translation validation."""
import pytest

from activevocab.config import CACHED_TRANSLATION_FALLBACK
from activevocab.models.entities import WordExplanation
from activevocab.services.validation import clean_explanations, is_valid_translation


@pytest.mark.parametrize(
    "text",
    [
        "",
        ".",
        "...",
        "。",
        "   ",
        "中",
        "  中  ",
        "123。",
        "hello world",
        "，。！",
    ],
)
def test_rejects_unusable_translations(text):
    assert is_valid_translation(text) is False


@pytest.mark.parametrize(
    "text",
    [
        "我今天需要买些日用品。",
        "你好",
        "  我很好  ",
        "我喜欢 Python 编程",
    ],
)
def test_accepts_chinese_translations(text):
    assert is_valid_translation(text) is True


def test_clean_explanations_replaces_invalid_translations():
    """Test that only broken cached translations are replaced."""
    explanations = {
        "w1": WordExplanation(meaning="意外发现", example="It was luck.", example_translation="..."),
        "w2": WordExplanation(meaning="坚持", example="Keep going.", example_translation="继续前进。"),
        "w3": WordExplanation(meaning="空", example="Nothing.", example_translation=""),
    }

    cleaned = clean_explanations(explanations)

    assert cleaned == 1
    assert explanations["w1"].example_translation == CACHED_TRANSLATION_FALLBACK
    assert explanations["w2"].example_translation == "继续前进。"
    assert explanations["w3"].example_translation == ""


def test_clean_explanations_is_idempotent():
    explanations = {"w1": WordExplanation(meaning="m", example_translation=".")}
    assert clean_explanations(explanations) == 1
    assert clean_explanations(explanations) == 0


if __name__ == "__main__":
    pytest.main([__file__])
