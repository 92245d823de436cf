"""
Lexical similarity between document contents.

Used by the diversity and MMR rerankers. Words are lowercased,
whitespace-split and stripped of surrounding punctuation; similarity is
the Jaccard index of the two word sets.
"""

from __future__ import annotations

_PUNCTUATION = ".,!?;:\"'()[]{}"


def extract_words(text: str) -> list[str]:
    """Lowercase, whitespace-split words with edge punctuation removed.

    Tokens that are pure punctuation are dropped.
    """
    words = []
    for token in text.lower().split():
        word = token.strip(_PUNCTUATION)
        if word:
            words.append(word)
    return words


def jaccard_similarity(text_a: str, text_b: str) -> float:
    """Jaccard similarity |A ∩ B| / |A ∪ B| of the two texts' word sets.

    Returns 0.0 when either text has no words.
    """
    words_a = set(extract_words(text_a))
    words_b = set(extract_words(text_b))
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)
