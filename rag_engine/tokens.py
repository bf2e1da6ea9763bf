"""
Word-count token heuristic shared by chunking, context budgets and
embedding pre-flight checks.
"""
import re

from .config import WORDS_PER_TOKEN

_WHITESPACE = re.compile(r"\s+")


def count_words(text: str) -> int:
    return len([w for w in _WHITESPACE.split(text) if w])


def tokens_for_words(word_count: int, words_per_token: float = WORDS_PER_TOKEN) -> int:
    return int(word_count / words_per_token)


def words_for_tokens(token_count: int, words_per_token: float = WORDS_PER_TOKEN) -> int:
    """Largest word count whose estimate stays within ``token_count``."""
    return int(token_count * words_per_token)


def estimate_tokens(text: str, words_per_token: float = WORDS_PER_TOKEN) -> int:
    """
    Estimate the token count of a text.

    Simple heuristic: count whitespace-separated words and divide by the
    configured words-per-token ratio (0.75 by default).
    """
    return tokens_for_words(count_words(text), words_per_token)
