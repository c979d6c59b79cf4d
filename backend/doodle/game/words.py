from __future__ import annotations

import random
import re
from typing import Sequence

from ..config import ConfigError


DEFAULT_WORDS: tuple[str, ...] = (
    "apple",
    "banana",
    "car",
    "dog",
    "house",
    "tree",
    "computer",
    "rocket",
    "sun",
    "moon",
    "star",
    "flower",
    "cat",
    "elephant",
    "guitar",
    "book",
    "boat",
    "ice cream",
    "hot air balloon",
    "snowman",
)

_WORD_RE = re.compile(r"[a-z]+(?: [a-z]+)*")

_words: tuple[str, ...] = DEFAULT_WORDS


def validate_words(words: Sequence[str]) -> tuple[str, ...]:
    if not words:
        raise ConfigError("word bank is empty")

    bad = [w for w in words if not isinstance(w, str) or not _WORD_RE.fullmatch(w)]
    if bad:
        raise ConfigError(f"word bank entries must be lowercase letters and single spaces: {bad!r}")

    return tuple(words)


def configure(words: Sequence[str] | None = None) -> tuple[str, ...]:
    """Install the word bank used by pick_word; falls back to DEFAULT_WORDS."""
    global _words
    _words = validate_words(list(words) if words else DEFAULT_WORDS)
    return _words


def current_words() -> tuple[str, ...]:
    return _words


def pick_word() -> str:
    return random.choice(_words)
