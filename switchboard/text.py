# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import random
import re
from collections.abc import Sequence
from functools import lru_cache
from switchboard import messages


# Form used for literal trigger comparison
def normalize(text: str | None) -> str:
    if not text:
        return ""
    return text.lower().strip()


def is_say_true(text: str | None) -> bool:
    return _says(messages.confirm_patterns(), text)


def is_say_false(text: str | None) -> bool:
    return _says(messages.reject_patterns(), text)


# True if any literal is contained in text, or any pattern matches when is_pattern
def is_say_text(find: str | Sequence[str], text: str | None, is_pattern: bool = False) -> bool:
    if not text:
        return False

    values = (find,) if isinstance(find, str) else tuple(find)
    if is_pattern:
        return _says(values, text)

    normalized = normalize(text)
    return any(normalize(value) and normalize(value) in normalized for value in values)


# Pick one reply when several variants are configured
def get_text(value: str | Sequence[str]) -> str:
    if isinstance(value, str):
        return value
    if not value:
        return ""

    return random.choice(list(value))


def _says(patterns: Sequence[str], text: str | None) -> bool:
    if not text or not patterns:
        return False
    return _joined(tuple(patterns)).search(text) is not None


@lru_cache(maxsize=256)
def _joined(patterns: tuple[str, ...]) -> re.Pattern:
    return re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE | re.MULTILINE)
