# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("[ COMPILER ]")

# RE2 guarantees linear-time matching; it is an optional install
try:
    import re2
except ImportError:
    re2 = None

ENGINE_RE2 = "re2"
ENGINE_RE = "re"

# Matches nothing a user would type, forces lazy automaton construction now
_WARMUP_SENTINEL = "\x00\x01warmup\x01\x00"
_BASE_FLAGS = "im"
_LEADING_FLAGS = re.compile(r"^\(\?([aiLmsux]+)\)")
# Compiled-pattern flags that change meaning; i and m are always on
_INLINE_FLAGS = ((re.DOTALL, "s"), (re.VERBOSE, "x"), (re.ASCII, "a"))


def linear_engine_available() -> bool:
    return re2 is not None


# One branch of a composed alternation, optionally under a named capture
@dataclass(frozen=True)
class Alternative:
    source: str
    capture: str | None = None


@dataclass
class CompiledPattern:
    source: str
    engine: str
    regex: Any
    captures: tuple[str, ...] = ()


    def search(self, text: str):
        return self.regex.search(text)


    # Capture name of the alternative that matched, None when nothing did
    def matched_capture(self, text: str) -> str | None:
        match = self.regex.search(text)
        if match is None:
            return None

        groups = match.groupdict()
        for capture in self.captures:
            if groups.get(capture) is not None:
                return capture

        return None


# Extract the regex source of a trigger value (plain string or compiled re.Pattern).
# Flags of a compiled pattern become a leading inline group, e.g. re.S -> "(?s)".
def source_of(value: str | re.Pattern) -> str:
    if isinstance(value, re.Pattern):
        if not isinstance(value.pattern, str):
            raise TypeError("bytes patterns are not supported")
        return _inline_flags(value.pattern, value.flags)
    if isinstance(value, str):
        return value

    raise TypeError(f"trigger must be str or re.Pattern, got {type(value).__name__}")


# Join several sources into one alternation without touching their own groups
def join_sources(sources: Sequence[str]) -> str:
    if len(sources) == 1:
        return sources[0]
    return "|".join(_scoped(source) for source in sources)


def compose(alternatives: Sequence[Alternative]) -> str:
    if len(alternatives) == 1 and alternatives[0].capture is None:
        return alternatives[0].source

    parts = []
    for alternative in alternatives:
        if alternative.capture:
            source = alternative.source
            if _LEADING_FLAGS.match(source):
                source = _scoped(source)
            parts.append(f"(?P<{alternative.capture}>{source})")
        else:
            parts.append(_scoped(alternative.source))

    return "|".join(parts)


# Compile alternatives into one warmed matcher. Returns None on failure (fail closed).
def compile_pattern(alternatives: Sequence[Alternative], prefer_re2: bool = True) -> CompiledPattern | None:
    if not alternatives:
        return None

    full = _with_flags(compose(alternatives))
    captures = tuple(a.capture for a in alternatives if a.capture)

    regex, engine = None, ENGINE_RE
    if prefer_re2 and re2 is not None:
        try:
            regex, engine = re2.compile(full), ENGINE_RE2
        except re2.error as e:
            logger.debug("re2 rejected pattern, falling back to re: %s", e)

    if regex is None:
        try:
            regex = re.compile(full)
        except (re.error, ValueError, TypeError) as e:
            logger.error("Pattern compile failed (%s): %.200s", e, full)
            return None

    regex.search(_WARMUP_SENTINEL)
    regex.search("")

    return CompiledPattern(source=full, engine=engine, regex=regex, captures=captures)


# Engines able to compile a single source, checked without warming or keeping it
def engines_accepting(source: str, prefer_re2: bool = True) -> set[str]:
    full = _with_flags(source)
    accepted = set()

    if prefer_re2 and re2 is not None:
        try:
            re2.compile(full)
            accepted.add(ENGINE_RE2)
        except re2.error:
            pass

    try:
        re.compile(full)
        accepted.add(ENGINE_RE)
    except (re.error, ValueError, TypeError):
        pass

    return accepted


def validate_source(source: str, prefer_re2: bool = True) -> bool:
    return bool(engines_accepting(source, prefer_re2))


def _inline_flags(source: str, flags: int) -> str:
    letters = "".join(letter for flag, letter in _INLINE_FLAGS if flags & flag)
    if not letters:
        return source

    match = _LEADING_FLAGS.match(source)
    if match:
        letters = match.group(1) + "".join(f for f in letters if f not in match.group(1))
        source = source[match.end():]

    return f"(?{letters}){source}"


# Wrap one alternative in a non-capturing group. Global flags are only legal at the
# very start of a pattern, so a leading "(?sx)" turns into a scoped "(?sx:...)".
def _scoped(source: str) -> str:
    match = _LEADING_FLAGS.match(source)
    if match is None:
        return f"(?:{source})"

    flags = match.group(1)
    body = source[match.end():]
    # a verbose comment would swallow the closing parenthesis
    if "x" in flags:
        body += "\n"

    return f"(?{flags}:{body})"


def _with_flags(source: str) -> str:
    flags = _BASE_FLAGS
    match = _LEADING_FLAGS.match(source)
    if match:
        flags += "".join(f for f in match.group(1) if f not in flags)
        source = source[match.end():]

    return f"(?{flags}){source}"
