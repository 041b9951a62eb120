# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import re
from dataclasses import dataclass, field

# Cheap lexical screening for catastrophic-backtracking shapes.
# Single pass over the pattern text, no regex parsing beyond group prefixes.
# False positives are accepted, false negatives are the engine's problem.

MAX_PATTERN_LENGTH = 1000
MAX_GROUP_DEPTH = 5

REASON_TOO_LONG = "too_long"
REASON_NESTED_QUANTIFIER = "nested_quantifier"
REASON_OVERLAPPING_ALTERNATION = "overlapping_alternation"
REASON_COMPOUNDING_REPETITION = "compounding_repetition"
REASON_DOT_QUANTIFIER = "unanchored_dot_quantifier"
REASON_DEEP_NESTING = "deep_nesting"

_BOUNDED_REPEAT = re.compile(r"\{(?:\d+(?:,\d*)?|,\d+)\}")


# State of one open group while scanning
@dataclass
class _Frame:
    leads: list[str] = field(default_factory=lambda: [""])
    repeats_inside: bool = False
    repeat_before_bar: bool = False
    last_was_repeat: bool = False


    @property
    def has_alternation(self) -> bool:
        return len(self.leads) > 1


    def shares_lead(self) -> bool:
        leads = [lead for lead in self.leads if lead and lead != "("]
        return len(leads) != len(set(leads))


    def add_atom(self, token: str) -> None:
        if not self.leads[-1]:
            self.leads[-1] = token


def is_likely_safe(pattern: str, max_length: int = MAX_PATTERN_LENGTH, max_depth: int = MAX_GROUP_DEPTH) -> bool:
    return find_unsafe_reason(pattern, max_length, max_depth) is None


# Return the first heuristic the pattern trips, or None when it looks safe
def find_unsafe_reason(pattern: str, max_length: int = MAX_PATTERN_LENGTH, max_depth: int = MAX_GROUP_DEPTH) -> str | None:
    if len(pattern) > max_length:
        return REASON_TOO_LONG

    stack = [_Frame()]
    i, n = 0, len(pattern)
    while i < n:
        ch = pattern[i]
        frame = stack[-1]

        if ch == "\\":
            end = min(i + 2, n)
            frame.add_atom(pattern[i:end])
            i = _after_atom(frame, pattern, end)

        elif ch == "[":
            end = _class_end(pattern, i)
            frame.add_atom(pattern[i:end])
            i = _after_atom(frame, pattern, end)

        elif ch == "(":
            if len(stack) > max_depth:
                return REASON_DEEP_NESTING
            frame.add_atom("(")
            stack.append(_Frame())
            i = _group_body_start(pattern, i)

        elif ch == ")":
            i += 1
            if len(stack) == 1:
                continue
            inner = stack.pop()
            parent = stack[-1]
            quantifier = _quantifier_at(pattern, i)
            if quantifier is None:
                parent.repeats_inside |= inner.repeats_inside
                parent.last_was_repeat = False
                continue

            end, repeat = quantifier
            if repeat and inner.repeats_inside:
                return REASON_NESTED_QUANTIFIER
            if repeat and inner.has_alternation and (inner.repeat_before_bar or inner.shares_lead()):
                return REASON_OVERLAPPING_ALTERNATION
            if _quantifier_at(pattern, end) is not None:
                return REASON_COMPOUNDING_REPETITION
            parent.repeats_inside |= repeat or inner.repeats_inside
            parent.last_was_repeat = repeat
            i = end

        elif ch == "|":
            if frame.last_was_repeat:
                frame.repeat_before_bar = True
            frame.leads.append("")
            frame.last_was_repeat = False
            i += 1

        elif ch == ".":
            frame.add_atom(ch)
            quantifier = _quantifier_at(pattern, i + 1)
            if quantifier is not None and quantifier[1]:
                # leading ".*" scans every suffix; ".*+" stacks repeats
                if i == 0 or _quantifier_at(pattern, quantifier[0]) is not None:
                    return REASON_DOT_QUANTIFIER
            i = _after_atom(frame, pattern, i + 1)

        elif ch in "*+?{":
            # stray quantifier, e.g. right after an anchor
            i += 1

        else:
            frame.add_atom(ch)
            i = _after_atom(frame, pattern, i + 1)

    return None


def _after_atom(frame: _Frame, pattern: str, i: int) -> int:
    quantifier = _quantifier_at(pattern, i)
    if quantifier is None:
        frame.last_was_repeat = False
        return i

    end, repeat = quantifier
    if repeat:
        frame.repeats_inside = True
    frame.last_was_repeat = repeat

    return end


# Return (end, is_repeat) for a quantifier starting at i, lazy suffix included
def _quantifier_at(pattern: str, i: int) -> tuple[int, bool] | None:
    if i >= len(pattern):
        return None

    ch = pattern[i]
    if ch in "*+":
        end, repeat = i + 1, True
    elif ch == "?":
        end, repeat = i + 1, False
    elif ch == "{":
        match = _BOUNDED_REPEAT.match(pattern, i)
        if match is None:
            return None
        end, repeat = match.end(), match.group() not in ("{0}", "{1}", "{0,1}")
    else:
        return None

    if pattern[end:end + 1] == "?":
        end += 1

    return end, repeat


def _class_end(pattern: str, i: int) -> int:
    n = len(pattern)
    j = i + 1
    if pattern[j:j + 1] == "^":
        j += 1
    if pattern[j:j + 1] == "]":
        j += 1
    while j < n:
        if pattern[j] == "\\":
            j += 2
        elif pattern[j] == "]":
            return j + 1
        else:
            j += 1

    return n


# Skip "(?:", "(?P<name>", lookarounds and inline flags
def _group_body_start(pattern: str, i: int) -> int:
    if pattern[i + 1:i + 2] != "?":
        return i + 1

    j = i + 2
    kind = pattern[j:j + 1]
    if kind in (":", "=", "!", ">"):
        return j + 1
    if kind == "P":
        if pattern[j + 1:j + 2] == "<":
            return _find_or_end(pattern, ">", j) + 1
        return _find_or_end(pattern, ")", j)
    if kind == "<":
        if pattern[j + 1:j + 2] in ("=", "!"):
            return j + 2
        return _find_or_end(pattern, ">", j) + 1
    if kind == "#":
        return _find_or_end(pattern, ")", j)

    # inline flags: "(?i)" closes immediately, "(?i:" opens a body
    while j < len(pattern) and pattern[j] not in ":)":
        j += 1
    if pattern[j:j + 1] == ":":
        return j + 1

    return j


def _find_or_end(pattern: str, char: str, start: int) -> int:
    index = pattern.find(char, start)
    return len(pattern) if index == -1 else index
