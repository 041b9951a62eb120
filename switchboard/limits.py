# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import logging
import os
from dataclasses import dataclass
from switchboard.config import LimitsConfig

logger = logging.getLogger("[ LIMITS ]")

_GIB = 1024 ** 3

# Assumed when the platform cannot report physical memory
DEFAULT_TOTAL_MEMORY = 2 * _GIB

# Per GiB of RAM with a linear-time engine
REGEX_COMMANDS_PER_GIB = 1000
GROUPS_PER_GIB = 400

MIN_REGEX_COMMANDS, MAX_REGEX_COMMANDS = 500, 10000
MIN_GROUPS, MAX_GROUPS = 100, 4000

# A backtracking engine keeps far larger compiled programs around
BACKTRACKING_REGEX_DIVISOR = 2
BACKTRACKING_GROUP_DIVISOR = 20


# Upper bounds on eagerly warmed matchers; anything beyond compiles on first use
@dataclass(frozen=True)
class Limits:
    max_warmed_groups: int
    max_warmed_regex_commands: int


def total_system_memory() -> int | None:
    try:
        pages = os.sysconf("SC_PHYS_PAGES")
        page_size = os.sysconf("SC_PAGE_SIZE")
    except (AttributeError, ValueError, OSError):
        return None
    if pages <= 0 or page_size <= 0:
        return None

    return pages * page_size


def calibrate(total_memory: int | None, linear_engine: bool, config: LimitsConfig | None = None) -> Limits:
    config = config or LimitsConfig()
    memory = total_memory if total_memory and total_memory > 0 else DEFAULT_TOTAL_MEMORY
    gib = memory / _GIB

    regex_limit = _clamp(int(gib * REGEX_COMMANDS_PER_GIB), MIN_REGEX_COMMANDS, MAX_REGEX_COMMANDS)
    group_limit = _clamp(int(gib * GROUPS_PER_GIB), MIN_GROUPS, MAX_GROUPS)
    if not linear_engine:
        regex_limit //= BACKTRACKING_REGEX_DIVISOR
        group_limit = max(1, group_limit // BACKTRACKING_GROUP_DIVISOR)

    if config.max_warmed_regex_commands is not None:
        regex_limit = config.max_warmed_regex_commands
    if config.max_warmed_groups is not None:
        group_limit = config.max_warmed_groups

    limits = Limits(max_warmed_groups=group_limit, max_warmed_regex_commands=regex_limit)
    logger.debug("Calibrated limits for %.1f GiB (linear engine: %s): %s", gib, linear_engine, limits)

    return limits


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))
