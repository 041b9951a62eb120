# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from switchboard.compiler import (
    ENGINE_RE,
    ENGINE_RE2,
    Alternative,
    CompiledPattern,
    compile_pattern,
    compose,
    engines_accepting,
    join_sources,
    linear_engine_available,
)
from switchboard.config import GroupingConfig
from switchboard.deferred import DeferredCompile, RLockType
from switchboard.limits import Limits
from switchboard.metrics import DispatchMetrics

logger = logging.getLogger("[ GROUPING ]")

_CAPTURE_PREFIX = "_c"

# Constructs that change meaning or fail once a source shares an alternation:
# own named groups, backreferences, global inline flags
_UNGROUPABLE = re.compile(r"\(\?P?<(?![=!])|\(\?P=|\\[1-9]|^\(\?[aiLmsux]+\)")


def capture_name(index: int) -> str:
    return f"{_CAPTURE_PREFIX}{index}"


# A batch of pattern commands compiled into one named-capture alternation
@dataclass
class CommandGroup:
    name: str
    members: list[str] = field(default_factory=list)
    sources: dict[str, str] = field(default_factory=dict)
    sizes: dict[str, int] = field(default_factory=dict)
    matcher: CompiledPattern | None = None
    # capture -> member, as of the last successful compile
    captures: dict[str, str] = field(default_factory=dict)
    dirty: bool = True


    @property
    def size(self) -> int:
        return sum(self.sizes.values())


    @property
    def source_length(self) -> int:
        if not self.members:
            return 0
        return len(compose(self.alternatives()))


    def alternatives(self) -> list[Alternative]:
        return [Alternative(self.sources[member], capture_name(i)) for i, member in enumerate(self.members)]


    def add(self, member: str, source: str, size: int) -> None:
        self.members.append(member)
        self.sources[member] = source
        self.sizes[member] = size
        self.dirty = True


    def discard(self, member: str) -> None:
        self.members.remove(member)
        del self.sources[member]
        del self.sizes[member]
        self.dirty = True


# Batches pattern commands into a bounded number of compiled alternations.
# At most one group is open; it takes new commands until a budget would overflow.
class GroupingOptimizer:

    def __init__(
        self,
        config: GroupingConfig,
        limits: Limits,
        lock: RLockType | None = None,
        prefer_re2: bool = True,
        metrics: DispatchMetrics | None = None,
    ) -> None:
        self._cfg = config
        self._limits = limits
        self._prefer_re2 = prefer_re2
        self._metrics = metrics or DispatchMetrics()
        self._groups: dict[str, CommandGroup] = {}
        self._member_of: dict[str, str] = {}
        self._open: str | None = None
        self._warmed: set[str] = set()
        self._sequence = 0
        self._deferred = DeferredCompile(config.debounce_sec, lock)

        self._engines = {ENGINE_RE}
        if prefer_re2 and linear_engine_available():
            self._engines.add(ENGINE_RE2)


    @property
    def groups(self) -> dict[str, CommandGroup]:
        return dict(self._groups)


    @property
    def open_group(self) -> str | None:
        return self._open


    @property
    def pending(self) -> bool:
        return self._deferred.pending


    @property
    def warmed_count(self) -> int:
        return len(self._warmed)


    def group_of(self, member: str) -> str | None:
        return self._member_of.get(member)


    # Batching only pays off once enough pattern commands amortize its bookkeeping
    def is_active(self, pattern_count: int) -> bool:
        return self._cfg.enabled and pattern_count >= self._cfg.command_threshold


    def can_group(self, sources: Sequence[str]) -> bool:
        if not sources or len(sources) > self._cfg.max_group_size:
            return False
        if any(_UNGROUPABLE.search(source) for source in sources):
            return False
        joined = join_sources(sources)
        if len(compose([Alternative(joined, capture_name(0))])) > self._cfg.max_source_chars:
            return False
        # every engine must accept it, or one member would break the whole group
        return all(engines_accepting(source, self._prefer_re2) >= self._engines for source in sources)


    # Add a command to the open group. Returns the group name, None when it stays standalone.
    # With join_only the command never opens a new group.
    def assign(self, member: str, sources: Sequence[str], join_only: bool = False) -> str | None:
        if member in self._member_of:
            raise ValueError(f"'{member}' already belongs to group '{self._member_of[member]}'")
        if not self.can_group(sources):
            logger.debug("Command '%s' kept standalone (not groupable)", member)
            return None

        joined = join_sources(sources)
        group = self._groups.get(self._open) if self._open else None
        fits = group is not None and self._fits(group, joined, len(sources))
        if join_only and not fits:
            return None
        if not fits:
            if group is not None:
                logger.debug("Group '%s' closed: %d members, size %d, %d chars", group.name, len(group.members), group.size, group.source_length)
            group = self._new_group(member)

        group.add(member, joined, len(sources))
        self._member_of[member] = group.name
        self._schedule(group)

        return group.name


    # Remove a member and rebuild its group. Returns survivors of a disbanded group.
    def remove(self, member: str) -> list[str]:
        group_name = self._member_of.pop(member, None)
        if group_name is None:
            return []

        group = self._groups[group_name]
        group.discard(member)
        if len(group.members) >= 2:
            logger.debug("Rebuilding group '%s' without '%s'", group_name, member)
            self._schedule(group)
            return []

        survivors = list(group.members)
        for survivor in survivors:
            self._member_of.pop(survivor, None)
        self._drop(group_name)
        logger.debug("Group '%s' disbanded, survivors: %s", group_name, survivors)

        return survivors


    # Name of the grouped command matching text, compiling pending/lazy groups first
    def match(self, text: str) -> str | None:
        self._deferred.flush()

        for group in self._groups.values():
            if group.dirty:
                self._metrics.increment("lazy_compiles")
                self._build(group)
            if group.matcher is None:
                continue

            capture = group.matcher.matched_capture(text)
            if capture is None:
                continue
            member = group.captures.get(capture)
            # a failed rebuild keeps the old matcher, which may name removed members
            if member is not None and self._member_of.get(member) == group.name:
                return member

        return None


    def flush(self) -> bool:
        return self._deferred.flush()


    def clear(self) -> None:
        self._deferred.cancel()
        self._groups.clear()
        self._member_of.clear()
        self._warmed.clear()
        self._open = None
        self._sequence = 0


    def _fits(self, group: CommandGroup, joined: str, size: int) -> bool:
        if group.size + size > self._cfg.max_group_size:
            return False
        alternative = compose([Alternative(joined, capture_name(len(group.members)))])
        separator = 1 if group.members else 0

        return group.source_length + separator + len(alternative) <= self._cfg.max_source_chars


    def _new_group(self, first_member: str) -> CommandGroup:
        self._sequence += 1
        name = first_member if first_member not in self._groups else f"{first_member}#{self._sequence}"
        group = CommandGroup(name=name)
        self._groups[name] = group
        self._open = name
        logger.debug("Group '%s' opened", name)

        return group


    def _drop(self, group_name: str) -> None:
        del self._groups[group_name]
        self._warmed.discard(group_name)
        if self._open == group_name:
            self._open = None
        # nothing left to compile for a disbanded group
        if self._deferred.key == group_name:
            self._deferred.cancel()


    def _schedule(self, group: CommandGroup) -> None:
        group.dirty = True
        name = group.name
        self._deferred.schedule(name, lambda: self._compile(name))


    # Debounced compile. Groups past the warm limit stay dirty and compile on first match.
    def _compile(self, name: str) -> None:
        group = self._groups.get(name)
        if group is None or not group.dirty:
            return

        if name not in self._warmed and len(self._warmed) >= self._limits.max_warmed_groups:
            logger.debug("Group '%s' over warm limit (%d), compiling on first use", name, self._limits.max_warmed_groups)
            self._metrics.increment("deferred_groups")
            return

        if self._build(group):
            self._warmed.add(name)


    def _build(self, group: CommandGroup) -> bool:
        alternatives = group.alternatives()
        with self._metrics.measure("compile_group"):
            compiled = compile_pattern(alternatives, self._prefer_re2)

        # no retry on every match after a failure; the next membership change retries
        group.dirty = False
        if compiled is None:
            self._metrics.increment("compile_failures")
            logger.error("Group '%s' failed to compile, keeping previous matcher", group.name)
            return False

        group.matcher = compiled
        group.captures = {a.capture: member for a, member in zip(alternatives, group.members)}
        logger.debug("Group '%s' compiled: %d members, %d chars (%s)", group.name, len(group.members), len(compiled.source), compiled.engine)

        return True
