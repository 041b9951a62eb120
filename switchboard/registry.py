# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import logging
import re
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Self, TypeAlias
from switchboard import messages
from switchboard.compiler import (
    Alternative,
    CompiledPattern,
    compile_pattern,
    linear_engine_available,
    source_of,
    validate_source,
)
from switchboard.config import AppConfig, GroupingConfig, IntentConfig, LimitsConfig, SafetyConfig
from switchboard.grouping import GroupingOptimizer
from switchboard.limits import Limits, calibrate, total_system_memory
from switchboard.metrics import DispatchMetrics
from switchboard.safety import find_unsafe_reason
from switchboard.text import normalize

logger = logging.getLogger("[ REGISTRY ]")

# Reserved names
FALLBACK_COMMAND = "*"
WELCOME_INTENT = "welcome"
HELP_INTENT = "help"

CommandCallback: TypeAlias = Callable[..., Any]
CustomResolver: TypeAlias = Callable[[str], str | None]


class TriggerKind(Enum):
    LITERAL = auto()
    PATTERN = auto()


# Decided once at registration, never re-checked while resolving
@dataclass(frozen=True)
class Trigger:
    kind: TriggerKind
    value: str


    @classmethod
    def literal(cls, text: str) -> Self:
        return cls(TriggerKind.LITERAL, normalize(text))


    @classmethod
    def pattern(cls, source: str) -> Self:
        return cls(TriggerKind.PATTERN, source)


@dataclass
class Command:
    name: str
    triggers: tuple[Trigger, ...] = ()
    is_pattern: bool = False
    callback: CommandCallback | None = None
    group_name: str | None = None
    matcher: CompiledPattern | None = None
    # over the warm limit: compile on first resolution
    lazy: bool = False


    @property
    def literals(self) -> tuple[str, ...]:
        return tuple(t.value for t in self.triggers if t.kind is TriggerKind.LITERAL)


    @property
    def sources(self) -> tuple[str, ...]:
        return tuple(t.value for t in self.triggers if t.kind is TriggerKind.PATTERN)


# Outcome of add_command; registration never raises
@dataclass(frozen=True)
class RegistrationReport:
    name: str
    accepted: bool
    group: str | None = None
    rejected_triggers: tuple[str, ...] = field(default_factory=tuple)
    reason: str | None = None


    def __bool__(self) -> bool:
        return self.accepted


def default_intents() -> tuple[IntentConfig, ...]:
    return (
        IntentConfig(name=WELCOME_INTENT, triggers=messages.welcome_triggers()),
        IntentConfig(name=HELP_INTENT, triggers=messages.help_triggers()),
    )


# Ordered command registry and resolver.
# Owns every piece of matching state: commands, groups, pending compile, warm counters.
class CommandRegistry:

    def __init__(
        self,
        safety: SafetyConfig | None = None,
        grouping: GroupingConfig | None = None,
        limits_config: LimitsConfig | None = None,
        limits: Limits | None = None,
        metrics: DispatchMetrics | None = None,
    ) -> None:
        limits_config = limits_config or LimitsConfig()
        self._safety = safety or SafetyConfig()
        self._prefer_re2 = limits_config.prefer_re2
        self._linear_engine = self._prefer_re2 and linear_engine_available()
        self._limits = limits or calibrate(total_system_memory(), self._linear_engine, limits_config)
        self._metrics = metrics or DispatchMetrics()
        self._lock = threading.RLock()

        self._commands: dict[str, Command] = {}
        self._intents: list[Command] = []
        self._custom_resolver: CustomResolver | None = None
        self._pattern_count = 0
        self._warmed_regex: set[str] = set()
        # normalized literal -> first registered command, rebuilt lazily
        self._exact_index: dict[str, str] | None = None
        self._grouping = GroupingOptimizer(grouping or GroupingConfig(), self._limits, self._lock, self._prefer_re2, self._metrics)

        logger.debug("Registry ready (linear engine: %s, limits: %s)", self._linear_engine, self._limits)


    # Build a registry with configured intents and YAML-declared commands
    @classmethod
    def from_config(cls, config: AppConfig, metrics: DispatchMetrics | None = None) -> Self:
        messages.set_locale(config.dialog.locale)
        registry = cls(
            safety=config.safety,
            grouping=config.grouping,
            limits_config=config.limits,
            metrics=metrics,
        )
        intents = config.dialog.intents if config.dialog.intents is not None else default_intents()
        registry.set_intents(intents)
        for command in config.commands:
            registry.add_command(command.name, list(command.triggers), is_pattern=command.is_pattern)

        logger.info("Loaded %d intents and %d commands from config", len(intents), len(registry))
        return registry


    @property
    def limits(self) -> Limits:
        return self._limits


    @property
    def metrics(self) -> DispatchMetrics:
        return self._metrics


    @property
    def linear_engine(self) -> bool:
        return self._linear_engine


    @property
    def pattern_count(self) -> int:
        return self._pattern_count


    # group name -> member names
    @property
    def groups(self) -> dict[str, tuple[str, ...]]:
        with self._lock:
            return {name: tuple(group.members) for name, group in self._grouping.groups.items()}


    def get_command(self, name: str) -> Command | None:
        return self._commands.get(name)


    def list_commands(self) -> list[Command]:
        with self._lock:
            return list(self._commands.values())


    def group_of(self, name: str) -> str | None:
        return self._grouping.group_of(name)


    def set_custom_resolver(self, resolver: CustomResolver | None) -> None:
        self._custom_resolver = resolver


    def add_command(
        self,
        name: str,
        triggers: Iterable[str | re.Pattern] | str | re.Pattern | None = None,
        callback: CommandCallback | None = None,
        is_pattern: bool = False,
    ) -> RegistrationReport:
        with self._lock:
            if not isinstance(name, str) or not name.strip():
                logger.warning("Rejected command with empty name: %r", name)
                return RegistrationReport(name=str(name), accepted=False, reason="empty_name")

            if isinstance(triggers, (str, re.Pattern)):
                triggers = [triggers]
            values = list(triggers or [])
            if name == FALLBACK_COMMAND and values:
                logger.warning("Rejected fallback command '%s': it cannot have triggers", name)
                return RegistrationReport(name=name, accepted=False, reason="fallback_with_triggers")

            parsed = self._parse_triggers(name, values, is_pattern)
            if parsed is None:
                return RegistrationReport(name=name, accepted=False, reason="malformed_trigger")
            accepted, rejected = parsed
            if values and not accepted:
                logger.error("Rejected command '%s': every trigger was unsafe, invalid or empty", name)
                return RegistrationReport(name=name, accepted=False, rejected_triggers=rejected, reason="no_usable_triggers")

            existing = self._commands.get(name)
            if existing is not None and existing.triggers == accepted and existing.is_pattern == is_pattern and existing.callback is callback:
                return RegistrationReport(name=name, accepted=True, group=existing.group_name, rejected_triggers=rejected)
            if existing is not None:
                logger.debug("Replacing command '%s'", name)
                self._detach(existing)

            command = Command(name=name, triggers=accepted, is_pattern=is_pattern, callback=callback)
            # same key keeps its registration position
            self._commands[name] = command
            self._exact_index = None
            if is_pattern and command.sources:
                self._pattern_count += 1
            group = self._place(command)

            return RegistrationReport(name=name, accepted=True, group=group, rejected_triggers=rejected)


    def remove_command(self, name: str) -> bool:
        with self._lock:
            command = self._commands.get(name)
            if command is None:
                return False

            self._detach(command)
            del self._commands[name]
            self._exact_index = None
            logger.debug("Removed command '%s'", name)

            return True


    # Total reset: commands, groups, pending compile, counters
    def clear_commands(self) -> None:
        with self._lock:
            self._grouping.clear()
            self._commands.clear()
            self._warmed_regex.clear()
            self._pattern_count = 0
            self._exact_index = None
            logger.debug("All commands cleared")


    # Reserved intents are matched before user commands, in the given order
    def set_intents(self, intents: Iterable[IntentConfig]) -> None:
        with self._lock:
            compiled = []
            for intent in intents:
                parsed = self._parse_triggers(intent.name, list(intent.triggers), intent.is_pattern)
                if parsed is None or not parsed[0]:
                    logger.warning("Skipped intent '%s': no usable triggers", intent.name)
                    continue
                command = Command(name=intent.name, triggers=parsed[0], is_pattern=intent.is_pattern)
                if command.sources:
                    command.matcher = compile_pattern([Alternative(s) for s in command.sources], self._prefer_re2)
                compiled.append(command)
            self._intents = compiled


    def flush(self) -> bool:
        with self._lock:
            return self._grouping.flush()


    # Winning command name for user text, or None. Never raises, never suspends.
    def resolve(self, text: str | None) -> str | None:
        with self._lock, self._metrics.measure("resolve"):
            return self._resolve(text or "")


    def stats(self) -> dict[str, Any]:
        with self._lock:
            standalone = [c for c in self._commands.values() if c.group_name is None and c.sources]
            return {
                "commands": len(self._commands),
                "pattern_commands": self._pattern_count,
                "standalone_compiled": sum(1 for c in standalone if c.matcher is not None),
                "standalone_lazy": sum(1 for c in standalone if c.lazy),
                "groups": len(self._grouping.groups),
                "warmed_groups": self._grouping.warmed_count,
                "warmed_regex_commands": len(self._warmed_regex),
                "pending_compile": self._grouping.pending,
                "linear_engine": self._linear_engine,
            }


    def __len__(self) -> int:
        return len(self._commands)


    def __contains__(self, name: str) -> bool:
        return name in self._commands


    def _resolve(self, text: str) -> str | None:
        if self._custom_resolver is not None:
            try:
                name = self._custom_resolver(text)
            except Exception:
                logger.exception("Custom resolver failed, using built-in resolution")
                name = None
            if name is not None:
                return name

        stripped = text.strip()
        normalized = normalize(stripped)
        if normalized:
            name = (
                self._match_intents(normalized, stripped)
                or self._match_literals(normalized)
                or self._grouping.match(stripped)
                or self._match_standalone(stripped)
            )
            if name is not None:
                return name

        return FALLBACK_COMMAND if FALLBACK_COMMAND in self._commands else None


    def _match_intents(self, normalized: str, stripped: str) -> str | None:
        for intent in self._intents:
            if any(literal in normalized for literal in intent.literals):
                return intent.name
            if intent.matcher is not None and intent.matcher.search(stripped):
                return intent.name

        return None


    # Exact equality beats containment, then registration order decides
    def _match_literals(self, normalized: str) -> str | None:
        if self._exact_index is None:
            self._exact_index = {}
            for command in self._commands.values():
                for literal in command.literals:
                    self._exact_index.setdefault(literal, command.name)

        name = self._exact_index.get(normalized)
        if name is not None:
            return name

        for command in self._commands.values():
            for literal in command.literals:
                if literal in normalized:
                    return command.name

        return None


    def _match_standalone(self, stripped: str) -> str | None:
        for command in self._commands.values():
            if command.group_name is not None or not command.sources:
                continue
            if command.lazy:
                self._metrics.increment("lazy_compiles")
                self._compile_standalone(command, eager=False)
            if command.matcher is not None and command.matcher.search(stripped):
                return command.name

        return None


    # Split triggers into tagged values. Returns None on a malformed element.
    def _parse_triggers(self, name: str, values: list, is_pattern: bool) -> tuple[tuple[Trigger, ...], tuple[str, ...]] | None:
        accepted: list[Trigger] = []
        rejected: list[str] = []

        for value in values:
            if isinstance(value, re.Pattern) or (is_pattern and isinstance(value, str)):
                try:
                    source = source_of(value)
                except TypeError:
                    logger.warning("Rejected command '%s': unsupported pattern %r", name, value)
                    return None
                if self._screen(name, source):
                    accepted.append(Trigger.pattern(source))
                else:
                    rejected.append(source)

            elif isinstance(value, str):
                trigger = Trigger.literal(value)
                # an empty literal would be contained in every message
                if not trigger.value:
                    logger.warning("Skipped empty trigger for '%s'", name)
                    rejected.append(value)
                    continue
                accepted.append(trigger)

            else:
                logger.warning("Rejected command '%s': unsupported trigger type %s", name, type(value).__name__)
                return None

        return tuple(accepted), tuple(rejected)


    def _screen(self, name: str, source: str) -> bool:
        reason = find_unsafe_reason(source, self._safety.max_pattern_length, self._safety.max_group_depth)
        if reason is not None:
            self._metrics.increment("unsafe_patterns")
            if self._safety.strict_mode:
                logger.error("Dropped unsafe pattern for '%s' (%s): %.100s", name, reason, source)
                return False
            logger.warning("Keeping possibly unsafe pattern for '%s' (%s): %.100s", name, reason, source)

        if not validate_source(source, self._prefer_re2):
            self._metrics.increment("invalid_patterns")
            logger.error("Dropped invalid pattern for '%s': %.100s", name, source)
            return False

        return True


    # Group the command when batching is active, otherwise give it its own matcher
    def _place(self, command: Command, join_only: bool = False) -> str | None:
        if not command.sources:
            return None

        if command.is_pattern and self._grouping.is_active(self._pattern_count):
            group = self._grouping.assign(command.name, command.sources, join_only=join_only)
            if group is not None:
                command.group_name = group
                command.matcher = None
                command.lazy = False
                self._warmed_regex.discard(command.name)
                return group

        self._compile_standalone(command)
        return None


    def _compile_standalone(self, command: Command, eager: bool = True) -> None:
        if eager and command.name not in self._warmed_regex and len(self._warmed_regex) >= self._limits.max_warmed_regex_commands:
            command.lazy = True
            self._metrics.increment("deferred_commands")
            logger.debug("Warm limit (%d) reached, '%s' compiles on first use", self._limits.max_warmed_regex_commands, command.name)
            return

        command.lazy = False
        with self._metrics.measure("compile"):
            compiled = compile_pattern([Alternative(source) for source in command.sources], self._prefer_re2)
        if compiled is None:
            self._metrics.increment("compile_failures")
            logger.error("Command '%s' failed to compile, keeping previous matcher", command.name)
            return

        command.matcher = compiled
        if eager:
            self._warmed_regex.add(command.name)


    def _detach(self, command: Command) -> None:
        if command.is_pattern and command.sources:
            self._pattern_count -= 1
        self._warmed_regex.discard(command.name)

        if command.group_name is None:
            return

        command.group_name = None
        # a sole survivor joins the open group if there is room, else goes standalone
        for survivor in self._grouping.remove(command.name):
            survivor_command = self._commands.get(survivor)
            if survivor_command is None:
                continue
            survivor_command.group_name = None
            self._place(survivor_command, join_only=True)
