# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

from dataclasses import dataclass, field
from pathlib import Path
from typing import Self
import yaml


@dataclass(frozen=True)
class SafetyConfig:
    strict_mode: bool = True
    max_pattern_length: int = 1000
    max_group_depth: int = 5

    def __post_init__(self) -> None:
        if self.max_pattern_length < 1:
            raise ValueError(f"max_pattern_length must be >= 1, got {self.max_pattern_length}")
        if self.max_group_depth < 1:
            raise ValueError(f"max_group_depth must be >= 1, got {self.max_group_depth}")


@dataclass(frozen=True)
class GroupingConfig:
    enabled: bool = True
    command_threshold: int = 300
    max_group_size: int = 60
    max_source_chars: int = 850
    debounce_ms: int = 100

    def __post_init__(self) -> None:
        if self.command_threshold < 1:
            raise ValueError(f"command_threshold must be >= 1, got {self.command_threshold}")
        if self.max_group_size < 1:
            raise ValueError(f"max_group_size must be >= 1, got {self.max_group_size}")
        if self.max_source_chars < 1:
            raise ValueError(f"max_source_chars must be >= 1, got {self.max_source_chars}")
        if self.debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {self.debounce_ms}")


    @property
    def debounce_sec(self) -> float:
        return self.debounce_ms / 1000


@dataclass(frozen=True)
class LimitsConfig:
    prefer_re2: bool = True
    max_warmed_groups: int | None = None
    max_warmed_regex_commands: int | None = None

    def __post_init__(self) -> None:
        if self.max_warmed_groups is not None and self.max_warmed_groups < 0:
            raise ValueError(f"max_warmed_groups must be >= 0, got {self.max_warmed_groups}")
        if self.max_warmed_regex_commands is not None and self.max_warmed_regex_commands < 0:
            raise ValueError(f"max_warmed_regex_commands must be >= 0, got {self.max_warmed_regex_commands}")


# A command or intent declared in YAML (no callback)
@dataclass(frozen=True)
class IntentConfig:
    name: str
    triggers: tuple[str, ...] = ()
    is_pattern: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError(f"name must be a non-empty string, got {self.name!r}")
        # YAML gives lists, keep the dataclass hashable
        object.__setattr__(self, "triggers", tuple(self.triggers))


    @classmethod
    def from_dict(cls, raw: dict) -> Self:
        triggers = raw.get("triggers", raw.get("slots", ()))
        if isinstance(triggers, str):
            triggers = (triggers,)
        return cls(name=raw.get("name", ""), triggers=tuple(triggers), is_pattern=bool(raw.get("is_pattern", False)))


@dataclass(frozen=True)
class DialogConfig:
    locale: str = "ru"
    welcome_text: tuple[str, ...] = ()
    help_text: tuple[str, ...] = ()
    # None means the built-in welcome/help intents of the locale
    intents: tuple[IntentConfig, ...] | None = None

    def __post_init__(self) -> None:
        for name in ("welcome_text", "help_text"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, (value,))
            else:
                object.__setattr__(self, name, tuple(value))


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        valid = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if self.level.upper() not in valid:
            raise ValueError(f"level must be one of {valid}, got '{self.level}'")


@dataclass(frozen=True)
class AppConfig:
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    grouping: GroupingConfig = field(default_factory=GroupingConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    dialog: DialogConfig = field(default_factory=DialogConfig)
    commands: tuple[IntentConfig, ...] = ()
    logging: LoggingConfig = field(default_factory=LoggingConfig)


    # Load configuration from YAML file, merging with defaults
    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        config_path = Path(path)
        if not config_path.exists():
            return cls()

        with config_path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        dialog_raw = dict(raw.get("dialog", {}))
        if "intents" in dialog_raw and dialog_raw["intents"] is not None:
            dialog_raw["intents"] = tuple(IntentConfig.from_dict(i) for i in dialog_raw["intents"])

        return cls(
            safety=SafetyConfig(**raw.get("safety", {})),
            grouping=GroupingConfig(**raw.get("grouping", {})),
            limits=LimitsConfig(**raw.get("limits", {})),
            dialog=DialogConfig(**dialog_raw),
            commands=tuple(IntentConfig.from_dict(c) for c in raw.get("commands", []) or []),
            logging=LoggingConfig(**raw.get("logging", {})),
        )
