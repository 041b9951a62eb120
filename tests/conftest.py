# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import pytest
from switchboard import messages
from switchboard.config import AppConfig, DialogConfig, GroupingConfig, LimitsConfig, SafetyConfig
from switchboard.limits import Limits
from switchboard.metrics import DispatchMetrics
from switchboard.registry import CommandRegistry

# Tests use the stdlib engine so results do not depend on the optional re2 install
STDLIB_ONLY = LimitsConfig(prefer_re2=False)


@pytest.fixture(autouse=True)
def restore_locale():
    messages.set_locale("ru")
    yield
    messages.set_locale("ru")


@pytest.fixture
def safety_cfg() -> SafetyConfig:
    return SafetyConfig()


@pytest.fixture
def grouping_cfg() -> GroupingConfig:
    return GroupingConfig()


@pytest.fixture
def dialog_cfg() -> DialogConfig:
    return DialogConfig()


@pytest.fixture
def app_cfg() -> AppConfig:
    return AppConfig()


@pytest.fixture
def big_limits() -> Limits:
    return Limits(max_warmed_groups=1000, max_warmed_regex_commands=10000)


@pytest.fixture
def metrics() -> DispatchMetrics:
    return DispatchMetrics()


@pytest.fixture
def registry(big_limits, metrics):
    reg = CommandRegistry(limits_config=STDLIB_ONLY, limits=big_limits, metrics=metrics)
    yield reg
    reg.clear_commands()


# Groups from the second pattern command on, compiles synchronously
@pytest.fixture
def grouped_registry(big_limits, metrics):
    grouping = GroupingConfig(command_threshold=2, debounce_ms=0)
    reg = CommandRegistry(grouping=grouping, limits_config=STDLIB_ONLY, limits=big_limits, metrics=metrics)
    yield reg
    reg.clear_commands()
