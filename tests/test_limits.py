# Copyright (c) 2026 Alessandro Orrù
# Licensed under MIT

import pytest
from switchboard.config import LimitsConfig
from switchboard.limits import DEFAULT_TOTAL_MEMORY, Limits, calibrate, total_system_memory

GIB = 1024 ** 3


class TestCalibrate:
    def test_linear_engine(self):
        limits = calibrate(8 * GIB, linear_engine=True)
        assert limits == Limits(max_warmed_groups=3200, max_warmed_regex_commands=8000)

    def test_backtracking_engine_shrinks(self):
        linear = calibrate(8 * GIB, linear_engine=True)
        backtracking = calibrate(8 * GIB, linear_engine=False)
        assert backtracking.max_warmed_regex_commands == 4000
        assert backtracking.max_warmed_groups == 160
        assert backtracking.max_warmed_groups * 10 <= linear.max_warmed_groups

    def test_clamped_low(self):
        limits = calibrate(256 * 1024 ** 2, linear_engine=True)
        assert limits == Limits(max_warmed_groups=100, max_warmed_regex_commands=500)

    def test_clamped_low_backtracking(self):
        limits = calibrate(256 * 1024 ** 2, linear_engine=False)
        assert limits == Limits(max_warmed_groups=5, max_warmed_regex_commands=250)

    def test_clamped_high(self):
        limits = calibrate(64 * GIB, linear_engine=True)
        assert limits == Limits(max_warmed_groups=4000, max_warmed_regex_commands=10000)

    @pytest.mark.parametrize("memory", [None, 0, -1])
    def test_unknown_memory_uses_default(self, memory):
        assert calibrate(memory, linear_engine=True) == calibrate(DEFAULT_TOTAL_MEMORY, linear_engine=True)
        assert calibrate(memory, linear_engine=True) == Limits(max_warmed_groups=800, max_warmed_regex_commands=2000)

    def test_config_overrides(self):
        cfg = LimitsConfig(max_warmed_groups=3, max_warmed_regex_commands=7)
        assert calibrate(8 * GIB, linear_engine=True, config=cfg) == Limits(max_warmed_groups=3, max_warmed_regex_commands=7)

    def test_partial_override(self):
        cfg = LimitsConfig(max_warmed_groups=0)
        limits = calibrate(8 * GIB, linear_engine=False, config=cfg)
        assert limits.max_warmed_groups == 0
        assert limits.max_warmed_regex_commands == 4000

    def test_frozen(self):
        limits = calibrate(None, linear_engine=True)
        with pytest.raises(AttributeError):
            limits.max_warmed_groups = 1


class TestTotalSystemMemory:
    def test_positive_or_unknown(self):
        memory = total_system_memory()
        assert memory is None or memory > 0
