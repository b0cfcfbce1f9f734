# tests/test_parallel.py
import math
import pytest

from runscripts.config import const
from runscripts.errors import ParallelMaxError
from runscripts.services.runner import parallel as parallel_mod
from runscripts.services.runner.parallel import (
    available_parallelism,
    default_parallel_max_hint,
    determine_parallel_max,
    format_parallel_max,
    resolve_parallel_option,
)


@pytest.fixture
def cpus(monkeypatch):
    monkeypatch.setattr(parallel_mod, "available_parallelism", lambda: 8)
    return 8


def test_available_parallelism_is_positive():
    assert available_parallelism() >= 1


@pytest.mark.parametrize("value, expected", [(1, 1), (3, 3), ("4", 4), (2.9, 2), ("2.5", 2)])
def test_literal_counts_are_floored(value, expected):
    assert determine_parallel_max(value) == expected


@pytest.mark.parametrize("value", [0, -1, "0", 0.5, "nan"])
def test_counts_below_one_are_rejected(value):
    with pytest.raises(ParallelMaxError, match="at least 1"):
        determine_parallel_max(value)


def test_keywords(cpus):
    assert determine_parallel_max("auto") == cpus
    assert determine_parallel_max("unbounded") == math.inf


@pytest.mark.parametrize("pct, expected", [("100%", 8), ("50%", 4), ("30%", 2), ("1%", 1)])
def test_percentages(cpus, pct, expected):
    assert determine_parallel_max(pct) == expected


@pytest.mark.parametrize("pct", ["0%", "101%", "abc%", "-5%"])
def test_invalid_percentages(cpus, pct):
    with pytest.raises(ParallelMaxError, match="greater than 0"):
        determine_parallel_max(pct)


@pytest.mark.parametrize("value", ["fast", "", None, [2]])
def test_invalid_values(value):
    with pytest.raises(ParallelMaxError):
        determine_parallel_max(value)


def test_error_suffix_is_appended():
    with pytest.raises(ParallelMaxError, match=r"at least 1 \(from --parallel\)"):
        determine_parallel_max(0, " (from --parallel)")


def test_half_of_machine_never_below_one(monkeypatch):
    monkeypatch.setattr(parallel_mod, "available_parallelism", lambda: 1)
    assert determine_parallel_max("50%") == 1


def test_format_parallel_max():
    assert format_parallel_max(3) == "3"
    assert format_parallel_max(math.inf) == "unbounded"


def test_default_hint_is_auto_without_inherited_value():
    assert default_parallel_max_hint({}) == "auto"
    # лимит без флага «уже разрешено» не наследуется
    assert default_parallel_max_hint({const.ENV_PARALLEL_MAX: "3"}) == "auto"


def test_default_hint_reuses_resolved_outer_value():
    env = {const.ENV_PARALLEL_MAX: "3", const.ENV_PARALLEL_RESOLVED: "1"}
    assert default_parallel_max_hint(env) == "3"
    env[const.ENV_PARALLEL_MAX] = "unbounded"
    assert default_parallel_max_hint(env) == "unbounded"


def test_default_hint_ignores_invalid_inherited_value():
    env = {const.ENV_PARALLEL_MAX: "zero", const.ENV_PARALLEL_RESOLVED: "1"}
    assert default_parallel_max_hint(env) == "auto"


def test_resolve_parallel_option(cpus, monkeypatch):
    assert resolve_parallel_option(False) == 1
    assert resolve_parallel_option(None) == 1
    assert resolve_parallel_option(True) == cpus
    assert resolve_parallel_option({"max": 2}) == 2
    assert resolve_parallel_option("unbounded") == math.inf
    monkeypatch.setenv(const.ENV_PARALLEL_RESOLVED, "1")
    monkeypatch.setenv(const.ENV_PARALLEL_MAX, "5")
    assert resolve_parallel_option(True) == 5
    with pytest.raises(ParallelMaxError):
        resolve_parallel_option({"limit": 2})
