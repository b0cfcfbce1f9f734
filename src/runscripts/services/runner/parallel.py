# src/runscripts/services/runner/parallel.py
from __future__ import annotations
import logging
import math
import os
from typing import Any, Mapping, Optional, Union

import psutil

from runscripts.config import const
from runscripts.errors import ParallelMaxError

_log = logging.getLogger("runscripts.parallel")

ParallelMaxValue = Union[int, float, str]
# parallel= из run_scripts: False | True | значение | {"max": значение}
ParallelOption = Union[bool, int, str, Mapping[str, Any], None]


def available_parallelism() -> int:
    """Число доступных процессу логических CPU (affinity, иначе cpu_count), не меньше 1."""
    try:
        count = len(psutil.Process().cpu_affinity())
    except (AttributeError, NotImplementedError, psutil.Error):
        # macOS: cpu_affinity нет
        count = psutil.cpu_count(logical=True) or 0
    return max(1, count)


def _as_number(value: ParallelMaxValue) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def determine_parallel_max(value: ParallelMaxValue, error_message_suffix: str = "") -> Union[int, float]:
    """Resolve a concurrency limit value to a count >= 1 (``math.inf`` for "unbounded").

    Accepts a count (int or numeric string, floored), ``"auto"`` (available
    processing units), ``"unbounded"`` or a percentage such as ``"50%"`` of
    the available processing units.
    """
    number = _as_number(value)
    if number is not None:
        if math.isnan(number) or number < 1:
            raise ParallelMaxError(f"Parallel max value must be at least 1{error_message_suffix}", value=value)
        if math.isinf(number):
            return math.inf
        return int(math.floor(number))

    text = str(value).strip().lower() if isinstance(value, str) else None
    if text == const.PARALLEL_UNBOUNDED:
        return math.inf

    if text == const.PARALLEL_AUTO:
        return available_parallelism()

    if text is not None and text.endswith("%"):
        try:
            percentage = float(text[:-1])
        except ValueError:
            percentage = math.nan
        if math.isnan(percentage) or percentage <= 0 or percentage > 100:
            raise ParallelMaxError(
                f"Parallel max value must be a number greater than 0 and less than or equal to 100{error_message_suffix}",
                value=value,
            )
        return max(1, math.floor(available_parallelism() * percentage / 100))

    raise ParallelMaxError(f"Invalid parallel max value: {value!r}{error_message_suffix}", value=value)


def format_parallel_max(value: Union[int, float]) -> str:
    return const.PARALLEL_UNBOUNDED if math.isinf(value) else str(int(value))


def default_parallel_max_hint(environ: Optional[Mapping[str, str]] = None) -> ParallelMaxValue:
    """
    Значение для parallel=True: "auto", либо уже разрешённый лимит внешнего запуска
    (вложенный runscripts не пересчитывает auto по числу CPU машины).
    """
    env = os.environ if environ is None else environ
    if env.get(const.ENV_PARALLEL_RESOLVED) == "1":
        inherited = env.get(const.ENV_PARALLEL_MAX)
        if inherited:
            try:
                determine_parallel_max(inherited)
            except ParallelMaxError:
                _log.warning("parallel.inherited_invalid", extra={"extra": {"value": inherited}})
            else:
                return inherited
    return const.PARALLEL_AUTO


def resolve_parallel_option(parallel: ParallelOption) -> Union[int, float]:
    """parallel из run_scripts: False | True | значение | {"max": значение}."""
    if parallel is None or parallel is False:
        return 1
    if parallel is True:
        return determine_parallel_max(default_parallel_max_hint())
    if isinstance(parallel, Mapping):
        if "max" not in parallel:
            raise ParallelMaxError("Parallel options must contain 'max'", value=parallel)
        return determine_parallel_max(parallel["max"])
    return determine_parallel_max(parallel)
