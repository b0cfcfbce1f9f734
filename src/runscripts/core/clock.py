from __future__ import annotations
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Текущее время UTC с точностью до миллисекунд (как в ISO-отметках)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def iso(ts: datetime) -> str:
    return ts.isoformat(timespec="milliseconds")


def elapsed_ms(start: datetime, end: datetime) -> int:
    return (end - start) // timedelta(milliseconds=1)
