"""Exceptions raised by runscripts before or while launching scripts.

A script that exits non-zero is never an exception: it is reported as a
failed ``ExitRecord`` in the run summary.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

__all__ = [
    "ParallelMaxError",
    "ShellOptionError",
    "ScriptLaunchError",
]


class ParallelMaxError(ValueError):
    """Raised when a concurrency limit value cannot be resolved to a count >= 1."""

    def __init__(self, message: str, *, value: Any = None) -> None:
        self.value = value
        super().__init__(message)


class ShellOptionError(ValueError):
    """Raised for an unknown shell choice."""

    def __init__(self, shell: str, accepted: Sequence[str]) -> None:
        self.shell = shell
        self.accepted = tuple(accepted)
        super().__init__(f"Invalid shell option: {shell} (accepted values: {', '.join(self.accepted)})")


class ScriptLaunchError(RuntimeError):
    """Raised when a script could not be materialized or spawned.

    ``started`` holds the results of scripts admitted before the failure;
    they are not affected by it and keep running.
    """

    def __init__(self, index: int, cause: BaseException, *, started: Optional[Sequence[Any]] = None) -> None:
        self.index = index
        self.started = list(started or [])
        super().__init__(f"failed to launch script #{index}: {cause!r}")
        self.__cause__ = cause
