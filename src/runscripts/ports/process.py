from __future__ import annotations
from typing import AsyncIterator, Mapping, Optional, Protocol, Sequence, Union
import signal as _signal

from runscripts.domain import ExitOutcome

KillSignal = Union[int, str, _signal.Signals]


class ProcessHandle(Protocol):
    """One running child process.

    ``stdout``/``stderr`` are live byte streams; ``wait()`` resolves once the
    process exited and both streams reached EOF.
    """

    pid: int
    stdout: AsyncIterator[bytes]
    stderr: AsyncIterator[bytes]

    async def wait(self) -> ExitOutcome: ...

    def kill(self, sig: Optional[KillSignal] = None) -> None: ...


class ProcessLauncher(Protocol):
    async def launch(
        self,
        argv: Sequence[str],
        *,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> ProcessHandle: ...
