# src/runscripts/adapters/process/asyncio_launcher.py
from __future__ import annotations
import asyncio
import logging
import os
import signal
from typing import List, Mapping, Optional, Sequence

import psutil

from runscripts.core.aio import AsyncIterableQueue
from runscripts.domain import ExitOutcome
from runscripts.ports import KillSignal, ProcessHandle, ProcessLauncher

_log = logging.getLogger("runscripts.process")

_IS_POSIX = os.name == "posix"
_READ_CHUNK = 64 * 1024


def resolve_signal(sig: Optional[KillSignal] = None) -> signal.Signals:
    """None -> SIGTERM; номер, имя ("SIGKILL"/"kill") или signal.Signals."""
    if sig is None:
        return signal.SIGTERM
    if isinstance(sig, signal.Signals):
        return sig
    if isinstance(sig, int):
        return signal.Signals(sig)
    name = str(sig).strip().upper()
    if not name.startswith("SIG"):
        name = "SIG" + name
    try:
        return signal.Signals[name]
    except KeyError:
        raise ValueError(f"unknown signal: {sig!r}") from None


def _outcome(returncode: int) -> ExitOutcome:
    # asyncio на POSIX: -N означает «убит сигналом N»; отдаём как шелл: 128 + N
    if returncode < 0:
        signum = -returncode
        try:
            name: Optional[str] = signal.Signals(signum).name
        except ValueError:
            name = None
        return ExitOutcome(code=128 + signum, signal=name)
    return ExitOutcome(code=returncode, signal=None)


class AsyncioProcessHandle(ProcessHandle):
    """
    Обёртка над asyncio.subprocess.Process:
      - stdout/stderr непрерывно вычитываются в неограниченные очереди (процесс не блокируется на pipe)
      - wait() завершается после выхода процесса И EOF обоих потоков
    """

    def __init__(self, proc: asyncio.subprocess.Process) -> None:
        self._proc = proc
        self.pid = proc.pid
        self.stdout: AsyncIterableQueue[bytes] = AsyncIterableQueue()
        self.stderr: AsyncIterableQueue[bytes] = AsyncIterableQueue()
        self._pumps: List[asyncio.Task] = [
            asyncio.create_task(self._pump(proc.stdout, self.stdout)),
            asyncio.create_task(self._pump(proc.stderr, self.stderr)),
        ]
        self._exit: asyncio.Task = asyncio.create_task(self._wait_exit())

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.returncode

    @staticmethod
    async def _pump(reader: Optional[asyncio.StreamReader], queue: AsyncIterableQueue[bytes]) -> None:
        try:
            if reader is None:
                return
            while True:
                chunk = await reader.read(_READ_CHUNK)
                if not chunk:
                    break
                queue.push(chunk)
        finally:
            queue.close()

    async def _wait_exit(self) -> ExitOutcome:
        returncode = await self._proc.wait()
        await asyncio.gather(*self._pumps)
        return _outcome(returncode)

    async def wait(self) -> ExitOutcome:
        return await asyncio.shield(self._exit)

    def kill(self, sig: Optional[KillSignal] = None) -> None:
        signum = resolve_signal(sig)
        if self._proc.returncode is not None:
            return
        try:
            children = psutil.Process(self.pid).children(recursive=True)
        except psutil.NoSuchProcess:
            return

        # сначала сам процесс (чтобы шелл отчитался сигналом), затем потомков
        try:
            if _IS_POSIX:
                self._proc.send_signal(signum)
            else:
                self._proc.terminate()
        except ProcessLookupError:
            return
        for child in children:
            try:
                if _IS_POSIX:
                    child.send_signal(signum)
                else:
                    child.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                pass
        _log.debug("process.kill", extra={"extra": {"pid": self.pid, "signal": signum.name, "children": len(children)}})


class AsyncioProcessLauncher(ProcessLauncher):
    async def launch(
        self,
        argv: Sequence[str],
        *,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> AsyncioProcessHandle:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _log.debug("process.spawned", extra={"extra": {"pid": proc.pid, "argv": list(argv), "cwd": cwd}})
        return AsyncioProcessHandle(proc)
