# src/runscripts/services/runner/run_script.py
from __future__ import annotations
import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Optional

from runscripts.adapters.process import AsyncioProcessLauncher
from runscripts.config import const
from runscripts.core.aio import merge_async_iterables
from runscripts.core.clock import elapsed_ms, iso, utc_now
from runscripts.domain import ExitRecord, OutputChunk, OutputStreamName, ScriptSpec
from runscripts.ports import KillSignal, ProcessHandle, ProcessLauncher
from runscripts.services.runner.execution import create_script_executor
from runscripts.services.runner.shell import resolve_script_shell

_log = logging.getLogger("runscripts.runner")


@dataclass(slots=True)
class RunScriptResult:
    """Handle of one launched script.

    ``output`` is single-use: iterate it once with ``async for``.
    ``exit`` resolves to the ``ExitRecord`` after the process exited and its
    output was fully read from the pipes.
    """

    output: AsyncIterator[OutputChunk]
    exit: "asyncio.Task[ExitRecord]"
    metadata: Any
    process: ProcessHandle

    def kill(self, exit: Optional[KillSignal] = None) -> None:
        self.process.kill(exit)


async def _chunks(stream_name: OutputStreamName, stream: AsyncIterator[bytes]) -> AsyncIterator[OutputChunk]:
    async for raw in stream:
        yield OutputChunk(stream_name=stream_name, raw=bytes(raw))


async def _await_exit(handle: ProcessHandle, cleanup: Callable[[], None], start: datetime, metadata: Any) -> ExitRecord:
    try:
        outcome = await handle.wait()
    finally:
        cleanup()
    end = utc_now()
    record = ExitRecord(
        exit_code=outcome.code,
        signal=outcome.signal,
        success=outcome.code == 0,
        start_time_iso=iso(start),
        end_time_iso=iso(end),
        duration_ms=elapsed_ms(start, end),
        metadata=metadata,
    )
    _log.debug("script.exited", extra={"extra": {"pid": handle.pid, "exit_code": record.exit_code, "signal": record.signal}})
    return record


async def run_script(
    spec: ScriptSpec,
    *,
    shell: Optional[str] = None,
    launcher: Optional[ProcessLauncher] = None,
) -> RunScriptResult:
    """
    Запускает одну команду и сразу возвращает поток вывода, будущий ExitRecord и kill.
    Ошибки материализации команды и запуска процесса пробрасываются отсюда.
    Ненулевой код выхода не исключение, а ExitRecord(success=False).
    """
    shell = resolve_script_shell(shell)
    start = utc_now()
    executor = create_script_executor(spec.command, shell)

    env = {
        **os.environ,
        **dict(spec.env or {}),
        const.ENV_SHELL_OPTION: shell,
        "FORCE_COLOR": "1",
    }
    cwd = spec.working_directory or os.getcwd()

    try:
        handle = await (launcher or AsyncioProcessLauncher()).launch(executor.argv, cwd=cwd, env=env)
    except BaseException:
        executor.cleanup()
        raise

    exit_task = asyncio.create_task(_await_exit(handle, executor.cleanup, start, spec.metadata))
    output = merge_async_iterables([_chunks("stdout", handle.stdout), _chunks("stderr", handle.stderr)])
    return RunScriptResult(output=output, exit=exit_task, metadata=spec.metadata, process=handle)
