# src/runscripts/services/runner/run_scripts.py
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Sequence, Union

from runscripts.config import const
from runscripts.core.aio import AsyncIterableQueue, Trigger
from runscripts.core.clock import elapsed_ms, iso, utc_now
from runscripts.domain import ExitRecord, OutputEnvelope, ScriptSpec, Summary
from runscripts.errors import ScriptLaunchError
from runscripts.ports import EventBus, KillSignal, ProcessHandle, ProcessLauncher
from runscripts.services.eventbus import emit
from runscripts.services.runner.parallel import ParallelOption, format_parallel_max, resolve_parallel_option
from runscripts.services.runner.run_script import RunScriptResult, run_script
from runscripts.services.runner.scheduler import AdmissionScheduler
from runscripts.services.runner.shell import resolve_script_shell

_log = logging.getLogger("runscripts.run")

_SOURCE = "runscripts.run"


@dataclass(frozen=True, slots=True)
class ScriptStartDetails:
    index: int
    metadata: Any
    exit: "asyncio.Task[ExitRecord]"
    process: ProcessHandle
    kill: Callable[..., None]


@dataclass(slots=True)
class RunScriptsResult:
    output: AsyncIterableQueue[OutputEnvelope]
    summary: "asyncio.Task[Summary]"
    _run: "_ScriptsRun"

    def kill(self, index: Optional[int] = None, exit: Optional[KillSignal] = None) -> None:
        """Kill one running script by index, or every running script when no index is given.

        Scripts not admitted yet are unaffected and will still be started.
        """
        self._run.kill(index=index, exit=exit)

    @property
    def parallel_max(self) -> Union[int, float]:
        return self._run.scheduler.limit


class _ScriptsRun:
    def __init__(
        self,
        scripts: Sequence[ScriptSpec],
        *,
        parallel_max: Union[int, float],
        shell: str,
        on_script_start: Optional[Callable[[ScriptStartDetails], Any]],
        bus: Optional[EventBus],
        launcher: Optional[ProcessLauncher],
    ) -> None:
        self.scripts = list(scripts)
        self.start_time = utc_now()
        self.shell = shell
        self.parallel_max = parallel_max
        self.on_script_start = on_script_start
        self.bus = bus
        self.launcher = launcher

        count = len(self.scripts)
        # триггеры создаются до первого запуска
        self.triggers: List[Trigger] = [Trigger(i) for i in range(count)]
        self.results: List[Optional[RunScriptResult]] = [None] * count
        self.queue: AsyncIterableQueue[OutputEnvelope] = AsyncIterableQueue()
        self.scheduler = AdmissionScheduler(count, parallel_max, self._launch)
        self.coordinator: Optional[asyncio.Task] = None

    # ---------- допуск ----------

    async def _launch(self, index: int) -> "asyncio.Task[ExitRecord]":
        spec = self.scripts[index]
        env = {
            **dict(spec.env or {}),
            const.ENV_PARALLEL_MAX: format_parallel_max(self.parallel_max),
            const.ENV_PARALLEL_RESOLVED: "1",
        }
        try:
            result = await run_script(replace(spec, env=env), shell=self.shell, launcher=self.launcher)
        except Exception as e:
            started = [r for r in self.results if r is not None]
            raise ScriptLaunchError(index, e, started=started) from e

        self.results[index] = result
        self.triggers[index].fire()
        result.exit.add_done_callback(lambda task, i=index: self._on_exit(i, task))
        emit(self.bus, "script.start", {"index": index, "pid": result.process.pid, "metadata": spec.metadata}, _SOURCE)
        return result.exit

    def _on_exit(self, index: int, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            return
        record: ExitRecord = task.result()
        emit(
            self.bus,
            "script.exit",
            {"index": index, "exit_code": record.exit_code, "signal": record.signal, "success": record.success},
            _SOURCE,
        )

    def abort(self, exc: BaseException) -> None:
        """Launch failed: nothing else will be admitted, pending triggers fail with the same error."""
        for trigger in self.triggers:
            trigger.fail(exc)
        emit(self.bus, "run.error", {"error": repr(exc), "index": getattr(exc, "index", None)}, _SOURCE)

    # ---------- сбор вывода ----------

    async def _drain(self, index: int) -> None:
        result = self.results[index]
        assert result is not None
        metadata = self.scripts[index].metadata
        async for chunk in result.output:
            self.queue.push(OutputEnvelope(output_chunk=chunk, metadata=metadata, index=index))

    def _notify_start(self, index: int) -> None:
        if self.on_script_start is None:
            return
        result = self.results[index]
        assert result is not None
        details = ScriptStartDetails(
            index=index,
            metadata=self.scripts[index].metadata,
            exit=result.exit,
            process=result.process,
            kill=result.kill,
        )
        try:
            self.on_script_start(details)
        except Exception as e:
            # ошибка колбэка не обрывает вывод и сводку
            _log.exception("run.on_script_start_failed", extra={"extra": {"index": index}})
            emit(self.bus, "run.error", {"error": repr(e), "index": index, "stage": "on_script_start"}, _SOURCE)

    async def _coordinate(self) -> None:
        drains: List[asyncio.Task] = []
        pending = {t.future: t for t in self.triggers}
        try:
            while pending:
                done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for fut in sorted(done, key=lambda f: pending[f].index):
                    # сработавший триггер больше не участвует в ожидании
                    trigger = pending.pop(fut)
                    if fut.exception() is not None:
                        continue
                    drains.append(asyncio.create_task(self._drain(trigger.index)))
                    self._notify_start(trigger.index)
            await asyncio.gather(*drains)
        finally:
            self.queue.close()

    def start_coordinator(self) -> None:
        self.coordinator = asyncio.create_task(self._coordinate())

    # ---------- итог ----------

    async def summarize(self) -> Summary:
        assert self.coordinator is not None
        try:
            await self.scheduler.run()
        except ScriptLaunchError as e:
            self.abort(e)
            await self.coordinator
            raise
        await self.coordinator

        records: List[ExitRecord] = list(await asyncio.gather(*(r.exit for r in self.results if r is not None)))
        end = utc_now()
        success_count = sum(1 for r in records if r.success)
        summary = Summary(
            total_count=len(records),
            success_count=success_count,
            failure_count=len(records) - success_count,
            all_success=all(r.success for r in records),
            start_time_iso=iso(self.start_time),
            end_time_iso=iso(end),
            duration_ms=elapsed_ms(self.start_time, end),
            script_results=records,
        )
        emit(
            self.bus,
            "run.summary",
            {"total": summary.total_count, "success": summary.success_count, "failure": summary.failure_count},
            _SOURCE,
        )
        _log.info(
            "run.finished",
            extra={"extra": {"total": summary.total_count, "failed": summary.failure_count, "duration_ms": summary.duration_ms}},
        )
        return summary

    # ---------- kill ----------

    def kill(self, index: Optional[int] = None, exit: Optional[KillSignal] = None) -> None:
        if index is not None:
            result = self.results[index] if 0 <= index < len(self.results) else None
            # ещё не запущен или уже вышел: no-op
            if result is not None:
                result.kill(exit)
            return
        for result in self.results:
            if result is not None:
                result.kill(exit)


async def run_scripts(
    scripts: Sequence[ScriptSpec],
    *,
    parallel: ParallelOption = False,
    shell: Optional[str] = None,
    on_script_start: Optional[Callable[[ScriptStartDetails], Any]] = None,
    bus: Optional[EventBus] = None,
    launcher: Optional[ProcessLauncher] = None,
) -> RunScriptsResult:
    """
    Запускает список скриптов с ограничением параллельности.

    Возвращается сразу после запуска первой партии:
      - output: общий поток OutputEnvelope (в порядке поступления, помечен индексом/metadata)
      - summary: задача с итоговой сводкой (ExitRecord в исходном порядке скриптов)
      - kill(index=None, exit=None): остановить один или все запущенные скрипты

    Ошибки конфигурации (parallel/shell) поднимаются до запуска чего-либо.
    Ошибка запуска в первой партии поднимается отсюда (ScriptLaunchError),
    в последующих при await summary.
    """
    resolved_shell = resolve_script_shell(shell)
    parallel_max = resolve_parallel_option(parallel)

    run = _ScriptsRun(
        scripts,
        parallel_max=parallel_max,
        shell=resolved_shell,
        on_script_start=on_script_start,
        bus=bus,
        launcher=launcher,
    )
    _log.debug(
        "run.starting",
        extra={"extra": {"count": len(run.scripts), "parallel_max": format_parallel_max(parallel_max), "shell": resolved_shell}},
    )
    run.start_coordinator()
    try:
        await run.scheduler.fill()
    except ScriptLaunchError as e:
        run.abort(e)
        raise

    return RunScriptsResult(output=run.queue, summary=asyncio.create_task(run.summarize()), _run=run)
