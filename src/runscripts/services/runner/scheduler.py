# src/runscripts/services/runner/scheduler.py
from __future__ import annotations
import asyncio
import logging
import math
from typing import Awaitable, Callable, Set, Union

from runscripts.errors import ParallelMaxError

_log = logging.getLogger("runscripts.scheduler")

# launch(index) -> awaitable выхода запущенного скрипта
LaunchFn = Callable[[int], Awaitable[Awaitable]]


class AdmissionScheduler:
    """
    Допуск скриптов к запуску с ограничением параллельности:
      - не больше `limit` скриптов с незавершённым выходом одновременно
      - запуск строго по порядку индексов (FIFO)
      - освободился слот (выход скрипта), сразу запускается следующий
    Ошибка launch() пробрасывается как есть: слот не занимается, индекс не сдвигается,
    дальнейший допуск прекращается.
    """

    def __init__(self, total: int, limit: Union[int, float], launch: LaunchFn) -> None:
        if not (limit >= 1):
            raise ParallelMaxError("Parallel max value must be at least 1", value=limit)
        self._total = total
        self._limit = limit
        self._launch = launch
        self._next = 0
        self._running: Set[asyncio.Future] = set()
        self._lock = asyncio.Lock()
        self._failed = False
        self.peak = 0

    @property
    def limit(self) -> Union[int, float]:
        return self._limit

    @property
    def admitted_count(self) -> int:
        return self._next

    @property
    def pending_count(self) -> int:
        return self._total - self._next

    @property
    def running_count(self) -> int:
        self._prune()
        return len(self._running)

    @property
    def unbounded(self) -> bool:
        return math.isinf(self._limit)

    def _prune(self) -> None:
        self._running = {f for f in self._running if not f.done()}

    async def fill(self) -> int:
        """Admit pending scripts in index order while slots are free; return how many were admitted."""
        admitted = 0
        async with self._lock:
            if self._failed:
                return 0
            self._prune()
            while self._next < self._total and len(self._running) < self._limit:
                index = self._next
                try:
                    exit_waiter = await self._launch(index)
                except BaseException:
                    self._failed = True
                    raise
                self._next += 1
                self._running.add(asyncio.ensure_future(exit_waiter))
                self.peak = max(self.peak, len(self._running))
                admitted += 1
                _log.debug(
                    "scheduler.admitted",
                    extra={"extra": {"index": index, "running": len(self._running), "pending": self.pending_count}},
                )
        return admitted

    async def run(self) -> None:
        """Keep admitting until every script has been admitted (does not wait for the last exits)."""
        await self.fill()
        while self._next < self._total:
            self._prune()
            if self._running:
                await asyncio.wait(set(self._running), return_when=asyncio.FIRST_COMPLETED)
            await self.fill()
