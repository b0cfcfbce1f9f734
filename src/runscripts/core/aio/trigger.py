# src/runscripts/core/aio/trigger.py
from __future__ import annotations
import asyncio


class Trigger:
    """Single-resolution signal: ``fire()``/``fail()`` settle it once, later calls are ignored."""

    __slots__ = ("index", "future")

    def __init__(self, index: int) -> None:
        self.index = index
        self.future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def resolved(self) -> bool:
        return self.future.done()

    def fail(self, exc: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(exc)
        # ожидающие всё равно получат исключение; без ожидающих asyncio не пишет
        # "Future exception was never retrieved"
        self.future.exception()
        return True

    def fire(self) -> bool:
        if self.future.done():
            return False
        self.future.set_result(self.index)
        return True

    def __await__(self):
        return self.future.__await__()
