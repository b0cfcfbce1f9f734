# src/runscripts/core/aio/queue.py
from __future__ import annotations
import asyncio
from collections import deque
from typing import Deque, Generic, Optional, TypeVar

T = TypeVar("T")

_CLOSED = object()


class AsyncIterableQueue(Generic[T]):
    """
    Неограниченная очередь: много производителей, один потребитель.
      - push(value): добавить значение (после close() игнорируется)
      - close(): больше значений не будет (повторный вызов: no-op)
      - async for value in queue: значения в порядке push, ожидание при пустом буфере
    Рассчитана на один event loop, без потоков.
    """

    def __init__(self) -> None:
        self._items: Deque[T] = deque()
        self._waiter: Optional[asyncio.Future] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: T) -> None:
        if self._closed:
            return
        waiter = self._waiter
        if waiter is not None and not waiter.done():
            # ждущий потребитель получает значение напрямую, мимо буфера
            self._waiter = None
            waiter.set_result(value)
        else:
            self._items.append(value)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        waiter = self._waiter
        if waiter is not None and not waiter.done():
            self._waiter = None
            waiter.set_result(_CLOSED)

    def __aiter__(self) -> "AsyncIterableQueue[T]":
        return self

    async def __anext__(self) -> T:
        if self._items:
            return self._items.popleft()
        if self._closed:
            raise StopAsyncIteration
        waiter = asyncio.get_running_loop().create_future()
        self._waiter = waiter
        try:
            value = await waiter
        finally:
            if self._waiter is waiter:
                self._waiter = None
        if value is _CLOSED:
            raise StopAsyncIteration
        return value
