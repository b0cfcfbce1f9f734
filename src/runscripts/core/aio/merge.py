# src/runscripts/core/aio/merge.py
from __future__ import annotations
import asyncio
from typing import AsyncIterable, AsyncIterator, Dict, Sequence, TypeVar

T = TypeVar("T")

_EXHAUSTED = object()


async def _pull(iterator: AsyncIterator[T]):
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


async def merge_async_iterables(iterables: Sequence[AsyncIterable[T]]) -> AsyncIterator[T]:
    """Iterate several async iterables at once, yielding values in the order they arrive.

    Each source has exactly one pending pull; a resolved pull is re-armed
    before its value is yielded, an exhausted source is dropped from the
    polled set. Ends once every source is exhausted.
    """
    iterators = [it.__aiter__() for it in iterables]
    pending: Dict[asyncio.Task, int] = {}

    def _arm(index: int) -> None:
        pending[asyncio.ensure_future(_pull(iterators[index]))] = index

    for i in range(len(iterators)):
        _arm(i)

    try:
        while pending:
            done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            # одновременно готовые: по номеру источника, чтобы порядок был детерминированным
            for task in sorted(done, key=pending.__getitem__):
                index = pending.pop(task)
                value = task.result()
                if value is _EXHAUSTED:
                    continue
                _arm(index)
                yield value
    finally:
        for task in pending:
            task.cancel()
