from .aio import AsyncIterableQueue, Trigger, merge_async_iterables
from .text import strip_ansi

__all__ = ["AsyncIterableQueue", "Trigger", "merge_async_iterables", "strip_ansi"]
