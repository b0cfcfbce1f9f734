from .queue import AsyncIterableQueue
from .merge import merge_async_iterables
from .trigger import Trigger

__all__ = ["AsyncIterableQueue", "merge_async_iterables", "Trigger"]
