from __future__ import annotations
import asyncio
import logging
import time
from collections import defaultdict
from threading import RLock
from typing import Callable, DefaultDict, List, Optional, Set

from runscripts.domain import Event
from runscripts.ports import EventBus, Handler

_log = logging.getLogger("runscripts.eventbus")


class LocalEventBus(EventBus):
    """
    Шина событий запуска (script.start, script.exit, run.summary, run.error).
    Подписка по префиксу типа: "" или "*" получает всё, "script." только события скриптов.
    Обработчик, упавший с исключением, логируется и не мешает остальным и самому запуску.
    Корутины-обработчики запускаются задачами в текущем event loop.
    """

    def __init__(self) -> None:
        self._subs: DefaultDict[str, List[Handler]] = defaultdict(list)
        self._lock = RLock()
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, type_prefix: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._subs[type_prefix].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._subs.get(type_prefix, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def _matching(self, event_type: str) -> List[Handler]:
        with self._lock:
            return [
                h
                for prefix, handlers in self._subs.items()
                if prefix in ("", "*") or event_type.startswith(prefix)
                for h in handlers
            ]

    def publish(self, event: Event) -> None:
        for handler in self._matching(event.type):
            try:
                res = handler(event)
            except Exception:
                _log.exception("eventbus.handler_failed", extra={"extra": {"type": event.type}})
                continue
            if asyncio.iscoroutine(res):
                self._schedule(res, event)

    def _schedule(self, coro, event: Event) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            _log.warning("eventbus.no_loop", extra={"extra": {"type": event.type}})
            return
        task = loop.create_task(coro)
        # держим ссылку, пока задача не завершится
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def emit(bus: Optional[EventBus], type_: str, payload: dict, source: str) -> None:
    if bus is None:
        return
    bus.publish(Event(type=type_, payload=payload, source=source, ts=time.time()))
