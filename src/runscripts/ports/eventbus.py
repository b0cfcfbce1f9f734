from __future__ import annotations
from typing import Any, Awaitable, Callable, Protocol, Union

from runscripts.domain import Event

Handler = Union[Callable[[Event], Any], Callable[[Event], Awaitable[Any]]]


class EventBus(Protocol):
    def subscribe(self, type_prefix: str, handler: Handler) -> Callable[[], None]: ...

    def publish(self, event: Event) -> None: ...
