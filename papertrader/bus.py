from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List, Type, TypeVar

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class EventBus:
    """In-process pub/sub for ledger observers (dashboards, journals, tests).

    Handlers run synchronously on the publishing thread, in subscription order.
    A failing handler is logged and never breaks the publisher or later handlers.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[Type[Any], List[Callable[[Any], None]]] = defaultdict(list)
        self._log = logging.getLogger("bus")

    def subscribe(self, event_type: Type[T], handler: Callable[[T], None]) -> Unsubscribe:
        self._handlers[event_type].append(handler)  # type: ignore[arg-type]

        def _unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)  # type: ignore[arg-type]

        return _unsubscribe

    def handler_count(self, event_type: Type[Any]) -> int:
        return len(self._handlers.get(event_type, []))

    def publish(self, event: Any) -> None:
        et = type(event)
        for h in list(self._handlers.get(et, [])):
            try:
                h(event)
            except Exception:
                self._log.exception("observer_failed", extra={"event_type": et.__name__})
