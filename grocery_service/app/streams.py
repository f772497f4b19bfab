"""
Observable state values.

A ``StateStream`` holds the latest value of something (cart contents, the
address list, the checkout summary) and calls every subscriber each time a
new value is published. Derived views are built with ``combine``: a pure
function over the latest value of each upstream, re-run on every upstream
publication.
"""
import threading
from typing import Any, Callable, List, Sequence

import structlog

logger = structlog.get_logger(__name__)


class StateStream:
    def __init__(self, value: Any = None, name: str = "stream"):
        self.name = name
        self._value = value
        self._subscribers: List[Callable[[Any], None]] = []
        self._lock = threading.RLock()

    @property
    def value(self) -> Any:
        return self._value

    def set(self, value: Any):
        """Publish a new value. Subscribers are always notified, even if equal."""
        with self._lock:
            self._value = value
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(value)

    def subscribe(self, callback: Callable[[Any], None], replay: bool = True) -> Callable[[], None]:
        """
        Register ``callback``. With ``replay`` the current value is delivered
        immediately. Returns a function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)
        if replay:
            callback(self._value)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


def combine(streams: Sequence[StateStream], fn: Callable[..., Any], name: str = "combined") -> StateStream:
    """Build a stream whose value is ``fn(*latest upstream values)``."""
    derived = StateStream(fn(*[s.value for s in streams]), name=name)

    def recompute(_):
        derived.set(fn(*[s.value for s in streams]))

    for stream in streams:
        stream.subscribe(recompute, replay=False)
    logger.debug("stream_combined", name=name, upstreams=[s.name for s in streams])
    return derived
