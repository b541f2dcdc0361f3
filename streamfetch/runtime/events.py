from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple


Listener = Callable[..., None]


class EventEmitter:
    """Registry of named-event callbacks, fired synchronously on emit."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Tuple[Listener, bool]]] = {}

    def on(self, event: str, fn: Listener) -> None:
        self._listeners.setdefault(event, []).append((fn, False))

    def once(self, event: str, fn: Listener) -> None:
        self._listeners.setdefault(event, []).append((fn, True))

    def off(self, event: str, fn: Listener) -> None:
        entries = self._listeners.get(event)
        if not entries:
            return
        for index, (candidate, _) in enumerate(entries):
            if candidate == fn:
                del entries[index]
                break
        if not entries:
            self._listeners.pop(event, None)

    def emit(self, event: str, *args: Any) -> bool:
        entries = list(self._listeners.get(event, ()))
        for fn, once in entries:
            if once:
                self.off(event, fn)
            fn(*args)
        return bool(entries)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))


__all__ = ["EventEmitter", "Listener"]
