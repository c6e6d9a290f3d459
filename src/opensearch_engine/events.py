from __future__ import annotations

from typing import Any, Callable

from loguru import logger


class Signal:
    """A named event that listeners subscribe to with a callback.

    Listeners are called synchronously by ``emit``, once each. A listener that
    raises is logged and the remaining listeners still run.
    """

    def __init__(self, name: str):
        self._name = name
        self._listeners: list[Callable[..., Any]] = []

    @property
    def name(self) -> str:
        return self._name

    def connect(self, callback: Callable[..., Any]) -> Callable[[], None]:
        self._listeners.append(callback)

        def _disconnect() -> None:
            self.disconnect(callback)

        return _disconnect

    def disconnect(self, callback: Callable[..., Any]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def emit(self, *args: Any) -> None:
        for callback in list(self._listeners):
            try:
                callback(*args)
            except Exception:
                logger.exception(f"Listener for {self._name!r} failed")

    def __len__(self) -> int:
        return len(self._listeners)
