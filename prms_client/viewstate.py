"""Shared plumbing for state holders that a presentation shell renders."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Set

import structlog


logger = structlog.get_logger(__name__)

Listener = Callable[[Any], None]


class ViewState:
    """Owns a set of view attributes and republishes them on change.

    Subclasses expose a ``state`` snapshot. Once :meth:`dispose` has been
    called (the view was unmounted) late completions of pending calls are
    dropped instead of written.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._inflight: Set[str] = set()
        self._disposed = False

    @property
    def state(self) -> Any:  # pragma: no cover - overridden
        raise NotImplementedError

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new snapshot after every change."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispose(self) -> None:
        self._disposed = True
        self._listeners.clear()

    def _update(self, **changes: Any) -> None:
        if self._disposed:
            logger.debug("late_completion_dropped", view=type(self).__name__, fields=sorted(changes))
            return
        for name, value in changes.items():
            setattr(self, name, value)
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

    @contextmanager
    def _loading(self) -> Iterator[None]:
        self._update(loading=True)
        try:
            yield
        finally:
            self._update(loading=False)

    def _claim(self, action: str) -> bool:
        """Mark ``action`` as in flight; ``False`` if it already is."""

        if action in self._inflight:
            logger.info("duplicate_action_ignored", view=type(self).__name__, action=action)
            return False
        self._inflight.add(action)
        return True

    def _release(self, action: str) -> None:
        self._inflight.discard(action)


__all__ = ["ViewState", "Listener"]
