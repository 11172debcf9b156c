"""Ordered multicast callback list with snapshot invocation."""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Callable, Iterator

from .errors import CallbackInvocationError

logger = logging.getLogger(__name__)


class Registration:
    """Handle returned by :meth:`CallbackList.add`.

    Removing by handle removes exactly this entry, even when the same callable
    was registered more than once.
    """

    __slots__ = ("id", "callback", "_owner")

    def __init__(self, callback: Callable[..., Any], owner: "CallbackList") -> None:
        self.id = uuid.uuid4().hex
        self.callback = callback
        self._owner = owner

    @property
    def active(self) -> bool:
        return self in self._owner

    def cancel(self) -> bool:
        return self._owner.remove(self)

    def __repr__(self) -> str:
        return f"Registration(id={self.id!r}, callback={self.callback!r})"


class CallbackList:
    """Callbacks invoked together in registration order.

    ``invoke_all`` iterates over a snapshot taken when it is called, so adds and
    removes made by a running callback only affect later passes.
    """

    def __init__(self) -> None:
        self._entries: list[Registration] = []
        self._lock = threading.RLock()

    def add(self, callback: Callable[..., Any]) -> Registration:
        if not callable(callback):
            raise TypeError(f"callback must be callable, got {type(callback).__name__}")
        registration = Registration(callback, self)
        with self._lock:
            self._entries.append(registration)
        return registration

    def remove(self, target: Registration | Callable[..., Any]) -> bool:
        """Remove a registration, or the first entry whose callback equals ``target``.

        Returns False (and changes nothing) when nothing matches.
        """

        with self._lock:
            if isinstance(target, Registration):
                for idx, entry in enumerate(self._entries):
                    if entry is target:
                        del self._entries[idx]
                        return True
                return False
            for idx, entry in enumerate(self._entries):
                if entry.callback == target:
                    del self._entries[idx]
                    return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def callbacks(self) -> list[Callable[..., Any]]:
        with self._lock:
            return [entry.callback for entry in self._entries]

    def invoke_all(self, *args: Any, **kwargs: Any) -> int:
        """Call every registered callback and return how many were called.

        Failures do not stop the pass. Once all callbacks have run, a
        :class:`CallbackInvocationError` is raised if any of them failed.
        """

        with self._lock:
            snapshot = tuple(self._entries)
        errors: list[Exception] = []
        for entry in snapshot:
            try:
                entry.callback(*args, **kwargs)
            except Exception as exc:  # noqa: BLE001
                logger.warning("callback %r failed: %r", entry.callback, exc)
                errors.append(exc)
        if errors:
            raise CallbackInvocationError(errors, total=len(snapshot)) from errors[0]
        return len(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, item: object) -> bool:
        with self._lock:
            if isinstance(item, Registration):
                return any(entry is item for entry in self._entries)
            return any(entry.callback == item for entry in self._entries)

    def __iter__(self) -> Iterator[Callable[..., Any]]:
        return iter(self.callbacks())
