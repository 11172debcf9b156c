from __future__ import annotations

import threading
import uuid
from typing import Optional

from .callbacks import Registration
from .scheduler import Emitter


class Subscriber:
    """Stopwatch that counts the ticks of one emitter.

    The counter is guarded by a lock, so the increment stays correct even if
    the callback is invoked from several threads at once.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self.id = uuid.uuid4().hex
        self.name = name or self.id[:8]
        self._count = 0
        self._lock = threading.Lock()
        self._emitter: Optional[Emitter] = None
        self._registration: Optional[Registration] = None

    def on_created(self, emitter: Emitter) -> Registration:
        if self.attached:
            raise RuntimeError(f"subscriber {self.name!r} is already attached")
        self._emitter = emitter
        self._registration = emitter.subscribe(self._on_tick)
        return self._registration

    def detach(self) -> bool:
        registration, self._registration = self._registration, None
        if registration is None or self._emitter is None:
            return False
        return self._emitter.unsubscribe(registration)

    @property
    def attached(self) -> bool:
        return self._registration is not None and self._registration.active

    def counter(self) -> int:
        with self._lock:
            return self._count

    @property
    def seconds_elapsed(self) -> float:
        interval = self._emitter.interval if self._emitter is not None else 0.0
        return self.counter() * interval

    def _on_tick(self) -> None:
        with self._lock:
            self._count += 1
