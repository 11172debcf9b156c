from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from enum import Enum
from typing import Any, Callable, Optional

from .blocking import offload
from .callbacks import CallbackList, Registration
from .errors import CallbackInvocationError
from .metrics import CALLBACK_ERRORS, EMITTER_UP, SUBSCRIBERS, TICKS
from .observable import Observable, observable_property

logger = logging.getLogger(__name__)


class EmitterStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class EmitterState(Observable):
    status = observable_property(EmitterStatus.CREATED)

    def __init__(self) -> None:
        super().__init__()
        self.running = False
        self.last_started: Optional[float] = None
        self.last_finished: Optional[float] = None
        self.last_error: Optional[str] = None
        self.total_ticks = 0
        self.total_errors = 0


class Emitter:
    """Invoke a private callback list once per ``interval`` seconds.

    Passes never overlap. Each tick is scheduled one interval after the
    previous deadline, so a pass that overruns is followed straight away by
    the next one instead of being skipped. Callbacks run on a worker thread.
    """

    def __init__(
        self,
        interval: float = 1.0,
        *,
        name: str = "default",
        stop_on_error: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = float(interval)
        self.name = name
        self.stop_on_error = stop_on_error
        self.state = EmitterState()
        self.state.property_changed.add(self._on_state_changed)
        self._callbacks = CallbackList()
        self._pass_lock = asyncio.Lock()
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def status(self) -> EmitterStatus:
        return self.state.status

    @property
    def subscribers(self) -> int:
        return len(self._callbacks)

    def subscribe(self, callback: Callable[[], Any]) -> Registration:
        registration = self._callbacks.add(callback)
        SUBSCRIBERS.labels(self.name).set(len(self._callbacks))
        return registration

    def unsubscribe(self, target: Registration | Callable[[], Any]) -> bool:
        removed = self._callbacks.remove(target)
        SUBSCRIBERS.labels(self.name).set(len(self._callbacks))
        return removed

    def start(self) -> None:
        """Schedule the tick loop on the running event loop."""

        if self._task is not None and not self._task.done():
            return
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._task = loop.create_task(
            self._run(self._stop_event), name=f"emitter:{self.name}"
        )
        self.state.status = EmitterStatus.RUNNING

    async def stop(self) -> None:
        """Stop ticking. Safe to call repeatedly.

        A pass already in flight is allowed to finish; no pass starts after
        this returns.
        """

        task, self._task = self._task, None
        if self._stop_event is not None:
            self._stop_event.set()
        if self.state.status is not EmitterStatus.STOPPED:
            self.state.status = EmitterStatus.STOPPED
        if task is None or task is asyncio.current_task():
            return
        with suppress(asyncio.CancelledError):
            try:
                await task
            except Exception:  # noqa: BLE001
                logger.exception("emitter %s loop ended with an error", self.name)

    async def tick(self) -> int:
        """Run one invocation pass now and return how many callbacks ran.

        Raises :class:`CallbackInvocationError` after recording it on ``state``.
        """

        async with self._pass_lock:
            state = self.state
            state.running = True
            state.last_started = time.time()
            try:
                called = await offload(self._callbacks.invoke_all)
            except CallbackInvocationError as exc:
                state.last_error = str(exc)
                state.total_errors += 1
                CALLBACK_ERRORS.labels(self.name).inc(len(exc.errors))
                raise
            else:
                state.last_error = None
                return called
            finally:
                state.total_ticks += 1
                state.last_finished = time.time()
                state.running = False
                TICKS.labels(self.name).inc()
                SUBSCRIBERS.labels(self.name).set(len(self._callbacks))

    async def _run(self, stop_event: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while not stop_event.is_set():
            deadline += self.interval
            try:
                await asyncio.wait_for(
                    stop_event.wait(), max(0.0, deadline - loop.time())
                )
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break
            try:
                await self.tick()
            except CallbackInvocationError as exc:
                logger.warning("emitter %s tick failed: %s", self.name, exc)
                if self.stop_on_error:
                    stop_event.set()
                    self.state.status = EmitterStatus.STOPPED

    def _on_state_changed(self, sender: EmitterState, name: str) -> None:
        if name != "status":
            return
        EMITTER_UP.labels(self.name).set(
            1 if sender.status is EmitterStatus.RUNNING else 0
        )
        logger.info("emitter %s is now %s", self.name, sender.status.value)
