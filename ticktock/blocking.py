from __future__ import annotations

from functools import partial
from typing import Any, Callable, TypeVar

import anyio

T = TypeVar("T")


async def offload(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking callable on a worker thread and wait for its result."""

    return await anyio.to_thread.run_sync(partial(fn, *args, **kwargs))
