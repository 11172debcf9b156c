"""ticktock: periodic multicast callbacks."""

from typing import TYPE_CHECKING

from .callbacks import CallbackList, Registration
from .errors import CallbackInvocationError, TickTockError
from .observable import Observable, observable_property
from .scheduler import Emitter, EmitterState, EmitterStatus
from .subscriber import Subscriber

__version__ = "0.1.0"

if TYPE_CHECKING:  # pragma: no cover - import-time convenience for type checkers
    from .main import app as app

__all__ = [
    "CallbackInvocationError",
    "CallbackList",
    "Emitter",
    "EmitterState",
    "EmitterStatus",
    "Observable",
    "Registration",
    "Subscriber",
    "TickTockError",
    "app",
    "observable_property",
    "__version__",
]


def __getattr__(name: str):
    if name == "app":
        from .main import app as _app
        return _app
    raise AttributeError(f"module 'ticktock' has no attribute {name!r}")
