"""Exception types raised by ticktock."""

from __future__ import annotations

from typing import Sequence


class TickTockError(Exception):
    """Base class for ticktock errors."""


class CallbackInvocationError(TickTockError):
    """One or more callbacks raised during a single invocation pass.

    Every registered callback is attempted before this is raised. The first
    failure is the ``__cause__``; the remaining ones are kept in ``suppressed``.
    """

    def __init__(self, errors: Sequence[BaseException], total: int) -> None:
        if not errors:
            raise ValueError("CallbackInvocationError requires at least one error")
        self.errors = list(errors)
        self.total = total
        super().__init__(
            f"{len(self.errors)} of {total} callbacks failed; first: {self.first!r}"
        )

    @property
    def first(self) -> BaseException:
        return self.errors[0]

    @property
    def suppressed(self) -> list[BaseException]:
        return self.errors[1:]
