"""Attributes that announce their changes through a CallbackList."""

from __future__ import annotations

from typing import Any

from .callbacks import CallbackList

_MISSING = object()


class Observable:
    """Base for objects exposing a ``property_changed`` callback list.

    Listeners are called as ``listener(sender, name)``.
    """

    def __init__(self) -> None:
        self.property_changed = CallbackList()


class observable_property:
    """Descriptor that fires ``property_changed`` when its value changes."""

    def __init__(self, default: Any = None) -> None:
        self.default = default
        self.name = ""
        self._attr = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self._attr = f"_{name}_value"

    def __get__(self, instance: Observable | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.__dict__.get(self._attr, self.default)

    def __set__(self, instance: Observable, value: Any) -> None:
        current = instance.__dict__.get(self._attr, _MISSING)
        if current is _MISSING:
            current = self.default
        if current == value:
            return
        instance.__dict__[self._attr] = value
        instance.property_changed.invoke_all(instance, self.name)
