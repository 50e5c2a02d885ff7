from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

LOGGER = logging.getLogger(__name__)

S = TypeVar("S")

VARIANT_DEFAULT = "default"
VARIANT_DESTRUCTIVE = "destructive"


@dataclass(frozen=True, slots=True)
class Action:
    type: str
    payload: Any = None


@dataclass(frozen=True, slots=True)
class Notification:
    title: str
    description: str
    variant: str = VARIANT_DEFAULT


def notify(title: str, description: str, variant: str = VARIANT_DEFAULT) -> Action:
    return Action("notify", Notification(title, description, variant))


def dismiss() -> Action:
    return Action("notification/dismiss")


class Store(Generic[S]):
    """Holds one view's state; every change goes through the pure reducer."""

    def __init__(self, initial: S, reducer: Callable[[S, Action], S]) -> None:
        self._state = initial
        self._reducer = reducer
        self._listeners: list[Callable[[S], None]] = []

    @property
    def state(self) -> S:
        return self._state

    def dispatch(self, action: Action) -> S:
        self._state = self._reducer(self._state, action)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def subscribe(self, listener: Callable[[S], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
