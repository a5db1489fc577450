"""Selection store for the reservation attached to the active order."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from clubpos.config import SELECTED_TABLE_KEY
from clubpos.debug_log import log_debug
from clubpos.models import ReservationResource


class NavigationType(str, Enum):
    """How the current view was entered."""

    NAVIGATE = "navigate"
    RELOAD = "reload"
    BACK_FORWARD = "back_forward"

    @classmethod
    def parse(cls, value: str) -> NavigationType:
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.NAVIGATE


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


@dataclass(frozen=True)
class SelectionChanged:
    """Broadcast after every selection change; `price` is the surcharge to apply."""

    resource: ReservationResource | None
    price: float


SelectionListener = Callable[[SelectionChanged], None]


class SelectionStore:
    """Single owner of the selected reservation; persistence happens on every write."""

    def __init__(self, storage: KeyValueStore, key: str = SELECTED_TABLE_KEY) -> None:
        self._storage = storage
        self._key = key
        self._current: ReservationResource | None = None
        self._listeners: list[SelectionListener] = []

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def current(self) -> ReservationResource | None:
        return self._current

    @property
    def price(self) -> float:
        return self._current.price if self._current is not None else 0.0

    def start(self, navigation: NavigationType) -> ReservationResource | None:
        """
        Initialize from persisted state according to how the view was entered.

        A reload discards whatever was persisted before it can be read back. Any
        other entry restores the persisted selection and rebroadcasts its price so
        dependent totals are correct again.
        """
        if navigation == NavigationType.RELOAD:
            self._storage.remove(self._key)
            self._current = None
            log_debug("selection_discarded_on_reload")
            return None

        self._current = self.restore()
        log_debug("selection_started", navigation=navigation.value, restored=self._current is not None)
        if self._current is not None:
            self._broadcast()
        return self._current

    def select(self, resource: ReservationResource) -> None:
        self._storage.set(self._key, json.dumps(resource.to_dict()))
        self._current = resource
        log_debug("selection_selected", id=resource.id, price=resource.price)
        self._broadcast()

    def clear(self) -> None:
        """Drop the selection; a second clear is a no-op."""
        if self._current is None and self._storage.get(self._key) is None:
            return
        self._storage.remove(self._key)
        self._current = None
        log_debug("selection_cleared")
        self._broadcast()

    def restore(self) -> ReservationResource | None:
        """Read the persisted selection, treating unreadable values as absent."""
        raw = self._storage.get(self._key)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            log_debug("selection_restore_failed", reason="invalid_json")
            return None
        if not isinstance(data, dict):
            log_debug("selection_restore_failed", reason="not_an_object")
            return None
        return ReservationResource.from_dict(data)

    def adopt(self, resource: ReservationResource | None) -> None:
        """Take over a value read back from storage without writing it again."""
        self._current = resource

    def rebroadcast(self) -> None:
        self._broadcast()

    def _broadcast(self) -> None:
        event = SelectionChanged(resource=self._current, price=self.price)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                log_debug("selection_listener_failed", error=repr(exc))
