"""Keep the reservation controls in step with the stored selection across host re-renders."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, Protocol

from clubpos.config import RECONCILE_COOLDOWN_SECONDS, RECONCILE_DEBOUNCE_SECONDS
from clubpos.debug_log import log_debug
from clubpos.models import ReservationResource

TABLES_MODAL_ID = "tables-modal"
RESERVED_BLOCK_ID = "reserved-table-block"
EXCLUDED_SUBTREE_IDS = frozenset({TABLES_MODAL_ID, RESERVED_BLOCK_ID})


class MutationOrigin(str, Enum):
    SELF = "self"
    FOREIGN = "foreign"
    HOST = "host"


@dataclass(frozen=True)
class MutationRecord:
    """
    One structural change inside the observed region.

    `target` lists node ids from the changed node up towards the root; `added`
    and `removed` list the ids of the child nodes involved. Nodes without an id
    are simply left out.
    """

    target: tuple[str, ...]
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()


class ReservationUI(Protocol):
    def ensure_controls(self) -> bool:
        """Rebuild the reservation controls if missing; False when the anchor region is gone."""

    def show_selection(self, resource: ReservationResource) -> None: ...


class SelectionSource(Protocol):
    def restore(self) -> ReservationResource | None: ...

    def adopt(self, resource: ReservationResource | None) -> None: ...

    def rebroadcast(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


class ReconciliationObserver:
    """
    Re-apply the persisted selection whenever the host wipes the reservation controls.

    Mutations are classified by origin first: anything produced while this observer
    is writing, or inside the tables modal or the reservation block, is ignored.
    Host mutations are debounced into one pass, and passes are rate limited by a
    cooldown measured from the end of the previous pass.
    """

    def __init__(
        self,
        selection: SelectionSource,
        ui: ReservationUI,
        schedule: Scheduler,
        clock: Callable[[], float] = time.monotonic,
        debounce: float = RECONCILE_DEBOUNCE_SECONDS,
        cooldown: float = RECONCILE_COOLDOWN_SECONDS,
        excluded_ids: frozenset[str] = EXCLUDED_SUBTREE_IDS,
    ) -> None:
        self._selection = selection
        self._ui = ui
        self._schedule = schedule
        self._clock = clock
        self.debounce = debounce
        self.cooldown = cooldown
        self._excluded_ids = excluded_ids
        self._applying_depth = 0
        self._pending: list[MutationRecord] = []
        self._timer: TimerHandle | None = None
        self._last_pass_at: float | None = None
        self._connected = True

    @property
    def applying(self) -> bool:
        return self._applying_depth > 0

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @contextmanager
    def own_writes(self) -> Iterator[None]:
        """Mark mutations produced inside the block as self-originated."""
        self._applying_depth += 1
        try:
            yield
        finally:
            self._applying_depth -= 1

    def classify(self, record: MutationRecord) -> MutationOrigin:
        if self.applying:
            return MutationOrigin.SELF
        if any(node_id in self._excluded_ids for node_id in record.target):
            return MutationOrigin.FOREIGN
        if any(node_id in self._excluded_ids for node_id in record.added):
            return MutationOrigin.FOREIGN
        return MutationOrigin.HOST

    def notify(self, records: Iterable[MutationRecord]) -> None:
        """Entry point for mutation batches from the observed region."""
        if not self._connected:
            return
        relevant = [record for record in records if self.classify(record) == MutationOrigin.HOST]
        if not relevant:
            return
        self._pending.extend(relevant)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._schedule(self.debounce, self._on_debounce_elapsed)

    def disconnect(self) -> None:
        self._connected = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending.clear()

    def _on_debounce_elapsed(self) -> None:
        self._timer = None
        batch_size = len(self._pending)
        self._pending.clear()
        if not self._connected:
            return

        remaining = self._cooldown_remaining()
        if remaining > 0:
            # The suppressed pass does nothing; one trailing pass runs once the window ends.
            log_debug("reconcile_skipped", reason="cooldown", records=batch_size)
            self._timer = self._schedule(remaining, self._on_cooldown_elapsed)
            return
        self.reconcile()

    def _on_cooldown_elapsed(self) -> None:
        self._timer = None
        if self._connected:
            self.reconcile()

    def _cooldown_remaining(self) -> float:
        if self._last_pass_at is None:
            return 0.0
        return self.cooldown - (self._clock() - self._last_pass_at)

    def reconcile(self) -> bool:
        """
        Run one pass. Safe to call any number of times.

        Returns False when the host region could not be found; that pass is
        skipped and logged, never raised.
        """
        with self.own_writes():
            if not self._ui.ensure_controls():
                log_debug("reconcile_skipped", reason="anchor_missing")
                return False

            persisted = self._selection.restore()
            if persisted is not None:
                self._selection.adopt(persisted)
                self._ui.show_selection(persisted)
                self._selection.rebroadcast()

        self._last_pass_at = self._clock()
        log_debug("reconcile_applied", selected=persisted.id if persisted is not None else None)
        return True
