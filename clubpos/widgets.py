"""Widgets for the order section and the reservation controls."""

from __future__ import annotations

from typing import Callable

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.dom import DOMNode
from textual.timer import Timer
from textual.widget import AwaitMount, Widget
from textual.widgets import Button, Checkbox, Static

from clubpos.models import ReservationResource
from clubpos.reconcile import RESERVED_BLOCK_ID, MutationRecord
from clubpos.rendering import format_selection_summary

MutationCallback = Callable[[list[MutationRecord]], None]


def _id_chain(node: DOMNode) -> tuple[str, ...]:
    return tuple(ancestor.id for ancestor in node.ancestors_with_self if ancestor.id)


class ObservedRegion(Vertical):
    """A container that reports structural changes made through `mount` and `remove_children`."""

    def __init__(self, *children: Widget, **kwargs) -> None:
        super().__init__(*children, **kwargs)
        self._mutation_callbacks: list[MutationCallback] = []

    def observe(self, callback: MutationCallback) -> None:
        self._mutation_callbacks.append(callback)

    def disconnect(self) -> None:
        self._mutation_callbacks.clear()

    def mount(self, *widgets: Widget, before=None, after=None) -> AwaitMount:
        result = super().mount(*widgets, before=before, after=after)
        added = tuple(widget.id for widget in widgets if widget.id)
        self._emit(MutationRecord(target=_id_chain(self), added=added))
        return result

    def remove_children(self, selector="*"):
        removed = tuple(child.id for child in self.children if child.id)
        result = super().remove_children(selector)
        self._emit(MutationRecord(target=_id_chain(self), removed=removed))
        return result

    def _emit(self, record: MutationRecord) -> None:
        for callback in list(self._mutation_callbacks):
            callback([record])


class ReservationPanel(Vertical):
    """Checkbox, Choose table button and the selected-table summary."""

    DEFAULT_CSS = """
    ReservationPanel {
        height: auto;
        padding: 0 1;
        border-bottom: solid $surface;
    }

    #reserved-table-title {
        text-style: bold;
    }

    #selected-table-row {
        height: auto;
    }

    #selected-table-summary {
        width: 1fr;
    }
    """

    def __init__(self, checked: bool = False) -> None:
        super().__init__(id=RESERVED_BLOCK_ID)
        self.selected: ReservationResource | None = None
        self.checked = checked

    def compose(self) -> ComposeResult:
        yield Static("Reserved Table", id="reserved-table-title")
        yield self._build_checkbox()
        yield self._build_choose_button()
        yield self._build_summary_row()

    def _build_checkbox(self) -> Checkbox:
        return Checkbox("Customer has a reserved table", self.checked, id="use-reserved-table")

    def _build_choose_button(self) -> Button:
        return Button("Choose table", id="open-tables-btn", disabled=not self.checked)

    def _build_clear_button(self) -> Button:
        return Button("Clear", id="clear-selected-table", variant="warning")

    def _build_summary_row(self) -> Horizontal:
        row = Horizontal(
            Static("—", id="selected-table-summary"),
            self._build_clear_button(),
            id="selected-table-row",
        )
        row.display = False
        return row

    def ensure_parts(self) -> None:
        """Mount any inner control that has gone missing."""
        if not self.is_mounted:
            return
        if not self.query("#use-reserved-table"):
            self.mount(self._build_checkbox())
        if not self.query("#open-tables-btn"):
            self.mount(self._build_choose_button())
        rows = self.query("#selected-table-row")
        if not rows:
            self.mount(self._build_summary_row())
        elif not self.query("#clear-selected-table"):
            rows.first().mount(self._build_clear_button())

    def on_mount(self) -> None:
        # Children from compose exist only now; replay whatever was shown before mount.
        self._apply()

    def show_selection(self, resource: ReservationResource) -> None:
        self.selected = resource
        self.checked = True
        self._apply()

    def show_cleared(self) -> None:
        self.selected = None
        self.checked = False
        self._apply()

    def _apply(self) -> None:
        try:
            summary = self.query_one("#selected-table-summary", Static)
            row = self.query_one("#selected-table-row")
            checkbox = self.query_one("#use-reserved-table", Checkbox)
            choose = self.query_one("#open-tables-btn", Button)
        except NoMatches:
            return

        if self.selected is None:
            summary.update("—")
            row.display = False
            if checkbox.value != self.checked:
                checkbox.value = self.checked
            choose.disabled = not self.checked
            choose.display = True
            return

        summary.update(format_selection_summary(self.selected))
        row.display = True
        if not checkbox.value:
            checkbox.value = True
        choose.disabled = False
        # Hide Choose while a selection is visible.
        choose.display = False

    def set_choose_enabled(self, enabled: bool) -> None:
        self.checked = enabled
        try:
            self.query_one("#open-tables-btn", Button).disabled = not enabled
        except NoMatches:
            return


class ReservationControls:
    """Adapter the reconciliation observer uses to find and fix the reservation panel."""

    def __init__(self, root: DOMNode, region_id: str = "order-section") -> None:
        self._root = root
        self._region_id = region_id
        # Survives panel rebuilds: a fresh panel starts ticked if the cashier had ticked it.
        self.checked = False

    def region(self) -> ObservedRegion | None:
        try:
            return self._root.query_one(f"#{self._region_id}", ObservedRegion)
        except NoMatches:
            return None

    def panel(self) -> ReservationPanel | None:
        try:
            return self._root.query_one(f"#{RESERVED_BLOCK_ID}", ReservationPanel)
        except NoMatches:
            return None

    def ensure_controls(self) -> bool:
        region = self.region()
        if region is None:
            return False

        panel = self.panel()
        if panel is not None:
            panel.ensure_parts()
            return True

        panel = ReservationPanel(checked=self.checked)
        try:
            anchor = region.query_one("#compute-actions")
        except NoMatches:
            region.mount(panel)
        else:
            region.mount(panel, before=anchor)
        return True

    def show_selection(self, resource: ReservationResource) -> None:
        self.checked = True
        panel = self.panel()
        if panel is not None:
            panel.show_selection(resource)

    def show_cleared(self) -> None:
        self.checked = False
        panel = self.panel()
        if panel is not None:
            panel.show_cleared()

    def set_checked(self, checked: bool) -> None:
        self.checked = checked
        panel = self.panel()
        if panel is not None:
            panel.set_choose_enabled(checked)


class TimerHandle:
    """Expose a Textual timer through the `cancel()` interface the observer expects."""

    def __init__(self, timer: Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()
