"""Working cart for the order being composed."""

from __future__ import annotations

from clubpos.models import CartLine, MenuItem


class Cart:
    """Lines in insertion order; adding an item already present bumps its quantity."""

    def __init__(self) -> None:
        self.lines: list[CartLine] = []

    def __len__(self) -> int:
        return len(self.lines)

    def add(self, item: MenuItem, qty: int = 1) -> CartLine:
        if qty < 1:
            raise ValueError("qty must be at least 1")
        for line in self.lines:
            if line.id == item.item_id:
                line.qty += qty
                return line
        line = CartLine(id=item.item_id, name=item.name, price=item.price, qty=qty)
        self.lines.append(line)
        return line

    def remove_at(self, index: int) -> CartLine | None:
        if not (0 <= index < len(self.lines)):
            return None
        return self.lines.pop(index)

    def decrement_at(self, index: int) -> None:
        if not (0 <= index < len(self.lines)):
            return
        line = self.lines[index]
        if line.qty <= 1:
            del self.lines[index]
        else:
            line.qty -= 1

    def snapshot(self) -> list[CartLine]:
        """Copies of the current lines, safe to hand to checkout."""
        return [CartLine(id=line.id, name=line.name, price=line.price, qty=line.qty) for line in self.lines]

    def clear(self) -> None:
        self.lines.clear()
