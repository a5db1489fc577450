"""Shared fixtures for clubpos tests."""

import pytest

from clubpos import config
from clubpos.models import CartLine, ReservationResource


@pytest.fixture(autouse=True)
def debug_log_path(tmp_path, monkeypatch):
    """Keep debug output inside the test's temp dir."""
    path = tmp_path / "debug.log"
    monkeypatch.setattr(config, "DEBUG_LOG_PATH", str(path))
    return path


@pytest.fixture
def reserved_table() -> ReservationResource:
    return ReservationResource(
        id=7,
        name="Santos",
        table_number="T7",
        party_size=4,
        status="reserved",
        price=500.0,
    )


@pytest.fixture
def beer_line() -> CartLine:
    return CartLine(id=1, name="Beer", price=120.0, qty=2)


class MemoryStorage:
    """Dict-backed stand-in for the session store."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.writes += 1
        self.values[key] = value

    def remove(self, key: str) -> None:
        self.values.pop(key, None)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()
