from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class CellKey:
    """Value identity of a grid cell, stable across rebuilds."""

    user_id: int
    day: int
    month: int
    year: int

    @classmethod
    def for_date(cls, user_id: int, d: date) -> CellKey:
        return cls(user_id=user_id, day=d.day, month=d.month, year=d.year)

    @property
    def date(self) -> date:
        return date(self.year, self.month, self.day)


@dataclass
class User:
    id: int
    name: str
    email: str | None = None
    role: str | None = None


@dataclass
class RawEntry:
    user_id: int
    date: date
    accepted: int = 0
    dismissed: int = 0
    manually_mapped: int = 0
    incorrect_supplier_data: int = 0
    created_property: int = 0
    insufficient_info: int = 0
    duplicates: int = 0
    no_result: int = 0
    mapping_type: str | None = None
    status: str | None = None
    # Derived figures the backend may already have computed
    auto_total: int | None = None
    manual_total: int | None = None
    overall_total: int | None = None
    cannot_be_mapped: int | None = None
    # Embedded user fields, used when the user is missing from the roster
    user_name: str | None = None
    user_email: str | None = None


@dataclass
class Cell:
    user_id: int
    date: date
    accepted: int = 0
    dismissed: int = 0
    manually_mapped: int = 0
    incorrect_supplier_data: int = 0
    created_property: int = 0
    insufficient_info: int = 0
    duplicates: int = 0
    no_result: int = 0
    mapping_type: str | None = None
    status: str | None = None
    auto_total: int = 0
    manual_total: int = 0
    overall_total: int = 0
    cannot_be_mapped: int = 0

    @property
    def key(self) -> CellKey:
        return CellKey.for_date(self.user_id, self.date)

    @property
    def has_data(self) -> bool:
        """True if the cell carries anything a delete would remove."""
        return (
            self.overall_total > 0
            or self.cannot_be_mapped > 0
            or self.created_property > 0
            or self.duplicates > 0
        )


@dataclass
class Totals:
    accepted: int = 0
    dismissed: int = 0
    auto_map: int = 0
    duplicates: int = 0
    manual_map: int = 0
    cannot_be_mapped: int = 0
    created_property: int = 0
    overall_total: int = 0

    def add_cell(self, cell: Cell) -> None:
        self.accepted += cell.accepted
        self.dismissed += cell.dismissed
        self.auto_map += cell.auto_total
        self.duplicates += cell.duplicates
        self.manual_map += cell.manual_total
        self.cannot_be_mapped += cell.cannot_be_mapped
        self.created_property += cell.created_property
        self.overall_total += cell.overall_total

    def add_totals(self, other: Totals) -> None:
        self.accepted += other.accepted
        self.dismissed += other.dismissed
        self.auto_map += other.auto_map
        self.duplicates += other.duplicates
        self.manual_map += other.manual_map
        self.cannot_be_mapped += other.cannot_be_mapped
        self.created_property += other.created_property
        self.overall_total += other.overall_total


@dataclass
class UserRow:
    user_id: int
    user_name: str
    cells: list[Cell] = field(default_factory=list)
    totals: Totals = field(default_factory=Totals)

    def cell_for(self, d: date) -> Cell | None:
        """Find the cell for a calendar day."""
        for cell in self.cells:
            if cell.date == d:
                return cell
        return None

    def recompute_totals(self) -> None:
        totals = Totals()
        for cell in self.cells:
            totals.add_cell(cell)
        self.totals = totals


@dataclass
class GridTotals:
    daily: dict[date, int] = field(default_factory=dict)
    totals: Totals = field(default_factory=Totals)

    @property
    def grand_total(self) -> int:
        return self.totals.overall_total


@dataclass
class Config:
    api_base_url: str = "http://localhost:3000"
    request_timeout: float = 30.0
    last_month: int | None = None
    last_year: int | None = None
