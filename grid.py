"""Build the dense per-user, per-day productivity matrix."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import date
from typing import Callable

from gateway import COUNTER_FIELDS, FetchFailure
from models import Cell, CellKey, GridTotals, RawEntry, Totals, User, UserRow
from utils import EXCLUDED_ROLES, STATUS_LABELS, dates_for_month

logger = logging.getLogger(__name__)


def filter_roster(users: list[User]) -> list[User]:
    """Drop excluded roles and repeated ids. The first occurrence wins."""
    seen: set[int] = set()
    eligible = []
    for user in users:
        if user.role in EXCLUDED_ROLES or user.id in seen:
            continue
        seen.add(user.id)
        eligible.append(user)
    return eligible


def _empty_row(user_id: int, user_name: str, dates: list[date]) -> UserRow:
    return UserRow(
        user_id=user_id,
        user_name=user_name,
        cells=[Cell(user_id=user_id, date=d) for d in dates],
    )


def _synthesized_name(entry: RawEntry) -> str:
    return entry.user_name or entry.user_email or f"User {entry.user_id}"


def _derive(cell: Cell, entry: RawEntry) -> None:
    """Fill the derived totals, preferring figures the source supplied."""
    if entry.auto_total is not None:
        cell.auto_total = entry.auto_total
    elif cell.mapping_type in ("auto", "hybrid"):
        cell.auto_total = cell.accepted + cell.dismissed
    else:
        cell.auto_total = 0

    if entry.manual_total is not None:
        cell.manual_total = entry.manual_total
    elif cell.mapping_type in ("manual", "hybrid"):
        cell.manual_total = cell.manually_mapped
    else:
        cell.manual_total = 0

    if entry.cannot_be_mapped is not None:
        cell.cannot_be_mapped = entry.cannot_be_mapped
    else:
        cell.cannot_be_mapped = cell.incorrect_supplier_data + cell.insufficient_info

    if entry.overall_total is not None:
        cell.overall_total = entry.overall_total
    else:
        # duplicates and no_result are tracked but never counted
        cell.overall_total = (
            cell.accepted
            + cell.dismissed
            + cell.manually_mapped
            + cell.incorrect_supplier_data
            + cell.created_property
            + cell.insufficient_info
        )

    if cell.status in STATUS_LABELS:
        cell.overall_total = 0


def _merge(cell: Cell, entry: RawEntry, first: bool) -> None:
    """Apply one RawEntry to a cell. Repeat entries for a day add up."""
    for name in COUNTER_FIELDS:
        setattr(cell, name, getattr(cell, name) + getattr(entry, name))
    if entry.mapping_type is not None:
        cell.mapping_type = entry.mapping_type
    if entry.status is not None:
        cell.status = entry.status

    if first:
        _derive(cell, entry)
    else:
        # Source figures cannot be combined, so recompute from the sums
        _derive(cell, replace(
            entry, auto_total=None, manual_total=None,
            overall_total=None, cannot_be_mapped=None,
        ))


def build(roster: list[User], raw_entries: list[RawEntry], month: int, year: int) -> list[UserRow]:
    """Merge roster and sparse entries into one zero-filled row per user.

    The roster decides identity and order. Entries decide presence: an entry
    whose user is not on the roster gets a row synthesized from the entry's
    own name fields, appended after the roster rows.
    """
    dates = dates_for_month(year, month)
    rows: list[UserRow] = []
    by_user: dict[int, UserRow] = {}

    for user in filter_roster(roster):
        row = _empty_row(user.id, user.name, dates)
        rows.append(row)
        by_user[user.id] = row

    touched: set[CellKey] = set()
    for entry in raw_entries:
        if entry.date.year != year or entry.date.month != month:
            logger.debug("Entry for %s outside %d-%02d ignored", entry.date, year, month)
            continue

        row = by_user.get(entry.user_id)
        if row is None:
            logger.info("User %s not on roster, synthesizing row", entry.user_id)
            row = _empty_row(entry.user_id, _synthesized_name(entry), dates)
            rows.append(row)
            by_user[entry.user_id] = row

        cell = row.cells[entry.date.day - 1]
        key = cell.key
        _merge(cell, entry, first=key not in touched)
        touched.add(key)

    for row in rows:
        row.recompute_totals()
    return rows


def compute_grid_totals(rows: list[UserRow]) -> GridTotals:
    """Column sums per date and grand totals, derived from the cells."""
    daily: dict[date, int] = {}
    totals = Totals()
    for row in rows:
        for cell in row.cells:
            daily[cell.date] = daily.get(cell.date, 0) + cell.overall_total
        totals.add_totals(row.totals)
    return GridTotals(daily=daily, totals=totals)


class GridStore:
    """The in-memory matrix for the selected month.

    Every load bumps a generation counter; a response that comes back after
    a newer load has started is discarded rather than applied.
    """

    def __init__(self, gateway, month: int, year: int):
        self.gateway = gateway
        self.month = month
        self.year = year
        self.rows: list[UserRow] = []
        self.loaded_period: tuple[int, int] | None = None
        self.loading = False
        self.error: str | None = None
        self._generation = 0

    @property
    def shown_period(self) -> tuple[int, int]:
        """(month, year) of the grid on screen, which may lag the selection."""
        return self.loaded_period or (self.month, self.year)

    @property
    def dates(self) -> list[date]:
        month, year = self.shown_period
        return dates_for_month(year, month)

    @property
    def totals(self) -> GridTotals:
        return compute_grid_totals(self.rows)

    def select(self, month: int, year: int) -> None:
        self.month = month
        self.year = year

    async def reload(self) -> bool:
        return await self.load(self.month, self.year)

    async def load(self, month: int, year: int) -> bool:
        """Fetch roster and entries and rebuild. Returns False if superseded or failed."""
        self.select(month, year)
        self._generation += 1
        generation = self._generation
        self.loading = True

        roster_result, entries_result = await asyncio.gather(
            self.gateway.fetch_roster(),
            self.gateway.fetch_entries(month, year),
            return_exceptions=True,
        )

        if generation != self._generation:
            logger.debug("Discarding stale load for %d-%02d", year, month)
            return False

        self.loading = False

        if isinstance(entries_result, BaseException):
            if not isinstance(entries_result, FetchFailure):
                raise entries_result
            self.error = f"Could not load entries: {entries_result}"
            return False

        if isinstance(roster_result, BaseException):
            if not isinstance(roster_result, FetchFailure):
                raise roster_result
            logger.warning("Roster unavailable, deriving rows from entries")
            roster_result = []

        self.rows = build(roster_result, entries_result, month, year)
        self.loaded_period = (month, year)
        self.error = None
        return True

    def find_cell(self, key: CellKey) -> Cell | None:
        for row in self.rows:
            if row.user_id == key.user_id:
                return row.cell_for(key.date)
        return None

    def mutate_cell(self, key: CellKey, change: Callable[[Cell], None]) -> Cell | None:
        """Apply a local change to the cell under key and refresh its row totals."""
        for row in self.rows:
            if row.user_id != key.user_id:
                continue
            cell = row.cell_for(key.date)
            if cell is not None:
                change(cell)
                row.recompute_totals()
            return cell
        return None
