#!/usr/bin/env python3
"""Daily productivity TUI application."""

from __future__ import annotations

import logging
import os
from datetime import date
from functools import partial
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Footer, DataTable
from rich.text import Text

import storage
from classifier import classify
from gateway import FetchFailure, SyncGateway
from grid import GridStore
from models import CellKey, UserRow
from screens import (
    ACTION_DELETE,
    ACTION_STATUS,
    ACTION_VALUE,
    ConfirmScreen,
    NumericEditScreen,
    StatusMenuScreen,
)
from session import EditMode, EditRejected, EditSessionManager
from utils import format_iso_date, shift_month
from widgets import GridHeader, GridSummary, Legend

TOTAL_ROW_KEY = "__total__"
USER_COLUMN_KEY = "user"
TOTAL_COLUMN_KEY = "total"

DETAIL_COLUMNS = [
    ("Team Members", 20),
    ("Accepted", 10),
    ("Dismissed", 10),
    ("Duplicates", 11),
    ("Cannot Map", 11),
    ("Created Prop", 13),
    ("Overall", 9),
]


class DailyProdApp(App):
    """Per-day productivity grid for the whole team."""

    CSS = """
    Screen {
        background: $surface;
    }

    #grid-header {
        height: auto;
        background: $primary;
        color: $text;
        padding: 0 1;
        text-style: bold;
    }

    #legend {
        height: auto;
        padding: 0 1;
    }

    #grid-table, #detail-table {
        height: 1fr;
        margin: 1 2;
    }

    #grid-summary {
        height: auto;
        padding: 0 2;
        color: $text;
    }

    .hidden {
        display: none;
    }

    DataTable {
        height: 100%;
    }

    DataTable > .datatable--cursor {
        background: $secondary;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("left_square_bracket", "prev_month", "◄ Month"),
        Binding("right_square_bracket", "next_month", "Month ►"),
        Binding("t", "goto_today", "This month"),
        Binding("r", "refresh", "Refresh"),
        Binding("e", "toggle_edit", "Edit mode"),
        Binding("s", "standard_view", "Standard"),
        Binding("d", "detailed_view", "Detailed"),
    ]

    def __init__(self, gateway=None):
        super().__init__()
        storage.init_db()
        config = storage.get_config()

        # Start on the last viewed month, else the current one
        today = date.today()
        month = config.last_month or today.month
        year = config.last_year or today.year

        self.gateway = gateway or SyncGateway(
            config.api_base_url,
            token=storage.get_token(),
            timeout=config.request_timeout,
        )
        self.store = GridStore(self.gateway, month, year)
        self.sessions = EditSessionManager(self.store, self.gateway)
        self.sessions.on_change = self._refresh_display

        # View mode: "standard" (per-day grid) or "detailed" (per-user totals)
        self.view_mode = "standard"

    def compose(self) -> ComposeResult:
        yield GridHeader(self.store.year, self.store.month, id="grid-header")
        yield Legend(id="legend")
        yield Container(DataTable(id="grid-table"), id="grid-table-container")
        yield Container(DataTable(id="detail-table"), id="detail-table-container", classes="hidden")
        yield GridSummary(id="grid-summary")
        yield Footer()

    def on_mount(self):
        grid_table = self.query_one("#grid-table", DataTable)
        grid_table.cursor_type = "cell"
        detail_table = self.query_one("#detail-table", DataTable)
        detail_table.cursor_type = "row"
        for label, width in DETAIL_COLUMNS:
            detail_table.add_column(label, width=width)

        self._refresh_display()
        grid_table.focus()
        self.run_worker(self._start(), group="load")

    async def on_unmount(self) -> None:
        if isinstance(self.gateway, SyncGateway):
            await self.gateway.aclose()

    async def _start(self) -> None:
        """Identify the acting user, then load the selected month."""
        try:
            self.sessions.principal = await self.gateway.fetch_current_user()
        except FetchFailure:
            self.notify("Could not identify current user; view is read-only", severity="warning")
        self.refresh_bindings()
        await self._load()

    async def _load(self) -> None:
        self.store.loading = True
        self._refresh_header()
        await self.store.load(self.store.month, self.store.year)
        if self.store.error:
            self.notify(self.store.error, severity="error")
        self._refresh_display()

    # --- Rendering ---

    def _refresh_display(self) -> None:
        self._refresh_header()
        if self.view_mode == "standard":
            self._refresh_grid_display()
        else:
            self._refresh_detail_display()
        summary = self.query_one("#grid-summary", GridSummary)
        summary.update_display(self.store.totals, len(self.store.rows))

    def _refresh_header(self) -> None:
        header = self.query_one("#grid-header", GridHeader)
        # Title follows the grid on screen, not a selection that failed to load
        header.month, header.year = self.store.shown_period
        header.update_display(
            edit_mode=self.sessions.edit_mode_enabled,
            loading=self.store.loading,
            error=self.store.error,
        )

    def _row_cells(self, row: UserRow) -> list[Text]:
        """Rendered cells for one user row, plus the row total."""
        rendered = []
        for cell in row.cells:
            result = classify(cell)
            style = result.style
            if self.sessions.is_key_active(cell.key):
                style = f"{style} reverse".strip()
            rendered.append(Text(result.display_value, style=style, justify="center"))
        rendered.append(Text(str(row.totals.overall_total), style="bold", justify="right"))
        return rendered

    def _daily_total_cells(self) -> list[Text]:
        grid_totals = self.store.totals
        cells = []
        for d in self.store.dates:
            value = grid_totals.daily.get(d, 0)
            cells.append(Text(str(value) if value else "", style="bold", justify="center"))
        cells.append(Text(str(grid_totals.grand_total), style="bold", justify="right"))
        return cells

    def _refresh_grid_display(self) -> None:
        table = self.query_one("#grid-table", DataTable)
        cursor = table.cursor_coordinate
        table.clear(columns=True)

        table.add_column("Team Members", width=18, key=USER_COLUMN_KEY)
        for d in self.store.dates:
            table.add_column(f"{d.day:02d}", width=8, key=format_iso_date(d))
        table.add_column("Total", width=7, key=TOTAL_COLUMN_KEY)

        for row in self.store.rows:
            table.add_row(Text(row.user_name[:18]), *self._row_cells(row), key=str(row.user_id))

        table.add_row(Text("GRAND TOTAL", style="bold"), *self._daily_total_cells(), key=TOTAL_ROW_KEY)

        if table.row_count:
            table.move_cursor(
                row=min(cursor.row, table.row_count - 1),
                column=min(cursor.column, len(table.columns) - 1),
            )

    def _refresh_detail_display(self) -> None:
        table = self.query_one("#detail-table", DataTable)
        table.clear()
        for row in self.store.rows:
            totals = row.totals
            table.add_row(
                row.user_name[:20],
                str(totals.accepted),
                str(totals.dismissed),
                str(totals.duplicates),
                str(totals.cannot_be_mapped),
                str(totals.created_property),
                Text(str(totals.overall_total), style="bold"),
                key=str(row.user_id),
            )

    def _set_view_mode(self, mode: str) -> None:
        """Switch between the grid and the per-user totals."""
        self.view_mode = mode
        self.sessions.cancel()

        grid_container = self.query_one("#grid-table-container")
        detail_container = self.query_one("#detail-table-container")
        if mode == "standard":
            grid_container.remove_class("hidden")
            detail_container.add_class("hidden")
        else:
            grid_container.add_class("hidden")
            detail_container.remove_class("hidden")

        self.refresh_bindings()
        self._refresh_display()
        table_id = "#grid-table" if mode == "standard" else "#detail-table"
        self.query_one(table_id, DataTable).focus()

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Check if an action is available in the current view."""
        if action == "toggle_edit":
            # Only edit-capable roles see the toggle, and only on the grid
            return True if self.sessions.can_edit and self.view_mode == "standard" else None
        elif action == "standard_view":
            return self.view_mode != "standard"
        elif action == "detailed_view":
            return self.view_mode != "detailed"
        return True

    # --- Navigation ---

    def _change_period(self, month: int, year: int) -> None:
        self.sessions.cancel()
        self.store.select(month, year)
        storage.save_last_period(month, year)
        self.run_worker(self._load(), group="load")

    def action_prev_month(self):
        month, year = self.store.shown_period
        year, month = shift_month(year, month, -1)
        self._change_period(month, year)

    def action_next_month(self):
        month, year = self.store.shown_period
        year, month = shift_month(year, month, 1)
        self._change_period(month, year)

    def action_goto_today(self):
        today = date.today()
        self._change_period(today.month, today.year)

    def action_refresh(self):
        self.run_worker(self._load(), group="load")

    def action_standard_view(self):
        self._set_view_mode("standard")

    def action_detailed_view(self):
        self._set_view_mode("detailed")

    def action_toggle_edit(self):
        enabled = self.sessions.toggle_edit_mode()
        self.notify("Edit mode on" if enabled else "Edit mode off")
        self._refresh_display()

    # --- Editing ---

    def _cell_key_at(self, row_key: str | None, column_key: str | None) -> CellKey | None:
        """Translate a grid coordinate into a CellKey; None for name, total and summary cells."""
        if not row_key or not column_key or row_key.startswith("__"):
            return None
        if column_key in (USER_COLUMN_KEY, TOTAL_COLUMN_KEY):
            return None
        try:
            return CellKey.for_date(int(row_key), date.fromisoformat(column_key))
        except ValueError:
            return None

    def _user_name(self, user_id: int) -> str:
        for row in self.store.rows:
            if row.user_id == user_id:
                return row.user_name
        return f"User {user_id}"

    def on_data_table_cell_selected(self, event: DataTable.CellSelected) -> None:
        """Enter/click on a grid cell opens an edit session for it."""
        if event.control.id != "grid-table":
            return
        key = self._cell_key_at(event.cell_key.row_key.value, event.cell_key.column_key.value)
        if key is not None:
            self._open_cell(key)

    def _open_cell(self, key: CellKey) -> None:
        if not self.sessions.can_edit:
            return
        if not self.sessions.edit_mode_enabled:
            self.notify("Press e to enable editing", severity="warning")
            return

        session = self.sessions.open(key)
        cell = self.store.find_cell(key)
        if session is None or cell is None:
            return
        self._refresh_grid_display()

        name = self._user_name(key.user_id)
        can_delete = self.sessions.can_delete(key)
        if self.sessions.state == EditMode.NUMERIC_EDIT:
            screen = NumericEditScreen(cell, name, session.value, can_delete=can_delete)
        else:
            screen = StatusMenuScreen(cell, name, self.sessions.status_options(key), can_delete=can_delete)
        self.push_screen(screen, partial(self._on_edit_result, key))

    def _on_edit_result(self, key: CellKey, result: tuple[str, str] | None) -> None:
        """Handle the value picked in an edit screen."""
        if result is None:
            self.sessions.cancel()
            self._refresh_display()
            return

        action, value = result
        day = key.date.strftime("%b %d")
        if action == ACTION_VALUE:
            self.sessions.update_value(value)
            self.run_worker(self._apply_change(self.sessions.set_numeric_value(key), f"Saved {value} for {day}"))
        elif action == ACTION_STATUS:
            self.run_worker(self._apply_change(self.sessions.set_status(key, value), f"{value} set for {day}"))
        elif action == ACTION_DELETE:
            self.push_screen(
                ConfirmScreen(f"Delete the entry for {day}?"),
                partial(self._on_delete_confirmed, key),
            )

    def _on_delete_confirmed(self, key: CellKey, confirmed: bool | None) -> None:
        day = key.date.strftime("%b %d")
        self.run_worker(self._apply_change(
            self.sessions.delete_entry(key, bool(confirmed)),
            f"Deleted entry for {day}",
        ))

    async def _apply_change(self, change, done_message: str) -> None:
        """Await one session mutation and report how it went."""
        try:
            saved = await change
        except EditRejected as exc:
            self.sessions.cancel()
            self.notify(str(exc), severity="error")
        else:
            if saved:
                self.notify(done_message)
            elif self.sessions.last_error:
                self.notify(f"Change not saved: {self.sessions.last_error}", severity="error")
        self._refresh_display()


def _configure_logging() -> None:
    log_path = os.environ.get("DAILYPROD_LOG") or str(storage.DB_PATH.with_suffix(".log"))
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_path,
        level=os.environ.get("DAILYPROD_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main():
    import sys
    if len(sys.argv) > 1 and sys.argv[1] == "--db-info":
        from datetime import datetime
        db_path = storage.DB_PATH
        print(f"Database: {db_path}")
        if db_path.exists():
            mtime = datetime.fromtimestamp(db_path.stat().st_mtime)
            size = db_path.stat().st_size
            print(f"Modified: {mtime.strftime('%Y-%m-%d %H:%M:%S')}")
            print(f"Size: {size:,} bytes")
        else:
            print("Status: Does not exist (will be created on first run)")
        return

    _configure_logging()
    app = DailyProdApp()
    app.run()


if __name__ == "__main__":
    main()
