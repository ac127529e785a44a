"""Single-cell edit lifecycle with optimistic updates.

At most one EditSession is open. Opening another silently drops the first.
Every mutation closes the session, applies its local change (if any), sends
the request, and then rebuilds the grid from a fresh fetch whether or not
the request succeeded, so the backend always has the last word.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from gateway import COUNTER_FIELDS, MutationFailure
from grid import GridStore
from models import Cell, CellKey, User
from utils import CLEAR_STATUS, EDIT_ROLES, MAPPING_TYPES, STATUS_LABELS

logger = logging.getLogger(__name__)


class EditMode(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    NUMERIC_EDIT = "numeric"
    STATUS_MENU = "status"


class EditRejected(ValueError):
    """An edit was refused before anything was sent."""


@dataclass
class EditSession:
    key: CellKey
    mode: EditMode = EditMode.SELECTING
    value: str = ""


def _parse_count(text: str) -> int:
    value = text.strip()
    if not (value.isascii() and value.isdigit()):
        raise EditRejected(f"Not a whole number: {text!r}")
    return int(value)


def _clear_counters(cell: Cell) -> None:
    for name in COUNTER_FIELDS:
        setattr(cell, name, 0)
    cell.mapping_type = None
    cell.status = None
    cell.auto_total = 0
    cell.manual_total = 0
    cell.overall_total = 0
    cell.cannot_be_mapped = 0


class EditSessionManager:
    def __init__(self, store: GridStore, gateway, principal: User | None = None):
        self.store = store
        self.gateway = gateway
        self.principal = principal
        self.edit_mode_enabled = False
        self.session: EditSession | None = None
        self.busy = False
        self.last_error: str | None = None
        # Called after each local change and each rebuild, e.g. to redraw
        self.on_change: Callable[[], None] | None = None

    @property
    def state(self) -> EditMode:
        return self.session.mode if self.session else EditMode.IDLE

    @property
    def can_edit(self) -> bool:
        """True if the acting user holds an edit-capable role."""
        return self.principal is not None and self.principal.role in EDIT_ROLES

    def set_edit_mode(self, enabled: bool) -> bool:
        """Switch the edit toggle. Any open session is dropped either way."""
        self.cancel()
        self.edit_mode_enabled = enabled and self.can_edit
        return self.edit_mode_enabled

    def toggle_edit_mode(self) -> bool:
        return self.set_edit_mode(not self.edit_mode_enabled)

    def is_key_active(self, key: CellKey) -> bool:
        return self.session is not None and self.session.key == key

    # --- Session lifecycle ---

    def open(self, key: CellKey) -> EditSession | None:
        """Start editing a cell, if both the role and the toggle allow it."""
        if not (self.can_edit and self.edit_mode_enabled) or self.busy:
            return None
        cell = self.store.find_cell(key)
        if cell is None:
            return None

        if self.session is not None:
            logger.debug("Dropping open session for %s", self.session.key)
        self.session = EditSession(key=key)

        # Uncategorised cells cannot take a number
        if cell.overall_total > 0 and not cell.status and cell.mapping_type in MAPPING_TYPES:
            self.session.mode = EditMode.NUMERIC_EDIT
            self.session.value = str(cell.overall_total)
        else:
            self.session.mode = EditMode.STATUS_MENU
        return self.session

    def update_value(self, text: str) -> None:
        if self.session is not None:
            self.session.value = text

    def cancel(self) -> None:
        """Escape: discard the session, send nothing."""
        self.session = None

    def status_options(self, key: CellKey) -> list[str]:
        """Status labels offered for a cell; clearing only when one is set."""
        cell = self.store.find_cell(key)
        options = list(STATUS_LABELS)
        if cell is not None and cell.status:
            options.append(CLEAR_STATUS)
        return options

    def can_delete(self, key: CellKey) -> bool:
        cell = self.store.find_cell(key)
        return cell is not None and not cell.status and cell.has_data

    # --- Mutations ---

    def _require_editable(self, key: CellKey) -> Cell:
        if not (self.can_edit and self.edit_mode_enabled):
            raise EditRejected("Editing is not enabled")
        if self.busy:
            raise EditRejected("Another change is still being saved")
        cell = self.store.find_cell(key)
        if cell is None:
            raise EditRejected(f"No cell for {key}")
        return cell

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def _close(self, key: CellKey) -> None:
        if self.is_key_active(key):
            self.session = None

    async def _send(self, request, key: CellKey, *args) -> bool:
        """Run one gateway call, then rebuild regardless of the outcome."""
        self.busy = True
        self.last_error = None
        self._changed()
        try:
            await request(key.user_id, key.date, *args)
            return True
        except MutationFailure as exc:
            logger.warning("Change to %s failed: %s", key, exc)
            self.last_error = str(exc)
            return False
        finally:
            try:
                await self.store.reload()
            finally:
                self.busy = False
                self._changed()

    async def set_numeric_value(self, key: CellKey, text: str | None = None) -> bool:
        """Commit a typed total. The rebuilt grid shows what the backend computed."""
        self.last_error = None
        cell = self._require_editable(key)
        if text is None:
            text = self.session.value if self.is_key_active(key) else ""
        if cell.mapping_type not in MAPPING_TYPES:
            raise EditRejected("Cell has no mapping type; set a status instead")
        value = _parse_count(text)

        self._close(key)
        return await self._send(self.gateway.patch_cell, key, value)

    async def set_status(self, key: CellKey, label: str) -> bool:
        self.last_error = None
        if label == CLEAR_STATUS:
            return await self.clear_status(key)
        if label not in STATUS_LABELS:
            raise EditRejected(f"Unknown status: {label!r}")
        self._require_editable(key)

        def apply(cell: Cell) -> None:
            cell.status = label
            cell.overall_total = 0

        self._close(key)
        self.store.mutate_cell(key, apply)
        return await self._send(self.gateway.patch_status, key, label)

    async def clear_status(self, key: CellKey) -> bool:
        self.last_error = None
        self._require_editable(key)

        def apply(cell: Cell) -> None:
            cell.status = None

        self._close(key)
        self.store.mutate_cell(key, apply)
        return await self._send(self.gateway.delete_status, key)

    async def delete_entry(self, key: CellKey, confirmed: bool) -> bool:
        """Remove every counter for the cell once the user has confirmed."""
        self.last_error = None
        if not confirmed:
            self._close(key)
            return False
        self._require_editable(key)

        self._close(key)
        self.store.mutate_cell(key, _clear_counters)
        return await self._send(self.gateway.delete_entry, key)
