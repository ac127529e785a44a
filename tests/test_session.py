"""Tests for session.py - the single-cell edit lifecycle."""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from classifier import classify
from grid import GridStore
from models import CellKey, RawEntry, User
from session import EditMode, EditRejected, EditSessionManager
from utils import CLEAR_STATUS, STATUS_LABELS

AUTO_DAY = CellKey(1, 5, 2, 2024)
EMPTY_DAY = CellKey(1, 6, 2, 2024)
LEAVE_DAY = CellKey(2, 7, 2, 2024)


@pytest.fixture
def gateway(gateway_factory, roster):
    entries = [
        RawEntry(user_id=1, date=date(2024, 2, 5), accepted=5, dismissed=3, mapping_type="auto"),
        RawEntry(user_id=2, date=date(2024, 2, 7), manually_mapped=2, mapping_type="manual", status="Leave"),
    ]
    return gateway_factory(roster=roster, entries=entries)


@pytest.fixture
def manager(gateway, leader) -> EditSessionManager:
    """A loaded grid with a leader who has switched editing on."""
    store = GridStore(gateway, 2, 2024)
    asyncio.run(store.load(2, 2024))
    manager = EditSessionManager(store, gateway, principal=leader)
    manager.set_edit_mode(True)
    return manager


class TestEditGate:
    """Both the role and the toggle must allow editing."""

    def test_edit_roles(self, manager):
        assert manager.can_edit is True

    def test_other_role_cannot_edit(self, manager):
        manager.principal = User(id=1, name="Alice", role="junior")
        assert manager.can_edit is False
        assert manager.set_edit_mode(True) is False

    def test_no_principal(self, manager):
        manager.principal = None
        assert manager.can_edit is False
        assert manager.open(AUTO_DAY) is None

    def test_toggle_off_blocks_open(self, manager):
        manager.set_edit_mode(False)
        assert manager.open(AUTO_DAY) is None
        assert manager.state == EditMode.IDLE

    def test_toggle_closes_session(self, manager):
        manager.open(AUTO_DAY)
        manager.toggle_edit_mode()
        assert manager.session is None
        assert manager.edit_mode_enabled is False

    def test_mutation_rejected_when_disabled(self, manager, gateway):
        manager.set_edit_mode(False)
        with pytest.raises(EditRejected):
            asyncio.run(manager.set_status(EMPTY_DAY, "Leave"))
        assert gateway.mutations() == []


class TestOpen:
    """Tests for opening a session."""

    def test_numeric_for_counted_cell(self, manager):
        session = manager.open(AUTO_DAY)
        assert session.mode == EditMode.NUMERIC_EDIT
        assert session.value == "8"
        assert manager.state == EditMode.NUMERIC_EDIT

    def test_status_menu_for_empty_cell(self, manager):
        assert manager.open(EMPTY_DAY).mode == EditMode.STATUS_MENU

    def test_status_menu_for_status_cell(self, manager):
        assert manager.open(LEAVE_DAY).mode == EditMode.STATUS_MENU

    def test_status_menu_for_uncategorised_total(self, gateway_factory, roster, leader):
        """A counted cell without a mapping type opens the status menu."""
        entry = RawEntry(user_id=1, date=date(2024, 2, 9), incorrect_supplier_data=2, created_property=1)
        gateway = gateway_factory(roster=roster, entries=[entry])
        store = GridStore(gateway, 2, 2024)
        asyncio.run(store.load(2, 2024))
        manager = EditSessionManager(store, gateway, principal=leader)
        manager.set_edit_mode(True)

        session = manager.open(CellKey(1, 9, 2, 2024))

        assert store.find_cell(CellKey(1, 9, 2, 2024)).overall_total == 3
        assert session.mode == EditMode.STATUS_MENU
        assert manager.state == EditMode.STATUS_MENU

    def test_unknown_cell(self, manager):
        assert manager.open(CellKey(1, 5, 3, 2024)) is None

    def test_second_open_replaces_first(self, manager):
        """Only one session is ever open."""
        manager.open(AUTO_DAY)
        manager.open(EMPTY_DAY)
        assert manager.is_key_active(EMPTY_DAY)
        assert not manager.is_key_active(AUTO_DAY)

    def test_cancel_sends_nothing(self, manager, gateway):
        manager.open(AUTO_DAY)
        manager.update_value("99")
        manager.cancel()

        assert manager.session is None
        assert gateway.mutations() == []
        assert manager.store.find_cell(AUTO_DAY).overall_total == 8


class TestMenuOptions:
    """Tests for status options and delete availability."""

    def test_clear_offered_only_with_status(self, manager):
        assert manager.status_options(EMPTY_DAY) == STATUS_LABELS
        assert manager.status_options(LEAVE_DAY) == STATUS_LABELS + [CLEAR_STATUS]

    def test_can_delete(self, manager):
        assert manager.can_delete(AUTO_DAY) is True
        assert manager.can_delete(EMPTY_DAY) is False
        # Status cells have to be cleared first
        assert manager.can_delete(LEAVE_DAY) is False


class TestSetStatus:
    """Tests for set_status and clear_status."""

    def test_optimistic_then_patch(self, manager, gateway):
        """The cell shows the status before the request resolves."""
        seen = []
        gateway.during_mutation = lambda: seen.append(classify(manager.store.find_cell(AUTO_DAY)))

        assert asyncio.run(manager.set_status(AUTO_DAY, "Leave")) is True

        assert seen[0].display_value == "Leave"
        assert seen[0].category == "Leave"
        assert gateway.mutations() == [("patch_status", 1, date(2024, 2, 5), "Leave")]

    def test_optimistic_updates_row_total(self, manager, gateway):
        seen = []
        gateway.during_mutation = lambda: seen.append(manager.store.rows[0].totals.overall_total)
        asyncio.run(manager.set_status(AUTO_DAY, "Day Off"))
        assert seen == [0]

    def test_failed_patch_reverts_on_rebuild(self, manager, gateway):
        """The rebuilt grid shows what the backend still holds."""
        gateway.fail_mutations = True

        assert asyncio.run(manager.set_status(AUTO_DAY, "Leave")) is False

        result = classify(manager.store.find_cell(AUTO_DAY))
        assert result.display_value == "8"
        assert result.category == "auto"
        assert manager.last_error == "patch_status rejected"
        assert manager.busy is False

    def test_rebuild_after_success(self, manager, gateway):
        asyncio.run(manager.set_status(AUTO_DAY, "Offset"))
        fetches = [c for c in gateway.calls if c[0] == "fetch_entries"]
        assert len(fetches) == 2

    def test_closes_session(self, manager):
        manager.open(EMPTY_DAY)
        asyncio.run(manager.set_status(EMPTY_DAY, "Exempted"))
        assert manager.session is None

    def test_unknown_label(self, manager, gateway):
        with pytest.raises(EditRejected):
            asyncio.run(manager.set_status(AUTO_DAY, "Holiday"))
        assert gateway.mutations() == []

    def test_clear_label_routes_to_delete_status(self, manager, gateway):
        asyncio.run(manager.set_status(LEAVE_DAY, CLEAR_STATUS))
        assert gateway.mutations() == [("delete_status", 2, date(2024, 2, 7))]

    def test_clear_status_optimistic(self, manager, gateway):
        seen = []
        gateway.during_mutation = lambda: seen.append(manager.store.find_cell(LEAVE_DAY).status)
        asyncio.run(manager.clear_status(LEAVE_DAY))
        assert seen == [None]


class TestDeleteEntry:
    """Tests for delete_entry."""

    def test_unconfirmed_sends_nothing(self, manager, gateway):
        manager.open(AUTO_DAY)
        assert asyncio.run(manager.delete_entry(AUTO_DAY, confirmed=False)) is False
        assert gateway.mutations() == []
        assert manager.session is None
        assert manager.store.find_cell(AUTO_DAY).overall_total == 8

    def test_unconfirmed_clears_previous_error(self, manager, gateway):
        """A cancelled delete does not report an earlier failure."""
        gateway.fail_mutations = True
        asyncio.run(manager.set_status(AUTO_DAY, "Leave"))
        assert manager.last_error is not None

        assert asyncio.run(manager.delete_entry(AUTO_DAY, confirmed=False)) is False
        assert manager.last_error is None

    def test_confirmed_clears_cell(self, manager, gateway):
        """After a delete the cell looks as if it never had an entry."""
        def backend_delete():
            gateway.entries = [e for e in gateway.entries if e.user_id != 1]

        gateway.during_mutation = backend_delete

        assert asyncio.run(manager.delete_entry(AUTO_DAY, confirmed=True)) is True

        cell = manager.store.find_cell(AUTO_DAY)
        assert cell.overall_total == 0
        assert cell.accepted == 0
        assert cell.mapping_type is None
        assert classify(cell).display_value == ""
        assert manager.store.rows[0].totals.overall_total == 0
        assert gateway.mutations() == [("delete_entry", 1, date(2024, 2, 5))]

    def test_delete_unmappable_cell(self, gateway_factory, roster, leader):
        """A cell holding only supplier and created-property counts is deletable."""
        entry = RawEntry(user_id=1, date=date(2024, 2, 9), incorrect_supplier_data=2, created_property=1)
        gateway = gateway_factory(roster=roster, entries=[entry])
        store = GridStore(gateway, 2, 2024)
        asyncio.run(store.load(2, 2024))
        manager = EditSessionManager(store, gateway, principal=leader)
        manager.set_edit_mode(True)
        key = CellKey(1, 9, 2, 2024)

        assert manager.can_delete(key) is True
        gateway.during_mutation = lambda: gateway.entries.clear()
        asyncio.run(manager.delete_entry(key, confirmed=True))

        fresh = GridStore(gateway_factory(roster=roster), 2, 2024)
        asyncio.run(fresh.load(2, 2024))
        assert store.find_cell(key) == fresh.find_cell(key)

    def test_optimistic_clear(self, manager, gateway):
        seen = []
        gateway.during_mutation = lambda: seen.append(manager.store.find_cell(AUTO_DAY).overall_total)
        asyncio.run(manager.delete_entry(AUTO_DAY, confirmed=True))
        assert seen == [0]


class TestNumericValue:
    """Tests for set_numeric_value."""

    def test_patch_with_typed_value(self, manager, gateway):
        manager.open(AUTO_DAY)
        manager.update_value("12")

        assert asyncio.run(manager.set_numeric_value(AUTO_DAY)) is True

        assert gateway.mutations() == [("patch_cell", 1, date(2024, 2, 5), 12)]
        assert manager.session is None

    def test_explicit_text(self, manager, gateway):
        asyncio.run(manager.set_numeric_value(AUTO_DAY, " 3 "))
        assert gateway.mutations() == [("patch_cell", 1, date(2024, 2, 5), 3)]

    def test_non_numeric_rejected(self, manager, gateway):
        with pytest.raises(EditRejected):
            asyncio.run(manager.set_numeric_value(AUTO_DAY, "abc"))
        with pytest.raises(EditRejected):
            asyncio.run(manager.set_numeric_value(AUTO_DAY, "-4"))
        assert gateway.mutations() == []

    def test_non_ascii_digits_rejected(self, manager, gateway):
        """Superscripts pass isdigit() but are not whole numbers."""
        with pytest.raises(EditRejected):
            asyncio.run(manager.set_numeric_value(AUTO_DAY, "²"))
        with pytest.raises(EditRejected):
            asyncio.run(manager.set_numeric_value(AUTO_DAY, "١٢"))
        assert gateway.mutations() == []

    def test_no_mapping_type_rejected(self, manager, gateway):
        """An uncategorised cell cannot take a number."""
        with pytest.raises(EditRejected):
            asyncio.run(manager.set_numeric_value(EMPTY_DAY, "5"))
        assert gateway.mutations() == []


class TestNotifications:
    """Tests for busy and on_change."""

    def test_busy_during_request(self, manager, gateway):
        seen = []
        gateway.during_mutation = lambda: seen.append(manager.busy)
        asyncio.run(manager.set_status(AUTO_DAY, "Leave"))
        assert seen == [True]
        assert manager.busy is False

    def test_busy_blocks_open(self, manager):
        manager.busy = True
        assert manager.open(AUTO_DAY) is None

    def test_on_change_called(self, manager):
        calls = []
        manager.on_change = lambda: calls.append(manager.busy)
        asyncio.run(manager.set_status(AUTO_DAY, "Leave"))
        assert calls == [True, False]
