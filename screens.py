"""Modal screens for editing a grid cell."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Input, Label, OptionList
from textual.widgets.option_list import Option
from textual.screen import ModalScreen

from models import Cell

# Result actions returned by the edit screens
ACTION_VALUE = "value"
ACTION_STATUS = "status"
ACTION_DELETE = "delete"


def _cell_title(cell: Cell, user_name: str) -> str:
    return f"{user_name}, {cell.date.strftime('%a %b %d, %Y')}"


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no dialog for destructive actions."""

    CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 50;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $error;
    }

    #confirm-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
    }

    #confirm-buttons Button {
        width: 1fr;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("y", "confirm", "Yes"),
        Binding("n", "cancel", "No"),
    ]

    def __init__(self, message: str):
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self.message)
            with Horizontal(id="confirm-buttons"):
                yield Button("Delete (Y)", variant="error", id="yes")
                yield Button("Keep (N)", variant="default", id="no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class NumericEditScreen(ModalScreen[tuple[str, str] | None]):
    """Override a cell's overall total with a typed number."""

    CSS = """
    NumericEditScreen {
        align: center middle;
    }

    #numeric-dialog {
        width: 50;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #numeric-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    .field-label {
        height: 1;
        color: $text-muted;
    }

    #numeric-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    #numeric-buttons Button {
        width: auto;
        min-width: 10;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, cell: Cell, user_name: str, value: str = "", can_delete: bool = False):
        super().__init__()
        self.cell = cell
        self.user_name = user_name
        self.value = value
        self.can_delete = can_delete

    def compose(self) -> ComposeResult:
        with Vertical(id="numeric-dialog"):
            yield Label(_cell_title(self.cell, self.user_name), id="numeric-title")
            yield Label(f"Overall total ({self.cell.mapping_type or 'uncategorised'})", classes="field-label")
            yield Input(value=self.value, placeholder="0", id="numeric-value")
            with Horizontal(id="numeric-buttons"):
                yield Button("Save", variant="primary", id="save")
                if self.can_delete:
                    yield Button("Delete", variant="error", id="delete")
                yield Button("Cancel", variant="default", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#numeric-value", Input).focus()

    def on_input_changed(self, event: Input.Changed) -> None:
        self.value = event.value

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Enter commits."""
        self._save_value()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "delete":
            self.dismiss((ACTION_DELETE, ""))
        elif event.button.id == "save":
            self._save_value()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _save_value(self) -> None:
        value = self.value.strip()
        if not (value.isascii() and value.isdigit()):
            self.app.notify("Enter a whole number", severity="error")
            return
        self.dismiss((ACTION_VALUE, value))


class StatusMenuScreen(ModalScreen[tuple[str, str] | None]):
    """Pick a status label for a cell, or clear the current one."""

    CSS = """
    StatusMenuScreen {
        align: center middle;
    }

    #status-dialog {
        width: 40;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #status-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    #status-options {
        height: auto;
        max-height: 10;
    }

    #status-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    #status-buttons Button {
        width: auto;
        min-width: 10;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, cell: Cell, user_name: str, options: list[str], can_delete: bool = False):
        super().__init__()
        self.cell = cell
        self.user_name = user_name
        self.options = options
        self.can_delete = can_delete

    @property
    def heading(self) -> str:
        return "Change Status" if self.cell.status else "Set Status"

    def compose(self) -> ComposeResult:
        with Vertical(id="status-dialog"):
            yield Label(f"{self.heading}: {_cell_title(self.cell, self.user_name)}", id="status-title")
            yield OptionList(*[Option(label, id=label) for label in self.options], id="status-options")
            with Horizontal(id="status-buttons"):
                if self.can_delete:
                    yield Button("Delete", variant="error", id="delete")
                yield Button("Cancel", variant="default", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#status-options", OptionList).focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option.id in self.options:
            self.dismiss((ACTION_STATUS, event.option.id))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "delete":
            self.dismiss((ACTION_DELETE, ""))
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)
