"""Custom widgets for the daily productivity application."""

from __future__ import annotations

from textual.widgets import Static
from rich.text import Text

from classifier import CATEGORY_COLORS
from models import GridTotals
from utils import month_name


class GridHeader(Static):
    """Shows the month title on the left and month navigation on the right."""

    def __init__(self, year: int, month: int, **kwargs):
        super().__init__(**kwargs)
        self.year = year
        self.month = month
        self.nav_start = 0
        self.left_arrow_pos = 0
        self.right_arrow_pos = 0

    def update_display(self, edit_mode: bool = False, loading: bool = False, error: str | None = None):
        title = f"DAILY PRODUCTIVITY: {month_name(self.month)} {self.year}"
        nav = f"◄ {month_name(self.month)[:3]} {self.year} ►"

        # Navigation ends at a fixed column so the arrows stay put between months
        target_end_col = 74
        nav_start = target_end_col - len(nav)

        # Store positions for click detection
        self.nav_start = nav_start
        self.left_arrow_pos = nav_start
        self.right_arrow_pos = nav_start + len(nav) - 1

        text = Text()
        text.append(title, style="bold")

        spacing = nav_start - len(title)
        if spacing > 0:
            text.append(" " * spacing)
        else:
            text.append("  ")

        text.append(nav, style="bold")

        if edit_mode:
            text.append("  EDITING", style="bold green")
        if loading:
            text.append("  loading…", style="italic")
        if error:
            text.append(f"\n{error}", style="bold red")

        self.update(text)

    def on_click(self, event) -> None:
        """Handle clicks on the arrows for month navigation."""
        click_col = event.x

        if self.left_arrow_pos <= click_col < self.left_arrow_pos + 2:
            self.app.action_prev_month()  # type: ignore[attr-defined]
        elif self.right_arrow_pos <= click_col < self.right_arrow_pos + 2:
            self.app.action_next_month()  # type: ignore[attr-defined]


class Legend(Static):
    """Colour key for mapping types and statuses."""

    LABELS = [
        ("auto", "Auto"),
        ("manual", "Manual"),
        ("hybrid", "Hybrid"),
        ("Exempted", "Exempted"),
        ("Day Off", "Day Off"),
        ("Offset", "Offset"),
        ("Leave", "Leave"),
    ]

    def on_mount(self) -> None:
        self.update(self.render_legend())

    def render_legend(self) -> Text:
        text = Text()
        for category, label in self.LABELS:
            background, foreground = CATEGORY_COLORS[category]
            text.append(f" {label} ", style=f"{foreground} on {background}")
            text.append(" ")
        return text


class GridSummary(Static):
    """Grand totals under the grid."""

    def update_display(self, grid_totals: GridTotals, user_count: int):
        totals = grid_totals.totals
        text = Text()
        text.append(f"Team members  {user_count:>6}\n")
        text.append(f"Accepted      {totals.accepted:>6}\n", style="dim" if totals.accepted == 0 else "")
        text.append(f"Dismissed     {totals.dismissed:>6}\n", style="dim" if totals.dismissed == 0 else "")
        text.append(f"Duplicates    {totals.duplicates:>6}\n", style="dim" if totals.duplicates == 0 else "")
        text.append(
            f"Cannot map    {totals.cannot_be_mapped:>6}\n",
            style="dim" if totals.cannot_be_mapped == 0 else "",
        )
        text.append(
            f"Created prop  {totals.created_property:>6}\n",
            style="dim" if totals.created_property == 0 else "",
        )
        # Overall is never dimmed
        text.append(f"OVERALL       {grid_totals.grand_total:>6}", style="bold")
        self.update(text)
