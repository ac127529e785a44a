"""Decide how a single cell is displayed."""

from __future__ import annotations

from dataclasses import dataclass

from models import Cell
from utils import MAPPING_TYPES, STATUS_LABELS

NO_CATEGORY = "none"

# (background, foreground)
CATEGORY_COLORS: dict[str, tuple[str, str]] = {
    "auto": ("#86efac", "#166534"),
    "manual": ("#fb923c", "#ffffff"),
    "hybrid": ("#fde68a", "#78350f"),
    "Exempted": ("#fef08a", "#854d0e"),
    "Day Off": ("#bfdbfe", "#1e40af"),
    "Offset": ("#fecaca", "#991b1b"),
    "Leave": ("#e9d5ff", "#6b21a8"),
}


@dataclass(frozen=True)
class Classification:
    display_value: str
    category: str

    @property
    def colors(self) -> tuple[str, str] | None:
        return CATEGORY_COLORS.get(self.category)

    @property
    def style(self) -> str:
        """Rich style string for the category, empty when uncategorised."""
        colors = self.colors
        if not colors:
            return ""
        background, foreground = colors
        return f"{foreground} on {background}"


def classify(cell: Cell | None) -> Classification:
    """Status beats mapping type; an absent cell renders blank."""
    if cell is None:
        return Classification("", NO_CATEGORY)

    if cell.status in STATUS_LABELS:
        return Classification(cell.status, cell.status)

    display = str(cell.overall_total) if cell.overall_total > 0 else ""
    if cell.mapping_type in MAPPING_TYPES:
        return Classification(display, cell.mapping_type)
    return Classification(display, NO_CATEGORY)

