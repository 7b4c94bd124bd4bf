"""Responsive layout mode selection and column fitting by terminal width."""

from __future__ import annotations

from typing import Sequence

from tgcp.registry import Column

# Cursor/selection marker plus the table's own padding per column.
MARKER_WIDTH = 2
COLUMN_PADDING = 2


def select_layout_mode(width: int) -> str:
    if width < 100:
        return "narrow"
    if width < 160:
        return "medium"
    return "wide"


def fit_columns(columns: Sequence[Column], width: int) -> list[Column]:
    """Columns that fit in ``width``, dropped from the right; the first always stays."""
    if not columns:
        return []
    fitted = [columns[0]]
    used = MARKER_WIDTH + columns[0].width + COLUMN_PADDING
    for column in columns[1:]:
        needed = column.width + COLUMN_PADDING
        if used + needed > width:
            break
        fitted.append(column)
        used += needed
    return fitted
