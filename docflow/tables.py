"""Heuristic table detection from positioned text fragments.

Fragments sharing a rounded baseline form a candidate row; a page is reported
as holding a table when at least two such rows carry two or more fragments
each. This is a positional heuristic rather than a ruling-line or grid
detector, so multi-column prose can surface as a table and irregular rows are
expected.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Sequence

from .constants import MIN_TABLE_COLUMNS, MIN_TABLE_ROWS
from .models import DetectedTable, TableCell, TableRow, TextFragment
from .utils import normalise_whitespace

LOGGER = logging.getLogger(__name__)

__all__ = ["detect_tables", "group_rows"]


def group_rows(fragments: Sequence[TextFragment]) -> list[list[TextFragment]]:
    """Group fragments by rounded y, top row first, each row sorted by x."""

    buckets: dict[int, list[TextFragment]] = defaultdict(list)
    for fragment in fragments:
        if not fragment.text.strip():
            continue
        buckets[round(fragment.y)].append(fragment)
    rows: list[list[TextFragment]] = []
    for key in sorted(buckets, reverse=True):
        rows.append(sorted(buckets[key], key=lambda item: item.x))
    return rows


def detect_tables(fragments: Sequence[TextFragment], page_number: int) -> list[DetectedTable]:
    """Return the tables found among *fragments*; never raises."""

    try:
        return _detect(fragments, page_number)
    except Exception as exc:
        LOGGER.debug("Table detection failed on page %d: %s", page_number, exc)
        return []


def _detect(fragments: Sequence[TextFragment], page_number: int) -> list[DetectedTable]:
    candidate_rows = [row for row in group_rows(fragments) if len(row) >= MIN_TABLE_COLUMNS]
    if len(candidate_rows) < MIN_TABLE_ROWS:
        return []
    column_count = max(len(row) for row in candidate_rows)
    if column_count < MIN_TABLE_COLUMNS:
        return []

    rows: list[TableRow] = []
    for row_index, row in enumerate(candidate_rows):
        cells = [
            TableCell(
                content=normalise_whitespace(fragment.text),
                row_index=row_index,
                column_index=column_index,
                x=fragment.x,
                y=fragment.y,
                width=fragment.width,
                height=fragment.height,
            )
            for column_index, fragment in enumerate(row)
        ]
        rows.append(TableRow(cells=cells))

    all_cells = [cell for row in rows for cell in row.cells]
    left = min(cell.x for cell in all_cells)
    bottom = min(cell.y for cell in all_cells)
    right = max(cell.x + cell.width for cell in all_cells)
    top = max(cell.y + cell.height for cell in all_cells)

    table = DetectedTable(
        id=f"p{page_number}-table-1",
        page_number=page_number,
        x=left,
        y=bottom,
        width=right - left,
        height=top - bottom,
        row_count=len(rows),
        column_count=column_count,
        rows=rows,
    )
    LOGGER.debug(
        "Detected %dx%d table on page %d", table.row_count, table.column_count, page_number
    )
    return [table]
