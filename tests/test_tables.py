from __future__ import annotations

from unittest.mock import patch

from docflow.models import TextFragment
from docflow.tables import detect_tables, group_rows


def _fragment(text: str, x: float, y: float) -> TextFragment:
    return TextFragment(text=text, x=x, y=y, width=len(text) * 6.0, height=12.0, font_size=12.0)


def _grid(rows, *, left=72, top=700):
    return [
        _fragment(value, left + column * 120, top - row * 24)
        for row, values in enumerate(rows)
        for column, value in enumerate(values)
    ]


def test_group_rows_orders_top_to_bottom_then_left_to_right():
    fragments = [
        _fragment("b", 200, 700.2),
        _fragment("c", 72, 676),
        _fragment("a", 72, 699.8),
    ]
    rows = group_rows(fragments)
    assert [[item.text for item in row] for row in rows] == [["a", "b"], ["c"]]


def test_detects_three_by_three_grid():
    fragments = _grid([["Name", "Qty", "Price"], ["Apple", "3", "1.20"], ["Pear", "5", "0.80"]])
    tables = detect_tables(fragments, page_number=2)

    assert len(tables) == 1
    table = tables[0]
    assert table.id == "p2-table-1"
    assert table.page_number == 2
    assert (table.row_count, table.column_count) == (3, 3)
    assert [cell.content for cell in table.rows[1].cells] == ["Apple", "3", "1.20"]
    assert all(cell.row_index == 1 for cell in table.rows[1].cells)
    assert table.x == 72
    assert table.width > 0 and table.height > 0


def test_single_line_is_not_a_table():
    assert detect_tables([_fragment("Just a heading", 72, 700)], page_number=1) == []
    assert detect_tables(_grid([["a", "b", "c"]]), page_number=1) == []


def test_rows_with_one_fragment_are_ignored():
    fragments = _grid([["Left", "Right"], ["Left", "Right"]]) + [_fragment("Footnote", 72, 600)]
    table = detect_tables(fragments, page_number=1)[0]
    assert table.row_count == 2
    assert table.column_count == 2


def test_irregular_rows_report_widest_row():
    fragments = _grid([["a", "b", "c"], ["d", "e"]])
    table = detect_tables(fragments, page_number=1)[0]
    assert table.column_count == 3
    assert len(table.rows[1].cells) == 2


def test_detection_failure_yields_no_tables():
    with patch("docflow.tables._detect", side_effect=RuntimeError("boom")):
        assert detect_tables(_grid([["a", "b"], ["c", "d"]]), page_number=1) == []
