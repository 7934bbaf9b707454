"""Scrollable panel rendering statement results."""

from __future__ import annotations

from typing import Sequence

from textual.containers import VerticalScroll
from textual.widgets import DataTable, Static

from sqlconsole.models import RowSet, StatementResult, UpdateCount
from sqlconsole.query import format_value

DEFAULT_ROW_LIMIT = 200


class ResultsView(VerticalScroll):
    """One table per row set, one line per update count."""

    DEFAULT_CSS = """
    ResultsView {
        height: 1fr;
        border-top: solid $surface-darken-2;
    }

    ResultsView DataTable {
        height: auto;
        max-height: 20;
        margin-bottom: 1;
    }

    ResultsView .result-caption {
        color: $text-muted;
    }
    """

    def __init__(self) -> None:
        super().__init__(id="results-view")

    @property
    def row_limit(self) -> int:
        """Rows that fit in the visible area; a default before layout."""

        height = self.size.height
        if height <= 3:
            return DEFAULT_ROW_LIMIT
        return max(1, height - 3)

    async def show_results(self, results: Sequence[StatementResult]) -> None:
        await self.remove_children()
        widgets = []
        for index, result in enumerate(results, start=1):
            if isinstance(result, RowSet):
                caption = f"Result {index}: {len(result.rows)} row(s)"
                if result.truncated:
                    caption += " (more rows available)"
                widgets.append(Static(caption, classes="result-caption"))
                widgets.append(self._build_table(result))
            elif isinstance(result, UpdateCount):
                count = "unknown" if result.count < 0 else str(result.count)
                widgets.append(Static(f"Result {index}: {count} row(s) affected", classes="result-caption"))
        if widgets:
            await self.mount_all(widgets)

    async def clear_results(self) -> None:
        await self.remove_children()

    @staticmethod
    def _build_table(result: RowSet) -> DataTable:
        table: DataTable = DataTable(zebra_stripes=True)
        table.cursor_type = "row"
        table.add_columns(*result.columns)
        for row in result.rows:
            table.add_row(*(format_value(row.get(column)) for column in result.columns))
        return table


__all__ = ["DEFAULT_ROW_LIMIT", "ResultsView"]
