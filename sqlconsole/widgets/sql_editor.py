"""Multi-line SQL editor."""

from __future__ import annotations

from textual.widgets import TextArea

INDENT_WIDTH = 4


class SqlEditor(TextArea):
    """Text area where Tab inserts spaces instead of moving focus."""

    DEFAULT_CSS = """
    SqlEditor {
        height: 1fr;
        border: round $primary 40%;
    }

    SqlEditor:focus {
        border: round $primary;
    }
    """

    def __init__(self, text: str = "", *, id: str | None = "sql-editor") -> None:
        super().__init__(
            text,
            id=id,
            tab_behavior="indent",
            soft_wrap=False,
            show_line_numbers=True,
        )
        self.indent_type = "spaces"
        self.indent_width = INDENT_WIDTH

    @property
    def buffer_lines(self) -> list[str]:
        return list(self.document.lines)

    @property
    def cursor_row(self) -> int:
        row, _ = self.cursor_location
        return row


__all__ = ["INDENT_WIDTH", "SqlEditor"]
