"""Split editor text into executable statements."""

from __future__ import annotations

from typing import Sequence


def _check_separator(separator: str) -> None:
    if not separator:
        raise ValueError("Statement separator cannot be empty")


def extract_all(lines: Sequence[str], separator: str) -> list[str]:
    """Every non-blank statement in the buffer, in order."""

    _check_separator(separator)
    text = "\n".join(lines)
    return [piece.strip() for piece in text.split(separator) if piece.strip()]


def extract_at_cursor(lines: Sequence[str], separator: str, cursor_line: int) -> str:
    """The statement surrounding ``cursor_line`` (zero based).

    The statement is bounded by the nearest separator above the cursor and
    the nearest separator at or below it.
    """

    _check_separator(separator)
    if not lines:
        return ""
    if cursor_line < 0 or cursor_line >= len(lines):
        raise ValueError(f"Cursor line {cursor_line} is outside the buffer (0..{len(lines) - 1})")

    before: list[str] = []
    for index in range(cursor_line - 1, -1, -1):
        line = lines[index]
        if separator in line:
            tail = line.rsplit(separator, 1)[1]
            if tail.strip():
                before.append(tail)
            break
        before.append(line)
    before.reverse()

    current = lines[cursor_line]
    after: list[str] = []
    if separator in current:
        current = current.split(separator, 1)[0]
    else:
        for line in lines[cursor_line + 1 :]:
            if separator in line:
                head = line.split(separator, 1)[0]
                if head.strip():
                    after.append(head)
                break
            after.append(line)

    return "\n".join([*before, current, *after]).strip()


__all__ = ["extract_all", "extract_at_cursor"]
