"""
Plain-text layout helpers for reports and index files.

Pure functions: no I/O, no logging, no state. Everything returns a string
(without a trailing newline) that callers join into larger documents.
"""

from __future__ import annotations

import textwrap
from enum import Enum
from typing import List, Optional, Sequence

DEFAULT_LINE_WIDTH = 80


class BoxStyle(Enum):
    """Border characters: top-left, top-right, bottom-left, bottom-right, horizontal, vertical."""

    SIMPLE = ("┌", "┐", "└", "┘", "─", "│")
    DOUBLE = ("╔", "╗", "╚", "╝", "═", "║")
    HEAVY = ("┏", "┓", "┗", "┛", "━", "┃")
    ROUNDED = ("╭", "╮", "╰", "╯", "─", "│")
    ASCII = ("+", "+", "+", "+", "-", "|")

    @property
    def top_left(self) -> str:
        return self.value[0]

    @property
    def top_right(self) -> str:
        return self.value[1]

    @property
    def bottom_left(self) -> str:
        return self.value[2]

    @property
    def bottom_right(self) -> str:
        return self.value[3]

    @property
    def horizontal(self) -> str:
        return self.value[4]

    @property
    def vertical(self) -> str:
        return self.value[5]


# =============================================================================
# ALIGNMENT
# =============================================================================

def center_text(text: str, width: int = DEFAULT_LINE_WIDTH) -> str:
    """Center ``text`` in ``width`` columns; longer text is returned unchanged."""
    if len(text) >= width:
        return text
    return text.center(width)


def right_align(text: str, width: int = DEFAULT_LINE_WIDTH) -> str:
    if len(text) >= width:
        return text
    return text.rjust(width)


def left_align(text: str, width: int = DEFAULT_LINE_WIDTH) -> str:
    """Pad to ``width``; longer text is cut to ``width``."""
    if len(text) >= width:
        return text[:width]
    return text.ljust(width)


def wrap_text(text: str, width: int = DEFAULT_LINE_WIDTH, indent: str = "") -> str:
    """Word-wrap ``text`` so no line (indent included) exceeds ``width``."""
    if not text:
        return indent
    return textwrap.fill(
        text,
        width=max(width, len(indent) + 1),
        initial_indent=indent,
        subsequent_indent=indent,
        break_long_words=True,
    )


def truncate_text(text: str, max_length: int, ellipsis: str = "...") -> str:
    if len(text) <= max_length:
        return text
    return text[: max(max_length - len(ellipsis), 0)] + ellipsis


def separator(char: str = "=", width: int = DEFAULT_LINE_WIDTH) -> str:
    return char * width


# =============================================================================
# BLOCKS
# =============================================================================

def _column_widths(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> List[int]:
    widths = [len(header) for header in headers]
    for row in rows:
        for index, cell in enumerate(row[: len(widths)]):
            widths[index] = max(widths[index], len(cell))
    return widths


def _table_row(cells: Sequence[str], widths: Sequence[int]) -> str:
    padded = [left_align(cell, width) for cell, width in zip(cells, widths)]
    # Short rows get empty cells
    padded += [" " * width for width in widths[len(padded):]]
    return "| " + " | ".join(padded) + " |"


def create_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    column_widths: Optional[Sequence[int]] = None,
) -> str:
    """
    Render an ASCII table.

    Example:
        | Codice | Descrizione |
        +--------+-------------+
        | P-01   | Cinghia     |

    Returns an empty string when there are no headers or no rows. Cells
    longer than their column are cut.
    """
    if not headers or not rows:
        return ""

    widths = list(column_widths) if column_widths else _column_widths(headers, rows)
    lines = [
        _table_row(headers, widths),
        "+-" + "-+-".join("-" * width for width in widths) + "-+",
    ]
    lines.extend(_table_row(row, widths) for row in rows)
    return "\n".join(lines)


def create_box(
    content: str,
    width: int = DEFAULT_LINE_WIDTH,
    title: Optional[str] = None,
    style: BoxStyle = BoxStyle.SIMPLE,
) -> str:
    """Draw a bordered box ``width`` columns wide around ``content``."""
    inner = width - 4
    lines = [style.top_left + style.horizontal * (width - 2) + style.top_right]
    if title:
        lines.append(f"{style.vertical} {center_text(title, inner)} {style.vertical}")
        lines.append(f"{style.vertical} {'-' * inner} {style.vertical}")
    for line in content.split("\n"):
        lines.append(f"{style.vertical} {left_align(line, inner)} {style.vertical}")
    lines.append(style.bottom_left + style.horizontal * (width - 2) + style.bottom_right)
    return "\n".join(lines)


def create_progress_bar(
    current: int,
    total: int,
    width: int = 50,
    show_percentage: bool = True,
) -> str:
    """
    Render ``[█████░░░░░] 50% (5/10)``.

    ``current`` is clamped to ``total`` so the bar never overflows.
    """
    current = max(0, min(current, total)) if total > 0 else 0
    percentage = (current * 100) // total if total > 0 else 0
    filled = (current * width) // max(total, 1)
    bar = "█" * filled + "░" * (width - filled)
    if show_percentage:
        return f"[{bar}] {percentage}% ({current}/{total})"
    return f"[{bar}] ({current}/{total})"


def create_bullet_list(items: Sequence[str], bullet: str = "•", indent: str = "  ") -> str:
    return "\n".join(f"{indent}{bullet} {item}" for item in items)


def create_numbered_list(items: Sequence[str], indent: str = "  ") -> str:
    return "\n".join(f"{indent}{n}. {item}" for n, item in enumerate(items, start=1))


def create_section(title: str, content: str, underline: str = "-") -> str:
    """Title, an underline of the same length, then the content."""
    return f"{title}\n{underline * len(title)}\n{content}"


def create_banner(title: str, char: str = "=", width: int = DEFAULT_LINE_WIDTH) -> str:
    """Full-width rule, centered title, full-width rule."""
    rule = separator(char, width)
    return f"{rule}\n{center_text(title, width).rstrip()}\n{rule}"


def create_columns(
    columns: Sequence[str],
    column_widths: Sequence[int],
    gap: str = "  ",
) -> str:
    """Lay multi-line blocks side by side."""
    split = [column.split("\n") for column in columns]
    height = max((len(lines) for lines in split), default=0)
    rows = []
    for index in range(height):
        cells = [
            left_align(lines[index] if index < len(lines) else "", width)
            for lines, width in zip(split, column_widths)
        ]
        rows.append(gap.join(cells).rstrip())
    return "\n".join(rows)


# =============================================================================
# QUANTITIES
# =============================================================================

def format_file_size(size_bytes: int) -> str:
    """
    Human-readable size: ``512 B``, ``1.5 KB``, ``2.0 MB``, ``1.1 GB``.

    Bytes are printed as an integer; larger units with one decimal place.
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in ("KB", "MB", "GB"):
        size /= 1024
        if size < 1024 or unit == "GB":
            return f"{size:.1f} {unit}"


def format_duration(milliseconds: int) -> str:
    """``45s``, ``3m 20s``, ``1h 5m``."""
    seconds = milliseconds // 1000
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"
