"""Helpers for pointing at positions inside migration scripts."""


def line_column_from_offset(data: str, offset: int) -> tuple[int, int]:
    """
    Convert a character offset into a line and column.

    Args:
        data: Script content
        offset: 0-based character offset, clamped to the content

    Returns:
        Tuple of (line, column), both 1-based
    """
    offset = max(0, min(offset, len(data)))
    line = data.count("\n", 0, offset) + 1
    column = offset - (data.rfind("\n", 0, offset) + 1) + 1
    return line, column


def lines_before_and_after(
    data: str,
    line: int,
    before: int,
    after: int,
    line_numbers: bool = True,
) -> str:
    """
    Extract the lines around a given line.

    Args:
        data: Script content
        line: 1-based line to center on
        before: Number of lines to include before it
        after: Number of lines to include after it
        line_numbers: Prefix every line with its right-aligned number

    Returns:
        Selected lines joined by newlines
    """
    lines = data.split("\n")
    first = max(1, line - before)
    last = min(len(lines), line + after)
    width = len(str(last))

    selected = []
    for number in range(first, last + 1):
        text = lines[number - 1]
        selected.append(f"{number:>{width}}: {text}" if line_numbers else text)
    return "\n".join(selected)
