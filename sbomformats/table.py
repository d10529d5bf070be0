"""Plain text table listing of discovered packages."""

from __future__ import annotations

from typing import Iterable, TextIO

from .sbom import SBOM, Format

ID = "syft-table"
_COLUMNS = ("Name", "Version", "Type")
_PADDING = "  "


def remove_duplicate_rows(rows: Iterable[list[str]]) -> list[list[str]]:
    """Drop repeated rows, keeping the first occurrence of each."""
    seen: set[str] = set()
    result = []
    for row in rows:
        key = "|".join(row)
        if key in seen:
            continue
        seen.add(key)
        result.append(row)
    return result


def _render(header: list[str], rows: list[list[str]]) -> str:
    widths = [max(len(cell) for cell in column) for column in zip(header, *rows)]
    lines = []
    for row in (header, *rows):
        cells = (cell.ljust(width) + _PADDING for cell, width in zip(row, widths))
        lines.append("".join(cells) + "\n")
    return "".join(lines)


def encode(sbom: SBOM, output: TextIO) -> None:
    """Write packages as a name, version and type table."""
    rows = [
        [p.name, p.version, str(getattr(p.type, "value", p.type))]
        for p in sbom.artifacts.package_catalog.sorted()
    ]
    if not rows:
        output.write("No packages discovered\n")
        return
    rows = remove_duplicate_rows(sorted(rows))
    output.write(_render([c.upper() for c in _COLUMNS], rows))


def format() -> Format:  # noqa: A001 - the public name of the format factory
    """The table format; encode only."""
    return Format(id=ID, encoder=encode)