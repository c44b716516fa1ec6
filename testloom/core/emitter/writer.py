"""Indentation-aware line buffer for generated source."""

from contextlib import contextmanager
from typing import Iterator, List


class CodeWriter:
    """Collects generated lines at the current indentation level.

    ``statements`` counts non-comment lines so callers can tell whether a
    block would be syntactically empty.
    """

    def __init__(self, indent_unit: str = "  ", level: int = 0):
        self.indent_unit = indent_unit
        self.level = level
        self.lines: List[str] = []
        self.statements = 0

    def line(self, text: str = "") -> None:
        if text == "":
            self.lines.append("")
            return
        for part in text.split("\n"):
            self.lines.append(self.indent_unit * self.level + part if part else "")
        self.statements += 1

    def comment(self, text: str) -> None:
        for part in text.split("\n"):
            self.lines.append(self.indent_unit * self.level + part)

    def blank(self, count: int = 1) -> None:
        self.lines.extend([""] * count)

    def extend(self, other: "CodeWriter") -> None:
        self.lines.extend(other.lines)
        self.statements += other.statements

    @contextmanager
    def indented(self) -> Iterator[None]:
        self.level += 1
        try:
            yield
        finally:
            self.level -= 1

    def text(self) -> str:
        return "\n".join(self.lines)
