"""Base interface for language front ends.

Shared parsing logic lives here: reading files, the lexical balance scan
that decides whether a unit is parseable at all, and running tree-sitter.
Converting the concrete tree into the syntax model is delegated.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Tuple

import tree_sitter

from ..diagnostics import ParseError, Position
from .models import Span, SyntaxTree

logger = logging.getLogger(__name__)

_CLOSERS = {")": "(", "]": "[", "}": "{"}


class BaseLanguageParser(ABC):
    """Abstract base for tree-sitter backed front ends.

    Subclasses implement:
    - get_language(): returns language name string
    - get_tree_sitter_language(): returns tree-sitter Language object
    - build_tree(): converts the tree-sitter tree into a SyntaxTree
    """

    @abstractmethod
    def get_language(self) -> str:
        """Return the language identifier (e.g., 'java')."""
        ...

    @abstractmethod
    def get_tree_sitter_language(self) -> tree_sitter.Language:
        """Return the tree-sitter Language object for this language."""
        ...

    @abstractmethod
    def build_tree(
        self, tree: tree_sitter.Tree, source: bytes, unit_name: str, source_text: str
    ) -> SyntaxTree:
        """Convert a parsed tree-sitter tree into the syntax model.

        Args:
            tree: Parsed tree-sitter tree
            source: Raw source bytes
            unit_name: Relative path of the unit
            source_text: Decoded source text

        Returns:
            SyntaxTree for the unit
        """
        ...

    def parse_file(self, file_path: str, project_root: str = "") -> SyntaxTree:
        """Read and parse a source file.

        The unit name is the path relative to ``project_root``.

        Raises:
            ParseError: the file cannot be read or is lexically unbalanced
        """
        if project_root and file_path.startswith(project_root):
            rel_path = file_path[len(project_root):].lstrip("/\\")
        else:
            rel_path = file_path
        rel_path = rel_path.replace("\\", "/")

        try:
            with open(file_path, "r", encoding="utf-8", errors="replace") as f:
                source_text = f.read()
        except OSError as e:
            raise ParseError(rel_path, Position(1), f"cannot read file: {e}") from e

        return self.parse_source(source_text, rel_path)

    def parse_source(self, source_text: str, unit_name: str) -> SyntaxTree:
        """Parse source text into a SyntaxTree.

        Raises:
            ParseError: unbalanced brackets, unterminated literals or comments
        """
        check_balance(source_text, unit_name)

        source_bytes = source_text.encode("utf-8")
        parser = tree_sitter.Parser(self.get_tree_sitter_language())
        tree = parser.parse(source_bytes)

        syntax_tree = self.build_tree(tree, source_bytes, unit_name, source_text)
        if tree.root_node.has_error:
            syntax_tree.recovered.extend(_error_spans(tree.root_node))
            logger.debug(
                "%s: tree-sitter recovered %d region(s)", unit_name, len(syntax_tree.recovered)
            )
        return syntax_tree


def _error_spans(root: tree_sitter.Node) -> List[Span]:
    spans: List[Span] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_error or node.is_missing:
            spans.append(
                Span(node.start_point.row + 1, node.end_point.row + 1, node.start_point.column + 1)
            )
            continue
        if node.has_error:
            stack.extend(reversed(node.children))
    return spans


def check_balance(text: str, unit_name: str) -> None:
    """Lexical scan for C-family sources.

    Skips comments, string, char and text-block literals, and checks that
    ``()``, ``[]`` and ``{}`` nest properly.

    Raises:
        ParseError: at the position of the first offending token
    """
    stack: List[Tuple[str, int, int]] = []
    line, col = 1, 0
    i, n = 0, len(text)

    def advance(count: int = 1) -> None:
        nonlocal i, line, col
        for _ in range(count):
            if i >= n:
                return
            if text[i] == "\n":
                line += 1
                col = 0
            else:
                col += 1
            i += 1

    while i < n:
        ch = text[i]
        start = Position(line, col + 1)

        if text.startswith("//", i):
            while i < n and text[i] != "\n":
                advance()
        elif text.startswith("/*", i):
            advance(2)
            while i < n and not text.startswith("*/", i):
                advance()
            if i >= n:
                raise ParseError(unit_name, start, "unterminated block comment")
            advance(2)
        elif text.startswith('"""', i):
            advance(3)
            while i < n and not text.startswith('"""', i):
                advance(2 if text[i] == "\\" else 1)
            if i >= n:
                raise ParseError(unit_name, start, "unterminated text block")
            advance(3)
        elif ch in "\"'":
            kind = "string" if ch == '"' else "char"
            advance()
            while i < n and text[i] != ch:
                if text[i] == "\n":
                    raise ParseError(unit_name, start, f"unterminated {kind} literal")
                advance(2 if text[i] == "\\" else 1)
            if i >= n:
                raise ParseError(unit_name, start, f"unterminated {kind} literal")
            advance()
        elif ch in "([{":
            stack.append((ch, start.line, start.column))
            advance()
        elif ch in ")]}":
            if not stack or stack[-1][0] != _CLOSERS[ch]:
                raise ParseError(unit_name, start, f"unbalanced '{ch}'")
            stack.pop()
            advance()
        else:
            advance()

    if stack:
        opener, o_line, o_col = stack[-1]
        raise ParseError(unit_name, Position(o_line, o_col), f"unclosed '{opener}'")
