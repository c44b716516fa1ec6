"""testloom front end: tree-sitter based parsing into the syntax model.

Public API:
    parse_file(path, project_root) → SyntaxTree
    parse_source(text, unit_name, language) → SyntaxTree
    detect_language(file_path) → str | None
"""

from ..diagnostics import ParseError
from .models import ClassDecl, MethodDecl, SyntaxTree
from .utils import detect_language, get_parser, is_supported_file, should_skip_directory

__all__ = [
    "parse_file",
    "parse_source",
    "detect_language",
    "is_supported_file",
    "should_skip_directory",
    "ClassDecl",
    "MethodDecl",
    "ParseError",
    "SyntaxTree",
]


def parse_file(file_path: str, project_root: str = "") -> SyntaxTree:
    """Parse a source file; the unit name is its path relative to ``project_root``.

    Raises:
        ParseError: unreadable or lexically unbalanced source
        ValueError: unsupported file type
    """
    language = detect_language(file_path)
    if language is None:
        raise ValueError(f"Unsupported file type: {file_path}")
    return get_parser(language).parse_file(file_path, project_root)


def parse_source(source_text: str, unit_name: str, language: str | None = None) -> SyntaxTree:
    """Parse source text into a SyntaxTree.

    Args:
        source_text: Source code as string
        unit_name: Relative path of the unit
        language: Language identifier. If None, detected from unit_name,
            defaulting to Java.
    """
    if language is None:
        language = detect_language(unit_name) or "java"
    return get_parser(language).parse_source(source_text, unit_name)
