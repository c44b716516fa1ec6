"""Front end utilities.

Language detection, parser registry, and directory-walk helpers.
"""

import os
from typing import Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .base import BaseLanguageParser

# Extension → language mapping
SUPPORTED_EXTENSIONS: Dict[str, str] = {
    ".java": "java",
}

# Directories to skip during file walking
SKIP_DIRECTORIES = frozenset({
    "__pycache__",
    ".git",
    ".svn",
    ".idea",
    "node_modules",
    "target",
    "build",
    "out",
    "bin",
    ".gradle",
    ".mvn",
})

# Parser registry, filled lazily
_parser_registry: Dict[str, "BaseLanguageParser"] = {}


def detect_language(file_path: str) -> Optional[str]:
    """Detect source language from file extension.

    Returns:
        Language identifier string or None if unsupported
    """
    _, ext = os.path.splitext(file_path)
    return SUPPORTED_EXTENSIONS.get(ext.lower())


def get_parser(language: str) -> "BaseLanguageParser":
    """Get a parser instance for the given language.

    Raises:
        ValueError: If language is not supported
    """
    if language not in _parser_registry:
        if language == "java":
            from .java_parser import JavaParser
            _parser_registry["java"] = JavaParser()
        else:
            raise ValueError(
                f"Unsupported language: {language}. "
                f"Supported: {sorted(set(SUPPORTED_EXTENSIONS.values()))}"
            )

    return _parser_registry[language]


def should_skip_directory(dir_name: str) -> bool:
    """Check if a directory should be skipped during file walking."""
    return dir_name in SKIP_DIRECTORIES or dir_name.startswith(".")


def is_supported_file(file_path: str) -> bool:
    """Check if a file has a supported language extension."""
    return detect_language(file_path) is not None
