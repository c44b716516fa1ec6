"""Cross-unit resolution of delegate calls."""

from .linker import Linker, link

__all__ = ["Linker", "link"]
