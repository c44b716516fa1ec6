"""Identifier and path naming for emitted code."""

import re
from typing import Iterable

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snake_case(name: str) -> str:
    """``loginAsAdmin`` -> ``login_as_admin``; ``HTTPClient`` -> ``http_client``."""
    parts = re.split(r"[\s\-]+", name.strip())
    words = []
    for part in parts:
        words.extend(w for w in _WORD_BOUNDARY.split(part) if w)
    return "_".join(w.lower() for w in words).replace("__", "_")


def pascal_case(name: str) -> str:
    """Split on underscores/dashes and uppercase the first letter of each segment."""
    parts = re.split(r"[/\-_.]+", name.strip("/"))
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def camel_case(name: str) -> str:
    pascal = pascal_case(name)
    return pascal[0].lower() + pascal[1:] if pascal else ""


def is_constant_name(name: str) -> bool:
    return any(c.isalpha() for c in name) and name == name.upper()


class Naming:
    """Applies one profile's naming conventions."""

    def __init__(self, identifiers: str, modules: str, test_prefix: str, keywords: Iterable[str]):
        self.identifiers = identifiers
        self.modules = modules
        self.test_prefix = test_prefix
        self.keywords = set(keywords)

    def ident(self, name: str) -> str:
        if is_constant_name(name):
            result = name
        elif self.identifiers == "snake":
            result = snake_case(name)
        else:
            result = name
        if result in self.keywords:
            result += "_"
        return result

    def module(self, simple_name: str) -> str:
        if self.modules == "snake":
            return snake_case(simple_name)
        if self.modules == "camel":
            return camel_case(simple_name)
        return simple_name

    def test(self, name: str) -> str:
        ident = self.ident(name)
        if self.test_prefix and not ident.startswith(self.test_prefix):
            ident = self.test_prefix + ident
        return ident
