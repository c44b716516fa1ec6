"""Shared fixtures: the sample Java sources and the built-in profiles."""

import os
from typing import Dict

import pytest

from testloom.core.emitter import load_profile
from testloom.core.linking import link
from testloom.core.pipeline import discover_sources, extract_source

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures", "java")


@pytest.fixture
def fixtures_dir() -> str:
    return FIXTURES_DIR


@pytest.fixture
def read_fixture():
    def _read(rel_path: str) -> str:
        with open(os.path.join(FIXTURES_DIR, *rel_path.split("/")), encoding="utf-8") as f:
            return f.read()
    return _read


@pytest.fixture(scope="session")
def sample_sources():
    return discover_sources(FIXTURES_DIR)


@pytest.fixture(scope="session")
def ts_profile():
    return load_profile("playwright-ts")


@pytest.fixture(scope="session")
def py_profile():
    return load_profile("playwright-python")


@pytest.fixture
def build_model():
    """Extract and link ``{unit_name: java_text}``."""
    def _build(sources: Dict[str, str]):
        units = [extract_source(name, text) for name, text in sorted(sources.items())]
        return link(units)
    return _build


@pytest.fixture(scope="session")
def sample_model(sample_sources):
    return link([extract_source(name, text) for name, text in sample_sources])


@pytest.fixture
def write_tree(tmp_path):
    """Write ``{relative_path: text}`` under a fresh directory and return it."""
    def _write(files: Dict[str, str], name: str = "src") -> str:
        root = tmp_path / name
        for rel_path, text in files.items():
            target = root.joinpath(*rel_path.split("/"))
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        root.mkdir(exist_ok=True)
        return str(root)
    return _write
