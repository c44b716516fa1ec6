"""Source discovery and the atomic output writer."""

import logging
import os
import posixpath
import shutil
import tempfile
from typing import List, Sequence, Tuple

from ..action_model.models import ConversionUnit
from ..ast_parser import is_supported_file, should_skip_directory

logger = logging.getLogger(__name__)


def discover_sources(root_dir: str) -> List[Tuple[str, str]]:
    """Walk ``root_dir`` for source files.

    Returns:
        ``(unit_name, text)`` pairs sorted by unit name, where the unit name
        is the POSIX path relative to ``root_dir``.
    """
    sources = []
    for dirpath, dirnames, filenames in os.walk(root_dir):
        dirnames[:] = sorted(d for d in dirnames if not should_skip_directory(d))
        for fname in filenames:
            if not is_supported_file(fname):
                continue
            full_path = os.path.join(dirpath, fname)
            rel_path = os.path.relpath(full_path, root_dir).replace(os.sep, "/")
            with open(full_path, "r", encoding="utf-8", errors="replace") as f:
                sources.append((rel_path, f.read()))
    sources.sort(key=lambda s: s[0])
    logger.info(f"Discovered {len(sources)} source files under {root_dir}")
    return sources


def _check_path(path: str) -> str:
    normalized = posixpath.normpath(path)
    if posixpath.isabs(normalized) or normalized == ".." or normalized.startswith("../"):
        raise ValueError(f"output path escapes the output directory: {path}")
    return normalized


def write_units(units: Sequence[ConversionUnit], out_dir: str) -> List[str]:
    """Write every unit under ``out_dir`` or nothing at all.

    Units are staged in a temporary directory next to ``out_dir`` and moved
    into place once all of them are written.  Any failure while staging
    removes the staging directory and leaves ``out_dir`` untouched.

    Returns:
        Relative paths written, in unit order.
    """
    paths = [_check_path(u.output_path) for u in units]
    duplicates = sorted({p for p in paths if paths.count(p) > 1})
    if duplicates:
        raise ValueError(f"several units map to the same output path: {duplicates}")

    out_dir = os.path.abspath(out_dir)
    parent = os.path.dirname(out_dir)
    os.makedirs(parent, exist_ok=True)
    staging = tempfile.mkdtemp(prefix=".testloom_stage_", dir=parent)
    try:
        for unit, rel_path in zip(units, paths):
            staged = os.path.join(staging, *rel_path.split("/"))
            os.makedirs(os.path.dirname(staged), exist_ok=True)
            with open(staged, "w", encoding="utf-8", newline="\n") as f:
                f.write(unit.text)

        if not os.path.exists(out_dir):
            os.replace(staging, out_dir)
        else:
            for rel_path in paths:
                staged = os.path.join(staging, *rel_path.split("/"))
                target = os.path.join(out_dir, *rel_path.split("/"))
                os.makedirs(os.path.dirname(target), exist_ok=True)
                os.replace(staged, target)
    finally:
        if os.path.exists(staging):
            shutil.rmtree(staging, ignore_errors=True)

    logger.info(f"Wrote {len(paths)} files to {out_dir}")
    return paths
