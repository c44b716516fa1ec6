"""Run orchestration, source discovery and output writing."""

from .converter import ConversionReport, RunStatus, convert_sources, extract_source
from .output import discover_sources, write_units

__all__ = [
    "ConversionReport",
    "RunStatus",
    "convert_sources",
    "discover_sources",
    "extract_source",
    "write_units",
]
