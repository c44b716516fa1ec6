"""Run orchestration: parse -> extract -> link -> emit.

Parse and extract run per file in a thread pool; results are re-ordered by
unit name so a run is deterministic.  Linking is the single barrier.  A unit
that fails to parse or emit is dropped and the run reports ``partial``; a
link failure stops the run with no output.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..action_model.models import ConversionUnit, SourceUnit
from ..ast_parser import parse_source
from ..constants import DEFAULT_WORKERS, EXIT_FAILURE, EXIT_PARTIAL, EXIT_SUCCESS
from ..diagnostics import Diagnostic, LinkError, ParseError, Severity
from ..emitter import TargetProfile, emit
from ..extraction import extract
from ..linking import link

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


_EXIT_CODES = {
    RunStatus.SUCCESS: EXIT_SUCCESS,
    RunStatus.PARTIAL: EXIT_PARTIAL,
    RunStatus.FAILURE: EXIT_FAILURE,
}


@dataclass
class ConversionReport:
    """Summary of one conversion run."""

    status: RunStatus
    profile: str
    delegate_strategy: str
    units: List[ConversionUnit] = field(default_factory=list)
    converted: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)  # unit name -> reason
    diagnostics: List[Diagnostic] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self.status]

    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "profile": self.profile,
            "delegate_strategy": self.delegate_strategy,
            "converted": self.converted,
            "failed": self.failed,
            "outputs": [u.output_path for u in self.units],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


def extract_source(unit_name: str, text: str) -> SourceUnit:
    """Front end plus extractor for one file.

    Raises:
        ParseError: the unit cannot be parsed
    """
    return extract(parse_source(text, unit_name))


def _extract_all(
    sources: Sequence[Tuple[str, str]],
    workers: int,
) -> Tuple[List[SourceUnit], Dict[str, ParseError]]:
    units: List[SourceUnit] = []
    failures: Dict[str, ParseError] = {}
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(extract_source, name, text): name for name, text in sources}
        for future in as_completed(futures):
            name = futures[future]
            try:
                units.append(future.result())
            except ParseError as e:
                if not e.unit_name:
                    e.unit_name = name
                logger.warning(f"Parse failed for {name}: {e.message}")
                failures[name] = e
    units.sort(key=lambda u: u.unit_name)
    return units, failures


def convert_sources(
    sources: Sequence[Tuple[str, str]],
    profile: TargetProfile,
    delegate_strategy: Optional[str] = None,
    workers: int = DEFAULT_WORKERS,
) -> ConversionReport:
    """Convert ``(unit_name, text)`` pairs with one target profile."""
    start = time.time()
    strategy = delegate_strategy or profile.delegate_strategy
    report = ConversionReport(RunStatus.FAILURE, profile.name, strategy)

    units, parse_failures = _extract_all(sources, workers)
    for name in sorted(parse_failures):
        report.failed[name] = parse_failures[name].message
        report.diagnostics.append(parse_failures[name].to_diagnostic())
    for unit in units:
        report.diagnostics.extend(unit.diagnostics)

    if not units:
        logger.error("No unit could be parsed; nothing to convert")
        report.elapsed_seconds = time.time() - start
        return report

    try:
        model = link(units, failed_unit_names=parse_failures)
    except LinkError as e:
        report.diagnostics.extend(e.to_diagnostics())
        report.elapsed_seconds = time.time() - start
        return report
    report.diagnostics.extend(model.diagnostics)

    result = emit(model, profile, strategy)
    report.diagnostics.extend(result.diagnostics)
    for name, error in sorted(result.failed.items()):
        report.failed[name] = error.message

    report.converted = [u.source_unit for u in result.units if u.source_unit]
    if not report.converted:
        report.status = RunStatus.FAILURE
    elif report.failed:
        report.status = RunStatus.PARTIAL
        report.units = result.units
    else:
        report.status = RunStatus.SUCCESS
        report.units = result.units

    report.elapsed_seconds = time.time() - start
    logger.info(
        f"Conversion {report.status.value}: {len(report.converted)} converted, "
        f"{len(report.failed)} failed in {report.elapsed_seconds:.2f}s"
    )
    return report
