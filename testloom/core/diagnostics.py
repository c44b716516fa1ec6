"""Diagnostics and the conversion error taxonomy.

Every failure or fallback the converter produces is reported as a
:class:`Diagnostic` record.  Fatal conditions are raised as
:class:`ConversionError` subclasses, each of which can render itself as a
diagnostic for the run report.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Position:
    """1-based line and column inside a source unit."""

    line: int
    column: int = 1

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Diagnostic:
    """A single report record: ``{severity, unitName, position?, message}``."""

    severity: Severity
    unit_name: str
    message: str
    position: Optional[Position] = None
    code: str = ""

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "unit_name": self.unit_name,
            "position": str(self.position) if self.position else None,
            "message": self.message,
            "code": self.code,
        }

    def __str__(self) -> str:
        where = f"{self.unit_name}:{self.position}" if self.position else self.unit_name
        return f"[{self.severity.value}] {where}: {self.message}"


def log_diagnostics(diagnostics: Sequence[Diagnostic]) -> None:
    """Mirror diagnostics into the module logger at their severity."""
    levels = {
        Severity.INFO: logging.INFO,
        Severity.WARNING: logging.WARNING,
        Severity.ERROR: logging.ERROR,
    }
    for diag in diagnostics:
        logger.log(levels[diag.severity], "%s", diag)


# ── Error taxonomy ───────────────────────────────────────────────────


class ConversionError(Exception):
    """Base class for every error raised by the converter core."""

    code = "conversion_error"

    def __init__(self, message: str, unit_name: str = "", position: Optional[Position] = None):
        super().__init__(message)
        self.message = message
        self.unit_name = unit_name
        self.position = position

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            severity=Severity.ERROR,
            unit_name=self.unit_name,
            message=self.message,
            position=self.position,
            code=self.code,
        )


class ParseError(ConversionError):
    """Unrecoverable syntax breakage (unbalanced braces or strings)."""

    code = "parse_error"

    def __init__(self, unit_name: str, position: Position, reason: str):
        super().__init__(f"{reason} at {position}", unit_name, position)
        self.reason = reason


class UnrecognizedConstruct(ConversionError):
    """Recoverable: the construct is passed through as an opaque block."""

    code = "unrecognized_construct"

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            severity=Severity.WARNING,
            unit_name=self.unit_name,
            message=self.message,
            position=self.position,
            code=self.code,
        )


class LinkErrorKind(str, Enum):
    AMBIGUOUS = "ambiguous"
    UNRESOLVED = "unresolved"
    CYCLE = "cycle"


@dataclass(frozen=True)
class LinkIssue:
    kind: LinkErrorKind
    unit_name: str
    message: str
    position: Optional[Position] = None


class LinkError(ConversionError):
    """Cross-unit resolution failure.  Fatal for the whole run.

    ``issues`` holds every problem found in the pass; ``kind`` is the kind
    of the first one.
    """

    code = "link_error"

    def __init__(self, issues: List[LinkIssue]):
        first = issues[0]
        super().__init__(first.message, first.unit_name, first.position)
        self.kind = first.kind
        self.issues = list(issues)

    def to_diagnostics(self) -> List[Diagnostic]:
        return [
            Diagnostic(
                severity=Severity.ERROR,
                unit_name=issue.unit_name,
                message=issue.message,
                position=issue.position,
                code=f"link_{issue.kind.value}",
            )
            for issue in self.issues
        ]


class EmitErrorKind(str, Enum):
    UNSUPPORTED_LOCATOR = "unsupported_locator"
    UNSUPPORTED_CONDITION = "unsupported_condition"
    UNSUPPORTED_ASSERTION = "unsupported_assertion"
    UNSUPPORTED_ACTION = "unsupported_action"
    UNSUPPORTED_DELEGATE = "unsupported_delegate"
    PARITY_GATE = "parity_gate"
    FAILED_DEPENDENCY = "failed_dependency"


class EmitError(ConversionError):
    """Emission failure.  Fatal for the affected unit only."""

    code = "emit_error"

    def __init__(
        self,
        kind: EmitErrorKind,
        message: str,
        unit_name: str = "",
        position: Optional[Position] = None,
    ):
        super().__init__(message, unit_name, position)
        self.kind = kind

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            severity=Severity.ERROR,
            unit_name=self.unit_name,
            message=self.message,
            position=self.position,
            code=f"emit_{self.kind.value}",
        )


class ProfileError(ConversionError):
    """The target profile is unknown or does not validate."""

    code = "profile_error"
