"""
Error-observation sink for recoverable store failures.

Scans and sweeps never abort on a bad line, a bad partition name, or a
single failed file removal. They report a Diagnostic instead and carry on.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List

from daylog.utils.logging import get_logger

logger = get_logger(__name__)


class Severity(Enum):
    """Diagnostic severity levels."""

    WARNING = "warning"
    ERROR = "error"


@dataclass
class Diagnostic:
    """
    A structured report of a recovered failure.

    Attributes:
        severity: How serious the failure was
        message: Short human readable description
        operation: Store operation that observed it (scan, sweep, ...)
        context: Extra key/value details (path, line index, error text)
    """

    severity: Severity
    message: str
    operation: str
    context: Dict[str, Any] = field(default_factory=dict)


DiagnosticSink = Callable[[Diagnostic], None]


def log_diagnostic(diagnostic: Diagnostic) -> None:
    """Default sink: forward the diagnostic to the structured logger."""
    log = logger.error if diagnostic.severity is Severity.ERROR else logger.warning
    log(diagnostic.message, operation=diagnostic.operation, **diagnostic.context)


class CollectingSink:
    """Sink that keeps diagnostics in memory, then forwards them to another sink."""

    def __init__(self, forward: DiagnosticSink = log_diagnostic):
        self.forward = forward
        self.diagnostics: List[Diagnostic] = []

    def __call__(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)
        if self.forward is not None:
            self.forward(diagnostic)

    def for_operation(self, operation: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.operation == operation]
