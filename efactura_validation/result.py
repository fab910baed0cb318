"""
Validation result types.

Contract:
    A ``Violation`` is one finding of one phase.  A ``ValidationReport``
    aggregates the findings of every phase that ran, plus the outcome of
    each of the three phases, so a skipped Schematron phase can be told
    apart from one that ran and passed.

Guarantees:
    - Immutable (frozen dataclasses); collections are tuples.
    - ``valid`` is True only when there are no blocking errors.
    - bool(report) == report.valid.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from efactura_kernel.exceptions import ValidationFailedError


class Severity(str, Enum):
    FATAL = "fatal"
    WARNING = "warning"


class Phase(str, Enum):
    ENTITY = "entity"
    XSD = "xsd"
    SCHEMATRON = "schematron"


class PhaseOutcome(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"  # Evaluator absent or unavailable
    NOT_RUN = "not_run"  # An earlier phase failed, or the quick variant


@dataclass(frozen=True)
class Violation:
    """
    One rule failure.

    ``source`` is ``"business"`` for entity rules, ``"xsd"`` for schema
    failures and ``"schematron"`` for semantic assertions.
    """

    message: str
    rule_id: str | None = None
    severity: Severity = Severity.FATAL
    source: str = "business"
    location: str | None = None

    @property
    def is_warning(self) -> bool:
        return self.severity is Severity.WARNING

    def __str__(self) -> str:
        if self.rule_id:
            return f"[{self.rule_id}] {self.message}"
        return self.message


@dataclass(frozen=True)
class PhaseResult:
    phase: Phase
    outcome: PhaseOutcome
    errors: tuple[Violation, ...] = ()
    warnings: tuple[Violation, ...] = ()

    @classmethod
    def from_violations(cls, phase: Phase, violations) -> PhaseResult:
        errors = tuple(v for v in violations if not v.is_warning)
        warnings = tuple(v for v in violations if v.is_warning)
        outcome = PhaseOutcome.FAILED if errors else PhaseOutcome.PASSED
        return cls(phase=phase, outcome=outcome, errors=errors, warnings=warnings)

    @classmethod
    def skipped(cls, phase: Phase) -> PhaseResult:
        return cls(phase=phase, outcome=PhaseOutcome.SKIPPED)

    @classmethod
    def not_run(cls, phase: Phase) -> PhaseResult:
        return cls(phase=phase, outcome=PhaseOutcome.NOT_RUN)


@dataclass(frozen=True)
class ValidationReport:
    """
    Aggregated result of a pipeline run.

    Contract:
        ``phases`` always has one entry per Phase, in execution order.
        ``xml`` holds the generated document when the XSD phase ran, so
        callers can upload it without regenerating.
    """

    valid: bool
    errors: tuple[Violation, ...] = ()
    warnings: tuple[Violation, ...] = ()
    phases: tuple[PhaseResult, ...] = field(default_factory=tuple)
    xml: bytes | None = None

    @classmethod
    def from_phases(cls, phases, xml: bytes | None = None) -> ValidationReport:
        errors = tuple(e for p in phases for e in p.errors)
        warnings = tuple(w for p in phases for w in p.warnings)
        return cls(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            phases=tuple(phases),
            xml=xml,
        )

    def outcome(self, phase: Phase) -> PhaseOutcome:
        for result in self.phases:
            if result.phase is phase:
                return result.outcome
        return PhaseOutcome.NOT_RUN

    def error_summary(self) -> str:
        """Blocking errors joined with ``"; "``, rule id first when present."""
        return "; ".join(str(e) for e in self.errors)

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise ValidationFailedError(list(self.errors))

    def __bool__(self) -> bool:
        return self.valid
