"""
Schematron evaluator protocol.

Contract:
    An evaluator runs the Authority's business-rule assertions over a
    generated document and returns Violations: ``flag="warning"``
    assertions become warnings, everything else a blocking error.

    ``is_available()`` is a cheap capability check.  ``evaluate`` raises
    SchematronUnavailableError when the evaluator could not produce a
    report at all; the pipeline then marks the phase SKIPPED.

Non-goals:
    - No evaluator here decides what happens when it is missing; that is
      the pipeline's job.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from efactura_kernel.exceptions import SchematronUnavailableError
from efactura_kernel.logging_config import get_logger
from efactura_validation.result import Violation

logger = get_logger("validation.schematron")

# Validator document types
DOC_TYPE_INVOICE = "FACT1"
DOC_TYPE_CREDIT_NOTE = "FCN"
DOC_TYPE_ETRANSPORT = "ETRANSPORT"

_DOC_TYPES = {
    "Invoice": DOC_TYPE_INVOICE,
    "CreditNote": DOC_TYPE_CREDIT_NOTE,
    "eTransport": DOC_TYPE_ETRANSPORT,
}


def doc_type_for_root(root_name: str) -> str:
    return _DOC_TYPES.get(root_name, DOC_TYPE_INVOICE)


@runtime_checkable
class SchematronEvaluator(Protocol):
    name: str

    def supports(self, doc_type: str) -> bool:
        ...

    def is_available(self) -> bool:
        ...

    def evaluate(self, xml: bytes, doc_type: str) -> list[Violation]:
        ...


class ChainedSchematronEvaluator:
    """
    Try evaluators in order; the first available one that produces a
    report wins.

    Used to prefer the HTTP sidecar and fall back to the local JAR.
    """

    name = "chained"

    def __init__(self, evaluators: Sequence[SchematronEvaluator]):
        self._evaluators = list(evaluators)

    def supports(self, doc_type: str) -> bool:
        return any(e.supports(doc_type) for e in self._evaluators)

    def is_available(self) -> bool:
        return any(e.is_available() for e in self._evaluators)

    def evaluate(self, xml: bytes, doc_type: str) -> list[Violation]:
        reasons = []
        for evaluator in self._evaluators:
            if not evaluator.supports(doc_type) or not evaluator.is_available():
                continue
            try:
                return evaluator.evaluate(xml, doc_type)
            except SchematronUnavailableError as exc:
                logger.info(
                    "schematron_evaluator_fallback",
                    extra={"evaluator": evaluator.name, "reason": exc.reason},
                )
                reasons.append(f"{evaluator.name}: {exc.reason}")
        raise SchematronUnavailableError(
            self.name, "; ".join(reasons) or "no evaluator available"
        )
