"""
ValidationPipeline -- three-phase document validation.

Responsibility:
    Run entity rules, XSD validation and Schematron evaluation over an
    outgoing document, in that order, and return a ValidationReport.

Architecture position:
    Validation -- called by the submission state machine before every
    upload and by interactive callers (``validate_quick``) while a
    document is being edited.

Invariants enforced:
    - Phases run in strict order and stop at the first phase that
      reports blocking errors; later phases are reported as NOT_RUN.
    - The XML is generated once, from the entity-valid document, and is
      returned on the report so the caller uploads exactly what passed.
    - A missing or unreachable Schematron evaluator never fails the
      document; the phase is SKIPPED and a warning is logged.

Failure modes:
    - Codec errors and unserializable values while generating XML
      become XSD-phase violations.
    - SchematronUnavailableError becomes a SKIPPED Schematron phase.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from lxml import etree

from efactura_codec import document_data_from_model, generate_xml
from efactura_config.schema import ValidationSettings
from efactura_kernel.domain.types import DocumentKind
from efactura_kernel.exceptions import CodecError, SchematronUnavailableError
from efactura_kernel.logging_config import get_logger
from efactura_validation.invoice_rules import VatRateProvider, check_invoice
from efactura_validation.result import (
    Phase,
    PhaseResult,
    ValidationReport,
    Violation,
)
from efactura_validation.schematron import (
    SchematronEvaluator,
    build_schematron_evaluator,
    doc_type_for_root,
)
from efactura_validation.transport_rules import check_transport
from efactura_validation.xsd import XsdValidator

logger = get_logger("validation.pipeline")


class StructuralValidator(Protocol):
    def validate(self, xml: bytes) -> list[Violation]:
        ...


def _root_name(xml: bytes) -> str:
    try:
        root = etree.fromstring(xml, etree.XMLParser(resolve_entities=False, no_network=True))
    except etree.XMLSyntaxError:
        return ""
    return etree.QName(root).localname


class ValidationPipeline:
    """
    Entity rules -> XSD -> Schematron.

    Contract:
        ``validate_quick(document)`` runs entity rules and XSD;
        ``validate_full(document)`` adds Schematron.  ``validate`` is
        ``validate_full``.  None of them mutate the document.

    Guarantees:
        - ``report.phases`` holds exactly three entries.
        - ``report.xml`` is set whenever generation succeeded.

    Non-goals:
        - Does not persist anything; the submitter records the outcome.
    """

    def __init__(
        self,
        settings: ValidationSettings | None = None,
        xsd_validator: StructuralValidator | None = None,
        schematron: SchematronEvaluator | None = None,
        rate_provider: VatRateProvider | None = None,
    ):
        self._settings = settings or ValidationSettings()
        self._xsd = xsd_validator or XsdValidator(self._settings)
        self._schematron = schematron
        self._rate_provider = rate_provider

    @classmethod
    def from_settings(
        cls,
        settings: ValidationSettings,
        rate_provider: VatRateProvider | None = None,
    ) -> ValidationPipeline:
        return cls(
            settings,
            schematron=build_schematron_evaluator(settings),
            rate_provider=rate_provider,
        )

    def validate_quick(self, document) -> ValidationReport:
        return self._run(document, include_schematron=False)

    def validate_full(self, document) -> ValidationReport:
        return self._run(document, include_schematron=True)

    def validate(self, document) -> ValidationReport:
        return self.validate_full(document)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def check_entity(self, document) -> list[Violation]:
        if document.kind == DocumentKind.TRANSPORT_NOTE.value:
            return check_transport(document)
        return check_invoice(
            document,
            rate_provider=self._rate_provider,
            fallback_rates=self._settings.fallback_vat_rates,
        )

    def _run(self, document, include_schematron: bool) -> ValidationReport:
        phases: list[PhaseResult] = []

        entity = PhaseResult.from_violations(Phase.ENTITY, self.check_entity(document))
        phases.append(entity)
        if entity.errors:
            return self._finish(document, phases, None)

        try:
            xml = generate_xml(document_data_from_model(document))
        except (CodecError, ValueError) as exc:
            # lxml and date parsing report unserializable values as ValueError.
            phases.append(
                PhaseResult.from_violations(
                    Phase.XSD, [Violation(message=str(exc), rule_id="XML", source="xsd")]
                )
            )
            return self._finish(document, phases, None)

        structural = PhaseResult.from_violations(Phase.XSD, self._xsd.validate(xml))
        phases.append(structural)
        if structural.errors or not include_schematron:
            return self._finish(document, phases, xml)

        phases.append(self._run_schematron(document, xml))
        return self._finish(document, phases, xml)

    def _run_schematron(self, document, xml: bytes) -> PhaseResult:
        doc_type = doc_type_for_root(_root_name(xml))
        evaluator = self._schematron
        if evaluator is None or not evaluator.supports(doc_type):
            logger.warning(
                "schematron_skipped",
                extra={
                    "document_id": str(document.id),
                    "doc_type": doc_type,
                    "reason": "no evaluator configured",
                },
            )
            return PhaseResult.skipped(Phase.SCHEMATRON)
        if not evaluator.is_available():
            logger.warning(
                "schematron_skipped",
                extra={
                    "document_id": str(document.id),
                    "doc_type": doc_type,
                    "reason": f"{evaluator.name} unavailable",
                },
            )
            return PhaseResult.skipped(Phase.SCHEMATRON)
        try:
            violations = evaluator.evaluate(xml, doc_type)
        except SchematronUnavailableError as exc:
            logger.warning(
                "schematron_skipped",
                extra={
                    "document_id": str(document.id),
                    "doc_type": doc_type,
                    "reason": str(exc),
                },
            )
            return PhaseResult.skipped(Phase.SCHEMATRON)
        return PhaseResult.from_violations(Phase.SCHEMATRON, violations)

    def _finish(
        self, document, phases: Iterable[PhaseResult], xml: bytes | None
    ) -> ValidationReport:
        phases = list(phases)
        ran = {p.phase for p in phases}
        phases.extend(PhaseResult.not_run(p) for p in Phase if p not in ran)
        report = ValidationReport.from_phases(phases, xml)
        logger.info(
            "validation_completed",
            extra={
                "document_id": str(document.id),
                "valid": report.valid,
                "error_count": len(report.errors),
                "warning_count": len(report.warnings),
                "phases": {p.phase.value: p.outcome.value for p in report.phases},
            },
        )
        return report
