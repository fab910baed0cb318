"""
Module: efactura_validation
Responsibility:
    Decide whether an outgoing document may be uploaded.  Entity rules
    catch incomplete data before any XML exists; XSD validation checks
    the generated structure; Schematron checks the Authority's semantic
    assertions when an evaluator is reachable.

Architecture position:
    Validation -- imports codec, config and kernel.  MUST NOT import
    authority, submission or sync.

Usage:
    from efactura_validation import ValidationPipeline

    pipeline = ValidationPipeline.from_settings(settings.validation)
    report = pipeline.validate_full(document)
    if not report:
        document.external_error_message = report.error_summary()
"""

from efactura_validation.invoice_rules import (
    DEFAULT_VAT_RATES,
    StaticVatRateProvider,
    VatRateProvider,
    allowed_vat_rates,
    check_invoice,
    oss_applies,
)
from efactura_validation.pipeline import ValidationPipeline
from efactura_validation.result import (
    Phase,
    PhaseOutcome,
    PhaseResult,
    Severity,
    ValidationReport,
    Violation,
)
from efactura_validation.schematron import (
    ChainedSchematronEvaluator,
    HttpSchematronEvaluator,
    JarSchematronEvaluator,
    SaxonSchematronEvaluator,
    SchematronEvaluator,
    build_schematron_evaluator,
)
from efactura_validation.transport_rules import check_transport
from efactura_validation.xsd import XsdValidator

__all__ = [
    "ChainedSchematronEvaluator",
    "DEFAULT_VAT_RATES",
    "HttpSchematronEvaluator",
    "JarSchematronEvaluator",
    "Phase",
    "PhaseOutcome",
    "PhaseResult",
    "SaxonSchematronEvaluator",
    "SchematronEvaluator",
    "Severity",
    "StaticVatRateProvider",
    "ValidationPipeline",
    "ValidationReport",
    "Violation",
    "VatRateProvider",
    "XsdValidator",
    "allowed_vat_rates",
    "build_schematron_evaluator",
    "check_invoice",
    "check_transport",
    "oss_applies",
]
