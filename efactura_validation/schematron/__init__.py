"""
Schematron evaluators.

``build_schematron_evaluator(settings)`` wires whatever the settings make
available: the HTTP sidecar first, the local validator JAR as its
fallback, and Saxon with the compiled rules for e-Transport.  It returns
None when nothing is configured; the pipeline then skips the phase.
"""

from __future__ import annotations

from efactura_config.schema import ValidationSettings
from efactura_validation.schematron.base import (
    DOC_TYPE_CREDIT_NOTE,
    DOC_TYPE_ETRANSPORT,
    DOC_TYPE_INVOICE,
    ChainedSchematronEvaluator,
    SchematronEvaluator,
    doc_type_for_root,
)
from efactura_validation.schematron.http import HttpSchematronEvaluator
from efactura_validation.schematron.jar import (
    JarSchematronEvaluator,
    SaxonSchematronEvaluator,
)
from efactura_validation.schematron.svrl import parse_svrl, parse_text_report


def build_schematron_evaluator(settings: ValidationSettings) -> SchematronEvaluator | None:
    evaluators: list[SchematronEvaluator] = []
    if settings.schematron_url:
        evaluators.append(
            HttpSchematronEvaluator(
                settings.schematron_url,
                timeout_seconds=settings.schematron_timeout_seconds,
            )
        )
    if settings.validator_jar:
        evaluators.append(
            JarSchematronEvaluator(
                settings.validator_jar,
                java_path=settings.java_path,
                timeout_seconds=settings.schematron_timeout_seconds,
            )
        )
    if settings.saxon_jar and settings.etransport_compiled_xsl:
        evaluators.append(
            SaxonSchematronEvaluator(
                settings.saxon_jar,
                settings.etransport_compiled_xsl,
                java_path=settings.java_path,
                timeout_seconds=settings.schematron_timeout_seconds,
            )
        )
    if not evaluators:
        return None
    if len(evaluators) == 1:
        return evaluators[0]
    return ChainedSchematronEvaluator(evaluators)


__all__ = [
    "ChainedSchematronEvaluator",
    "DOC_TYPE_CREDIT_NOTE",
    "DOC_TYPE_ETRANSPORT",
    "DOC_TYPE_INVOICE",
    "HttpSchematronEvaluator",
    "JarSchematronEvaluator",
    "SaxonSchematronEvaluator",
    "SchematronEvaluator",
    "build_schematron_evaluator",
    "doc_type_for_root",
    "parse_svrl",
    "parse_text_report",
]
