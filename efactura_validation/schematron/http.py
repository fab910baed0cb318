"""
Schematron evaluation through an HTTP sidecar service.

The sidecar exposes ``GET /health`` (``{"status": "ok"}`` when ready) and
``POST /validate?type=FACT1|FCN`` taking the raw XML body and answering
``{"valid": bool, "errors": [{"ruleId", "message", "source",
"location"}]}``.
"""

from __future__ import annotations

import httpx

from efactura_kernel.exceptions import SchematronUnavailableError
from efactura_kernel.logging_config import get_logger
from efactura_validation.result import Severity, Violation
from efactura_validation.schematron.base import DOC_TYPE_CREDIT_NOTE, DOC_TYPE_INVOICE

logger = get_logger("validation.schematron.http")

HEALTH_TIMEOUT_SECONDS = 2.0


class HttpSchematronEvaluator:
    """Invoice and credit-note Schematron checks via the sidecar."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        client: httpx.Client | None = None,
        timeout_seconds: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client()
        self._timeout = timeout_seconds

    def supports(self, doc_type: str) -> bool:
        return doc_type in (DOC_TYPE_INVOICE, DOC_TYPE_CREDIT_NOTE)

    def is_available(self) -> bool:
        try:
            response = self._client.get(
                f"{self._base_url}/health", timeout=HEALTH_TIMEOUT_SECONDS
            )
            return response.status_code == 200 and response.json().get("status") == "ok"
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("schematron_health_failed", extra={"error": str(exc)})
            return False

    def evaluate(self, xml: bytes, doc_type: str) -> list[Violation]:
        try:
            response = self._client.post(
                f"{self._base_url}/validate",
                params={"type": doc_type},
                content=xml,
                headers={"Content-Type": "application/xml"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise SchematronUnavailableError(self.name, str(exc)) from exc
        except ValueError as exc:
            raise SchematronUnavailableError(self.name, f"invalid JSON ({exc})") from exc

        if not isinstance(body, dict):
            raise SchematronUnavailableError(self.name, "unexpected response shape")

        violations = []
        for entry in body.get("errors") or []:
            violations.append(
                Violation(
                    message=entry.get("message") or "Unknown Schematron error",
                    rule_id=entry.get("ruleId"),
                    severity=(
                        Severity.WARNING
                        if entry.get("flag") == "warning"
                        else Severity.FATAL
                    ),
                    source=entry.get("source") or "schematron",
                    location=entry.get("location"),
                )
            )
        if not body.get("valid", True) and not any(not v.is_warning for v in violations):
            violations.append(
                Violation(message="Validarea Schematron a esuat.", source="schematron")
            )
        return violations
