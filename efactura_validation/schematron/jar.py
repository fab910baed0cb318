"""
Schematron evaluation by shelling out to local Java tooling.

Responsibility:
    - ``JarSchematronEvaluator`` runs the Authority's validator JAR
      (``-t FACT1|FCN -f <file>``) and reads the ``RASP_<name>.txt``
      report it writes beside the input.
    - ``SaxonSchematronEvaluator`` applies the compiled e-Transport rules
      with Saxon HE and parses the SVRL written to stdout.

Failure modes:
    - Missing java/JAR/XSL: ``is_available()`` is False.
    - Non-zero exit without a readable report, timeouts and OS errors
      raise SchematronUnavailableError so the pipeline can degrade.
"""

from __future__ import annotations

import shutil
import subprocess
import tempfile
from pathlib import Path

from efactura_kernel.exceptions import SchematronUnavailableError
from efactura_kernel.logging_config import get_logger
from efactura_validation.result import Violation
from efactura_validation.schematron.base import (
    DOC_TYPE_CREDIT_NOTE,
    DOC_TYPE_ETRANSPORT,
    DOC_TYPE_INVOICE,
)
from efactura_validation.schematron.svrl import parse_svrl, parse_text_report

logger = get_logger("validation.schematron.jar")

REPORT_PREFIX = "RASP_"


def _java_available(java_path: str) -> bool:
    return Path(java_path).is_file() or shutil.which(java_path) is not None


class JarSchematronEvaluator:
    name = "jar"

    def __init__(self, jar_path: str, java_path: str = "java", timeout_seconds: float = 30.0):
        self._jar = Path(jar_path)
        self._java = java_path
        self._timeout = timeout_seconds

    def supports(self, doc_type: str) -> bool:
        return doc_type in (DOC_TYPE_INVOICE, DOC_TYPE_CREDIT_NOTE)

    def is_available(self) -> bool:
        return self._jar.is_file() and _java_available(self._java)

    def evaluate(self, xml: bytes, doc_type: str) -> list[Violation]:
        with tempfile.TemporaryDirectory(prefix="efactura-schematron-") as workdir:
            source = Path(workdir) / "document.xml"
            source.write_bytes(xml)
            try:
                completed = subprocess.run(
                    [self._java, "-jar", str(self._jar.resolve()), "-t", doc_type, "-f", str(source)],
                    cwd=str(self._jar.parent),
                    capture_output=True,
                    timeout=self._timeout,
                    check=False,
                )
            except (OSError, subprocess.TimeoutExpired) as exc:
                raise SchematronUnavailableError(self.name, str(exc)) from exc

            report = source.with_name(f"{REPORT_PREFIX}{source.stem}.txt")
            if report.is_file():
                text = report.read_text(encoding="utf-8", errors="replace")
            else:
                text = completed.stdout.decode("utf-8", errors="replace")
                if completed.returncode != 0 and not text.strip():
                    raise SchematronUnavailableError(
                        self.name,
                        f"exit code {completed.returncode}: "
                        f"{completed.stderr.decode('utf-8', errors='replace').strip()[:500]}",
                    )

        violations = parse_text_report(text)
        logger.debug(
            "schematron_jar_report",
            extra={"doc_type": doc_type, "violation_count": len(violations)},
        )
        return violations


class SaxonSchematronEvaluator:
    name = "saxon"

    def __init__(
        self,
        saxon_jar: str,
        compiled_xsl: str,
        java_path: str = "java",
        timeout_seconds: float = 30.0,
    ):
        self._saxon = Path(saxon_jar)
        self._xsl = Path(compiled_xsl)
        self._java = java_path
        self._timeout = timeout_seconds

    def supports(self, doc_type: str) -> bool:
        return doc_type == DOC_TYPE_ETRANSPORT

    def is_available(self) -> bool:
        return self._saxon.is_file() and self._xsl.is_file() and _java_available(self._java)

    def evaluate(self, xml: bytes, doc_type: str) -> list[Violation]:
        with tempfile.TemporaryDirectory(prefix="efactura-etransport-") as workdir:
            source = Path(workdir) / "declaration.xml"
            source.write_bytes(xml)
            try:
                completed = subprocess.run(
                    [self._java, "-jar", str(self._saxon), f"-xsl:{self._xsl}", f"-s:{source}"],
                    capture_output=True,
                    timeout=self._timeout,
                    check=False,
                )
            except (OSError, subprocess.TimeoutExpired) as exc:
                raise SchematronUnavailableError(self.name, str(exc)) from exc

        if completed.returncode != 0:
            raise SchematronUnavailableError(
                self.name,
                f"exit code {completed.returncode}: "
                f"{completed.stderr.decode('utf-8', errors='replace').strip()[:500]}",
            )
        return parse_svrl(completed.stdout)
