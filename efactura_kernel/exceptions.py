"""
Typed Exception Hierarchy for the e-Factura integration layer.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from EFacturaError:

    EFacturaError (base)
    |
    +-- ConfigurationError
    |
    +-- RateLimitedError
    |
    +-- AuthorityError
    |   +-- AuthorityRequestError
    |   +-- AuthorityResponseError
    |
    +-- CodecError
    |   +-- XmlParseError
    |   +-- UnsupportedDocumentError
    |   +-- PayloadExtractionError
    |
    +-- ValidationFailedError
    |
    +-- SchematronUnavailableError
    |
    +-- TenantNotFoundError
    |
    +-- PersistenceFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Config          | CONFIGURATION_ERROR         | Settings file missing keys / bad types
----------------|-----------------------------|-----------------------------------------
Rate limit      | RATE_LIMITED                | A token bucket is exhausted
----------------|-----------------------------|-----------------------------------------
Authority       | AUTHORITY_REQUEST_FAILED    | Transport error or HTTP 4xx/5xx
                | AUTHORITY_RESPONSE_INVALID  | Body cannot be decoded
----------------|-----------------------------|-----------------------------------------
Codec           | XML_PARSE_ERROR             | Malformed XML (line/column attached)
                | UNSUPPORTED_DOCUMENT        | Unknown root element / namespace
                | PAYLOAD_EXTRACTION_FAILED   | Download zip has no XML document
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_FAILED           | Pipeline reported blocking errors
                | SCHEMATRON_UNAVAILABLE      | Evaluator down; phase is skipped
----------------|-----------------------------|-----------------------------------------
Sync            | TENANT_NOT_FOUND            | Sync requested for an unknown tenant
----------------|-----------------------------|-----------------------------------------
Persistence     | PERSISTENCE_FAILURE         | Batch flush failed during sync

===============================================================================
HANDLING PATTERNS
===============================================================================

1. RATE LIMITS ARE NEVER RETRIED INLINE:

    try:
        client.download(message_id, token)
    except RateLimitedError as e:
        result.add_error(
            f"rate limit hit for message {message_id} "
            f"(retry after {e.retry_after_seconds}s)"
        )

   The caller's own scheduling layer (task re-enqueue, next sync run)
   decides when to try again.

2. PER-MESSAGE ERRORS STAY PER-MESSAGE:

   The sync engine catches CodecError / AuthorityError around a single
   inbox message and records it; run-level failures (no token, listing
   failed) end the run early.
"""


class EFacturaError(Exception):
    """
    Base exception for all integration-layer errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "EFACTURA_ERROR"


class ConfigurationError(EFacturaError):
    """Settings could not be loaded or are structurally invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)


# Rate limiting


class RateLimitedError(EFacturaError):
    """A rate-limit bucket is exhausted; retry after the given delay."""

    code: str = "RATE_LIMITED"

    def __init__(self, bucket: str, retry_after_seconds: int, resource_key: str | None = None):
        self.bucket = bucket
        self.resource_key = resource_key
        self.retry_after_seconds = max(1, int(retry_after_seconds))
        target = f"{bucket}:{resource_key}" if resource_key else bucket
        super().__init__(
            f"Rate limit exceeded for {target}, retry after {self.retry_after_seconds}s"
        )


# Authority HTTP


class AuthorityError(EFacturaError):
    """Base exception for Authority communication failures."""

    code: str = "AUTHORITY_ERROR"


class AuthorityRequestError(AuthorityError):
    """The HTTP exchange failed (network error or non-2xx status)."""

    code: str = "AUTHORITY_REQUEST_FAILED"

    def __init__(self, operation: str, message: str, status_code: int | None = None):
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation} failed: {message}")


class AuthorityResponseError(AuthorityError):
    """The Authority answered with a body we cannot decode."""

    code: str = "AUTHORITY_RESPONSE_INVALID"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation}: unreadable Authority response ({detail})")


# Codec


class CodecError(EFacturaError):
    """Base exception for XML encode/decode failures."""

    code: str = "CODEC_ERROR"


class XmlParseError(CodecError):
    """Input is not well-formed XML."""

    code: str = "XML_PARSE_ERROR"

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.line = line
        self.column = column
        location = f" (line {line}, column {column})" if line is not None else ""
        super().__init__(f"Malformed XML{location}: {message}")


class UnsupportedDocumentError(CodecError):
    """Root element is not one of the supported document types."""

    code: str = "UNSUPPORTED_DOCUMENT"

    def __init__(self, root_tag: str):
        self.root_tag = root_tag
        super().__init__(f"Unsupported document root element: {root_tag}")


class PayloadExtractionError(CodecError):
    """A downloaded archive did not contain the expected XML document."""

    code: str = "PAYLOAD_EXTRACTION_FAILED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to extract XML: {reason}")


# Validation


class ValidationFailedError(EFacturaError):
    """Raised by callers that prefer an exception over a ValidationReport."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, errors: list):
        self.errors = errors
        super().__init__("; ".join(str(e) for e in errors) or "Validation failed")


class SchematronUnavailableError(EFacturaError):
    """The external Schematron evaluator could not produce a report."""

    code: str = "SCHEMATRON_UNAVAILABLE"

    def __init__(self, evaluator: str, reason: str):
        self.evaluator = evaluator
        self.reason = reason
        super().__init__(f"{evaluator} unavailable: {reason}")


# Sync


class TenantNotFoundError(EFacturaError):
    """A sync run was requested for a tenant that does not exist."""

    code: str = "TENANT_NOT_FOUND"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not found: {tenant_id}")


# Persistence


class PersistenceFailureError(EFacturaError):
    """A batch flush failed; the session must be reset."""

    code: str = "PERSISTENCE_FAILURE"

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause_type = type(cause).__name__
        super().__init__(f"{stage}: {cause}")
