"""
Authority HTTP clients.

Responsibility:
    Thin, stateless wrappers over the e-Factura and e-Transport REST
    endpoints.  Each call consumes rate-limit tokens, sends the request
    with a bearer token and an explicit timeout, and decodes the body
    into the typed replies of ``efactura_codec.replies``.

Architecture position:
    Authority -- called by the submission state machine and the sync
    engine.  Tokens are supplied per call by the caller's TokenResolver;
    nothing here caches credentials.

Invariants enforced:
    - Global bucket first, then the operation's specific bucket.
    - HTTP 4xx/5xx on upload and list are folded into the reply's
      ``error_message``, the same shape as body-level ``eroare`` fields.
    - The "no messages" list reply is an empty success.

Failure modes:
    - RateLimitedError from the limiter, before any network I/O.
    - AuthorityRequestError for network failures, and for HTTP errors on
      status checks and downloads.
    - AuthorityResponseError for undecodable bodies.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

import httpx

from efactura_authority.rate_limiter import DOWNLOAD, LIST, STATUS, RateLimiter
from efactura_codec.replies import (
    MessageListResponse,
    StatusResponse,
    UploadResponse,
    is_no_messages_error,
    parse_message_list,
    parse_status_reply,
    parse_transport_list,
    parse_transport_status_reply,
    parse_transport_upload_reply,
    parse_upload_reply,
)
from efactura_config.schema import AuthoritySettings
from efactura_kernel.exceptions import AuthorityRequestError, AuthorityResponseError
from efactura_kernel.logging_config import get_logger

logger = get_logger("authority.client")

_ERROR_BODY_LIMIT = 500


@dataclass(frozen=True)
class TokenCheck:
    valid: bool
    error: str | None
    status_code: int


def _http_error(response: httpx.Response) -> str:
    body = response.text.strip()[:_ERROR_BODY_LIMIT]
    return f"HTTP {response.status_code}: {body}" if body else f"HTTP {response.status_code}"


class _BaseClient:
    def __init__(
        self,
        http_client: httpx.Client,
        rate_limiter: RateLimiter,
        settings: AuthoritySettings | None = None,
    ):
        self._http = http_client
        self._limiter = rate_limiter
        self._settings = settings or AuthoritySettings()

    @property
    def timeout(self) -> float:
        return self._settings.timeout_seconds

    def _send(
        self,
        operation: str,
        method: str,
        url: str,
        token: str,
        **kwargs,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"}
        headers.update(kwargs.pop("headers", {}))
        try:
            response = self._http.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "authority_request_failed",
                extra={"operation": operation, "error": str(exc)},
            )
            raise AuthorityRequestError(operation, str(exc)) from exc
        logger.debug(
            "authority_response",
            extra={"operation": operation, "status_code": response.status_code},
        )
        return response


class AuthorityClient(_BaseClient):
    """
    e-Factura REST client.

    Contract:
        ``upload``, ``check_status``, ``list_messages`` and ``download``
        map one-to-one to ``/upload``, ``/stareMesaj``,
        ``/listaMesajeFactura`` and ``/descarcare``.

    Non-goals:
        - No retries.  Rate limits and transient failures are surfaced
          for the caller's scheduling layer.
    """

    @property
    def base_url(self) -> str:
        return self._settings.efactura_base_url

    def upload(
        self, xml: bytes, tax_id: str, token: str, standard: str = "UBL"
    ) -> UploadResponse:
        self._limiter.acquire()
        response = self._send(
            "upload",
            "POST",
            f"{self.base_url}/upload",
            token,
            params={"standard": standard, "cif": tax_id},
            content=xml,
            headers={"Content-Type": "text/plain"},
        )
        if response.is_error:
            return UploadResponse(success=False, error_message=_http_error(response))
        result = parse_upload_reply(response.content)
        logger.info(
            "authority_upload",
            extra={
                "tax_id": tax_id,
                "success": result.success,
                "upload_id": result.upload_id,
            },
        )
        return result

    def check_status(self, upload_id: str, token: str) -> StatusResponse:
        self._limiter.acquire(STATUS, upload_id)
        response = self._send(
            "check_status",
            "GET",
            f"{self.base_url}/stareMesaj",
            token,
            params={"id_incarcare": upload_id},
        )
        if response.is_error:
            raise AuthorityRequestError(
                "check_status", _http_error(response), status_code=response.status_code
            )
        return parse_status_reply(response.content)

    def list_messages(self, tax_id: str, token: str, days: int = 60) -> MessageListResponse:
        self._limiter.acquire(LIST, tax_id)
        response = self._send(
            "list_messages",
            "GET",
            f"{self.base_url}/listaMesajeFactura",
            token,
            params={"zile": days, "cif": tax_id},
        )
        if response.is_error:
            return MessageListResponse(error_message=_http_error(response))
        return parse_message_list(response.content)

    def download(self, message_id: str, token: str) -> bytes:
        self._limiter.acquire(DOWNLOAD, message_id)
        response = self._send(
            "download",
            "GET",
            f"{self.base_url}/descarcare",
            token,
            params={"id": message_id},
        )
        if response.is_error:
            raise AuthorityRequestError(
                "download", _http_error(response), status_code=response.status_code
            )
        content = response.content
        # Errors come back as a JSON object instead of a zip.
        if content[:1] == b"{":
            try:
                data = json.loads(content)
            except ValueError as exc:
                raise AuthorityResponseError("download", f"invalid JSON: {exc}") from exc
            raise AuthorityResponseError(
                "download", str(data.get("eroare") or data.get("error") or data)
            )
        return content

    def validate_token(self, tax_id: str, token: str) -> TokenCheck:
        """Check a token with a one-day list call."""
        self._limiter.acquire(LIST, tax_id)
        response = self._send(
            "validate_token",
            "GET",
            f"{self.base_url}/listaMesajeFactura",
            token,
            params={"zile": 1, "cif": tax_id},
        )
        if response.is_error:
            return TokenCheck(
                valid=False,
                error=(
                    f"ANAF a returnat HTTP {response.status_code}. Token-ul nu este "
                    f"valid sau nu are acces la CIF-ul {tax_id}."
                ),
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return TokenCheck(
                valid=False,
                error="Raspuns invalid de la ANAF. Token-ul nu pare sa fie valid.",
                status_code=response.status_code,
            )
        error = data.get("eroare")
        if error and not is_no_messages_error(error):
            return TokenCheck(valid=False, error=str(error), status_code=response.status_code)
        return TokenCheck(valid=True, error=None, status_code=response.status_code)


class TransportClient(_BaseClient):
    """e-Transport REST client (JSON replies)."""

    @property
    def base_url(self) -> str:
        return self._settings.etransport_base_url

    def upload(self, xml: bytes, tax_id: str, token: str) -> UploadResponse:
        self._limiter.acquire()
        response = self._send(
            "transport_upload",
            "POST",
            f"{self.base_url}/upload/ETRANSP/{tax_id}/2",
            token,
            content=xml,
            headers={"Content-Type": "application/xml"},
        )
        if response.is_error:
            return UploadResponse(success=False, error_message=_http_error(response))
        result = parse_transport_upload_reply(response.content)
        logger.info(
            "authority_transport_upload",
            extra={
                "tax_id": tax_id,
                "success": result.success,
                "upload_id": result.upload_id,
                "uit": result.uit,
            },
        )
        return result

    def check_status(self, upload_id: str, token: str) -> StatusResponse:
        self._limiter.acquire(STATUS, upload_id)
        response = self._send(
            "transport_check_status",
            "GET",
            f"{self.base_url}/stareMesaj/{upload_id}",
            token,
        )
        if response.is_error:
            raise AuthorityRequestError(
                "transport_check_status",
                _http_error(response),
                status_code=response.status_code,
            )
        return parse_transport_status_reply(response.content)

    def list_declarations(self, tax_id: str, token: str, days: int = 60) -> list[dict]:
        self._limiter.acquire(LIST, tax_id)
        response = self._send(
            "transport_list",
            "GET",
            f"{self.base_url}/lista/{days}/{tax_id}",
            token,
        )
        if response.is_error:
            raise AuthorityRequestError(
                "transport_list", _http_error(response), status_code=response.status_code
            )
        return parse_transport_list(response.content)
