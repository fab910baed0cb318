"""
Module: efactura_authority
Responsibility:
    Rate-limited HTTP access to the Authority's e-Factura and e-Transport
    APIs.

Architecture position:
    Authority -- imports codec (reply parsing), config and kernel.
    MUST NOT import validation, submission or sync.

Usage:
    limiter = RateLimiter(settings.rate_limits, clock)
    client = AuthorityClient(httpx.Client(), limiter, settings.authority)
    reply = client.upload(xml, tenant.tax_id, token)
"""

from efactura_authority.client import AuthorityClient, TokenCheck, TransportClient
from efactura_authority.rate_limiter import (
    DOWNLOAD,
    GLOBAL,
    LIST,
    STATUS,
    RateBudget,
    RateLimiter,
)

__all__ = [
    "AuthorityClient",
    "DOWNLOAD",
    "GLOBAL",
    "LIST",
    "RateBudget",
    "RateLimiter",
    "STATUS",
    "TokenCheck",
    "TransportClient",
]
