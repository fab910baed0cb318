"""ORM models. Importing this package registers every table on Base.metadata."""

from efactura_kernel.models.catalog import CatalogItem, DocumentSeries
from efactura_kernel.models.document import (
    Document,
    DocumentAttachment,
    DocumentEvent,
    DocumentLine,
)
from efactura_kernel.models.inbox import InboxMessage
from efactura_kernel.models.party import BankAccount, Party
from efactura_kernel.models.tenant import Tenant

__all__ = [
    "BankAccount",
    "CatalogItem",
    "Document",
    "DocumentAttachment",
    "DocumentEvent",
    "DocumentLine",
    "DocumentSeries",
    "InboxMessage",
    "Party",
    "Tenant",
]
