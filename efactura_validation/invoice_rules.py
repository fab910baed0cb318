"""
Entity rules for invoices and credit notes.

Responsibility:
    Check a Document and its tenant/party before any XML exists:
    completeness of the supplier (tenant) and customer (party), document
    metadata, per-line sign rules and VAT-rate membership.

Invariants enforced:
    - Every failing rule is reported; the phase does not stop at the first
      violation.
    - Each violation carries a stable ``INV-*`` rule id; the Romanian
      message text may change, the id does not.
    - Normal documents need quantity, unit price and total > 0; refunds
      (credit notes or documents with a parent) need them != 0.
    - A line's VAT rate must belong to the tenant's configured set, or the
      fallback set when the tenant has none, extended with the destination
      country's rates when the One-Stop-Shop scheme applies.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Iterable, Protocol, runtime_checkable

from efactura_kernel.domain.types import PartyKind
from efactura_kernel.logging_config import get_logger
from efactura_validation.result import Violation

logger = get_logger("validation.invoice_rules")

DEFAULT_VAT_RATES: tuple[Decimal, ...] = (
    Decimal("0.00"), Decimal("5.00"), Decimal("9.00"), Decimal("21.00"),
)

_TWO_PLACES = Decimal("0.01")


@runtime_checkable
class VatRateProvider(Protocol):
    """Destination-country VAT rates for One-Stop-Shop sales."""

    def rates_for_country(self, country: str) -> Iterable[Decimal | str]:
        ...


class StaticVatRateProvider:
    """VatRateProvider backed by a fixed ``{country: [rates]}`` mapping."""

    def __init__(self, rates: dict[str, Iterable[Decimal | str]] | None = None):
        self._rates = {k.upper(): tuple(v) for k, v in (rates or {}).items()}

    def rates_for_country(self, country: str) -> Iterable[Decimal | str]:
        return self._rates.get(country.upper(), ())


def _rate(value) -> Decimal | None:
    try:
        return Decimal(str(value)).quantize(_TWO_PLACES)
    except (InvalidOperation, ValueError):
        return None


def _error(rule_id: str, message: str) -> Violation:
    return Violation(message=message, rule_id=rule_id, source="business")


def oss_applies(tenant, party) -> bool:
    """B2C sale to another EU country by a tenant registered for OSS."""
    if tenant is None or party is None or not tenant.oss_enabled:
        return False
    if (party.country or "RO") == "RO":
        return False
    return not party.is_vat_payer


def allowed_vat_rates(
    tenant,
    party=None,
    rate_provider: VatRateProvider | None = None,
    fallback: Iterable[Decimal] = DEFAULT_VAT_RATES,
) -> list[Decimal]:
    configured = [r for r in (_rate(v) for v in (tenant.vat_rates or [])) if r is not None] if tenant else []
    rates = configured or [_rate(r) for r in fallback]
    if rate_provider is not None and oss_applies(tenant, party):
        for value in rate_provider.rates_for_country(party.country):
            rate = _rate(value)
            if rate is not None and rate not in rates:
                rates.append(rate)
    return rates


def check_invoice(
    document,
    rate_provider: VatRateProvider | None = None,
    fallback_rates: Iterable[Decimal] = DEFAULT_VAT_RATES,
) -> list[Violation]:
    """Return every entity-rule violation of an invoice or credit note."""
    errors: list[Violation] = []
    tenant = document.tenant
    party = document.party
    is_refund = document.is_refund

    if tenant is None:
        errors.append(_error("INV-SUPPLIER", "Factura nu are o companie asociata."))
    else:
        if not tenant.tax_id:
            errors.append(_error("INV-SUPPLIER-TAX-ID", "Compania nu are CUI completat."))
        if not tenant.name:
            errors.append(_error("INV-SUPPLIER-NAME", "Compania nu are denumirea completata."))
        if not tenant.address:
            errors.append(_error("INV-SUPPLIER-ADDRESS", "Compania nu are adresa completata."))
        if not tenant.city:
            errors.append(_error("INV-SUPPLIER-CITY", "Compania nu are orasul completat."))
        if not tenant.country:
            errors.append(_error("INV-SUPPLIER-COUNTRY", "Compania nu are tara completata."))

    if party is not None:
        if party.kind == PartyKind.COMPANY.value and not party.tax_id:
            errors.append(_error(
                "INV-BUYER-TAX-ID", "Clientul (persoana juridica) nu are CUI completat."
            ))
        if not party.name:
            errors.append(_error("INV-BUYER-NAME", "Clientul nu are denumirea completata."))
        if not party.address:
            errors.append(_error("INV-BUYER-ADDRESS", "Clientul nu are adresa completata."))
        if not party.city:
            errors.append(_error("INV-BUYER-CITY", "Clientul nu are orasul completat."))
    else:
        if not document.receiver_name:
            errors.append(_error(
                "INV-BUYER-NAME", "Factura nu are un destinatar (client sau nume destinatar)."
            ))
        if not document.receiver_tax_id:
            errors.append(_error(
                "INV-BUYER-TAX-ID", "Factura nu are CUI-ul destinatarului completat."
            ))

    if not document.number:
        errors.append(_error("INV-NUMBER", "Factura nu are un numar atribuit."))
    if document.issue_date is None:
        errors.append(_error("INV-ISSUE-DATE", "Factura nu are data emiterii completata."))
    if (document.currency or "RON") != "RON" and not document.exchange_rate:
        errors.append(_error(
            "INV-EXCHANGE-RATE",
            f"Factura in {document.currency} nu are cursul de schimb completat."
        ))

    valid_rates = allowed_vat_rates(tenant, party, rate_provider, fallback_rates)
    lines = list(document.lines)
    if not lines:
        errors.append(_error("INV-LINES", "Factura nu contine nicio linie."))

    for number, line in enumerate(lines, start=1):
        if not line.description:
            errors.append(_error(
                "INV-LINE-DESCRIPTION", f"Linia {number} nu are descrierea completata."
            ))
        quantity = Decimal(line.quantity)
        unit_price = Decimal(line.unit_price)
        if is_refund:
            if quantity == 0:
                errors.append(_error("INV-LINE-QUANTITY", f"Linia {number} are cantitatea zero."))
            if unit_price == 0:
                errors.append(_error("INV-LINE-PRICE", f"Linia {number} are pretul unitar zero."))
        else:
            if unit_price <= 0:
                errors.append(_error(
                    "INV-LINE-PRICE", f"Linia {number} are pretul unitar zero sau negativ."
                ))
            if quantity <= 0:
                errors.append(_error(
                    "INV-LINE-QUANTITY", f"Linia {number} are cantitatea zero sau negativa."
                ))
        if _rate(line.vat_rate) not in valid_rates:
            allowed = "%, ".join(str(r) for r in valid_rates)
            errors.append(_error(
                "INV-LINE-VAT-RATE",
                f"Linia {number} are o cota TVA invalida ({_rate(line.vat_rate)}%). "
                f"Cotele valide sunt: {allowed}%."
            ))

    total = Decimal(document.total)
    if is_refund:
        if total == 0:
            errors.append(_error(
                "INV-TOTAL",
                "Totalul facturii de rambursare trebuie sa fie diferit de zero."
            ))
    elif total <= 0:
        errors.append(_error("INV-TOTAL", "Totalul facturii trebuie sa fie mai mare decat zero."))

    if errors:
        logger.info(
            "invoice_rules_failed",
            extra={"document_id": str(document.id), "error_count": len(errors)},
        )
    return errors
