# File: ublconv/building/charges.py
"""Allowance/charge fragments for lines and for the whole document."""

from __future__ import annotations

import logging
from decimal import Decimal

from ublconv.constants import EXT_ALLOWANCE, EXT_CHARGE
from ublconv.parsing.document import _cac, _cbc, sub
from ublconv.parsing.money import fmt_amount, fmt_percent
from ublconv.tax import add_tax_category

log = logging.getLogger(__name__)


def _amount_text(value: Decimal | None) -> str:
    return fmt_amount(value) if value is not None else "0"


def add_allowance_charge(
    parent,
    entry,
    *,
    charge: bool,
    currency: str,
    base: Decimal | None,
    with_taxes: bool = False,
):
    """Append one ``cac:AllowanceCharge`` for a charge or discount entry.

    ``BaseAmount`` is only written next to a ``MultiplierFactorNumeric``.
    """
    ac = sub(parent, _cac("AllowanceCharge"))
    sub(ac, _cbc("ChargeIndicator"), "true" if charge else "false")
    code = (entry.ext or {}).get(EXT_CHARGE if charge else EXT_ALLOWANCE)
    if code:
        sub(ac, _cbc("AllowanceChargeReasonCode"), code)
    if entry.reason:
        sub(ac, _cbc("AllowanceChargeReason"), entry.reason)
    if entry.percent is not None:
        sub(ac, _cbc("MultiplierFactorNumeric"), fmt_percent(entry.percent))
    sub(ac, _cbc("Amount"), _amount_text(entry.amount), currencyID=currency)
    if entry.percent is not None and base is not None:
        sub(ac, _cbc("BaseAmount"), fmt_amount(base), currencyID=currency)
    if with_taxes:
        for combo in entry.taxes or []:
            add_tax_category(ac, combo.category, combo.ext, combo.percent)
    return ac


def build_line_charges(line_el, line, currency: str) -> int:
    """Charges then discounts of ``line``; percentages apply to the line sum."""
    count = 0
    for ch in line.charges:
        add_allowance_charge(line_el, ch, charge=True, currency=currency, base=line.sum)
        count += 1
    for d in line.discounts:
        add_allowance_charge(line_el, d, charge=False, currency=currency, base=line.sum)
        count += 1
    return count


def build_document_charges(root, invoice) -> int:
    """Document level charges first, then discounts.

    Percentages apply to the invoice sum before discounts.
    """
    if not invoice.charges and not invoice.discounts:
        return 0
    base = invoice.totals.sum if invoice.totals is not None else None
    currency = invoice.currency
    for ch in invoice.charges:
        add_allowance_charge(root, ch, charge=True, currency=currency, base=base, with_taxes=True)
    for d in invoice.discounts:
        add_allowance_charge(root, d, charge=False, currency=currency, base=base, with_taxes=True)
    log.debug(
        "Document allowances/charges: %d charges, %d discounts",
        len(invoice.charges),
        len(invoice.discounts),
    )
    return len(invoice.charges) + len(invoice.discounts)
