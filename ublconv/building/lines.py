# File: ublconv/building/lines.py
"""InvoiceLine / CreditNoteLine construction."""

from __future__ import annotations

import logging

from ublconv.building.charges import build_line_charges
from ublconv.constants import EXT_SCHEME_ID, LINE_NOTE_ACCOUNTING_REF
from ublconv.parsing.codes import InvoiceType, unit_to_unece
from ublconv.parsing.document import _cac, _cbc, place, sub
from ublconv.parsing.money import fmt_amount
from ublconv.parsing.utils import format_date
from ublconv.tax import add_tax_category, line_tax_totals

log = logging.getLogger(__name__)


def add_period(parent, period, tag: str = "InvoicePeriod"):
    if period is None or (period.start is None and period.end is None):
        return None
    el = sub(parent, _cac(tag))
    if period.start is not None:
        sub(el, _cbc("StartDate"), format_date(period.start))
    if period.end is not None:
        sub(el, _cbc("EndDate"), format_date(period.end))
    return el


def _item_identities(item_el, identities):
    buyers = standard = None
    for ident in identities:
        if buyers is not None and standard is not None:
            break
        scheme = (ident.ext or {}).get(EXT_SCHEME_ID)
        if not scheme:
            if buyers is None:
                buyers = sub(item_el, _cac("BuyersItemIdentification"))
                sub(buyers, _cbc("ID"), ident.code)
            continue
        if standard is None:
            standard = sub(item_el, _cac("StandardItemIdentification"))
            sub(standard, _cbc("ID"), ident.code, schemeID=scheme)


def _build_item(line_el, line, currency: str):
    item = line.item
    it = sub(line_el, _cac("Item"))
    if item.description:
        sub(it, _cbc("Description"), item.description)
    # Name is mandatory in the schema, even when blank
    sub(it, _cbc("Name"), item.name)
    if item.origin:
        origin = sub(it, _cac("OriginCountry"))
        sub(origin, _cbc("IdentificationCode"), item.origin)
    for key in sorted(item.meta or {}):
        prop = sub(it, _cac("AdditionalItemProperty"))
        sub(prop, _cbc("Name"), key)
        sub(prop, _cbc("Value"), item.meta[key])

    if line.taxes and line.taxes[0].category:
        combo = line.taxes[0]
        add_tax_category(
            it, combo.category, combo.ext, combo.percent, tag="ClassifiedTaxCategory"
        )

    _item_identities(it, item.identities)

    if item.ref:
        sellers = sub(it, _cac("SellersItemIdentification"))
        sub(sellers, _cbc("ID"), item.ref)

    if item.price is not None:
        price = sub(line_el, _cac("Price"))
        sub(price, _cbc("PriceAmount"), fmt_amount(item.price), currencyID=currency)
    return it


def build_line(root, line, invoice, context, position: int):
    credit_note = invoice.type == InvoiceType.CREDIT_NOTE
    tag = "CreditNoteLine" if credit_note else "InvoiceLine"
    currency = (line.item.currency if line.item else "") or invoice.currency

    el = sub(root, _cac(tag))
    index = line.index if line.index is not None else position
    sub(el, _cbc("ID"), str(index))

    accounting_cost = None
    for note in line.notes:
        if note.key == LINE_NOTE_ACCOUNTING_REF:
            accounting_cost = note.text
        else:
            sub(el, _cbc("Note"), note.text)
    accounting_cost = accounting_cost or line.cost or None

    quantity = fmt_amount(line.quantity) if line.quantity is not None else "0"
    unit = unit_to_unece(line.item.unit) if line.item and line.item.unit else None
    sub(
        el,
        _cbc("CreditedQuantity" if credit_note else "InvoicedQuantity"),
        quantity,
        unitCode=unit,
    )

    amount = line.total if line.total is not None else line.sum
    sub(
        el,
        _cbc("LineExtensionAmount"),
        fmt_amount(amount) if amount is not None else "0",
        currencyID=currency,
    )
    if accounting_cost:
        sub(el, _cbc("AccountingCost"), accounting_cost)
    add_period(el, line.period)
    if line.order:
        olr = sub(el, _cac("OrderLineReference"))
        sub(olr, _cbc("LineID"), line.order)

    build_line_charges(el, line, currency)

    if line.item is not None:
        _build_item(el, line, currency)

    if context.oioubl:
        for tax_total in line_tax_totals(line, currency):
            place(el, tax_total)
    return el


def build_lines(root, invoice, context) -> int:
    for pos, line in enumerate(invoice.lines, start=1):
        build_line(root, line, invoice, context, pos)
    log.debug("Mapped %d lines", len(invoice.lines))
    return len(invoice.lines)
