# File: ublconv/parsing/lines.py
"""
UBL lines → canonical lines
===========================
• parse_lines()  → list of :class:`~ublconv.model.Line` for every line that
                   carries a ``Price``
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ublconv.constants import EXT_SCHEME_ID
from ublconv.model import Identity, Item, Line, Note, Period
from ublconv.parsing.charges import parse_line_charges
from ublconv.parsing.codes import unit_from_unece
from ublconv.parsing.document import find, findall, is_credit_note, text
from ublconv.parsing.money import parse_amount, price_per_unit
from ublconv.parsing.party import identity_from_id
from ublconv.parsing.utils import _t, clean_string, format_key, parse_date
from ublconv.tax import parse_tax_combo

log = logging.getLogger(__name__)


def parse_period(el) -> Period | None:
    if el is None:
        return None
    start = text(el, "cbc:StartDate")
    end = text(el, "cbc:EndDate")
    if not start and not end:
        return None
    return Period(
        start=parse_date(start) if start else None,
        end=parse_date(end) if end else None,
    )


def _item_identities(item_el) -> list[Identity]:
    out: list[Identity] = []
    buyers = text(item_el, "cac:BuyersItemIdentification/cbc:ID")
    if buyers:
        out.append(Identity(code=buyers))
    standard = find(item_el, "cac:StandardItemIdentification/cbc:ID")
    if standard is not None and (standard.text or "").strip():
        scheme = standard.get("schemeID")
        out.append(
            Identity(
                code=standard.text.strip(),
                ext={EXT_SCHEME_ID: scheme} if scheme else {},
            )
        )
    for code_el in findall(item_el, "cac:CommodityClassification/cbc:ItemClassificationCode"):
        ident = identity_from_id(code_el)
        if ident is not None and ident.code:
            out.append(ident)
    return out


def _parse_item(item_el, price_el, currency: str, unit: str) -> Item:
    item = Item(
        name=clean_string(text(item_el, "cbc:Name") or ""),
        description=clean_string(text(item_el, "cbc:Description") or ""),
        origin=text(item_el, "cac:OriginCountry/cbc:IdentificationCode") or "",
        ref=text(item_el, "cac:SellersItemIdentification/cbc:ID") or "",
        unit=unit,
    )

    price = parse_amount(text(price_el, "cbc:PriceAmount"))
    base_qty = text(price_el, "cbc:BaseQuantity")
    if base_qty:
        qty = parse_amount(base_qty)
        if not qty.is_zero():
            price = price_per_unit(price, qty)
    item.price = price
    price_currency = find(price_el, "cbc:PriceAmount").get("currencyID")
    if price_currency and price_currency != currency:
        item.currency = price_currency

    for prop in findall(item_el, "cac:AdditionalItemProperty"):
        name = text(prop, "cbc:Name")
        if not name:
            continue
        item.meta[format_key(name)] = text(prop, "cbc:Value") or ""

    item.identities = _item_identities(item_el)
    return item


def parse_line(line_el, position: int, currency: str, tax_map, credit_note: bool) -> Line | None:
    """Map one InvoiceLine/CreditNoteLine; ``None`` for lines without a price."""
    price_el = find(line_el, "cac:Price")
    if price_el is None or not text(price_el, "cbc:PriceAmount"):
        _t("line %s skipped: no price", text(line_el, "cbc:ID"))
        return None

    line = Line(index=position)

    qty_el = find(line_el, "cbc:CreditedQuantity" if credit_note else "cbc:InvoicedQuantity")
    unit = ""
    if qty_el is not None and (qty_el.text or "").strip():
        line.quantity = parse_amount(qty_el.text)
        if qty_el.get("unitCode"):
            unit = unit_from_unece(qty_el.get("unitCode"))
    else:
        line.quantity = Decimal("1")

    for note in findall(line_el, "cbc:Note"):
        if note.text and note.text.strip():
            line.notes.append(Note(text=clean_string(note.text)))
    cost = text(line_el, "cbc:AccountingCost")
    if cost:
        line.cost = cost
    line.period = parse_period(find(line_el, "cac:InvoicePeriod"))
    order = text(line_el, "cac:OrderLineReference/cbc:LineID")
    if order:
        line.order = order

    line.charges, line.discounts = parse_line_charges(line_el)

    total = text(line_el, "cbc:LineExtensionAmount")
    if total:
        line.total = parse_amount(total)

    item_el = find(line_el, "cac:Item")
    line.item = _parse_item(item_el, price_el, currency, unit)

    line.sum = _line_sum(line)

    combo = parse_tax_combo(find(item_el, "cac:ClassifiedTaxCategory"), tax_map, own_exemption=True)
    if combo is not None:
        line.taxes.append(combo)
    return line


def _line_sum(line: Line) -> Decimal | None:
    """Pre-discount line amount.

    A line charge's BaseAmount is the sum when present; otherwise the total
    is unwound through the line's own allowances and charges.
    """
    for entry in (*line.charges, *line.discounts):
        if entry.base is not None:
            return entry.base
    if line.total is None:
        return None
    out = line.total
    for d in line.discounts:
        if d.amount is not None:
            out += d.amount
    for c in line.charges:
        if c.amount is not None:
            out -= c.amount
    return out


def parse_lines(root, currency: str, tax_map) -> list[Line]:
    credit_note = is_credit_note(root)
    tag = "cac:CreditNoteLine" if credit_note else "cac:InvoiceLine"
    lines: list[Line] = []
    for line_el in findall(root, tag):
        line = parse_line(line_el, len(lines) + 1, currency, tax_map, credit_note)
        if line is not None:
            lines.append(line)
    log.debug("Parsed %d lines", len(lines))
    return lines

