"""
Tax category reconciliation
===========================
• build_tax_category_map()  → side table from the document's TaxTotal list,
                               keyed by ``(scheme_id, category_id)``
• exemption_code()          → backfill for line/charge fragments that omit
                               their VATEX code
• add_tax_category()        → one TaxCategory/ClassifiedTaxCategory fragment
• line_tax_totals()         → synthesized line TaxTotal (OIOUBL)
• parse_tax_combo()         → canonical tax combo from a category fragment
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from lxml import etree as LET

from ublconv.constants import (
    EXT_TAX_CATEGORY,
    EXT_VATEX,
    TAX_CATEGORY_OUTSIDE_SCOPE,
)
from ublconv.model import TaxCombo
from ublconv.parsing.document import _cac, _cbc, find, findall, sub, text
from ublconv.parsing.money import (
    fmt_amount,
    fmt_percent,
    parse_percent,
    percent_of,
    percent_or_none,
)

log = logging.getLogger(__name__)

TaxCategoryKey = tuple[str, str]


@dataclass(frozen=True)
class TaxCategoryInfo:
    exemption_reason_code: str = ""
    exemption_reason: str = ""


def build_tax_category_map(root) -> dict[TaxCategoryKey, TaxCategoryInfo]:
    """Map every top-level tax subtotal category to its exemption details.

    Subtotals without a category ID or a tax scheme are ignored; a later
    subtotal for the same key replaces an earlier one.
    """
    out: dict[TaxCategoryKey, TaxCategoryInfo] = {}
    for cat in findall(root, "cac:TaxTotal/cac:TaxSubtotal/cac:TaxCategory"):
        cat_id = text(cat, "cbc:ID")
        scheme_id = text(cat, "cac:TaxScheme/cbc:ID")
        if cat_id is None or scheme_id is None:
            continue
        out[(scheme_id, cat_id)] = TaxCategoryInfo(
            exemption_reason_code=text(cat, "cbc:TaxExemptionReasonCode") or "",
            exemption_reason=text(cat, "cbc:TaxExemptionReason") or "",
        )
    log.debug("Tax category map: %s", sorted(out))
    return out


def exemption_code(
    tax_map: dict[TaxCategoryKey, TaxCategoryInfo],
    scheme_id: str,
    category_id: str,
) -> str:
    info = tax_map.get((scheme_id, category_id))
    return info.exemption_reason_code if info else ""


def add_tax_category(
    parent,
    combo_category: str,
    ext: dict[str, str],
    percent: Decimal | None,
    *,
    tag: str = "TaxCategory",
    default_percent: bool = True,
    with_exemption: bool = False,
    exemption_reason: str | None = None,
):
    """Append a tax category fragment to ``parent``.

    Without a percent the fragment gets ``0`` unless its category is ``O``
    (outside scope) or ``default_percent`` is off.
    """
    el = sub(parent, _cac(tag))
    cat_id = (ext or {}).get(EXT_TAX_CATEGORY, "")
    if cat_id:
        sub(el, _cbc("ID"), cat_id)
    if percent is not None:
        sub(el, _cbc("Percent"), fmt_percent(percent))
    elif default_percent and cat_id != TAX_CATEGORY_OUTSIDE_SCOPE:
        sub(el, _cbc("Percent"), "0")
    if with_exemption and (ext or {}).get(EXT_VATEX):
        sub(el, _cbc("TaxExemptionReasonCode"), ext[EXT_VATEX])
    if exemption_reason:
        sub(el, _cbc("TaxExemptionReason"), exemption_reason)
    if combo_category:
        scheme = sub(el, _cac("TaxScheme"))
        sub(scheme, _cbc("ID"), combo_category)
    return el


def line_tax_totals(line, currency: str) -> list:
    """Build the line-level TaxTotal fragment.

    The taxable base is the line total, falling back to the line sum.  Each
    tax entry contributes ``percent x base`` rounded to the base's exponent.
    A zero total yields an empty list rather than a zero-valued fragment.
    """
    if line is None or not line.taxes:
        return []
    taxable = line.total if line.total is not None else line.sum
    if taxable is None:
        return []

    tax_total = LET.Element(_cac("TaxTotal"))
    total_el = sub(tax_total, _cbc("TaxAmount"), "0", currencyID=currency)
    total = Decimal(0).scaleb(taxable.as_tuple().exponent)

    for combo in line.taxes:
        subtotal = sub(tax_total, _cac("TaxSubtotal"))
        sub(subtotal, _cbc("TaxableAmount"), fmt_amount(taxable), currencyID=currency)
        if combo.percent is not None:
            amount = percent_of(combo.percent, taxable)
            total += amount
            sub(subtotal, _cbc("TaxAmount"), fmt_amount(amount), currencyID=currency)
        else:
            sub(subtotal, _cbc("TaxAmount"), "0", currencyID=currency)
        add_tax_category(
            subtotal, combo.category, combo.ext, combo.percent, default_percent=False
        )

    if total.is_zero():
        return []
    total_el.text = fmt_amount(total)
    return [tax_total]


def parse_tax_combo(cat, tax_map, *, own_exemption: bool = False) -> TaxCombo | None:
    """Rebuild a tax combo from a TaxCategory/ClassifiedTaxCategory element.

    A missing VATEX code is backfilled from ``tax_map``.  With
    ``own_exemption`` the fragment's own TaxExemptionReasonCode wins.
    """
    if cat is None:
        return None
    scheme = find(cat, "cac:TaxScheme")
    if scheme is None:
        return None
    scheme_id = text(scheme, "cbc:ID") or ""
    combo = TaxCombo(category=scheme_id)
    cat_id = text(cat, "cbc:ID")
    if cat_id:
        combo.ext[EXT_TAX_CATEGORY] = cat_id
        vatex = text(cat, "cbc:TaxExemptionReasonCode") if own_exemption else None
        if not vatex:
            vatex = exemption_code(tax_map, scheme_id, cat_id)
        if vatex:
            combo.ext[EXT_VATEX] = vatex
    raw = text(cat, "cbc:Percent")
    if raw:
        combo.percent = percent_or_none(parse_percent(raw), cat_id)
    return combo
