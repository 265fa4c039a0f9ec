# File: ublconv/parsing/charges.py
"""AllowanceCharge fragments → canonical charges and discounts."""

from __future__ import annotations

import logging

from ublconv.constants import EXT_ALLOWANCE, EXT_CHARGE
from ublconv.model import Charge, Discount, LineCharge, LineDiscount
from ublconv.parsing.document import find, findall, text
from ublconv.parsing.money import parse_amount, parse_percent
from ublconv.tax import parse_tax_combo

log = logging.getLogger(__name__)


def is_charge(ac) -> bool:
    return (text(ac, "cbc:ChargeIndicator") or "").lower() == "true"


def _fill(entry, ac, charge: bool, base_needs_percent: bool):
    reason = text(ac, "cbc:AllowanceChargeReason")
    if reason:
        entry.reason = reason
    amount = text(ac, "cbc:Amount")
    if amount:
        entry.amount = parse_amount(amount)
    code = text(ac, "cbc:AllowanceChargeReasonCode")
    if code:
        entry.ext = {EXT_CHARGE if charge else EXT_ALLOWANCE: code}
    multiplier = text(ac, "cbc:MultiplierFactorNumeric")
    if multiplier:
        entry.percent = parse_percent(multiplier)
    base = text(ac, "cbc:BaseAmount")
    if base and (entry.percent is not None or not base_needs_percent):
        entry.base = parse_amount(base)
    return entry


def parse_document_charges(root, tax_map) -> tuple[list[Charge], list[Discount]]:
    """Split document level AllowanceCharge elements into charges and discounts."""
    charges: list[Charge] = []
    discounts: list[Discount] = []
    for ac in findall(root, "cac:AllowanceCharge"):
        charge = is_charge(ac)
        entry = _fill(Charge() if charge else Discount(), ac, charge, False)
        combo = parse_tax_combo(find(ac, "cac:TaxCategory"), tax_map)
        if combo is not None:
            entry.taxes = [combo]
        if charge:
            entry.index = len(charges) + 1
            charges.append(entry)
        else:
            entry.index = len(discounts) + 1
            discounts.append(entry)
    log.debug("Parsed %d charges, %d discounts", len(charges), len(discounts))
    return charges, discounts


def parse_line_charges(line_el) -> tuple[list[LineCharge], list[LineDiscount]]:
    charges: list[LineCharge] = []
    discounts: list[LineDiscount] = []
    for ac in findall(line_el, "cac:AllowanceCharge"):
        if is_charge(ac):
            charges.append(_fill(LineCharge(), ac, True, True))
        else:
            discounts.append(_fill(LineDiscount(), ac, False, True))
    return charges, discounts
