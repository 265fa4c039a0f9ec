# File: ublconv/building/totals.py
"""LegalMonetaryTotal, document TaxTotal and the tax currency block."""

from __future__ import annotations

import logging

from ublconv.constants import EXT_VATEX, NOTE_KEY_LEGAL
from ublconv.parsing.document import _cac, _cbc, sub
from ublconv.parsing.money import fmt_amount, quantize_like
from ublconv.tax import add_tax_category

log = logging.getLogger(__name__)


def _legal_note(invoice) -> str | None:
    for note in invoice.notes:
        if note.key == NOTE_KEY_LEGAL:
            return note.text
    return None


def _amount(parent, tag: str, value, currency: str):
    return sub(parent, _cbc(tag), fmt_amount(value) if value is not None else "0", currencyID=currency)


def build_monetary_total(root, totals, currency: str):
    lmt = sub(root, _cac("LegalMonetaryTotal"))
    _amount(lmt, "LineExtensionAmount", totals.sum, currency)
    _amount(lmt, "TaxExclusiveAmount", totals.total, currency)
    _amount(lmt, "TaxInclusiveAmount", totals.total_with_tax, currency)
    if totals.discount is not None:
        _amount(lmt, "AllowanceTotalAmount", totals.discount, currency)
    if totals.charge is not None:
        _amount(lmt, "ChargeTotalAmount", totals.charge, currency)
    if totals.advances is not None:
        _amount(lmt, "PrepaidAmount", totals.advances, currency)
    if totals.rounding is not None:
        _amount(lmt, "PayableRoundingAmount", totals.rounding, currency)
    payable = totals.due if totals.due is not None else totals.payable
    _amount(lmt, "PayableAmount", payable, currency)
    return lmt


def build_tax_total(root, invoice):
    """Single TaxTotal with one subtotal per (category, rate) pair."""
    totals = invoice.totals
    currency = invoice.currency
    tt = sub(root, _cac("TaxTotal"))
    _amount(tt, "TaxAmount", totals.tax, currency)

    if totals.taxes is None:
        return tt
    reason = _legal_note(invoice)
    for cat in totals.taxes.categories:
        for rate in cat.rates:
            st = sub(tt, _cac("TaxSubtotal"))
            if rate.base is not None:
                sub(st, _cbc("TaxableAmount"), fmt_amount(rate.base), currencyID=currency)
            _amount(st, "TaxAmount", rate.amount, currency)
            add_tax_category(
                st,
                cat.code,
                rate.ext,
                rate.percent,
                with_exemption=True,
                exemption_reason=reason,
            )
            if (rate.ext or {}).get(EXT_VATEX):
                log.debug("Exemption %s on %s", rate.ext[EXT_VATEX], cat.code)
    return tt


def tax_exchange_rate(invoice):
    """First exchange rate from the document currency into another one."""
    for rate in invoice.exchange_rates:
        if (
            rate.source == invoice.currency
            and rate.target
            and rate.target != invoice.currency
            and rate.amount is not None
        ):
            return rate
    return None


def build_tax_currency(root, invoice):
    """TaxCurrencyCode, TaxExchangeRate and the TaxTotal in tax currency."""
    rate = tax_exchange_rate(invoice)
    if rate is None:
        return None
    sub(root, _cbc("TaxCurrencyCode"), rate.target)
    ter = sub(root, _cac("TaxExchangeRate"))
    sub(ter, _cbc("SourceCurrencyCode"), rate.source)
    sub(ter, _cbc("TargetCurrencyCode"), rate.target)
    sub(ter, _cbc("CalculationRate"), fmt_amount(rate.amount))
    sub(ter, _cbc("MathematicOperatorCode"), "Multiply")

    tax = invoice.totals.tax if invoice.totals is not None else None
    if tax is not None:
        tt = sub(root, _cac("TaxTotal"))
        sub(
            tt,
            _cbc("TaxAmount"),
            fmt_amount(quantize_like(tax * rate.amount, tax)),
            currencyID=rate.target,
        )
    return ter


def build_totals(root, invoice):
    if invoice.totals is None:
        return None
    build_tax_total(root, invoice)
    build_tax_currency(root, invoice)
    return build_monetary_total(root, invoice.totals, invoice.currency)
