# File: ublconv/building/payment.py
"""PaymentMeans, PaymentTerms and PayeeParty."""

from __future__ import annotations

import logging

from ublconv.building.party import build_payee_party
from ublconv.constants import EXT_PAYMENT_MEANS, META_PAYMENT_CHANNEL
from ublconv.errors import ValidationError
from ublconv.parsing.document import _cac, _cbc, sub
from ublconv.parsing.money import fmt_amount, fmt_percent
from ublconv.parsing.utils import format_date

log = logging.getLogger(__name__)

MEANS_CREDIT_TRANSFER = "30"
MEANS_OIOUBL_IBAN = "31"
CHANNEL_IBAN = "IBAN"


def build_payment_means(root, instructions, context):
    """One ``cac:PaymentMeans`` from the payment instructions.

    Raises :class:`ValidationError` when the UNTDID 4461 code is missing.
    """
    code = (instructions.ext or {}).get(EXT_PAYMENT_MEANS, "")
    if not code:
        raise ValidationError(("instructions", "ext", EXT_PAYMENT_MEANS))
    oioubl_iban = False
    if context.oioubl and code == MEANS_CREDIT_TRANSFER:
        # OIOUBL expects 31 for IBAN transfers
        code = MEANS_OIOUBL_IBAN
    if context.oioubl and code == MEANS_OIOUBL_IBAN:
        oioubl_iban = True

    pm = sub(root, _cac("PaymentMeans"))
    sub(pm, _cbc("PaymentMeansCode"), code)

    channel = (instructions.meta or {}).get(META_PAYMENT_CHANNEL, "")
    if channel:
        sub(pm, _cbc("PaymentChannelCode"), channel)
    if instructions.ref:
        sub(pm, _cbc("PaymentID"), instructions.ref)

    if instructions.credit_transfer:
        ct = instructions.credit_transfer[0]
        pfa = sub(pm, _cac("PayeeFinancialAccount"))
        account = ct.iban or ct.number
        if account:
            sub(pfa, _cbc("ID"), account)
        if ct.name:
            sub(pfa, _cbc("Name"), ct.name)
        if ct.bic:
            branch = sub(pfa, _cac("FinancialInstitutionBranch"))
            sub(branch, _cbc("ID"), ct.bic)
            if oioubl_iban:
                fi = sub(branch, _cac("FinancialInstitution"))
                sub(fi, _cbc("ID"), ct.bic)
        if oioubl_iban and not channel:
            sub(pm, _cbc("PaymentChannelCode"), CHANNEL_IBAN)

    dd = instructions.direct_debit
    if dd is not None:
        mandate = sub(pm, _cac("PaymentMandate"))
        sub(mandate, _cbc("ID"), dd.ref)
        if dd.account:
            payer = sub(pm, _cac("PayerFinancialAccount"))
            sub(payer, _cbc("ID"), dd.account)

    card = instructions.card
    if card is not None:
        acc = sub(pm, _cac("CardAccount"))
        sub(acc, _cbc("PrimaryAccountNumberID"), card.last4)
        if card.holder:
            sub(acc, _cbc("HolderName"), card.holder)

    log.debug("PaymentMeans %s (%s)", code, instructions.key)
    return pm


def build_payment_terms(root, terms, invoice, credit_note: bool):
    """Terms follow the due dates.

    Several due dates, or any due date on a credit note, give one
    ``PaymentTerms`` each; a single due date on an invoice only sets the
    header ``DueDate``; anything else is a note-only ``PaymentTerms``.
    """
    due_dates = terms.due_dates
    if len(due_dates) > 1 or (credit_note and due_dates):
        for dd in due_dates:
            pt = sub(root, _cac("PaymentTerms"))
            if dd.notes:
                sub(pt, _cbc("Note"), dd.notes)
            if dd.percent is not None:
                sub(pt, _cbc("PaymentPercent"), fmt_percent(dd.percent))
            if dd.amount is not None:
                sub(
                    pt,
                    _cbc("Amount"),
                    fmt_amount(dd.amount),
                    currencyID=dd.currency or invoice.currency,
                )
            if dd.date is not None:
                sub(pt, _cbc("PaymentDueDate"), format_date(dd.date))
        return len(due_dates)

    if len(due_dates) == 1 and not credit_note:
        if due_dates[0].date is not None:
            sub(root, _cbc("DueDate"), format_date(due_dates[0].date))
        return 0

    pt = sub(root, _cac("PaymentTerms"))
    sub(pt, _cbc("Note"), terms.notes)
    return 1


def build_payment(root, invoice, context, credit_note: bool):
    payment = invoice.payment
    if payment is None:
        return None
    if payment.instructions is not None:
        build_payment_means(root, payment.instructions, context)
    if payment.terms is not None:
        build_payment_terms(root, payment.terms, invoice, credit_note)
    if payment.payee is not None:
        build_payee_party(root, payment.payee)
    return root
