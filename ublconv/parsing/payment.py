# File: ublconv/parsing/payment.py
"""
UBL payment → canonical payment details
=======================================
• parse_payment()       → PaymentDetails or ``None`` when nothing was found
• parse_instructions()  → Instructions from the first ``PaymentMeans``
• parse_terms()         → Terms from ``PaymentTerms`` and the due dates
"""

from __future__ import annotations

import logging
import re

from ublconv.constants import EXT_PAYMENT_MEANS, META_PAYMENT_CHANNEL
from ublconv.model import (
    Advance,
    Card,
    CreditTransfer,
    DirectDebit,
    DueDate,
    Instructions,
    PaymentDetails,
    Terms,
)
from ublconv.parsing.codes import MeansKey, means_key
from ublconv.parsing.document import find, findall, text
from ublconv.parsing.money import HUNDRED, parse_amount, parse_percent
from ublconv.parsing.party import parse_party, sepa_creditor
from ublconv.parsing.utils import _t, clean_string, parse_date

log = logging.getLogger(__name__)

_IBAN = re.compile(r"^[A-Z]{2,}\s*[0-9A-Z\s]+$")

ADVANCE_PREPAID = "Prepaid Amount"


def looks_like_iban(value: str) -> bool:
    return bool(_IBAN.match(value.upper()))


# ────────────────────────── terms ──────────────────────────
def _due_date(pt) -> DueDate | None:
    amount = find(pt, "cbc:Amount")
    date = text(pt, "cbc:PaymentDueDate")
    if (amount is None or not (amount.text or "").strip()) and not date:
        return None
    dd = DueDate()
    if amount is not None and (amount.text or "").strip():
        dd.amount = parse_amount(amount.text)
    if date:
        dd.date = parse_date(date)
    percent = text(pt, "cbc:PaymentPercent")
    if percent:
        dd.percent = parse_percent(percent)
    notes = [clean_string(n.text) for n in findall(pt, "cbc:Note") if n.text and n.text.strip()]
    if notes:
        dd.notes = " ".join(notes)
    return dd


def parse_terms(root) -> Terms | None:
    """Collect terms notes and due dates.

    Every ``PaymentTerms`` with an amount or due date becomes a due date.
    The header ``DueDate`` (or the first means' ``PaymentDueDate``) adds one
    more.  A lone due date without a percentage covers the full amount.
    """
    terms = Terms()
    notes: list[str] = []
    for pt in findall(root, "cac:PaymentTerms"):
        dd = _due_date(pt)
        if dd is not None:
            terms.due_dates.append(dd)
            continue
        for n in findall(pt, "cbc:Note"):
            if n.text and n.text.strip():
                notes.append(n.text)
    if notes:
        terms.notes = clean_string(" ".join(notes))

    header_due = text(root, "cbc:DueDate") or text(root, "cac:PaymentMeans/cbc:PaymentDueDate")
    if header_due:
        terms.due_dates.append(DueDate(date=parse_date(header_due)))

    if len(terms.due_dates) == 1 and terms.due_dates[0].percent is None:
        terms.due_dates[0].percent = HUNDRED

    if not terms.notes and not terms.due_dates:
        return None
    return terms


# ────────────────────────── instructions ──────────────────────────
def parse_instructions(root, supplier=None, payee=None) -> Instructions | None:
    pm = find(root, "cac:PaymentMeans")
    if pm is None:
        return None
    code_el = find(pm, "cbc:PaymentMeansCode")
    code = (code_el.text or "").strip() if code_el is not None else ""
    instr = Instructions(key=means_key(code))
    if code:
        instr.ext[EXT_PAYMENT_MEANS] = code
    if code_el is not None and code_el.get("name"):
        instr.detail = code_el.get("name")
    ref = text(pm, "cbc:PaymentID")
    if ref:
        instr.ref = ref
    channel = text(pm, "cbc:PaymentChannelCode")
    if channel:
        instr.meta[META_PAYMENT_CHANNEL] = channel

    account = find(pm, "cac:PayeeFinancialAccount")
    if account is not None:
        ct = CreditTransfer(name=text(account, "cbc:Name") or "")
        acc_id = text(account, "cbc:ID") or ""
        if acc_id and looks_like_iban(acc_id):
            ct.iban = acc_id
        else:
            ct.number = acc_id
        ct.bic = text(account, "cac:FinancialInstitutionBranch/cbc:ID") or ""
        instr.credit_transfer.append(ct)

    mandate = find(pm, "cac:PaymentMandate")
    if mandate is not None:
        dd = DirectDebit(ref=text(mandate, "cbc:ID") or "")
        dd.account = (
            text(mandate, "cac:PayerFinancialAccount/cbc:ID")
            or text(pm, "cac:PayerFinancialAccount/cbc:ID")
            or ""
        )
        dd.creditor = sepa_creditor(supplier, payee)
        instr.direct_debit = dd

    card = find(pm, "cac:CardAccount")
    if card is not None:
        number = text(card, "cbc:PrimaryAccountNumberID") or ""
        instr.card = Card(last4=number[-4:], holder=text(card, "cbc:HolderName") or "")

    if instr.key == MeansKey.ANY.value:
        _t("unknown payment means code %r", code)
    return instr


def parse_payment(root, supplier=None) -> PaymentDetails | None:
    """Payee, terms, instructions and the prepaid advance of ``root``."""
    payment = PaymentDetails()
    payment.payee = parse_party(find(root, "cac:PayeeParty"))
    payment.terms = parse_terms(root)
    payment.instructions = parse_instructions(root, supplier, payment.payee)

    prepaid = text(root, "cac:LegalMonetaryTotal/cbc:PrepaidAmount")
    if prepaid:
        payment.advances.append(
            Advance(description=ADVANCE_PREPAID, amount=parse_amount(prepaid))
        )

    if (
        payment.payee is None
        and payment.terms is None
        and payment.instructions is None
        and not payment.advances
    ):
        return None
    log.debug(
        "Payment: %d due dates, means %s",
        len(payment.terms.due_dates) if payment.terms else 0,
        payment.instructions.key if payment.instructions else "-",
    )
    return payment
