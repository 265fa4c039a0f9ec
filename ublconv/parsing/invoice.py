# File: ublconv/parsing/invoice.py
"""
UBL document → canonical invoice
================================
• to_canonical()                → Invoice rebuilt from a parsed Invoice or
                                  CreditNote root
• extract_binary_attachments()  → embedded documents, which the canonical
                                  invoice does not carry
• parse_totals()                → Totals from LegalMonetaryTotal/TaxTotal
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

from ublconv.constants import (
    EXT_DOCUMENT_TYPE,
    EXT_SCHEME_ID,
    EXT_TAX_CATEGORY,
    EXT_VATEX,
    META_UBL_PROFILE,
    NOTE_KEY_LEGAL,
)
from ublconv.context import find_context
from ublconv.errors import DocumentParseError
from ublconv.model import (
    Attachment,
    CategoryTotal,
    Delivery,
    DocumentRef,
    ExchangeRate,
    Identity,
    Invoice,
    Note,
    Ordering,
    Party,
    RateTotal,
    Tax,
    TaxTotals,
    Totals,
)
from ublconv.parsing.charges import parse_document_charges
from ublconv.parsing.codes import invoice_tags, invoice_type
from ublconv.parsing.document import find, findall, is_credit_note, local_name, text
from ublconv.parsing.lines import parse_lines, parse_period
from ublconv.parsing.money import parse_amount, parse_percent, percent_or_none
from ublconv.parsing.party import parse_address, parse_party
from ublconv.parsing.payment import parse_payment
from ublconv.parsing.utils import _t, clean_string, parse_date
from ublconv.tax import build_tax_category_map

log = logging.getLogger(__name__)

ROUNDING_CURRENCY = "currency"


@dataclass
class BinaryAttachment:
    id: str
    filename: str
    mime: str
    description: str
    data: bytes


def _amount(parent, path: str):
    value = text(parent, path)
    return parse_amount(value) if value else None


# ────────────────────────── references ──────────────────────────
def _reference(el) -> DocumentRef | None:
    if el is None:
        return None
    ref = DocumentRef(code=text(el, "cbc:ID") or "")
    issue_date = text(el, "cbc:IssueDate")
    if issue_date:
        ref.issue_date = parse_date(issue_date)
    doc_type = text(el, "cbc:DocumentTypeCode")
    if doc_type:
        ref.ext[EXT_DOCUMENT_TYPE] = doc_type
    description = text(el, "cbc:DocumentDescription")
    if description:
        ref.description = clean_string(description)
    return ref


def _preceding(root) -> list[DocumentRef]:
    out = []
    for billing in findall(root, "cac:BillingReference"):
        for path in (
            "cac:InvoiceDocumentReference",
            "cac:SelfBilledInvoiceDocumentReference",
            "cac:CreditNoteDocumentReference",
            "cac:AdditionalDocumentReference",
        ):
            ref = _reference(find(billing, path))
            if ref is not None:
                out.append(ref)
                break
    return out


def _refs(root, path: str) -> list[DocumentRef]:
    return [r for r in (_reference(el) for el in findall(root, path)) if r is not None]


def _ordering(root) -> Ordering | None:
    o = Ordering(
        code=text(root, "cbc:BuyerReference") or "",
        cost=text(root, "cbc:AccountingCost") or "",
        period=parse_period(find(root, "cac:InvoicePeriod")),
        purchases=_refs(root, "cac:OrderReference"),
        despatch=_refs(root, "cac:DespatchDocumentReference"),
        receiving=_refs(root, "cac:ReceiptDocumentReference"),
        contracts=_refs(root, "cac:ContractDocumentReference"),
        projects=_refs(root, "cac:ProjectReference"),
    )
    if o == Ordering():
        return None
    return o


# ────────────────────────── delivery and attachments ──────────────────────────
def _delivery(root) -> Delivery | None:
    el = find(root, "cac:Delivery")
    if el is None:
        return None
    d = Delivery()
    date = text(el, "cbc:ActualDeliveryDate")
    if date:
        d.date = parse_date(date)

    loc_id = find(el, "cac:DeliveryLocation/cbc:ID")
    if loc_id is not None and (loc_id.text or "").strip():
        scheme = loc_id.get("schemeID")
        d.identities.append(
            Identity(code=loc_id.text.strip(), ext={EXT_SCHEME_ID: scheme} if scheme else {})
        )

    d.receiver = parse_party(find(el, "cac:DeliveryParty"))
    address = parse_address(find(el, "cac:DeliveryLocation/cac:Address"))
    if address is not None:
        if d.receiver is None:
            d.receiver = Party()
        d.receiver.addresses.insert(0, address)

    if d == Delivery():
        return None
    return d


def _attachments(root) -> list[Attachment]:
    """External and description-only references; embedded data is skipped."""
    out = []
    for ref in findall(root, "cac:AdditionalDocumentReference"):
        if find(ref, "cac:Attachment/cbc:EmbeddedDocumentBinaryObject") is not None:
            continue
        att = Attachment(
            code=text(ref, "cbc:ID") or "",
            description=clean_string(text(ref, "cbc:DocumentDescription") or ""),
            url=text(ref, "cac:Attachment/cac:ExternalReference/cbc:URI") or "",
        )
        out.append(att)
    return out


def extract_binary_attachments(root) -> list[BinaryAttachment]:
    """Decode every ``EmbeddedDocumentBinaryObject`` of the document."""
    out = []
    for ref in findall(root, "cac:AdditionalDocumentReference"):
        obj = find(ref, "cac:Attachment/cbc:EmbeddedDocumentBinaryObject")
        if obj is None:
            continue
        try:
            data = base64.b64decode((obj.text or "").strip(), validate=False)
        except (binascii.Error, ValueError) as exc:
            raise DocumentParseError(f"invalid attachment data: {exc}") from exc
        out.append(
            BinaryAttachment(
                id=text(ref, "cbc:ID") or "",
                filename=obj.get("filename") or "",
                mime=obj.get("mimeCode") or "",
                description=text(ref, "cbc:DocumentDescription") or "",
                data=data,
            )
        )
    log.debug("Found %d binary attachments", len(out))
    return out


def _exchange_rates(root) -> list[ExchangeRate]:
    out = []
    for ter in findall(root, "cac:TaxExchangeRate"):
        rate = text(ter, "cbc:CalculationRate")
        operator = text(ter, "cbc:MathematicOperatorCode") or "Multiply"
        if not rate:
            continue
        if operator.lower() != "multiply":
            log.warning("Ignoring TaxExchangeRate with operator %r", operator)
            continue
        out.append(
            ExchangeRate(
                source=text(ter, "cbc:SourceCurrencyCode") or "",
                target=text(ter, "cbc:TargetCurrencyCode") or "",
                amount=parse_amount(rate),
            )
        )
    return out


# ────────────────────────── totals ──────────────────────────
def _document_tax_total(root, currency: str):
    for tt in findall(root, "cac:TaxTotal"):
        amount = find(tt, "cbc:TaxAmount")
        cur = amount.get("currencyID") if amount is not None else None
        if not cur or cur == currency:
            return tt
    return None


def _tax_breakdown(tt) -> TaxTotals | None:
    categories: dict[str, CategoryTotal] = {}
    for st in findall(tt, "cac:TaxSubtotal"):
        cat = find(st, "cac:TaxCategory")
        code = text(cat, "cac:TaxScheme/cbc:ID")
        if not code:
            continue
        rate = RateTotal(
            base=_amount(st, "cbc:TaxableAmount"),
            amount=_amount(st, "cbc:TaxAmount"),
        )
        cat_id = text(cat, "cbc:ID")
        if cat_id:
            rate.ext[EXT_TAX_CATEGORY] = cat_id
        vatex = text(cat, "cbc:TaxExemptionReasonCode")
        if vatex:
            rate.ext[EXT_VATEX] = vatex
        percent = text(cat, "cbc:Percent")
        if percent:
            rate.percent = percent_or_none(parse_percent(percent), cat_id)
        categories.setdefault(code, CategoryTotal(code=code)).rates.append(rate)

    if not categories:
        return None
    for ct in categories.values():
        amounts = [r.amount for r in ct.rates if r.amount is not None]
        if amounts:
            ct.amount = sum(amounts[1:], amounts[0])
    return TaxTotals(categories=list(categories.values()))


def parse_totals(root, currency: str) -> Totals | None:
    lmt = find(root, "cac:LegalMonetaryTotal")
    if lmt is None:
        return None
    totals = Totals(
        sum=_amount(lmt, "cbc:LineExtensionAmount"),
        total=_amount(lmt, "cbc:TaxExclusiveAmount"),
        total_with_tax=_amount(lmt, "cbc:TaxInclusiveAmount"),
        discount=_amount(lmt, "cbc:AllowanceTotalAmount"),
        charge=_amount(lmt, "cbc:ChargeTotalAmount"),
        rounding=_amount(lmt, "cbc:PayableRoundingAmount"),
    )
    tt = _document_tax_total(root, currency)
    if tt is not None:
        totals.tax = _amount(tt, "cbc:TaxAmount")
        totals.taxes = _tax_breakdown(tt)
        if totals.taxes is not None:
            totals.taxes.sum = totals.tax

    payable = _amount(lmt, "cbc:PayableAmount")
    prepaid = _amount(lmt, "cbc:PrepaidAmount")
    if prepaid is not None:
        totals.advances = prepaid
        totals.due = payable
        if payable is not None:
            totals.payable = payable + prepaid
    else:
        totals.payable = payable
    return totals


def _restore_legacy_totals(totals) -> None:
    # OIOUBL 2.1 carries the tax amount in TaxExclusiveAmount
    if totals is None or totals.total_with_tax is None or totals.tax is None:
        return
    totals.total = totals.total_with_tax - totals.tax


def _legal_note(root) -> Note | None:
    reason = text(root, "cac:TaxTotal/cac:TaxSubtotal/cac:TaxCategory/cbc:TaxExemptionReason")
    if not reason:
        return None
    return Note(key=NOTE_KEY_LEGAL, text=clean_string(reason))


# ────────────────────────── entry point ──────────────────────────
def to_canonical(root) -> Invoice:
    """Rebuild the canonical invoice from a parsed UBL root.

    The context is detected from CustomizationID/ProfileID; its addons are
    declared on the result.  Binary attachments are left out, see
    :func:`extract_binary_attachments`.
    """
    customization_id = text(root, "cbc:CustomizationID")
    profile_id = text(root, "cbc:ProfileID")
    ctx = find_context(customization_id, profile_id)
    if ctx is None:
        log.info("No context matches CustomizationID %r", customization_id)

    code = text(root, "cbc:CreditNoteTypeCode" if is_credit_note(root) else "cbc:InvoiceTypeCode") or ""
    currency = text(root, "cbc:DocumentCurrencyCode") or ""

    inv = Invoice(
        addons=list(ctx.addons) if ctx is not None else [],
        tags=invoice_tags(code),
        uuid=text(root, "cbc:UUID") or "",
        type=invoice_type(code).value,
        code=text(root, "cbc:ID") or "",
        currency=currency,
        tax=Tax(rounding=ROUNDING_CURRENCY, ext={EXT_DOCUMENT_TYPE: code} if code else {}),
    )
    issue_date = text(root, "cbc:IssueDate")
    if issue_date:
        inv.issue_date = parse_date(issue_date)
    if profile_id and (ctx is None or profile_id != ctx.profile_id):
        inv.meta[META_UBL_PROFILE] = profile_id

    tax_map = build_tax_category_map(root)

    inv.supplier = parse_party(find(root, "cac:AccountingSupplierParty/cac:Party"))
    inv.customer = parse_party(find(root, "cac:AccountingCustomerParty/cac:Party"))

    inv.lines = parse_lines(root, currency, tax_map)
    inv.payment = parse_payment(root, inv.supplier)
    inv.ordering = _ordering(root)
    inv.delivery = _delivery(root)

    for note in findall(root, "cbc:Note"):
        if note.text and note.text.strip():
            inv.notes.append(Note(text=clean_string(note.text)))
    legal = _legal_note(root)
    if legal is not None:
        inv.notes.append(legal)

    inv.preceding = _preceding(root)

    rep = find(root, "cac:TaxRepresentativeParty")
    if rep is not None:
        # the document's supplier is the seller acting through a representative
        if inv.ordering is None:
            inv.ordering = Ordering()
        inv.ordering.seller = inv.supplier
        inv.supplier = parse_party(rep)

    inv.charges, inv.discounts = parse_document_charges(root, tax_map)
    inv.attachments = _attachments(root)
    inv.exchange_rates = _exchange_rates(root)
    inv.totals = parse_totals(root, currency)
    if ctx is not None and ctx.legacy_overlay:
        _restore_legacy_totals(inv.totals)

    _t("to_canonical %s: %d lines", inv.code, len(inv.lines))
    log.info(
        "Parsed %s %s (%s)",
        local_name(root),
        inv.code,
        ctx.name if ctx is not None and ctx.name else customization_id,
    )
    return inv
