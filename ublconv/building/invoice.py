# File: ublconv/building/invoice.py
"""
Canonical invoice → UBL document
================================
• build_document()   → lxml root of an Invoice or CreditNote for a context

Sections are appended in any order; :func:`~ublconv.parsing.document.place`
keeps them in schema sequence.
"""

from __future__ import annotations

import base64
import logging

from ublconv.building.charges import build_document_charges
from ublconv.building.legacy import apply_legacy_oioubl21
from ublconv.building.lines import add_period, build_lines
from ublconv.building.party import (
    _scheme_id,
    add_address,
    build_delivery_party,
    build_party,
    supplier_block,
)
from ublconv.building.payment import build_payment
from ublconv.building.totals import build_totals
from ublconv.constants import EXT_DOCUMENT_TYPE, NOTE_KEY_LEGAL, UBL_VERSION
from ublconv.context import is_legacy_oioubl21, resolve_output_profile
from ublconv.errors import ValidationError
from ublconv.parsing.codes import InvoiceType
from ublconv.parsing.document import _cac, _cbc, new_root, sub
from ublconv.parsing.utils import _t, format_date, invoice_number

log = logging.getLogger(__name__)

NOTE_SEPARATOR = "\n\n"


def type_code(invoice) -> str:
    code = invoice.tax_ext(EXT_DOCUMENT_TYPE)
    if not code:
        raise ValidationError(("tax", "ext", EXT_DOCUMENT_TYPE))
    return code


def check_invoice(invoice, context) -> None:
    """Reject what cannot be expressed and report missing addons."""
    if invoice.tax is not None and invoice.tax.prices_include:
        raise ValidationError(
            ("tax", "prices_include"),
            "prices include tax; remove included taxes (RemoveIncludedTaxes) before converting",
        )
    missing = [a for a in context.addons if a not in invoice.addons]
    if missing:
        log.warning(
            "Invoice %s lacks addons %s required by %s",
            invoice_number(invoice.series, invoice.code),
            ", ".join(missing),
            context.name or context.customization_id,
        )


# ────────────────────────── header ──────────────────────────
def _header(root, invoice, context, credit_note: bool, code: str) -> None:
    customization_id, profile_id = resolve_output_profile(invoice, context)
    if context.oioubl:
        sub(root, _cbc("UBLVersionID"), UBL_VERSION)
        if invoice.uuid:
            sub(root, _cbc("UUID"), invoice.uuid)
    sub(root, _cbc("CustomizationID"), customization_id)
    if profile_id:
        sub(root, _cbc("ProfileID"), profile_id)
    sub(root, _cbc("ID"), invoice_number(invoice.series, invoice.code))
    if invoice.issue_date is not None:
        sub(root, _cbc("IssueDate"), format_date(invoice.issue_date))
    sub(root, _cbc("CreditNoteTypeCode" if credit_note else "InvoiceTypeCode"), code)

    texts = [n.text for n in invoice.notes if n.key != NOTE_KEY_LEGAL]
    if texts and context.single_note:
        texts = [NOTE_SEPARATOR.join(texts)]
    for note in texts:
        sub(root, _cbc("Note"), note)

    sub(root, _cbc("DocumentCurrencyCode"), invoice.currency)


def _document_ref(parent, tag: str, ref):
    el = sub(parent, _cac(tag))
    sub(el, _cbc("ID"), invoice_number(ref.series, ref.code))
    return el


def _preceding(root, invoice) -> None:
    for ref in invoice.preceding:
        billing = sub(root, _cac("BillingReference"))
        el = _document_ref(billing, "InvoiceDocumentReference", ref)
        if ref.issue_date is not None:
            sub(el, _cbc("IssueDate"), format_date(ref.issue_date))
        doc_type = (ref.ext or {}).get(EXT_DOCUMENT_TYPE)
        if doc_type:
            sub(el, _cbc("DocumentTypeCode"), doc_type)


def _ordering(root, invoice, credit_note: bool) -> None:
    o = invoice.ordering
    if o is None:
        return
    if o.cost:
        sub(root, _cbc("AccountingCost"), o.cost)
    if o.code:
        sub(root, _cbc("BuyerReference"), o.code)
    add_period(root, o.period)
    if o.purchases:
        order = sub(root, _cac("OrderReference"))
        sub(order, _cbc("ID"), invoice_number(o.purchases[0].series, o.purchases[0].code))
    for ref in o.despatch:
        _document_ref(root, "DespatchDocumentReference", ref)
    for ref in o.receiving:
        _document_ref(root, "ReceiptDocumentReference", ref)
    for ref in o.contracts:
        _document_ref(root, "ContractDocumentReference", ref)
    if o.projects:
        if credit_note:
            _t("ProjectReference dropped on credit note")
        else:
            for ref in o.projects:
                _document_ref(root, "ProjectReference", ref)


def _parties(root, invoice) -> None:
    seller = invoice.ordering.seller if invoice.ordering is not None else None
    if seller is not None:
        supplier_block(root, seller, "AccountingSupplierParty")
        build_party(root, invoice.supplier, tag="TaxRepresentativeParty")
    else:
        supplier_block(root, invoice.supplier, "AccountingSupplierParty")
    supplier_block(root, invoice.customer, "AccountingCustomerParty")


def _attachments(root, invoice) -> None:
    for att in invoice.attachments:
        ref = sub(root, _cac("AdditionalDocumentReference"))
        sub(ref, _cbc("ID"), att.code or att.name)
        if att.description:
            sub(ref, _cbc("DocumentDescription"), att.description)
        if att.data is None and not att.url:
            continue
        el = sub(ref, _cac("Attachment"))
        if att.data is not None:
            sub(
                el,
                _cbc("EmbeddedDocumentBinaryObject"),
                base64.b64encode(att.data).decode("ascii"),
                mimeCode=att.mime or None,
                filename=att.name or None,
            )
        else:
            ext = sub(el, _cac("ExternalReference"))
            sub(ext, _cbc("URI"), att.url)


def _delivery(root, invoice) -> None:
    d = invoice.delivery
    if d is None:
        return
    receiver = d.receiver
    el = sub(root, _cac("Delivery"))
    if d.date is not None:
        sub(el, _cbc("ActualDeliveryDate"), format_date(d.date))

    ident = next((i for i in d.identities if _scheme_id(i)), None)
    address = receiver.addresses[0] if receiver is not None and receiver.addresses else None
    if ident is not None or address is not None:
        loc = sub(el, _cac("DeliveryLocation"))
        if ident is not None:
            sub(loc, _cbc("ID"), ident.code, schemeID=_scheme_id(ident))
        add_address(loc, address, tag="Address")

    build_delivery_party(el, receiver)
    if len(el) == 0:
        root.remove(el)


def build_document(invoice, context):
    """Map ``invoice`` to a UBL tree under ``context``.

    Raises :class:`~ublconv.errors.ValidationError` for missing mandatory
    classification codes.
    """
    code = type_code(invoice)
    check_invoice(invoice, context)
    credit_note = invoice.type == InvoiceType.CREDIT_NOTE

    root = new_root(credit_note)
    _header(root, invoice, context, credit_note, code)
    _preceding(root, invoice)
    _ordering(root, invoice, credit_note)
    _parties(root, invoice)
    build_document_charges(root, invoice)
    build_totals(root, invoice)
    build_lines(root, invoice, context)
    _attachments(root, invoice)
    build_payment(root, invoice, context, credit_note)
    _delivery(root, invoice)

    if is_legacy_oioubl21(context):
        root = apply_legacy_oioubl21(root)

    log.info(
        "Built %s %s for %s",
        "CreditNote" if credit_note else "Invoice",
        invoice_number(invoice.series, invoice.code),
        context.name or context.customization_id,
    )
    return root
