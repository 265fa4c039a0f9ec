# File: ublconv/building/legacy.py
"""
OIOUBL 2.1 rule overlay
=======================
``apply_legacy_oioubl21(root)`` returns a patched copy of a mapped document
so that it passes the legacy OIOUBL 2.1 schema and schematron.  The input
tree is left untouched.
"""

from __future__ import annotations

import copy
import logging

from ublconv.constants import TAX_SCHEME_VAT
from ublconv.parsing.document import _cac, _cbc, ensure, find, findall, is_credit_note, sub

log = logging.getLogger(__name__)

AGENCY_DK = "320"
LIST_ADDRESS_FORMAT = "urn:oioubl:codelist:addressformatcode-1.1"
LIST_PAYMENT_CHANNEL = "urn:oioubl:codelist:paymentchannelcode-1.1"
LIST_INVOICE_TYPE = "urn:oioubl:codelist:invoicetypecode-1.1"
SCHEME_PROFILE = "urn:oioubl:id:profileid-1.4"
SCHEME_TAX_CATEGORY = "urn:oioubl:id:taxcategoryid-1.1"
SCHEME_TAX_SCHEME = "urn:oioubl:id:taxschemeid-1.2"

LEGACY_TAX_SCHEME_ID = "63"
LEGACY_TAX_SCHEME_NAME = "Moms"

LEGACY_TAX_CATEGORIES = {
    "S": "StandardRated",
    "Standard": "StandardRated",
    "standard": "StandardRated",
    "Z": "ZeroRated",
    "Zero": "ZeroRated",
    "zero": "ZeroRated",
    "AE": "ReverseCharge",
    "ReverseCharge": "ReverseCharge",
    "": "StandardRated",
}


def legacy_tax_category_code(code: str) -> str:
    return LEGACY_TAX_CATEGORIES.get(code, code)


def _dk(value: str) -> str:
    return value if value.startswith("DK") else "DK" + value


# ────────────────────────── parties ──────────────────────────
def _patch_party(p) -> None:
    endpoint = p.find(_cbc("EndpointID"))
    if endpoint is not None and endpoint.get("schemeID") == "0088":
        endpoint.set("schemeID", "GLN")
    if endpoint is None:
        company = find(p, "cac:PartyTaxScheme/cbc:CompanyID")
        if company is not None:
            sub(p, _cbc("EndpointID"), _dk(company.text or ""), schemeID="DK:CVR")

    if p.find(_cac("PartyName")) is None and p.find(_cac("PartyIdentification")) is None:
        reg_name = find(p, "cac:PartyLegalEntity/cbc:RegistrationName")
        if reg_name is not None:
            party_name = sub(p, _cac("PartyName"))
            sub(party_name, _cbc("Name"), reg_name.text)

    address = p.find(_cac("PostalAddress"))
    if address is not None:
        if address.find(_cbc("AddressFormatCode")) is None:
            sub(
                address,
                _cbc("AddressFormatCode"),
                "StructuredDK",
                listID=LIST_ADDRESS_FORMAT,
                listAgencyID=AGENCY_DK,
            )
        if address.find(_cbc("BuildingNumber")) is None:
            parts = (address.findtext(_cbc("StreetName")) or "").split()
            sub(address, _cbc("BuildingNumber"), parts[-1] if parts else "1")

    for pts in p.findall(_cac("PartyTaxScheme")):
        company = pts.find(_cbc("CompanyID"))
        if company is not None:
            company.set("schemeID", "DK:SE")
            company.text = _dk(company.text or "")
        _patch_tax_scheme(pts.find(_cac("TaxScheme")))

    legal_id = find(p, "cac:PartyLegalEntity/cbc:CompanyID")
    if legal_id is not None:
        legal_id.set("schemeID", "DK:CVR")
        legal_id.text = _dk(legal_id.text or "")

    contact = ensure(p, _cac("Contact"))
    if contact.find(_cbc("ID")) is None:
        sub(contact, _cbc("ID"), "1")


# ────────────────────────── tax categories ──────────────────────────
def _patch_tax_scheme(scheme) -> None:
    if scheme is None:
        return
    old = scheme.findtext(_cbc("ID")) or ""
    if old and old not in (TAX_SCHEME_VAT, LEGACY_TAX_SCHEME_ID):
        log.warning("OIOUBL 2.1: tax scheme %r replaced by %r", old, LEGACY_TAX_SCHEME_ID)
    for child in list(scheme):
        scheme.remove(child)
    sub(
        scheme,
        _cbc("ID"),
        LEGACY_TAX_SCHEME_ID,
        schemeID=SCHEME_TAX_SCHEME,
        schemeAgencyID=AGENCY_DK,
    )
    sub(scheme, _cbc("Name"), LEGACY_TAX_SCHEME_NAME)


def _patch_tax_category(cat) -> None:
    cat_id = cat.find(_cbc("ID"))
    if cat_id is None:
        cat_id = sub(cat, _cbc("ID"), "StandardRated")
    cat_id.text = legacy_tax_category_code((cat_id.text or "").strip())
    cat_id.set("schemeID", SCHEME_TAX_CATEGORY)
    cat_id.set("schemeAgencyID", AGENCY_DK)
    _patch_tax_scheme(cat.find(_cac("TaxScheme")))


# ────────────────────────── document ──────────────────────────
def _patch_payment_means(root) -> None:
    means = findall(root, "cac:PaymentMeans")
    due = root.find(_cbc("DueDate"))
    for pm in means:
        channel = pm.find(_cbc("PaymentChannelCode"))
        if channel is None:
            channel = sub(pm, _cbc("PaymentChannelCode"), "IBAN")
        channel.set("listID", LIST_PAYMENT_CHANNEL)
        if (channel.text or "").strip() == "IBAN":
            branch_id = find(pm, "cac:PayeeFinancialAccount/cac:FinancialInstitutionBranch/cbc:ID")
            if branch_id is not None:
                branch_id.getparent().remove(branch_id)
        if due is not None and pm.find(_cbc("PaymentDueDate")) is None:
            sub(pm, _cbc("PaymentDueDate"), due.text)
    if means and due is not None:
        root.remove(due)


def _patch_totals(root) -> None:
    lmt = root.find(_cac("LegalMonetaryTotal"))
    first_tax = find(root, "cac:TaxTotal/cbc:TaxAmount")
    if lmt is not None and first_tax is not None:
        exclusive = ensure(lmt, _cbc("TaxExclusiveAmount"))
        exclusive.text = first_tax.text
        exclusive.attrib.clear()
        exclusive.attrib.update(first_tax.attrib)

    payable = find(lmt, "cbc:PayableAmount")
    terms = findall(root, "cac:PaymentTerms")
    if payable is not None and terms and terms[0].find(_cbc("Amount")) is None:
        sub(terms[0], _cbc("Amount"), payable.text, **dict(payable.attrib))


def _patch_header(root) -> None:
    profile = root.find(_cbc("ProfileID"))
    if profile is not None and profile.text:
        profile.set("schemeAgencyID", AGENCY_DK)
        profile.set("schemeID", SCHEME_PROFILE)
    for tag in ("InvoiceTypeCode", "CreditNoteTypeCode"):
        code = root.find(_cbc(tag))
        if code is not None and code.text:
            code.set("listAgencyID", AGENCY_DK)
            code.set("listID", LIST_INVOICE_TYPE)


def apply_legacy_oioubl21(root):
    """Return a patched copy of ``root`` for the OIOUBL 2.1 profile."""
    out = copy.deepcopy(root)

    for path in (
        "cac:AccountingSupplierParty/cac:Party",
        "cac:AccountingCustomerParty/cac:Party",
    ):
        party = find(out, path)
        if party is not None:
            _patch_party(party)

    _patch_payment_means(out)
    _patch_totals(out)

    if is_credit_note(out):
        # the legacy credit-note schematron rejects DocumentTypeCode here
        for code in findall(out, "cac:BillingReference/cac:InvoiceDocumentReference/cbc:DocumentTypeCode"):
            code.getparent().remove(code)

    cats = out.findall(".//" + _cac("TaxCategory")) + out.findall(
        ".//" + _cac("ClassifiedTaxCategory")
    )
    for cat in cats:
        _patch_tax_category(cat)

    _patch_header(out)
    log.debug("OIOUBL 2.1 overlay: %d tax categories patched", len(cats))
    return out
