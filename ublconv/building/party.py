# File: ublconv/building/party.py
"""
Party blocks
============
• build_party()           → full ``cac:Party`` (supplier, customer, seller,
                            tax representative)
• build_payee_party()     → reduced ``cac:PayeeParty``
• build_delivery_party()  → ``cac:DeliveryParty`` without postal address
• add_address()           → ``PostalAddress`` / ``Address`` fragment
"""

from __future__ import annotations

import logging

from ublconv.constants import EXT_SCHEME_ID, SCHEME_ID_EMAIL, TAX_SCHEME_VAT
from ublconv.parsing.document import _cac, _cbc, ensure, sub
from ublconv.parsing.money import fmt_amount
from ublconv.parsing.utils import _t

log = logging.getLogger(__name__)

SCOPE_LEGAL = "legal"
SCOPE_TAX = "tax"

# ISO 6523 ICD codes used for Danish parties.
ICD_DK_VAT = "0198"
ICD_DK_CVR = "0184"


def normalize_endpoint_scheme(scheme: str) -> str:
    if scheme.upper() == "GLN":
        return "0088"
    return scheme


def _scheme_id(identity) -> str | None:
    return (identity.ext or {}).get(EXT_SCHEME_ID) or None


def partition_identities(identities):
    """Split ``identities`` into ``(legal, tax, other)``.

    Only the first legal-scope identity is claimed by the legal entity;
    later legal identities fall through to ``other`` with the unscoped ones.
    """
    legal = None
    tax, other = [], []
    for ident in identities:
        if ident.scope == SCOPE_TAX:
            tax.append(ident)
        elif ident.scope == SCOPE_LEGAL and legal is None:
            legal = ident
        else:
            other.append(ident)
    return legal, tax, other


def add_address(parent, address, tag: str = "PostalAddress"):
    if address is None:
        return None
    el = sub(parent, _cac(tag))
    if address.street:
        sub(el, _cbc("StreetName"), address.line_one())
    if address.street_extra:
        sub(el, _cbc("AdditionalStreetName"), address.line_two())
    if address.locality:
        sub(el, _cbc("CityName"), address.locality)
    if address.code:
        sub(el, _cbc("PostalZone"), address.code)
    if address.region:
        sub(el, _cbc("CountrySubentity"), address.region)
    if address.country:
        country = sub(el, _cac("Country"))
        sub(country, _cbc("IdentificationCode"), address.country)
    coords = address.coords
    if coords is not None and coords.latitude is not None and coords.longitude is not None:
        loc = sub(el, _cac("LocationCoordinate"))
        sub(loc, _cbc("LatitudeDegreesMeasure"), fmt_amount(coords.latitude))
        sub(loc, _cbc("LongitudeDegreesMeasure"), fmt_amount(coords.longitude))
    return el


def _contact_name(person) -> str:
    if person is None or person.name is None:
        return ""
    return person.name.full()


def _add_contact(parent, party):
    email = party.emails[0].address if party.emails else ""
    phone = party.telephones[0].number if party.telephones else ""
    name = _contact_name(party.people[0]) if party.people else ""
    if not (email or phone or name):
        return None
    contact = sub(parent, _cac("Contact"))
    if name:
        sub(contact, _cbc("Name"), name)
    if phone:
        sub(contact, _cbc("Telephone"), phone)
    if email:
        sub(contact, _cbc("ElectronicMail"), email)
    return contact


def _add_endpoint(parent, party):
    if not party.inboxes:
        return None
    inbox = party.inboxes[0]
    if inbox.email:
        return sub(parent, _cbc("EndpointID"), inbox.email, schemeID=SCHEME_ID_EMAIL)
    if inbox.scheme:
        return sub(
            parent,
            _cbc("EndpointID"),
            inbox.code,
            schemeID=normalize_endpoint_scheme(inbox.scheme),
        )
    return None


def _add_party_name(parent, name: str):
    party_name = sub(parent, _cac("PartyName"))
    sub(party_name, _cbc("Name"), name)
    return party_name


def _add_tax_scheme(parent, company_id: str, scheme: str, scheme_id: str | None = None):
    pts = sub(parent, _cac("PartyTaxScheme"))
    sub(pts, _cbc("CompanyID"), company_id, schemeID=scheme_id)
    ts = sub(pts, _cac("TaxScheme"))
    sub(ts, _cbc("ID"), scheme)
    return pts


def build_party(parent, party, tag: str = "Party"):
    """Append the full party block for ``party`` under ``parent``."""
    if party is None:
        return None
    p = sub(parent, _cac(tag))

    _add_endpoint(p, party)

    address = add_address(p, party.addresses[0]) if party.addresses else None

    legal_entity = None
    if party.name:
        _add_party_name(p, party.alias or party.name)
        legal_entity = sub(p, _cac("PartyLegalEntity"))
        sub(legal_entity, _cbc("RegistrationName"), party.name)
    elif party.alias:
        _add_party_name(p, party.alias)

    tax_id = party.tax_id
    if tax_id is not None and tax_id.code:
        _add_tax_scheme(
            p,
            str(tax_id),
            tax_id.scheme or TAX_SCHEME_VAT,
            ICD_DK_VAT if tax_id.country == "DK" else None,
        )
        # the tax country wins over the address country
        if address is None:
            address = sub(p, _cac("PostalAddress"))
        for old in address.findall(_cac("Country")):
            address.remove(old)
        country = sub(address, _cac("Country"))
        sub(country, _cbc("IdentificationCode"), tax_id.country)

    _add_contact(p, party)

    legal, taxes, others = partition_identities(party.identities)
    if legal is not None:
        if legal_entity is None:
            legal_entity = sub(p, _cac("PartyLegalEntity"))
        sub(legal_entity, _cbc("CompanyID"), legal.code, schemeID=_scheme_id(legal))
    for ident in taxes:
        _add_tax_scheme(p, ident.code, ident.type, _scheme_id(ident))
    for ident in others:
        pid = sub(p, _cac("PartyIdentification"))
        sub(pid, _cbc("ID"), ident.code, schemeID=_scheme_id(ident))

    if (
        legal_entity is not None
        and legal_entity.find(_cbc("CompanyID")) is None
        and tax_id is not None
        and tax_id.country == "DK"
    ):
        sub(legal_entity, _cbc("CompanyID"), tax_id.code, schemeID=ICD_DK_CVR)
        _t("Danish legal id fallback for %s", party.name)

    log.debug("Party %r: %d identities mapped", party.name, len(party.identities))
    return p


def build_payee_party(parent, party):
    """PayeeParty: name, at most one scheme-qualified id, legal company id."""
    if party is None:
        return None
    p = sub(parent, _cac("PayeeParty"))
    _add_party_name(p, party.name)

    for ident in party.identities:
        scheme_id = _scheme_id(ident)
        if scheme_id is None and len(ident.label) == 4:
            scheme_id = ident.label
        if scheme_id is not None:
            pid = sub(p, _cac("PartyIdentification"))
            sub(pid, _cbc("ID"), ident.code, schemeID=scheme_id)
            break

    for ident in party.identities:
        if ident.scope == SCOPE_LEGAL:
            legal_entity = sub(p, _cac("PartyLegalEntity"))
            sub(legal_entity, _cbc("CompanyID"), ident.code, schemeID=_scheme_id(ident))
            break
    return p


def build_delivery_party(parent, party):
    """DeliveryParty with name and contact only; ``None`` when both are empty."""
    if party is None:
        return None
    p = sub(parent, _cac("DeliveryParty"))
    has_content = False
    if party.name:
        _add_party_name(p, party.name)
        legal_entity = sub(p, _cac("PartyLegalEntity"))
        sub(legal_entity, _cbc("RegistrationName"), party.name)
        has_content = True
    if _add_contact(p, party) is not None:
        has_content = True
    if not has_content:
        parent.remove(p)
        return None
    return p


def supplier_block(root, party, tag: str):
    """``AccountingSupplierParty``-style wrapper around a party block."""
    if party is None:
        return None
    wrapper = ensure(root, _cac(tag))
    return build_party(wrapper, party)
