# File: ublconv/parsing/party.py
"""
UBL party → canonical party
===========================
• parse_party()    → Party from any PartyType element
• parse_address()  → Address from a PostalAddress/Address element
"""

from __future__ import annotations

import logging

from ublconv.constants import EXT_SCHEME_ID, SCHEME_ID_EMAIL, TAX_SCHEME_VAT
from ublconv.model import (
    Address,
    Coordinates,
    Email,
    Identity,
    Inbox,
    Name,
    Party,
    Person,
    TaxIdentity,
    Telephone,
)
from ublconv.parsing.document import find, findall, text
from ublconv.parsing.money import parse_amount
from ublconv.parsing.utils import _t, clean_string

log = logging.getLogger(__name__)

SCHEME_LEGACY_DK_VAT = "DK:SE"


def _clean(value: str | None) -> str:
    return clean_string(value) if value else ""


def parse_address(el) -> Address | None:
    if el is None:
        return None
    addr = Address(
        country=text(el, "cac:Country/cbc:IdentificationCode") or "",
        street=_clean(text(el, "cbc:StreetName")),
        street_extra=_clean(text(el, "cbc:AdditionalStreetName")),
        locality=_clean(text(el, "cbc:CityName")),
        code=_clean(text(el, "cbc:PostalZone")),
        region=_clean(text(el, "cbc:CountrySubentity")),
    )
    lat = text(el, "cac:LocationCoordinate/cbc:LatitudeDegreesMeasure")
    lon = text(el, "cac:LocationCoordinate/cbc:LongitudeDegreesMeasure")
    if lat and lon:
        addr.coords = Coordinates(latitude=parse_amount(lat), longitude=parse_amount(lon))
    return addr


def _country_code(el) -> str:
    return text(el, "cac:PostalAddress/cac:Country/cbc:IdentificationCode") or ""


def _ext_scheme(id_el) -> dict[str, str]:
    scheme = id_el.get("schemeID") if id_el is not None else None
    return {EXT_SCHEME_ID: scheme} if scheme else {}


def _tax_id_from_scheme(pts, country: str) -> TaxIdentity:
    company = find(pts, "cbc:CompanyID")
    code = (company.text or "").strip() if company is not None else ""
    if (
        company is not None
        and company.get("schemeID") == SCHEME_LEGACY_DK_VAT
        and country.upper() != "DK"
        and code.upper().startswith("DK")
    ):
        # OIOUBL 2.1 writes every VAT number with a DK prefix
        code = code[2:]
    # tax ids are written as country + code
    if country and code.upper().startswith(country.upper()):
        code = code[len(country):]
    tid = TaxIdentity(country=country, code=code)
    scheme_id = text(pts, "cac:TaxScheme/cbc:ID") or ""
    if scheme_id != TAX_SCHEME_VAT:
        tid.scheme = text(pts, "cac:TaxScheme/cbc:TaxTypeCode") or scheme_id
    return tid


def _valid_tax_schemes(el) -> list:
    out = []
    for pts in findall(el, "cac:PartyTaxScheme"):
        if text(pts, "cbc:CompanyID") and find(pts, "cac:TaxScheme") is not None:
            out.append(pts)
    return out


def _apply_tax_schemes(el, party: Party) -> None:
    schemes = _valid_tax_schemes(el)
    if not schemes:
        return
    country = _country_code(el)
    chosen = 0
    for i, pts in enumerate(schemes):
        if text(pts, "cac:TaxScheme/cbc:ID") == TAX_SCHEME_VAT:
            chosen = i
            break
    party.tax_id = _tax_id_from_scheme(schemes[chosen], country)
    for i, pts in enumerate(schemes):
        if i == chosen:
            continue
        party.identities.append(
            Identity(
                country=country,
                code=text(pts, "cbc:CompanyID") or "",
                scope="tax",
                type=text(pts, "cac:TaxScheme/cbc:ID") or "",
                ext=_ext_scheme(find(pts, "cbc:CompanyID")),
            )
        )


def parse_party(el) -> Party | None:
    """Map a UBL PartyType element; ``None`` for a missing element."""
    if el is None:
        return None
    party = Party()

    reg_name = text(el, "cac:PartyLegalEntity/cbc:RegistrationName")
    if reg_name:
        party.name = clean_string(reg_name)

    endpoint = find(el, "cbc:EndpointID")
    if endpoint is not None:
        scheme = endpoint.get("schemeID") or ""
        value = (endpoint.text or "").strip()
        if scheme == SCHEME_ID_EMAIL:
            party.inboxes.append(Inbox(email=value))
        else:
            party.inboxes.append(Inbox(scheme=scheme, code=value))

    party_name = text(el, "cac:PartyName/cbc:Name")
    if party_name is not None:
        if not party.name:
            party.name = clean_string(party_name)
        elif clean_string(party_name) != party.name:
            party.alias = clean_string(party_name)

    contact = find(el, "cac:Contact")
    contact_name = text(contact, "cbc:Name")
    if contact_name:
        party.people.append(Person(name=Name(given=clean_string(contact_name))))

    address = parse_address(find(el, "cac:PostalAddress"))
    if address is not None:
        party.addresses.append(address)

    phone = text(contact, "cbc:Telephone")
    if phone:
        party.telephones.append(Telephone(number=clean_string(phone)))
    email = text(contact, "cbc:ElectronicMail")
    if email:
        party.emails.append(Email(address=clean_string(email)))

    legal_id = find(el, "cac:PartyLegalEntity/cbc:CompanyID")
    if legal_id is not None:
        party.identities.append(
            Identity(code=(legal_id.text or "").strip(), scope="legal", ext=_ext_scheme(legal_id))
        )

    _apply_tax_schemes(el, party)

    for id_el in findall(el, "cac:PartyIdentification/cbc:ID"):
        party.identities.append(
            Identity(code=(id_el.text or "").strip(), ext=_ext_scheme(id_el))
        )

    _t("party %r: %d identities", party.name, len(party.identities))
    return party


def sepa_creditor(*parties) -> str:
    """Code of the first ``SEPA`` identity across ``parties``; later parties win."""
    creditor = ""
    for party in parties:
        if party is None:
            continue
        for ident in party.identities:
            if ident.label == "SEPA" or ident.ext.get(EXT_SCHEME_ID) == "SEPA":
                creditor = ident.code
                break
    return creditor


def identity_from_id(id_el) -> Identity | None:
    """Item or delivery identity, labelled from the first scheme-ish attribute."""
    if id_el is None:
        return None
    ident = Identity(code=(id_el.text or "").strip())
    for name in ("schemeID", "listID", "listVersionID", "schemeName", "name"):
        value = id_el.get(name)
        if value is not None:
            ident.label = value
            break
    return ident
