from lxml import etree as LET

from ublconv.building.party import (
    build_delivery_party,
    build_party,
    build_payee_party,
    partition_identities,
)
from ublconv.model import (
    Address,
    Email,
    Identity,
    Inbox,
    Name,
    Party,
    Person,
    TaxIdentity,
)
from ublconv.parsing.document import findall, new_root, parse_document, text
from ublconv.parsing.party import parse_party, sepa_creditor


def _party(**kw):
    base = dict(
        name="Provide One S.L.",
        tax_id=TaxIdentity(country="ES", code="B98602642"),
        addresses=[
            Address(num="42", street="Calle Pradillo", locality="Madrid", code="28002", country="ES")
        ],
    )
    base.update(kw)
    return Party(**base)


def test_partition_is_mutually_exclusive():
    ids = [
        Identity(code="L1", scope="legal"),
        Identity(code="T1", scope="tax", type="FR:SIRET"),
        Identity(code="L2", scope="legal"),
        Identity(code="X1"),
    ]
    legal, tax, other = partition_identities(ids)
    assert legal.code == "L1"
    assert [i.code for i in tax] == ["T1"]
    assert [i.code for i in other] == ["L2", "X1"]


def test_build_party_basic_blocks():
    root = new_root()
    p = build_party(
        root,
        _party(
            alias="Provide One",
            inboxes=[Inbox(scheme="GLN", code="1234567890128")],
            emails=[Email(address="billing@example.com")],
        ),
    )
    assert text(p, "cbc:EndpointID") == "1234567890128"
    assert p.find("{*}EndpointID").get("schemeID") == "0088"
    assert text(p, "cac:PartyName/cbc:Name") == "Provide One"
    assert text(p, "cac:PartyLegalEntity/cbc:RegistrationName") == "Provide One S.L."
    assert text(p, "cac:PostalAddress/cbc:StreetName") == "Calle Pradillo 42"
    assert text(p, "cac:PartyTaxScheme/cbc:CompanyID") == "ESB98602642"
    assert text(p, "cac:PartyTaxScheme/cac:TaxScheme/cbc:ID") == "VAT"
    assert text(p, "cac:Contact/cbc:ElectronicMail") == "billing@example.com"


def test_build_party_element_order():
    root = new_root()
    p = build_party(
        root,
        _party(
            identities=[Identity(code="B98602642", scope="legal")],
            people=[Person(name=Name(given="Ana"))],
        ),
    )
    names = [LET.QName(c).localname for c in p]
    assert names == [
        "PartyName",
        "PostalAddress",
        "PartyTaxScheme",
        "PartyLegalEntity",
        "Contact",
    ]


def test_tax_country_overrides_address_country():
    root = new_root()
    party = _party(tax_id=TaxIdentity(country="PT", code="545259045"))
    p = build_party(root, party)
    assert [c.text for c in findall(p, "cac:PostalAddress/cac:Country/cbc:IdentificationCode")] == ["PT"]


def test_identities_are_distributed():
    root = new_root()
    party = _party(
        identities=[
            Identity(code="B98602642", scope="legal", ext={"iso-scheme-id": "0208"}),
            Identity(code="FR123", scope="tax", type="FR:SIRET"),
            Identity(code="5790000435975", ext={"iso-scheme-id": "0088"}),
        ]
    )
    p = build_party(root, party)
    legal_id = p.find("{*}PartyLegalEntity/{*}CompanyID")
    assert legal_id.text == "B98602642"
    assert legal_id.get("schemeID") == "0208"
    schemes = [text(s, "cac:TaxScheme/cbc:ID") for s in findall(p, "cac:PartyTaxScheme")]
    assert schemes == ["VAT", "FR:SIRET"]
    assert text(p, "cac:PartyIdentification/cbc:ID") == "5790000435975"


def test_danish_party_gets_icd_codes():
    root = new_root()
    party = _party(tax_id=TaxIdentity(country="DK", code="37990485"))
    p = build_party(root, party)
    company = p.find("{*}PartyTaxScheme/{*}CompanyID")
    assert company.get("schemeID") == "0198"
    legal = p.find("{*}PartyLegalEntity/{*}CompanyID")
    assert legal.text == "37990485"
    assert legal.get("schemeID") == "0184"


def test_payee_party_is_reduced():
    root = new_root()
    payee = Party(
        name="Factor Bank",
        identities=[
            Identity(code="DE98ZZZ09999999999", label="SEPA"),
            Identity(code="HRB 1234", scope="legal"),
        ],
        addresses=[Address(street="Main", country="DE")],
    )
    p = build_payee_party(root, payee)
    assert text(p, "cac:PartyName/cbc:Name") == "Factor Bank"
    pid = p.find("{*}PartyIdentification/{*}ID")
    assert pid.text == "DE98ZZZ09999999999"
    assert pid.get("schemeID") == "SEPA"
    assert text(p, "cac:PartyLegalEntity/cbc:CompanyID") == "HRB 1234"
    assert p.find("{*}PostalAddress") is None


def test_empty_delivery_party_is_dropped():
    root = new_root()
    assert build_delivery_party(root, Party(addresses=[Address(street="x")])) is None
    assert len(root) == 0


PARTY_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<Invoice xmlns="urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
         xmlns:cac="urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
         xmlns:cbc="urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2">
  <cac:AccountingSupplierParty>
    <cac:Party>
      <cbc:EndpointID schemeID="EM">billing@example.com</cbc:EndpointID>
      <cac:PartyIdentification>
        <cbc:ID schemeID="SEPA">DE98ZZZ09999999999</cbc:ID>
      </cac:PartyIdentification>
      <cac:PartyName>
        <cbc:Name>Provide   One</cbc:Name>
      </cac:PartyName>
      <cac:PostalAddress>
        <cbc:StreetName>Calle Pradillo 42</cbc:StreetName>
        <cbc:CityName>Madrid</cbc:CityName>
        <cbc:PostalZone>28002</cbc:PostalZone>
        <cac:Country>
          <cbc:IdentificationCode>ES</cbc:IdentificationCode>
        </cac:Country>
      </cac:PostalAddress>
      <cac:PartyTaxScheme>
        <cbc:CompanyID>ESB98602642</cbc:CompanyID>
        <cac:TaxScheme>
          <cbc:ID>VAT</cbc:ID>
        </cac:TaxScheme>
      </cac:PartyTaxScheme>
      <cac:PartyTaxScheme>
        <cbc:CompanyID schemeID="0009">12345678900017</cbc:CompanyID>
        <cac:TaxScheme>
          <cbc:ID>LOC</cbc:ID>
        </cac:TaxScheme>
      </cac:PartyTaxScheme>
      <cac:PartyLegalEntity>
        <cbc:RegistrationName>Provide One S.L.</cbc:RegistrationName>
        <cbc:CompanyID schemeID="0208">B98602642</cbc:CompanyID>
      </cac:PartyLegalEntity>
      <cac:Contact>
        <cbc:Name>Ana  Garcia</cbc:Name>
        <cbc:Telephone>+34100200300</cbc:Telephone>
        <cbc:ElectronicMail>ana@example.com</cbc:ElectronicMail>
      </cac:Contact>
    </cac:Party>
  </cac:AccountingSupplierParty>
</Invoice>
"""


def test_parse_party_maps_all_blocks():
    root = parse_document(PARTY_XML)
    party = parse_party(root.find("{*}AccountingSupplierParty/{*}Party"))
    assert party.name == "Provide One S.L."
    assert party.alias == "Provide One"
    assert party.inboxes[0].email == "billing@example.com"
    assert party.tax_id.country == "ES"
    assert party.tax_id.code == "B98602642"
    assert party.tax_id.scheme == ""
    assert party.people[0].name.given == "Ana Garcia"
    assert party.telephones[0].number == "+34100200300"
    assert party.emails[0].address == "ana@example.com"
    addr = party.addresses[0]
    assert (addr.street, addr.locality, addr.code, addr.country) == (
        "Calle Pradillo 42",
        "Madrid",
        "28002",
        "ES",
    )
    legal = [i for i in party.identities if i.scope == "legal"]
    assert legal[0].code == "B98602642"
    assert legal[0].ext == {"iso-scheme-id": "0208"}
    tax = [i for i in party.identities if i.scope == "tax"]
    assert tax[0].type == "LOC"
    assert tax[0].ext == {"iso-scheme-id": "0009"}
    assert sepa_creditor(party) == "DE98ZZZ09999999999"


def test_parse_party_missing_element():
    assert parse_party(None) is None


def _legacy_party(country: str, company_id: str):
    xml = f"""<Party xmlns="urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
  xmlns:cbc="urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2">
  <PostalAddress><Country><cbc:IdentificationCode>{country}</cbc:IdentificationCode></Country></PostalAddress>
  <PartyTaxScheme>
    <cbc:CompanyID schemeID="DK:SE">{company_id}</cbc:CompanyID>
    <TaxScheme><cbc:ID>63</cbc:ID><cbc:Name>Moms</cbc:Name></TaxScheme>
  </PartyTaxScheme>
</Party>
"""
    return LET.fromstring(xml.encode("utf-8"))


def test_parse_party_drops_legacy_dk_prefix():
    party = parse_party(_legacy_party("ES", "DKESB98602642"))
    assert party.tax_id.country == "ES"
    assert party.tax_id.code == "B98602642"

    party = parse_party(_legacy_party("DK", "DK37990485"))
    assert party.tax_id.country == "DK"
    assert party.tax_id.code == "37990485"
