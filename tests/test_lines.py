from decimal import Decimal

from ublconv.building.lines import build_line
from ublconv.context import EN16931, OIOUBL
from ublconv.model import (
    Identity,
    Invoice,
    Item,
    Line,
    LineDiscount,
    Note,
    TaxCombo,
)
from ublconv.parsing.document import findall, new_root, parse_document, text
from ublconv.parsing.lines import parse_lines
from ublconv.tax import build_tax_category_map


def _line(**kw):
    base = dict(
        index=1,
        quantity=Decimal("20"),
        item=Item(name="Development services", price=Decimal("90.00"), unit="h"),
        sum=Decimal("1800.00"),
        total=Decimal("1800.00"),
        taxes=[TaxCombo(category="VAT", percent=Decimal("10"), ext={"untdid-tax-category": "S"})],
    )
    base.update(kw)
    return Line(**base)


def _build(line, context=EN16931, inv_type="standard"):
    root = new_root(inv_type == "credit-note")
    inv = Invoice(type=inv_type, currency="EUR", lines=[line])
    return build_line(root, line, inv, context, 1)


def test_line_basic_fields():
    el = _build(_line())
    assert text(el, "cbc:ID") == "1"
    qty = el.find("{*}InvoicedQuantity")
    assert qty.text == "20"
    assert qty.get("unitCode") == "HUR"
    assert text(el, "cbc:LineExtensionAmount") == "1800.00"
    assert text(el, "cac:Item/cbc:Name") == "Development services"
    assert text(el, "cac:Price/cbc:PriceAmount") == "90.00"
    assert text(el, "cac:Item/cac:ClassifiedTaxCategory/cbc:ID") == "S"
    assert text(el, "cac:Item/cac:ClassifiedTaxCategory/cbc:Percent") == "10"
    assert text(el, "cac:Item/cac:ClassifiedTaxCategory/cac:TaxScheme/cbc:ID") == "VAT"
    assert el.find("{*}TaxTotal") is None


def test_zero_quantity_is_emitted():
    el = _build(_line(quantity=None))
    assert text(el, "cbc:InvoicedQuantity") == "0"


def test_credit_note_line_uses_credited_quantity():
    el = _build(_line(), inv_type="credit-note")
    assert el.tag.endswith("CreditNoteLine")
    assert text(el, "cbc:CreditedQuantity") == "20"


def test_classified_category_defaults_percent_except_outside_scope():
    el = _build(_line(taxes=[TaxCombo(category="VAT", ext={"untdid-tax-category": "E"})]))
    assert text(el, "cac:Item/cac:ClassifiedTaxCategory/cbc:Percent") == "0"
    el = _build(_line(taxes=[TaxCombo(category="VAT", ext={"untdid-tax-category": "O"})]))
    assert el.find("{*}Item/{*}ClassifiedTaxCategory/{*}Percent") is None


def test_item_identities_are_distributed():
    item = Item(
        name="Widget",
        price=Decimal("1.00"),
        ref="SKU-1",
        identities=[
            Identity(code="BUY-1"),
            Identity(code="BUY-2"),
            Identity(code="4006381333931", ext={"iso-scheme-id": "0160"}),
        ],
        meta={"size": "L", "colour": "blue"},
    )
    el = _build(_line(item=item))
    assert [i.text for i in findall(el, "cac:Item/cac:BuyersItemIdentification/cbc:ID")] == ["BUY-1"]
    std = el.find("{*}Item/{*}StandardItemIdentification/{*}ID")
    assert std.text == "4006381333931"
    assert std.get("schemeID") == "0160"
    assert text(el, "cac:Item/cac:SellersItemIdentification/cbc:ID") == "SKU-1"
    names = [n.text for n in findall(el, "cac:Item/cac:AdditionalItemProperty/cbc:Name")]
    assert names == ["colour", "size"]


def test_accounting_ref_note_becomes_accounting_cost():
    line = _line(
        notes=[
            Note(key="buyer-accounting-ref", text="ACC-77"),
            Note(text="Deliver to gate 3"),
        ]
    )
    el = _build(line)
    assert text(el, "cbc:AccountingCost") == "ACC-77"
    assert [n.text for n in findall(el, "cbc:Note")] == ["Deliver to gate 3"]


def test_oioubl_line_tax_total():
    el = _build(_line(), context=OIOUBL)
    assert text(el, "cac:TaxTotal/cbc:TaxAmount") == "180.00"
    assert text(el, "cac:TaxTotal/cac:TaxSubtotal/cbc:TaxableAmount") == "1800.00"
    names = [c.tag.split("}")[1] for c in el]
    assert names.index("TaxTotal") < names.index("Item")


def test_oioubl_zero_tax_has_no_line_tax_total():
    line = _line(taxes=[TaxCombo(category="VAT", ext={"untdid-tax-category": "E"})])
    el = _build(line, context=OIOUBL)
    assert el.find("{*}TaxTotal") is None


def test_line_discount_uses_line_sum_as_base():
    line = _line(
        total=Decimal("1620.00"),
        discounts=[LineDiscount(percent=Decimal("10"), amount=Decimal("180.00"), reason="Promo")],
    )
    el = _build(line)
    ac = el.find("{*}AllowanceCharge")
    assert text(ac, "cbc:ChargeIndicator") == "false"
    assert text(ac, "cbc:MultiplierFactorNumeric") == "10"
    assert text(ac, "cbc:Amount") == "180.00"
    assert text(ac, "cbc:BaseAmount") == "1800.00"


LINES_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<Invoice xmlns="urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
         xmlns:cac="urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
         xmlns:cbc="urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2">
  <cbc:DocumentCurrencyCode>EUR</cbc:DocumentCurrencyCode>
  <cac:TaxTotal>
    <cbc:TaxAmount currencyID="EUR">0.00</cbc:TaxAmount>
    <cac:TaxSubtotal>
      <cbc:TaxableAmount currencyID="EUR">100.00</cbc:TaxableAmount>
      <cbc:TaxAmount currencyID="EUR">0.00</cbc:TaxAmount>
      <cac:TaxCategory>
        <cbc:ID>E</cbc:ID>
        <cbc:Percent>0</cbc:Percent>
        <cbc:TaxExemptionReasonCode>VATEX-EU-132</cbc:TaxExemptionReasonCode>
        <cac:TaxScheme><cbc:ID>VAT</cbc:ID></cac:TaxScheme>
      </cac:TaxCategory>
    </cac:TaxSubtotal>
  </cac:TaxTotal>
  <cac:InvoiceLine>
    <cbc:ID>A</cbc:ID>
    <cbc:Note>First  line</cbc:Note>
    <cbc:InvoicedQuantity unitCode="KGM">3</cbc:InvoicedQuantity>
    <cbc:LineExtensionAmount currencyID="EUR">90.00</cbc:LineExtensionAmount>
    <cbc:AccountingCost>ACC-1</cbc:AccountingCost>
    <cac:InvoicePeriod>
      <cbc:StartDate>2024-01-01</cbc:StartDate>
      <cbc:EndDate>2024-01-31</cbc:EndDate>
    </cac:InvoicePeriod>
    <cac:OrderLineReference><cbc:LineID>7</cbc:LineID></cac:OrderLineReference>
    <cac:AllowanceCharge>
      <cbc:ChargeIndicator>false</cbc:ChargeIndicator>
      <cbc:AllowanceChargeReasonCode>95</cbc:AllowanceChargeReasonCode>
      <cbc:AllowanceChargeReason>Discount</cbc:AllowanceChargeReason>
      <cbc:MultiplierFactorNumeric>10</cbc:MultiplierFactorNumeric>
      <cbc:Amount currencyID="EUR">10.00</cbc:Amount>
      <cbc:BaseAmount currencyID="EUR">100.00</cbc:BaseAmount>
    </cac:AllowanceCharge>
    <cac:Item>
      <cbc:Description>Fresh apples</cbc:Description>
      <cbc:Name>Apples</cbc:Name>
      <cac:BuyersItemIdentification><cbc:ID>B-1</cbc:ID></cac:BuyersItemIdentification>
      <cac:SellersItemIdentification><cbc:ID>S-1</cbc:ID></cac:SellersItemIdentification>
      <cac:StandardItemIdentification><cbc:ID schemeID="0160">4006381333931</cbc:ID></cac:StandardItemIdentification>
      <cac:OriginCountry><cbc:IdentificationCode>ES</cbc:IdentificationCode></cac:OriginCountry>
      <cac:CommodityClassification>
        <cbc:ItemClassificationCode listID="STI">03222000</cbc:ItemClassificationCode>
      </cac:CommodityClassification>
      <cac:ClassifiedTaxCategory>
        <cbc:ID>E</cbc:ID>
        <cbc:Percent>0</cbc:Percent>
        <cac:TaxScheme><cbc:ID>VAT</cbc:ID></cac:TaxScheme>
      </cac:ClassifiedTaxCategory>
      <cac:AdditionalItemProperty>
        <cbc:Name>Colour Name</cbc:Name>
        <cbc:Value>red</cbc:Value>
      </cac:AdditionalItemProperty>
    </cac:Item>
    <cac:Price>
      <cbc:PriceAmount currencyID="EUR">100.00</cbc:PriceAmount>
      <cbc:BaseQuantity unitCode="KGM">3</cbc:BaseQuantity>
    </cac:Price>
  </cac:InvoiceLine>
  <cac:InvoiceLine>
    <cbc:ID>B</cbc:ID>
    <cbc:InvoicedQuantity>1</cbc:InvoicedQuantity>
    <cbc:LineExtensionAmount currencyID="EUR">0.00</cbc:LineExtensionAmount>
    <cac:Item><cbc:Name>Info only</cbc:Name></cac:Item>
  </cac:InvoiceLine>
  <cac:InvoiceLine>
    <cbc:ID>C</cbc:ID>
    <cbc:LineExtensionAmount currencyID="EUR">5.00</cbc:LineExtensionAmount>
    <cac:Item><cbc:Name>No quantity</cbc:Name></cac:Item>
    <cac:Price><cbc:PriceAmount currencyID="USD">5.00</cbc:PriceAmount></cac:Price>
  </cac:InvoiceLine>
</Invoice>
"""


def test_parse_lines_skips_lines_without_price():
    root = parse_document(LINES_XML)
    lines = parse_lines(root, "EUR", build_tax_category_map(root))
    assert [ln.index for ln in lines] == [1, 2]
    assert lines[1].item.name == "No quantity"
    assert lines[1].quantity == Decimal("1")
    assert lines[1].item.currency == "USD"


def test_parse_line_fields():
    root = parse_document(LINES_XML)
    line = parse_lines(root, "EUR", build_tax_category_map(root))[0]
    assert line.quantity == Decimal("3")
    assert line.item.unit == "kg"
    assert line.item.price == Decimal("33.333")
    assert line.notes[0].text == "First line"
    assert line.cost == "ACC-1"
    assert str(line.period.start) == "2024-01-01"
    assert line.order == "7"
    assert line.total == Decimal("90.00")
    assert line.sum == Decimal("100.00")
    disc = line.discounts[0]
    assert disc.percent == Decimal("10")
    assert disc.base == Decimal("100.00")
    assert disc.ext == {"untdid-allowance": "95"}
    item = line.item
    assert item.description == "Fresh apples"
    assert item.origin == "ES"
    assert item.ref == "S-1"
    assert item.meta == {"colour-name": "red"}
    codes = [(i.code, i.label, i.ext) for i in item.identities]
    assert codes == [
        ("B-1", "", {}),
        ("4006381333931", "", {"iso-scheme-id": "0160"}),
        ("03222000", "STI", {}),
    ]


def test_parse_line_tax_backfills_exemption_code():
    root = parse_document(LINES_XML)
    line = parse_lines(root, "EUR", build_tax_category_map(root))[0]
    combo = line.taxes[0]
    assert combo.category == "VAT"
    assert combo.percent is None
    assert combo.ext == {"untdid-tax-category": "E", "cef-vatex": "VATEX-EU-132"}
