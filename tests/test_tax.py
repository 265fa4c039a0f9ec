from decimal import Decimal

from ublconv.model import Line, TaxCombo
from ublconv.parsing.document import new_root, parse_document, text
from ublconv.tax import (
    TaxCategoryInfo,
    add_tax_category,
    build_tax_category_map,
    exemption_code,
    line_tax_totals,
    parse_tax_combo,
)

TAX_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<Invoice xmlns="urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
         xmlns:cac="urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
         xmlns:cbc="urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2">
  <cac:TaxTotal>
    <cbc:TaxAmount currencyID="EUR">0.00</cbc:TaxAmount>
    <cac:TaxSubtotal>
      <cac:TaxCategory>
        <cbc:ID>E</cbc:ID>
        <cbc:TaxExemptionReasonCode>VATEX-EU-79-C</cbc:TaxExemptionReasonCode>
        <cac:TaxScheme><cbc:ID>VAT</cbc:ID></cac:TaxScheme>
      </cac:TaxCategory>
    </cac:TaxSubtotal>
    <cac:TaxSubtotal>
      <cac:TaxCategory>
        <cbc:ID>E</cbc:ID>
        <cbc:TaxExemptionReasonCode>VATEX-EU-132</cbc:TaxExemptionReasonCode>
        <cbc:TaxExemptionReason>Medical care</cbc:TaxExemptionReason>
        <cac:TaxScheme><cbc:ID>VAT</cbc:ID></cac:TaxScheme>
      </cac:TaxCategory>
    </cac:TaxSubtotal>
    <cac:TaxSubtotal>
      <cac:TaxCategory>
        <cbc:ID>S</cbc:ID>
      </cac:TaxCategory>
    </cac:TaxSubtotal>
  </cac:TaxTotal>
</Invoice>
"""


def test_tax_category_map_last_subtotal_wins():
    tax_map = build_tax_category_map(parse_document(TAX_XML))
    assert list(tax_map) == [("VAT", "E")]
    assert tax_map[("VAT", "E")] == TaxCategoryInfo("VATEX-EU-132", "Medical care")


def test_exemption_code_lookup():
    tax_map = {("VAT", "E"): TaxCategoryInfo("VATEX-EU-132")}
    assert exemption_code(tax_map, "VAT", "E") == "VATEX-EU-132"
    assert exemption_code(tax_map, "GST", "E") == ""
    assert exemption_code({}, "VAT", "E") == ""


def test_add_tax_category_percent_defaults():
    root = new_root()
    el = add_tax_category(root, "VAT", {"untdid-tax-category": "Z"}, None)
    assert text(el, "cbc:Percent") == "0"
    el = add_tax_category(root, "VAT", {"untdid-tax-category": "O"}, None)
    assert el.find("{*}Percent") is None
    el = add_tax_category(root, "VAT", {"untdid-tax-category": "S"}, Decimal("19.0"))
    assert text(el, "cbc:Percent") == "19.0"


def test_add_tax_category_exemption_fields():
    root = new_root()
    ext = {"untdid-tax-category": "E", "cef-vatex": "VATEX-EU-132"}
    el = add_tax_category(root, "VAT", ext, None, with_exemption=True, exemption_reason="Art. 132")
    names = [c.tag.split("}")[1] for c in el]
    assert names == ["ID", "Percent", "TaxExemptionReasonCode", "TaxExemptionReason", "TaxScheme"]
    el = add_tax_category(root, "VAT", ext, None)
    assert el.find("{*}TaxExemptionReasonCode") is None


def test_line_tax_totals_sums_rates():
    line = Line(
        total=Decimal("100.00"),
        taxes=[
            TaxCombo(category="VAT", percent=Decimal("25"), ext={"untdid-tax-category": "S"}),
            TaxCombo(category="LOC", percent=Decimal("1.5")),
        ],
    )
    (tt,) = line_tax_totals(line, "DKK")
    assert text(tt, "cbc:TaxAmount") == "26.50"
    assert tt.find("{*}TaxAmount").get("currencyID") == "DKK"
    amounts = [s.findtext("{*}TaxAmount") for s in tt.findall("{*}TaxSubtotal")]
    assert amounts == ["25.00", "1.50"]


def test_line_tax_totals_falls_back_to_sum():
    line = Line(sum=Decimal("10.0"), taxes=[TaxCombo(category="VAT", percent=Decimal("10"))])
    (tt,) = line_tax_totals(line, "EUR")
    assert text(tt, "cac:TaxSubtotal/cbc:TaxableAmount") == "10.0"
    assert text(tt, "cbc:TaxAmount") == "1.0"


def test_line_tax_totals_empty_cases():
    assert line_tax_totals(None, "EUR") == []
    assert line_tax_totals(Line(total=Decimal("5.00")), "EUR") == []
    assert line_tax_totals(Line(taxes=[TaxCombo(category="VAT", percent=Decimal("5"))]), "EUR") == []


def test_parse_tax_combo_suppresses_zero_percent():
    root = parse_document(TAX_XML)
    cat = root.find("{*}TaxTotal/{*}TaxSubtotal/{*}TaxCategory")
    combo = parse_tax_combo(cat, {})
    assert combo.percent is None
    assert combo.ext == {"untdid-tax-category": "E"}
    combo = parse_tax_combo(cat, {}, own_exemption=True)
    assert combo.ext["cef-vatex"] == "VATEX-EU-79-C"


def test_parse_tax_combo_without_scheme():
    root = parse_document(TAX_XML)
    cats = root.findall("{*}TaxTotal/{*}TaxSubtotal/{*}TaxCategory")
    assert parse_tax_combo(cats[2], {}) is None
    assert parse_tax_combo(None, {}) is None
