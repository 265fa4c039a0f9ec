# File: ublconv/parsing/document.py
"""
UBL 2.1 document codec
======================
• parse_document()   → lxml root of an Invoice or CreditNote
• to_bytes()         → serialized XML with declaration
• sub() / place()    → child insertion in UBL schema sequence order
• text() / attr()    → nil-safe readers used by the reverse mappers
"""

from __future__ import annotations

import io
import logging
from xml.etree.ElementTree import ParseError

from defusedxml.common import DefusedXmlException
from defusedxml.ElementTree import iterparse as safe_iterparse
from lxml import etree as LET

from ublconv import constants
from ublconv.errors import DocumentParseError, UnknownDocumentTypeError

log = logging.getLogger(__name__)

NS_INVOICE = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
NS_CREDIT_NOTE = "urn:oasis:names:specification:ubl:schema:xsd:CreditNote-2"
CBC = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"
CAC = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
QDT = "urn:oasis:names:specification:ubl:schema:xsd:QualifiedDataTypes-2"
UDT = "urn:oasis:names:specification:ubl:schema:xsd:UnqualifiedDataTypes-2"
CCTS = "urn:un:unece:uncefact:documentation:2"
XSI = "http://www.w3.org/2001/XMLSchema-instance"

SCHEMA_LOCATION = {
    NS_INVOICE: (
        NS_INVOICE
        + " http://docs.oasis-open.org/ubl/os-UBL-2.1/xsd/maindoc/UBL-Invoice-2.1.xsd"
    ),
    NS_CREDIT_NOTE: (
        NS_CREDIT_NOTE
        + " https://docs.oasis-open.org/ubl/os-UBL-2.1/xsd/maindoc/UBL-CreditNote-2.1.xsd"
    ),
}

NS = {"cbc": CBC, "cac": CAC}

XML_PARSER = LET.XMLParser(resolve_entities=False, remove_blank_text=True)


def _cac(tag: str) -> str:
    return f"{{{CAC}}}{tag}"


def _cbc(tag: str) -> str:
    return f"{{{CBC}}}{tag}"


def local_name(el) -> str:
    return LET.QName(el).localname


# ────────────────────────── schema sequences ──────────────────────────
_INVOICE = (
    "UBLExtensions", "UBLVersionID", "CustomizationID", "ProfileID",
    "ProfileExecutionID", "ID", "CopyIndicator", "UUID", "IssueDate",
    "IssueTime", "DueDate", "InvoiceTypeCode", "Note", "TaxPointDate",
    "DocumentCurrencyCode", "TaxCurrencyCode", "PricingCurrencyCode",
    "PaymentCurrencyCode", "PaymentAlternativeCurrencyCode",
    "AccountingCostCode", "AccountingCost", "LineCountNumeric",
    "BuyerReference", "InvoicePeriod", "OrderReference", "BillingReference",
    "DespatchDocumentReference", "ReceiptDocumentReference",
    "StatementDocumentReference", "OriginatorDocumentReference",
    "ContractDocumentReference", "AdditionalDocumentReference",
    "ProjectReference", "Signature", "AccountingSupplierParty",
    "AccountingCustomerParty", "PayeeParty", "BuyerCustomerParty",
    "SellerSupplierParty", "TaxRepresentativeParty", "Delivery",
    "DeliveryTerms", "PaymentMeans", "PaymentTerms", "PrepaidPayment",
    "AllowanceCharge", "TaxExchangeRate", "PricingExchangeRate",
    "PaymentExchangeRate", "PaymentAlternativeExchangeRate", "TaxTotal",
    "WithholdingTaxTotal", "LegalMonetaryTotal", "InvoiceLine",
)
_CREDIT_NOTE = (
    "UBLExtensions", "UBLVersionID", "CustomizationID", "ProfileID",
    "ProfileExecutionID", "ID", "CopyIndicator", "UUID", "IssueDate",
    "IssueTime", "TaxPointDate", "CreditNoteTypeCode", "Note",
    "DocumentCurrencyCode", "TaxCurrencyCode", "PricingCurrencyCode",
    "PaymentCurrencyCode", "PaymentAlternativeCurrencyCode",
    "AccountingCostCode", "AccountingCost", "LineCountNumeric",
    "BuyerReference", "InvoicePeriod", "DiscrepancyResponse",
    "OrderReference", "BillingReference", "DespatchDocumentReference",
    "ReceiptDocumentReference", "ContractDocumentReference",
    "AdditionalDocumentReference", "StatementDocumentReference",
    "OriginatorDocumentReference", "Signature", "AccountingSupplierParty",
    "AccountingCustomerParty", "PayeeParty", "BuyerCustomerParty",
    "SellerSupplierParty", "TaxRepresentativeParty", "Delivery",
    "DeliveryTerms", "PaymentMeans", "PaymentTerms", "TaxExchangeRate",
    "PricingExchangeRate", "PaymentExchangeRate",
    "PaymentAlternativeExchangeRate", "AllowanceCharge", "TaxTotal",
    "LegalMonetaryTotal", "CreditNoteLine",
)
_INVOICE_LINE = (
    "ID", "UUID", "Note", "InvoicedQuantity", "LineExtensionAmount",
    "TaxPointDate", "AccountingCostCode", "AccountingCost",
    "PaymentPurposeCode", "FreeOfChargeIndicator", "InvoicePeriod",
    "OrderLineReference", "DespatchLineReference", "ReceiptLineReference",
    "BillingReference", "DocumentReference", "PricingReference",
    "OriginatorParty", "Delivery", "PaymentTerms", "AllowanceCharge",
    "TaxTotal", "WithholdingTaxTotal", "Item", "Price",
)
_CREDIT_NOTE_LINE = (
    "ID", "UUID", "Note", "CreditedQuantity", "LineExtensionAmount",
    "TaxPointDate", "AccountingCostCode", "AccountingCost",
    "PaymentPurposeCode", "FreeOfChargeIndicator", "InvoicePeriod",
    "OrderLineReference", "DiscrepancyResponse", "DespatchLineReference",
    "ReceiptLineReference", "BillingReference", "DocumentReference",
    "PricingReference", "OriginatorParty", "Delivery", "TaxTotal",
    "AllowanceCharge", "Item", "Price",
)
_PARTY = (
    "MarkCareIndicator", "MarkAttentionIndicator", "WebsiteURI",
    "LogoReferenceID", "EndpointID", "IndustryClassificationCode",
    "PartyIdentification", "PartyName", "Language", "PostalAddress",
    "PhysicalLocation", "PartyTaxScheme", "PartyLegalEntity", "Contact",
    "Person", "AgentParty",
)
_ADDRESS = (
    "ID", "AddressTypeCode", "AddressFormatCode", "Postbox", "Floor", "Room",
    "StreetName", "AdditionalStreetName", "BlockName", "BuildingName",
    "BuildingNumber", "InhouseMail", "Department", "MarkAttention",
    "MarkCare", "PlotIdentification", "CitySubdivisionName", "CityName",
    "PostalZone", "CountrySubentity", "CountrySubentityCode", "Region",
    "District", "TimezoneOffset", "AddressLine", "Country",
    "LocationCoordinate",
)
_TAX_CATEGORY = (
    "ID", "Name", "Percent", "BaseUnitMeasure", "PerUnitAmount",
    "TaxExemptionReasonCode", "TaxExemptionReason", "TierRange",
    "TierRatePercent", "TaxScheme",
)
_FINANCIAL_ACCOUNT = (
    "ID", "Name", "AliasName", "AccountTypeCode", "AccountFormatCode",
    "CurrencyCode", "PaymentNote", "FinancialInstitutionBranch", "Country",
)
_DOCUMENT_REFERENCE = (
    "ID", "CopyIndicator", "UUID", "IssueDate", "IssueTime",
    "DocumentTypeCode", "DocumentType", "XPath", "LanguageID", "LocaleCode",
    "VersionID", "DocumentStatusCode", "DocumentDescription", "Attachment",
    "ValidityPeriod", "IssuerParty",
)
_PERIOD = (
    "StartDate", "StartTime", "EndDate", "EndTime", "DurationMeasure",
    "DescriptionCode", "Description",
)

SEQUENCES: dict[str, tuple[str, ...]] = {
    "Invoice": _INVOICE,
    "CreditNote": _CREDIT_NOTE,
    "InvoiceLine": _INVOICE_LINE,
    "CreditNoteLine": _CREDIT_NOTE_LINE,
    "Party": _PARTY,
    "PayeeParty": _PARTY,
    "TaxRepresentativeParty": _PARTY,
    "DeliveryParty": _PARTY,
    "PostalAddress": _ADDRESS,
    "Address": _ADDRESS,
    "PartyTaxScheme": (
        "RegistrationName", "CompanyID", "TaxLevelCode", "ExemptionReasonCode",
        "ExemptionReason", "RegistrationAddress", "TaxScheme",
    ),
    "PartyLegalEntity": (
        "RegistrationName", "CompanyID", "RegistrationDate",
        "RegistrationExpirationDate", "CompanyLegalFormCode",
        "CompanyLegalForm",
    ),
    "Contact": (
        "ID", "Name", "Telephone", "Telefax", "ElectronicMail", "Note",
    ),
    "TaxScheme": ("ID", "Name", "TaxTypeCode", "CurrencyCode"),
    "TaxCategory": _TAX_CATEGORY,
    "ClassifiedTaxCategory": _TAX_CATEGORY,
    "TaxTotal": (
        "TaxAmount", "RoundingAmount", "TaxEvidenceIndicator",
        "TaxIncludedIndicator", "TaxSubtotal",
    ),
    "TaxSubtotal": (
        "TaxableAmount", "TaxAmount", "CalculationSequenceNumeric",
        "TransactionCurrencyTaxAmount", "Percent", "BaseUnitMeasure",
        "PerUnitAmount", "TierRange", "TierRatePercent", "TaxCategory",
    ),
    "LegalMonetaryTotal": (
        "LineExtensionAmount", "TaxExclusiveAmount", "TaxInclusiveAmount",
        "AllowanceTotalAmount", "ChargeTotalAmount", "PrepaidAmount",
        "PayableRoundingAmount", "PayableAmount",
    ),
    "AllowanceCharge": (
        "ID", "ChargeIndicator", "AllowanceChargeReasonCode",
        "AllowanceChargeReason", "MultiplierFactorNumeric",
        "PrepaidIndicator", "SequenceNumeric", "Amount", "BaseAmount",
        "AccountingCostCode", "AccountingCost", "PerUnitAmount",
        "TaxCategory", "TaxTotal",
    ),
    "PaymentMeans": (
        "ID", "PaymentMeansCode", "PaymentDueDate", "PaymentChannelCode",
        "InstructionID", "InstructionNote", "PaymentID", "CardAccount",
        "PayerFinancialAccount", "PayeeFinancialAccount", "CreditAccount",
        "PaymentMandate",
    ),
    "PayeeFinancialAccount": _FINANCIAL_ACCOUNT,
    "PayerFinancialAccount": _FINANCIAL_ACCOUNT,
    "FinancialInstitutionBranch": (
        "ID", "Name", "FinancialInstitution", "Address",
    ),
    "CardAccount": (
        "PrimaryAccountNumberID", "NetworkID", "CardTypeCode",
        "ValidityStartDate", "ExpiryDate", "IssuerID", "IssueNumberID",
        "CV2ID", "CardChipCode", "ChipApplicationID", "HolderName",
    ),
    "PaymentMandate": (
        "ID", "MandateTypeCode", "MaximumPaymentInstructionsNumeric",
        "MaximumPaidAmount", "SignatureID", "PayerParty",
        "PayerFinancialAccount",
    ),
    "PaymentTerms": (
        "ID", "PaymentMeansID", "PrepaidPaymentReferenceID", "Note",
        "ReferenceEventCode", "SettlementDiscountPercent",
        "PenaltySurchargePercent", "PaymentPercent", "Amount",
        "SettlementDiscountAmount", "PenaltyAmount", "PaymentTermsDetailsURI",
        "PaymentDueDate", "InstallmentDueDate",
    ),
    "Item": (
        "Description", "PackQuantity", "PackSizeNumeric", "CatalogueIndicator",
        "Name", "HazardousRiskIndicator", "AdditionalInformation", "Keyword",
        "BrandName", "ModelName", "BuyersItemIdentification",
        "SellersItemIdentification", "ManufacturersItemIdentification",
        "StandardItemIdentification", "CatalogueItemIdentification",
        "AdditionalItemIdentification", "CatalogueDocumentReference",
        "ItemSpecificationDocumentReference", "OriginCountry",
        "CommodityClassification", "TransactionConditions", "HazardousItem",
        "ClassifiedTaxCategory", "AdditionalItemProperty",
    ),
    "Price": (
        "PriceAmount", "BaseQuantity", "PriceChangeReason", "PriceTypeCode",
        "PriceType", "OrderableUnitFactorRate", "ValidityPeriod", "PriceList",
        "AllowanceCharge",
    ),
    "InvoicePeriod": _PERIOD,
    "Delivery": (
        "ID", "Quantity", "MinimumQuantity", "MaximumQuantity",
        "ActualDeliveryDate", "ActualDeliveryTime", "LatestDeliveryDate",
        "LatestDeliveryTime", "ReleaseID", "TrackingID", "DeliveryAddress",
        "DeliveryLocation", "AlternativeDeliveryLocation",
        "RequestedDeliveryPeriod", "PromisedDeliveryPeriod",
        "EstimatedDeliveryPeriod", "CarrierParty", "DeliveryParty",
    ),
    "DeliveryLocation": (
        "ID", "Description", "Conditions", "CountrySubentity",
        "CountrySubentityCode", "LocationTypeCode", "InformationURI", "Name",
        "ValidityPeriod", "Address",
    ),
    "InvoiceDocumentReference": _DOCUMENT_REFERENCE,
    "AdditionalDocumentReference": _DOCUMENT_REFERENCE,
    "DespatchDocumentReference": _DOCUMENT_REFERENCE,
    "ReceiptDocumentReference": _DOCUMENT_REFERENCE,
    "ContractDocumentReference": _DOCUMENT_REFERENCE,
    "Attachment": ("EmbeddedDocumentBinaryObject", "ExternalReference"),
    "TaxExchangeRate": (
        "SourceCurrencyCode", "SourceCurrencyBaseRate", "TargetCurrencyCode",
        "TargetCurrencyBaseRate", "ExchangeMarketID", "CalculationRate",
        "MathematicOperatorCode", "Date",
    ),
}


def place(parent, child):
    """Insert ``child`` into ``parent`` honouring the UBL element sequence.

    Repeated elements stay in insertion order; unknown parents or children
    are appended.
    """
    seq = SEQUENCES.get(local_name(parent))
    name = local_name(child)
    if not seq or name not in seq:
        parent.append(child)
        return child
    rank = seq.index(name)
    for i, sibling in enumerate(parent):
        if not isinstance(sibling.tag, str):
            continue
        other = local_name(sibling)
        if other in seq and seq.index(other) > rank:
            parent.insert(i, child)
            return child
    parent.append(child)
    return child


def sub(parent, tag: str, text: str | None = None, **attrs):
    """Create ``tag`` under ``parent`` at its schema position.

    ``None`` attribute values are skipped.
    """
    el = LET.Element(tag)
    for key, value in attrs.items():
        if value is not None:
            el.set(key, str(value))
    if text is not None:
        el.text = str(text)
    return place(parent, el)


def ensure(parent, tag: str):
    """Return the first ``tag`` child of ``parent``, creating it when missing."""
    el = parent.find(tag)
    if el is None:
        el = sub(parent, tag)
    return el


def new_root(credit_note: bool = False):
    ns = NS_CREDIT_NOTE if credit_note else NS_INVOICE
    nsmap = {
        None: ns,
        "cac": CAC,
        "cbc": CBC,
        "qdt": QDT,
        "udt": UDT,
        "ccts": CCTS,
        "xsi": XSI,
    }
    name = "CreditNote" if credit_note else "Invoice"
    root = LET.Element(f"{{{ns}}}{name}", nsmap=nsmap)
    root.set(f"{{{XSI}}}schemaLocation", SCHEMA_LOCATION[ns])
    return root


def is_credit_note(root) -> bool:
    return LET.QName(root).namespace == NS_CREDIT_NOTE


# ────────────────────────── reading helpers ──────────────────────────
def _text(el) -> str:
    return el.text.strip() if el is not None and el.text else ""


def text(parent, path: str) -> str | None:
    """Stripped text at ``path`` or ``None`` when the element is absent."""
    if parent is None:
        return None
    el = parent.find(path, NS)
    if el is None:
        return None
    return _text(el)


def attr(parent, path: str, name: str) -> str | None:
    if parent is None:
        return None
    el = parent.find(path, NS)
    if el is None:
        return None
    return el.get(name)


def find(parent, path: str):
    if parent is None:
        return None
    return parent.find(path, NS)


def findall(parent, path: str) -> list:
    if parent is None:
        return []
    return parent.findall(path, NS)


# ────────────────────────── codec ──────────────────────────
def root_namespace(data: bytes) -> str:
    """Return the namespace of the first element in ``data``.

    Entity declarations are refused before lxml sees the payload.
    """
    try:
        for _event, el in safe_iterparse(io.BytesIO(data), events=("start",)):
            tag = el.tag
            if tag.startswith("{"):
                return tag[1:].split("}", 1)[0]
            return ""
    except DefusedXmlException as exc:
        raise DocumentParseError(f"forbidden XML construct: {exc}") from exc
    except ParseError as exc:
        raise DocumentParseError(f"error parsing XML: {exc}") from exc
    raise UnknownDocumentTypeError()


def parse_document(data: bytes | str):
    """Parse raw UBL bytes and return the lxml root element."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    ns = root_namespace(data)
    if ns not in (NS_INVOICE, NS_CREDIT_NOTE):
        raise UnknownDocumentTypeError(ns)
    try:
        root = LET.fromstring(data, parser=XML_PARSER)
    except LET.XMLSyntaxError as exc:
        raise DocumentParseError(f"error parsing XML: {exc}") from exc
    log.debug("Parsed %s document", local_name(root))
    return root


def to_bytes(root, pretty: bool | None = None) -> bytes:
    """Serialize ``root`` with an XML declaration."""
    if pretty is None:
        pretty = constants.PRETTY_XML
    return LET.tostring(
        root,
        xml_declaration=True,
        encoding="UTF-8",
        pretty_print=pretty,
    )
