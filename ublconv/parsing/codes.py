"""Enumerations and code tables shared by both mapping directions."""

from enum import Enum


class InvoiceType(str, Enum):
    """Canonical invoice types."""

    STANDARD = "standard"
    PROFORMA = "proforma"
    CORRECTIVE = "corrective"
    CREDIT_NOTE = "credit-note"
    DEBIT_NOTE = "debit-note"
    OTHER = "other"


class Tag(str, Enum):
    """Tax tags derived from the UNTDID 1001 document type."""

    SELF_BILLED = "self-billed"
    PARTIAL = "partial"


class MeansKey(str, Enum):
    """Canonical payment means keys."""

    ANY = "any"
    CASH = "cash"
    CHEQUE = "cheque"
    CREDIT_TRANSFER = "credit-transfer"
    DEBIT_TRANSFER = "debit-transfer"
    CARD = "card"
    DIRECT_DEBIT = "direct-debit"
    CREDIT_TRANSFER_SEPA = "credit-transfer+sepa"
    DIRECT_DEBIT_SEPA = "direct-debit+sepa"


# UNTDID 1001 document type -> canonical type.
TYPE_CODES: dict[str, InvoiceType] = {
    "325": InvoiceType.PROFORMA,
    "380": InvoiceType.STANDARD,
    "381": InvoiceType.CREDIT_NOTE,
    "383": InvoiceType.DEBIT_NOTE,
    "384": InvoiceType.CORRECTIVE,
    "389": InvoiceType.STANDARD,
    "326": InvoiceType.STANDARD,
    "261": InvoiceType.CREDIT_NOTE,
}

TYPE_TAGS: dict[str, tuple[Tag, ...]] = {
    "389": (Tag.SELF_BILLED,),
    "326": (Tag.PARTIAL,),
    "261": (Tag.SELF_BILLED,),
}

# UNTDID 4461 payment means -> canonical key.
PAYMENT_MEANS: dict[str, MeansKey] = {
    "10": MeansKey.CASH,
    "20": MeansKey.CHEQUE,
    "30": MeansKey.CREDIT_TRANSFER,
    "42": MeansKey.DEBIT_TRANSFER,
    "48": MeansKey.CARD,
    "49": MeansKey.DIRECT_DEBIT,
    "58": MeansKey.CREDIT_TRANSFER_SEPA,
    "59": MeansKey.DIRECT_DEBIT_SEPA,
}

# Canonical unit -> UN/ECE Recommendation 20 code.
UNITS: dict[str, str] = {
    "g": "GRM",
    "kg": "KGM",
    "t": "TNE",
    "mg": "MGM",
    "s": "SEC",
    "min": "MIN",
    "h": "HUR",
    "day": "DAY",
    "week": "WEE",
    "month": "MON",
    "year": "ANN",
    "mm": "MMT",
    "cm": "CMT",
    "m": "MTR",
    "km": "KMT",
    "in": "INH",
    "ft": "FOT",
    "m2": "MTK",
    "m3": "MTQ",
    "ml": "MLT",
    "cl": "CLT",
    "l": "LTR",
    "w": "WTT",
    "kw": "KWT",
    "kwh": "KWH",
    "one": "C62",
    "piece": "H87",
    "item": "EA",
    "set": "SET",
    "pair": "PR",
    "box": "XBX",
    "pallet": "XPX",
    "package": "XPK",
    "bottle": "XBO",
    "service": "E48",
    "percent": "P1",
}

UNECE_UNITS: dict[str, str] = {v: k for k, v in UNITS.items()}


def unit_to_unece(unit: str) -> str:
    """Return the UN/ECE code for ``unit``; unknown units pass through."""
    return UNITS.get(unit, unit)


def unit_from_unece(code: str) -> str:
    return UNECE_UNITS.get(code, code)


def invoice_type(code: str) -> InvoiceType:
    return TYPE_CODES.get(code, InvoiceType.OTHER)


def invoice_tags(code: str) -> list[str]:
    return [t.value for t in TYPE_TAGS.get(code, ())]


def means_key(code: str) -> str:
    return PAYMENT_MEANS.get(code, MeansKey.ANY).value
