"""
Canonical invoice model
=======================
Read-only data shape of the invoicing engine's ``bill/invoice`` document,
declared as pydantic models.  The engine calculates every amount; this
package only relocates values.

• Invoice.from_dict() / from_json()  → accepts a bare invoice or an
                                       envelope with a ``doc`` key
• Invoice.to_dict()                  → JSON-ready dict in the engine layout

Amounts are :class:`~decimal.Decimal` and keep their exponent.  Percentages
are Decimal percentage points (``"19%"`` is stored as ``Decimal("19")``).
"""

from __future__ import annotations

import base64
import binascii
import datetime as dt
import json
from decimal import Decimal
from typing import Annotated

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from ublconv.errors import (
    ConversionError,
    DocumentParseError,
    UnsupportedDocumentTypeError,
)
from ublconv.parsing.money import fmt_amount, parse_amount, parse_percent

INVOICE_SCHEMA = "https://gobl.org/draft-0/bill/invoice"


# ────────────────────────── wire types ──────────────────────────
def _amount(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return parse_amount(str(value))


def _percent_text(value: Decimal) -> str:
    return f"{fmt_amount(value)}%"


def _binary(value) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, TypeError, ValueError):
        raise DocumentParseError(f"invalid base64 data: {value!r:.40}") from None


def _b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


Amount = Annotated[
    Decimal, BeforeValidator(_amount), PlainSerializer(fmt_amount, return_type=str)
]
Percent = Annotated[
    Decimal, BeforeValidator(parse_percent), PlainSerializer(_percent_text, return_type=str)
]
Binary = Annotated[bytes, BeforeValidator(_binary), PlainSerializer(_b64, return_type=str)]


def _parse_error(exc: PydanticValidationError) -> ConversionError:
    """Turn pydantic's report into the converter's own error type."""
    err = exc.errors()[0]
    cause = (err.get("ctx") or {}).get("error")
    if isinstance(cause, ConversionError):
        return cause
    loc = ".".join(str(p) for p in err["loc"])
    return DocumentParseError(f"{loc}: {err['msg']}" if loc else err["msg"])


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data):
        # null means "not set" in the engine layout
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @classmethod
    def from_dict(cls, data: dict):
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise _parse_error(exc) from exc

    def to_dict(self) -> dict:
        return self.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude_defaults=True
        )


# ────────────────────────── organisation ──────────────────────────
class Identity(_Model):
    label: str = ""
    country: str = ""
    type: str = ""
    code: str = ""
    scope: str = ""
    description: str = ""
    ext: dict[str, str] = Field(default_factory=dict)


class TaxIdentity(_Model):
    country: str = ""
    code: str = ""
    scheme: str = ""

    def __str__(self) -> str:
        return f"{self.country}{self.code}"


class Inbox(_Model):
    key: str = ""
    scheme: str = ""
    code: str = ""
    email: str = ""


class Coordinates(_Model):
    latitude: Amount | None = Field(default=None, alias="lat")
    longitude: Amount | None = Field(default=None, alias="lon")


class Address(_Model):
    num: str = ""
    street: str = ""
    street_extra: str = ""
    locality: str = ""
    region: str = ""
    code: str = ""
    country: str = ""
    coords: Coordinates | None = None

    def line_one(self) -> str:
        return " ".join(p for p in (self.street, self.num) if p)

    def line_two(self) -> str:
        return self.street_extra


class Name(_Model):
    given: str = ""
    surname: str = ""

    def full(self) -> str:
        return " ".join(p for p in (self.given, self.surname) if p)


class Person(_Model):
    name: Name | None = None


class Email(_Model):
    address: str = Field(default="", alias="addr")


class Telephone(_Model):
    number: str = Field(default="", alias="num")


class Party(_Model):
    name: str = ""
    alias: str = ""
    tax_id: TaxIdentity | None = None
    identities: list[Identity] = Field(default_factory=list)
    inboxes: list[Inbox] = Field(default_factory=list)
    people: list[Person] = Field(default_factory=list)
    addresses: list[Address] = Field(default_factory=list)
    emails: list[Email] = Field(default_factory=list)
    telephones: list[Telephone] = Field(default_factory=list)


class Note(_Model):
    key: str = ""
    code: str = ""
    text: str = ""


class Period(_Model):
    start: dt.date | None = None
    end: dt.date | None = None


class DocumentRef(_Model):
    type: str = ""
    series: str = ""
    code: str = ""
    issue_date: dt.date | None = None
    reason: str = ""
    description: str = ""
    ext: dict[str, str] = Field(default_factory=dict)


class Attachment(_Model):
    code: str = ""
    name: str = ""
    description: str = ""
    mime: str = ""
    url: str = ""
    data: Binary | None = None


# ────────────────────────── items and lines ──────────────────────────
class Item(_Model):
    ref: str = ""
    name: str = ""
    identities: list[Identity] = Field(default_factory=list)
    description: str = ""
    currency: str = ""
    price: Amount | None = None
    unit: str = ""
    origin: str = ""
    ext: dict[str, str] = Field(default_factory=dict)
    meta: dict[str, str] = Field(default_factory=dict)


class TaxCombo(_Model):
    category: str = Field(default="", alias="cat")
    country: str = ""
    rate: str = ""
    percent: Percent | None = None
    ext: dict[str, str] = Field(default_factory=dict)


class LineDiscount(_Model):
    reason: str = ""
    code: str = ""
    base: Amount | None = None
    percent: Percent | None = None
    amount: Amount | None = None
    ext: dict[str, str] = Field(default_factory=dict)


class LineCharge(_Model):
    reason: str = ""
    code: str = ""
    base: Amount | None = None
    percent: Percent | None = None
    amount: Amount | None = None
    ext: dict[str, str] = Field(default_factory=dict)


class Line(_Model):
    index: int | None = Field(default=None, alias="i")
    quantity: Amount | None = None
    item: Item | None = None
    period: Period | None = None
    order: str = ""
    cost: str = ""
    sum: Amount | None = None
    discounts: list[LineDiscount] = Field(default_factory=list)
    charges: list[LineCharge] = Field(default_factory=list)
    taxes: list[TaxCombo] = Field(default_factory=list)
    total: Amount | None = None
    notes: list[Note] = Field(default_factory=list)


class Charge(_Model):
    index: int | None = Field(default=None, alias="i")
    key: str = ""
    code: str = ""
    reason: str = ""
    base: Amount | None = None
    percent: Percent | None = None
    amount: Amount | None = None
    taxes: list[TaxCombo] = Field(default_factory=list)
    ext: dict[str, str] = Field(default_factory=dict)


class Discount(_Model):
    index: int | None = Field(default=None, alias="i")
    key: str = ""
    code: str = ""
    reason: str = ""
    base: Amount | None = None
    percent: Percent | None = None
    amount: Amount | None = None
    taxes: list[TaxCombo] = Field(default_factory=list)
    ext: dict[str, str] = Field(default_factory=dict)


# ────────────────────────── totals ──────────────────────────
class RateTotal(_Model):
    key: str = ""
    ext: dict[str, str] = Field(default_factory=dict)
    base: Amount | None = None
    percent: Percent | None = None
    amount: Amount | None = None


class CategoryTotal(_Model):
    code: str = ""
    rates: list[RateTotal] = Field(default_factory=list)
    amount: Amount | None = None


class TaxTotals(_Model):
    categories: list[CategoryTotal] = Field(default_factory=list)
    sum: Amount | None = None


class Totals(_Model):
    sum: Amount | None = None
    discount: Amount | None = None
    charge: Amount | None = None
    total: Amount | None = None
    taxes: TaxTotals | None = None
    tax: Amount | None = None
    total_with_tax: Amount | None = None
    rounding: Amount | None = None
    payable: Amount | None = None
    advances: Amount | None = Field(default=None, alias="advance")
    due: Amount | None = None


# ────────────────────────── payment ──────────────────────────
class CreditTransfer(_Model):
    iban: str = ""
    bic: str = ""
    number: str = ""
    name: str = ""


class DirectDebit(_Model):
    ref: str = ""
    creditor: str = ""
    account: str = ""


class Card(_Model):
    last4: str = ""
    holder: str = ""


class Instructions(_Model):
    key: str = ""
    detail: str = ""
    ref: str = ""
    credit_transfer: list[CreditTransfer] = Field(default_factory=list)
    card: Card | None = None
    direct_debit: DirectDebit | None = None
    ext: dict[str, str] = Field(default_factory=dict)
    meta: dict[str, str] = Field(default_factory=dict)


class DueDate(_Model):
    date: dt.date | None = None
    notes: str = ""
    amount: Amount | None = None
    percent: Percent | None = None
    currency: str = ""


class Terms(_Model):
    key: str = ""
    detail: str = ""
    due_dates: list[DueDate] = Field(default_factory=list)
    notes: str = ""


class Advance(_Model):
    date: dt.date | None = None
    ref: str = ""
    description: str = ""
    percent: Percent | None = None
    amount: Amount | None = None


class PaymentDetails(_Model):
    payee: Party | None = None
    terms: Terms | None = None
    advances: list[Advance] = Field(default_factory=list)
    instructions: Instructions | None = None


# ────────────────────────── ordering and delivery ──────────────────────────
class Ordering(_Model):
    code: str = ""
    cost: str = ""
    period: Period | None = None
    seller: Party | None = None
    projects: list[DocumentRef] = Field(default_factory=list)
    contracts: list[DocumentRef] = Field(default_factory=list)
    purchases: list[DocumentRef] = Field(default_factory=list)
    receiving: list[DocumentRef] = Field(default_factory=list)
    despatch: list[DocumentRef] = Field(default_factory=list)


class Delivery(_Model):
    receiver: Party | None = None
    identities: list[Identity] = Field(default_factory=list)
    date: dt.date | None = None


class ExchangeRate(_Model):
    source: str = Field(default="", alias="from")
    target: str = Field(default="", alias="to")
    amount: Amount | None = None


class Tax(_Model):
    prices_include: str = ""
    rounding: str = ""
    ext: dict[str, str] = Field(default_factory=dict)


# ────────────────────────── invoice ──────────────────────────
class Invoice(_Model):
    addons: list[str] = Field(default_factory=list, alias="$addons")
    tags: list[str] = Field(default_factory=list, alias="$tags")
    uuid: str = ""
    type: str = "standard"
    series: str = ""
    code: str = ""
    issue_date: dt.date | None = None
    currency: str = ""
    exchange_rates: list[ExchangeRate] = Field(default_factory=list)
    tax: Tax | None = None
    preceding: list[DocumentRef] = Field(default_factory=list)
    supplier: Party | None = None
    customer: Party | None = None
    lines: list[Line] = Field(default_factory=list)
    discounts: list[Discount] = Field(default_factory=list)
    charges: list[Charge] = Field(default_factory=list)
    ordering: Ordering | None = None
    payment: PaymentDetails | None = None
    delivery: Delivery | None = None
    totals: Totals | None = None
    notes: list[Note] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    meta: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Invoice":
        """Load an invoice, unwrapping an envelope's ``doc`` when present.

        A document tagged with any ``$schema`` other than ``bill/invoice``
        is refused with :class:`UnsupportedDocumentTypeError`.
        """
        if isinstance(data, dict) and isinstance(data.get("doc"), dict):
            data = data["doc"]
        schema = data.get("$schema") if isinstance(data, dict) else None
        if schema and schema != INVOICE_SCHEMA:
            raise UnsupportedDocumentTypeError(f"unsupported document type: {schema}")
        return super().from_dict(data)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Invoice":
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise DocumentParseError(f"invalid JSON: {exc}") from exc
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        out = {"$schema": INVOICE_SCHEMA, "type": self.type}
        out.update(super().to_dict())
        return out

    def tax_ext(self, key: str) -> str:
        """Value of a tax extension on the invoice, empty when unset."""
        if self.tax is None:
            return ""
        return self.tax.ext.get(key, "")
