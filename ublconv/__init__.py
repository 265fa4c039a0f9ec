"""
ublconv
=======
Canonical invoice ⇄ UBL 2.1 Invoice/CreditNote.

• convert_invoice()             → lxml root for an Invoice (or its dict form)
• to_bytes()                    → serialized XML with declaration
• parse_document()              → lxml root of UBL bytes
• to_canonical()                → Invoice from a parsed root
• extract_binary_attachments()  → embedded documents of a parsed root
"""

from __future__ import annotations

from ublconv.building.invoice import build_document
from ublconv.context import (
    ALIASES,
    CONTEXTS,
    DEFAULT_CONTEXT,
    Context,
    context_from_alias,
    find_context,
    get_vesid,
)
from ublconv.errors import (
    ConfigurationError,
    ConversionError,
    DocumentParseError,
    NumericParseError,
    UnknownDocumentTypeError,
    UnsupportedDocumentTypeError,
    ValidationError,
)
from ublconv.model import Invoice
from ublconv.parsing.document import parse_document, to_bytes
from ublconv.parsing.invoice import (
    BinaryAttachment,
    extract_binary_attachments,
    to_canonical,
)

__all__ = [
    "ALIASES",
    "CONTEXTS",
    "DEFAULT_CONTEXT",
    "BinaryAttachment",
    "ConfigurationError",
    "Context",
    "ConversionError",
    "DocumentParseError",
    "Invoice",
    "NumericParseError",
    "UnknownDocumentTypeError",
    "UnsupportedDocumentTypeError",
    "ValidationError",
    "context_from_alias",
    "convert_invoice",
    "extract_binary_attachments",
    "find_context",
    "get_vesid",
    "parse_document",
    "to_bytes",
    "to_canonical",
]


def convert_invoice(invoice, context: Context | None = None):
    """Map a canonical invoice to a UBL root under ``context`` (EN16931 by default).

    ``invoice`` may be an :class:`Invoice` or its JSON dict, optionally
    wrapped in an envelope with a ``doc`` key.
    """
    if isinstance(invoice, dict):
        invoice = Invoice.from_dict(invoice)
    elif not isinstance(invoice, Invoice):
        raise UnsupportedDocumentTypeError(
            f"unsupported document type: {type(invoice).__name__}"
        )
    return build_document(invoice, context or DEFAULT_CONTEXT)
