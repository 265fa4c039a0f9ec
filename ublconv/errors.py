"""Exception hierarchy raised by the converter."""

from __future__ import annotations


class ConversionError(Exception):
    """Base class for every failure raised while converting a document."""


class ConfigurationError(ConversionError):
    """Unknown context alias or another caller-side configuration problem."""


class UnsupportedDocumentTypeError(ConfigurationError):
    """The payload is a recognised document, but not an invoice."""


class UnknownDocumentTypeError(ConversionError):
    """The XML root namespace is neither UBL Invoice nor UBL CreditNote."""

    def __init__(self, namespace: str | None = None):
        self.namespace = namespace
        msg = "unknown document type"
        if namespace:
            msg = f"{msg}: {namespace}"
        super().__init__(msg)


class ValidationError(ConversionError):
    """A mandatory field is missing from the canonical invoice.

    ``path`` is the location of the field, for example
    ``("tax", "ext", "untdid-document-type")``.
    """

    def __init__(self, path, message: str = "required"):
        self.path = tuple(path)
        self.message = message
        super().__init__(f"{'.'.join(self.path)}: {message}")


class DocumentParseError(ConversionError):
    """Malformed XML or a value that cannot be read from the document."""


class NumericParseError(ConversionError, ValueError):
    """An amount or percentage string could not be parsed."""

    def __init__(self, value, reason: str = "invalid number"):
        self.value = value
        super().__init__(f"{reason}: {value!r}")
