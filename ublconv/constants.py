"""Project-wide constants."""

from os import getenv


def _env_bool(name: str, default: str | None = None) -> bool:
    """Return a boolean flag read from the environment."""

    value = getenv(name)
    if value is None:
        value = default if default is not None else "0"
    value = str(value).strip().lower()
    return value not in {"0", "false", "no", "off", ""}


def _env_str(name: str, default: str) -> str:
    """Return a stripped string from the environment or ``default``."""

    raw = getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    return str(raw).strip()


# Context alias used by the CLI when ``--context`` is not given.
DEFAULT_CONTEXT = _env_str("UBLCONV_CONTEXT", "en16931")

# Emit "[TRACE ...]" warnings from the mappers.
TRACE = _env_bool("UBLCONV_TRACE", "0")

# Indent serialized XML.
PRETTY_XML = _env_bool("UBLCONV_PRETTY", "1")

# UBL version written into OIOUBL documents.
UBL_VERSION = "2.1"

# Meta key on the canonical invoice that overrides the output ProfileID.
META_UBL_PROFILE = "ubl-profile"

# Extension keys used by the canonical model.
EXT_DOCUMENT_TYPE = "untdid-document-type"
EXT_PAYMENT_MEANS = "untdid-payment-means"
EXT_TAX_CATEGORY = "untdid-tax-category"
EXT_CHARGE = "untdid-charge"
EXT_ALLOWANCE = "untdid-allowance"
EXT_VATEX = "cef-vatex"
EXT_SCHEME_ID = "iso-scheme-id"

NOTE_KEY_LEGAL = "legal"
LINE_NOTE_ACCOUNTING_REF = "buyer-accounting-ref"
META_PAYMENT_CHANNEL = "payment-channel"

TAX_SCHEME_VAT = "VAT"
SCHEME_ID_EMAIL = "EM"
TAX_CATEGORY_OUTSIDE_SCOPE = "O"
TAX_CATEGORY_ZERO_RATED = "Z"
