# File: ublconv/parsing/utils.py
"""Utility helpers shared by the mappers."""
from __future__ import annotations

import datetime as dt
import logging
import re

from ublconv import constants
from ublconv.errors import DocumentParseError

log = logging.getLogger(__name__)

_KEY_SEP = re.compile(r"[^a-z0-9]+")
_SPACES = re.compile(r"[ \t\r\f\v\xa0]+")


def _t(msg, *args):
    if constants.TRACE:
        log.warning("[TRACE UBL] " + msg, *args)


def _normalize_date(date_str: str) -> str:
    """Convert ``YYYYMMDD`` or ``YYYY-MM-DDZ`` style values into ``YYYY-MM-DD``."""
    s = date_str.strip().replace("\xa0", "")
    m = re.match(r"(\d{4})(\d{2})(\d{2})$", s)
    if m:
        y, mth, d = m.groups()
        return f"{y}-{mth}-{d}"
    m = re.match(r"(\d{4}-\d{2}-\d{2})(?:Z|[+-]\d{2}:\d{2})?$", s)
    if m:
        return m.group(1)
    return s


def parse_date(value: str) -> dt.date:
    """Parse an ISO calendar date read from a document."""
    try:
        return dt.date.fromisoformat(_normalize_date(value))
    except (TypeError, ValueError):
        raise DocumentParseError(f"invalid date: {value!r}") from None


def format_date(value: dt.date) -> str:
    return value.isoformat()


def clean_string(value: str) -> str:
    """Collapse runs of blanks on every line and trim the result."""
    lines = [_SPACES.sub(" ", ln).strip() for ln in str(value).splitlines()]
    return "\n".join(lines).strip()


def format_key(name: str) -> str:
    """Turn a free-text property name into a meta key (``Colour Name`` -> ``colour-name``)."""
    return _KEY_SEP.sub("-", name.strip().lower()).strip("-")


def invoice_number(series: str | None, code: str | None) -> str:
    """``{series}-{code}``, or the bare code without a series."""
    if not series:
        return code or ""
    return f"{series}-{code or ''}"
