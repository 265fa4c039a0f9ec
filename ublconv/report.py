# File: ublconv/report.py
"""
Tabular views of a canonical invoice
====================================
• lines_frame()         → one row per line (index, name, quantity, unit,
                          price, sum, total, tax category, percent)
• tax_frame()           → one row per tax rate subtotal
• totals_by_category()  → line totals grouped by tax category and percent

Amounts stay :class:`~decimal.Decimal`; the frames are for display and
cross-checks, never written back into a document.
"""

from __future__ import annotations

import logging
from decimal import Decimal

import pandas as pd

from ublconv.constants import EXT_TAX_CATEGORY

log = logging.getLogger(__name__)

LINE_COLUMNS = [
    "index",
    "name",
    "quantity",
    "unit",
    "price",
    "sum",
    "total",
    "tax_category",
    "percent",
]

TAX_COLUMNS = ["scheme", "category", "percent", "base", "amount"]


def lines_frame(invoice) -> pd.DataFrame:
    rows = []
    for line in invoice.lines:
        item = line.item
        combo = line.taxes[0] if line.taxes else None
        rows.append(
            {
                "index": line.index,
                "name": item.name if item else "",
                "quantity": line.quantity,
                "unit": item.unit if item else "",
                "price": item.price if item else None,
                "sum": line.sum,
                "total": line.total,
                "tax_category": (combo.ext or {}).get(EXT_TAX_CATEGORY, "") if combo else "",
                "percent": combo.percent if combo else None,
            }
        )
    return pd.DataFrame(rows, columns=LINE_COLUMNS)


def tax_frame(invoice) -> pd.DataFrame:
    rows = []
    taxes = invoice.totals.taxes if invoice.totals is not None else None
    for cat in taxes.categories if taxes is not None else []:
        for rate in cat.rates:
            rows.append(
                {
                    "scheme": cat.code,
                    "category": (rate.ext or {}).get(EXT_TAX_CATEGORY, ""),
                    "percent": rate.percent,
                    "base": rate.base,
                    "amount": rate.amount,
                }
            )
    return pd.DataFrame(rows, columns=TAX_COLUMNS)


def totals_by_category(invoice) -> pd.DataFrame:
    """Sum of line totals per ``(tax_category, percent)``.

    Lines without a tax entry are grouped under an empty category.  The
    percent column holds ``""`` for exempt rates so that groupby keeps them.
    """
    df = lines_frame(invoice)
    if df.empty:
        return pd.DataFrame(columns=["tax_category", "percent", "total"])
    df["percent"] = df["percent"].map(lambda p: "" if p is None or pd.isna(p) else str(p))
    df["total"] = df["total"].map(lambda v: v if v is not None else Decimal("0"))
    grouped = (
        df.groupby(["tax_category", "percent"], sort=True)["total"]
        .apply(lambda s: sum(s, Decimal("0")))
        .reset_index()
    )
    log.debug("Grouped %d lines into %d tax groups", len(df), len(grouped))
    return grouped
