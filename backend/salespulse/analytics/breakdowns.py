"""Breakdowns of collected cash by payment method and of spending by expense category."""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

import pandas as pd

from salespulse.normalization.records import ExpenseRecord, PaymentRecord


@dataclass
class CategoryBreakdown:
    """Totals per category of one field, largest first."""
    category_field: str                   # e.g. "method", "category"
    breakdown: List[Dict[str, Any]]       # [{name, value, count, pct}, ...]
    total: float
    top_contributor: str
    concentration: float                  # top-3 share of the total

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _breakdown(category_field: str, rows: List[Dict[str, Any]]) -> CategoryBreakdown:
    if not rows:
        return CategoryBreakdown(
            category_field=category_field,
            breakdown=[],
            total=0.0,
            top_contributor="",
            concentration=0.0
        )

    frame = pd.DataFrame(rows)
    grouped = frame.groupby("name", sort=False).agg(value=("value", "sum"), count=("value", "size"))
    # Stable so equal totals keep first-seen order
    grouped = grouped.sort_values("value", ascending=False, kind="stable")

    total = float(grouped["value"].sum())
    breakdown = [
        {
            "name": str(name),
            "value": float(row["value"]),
            "count": int(row["count"]),
            "pct": round(float(row["value"]) / total * 100, 2) if total > 0 else 0.0
        }
        for name, row in grouped.iterrows()
    ]
    top_3_share = float(grouped["value"].head(3).sum()) / total if total > 0 else 0.0

    return CategoryBreakdown(
        category_field=category_field,
        breakdown=breakdown,
        total=total,
        top_contributor=breakdown[0]["name"],
        concentration=round(top_3_share, 3)
    )


def payment_method_breakdown(payments: Iterable[PaymentRecord]) -> CategoryBreakdown:
    """Collected amount, payment count and share per payment method."""
    rows = [{"name": p.method.value, "value": p.amount} for p in payments]
    return _breakdown("method", rows)


def expense_category_breakdown(expenses: Iterable[ExpenseRecord]) -> CategoryBreakdown:
    """Spent amount, expense count and share per expense category."""
    rows = [{"name": e.category, "value": e.amount} for e in expenses]
    return _breakdown("category", rows)
