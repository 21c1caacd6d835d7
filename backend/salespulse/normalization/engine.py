"""Record normalizer: raw sale, payment and expense documents to canonical records."""
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from salespulse.core.config import AnalyticsSettings, settings as default_settings
from salespulse.normalization.records import (
    ExpenseRecord,
    LineItem,
    PaymentMethod,
    PaymentRecord,
    SaleRecord,
    SaleStatus,
    SellerStat,
)

logger = logging.getLogger(__name__)

# Date strings must start with a complete calendar date
_FULL_DATE = re.compile(r"^\s*\d{4}-\d{2}-\d{2}")

_METHOD_ALIASES = {
    "cash": PaymentMethod.CASH,
    "mobilemoney": PaymentMethod.MOBILE_MONEY,
    "mobile_money": PaymentMethod.MOBILE_MONEY,
    "mobile-money": PaymentMethod.MOBILE_MONEY,
    "mobile money": PaymentMethod.MOBILE_MONEY,
    "momo": PaymentMethod.MOBILE_MONEY,
    "credit": PaymentMethod.CREDIT,
}


@dataclass
class NormalizationResult:
    """Canonical records plus what was dropped or coerced on the way."""
    sales: List[SaleRecord] = field(default_factory=list)
    payments: List[PaymentRecord] = field(default_factory=list)
    expenses: List[ExpenseRecord] = field(default_factory=list)
    skipped: Dict[str, int] = field(default_factory=lambda: {"sales": 0, "payments": 0, "expenses": 0})
    warnings: List[str] = field(default_factory=list)

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_counts": {
                "sales": len(self.sales),
                "payments": len(self.payments),
                "expenses": len(self.expenses)
            },
            "skipped": dict(self.skipped),
            "skipped_total": self.skipped_total,
            "warnings": list(self.warnings)
        }


class RecordNormalizer:
    """
    Turn heterogeneous raw documents into SaleRecord, PaymentRecord and
    ExpenseRecord values.

    Never raises on bad data. Missing or non-numeric amounts become 0,
    missing or unparseable dates become None. Records without a date are
    kept (they still count for status and rankings) but are reported in
    `skipped` because the bucketer will leave them out.
    """

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or default_settings

    def normalize(
        self,
        sales: Optional[Iterable[Dict[str, Any]]] = None,
        payments: Optional[Iterable[Dict[str, Any]]] = None,
        expenses: Optional[Iterable[Dict[str, Any]]] = None
    ) -> NormalizationResult:
        """
        Normalize one aggregation run's worth of raw records.

        Args:
            sales: Raw sale documents
            payments: Raw standalone payment documents. When None, the
                payments embedded in the sales are used instead.
            expenses: Raw expense documents

        Returns:
            NormalizationResult with records, skipped counts and warnings
        """
        result = NormalizationResult()

        if payments is not None:
            result.payments = self._normalize_payments(payments, result.warnings)

        payment_index = {p.id: p for p in result.payments if p.id is not None}
        result.sales = self._normalize_sales(sales or [], payment_index, result.warnings)

        if payments is None:
            result.payments = [p for sale in result.sales for p in sale.payments]

        result.expenses = self._normalize_expenses(expenses or [], result.warnings)

        result.skipped["sales"] = sum(1 for s in result.sales if not s.is_dated)
        result.skipped["payments"] = sum(1 for p in result.payments if not p.is_dated)
        result.skipped["expenses"] = sum(1 for e in result.expenses if not e.is_dated)

        if result.skipped_total:
            logger.warning(
                "Records without a usable date left out of bucketing: %d sales, %d payments, %d expenses",
                result.skipped["sales"], result.skipped["payments"], result.skipped["expenses"]
            )
        logger.debug(
            "Normalized %d sales, %d payments, %d expenses (%d warnings)",
            len(result.sales), len(result.payments), len(result.expenses), len(result.warnings)
        )

        return result

    def normalize_sales(self, sales: Iterable[Dict[str, Any]]) -> List[SaleRecord]:
        return self._normalize_sales(sales, {}, [])

    def normalize_payments(self, payments: Iterable[Dict[str, Any]]) -> List[PaymentRecord]:
        return self._normalize_payments(payments, [])

    def normalize_expenses(self, expenses: Iterable[Dict[str, Any]]) -> List[ExpenseRecord]:
        return self._normalize_expenses(expenses, [])

    def normalize_seller_stats(self, stats: Iterable[Dict[str, Any]]) -> List[SellerStat]:
        """
        Normalize per-seller aggregates ({userName, totalAmount, totalProfit?,
        products?}) as served by the seller statistics endpoint.
        """
        warnings: List[str] = []
        records = []
        for position, raw in enumerate(stats):
            if not isinstance(raw, dict):
                continue

            seller_id = self._to_id(self._first(raw, "userId", "_id", "user"))
            label = f"Seller {seller_id or '#' + str(position)}"
            name = raw.get("userName") or raw.get("name")

            total_profit = None
            if raw.get("totalProfit") is not None:
                total_profit = self._to_number(raw.get("totalProfit"), f"{label} totalProfit", warnings)

            records.append(SellerStat(
                seller_id=seller_id,
                seller_name=str(name) if name else None,
                total_amount=self._to_amount(raw.get("totalAmount"), f"{label} totalAmount", warnings),
                sale_count=int(self._to_amount(self._first(raw, "salesCount", "count"), f"{label} count", warnings)),
                total_profit=total_profit,
                items=tuple(
                    self._normalize_line_item(item, label, warnings)
                    for item in (raw.get("products") or [])
                    if isinstance(item, dict)
                )
            ))

        if warnings:
            logger.warning("Seller statistics coerced with %d warnings", len(warnings))
        return records

    # =========================================================================
    # PER-KIND NORMALIZATION
    # =========================================================================

    def _normalize_sales(
        self,
        raw_sales: Iterable[Dict[str, Any]],
        payment_index: Dict[str, PaymentRecord],
        warnings: List[str]
    ) -> List[SaleRecord]:
        records = []

        for position, raw in enumerate(raw_sales):
            if not isinstance(raw, dict):
                warnings.append(f"Sale #{position}: not a document, ignored")
                continue

            sale_id = self._to_id(raw.get("_id", raw.get("id")))
            label = f"Sale {sale_id or '#' + str(position)}"

            created_at = self._parse_date(self._first(raw, "createdAt", "saleDate"), label, warnings)
            total_amount = self._to_amount(raw.get("totalAmount"), f"{label} totalAmount", warnings)

            items = tuple(
                self._normalize_line_item(item, label, warnings)
                for item in (raw.get("products") or [])
                if isinstance(item, dict)
            )

            client_id, client_name = self._ref(raw.get("client"))
            seller_id, seller_name = self._ref(raw.get("user"))

            sale_payments = []
            for entry in raw.get("payments") or []:
                if isinstance(entry, dict):
                    sale_payments.append(self._normalize_payment(entry, label, warnings, sale_id=sale_id))
                else:
                    ref = self._to_id(entry)
                    if ref in payment_index:
                        sale_payments.append(payment_index[ref])
                    else:
                        warnings.append(f"{label}: payment {ref} not found, counted as 0")

            profit = None
            if raw.get("profit") is not None:
                profit = self._to_number(raw.get("profit"), f"{label} profit", warnings)

            records.append(SaleRecord(
                id=sale_id,
                created_at=created_at,
                total_amount=total_amount,
                items=items,
                status=self._to_status(raw.get("status")),
                client_id=client_id,
                client_name=client_name,
                seller_id=seller_id,
                seller_name=seller_name,
                payments=tuple(sale_payments),
                profit=profit
            ))

        return records

    def _normalize_line_item(self, raw: Dict[str, Any], label: str, warnings: List[str]) -> LineItem:
        product = raw.get("product", raw.get("productId"))
        product_id, product_name = self._ref(product)

        cost = None
        if isinstance(product, dict) and product.get("costPrice") is not None:
            cost = self._to_amount(product.get("costPrice"), f"{label} costPrice", warnings)
        elif raw.get("costPrice") is not None:
            cost = self._to_amount(raw.get("costPrice"), f"{label} costPrice", warnings)

        category = product.get("category") if isinstance(product, dict) else raw.get("category")

        return LineItem(
            product_id=product_id,
            product_name=product_name,
            product_category=str(category).strip() if category else None,
            quantity=self._to_amount(raw.get("quantity"), f"{label} quantity", warnings),
            price_at_sale=self._to_amount(
                self._first(raw, "priceAtSale", "sellingPrice"), f"{label} priceAtSale", warnings
            ),
            cost_price=cost
        )

    def _normalize_payments(
        self,
        raw_payments: Iterable[Dict[str, Any]],
        warnings: List[str]
    ) -> List[PaymentRecord]:
        records = []
        for position, raw in enumerate(raw_payments):
            if not isinstance(raw, dict):
                warnings.append(f"Payment #{position}: not a document, ignored")
                continue
            records.append(self._normalize_payment(raw, f"Payment #{position}", warnings))
        return records

    def _normalize_payment(
        self,
        raw: Dict[str, Any],
        label: str,
        warnings: List[str],
        sale_id: Optional[str] = None
    ) -> PaymentRecord:
        payment_id = self._to_id(raw.get("_id", raw.get("id")))
        if payment_id:
            label = f"Payment {payment_id}"

        sale_ref, _ = self._ref(self._first(raw, "sale", "saleId"))
        user_ref, _ = self._ref(raw.get("user"))

        return PaymentRecord(
            id=payment_id,
            amount=self._to_amount(raw.get("amount"), f"{label} amount", warnings),
            payment_date=self._parse_date(self._first(raw, "paymentDate", "createdAt"), label, warnings),
            method=self._to_method(raw.get("method")),
            sale_id=sale_ref or sale_id,
            user_id=user_ref
        )

    def _normalize_expenses(
        self,
        raw_expenses: Iterable[Dict[str, Any]],
        warnings: List[str]
    ) -> List[ExpenseRecord]:
        records = []
        for position, raw in enumerate(raw_expenses):
            if not isinstance(raw, dict):
                warnings.append(f"Expense #{position}: not a document, ignored")
                continue

            expense_id = self._to_id(raw.get("_id", raw.get("id")))
            label = f"Expense {expense_id or '#' + str(position)}"
            supplier_id, _ = self._ref(raw.get("supplier"))
            category = raw.get("category")

            records.append(ExpenseRecord(
                id=expense_id,
                amount=self._to_amount(raw.get("amount"), f"{label} amount", warnings),
                created_at=self._parse_date(self._first(raw, "createdAt", "date"), label, warnings),
                category=str(category).strip() if category else "other",
                supplier_id=supplier_id,
                description=raw.get("description")
            ))
        return records

    # =========================================================================
    # FIELD COERCION
    # =========================================================================

    def _to_number(self, value: Any, label: str, warnings: List[str]) -> float:
        """Coerce to float; missing is 0 silently, garbage is 0 with a warning."""
        if value is None or value == "":
            return 0.0
        if isinstance(value, bool):
            warnings.append(f"{label}: boolean {value!r} is not an amount, treated as 0")
            return 0.0
        try:
            number = float(pd.to_numeric(value, errors="coerce"))
        except (TypeError, ValueError):
            number = math.nan
        if math.isnan(number) or math.isinf(number):
            warnings.append(f"{label}: non-numeric value {value!r} treated as 0")
            return 0.0
        return number

    def _to_amount(self, value: Any, label: str, warnings: List[str]) -> float:
        """Like _to_number, but negative values are also treated as 0."""
        number = self._to_number(value, label, warnings)
        if number < 0:
            warnings.append(f"{label}: negative value {number} treated as 0")
            return 0.0
        return number

    def _parse_date(self, value: Any, label: str, warnings: List[str]) -> Optional[datetime]:
        """
        Parse to a naive datetime in the configured timezone.

        Aware inputs are converted to TIMEZONE; naive inputs are taken to be
        in TIMEZONE already. Numbers are epoch milliseconds. Strings must be
        ISO 8601 with a full year-month-day; partial strings such as "10:30"
        or "March" are rejected rather than completed from today's date.
        """
        if isinstance(value, dict):
            value = value.get("$date")
        if value is None or value == "":
            return None

        try:
            if isinstance(value, (list, tuple, set, bool)):
                stamp = pd.NaT
            elif isinstance(value, (int, float)):
                stamp = pd.to_datetime(value, unit="ms", errors="coerce", utc=True)
            elif isinstance(value, str):
                if _FULL_DATE.match(value):
                    stamp = pd.to_datetime(value.strip(), errors="coerce", format="ISO8601")
                else:
                    stamp = pd.NaT
            else:
                stamp = pd.to_datetime(value, errors="coerce")
        except (TypeError, ValueError, OverflowError):
            stamp = pd.NaT

        if not pd.isna(stamp) and stamp.tzinfo is not None:
            stamp = stamp.tz_convert(self.settings.TIMEZONE).tz_localize(None)

        # Keys and bucketing assume nanosecond-range timestamps
        if pd.isna(stamp) or not pd.Timestamp.min <= stamp <= pd.Timestamp.max:
            warnings.append(f"{label}: unparseable date {value!r}, left out of time buckets")
            return None

        return stamp.to_pydatetime()

    def _to_status(self, value: Any) -> str:
        if value is None or str(value).strip() == "":
            return SaleStatus.PENDING.value
        return str(value).strip().lower()

    def _to_method(self, value: Any) -> PaymentMethod:
        if value is None:
            return PaymentMethod.OTHER
        return _METHOD_ALIASES.get(str(value).strip().lower(), PaymentMethod.OTHER)

    def _ref(self, value: Any) -> Tuple[Optional[str], Optional[str]]:
        """(id, display name) from a populated document or a bare identifier."""
        if value is None:
            return None, None
        if isinstance(value, dict):
            name = value.get("name") or value.get("userName")
            return self._to_id(value.get("_id", value.get("id"))), (str(name) if name else None)
        return self._to_id(value), None

    @staticmethod
    def _to_id(value: Any) -> Optional[str]:
        if isinstance(value, dict):
            value = value.get("$oid")
        if value is None or value == "":
            return None
        return str(value)

    @staticmethod
    def _first(raw: Dict[str, Any], *keys: str) -> Any:
        for key in keys:
            value = raw.get(key)
            if value is not None and value != "":
                return value
        return None
