"""
Sales insights: client segmentation, amount anomalies, headline KPIs and
best days.

Anything that depends on "now" (client recency) takes the reference date
as an argument; nothing here reads the wall clock.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from salespulse.analytics.metrics import safe_ratio
from salespulse.analytics.periods import Granularity, bucket_keys
from salespulse.analytics.trends import round_half_up
from salespulse.core.config import AnalyticsSettings, settings as default_settings
from salespulse.normalization.records import ExpenseRecord, PaymentRecord, SaleRecord, SaleStatus

logger = logging.getLogger(__name__)


class ClientSegment(str, Enum):
    """Client segment, checked in this order."""
    VIP = "vip"
    LOYAL = "loyal"
    INACTIVE = "inactive"
    NEW = "new"


@dataclass
class ClientProfile:
    """Purchase history of one client, with its segment."""
    client_id: str
    name: str
    total_spent: float
    purchase_count: int
    average_purchase: float
    last_purchase: datetime
    last_payment: Optional[datetime]
    recency_days: int                   # whole days since last purchase
    last_payment_recency: Optional[int]
    segment: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["last_purchase"] = self.last_purchase.isoformat()
        d["last_payment"] = self.last_payment.isoformat() if self.last_payment else None
        return d


@dataclass
class AmountAnomaly:
    """A sale whose amount is far from the mean."""
    sale_id: Optional[str]
    total_amount: float
    z_score: float
    deviation_pct: int                  # distance from the mean, as % of the mean

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AdvancedKPIs:
    conversion_rate: float = 0.0              # % of known clients with a completed sale
    average_transaction_value: float = 0.0
    customer_lifetime_value: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BestDay:
    """The calendar day with the highest total for one kind of record."""
    date: str
    total_amount: float
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class InsightAnalyzer:
    """Client, anomaly and KPI views over a slice of sales."""

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or default_settings

    # =========================================================================
    # CLIENT SEGMENTATION
    # =========================================================================

    def segment_clients(self, sales: Iterable[SaleRecord], reference_date: datetime) -> List[ClientProfile]:
        """
        Profile every client with at least one dated sale and assign a segment.

        Args:
            sales: Normalized sales; sales without a client or a date are ignored
            reference_date: "Now" for recency

        Returns:
            ClientProfile list, biggest spenders first (ties in first-seen order)
        """
        rows = []
        for sale in sales:
            if sale.client_id is None or not sale.is_dated:
                continue
            paid_on = [p.payment_date for p in sale.payments if p.is_dated]
            rows.append({
                "client_id": sale.client_id,
                "name": sale.client_name or self.settings.UNKNOWN_CLIENT_LABEL,
                "amount": sale.total_amount,
                "purchased": sale.created_at,
                "paid": max(paid_on) if paid_on else None
            })

        if not rows:
            return []

        frame = pd.DataFrame(rows)
        frame["purchased"] = pd.to_datetime(frame["purchased"])
        frame["paid"] = pd.to_datetime(frame["paid"])
        grouped = frame.groupby("client_id", sort=False).agg(
            name=("name", "first"),
            total_spent=("amount", "sum"),
            purchase_count=("amount", "size"),
            last_purchase=("purchased", "max"),
            last_payment=("paid", "max")
        )
        grouped = grouped.sort_values("total_spent", ascending=False, kind="stable")

        profiles = []
        for client_id, row in grouped.iterrows():
            last_purchase = row["last_purchase"].to_pydatetime()
            last_payment = None if pd.isna(row["last_payment"]) else row["last_payment"].to_pydatetime()
            recency = (reference_date - last_purchase) // timedelta(days=1)
            count = int(row["purchase_count"])
            total = float(row["total_spent"])

            profiles.append(ClientProfile(
                client_id=str(client_id),
                name=str(row["name"]),
                total_spent=total,
                purchase_count=count,
                average_purchase=safe_ratio(total, count),
                last_purchase=last_purchase,
                last_payment=last_payment,
                recency_days=recency,
                last_payment_recency=(
                    (reference_date - last_payment) // timedelta(days=1) if last_payment else None
                ),
                segment=self.classify_client(count, total, recency).value
            ))

        return profiles

    def classify_client(self, purchase_count: int, total_spent: float, recency_days: int) -> ClientSegment:
        s = self.settings
        if purchase_count > s.VIP_MIN_PURCHASES and total_spent > s.VIP_MIN_SPEND:
            return ClientSegment.VIP
        if purchase_count > s.LOYAL_MIN_PURCHASES and recency_days < s.LOYAL_MAX_RECENCY_DAYS:
            return ClientSegment.LOYAL
        if recency_days > s.INACTIVE_MIN_RECENCY_DAYS:
            return ClientSegment.INACTIVE
        return ClientSegment.NEW

    # =========================================================================
    # ANOMALIES
    # =========================================================================

    def detect_anomalies(self, sales: Sequence[SaleRecord]) -> List[AmountAnomaly]:
        """
        Sales whose amount lies more than ANOMALY_Z_THRESHOLD population
        standard deviations from the mean of positive amounts.

        Needs at least ANOMALY_MIN_SALES sales; fewer gives no anomalies.
        """
        if len(sales) < self.settings.ANOMALY_MIN_SALES:
            return []

        amounts = np.array([s.total_amount for s in sales], dtype=float)
        positive = amounts[amounts > 0]
        if len(positive) == 0:
            return []

        mean = float(positive.mean())
        std = float(positive.std()) or 1.0
        z_scores = (amounts - mean) / std

        anomalies = []
        for sale, z in zip(sales, z_scores):
            if abs(z) > self.settings.ANOMALY_Z_THRESHOLD:
                anomalies.append(AmountAnomaly(
                    sale_id=sale.id,
                    total_amount=sale.total_amount,
                    z_score=round(float(z), 2),
                    deviation_pct=round_half_up((sale.total_amount - mean) / (mean or 1.0) * 100)
                ))

        if anomalies:
            logger.info("Flagged %d of %d sales as amount anomalies", len(anomalies), len(sales))
        return anomalies

    # =========================================================================
    # KPIs
    # =========================================================================

    def advanced_kpis(self, sales: Sequence[SaleRecord], client_count: Optional[int] = None) -> AdvancedKPIs:
        """
        Conversion rate, average completed transaction and revenue per
        converted client.

        Args:
            sales: Normalized sales
            client_count: Size of the client base. None counts the distinct
                clients appearing in `sales`.
        """
        completed = [s for s in sales if s.status == SaleStatus.COMPLETED.value]
        revenue = sum(s.total_amount for s in completed)
        converted = {s.client_id for s in completed if s.client_id is not None}

        if client_count is None:
            client_count = len({s.client_id for s in sales if s.client_id is not None})

        return AdvancedKPIs(
            conversion_rate=safe_ratio(len(converted), client_count) * 100,
            average_transaction_value=safe_ratio(revenue, len(completed)),
            customer_lifetime_value=safe_ratio(revenue, len(converted))
        )

    # =========================================================================
    # BEST DAYS
    # =========================================================================

    def best_days(
        self,
        sales: Iterable[SaleRecord],
        payments: Iterable[PaymentRecord],
        expenses: Iterable[ExpenseRecord]
    ) -> Dict[str, Optional[BestDay]]:
        """
        Day with the highest sales, collected and spent amounts.

        Cancelled sales and payments made against them are left out. On a
        tie the earliest day wins. A kind with no dated records gives None.
        """
        sales = list(sales)
        cancelled = {s.id for s in sales if s.status == SaleStatus.CANCELLED.value and s.id is not None}
        counted_sales = [s for s in sales if s.status != SaleStatus.CANCELLED.value]

        return {
            "sales": self._best_day((s.created_at, s.total_amount) for s in counted_sales),
            "payments": self._best_day(
                (p.payment_date, p.amount) for p in payments if p.sale_id not in cancelled
            ),
            "expenses": self._best_day((e.created_at, e.amount) for e in expenses)
        }

    def _best_day(self, entries: Iterable) -> Optional[BestDay]:
        frame = pd.DataFrame(
            [(moment, amount) for moment, amount in entries if moment is not None],
            columns=["moment", "amount"]
        )
        if frame.empty:
            return None

        frame["key"] = bucket_keys(pd.to_datetime(frame["moment"]), Granularity.DAY, self.settings.WEEK_START)
        daily = frame.groupby("key", sort=True).agg(total=("amount", "sum"), count=("amount", "size"))
        best = daily["total"].idxmax()

        return BestDay(
            date=str(best),
            total_amount=float(daily.loc[best, "total"]),
            count=int(daily.loc[best, "count"])
        )

    def analyze(
        self,
        sales: List[SaleRecord],
        payments: List[PaymentRecord],
        expenses: List[ExpenseRecord],
        reference_date: Optional[datetime] = None,
        client_count: Optional[int] = None
    ) -> Dict[str, Any]:
        """All insights as plain data. Client profiles need a reference date."""
        clients = self.segment_clients(sales, reference_date) if reference_date is not None else []
        return {
            "clients": [c.to_dict() for c in clients],
            "anomalies": [a.to_dict() for a in self.detect_anomalies(sales)],
            "kpis": self.advanced_kpis(sales, client_count).to_dict(),
            "best_days": {
                kind: (day.to_dict() if day else None)
                for kind, day in self.best_days(sales, payments, expenses).items()
            }
        }
