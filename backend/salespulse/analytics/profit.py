"""
Profit analytics: profit per calendar period, per product category and
overall, over non-cancelled sales.

Per-sale profit follows the same precedence as the seller leaderboard
(explicit profit, then line items, then the flat fallback rate). A sale's
cost is what remains of its total once that profit is taken out.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from salespulse.analytics.metrics import safe_ratio
from salespulse.analytics.periods import Granularity, bucket_keys, parse_granularity
from salespulse.analytics.ranking import UNKNOWN_KEY, estimate_profit
from salespulse.core.config import AnalyticsSettings, settings as default_settings
from salespulse.normalization.records import SaleRecord, SaleStatus

logger = logging.getLogger(__name__)


@dataclass
class ProfitPeriod:
    """Profit figures for one calendar bucket."""
    key: str
    total_sales: float
    total_profit: float
    total_cost: float
    sale_count: int
    average_profit: float
    average_margin: float   # mean of per-sale margins, in percent

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProfitSummary:
    """Profit figures over the whole slice."""
    total_profit: float = 0.0
    total_revenue: float = 0.0
    sale_count: int = 0
    average_profit: float = 0.0
    average_margin: float = 0.0
    profitable_sales: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CategoryProfit:
    """Line-item profit for one product category."""
    category: str
    total_profit: float
    line_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ProfitAnalyzer:
    """Break profit down by period and by product category."""

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or default_settings

    def sale_profit(self, sale: SaleRecord) -> float:
        return estimate_profit(sale.profit, sale.items, sale.total_amount, self.settings.FALLBACK_PROFIT_RATE)

    def by_period(
        self,
        sales: Iterable[SaleRecord],
        granularity: Union[Granularity, str, None] = None
    ) -> List[ProfitPeriod]:
        """
        Profit per calendar bucket, ascending by key.

        Args:
            sales: Normalized sales; cancelled and undated ones are left out
            granularity: day, week, month or year (default from settings)

        Returns:
            ProfitPeriod list
        """
        granularity = parse_granularity(granularity or self.settings.DEFAULT_GRANULARITY)
        frame = self._sale_frame([s for s in self._counted(sales) if s.is_dated])
        if frame.empty:
            return []

        frame["key"] = bucket_keys(pd.to_datetime(frame["moment"]), granularity, self.settings.WEEK_START)
        grouped = frame.groupby("key", sort=True).agg(
            total_sales=("total", "sum"),
            total_profit=("profit", "sum"),
            sale_count=("profit", "size"),
            average_profit=("profit", "mean"),
            average_margin=("margin", "mean")
        )

        return [
            ProfitPeriod(
                key=str(key),
                total_sales=float(row["total_sales"]),
                total_profit=float(row["total_profit"]),
                total_cost=float(row["total_sales"] - row["total_profit"]),
                sale_count=int(row["sale_count"]),
                average_profit=round(float(row["average_profit"]), 2),
                average_margin=round(float(row["average_margin"]), 2)
            )
            for key, row in grouped.iterrows()
        ]

    def summarize(self, sales: Iterable[SaleRecord]) -> ProfitSummary:
        """Totals, averages and the number of sales that made a profit."""
        frame = self._sale_frame(self._counted(sales))
        if frame.empty:
            return ProfitSummary()

        return ProfitSummary(
            total_profit=float(frame["profit"].sum()),
            total_revenue=float(frame["total"].sum()),
            sale_count=len(frame),
            average_profit=round(float(frame["profit"].mean()), 2),
            average_margin=round(float(frame["margin"].mean()), 2),
            profitable_sales=int((frame["profit"] > 0).sum())
        )

    def by_category(self, sales: Iterable[SaleRecord]) -> List[CategoryProfit]:
        """Line-item profit per product category, largest first; ties keep first-seen order."""
        rows = [
            {"category": item.product_category or UNKNOWN_KEY, "profit": item.profit}
            for sale in self._counted(sales)
            for item in sale.items
        ]
        if not rows:
            return []

        grouped = pd.DataFrame(rows).groupby("category", sort=False).agg(
            total_profit=("profit", "sum"),
            line_count=("profit", "size")
        )
        grouped = grouped.sort_values("total_profit", ascending=False, kind="stable")

        return [
            CategoryProfit(
                category=str(category),
                total_profit=float(row["total_profit"]),
                line_count=int(row["line_count"])
            )
            for category, row in grouped.iterrows()
        ]

    def analyze(
        self,
        sales: List[SaleRecord],
        granularity: Union[Granularity, str, None] = None
    ) -> Dict[str, Any]:
        logger.debug("Profit analysis over %d sales", len(sales))
        return {
            "by_period": [p.to_dict() for p in self.by_period(sales, granularity)],
            "by_category": [c.to_dict() for c in self.by_category(sales)],
            "summary": self.summarize(sales).to_dict()
        }

    @staticmethod
    def _counted(sales: Iterable[SaleRecord]) -> List[SaleRecord]:
        return [s for s in sales if s.status != SaleStatus.CANCELLED.value]

    def _sale_frame(self, sales: List[SaleRecord]) -> pd.DataFrame:
        rows = []
        for sale in sales:
            profit = self.sale_profit(sale)
            rows.append({
                "moment": sale.created_at,
                "total": sale.total_amount,
                "profit": profit,
                "margin": safe_ratio(profit, sale.total_amount) * 100
            })
        return pd.DataFrame(rows, columns=["moment", "total", "profit", "margin"])
