"""
Ranking engine: ordered top-N / bottom-N summaries over products,
clients and sellers.

Groups are keyed by stable identifiers, never by display names, so two
distinct products called "Rice 25kg" do not merge. Names are carried
along for presentation only. Ordering is stable: equal values keep the
order in which their groups were first seen.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from salespulse.core.config import AnalyticsSettings, settings as default_settings
from salespulse.normalization.records import LineItem, SaleRecord, SellerStat

logger = logging.getLogger(__name__)

UNKNOWN_KEY = "unknown"

DIRECTIONS = ("desc", "asc")
PRODUCT_MEASURES = ("revenue", "quantity", "profit")
SELLER_MEASURES = ("sales", "profit")


@dataclass
class RankedEntity:
    """One ranked group."""
    key: str
    name: str
    value: float   # the ranking measure (revenue, spend, profit, ...)
    count: float   # secondary count (quantity sold, purchases, sales)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def estimate_profit(
    explicit_profit: Optional[float],
    items: Sequence[LineItem],
    total_amount: float,
    fallback_rate: float
) -> float:
    """
    Profit with the dashboards' precedence:

    1. an explicit profit figure, when one was recorded
    2. per line item (price_at_sale - cost_price) x quantity, unknown cost
       counting as 0 so profit equals revenue
    3. a flat fallback_rate of total_amount when there are no line items
    """
    if explicit_profit is not None:
        return explicit_profit
    if items:
        return sum(item.profit for item in items)
    return total_amount * fallback_rate


class RankingEngine:
    """Aggregate records by group and rank the groups."""

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or default_settings

    def rank(
        self,
        records: Iterable[Any],
        key_fn: Callable[[Any], Optional[str]],
        measure_fn: Callable[[Any], float],
        n: Optional[int] = None,
        direction: str = "desc",
        label_fn: Optional[Callable[[Any], Optional[str]]] = None,
        count_fn: Optional[Callable[[Any], float]] = None
    ) -> List[RankedEntity]:
        """
        Group records, sum a measure per group and order the groups.

        Args:
            records: Any records
            key_fn: Group identifier; None groups under "unknown"
            measure_fn: Value summed per group and ranked on
            n: Keep the first n groups (None keeps all)
            direction: "desc" for top-N, "asc" for bottom-N
            label_fn: Display name per record; first non-empty one wins
            count_fn: Secondary count per record (default 1 per record)

        Returns:
            RankedEntity list, ties in first-seen group order
        """
        ordered = self._order(self.aggregate(records, key_fn, measure_fn, label_fn, count_fn), direction)
        return self._head(ordered, n)

    def aggregate(
        self,
        records: Iterable[Any],
        key_fn: Callable[[Any], Optional[str]],
        measure_fn: Callable[[Any], float],
        label_fn: Optional[Callable[[Any], Optional[str]]] = None,
        count_fn: Optional[Callable[[Any], float]] = None
    ) -> List[RankedEntity]:
        """Per-group totals in first-seen group order."""
        rows = []
        for record in records:
            key = key_fn(record)
            rows.append({
                "key": key if key is not None else UNKNOWN_KEY,
                "name": label_fn(record) if label_fn else None,
                "value": measure_fn(record),
                "count": count_fn(record) if count_fn else 1
            })

        if not rows:
            return []

        frame = pd.DataFrame(rows)
        grouped = frame.groupby("key", sort=False).agg(
            name=("name", "first"),
            value=("value", "sum"),
            count=("count", "sum")
        )

        return [
            RankedEntity(
                key=str(key),
                name=str(row["name"]) if pd.notna(row["name"]) else str(key),
                value=float(row["value"]),
                count=float(row["count"])
            )
            for key, row in grouped.iterrows()
        ]

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    def top_products(
        self,
        sales: Iterable[SaleRecord],
        n: Optional[int] = None,
        measure: str = "revenue",
        direction: str = "desc"
    ) -> List[RankedEntity]:
        """Products by revenue (price at sale x quantity), quantity or profit."""
        ordered = self._order(self._product_totals(sales, measure), direction)
        return self._head(ordered, self._n(n))

    def bottom_products(
        self,
        sales: Iterable[SaleRecord],
        n: Optional[int] = None,
        measure: str = "revenue"
    ) -> List[RankedEntity]:
        """The last n of the descending ranking, still in descending order."""
        n = self._n(n)
        ordered = self._order(self._product_totals(sales, measure), "desc")
        return ordered[-n:] if n else []

    def product_panel(self, sales: Sequence[SaleRecord], n: Optional[int] = None) -> Dict[str, Any]:
        """Top and low products by revenue plus the number of distinct products."""
        totals = self._order(self._product_totals(sales, "revenue"), "desc")
        n = self._n(n)
        return {
            "top": [e.to_dict() for e in totals[:n]],
            "low": [e.to_dict() for e in (totals[-n:] if n else [])],
            "total": len(totals)
        }

    def _product_totals(self, sales: Iterable[SaleRecord], measure: str) -> List[RankedEntity]:
        if measure not in PRODUCT_MEASURES:
            raise ValueError(f"Unknown product measure {measure!r}; expected one of {PRODUCT_MEASURES}")

        measure_fn = {
            "revenue": lambda item: item.revenue,
            "quantity": lambda item: item.quantity,
            "profit": lambda item: item.profit,
        }[measure]

        items = [item for sale in sales for item in sale.items]
        return self.aggregate(
            items,
            key_fn=lambda item: item.product_id,
            measure_fn=measure_fn,
            label_fn=lambda item: item.product_name or self.settings.UNKNOWN_PRODUCT_LABEL,
            count_fn=lambda item: item.quantity
        )

    # =========================================================================
    # CLIENTS
    # =========================================================================

    def top_clients(self, sales: Iterable[SaleRecord], n: Optional[int] = None) -> List[RankedEntity]:
        """Clients by total spend; count is the number of purchases."""
        return self._head(self._order(self._client_totals(sales), "desc"), self._n(n))

    def inactive_clients(self, sales: Iterable[SaleRecord], n: Optional[int] = None) -> List[RankedEntity]:
        """Clients with exactly one purchase in the slice, biggest spenders first."""
        ordered = self._order(self._client_totals(sales), "desc")
        return self._head([c for c in ordered if c.count == 1], self._n(n))

    def client_panel(self, sales: Sequence[SaleRecord], n: Optional[int] = None) -> Dict[str, Any]:
        ordered = self._order(self._client_totals(sales), "desc")
        n = self._n(n)
        return {
            "top": [c.to_dict() for c in ordered[:n]],
            "inactive": [c.to_dict() for c in [c for c in ordered if c.count == 1][:n]],
            "total": len(ordered)
        }

    def _client_totals(self, sales: Iterable[SaleRecord]) -> List[RankedEntity]:
        return self.aggregate(
            sales,
            key_fn=lambda sale: sale.client_id,
            measure_fn=lambda sale: sale.total_amount,
            label_fn=lambda sale: sale.client_name or self.settings.UNKNOWN_CLIENT_LABEL
        )

    # =========================================================================
    # SELLERS
    # =========================================================================

    def sale_profit(self, sale: SaleRecord) -> float:
        return estimate_profit(sale.profit, sale.items, sale.total_amount, self.settings.FALLBACK_PROFIT_RATE)

    def top_sellers(
        self,
        sales: Iterable[SaleRecord],
        n: Optional[int] = None,
        measure: str = "sales"
    ) -> List[RankedEntity]:
        """Seller leaderboard by total sales amount or by profit; count is sales made."""
        if measure not in SELLER_MEASURES:
            raise ValueError(f"Unknown seller measure {measure!r}; expected one of {SELLER_MEASURES}")

        measure_fn = (lambda sale: sale.total_amount) if measure == "sales" else self.sale_profit
        return self.rank(
            sales,
            key_fn=lambda sale: sale.seller_id,
            measure_fn=measure_fn,
            n=self._n(n),
            label_fn=lambda sale: sale.seller_name or self.settings.UNKNOWN_SELLER_LABEL
        )

    def rank_seller_stats(
        self,
        stats: Iterable[SellerStat],
        n: Optional[int] = None,
        measure: str = "sales"
    ) -> List[RankedEntity]:
        """Leaderboard from pre-aggregated seller statistics."""
        if measure not in SELLER_MEASURES:
            raise ValueError(f"Unknown seller measure {measure!r}; expected one of {SELLER_MEASURES}")

        if measure == "sales":
            measure_fn = lambda stat: stat.total_amount
        else:
            measure_fn = lambda stat: estimate_profit(
                stat.total_profit, stat.items, stat.total_amount, self.settings.FALLBACK_PROFIT_RATE
            )

        return self.rank(
            stats,
            key_fn=lambda stat: stat.seller_id or stat.seller_name,
            measure_fn=measure_fn,
            n=self._n(n),
            label_fn=lambda stat: stat.seller_name or self.settings.UNKNOWN_SELLER_LABEL,
            count_fn=lambda stat: stat.sale_count
        )

    # =========================================================================
    # ORDERING
    # =========================================================================

    @staticmethod
    def _order(entities: List[RankedEntity], direction: str) -> List[RankedEntity]:
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction {direction!r}; expected 'desc' or 'asc'")
        # sorted() is stable for reverse=True as well
        return sorted(entities, key=lambda e: e.value, reverse=(direction == "desc"))

    @staticmethod
    def _head(entities: List[RankedEntity], n: Optional[int]) -> List[RankedEntity]:
        if n is None:
            return entities
        if n < 0:
            raise ValueError("n must not be negative")
        return entities[:n]

    def _n(self, n: Optional[int]) -> int:
        n = self.settings.TOP_N if n is None else n
        if n < 0:
            raise ValueError("n must not be negative")
        return n
