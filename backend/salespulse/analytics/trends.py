"""Trend analyzer: period-over-period growth from a bucketed series."""
import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from salespulse.analytics.bucketing import TimeBucket
from salespulse.core.config import AnalyticsSettings, settings as default_settings

logger = logging.getLogger(__name__)


def pct_change(current: float, previous: float) -> float:
    """Percentage change; 0 when there is nothing to compare against."""
    if not previous:
        return 0.0
    return (current - previous) / previous * 100


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class TrendSummary:
    """Growth percentages, rounded to 2 decimals."""
    daily_growth: float = 0.0
    weekly_growth: float = 0.0
    monthly_growth_estimate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PeriodComparison:
    """Change of each headline total against a previous period, in percent."""
    sales_change: float
    paid_change: float
    expense_change: float
    profit_change: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TrendAnalyzer:
    """
    Growth on the collected (paid) amount of a bucketed series.

    - daily: last bucket vs the one before
    - weekly: mean of the last GROWTH_WINDOW buckets vs the mean of the
      GROWTH_WINDOW before them (partial windows allowed)
    - monthly estimate: weekly x MONTHLY_GROWTH_MULTIPLIER, a linear
      extrapolation kept for parity with existing reports
    """

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or default_settings

    def analyze_trends(
        self,
        series: Sequence[TimeBucket],
        reference_date: Optional[datetime] = None
    ) -> TrendSummary:
        """
        Args:
            series: Buckets sorted ascending by key
            reference_date: Treat this instant as "now"; buckets after it
                are ignored. None uses the whole series.

        Returns:
            TrendSummary; all zeros with fewer than two buckets
        """
        if reference_date is not None:
            series = self._up_to(series, reference_date)

        if len(series) < 2:
            return TrendSummary()

        paid = np.array([bucket.paid_total for bucket in series], dtype=float)
        window = self.settings.GROWTH_WINDOW

        daily = pct_change(paid[-1], paid[-2])

        recent = paid[-window:]
        prior = paid[max(0, len(paid) - 2 * window):max(0, len(paid) - window)]
        weekly = pct_change(recent.mean(), prior.mean()) if len(prior) > 0 else 0.0

        weekly = round(float(weekly), 2)
        monthly = round(weekly * self.settings.MONTHLY_GROWTH_MULTIPLIER, 2)

        logger.debug(
            "Trends over %d buckets: daily=%.2f weekly=%.2f monthly=%.2f",
            len(series), daily, weekly, monthly
        )

        return TrendSummary(
            daily_growth=round(float(daily), 2),
            weekly_growth=weekly,
            monthly_growth_estimate=monthly
        )

    def compare_periods(
        self,
        current: Sequence[TimeBucket],
        previous: Sequence[TimeBucket]
    ) -> PeriodComparison:
        """Headline totals of `current` against `previous`."""
        cur = self._totals(current)
        prev = self._totals(previous)

        return PeriodComparison(
            sales_change=round(pct_change(cur["sales"], prev["sales"]), 2),
            paid_change=round(pct_change(cur["paid"], prev["paid"]), 2),
            expense_change=round(pct_change(cur["expenses"], prev["expenses"]), 2),
            profit_change=round(pct_change(cur["profit"], prev["profit"]), 2)
        )

    def align_series(
        self,
        current: Sequence[TimeBucket],
        previous: Sequence[TimeBucket]
    ) -> List[Dict[str, Any]]:
        """
        Overlay a previous period onto the current one for charting.

        Series of different lengths are matched proportionally: bucket i of
        the current series takes bucket round(i / (len - 1) * (prev_len - 1))
        of the previous one.
        """
        if not current:
            return []

        if not previous:
            return [
                {**bucket.to_dict(), "prev_sales": None, "prev_profit": None}
                for bucket in current
            ]

        length = len(current)
        prev_length = len(previous)
        aligned = []
        for i, bucket in enumerate(current):
            j = min(
                round_half_up(i / max(1, length - 1) * max(0, prev_length - 1)),
                prev_length - 1
            )
            prev = previous[j]
            aligned.append({
                **bucket.to_dict(),
                "prev_sales": prev.sales_total,
                "prev_profit": prev.profit
            })
        return aligned

    def moving_average(self, values: Sequence[float], window: int = 3) -> List[float]:
        """Smooth a series; each window starts half a window back and is cut at the end."""
        if window < 1:
            raise ValueError("window must be at least 1")
        if len(values) == 0:
            return []

        data = np.nan_to_num(np.array(values, dtype=float))
        smoothed = []
        for i in range(len(data)):
            start = max(0, i - window // 2)
            end = min(len(data), start + window)
            smoothed.append(float(data[start:end].mean()))
        return smoothed

    @staticmethod
    def _totals(series: Sequence[TimeBucket]) -> Dict[str, float]:
        sales = sum(b.sales_total for b in series)
        paid = sum(b.paid_total for b in series)
        expenses = sum(b.expense_total for b in series)
        return {"sales": sales, "paid": paid, "expenses": expenses, "profit": paid - expenses}

    @staticmethod
    def _up_to(series: Sequence[TimeBucket], reference_date: datetime) -> List[TimeBucket]:
        # Keys are date prefixes (YYYY, YYYY-MM, YYYY-MM-DD), so a bucket has
        # started by the reference date when its key is <= the same-length
        # prefix of the reference.
        reference = f"{reference_date.year:04d}-{reference_date.month:02d}-{reference_date.day:02d}"
        return [b for b in series if b.key <= reference[:len(b.key)]]
