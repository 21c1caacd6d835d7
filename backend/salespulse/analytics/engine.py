"""Deterministic analytics pipeline over one snapshot of sales, payments and expenses."""
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from salespulse.analytics.breakdowns import (
    CategoryBreakdown,
    expense_category_breakdown,
    payment_method_breakdown,
)
from salespulse.analytics.bucketing import TimeBucket, TimeBucketer
from salespulse.analytics.insights import InsightAnalyzer
from salespulse.analytics.metrics import BucketMetrics, FinancialMetrics, MetricCalculator, SalesSummary
from salespulse.analytics.periods import Granularity, parse_granularity
from salespulse.analytics.profit import ProfitAnalyzer
from salespulse.analytics.ranking import RankedEntity, RankingEngine
from salespulse.analytics.status import StatusBucket, StatusClassifier
from salespulse.analytics.trends import PeriodComparison, TrendAnalyzer, TrendSummary
from salespulse.core.config import AnalyticsSettings, settings as default_settings
from salespulse.normalization.engine import NormalizationResult, RecordNormalizer

logger = logging.getLogger(__name__)


@dataclass
class AnalyticsReport:
    """Everything the dashboards display for one run. Plain data, no formatting."""
    granularity: str
    series: List[TimeBucket]
    bucket_metrics: List[BucketMetrics]
    summary: FinancialMetrics
    trends: TrendSummary
    status: Dict[str, StatusBucket]
    sales_summary: SalesSummary
    rankings: Dict[str, Any]
    breakdowns: List[CategoryBreakdown]
    data_quality: Dict[str, Any]
    comparison: Optional[PeriodComparison] = None
    comparison_series: List[Dict[str, Any]] = field(default_factory=list)
    profit: Dict[str, Any] = field(default_factory=dict)
    insights: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "granularity": self.granularity,
            "series": [b.to_dict() for b in self.series],
            "bucket_metrics": [m.to_dict() for m in self.bucket_metrics],
            "summary": self.summary.to_dict(),
            "trends": self.trends.to_dict(),
            "status": {k: v.to_dict() for k, v in self.status.items()},
            "sales_summary": self.sales_summary.to_dict(),
            "rankings": {
                name: (
                    [e.to_dict() for e in value] if isinstance(value, list) else copy.deepcopy(value)
                )
                for name, value in self.rankings.items()
            },
            "breakdowns": [b.to_dict() for b in self.breakdowns],
            "data_quality": copy.deepcopy(self.data_quality),
            "comparison": self.comparison.to_dict() if self.comparison else None,
            "comparison_series": copy.deepcopy(self.comparison_series),
            "profit": copy.deepcopy(self.profit),
            "insights": copy.deepcopy(self.insights)
        }


class AnalyticsEngine:
    """
    Run every analytics component over one snapshot in one go.

    Holds configuration only; every call builds fresh results from its
    arguments, so the same input always gives the same report.
    """

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or default_settings
        self.normalizer = RecordNormalizer(self.settings)
        self.bucketer = TimeBucketer(self.settings)
        self.calculator = MetricCalculator()
        self.trend_analyzer = TrendAnalyzer(self.settings)
        self.classifier = StatusClassifier()
        self.ranking = RankingEngine(self.settings)
        self.profit_analyzer = ProfitAnalyzer(self.settings)
        self.insight_analyzer = InsightAnalyzer(self.settings)

    def run(
        self,
        sales: Optional[Iterable[Dict[str, Any]]] = None,
        payments: Optional[Iterable[Dict[str, Any]]] = None,
        expenses: Optional[Iterable[Dict[str, Any]]] = None,
        granularity: Union[Granularity, str, None] = None,
        reference_date: Optional[datetime] = None,
        previous: Optional[Dict[str, Any]] = None,
        n: Optional[int] = None,
        client_count: Optional[int] = None
    ) -> AnalyticsReport:
        """
        Analyze raw documents already scoped to the caller's date range.

        Args:
            sales, payments, expenses: Raw documents
            granularity: Bucket size (default from settings)
            reference_date: "Now" for trends and client recency
            previous: Optional {"sales", "payments", "expenses"} of the
                period to compare against
            n: Size of top/bottom lists (default TOP_N)
            client_count: Size of the client base for the conversion rate

        Returns:
            AnalyticsReport
        """
        normalized = self.normalizer.normalize(sales, payments, expenses)

        previous_normalized = None
        if previous is not None:
            previous_normalized = self.normalizer.normalize(
                previous.get("sales"), previous.get("payments"), previous.get("expenses")
            )

        return self.analyze(normalized, granularity, reference_date, previous_normalized, n, client_count)

    def analyze(
        self,
        normalized: NormalizationResult,
        granularity: Union[Granularity, str, None] = None,
        reference_date: Optional[datetime] = None,
        previous: Optional[NormalizationResult] = None,
        n: Optional[int] = None,
        client_count: Optional[int] = None
    ) -> AnalyticsReport:
        """Same as run() for records that are already normalized."""
        granularity = parse_granularity(granularity or self.settings.DEFAULT_GRANULARITY)

        logger.info(
            "Analyzing %d sales, %d payments, %d expenses by %s",
            len(normalized.sales), len(normalized.payments), len(normalized.expenses), granularity.value
        )

        series = self.bucketer.merge(normalized.sales, normalized.payments, normalized.expenses, granularity)

        comparison = None
        comparison_series: List[Dict[str, Any]] = []
        if previous is not None:
            previous_series = self.bucketer.merge(
                previous.sales, previous.payments, previous.expenses, granularity
            )
            comparison = self.trend_analyzer.compare_periods(series, previous_series)
            comparison_series = self.trend_analyzer.align_series(series, previous_series)

        report = AnalyticsReport(
            granularity=granularity.value,
            series=series,
            bucket_metrics=self.calculator.per_bucket(series),
            summary=self.calculator.summarize(series),
            trends=self.trend_analyzer.analyze_trends(series, reference_date),
            status=self.classifier.classify(normalized.sales),
            sales_summary=self.calculator.summarize_sales(normalized.sales),
            rankings=self._rankings(normalized, n),
            breakdowns=[
                payment_method_breakdown(normalized.payments),
                expense_category_breakdown(normalized.expenses)
            ],
            data_quality={
                **normalized.to_dict(),
                "time_coverage": self._time_coverage(series)
            },
            comparison=comparison,
            comparison_series=comparison_series,
            profit=self.profit_analyzer.analyze(normalized.sales, granularity),
            insights=self.insight_analyzer.analyze(
                normalized.sales, normalized.payments, normalized.expenses, reference_date, client_count
            )
        )

        logger.debug("Report built with %d buckets", len(series))
        return report

    def _rankings(self, normalized: NormalizationResult, n: Optional[int]) -> Dict[str, Any]:
        sales = normalized.sales
        return {
            "products": self.ranking.product_panel(sales, n),
            "products_by_quantity": self.ranking.top_products(sales, n, measure="quantity"),
            "clients": self.ranking.client_panel(sales, n),
            "sellers_by_sales": self.ranking.top_sellers(sales, n, measure="sales"),
            "sellers_by_profit": self.ranking.top_sellers(sales, n, measure="profit")
        }

    @staticmethod
    def _time_coverage(series: List[TimeBucket]) -> Dict[str, Any]:
        if not series:
            return {"buckets": 0, "start": None, "end": None}
        return {"buckets": len(series), "start": series[0].key, "end": series[-1].key}
