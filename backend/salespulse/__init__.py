"""
salespulse

Financial analytics for a small sales business:
- normalizes raw sale, payment and expense documents
- buckets them by day/week/month/year and derives profit, margin and ROI
- computes growth trends, payment-status breakdowns and top-N rankings
- profiles clients, flags unusual sale amounts and breaks profit down

Pure functions over an in-memory snapshot; no I/O, no wall clock.
"""

from salespulse.analytics.breakdowns import (
    CategoryBreakdown,
    expense_category_breakdown,
    payment_method_breakdown,
)
from salespulse.analytics.bucketing import TimeBucket, TimeBucketer
from salespulse.analytics.engine import AnalyticsEngine, AnalyticsReport
from salespulse.analytics.insights import (
    AdvancedKPIs,
    AmountAnomaly,
    BestDay,
    ClientProfile,
    ClientSegment,
    InsightAnalyzer,
)
from salespulse.analytics.metrics import FinancialMetrics, MetricCalculator, SalesSummary
from salespulse.analytics.periods import Granularity, filter_by_range, period_range, previous_period, rolling_range
from salespulse.analytics.profit import CategoryProfit, ProfitAnalyzer, ProfitPeriod, ProfitSummary
from salespulse.analytics.ranking import RankedEntity, RankingEngine, estimate_profit
from salespulse.analytics.status import StatusBucket, StatusClassifier
from salespulse.analytics.trends import PeriodComparison, TrendAnalyzer, TrendSummary
from salespulse.core.config import AnalyticsSettings, configure_logging, settings
from salespulse.normalization.engine import NormalizationResult, RecordNormalizer
from salespulse.normalization.records import (
    ExpenseRecord,
    LineItem,
    PaymentMethod,
    PaymentRecord,
    SaleRecord,
    SaleStatus,
    SellerStat,
)

__all__ = [
    # Pipeline
    "AnalyticsEngine",
    "AnalyticsReport",
    # Components
    "RecordNormalizer",
    "NormalizationResult",
    "TimeBucketer",
    "TimeBucket",
    "MetricCalculator",
    "FinancialMetrics",
    "SalesSummary",
    "TrendAnalyzer",
    "TrendSummary",
    "PeriodComparison",
    "StatusClassifier",
    "StatusBucket",
    "RankingEngine",
    "RankedEntity",
    "estimate_profit",
    "CategoryBreakdown",
    "payment_method_breakdown",
    "expense_category_breakdown",
    "ProfitAnalyzer",
    "ProfitPeriod",
    "ProfitSummary",
    "CategoryProfit",
    "InsightAnalyzer",
    "ClientProfile",
    "ClientSegment",
    "AmountAnomaly",
    "AdvancedKPIs",
    "BestDay",
    # Calendar
    "Granularity",
    "period_range",
    "previous_period",
    "rolling_range",
    "filter_by_range",
    # Records
    "SaleRecord",
    "LineItem",
    "PaymentRecord",
    "ExpenseRecord",
    "SellerStat",
    "SaleStatus",
    "PaymentMethod",
    # Config
    "AnalyticsSettings",
    "settings",
    "configure_logging",
]
