"""
Metric calculator.

Derived financial metrics for one bucket or a whole run. Every ratio with
a zero denominator is 0 rather than NaN: read it as "no data yet", not as
zero performance.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

from salespulse.analytics.bucketing import TimeBucket
from salespulse.normalization.records import SaleRecord


def safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator != 0 else 0.0


@dataclass
class FinancialMetrics:
    """Totals and the ratios derived from them. Ratios are fractions, not percentages."""
    sales_total: float
    paid_total: float
    expense_total: float
    gross_profit: float
    net_profit: float
    profit_margin: float
    net_margin: float
    operational_efficiency: float
    roi: float

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        for ratio in ("profit_margin", "net_margin", "operational_efficiency", "roi"):
            d[f"{ratio}_pct"] = round(d[ratio] * 100, 2)
        return d


@dataclass
class BucketMetrics:
    """Metrics for one bucket of a series, for charting."""
    key: str
    metrics: FinancialMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, **self.metrics.to_dict()}


@dataclass
class SalesSummary:
    """Headline figures for a slice of sales."""
    total_sales: float
    total_paid: float
    outstanding_balance: float
    transaction_count: int
    products_sold: int
    average_sale: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MetricCalculator:
    """Compute FinancialMetrics with the same formulas at every granularity."""

    def compute_metrics(
        self,
        sales_total: float,
        expense_total: float,
        paid_total: float
    ) -> FinancialMetrics:
        """
        Args:
            sales_total: Invoiced amount
            expense_total: Spent amount
            paid_total: Collected amount

        Returns:
            FinancialMetrics where gross profit is cash based (paid - expenses)
            and net profit is invoice based (sales - expenses)
        """
        gross_profit = paid_total - expense_total
        net_profit = sales_total - expense_total

        return FinancialMetrics(
            sales_total=sales_total,
            paid_total=paid_total,
            expense_total=expense_total,
            gross_profit=gross_profit,
            net_profit=net_profit,
            profit_margin=safe_ratio(gross_profit, sales_total),
            net_margin=safe_ratio(net_profit, sales_total),
            operational_efficiency=safe_ratio(gross_profit, sales_total),
            roi=safe_ratio(gross_profit, expense_total)
        )

    def per_bucket(self, series: Iterable[TimeBucket]) -> List[BucketMetrics]:
        return [
            BucketMetrics(
                key=bucket.key,
                metrics=self.compute_metrics(bucket.sales_total, bucket.expense_total, bucket.paid_total)
            )
            for bucket in series
        ]

    def summarize(self, series: Iterable[TimeBucket]) -> FinancialMetrics:
        """Metrics over the whole series, for summary cards."""
        sales_total = paid_total = expense_total = 0.0
        for bucket in series:
            sales_total += bucket.sales_total
            paid_total += bucket.paid_total
            expense_total += bucket.expense_total
        return self.compute_metrics(sales_total, expense_total, paid_total)

    def summarize_sales(self, sales: Iterable[SaleRecord]) -> SalesSummary:
        """Totals over any slice of sales, dated or not."""
        total_sales = total_paid = 0.0
        transactions = products = 0

        for sale in sales:
            total_sales += sale.total_amount
            total_paid += sale.amount_paid
            transactions += 1
            products += sale.product_count

        return SalesSummary(
            total_sales=total_sales,
            total_paid=total_paid,
            outstanding_balance=total_sales - total_paid,
            transaction_count=transactions,
            products_sold=products,
            average_sale=safe_ratio(total_sales, transactions)
        )
