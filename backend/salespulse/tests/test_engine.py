"""Tests for the end-to-end analytics engine."""
import copy
import json
from datetime import datetime

import pytest

from salespulse.analytics.engine import AnalyticsEngine
from salespulse.core.config import AnalyticsSettings


SALES = [
    {
        "_id": "s1",
        "createdAt": "2024-01-01T10:00:00",
        "totalAmount": 1000,
        "status": "partially_paid",
        "client": {"_id": "c1", "name": "Awa"},
        "user": {"_id": "u1", "name": "Moussa"},
        "products": [{"product": {"_id": "p1", "name": "Rice", "costPrice": 350}, "quantity": 2, "priceAtSale": 500}],
        "payments": ["pay1"]
    },
    {
        "_id": "s2",
        "createdAt": "2024-01-02T09:00:00",
        "totalAmount": 400,
        "status": "pending",
        "client": {"_id": "c2", "name": "Binta"},
        "user": {"_id": "u2", "name": "Fatou"},
        "products": [{"product": {"_id": "p2", "name": "Oil"}, "quantity": 1, "priceAtSale": 400}]
    },
]
PAYMENTS = [
    {"_id": "pay1", "sale": "s1", "paymentDate": "2024-01-01T12:00:00", "amount": 800, "method": "cash"},
]
EXPENSES = [
    {"_id": "e1", "createdAt": "2024-01-01", "amount": 300, "category": "rent"},
    {"_id": "e2", "amount": 50, "category": "transport"},
]


def test_run_full_report():
    report = AnalyticsEngine().run(SALES, PAYMENTS, EXPENSES, granularity="day")

    assert report.granularity == "day"
    assert [b.key for b in report.series] == ["2024-01-01", "2024-01-02"]
    first = report.series[0]
    assert (first.sales_total, first.paid_total, first.expense_total) == (1000, 800, 300)

    assert report.summary.sales_total == 1400
    assert report.summary.paid_total == 800
    assert report.summary.expense_total == 300
    assert report.summary.gross_profit == 500

    assert report.bucket_metrics[1].metrics.paid_total == 0
    assert report.trends.daily_growth == -100.0

    assert report.status["partially_paid"].outstanding_balance == 200
    assert report.status["pending"].total_amount == 400
    assert report.status["completed"].count == 0

    assert report.sales_summary.total_sales == 1400
    assert report.sales_summary.products_sold == 2

    products = report.rankings["products"]
    assert [p["key"] for p in products["top"]] == ["p1", "p2"]
    assert products["total"] == 2
    assert [s.name for s in report.rankings["sellers_by_profit"]] == ["Fatou", "Moussa"]
    assert [c["name"] for c in report.rankings["clients"]["inactive"]] == ["Awa", "Binta"]

    assert [b.category_field for b in report.breakdowns] == ["method", "category"]
    assert report.breakdowns[1].total == 350

    assert report.comparison is None
    assert report.comparison_series == []


def test_data_quality_reports_skipped_records():
    report = AnalyticsEngine().run(SALES, PAYMENTS, EXPENSES)

    quality = report.data_quality
    assert quality["skipped"] == {"sales": 0, "payments": 0, "expenses": 1}
    assert quality["record_counts"]["expenses"] == 2
    assert quality["time_coverage"] == {"buckets": 2, "start": "2024-01-01", "end": "2024-01-02"}


def test_same_input_gives_identical_report():
    """Runs are deterministic and serializable."""
    engine = AnalyticsEngine()

    first = engine.run(SALES, PAYMENTS, EXPENSES, granularity="week").to_dict()
    second = engine.run(SALES, PAYMENTS, EXPENSES, granularity="week").to_dict()

    assert first == second
    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)


def test_comparison_against_previous_period():
    previous = {
        "sales": [{"createdAt": "2023-12-01", "totalAmount": 700, "payments": [{"amount": 400, "paymentDate": "2023-12-01"}]}],
        "expenses": [{"createdAt": "2023-12-01", "amount": 200}]
    }

    report = AnalyticsEngine().run(SALES, PAYMENTS, EXPENSES, granularity="day", previous=previous)

    assert report.comparison.sales_change == 100.0
    assert report.comparison.paid_change == 100.0
    assert report.comparison.expense_change == 50.0
    assert [row["prev_sales"] for row in report.comparison_series] == [700, 700]
    assert report.to_dict()["comparison"]["profit_change"] == 150.0


def test_reference_date_limits_trends():
    report = AnalyticsEngine().run(SALES, PAYMENTS, EXPENSES, reference_date=datetime(2024, 1, 1, 23))

    assert report.trends.daily_growth == 0


def test_granularity_default_from_settings():
    engine = AnalyticsEngine(AnalyticsSettings(DEFAULT_GRANULARITY="month"))

    report = engine.run(SALES, PAYMENTS, EXPENSES)

    assert report.granularity == "month"
    assert [b.key for b in report.series] == ["2024-01"]


def test_empty_input():
    report = AnalyticsEngine().run([], [], [])

    assert report.series == []
    assert report.summary.profit_margin == 0
    assert report.trends.to_dict() == {"daily_growth": 0.0, "weekly_growth": 0.0, "monthly_growth_estimate": 0.0}
    assert report.data_quality["time_coverage"]["buckets"] == 0


def test_unknown_granularity_raises():
    with pytest.raises(ValueError):
        AnalyticsEngine().run(SALES, PAYMENTS, EXPENSES, granularity="fortnight")


def test_inputs_are_not_mutated():
    """Raw documents, including nested products and payments, come back unchanged."""
    sales = copy.deepcopy(SALES)
    sales.append({
        "_id": "s3",
        "createdAt": {"$date": "2024-01-03T08:00:00Z"},
        "totalAmount": "250",
        "client": {"_id": {"$oid": "c3"}, "name": "Chloe"},
        "products": [{"product": {"_id": "p1", "name": "Rice", "category": "grains"}, "quantity": 1, "priceAtSale": 250}],
        "payments": [{"amount": 100, "paymentDate": "2024-01-03", "method": "MobileMoney"}]
    })
    payments = copy.deepcopy(PAYMENTS)
    expenses = copy.deepcopy(EXPENSES)
    previous = {"sales": copy.deepcopy(SALES), "expenses": copy.deepcopy(EXPENSES)}
    snapshot = copy.deepcopy((sales, payments, expenses, previous))

    AnalyticsEngine().run(
        sales, payments, expenses,
        reference_date=datetime(2024, 1, 31),
        previous=previous
    )

    assert (sales, payments, expenses, previous) == snapshot
    assert sales[0]["products"] == SALES[0]["products"]
    assert sales[0]["payments"] == ["pay1"]


def test_to_dict_returns_independent_copies():
    report = AnalyticsEngine().run(SALES, PAYMENTS, EXPENSES, previous={"sales": SALES})

    first = report.to_dict()
    first["data_quality"]["skipped"]["expenses"] = 99
    first["data_quality"]["warnings"].append("edited")
    first["comparison_series"][0]["prev_sales"] = -1
    first["rankings"]["products"]["top"].clear()
    first["profit"]["summary"]["total_profit"] = -1

    second = report.to_dict()
    assert second["data_quality"]["skipped"]["expenses"] == 1
    assert "edited" not in second["data_quality"]["warnings"]
    assert second["comparison_series"][0]["prev_sales"] != -1
    assert len(second["rankings"]["products"]["top"]) == 2
    assert second["profit"]["summary"]["total_profit"] != -1


def test_report_includes_profit_and_insights():
    report = AnalyticsEngine().run(
        SALES, PAYMENTS, EXPENSES,
        granularity="month",
        reference_date=datetime(2024, 1, 31),
        client_count=4
    )

    assert [p["key"] for p in report.profit["by_period"]] == ["2024-01"]
    assert report.profit["summary"]["sale_count"] == 2
    assert [c["client_id"] for c in report.insights["clients"]] == ["c1", "c2"]
    assert report.insights["kpis"]["conversion_rate"] == 0
    assert report.insights["best_days"]["sales"]["date"] == "2024-01-01"
    assert report.insights["best_days"]["expenses"]["total_amount"] == 300
    json.dumps(report.to_dict())
