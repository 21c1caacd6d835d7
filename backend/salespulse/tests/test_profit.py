"""Tests for profit analytics."""
import pytest

from salespulse.analytics.profit import ProfitAnalyzer, ProfitSummary
from salespulse.normalization.engine import RecordNormalizer


def _sales(raw):
    return RecordNormalizer().normalize_sales(raw)


def _item(product_id, category, quantity, price, cost=None):
    product = {"_id": product_id, "name": product_id.upper(), "category": category}
    if cost is not None:
        product["costPrice"] = cost
    return {"product": product, "quantity": quantity, "priceAtSale": price}


SALES = [
    {"_id": "s1", "createdAt": "2024-01-05", "totalAmount": 1000,
     "products": [_item("p1", "grains", 2, 500, cost=300)]},
    {"_id": "s2", "createdAt": "2024-01-20", "totalAmount": 500, "profit": -50},
    {"_id": "s3", "createdAt": "2024-02-03", "totalAmount": 2000,
     "products": [_item("p2", "oils", 4, 500, cost=250)]},
    {"_id": "s4", "createdAt": "2024-02-10", "totalAmount": 9999, "status": "cancelled",
     "products": [_item("p2", "oils", 10, 999)]},
]


def test_profit_by_month():
    """Cancelled sales are left out; cost is total minus profit."""
    periods = ProfitAnalyzer().by_period(_sales(SALES), "month")

    assert [p.key for p in periods] == ["2024-01", "2024-02"]
    january = periods[0]
    assert january.total_sales == 1500
    assert january.total_profit == 350
    assert january.total_cost == 1150
    assert january.sale_count == 2
    assert january.average_profit == 175
    # margins 40% and -10%
    assert january.average_margin == 15.0
    assert periods[1].total_profit == 1000


def test_profit_summary():
    summary = ProfitAnalyzer().summarize(_sales(SALES))

    assert summary.total_profit == 1350
    assert summary.total_revenue == 3500
    assert summary.sale_count == 3
    assert summary.profitable_sales == 2
    assert summary.average_profit == 450
    assert summary.average_margin == pytest.approx(26.67)


def test_profit_by_category():
    sales = _sales([
        {"products": [_item("p1", "grains", 1, 100, cost=50), _item("p2", "oils", 1, 400, cost=100)]},
        {"products": [_item("p3", "grains", 2, 100, cost=40), {"product": "p9", "quantity": 1, "priceAtSale": 10}]},
    ])

    categories = ProfitAnalyzer().by_category(sales)

    assert [(c.category, c.total_profit, c.line_count) for c in categories] == [
        ("oils", 300.0, 1),
        ("grains", 170.0, 2),
        ("unknown", 10.0, 1),
    ]


def test_empty_and_undated_input():
    analyzer = ProfitAnalyzer()
    undated = _sales([{"totalAmount": 100}])

    assert analyzer.by_period(undated, "day") == []
    assert analyzer.summarize([]) == ProfitSummary()
    assert analyzer.by_category([]) == []
    assert analyzer.analyze([], "day") == {
        "by_period": [],
        "by_category": [],
        "summary": ProfitSummary().to_dict()
    }
