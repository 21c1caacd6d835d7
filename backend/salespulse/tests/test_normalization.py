"""Tests for the record normalizer."""
from datetime import datetime

from salespulse.core.config import AnalyticsSettings
from salespulse.normalization.engine import RecordNormalizer
from salespulse.normalization.records import PaymentMethod


def test_missing_amounts_default_to_zero():
    """Missing totalAmount and amount become 0 without warnings."""
    engine = RecordNormalizer()

    result = engine.normalize(
        sales=[{"_id": "s1", "createdAt": "2024-01-01"}],
        payments=[{"_id": "p1", "paymentDate": "2024-01-01"}],
        expenses=[{"_id": "e1", "createdAt": "2024-01-01"}]
    )

    assert result.sales[0].total_amount == 0
    assert result.payments[0].amount == 0
    assert result.expenses[0].amount == 0
    assert result.warnings == []


def test_non_numeric_amount_treated_as_zero():
    """Garbage amounts are coerced to 0 and reported, never raised."""
    engine = RecordNormalizer()

    result = engine.normalize(
        sales=[
            {"_id": "s1", "createdAt": "2024-01-01", "totalAmount": "abc"},
            {"_id": "s2", "createdAt": "2024-01-01", "totalAmount": "1500"},
            {"_id": "s3", "createdAt": "2024-01-01", "totalAmount": -20},
        ]
    )

    amounts = [s.total_amount for s in result.sales]
    assert amounts == [0.0, 1500.0, 0.0]
    assert len(result.warnings) == 2


def test_missing_date_kept_but_skipped():
    """Undated records stay in the result and are counted as skipped."""
    engine = RecordNormalizer()

    result = engine.normalize(
        sales=[
            {"_id": "s1", "createdAt": "2024-01-01", "totalAmount": 100},
            {"_id": "s2", "totalAmount": 200},
        ],
        payments=[],
        expenses=[{"_id": "e1", "amount": 50}]
    )

    assert len(result.sales) == 2
    assert result.sales[1].created_at is None
    assert result.skipped == {"sales": 1, "payments": 0, "expenses": 1}
    assert result.skipped_total == 2


def test_malformed_date_treated_as_missing():
    """An unparseable date is handled exactly like a missing one."""
    engine = RecordNormalizer()

    result = engine.normalize(
        sales=[{"_id": "s1", "createdAt": "not a date", "totalAmount": 100}]
    )

    assert result.sales[0].created_at is None
    assert result.skipped["sales"] == 1
    assert any("unparseable date" in w for w in result.warnings)


def test_partial_date_strings_are_not_completed():
    """Time-only, month-only and bare numbers are malformed, never filled from today."""
    engine = RecordNormalizer()

    result = engine.normalize(sales=[
        {"_id": "s1", "createdAt": "10:30", "totalAmount": 100},
        {"_id": "s2", "createdAt": "March", "totalAmount": 50},
        {"_id": "s3", "createdAt": "5", "totalAmount": 25},
        {"_id": "s4", "createdAt": "2024", "totalAmount": 10},
    ])

    assert [s.created_at for s in result.sales] == [None, None, None, None]
    assert result.skipped["sales"] == 4
    assert sum("unparseable date" in w for w in result.warnings) == 4


def test_dates_outside_supported_range_are_malformed():
    engine = RecordNormalizer()

    result = engine.normalize(sales=[
        {"_id": "s1", "createdAt": "0001-03-01", "totalAmount": 100},
        {"_id": "s2", "createdAt": datetime(1, 3, 1), "totalAmount": 100},
        {"_id": "s3", "createdAt": "2024-03-01T08:00:00", "totalAmount": 100},
    ])

    assert [s.created_at for s in result.sales] == [None, None, datetime(2024, 3, 1, 8)]
    assert result.skipped["sales"] == 2


def test_aware_timestamp_converted_to_configured_timezone():
    """UTC timestamps move to the configured zone before bucketing."""
    engine = RecordNormalizer(AnalyticsSettings(TIMEZONE="Africa/Lagos"))

    sales = engine.normalize_sales([
        {"_id": "s1", "createdAt": "2024-01-01T23:30:00Z", "totalAmount": 100},
        {"_id": "s2", "createdAt": "2024-01-01T23:30:00", "totalAmount": 100},
    ])

    # Lagos is UTC+1; naive input is taken as already local
    assert sales[0].created_at == datetime(2024, 1, 2, 0, 30)
    assert sales[1].created_at == datetime(2024, 1, 1, 23, 30)


def test_epoch_milliseconds_and_extended_json_dates():
    """Numeric and {"$date": ...} dates are both understood."""
    engine = RecordNormalizer()

    expenses = engine.normalize_expenses([
        {"_id": "e1", "createdAt": 1704067200000, "amount": 10},
        {"_id": {"$oid": "e2"}, "createdAt": {"$date": "2024-01-01T00:00:00Z"}, "amount": 10},
    ])

    assert expenses[0].created_at == datetime(2024, 1, 1)
    assert expenses[1].created_at == datetime(2024, 1, 1)
    assert expenses[1].id == "e2"


def test_payment_date_falls_back_to_created_at():
    """Payments without paymentDate use createdAt."""
    engine = RecordNormalizer()

    payments = engine.normalize_payments([
        {"_id": "p1", "amount": 100, "createdAt": "2024-02-03"},
        {"_id": "p2", "amount": 100, "paymentDate": "2024-02-05", "createdAt": "2024-02-03"},
    ])

    assert payments[0].payment_date == datetime(2024, 2, 3)
    assert payments[1].payment_date == datetime(2024, 2, 5)


def test_payment_method_aliases():
    """Raw method spellings collapse onto the enum."""
    engine = RecordNormalizer()

    payments = engine.normalize_payments([
        {"method": "cash"},
        {"method": "MobileMoney"},
        {"method": "mobile-money"},
        {"method": "credit"},
        {"method": "cheque"},
        {},
    ])

    assert [p.method for p in payments] == [
        PaymentMethod.CASH,
        PaymentMethod.MOBILE_MONEY,
        PaymentMethod.MOBILE_MONEY,
        PaymentMethod.CREDIT,
        PaymentMethod.OTHER,
        PaymentMethod.OTHER,
    ]


def test_embedded_payments_used_without_standalone_list():
    """With no payment list, payments embedded in sales feed the series."""
    engine = RecordNormalizer()

    result = engine.normalize(
        sales=[{
            "_id": "s1",
            "createdAt": "2024-01-01",
            "totalAmount": 1000,
            "payments": [
                {"amount": 400, "method": "cash", "paymentDate": "2024-01-01"},
                {"amount": 300, "method": "MobileMoney", "paymentDate": "2024-01-05"},
            ]
        }]
    )

    assert len(result.payments) == 2
    assert all(p.sale_id == "s1" for p in result.payments)
    assert result.sales[0].amount_paid == 700


def test_payment_references_resolved_from_standalone_list():
    """Bare payment ids on a sale are looked up in the payment list."""
    engine = RecordNormalizer()

    result = engine.normalize(
        sales=[{"_id": "s1", "createdAt": "2024-01-01", "totalAmount": 1000, "payments": ["p1", "p9"]}],
        payments=[{"_id": "p1", "amount": 250, "paymentDate": "2024-01-02", "sale": "s1"}]
    )

    assert result.sales[0].amount_paid == 250
    assert any("p9" in w for w in result.warnings)


def test_overpayment_is_preserved():
    """amount_paid is not clamped to total_amount."""
    engine = RecordNormalizer()

    sale = engine.normalize_sales([{
        "_id": "s1",
        "totalAmount": 500,
        "payments": [{"amount": 400}, {"amount": 300}]
    }])[0]

    assert sale.amount_paid == 700
    assert sale.outstanding_balance == -200


def test_status_and_references():
    """Unknown statuses survive; populated references give id and name."""
    engine = RecordNormalizer()

    sale = engine.normalize_sales([{
        "_id": "s1",
        "status": "Refunded",
        "client": {"_id": "c1", "name": "Awa"},
        "user": "u1",
        "products": [
            {"product": {"_id": "p1", "name": "Rice", "costPrice": 600}, "quantity": 2, "priceAtSale": 1000},
            {"productId": "p2", "quantity": "3", "sellingPrice": 50},
        ]
    }])[0]

    assert sale.status == "refunded"
    assert (sale.client_id, sale.client_name) == ("c1", "Awa")
    assert (sale.seller_id, sale.seller_name) == ("u1", None)
    assert sale.items[0].cost_price == 600
    assert sale.items[0].profit == 800
    assert sale.items[1].product_id == "p2"
    assert sale.items[1].cost_price is None
    assert sale.items[1].revenue == 150


def test_missing_status_defaults_to_pending():
    engine = RecordNormalizer()

    sale = engine.normalize_sales([{"_id": "s1"}])[0]

    assert sale.status == "pending"


def test_normalize_seller_stats():
    """Seller aggregates keep explicit profit when present."""
    engine = RecordNormalizer()

    stats = engine.normalize_seller_stats([
        {"userId": "u1", "userName": "Moussa", "totalAmount": 5000, "totalProfit": 1200, "salesCount": 4},
        {"userName": "Fatou", "totalAmount": "3000"},
    ])

    assert stats[0].total_profit == 1200
    assert stats[0].sale_count == 4
    assert stats[1].seller_id is None
    assert stats[1].total_profit is None
    assert stats[1].total_amount == 3000


def test_non_document_records_ignored():
    """Entries that are not documents are dropped with a warning."""
    engine = RecordNormalizer()

    result = engine.normalize(sales=["oops", None], payments=[42], expenses=[])

    assert result.sales == []
    assert result.payments == []
    assert len(result.warnings) == 3
