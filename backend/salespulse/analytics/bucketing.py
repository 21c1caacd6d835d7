"""Time bucketer: group dated records into calendar buckets."""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from salespulse.analytics.periods import Granularity, bucket_keys, parse_granularity
from salespulse.core.config import AnalyticsSettings, settings as default_settings
from salespulse.normalization.records import ExpenseRecord, PaymentRecord, SaleRecord

logger = logging.getLogger(__name__)

Record = Union[SaleRecord, PaymentRecord, ExpenseRecord]

_COLUMNS = ["sales_total", "paid_total", "expense_total", "transaction_count", "product_count"]


@dataclass
class TimeBucket:
    """Accumulated sums for one calendar unit."""
    key: str
    sales_total: float = 0.0
    paid_total: float = 0.0
    expense_total: float = 0.0
    transaction_count: int = 0
    product_count: int = 0

    @property
    def profit(self) -> float:
        """Cash profit for the bucket (collected minus spent)."""
        return self.paid_total - self.expense_total

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TimeBucketer:
    """
    Group records into day/week/month/year buckets.

    Each record contributes to exactly one bucket, chosen from its own date
    field: created_at for sales and expenses, payment_date for payments.
    Payments are bucketed on their own date, not their sale's, since a
    payment can settle a sale from an earlier period.
    """

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or default_settings

    def bucket(
        self,
        records: Iterable[Record],
        date_field: Optional[str] = None,
        granularity: Union[Granularity, str, None] = None
    ) -> List[TimeBucket]:
        """
        Bucket records by calendar unit.

        Args:
            records: Normalized records; kinds may be mixed
            date_field: Attribute to bucket on. None picks each record's
                natural date (created_at, or payment_date for payments).
            granularity: day, week, month or year (default from settings)

        Returns:
            Buckets sorted ascending by key. Only keys with at least one
            record appear; a bucket with sales but no expenses carries 0
            expenses.
        """
        granularity = parse_granularity(granularity or self.settings.DEFAULT_GRANULARITY)
        frame = self._to_frame(records, date_field)

        if frame.empty:
            return []

        dated = frame.dropna(subset=["moment"])
        undated = len(frame) - len(dated)
        if undated:
            logger.debug("Left %d undated records out of %s buckets", undated, granularity.value)
        if dated.empty:
            return []

        dated = dated.assign(key=bucket_keys(dated["moment"], granularity, self.settings.WEEK_START))
        grouped = dated.groupby("key", sort=True)[_COLUMNS].sum()

        return [
            TimeBucket(
                key=str(key),
                sales_total=float(row["sales_total"]),
                paid_total=float(row["paid_total"]),
                expense_total=float(row["expense_total"]),
                transaction_count=int(row["transaction_count"]),
                product_count=int(row["product_count"])
            )
            for key, row in grouped.iterrows()
        ]

    def merge(
        self,
        sales: Iterable[SaleRecord],
        payments: Iterable[PaymentRecord],
        expenses: Iterable[ExpenseRecord],
        granularity: Union[Granularity, str, None] = None
    ) -> List[TimeBucket]:
        """Combined series of sales, payments and expenses, each on its own date."""
        records: List[Record] = [*sales, *payments, *expenses]
        return self.bucket(records, None, granularity)

    def _to_frame(self, records: Iterable[Record], date_field: Optional[str]) -> pd.DataFrame:
        rows = []
        for record in records:
            row = {
                "moment": self._date_of(record, date_field),
                "sales_total": 0.0,
                "paid_total": 0.0,
                "expense_total": 0.0,
                "transaction_count": 0,
                "product_count": 0
            }
            if isinstance(record, SaleRecord):
                row["sales_total"] = record.total_amount
                row["transaction_count"] = 1
                row["product_count"] = record.product_count
            elif isinstance(record, PaymentRecord):
                row["paid_total"] = record.amount
            elif isinstance(record, ExpenseRecord):
                row["expense_total"] = record.amount
            else:
                raise ValueError(f"Cannot bucket {type(record).__name__}")
            rows.append(row)

        if not rows:
            return pd.DataFrame(columns=["moment", *_COLUMNS])

        frame = pd.DataFrame(rows)
        frame["moment"] = pd.to_datetime(frame["moment"])
        return frame

    @staticmethod
    def _date_of(record: Record, date_field: Optional[str]):
        if date_field is None:
            return record.payment_date if isinstance(record, PaymentRecord) else record.created_at
        if not hasattr(record, date_field):
            raise ValueError(f"{type(record).__name__} has no date field {date_field!r}")
        return getattr(record, date_field)
