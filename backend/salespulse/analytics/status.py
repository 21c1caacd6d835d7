"""Status classifier: sales by payment status with outstanding balances."""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable

from salespulse.normalization.records import TRACKED_STATUSES, SaleRecord


@dataclass
class StatusBucket:
    """Sales sharing one payment status."""
    count: int = 0
    total_amount: float = 0.0
    total_paid: float = 0.0

    @property
    def outstanding_balance(self) -> float:
        """Invoiced minus collected; negative when overpaid."""
        return self.total_amount - self.total_paid

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["outstanding_balance"] = self.outstanding_balance
        return d


class StatusClassifier:
    """
    Partition sales into completed, partially_paid and pending.

    Other statuses (cancelled, refunded, ...) are left out of all three.
    Dates are ignored: filter the slice upstream.
    """

    def classify(self, sales: Iterable[SaleRecord]) -> Dict[str, StatusBucket]:
        result = {status: StatusBucket() for status in TRACKED_STATUSES}

        for sale in sales:
            bucket = result.get(sale.status)
            if bucket is None:
                continue
            bucket.count += 1
            bucket.total_amount += sale.total_amount
            bucket.total_paid += sale.amount_paid

        return result

    def to_dict(self, classification: Dict[str, StatusBucket]) -> Dict[str, Dict[str, Any]]:
        return {status: bucket.to_dict() for status, bucket in classification.items()}
