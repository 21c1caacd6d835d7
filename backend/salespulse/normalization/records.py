"""
Canonical record models produced by the normalizer.

Raw documents arrive in the persistence layer's camelCase shape; these
models are the snake_case, defaulted, read-only form every analytics
component consumes.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SaleStatus(str, Enum):
    """Sale lifecycle status."""
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses the status classifier reports on, in display order
TRACKED_STATUSES = (
    SaleStatus.COMPLETED.value,
    SaleStatus.PARTIALLY_PAID.value,
    SaleStatus.PENDING.value,
)


class PaymentMethod(str, Enum):
    """How a payment was collected."""
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    CREDIT = "credit"
    OTHER = "other"


class LineItem(BaseModel):
    """One product line of a sale."""
    model_config = ConfigDict(frozen=True)

    product_id: Optional[str] = None
    product_name: Optional[str] = None
    product_category: Optional[str] = None
    quantity: float = 0.0
    price_at_sale: float = 0.0
    cost_price: Optional[float] = None  # None when the product carries no cost

    @property
    def revenue(self) -> float:
        return self.price_at_sale * self.quantity

    @property
    def profit(self) -> float:
        """Margin on this line; unknown cost counts as zero."""
        return (self.price_at_sale - (self.cost_price or 0.0)) * self.quantity


class PaymentRecord(BaseModel):
    """A payment collected against a sale."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    amount: float = 0.0
    payment_date: Optional[datetime] = None
    method: PaymentMethod = PaymentMethod.OTHER
    sale_id: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def is_dated(self) -> bool:
        return self.payment_date is not None


class SaleRecord(BaseModel):
    """A sale with its line items and the payments recorded against it."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    total_amount: float = 0.0
    items: Tuple[LineItem, ...] = Field(default_factory=tuple)
    status: str = SaleStatus.PENDING.value
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    seller_id: Optional[str] = None
    seller_name: Optional[str] = None
    payments: Tuple[PaymentRecord, ...] = Field(default_factory=tuple)
    profit: Optional[float] = None  # explicit profit stored on the sale, if any

    @property
    def is_dated(self) -> bool:
        return self.created_at is not None

    @property
    def amount_paid(self) -> float:
        """Sum of this sale's payments. Not clamped to total_amount."""
        return sum(p.amount for p in self.payments)

    @property
    def outstanding_balance(self) -> float:
        return self.total_amount - self.amount_paid

    @property
    def product_count(self) -> int:
        return len(self.items)


class ExpenseRecord(BaseModel):
    """An operating expense."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    amount: float = 0.0
    created_at: Optional[datetime] = None
    category: str = "other"
    supplier_id: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_dated(self) -> bool:
        return self.created_at is not None


class SellerStat(BaseModel):
    """Pre-aggregated sales figures for one seller."""
    model_config = ConfigDict(frozen=True)

    seller_id: Optional[str] = None
    seller_name: Optional[str] = None
    total_amount: float = 0.0
    sale_count: int = 0
    total_profit: Optional[float] = None
    items: Tuple[LineItem, ...] = Field(default_factory=tuple)
