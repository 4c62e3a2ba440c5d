"""
Sales Models

Normalized sale lines consumed by the classifier and decomposer.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reconciler.models.catalog import Identifier


class LineKind(str, Enum):
    """Classification of a sale line"""
    ORIGINAL = "original"  # Standalone product sale
    COMPOSED = "composed"  # Sale of a composite, carries the billed amount
    CUMULATED = "cumulated"  # Component movement, zero amount


class SaleLine(BaseModel):
    """
    One recorded sale row.

    Every field except `line_kind` is fixed once parsed; the engine returns
    updated copies rather than mutating lines.
    """
    model_config = ConfigDict(extra="ignore")

    date: Optional[datetime] = None
    product_id: Identifier = Field(min_length=1)
    product_name: str = ""
    quantity: float
    unit_price_incl: float = 0.0
    line_amount_incl: float = 0.0
    order_ref: Optional[str] = None

    # Commercial passthrough
    store: Optional[str] = None
    cashier: Optional[str] = None
    client: Optional[str] = None
    supplier: Optional[str] = None
    manufacturer: Optional[str] = None
    payment: Optional[str] = None
    category: Optional[str] = None
    operation_id: Optional[str] = None
    purchase_price: Optional[float] = None
    is_return: bool = False

    line_kind: LineKind = LineKind.ORIGINAL

    @field_validator("unit_price_incl", "line_amount_incl", mode="before")
    @classmethod
    def default_missing_amount(cls, v: Any) -> Any:
        return 0.0 if v is None else v

    @field_validator("order_ref", mode="before")
    @classmethod
    def blank_order_ref(cls, v: Any) -> Any:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @property
    def is_zero_priced(self) -> bool:
        """Zero unit price and zero amount: the silent component signal"""
        return self.unit_price_incl == 0 and self.line_amount_incl == 0

    @property
    def amount_gap(self) -> float:
        """Difference between the recorded amount and quantity x unit price"""
        return abs(self.line_amount_incl - self.quantity * self.unit_price_incl)
