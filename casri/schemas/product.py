from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, model_validator

from casri.schemas.common import CamelModel, NonNegativeMoney


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    barcode: Optional[str] = Field(None, max_length=64)
    category_id: Optional[int] = None

    cost: NonNegativeMoney

    # Falls back to cost when omitted
    price: Optional[NonNegativeMoney] = None

    stock: int = Field(0, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    expiry_date: Optional[date] = None

    @model_validator(mode="after")
    def _default_price(self):
        if self.price is None:
            self.price = self.cost
        return self


class ProductUpdate(CamelModel):
    # Stock is deliberately absent: it only moves through sales and purchases
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    barcode: Optional[str] = Field(None, max_length=64)
    category_id: Optional[int] = None
    cost: Optional[NonNegativeMoney] = None
    price: Optional[NonNegativeMoney] = None
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    expiry_date: Optional[date] = None


class ProductResponse(CamelModel):
    id: int
    name: str
    description: Optional[str]
    barcode: Optional[str]
    category_id: Optional[int]
    cost: Decimal
    price: Decimal
    stock: int
    low_stock_threshold: int
    expiry_date: Optional[date]
    in_stock: bool
    stock_status: str
    created_at: datetime
