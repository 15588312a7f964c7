# schemas/vendor.py

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, model_validator

from casri.core.constants import PaymentMethod
from casri.core.payment_state import PaymentStatus
from casri.schemas.common import CamelModel, Money, NonNegativeMoney, PositiveMoney


class VendorCreate(CamelModel):
    name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1, max_length=32)
    location: str = Field(..., min_length=1)


class VendorUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = Field(None, min_length=1, max_length=32)
    location: Optional[str] = Field(None, min_length=1)


class VendorResponse(CamelModel):
    id: int
    name: str
    phone_number: str
    location: str
    total_purchases: int
    total_amount: Decimal
    balance: Decimal
    created_at: datetime


class PurchaseItemCreate(CamelModel):
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: int = Field(..., gt=0)
    unit_price: NonNegativeMoney

    @model_validator(mode="after")
    def _needs_product(self):
        if self.product_id is None and not (self.product_name and self.product_name.strip()):
            raise ValueError("Each purchase line needs a productId or a productName")
        return self


class PurchaseCreate(CamelModel):
    products: List[PurchaseItemCreate] = Field(..., min_length=1)

    # Defaults to the sum of the lines
    amount_due: Optional[PositiveMoney] = None
    amount_paid: NonNegativeMoney = Decimal("0")

    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


class PurchaseUpdate(CamelModel):
    # Incremental payment to the vendor
    amount: Optional[Money] = None
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None


class PurchaseItemResponse(CamelModel):
    id: int
    product_id: Optional[int]
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class PurchaseResponse(CamelModel):
    id: int
    vendor_id: int
    user_id: int
    total: Decimal
    amount_due: Decimal
    amount_paid: Decimal
    remaining_balance: Decimal
    payment_method: PaymentMethod
    status: PaymentStatus
    notes: Optional[str]
    purchase_date: datetime
    items: List[PurchaseItemResponse]


class PurchaseResult(CamelModel):
    purchase: PurchaseResponse
    vendor: VendorResponse


class PurchaseDeleteResult(CamelModel):
    success: bool = True
    message: str
    deleted_purchase_id: int
    vendor: VendorResponse


class VendorReconciliation(CamelModel):
    vendor: VendorResponse
    corrected: bool
    previous_total_purchases: int
    previous_total_amount: Decimal
    previous_balance: Decimal
