# schemas/common.py

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


# Fixed-point money on the wire: at most 12 digits, 2 of them decimals
Money = Annotated[Decimal, Field(max_digits=12, decimal_places=2)]
PositiveMoney = Annotated[Decimal, Field(gt=0, max_digits=12, decimal_places=2)]
NonNegativeMoney = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]
Percent = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]


class CamelModel(BaseModel):
    """Accepts and emits the dashboard's camelCase field names."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MessageResponse(CamelModel):
    success: bool = True
    message: str
