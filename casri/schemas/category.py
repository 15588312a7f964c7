# schemas/category.py

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from casri.schemas.common import CamelModel


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class CategoryResponse(CamelModel):
    id: int
    name: str
    description: str
    product_count: int = 0
    created_at: datetime


class CategoryListResponse(CamelModel):
    data: List[CategoryResponse]
    count: int
