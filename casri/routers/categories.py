# casri/routers/categories.py

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from casri.database import get_db
from casri.core.auth import get_admin_user, get_current_user, get_staff_user
from casri.core.errors import Conflict, NotFound, ValidationError
from casri.models.categories import Category
from casri.models.products import Product
from casri.schemas.common import MessageResponse
from casri.schemas.category import (
    CategoryCreate,
    CategoryListResponse,
    CategoryResponse,
    CategoryUpdate,
)

logger = logging.getLogger("casri")

router = APIRouter(prefix="/categories", tags=["Categories"])


def _get_category_or_404(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()

    if not category:
        raise NotFound("Category", category_id)

    return category


def _ensure_unique_name(db: Session, name: str, category_id: Optional[int] = None):
    query = db.query(Category.id).filter(func.lower(Category.name) == name.lower())
    if category_id is not None:
        query = query.filter(Category.id != category_id)

    if query.first():
        raise Conflict("Category with this name already exists")


def _product_count(db: Session, category_id: int) -> int:
    return db.query(func.count(Product.id)).filter(Product.category_id == category_id).scalar()


def _with_count(db: Session, category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "product_count": _product_count(db, category.id),
        "created_at": category.created_at,
    }


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    category_data: CategoryCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    name = category_data.name.strip()
    if not name:
        raise ValidationError("Category name is required")

    _ensure_unique_name(db, name)

    category = Category(name=name, description=category_data.description or "")

    db.add(category)
    db.commit()
    db.refresh(category)

    logger.info(f"Category {category.id} ({category.name}) created")

    return _with_count(db, category)


@router.get("", response_model=CategoryListResponse)
def list_categories(
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    counts = dict(
        db.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.isnot(None))
        .group_by(Product.category_id)
        .all()
    )

    categories = db.query(Category).order_by(Category.name.asc()).all()

    return {
        "data": [
            {
                "id": category.id,
                "name": category.name,
                "description": category.description,
                "product_count": counts.get(category.id, 0),
                "created_at": category.created_at,
            }
            for category in categories
        ],
        "count": len(categories),
    }


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return _with_count(db, _get_category_or_404(db, category_id))


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    category_data: CategoryUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    category = _get_category_or_404(db, category_id)

    if category_data.name is not None:
        name = category_data.name.strip()
        if not name:
            raise ValidationError("Category name is required")
        _ensure_unique_name(db, name, category_id)
        category.name = name

    if category_data.description is not None:
        category.description = category_data.description

    db.commit()
    db.refresh(category)

    return _with_count(db, category)


@router.delete("/{category_id}", response_model=MessageResponse)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_admin_user),
):
    category = _get_category_or_404(db, category_id)

    # Products stay in the catalog, uncategorised
    db.query(Product).filter(Product.category_id == category_id).update(
        {Product.category_id: None}, synchronize_session=False
    )
    db.delete(category)
    db.commit()

    logger.info(f"Category {category_id} deleted")

    return {"message": "Category deleted successfully"}
