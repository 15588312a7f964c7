# casri/routers/products.py

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from casri.database import get_db
from casri.core.auth import get_admin_user, get_current_user, get_staff_user
from casri.core.config import settings
from casri.core.errors import Conflict, NotFound
from casri.models.categories import Category
from casri.models.products import Product
from casri.models.purchase_items import PurchaseItem
from casri.models.sale_items import SaleItem
from casri.schemas.common import MessageResponse
from casri.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
)

logger = logging.getLogger("casri")

router = APIRouter(
    prefix="/products",
    tags=["Products"],
)


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()

    if not product:
        raise NotFound("Product", product_id)

    return product


def _ensure_unique_barcode(db: Session, barcode: Optional[str], product_id: Optional[int] = None):
    if not barcode:
        return

    query = db.query(Product.id).filter(Product.barcode == barcode)
    if product_id is not None:
        query = query.filter(Product.id != product_id)

    if query.first():
        raise Conflict("Product with this barcode already exists")


def _ensure_category(db: Session, category_id: Optional[int]):
    if category_id is None:
        return

    if not db.query(Category.id).filter(Category.id == category_id).first():
        raise NotFound("Category", category_id)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    barcode = (product_data.barcode or "").strip() or None
    _ensure_unique_barcode(db, barcode)
    _ensure_category(db, product_data.category_id)

    product = Product(
        name=product_data.name.strip(),
        description=product_data.description,
        barcode=barcode,
        category_id=product_data.category_id,
        cost=product_data.cost,
        price=product_data.price,
        stock=product_data.stock,
        low_stock_threshold=(
            product_data.low_stock_threshold
            if product_data.low_stock_threshold is not None
            else settings.DEFAULT_LOW_STOCK_THRESHOLD
        ),
        expiry_date=product_data.expiry_date,
    )

    db.add(product)
    db.commit()
    db.refresh(product)

    logger.info(f"Product {product.id} ({product.name}) created with stock {product.stock}")

    return product


@router.get("", response_model=list[ProductResponse])
def list_products(
    search: Optional[str] = Query(None),
    low_stock: bool = Query(False, alias="lowStock"),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    query = db.query(Product)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(Product.name.ilike(pattern) | Product.barcode.ilike(pattern))

    if low_stock:
        query = query.filter(Product.stock <= Product.low_stock_threshold)

    if category_id is not None:
        query = query.filter(Product.category_id == category_id)

    return query.order_by(Product.id.desc()).all()


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return _get_product_or_404(db, product_id)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    product = _get_product_or_404(db, product_id)

    changes = product_data.model_dump(exclude_unset=True)

    if "barcode" in changes:
        # Blank means "no barcode", same as on create
        changes["barcode"] = (changes["barcode"] or "").strip() or None
        _ensure_unique_barcode(db, changes["barcode"], product_id)

    if "category_id" in changes:
        _ensure_category(db, changes["category_id"])

    for field, value in changes.items():
        if field in ("name", "cost", "price", "low_stock_threshold") and value is None:
            continue
        setattr(product, field, value)

    db.commit()
    db.refresh(product)

    return product


@router.delete("/{product_id}", response_model=MessageResponse)
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_admin_user),
):
    product = _get_product_or_404(db, product_id)

    referenced = (
        db.query(SaleItem.id).filter(SaleItem.product_id == product_id).first()
        or db.query(PurchaseItem.id).filter(PurchaseItem.product_id == product_id).first()
    )
    if referenced:
        raise Conflict("Product is referenced by sales or purchases and cannot be deleted")

    db.delete(product)
    db.commit()

    logger.info(f"Product {product_id} deleted")

    return {"message": "Product deleted successfully"}
