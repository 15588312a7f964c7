# =========================================================
# VENDORS & PURCHASES ROUTER
#
# Vendor aggregates (totalPurchases, totalAmount, balance) are read-only
# here: they only move through services.purchases.
# =========================================================

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from casri.database import get_db
from casri.core.auth import get_admin_user, get_staff_user
from casri.core.errors import Conflict, NotFound
from casri.models.purchases import Purchase
from casri.models.vendors import Vendor
from casri.schemas.common import MessageResponse
from casri.schemas.vendor import (
    PurchaseCreate,
    PurchaseDeleteResult,
    PurchaseResponse,
    PurchaseResult,
    PurchaseUpdate,
    VendorCreate,
    VendorReconciliation,
    VendorResponse,
    VendorUpdate,
)
from casri.services import purchases as purchases_service

logger = logging.getLogger("casri")

router = APIRouter(prefix="/vendors", tags=["Vendors"])


def _get_vendor_or_404(db: Session, vendor_id: int) -> Vendor:
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()

    if not vendor:
        raise NotFound("Vendor", vendor_id)

    return vendor


# =========================================================
# VENDOR CRUD
# =========================================================
@router.post("", response_model=VendorResponse, status_code=status.HTTP_201_CREATED)
def create_vendor(
    vendor_data: VendorCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    vendor = Vendor(
        name=vendor_data.name.strip(),
        phone_number=vendor_data.phone_number.strip(),
        location=vendor_data.location.strip(),
    )

    db.add(vendor)
    db.commit()
    db.refresh(vendor)

    logger.info(f"Vendor {vendor.id} ({vendor.name}) created")

    return vendor


@router.get("", response_model=list[VendorResponse])
def list_vendors(
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return db.query(Vendor).order_by(Vendor.created_at.desc(), Vendor.id.desc()).all()


@router.get("/{vendor_id}", response_model=VendorResponse)
def get_vendor(
    vendor_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return _get_vendor_or_404(db, vendor_id)


@router.put("/{vendor_id}", response_model=VendorResponse)
def update_vendor(
    vendor_id: int,
    vendor_data: VendorUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    vendor = _get_vendor_or_404(db, vendor_id)

    for field, value in vendor_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(vendor, field, value.strip())

    db.commit()
    db.refresh(vendor)

    return vendor


@router.delete("/{vendor_id}", response_model=MessageResponse)
def delete_vendor(
    vendor_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_admin_user),
):
    vendor = _get_vendor_or_404(db, vendor_id)

    if db.query(Purchase.id).filter(Purchase.vendor_id == vendor_id).first():
        raise Conflict("Vendor has purchases and cannot be deleted")

    db.delete(vendor)
    db.commit()

    logger.info(f"Vendor {vendor_id} deleted")

    return {"message": "Vendor deleted successfully"}


# =========================================================
# PURCHASES
# =========================================================
@router.post(
    "/{vendor_id}/purchases",
    response_model=PurchaseResult,
    status_code=status.HTTP_201_CREATED,
)
def create_purchase(
    vendor_id: int,
    purchase_data: PurchaseCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    purchase = purchases_service.create_purchase(db, vendor_id, purchase_data, current_user)
    return {"purchase": purchase, "vendor": purchase.vendor}


@router.get("/{vendor_id}/purchases", response_model=list[PurchaseResponse])
def list_purchases(
    vendor_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return purchases_service.list_vendor_purchases(db, vendor_id)


@router.get("/{vendor_id}/purchases/{purchase_id}", response_model=PurchaseResponse)
def get_purchase(
    vendor_id: int,
    purchase_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    return purchases_service.get_purchase(db, vendor_id, purchase_id)


@router.put("/{vendor_id}/purchases/{purchase_id}", response_model=PurchaseResult)
def update_purchase(
    vendor_id: int,
    purchase_id: int,
    purchase_data: PurchaseUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_staff_user),
):
    purchase = purchases_service.update_purchase(db, vendor_id, purchase_id, purchase_data)
    return {"purchase": purchase, "vendor": purchase.vendor}


@router.delete("/{vendor_id}/purchases/{purchase_id}", response_model=PurchaseDeleteResult)
def delete_purchase(
    vendor_id: int,
    purchase_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_admin_user),
):
    vendor = purchases_service.delete_purchase(db, vendor_id, purchase_id)

    return {
        "message": "Purchase deleted and vendor totals reversed",
        "deleted_purchase_id": purchase_id,
        "vendor": vendor,
    }


# =========================================================
# RECONCILIATION
# =========================================================
@router.post("/{vendor_id}/reconcile", response_model=VendorReconciliation)
def reconcile_vendor(
    vendor_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_admin_user),
):
    result = purchases_service.reconcile_vendor(db, vendor_id)

    return {
        "vendor": result.vendor,
        "corrected": result.corrected,
        "previous_total_purchases": result.previous.total_purchases,
        "previous_total_amount": result.previous.total_amount,
        "previous_balance": result.previous.balance,
    }
