# casri/services/stock.py
#
# Product.stock is only ever moved from here, inside the ledger transactions
# of sales and purchases.

from sqlalchemy.orm import Session

from casri.core.errors import InsufficientStock, NotFound, ValidationError
from casri.models.products import Product


def lock_product(db: Session, product_id: int) -> Product:
    # populate_existing re-reads the row, so earlier moves in this
    # transaction must reach the database first
    db.flush()

    product = (
        db.query(Product)
        .filter(Product.id == product_id)
        .with_for_update()
        .populate_existing()
        .first()
    )

    if not product:
        raise NotFound("Product", product_id)

    return product


def lock_product_by_name(db: Session, name: str):
    db.flush()

    return (
        db.query(Product)
        .filter(Product.name == name.strip())
        .with_for_update()
        .populate_existing()
        .first()
    )


def decrement_stock(product: Product, quantity: int) -> None:
    if quantity is None or quantity <= 0:
        raise ValidationError("Item quantity must be greater than zero")

    if product.stock < quantity:
        raise InsufficientStock(product.name, product.stock, quantity)

    product.stock -= quantity


def increment_stock(product: Product, quantity: int) -> None:
    if quantity is None or quantity <= 0:
        raise ValidationError("Item quantity must be greater than zero")

    product.stock += quantity
