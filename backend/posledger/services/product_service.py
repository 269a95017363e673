# Overview: Product aggregate store: registration, lookups and aggregate-vs-ledger reconciliation.

"""
Product Service

Product.quantity is the fast on-hand figure; the batch ledger is the costed
detail behind it. Registration is the only place outside purchase intake that
creates stock, and it does so through an opening batch so both sides agree.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..schemas import ProductRequest
from .batch_service import (
    create_batch,
    inventory_value_cents,
    ledger_quantities_by_product,
    ledger_quantity,
)
from .concurrency import run_with_retry
from .counter_service import PRODUCT_CODE_COUNTER, increment_and_get
from .tenant_service import scoped_get, scoped_query


PRODUCT_CODE_BASE = 100000


class ProductNotFoundError(Exception):
    """Raised when a product is not found in the tenant."""
    pass


class ProductValidationError(Exception):
    """Raised when product data fails validation."""
    pass


def next_product_code(org_id: int) -> int:
    """Sequential per tenant; the first product gets 100001."""
    return PRODUCT_CODE_BASE + increment_and_get(org_id, PRODUCT_CODE_COUNTER)


def new_product(
    org_id: int,
    *,
    name: str,
    category: str,
    purchase_price_cents: int,
    retail_price_cents: int,
    wholesale_price_cents: int,
    brand: str = "no brand",
    unit: str = "pcs",
    tax_bps: int = 0,
    tax_type: str = "inclusive",
    description: str | None = None,
    size: str | None = None,
    color: str | None = None,
    alert_quantity: int = 0,
) -> Product:
    """
    Add a product with quantity 0 to the session and flush it.

    Stock is added afterwards by the caller, together with a batch.
    Does not commit.
    """
    if not name:
        raise ProductValidationError("Product name is required")
    if not category:
        raise ProductValidationError("Product category is required")

    product = Product(
        org_id=org_id,
        code=next_product_code(org_id),
        name=name,
        category=category,
        brand=brand or "no brand",
        unit=unit,
        tax_bps=tax_bps,
        tax_type=tax_type,
        description=description,
        size=size,
        color=color,
        purchase_price_cents=purchase_price_cents,
        retail_price_cents=retail_price_cents,
        wholesale_price_cents=wholesale_price_cents,
        quantity=0,
        alert_quantity=alert_quantity,
    )
    db.session.add(product)
    db.session.flush()
    return product


def register_product(org_id: int, request: ProductRequest) -> Product:
    """
    Register a product. Opening quantity > 0 is recorded as an opening batch
    (no purchase) priced at the product's purchase price.
    """
    def _op():
        product = new_product(
            org_id,
            name=request.name,
            category=request.category,
            purchase_price_cents=request.purchase_price_cents,
            retail_price_cents=request.retail_price_cents,
            wholesale_price_cents=request.wholesale_price_cents,
            brand=request.brand,
            unit=request.unit,
            tax_bps=request.tax_bps,
            tax_type=request.tax_type,
            description=request.description,
            size=request.size,
            color=request.color,
            alert_quantity=request.alert_quantity,
        )

        if request.quantity > 0:
            create_batch(
                org_id=org_id,
                product=product,
                quantity=request.quantity,
                purchase_date=request.purchase_date,
            )
            product.quantity = request.quantity

        db.session.commit()
        return product

    return run_with_retry(_op)


def get_product(org_id: int, product_id: int, *, lock: bool = False) -> Product:
    product = scoped_get(Product, org_id, product_id, lock=lock)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def list_products(org_id: int, *, low_stock: bool = False) -> list[Product]:
    query = scoped_query(Product, org_id)
    if low_stock:
        query = query.filter(Product.quantity <= Product.alert_quantity)
    return query.order_by(Product.code.asc()).all()


def stock_summary(org_id: int, product_id: int) -> dict:
    product = get_product(org_id, product_id)
    ledger = ledger_quantity(org_id, product_id)
    return {
        "product_id": product.id,
        "code": product.code,
        "name": product.name,
        "quantity": product.quantity,
        "ledger_quantity": ledger,
        "is_consistent": product.quantity == ledger,
        "inventory_value_cents": inventory_value_cents(org_id, product_id),
        "is_low_stock": product.is_low_stock,
    }


def find_inconsistent_products(org_id: int) -> list[dict]:
    """Products whose tracked quantity differs from the sum of their batches."""
    ledger = ledger_quantities_by_product(org_id)
    mismatches = []
    for product in list_products(org_id):
        expected = ledger.get(product.id, 0)
        if product.quantity != expected:
            mismatches.append({
                "product_id": product.id,
                "code": product.code,
                "name": product.name,
                "quantity": product.quantity,
                "ledger_quantity": expected,
            })
    return mismatches
