# Overview: Purchase intake workflow: receive supplier goods into products and the batch ledger.

"""
Purchase Intake Service

WHY: A purchase is the only regular way stock enters the system. Each line
adds quantity to its product and appends exactly one batch that carries the
line's cost, so later sales can be costed FIFO.

ATOMICITY:
Supplier lookup, product resolution/creation, quantity and price updates,
batches, the purchase header, its lines, its initial payment and the invoice
number all commit together or not at all (run_with_retry + one commit).

PRODUCT RESOLUTION:
- product_id of an existing product in the tenant: that product (row-locked)
- otherwise, with PURCHASE_AUTO_CREATE_PRODUCTS on: a new product is created
  from the line (name, category, prices) with quantity 0 before stock is added
- with PURCHASE_AUTO_CREATE_PRODUCTS off: the purchase is rejected
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import Product, Purchase, PurchaseLine, PurchasePayment
from ..schemas import PurchaseLineRequest, PurchasePaymentRequest, PurchaseRequest
from posledger.time_utils import utcnow
from .batch_service import create_batch
from .concurrency import lock_for_update, run_with_retry
from .counter_service import PURCHASE_INVOICE_COUNTER, increment_and_get
from .product_service import ProductValidationError, new_product
from .supplier_service import get_supplier
from .tenant_service import scoped_get, scoped_query


class PurchaseNotFoundError(Exception):
    """Raised when a purchase is not found in the tenant."""
    pass


class PurchaseValidationError(Exception):
    """Raised when purchase data fails validation."""
    pass


def compute_purchase_totals(request: PurchaseRequest) -> dict[str, int]:
    """
    Header totals. Values given in the request win; missing ones are derived:
    total = sum(qty * price), discount = total * percent / 100 (half up),
    grand = total - discount + shipping, due = max(grand - paid, 0).
    """
    total = request.total_cents
    if total is None:
        total = sum(line.quantity * line.purchase_price_cents for line in request.lines)

    discount = request.discount_cents
    if discount is None:
        discount = int(
            (Decimal(total) * request.discount_percent / Decimal(100)).quantize(
                Decimal("1"), rounding=ROUND_HALF_UP
            )
        )
    if discount > total:
        raise PurchaseValidationError("Discount cannot exceed the purchase total")

    grand_total = request.grand_total_cents
    if grand_total is None:
        grand_total = total - discount + request.shipping_cents

    paid = request.paid_cents
    due = request.due_cents
    if due is None:
        due = max(grand_total - paid, 0)

    return {
        "total_cents": total,
        "discount_cents": discount,
        "shipping_cents": request.shipping_cents,
        "grand_total_cents": grand_total,
        "paid_cents": paid,
        "due_cents": due,
    }


def _resolve_product(
    org_id: int,
    line: PurchaseLineRequest,
    *,
    auto_create: bool,
    created: dict[str, Product],
) -> Product:
    if line.product_id is not None:
        product = scoped_get(Product, org_id, line.product_id, lock=True)
        if product is not None:
            return product
        if not auto_create or not line.product_name:
            raise PurchaseValidationError(f"Product {line.product_id} not found")
    elif not line.product_name:
        raise PurchaseValidationError("Each line needs a product_id or a product_name")
    elif not auto_create:
        raise PurchaseValidationError(f"Unknown product '{line.product_name}'")

    # Repeated new names in one purchase land on the same new product
    key = line.product_name.strip().lower()
    if key in created:
        return created[key]

    if not line.category:
        raise PurchaseValidationError(f"Category is required for new product '{line.product_name}'")
    if line.retail_price_cents is None or line.wholesale_price_cents is None:
        raise PurchaseValidationError(
            f"Retail and wholesale prices are required for new product '{line.product_name}'"
        )

    try:
        product = new_product(
            org_id,
            name=line.product_name,
            category=line.category,
            purchase_price_cents=line.purchase_price_cents,
            retail_price_cents=line.retail_price_cents,
            wholesale_price_cents=line.wholesale_price_cents,
        )
    except ProductValidationError as e:
        raise PurchaseValidationError(str(e)) from e

    created[key] = product
    return product


def create_purchase(
    org_id: int,
    request: PurchaseRequest,
    *,
    auto_create_products: bool | None = None,
) -> Purchase:
    """
    Receive a purchase: one transaction covering products, batches and the header.

    Raises SupplierNotFoundError before touching anything when the supplier is
    unknown, and PurchaseValidationError for unresolvable lines.
    """
    if not request.lines:
        raise PurchaseValidationError("A purchase needs at least one line")
    if auto_create_products is None:
        auto_create_products = current_app.config.get("PURCHASE_AUTO_CREATE_PRODUCTS", True)

    def _op():
        supplier = get_supplier(org_id, request.supplier_id)
        totals = compute_purchase_totals(request)
        purchase_date = request.purchase_date or utcnow()

        purchase = Purchase(
            org_id=org_id,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            supplier_phone=supplier.phone,
            invoice_number=increment_and_get(org_id, PURCHASE_INVOICE_COUNTER),
            discount_percent=request.discount_percent,
            payment_method=request.payment_method,
            status=request.status,
            purchase_date=purchase_date,
            due_date=request.due_date,
            **totals,
        )
        db.session.add(purchase)
        db.session.flush()

        created: dict[str, Product] = {}
        for line_request in request.lines:
            product = _resolve_product(
                org_id,
                line_request,
                auto_create=auto_create_products,
                created=created,
            )

            product.quantity += line_request.quantity
            product.purchase_price_cents = line_request.purchase_price_cents
            if line_request.retail_price_cents is not None:
                product.retail_price_cents = line_request.retail_price_cents
            if line_request.wholesale_price_cents is not None:
                product.wholesale_price_cents = line_request.wholesale_price_cents

            line = PurchaseLine(
                purchase_id=purchase.id,
                product_id=product.id,
                category=line_request.category or product.category,
                quantity=line_request.quantity,
                returned_quantity=0,
                purchase_price_cents=line_request.purchase_price_cents,
                retail_price_cents=line_request.retail_price_cents,
                wholesale_price_cents=line_request.wholesale_price_cents,
            )
            db.session.add(line)
            db.session.flush()

            create_batch(
                org_id=org_id,
                product=product,
                quantity=line_request.quantity,
                purchase_price_cents=line_request.purchase_price_cents,
                retail_price_cents=line_request.retail_price_cents,
                wholesale_price_cents=line_request.wholesale_price_cents,
                purchase_date=purchase_date,
                purchase_id=purchase.id,
                purchase_line_id=line.id,
            )

        if totals["paid_cents"] > 0:
            db.session.add(PurchasePayment(
                purchase_id=purchase.id,
                amount_cents=totals["paid_cents"],
                method=request.payment_method,
                note="Initial payment",
                paid_at=purchase_date,
            ))

        db.session.commit()
        return purchase

    return run_with_retry(_op)


def record_purchase_payment(org_id: int, purchase_id: int, request: PurchasePaymentRequest) -> Purchase:
    """Pay (part of) the amount still owed to the supplier."""
    if request.amount_cents <= 0:
        raise PurchaseValidationError("Payment amount must be positive")

    def _op():
        purchase = lock_for_update(
            scoped_query(Purchase, org_id).filter(Purchase.id == purchase_id)
        ).first()
        if purchase is None:
            raise PurchaseNotFoundError(f"Purchase {purchase_id} not found")
        if request.amount_cents > purchase.due_cents:
            raise PurchaseValidationError(
                f"Payment of {request.amount_cents} exceeds amount due {purchase.due_cents}"
            )

        purchase.paid_cents += request.amount_cents
        purchase.due_cents -= request.amount_cents
        db.session.add(PurchasePayment(
            purchase_id=purchase.id,
            amount_cents=request.amount_cents,
            method=request.method,
            note=request.note or "",
            paid_at=utcnow(),
        ))

        db.session.commit()
        return purchase

    return run_with_retry(_op)


def get_purchase(org_id: int, purchase_id: int) -> Purchase:
    purchase = scoped_get(Purchase, org_id, purchase_id)
    if purchase is None:
        raise PurchaseNotFoundError(f"Purchase {purchase_id} not found")
    return purchase


def list_purchases(org_id: int, *, supplier_id: int | None = None) -> list[Purchase]:
    query = scoped_query(Purchase, org_id)
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    return query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).all()
