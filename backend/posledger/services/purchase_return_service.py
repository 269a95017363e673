# Overview: Purchase return workflow: send received goods back to the supplier.

"""
Purchase Return Service

WHY: Goods returned to a supplier must come off the purchase they arrived on,
off the product's on-hand quantity, and out of the batch ledger, all at once.

RULES:
- A return can never exceed what is still returnable on the purchase line
  (quantity - returned_quantity); several return lines for the same product
  are added up before the check
- Returned units leave the purchase's own batches first, newest first; what
  FIFO already sold from those comes out of the product's other batches,
  again newest first
- A return is refused only when the product has fewer units on hand than
  are going back
- Every check runs before the first write, and the whole return commits in
  one transaction, so a rejected return changes nothing
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product, Purchase, PurchaseLine, PurchaseReturn, PurchaseReturnLine
from ..schemas import PurchaseReturnRequest
from posledger.time_utils import utcnow
from .batch_service import draw_down_batches, ledger_quantity
from .concurrency import lock_for_update, run_with_retry
from .purchase_service import PurchaseNotFoundError
from .tenant_service import scoped_get, scoped_query


class PurchaseReturnError(Exception):
    """Raised when a purchase return cannot be accepted."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PurchaseReturnNotFoundError(Exception):
    """Raised when a purchase return is not found in the tenant."""
    pass


def _find_purchase_line(purchase: Purchase, product_id: int) -> PurchaseLine | None:
    for line in purchase.lines:
        if line.product_id == product_id:
            return line
    return None


def _line_total(line_request) -> int:
    if line_request.line_total_cents is not None:
        return line_request.line_total_cents
    total = line_request.quantity * line_request.price_cents - line_request.discount_cents
    if total < 0:
        raise PurchaseReturnError(
            f"Discount exceeds the value returned for product {line_request.product_id}"
        )
    return total


def create_purchase_return(org_id: int, request: PurchaseReturnRequest) -> PurchaseReturn:
    """
    Record a return against one purchase.

    Raises PurchaseNotFoundError when the purchase is not in the tenant and
    PurchaseReturnError for any line that cannot be returned.
    """
    if not request.lines:
        raise PurchaseReturnError("A return needs at least one line")
    for line_request in request.lines:
        if line_request.quantity <= 0:
            raise PurchaseReturnError(
                f"Return quantity for product {line_request.product_id} must be positive"
            )

    requested: dict[int, int] = {}
    for line_request in request.lines:
        requested[line_request.product_id] = requested.get(line_request.product_id, 0) + line_request.quantity

    def _op():
        purchase = lock_for_update(
            scoped_query(Purchase, org_id).filter(Purchase.id == request.purchase_id)
        ).first()
        if purchase is None:
            raise PurchaseNotFoundError(f"Purchase {request.purchase_id} not found")

        # Validate everything first
        plan = []
        for product_id, qty in requested.items():
            purchase_line = _find_purchase_line(purchase, product_id)
            if purchase_line is None:
                raise PurchaseReturnError(f"Product {product_id} is not part of this purchase")

            remaining = purchase_line.quantity - purchase_line.returned_quantity
            if qty > remaining:
                raise PurchaseReturnError(
                    f"Cannot return {qty} of product {product_id}: only {remaining} returnable",
                    details={"product_id": product_id, "requested": qty, "returnable": remaining},
                )

            product = scoped_get(Product, org_id, product_id, lock=True)
            if product is None:
                raise PurchaseReturnError(f"Product {product_id} is not part of this purchase")
            on_hand = min(product.quantity, ledger_quantity(org_id, product_id))
            if qty > on_hand:
                raise PurchaseReturnError(
                    f"Cannot return {qty} of product {product_id}: only {on_hand} on hand",
                    details={"product_id": product_id, "requested": qty, "on_hand": on_hand},
                )
            plan.append((purchase_line, product, qty))

        normalized = []
        for line_request in request.lines:
            product = next(p for line, p, _ in plan if line.product_id == line_request.product_id)
            normalized.append(PurchaseReturnLine(
                product_id=line_request.product_id,
                product_name=line_request.product_name or product.name,
                quantity=line_request.quantity,
                price_cents=line_request.price_cents,
                discount_cents=line_request.discount_cents,
                line_total_cents=_line_total(line_request),
            ))

        total = request.total_return_cents
        if total is None:
            total = sum(line.line_total_cents for line in normalized)

        # Apply
        for purchase_line, product, qty in plan:
            purchase_line.returned_quantity += qty
            purchase_line.quantity -= qty
            draw_down_batches(org_id, product.id, qty, preferred=purchase_line.batches)
            product.quantity -= qty

        purchase_return = PurchaseReturn(
            org_id=org_id,
            purchase_id=purchase.id,
            invoice_number=purchase.invoice_number,
            supplier_id=purchase.supplier_id,
            supplier_name=purchase.supplier_name,
            total_return_cents=total,
            reason=request.reason or "",
            return_date=request.return_date or utcnow(),
            created_by=request.created_by or "",
            lines=normalized,
        )
        db.session.add(purchase_return)

        db.session.commit()
        return purchase_return

    return run_with_retry(_op)


def get_purchase_return(org_id: int, return_id: int) -> PurchaseReturn:
    purchase_return = scoped_get(PurchaseReturn, org_id, return_id)
    if purchase_return is None:
        raise PurchaseReturnNotFoundError(f"Purchase return {return_id} not found")
    return purchase_return


def list_purchase_returns(org_id: int, *, purchase_id: int | None = None) -> list[PurchaseReturn]:
    query = scoped_query(PurchaseReturn, org_id)
    if purchase_id is not None:
        query = query.filter(PurchaseReturn.purchase_id == purchase_id)
    return query.order_by(PurchaseReturn.return_date.desc(), PurchaseReturn.id.desc()).all()
