# Overview: Purchase batch ledger store: append, FIFO queries and purchase-return draw-down.

"""
Batch Ledger Service

WHY: Every unit of stock came from some received lot with its own purchase
price. The batch ledger keeps those lots so sales can be costed oldest-first.

INVARIANTS:
- Batches are appended, never deleted
- remaining_quantity only moves downward, staying within [0, quantity]
- FIFO order is (purchase_date ASC, id ASC)

Nothing in this module commits; callers own the transaction.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Product, PurchaseBatch
from posledger.time_utils import utcnow
from .concurrency import lock_for_update


class BatchLedgerError(Exception):
    """Raised when a batch operation would break the ledger invariants."""
    pass


def create_batch(
    *,
    org_id: int,
    product: Product,
    quantity: int,
    purchase_price_cents: int | None = None,
    retail_price_cents: int | None = None,
    wholesale_price_cents: int | None = None,
    purchase_date: datetime | None = None,
    purchase_id: int | None = None,
    purchase_line_id: int | None = None,
) -> PurchaseBatch:
    """
    Append one batch with quantity == remaining_quantity.

    Prices that are not given fall back to the product's current prices.
    """
    if quantity <= 0:
        raise BatchLedgerError("Batch quantity must be positive")

    batch = PurchaseBatch(
        org_id=org_id,
        product_id=product.id,
        purchase_id=purchase_id,
        purchase_line_id=purchase_line_id,
        purchase_price_cents=(
            purchase_price_cents if purchase_price_cents is not None else product.purchase_price_cents
        ),
        retail_price_cents=(
            retail_price_cents if retail_price_cents is not None else product.retail_price_cents
        ),
        wholesale_price_cents=(
            wholesale_price_cents if wholesale_price_cents is not None else product.wholesale_price_cents
        ),
        quantity=quantity,
        remaining_quantity=quantity,
        purchase_date=purchase_date or utcnow(),
    )
    db.session.add(batch)
    db.session.flush()
    return batch


def fifo_ordered(query):
    return query.order_by(PurchaseBatch.purchase_date.asc(), PurchaseBatch.id.asc())


def active_batches_query(org_id: int, product_id: int, *, lock: bool = False):
    """Non-exhausted batches of one product, oldest first."""
    query = db.session.query(PurchaseBatch).filter(
        PurchaseBatch.org_id == org_id,
        PurchaseBatch.product_id == product_id,
        PurchaseBatch.remaining_quantity > 0,
    )
    query = fifo_ordered(query)
    if lock:
        query = lock_for_update(query)
    return query


def list_batches(org_id: int, product_id: int, *, include_exhausted: bool = True) -> list[PurchaseBatch]:
    if not include_exhausted:
        return active_batches_query(org_id, product_id).all()
    query = db.session.query(PurchaseBatch).filter(
        PurchaseBatch.org_id == org_id,
        PurchaseBatch.product_id == product_id,
    )
    return fifo_ordered(query).all()


def ledger_quantity(org_id: int, product_id: int) -> int:
    """Sum of remaining quantity across the product's batches."""
    total = (
        db.session.query(func.coalesce(func.sum(PurchaseBatch.remaining_quantity), 0))
        .filter(PurchaseBatch.org_id == org_id, PurchaseBatch.product_id == product_id)
        .scalar()
    )
    return int(total or 0)


def inventory_value_cents(org_id: int, product_id: int) -> int:
    """FIFO valuation of what is still on hand: sum(remaining * purchase price)."""
    total = (
        db.session.query(
            func.coalesce(
                func.sum(PurchaseBatch.remaining_quantity * PurchaseBatch.purchase_price_cents),
                0,
            )
        )
        .filter(PurchaseBatch.org_id == org_id, PurchaseBatch.product_id == product_id)
        .scalar()
    )
    return int(total or 0)


def ledger_quantities_by_product(org_id: int) -> dict[int, int]:
    rows = (
        db.session.query(PurchaseBatch.product_id, func.sum(PurchaseBatch.remaining_quantity))
        .filter(PurchaseBatch.org_id == org_id)
        .group_by(PurchaseBatch.product_id)
        .all()
    )
    return {product_id: int(total or 0) for product_id, total in rows}


def unsold_quantity(batches: list[PurchaseBatch]) -> int:
    return sum(b.remaining_quantity for b in batches)


def draw_down_batches(
    org_id: int,
    product_id: int,
    quantity: int,
    *,
    preferred: list[PurchaseBatch] | tuple = (),
) -> int:
    """
    Take quantity back out of a product's batches, newest first.

    Used by purchase returns: goods going back to the supplier leave the lots
    they arrived in (preferred) first. Whatever those lots no longer hold,
    because FIFO already sold it, comes out of the product's other active
    batches, newest first. Raises BatchLedgerError when the product's whole
    ledger cannot cover the quantity. Returns the quantity drawn.
    """
    if quantity <= 0:
        raise BatchLedgerError("Draw-down quantity must be positive")

    own = sorted(
        (b for b in preferred if b.remaining_quantity > 0),
        key=lambda b: (b.purchase_date, b.id),
        reverse=True,
    )
    own_ids = {b.id for b in own}
    others = [
        b for b in reversed(active_batches_query(org_id, product_id, lock=True).all())
        if b.id not in own_ids
    ]
    candidates = own + others
    if unsold_quantity(candidates) < quantity:
        raise BatchLedgerError(f"Not enough stock left in the batches of product {product_id}")

    still_needed = quantity
    for batch in candidates:
        if still_needed == 0:
            break
        take = min(batch.remaining_quantity, still_needed)
        if take <= 0:
            continue
        batch.remaining_quantity -= take
        still_needed -= take
        db.session.flush()

    return quantity
