# Overview: FIFO deduction engine: consume outgoing quantity from the oldest batches first.

"""
FIFO Deduction Engine

Purpose:
- Consume a sale quantity from a product's batches in (purchase_date, id) order
- Report which batches were touched, how much each gave, and at what prices

Contract:
- Insufficient stock is a result (success=False), not an exception
- Each batch decrement is flushed before the next batch is considered, so a
  partial consumption is visible inside the current transaction
- Never commits and never touches Product.quantity; the caller decides whether
  the transaction commits or rolls back
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from .batch_service import active_batches_query, ledger_quantity


@dataclass(frozen=True)
class BatchConsumption:
    batch_id: int
    quantity: int
    purchase_price_cents: int
    retail_price_cents: int
    wholesale_price_cents: int

    @property
    def cost_cents(self) -> int:
        return self.quantity * self.purchase_price_cents

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "quantity": self.quantity,
            "purchase_price_cents": self.purchase_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
        }


@dataclass(frozen=True)
class DeductionResult:
    success: bool
    remaining_to_deduct: int
    deducted_batches: tuple[BatchConsumption, ...] = ()

    @property
    def deducted_quantity(self) -> int:
        return sum(c.quantity for c in self.deducted_batches)

    @property
    def cost_cents(self) -> int:
        return sum(c.cost_cents for c in self.deducted_batches)


def _require_quantity(quantity) -> int:
    # bool is an int subclass
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValueError("quantity must be a whole integer unit")
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    return quantity


def deduct(org_id: int, product_id: int, quantity: int) -> DeductionResult:
    """
    Deduct quantity from the product's batches, oldest first.

    Returns DeductionResult(success, remaining_to_deduct, deducted_batches).
    With no batches at all the result is success=False with the full quantity
    still to deduct. Raises ValueError for a non-positive or non-integer quantity.
    """
    still_needed = _require_quantity(quantity)
    consumed: list[BatchConsumption] = []

    for batch in active_batches_query(org_id, product_id, lock=True).all():
        if still_needed == 0:
            break

        take = min(batch.remaining_quantity, still_needed)
        batch.remaining_quantity -= take
        db.session.flush()

        consumed.append(
            BatchConsumption(
                batch_id=batch.id,
                quantity=take,
                purchase_price_cents=batch.purchase_price_cents,
                retail_price_cents=batch.retail_price_cents,
                wholesale_price_cents=batch.wholesale_price_cents,
            )
        )
        still_needed -= take

    return DeductionResult(
        success=still_needed == 0,
        remaining_to_deduct=still_needed,
        deducted_batches=tuple(consumed),
    )


def deductible_quantity(org_id: int, product_id: int) -> int:
    """Units the engine could hand out right now (exhausted batches hold none)."""
    return ledger_quantity(org_id, product_id)
