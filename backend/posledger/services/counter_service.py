# Overview: Atomic per-tenant sequence numbers for purchases, invoices and product codes.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Counter


PURCHASE_INVOICE_COUNTER = "purchase_invoice"
INVOICE_COUNTER = "invoice"
PRODUCT_CODE_COUNTER = "product_code"


class CounterError(Exception):
    """Raised when counter operations fail."""
    pass


def increment_and_get(org_id: int, name: str) -> int:
    """
    Atomically increment the (org_id, name) counter and return the new value.

    The first call for a name returns 1. Uses a single UPDATE ... SET value =
    value + 1, so concurrent callers serialize on the row and never read the
    same value. When the row does not exist yet it is inserted inside a
    savepoint; losing that insert race falls back to the UPDATE.

    Does not commit: the number is only consumed if the caller's transaction
    commits.
    """
    if not org_id:
        raise CounterError("org_id is required")
    if not name:
        raise CounterError("counter name is required")

    stmt = (
        update(Counter)
        .where(Counter.org_id == org_id, Counter.name == name)
        .values(value=Counter.value + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(Counter(org_id=org_id, name=name, value=1))
            return 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    return (
        db.session.query(Counter.value)
        .filter_by(org_id=org_id, name=name)
        .scalar()
    )
