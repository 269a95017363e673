# Overview: Supplier directory lookups used by purchase intake.

"""
Supplier Service

Suppliers are a key-lookup directory for the stock workflows: purchase intake
rejects unknown or inactive suppliers before touching any product or batch.
Creation exists for bootstrap (CLI) and tests; full supplier management is
handled outside this service.
"""

from ..extensions import db
from ..models import Supplier
from .tenant_service import scoped_get, scoped_query


class SupplierNotFoundError(Exception):
    """Raised when a supplier is not found in the tenant."""
    pass


class SupplierValidationError(Exception):
    """Raised when supplier data fails validation."""
    pass


def get_supplier(org_id: int, supplier_id: int) -> Supplier:
    supplier = scoped_get(Supplier, org_id, supplier_id)
    if supplier is None or not supplier.is_active:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def create_supplier(
    *,
    org_id: int,
    name: str,
    phone: str,
    address: str | None = None,
) -> Supplier:
    name = (name or "").strip()
    phone = (phone or "").strip()
    if not name:
        raise SupplierValidationError("Supplier name is required")
    if not phone:
        raise SupplierValidationError("Supplier phone is required")

    supplier = Supplier(
        org_id=org_id,
        name=name,
        phone=phone,
        address=address,
        is_active=True,
    )
    db.session.add(supplier)
    db.session.commit()
    return supplier


def list_suppliers(org_id: int) -> list[Supplier]:
    return scoped_query(Supplier, org_id).order_by(Supplier.name.asc()).all()
