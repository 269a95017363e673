"""
Multi-Tenant Service: tenant resolution and scoping helpers

WHY: Every request works inside exactly one tenant (Organization). Rows owned by
another tenant must behave as if they do not exist.

SECURITY INVARIANTS:
1. Every tenant-scoped request has g.org_id set (see decorators.require_tenant)
2. Ids from client input are always looked up together with org_id
3. Cross-tenant lookups return "not found", never "forbidden", so existence
   in another tenant is not revealed

USAGE:
    from posledger.services.tenant_service import scoped_get

    product = scoped_get(Product, g.org_id, product_id, lock=True)
"""

from flask import g

from ..extensions import db
from ..models import Organization
from .concurrency import lock_for_update


class TenantAccessError(Exception):
    """Raised when a tenant cannot be resolved or is inactive."""
    pass


def normalize_tenant_code(code: str | None) -> str:
    return (code or "").strip().upper()


def resolve_tenant(code: str | None) -> Organization:
    """
    Look up an active organization by its code.

    Raises TenantAccessError for empty, unknown or inactive codes.
    """
    code = normalize_tenant_code(code)
    if not code:
        raise TenantAccessError("Tenant code is required")

    org = db.session.query(Organization).filter_by(code=code).first()
    if org is None or not org.is_active:
        raise TenantAccessError("Tenant not found")
    return org


def get_current_org_id() -> int:
    """
    Get current tenant's org_id from Flask g context.

    Raises TenantAccessError if not set; this should never happen after @require_tenant.
    """
    if not hasattr(g, "org_id") or g.org_id is None:
        raise TenantAccessError("Tenant context not established")
    return g.org_id


def create_tenant(*, name: str, code: str) -> Organization:
    name = (name or "").strip()
    code = normalize_tenant_code(code)
    if not name:
        raise TenantAccessError("Tenant name is required")
    if not code:
        raise TenantAccessError("Tenant code is required")
    if db.session.query(Organization).filter_by(code=code).first():
        raise TenantAccessError(f"Tenant code '{code}' already exists")

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()
    return org


def scoped_query(model, org_id: int):
    """Base query for a tenant-owned model, filtered to one organization."""
    return db.session.query(model).filter(model.org_id == org_id)


def scoped_get(model, org_id: int, entity_id: int | None, *, lock: bool = False):
    """Fetch one tenant-owned row by id, or None when missing or owned by another tenant."""
    if entity_id is None:
        return None
    query = scoped_query(model, org_id).filter(model.id == entity_id)
    if lock:
        query = lock_for_update(query)
    return query.first()
