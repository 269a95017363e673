from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z

class Organization(db.Model):
    """
    Multi-tenant root: every tenant is an Organization.

    DESIGN:
    - Products, suppliers, purchase batches, purchases, returns, invoices and
      counters all carry org_id
    - Requests select their tenant with the X-Tenant-Code header, matched on code
    - Inactive organizations are treated as unknown tenants
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Counter(db.Model):
    """
    Named per-tenant sequence (purchase invoice numbers, invoice transaction
    numbers, product codes).

    Only ever changed through counter_service.increment_and_get, which does an
    atomic UPDATE ... SET value = value + 1.
    """
    __tablename__ = "counters"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_counters_org_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "value": self.value,
            "updated_at": to_utc_z(self.updated_at),
        }
