from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z


PRODUCT_UNITS = ("pcs", "kg", "ltr")
TAX_TYPES = ("inclusive", "exclusive")


class Supplier(db.Model):
    """
    Supplier directory entry.

    Purchases reference suppliers by id; a purchase naming an unknown supplier
    is rejected before any stock is touched.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_org_name", "org_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    address = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product aggregate: catalog data, current prices and on-hand quantity.

    STOCK INVARIANT:
    quantity == SUM(PurchaseBatch.remaining_quantity) for the product after every
    committed workflow. Purchase intake, invoice creation and purchase returns
    change both sides inside one transaction; nothing else writes quantity.

    PRICES:
    Authoritative storage in cents. Purchase intake overwrites purchase_price_cents
    unconditionally and retail/wholesale only when the purchase line supplies them.

    CONCURRENCY:
    version_id is SQLAlchemy's optimistic lock column; a concurrent writer makes
    the flush raise StaleDataError, which run_with_retry turns into a retry.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_products_org_code"),
        db.Index("ix_products_org_name", "org_id", "name"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    code = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False)
    brand = db.Column(db.String(120), nullable=False, default="no brand")
    unit = db.Column(db.String(8), nullable=False, default="pcs")
    tax_bps = db.Column(db.Integer, nullable=False, default=0)  # Basis points (e.g., 500 = 5%)
    tax_type = db.Column(db.String(16), nullable=False, default="inclusive")
    description = db.Column(db.Text, nullable=True)
    size = db.Column(db.String(64), nullable=True)
    color = db.Column(db.String(64), nullable=True)

    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    retail_price_cents = db.Column(db.Integer, nullable=False, default=0)
    wholesale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    alert_quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.alert_quantity

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "category": self.category,
            "brand": self.brand,
            "unit": self.unit,
            "tax_bps": self.tax_bps,
            "tax_type": self.tax_type,
            "description": self.description,
            "size": self.size,
            "color": self.color,
            "purchase_price_cents": self.purchase_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "quantity": self.quantity,
            "alert_quantity": self.alert_quantity,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseBatch(db.Model):
    """
    One received lot of a product: the FIFO costing ledger.

    LIFECYCLE:
    - Created exactly once per purchase line (and once for the opening stock of a
      newly registered product, with no purchase)
    - remaining_quantity only decreases: sales consume it oldest-first, purchase
      returns draw it back out of the purchase's own batches
    - Never deleted; exhausted batches (remaining_quantity = 0) stay for history

    FIFO ORDER: (purchase_date ASC, id ASC). id is the insertion order and makes
    batches with identical purchase dates deterministic.
    """
    __tablename__ = "purchase_batches"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_batches_quantity_positive"),
        db.CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= quantity",
            name="ck_batches_remaining_bounds",
        ),
        db.Index("ix_batches_org_product_fifo", "org_id", "product_id", "purchase_date", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Opening stock batches have no purchase
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, index=True)
    purchase_line_id = db.Column(db.Integer, db.ForeignKey("purchase_lines.id"), nullable=True, index=True)

    purchase_price_cents = db.Column(db.Integer, nullable=False)
    # Selling price snapshot at time of purchase
    retail_price_cents = db.Column(db.Integer, nullable=False)
    wholesale_price_cents = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    remaining_quantity = db.Column(db.Integer, nullable=False)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("batches", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_exhausted(self) -> bool:
        return self.remaining_quantity == 0

    def __repr__(self) -> str:
        return (
            f"<PurchaseBatch id={self.id} product_id={self.product_id} "
            f"remaining={self.remaining_quantity}/{self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "purchase_id": self.purchase_id,
            "purchase_line_id": self.purchase_line_id,
            "purchase_price_cents": self.purchase_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "quantity": self.quantity,
            "remaining_quantity": self.remaining_quantity,
            "is_exhausted": self.is_exhausted,
            "purchase_date": to_utc_z(self.purchase_date),
            "created_at": to_utc_z(self.created_at),
        }
