from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z


PAYMENT_METHODS = ("Cash", "Bank", "bKash", "Nagad", "Other")
PURCHASE_STATUSES = ("Order", "Pending", "Received")


class Purchase(db.Model):
    """
    Purchase (supplier invoice) header.

    invoice_number is allocated from the tenant's "purchase_invoice" counter in
    the same transaction that creates the purchase, its lines and its batches.
    Supplier name and phone are snapshotted so later supplier edits do not
    rewrite history.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("org_id", "invoice_number", name="uq_purchases_org_invoice_number"),
        db.Index("ix_purchases_org_supplier", "org_id", "supplier_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)
    supplier_name = db.Column(db.String(255), nullable=False)
    supplier_phone = db.Column(db.String(32), nullable=False)

    invoice_number = db.Column(db.Integer, nullable=False)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    due_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, default="Cash")
    status = db.Column(db.String(16), nullable=False, default="Order")

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier")
    lines = db.relationship(
        "PurchaseLine",
        backref="purchase",
        order_by="PurchaseLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    payments = db.relationship(
        "PurchasePayment",
        backref="purchase",
        order_by="PurchasePayment.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} invoice_number={self.invoice_number} org_id={self.org_id}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "invoice_number": self.invoice_number,
            "supplier": {
                "id": self.supplier_id,
                "name": self.supplier_name,
                "phone": self.supplier_phone,
            },
            "total_cents": self.total_cents,
            "discount_percent": str(self.discount_percent),
            "discount_cents": self.discount_cents,
            "shipping_cents": self.shipping_cents,
            "grand_total_cents": self.grand_total_cents,
            "paid_cents": self.paid_cents,
            "due_cents": self.due_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "purchase_date": to_utc_z(self.purchase_date),
            "due_date": to_utc_z(self.due_date),
            "payments": [p.to_dict() for p in self.payments],
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PurchaseLine(db.Model):
    """
    One product line of a purchase.

    RETURN ACCOUNTING:
    A purchase return adds to returned_quantity AND subtracts from quantity on the
    same line; the returnable remainder is quantity - returned_quantity.
    """
    __tablename__ = "purchase_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_purchase_lines_quantity_non_negative"),
        db.CheckConstraint("returned_quantity >= 0", name="ck_purchase_lines_returned_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    category = db.Column(db.String(120), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    returned_quantity = db.Column(db.Integer, nullable=False, default=0)

    purchase_price_cents = db.Column(db.Integer, nullable=False)
    retail_price_cents = db.Column(db.Integer, nullable=True)
    wholesale_price_cents = db.Column(db.Integer, nullable=True)

    product = db.relationship("Product")
    batches = db.relationship(
        "PurchaseBatch",
        backref=db.backref("purchase_line"),
        order_by="PurchaseBatch.id",
        lazy=True,
    )

    @property
    def returnable_quantity(self) -> int:
        return self.quantity - self.returned_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "category": self.category,
            "quantity": self.quantity,
            "returned_quantity": self.returned_quantity,
            "purchase_price_cents": self.purchase_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "line_total_cents": self.quantity * self.purchase_price_cents,
        }


class PurchasePayment(db.Model):
    __tablename__ = "purchase_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False)
    note = db.Column(db.String(255), nullable=False, default="")
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "note": self.note,
            "paid_at": to_utc_z(self.paid_at),
        }


class PurchaseReturn(db.Model):
    """
    Goods sent back to the supplier against one purchase.

    Immutable once written; the purchase lines, product quantities and batches it
    affected are updated in the same transaction.
    """
    __tablename__ = "purchase_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    invoice_number = db.Column(db.Integer, nullable=True)
    supplier_id = db.Column(db.Integer, nullable=True)
    supplier_name = db.Column(db.String(255), nullable=False, default="")

    total_return_cents = db.Column(db.Integer, nullable=False, default=0)
    reason = db.Column(db.Text, nullable=False, default="")
    return_date = db.Column(db.DateTime(timezone=True), nullable=False)
    created_by = db.Column(db.String(120), nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase = db.relationship("Purchase", backref=db.backref("returns", lazy=True))
    lines = db.relationship(
        "PurchaseReturnLine",
        backref="purchase_return",
        order_by="PurchaseReturnLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "purchase_id": self.purchase_id,
            "invoice_number": self.invoice_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "lines": [line.to_dict() for line in self.lines],
            "total_return_cents": self.total_return_cents,
            "reason": self.reason,
            "return_date": to_utc_z(self.return_date),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseReturnLine(db.Model):
    __tablename__ = "purchase_return_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_return_id = db.Column(db.Integer, db.ForeignKey("purchase_returns.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
        }
