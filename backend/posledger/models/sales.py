from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z


SALE_SYSTEMS = ("retailSale", "wholeSale")
INVOICE_PAYMENT_METHODS = ("cash", "bkash", "nagad", "bank", "card")


class Invoice(db.Model):
    """
    Sales invoice.

    Created in one transaction with the FIFO batch deductions and product
    quantity decrements it causes; an invoice that cannot be fully satisfied
    from stock is never written.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("org_id", "transaction_number", name="uq_invoices_org_transaction_number"),
        db.Index("ix_invoices_org_sale_system", "org_id", "sale_system"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    transaction_number = db.Column(db.Integer, nullable=False)

    sale_system = db.Column(db.String(16), nullable=False, default="retailSale")
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    payable_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    due_cents = db.Column(db.Integer, nullable=False, default=0)
    change_cents = db.Column(db.Integer, nullable=False, default=0)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        order_by="InvoiceLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    payments = db.relationship(
        "InvoicePayment",
        backref="invoice",
        order_by="InvoicePayment.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    @property
    def cost_cents(self) -> int:
        return sum(line.cost_cents for line in self.lines)

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} transaction_number={self.transaction_number} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        cost = self.cost_cents
        return {
            "id": self.id,
            "org_id": self.org_id,
            "transaction_number": self.transaction_number,
            "sale_system": self.sale_system,
            "customer": {"name": self.customer_name, "phone": self.customer_phone},
            "payment_method": self.payment_method,
            "lines": [line.to_dict() for line in self.lines],
            "totals": {
                "total_cents": self.total_cents,
                "discount_cents": self.discount_cents,
                "payable_cents": self.payable_cents,
                "paid_cents": self.paid_cents,
                "due_cents": self.due_cents,
                "change_cents": self.change_cents,
            },
            "cost_cents": cost,
            "profit_cents": self.payable_cents - cost,
            "due_date": to_utc_z(self.due_date),
            "payments": [p.to_dict() for p in self.payments],
            "created_at": to_utc_z(self.created_at),
        }


class InvoiceLine(db.Model):
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    cost_batches = db.relationship(
        "InvoiceLineBatch",
        backref="invoice_line",
        order_by="InvoiceLineBatch.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    @property
    def cost_cents(self) -> int:
        return sum(b.quantity * b.purchase_price_cents for b in self.cost_batches)

    def to_dict(self) -> dict:
        cost = self.cost_cents
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "total_cents": self.total_cents,
            "cost_cents": cost,
            "profit_cents": self.total_cents - cost,
            "deducted_batches": [b.to_dict() for b in self.cost_batches],
        }


class InvoiceLineBatch(db.Model):
    """
    Cost breakdown of an invoice line: one row per purchase batch consumed.

    Prices are copied from the batch at sale time so margin reports stay
    correct after the batch is exhausted.
    """
    __tablename__ = "invoice_line_batches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_line_id = db.Column(db.Integer, db.ForeignKey("invoice_lines.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("purchase_batches.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    purchase_price_cents = db.Column(db.Integer, nullable=False)
    retail_price_cents = db.Column(db.Integer, nullable=False)
    wholesale_price_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "quantity": self.quantity,
            "purchase_price_cents": self.purchase_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
        }


class InvoicePayment(db.Model):
    __tablename__ = "invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    paid_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    next_due_cents = db.Column(db.Integer, nullable=False, default=0)
    next_due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "paid_cents": self.paid_cents,
            "discount_cents": self.discount_cents,
            "next_due_cents": self.next_due_cents,
            "next_due_date": to_utc_z(self.next_due_date),
            "paid_at": to_utc_z(self.paid_at),
        }
