# Overview: Invoice creation: FIFO stock deduction, cost breakdown and totals in one transaction.

"""
Invoice Service

WHY: A sale consumes stock. Each invoice line asks the FIFO engine for its
quantity, records which batches paid for it (cost basis for margin reports),
and decrements the product by exactly what the engine handed out.

OVERSELLING:
An invoice is all-or-nothing. If any line cannot be fully satisfied from the
product's quantity and its batches, InsufficientStockError is raised and the
transaction is rolled back: no batch, product, counter or invoice change
survives.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Invoice, InvoiceLine, InvoiceLineBatch, InvoicePayment, Product
from ..schemas import InvoiceRequest
from posledger.time_utils import utcnow
from .concurrency import run_with_retry
from .counter_service import INVOICE_COUNTER, increment_and_get
from .fifo_service import deduct
from .product_service import ProductNotFoundError
from .tenant_service import scoped_get, scoped_query


class InvoiceError(Exception):
    """Raised for invoice operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(InvoiceError):
    """Raised when a line asks for more than the product has on hand."""
    pass


class InvoiceNotFoundError(Exception):
    """Raised when an invoice is not found in the tenant."""
    pass


def compute_invoice_totals(
    line_totals: list[int],
    *,
    discount_cents: int = 0,
    paid_cents: int = 0,
    due_date: datetime | None = None,
) -> dict:
    """
    total = sum of lines, payable = total - discount.
    Underpayment leaves a due amount (and keeps due_date); overpayment is change.
    """
    total = sum(line_totals)
    if discount_cents > total:
        raise InvoiceError("Discount cannot exceed the invoice total")
    payable = total - discount_cents

    due = payable - paid_cents if paid_cents < payable else 0
    change = paid_cents - payable if paid_cents > payable else 0

    return {
        "total_cents": total,
        "discount_cents": discount_cents,
        "payable_cents": payable,
        "paid_cents": paid_cents,
        "due_cents": due,
        "change_cents": change,
        "due_date": due_date if due > 0 else None,
    }


def _default_price(product: Product, sale_system: str) -> int:
    if sale_system == "wholeSale":
        return product.wholesale_price_cents
    return product.retail_price_cents


def create_invoice(org_id: int, request: InvoiceRequest) -> Invoice:
    """
    Create an invoice and deduct its stock FIFO.

    Raises ProductNotFoundError for a product outside the tenant and
    InsufficientStockError (with details) when stock cannot cover a line.
    """
    if not request.lines:
        raise InvoiceError("An invoice needs at least one line")
    for line_request in request.lines:
        if line_request.quantity <= 0:
            raise InvoiceError(f"Quantity for product {line_request.product_id} must be positive")

    def _op():
        invoice = Invoice(
            org_id=org_id,
            transaction_number=increment_and_get(org_id, INVOICE_COUNTER),
            sale_system=request.sale_system,
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            payment_method=request.payment_method,
        )
        db.session.add(invoice)
        db.session.flush()

        line_totals = []
        for line_request in request.lines:
            product = scoped_get(Product, org_id, line_request.product_id, lock=True)
            if product is None:
                raise ProductNotFoundError(f"Product {line_request.product_id} not found")

            if product.quantity < line_request.quantity:
                raise InsufficientStockError(
                    f"insufficient stock for product {product.name}",
                    details={
                        "product_id": product.id,
                        "requested": line_request.quantity,
                        "available": product.quantity,
                    },
                )

            result = deduct(org_id, product.id, line_request.quantity)
            if not result.success:
                raise InsufficientStockError(
                    f"insufficient stock for product {product.name}",
                    details={
                        "product_id": product.id,
                        "requested": line_request.quantity,
                        "available": result.deducted_quantity,
                    },
                )

            product.quantity -= result.deducted_quantity

            price = line_request.price_cents
            if price is None:
                price = _default_price(product, request.sale_system)
            line_total = price * line_request.quantity
            line_totals.append(line_total)

            line = InvoiceLine(
                invoice_id=invoice.id,
                product_id=product.id,
                name=line_request.name or product.name,
                quantity=line_request.quantity,
                price_cents=price,
                total_cents=line_total,
                cost_batches=[
                    InvoiceLineBatch(
                        batch_id=c.batch_id,
                        quantity=c.quantity,
                        purchase_price_cents=c.purchase_price_cents,
                        retail_price_cents=c.retail_price_cents,
                        wholesale_price_cents=c.wholesale_price_cents,
                    )
                    for c in result.deducted_batches
                ],
            )
            db.session.add(line)

        totals = compute_invoice_totals(
            line_totals,
            discount_cents=request.discount_cents,
            paid_cents=request.paid_cents,
            due_date=request.due_date,
        )
        for key, value in totals.items():
            setattr(invoice, key, value)

        db.session.add(InvoicePayment(
            invoice_id=invoice.id,
            paid_cents=totals["paid_cents"],
            discount_cents=totals["discount_cents"],
            next_due_cents=totals["due_cents"],
            next_due_date=totals["due_date"],
            paid_at=utcnow(),
        ))

        db.session.commit()
        return invoice

    return run_with_retry(_op)


def get_invoice(org_id: int, invoice_id: int) -> Invoice:
    invoice = scoped_get(Invoice, org_id, invoice_id)
    if invoice is None:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(org_id: int, *, sale_system: str | None = None) -> list[Invoice]:
    query = scoped_query(Invoice, org_id)
    if sale_system is not None:
        query = query.filter(Invoice.sale_system == sale_system)
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
