"""
Request DTOs for the stock workflows.

Routes parse JSON bodies into these frozen dataclasses with from_payload();
services receive typed values only. Parsing failures raise
validation.ValidationError, which routes map to HTTP 400.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from .models import (
    INVOICE_PAYMENT_METHODS,
    PAYMENT_METHODS,
    PRODUCT_UNITS,
    PURCHASE_STATUSES,
    SALE_SYSTEMS,
    TAX_TYPES,
)
from .validation import (
    ValidationError,
    coerce_int,
    get_cents,
    get_choice,
    get_datetime,
    get_decimal,
    get_int,
    get_list,
    get_text,
    require_mapping,
)


@dataclass(frozen=True)
class ProductRequest:
    name: str
    category: str
    retail_price_cents: int
    wholesale_price_cents: int
    purchase_price_cents: int = 0
    brand: str = "no brand"
    unit: str = "pcs"
    tax_bps: int = 0
    tax_type: str = "inclusive"
    description: str | None = None
    size: str | None = None
    color: str | None = None
    quantity: int = 0
    alert_quantity: int = 0
    purchase_date: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "ProductRequest":
        data = require_mapping(payload)
        return cls(
            name=get_text(data, "name", required=True, max_length=255),
            category=get_text(data, "category", required=True, max_length=120),
            retail_price_cents=get_cents(data, "retail_price_cents", required=True),
            wholesale_price_cents=get_cents(data, "wholesale_price_cents", required=True),
            purchase_price_cents=get_cents(data, "purchase_price_cents", default=0),
            brand=get_text(data, "brand", default="no brand", max_length=120),
            unit=get_choice(data, "unit", PRODUCT_UNITS, default="pcs"),
            tax_bps=get_int(data, "tax_bps", default=0, minimum=0, maximum=10_000),
            tax_type=get_choice(data, "tax_type", TAX_TYPES, default="inclusive"),
            description=get_text(data, "description"),
            size=get_text(data, "size", max_length=64),
            color=get_text(data, "color", max_length=64),
            quantity=get_int(data, "quantity", default=0, minimum=0),
            alert_quantity=get_int(data, "alert_quantity", default=0, minimum=0),
            purchase_date=get_datetime(data, "purchase_date"),
        )


def _parse_product_reference(data: dict, label: str) -> tuple[int | None, str | None]:
    """
    A purchase line names its product by product_id, by product_name, or by a
    free "product" reference. A reference that is an integer (or a string of
    digits) is an id; any other text is the name of a new product.
    """
    product_id = get_int(data, "product_id", label=f"{label}.product_id", minimum=1)
    product_name = get_text(data, "product_name", label=f"{label}.product_name", max_length=255)

    reference = data.get("product")
    if product_id is None and reference is not None:
        if isinstance(reference, str) and reference.strip().isdigit():
            product_id = int(reference.strip())
        elif isinstance(reference, int) and not isinstance(reference, bool):
            product_id = coerce_int(reference, f"{label}.product")
        elif product_name is None:
            product_name = get_text(data, "product", label=f"{label}.product", max_length=255)

    if product_id is None and product_name is None:
        raise ValidationError(f"{label}.product_id or {label}.product_name is required")
    return product_id, product_name


@dataclass(frozen=True)
class PurchaseLineRequest:
    quantity: int
    purchase_price_cents: int
    product_id: int | None = None
    product_name: str | None = None
    category: str | None = None
    retail_price_cents: int | None = None
    wholesale_price_cents: int | None = None

    @classmethod
    def from_payload(cls, payload: Any, label: str = "line") -> "PurchaseLineRequest":
        data = require_mapping(payload, label)
        product_id, product_name = _parse_product_reference(data, label)
        return cls(
            product_id=product_id,
            product_name=product_name,
            category=get_text(data, "category", label=f"{label}.category", max_length=120),
            quantity=get_int(data, "quantity", label=f"{label}.quantity", required=True, minimum=1),
            purchase_price_cents=get_cents(
                data, "purchase_price_cents", label=f"{label}.purchase_price_cents", required=True
            ),
            retail_price_cents=get_cents(data, "retail_price_cents", label=f"{label}.retail_price_cents"),
            wholesale_price_cents=get_cents(
                data, "wholesale_price_cents", label=f"{label}.wholesale_price_cents"
            ),
        )


@dataclass(frozen=True)
class PurchaseRequest:
    supplier_id: int
    lines: tuple[PurchaseLineRequest, ...]
    total_cents: int | None = None
    discount_percent: Decimal = Decimal("0")
    discount_cents: int | None = None
    shipping_cents: int = 0
    grand_total_cents: int | None = None
    paid_cents: int = 0
    due_cents: int | None = None
    payment_method: str = "Cash"
    status: str = "Order"
    purchase_date: datetime | None = None
    due_date: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "PurchaseRequest":
        data = require_mapping(payload)
        raw_lines = get_list(data, "lines")
        return cls(
            supplier_id=get_int(data, "supplier_id", required=True, minimum=1),
            lines=tuple(
                PurchaseLineRequest.from_payload(raw, label=f"lines[{i}]")
                for i, raw in enumerate(raw_lines)
            ),
            total_cents=get_cents(data, "total_cents"),
            discount_percent=get_decimal(
                data, "discount_percent", minimum=Decimal("0"), maximum=Decimal("100")
            ),
            discount_cents=get_cents(data, "discount_cents"),
            shipping_cents=get_cents(data, "shipping_cents", default=0),
            grand_total_cents=get_cents(data, "grand_total_cents"),
            paid_cents=get_cents(data, "paid_cents", default=0),
            due_cents=get_cents(data, "due_cents"),
            payment_method=get_choice(data, "payment_method", PAYMENT_METHODS, default="Cash"),
            status=get_choice(data, "status", PURCHASE_STATUSES, default="Order"),
            purchase_date=get_datetime(data, "purchase_date"),
            due_date=get_datetime(data, "due_date"),
        )


@dataclass(frozen=True)
class PurchasePaymentRequest:
    amount_cents: int
    method: str = "Cash"
    note: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "PurchasePaymentRequest":
        data = require_mapping(payload)
        amount = get_cents(data, "amount_cents", required=True)
        if amount <= 0:
            raise ValidationError("amount_cents must be positive")
        return cls(
            amount_cents=amount,
            method=get_choice(data, "method", PAYMENT_METHODS, default="Cash"),
            note=get_text(data, "note", default="", max_length=255),
        )


@dataclass(frozen=True)
class PurchaseReturnLineRequest:
    product_id: int
    quantity: int
    product_name: str | None = None
    price_cents: int = 0
    discount_cents: int = 0
    line_total_cents: int | None = None

    @classmethod
    def from_payload(cls, payload: Any, label: str = "line") -> "PurchaseReturnLineRequest":
        data = require_mapping(payload, label)
        # quantity sign is checked by the return workflow so it reports the line
        return cls(
            product_id=get_int(data, "product_id", label=f"{label}.product_id", required=True, minimum=1),
            quantity=get_int(data, "quantity", label=f"{label}.quantity", required=True),
            product_name=get_text(data, "product_name", label=f"{label}.product_name", max_length=255),
            price_cents=get_cents(data, "price_cents", label=f"{label}.price_cents", default=0),
            discount_cents=get_cents(data, "discount_cents", label=f"{label}.discount_cents", default=0),
            line_total_cents=get_cents(data, "line_total_cents", label=f"{label}.line_total_cents"),
        )


@dataclass(frozen=True)
class PurchaseReturnRequest:
    purchase_id: int
    lines: tuple[PurchaseReturnLineRequest, ...]
    total_return_cents: int | None = None
    reason: str = ""
    return_date: datetime | None = None
    created_by: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "PurchaseReturnRequest":
        data = require_mapping(payload)
        raw_lines = get_list(data, "lines")
        return cls(
            purchase_id=get_int(data, "purchase_id", required=True, minimum=1),
            lines=tuple(
                PurchaseReturnLineRequest.from_payload(raw, label=f"lines[{i}]")
                for i, raw in enumerate(raw_lines)
            ),
            total_return_cents=get_cents(data, "total_return_cents"),
            reason=get_text(data, "reason", default=""),
            return_date=get_datetime(data, "return_date"),
            created_by=get_text(data, "created_by", default="", max_length=120),
        )


@dataclass(frozen=True)
class InvoiceLineRequest:
    product_id: int
    quantity: int
    price_cents: int | None = None
    name: str | None = None

    @classmethod
    def from_payload(cls, payload: Any, label: str = "line") -> "InvoiceLineRequest":
        data = require_mapping(payload, label)
        return cls(
            product_id=get_int(data, "product_id", label=f"{label}.product_id", required=True, minimum=1),
            quantity=get_int(data, "quantity", label=f"{label}.quantity", required=True, minimum=1),
            price_cents=get_cents(data, "price_cents", label=f"{label}.price_cents"),
            name=get_text(data, "name", label=f"{label}.name", max_length=255),
        )


@dataclass(frozen=True)
class InvoiceRequest:
    customer_name: str
    customer_phone: str
    lines: tuple[InvoiceLineRequest, ...]
    sale_system: str = "retailSale"
    payment_method: str = "cash"
    discount_cents: int = 0
    paid_cents: int = 0
    due_date: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "InvoiceRequest":
        data = require_mapping(payload)
        # Customer may come nested ({"customer": {"name", "phone"}}) or flat
        customer = data.get("customer")
        if customer is not None:
            customer = require_mapping(customer, "customer")
            name = get_text(customer, "name", label="customer.name", required=True, max_length=255)
            phone = get_text(customer, "phone", label="customer.phone", required=True, max_length=32)
        else:
            name = get_text(data, "customer_name", required=True, max_length=255)
            phone = get_text(data, "customer_phone", required=True, max_length=32)

        raw_lines = get_list(data, "lines")
        return cls(
            customer_name=name,
            customer_phone=phone,
            lines=tuple(
                InvoiceLineRequest.from_payload(raw, label=f"lines[{i}]")
                for i, raw in enumerate(raw_lines)
            ),
            sale_system=get_choice(data, "sale_system", SALE_SYSTEMS, default="retailSale"),
            payment_method=get_choice(data, "payment_method", INVOICE_PAYMENT_METHODS, default="cash"),
            discount_cents=get_cents(data, "discount_cents", default=0),
            paid_cents=get_cents(data, "paid_cents", default=0),
            due_date=get_datetime(data, "due_date"),
        )
