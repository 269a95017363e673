# Overview: Flask API routes for product registration and batch ledger inspection.

"""
Product Routes

All routes require the X-Tenant-Code header.
Products are registered here (with an optional opening batch); afterwards
their stock only changes through purchases, invoices and purchase returns.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant
from ..schemas import ProductRequest
from ..services import batch_service, product_service
from ..services.concurrency import ConcurrencyConflictError
from ..services.product_service import ProductNotFoundError, ProductValidationError
from ..validation import ValidationError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@products_bp.post("")
@require_tenant
def register_product_route():
    """
    Register a product.

    Request body:
    {
        "name": "Rice 5kg",              // required
        "category": "Grocery",           // required
        "retail_price_cents": 55000,     // required
        "wholesale_price_cents": 50000,  // required
        "purchase_price_cents": 45000,   // optional, default 0
        "quantity": 10,                  // optional opening stock, creates a batch
        "alert_quantity": 2,
        "unit": "pcs" | "kg" | "ltr",
        ...
    }
    """
    try:
        req = ProductRequest.from_payload(request.get_json(silent=True))
        product = product_service.register_product(g.org_id, req)
    except (ValidationError, ProductValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConcurrencyConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register product")
        return jsonify({"error": "Failed to register product"}), 500

    current_app.logger.info("Registered product %s (code %s) for org %s", product.id, product.code, g.org_id)
    return jsonify(product.to_dict()), 201


@products_bp.get("")
@require_tenant
def list_products_route():
    """List products; ?low_stock=1 keeps only those at or below their alert quantity."""
    products = product_service.list_products(g.org_id, low_stock=_truthy(request.args.get("low_stock")))
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/<int:product_id>")
@require_tenant
def get_product_route(product_id: int):
    try:
        product = product_service.get_product(g.org_id, product_id)
    except ProductNotFoundError:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict())


@products_bp.get("/<int:product_id>/batches")
@require_tenant
def list_batches_route(product_id: int):
    """
    Batch ledger of one product in FIFO order.

    Query parameters:
    - active_only: 1 to hide exhausted batches
    """
    try:
        product_service.get_product(g.org_id, product_id)
    except ProductNotFoundError:
        return jsonify({"error": "Product not found"}), 404

    batches = batch_service.list_batches(
        g.org_id,
        product_id,
        include_exhausted=not _truthy(request.args.get("active_only")),
    )
    return jsonify({"items": [b.to_dict() for b in batches], "count": len(batches)})


@products_bp.get("/<int:product_id>/stock")
@require_tenant
def stock_summary_route(product_id: int):
    """Tracked quantity vs. batch ledger, plus FIFO inventory value."""
    try:
        summary = product_service.stock_summary(g.org_id, product_id)
    except ProductNotFoundError:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(summary)
