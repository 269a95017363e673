# Overview: Flask API routes for purchase intake, supplier payments and purchase returns.

"""
Purchase Routes

All routes require the X-Tenant-Code header.
- POST /api/purchases receives goods: products, batches and the purchase in one transaction
- PUT /api/purchases/<id>/pay records a payment against the amount due
- POST /api/purchases/return sends goods back against one purchase
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant
from ..schemas import PurchasePaymentRequest, PurchaseRequest, PurchaseReturnRequest
from ..services import purchase_return_service, purchase_service
from ..services.concurrency import ConcurrencyConflictError
from ..services.purchase_return_service import PurchaseReturnError, PurchaseReturnNotFoundError
from ..services.purchase_service import PurchaseNotFoundError, PurchaseValidationError
from ..services.supplier_service import SupplierNotFoundError
from ..validation import ValidationError


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_tenant
def create_purchase_route():
    """
    Receive a purchase.

    Request body:
    {
        "supplier_id": 1,                       // required
        "lines": [                              // required, non-empty
            {
                "product_id": 7,                // or "product_name" (new product)
                "category": "Grocery",          // required for new products
                "quantity": 10,
                "purchase_price_cents": 4500,
                "retail_price_cents": 5500,     // optional for existing products
                "wholesale_price_cents": 5000
            }
        ],
        "discount_percent": "5",                // optional totals, derived when omitted
        "shipping_cents": 0,
        "paid_cents": 0,
        "payment_method": "Cash",
        "status": "Order",
        "purchase_date": "2024-01-01T00:00:00Z"
    }
    """
    try:
        req = PurchaseRequest.from_payload(request.get_json(silent=True))
        purchase = purchase_service.create_purchase(g.org_id, req)
    except (ValidationError, PurchaseValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConcurrencyConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Failed to create purchase"}), 500

    current_app.logger.info(
        "Created purchase %s (invoice %s, %d lines) for org %s",
        purchase.id, purchase.invoice_number, len(purchase.lines), g.org_id,
    )
    return jsonify(purchase.to_dict()), 201


@purchases_bp.get("")
@require_tenant
def list_purchases_route():
    """List purchases, newest first; ?supplier_id= filters by supplier."""
    supplier_id = request.args.get("supplier_id", type=int)
    purchases = purchase_service.list_purchases(g.org_id, supplier_id=supplier_id)
    return jsonify({
        "items": [p.to_dict(include_lines=False) for p in purchases],
        "count": len(purchases),
    })


@purchases_bp.get("/<int:purchase_id>")
@require_tenant
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(g.org_id, purchase_id)
    except PurchaseNotFoundError:
        return jsonify({"error": "Purchase not found"}), 404
    return jsonify(purchase.to_dict())


@purchases_bp.put("/<int:purchase_id>/pay")
@require_tenant
def pay_purchase_route(purchase_id: int):
    """
    Record a supplier payment.

    Request body:
    {
        "amount_cents": 1000,   // required, > 0 and <= due
        "method": "Cash",
        "note": "..."
    }
    """
    try:
        req = PurchasePaymentRequest.from_payload(request.get_json(silent=True))
        purchase = purchase_service.record_purchase_payment(g.org_id, purchase_id, req)
    except (ValidationError, PurchaseValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except PurchaseNotFoundError:
        return jsonify({"error": "Purchase not found"}), 404
    except ConcurrencyConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to record purchase payment")
        return jsonify({"error": "Failed to record purchase payment"}), 500

    return jsonify(purchase.to_dict())


@purchases_bp.post("/return")
@require_tenant
def create_purchase_return_route():
    """
    Return goods against a purchase.

    Request body:
    {
        "purchase_id": 3,                   // required
        "lines": [
            {"product_id": 7, "quantity": 2, "price_cents": 4500, "discount_cents": 0}
        ],
        "total_return_cents": 9000,         // optional, derived from lines
        "reason": "Damaged",
        "created_by": "manager"
    }
    """
    try:
        req = PurchaseReturnRequest.from_payload(request.get_json(silent=True))
        purchase_return = purchase_return_service.create_purchase_return(g.org_id, req)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PurchaseReturnError as e:
        body = {"error": str(e)}
        if e.details:
            body["details"] = e.details
        return jsonify(body), 400
    except PurchaseNotFoundError:
        return jsonify({"error": "Purchase not found"}), 404
    except ConcurrencyConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create purchase return")
        return jsonify({"error": "Failed to create purchase return"}), 500

    current_app.logger.info(
        "Created purchase return %s against purchase %s for org %s",
        purchase_return.id, purchase_return.purchase_id, g.org_id,
    )
    return jsonify(purchase_return.to_dict()), 201


@purchases_bp.get("/returns")
@require_tenant
def list_purchase_returns_route():
    """List purchase returns; ?purchase_id= filters by purchase."""
    purchase_id = request.args.get("purchase_id", type=int)
    returns = purchase_return_service.list_purchase_returns(g.org_id, purchase_id=purchase_id)
    return jsonify({"items": [r.to_dict() for r in returns], "count": len(returns)})


@purchases_bp.get("/returns/<int:return_id>")
@require_tenant
def get_purchase_return_route(return_id: int):
    try:
        purchase_return = purchase_return_service.get_purchase_return(g.org_id, return_id)
    except PurchaseReturnNotFoundError:
        return jsonify({"error": "Purchase return not found"}), 404
    return jsonify(purchase_return.to_dict())
