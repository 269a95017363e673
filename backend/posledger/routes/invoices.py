# Overview: Flask API routes for invoices; creating one deducts stock FIFO.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant
from ..models import SALE_SYSTEMS
from ..schemas import InvoiceRequest
from ..services import invoice_service
from ..services.concurrency import ConcurrencyConflictError
from ..services.invoice_service import InvoiceError, InvoiceNotFoundError
from ..services.product_service import ProductNotFoundError
from ..validation import ValidationError


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.post("")
@require_tenant
def create_invoice_route():
    """
    Create an invoice.

    Request body:
    {
        "sale_system": "retailSale" | "wholeSale",
        "customer": {"name": "Walk-in", "phone": "01700000000"},
        "payment_method": "cash",
        "lines": [{"product_id": 7, "quantity": 3, "price_cents": 5500}],
        "discount_cents": 0,
        "paid_cents": 16500,
        "due_date": "2024-02-01T00:00:00Z"
    }

    Returns 400 with details when a line asks for more stock than exists;
    nothing is saved in that case.
    """
    try:
        req = InvoiceRequest.from_payload(request.get_json(silent=True))
        invoice = invoice_service.create_invoice(g.org_id, req)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InvoiceError as e:
        body = {"error": str(e)}
        if e.details:
            body["details"] = e.details
        return jsonify(body), 400
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConcurrencyConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Failed to create invoice"}), 500

    current_app.logger.info(
        "Created invoice %s (transaction %s) for org %s",
        invoice.id, invoice.transaction_number, g.org_id,
    )
    return jsonify(invoice.to_dict()), 201


@invoices_bp.get("")
@require_tenant
def list_invoices_route():
    """List invoices, newest first; ?sale_system=retailSale|wholeSale filters."""
    sale_system = request.args.get("sale_system")
    if sale_system is not None and sale_system not in SALE_SYSTEMS:
        return jsonify({"error": f"sale_system must be one of: {', '.join(SALE_SYSTEMS)}"}), 400

    invoices = invoice_service.list_invoices(g.org_id, sale_system=sale_system)
    return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)})


@invoices_bp.get("/<int:invoice_id>")
@require_tenant
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(g.org_id, invoice_id)
    except InvoiceNotFoundError:
        return jsonify({"error": "Invoice not found"}), 404
    return jsonify(invoice.to_dict())
