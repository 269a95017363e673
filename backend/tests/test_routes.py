# Overview: Pytest coverage for the HTTP API: tenant header handling, workflows and error mapping.

"""
HTTP API Tests

Drive the stock workflows through the Flask test client and check that
service errors map to the documented status codes. Tenants must never see
each other's rows.
"""

from posledger.models import Organization

from conftest import tenant_headers


def _register_product(client, quantity=0, code="ACME"):
    return client.post("/api/products", headers=tenant_headers(code), json={
        "name": "Rice 5kg",
        "category": "Grocery",
        "purchase_price_cents": 100,
        "retail_price_cents": 200,
        "wholesale_price_cents": 150,
        "quantity": quantity,
        "purchase_date": "2024-01-01T00:00:00Z",
    })


class TestSystem:
    def test_health(self, client, db_session):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json["checks"]["database"]["status"] == "healthy"


class TestTenantHeader:
    def test_missing_header(self, client, db_session, org_a):
        response = client.get("/api/products")
        assert response.status_code == 401

    def test_unknown_tenant(self, client, db_session, org_a):
        response = client.get("/api/products", headers=tenant_headers("NOPE"))
        assert response.status_code == 404

    def test_inactive_tenant(self, client, db_session):
        db_session.add(Organization(name="Closed", code="CLOSED", is_active=False))
        db_session.commit()

        response = client.get("/api/products", headers=tenant_headers("CLOSED"))
        assert response.status_code == 404

    def test_code_is_case_insensitive(self, client, db_session, org_a):
        response = client.get("/api/products", headers=tenant_headers("acme"))
        assert response.status_code == 200


class TestProductRoutes:
    def test_register_with_opening_stock(self, client, db_session, org_a):
        response = _register_product(client, quantity=6)

        assert response.status_code == 201
        product = response.json
        assert product["code"] == 100001
        assert product["quantity"] == 6

        batches = client.get(f"/api/products/{product['id']}/batches", headers=tenant_headers())
        assert batches.status_code == 200
        assert [(b["quantity"], b["remaining_quantity"], b["purchase_id"]) for b in batches.json["items"]] == [
            (6, 6, None),
        ]

        stock = client.get(f"/api/products/{product['id']}/stock", headers=tenant_headers())
        assert stock.json["is_consistent"] is True
        assert stock.json["inventory_value_cents"] == 600

    def test_register_validation_error(self, client, db_session, org_a):
        response = client.post("/api/products", headers=tenant_headers(), json={"name": "No category"})

        assert response.status_code == 400
        assert "category" in response.json["error"]

    def test_low_stock_filter(self, client, db_session, org_a):
        _register_product(client, quantity=0)

        response = client.get("/api/products?low_stock=1", headers=tenant_headers())

        assert response.json["count"] == 1

    def test_products_isolated_between_tenants(self, client, db_session, org_a, org_b):
        product_id = _register_product(client, quantity=2).json["id"]

        assert client.get(f"/api/products/{product_id}", headers=tenant_headers("BETA")).status_code == 404
        assert client.get(f"/api/products/{product_id}/batches", headers=tenant_headers("BETA")).status_code == 404
        assert client.get("/api/products", headers=tenant_headers("BETA")).json["count"] == 0


class TestStockWorkflows:
    def test_purchase_sell_and_return(self, client, db_session, org_a, supplier_a):
        product_id = _register_product(client).json["id"]

        purchase = client.post("/api/purchases", headers=tenant_headers(), json={
            "supplier_id": supplier_a.id,
            "purchase_date": "2024-01-02T00:00:00Z",
            "paid_cents": 500,
            "lines": [
                {"product_id": product_id, "quantity": 10, "purchase_price_cents": 110},
                {
                    "product_name": "Sugar 1kg",
                    "category": "Grocery",
                    "quantity": 5,
                    "purchase_price_cents": 70,
                    "retail_price_cents": 95,
                    "wholesale_price_cents": 85,
                },
            ],
        })
        assert purchase.status_code == 201
        assert purchase.json["invoice_number"] == 1
        assert purchase.json["total_cents"] == 1450
        assert purchase.json["due_cents"] == 950
        assert len(purchase.json["lines"]) == 2

        invoice = client.post("/api/invoices", headers=tenant_headers(), json={
            "customer": {"name": "Walk-in", "phone": "01900000000"},
            "lines": [{"product_id": product_id, "quantity": 4}],
            "paid_cents": 800,
        })
        assert invoice.status_code == 201
        line = invoice.json["lines"][0]
        assert line["price_cents"] == 200
        assert [(b["quantity"], b["purchase_price_cents"]) for b in line["deducted_batches"]] == [(4, 110)]
        assert invoice.json["cost_cents"] == 440

        returned = client.post("/api/purchases/return", headers=tenant_headers(), json={
            "purchase_id": purchase.json["id"],
            "lines": [{"product_id": product_id, "quantity": 3, "price_cents": 110}],
            "reason": "Damaged",
        })
        assert returned.status_code == 201
        assert returned.json["total_return_cents"] == 330

        stock = client.get(f"/api/products/{product_id}/stock", headers=tenant_headers())
        assert stock.json["quantity"] == 3
        assert stock.json["ledger_quantity"] == 3

        listed = client.get(f"/api/purchases/returns?purchase_id={purchase.json['id']}", headers=tenant_headers())
        assert listed.json["count"] == 1
        detail = client.get(f"/api/purchases/returns/{returned.json['id']}", headers=tenant_headers())
        assert detail.status_code == 200

    def test_insufficient_stock_returns_details(self, client, db_session, org_a):
        product_id = _register_product(client, quantity=2).json["id"]

        response = client.post("/api/invoices", headers=tenant_headers(), json={
            "customer": {"name": "Walk-in", "phone": "01900000000"},
            "lines": [{"product_id": product_id, "quantity": 3}],
        })

        assert response.status_code == 400
        assert response.json["error"] == "insufficient stock for product Rice 5kg"
        assert response.json["details"]["requested"] == 3
        assert client.get(f"/api/products/{product_id}", headers=tenant_headers()).json["quantity"] == 2
        assert client.get("/api/invoices", headers=tenant_headers()).json["count"] == 0

    def test_invoice_unknown_product(self, client, db_session, org_a):
        response = client.post("/api/invoices", headers=tenant_headers(), json={
            "customer": {"name": "Walk-in", "phone": "01900000000"},
            "lines": [{"product_id": 99999, "quantity": 1}],
        })
        assert response.status_code == 404

    def test_purchase_unknown_supplier(self, client, db_session, org_a):
        product_id = _register_product(client).json["id"]

        response = client.post("/api/purchases", headers=tenant_headers(), json={
            "supplier_id": 99999,
            "lines": [{"product_id": product_id, "quantity": 1, "purchase_price_cents": 100}],
        })

        assert response.status_code == 404
        assert client.get(f"/api/products/{product_id}", headers=tenant_headers()).json["quantity"] == 0

    def test_purchase_requires_lines(self, client, db_session, org_a, supplier_a):
        response = client.post("/api/purchases", headers=tenant_headers(), json={"supplier_id": supplier_a.id})

        assert response.status_code == 400
        assert "lines" in response.json["error"]

    def test_return_over_limit(self, client, db_session, org_a, supplier_a):
        product_id = _register_product(client).json["id"]
        purchase_id = client.post("/api/purchases", headers=tenant_headers(), json={
            "supplier_id": supplier_a.id,
            "lines": [{"product_id": product_id, "quantity": 2, "purchase_price_cents": 100}],
        }).json["id"]

        response = client.post("/api/purchases/return", headers=tenant_headers(), json={
            "purchase_id": purchase_id,
            "lines": [{"product_id": product_id, "quantity": 3}],
        })

        assert response.status_code == 400
        assert response.json["details"]["returnable"] == 2

    def test_pay_purchase(self, client, db_session, org_a, supplier_a):
        product_id = _register_product(client).json["id"]
        purchase_id = client.post("/api/purchases", headers=tenant_headers(), json={
            "supplier_id": supplier_a.id,
            "lines": [{"product_id": product_id, "quantity": 2, "purchase_price_cents": 100}],
        }).json["id"]

        paid = client.put(f"/api/purchases/{purchase_id}/pay", headers=tenant_headers(), json={"amount_cents": 150})
        assert paid.status_code == 200
        assert (paid.json["paid_cents"], paid.json["due_cents"]) == (150, 50)

        over = client.put(f"/api/purchases/{purchase_id}/pay", headers=tenant_headers(), json={"amount_cents": 51})
        assert over.status_code == 400

    def test_purchases_isolated_between_tenants(self, client, db_session, org_a, org_b, supplier_a):
        product_id = _register_product(client).json["id"]
        purchase_id = client.post("/api/purchases", headers=tenant_headers(), json={
            "supplier_id": supplier_a.id,
            "lines": [{"product_id": product_id, "quantity": 2, "purchase_price_cents": 100}],
        }).json["id"]

        assert client.get(f"/api/purchases/{purchase_id}", headers=tenant_headers("BETA")).status_code == 404
        assert client.get("/api/purchases", headers=tenant_headers("BETA")).json["count"] == 0
        assert client.get("/api/purchases", headers=tenant_headers()).json["count"] == 1

    def test_invoice_list_filter_validated(self, client, db_session, org_a):
        response = client.get("/api/invoices?sale_system=online", headers=tenant_headers())
        assert response.status_code == 400
