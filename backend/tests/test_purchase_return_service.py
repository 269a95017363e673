# Overview: Pytest coverage for purchase returns against purchase lines, products and batches.

import pytest

from posledger.models import Product, PurchaseBatch, PurchaseLine, PurchaseReturn
from posledger.schemas import InvoiceRequest, PurchaseRequest, PurchaseReturnLineRequest, PurchaseReturnRequest
from posledger.services.invoice_service import create_invoice
from posledger.services.product_service import find_inconsistent_products
from posledger.services.purchase_return_service import (
    PurchaseReturnError,
    PurchaseReturnNotFoundError,
    create_purchase_return,
    get_purchase_return,
    list_purchase_returns,
)
from posledger.services.purchase_service import PurchaseNotFoundError, create_purchase


@pytest.fixture
def purchase_of_ten(db_session, org_a, supplier_a, product_a):
    """Purchase of 10 units of product_a at 100 cents each."""
    return create_purchase(org_a.id, PurchaseRequest.from_payload({
        "supplier_id": supplier_a.id,
        "lines": [{"product_id": product_a.id, "quantity": 10, "purchase_price_cents": 100}],
    }))


def _return(purchase_id, *lines, **extra):
    return PurchaseReturnRequest(
        purchase_id=purchase_id,
        lines=tuple(PurchaseReturnLineRequest(**line) for line in lines),
        **extra,
    )


def _line(purchase):
    return purchase.lines[0]


def _sell(org, product, quantity):
    return create_invoice(org.id, InvoiceRequest.from_payload({
        "customer": {"name": "Walk-in", "phone": "0100"},
        "lines": [{"product_id": product.id, "quantity": quantity}],
    }))


@pytest.fixture
def two_purchases(db_session, org_a, supplier_a, product_a):
    """Two purchases of 10 units of product_a, on day one and day two."""
    purchases = []
    for purchase_date, price in (("2024-01-01T09:00:00Z", 100), ("2024-01-02T09:00:00Z", 120)):
        purchases.append(create_purchase(org_a.id, PurchaseRequest.from_payload({
            "supplier_id": supplier_a.id,
            "purchase_date": purchase_date,
            "lines": [{"product_id": product_a.id, "quantity": 10, "purchase_price_cents": price}],
        })))
    return purchases


def _batch_remaining(db_session, purchase_id):
    return db_session.query(PurchaseBatch).filter_by(purchase_id=purchase_id).one().remaining_quantity


class TestReturnLimits:
    def test_cannot_return_more_than_remains(self, db_session, org_a, product_a, purchase_of_ten):
        """quantity=10, returned=8: returning 3 fails, returning 2 succeeds."""
        line = _line(purchase_of_ten)
        line.returned_quantity = 8
        db_session.commit()
        line_id = line.id

        with pytest.raises(PurchaseReturnError):
            create_purchase_return(org_a.id, _return(purchase_of_ten.id, {"product_id": product_a.id, "quantity": 3}))

        line = db_session.get(PurchaseLine, line_id)
        assert (line.quantity, line.returned_quantity) == (10, 8)

        create_purchase_return(org_a.id, _return(purchase_of_ten.id, {"product_id": product_a.id, "quantity": 2}))

        line = db_session.get(PurchaseLine, line_id)
        assert (line.quantity, line.returned_quantity) == (8, 10)
        assert db_session.get(Product, product_a.id).quantity == 8

    def test_repeated_lines_accumulate(self, db_session, org_a, product_a, purchase_of_ten):
        with pytest.raises(PurchaseReturnError):
            create_purchase_return(org_a.id, _return(
                purchase_of_ten.id,
                {"product_id": product_a.id, "quantity": 6},
                {"product_id": product_a.id, "quantity": 5},
            ))
        assert db_session.query(PurchaseReturn).count() == 0

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity_rejected(self, db_session, org_a, product_a, purchase_of_ten, quantity):
        with pytest.raises(PurchaseReturnError):
            create_purchase_return(org_a.id, _return(purchase_of_ten.id, {"product_id": product_a.id, "quantity": quantity}))

    def test_product_not_on_purchase(self, db_session, org_a, product_a2, purchase_of_ten):
        with pytest.raises(PurchaseReturnError):
            create_purchase_return(org_a.id, _return(purchase_of_ten.id, {"product_id": product_a2.id, "quantity": 1}))

    def test_unknown_purchase(self, db_session, org_a, product_a):
        with pytest.raises(PurchaseNotFoundError):
            create_purchase_return(org_a.id, _return(99999, {"product_id": product_a.id, "quantity": 1}))

    def test_other_tenant_purchase(self, db_session, org_a, org_b, product_a, purchase_of_ten):
        with pytest.raises(PurchaseNotFoundError):
            create_purchase_return(org_b.id, _return(purchase_of_ten.id, {"product_id": product_a.id, "quantity": 1}))

    def test_rejected_when_product_has_too_little_on_hand(self, db_session, org_a, product_a, purchase_of_ten):
        _sell(org_a, product_a, 9)
        line_id = _line(purchase_of_ten).id
        batch_id = db_session.query(PurchaseBatch).filter_by(purchase_id=purchase_of_ten.id).one().id

        with pytest.raises(PurchaseReturnError) as excinfo:
            create_purchase_return(org_a.id, _return(purchase_of_ten.id, {"product_id": product_a.id, "quantity": 2}))

        assert excinfo.value.details["on_hand"] == 1
        assert db_session.get(PurchaseBatch, batch_id).remaining_quantity == 1
        assert db_session.get(Product, product_a.id).quantity == 1
        line = db_session.get(PurchaseLine, line_id)
        assert (line.quantity, line.returned_quantity) == (10, 0)
        assert db_session.query(PurchaseReturn).count() == 0


class TestReturnEffects:
    def test_return_updates_line_product_and_batch(self, db_session, org_a, product_a, purchase_of_ten):
        purchase_return = create_purchase_return(org_a.id, _return(
            purchase_of_ten.id,
            {"product_id": product_a.id, "quantity": 4, "price_cents": 100, "discount_cents": 30},
            reason="Damaged",
            created_by="manager",
        ))

        line = _line(purchase_of_ten)
        assert (line.quantity, line.returned_quantity) == (6, 4)
        assert db_session.get(Product, product_a.id).quantity == 6

        batch = db_session.query(PurchaseBatch).filter_by(purchase_id=purchase_of_ten.id).one()
        assert (batch.quantity, batch.remaining_quantity) == (10, 6)
        assert find_inconsistent_products(org_a.id) == []

        assert purchase_return.invoice_number == purchase_of_ten.invoice_number
        assert purchase_return.supplier_name == "Acme Wholesale"
        assert purchase_return.total_return_cents == 370
        assert purchase_return.reason == "Damaged"
        assert [(rl.product_name, rl.quantity, rl.line_total_cents) for rl in purchase_return.lines] == [
            ("Rice 5kg", 4, 370),
        ]

    def test_sold_out_purchase_returns_from_later_batches(self, db_session, org_a, product_a, two_purchases):
        """FIFO sold all of the first purchase; its line is still fully returnable."""
        first, second = [(p.id, _line(p).id) for p in two_purchases]
        _sell(org_a, product_a, 10)
        assert _batch_remaining(db_session, first[0]) == 0

        create_purchase_return(org_a.id, _return(first[0], {"product_id": product_a.id, "quantity": 5}))

        line = db_session.get(PurchaseLine, first[1])
        assert (line.quantity, line.returned_quantity) == (5, 5)
        assert _batch_remaining(db_session, first[0]) == 0
        assert _batch_remaining(db_session, second[0]) == 5
        assert db_session.get(Product, product_a.id).quantity == 5
        assert find_inconsistent_products(org_a.id) == []

    @pytest.mark.parametrize("sold, own_left, other_left", [(3, 2, 10), (8, 0, 7)])
    def test_own_batches_drawn_before_others(
        self, db_session, org_a, product_a, two_purchases, sold, own_left, other_left
    ):
        first, second = [p.id for p in two_purchases]
        _sell(org_a, product_a, sold)

        create_purchase_return(org_a.id, _return(first, {"product_id": product_a.id, "quantity": 5}))

        assert _batch_remaining(db_session, first) == own_left
        assert _batch_remaining(db_session, second) == other_left
        assert db_session.get(Product, product_a.id).quantity == 15 - sold
        assert find_inconsistent_products(org_a.id) == []

    def test_given_totals_kept(self, db_session, org_a, product_a, purchase_of_ten):
        purchase_return = create_purchase_return(org_a.id, _return(
            purchase_of_ten.id,
            {"product_id": product_a.id, "quantity": 1, "price_cents": 100, "line_total_cents": 90},
            total_return_cents=80,
        ))

        assert purchase_return.lines[0].line_total_cents == 90
        assert purchase_return.total_return_cents == 80

    def test_lookup_and_list(self, db_session, org_a, org_b, product_a, purchase_of_ten):
        purchase_return = create_purchase_return(org_a.id, _return(
            purchase_of_ten.id, {"product_id": product_a.id, "quantity": 1},
        ))

        assert get_purchase_return(org_a.id, purchase_return.id).id == purchase_return.id
        with pytest.raises(PurchaseReturnNotFoundError):
            get_purchase_return(org_b.id, purchase_return.id)
        assert [r.id for r in list_purchase_returns(org_a.id, purchase_id=purchase_of_ten.id)] == [purchase_return.id]
        assert list_purchase_returns(org_a.id, purchase_id=99999) == []
