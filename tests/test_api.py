"""HTTP contract: JSON bodies, `success` flags and status codes."""
from datetime import date

import pytest

from dairyflow.models import Invoice
from conftest import make_credit_sale, make_customer, make_daily, make_delivery, make_invoice


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "database": "ok"}


def test_unknown_route_is_json_404(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.get_json()["success"] is False


def test_method_not_allowed(client):
    response = client.put("/health")
    assert response.status_code == 405


def test_dashboard_stats(client, customer):
    body = client.get("/dashboard").get_json()
    assert body["success"] is True
    assert body["stats"]["active_customers"] == 1


class TestOrders:
    def test_generate_list_delete_cycle(self, client, customer, milk):
        make_daily(customer, milk, 2)

        response = client.post("/orders/generate", json={"order_date": "2025-06-10"})
        assert response.status_code == 201
        assert response.get_json()["orders_count"] == 1

        response = client.post("/orders/generate", json={"order_date": "2025-06-10"})
        assert response.status_code == 409
        assert response.get_json()["success"] is False

        rows = client.get("/orders?date=2025-06-10").get_json()["data"]
        assert rows[0]["planned_quantity"] == 2

        assert client.delete("/orders?date=2025-06-10").status_code == 200
        assert client.get("/orders?date=2025-06-10").get_json()["data"] == []

    def test_generate_requires_date(self, client):
        response = client.post("/orders/generate", json={})
        assert response.status_code == 400

    def test_preview(self, client, customer, milk):
        make_daily(customer, milk, 2)
        body = client.get("/orders/preview?date=2025-06-10").get_json()
        assert body["summary"]["total_amount"] == 120

    def test_confirm_delivery(self, client, customer, milk):
        make_daily(customer, milk, 2)
        client.post("/orders/generate", json={"order_date": "2025-06-10"})
        order_id = client.get("/orders?date=2025-06-10").get_json()["data"][0]["id"]

        response = client.post("/deliveries/confirm", json={
            "order_ids": [order_id], "custom_quantities": {str(order_id): 1},
        })
        assert response.status_code == 201
        stats = client.get("/deliveries/stats?date=2025-06-10").get_json()
        assert stats["total_actual_quantity"] == 1

    @pytest.mark.parametrize("payload", [
        {"order_ids": [1], "custom_quantities": {"abc": 2}},
        {"order_ids": [1], "custom_quantities": {"1": "lots"}},
        {"order_ids": [1], "custom_quantities": [2]},
        {"order_ids": ["first"]},
    ])
    def test_confirm_rejects_malformed_payload(self, client, payload):
        response = client.post("/deliveries/confirm", json=payload)
        assert response.status_code == 400


class TestSales:
    def test_create_validation_error(self, client, milk):
        response = client.post("/sales", json={"product_id": milk.id, "quantity": 1, "unit_price": 10,
                                               "sale_type": "Credit"})
        assert response.status_code == 400
        assert "customer_id" in response.get_json()["fields"]

    def test_bulk_partial_success_is_200(self, client, customer, milk):
        good = {"customer_id": customer.id, "product_id": milk.id, "quantity": 1, "unit_price": 10,
                "sale_type": "Credit"}
        bad = dict(good, quantity=-1)
        response = client.post("/sales/bulk", json={"sales": [good, bad]})
        assert response.status_code == 200
        body = response.get_json()
        assert body["processed"] == 1
        assert body["errors"][0]["index"] == 1

    def test_bulk_requires_list(self, client):
        assert client.post("/sales/bulk", json={"sales": "x"}).status_code == 400

    def test_delete_missing_sale(self, client):
        assert client.delete("/sales/123").status_code == 404

    def test_bulk_delete_rejects_non_numeric_ids(self, client):
        assert client.post("/sales/bulk-delete", json={"sale_ids": ["x"]}).status_code == 400


class TestInvoices:
    def test_generate_and_conflict(self, client, customer, milk):
        make_delivery(customer, milk, date(2025, 6, 2), 2)
        payload = {"customer_id": customer.id, "period_start": "2025-06-01",
                   "period_end": "2025-06-30", "invoice_date": "2025-07-01"}

        response = client.post("/invoices/generate", json=payload)
        assert response.status_code == 201
        invoice = response.get_json()["invoice"]
        assert invoice["total_amount"] == 120

        assert client.post("/invoices/generate", json=payload).status_code == 409

        detail = client.get(f"/invoices/{invoice['id']}").get_json()["invoice"]
        assert detail["line_items"][0]["line_type"] == "subscription"

    def test_bulk_generate(self, client, customer, milk, route):
        idle = make_customer("Idle", route=route)
        make_delivery(customer, milk, date(2025, 6, 2), 2)
        response = client.post("/invoices/generate", json={
            "customer_ids": [customer.id, idle.id],
            "period_start": "2025-06-01", "period_end": "2025-06-30",
        })
        assert response.status_code == 201
        assert response.get_json()["successful"] == 1

    def test_generate_requires_period(self, client, customer):
        assert client.post("/invoices/generate", json={"customer_id": customer.id}).status_code == 400

    def test_bulk_delete(self, client, customer, milk):
        make_credit_sale(customer, milk, date(2025, 6, 4), 1, 80)
        client.post("/invoices/generate", json={"customer_id": customer.id, "period_start": "2025-06-01",
                                                "period_end": "2025-06-30"})
        invoice_id = Invoice.query.one().id
        body = client.post("/invoices/bulk-delete", json={"invoice_ids": [invoice_id]}).get_json()
        assert body["successful"] == 1
        assert body["total_reverted_sales"] == 1

    def test_delete_missing_invoice(self, client):
        assert client.delete("/invoices/5").status_code == 404

    def test_bulk_delete_rejects_non_numeric_ids(self, client):
        assert client.post("/invoices/bulk-delete", json={"invoice_ids": ["x"]}).status_code == 400


class TestPayments:
    def test_allocation_flow(self, client, route):
        customer = make_customer("Meera Iyer", route=route, opening_balance=1000)
        make_invoice(customer, 500, date(2025, 5, 1))

        items = client.get(f"/payments/allocation-items/{customer.id}").get_json()["items"]
        assert [i["id"] for i in items][0] == "opening_balance"

        suggestion = client.post("/payments/auto-allocate",
                                 json={"customer_id": customer.id, "amount": 700}).get_json()
        assert suggestion["summary"]["remaining"] == 0
        assert suggestion["items"][0]["allocated_amount"] == 700

        response = client.post("/payments", json={"customer_id": customer.id, "amount": 700,
                                                  "payment_date": "2025-06-01", "auto_allocate": True})
        assert response.status_code == 201

        body = client.get(f"/outstanding/{customer.id}").get_json()
        assert body["effective_opening_balance"] == 300
        assert body["total_outstanding"] == 800

    def test_invalid_payment(self, client, customer):
        response = client.post("/payments", json={"customer_id": customer.id, "amount": 0,
                                                  "payment_date": "2025-06-01"})
        assert response.status_code == 400

    def test_allocation_items_unknown_customer(self, client):
        assert client.get("/payments/allocation-items/999").status_code == 404

    def test_unapplied_and_later_allocation(self, client, customer, milk):
        payment = client.post("/payments", json={"customer_id": customer.id, "amount": 100,
                                                 "payment_date": "2025-06-01"}).get_json()["payment"]
        unapplied = client.get("/payments/unapplied").get_json()
        assert unapplied["stats"]["total_amount"] == 100

        make_credit_sale(customer, milk, date(2025, 6, 2), 1, 60)
        response = client.post(f"/payments/{payment['id']}/allocate", json={})
        assert response.status_code == 200
        assert response.get_json()["unapplied_amount"] == 40

        assert client.delete(f"/payments/{payment['id']}").status_code == 200


class TestOutstanding:
    def test_dashboard_and_report(self, client, route):
        make_customer("Meera Iyer", route=route, opening_balance=250)
        dashboard = client.get("/outstanding/dashboard?today=2025-07-01").get_json()
        assert dashboard["total_outstanding"] == 250

        report = client.get("/outstanding/report?start_date=2025-06-01&end_date=2025-06-30"
                            "&customer_selection=all&sort_key=total_outstanding&sort_direction=desc")
        assert report.status_code == 200
        assert report.get_json()["summary"]["total_outstanding_amount"] == 250

    def test_report_validation(self, client):
        response = client.get("/outstanding/report?start_date=2025-06-30&end_date=2025-06-01")
        assert response.status_code == 400
        response = client.get("/outstanding/report?start_date=2025-06-01&end_date=2025-06-30"
                              "&customer_selection=selected")
        assert response.status_code == 400

    def test_unknown_customer(self, client):
        assert client.get("/outstanding/77").status_code == 404


class TestCatalog:
    def test_customer_crud(self, client, route):
        response = client.post("/customers", json={"billing_name": "Farida", "route_id": route.id})
        assert response.status_code == 201
        customer_id = response.get_json()["customer"]["id"]

        response = client.patch(f"/customers/{customer_id}", json={"delivery_time": "Evening"})
        assert response.get_json()["customer"]["delivery_time"] == "Evening"

        assert client.post("/customers", json={"billing_name": "Farida"}).status_code == 409
        assert client.delete(f"/customers/{customer_id}").status_code == 200

    def test_subscription_and_modification(self, client, customer, milk):
        response = client.post("/subscriptions", json={"customer_id": customer.id, "product_id": milk.id,
                                                       "subscription_type": "Daily", "daily_quantity": 2})
        assert response.status_code == 201
        sub_id = response.get_json()["subscription"]["id"]
        assert client.post(f"/subscriptions/{sub_id}/toggle").get_json()["subscription"]["is_active"] is False

        response = client.post("/modifications/bulk", json={
            "customer_ids": [customer.id],
            "product_id": milk.id, "modification_type": "Skip",
            "start_date": "2025-06-01", "end_date": "2025-06-02",
        })
        assert response.status_code == 200
        assert response.get_json()["processed"] == 1

    def test_routes(self, client):
        assert client.post("/customers/routes", json={"name": "East"}).status_code == 201
        assert client.get("/customers/routes").get_json()["data"][0]["name"] == "East"


class TestSettings:
    def test_seeded_settings_listed(self, client):
        settings = client.get("/settings").get_json()["settings"]
        billing = {s["key"]: s for s in settings["billing"]}
        assert billing["overallocation_policy"]["options"] == ["warn", "reject"]
        assert billing["invoice_due_days"]["effective_value"] is None

    def test_update_policy(self, client):
        response = client.put("/settings", json={"overallocation_policy": "reject"})
        assert response.status_code == 200
        assert response.get_json()["settings"][0]["effective_value"] == "reject"

    def test_invalid_and_unknown_keys(self, client):
        body = client.put("/settings", json={"overallocation_policy": "maybe", "colour": "red"}).get_json()
        assert body["success"] is False
        assert body["invalid"] == ["overallocation_policy"]
        assert body["unknown"] == ["colour"]
