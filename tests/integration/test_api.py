"""Integration tests for API endpoints"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from installment_engine.domain.models import ChargeResult


@pytest.fixture
def create_plan(client: TestClient, make_invoice):
    """POST /v1/plans for a fresh invoice and return the response body"""

    def _create(**overrides) -> dict:
        body = {
            "invoice_id": str(make_invoice().id),
            "number_of_installments": 3,
            "frequency": "monthly",
            "start_date": "2026-03-02",
            "terms_accepted": True,
        }
        body.update(overrides)
        response = client.post("/v1/plans", json=body)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "installment_sweep_outcomes_total" in response.text


def test_request_id_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_create_plan_endpoint(create_plan):
    """Test POST /v1/plans"""
    data = create_plan()

    assert data["status"] == "active"
    assert data["total_cents"] == 100_000
    assert data["late_fees_enabled"] is True
    assert data["grace_period_days"] == 7
    assert [i["amount_cents"] for i in data["installments"]] == [33_333, 33_333, 33_334]
    assert [i["due_date"] for i in data["installments"]] == ["2026-03-02", "2026-04-02", "2026-05-02"]


def test_create_plan_zero_installments_bilingual_error(client: TestClient, make_invoice):
    response = client.post(
        "/v1/plans",
        json={
            "invoice_id": str(make_invoice().id),
            "number_of_installments": 0,
            "frequency": "monthly",
            "start_date": "2026-03-02",
            "terms_accepted": True,
        },
    )

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "invalid_installment_count"
    assert data["message_en"] == "Number of installments must be greater than zero"
    assert data["message_ar"] == "عدد الأقساط يجب أن يكون أكبر من صفر"


def test_create_plan_past_start_date(client: TestClient, make_invoice):
    response = client.post(
        "/v1/plans",
        json={
            "invoice_id": str(make_invoice().id),
            "number_of_installments": 3,
            "frequency": "monthly",
            "start_date": "2026-03-01",
            "terms_accepted": True,
        },
    )

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_start_date"


def test_create_plan_without_balance_conflicts(client: TestClient, make_invoice):
    response = client.post(
        "/v1/plans",
        json={
            "invoice_id": str(make_invoice(balance_cents=0).id),
            "number_of_installments": 3,
            "frequency": "monthly",
            "start_date": "2026-03-02",
            "terms_accepted": True,
        },
    )

    assert response.status_code == 409
    assert response.json()["error"] == "no_outstanding_balance"


def test_create_auto_pay_plan_without_method(client: TestClient, make_invoice):
    response = client.post(
        "/v1/plans",
        json={
            "invoice_id": str(make_invoice().id),
            "number_of_installments": 3,
            "frequency": "monthly",
            "start_date": "2026-03-02",
            "terms_accepted": True,
            "auto_pay_enabled": True,
        },
    )

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "auto_pay_method_required"
    assert data["message_en"] == "A payment method is required when auto-pay is enabled"


def test_create_plan_unknown_invoice(client: TestClient):
    response = client.post(
        "/v1/plans",
        json={
            "invoice_id": "not-an-invoice",
            "number_of_installments": 3,
            "frequency": "monthly",
            "start_date": "2026-03-02",
            "terms_accepted": True,
        },
    )

    assert response.status_code == 404
    assert response.json()["message_en"] == "Invoice not found"


def test_get_plan_endpoint(client: TestClient, create_plan):
    """Test GET /v1/plans/{plan_id}"""
    plan_id = create_plan()["plan_id"]

    response = client.get(f"/v1/plans/{plan_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["plan_id"] == plan_id
    assert sum(inst["amount_cents"] for inst in data["installments"]) == 100_000


def test_get_plan_not_found(client: TestClient):
    """Test GET /v1/plans/{plan_id} with invalid ID"""
    fake_uuid = "00000000-0000-0000-0000-000000000000"
    response = client.get(f"/v1/plans/{fake_uuid}")
    assert response.status_code == 404


def test_modify_plan_endpoint(client: TestClient, create_plan):
    plan = create_plan()
    first = plan["installments"][0]["installment_id"]
    client.post(f"/v1/installments/{first}/payments", json={"amount_cents": 33_333, "payment_method": "cash"})

    response = client.post(
        f"/v1/plans/{plan['plan_id']}/modifications",
        json={
            "new_schedule": [
                {"installment_number": 1, "amount_cents": 5_000, "due_date": "2026-03-10"},
                {"installment_number": 2, "amount_cents": 16_667, "due_date": "2026-04-02"},
                {"installment_number": 3, "amount_cents": 50_000, "due_date": "2026-05-02"},
            ],
            "reason_en": "Scholarship delay",
            "reason_ar": "تأخر المنحة",
        },
    )

    assert response.status_code == 200, response.text
    assert response.json()["installments_updated"] == 2
    assert response.json()["paid_installments_skipped"] == 1

    data = client.get(f"/v1/plans/{plan['plan_id']}").json()
    assert data["modification_count"] == 1
    assert [i["amount_cents"] for i in data["installments"]] == [33_333, 16_667, 50_000]

    history = client.get(f"/v1/plans/{plan['plan_id']}/modifications").json()
    assert len(history) == 1
    assert history[0]["reason_ar"] == "تأخر المنحة"
    assert [c["installment_number"] for c in history[0]["new_schedule"]] == [1, 2, 3]
    assert history[0]["new_schedule"][0]["due_date"] == "2026-03-10"


def test_modification_history_unknown_plan(client: TestClient):
    response = client.get("/v1/plans/00000000-0000-0000-0000-000000000000/modifications")
    assert response.status_code == 404


def test_modify_plan_amount_mismatch(client: TestClient, create_plan):
    plan = create_plan()

    response = client.post(
        f"/v1/plans/{plan['plan_id']}/modifications",
        json={
            "new_schedule": [{"installment_number": 2, "amount_cents": 1_000, "due_date": "2026-04-02"}],
            "reason_en": "Reduce",
            "reason_ar": "تخفيض",
        },
    )

    assert response.status_code == 422
    assert response.json()["error"] == "amount_mismatch"


def test_cancel_plan_endpoint(client: TestClient, create_plan):
    plan_id = create_plan()["plan_id"]

    response = client.post(f"/v1/plans/{plan_id}/cancel")
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    again = client.post(f"/v1/plans/{plan_id}/cancel")
    assert again.status_code == 409
    assert again.json()["error"] == "plan_not_active"


def test_record_payment_endpoint(client: TestClient, create_plan):
    inst_id = create_plan()["installments"][0]["installment_id"]

    partial = client.post(f"/v1/installments/{inst_id}/payments", json={"amount_cents": 3_333, "payment_method": "cash"})
    assert partial.status_code == 200
    assert partial.json()["status"] == "partial"

    too_much = client.post(f"/v1/installments/{inst_id}/payments", json={"amount_cents": 40_000, "payment_method": "cash"})
    assert too_much.status_code == 422
    assert too_much.json()["error"] == "invalid_payment_amount"


def test_record_payment_unknown_installment(client: TestClient):
    response = client.post(
        "/v1/installments/00000000-0000-0000-0000-000000000000/payments",
        json={"amount_cents": 100, "payment_method": "cash"},
    )
    assert response.status_code == 404


@patch("installment_engine.infrastructure.clients.payment_gateway.PaymentGatewayClient.charge")
def test_auto_pay_sweep_endpoint(mock_charge: AsyncMock, client: TestClient, create_plan):
    mock_charge.return_value = ChargeResult(success=True, transaction_id="TXN-API", amount_cents=33_333)
    create_plan(auto_pay_enabled=True, auto_pay_method="card")

    response = client.post("/v1/sweeps/auto-pay")

    assert response.status_code == 200
    assert response.json() == {"processed": 1, "succeeded": 1, "failed": 0, "skipped": 0, "failures": []}
    mock_charge.assert_awaited_once()


def test_late_fee_sweep_endpoint(client: TestClient, create_plan, clock):
    create_plan()
    clock.advance(days=9)

    response = client.post("/v1/sweeps/late-fees")

    assert response.status_code == 200
    assert response.json()["late_fees_applied"] == 1

    overdue = client.get("/v1/installments/overdue").json()
    assert len(overdue) == 1
    assert overdue[0]["late_fee_cents"] == 2_500
    assert overdue[0]["days_overdue"] == 8


@patch("installment_engine.infrastructure.clients.notifications.ReminderDispatcher.dispatch")
def test_reminder_sweep_endpoint(mock_dispatch: AsyncMock, client: TestClient, create_plan):
    mock_dispatch.return_value = True
    create_plan(reminder_policy={"days_before_due": [1], "days_after_due": [], "methods": ["email"]})

    response = client.post("/v1/sweeps/reminders")

    assert response.status_code == 200
    assert response.json() == {"sent": 1, "failed": 0}
    assert mock_dispatch.await_args.args[1] == "email"


def test_dashboard_endpoint(client: TestClient, create_plan):
    create_plan()
    create_plan()

    response = client.get("/v1/dashboard", params={"status": ["active"], "limit": 1})

    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 2
    assert len(data["rows"]) == 1
    assert data["rows"][0]["total_installments"] == 3


def test_analytics_endpoint(client: TestClient, create_plan):
    create_plan(auto_pay_enabled=True, auto_pay_method="card")

    response = client.get("/v1/analytics", params={"start": "2026-03-01", "end": "2026-03-31"})

    assert response.status_code == 200
    data = response.json()
    assert data["total_plans"] == 1
    assert data["auto_pay_adoption_rate"] == 1.0
    assert data["total_value_cents"] == 100_000


def test_analytics_rejects_inverted_range(client: TestClient):
    response = client.get("/v1/analytics", params={"start": "2026-03-31", "end": "2026-03-01"})
    assert response.status_code == 400
