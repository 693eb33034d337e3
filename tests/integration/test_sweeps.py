"""Integration tests for the auto-pay, late fee and reminder sweeps"""

import asyncio
import pytest
from datetime import date, datetime, timezone
from installment_engine.domain.models import ChargeResult, LateFeePolicy, ReminderPolicy
from installment_engine.domain.exceptions import PaymentGatewayError
from installment_engine.infrastructure.database.models import LateFee
from installment_engine.infrastructure.database.repositories import (
    InstallmentRepository,
    LateFeeRepository,
    PlanRepository,
)
from installment_engine.services.plan_service import PlanService
from installment_engine.jobs import main, run_sweep
from installment_engine.services.sweeps import AutomatedPaymentSweeper, LateFeeSweeper, ReminderSweeper


class FakeGateway:
    """Records charges; declines or breaks on chosen installment references"""

    def __init__(self, declined=(), broken=()):
        self.declined = set(declined)
        self.broken = set(broken)
        self.calls = []

    async def charge(self, method: str, amount_cents: int, reference: str) -> ChargeResult:
        self.calls.append(reference)
        await asyncio.sleep(0)
        if reference in self.broken:
            raise PaymentGatewayError("Payment gateway timeout after 5.0s")
        if reference in self.declined:
            return ChargeResult(success=False, failure_reason="Insufficient funds")
        return ChargeResult(success=True, transaction_id=f"TXN-{reference[:8]}", amount_cents=amount_cents)


class FakeDispatcher:
    def __init__(self, delivered: bool = True):
        self.delivered = delivered
        self.sent = []

    async def dispatch(self, recipient: str, channel: str, message: str) -> bool:
        self.sent.append((recipient, channel, message))
        return self.delivered


@pytest.fixture
def create_plans(db, clock, make_invoice, plan_request):
    """Create one plan per fresh invoice and return them"""

    def _create(count: int = 1, **overrides):
        service = PlanService(db, clock)
        return [
            service.create_plan(plan_request(make_invoice(student_id=f"student_{i}").id, **overrides))
            for i in range(count)
        ]

    return _create


def first_installment_ids(plans):
    return [str(plan.installments[0].id) for plan in plans]


# Auto-pay

async def test_auto_pay_charges_due_installments_and_records_failures(db, clock, create_plans):
    plans = create_plans(5, auto_pay_enabled=True, auto_pay_method="card")
    ids = first_installment_ids(plans)
    gateway = FakeGateway(declined=[ids[0]], broken=[ids[1]])

    result = await AutomatedPaymentSweeper(db, gateway, clock, lookahead_days=3, concurrency=2).run()

    assert result.processed == 5
    assert result.succeeded == 3
    assert result.failed == 2
    assert result.skipped == 0
    assert sorted(f.installment_id for f in result.failures) == sorted(ids[:2])
    assert {f.reason for f in result.failures} == {"Insufficient funds", "Payment gateway timeout after 5.0s"}
    # Only installment 1 of each plan falls inside the window
    assert sorted(gateway.calls) == sorted(ids)

    installments = InstallmentRepository(db)
    for inst_id in ids[2:]:
        paid = installments.get_installment_by_id(inst_id)
        assert paid.status == "paid"
        assert paid.paid_cents == 33_333
        assert paid.paid_date == date(2026, 3, 1)
        assert paid.transaction_id.startswith("TXN-")
        assert paid.auto_payment_attempts == 1
    for inst_id in ids[:2]:
        failed = installments.get_installment_by_id(inst_id)
        assert failed.status == "pending"
        assert failed.auto_payment_attempts == 1
        assert len(failed.auto_payment_failures) == 1


async def test_auto_pay_rerun_only_retries_unpaid(db, clock, create_plans):
    plans = create_plans(3, auto_pay_enabled=True, auto_pay_method="card")
    ids = first_installment_ids(plans)
    await AutomatedPaymentSweeper(db, FakeGateway(declined=[ids[0]]), clock).run()

    gateway = FakeGateway()
    result = await AutomatedPaymentSweeper(db, gateway, clock).run()

    assert result.processed == 1
    assert result.succeeded == 1
    assert gateway.calls == [ids[0]]
    assert InstallmentRepository(db).get_installment_by_id(ids[0]).auto_payment_attempts == 2


async def test_auto_pay_ignores_cancelled_and_manual_plans(db, clock, create_plans):
    auto_pay = create_plans(2, auto_pay_enabled=True, auto_pay_method="card")
    manual = create_plans(1)
    PlanService(db, clock).cancel_plan(auto_pay[1].id)
    ids = first_installment_ids(auto_pay + manual)
    gateway = FakeGateway()

    result = await AutomatedPaymentSweeper(db, gateway, clock).run()

    assert result.processed == 1
    assert gateway.calls == [ids[0]]


async def test_auto_pay_skips_plan_cancelled_mid_sweep(db, clock, create_plans):
    plans = create_plans(2, auto_pay_enabled=True, auto_pay_method="card")
    plan_by_reference = {str(p.installments[0].id): p.id for p in plans}

    class CancellingGateway(FakeGateway):
        async def charge(self, method, amount_cents, reference):
            if not self.calls:
                other = next(ref for ref in plan_by_reference if ref != reference)
                PlanService(db, clock).cancel_plan(plan_by_reference[other])
            return await super().charge(method, amount_cents, reference)

    gateway = CancellingGateway()
    result = await AutomatedPaymentSweeper(db, gateway, clock, concurrency=1).run()

    assert result.processed == 1
    assert result.succeeded == 1
    assert result.skipped == 1
    assert len(gateway.calls) == 1


async def test_auto_pay_completes_plan_on_last_installment(db, clock, create_plans):
    plan = create_plans(1, auto_pay_enabled=True, auto_pay_method="card", number_of_installments=1)[0]

    result = await AutomatedPaymentSweeper(db, FakeGateway(), clock).run()

    assert result.succeeded == 1
    assert PlanRepository(db).get_plan_by_id(plan.id).status == "completed"


def test_claim_is_compare_and_set(db, clock, create_plans):
    plan = create_plans(1, auto_pay_enabled=True, auto_pay_method="card")[0]
    inst_id = plan.installments[0].id
    installments = InstallmentRepository(db)

    assert installments.claim_for_auto_pay(inst_id, 0, clock.now()) is True
    assert installments.claim_for_auto_pay(inst_id, 0, clock.now()) is False
    assert installments.claim_for_auto_pay(inst_id, 1, clock.now()) is True


# Late fees

def test_late_fee_waits_for_grace_period(db, clock, create_plans):
    create_plans(1)
    clock.advance(days=8)  # 2026-03-09, exactly 7 days past due

    result = LateFeeSweeper(db, clock).run()

    assert result.processed == 0
    assert result.late_fees_applied == 0


def test_late_fee_applied_exactly_once(db, clock, create_plans):
    plan = create_plans(1)[0]
    inst_id = plan.installments[0].id
    clock.advance(days=9)  # 2026-03-10

    first = LateFeeSweeper(db, clock).run()
    second = LateFeeSweeper(db, clock).run()

    assert first.late_fees_applied == 1
    assert second.late_fees_applied == 0
    assert db.query(LateFee).filter(LateFee.installment_id == inst_id).count() == 1

    inst = InstallmentRepository(db).get_installment_by_id(inst_id)
    assert inst.status == "overdue"
    assert inst.late_fee_applied is True
    assert inst.late_fee_cents == 2_500
    assert inst.late_fee_date == date(2026, 3, 10)


def test_racing_late_fee_counts_as_skipped(db, clock, create_plans, monkeypatch):
    plan = create_plans(1)[0]
    inst_id = plan.installments[0].id
    clock.advance(days=9)
    stale = InstallmentRepository(db).get_late_fee_candidates(clock.today())
    # Another sweep inserts the fee between selection and insert
    LateFeeRepository(db).create_late_fee(inst_id, 2_500, clock.now())
    db.commit()
    monkeypatch.setattr(InstallmentRepository, "get_late_fee_candidates", lambda self, today: stale)

    result = LateFeeSweeper(db, clock).run()

    assert result.processed == 1
    assert result.skipped == 1
    assert result.late_fees_applied == 0
    assert db.query(LateFee).count() == 1


def test_no_late_fee_when_disabled_or_paid(db, clock, create_plans):
    create_plans(1, late_fee_policy=LateFeePolicy(enabled=False))
    paid_plan = create_plans(1)[0]
    PlanService(db, clock).record_manual_payment(paid_plan.installments[0].id, 33_333, "cash")
    clock.advance(days=20)

    result = LateFeeSweeper(db, clock).run()

    assert result.late_fees_applied == 0
    assert db.query(LateFee).count() == 0


def test_long_overdue_plan_marked_defaulted(db, clock, create_plans):
    plan = create_plans(1)[0]
    clock.instant = datetime(2026, 4, 3, 6, 0, tzinfo=timezone.utc)  # 32 days after installment 1

    result = LateFeeSweeper(db, clock, default_after_days=30).run()

    assert result.late_fees_applied == 1
    assert result.defaults_marked == 1
    assert PlanRepository(db).get_plan_by_id(plan.id).status == "defaulted"


def test_zero_day_default_threshold_is_honoured(db, clock, create_plans):
    plan = create_plans(1)[0]
    clock.advance(days=2)  # 2026-03-03, one day after installment 1

    result = LateFeeSweeper(db, clock, default_after_days=0).run()

    assert result.late_fees_applied == 0
    assert result.defaults_marked == 1
    assert PlanRepository(db).get_plan_by_id(plan.id).status == "defaulted"


# Reminders

REMINDER_POLICY = ReminderPolicy(days_before_due=[1], days_after_due=[1], methods=["email", "sms"])


async def test_reminders_sent_once_per_day(db, clock, create_plans):
    plan = create_plans(1, reminder_policy=REMINDER_POLICY)[0]
    dispatcher = FakeDispatcher()

    first = await ReminderSweeper(db, dispatcher, clock).run()
    second = await ReminderSweeper(db, dispatcher, clock).run()

    assert first.sent == 2
    assert second.sent == 0
    assert [channel for _, channel, _ in dispatcher.sent] == ["email", "sms"]
    assert dispatcher.sent[0][0] == "student_0"

    inst = InstallmentRepository(db).get_installment_by_id(plan.installments[0].id)
    assert [(r["method"], r["offset"], r["outcome"]) for r in inst.reminders_sent] == [
        ("email", -1, "sent"),
        ("sms", -1, "sent"),
    ]


async def test_overdue_reminder_after_due_date(db, clock, create_plans):
    create_plans(1, reminder_policy=REMINDER_POLICY)
    clock.advance(days=2)  # 2026-03-03, one day after installment 1
    dispatcher = FakeDispatcher()

    result = await ReminderSweeper(db, dispatcher, clock).run()

    assert result.sent == 2
    assert "Overdue notice" in dispatcher.sent[0][2]


async def test_failed_reminder_delivery_recorded(db, clock, create_plans):
    plan = create_plans(1, reminder_policy=REMINDER_POLICY)[0]

    result = await ReminderSweeper(db, FakeDispatcher(delivered=False), clock).run()

    assert result.sent == 0
    assert result.failed == 2
    inst = InstallmentRepository(db).get_installment_by_id(plan.installments[0].id)
    assert {r["outcome"] for r in inst.reminders_sent} == {"failed"}


async def test_no_reminders_for_cancelled_plan(db, clock, create_plans):
    plan = create_plans(1, reminder_policy=REMINDER_POLICY)[0]
    PlanService(db, clock).cancel_plan(plan.id)
    dispatcher = FakeDispatcher()

    result = await ReminderSweeper(db, dispatcher, clock).run()

    assert result.sent == 0
    assert dispatcher.sent == []


# Scheduler entry point

def test_job_runs_sweep_and_summarizes(db):
    summary = run_sweep("late-fees", db)

    assert summary == {"processed": 0, "late_fees_applied": 0, "skipped": 0, "failed": 0, "defaults_marked": 0}


def test_job_rejects_unknown_sweep():
    with pytest.raises(SystemExit):
        main(["interest"])
