"""Batch sweeps over installments: automated charges, late fees and reminders"""

import asyncio
import logging
import time
from datetime import timedelta
from typing import Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from installment_engine.config import settings
from installment_engine.domain.late_fees import is_in_default, is_late_fee_due
from installment_engine.domain.reminders import due_reminders
from installment_engine.domain.models import (
    AutoPaySweepResult,
    ChargeResult,
    InstallmentStatus,
    LateFeeSweepResult,
    PlanStatus,
    ReminderSweepResult,
    SweepFailure,
)
from installment_engine.domain.exceptions import PaymentGatewayError
from installment_engine.infrastructure.clients.notifications import ReminderDispatcher
from installment_engine.infrastructure.clients.payment_gateway import PaymentGatewayClient
from installment_engine.infrastructure.database.models import PaymentPlan, PlanInstallment
from installment_engine.infrastructure.database.repositories import (
    InstallmentRepository,
    LateFeeRepository,
    PlanRepository,
)
from installment_engine.infrastructure.observability.logging import log_sweep
from installment_engine.infrastructure.observability.metrics import late_fee_counter, record_sweep_outcomes
from installment_engine.services.plan_service import complete_plan_if_paid
from installment_engine.utils.clock import Clock, SystemClock


class AutomatedPaymentSweeper:
    """
    Charge installments falling due on auto-pay plans.

    Each installment is claimed by a conditional update before it is charged,
    so overlapping runs never charge the same installment twice. A failed
    charge is recorded and the sweep moves on; the next run re-selects
    anything still pending.

    Charges run concurrently on one session. Every database step commits
    before the next await, so no task ever suspends holding uncommitted
    changes of another.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayClient,
        clock: Optional[Clock] = None,
        lookahead_days: Optional[int] = None,
        concurrency: Optional[int] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.clock = clock or SystemClock()
        self.lookahead_days = settings.auto_pay_lookahead_days if lookahead_days is None else lookahead_days
        self.concurrency = concurrency or settings.sweep_concurrency
        self.installments = InstallmentRepository(db)

    async def run(self) -> AutoPaySweepResult:
        start_time = time.time()
        today = self.clock.today()
        candidates = self.installments.get_due_for_auto_pay(today, today + timedelta(days=self.lookahead_days))

        # Attempt counters as selected; commits in other workers expire the loaded rows
        observed = {inst.id: inst.auto_payment_attempts or 0 for inst in candidates}
        result = AutoPaySweepResult()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(installment: PlanInstallment) -> None:
            async with semaphore:
                installment_id = str(installment.id)
                try:
                    await self._process(installment, observed[installment.id], result)
                except Exception as e:
                    # One installment must never abort the batch
                    self.db.rollback()
                    logging.exception(f"Auto-pay failed for installment {installment_id}")
                    result.failed += 1
                    result.failures.append(SweepFailure(installment_id=installment_id, reason=str(e)))

        await asyncio.gather(*(worker(inst) for inst in candidates))

        record_sweep_outcomes("auto_pay", result.succeeded, result.failed, result.skipped)
        log_sweep(
            "auto_pay",
            (time.time() - start_time) * 1000,
            processed=result.processed,
            succeeded=result.succeeded,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result

    def _claim(self, installment: PlanInstallment, observed_attempts: int) -> bool:
        """Re-check the plan is still active, then compare-and-set the attempt counter"""
        plan_status = (
            self.db.query(PaymentPlan.status).filter(PaymentPlan.id == installment.plan_id).scalar()
        )
        if plan_status != PlanStatus.ACTIVE.value:
            return False
        claimed = self.installments.claim_for_auto_pay(
            installment.id, observed_attempts, self.clock.now()
        )
        self.db.commit()
        return claimed

    async def _process(self, installment: PlanInstallment, observed_attempts: int, result: AutoPaySweepResult) -> None:
        installment_id = installment.id
        plan = installment.plan
        amount_cents = installment.amount_cents - (installment.paid_cents or 0)
        method = plan.auto_pay_method

        if not self._claim(installment, observed_attempts):
            result.skipped += 1
            return

        result.processed += 1
        try:
            charge = await self.gateway.charge(method, amount_cents, reference=str(installment_id))
        except PaymentGatewayError as e:
            charge = ChargeResult(success=False, failure_reason=e.detail or str(e))

        if not charge.success:
            self._record_failure(installment, charge.failure_reason, result)
            return

        now = self.clock.now()
        marked = self.installments.mark_paid_if_pending(
            installment_id,
            charge.amount_cents or amount_cents,
            self.clock.today(),
            method,
            charge.transaction_id,
            now,
        )
        if not marked:
            # Paid by another path while the charge was in flight; needs reconciliation
            self.db.commit()
            logging.error(
                f"Charged installment {installment_id} was no longer pending",
                extra={"installment_id": str(installment_id), "transaction_id": charge.transaction_id},
            )
            self._record_failure(installment, f"Installment no longer pending (transaction {charge.transaction_id})", result)
            return

        self.db.flush()
        complete_plan_if_paid(self.db, plan, self.clock)
        self.db.commit()
        result.succeeded += 1

    def _record_failure(self, installment: PlanInstallment, reason: Optional[str], result: AutoPaySweepResult) -> None:
        reason = reason or "Unknown failure"
        self.installments.record_auto_payment_failure(installment, reason, self.clock.now())
        self.db.commit()
        logging.warning(
            f"Auto-pay charge failed: {reason}",
            extra={"installment_id": str(installment.id), "step": "auto_pay_failed"},
        )
        result.failed += 1
        result.failures.append(SweepFailure(installment_id=str(installment.id), reason=reason))


class LateFeeSweeper:
    """
    Apply the plan's late fee once an installment is past its grace period.

    A LateFee row is unique per installment, so re-running the sweep (or two
    sweeps racing) never charges a second fee. The same pass marks plans
    defaulted once an installment is more than default_after_days late.
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None, default_after_days: Optional[int] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.default_after_days = settings.default_after_days if default_after_days is None else default_after_days
        self.installments = InstallmentRepository(db)
        self.late_fees = LateFeeRepository(db)
        self.plans = PlanRepository(db)

    def run(self) -> LateFeeSweepResult:
        start_time = time.time()
        today = self.clock.today()
        result = LateFeeSweepResult()

        for installment, plan in self.installments.get_late_fee_candidates(today):
            if not is_late_fee_due(
                installment.status,
                installment.due_date,
                plan.late_fees_enabled,
                installment.late_fee_applied,
                plan.grace_period_days,
                today,
            ):
                continue

            result.processed += 1
            self._apply_fee(installment, plan, result)

        result.defaults_marked = self._mark_defaults()

        late_fee_counter.inc(result.late_fees_applied)
        record_sweep_outcomes("late_fee", result.late_fees_applied, result.failed, result.skipped)
        log_sweep(
            "late_fee",
            (time.time() - start_time) * 1000,
            processed=result.processed,
            late_fees_applied=result.late_fees_applied,
            skipped=result.skipped,
            failed=result.failed,
            defaults_marked=result.defaults_marked,
        )
        return result

    def _apply_fee(self, installment: PlanInstallment, plan: PaymentPlan, result: LateFeeSweepResult) -> None:
        now = self.clock.now()
        installment_id = installment.id
        try:
            self.late_fees.create_late_fee(installment_id, plan.late_fee_cents, now)
            installment.late_fee_applied = True
            installment.late_fee_cents = plan.late_fee_cents
            installment.late_fee_date = now.date()
            installment.status = InstallmentStatus.OVERDUE.value
            installment.updated_at = now
            self.db.commit()
            result.late_fees_applied += 1
        except IntegrityError:
            # Another run got there first
            self.db.rollback()
            result.skipped += 1
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(f"Late fee failed for installment {installment_id}: {e}")
            result.failed += 1

    def _mark_defaults(self) -> int:
        today = self.clock.today()
        defaulted = set()
        for installment, plan in self.installments.get_unpaid_past_due(today):
            if plan.id in defaulted or not is_in_default(installment.due_date, self.default_after_days, today):
                continue
            try:
                self.plans.set_status(plan, PlanStatus.DEFAULTED, self.clock.now())
                self.db.commit()
                defaulted.add(plan.id)
            except SQLAlchemyError as e:
                self.db.rollback()
                logging.error(f"Could not mark plan {plan.id} defaulted: {e}")
        return len(defaulted)


class ReminderSweeper:
    """Dispatch the before-due and after-due reminders that fall on today"""

    def __init__(self, db: Session, dispatcher: ReminderDispatcher, clock: Optional[Clock] = None):
        self.db = db
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()
        self.installments = InstallmentRepository(db)

    async def run(self) -> ReminderSweepResult:
        start_time = time.time()
        today = self.clock.today()
        window = timedelta(days=settings.reminder_window_days)
        result = ReminderSweepResult()

        for installment, plan in self.installments.get_reminder_candidates(today - window, today + window):
            reminders = due_reminders(
                installment_id=str(installment.id),
                installment_number=installment.installment_number,
                amount_cents=installment.amount_cents - (installment.paid_cents or 0),
                due_date=installment.due_date,
                recipient=plan.student_id,
                reminder_settings=plan.reminder_settings,
                reminders_sent=installment.reminders_sent,
                today=today,
            )
            for reminder in reminders:
                delivered = await self.dispatcher.dispatch(reminder.recipient, reminder.method, reminder.message)
                self.installments.record_reminder(
                    installment, today, reminder.method, reminder.offset_days, "sent" if delivered else "failed"
                )
                self.db.commit()
                if delivered:
                    result.sent += 1
                else:
                    result.failed += 1

        record_sweep_outcomes("reminder", result.sent, result.failed)
        log_sweep("reminder", (time.time() - start_time) * 1000, sent=result.sent, failed=result.failed)
        return result
