"""Plan lifecycle: creation with compensating rollback, modification, manual payments, cancellation"""

import logging
from datetime import date
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from installment_engine.domain.eligibility import check_invoice_eligibility
from installment_engine.domain.installments import generate_installment_schedule, parse_frequency
from installment_engine.domain.modifications import check_amount_conservation, select_modifiable_changes
from installment_engine.domain.models import (
    InstallmentStatus,
    ModificationResult,
    PlanRequest,
    PlanStatus,
    ScheduleChange,
)
from installment_engine.domain.exceptions import (
    ActivePlanExists,
    AutoPayMethodRequired,
    InstallmentAlreadyPaid,
    InstallmentCreationFailed,
    InstallmentNotFound,
    InvalidPaymentAmount,
    PersistenceError,
    PlanNotActive,
    PlanNotFound,
)
from installment_engine.infrastructure.database.models import PaymentPlan, PlanInstallment
from installment_engine.infrastructure.database.repositories import (
    InstallmentRepository,
    InvoiceRepository,
    ModificationRepository,
    PlanRepository,
)
from installment_engine.infrastructure.observability.logging import log_plan_created, log_plan_modified
from installment_engine.infrastructure.observability.metrics import (
    plan_created_counter,
    plan_creation_failures_counter,
    plan_modification_counter,
)
from installment_engine.utils.clock import Clock, SystemClock


def complete_plan_if_paid(db: Session, plan: PaymentPlan, clock: Clock) -> bool:
    """Mark the plan completed and release the invoice once every installment is paid"""
    installments = InstallmentRepository(db).get_plan_installments(plan.id)
    if not installments or any(inst.status != InstallmentStatus.PAID.value for inst in installments):
        return False

    PlanRepository(db).set_status(plan, PlanStatus.COMPLETED, clock.now())
    InvoiceRepository(db).clear_active_plan(plan.invoice_id)
    return True


class PlanService:
    """Orchestrates plan writes; repositories flush, this layer commits"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.invoices = InvoiceRepository(db)
        self.plans = PlanRepository(db)
        self.installments = InstallmentRepository(db)
        self.modifications = ModificationRepository(db)

    def create_plan(self, request: PlanRequest, request_id: str = "unknown") -> PaymentPlan:
        """
        Put an invoice's outstanding balance on an installment plan.

        Flow:
        1. Eligibility (invoice exists, not paid, balance > 0, no active plan)
        2. Request validation (auto-pay needs a method) and schedule generation
        3. Insert plan row, then all installment rows
        4. Mark the invoice as carrying an active plan and commit

        Validation and conflict errors are raised before anything is written.
        If writing installments fails, the plan row is removed again and
        InstallmentCreationFailed is raised with the cause chained.
        """
        invoice = self.invoices.get_snapshot(request.invoice_id)
        total_cents = check_invoice_eligibility(invoice)

        if invoice.has_active_plan or self.plans.get_active_plan_for_invoice(invoice.invoice_id):
            raise ActivePlanExists(f"Invoice {invoice.invoice_id}")

        frequency = parse_frequency(request.frequency)
        if request.auto_pay_enabled and not (request.auto_pay_method or "").strip():
            raise AutoPayMethodRequired(f"Invoice {invoice.invoice_id}")
        schedule = generate_installment_schedule(
            total_cents=total_cents,
            num_installments=request.number_of_installments,
            frequency=frequency,
            start_date=request.start_date,
            today=self.clock.today(),
            terms_accepted=request.terms_accepted,
            first_payment_cents=request.first_payment_cents,
            custom_amounts_cents=request.custom_amounts_cents,
        )

        now = self.clock.now()
        try:
            db_plan = self.plans.create_plan(
                request=request,
                invoice=invoice,
                frequency=frequency.value,
                total_cents=total_cents,
                installment_cents=schedule[0].amount_cents,
                now=now,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Plan insert failed: {e}") from e

        plan_id = db_plan.id
        try:
            self.installments.create_installments(plan_id, schedule)
            self.invoices.mark_active_plan(invoice.invoice_id, frequency.value)
            self.db.commit()
        except SQLAlchemyError as e:
            self._remove_plan(plan_id, request_id)
            plan_creation_failures_counter.inc()
            raise InstallmentCreationFailed(str(e)) from e

        plan_created_counter.labels(frequency=frequency.value).inc()
        log_plan_created(
            request_id,
            str(plan_id),
            invoice.invoice_id,
            total_cents,
            request.number_of_installments,
            frequency.value,
        )
        return self.plans.get_plan_by_id(plan_id)

    def _remove_plan(self, plan_id, request_id: str) -> None:
        """Compensating delete; safe to repeat and a no-op if the rollback already discarded the row"""
        self.db.rollback()
        try:
            self.plans.delete_plan(plan_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(
                f"Compensating delete failed for plan {plan_id}: {e}",
                extra={"request_id": request_id, "plan_id": str(plan_id)},
            )

    def modify_plan(
        self,
        plan_id,
        changes: List[ScheduleChange],
        reason_en: str,
        reason_ar: str,
        modified_by: Optional[str] = None,
    ) -> ModificationResult:
        """
        Re-schedule the unpaid remainder of an active plan.

        Paid installments are never touched, even if the proposal names them.
        The full proposal is kept in the modification record regardless.
        """
        plan = self.plans.get_plan_by_id(plan_id)
        if plan is None:
            raise PlanNotFound(str(plan_id))
        if plan.status != PlanStatus.ACTIVE.value:
            raise PlanNotActive(f"Plan {plan.id} is {plan.status}")

        pairs = select_modifiable_changes(plan.installments, changes)
        check_amount_conservation(plan.total_cents, plan.installments, pairs)

        now = self.clock.now()
        try:
            modification = self.modifications.create_modification(
                plan.id, changes, reason_en, reason_ar, modified_by, now
            )
            updated = sum(
                1 for inst, change in pairs if self.installments.apply_schedule_change(inst, change, now)
            )
            plan.modification_count = (plan.modification_count or 0) + 1
            plan.updated_at = now
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Plan modification failed: {e}") from e

        skipped = len(changes) - updated
        plan_modification_counter.inc()
        log_plan_modified(str(plan.id), updated, skipped, modified_by)
        return ModificationResult(
            modification_id=str(modification.id),
            installments_updated=updated,
            paid_installments_skipped=skipped,
        )

    def record_manual_payment(
        self,
        installment_id,
        amount_cents: int,
        payment_method: str,
        transaction_id: Optional[str] = None,
        receipt_number: Optional[str] = None,
        notes: Optional[str] = None,
        payment_date: Optional[date] = None,
    ) -> PlanInstallment:
        """
        Record a payment collected outside the automated sweep.

        Partial payments move the installment to partial; reaching the full
        amount moves it to paid and may complete the plan.
        """
        installment = self.installments.get_installment_by_id(installment_id)
        if installment is None:
            raise InstallmentNotFound(str(installment_id))
        if installment.status == InstallmentStatus.PAID.value:
            raise InstallmentAlreadyPaid(str(installment.id))

        plan = installment.plan
        if plan.status == PlanStatus.CANCELLED.value:
            raise PlanNotActive(f"Plan {plan.id} is cancelled")

        outstanding = installment.amount_cents - (installment.paid_cents or 0)
        if amount_cents <= 0 or amount_cents > outstanding:
            raise InvalidPaymentAmount(f"Amount {amount_cents}, outstanding {outstanding}")

        now = self.clock.now()
        new_paid = (installment.paid_cents or 0) + amount_cents
        try:
            installment.paid_cents = new_paid
            installment.payment_method = payment_method
            installment.transaction_id = transaction_id
            installment.receipt_number = receipt_number
            installment.notes = notes
            installment.updated_at = now
            if new_paid >= installment.amount_cents:
                installment.status = InstallmentStatus.PAID.value
                installment.paid_date = payment_date or self.clock.today()
            else:
                installment.status = InstallmentStatus.PARTIAL.value
            self.db.flush()

            complete_plan_if_paid(self.db, plan, self.clock)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Payment recording failed: {e}") from e

        return installment

    def cancel_plan(self, plan_id) -> PaymentPlan:
        """Stop an active plan; sweeps skip cancelled plans from then on"""
        plan = self.plans.get_plan_by_id(plan_id)
        if plan is None:
            raise PlanNotFound(str(plan_id))
        if plan.status != PlanStatus.ACTIVE.value:
            raise PlanNotActive(f"Plan {plan.id} is {plan.status}")

        try:
            self.plans.set_status(plan, PlanStatus.CANCELLED, self.clock.now())
            self.invoices.clear_active_plan(plan.invoice_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Plan cancellation failed: {e}") from e

        logging.info("Payment plan cancelled", extra={"step": "plan_cancelled", "plan_id": str(plan.id)})
        return plan
