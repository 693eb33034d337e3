"""Data access layer for invoices, payment plans, installments, modifications and late fees"""

import uuid
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple
from sqlalchemy import and_
from sqlalchemy.orm import Session, selectinload
from installment_engine.infrastructure.database.models import (
    Invoice,
    LateFee,
    PaymentPlan,
    PlanInstallment,
    PlanModification,
)
from installment_engine.domain.models import (
    InstallmentStatus,
    InvoiceSnapshot,
    PlanRequest,
    PlanStatus,
    ScheduleChange,
    ScheduledInstallment,
)


def as_uuid(value) -> Optional[uuid.UUID]:
    """Parse an identifier, returning None for anything that is not a UUID"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        return None


class InvoiceRepository:
    """Read access and plan bookkeeping for billing-owned invoices"""

    def __init__(self, db: Session):
        self.db = db

    def get_invoice(self, invoice_id) -> Optional[Invoice]:
        invoice_uuid = as_uuid(invoice_id)
        if invoice_uuid is None:
            return None
        return self.db.query(Invoice).filter(Invoice.id == invoice_uuid).first()

    def get_snapshot(self, invoice_id) -> Optional[InvoiceSnapshot]:
        invoice = self.get_invoice(invoice_id)
        if invoice is None:
            return None
        return InvoiceSnapshot(
            invoice_id=str(invoice.id),
            student_id=invoice.student_id,
            total_cents=invoice.total_cents,
            balance_cents=invoice.balance_cents,
            status=invoice.status,
            has_active_plan=invoice.has_active_plan,
        )

    def mark_active_plan(self, invoice_id, frequency: str) -> None:
        invoice = self.get_invoice(invoice_id)
        if invoice is not None:
            invoice.has_active_plan = True
            invoice.payment_method = f"Payment Plan - {frequency}"
            self.db.flush()

    def clear_active_plan(self, invoice_id) -> None:
        invoice = self.get_invoice(invoice_id)
        if invoice is not None:
            invoice.has_active_plan = False
            self.db.flush()


class PlanRepository:
    """Repository for payment plans"""

    def __init__(self, db: Session):
        self.db = db

    def create_plan(
        self,
        request: PlanRequest,
        invoice: InvoiceSnapshot,
        frequency: str,
        total_cents: int,
        installment_cents: int,
        now: datetime,
    ) -> PaymentPlan:
        """Insert the plan row and flush to obtain its ID without committing"""
        db_plan = PaymentPlan(
            invoice_id=as_uuid(invoice.invoice_id),
            student_id=invoice.student_id,
            total_cents=total_cents,
            number_of_installments=request.number_of_installments,
            installment_cents=installment_cents,
            frequency=frequency,
            start_date=request.start_date,
            status=PlanStatus.ACTIVE.value,
            terms_accepted=request.terms_accepted,
            terms_accepted_at=now if request.terms_accepted else None,
            late_fees_enabled=request.late_fee_policy.enabled,
            late_fee_cents=request.late_fee_policy.fee_cents,
            grace_period_days=request.late_fee_policy.grace_period_days,
            reminder_settings={
                "days_before_due": list(request.reminder_policy.days_before_due),
                "days_after_due": list(request.reminder_policy.days_after_due),
                "methods": list(request.reminder_policy.methods),
            },
            auto_pay_enabled=request.auto_pay_enabled,
            auto_pay_method=request.auto_pay_method,
            notes=request.notes,
            created_by=request.created_by,
            created_at=now,
            updated_at=now,
        )
        self.db.add(db_plan)
        self.db.flush()
        return db_plan

    def get_plan_by_id(self, plan_id) -> Optional[PaymentPlan]:
        """Fetch plan with installments"""
        plan_uuid = as_uuid(plan_id)
        if plan_uuid is None:
            return None
        return (
            self.db.query(PaymentPlan)
            .options(selectinload(PaymentPlan.installments))
            .filter(PaymentPlan.id == plan_uuid)
            .first()
        )

    def get_active_plan_for_invoice(self, invoice_id) -> Optional[PaymentPlan]:
        return (
            self.db.query(PaymentPlan)
            .filter(
                PaymentPlan.invoice_id == as_uuid(invoice_id),
                PaymentPlan.status == PlanStatus.ACTIVE.value,
            )
            .first()
        )

    def delete_plan(self, plan_id) -> int:
        """Remove a plan row; deleting a plan that does not exist is a no-op"""
        deleted = (
            self.db.query(PaymentPlan)
            .filter(PaymentPlan.id == as_uuid(plan_id))
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted

    def set_status(self, plan: PaymentPlan, status: PlanStatus, now: datetime) -> None:
        plan.status = status.value
        plan.updated_at = now
        self.db.flush()

    def get_plans_created_between(self, start: datetime, end: datetime) -> List[PaymentPlan]:
        """Plans with start <= created_at < end, installments eagerly loaded"""
        return (
            self.db.query(PaymentPlan)
            .options(selectinload(PaymentPlan.installments))
            .filter(PaymentPlan.created_at >= start, PaymentPlan.created_at < end)
            .all()
        )

    def get_dashboard_plans(
        self,
        statuses: Optional[Sequence[str]] = None,
        student_id: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = 20,
    ) -> Tuple[List[PaymentPlan], int]:
        """Page of plans for the tracking dashboard, newest first, plus the unpaged count"""
        query = self.db.query(PaymentPlan)
        if statuses:
            query = query.filter(PaymentPlan.status.in_(list(statuses)))
        if student_id:
            query = query.filter(PaymentPlan.student_id == student_id)

        total = query.count()
        plans = (
            query.options(selectinload(PaymentPlan.installments))
            .order_by(PaymentPlan.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return plans, total


class InstallmentRepository:
    """Repository for plan installments, including the sweep selection queries"""

    def __init__(self, db: Session):
        self.db = db

    def create_installments(self, plan_id: uuid.UUID, schedule: List[ScheduledInstallment]) -> List[PlanInstallment]:
        """Insert every installment of a new plan"""
        rows = [
            PlanInstallment(
                plan_id=plan_id,
                installment_number=item.installment_number,
                amount_cents=item.amount_cents,
                due_date=item.due_date,
                status=InstallmentStatus.PENDING.value,
                paid_cents=0,
                auto_payment_failures=[],
                reminders_sent=[],
            )
            for item in schedule
        ]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def get_installment_by_id(self, installment_id) -> Optional[PlanInstallment]:
        installment_uuid = as_uuid(installment_id)
        if installment_uuid is None:
            return None
        return self.db.query(PlanInstallment).filter(PlanInstallment.id == installment_uuid).first()

    def get_plan_installments(self, plan_id) -> List[PlanInstallment]:
        return (
            self.db.query(PlanInstallment)
            .filter(PlanInstallment.plan_id == as_uuid(plan_id))
            .order_by(PlanInstallment.installment_number)
            .all()
        )

    def apply_schedule_change(self, installment: PlanInstallment, change: ScheduleChange, now: datetime) -> bool:
        """Update amount / due date unless the installment has been paid meanwhile"""
        updated = (
            self.db.query(PlanInstallment)
            .filter(
                PlanInstallment.id == installment.id,
                PlanInstallment.status != InstallmentStatus.PAID.value,
            )
            .update(
                {
                    PlanInstallment.amount_cents: change.amount_cents,
                    PlanInstallment.due_date: change.due_date,
                    PlanInstallment.updated_at: now,
                },
                synchronize_session="evaluate",
            )
        )
        return updated == 1

    def get_due_for_auto_pay(self, today: date, until: date) -> List[PlanInstallment]:
        """Pending installments due in [today, until] on active auto-pay plans"""
        return (
            self.db.query(PlanInstallment)
            .join(PaymentPlan, PlanInstallment.plan_id == PaymentPlan.id)
            .filter(
                PlanInstallment.status == InstallmentStatus.PENDING.value,
                PlanInstallment.due_date >= today,
                PlanInstallment.due_date <= until,
                PaymentPlan.auto_pay_enabled.is_(True),
                PaymentPlan.status == PlanStatus.ACTIVE.value,
            )
            .order_by(PlanInstallment.due_date, PlanInstallment.installment_number)
            .all()
        )

    def claim_for_auto_pay(self, installment_id: uuid.UUID, observed_attempts: int, now: datetime) -> bool:
        """
        Reserve an installment for one charge attempt.

        Compare-and-set on auto_payment_attempts: only one concurrent worker
        can move the counter from the observed value, and only while pending.
        """
        claimed = (
            self.db.query(PlanInstallment)
            .filter(
                PlanInstallment.id == installment_id,
                PlanInstallment.status == InstallmentStatus.PENDING.value,
                PlanInstallment.auto_payment_attempts == observed_attempts,
            )
            .update(
                {
                    PlanInstallment.auto_payment_attempts: observed_attempts + 1,
                    PlanInstallment.last_auto_payment_attempt: now,
                },
                synchronize_session="evaluate",
            )
        )
        return claimed == 1

    def mark_paid_if_pending(
        self,
        installment_id: uuid.UUID,
        amount_cents: int,
        paid_date: date,
        payment_method: Optional[str],
        transaction_id: Optional[str],
        now: datetime,
    ) -> bool:
        updated = (
            self.db.query(PlanInstallment)
            .filter(
                PlanInstallment.id == installment_id,
                PlanInstallment.status == InstallmentStatus.PENDING.value,
            )
            .update(
                {
                    PlanInstallment.status: InstallmentStatus.PAID.value,
                    PlanInstallment.paid_cents: amount_cents,
                    PlanInstallment.paid_date: paid_date,
                    PlanInstallment.payment_method: payment_method,
                    PlanInstallment.transaction_id: transaction_id,
                    PlanInstallment.updated_at: now,
                },
                synchronize_session="evaluate",
            )
        )
        return updated == 1

    def record_auto_payment_failure(self, installment: PlanInstallment, reason: str, now: datetime) -> None:
        failures = list(installment.auto_payment_failures or [])
        failures.append({"at": now.isoformat(), "reason": reason})
        installment.auto_payment_failures = failures
        installment.updated_at = now
        self.db.flush()

    def get_late_fee_candidates(self, today: date) -> List[Tuple[PlanInstallment, PaymentPlan]]:
        """
        Unpaid, past-due installments on active late-fee plans with no LateFee row yet.

        The per-plan grace period is applied by the caller.
        """
        return (
            self.db.query(PlanInstallment, PaymentPlan)
            .join(PaymentPlan, PlanInstallment.plan_id == PaymentPlan.id)
            .outerjoin(LateFee, LateFee.installment_id == PlanInstallment.id)
            .filter(
                PlanInstallment.status.in_([InstallmentStatus.PENDING.value, InstallmentStatus.OVERDUE.value]),
                PlanInstallment.due_date < today,
                PaymentPlan.late_fees_enabled.is_(True),
                PaymentPlan.status == PlanStatus.ACTIVE.value,
                LateFee.id.is_(None),
            )
            .order_by(PlanInstallment.due_date)
            .all()
        )

    def get_unpaid_past_due(self, today: date) -> List[Tuple[PlanInstallment, PaymentPlan]]:
        """Unpaid installments due before today on active plans"""
        return (
            self.db.query(PlanInstallment, PaymentPlan)
            .join(PaymentPlan, PlanInstallment.plan_id == PaymentPlan.id)
            .filter(
                PlanInstallment.status != InstallmentStatus.PAID.value,
                PlanInstallment.due_date < today,
                PaymentPlan.status == PlanStatus.ACTIVE.value,
            )
            .all()
        )

    def get_overdue_installments(self, today: date) -> List[Tuple[PlanInstallment, PaymentPlan]]:
        """Installments flagged overdue, or unpaid after their due date, oldest first"""
        return (
            self.db.query(PlanInstallment, PaymentPlan)
            .join(PaymentPlan, PlanInstallment.plan_id == PaymentPlan.id)
            .filter(
                PaymentPlan.status.in_([PlanStatus.ACTIVE.value, PlanStatus.DEFAULTED.value]),
                (PlanInstallment.status == InstallmentStatus.OVERDUE.value)
                | and_(
                    PlanInstallment.status.in_([InstallmentStatus.PENDING.value, InstallmentStatus.PARTIAL.value]),
                    PlanInstallment.due_date < today,
                ),
            )
            .order_by(PlanInstallment.due_date)
            .all()
        )

    def get_reminder_candidates(self, earliest_due: date, latest_due: date) -> List[Tuple[PlanInstallment, PaymentPlan]]:
        """Unpaid installments of active plans whose due date falls inside a reminder window"""
        return (
            self.db.query(PlanInstallment, PaymentPlan)
            .join(PaymentPlan, PlanInstallment.plan_id == PaymentPlan.id)
            .filter(
                PlanInstallment.status != InstallmentStatus.PAID.value,
                PlanInstallment.due_date >= earliest_due,
                PlanInstallment.due_date <= latest_due,
                PaymentPlan.status == PlanStatus.ACTIVE.value,
            )
            .all()
        )

    def record_reminder(self, installment: PlanInstallment, sent_on: date, method: str, offset_days: int, outcome: str) -> None:
        # Reassign so the JSON column is flagged dirty
        records = list(installment.reminders_sent or [])
        records.append({"date": sent_on.isoformat(), "method": method, "offset": offset_days, "outcome": outcome})
        installment.reminders_sent = records
        self.db.flush()


class ModificationRepository:
    """Append-only store of plan modifications"""

    def __init__(self, db: Session):
        self.db = db

    def create_modification(
        self,
        plan_id: uuid.UUID,
        changes: List[ScheduleChange],
        reason_en: str,
        reason_ar: str,
        modified_by: Optional[str],
        now: datetime,
    ) -> PlanModification:
        db_modification = PlanModification(
            plan_id=plan_id,
            new_schedule=[
                {
                    "installment_number": c.installment_number,
                    "amount_cents": c.amount_cents,
                    "due_date": c.due_date.isoformat(),
                }
                for c in changes
            ],
            reason_en=reason_en,
            reason_ar=reason_ar,
            modified_by=modified_by,
            created_at=now,
        )
        self.db.add(db_modification)
        self.db.flush()
        return db_modification

    def get_modifications_for_plan(self, plan_id) -> List[PlanModification]:
        return (
            self.db.query(PlanModification)
            .filter(PlanModification.plan_id == as_uuid(plan_id))
            .order_by(PlanModification.created_at)
            .all()
        )


class LateFeeRepository:
    """Append-only store of late fees; the unique installment_id guards idempotency"""

    def __init__(self, db: Session):
        self.db = db

    def create_late_fee(self, installment_id: uuid.UUID, amount_cents: int, now: datetime) -> LateFee:
        """Raises IntegrityError if the installment already carries a fee"""
        db_fee = LateFee(installment_id=installment_id, amount_cents=amount_cents, applied_at=now)
        self.db.add(db_fee)
        self.db.flush()
        return db_fee
