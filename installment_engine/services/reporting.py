"""Read-only views for dashboards and reports"""

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session

from installment_engine.domain.analytics import is_overdue, summarize_plans
from installment_engine.domain.models import (
    DashboardRow,
    InstallmentStatus,
    OverdueInstallment,
    PlanAnalytics,
)
from installment_engine.infrastructure.database.models import PaymentPlan
from installment_engine.infrastructure.database.repositories import InstallmentRepository, PlanRepository
from installment_engine.utils.clock import Clock, SystemClock


def build_dashboard_row(plan: PaymentPlan, today: date) -> DashboardRow:
    installments = plan.installments
    paid_cents = sum(inst.paid_cents or 0 for inst in installments)
    unpaid_due_dates = [inst.due_date for inst in installments if inst.status != InstallmentStatus.PAID.value]

    def count(status: InstallmentStatus) -> int:
        return sum(1 for inst in installments if inst.status == status.value)

    return DashboardRow(
        plan_id=str(plan.id),
        invoice_id=str(plan.invoice_id),
        student_id=plan.student_id,
        plan_status=plan.status,
        frequency=plan.frequency,
        total_cents=plan.total_cents,
        paid_cents=paid_cents,
        remaining_cents=max(plan.total_cents - paid_cents, 0),
        total_installments=len(installments),
        paid_installments=count(InstallmentStatus.PAID),
        pending_installments=count(InstallmentStatus.PENDING),
        partial_installments=count(InstallmentStatus.PARTIAL),
        overdue_installments=sum(1 for inst in installments if is_overdue(inst, today)),
        next_due_date=min(unpaid_due_dates) if unpaid_due_dates else None,
        auto_pay_enabled=plan.auto_pay_enabled,
    )


class ReportingService:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.plans = PlanRepository(db)
        self.installments = InstallmentRepository(db)

    def get_dashboard_rows(
        self,
        statuses: Optional[Sequence[str]] = None,
        student_id: Optional[str] = None,
        overdue_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[DashboardRow], int]:
        """
        One row per plan with aggregated installment counts, newest plans first.

        Returns:
            (rows for the requested page, total matching rows)
        """
        today = self.clock.today()
        offset = (max(page, 1) - 1) * limit

        if not overdue_only:
            plans, total = self.plans.get_dashboard_plans(statuses, student_id, offset, limit)
            return [build_dashboard_row(p, today) for p in plans], total

        # Overdue is derived per installment, so filter before paging
        plans, _ = self.plans.get_dashboard_plans(statuses, student_id, 0, None)
        rows = [row for row in (build_dashboard_row(p, today) for p in plans) if row.overdue_installments > 0]
        return rows[offset:offset + limit], len(rows)

    def get_overdue_installments(self) -> List[OverdueInstallment]:
        today = self.clock.today()
        return [
            OverdueInstallment(
                installment_id=str(inst.id),
                plan_id=str(plan.id),
                student_id=plan.student_id,
                installment_number=inst.installment_number,
                amount_cents=inst.amount_cents,
                outstanding_cents=inst.amount_cents - (inst.paid_cents or 0),
                due_date=inst.due_date,
                days_overdue=max((today - inst.due_date).days, 0),
                status=inst.status,
                late_fee_cents=inst.late_fee_cents or 0,
            )
            for inst, plan in self.installments.get_overdue_installments(today)
        ]

    def get_analytics(self, start: date, end: date) -> PlanAnalytics:
        """Aggregate plans created between start and end, both inclusive"""
        range_start = datetime.combine(start, time.min, tzinfo=timezone.utc)
        range_end = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
        plans = self.plans.get_plans_created_between(range_start, range_end)
        return summarize_plans(plans, self.clock.today())
