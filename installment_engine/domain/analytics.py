"""Payment plan analytics - pure aggregation over plans and their installments"""

from collections import Counter
from datetime import date
from typing import Sequence
from installment_engine.domain.models import InstallmentStatus, PlanAnalytics, PlanStatus


def _rate(numerator: int, denominator: int) -> float:
    return round(numerator / denominator, 4) if denominator > 0 else 0.0


def is_overdue(installment, today: date) -> bool:
    """Overdue by status, or still unpaid after its due date"""
    if installment.status == InstallmentStatus.OVERDUE.value:
        return True
    return (
        installment.status in (InstallmentStatus.PENDING.value, InstallmentStatus.PARTIAL.value)
        and installment.due_date < today
    )


def summarize_plans(plans: Sequence, today: date) -> PlanAnalytics:
    """
    Aggregate reporting metrics.

    Metrics:
    - on_time_payment_rate: paid installments with paid_date <= due_date / all paid installments
    - auto_pay_adoption_rate: plans with auto-pay enabled / all plans
    - collection_rate: collected / total plan value

    Args:
        plans: Plans exposing status, total_cents, frequency, auto_pay_enabled and installments
        today: Current date, used to count overdue installments
    """
    statuses = Counter(p.status for p in plans)
    total_plans = len(plans)
    total_value = sum(p.total_cents for p in plans)

    installments = [inst for p in plans for inst in p.installments]
    paid = [inst for inst in installments if inst.status == InstallmentStatus.PAID.value]
    paid_on_time = [inst for inst in paid if inst.paid_date is not None and inst.paid_date <= inst.due_date]

    collected = sum(inst.paid_cents or 0 for inst in installments)
    late_fees = sum(inst.late_fee_cents or 0 for inst in installments if inst.late_fee_applied)
    overdue = sum(1 for inst in installments if is_overdue(inst, today))

    frequencies = Counter(p.frequency for p in plans)
    most_common = frequencies.most_common(1)[0][0] if frequencies else None

    return PlanAnalytics(
        total_plans=total_plans,
        active_plans=statuses.get(PlanStatus.ACTIVE.value, 0),
        completed_plans=statuses.get(PlanStatus.COMPLETED.value, 0),
        cancelled_plans=statuses.get(PlanStatus.CANCELLED.value, 0),
        defaulted_plans=statuses.get(PlanStatus.DEFAULTED.value, 0),
        total_value_cents=total_value,
        average_plan_value_cents=total_value // total_plans if total_plans else 0,
        collected_cents=collected,
        outstanding_cents=max(total_value - collected, 0),
        collection_rate=_rate(collected, total_value),
        on_time_payment_rate=_rate(len(paid_on_time), len(paid)),
        auto_pay_adoption_rate=_rate(sum(1 for p in plans if p.auto_pay_enabled), total_plans),
        overdue_installments=overdue,
        late_fees_cents=late_fees,
        most_common_frequency=most_common,
    )
