"""Late fee and default rules"""

from datetime import date
from installment_engine.domain.models import InstallmentStatus

LATE_FEE_STATUSES = (InstallmentStatus.PENDING.value, InstallmentStatus.OVERDUE.value)


def is_past_grace_period(due_date: date, grace_period_days: int, today: date) -> bool:
    """True once the installment is more than grace_period_days past due"""
    return (today - due_date).days > grace_period_days


def is_late_fee_due(
    status: str,
    due_date: date,
    late_fees_enabled: bool,
    late_fee_applied: bool,
    grace_period_days: int,
    today: date,
) -> bool:
    """
    Decide whether an installment should be charged its late fee now.

    A fee is applied at most once per installment, only after the grace
    period, and only while the installment is unpaid.
    """
    if not late_fees_enabled or late_fee_applied:
        return False
    if status not in LATE_FEE_STATUSES:
        return False
    return is_past_grace_period(due_date, grace_period_days, today)


def is_in_default(due_date: date, default_after_days: int, today: date) -> bool:
    return (today - due_date).days > default_after_days
