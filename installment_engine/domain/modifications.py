"""Rules for re-scheduling the unpaid remainder of an active plan"""

from typing import Dict, List, Sequence, Tuple
from installment_engine.domain.models import InstallmentStatus, ScheduleChange
from installment_engine.domain.exceptions import AmountMismatch, InvalidModification
from installment_engine.domain.installments import rounding_tolerance_cents


def select_modifiable_changes(installments: Sequence, changes: List[ScheduleChange]) -> List[Tuple[object, ScheduleChange]]:
    """
    Pair each proposed change with the installment it targets.

    Paid installments are dropped silently even when named in the proposal.
    Installment numbers that do not exist in the plan are rejected, and a
    partially paid installment cannot drop to or below what was already paid.

    Args:
        installments: Plan installments (anything exposing installment_number, status, amount_cents, paid_cents)
        changes: Proposed new amount / due date per installment number
    """
    by_number: Dict[int, object] = {inst.installment_number: inst for inst in installments}

    numbers = [c.installment_number for c in changes]
    if len(numbers) != len(set(numbers)):
        raise InvalidModification("Each installment may appear only once in a proposal")

    unknown = sorted(c.installment_number for c in changes if c.installment_number not in by_number)
    if unknown:
        raise InvalidModification(f"Unknown installment numbers: {unknown}")

    pairs = []
    for change in changes:
        inst = by_number[change.installment_number]
        if inst.status == InstallmentStatus.PAID.value:
            continue
        if change.amount_cents <= 0:
            raise InvalidModification(f"Installment {change.installment_number} amount must be positive")
        paid_cents = inst.paid_cents or 0
        if paid_cents and change.amount_cents <= paid_cents:
            raise InvalidModification(
                f"Installment {change.installment_number} amount {change.amount_cents} must exceed paid {paid_cents}"
            )
        pairs.append((inst, change))
    return pairs


def projected_total_cents(installments: Sequence, pairs: List[Tuple[object, ScheduleChange]]) -> int:
    """Plan total after applying the changes: untouched installments keep their amount"""
    changed = {inst.installment_number: change.amount_cents for inst, change in pairs}
    return sum(changed.get(inst.installment_number, inst.amount_cents) for inst in installments)


def check_amount_conservation(total_cents: int, installments: Sequence, pairs: List[Tuple[object, ScheduleChange]]) -> None:
    """Paid + untouched + proposed amounts must still cover the plan total"""
    projected = projected_total_cents(installments, pairs)
    if abs(projected - total_cents) > rounding_tolerance_cents(len(installments)):
        raise AmountMismatch(f"Modified schedule totals {projected}, plan total is {total_cents}")
