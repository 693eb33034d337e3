"""Installment schedule generation for invoice payment plans"""

from datetime import date, timedelta
from typing import List, Optional
from installment_engine.domain.models import Frequency, ScheduledInstallment
from installment_engine.domain.exceptions import (
    AmountMismatch,
    InvalidFrequency,
    InvalidInstallmentCount,
    InvalidStartDate,
    TermsNotAccepted,
)
from installment_engine.utils.date_utils import add_months


def rounding_tolerance_cents(num_installments: int) -> int:
    """One cent of drift allowed per installment"""
    return max(num_installments, 1)


def parse_frequency(value) -> Frequency:
    try:
        return Frequency(value)
    except ValueError as e:
        raise InvalidFrequency(f"Unsupported frequency: {value!r}") from e


def split_evenly(total_cents: int, parts: int) -> List[int]:
    """
    Split total into equal parts; the last part absorbs the rounding remainder.

    Example:
        100000 / 3 -> [33333, 33333, 33334]
    """
    base_amount = total_cents // parts
    remainder = total_cents % parts
    amounts = [base_amount] * parts
    amounts[-1] += remainder
    return amounts


def calculate_installment_amounts(
    total_cents: int,
    num_installments: int,
    first_payment_cents: Optional[int] = None,
    custom_amounts_cents: Optional[List[int]] = None,
) -> List[int]:
    """
    Work out the amount of every installment.

    Precedence:
    - Explicit per-installment amounts are used verbatim (sum re-validated)
    - A first-payment override fixes installment 1; the rest split the residual
    - Otherwise the total is split evenly

    Raises:
        InvalidInstallmentCount: num_installments < 1
        AmountMismatch: amounts cannot add up to total, or an installment would be zero
    """
    if num_installments < 1:
        raise InvalidInstallmentCount(f"Got {num_installments} installments")
    if total_cents <= 0:
        raise AmountMismatch("Total amount must be greater than zero")

    if custom_amounts_cents is not None:
        if len(custom_amounts_cents) != num_installments:
            raise AmountMismatch(
                f"Expected {num_installments} custom amounts, got {len(custom_amounts_cents)}"
            )
        if any(amount <= 0 for amount in custom_amounts_cents):
            raise AmountMismatch("Custom amounts must be greater than zero")
        drift = abs(sum(custom_amounts_cents) - total_cents)
        if drift > rounding_tolerance_cents(num_installments):
            raise AmountMismatch(
                f"Custom amounts sum to {sum(custom_amounts_cents)}, expected {total_cents}"
            )
        return list(custom_amounts_cents)

    if first_payment_cents is not None:
        if first_payment_cents <= 0 or first_payment_cents >= total_cents:
            raise AmountMismatch("First payment must be greater than zero and less than the total")
        if num_installments < 2:
            raise AmountMismatch("A first-payment override needs at least two installments")
        if total_cents - first_payment_cents < num_installments - 1:
            raise AmountMismatch(
                f"Residual {total_cents - first_payment_cents} cannot cover {num_installments - 1} installments"
            )
        return [first_payment_cents] + split_evenly(total_cents - first_payment_cents, num_installments - 1)

    if total_cents < num_installments:
        raise AmountMismatch(f"Total {total_cents} cannot cover {num_installments} installments")
    return split_evenly(total_cents, num_installments)


def calculate_due_date(start_date: date, frequency: Frequency, index: int) -> date:
    """Due date of the installment at zero-based index"""
    if frequency == Frequency.WEEKLY:
        return start_date + timedelta(days=7 * index)
    if frequency == Frequency.BIWEEKLY:
        return start_date + timedelta(days=14 * index)
    # Always offset from the start date so Jan 31 stays anchored to 31 where the month allows
    return add_months(start_date, index)


def generate_installment_schedule(
    total_cents: int,
    num_installments: int,
    frequency,
    start_date: date,
    today: date,
    terms_accepted: bool,
    first_payment_cents: Optional[int] = None,
    custom_amounts_cents: Optional[List[int]] = None,
) -> List[ScheduledInstallment]:
    """
    Generate a validated installment schedule.

    Args:
        total_cents: Amount to spread across the plan
        num_installments: Number of payments (>= 1)
        frequency: weekly | biweekly | monthly
        start_date: Due date of installment 1, strictly after today
        today: Current date from the injected clock
        terms_accepted: Caller's explicit acceptance of plan terms
        first_payment_cents: Optional override for installment 1
        custom_amounts_cents: Optional explicit amount per installment

    Returns:
        Ordered list of ScheduledInstallment, numbered from 1

    Example:
        100000 cents, 3 x monthly from 2026-01-31
        -> 33333 on 01-31, 33333 on 02-28, 33334 on 03-31
    """
    if not terms_accepted:
        raise TermsNotAccepted()
    if num_installments < 1:
        raise InvalidInstallmentCount(f"Got {num_installments} installments")
    period = parse_frequency(frequency)
    if start_date <= today:
        raise InvalidStartDate(f"{start_date.isoformat()} is not after {today.isoformat()}")

    amounts = calculate_installment_amounts(
        total_cents,
        num_installments,
        first_payment_cents=first_payment_cents,
        custom_amounts_cents=custom_amounts_cents,
    )

    return [
        ScheduledInstallment(
            installment_number=i + 1,
            due_date=calculate_due_date(start_date, period, i),
            amount_cents=amount,
        )
        for i, amount in enumerate(amounts)
    ]
