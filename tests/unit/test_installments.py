"""Unit tests for installment schedule generation"""

import pytest
from datetime import date, timedelta
from installment_engine.domain.installments import (
    calculate_installment_amounts,
    generate_installment_schedule,
    split_evenly,
)
from installment_engine.domain.exceptions import (
    AmountMismatch,
    InvalidFrequency,
    InvalidInstallmentCount,
    InvalidStartDate,
    TermsNotAccepted,
)

TODAY = date(2026, 3, 1)
START = date(2026, 3, 2)


def test_generate_schedule_three_monthly_installments():
    """1000.00 over 3 months: last installment absorbs the remainder"""
    schedule = generate_installment_schedule(100_000, 3, "monthly", START, TODAY, terms_accepted=True)

    assert [s.amount_cents for s in schedule] == [33_333, 33_333, 33_334]
    assert [s.due_date for s in schedule] == [date(2026, 3, 2), date(2026, 4, 2), date(2026, 5, 2)]
    assert [s.installment_number for s in schedule] == [1, 2, 3]


def test_generate_schedule_amounts_always_sum_to_total():
    """Conservation holds for awkward totals and counts"""
    for total in (1, 99, 100_000, 123_457, 999_999):
        for count in (1, 2, 3, 7, 12):
            if count > total:
                continue
            for frequency in ("weekly", "biweekly", "monthly"):
                schedule = generate_installment_schedule(total, count, frequency, START, TODAY, terms_accepted=True)

                assert len(schedule) == count
                assert sum(s.amount_cents for s in schedule) == total
                due_dates = [s.due_date for s in schedule]
                assert all(a < b for a, b in zip(due_dates, due_dates[1:]))


def test_generate_schedule_weekly_and_biweekly_dates():
    weekly = generate_installment_schedule(40_000, 4, "weekly", START, TODAY, terms_accepted=True)
    biweekly = generate_installment_schedule(40_000, 4, "biweekly", START, TODAY, terms_accepted=True)

    assert [s.due_date for s in weekly] == [START + timedelta(days=7 * i) for i in range(4)]
    assert [s.due_date for s in biweekly] == [START + timedelta(days=14 * i) for i in range(4)]


def test_monthly_dates_clamp_to_month_length_and_keep_anchor():
    """Jan 31 start: Feb clamps to 28, March returns to 31"""
    schedule = generate_installment_schedule(
        90_000, 3, "monthly", date(2027, 1, 31), TODAY, terms_accepted=True
    )

    assert [s.due_date for s in schedule] == [date(2027, 1, 31), date(2027, 2, 28), date(2027, 3, 31)]


def test_first_payment_override_splits_residual():
    amounts = calculate_installment_amounts(100_000, 4, first_payment_cents=40_000)

    assert amounts == [40_000, 20_000, 20_000, 20_000]


def test_first_payment_override_remainder_on_last():
    amounts = calculate_installment_amounts(100_000, 4, first_payment_cents=50_000)

    assert amounts == [50_000, 16_666, 16_666, 16_668]
    assert sum(amounts) == 100_000


def test_first_payment_must_be_less_than_total():
    with pytest.raises(AmountMismatch):
        calculate_installment_amounts(100_000, 3, first_payment_cents=100_000)


def test_first_payment_residual_must_cover_remaining_installments():
    """98 of 100 cents up front would leave zero-cent installments 2 to 4"""
    with pytest.raises(AmountMismatch):
        generate_installment_schedule(100, 5, "weekly", START, TODAY, terms_accepted=True, first_payment_cents=98)

    amounts = calculate_installment_amounts(100, 5, first_payment_cents=96)
    assert amounts == [96, 1, 1, 1, 1]


def test_total_smaller_than_installment_count_rejected():
    with pytest.raises(AmountMismatch):
        generate_installment_schedule(3, 5, "weekly", START, TODAY, terms_accepted=True)

    assert calculate_installment_amounts(5, 5) == [1, 1, 1, 1, 1]


def test_custom_amounts_used_verbatim():
    amounts = calculate_installment_amounts(100_000, 3, custom_amounts_cents=[50_000, 30_000, 20_000])

    assert amounts == [50_000, 30_000, 20_000]


def test_custom_amounts_within_tolerance_accepted():
    # 3 installments may drift by up to 3 cents
    amounts = calculate_installment_amounts(100_000, 3, custom_amounts_cents=[33_333, 33_333, 33_333])

    assert sum(amounts) == 99_999


def test_custom_amounts_must_sum_to_total():
    with pytest.raises(AmountMismatch):
        calculate_installment_amounts(100_000, 3, custom_amounts_cents=[50_000, 30_000, 10_000])


def test_custom_amounts_length_must_match_count():
    with pytest.raises(AmountMismatch):
        calculate_installment_amounts(100_000, 3, custom_amounts_cents=[50_000, 50_000])


def test_zero_installments_rejected_with_bilingual_message():
    with pytest.raises(InvalidInstallmentCount) as exc_info:
        generate_installment_schedule(100_000, 0, "monthly", START, TODAY, terms_accepted=True)

    assert exc_info.value.message_ar == "عدد الأقساط يجب أن يكون أكبر من صفر"
    assert exc_info.value.message_en == "Number of installments must be greater than zero"


def test_unknown_frequency_rejected():
    with pytest.raises(InvalidFrequency):
        generate_installment_schedule(100_000, 3, "daily", START, TODAY, terms_accepted=True)


def test_start_date_must_be_after_today():
    with pytest.raises(InvalidStartDate):
        generate_installment_schedule(100_000, 3, "monthly", TODAY, TODAY, terms_accepted=True)


def test_terms_must_be_accepted():
    with pytest.raises(TermsNotAccepted):
        generate_installment_schedule(100_000, 3, "monthly", START, TODAY, terms_accepted=False)


def test_split_evenly_single_part():
    assert split_evenly(12_345, 1) == [12_345]
