"""Payment reminder scheduling - decides which reminders are due, never delivers them"""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Tuple
from installment_engine.domain.models import DueReminder

BEFORE_DUE = "before_due"
AFTER_DUE = "after_due"

# (template_ar, template_en)
REMINDER_TEMPLATES: Dict[str, Tuple[str, str]] = {
    BEFORE_DUE: (
        "تذكير دفع: القسط رقم {number} بقيمة {amount} مستحق خلال {days} أيام ({due_date})",
        "Payment reminder: installment {number} of {amount} is due in {days} days ({due_date})",
    ),
    AFTER_DUE: (
        "تنبيه تأخير: القسط رقم {number} بقيمة {amount} متأخر {days} أيام. يرجى السداد لتجنب الرسوم الإضافية",
        "Overdue notice: installment {number} of {amount} is {days} days overdue. Please pay to avoid additional fees",
    ),
}


def format_amount(amount_cents: int) -> str:
    return f"{amount_cents // 100}.{amount_cents % 100:02d}"


def render_reminder_message(kind: str, installment_number: int, amount_cents: int, days: int, due_date: date) -> str:
    """Bilingual message body, Arabic first"""
    template_ar, template_en = REMINDER_TEMPLATES[kind]
    values = {
        "number": installment_number,
        "amount": format_amount(amount_cents),
        "days": days,
        "due_date": due_date.isoformat(),
    }
    return f"{template_ar.format(**values)}\n{template_en.format(**values)}"


def reminder_offsets_for(due_date: date, today: date, days_before_due: Iterable[int], days_after_due: Iterable[int]) -> List[Tuple[str, int]]:
    """
    Offsets that land on today.

    Returns:
        List of (kind, signed offset in days); negative offsets are before the due date
    """
    offsets = []
    for days in days_before_due:
        if due_date - timedelta(days=days) == today:
            offsets.append((BEFORE_DUE, -days))
    for days in days_after_due:
        if due_date + timedelta(days=days) == today:
            offsets.append((AFTER_DUE, days))
    return offsets


def already_sent(reminders_sent: Iterable[dict], today: date, method: str) -> bool:
    return any(r.get("date") == today.isoformat() and r.get("method") == method for r in reminders_sent or [])


def due_reminders(
    installment_id: str,
    installment_number: int,
    amount_cents: int,
    due_date: date,
    recipient: str,
    reminder_settings: dict,
    reminders_sent: Iterable[dict],
    today: date,
) -> List[DueReminder]:
    """All reminders for one installment that should be dispatched today"""
    settings = reminder_settings or {}
    offsets = reminder_offsets_for(
        due_date,
        today,
        settings.get("days_before_due", []),
        settings.get("days_after_due", []),
    )

    reminders = []
    for kind, offset in offsets:
        for method in settings.get("methods", []):
            if already_sent(reminders_sent, today, method):
                continue
            reminders.append(
                DueReminder(
                    installment_id=installment_id,
                    recipient=recipient,
                    method=method,
                    offset_days=offset,
                    message=render_reminder_message(kind, installment_number, amount_cents, abs(offset), due_date),
                )
            )
    return reminders
