"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class Frequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class PlanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DEFAULTED = "defaulted"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


@dataclass
class InvoiceSnapshot:
    """Invoice as seen by the engine; owned by billing"""

    invoice_id: str
    student_id: str
    total_cents: int
    balance_cents: int
    status: str
    has_active_plan: bool = False


@dataclass
class ScheduledInstallment:
    """Single payment in a generated schedule"""

    installment_number: int
    due_date: date
    amount_cents: int


@dataclass
class ScheduleChange:
    """Proposed new amount and due date for one installment of an active plan"""

    installment_number: int
    amount_cents: int
    due_date: date


@dataclass
class LateFeePolicy:
    enabled: bool = True
    fee_cents: int = 2_500
    grace_period_days: int = 7


@dataclass
class ReminderPolicy:
    days_before_due: List[int] = field(default_factory=lambda: [7, 3, 1])
    days_after_due: List[int] = field(default_factory=lambda: [1, 7, 14])
    methods: List[str] = field(default_factory=lambda: ["email", "sms"])


@dataclass
class PlanRequest:
    """Everything the caller supplies to put an invoice on a plan"""

    invoice_id: str
    number_of_installments: int
    frequency: str
    start_date: date
    terms_accepted: bool
    first_payment_cents: Optional[int] = None
    custom_amounts_cents: Optional[List[int]] = None
    late_fee_policy: LateFeePolicy = field(default_factory=LateFeePolicy)
    reminder_policy: ReminderPolicy = field(default_factory=ReminderPolicy)
    auto_pay_enabled: bool = False
    auto_pay_method: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


@dataclass
class ChargeResult:
    """Outcome of one payment gateway charge attempt"""

    success: bool
    transaction_id: Optional[str] = None
    amount_cents: int = 0
    failure_reason: Optional[str] = None


@dataclass
class SweepFailure:
    installment_id: str
    reason: str


@dataclass
class AutoPaySweepResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failures: List[SweepFailure] = field(default_factory=list)


@dataclass
class LateFeeSweepResult:
    processed: int = 0
    late_fees_applied: int = 0
    skipped: int = 0
    failed: int = 0
    defaults_marked: int = 0


@dataclass
class ReminderSweepResult:
    sent: int = 0
    failed: int = 0


@dataclass
class DueReminder:
    """A reminder the engine has decided must go out today"""

    installment_id: str
    recipient: str
    method: str
    offset_days: int  # negative = before due date
    message: str


@dataclass
class PlanAnalytics:
    total_plans: int
    active_plans: int
    completed_plans: int
    cancelled_plans: int
    defaulted_plans: int
    total_value_cents: int
    average_plan_value_cents: int
    collected_cents: int
    outstanding_cents: int
    collection_rate: float
    on_time_payment_rate: float
    auto_pay_adoption_rate: float
    overdue_installments: int
    late_fees_cents: int
    most_common_frequency: Optional[str]


@dataclass
class ModificationResult:
    modification_id: str
    installments_updated: int
    paid_installments_skipped: int


@dataclass
class DashboardRow:
    """Plan summary with aggregated installment counts"""

    plan_id: str
    invoice_id: str
    student_id: str
    plan_status: str
    frequency: str
    total_cents: int
    paid_cents: int
    remaining_cents: int
    total_installments: int
    paid_installments: int
    pending_installments: int
    partial_installments: int
    overdue_installments: int
    next_due_date: Optional[date]
    auto_pay_enabled: bool


@dataclass
class OverdueInstallment:
    installment_id: str
    plan_id: str
    student_id: str
    installment_number: int
    amount_cents: int
    outstanding_cents: int
    due_date: date
    days_overdue: int
    status: str
    late_fee_cents: int
