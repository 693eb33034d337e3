"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional


class LateFeePolicySchema(BaseModel):
    enabled: bool = True
    fee_cents: int = Field(2_500, ge=0)
    grace_period_days: int = Field(7, ge=0)


class ReminderPolicySchema(BaseModel):
    days_before_due: List[int] = [7, 3, 1]
    days_after_due: List[int] = [1, 7, 14]
    methods: List[str] = ["email", "sms"]


class CreatePlanRequest(BaseModel):
    """Request body for POST /v1/plans"""

    invoice_id: str = Field(..., min_length=1, description="Invoice to put on a plan")
    # Range checks happen in the domain so errors stay bilingual
    number_of_installments: int = Field(..., description="Number of installments (>= 1)")
    frequency: str = Field(..., description="weekly | biweekly | monthly")
    start_date: date = Field(..., description="Due date of the first installment")
    terms_accepted: bool = False
    first_payment_cents: Optional[int] = None
    custom_amounts_cents: Optional[List[int]] = None
    late_fee_policy: Optional[LateFeePolicySchema] = None
    reminder_policy: Optional[ReminderPolicySchema] = None
    auto_pay_enabled: bool = False
    auto_pay_method: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


class InstallmentSchema(BaseModel):
    """Single installment in a payment plan"""

    installment_id: str
    installment_number: int
    due_date: date
    amount_cents: int
    status: str
    paid_cents: int = 0
    paid_date: Optional[date] = None
    late_fee_applied: bool = False
    late_fee_cents: int = 0


class PlanResponse(BaseModel):
    """Response for plan endpoints"""

    plan_id: str
    invoice_id: str
    student_id: str
    status: str
    total_cents: int
    number_of_installments: int
    frequency: str
    start_date: date
    auto_pay_enabled: bool
    late_fees_enabled: bool
    grace_period_days: int
    modification_count: int
    installments: List[InstallmentSchema]
    created_at: str


class ScheduleChangeSchema(BaseModel):
    installment_number: int
    amount_cents: int
    due_date: date


class ModifyPlanRequest(BaseModel):
    """Request body for POST /v1/plans/{plan_id}/modifications"""

    new_schedule: List[ScheduleChangeSchema] = Field(..., min_length=1)
    reason_en: str = Field(..., min_length=1)
    reason_ar: str = Field(..., min_length=1)
    modified_by: Optional[str] = None


class ModifyPlanResponse(BaseModel):
    modification_id: str
    installments_updated: int
    paid_installments_skipped: int


class ModificationSchema(BaseModel):
    """Recorded schedule change, as proposed"""

    modification_id: str
    new_schedule: List[ScheduleChangeSchema]
    reason_en: str
    reason_ar: str
    modified_by: Optional[str] = None
    created_at: str


class RecordPaymentRequest(BaseModel):
    """Request body for POST /v1/installments/{installment_id}/payments"""

    amount_cents: int
    payment_method: str = Field(..., min_length=1)
    transaction_id: Optional[str] = None
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    payment_date: Optional[date] = None


class SweepFailureSchema(BaseModel):
    installment_id: str
    reason: str


class AutoPaySweepResponse(BaseModel):
    processed: int
    succeeded: int
    failed: int
    skipped: int
    failures: List[SweepFailureSchema]


class LateFeeSweepResponse(BaseModel):
    processed: int
    late_fees_applied: int
    skipped: int
    failed: int
    defaults_marked: int


class ReminderSweepResponse(BaseModel):
    sent: int
    failed: int


class DashboardRowSchema(BaseModel):
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
    next_due_date: Optional[date] = None
    auto_pay_enabled: bool


class DashboardResponse(BaseModel):
    rows: List[DashboardRowSchema]
    total_count: int
    page: int
    limit: int


class OverdueInstallmentSchema(BaseModel):
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


class AnalyticsResponse(BaseModel):
    start: date
    end: date
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
    most_common_frequency: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    message_ar: str
    message_en: str
    detail: Optional[str] = None
