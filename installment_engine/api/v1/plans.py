"""Payment plan endpoints: create, fetch, modify, modification history, cancel"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from installment_engine.api.v1.schemas import (
    CreatePlanRequest,
    InstallmentSchema,
    ModificationSchema,
    ModifyPlanRequest,
    ModifyPlanResponse,
    PlanResponse,
)
from installment_engine.api.dependencies import get_clock, get_request_id
from installment_engine.config import settings
from installment_engine.domain.models import LateFeePolicy, PlanRequest, ReminderPolicy, ScheduleChange
from installment_engine.infrastructure.database.models import PaymentPlan
from installment_engine.infrastructure.database.repositories import ModificationRepository, PlanRepository
from installment_engine.infrastructure.database.session import get_db
from installment_engine.services.plan_service import PlanService
from installment_engine.utils.clock import Clock

router = APIRouter()


def to_plan_response(plan: PaymentPlan) -> PlanResponse:
    return PlanResponse(
        plan_id=str(plan.id),
        invoice_id=str(plan.invoice_id),
        student_id=plan.student_id,
        status=plan.status,
        total_cents=plan.total_cents,
        number_of_installments=plan.number_of_installments,
        frequency=plan.frequency,
        start_date=plan.start_date,
        auto_pay_enabled=plan.auto_pay_enabled,
        late_fees_enabled=plan.late_fees_enabled,
        grace_period_days=plan.grace_period_days,
        modification_count=plan.modification_count or 0,
        installments=[
            InstallmentSchema(
                installment_id=str(inst.id),
                installment_number=inst.installment_number,
                due_date=inst.due_date,
                amount_cents=inst.amount_cents,
                status=inst.status,
                paid_cents=inst.paid_cents or 0,
                paid_date=inst.paid_date,
                late_fee_applied=inst.late_fee_applied,
                late_fee_cents=inst.late_fee_cents or 0,
            )
            for inst in plan.installments
        ],
        created_at=plan.created_at.isoformat(),
    )


@router.post("/plans", response_model=PlanResponse, status_code=201)
def create_plan(
    request_body: CreatePlanRequest,
    request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Put an invoice's outstanding balance on an installment plan.

    Validation errors return 422, eligibility conflicts 409, and a failed
    installment write 502 after the plan row has been removed again.
    """
    late_fee = request_body.late_fee_policy
    reminders = request_body.reminder_policy
    plan_request = PlanRequest(
        invoice_id=request_body.invoice_id,
        number_of_installments=request_body.number_of_installments,
        frequency=request_body.frequency,
        start_date=request_body.start_date,
        terms_accepted=request_body.terms_accepted,
        first_payment_cents=request_body.first_payment_cents,
        custom_amounts_cents=request_body.custom_amounts_cents,
        late_fee_policy=(
            LateFeePolicy(**late_fee.model_dump())
            if late_fee
            else LateFeePolicy(
                fee_cents=settings.default_late_fee_cents,
                grace_period_days=settings.default_grace_period_days,
            )
        ),
        reminder_policy=(
            ReminderPolicy(**reminders.model_dump())
            if reminders
            else ReminderPolicy(
                days_before_due=settings.default_reminder_days_before,
                days_after_due=settings.default_reminder_days_after,
                methods=settings.default_reminder_methods,
            )
        ),
        auto_pay_enabled=request_body.auto_pay_enabled,
        auto_pay_method=request_body.auto_pay_method,
        notes=request_body.notes,
        created_by=request_body.created_by,
    )

    plan = PlanService(db, clock).create_plan(plan_request, request_id=get_request_id(request))
    return to_plan_response(plan)


@router.get("/plans/{plan_id}", response_model=PlanResponse)
def get_plan(plan_id: str, db: Session = Depends(get_db)):
    """Retrieve a payment plan with its installment schedule"""
    plan = PlanRepository(db).get_plan_by_id(plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return to_plan_response(plan)


@router.post("/plans/{plan_id}/modifications", response_model=ModifyPlanResponse)
def modify_plan(
    plan_id: str,
    request_body: ModifyPlanRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Re-schedule unpaid installments of an active plan; paid ones are left as they are"""
    changes = [
        ScheduleChange(
            installment_number=item.installment_number,
            amount_cents=item.amount_cents,
            due_date=item.due_date,
        )
        for item in request_body.new_schedule
    ]
    result = PlanService(db, clock).modify_plan(
        plan_id,
        changes,
        reason_en=request_body.reason_en,
        reason_ar=request_body.reason_ar,
        modified_by=request_body.modified_by,
    )
    return ModifyPlanResponse(
        modification_id=result.modification_id,
        installments_updated=result.installments_updated,
        paid_installments_skipped=result.paid_installments_skipped,
    )


@router.get("/plans/{plan_id}/modifications", response_model=List[ModificationSchema])
def list_modifications(plan_id: str, db: Session = Depends(get_db)):
    """Modification history of a plan, oldest first"""
    if not PlanRepository(db).get_plan_by_id(plan_id):
        raise HTTPException(status_code=404, detail="Plan not found")
    return [
        ModificationSchema(
            modification_id=str(m.id),
            new_schedule=m.new_schedule,
            reason_en=m.reason_en,
            reason_ar=m.reason_ar,
            modified_by=m.modified_by,
            created_at=m.created_at.isoformat(),
        )
        for m in ModificationRepository(db).get_modifications_for_plan(plan_id)
    ]


@router.post("/plans/{plan_id}/cancel", response_model=PlanResponse)
def cancel_plan(plan_id: str, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    plan = PlanService(db, clock).cancel_plan(plan_id)
    return to_plan_response(plan)
