"""Installment endpoints: manual payment recording and the overdue list"""

from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from installment_engine.api.v1.schemas import InstallmentSchema, OverdueInstallmentSchema, RecordPaymentRequest
from installment_engine.api.dependencies import get_clock
from installment_engine.infrastructure.database.session import get_db
from installment_engine.services.plan_service import PlanService
from installment_engine.services.reporting import ReportingService
from installment_engine.utils.clock import Clock

router = APIRouter()


@router.post("/installments/{installment_id}/payments", response_model=InstallmentSchema)
def record_payment(
    installment_id: str,
    request_body: RecordPaymentRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Record a payment collected outside the automated sweep (cash, bank transfer, ...)"""
    inst = PlanService(db, clock).record_manual_payment(
        installment_id,
        amount_cents=request_body.amount_cents,
        payment_method=request_body.payment_method,
        transaction_id=request_body.transaction_id,
        receipt_number=request_body.receipt_number,
        notes=request_body.notes,
        payment_date=request_body.payment_date,
    )
    return InstallmentSchema(
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


@router.get("/installments/overdue", response_model=List[OverdueInstallmentSchema])
def get_overdue_installments(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Installments flagged overdue or unpaid past their due date, oldest first"""
    overdue = ReportingService(db, clock).get_overdue_installments()
    return [OverdueInstallmentSchema(**vars(item)) for item in overdue]
