"""On-demand triggers for the batch sweeps (the scheduler normally runs them via installment-engine-jobs)"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from installment_engine.api.v1.schemas import (
    AutoPaySweepResponse,
    LateFeeSweepResponse,
    ReminderSweepResponse,
    SweepFailureSchema,
)
from installment_engine.api.dependencies import get_clock, get_payment_gateway, get_reminder_dispatcher
from installment_engine.infrastructure.clients.notifications import ReminderDispatcher
from installment_engine.infrastructure.clients.payment_gateway import PaymentGatewayClient
from installment_engine.infrastructure.database.session import get_db
from installment_engine.services.sweeps import AutomatedPaymentSweeper, LateFeeSweeper, ReminderSweeper
from installment_engine.utils.clock import Clock

router = APIRouter()


@router.post("/sweeps/auto-pay", response_model=AutoPaySweepResponse)
async def run_auto_pay_sweep(
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    clock: Clock = Depends(get_clock),
):
    """Charge pending installments due within the lookahead window on auto-pay plans"""
    result = await AutomatedPaymentSweeper(db, gateway, clock).run()
    return AutoPaySweepResponse(
        processed=result.processed,
        succeeded=result.succeeded,
        failed=result.failed,
        skipped=result.skipped,
        failures=[SweepFailureSchema(installment_id=f.installment_id, reason=f.reason) for f in result.failures],
    )


@router.post("/sweeps/late-fees", response_model=LateFeeSweepResponse)
def run_late_fee_sweep(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Apply late fees to installments past their grace period"""
    result = LateFeeSweeper(db, clock).run()
    return LateFeeSweepResponse(**vars(result))


@router.post("/sweeps/reminders", response_model=ReminderSweepResponse)
async def run_reminder_sweep(
    db: Session = Depends(get_db),
    dispatcher: ReminderDispatcher = Depends(get_reminder_dispatcher),
    clock: Clock = Depends(get_clock),
):
    result = await ReminderSweeper(db, dispatcher, clock).run()
    return ReminderSweepResponse(sent=result.sent, failed=result.failed)
