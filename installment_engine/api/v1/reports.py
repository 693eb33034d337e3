"""Reporting endpoints: tracking dashboard and plan analytics"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from installment_engine.api.v1.schemas import AnalyticsResponse, DashboardResponse, DashboardRowSchema
from installment_engine.api.dependencies import get_clock
from installment_engine.infrastructure.database.session import get_db
from installment_engine.services.reporting import ReportingService
from installment_engine.utils.clock import Clock

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    status: Optional[List[str]] = Query(None, description="Plan statuses to include"),
    student_id: Optional[str] = Query(None),
    overdue_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Plans with aggregated installment counts, newest first"""
    rows, total = ReportingService(db, clock).get_dashboard_rows(
        statuses=status,
        student_id=student_id,
        overdue_only=overdue_only,
        page=page,
        limit=limit,
    )
    return DashboardResponse(
        rows=[DashboardRowSchema(**vars(row)) for row in rows],
        total_count=total,
        page=page,
        limit=limit,
    )


@router.get("/analytics", response_model=AnalyticsResponse)
def get_analytics(
    start: date = Query(..., description="First day of the reporting period"),
    end: date = Query(..., description="Last day of the reporting period (inclusive)"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")

    analytics = ReportingService(db, clock).get_analytics(start, end)
    return AnalyticsResponse(start=start, end=end, **vars(analytics))
