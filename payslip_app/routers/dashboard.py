"""
Payslip Generator - Dashboard API Router

Headline numbers for the landing page.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from payslip_app.database import get_async_session
from payslip_app.schemas.payroll import DashboardStats
from payslip_app.services.record_store import RecordStore


router = APIRouter()


@router.get(
    "/stats",
    response_model=DashboardStats,
    summary="Dashboard statistics",
    description="Employee and payslip counts, the latest pay period and total net pay paid.",
)
async def get_dashboard_stats(db: AsyncSession = Depends(get_async_session)):
    return await RecordStore(db).get_dashboard_stats()
