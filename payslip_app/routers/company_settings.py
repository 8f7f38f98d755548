"""
Payslip Generator - Company Settings Router

Company branding printed on every payslip.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from payslip_app.database import get_async_session
from payslip_app.schemas.payroll import CompanySettingsResponse, CompanySettingsUpdate
from payslip_app.services.record_store import RecordStore


router = APIRouter()


@router.get(
    "",
    response_model=Optional[CompanySettingsResponse],
    summary="Get company settings",
    description="Returns null until settings have been saved once.",
)
async def get_company_settings(db: AsyncSession = Depends(get_async_session)):
    return await RecordStore(db).get_company_settings()


@router.put(
    "",
    response_model=CompanySettingsResponse,
    summary="Save company settings",
)
async def update_company_settings(
    request: CompanySettingsUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    """Create the company settings, or replace them if they exist."""
    return await RecordStore(db).update_company_settings(request.model_dump())
