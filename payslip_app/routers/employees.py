"""
Payslip Generator - Employees Router

API endpoints for the employee registry.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from payslip_app.database import get_async_session
from payslip_app.schemas.payroll import (
    EmployeeCreate,
    EmployeeListResponse,
    EmployeeResponse,
    EmployeeUpdate,
    PayslipResponse,
)
from payslip_app.services.record_store import RecordStore
from payslip_app.utils.error_handling import DuplicateEntryException, EmployeeNotFoundException


router = APIRouter()


@router.get(
    "",
    response_model=EmployeeListResponse,
    summary="List employees",
    description="List registered employees ordered by employee number.",
)
async def list_employees(
    search: Optional[str] = Query(None, description="Search by name or employee number"),
    department: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_async_session),
):
    """List all employees."""
    store = RecordStore(db)
    employees, total = await store.list_employees(
        search=search,
        department=department,
        page=page,
        per_page=per_page,
    )
    return EmployeeListResponse(
        items=[EmployeeResponse.model_validate(e) for e in employees],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post(
    "",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create employee",
)
async def create_employee(
    request: EmployeeCreate,
    db: AsyncSession = Depends(get_async_session),
):
    """Register a new employee. Employee numbers are unique."""
    store = RecordStore(db)
    if await store.find_employee_by_number(request.employee_no):
        raise DuplicateEntryException("Employee", "employee_no", request.employee_no)

    employee = await store.create_employee(request.model_dump())
    return employee


@router.get(
    "/{employee_id}",
    response_model=EmployeeResponse,
    summary="Get employee",
)
async def get_employee(
    employee_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """Get a single employee."""
    employee = await RecordStore(db).get_employee(employee_id)
    if not employee:
        raise EmployeeNotFoundException(employee_id)
    return employee


@router.put(
    "/{employee_id}",
    response_model=EmployeeResponse,
    summary="Update employee",
)
async def update_employee(
    employee_id: UUID,
    request: EmployeeUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    """Update an employee. Omitted fields keep their current values."""
    employee = await RecordStore(db).update_employee(
        employee_id, request.model_dump(exclude_unset=True)
    )
    if not employee:
        raise EmployeeNotFoundException(employee_id)
    return employee


@router.delete(
    "/{employee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete employee",
    description="Delete an employee. Refused with 409 while payslips reference the employee.",
)
async def delete_employee(
    employee_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    deleted = await RecordStore(db).delete_employee(employee_id)
    if not deleted:
        raise EmployeeNotFoundException(employee_id)


@router.get(
    "/{employee_id}/payslips",
    response_model=List[PayslipResponse],
    summary="Employee payslip history",
)
async def list_employee_payslips(
    employee_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """Payslips generated for one employee, newest first."""
    store = RecordStore(db)
    if not await store.get_employee(employee_id):
        raise EmployeeNotFoundException(employee_id)
    return await store.list_payslips_for_employee(employee_id)
