"""
Payslip Generator - Record Store

Durable storage for employees, company settings and payslip history.

Lookups return None when nothing matches. Write failures roll the session
back and surface as DatabaseException (or DuplicateEntryException for a
repeated employee number) so a caller can keep using the same session.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payslip_app.models.company import CompanySettings
from payslip_app.models.payroll import Employee, Payslip
from payslip_app.utils.error_handling import (
    ConflictException,
    DatabaseException,
    DuplicateEntryException,
    ErrorCode,
)

logger = logging.getLogger(__name__)


class RecordStore:
    """Keyed persistence for the payslip domain."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise DatabaseException(f"Failed to {action}", original_error=e)

    # ===========================================
    # EMPLOYEES
    # ===========================================

    async def find_employee_by_number(self, employee_no: str) -> Optional[Employee]:
        """Get employee by business key."""
        result = await self.db.execute(
            select(Employee).where(Employee.employee_no == employee_no)
        )
        return result.scalar_one_or_none()

    async def get_employee(self, employee_id: uuid.UUID) -> Optional[Employee]:
        """Get employee by ID."""
        return await self.db.get(Employee, employee_id)

    async def list_employees(
        self,
        search: Optional[str] = None,
        department: Optional[str] = None,
        page: int = 1,
        per_page: int = 50,
    ) -> Tuple[List[Employee], int]:
        """List employees with filters and pagination."""
        query = select(Employee)

        if department:
            query = query.where(Employee.department == department)

        if search:
            search_term = f"%{search}%"
            query = query.where(
                or_(
                    Employee.name.ilike(search_term),
                    Employee.employee_no.ilike(search_term),
                )
            )

        count_result = await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        query = query.order_by(Employee.employee_no)
        query = query.offset((page - 1) * per_page).limit(per_page)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def create_employee(self, data: Dict[str, Any]) -> Employee:
        """Create a new employee."""
        employee = Employee(**data)
        self.db.add(employee)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateEntryException("Employee", "employee_no", str(data.get("employee_no")))
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseException("Failed to create employee", original_error=e)
        await self.db.refresh(employee)

        logger.info(f"Created employee {employee.employee_no}")
        return employee

    async def update_employee(
        self,
        employee_id: uuid.UUID,
        data: Dict[str, Any],
    ) -> Optional[Employee]:
        """Update employee details."""
        employee = await self.get_employee(employee_id)
        if not employee:
            return None

        for key, value in data.items():
            if value is not None and hasattr(employee, key):
                setattr(employee, key, value)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateEntryException("Employee", "employee_no", str(data.get("employee_no")))
        await self.db.refresh(employee)
        return employee

    async def count_payslips_for_employee(self, employee_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Payslip)
            .where(Payslip.employee_id == employee_id)
        )
        return result.scalar() or 0

    async def delete_employee(self, employee_id: uuid.UUID) -> bool:
        """
        Delete an employee.

        Refused while payslips still reference the employee.
        """
        employee = await self.get_employee(employee_id)
        if not employee:
            return False

        payslip_count = await self.count_payslips_for_employee(employee_id)
        if payslip_count:
            raise ConflictException(
                f"Employee {employee.employee_no} has {payslip_count} payslip(s) and cannot be deleted",
                resource_type="Employee",
                code=ErrorCode.CANNOT_DELETE,
                details={"payslip_count": payslip_count},
            )

        await self.db.delete(employee)
        await self._commit("delete employee")
        return True

    # ===========================================
    # COMPANY SETTINGS
    # ===========================================

    async def get_company_settings(self) -> Optional[CompanySettings]:
        """Get the singleton company settings row."""
        result = await self.db.execute(
            select(CompanySettings).order_by(CompanySettings.created_at).limit(1)
        )
        return result.scalar_one_or_none()

    async def update_company_settings(self, data: Dict[str, Any]) -> CompanySettings:
        """Create the settings row if absent, otherwise overwrite it."""
        company = await self.get_company_settings()
        if company is None:
            company = CompanySettings(**data)
            self.db.add(company)
        else:
            for key, value in data.items():
                setattr(company, key, value)

        await self._commit("save company settings")
        await self.db.refresh(company)
        return company

    # ===========================================
    # PAYSLIPS
    # ===========================================

    async def create_payslip(self, data: Dict[str, Any]) -> Payslip:
        """Persist a generated payslip record."""
        payslip = Payslip(**data)
        self.db.add(payslip)
        await self._commit("save payslip")
        await self.db.refresh(payslip)
        return payslip

    async def get_payslip(self, payslip_id: uuid.UUID) -> Optional[Payslip]:
        return await self.db.get(Payslip, payslip_id)

    async def list_payslips(self, pay_period: Optional[str] = None) -> List[Payslip]:
        """List payslips, newest first."""
        query = select(Payslip)
        if pay_period:
            query = query.where(Payslip.pay_period == pay_period)
        result = await self.db.execute(query.order_by(Payslip.created_at.desc()))
        return list(result.scalars().all())

    async def list_payslips_for_employee(self, employee_id: uuid.UUID) -> List[Payslip]:
        result = await self.db.execute(
            select(Payslip)
            .where(Payslip.employee_id == employee_id)
            .order_by(Payslip.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_dashboard_stats(self) -> Dict[str, Any]:
        """Headline counts for the dashboard."""
        employee_count = (await self.db.execute(
            select(func.count()).select_from(Employee)
        )).scalar() or 0
        payslip_count = (await self.db.execute(
            select(func.count()).select_from(Payslip)
        )).scalar() or 0
        total_net_pay = (await self.db.execute(
            select(func.coalesce(func.sum(Payslip.net_pay), 0))
        )).scalar() or 0

        latest = (await self.db.execute(
            select(Payslip.pay_period).order_by(Payslip.created_at.desc()).limit(1)
        )).scalar_one_or_none()
        latest_count = 0
        if latest:
            latest_count = (await self.db.execute(
                select(func.count()).select_from(Payslip).where(Payslip.pay_period == latest)
            )).scalar() or 0

        return {
            "total_employees": employee_count,
            "total_payslips": payslip_count,
            "latest_pay_period": latest,
            "latest_period_payslips": latest_count,
            "total_net_pay": total_net_pay,
        }
