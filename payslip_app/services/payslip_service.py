"""
Payslip Generator - Single Payslip Service

Generates one payslip for a registered employee from a fully-formed
payroll record. Totals the caller omits are derived from the components;
totals the caller supplies must agree with them.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from payslip_app.models.payroll import DEDUCTION_COMPONENTS, EARNING_COMPONENTS, Payslip
from payslip_app.schemas.payroll import PayslipCreate
from payslip_app.services.bulk_payslip_service import CompanySnapshot, archive_entry_name
from payslip_app.services.payroll_normalizer import compute_totals, parse_amount
from payslip_app.services.payslip_renderer import PayslipRenderer
from payslip_app.services.record_store import RecordStore
from payslip_app.utils.error_handling import EmployeeNotFoundException, ErrorCode, ValidationException

logger = logging.getLogger(__name__)

_TOTAL_FIELDS = (
    "total_earnings_full",
    "total_earnings_actual",
    "total_deductions_actual",
    "net_pay",
)


@dataclass
class GeneratedPayslip:
    payslip: Payslip
    pdf_bytes: bytes
    filename: str


def payslip_data_from_request(employee_id: uuid.UUID, employee_no: str, request: PayslipCreate) -> Dict[str, Any]:
    """
    Column values for a requested payslip, with totals filled in.

    Raises:
        ValidationException: a supplied total disagrees with the components
    """
    amounts: Dict[str, Decimal] = {}
    for component in EARNING_COMPONENTS:
        for suffix in ("full", "actual"):
            column = f"{component}_{suffix}"
            amounts[column] = parse_amount(getattr(request, column))
    for component in DEDUCTION_COMPONENTS:
        column = f"{component}_actual"
        amounts[column] = parse_amount(getattr(request, column))

    totals = compute_totals(amounts)
    mismatched = {}
    for name in _TOTAL_FIELDS:
        supplied = getattr(request, name)
        expected = getattr(totals, name)
        if supplied is not None and parse_amount(supplied) != expected:
            mismatched[name] = {"supplied": str(supplied), "expected": str(expected)}
    if mismatched:
        raise ValidationException(
            "Payslip totals do not match the earning and deduction components",
            field=next(iter(mismatched)),
            details=mismatched,
            code=ErrorCode.TOTALS_MISMATCH,
        )

    data: Dict[str, Any] = {
        "employee_id": employee_id,
        "payslip_number": f"PSL-{employee_no}-{request.pay_period}",
        "pay_period": request.pay_period,
        "pay_date": request.pay_date,
        "effective_work_days": request.effective_work_days,
        "lop": request.lop,
        "el_availed": request.el_availed,
        "employer_pf": parse_amount(request.employer_pf) if request.employer_pf is not None else None,
        "total_earnings_full": totals.total_earnings_full,
        "total_earnings_actual": totals.total_earnings_actual,
        "total_deductions_actual": totals.total_deductions_actual,
        "net_pay": totals.net_pay,
    }
    data.update(amounts)
    return data


class PayslipService:
    """Single payslip generation."""

    def __init__(self, db: AsyncSession, renderer: Optional[PayslipRenderer] = None):
        self.store = RecordStore(db)
        self.renderer = renderer or PayslipRenderer()

    async def generate(
        self,
        employee_id: uuid.UUID,
        request: PayslipCreate,
        page_format: str = "A4",
    ) -> GeneratedPayslip:
        """
        Render and persist one payslip.

        Raises:
            EmployeeNotFoundException: no employee with that id
            ValidationException: totals disagree with components
            RenderException: the document could not be produced
        """
        employee = await self.store.get_employee(employee_id)
        if employee is None:
            raise EmployeeNotFoundException(employee_id)

        data = payslip_data_from_request(employee.id, employee.employee_no, request)
        company = CompanySnapshot.from_settings(await self.store.get_company_settings())

        pdf_bytes = await self.renderer.render(employee, Payslip(**data), company, page_format)
        payslip = await self.store.create_payslip(data)

        logger.info(f"Generated payslip {payslip.payslip_number}")
        return GeneratedPayslip(
            payslip=payslip,
            pdf_bytes=pdf_bytes,
            filename=archive_entry_name(employee.employee_no, request.pay_period),
        )
