"""
Payslip Generator - Payroll Models

Employees and the payslip history generated for them.

Earning components carry two amounts:
- Full: the entitled/contractual amount for the period
- Actual: the amount paid this period (reduced by LOP/leave)

Deductions (PF, Professional Tax) carry the actual amount only.
Employer PF is informational and is not part of net pay.
"""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payslip_app.models.base import BaseModel


# Earning components, in payslip display order
EARNING_COMPONENTS = (
    "basic",
    "hra",
    "conveyance_allowance",
    "other_allowance",
    "special_allowance",
    "bonus_incentive",
)

DEDUCTION_COMPONENTS = (
    "pf",
    "prof_tax",
)


# Largest magnitude a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")

# Upper bound for day counts (work days, LOP, EL availed)
MAX_DAY_COUNT = 9999


def _money(nullable: bool = False):
    return mapped_column(Numeric(12, 2), nullable=nullable, default=Decimal("0"))


# ===========================================
# EMPLOYEE MODEL
# ===========================================

class Employee(BaseModel):
    """
    Employee registry entry.

    `employee_no` is the business key used to match spreadsheet rows.
    """

    __tablename__ = "employees"

    employee_no: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    joining_date: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    designation: Mapped[str] = mapped_column(String(150), nullable=False, default="")
    department: Mapped[str] = mapped_column(String(150), nullable=False, default="")
    location: Mapped[str] = mapped_column(String(150), nullable=False, default="")

    # Bank & statutory identifiers
    bank_name: Mapped[str] = mapped_column(String(150), nullable=False, default="")
    bank_account_no: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    ifsc_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    pan_number: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    pf_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pf_uan: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    payslips: Mapped[List["Payslip"]] = relationship(
        "Payslip",
        back_populates="employee",
        lazy="noload",
    )


# ===========================================
# PAYSLIP MODEL
# ===========================================

class Payslip(BaseModel):
    """
    One generated payslip (employee + pay period).

    Invariant: net_pay == total_earnings_actual - total_deductions_actual.
    """

    __tablename__ = "payslips"

    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id"),
        nullable=False,
        index=True,
    )

    payslip_number: Mapped[str] = mapped_column(String(150), nullable=False)
    pay_period: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    pay_date: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    effective_work_days: Mapped[int] = mapped_column(Integer, nullable=False, default=31)
    lop: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    el_availed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Earnings
    basic_full: Mapped[Decimal] = _money()
    basic_actual: Mapped[Decimal] = _money()
    hra_full: Mapped[Decimal] = _money()
    hra_actual: Mapped[Decimal] = _money()
    conveyance_allowance_full: Mapped[Decimal] = _money()
    conveyance_allowance_actual: Mapped[Decimal] = _money()
    other_allowance_full: Mapped[Decimal] = _money()
    other_allowance_actual: Mapped[Decimal] = _money()
    special_allowance_full: Mapped[Decimal] = _money()
    special_allowance_actual: Mapped[Decimal] = _money()
    bonus_incentive_full: Mapped[Decimal] = _money()
    bonus_incentive_actual: Mapped[Decimal] = _money()

    # Deductions
    pf_actual: Mapped[Decimal] = _money()
    prof_tax_actual: Mapped[Decimal] = _money()

    # Totals
    total_earnings_full: Mapped[Decimal] = _money()
    total_earnings_actual: Mapped[Decimal] = _money()
    total_deductions_actual: Mapped[Decimal] = _money()
    net_pay: Mapped[Decimal] = _money()
    employer_pf: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    pdf_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    employee: Mapped["Employee"] = relationship(
        "Employee",
        back_populates="payslips",
        lazy="noload",
    )
