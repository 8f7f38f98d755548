"""
Payslip Generator - Payroll Schemas

Pydantic schemas for employees, company settings and payslips.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from payslip_app.config import PageFormat, settings
from payslip_app.models.payroll import MAX_AMOUNT, MAX_DAY_COUNT


# ===========================================
# EMPLOYEE SCHEMAS
# ===========================================

class EmployeeBase(BaseModel):
    """Base employee schema."""
    employee_no: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    joining_date: str = Field(default="", max_length=50)
    designation: str = Field(default="", max_length=150)
    department: str = Field(default="", max_length=150)
    location: str = Field(default="", max_length=150)
    bank_name: str = Field(default="", max_length=150)
    bank_account_no: str = Field(default="", max_length=50)
    ifsc_code: str = Field(default="", max_length=20)
    pan_number: str = Field(default="", max_length=20)
    pf_number: Optional[str] = Field(None, max_length=50)
    pf_uan: Optional[str] = Field(None, max_length=50)

    @field_validator("employee_no", "name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class EmployeeCreate(EmployeeBase):
    """Create employee request."""
    pass


class EmployeeUpdate(BaseModel):
    """Update employee request. Omitted fields are left unchanged."""
    employee_no: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    joining_date: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    location: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_no: Optional[str] = None
    ifsc_code: Optional[str] = None
    pan_number: Optional[str] = None
    pf_number: Optional[str] = None
    pf_uan: Optional[str] = None


class EmployeeResponse(EmployeeBase):
    """Employee response."""
    id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EmployeeListResponse(BaseModel):
    """Paginated employee list."""
    items: List[EmployeeResponse]
    total: int
    page: int
    per_page: int


# ===========================================
# COMPANY SETTINGS SCHEMAS
# ===========================================

class CompanySettingsUpdate(BaseModel):
    """Create-or-replace company branding."""
    company_name: str = Field(..., min_length=1, max_length=200)
    company_address: str = Field(..., min_length=1)
    company_gst: Optional[str] = Field(None, max_length=50)
    logo_url: Optional[str] = None
    signature_url: Optional[str] = None


class CompanySettingsResponse(CompanySettingsUpdate):
    id: UUID
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===========================================
# PAYSLIP SCHEMAS
# ===========================================

class PayslipCreate(BaseModel):
    """
    A fully-formed payroll record for single payslip generation.

    Totals may be omitted; when given they must agree with the components.
    """
    pay_period: str = Field(..., min_length=1, max_length=50)
    pay_date: str = Field(default="", max_length=50)
    effective_work_days: int = Field(default=31, ge=0, le=MAX_DAY_COUNT)
    lop: int = Field(default=0, ge=0, le=MAX_DAY_COUNT)
    el_availed: int = Field(default=0, ge=0, le=MAX_DAY_COUNT)

    basic_full: Decimal = Decimal("0")
    basic_actual: Decimal = Decimal("0")
    hra_full: Decimal = Decimal("0")
    hra_actual: Decimal = Decimal("0")
    conveyance_allowance_full: Decimal = Decimal("0")
    conveyance_allowance_actual: Decimal = Decimal("0")
    other_allowance_full: Decimal = Decimal("0")
    other_allowance_actual: Decimal = Decimal("0")
    special_allowance_full: Decimal = Decimal("0")
    special_allowance_actual: Decimal = Decimal("0")
    bonus_incentive_full: Decimal = Decimal("0")
    bonus_incentive_actual: Decimal = Decimal("0")

    pf_actual: Decimal = Decimal("0")
    prof_tax_actual: Decimal = Decimal("0")

    total_earnings_full: Optional[Decimal] = None
    total_earnings_actual: Optional[Decimal] = None
    total_deductions_actual: Optional[Decimal] = None
    net_pay: Optional[Decimal] = None
    employer_pf: Optional[Decimal] = None

    @field_validator("pay_period")
    @classmethod
    def strip_period(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("*")
    @classmethod
    def amount_in_range(cls, v: Any) -> Any:
        if isinstance(v, Decimal) and (not v.is_finite() or abs(v) > MAX_AMOUNT):
            raise ValueError(f"must be a finite amount no larger than {MAX_AMOUNT}")
        return v


class PayslipResponse(BaseModel):
    """Stored payslip record."""
    id: UUID
    employee_id: UUID
    payslip_number: str
    pay_period: str
    pay_date: str
    effective_work_days: int
    lop: int
    el_availed: int

    basic_full: Decimal
    basic_actual: Decimal
    hra_full: Decimal
    hra_actual: Decimal
    conveyance_allowance_full: Decimal
    conveyance_allowance_actual: Decimal
    other_allowance_full: Decimal
    other_allowance_actual: Decimal
    special_allowance_full: Decimal
    special_allowance_actual: Decimal
    bonus_incentive_full: Decimal
    bonus_incentive_actual: Decimal
    pf_actual: Decimal
    prof_tax_actual: Decimal

    total_earnings_full: Decimal
    total_earnings_actual: Decimal
    total_deductions_actual: Decimal
    net_pay: Decimal
    employer_pf: Optional[Decimal] = None
    pdf_url: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SinglePayslipRequest(BaseModel):
    """Generate one payslip for a registered employee."""
    employee_id: UUID
    payslip: PayslipCreate
    format: PageFormat = settings.default_page_format


class BulkGenerateRequest(BaseModel):
    """Bulk generation from already-parsed spreadsheet rows."""
    rows: List[Dict[str, Any]]
    format: PageFormat = settings.default_page_format


# ===========================================
# UPLOAD / DASHBOARD SCHEMAS
# ===========================================

class UploadParseResponse(BaseModel):
    """Parsed spreadsheet contents."""
    data: List[Dict[str, Any]]
    headers: List[str]
    row_count: int


class FileUploadResponse(BaseModel):
    url: str


class DashboardStats(BaseModel):
    total_employees: int
    total_payslips: int
    latest_pay_period: Optional[str] = None
    latest_period_payslips: int
    total_net_pay: Decimal
