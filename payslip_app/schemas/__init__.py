"""
Payslip Generator - Schemas Package

Pydantic schemas for request/response validation.
"""

from payslip_app.schemas.payroll import (
    # Employees
    EmployeeCreate,
    EmployeeUpdate,
    EmployeeResponse,
    EmployeeListResponse,
    # Company settings
    CompanySettingsUpdate,
    CompanySettingsResponse,
    # Payslips
    PayslipCreate,
    PayslipResponse,
    SinglePayslipRequest,
    BulkGenerateRequest,
    # Uploads / dashboard
    UploadParseResponse,
    FileUploadResponse,
    DashboardStats,
)
