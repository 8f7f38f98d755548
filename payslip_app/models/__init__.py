"""
Payslip Generator - Database Models

SQLAlchemy ORM models.
"""

from payslip_app.models.base import BaseModel, TimestampMixin
from payslip_app.models.company import CompanySettings
from payslip_app.models.payroll import (
    DEDUCTION_COMPONENTS,
    EARNING_COMPONENTS,
    Employee,
    Payslip,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "CompanySettings",
    "Employee",
    "Payslip",
    "EARNING_COMPONENTS",
    "DEDUCTION_COMPONENTS",
]
