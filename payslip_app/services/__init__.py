"""
Payslip Generator - Services Package

Business logic services.
"""

from payslip_app.services.record_store import RecordStore
from payslip_app.services.employee_reconciler import EmployeeReconciler
from payslip_app.services.payslip_renderer import PayslipRenderer
from payslip_app.services.bulk_payslip_service import BulkPayslipService, BulkGenerationResult
from payslip_app.services.payslip_service import PayslipService

__all__ = [
    "RecordStore",
    "EmployeeReconciler",
    "PayslipRenderer",
    "BulkPayslipService",
    "BulkGenerationResult",
    "PayslipService",
]
