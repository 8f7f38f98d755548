"""
Payslip Generator - Employee Reconciler

Matches a payroll row to a registered employee by employee number,
registering a new employee from the row when none exists.
"""

import logging
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from payslip_app.models.payroll import Employee
from payslip_app.services.record_store import RecordStore
from payslip_app.utils.error_handling import AppException, ReconciliationException

logger = logging.getLogger(__name__)

_OPTIONAL_FIELDS = ("pf_number", "pf_uan")


class EmployeeReconciler:
    """
    Find-or-create employees against the record store.

    Calls for the same employee number must not run concurrently: the
    store is checked before each creation, so two overlapping calls could
    both miss and both try to create.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def reconcile(self, employee_no: str, fields: Dict[str, str]) -> Employee:
        """
        Return the employee with `employee_no`, creating it from `fields` if absent.

        Raises:
            ReconciliationException: the store failed to look up or create the employee
        """
        try:
            employee = await self.store.find_employee_by_number(employee_no)
            if employee is not None:
                return employee

            employee = await self.store.create_employee(self._employee_data(employee_no, fields))
        except AppException as e:
            raise ReconciliationException(employee_no, e.message, original_error=e)
        except SQLAlchemyError as e:
            raise ReconciliationException(
                employee_no, f"Could not register employee {employee_no}: {e}", original_error=e
            )

        logger.info(f"Registered new employee {employee_no} from payroll row")
        return employee

    @staticmethod
    def _employee_data(employee_no: str, fields: Dict[str, str]) -> Dict[str, Optional[str]]:
        data: Dict[str, Optional[str]] = {
            key: (value or "") for key, value in fields.items()
        }
        data["employee_no"] = employee_no
        for key in _OPTIONAL_FIELDS:
            data[key] = data.get(key) or ""
        return data
