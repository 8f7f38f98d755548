"""
Payslip Generator - Bulk Generation Tests

Employee reconciliation and the bulk pipeline against an in-memory database.
"""

import io
import zipfile
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from payslip_app.models import CompanySettings, Employee, Payslip
from payslip_app.services.bulk_payslip_service import BatchState, BulkPayslipService, RowStage
from payslip_app.services.employee_reconciler import EmployeeReconciler
from payslip_app.services.record_store import RecordStore
from payslip_app.utils.error_handling import (
    BatchTooLargeException,
    DatabaseException,
    EmptyBatchException,
    ReconciliationException,
    RenderException,
    RenderTimeoutException,
)


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


def _archive_names(archive_bytes: bytes):
    with zipfile.ZipFile(io.BytesIO(archive_bytes)) as archive:
        return archive.namelist()


class TestEmployeeReconciler:
    """Find-or-create by employee number."""

    @pytest.mark.asyncio
    async def test_creates_missing_employee(self, db_session):
        reconciler = EmployeeReconciler(RecordStore(db_session))

        employee = await reconciler.reconcile("EMP500", {"name": "New Hire", "department": "Ops"})

        assert employee.employee_no == "EMP500"
        assert employee.department == "Ops"
        assert employee.designation == ""
        assert employee.pf_number == ""
        assert await _count(db_session, Employee) == 1

    @pytest.mark.asyncio
    async def test_second_call_returns_first_record(self, db_session):
        reconciler = EmployeeReconciler(RecordStore(db_session))

        first = await reconciler.reconcile("EMP501", {"name": "First Name"})
        second = await reconciler.reconcile("EMP501", {"name": "Other Name"})

        assert second.id == first.id
        assert second.name == "First Name"
        assert await _count(db_session, Employee) == 1

    @pytest.mark.asyncio
    async def test_existing_employee_not_modified(self, db_session, test_employee):
        reconciler = EmployeeReconciler(RecordStore(db_session))

        employee = await reconciler.reconcile("EMP100", {"name": "Changed", "bank_name": "Other"})

        assert employee.id == test_employee.id
        assert employee.bank_name == "Axis Bank"

    @pytest.mark.asyncio
    async def test_store_failure_is_reconciliation_error(self, db_session):
        store = RecordStore(db_session)
        reconciler = EmployeeReconciler(store)

        with patch.object(
            store, "find_employee_by_number",
            AsyncMock(side_effect=OperationalError("select", {}, Exception("db down"))),
        ):
            with pytest.raises(ReconciliationException):
                await reconciler.reconcile("EMP502", {"name": "X"})


class TestBulkGeneration:
    """The batch pipeline."""

    @pytest.mark.asyncio
    async def test_two_row_scenario(self, db_session, html_renderer, emp001_row):
        """One valid EMP001 row plus the same employee without a name."""
        second = dict(emp001_row)
        del second["name"]
        service = BulkPayslipService(db_session, renderer=html_renderer)

        result = await service.generate([emp001_row, second])

        assert result.success_count == 1
        assert result.error_count == 1
        assert result.errors[0].row == 2
        assert result.errors[0].employee_no == "EMP001"
        assert result.errors[0].stage == RowStage.VALIDATION
        assert _archive_names(result.archive_bytes) == ["payslip-EMP001-Jan 2025.pdf"]
        assert result.state == BatchState.COMPLETED

        payslips = await RecordStore(db_session).list_payslips()
        assert len(payslips) == 1
        assert payslips[0].net_pay == Decimal("49800.00")
        assert payslips[0].payslip_number == "PSL-EMP001-Jan 2025"

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, db_session, html_renderer):
        with pytest.raises(EmptyBatchException):
            await BulkPayslipService(db_session, renderer=html_renderer).generate([])

    @pytest.mark.asyncio
    async def test_oversized_batch_rejected(self, db_session, html_renderer, emp001_row):
        service = BulkPayslipService(db_session, renderer=html_renderer, max_batch_rows=2)

        with pytest.raises(BatchTooLargeException):
            await service.generate([emp001_row] * 3)

        assert await _count(db_session, Payslip) == 0

    @pytest.mark.asyncio
    async def test_totality_with_invalid_rows(self, db_session, html_renderer):
        rows = []
        for i in range(6):
            row = {"employeeNo": f"E{i}", "name": f"Person {i}", "payPeriod": "Jan 2025", "basicActual": 100 * i}
            if i % 3 == 0:
                row["payPeriod"] = ""
            rows.append(row)

        result = await BulkPayslipService(db_session, renderer=html_renderer).generate(rows)

        assert result.success_count == 4
        assert result.error_count == 2
        assert result.success_count + result.error_count == len(rows)
        assert [e.row for e in result.errors] == [1, 4]
        assert len(_archive_names(result.archive_bytes)) == result.success_count

    @pytest.mark.asyncio
    async def test_oversized_amount_does_not_abort_batch(self, db_session, html_renderer, emp001_row):
        huge = dict(emp001_row, employeeNo="EMP009", bonusIncentiveFull="1E+40", basicActual="1e30")

        result = await BulkPayslipService(db_session, renderer=html_renderer).generate([emp001_row, huge])

        assert result.success_count == 2
        assert result.error_count == 0
        assert sorted(_archive_names(result.archive_bytes)) == [
            "payslip-EMP001-Jan 2025.pdf",
            "payslip-EMP009-Jan 2025.pdf",
        ]
        stored = {p.payslip_number: p for p in await RecordStore(db_session).list_payslips()}
        assert stored["PSL-EMP009-Jan 2025"].bonus_incentive_full == Decimal("0")
        assert stored["PSL-EMP009-Jan 2025"].net_pay == Decimal("9800.00")

    @pytest.mark.asyncio
    async def test_creates_each_new_employee_once(self, db_session, html_renderer, emp001_row):
        feb = dict(emp001_row, payPeriod="Feb 2025")

        result = await BulkPayslipService(db_session, renderer=html_renderer).generate([emp001_row, feb])

        assert result.success_count == 2
        assert await _count(db_session, Employee) == 1
        assert sorted(_archive_names(result.archive_bytes)) == [
            "payslip-EMP001-Feb 2025.pdf",
            "payslip-EMP001-Jan 2025.pdf",
        ]

    @pytest.mark.asyncio
    async def test_uses_company_branding(self, db_session, html_renderer, emp001_row):
        db_session.add(CompanySettings(company_name="Acme Payroll", company_address="Bengaluru"))
        await db_session.commit()
        renderer = html_renderer

        await BulkPayslipService(db_session, renderer=renderer).generate([emp001_row])

        assert "Acme Payroll" in renderer.rendered[0]
        assert "Forty Nine Thousand Eight Hundred only" in renderer.rendered[0]

    @pytest.mark.asyncio
    async def test_render_failure_recorded(self, db_session, html_renderer, emp001_row):
        renderer = html_renderer
        second = dict(emp001_row, employeeNo="EMP002")

        real_render = renderer.render

        async def flaky_render(employee, payslip, company=None, page_format="A4"):
            if employee.employee_no == "EMP001":
                raise RenderException("layout engine crashed")
            return await real_render(employee, payslip, company, page_format)

        renderer.render = flaky_render

        result = await BulkPayslipService(db_session, renderer=renderer).generate([emp001_row, second])

        assert result.success_count == 1
        assert result.errors[0].stage == RowStage.RENDER
        assert result.errors[0].error == "layout engine crashed"
        assert _archive_names(result.archive_bytes) == ["payslip-EMP002-Jan 2025.pdf"]
        assert await _count(db_session, Payslip) == 1

    @pytest.mark.asyncio
    async def test_render_timeout_recorded(self, db_session, html_renderer, emp001_row):
        renderer = html_renderer
        renderer.render = AsyncMock(side_effect=RenderTimeoutException(60))

        result = await BulkPayslipService(db_session, renderer=renderer).generate([emp001_row])

        assert result.success_count == 0
        assert result.errors[0].stage == RowStage.TIMEOUT
        assert _archive_names(result.archive_bytes) == []

    @pytest.mark.asyncio
    async def test_persistence_failure_adds_no_document(self, db_session, html_renderer, emp001_row):
        second = dict(emp001_row, employeeNo="EMP002")
        service = BulkPayslipService(db_session, renderer=html_renderer)
        real_create = service.store.create_payslip

        async def failing_create(data):
            if data["payslip_number"].startswith("PSL-EMP001"):
                raise DatabaseException("Failed to save payslip")
            return await real_create(data)

        service.store.create_payslip = failing_create

        result = await service.generate([emp001_row, second])

        assert result.success_count == 1
        assert result.errors[0].stage == RowStage.PERSISTENCE
        assert _archive_names(result.archive_bytes) == ["payslip-EMP002-Jan 2025.pdf"]

    @pytest.mark.asyncio
    async def test_reconciliation_failure_recorded(self, db_session, html_renderer, emp001_row):
        service = BulkPayslipService(db_session, renderer=html_renderer)
        service.reconciler.reconcile = AsyncMock(
            side_effect=ReconciliationException("EMP001", "Employee with employee_no 'EMP001' already exists")
        )

        result = await service.generate([emp001_row])

        assert result.success_count == 0
        assert result.errors[0].stage == RowStage.RECONCILIATION
        assert result.errors[0].row == 1

    @pytest.mark.asyncio
    async def test_batch_deadline_marks_remaining_rows(self, db_session, html_renderer, emp001_row):
        rows = [dict(emp001_row, employeeNo=f"EMP{i:03d}") for i in range(3)]
        service = BulkPayslipService(db_session, renderer=html_renderer, batch_timeout_seconds=0)

        result = await service.generate(rows)

        assert result.success_count == 0
        assert [e.stage for e in result.errors] == [RowStage.TIMEOUT] * 3
        assert await _count(db_session, Payslip) == 0

    @pytest.mark.asyncio
    async def test_errors_as_dicts(self, db_session, html_renderer):
        result = await BulkPayslipService(db_session, renderer=html_renderer).generate([{"name": "Nobody"}])

        assert result.errors_as_dicts() == [{
            "row": 1,
            "employee_no": "",
            "stage": "validation",
            "error": "Missing required field(s): employeeNo, payPeriod",
        }]
        assert result.archive_filename.startswith("payslips-bulk-")
        assert result.archive_filename.endswith(".zip")
