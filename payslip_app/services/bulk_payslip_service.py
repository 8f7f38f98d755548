"""
Payslip Generator - Bulk Payslip Generation

Turns a batch of payroll rows into one ZIP archive of payslip PDFs.

Rows are processed strictly in input order, one at a time:
validate -> reconcile employee -> normalize -> render -> persist -> archive

A failing row is recorded with the stage it failed at and the batch moves
on. Only an empty (or oversized) batch is rejected as a whole. A payslip is
persisted before its PDF enters the archive, so a row whose record cannot be
saved contributes no document.
"""

import asyncio
import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from payslip_app.config import settings
from payslip_app.models.payroll import Payslip
from payslip_app.services.employee_reconciler import EmployeeReconciler
from payslip_app.services.payroll_normalizer import (
    RawRow,
    RowValidationError,
    extract_employee_fields,
    normalize_payroll_row,
)
from payslip_app.services.payslip_renderer import PayslipRenderer
from payslip_app.services.record_store import RecordStore
from payslip_app.utils.error_handling import (
    AppException,
    BatchTooLargeException,
    EmptyBatchException,
    ReconciliationException,
    RenderException,
    RenderTimeoutException,
)

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    ACCEPTED = "accepted"
    PROCESSING = "processing"
    COMPLETED = "completed"


class RowStage(str, Enum):
    """Where a row failed."""
    VALIDATION = "validation"
    RECONCILIATION = "reconciliation"
    RENDER = "render"
    PERSISTENCE = "persistence"
    TIMEOUT = "timeout"


def archive_entry_name(employee_no: str, pay_period: str) -> str:
    return f"payslip-{employee_no}-{pay_period}.pdf"


@dataclass(frozen=True)
class RowError:
    row: int
    employee_no: str
    stage: RowStage
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row,
            "employee_no": self.employee_no,
            "stage": self.stage.value,
            "error": self.error,
        }


@dataclass(frozen=True)
class CompanySnapshot:
    """
    Read-only copy of the company branding taken once per batch.

    Detached from the session so a rollback on one row cannot expire it.
    """
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    company_gst: Optional[str] = None
    logo_url: Optional[str] = None
    signature_url: Optional[str] = None

    @classmethod
    def from_settings(cls, company: Any) -> Optional["CompanySnapshot"]:
        if company is None:
            return None
        return cls(
            company_name=company.company_name,
            company_address=company.company_address,
            company_gst=company.company_gst,
            logo_url=company.logo_url,
            signature_url=company.signature_url,
        )


@dataclass
class BatchAccumulator:
    """Per-batch results threaded through the row loop."""
    archive: zipfile.ZipFile
    payslip_ids: List[Any] = field(default_factory=list)
    entry_names: List[str] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.entry_names)

    def succeed(self, entry_name: str, pdf_bytes: bytes, payslip_id: Any) -> "BatchAccumulator":
        self.archive.writestr(entry_name, pdf_bytes)
        self.entry_names.append(entry_name)
        self.payslip_ids.append(payslip_id)
        return self

    def fail(self, row: int, employee_no: str, stage: RowStage, error: str) -> "BatchAccumulator":
        self.errors.append(RowError(row=row, employee_no=employee_no, stage=stage, error=error))
        return self


@dataclass
class BulkGenerationResult:
    archive_bytes: bytes
    success_count: int
    errors: List[RowError]
    entry_names: List[str]
    payslip_ids: List[Any] = field(default_factory=list)
    state: BatchState = BatchState.COMPLETED
    generated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def archive_filename(self) -> str:
        return f"payslips-bulk-{int(self.generated_at.timestamp() * 1000)}.zip"

    def errors_as_dicts(self) -> List[Dict[str, Any]]:
        return [error.to_dict() for error in self.errors]


class BulkPayslipService:
    """
    Bulk payslip generation.

    One instance per request; the renderer may be swapped out (tests pass a
    fake that returns canned bytes).
    """

    def __init__(
        self,
        db: AsyncSession,
        renderer: Optional[PayslipRenderer] = None,
        batch_timeout_seconds: Optional[float] = None,
        max_batch_rows: Optional[int] = None,
    ):
        self.store = RecordStore(db)
        self.reconciler = EmployeeReconciler(self.store)
        self.renderer = renderer or PayslipRenderer()
        self.batch_timeout_seconds = (
            settings.batch_timeout_seconds if batch_timeout_seconds is None else batch_timeout_seconds
        )
        self.max_batch_rows = settings.max_batch_rows if max_batch_rows is None else max_batch_rows
        self.state = BatchState.ACCEPTED

    async def generate(
        self,
        rows: Sequence[Mapping[str, Any]],
        page_format: str = "A4",
    ) -> BulkGenerationResult:
        """
        Process every row and package the successes.

        Args:
            rows: Payroll rows keyed by template column (aliases accepted)
            page_format: Page size for every document in the batch

        Returns:
            BulkGenerationResult with the ZIP bytes, success count and row errors

        Raises:
            EmptyBatchException: no rows were supplied
            BatchTooLargeException: more rows than max_batch_rows
        """
        if not rows:
            raise EmptyBatchException()
        if len(rows) > self.max_batch_rows:
            raise BatchTooLargeException(len(rows), self.max_batch_rows)

        self.state = BatchState.PROCESSING
        logger.info(f"Bulk generation started: {len(rows)} row(s), format {page_format}")

        company = CompanySnapshot.from_settings(await self.store.get_company_settings())
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.batch_timeout_seconds

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            acc = BatchAccumulator(archive=archive)
            for index, data in enumerate(rows, start=1):
                raw = RawRow.from_mapping(index, data)
                if loop.time() >= deadline:
                    acc = acc.fail(
                        index, raw.employee_no, RowStage.TIMEOUT,
                        f"Batch deadline of {self.batch_timeout_seconds:g}s passed before this row started",
                    )
                    continue
                acc = await self._process_row(acc, raw, company, page_format)

        self.state = BatchState.COMPLETED
        logger.info(
            f"Bulk generation completed: {acc.success_count} succeeded, {len(acc.errors)} failed"
        )

        return BulkGenerationResult(
            archive_bytes=buffer.getvalue(),
            success_count=acc.success_count,
            errors=acc.errors,
            entry_names=acc.entry_names,
            payslip_ids=acc.payslip_ids,
            state=self.state,
        )

    async def _process_row(
        self,
        acc: BatchAccumulator,
        raw: RawRow,
        company: Optional[CompanySnapshot],
        page_format: str,
    ) -> BatchAccumulator:
        """Run one row through the pipeline, recording the outcome on `acc`."""
        draft = normalize_payroll_row(raw)
        if isinstance(draft, RowValidationError):
            logger.warning(f"Row {raw.index} ({raw.employee_no or '-'}): {draft.message}")
            return acc.fail(raw.index, draft.employee_no, RowStage.VALIDATION, draft.message)

        try:
            employee = await self.reconciler.reconcile(draft.employee_no, extract_employee_fields(raw))
        except ReconciliationException as e:
            logger.warning(f"Row {raw.index} ({draft.employee_no}): {e.message}")
            return acc.fail(raw.index, draft.employee_no, RowStage.RECONCILIATION, e.message)

        data = draft.to_payslip_data(employee.id)

        try:
            pdf_bytes = await self.renderer.render(employee, Payslip(**data), company, page_format)
        except RenderTimeoutException as e:
            logger.warning(f"Row {raw.index} ({draft.employee_no}): {e.message}")
            return acc.fail(raw.index, draft.employee_no, RowStage.TIMEOUT, e.message)
        except RenderException as e:
            logger.warning(f"Row {raw.index} ({draft.employee_no}): {e.message}")
            return acc.fail(raw.index, draft.employee_no, RowStage.RENDER, e.message)

        try:
            payslip = await self.store.create_payslip(data)
        except AppException as e:
            logger.warning(f"Row {raw.index} ({draft.employee_no}): {e.message}")
            return acc.fail(raw.index, draft.employee_no, RowStage.PERSISTENCE, e.message)

        return acc.succeed(
            archive_entry_name(draft.employee_no, draft.pay_period), pdf_bytes, payslip.id
        )
