"""
Payslip Generator - Payslips Router

Single and bulk payslip generation, plus payslip history.

Bulk responses carry the ZIP archive as the body; the outcome summary
travels in headers:
- X-Success-Count: documents in the archive
- X-Error-Count: rows that failed
- X-Errors: JSON list of {row, employee_no, stage, error}
"""

import json
from typing import List, Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from payslip_app.config import PageFormat, settings
from payslip_app.database import get_async_session
from payslip_app.schemas.payroll import (
    BulkGenerateRequest,
    PayslipResponse,
    SinglePayslipRequest,
)
from payslip_app.services.bulk_payslip_service import BulkGenerationResult, BulkPayslipService
from payslip_app.services.payslip_renderer import PayslipRenderer
from payslip_app.services.payslip_service import PayslipService
from payslip_app.services.record_store import RecordStore
from payslip_app.services.upload_parser import parse_upload
from payslip_app.utils.error_handling import (
    ErrorCode,
    InvalidUploadException,
    PayslipNotFoundException,
)

router = APIRouter()


def get_payslip_renderer() -> PayslipRenderer:
    """Renderer dependency; overridden in tests."""
    return PayslipRenderer()


def content_disposition(filename: str) -> str:
    """
    Attachment header for any filename.

    Header values are latin-1, so names outside printable ASCII get an
    ASCII fallback plus an RFC 5987 filename* parameter.
    """
    fallback = "".join(
        ch if 32 <= ord(ch) < 127 and ch not in "\"\\" else "_" for ch in filename
    )
    value = f"attachment; filename=\"{fallback}\""
    if fallback != filename:
        value += f"; filename*=UTF-8''{quote(filename)}"
    return value


def _bulk_response(result: BulkGenerationResult) -> Response:
    return Response(
        content=result.archive_bytes,
        media_type="application/zip",
        headers={
            "Content-Disposition": content_disposition(result.archive_filename),
            "X-Success-Count": str(result.success_count),
            "X-Error-Count": str(result.error_count),
            "X-Errors": json.dumps(result.errors_as_dicts()),
        },
    )


# ===========================================
# GENERATION
# ===========================================

@router.post(
    "/generate",
    summary="Generate one payslip",
    description="Render a payslip PDF for a registered employee and record it.",
    response_class=Response,
)
async def generate_payslip(
    request: SinglePayslipRequest,
    db: AsyncSession = Depends(get_async_session),
    renderer: PayslipRenderer = Depends(get_payslip_renderer),
):
    service = PayslipService(db, renderer=renderer)
    generated = await service.generate(request.employee_id, request.payslip, request.format)
    return Response(
        content=generated.pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": content_disposition(generated.filename)},
    )


@router.post(
    "/bulk-generate",
    summary="Bulk generate payslips",
    description="Generate payslips for parsed spreadsheet rows and return them as one ZIP archive.",
    response_class=Response,
)
async def bulk_generate_payslips(
    request: BulkGenerateRequest,
    db: AsyncSession = Depends(get_async_session),
    renderer: PayslipRenderer = Depends(get_payslip_renderer),
):
    service = BulkPayslipService(db, renderer=renderer)
    result = await service.generate(request.rows, request.format)
    return _bulk_response(result)


@router.post(
    "/bulk-generate/upload",
    summary="Bulk generate payslips from a spreadsheet",
    description="Parse an uploaded CSV or XLSX file and generate a payslip per row.",
    response_class=Response,
)
async def bulk_generate_from_upload(
    file: UploadFile = File(..., description="Payroll spreadsheet (CSV or XLSX)"),
    format: PageFormat = Query(settings.default_page_format, description="Page size for every payslip"),
    db: AsyncSession = Depends(get_async_session),
    renderer: PayslipRenderer = Depends(get_payslip_renderer),
):
    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise InvalidUploadException(
            f"File too large. Maximum size is {settings.max_upload_size_bytes // (1024 * 1024)}MB",
            code=ErrorCode.FILE_TOO_LARGE,
        )

    sheet = parse_upload(file.filename, content)
    service = BulkPayslipService(db, renderer=renderer)
    result = await service.generate(sheet.rows, format)
    return _bulk_response(result)


# ===========================================
# HISTORY
# ===========================================

@router.get(
    "",
    response_model=List[PayslipResponse],
    summary="List payslips",
)
async def list_payslips(
    pay_period: Optional[str] = Query(None, description="Only payslips for this pay period"),
    db: AsyncSession = Depends(get_async_session),
):
    """All generated payslips, newest first."""
    return await RecordStore(db).list_payslips(pay_period=pay_period)


@router.get(
    "/{payslip_id}",
    response_model=PayslipResponse,
    summary="Get payslip",
)
async def get_payslip(
    payslip_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    payslip = await RecordStore(db).get_payslip(payslip_id)
    if not payslip:
        raise PayslipNotFoundException(payslip_id)
    return payslip
