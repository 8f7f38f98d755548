"""
Payslip Generator - Uploads Router

Branding image uploads, spreadsheet parsing and the CSV template download.
"""

import logging
import uuid
from pathlib import Path

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import Response

from payslip_app.config import settings
from payslip_app.schemas.payroll import FileUploadResponse, UploadParseResponse
from payslip_app.services.upload_parser import build_csv_template, parse_upload
from payslip_app.utils.error_handling import ErrorCode, InvalidUploadException

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_IMAGE_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/svg+xml": ".svg",
    "image/webp": ".webp",
}


async def _read_limited(file: UploadFile) -> bytes:
    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise InvalidUploadException(
            f"File too large. Maximum size is {settings.max_upload_size_bytes // (1024 * 1024)}MB",
            code=ErrorCode.FILE_TOO_LARGE,
        )
    return content


async def _store_image(file: UploadFile, kind: str) -> FileUploadResponse:
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidUploadException(
            f"Unsupported file type. Allowed: {sorted(ALLOWED_IMAGE_TYPES)}"
        )

    content = await _read_limited(file)
    if not content:
        raise InvalidUploadException("Uploaded file is empty")

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{kind}-{uuid.uuid4().hex}{ALLOWED_IMAGE_TYPES[file.content_type]}"
    (upload_dir / filename).write_bytes(content)

    logger.info(f"Stored {kind} image {filename} ({len(content)} bytes)")
    return FileUploadResponse(url=f"/uploads/{filename}")


@router.post(
    "/upload/logo",
    response_model=FileUploadResponse,
    summary="Upload company logo",
)
async def upload_logo(file: UploadFile = File(...)):
    """Store a logo image and return its public URL."""
    return await _store_image(file, "logo")


@router.post(
    "/upload/signature",
    response_model=FileUploadResponse,
    summary="Upload authorised signature",
)
async def upload_signature(file: UploadFile = File(...)):
    """Store a signature image and return its public URL."""
    return await _store_image(file, "signature")


@router.post(
    "/upload/csv",
    response_model=UploadParseResponse,
    summary="Parse payroll spreadsheet",
    description="Parse a CSV or XLSX payroll file. Blank lines are skipped and header spellings normalised.",
)
async def upload_spreadsheet(file: UploadFile = File(...)):
    content = await _read_limited(file)
    sheet = parse_upload(file.filename, content)
    return UploadParseResponse(data=sheet.rows, headers=sheet.headers, row_count=sheet.row_count)


@router.get(
    "/csv-template",
    summary="Download CSV template",
    response_class=Response,
)
async def download_csv_template():
    return Response(
        content=build_csv_template(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=payslip-template.csv"},
    )
