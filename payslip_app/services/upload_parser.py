"""
Payslip Generator - Spreadsheet Upload Parser

Reads payroll spreadsheets (CSV or XLSX) into row mappings keyed by the
canonical template column names, and produces the downloadable CSV template.
"""

import csv
import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openpyxl import load_workbook

from payslip_app.services.payroll_normalizer import TEMPLATE_COLUMNS, canonical_field_name
from payslip_app.utils.error_handling import InvalidUploadException

logger = logging.getLogger(__name__)


CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")

TEMPLATE_SAMPLE_ROWS = (
    (
        "EMP001", "John Doe", "01 Jan 2020", "Software Engineer", "Engineering", "Bangalore",
        "State Bank of India", "1234567890", "SBIN0001234", "ABCDE1234F", "PF12345678", "123456789012",
        "Jan 2025", "31/01/2025", "31", "0", "0",
        "40000", "40000", "15000", "15000", "3000", "3000", "3000", "3000",
        "10000", "10000", "5000", "5000", "7250", "200", "7250",
    ),
    (
        "EMP002", "Jane Smith", "15 Mar 2021", "Senior Developer", "Engineering", "Mumbai",
        "HDFC Bank", "9876543210", "HDFC0001234", "XYZAB5678C", "PF87654321", "987654321098",
        "Jan 2025", "31/01/2025", "31", "0", "0",
        "50000", "50000", "20000", "20000", "4000", "4000", "4000", "4000",
        "12000", "12000", "6000", "6000", "9000", "200", "9000",
    ),
)


@dataclass
class ParsedSheet:
    rows: List[Dict[str, Any]]
    headers: List[str]

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _is_blank(values) -> bool:
    return all(value is None or str(value).strip() == "" for value in values)


def _canonical_headers(raw_headers) -> List[str]:
    headers = [canonical_field_name(h) if h is not None else "" for h in raw_headers]
    if not any(headers):
        raise InvalidUploadException("Spreadsheet has no header row")
    return headers


def parse_csv(content: bytes) -> ParsedSheet:
    """Parse CSV bytes; the first line is the header, blank lines are skipped."""
    try:
        text = content.decode("utf-8-sig")  # Handle BOM
    except UnicodeDecodeError:
        raise InvalidUploadException("CSV file must be UTF-8 encoded")

    reader = csv.reader(io.StringIO(text))
    try:
        raw_headers = next(reader)
    except StopIteration:
        raise InvalidUploadException("CSV file is empty")
    except csv.Error as e:
        raise InvalidUploadException(f"Malformed CSV: {e}")

    headers = _canonical_headers(raw_headers)
    rows: List[Dict[str, Any]] = []
    try:
        for values in reader:
            if _is_blank(values):
                continue
            rows.append({
                header: value
                for header, value in zip(headers, values)
                if header
            })
    except csv.Error as e:
        raise InvalidUploadException(f"Malformed CSV at line {reader.line_num}: {e}")

    return ParsedSheet(rows=rows, headers=[h for h in headers if h])


def parse_xlsx(content: bytes) -> ParsedSheet:
    """Parse the first worksheet of an XLSX workbook."""
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise InvalidUploadException(f"Unreadable Excel workbook: {e}")

    try:
        sheet = workbook.worksheets[0]
        values_iter = sheet.iter_rows(values_only=True)
        raw_headers = next(values_iter, None)
        if raw_headers is None:
            raise InvalidUploadException("Excel worksheet is empty")

        headers = _canonical_headers(raw_headers)
        rows: List[Dict[str, Any]] = []
        for values in values_iter:
            if _is_blank(values):
                continue
            rows.append({
                header: ("" if value is None else value)
                for header, value in zip(headers, values)
                if header
            })
    finally:
        workbook.close()

    return ParsedSheet(rows=rows, headers=[h for h in headers if h])


def parse_upload(filename: Optional[str], content: bytes) -> ParsedSheet:
    """
    Parse an uploaded payroll spreadsheet by file extension.

    Raises:
        InvalidUploadException: unsupported type, empty or unparseable file
    """
    if not content:
        raise InvalidUploadException("Uploaded file is empty")

    name = (filename or "").lower()
    if name.endswith(EXCEL_EXTENSIONS):
        sheet = parse_xlsx(content)
    elif name.endswith(CSV_EXTENSIONS) or not name:
        sheet = parse_csv(content)
    else:
        raise InvalidUploadException("Only CSV and XLSX files are supported")

    logger.info(f"Parsed {sheet.row_count} row(s) from {filename or 'upload'}")
    return sheet


def build_csv_template() -> str:
    """CSV template with every column and two sample rows."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(TEMPLATE_COLUMNS)
    for row in TEMPLATE_SAMPLE_ROWS:
        writer.writerow(row)
    return output.getvalue()
