"""
Payslip Generator - Payslip PDF Renderer

Renders a payslip in two steps:
1. HTML from the Jinja2 template (templates/payslip.html)
2. PDF from the HTML with the WeasyPrint layout engine

Every render acquires its own WeasyPrint context (engine + font
configuration) and releases it when done, whatever the outcome. The PDF
step runs on a fixed-size thread pool (settings.render_max_workers) under
a timeout. A timed-out render that has not started is dropped
from the queue; one already running cannot be interrupted and keeps its
worker until WeasyPrint returns, so runaway renders never hold more than
render_max_workers threads.
"""

import asyncio
import hashlib
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from payslip_app.config import settings
from payslip_app.utils.error_handling import RenderException, RenderTimeoutException
from payslip_app.utils.number_words import amount_to_words

logger = logging.getLogger(__name__)


PAGE_FORMATS = ("A4", "Letter", "Legal")

# (label, column prefix, always shown)
EARNING_LINES = (
    ("BASIC", "basic", True),
    ("HRA", "hra", True),
    ("CONVEYANCE ALLOWANCE", "conveyance_allowance", False),
    ("OTHER ALLOWANCE", "other_allowance", False),
    ("SPECIAL ALLOWANCE", "special_allowance", False),
    ("BONUS/INCENTIVE", "bonus_incentive", False),
)

DEDUCTION_LINES = (
    ("PF", "pf_actual"),
    ("PROF TAX", "prof_tax_actual"),
)


_executor: Optional[ThreadPoolExecutor] = None


def get_render_executor() -> ThreadPoolExecutor:
    """Shared pool for PDF layout, created on first use."""
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=settings.render_max_workers,
            thread_name_prefix="payslip-render",
        )
    return _executor


def shutdown_render_executor() -> None:
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=False, cancel_futures=True)
        _executor = None


def format_amount(value: Any) -> str:
    """Whole currency units, rounded half-up; blanks render as 0."""
    if value is None or value == "":
        return "0"
    amount = Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return str(amount + 0)  # normalises -0


def _is_nonzero(value: Any) -> bool:
    if value is None or value == "":
        return False
    return Decimal(str(value)) != 0


@dataclass
class EarningRow:
    label: str
    full: Any
    actual: Any
    deduction_label: str = ""
    deduction: Any = None


@dataclass
class RenderContext:
    """A live WeasyPrint engine handle for one render."""
    html_class: Any
    font_config: Any


@contextmanager
def rendering_context() -> Iterator[RenderContext]:
    """
    Acquire a fresh WeasyPrint context and release it on exit.

    Raises:
        RenderException: WeasyPrint (or its system libraries) cannot be loaded
    """
    try:
        from weasyprint import HTML
        from weasyprint.text.fonts import FontConfiguration
    except (ImportError, OSError) as e:
        raise RenderException("PDF rendering engine is unavailable", original_error=e)

    context = RenderContext(html_class=HTML, font_config=FontConfiguration())
    try:
        yield context
    finally:
        context.font_config = None
        context.html_class = None


class PayslipRenderer:
    """Employee + payslip + branding -> PDF bytes."""

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        upload_dir: Optional[str] = None,
    ):
        self.timeout_seconds = settings.render_timeout_seconds if timeout_seconds is None else timeout_seconds
        self.upload_dir = Path(upload_dir or settings.upload_dir)
        self.env = Environment(
            loader=PackageLoader("payslip_app", "templates"),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
        )
        self.env.filters["amount"] = format_amount

    # ===========================================
    # HTML
    # ===========================================

    def _asset_src(self, url: Optional[str]) -> Optional[str]:
        """Resolve a stored logo/signature URL to something WeasyPrint can fetch."""
        if not url:
            return None
        if url.startswith("/uploads/"):
            path = self.upload_dir / url[len("/uploads/"):]
            return path.resolve().as_uri() if path.exists() else None
        return url

    @staticmethod
    def _details(employee: Any, payslip: Any) -> List[Tuple[Tuple[str, Any], Tuple[str, Any]]]:
        def text(value: Any) -> str:
            return "" if value is None else str(value)

        return [
            (("Name", text(employee.name)), ("Employee No", text(employee.employee_no))),
            (("Joining Date", text(employee.joining_date)), ("Bank Name", text(employee.bank_name))),
            (("Designation", text(employee.designation)), ("Bank Account No", text(employee.bank_account_no))),
            (("Department", text(employee.department)), ("PAN Number", text(employee.pan_number))),
            (("Location", text(employee.location)), ("PF No", text(employee.pf_number))),
            (("Effective Work Days", payslip.effective_work_days or 0), ("PF UAN", text(employee.pf_uan))),
            (("LOP", payslip.lop or 0), ("EL AVAILED", payslip.el_availed or 0)),
        ]

    @staticmethod
    def _earning_rows(payslip: Any) -> List[EarningRow]:
        rows: List[EarningRow] = []
        for label, prefix, always in EARNING_LINES:
            full = getattr(payslip, f"{prefix}_full")
            if always or _is_nonzero(full):
                rows.append(EarningRow(label, full, getattr(payslip, f"{prefix}_actual")))

        for position, (label, column) in enumerate(DEDUCTION_LINES):
            if position < len(rows):
                rows[position].deduction_label = label
                rows[position].deduction = getattr(payslip, column)
        return rows

    def build_context(self, employee: Any, payslip: Any, company: Any = None, page_format: str = "A4") -> Dict[str, Any]:
        """Template variables for one payslip."""
        if page_format not in PAGE_FORMATS:
            raise RenderException(f"Unsupported page format: {page_format}")

        return {
            "page_format": page_format,
            "employee": employee,
            "payslip": payslip,
            "company": company if company is not None else _NoCompany(),
            "logo_src": self._asset_src(getattr(company, "logo_url", None)),
            "signature_src": self._asset_src(getattr(company, "signature_url", None)),
            "details": self._details(employee, payslip),
            "earning_rows": self._earning_rows(payslip),
            "net_pay_words": amount_to_words(payslip.net_pay or 0),
        }

    def render_html(self, employee: Any, payslip: Any, company: Any = None, page_format: str = "A4") -> str:
        """Render the intermediate HTML document."""
        context = self.build_context(employee, payslip, company, page_format)
        try:
            return self.env.get_template("payslip.html").render(**context)
        except Exception as e:
            raise RenderException(f"Payslip template failed: {e}", original_error=e)

    # ===========================================
    # PDF
    # ===========================================

    def _html_to_pdf(self, html: str) -> bytes:
        with rendering_context() as ctx:
            try:
                document = ctx.html_class(string=html, base_url=str(self.upload_dir.resolve()))
                # Same HTML, same bytes
                identifier = hashlib.sha256(html.encode("utf-8")).hexdigest()[:32].encode("ascii")
                return document.write_pdf(font_config=ctx.font_config, pdf_identifier=identifier)
            except Exception as e:
                raise RenderException(f"PDF layout failed: {e}", original_error=e)

    async def render(self, employee: Any, payslip: Any, company: Any = None, page_format: str = "A4") -> bytes:
        """
        Render a payslip PDF.

        Args:
            employee: Employee record
            payslip: Payslip record (persisted or transient)
            company: Optional CompanySettings for branding
            page_format: One of PAGE_FORMATS

        Returns:
            PDF bytes

        Raises:
            RenderException: template, engine or layout failure, or timeout
        """
        html = self.render_html(employee, payslip, company, page_format)
        loop = asyncio.get_running_loop()
        try:
            pdf_bytes = await asyncio.wait_for(
                loop.run_in_executor(get_render_executor(), self._html_to_pdf, html),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Render of {payslip.payslip_number} timed out")
            raise RenderTimeoutException(self.timeout_seconds)

        logger.debug(f"Rendered {payslip.payslip_number} ({len(pdf_bytes)} bytes)")
        return pdf_bytes


class _NoCompany:
    """Stand-in when no company settings exist yet."""
    company_name = None
    company_address = None
    company_gst = None
    logo_url = None
    signature_url = None
