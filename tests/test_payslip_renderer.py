"""
Payslip Generator - Renderer Tests

Template output, amount-in-words and PDF engine handling.
"""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from types import SimpleNamespace

import pytest

from payslip_app.models import Employee, Payslip
from payslip_app.services import payslip_renderer
from payslip_app.services.payroll_normalizer import RawRow, normalize_payroll_row
from payslip_app.services.payslip_renderer import PayslipRenderer, format_amount
from payslip_app.utils.error_handling import ErrorCode, RenderException, RenderTimeoutException
from payslip_app.utils.number_words import amount_to_words


def _employee(**overrides) -> Employee:
    data = dict(
        employee_no="EMP001",
        name="John Doe",
        joining_date="01 Jan 2020",
        designation="Software Engineer",
        department="Engineering",
        location="Bangalore",
        bank_name="State Bank of India",
        bank_account_no="1234567890",
        ifsc_code="SBIN0001234",
        pan_number="ABCDE1234F",
        pf_number=None,
        pf_uan=None,
    )
    data.update(overrides)
    return Employee(**data)


def _payslip(**row) -> Payslip:
    fields = {"employeeNo": "EMP001", "name": "John Doe", "payPeriod": "Jan 2025"}
    fields.update(row)
    draft = normalize_payroll_row(RawRow.from_mapping(1, fields))
    return Payslip(**draft.to_payslip_data(None))


class TestAmountInWords:
    """Net pay spelled out, title-cased, fraction truncated."""

    def test_twelve_thousand(self):
        assert amount_to_words(12345) == "Twelve Thousand Three Hundred Forty Five"

    def test_zero(self):
        assert amount_to_words(0) == "Zero"
        assert amount_to_words(Decimal("0.99")) == "Zero"

    def test_fraction_truncated(self):
        assert amount_to_words(Decimal("49800.75")) == "Forty Nine Thousand Eight Hundred"

    def test_negative(self):
        assert amount_to_words(-50) == "Minus Fifty"

    def test_large_values(self):
        assert amount_to_words(1000000) == "One Million"
        assert amount_to_words(2001015) == "Two Million One Thousand Fifteen"

    def test_teens_and_round_tens(self):
        assert amount_to_words(13) == "Thirteen"
        assert amount_to_words(90) == "Ninety"
        assert amount_to_words(100) == "One Hundred"


class TestFormatAmount:

    def test_rounds_half_up(self):
        assert format_amount(Decimal("10.50")) == "11"
        assert format_amount(Decimal("10.49")) == "10"

    def test_blank_is_zero(self):
        assert format_amount(None) == "0"
        assert format_amount("") == "0"


class TestPayslipHtml:
    """HTML produced from the payslip template."""

    def test_header_and_words(self):
        html = PayslipRenderer().render_html(
            _employee(),
            _payslip(basicActual=12345),
            SimpleNamespace(
                company_name="Acme Pvt Ltd", company_address="1 MG Road",
                company_gst="29ABCDE1234F1Z5", logo_url=None, signature_url=None,
            ),
        )

        assert "Acme Pvt Ltd" in html
        assert "GST: 29ABCDE1234F1Z5" in html
        assert "Payslip for the month of Jan 2025" in html
        assert "Twelve Thousand Three Hundred Forty Five only" in html
        assert "This is a system generated payslip and does not require signature." in html

    def test_without_company_settings(self):
        html = PayslipRenderer().render_html(_employee(), _payslip(), None)

        assert "COMPANY NAME" in html
        assert "GST:" not in html
        assert "<img" not in html
        assert "Zero only" in html

    def test_optional_rows_only_when_nonzero(self):
        html = PayslipRenderer().render_html(
            _employee(), _payslip(basicFull=100, specialAllowanceFull=500), None
        )

        assert "BASIC" in html
        assert "HRA" in html
        assert "SPECIAL ALLOWANCE" in html
        assert "CONVEYANCE ALLOWANCE" not in html
        assert "OTHER ALLOWANCE" not in html
        assert "BONUS/INCENTIVE" not in html

    def test_deductions_listed(self):
        html = PayslipRenderer().render_html(_employee(), _payslip(pfActual=5000, profTaxActual=200), None)

        assert "PROF TAX" in html
        assert ">5000<" in html
        assert ">200<" in html

    def test_missing_optional_employee_fields_blank(self):
        html = PayslipRenderer().render_html(_employee(pf_number=None, pf_uan=None), _payslip(), None)

        assert "None" not in html

    def test_page_format(self):
        html = PayslipRenderer().render_html(_employee(), _payslip(), None, page_format="Legal")

        assert "size: Legal" in html

    def test_unknown_page_format_rejected(self):
        with pytest.raises(RenderException):
            PayslipRenderer().render_html(_employee(), _payslip(), None, page_format="A3")

    def test_deterministic(self):
        renderer = PayslipRenderer()
        employee, payslip = _employee(), _payslip(basicActual=40000, hraActual=15000)

        first = renderer.render_html(employee, payslip, None)
        second = renderer.render_html(employee, payslip, None)

        assert first == second

    def test_uploaded_logo_resolved_to_file(self, tmp_path):
        (tmp_path / "logo-abc.png").write_bytes(b"png")
        company = SimpleNamespace(
            company_name="Acme", company_address="X", company_gst=None,
            logo_url="/uploads/logo-abc.png", signature_url="/uploads/missing.png",
        )

        html = PayslipRenderer(upload_dir=str(tmp_path)).render_html(_employee(), _payslip(), company)

        assert (tmp_path / "logo-abc.png").resolve().as_uri() in html
        assert "Authorised Signatory" not in html

    def test_escapes_markup(self):
        html = PayslipRenderer().render_html(_employee(name="<b>Eve</b>"), _payslip(), None)

        assert "&lt;b&gt;Eve&lt;/b&gt;" in html


class TestPdfRendering:
    """PDF step: engine handling and timeouts."""

    @pytest.mark.asyncio
    async def test_engine_unavailable_is_render_error(self, monkeypatch):
        from contextlib import contextmanager

        @contextmanager
        def unavailable():
            raise RenderException("PDF rendering engine is unavailable")
            yield  # pragma: no cover

        monkeypatch.setattr(payslip_renderer, "rendering_context", unavailable)

        with pytest.raises(RenderException) as exc_info:
            await PayslipRenderer().render(_employee(), _payslip(), None)

        assert exc_info.value.code == ErrorCode.RENDER_ERROR

    @pytest.mark.asyncio
    async def test_slow_render_times_out(self):
        class SlowRenderer(PayslipRenderer):
            def _html_to_pdf(self, html):
                time.sleep(0.5)
                return b"late"

        with pytest.raises(RenderTimeoutException) as exc_info:
            await SlowRenderer(timeout_seconds=0.05).render(_employee(), _payslip(), None)

        assert exc_info.value.code == ErrorCode.RENDER_TIMEOUT

    @pytest.mark.asyncio
    async def test_engine_context_released_after_failure(self, monkeypatch):
        events = []

        class FakeHTML:
            def __init__(self, string, base_url=None):
                pass

            def write_pdf(self, font_config=None, **options):
                raise ValueError("paint failed")

        from contextlib import contextmanager

        @contextmanager
        def fake_context():
            events.append("acquire")
            try:
                yield payslip_renderer.RenderContext(html_class=FakeHTML, font_config=object())
            finally:
                events.append("release")

        monkeypatch.setattr(payslip_renderer, "rendering_context", fake_context)

        with pytest.raises(RenderException, match="paint failed"):
            await PayslipRenderer().render(_employee(), _payslip(), None)

        assert events == ["acquire", "release"]

    @pytest.mark.asyncio
    async def test_real_engine_produces_pdf(self):
        try:
            import weasyprint  # noqa: F401
        except (ImportError, OSError):
            pytest.skip("WeasyPrint system libraries not available")

        pdf = await PayslipRenderer().render(_employee(), _payslip(basicActual=1000), None, "Letter")

        assert pdf.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_render_runs_off_event_loop(self, monkeypatch):
        loop_thread = []

        class ThreadCheckRenderer(PayslipRenderer):
            def _html_to_pdf(self, html):
                try:
                    asyncio.get_running_loop()
                    loop_thread.append(True)
                except RuntimeError:
                    loop_thread.append(False)
                return b"%PDF"

        await ThreadCheckRenderer().render(_employee(), _payslip(), None)

        assert loop_thread == [False]

    @pytest.mark.asyncio
    async def test_real_engine_is_deterministic(self):
        try:
            import weasyprint  # noqa: F401
        except (ImportError, OSError):
            pytest.skip("WeasyPrint system libraries not available")

        renderer = PayslipRenderer()
        employee, payslip = _employee(), _payslip(basicActual=40000, hraActual=15000, pfActual=5000)

        first = await renderer.render(employee, payslip, None, "A4")
        second = await renderer.render(employee, payslip, None, "A4")

        assert first == second

    @pytest.mark.asyncio
    async def test_timed_out_queued_render_never_starts(self, monkeypatch):
        started = []
        release = threading.Event()

        class BlockingRenderer(PayslipRenderer):
            def _html_to_pdf(self, html):
                started.append(threading.current_thread().name)
                release.wait(2)
                return b"%PDF"

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="payslip-render")
        monkeypatch.setattr(payslip_renderer, "_executor", pool)
        renderer = BlockingRenderer(timeout_seconds=0.05)

        try:
            with pytest.raises(RenderTimeoutException):
                await renderer.render(_employee(), _payslip(), None)
            with pytest.raises(RenderTimeoutException):
                await renderer.render(_employee(), _payslip(), None)
        finally:
            release.set()
            pool.shutdown(wait=True)

        assert len(started) == 1
        assert started[0].startswith("payslip-render")
