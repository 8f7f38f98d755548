"""
Payslip Generator - Test Configuration

Pytest fixtures and configuration.
"""

import os
import tempfile
from typing import AsyncGenerator, Dict, List

# Settings are read once at import time
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="payslip-uploads-"))
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from payslip_app.database import Base, get_async_session
from payslip_app.models import Employee
from payslip_app.routers.payslips import get_payslip_renderer
from payslip_app.services.payslip_renderer import PayslipRenderer
from main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


class HtmlRenderer(PayslipRenderer):
    """Real template rendering with the PDF engine replaced by the HTML bytes."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.rendered: List[str] = []

    def _html_to_pdf(self, html: str) -> bytes:
        self.rendered.append(html)
        return b"%PDF-1.7\n" + html.encode("utf-8")


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh in-memory database for each test."""
    # StaticPool keeps the single in-memory connection alive for the whole test
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestSessionLocal = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    await test_engine.dispose()


@pytest.fixture
def html_renderer() -> HtmlRenderer:
    return HtmlRenderer()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, html_renderer: HtmlRenderer) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session and renderer overrides."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_payslip_renderer] = lambda: html_renderer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest.fixture
def emp001_row() -> Dict[str, object]:
    """Payroll row for EMP001, Jan 2025."""
    return {
        "employeeNo": "EMP001",
        "name": "John Doe",
        "payPeriod": "Jan 2025",
        "basicFull": 40000,
        "basicActual": 40000,
        "hraFull": 15000,
        "hraActual": 15000,
        "pfActual": 5000,
        "profTaxActual": 200,
    }


@pytest_asyncio.fixture
async def test_employee(db_session: AsyncSession) -> Employee:
    """Create a registered employee."""
    employee = Employee(
        employee_no="EMP100",
        name="Asha Rao",
        joining_date="01 Apr 2022",
        designation="Analyst",
        department="Finance",
        location="Pune",
        bank_name="Axis Bank",
        bank_account_no="1122334455",
        ifsc_code="UTIB0000001",
        pan_number="AAAPR1234C",
        pf_number="PF100",
        pf_uan="100200300400",
    )
    db_session.add(employee)
    await db_session.commit()
    await db_session.refresh(employee)
    return employee
