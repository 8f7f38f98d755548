"""
Payslip Generator - Company Settings Model

Singleton branding record used on every rendered payslip.
"""

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payslip_app.models.base import BaseModel


class CompanySettings(BaseModel):
    """Company branding. At most one row exists."""

    __tablename__ = "company_settings"

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_address: Mapped[str] = mapped_column(Text, nullable=False)
    company_gst: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    signature_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
