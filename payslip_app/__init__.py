"""
Payslip Generator

Employee registry, company branding and bulk payslip PDF generation.
"""

__version__ = "0.1.0"
