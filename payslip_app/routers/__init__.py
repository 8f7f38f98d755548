"""
Payslip Generator - Routers Package

FastAPI route handlers.

Routers:
- employees: Employee registry and per-employee payslip history
- company_settings: Company branding
- payslips: Single and bulk generation, payslip history
- uploads: Logo/signature uploads, spreadsheet parsing, CSV template
- dashboard: Dashboard statistics
"""
