"""
Payslip Generator - Utilities Package
"""
