"""
Payslip Generator - Payroll Row Normalizer

Turns one loosely-typed spreadsheet row into a typed payroll draft.

Rules:
- employeeNo, name and payPeriod are required; a missing one yields a
  RowValidationError value instead of raising
- Amounts that are missing, non-numeric or too large to store count as 0
- Work days default to 31, LOP and EL availed to 0; out-of-range counts
  take the default too
- net_pay = total_earnings_actual - total_deductions_actual

Everything here is pure: no I/O, no database access.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from payslip_app.models.payroll import (
    DEDUCTION_COMPONENTS,
    EARNING_COMPONENTS,
    MAX_AMOUNT,
    MAX_DAY_COUNT,
)


# ===========================================
# FIELD NAMES
# ===========================================

REQUIRED_FIELDS = ("employeeNo", "name", "payPeriod")

EMPLOYEE_FIELDS = {
    "employeeNo": "employee_no",
    "name": "name",
    "joiningDate": "joining_date",
    "designation": "designation",
    "department": "department",
    "location": "location",
    "bankName": "bank_name",
    "bankAccountNo": "bank_account_no",
    "ifscCode": "ifsc_code",
    "panNumber": "pan_number",
    "pfNumber": "pf_number",
    "pfUan": "pf_uan",
}

PERIOD_FIELDS = ("payPeriod", "payDate", "effectiveWorkDays", "lop", "elAvailed")


def _camel(snake: str) -> str:
    head, *rest = snake.split("_")
    return head + "".join(part.capitalize() for part in rest)


# camelCase row key -> payslip column
AMOUNT_FIELDS: Dict[str, str] = {}
for _component in EARNING_COMPONENTS:
    AMOUNT_FIELDS[_camel(_component) + "Full"] = f"{_component}_full"
    AMOUNT_FIELDS[_camel(_component) + "Actual"] = f"{_component}_actual"
for _component in DEDUCTION_COMPONENTS:
    AMOUNT_FIELDS[_camel(_component) + "Actual"] = f"{_component}_actual"
AMOUNT_FIELDS["employerPf"] = "employer_pf"

# Column order of the downloadable CSV template
TEMPLATE_COLUMNS: Tuple[str, ...] = (
    tuple(EMPLOYEE_FIELDS) + PERIOD_FIELDS + tuple(AMOUNT_FIELDS)
)

# Spellings seen in real spreadsheets
_HEADER_ALIASES = {
    "employeenumber": "employeeNo",
    "empno": "employeeNo",
    "employeename": "name",
    "accountno": "bankAccountNo",
    "bankaccountnumber": "bankAccountNo",
    "ifsc": "ifscCode",
    "pan": "panNumber",
    "pfno": "pfNumber",
    "uan": "pfUan",
    "workdays": "effectiveWorkDays",
    "bounsincentivefull": "bonusIncentiveFull",
    "bounsincentiveactual": "bonusIncentiveActual",
    "professionaltaxactual": "profTaxActual",
}

_CANONICAL = {re.sub(r"[^a-z0-9]", "", name.lower()): name for name in TEMPLATE_COLUMNS}
_CANONICAL.update(_HEADER_ALIASES)


def canonical_field_name(header: str) -> str:
    """
    Map a spreadsheet header to its canonical row key.

    Case, spaces, underscores and punctuation are ignored, so
    "Employee No", "employee_no" and "EMPLOYEENO" all map to "employeeNo".
    Unknown headers are returned stripped but otherwise unchanged.
    """
    key = re.sub(r"[^a-z0-9]", "", str(header).lower())
    return _CANONICAL.get(key, str(header).strip())


# ===========================================
# VALUE PARSING
# ===========================================

_CENTS = Decimal("0.01")


def parse_amount(value: Any) -> Decimal:
    """Parse a money value; anything unparseable or beyond MAX_AMOUNT is 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0.00")
    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip().replace(",", "").replace(" ", "")
        if not text:
            return Decimal("0.00")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return Decimal("0.00")
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        return Decimal("0.00")
    amount = amount.quantize(_CENTS, rounding=ROUND_HALF_UP)
    if abs(amount) > MAX_AMOUNT:
        return Decimal("0.00")
    return amount


def parse_count(value: Any, default: int) -> int:
    """Parse a day count, truncating fractions; unparseable values use the default."""
    if value is None or isinstance(value, bool):
        return default
    text = str(value).strip().replace(",", "")
    if not text:
        return default
    try:
        number = Decimal(text)
    except InvalidOperation:
        return default
    if not number.is_finite() or abs(number) > MAX_DAY_COUNT:
        return default
    return int(number)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


# ===========================================
# TYPES
# ===========================================

@dataclass(frozen=True)
class RawRow:
    """One uploaded row with canonicalised keys and its 1-based position."""
    index: int
    fields: Mapping[str, Any]

    @classmethod
    def from_mapping(cls, index: int, data: Mapping[str, Any]) -> "RawRow":
        return cls(
            index=index,
            fields={canonical_field_name(key): value for key, value in data.items()},
        )

    def text(self, name: str) -> str:
        return _text(self.fields.get(name))

    @property
    def employee_no(self) -> str:
        return self.text("employeeNo")


@dataclass(frozen=True)
class RowValidationError:
    """A row that cannot be processed."""
    row: int
    employee_no: str
    missing_fields: Tuple[str, ...]

    @property
    def message(self) -> str:
        return f"Missing required field(s): {', '.join(self.missing_fields)}"


@dataclass(frozen=True)
class PayrollTotals:
    total_earnings_full: Decimal
    total_earnings_actual: Decimal
    total_deductions_actual: Decimal
    net_pay: Decimal


@dataclass(frozen=True)
class PayrollDraft:
    """A fully computed payroll record still lacking its employee id."""
    row: int
    employee_no: str
    pay_period: str
    pay_date: str
    effective_work_days: int
    lop: int
    el_availed: int
    amounts: Dict[str, Decimal] = field(default_factory=dict)
    employer_pf: Optional[Decimal] = None
    totals: PayrollTotals = None

    @property
    def payslip_number(self) -> str:
        return f"PSL-{self.employee_no}-{self.pay_period}"

    @property
    def net_pay(self) -> Decimal:
        return self.totals.net_pay

    def to_payslip_data(self, employee_id) -> Dict[str, Any]:
        """Column values for persisting this draft as a Payslip."""
        data: Dict[str, Any] = {
            "employee_id": employee_id,
            "payslip_number": self.payslip_number,
            "pay_period": self.pay_period,
            "pay_date": self.pay_date,
            "effective_work_days": self.effective_work_days,
            "lop": self.lop,
            "el_availed": self.el_availed,
            "employer_pf": self.employer_pf,
            "total_earnings_full": self.totals.total_earnings_full,
            "total_earnings_actual": self.totals.total_earnings_actual,
            "total_deductions_actual": self.totals.total_deductions_actual,
            "net_pay": self.totals.net_pay,
        }
        data.update(self.amounts)
        return data


NormalizedRow = Union[PayrollDraft, RowValidationError]


# ===========================================
# OPERATIONS
# ===========================================

def compute_totals(amounts: Mapping[str, Decimal]) -> PayrollTotals:
    """Sum earning and deduction components; missing components count as 0."""
    zero = Decimal("0.00")
    earnings_full = sum(
        (amounts.get(f"{c}_full") or zero for c in EARNING_COMPONENTS), zero
    )
    earnings_actual = sum(
        (amounts.get(f"{c}_actual") or zero for c in EARNING_COMPONENTS), zero
    )
    deductions = sum(
        (amounts.get(f"{c}_actual") or zero for c in DEDUCTION_COMPONENTS), zero
    )
    return PayrollTotals(
        total_earnings_full=earnings_full,
        total_earnings_actual=earnings_actual,
        total_deductions_actual=deductions,
        net_pay=earnings_actual - deductions,
    )


def validate_required(row: RawRow) -> Optional[RowValidationError]:
    """Return a validation error if any required field is blank."""
    missing = tuple(name for name in REQUIRED_FIELDS if not row.text(name))
    if missing:
        return RowValidationError(row=row.index, employee_no=row.employee_no, missing_fields=missing)
    return None


def extract_employee_fields(row: RawRow) -> Dict[str, str]:
    """Employee-shaped attributes carried on a payroll row."""
    return {column: row.text(key) for key, column in EMPLOYEE_FIELDS.items()}


def normalize_payroll_row(row: RawRow) -> NormalizedRow:
    """Validate a row and derive its full payroll draft."""
    error = validate_required(row)
    if error is not None:
        return error

    amounts = {
        column: parse_amount(row.fields.get(key))
        for key, column in AMOUNT_FIELDS.items()
        if column != "employer_pf"
    }
    employer_pf = row.fields.get("employerPf")

    return PayrollDraft(
        row=row.index,
        employee_no=row.employee_no,
        pay_period=row.text("payPeriod"),
        pay_date=row.text("payDate"),
        effective_work_days=parse_count(row.fields.get("effectiveWorkDays"), 31),
        lop=parse_count(row.fields.get("lop"), 0),
        el_availed=parse_count(row.fields.get("elAvailed"), 0),
        amounts=amounts,
        employer_pf=parse_amount(employer_pf) if _text(employer_pf) else None,
        totals=compute_totals(amounts),
    )
