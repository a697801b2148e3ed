"""
Per-kind contribution calculators for concession charge rules.

Each calculator takes one typed charge rule plus the period's income report
(which may be absent) and returns the rule's contribution, already rounded
to cents. CHARGE_CALCULATORS maps every ChargeKind to its calculator; the
module refuses to import if a kind is left without one.
"""

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Optional
import logging

from models.concession import (
    ChargeKind,
    ChargeRule,
    FixedCharge,
    IncomeBasis,
    IncomeReport,
    PercentageCharge,
    PerAreaCharge,
    PerUnitCharge,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Quantize to cents, rounding half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Contribution:
    amount: Decimal
    note: Optional[str] = None


def _fixed(rule: FixedCharge, income_report: Optional[IncomeReport],
           income_basis: IncomeBasis) -> Contribution:
    return Contribution(to_money(rule.fixed_amount))


def _percentage(rule: PercentageCharge, income_report: Optional[IncomeReport],
                income_basis: IncomeBasis) -> Contribution:
    if income_report is None:
        return Contribution(ZERO, "no income report for period")

    if income_basis == IncomeBasis.NET:
        income = income_report.net_income
        if income is None:
            return Contribution(ZERO, "net income not reported")
    else:
        income = income_report.gross_income

    return Contribution(to_money(income * rule.percentage / Decimal("100")))


def _per_unit(rule: PerUnitCharge, income_report: Optional[IncomeReport],
              income_basis: IncomeBasis) -> Contribution:
    if income_report is None:
        return Contribution(ZERO, "no income report for period")

    units = income_report.units_sold.get(rule.unit_type)
    if units is None:
        return Contribution(ZERO, f"no '{rule.unit_type}' units reported")

    return Contribution(to_money(units * rule.per_unit_amount))


def _per_m2(rule: PerAreaCharge, income_report: Optional[IncomeReport],
            income_basis: IncomeBasis) -> Contribution:
    return Contribution(to_money(rule.space_m2 * rule.per_m2_amount))


CHARGE_CALCULATORS: Dict[ChargeKind, Callable[..., Contribution]] = {
    ChargeKind.FIXED: _fixed,
    ChargeKind.PERCENTAGE: _percentage,
    ChargeKind.PER_UNIT: _per_unit,
    ChargeKind.PER_M2: _per_m2,
}

_missing = set(ChargeKind) - set(CHARGE_CALCULATORS)
if _missing:
    raise RuntimeError(f"No calculator registered for charge kinds: {sorted(k.value for k in _missing)}")


def calculate_contribution(
    rule: ChargeRule,
    income_report: Optional[IncomeReport],
    income_basis: IncomeBasis = IncomeBasis.GROSS,
) -> Contribution:
    """Dispatch a rule to the calculator for its kind."""
    calculator = CHARGE_CALCULATORS[ChargeKind(rule.charge_type)]
    return calculator(rule, income_report, income_basis)


def month_bounds(month: int, year: int):
    """First and last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def applies_to_period(rule: ChargeRule, month: int, year: int) -> bool:
    """
    Whether a rule's validity window covers the given month.

    A window covers the month when it overlaps any day of it. Missing
    bounds are open-ended.
    """
    first_day, last_day = month_bounds(month, year)
    if rule.start_date and rule.start_date > last_day:
        return False
    if rule.end_date and rule.end_date < first_day:
        return False
    return True
