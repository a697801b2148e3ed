"""
Concession payment calculation: charge rule calculators and the evaluator.
"""

from .charge_rules import CHARGE_CALCULATORS, Contribution, applies_to_period, calculate_contribution, to_money
from .evaluator import (
    PaymentRuleEvaluator,
    PaymentCalculationError,
    InvalidConfiguration,
    InvalidRule,
    parse_charge_rule,
    validate_configuration,
)

__all__ = [
    "CHARGE_CALCULATORS",
    "Contribution",
    "applies_to_period",
    "calculate_contribution",
    "to_money",
    "PaymentRuleEvaluator",
    "PaymentCalculationError",
    "InvalidConfiguration",
    "InvalidRule",
    "parse_charge_rule",
    "validate_configuration",
]
