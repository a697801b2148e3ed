"""
Payment Rule Evaluator for concession contracts.

Formula:
    subtotal = Σ fixed + Σ income × pct / 100 + Σ units × rate + Σ m² × rate
    total    = MAX(subtotal, minimum_guarantee)   (when a guarantee is configured)

Every rule contribution is rounded half-up to cents before it is summed.
A missing income report is not an error: percentage and per-unit rules
simply contribute zero.

The evaluator is a pure function of its inputs. Loading inputs and
persisting the resulting MonthlyPayment belong to ConcessionBillingService.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import logging

from pydantic import TypeAdapter, ValidationError

from models.concession import (
    BaseChargeRule,
    BreakdownEntry,
    ChargeKind,
    ChargeRule,
    IncomeReport,
    MonthlyPayment,
    PaymentConfiguration,
)
from services.payments.charge_rules import (
    CENT,
    ZERO,
    applies_to_period,
    calculate_contribution,
    to_money,
)

logger = logging.getLogger(__name__)

_CHARGE_RULE_ADAPTER = TypeAdapter(ChargeRule)

# MonthlyPayment field that accumulates each kind's contributions
SUBTOTAL_FIELDS: Dict[ChargeKind, str] = {
    ChargeKind.FIXED: "fixed_amount",
    ChargeKind.PERCENTAGE: "percentage_amount",
    ChargeKind.PER_UNIT: "per_unit_amount",
    ChargeKind.PER_M2: "space_amount",
}


class PaymentCalculationError(Exception):
    """Base class for payment evaluation failures."""
    pass


class InvalidConfiguration(PaymentCalculationError):
    """Raised when a payment configuration's minimum guarantee is malformed."""
    pass


class InvalidRule(PaymentCalculationError):
    """Raised when a charge rule lacks a parameter its kind requires."""
    pass


def validate_configuration(config: PaymentConfiguration) -> None:
    """
    Check the minimum guarantee setup.

    Raises:
        InvalidConfiguration: guarantee enabled without a non-negative amount
            in whole cents
    """
    if not config.has_minimum_guarantee:
        return

    amount = config.minimum_guarantee_amount
    if amount is None:
        raise InvalidConfiguration(
            f"Contract {config.contract_id}: minimum guarantee enabled but no amount set"
        )
    if amount < 0:
        raise InvalidConfiguration(
            f"Contract {config.contract_id}: minimum guarantee amount {amount} is negative"
        )
    if amount != amount.quantize(CENT):
        raise InvalidConfiguration(
            f"Contract {config.contract_id}: minimum guarantee amount {amount} "
            f"has more than 2 decimal places"
        )


def _describe_error(err: Dict[str, Any]) -> str:
    # Union errors are located under the variant tag, e.g. ('per_unit', 'unit_type')
    loc = err.get("loc") or ()
    field = ".".join(str(part) for part in loc[1:]) or "rule"
    return f"{field}: {err['msg']}"


def parse_charge_rule(raw: Union[BaseChargeRule, Mapping[str, Any]]) -> ChargeRule:
    """
    Coerce a stored charge row (or an already typed rule) to its typed variant.

    Raises:
        InvalidRule: unknown kind or a required parameter is missing/invalid
    """
    if isinstance(raw, BaseChargeRule):
        return raw

    try:
        return _CHARGE_RULE_ADAPTER.validate_python(dict(raw))
    except ValidationError as e:
        name = raw.get("name") or f"#{raw.get('id')}"
        problems = "; ".join(_describe_error(err) for err in e.errors())
        raise InvalidRule(
            f"Charge rule '{name}' ({raw.get('charge_type')}) is invalid: {problems}"
        ) from e


class PaymentRuleEvaluator:
    """
    Computes the MonthlyPayment for one contract period.

    Usage:
        evaluator = PaymentRuleEvaluator()
        payment = evaluator.evaluate(config, rules, income_report, month=3, year=2025)
    """

    def evaluate(
        self,
        config: PaymentConfiguration,
        rules: Iterable[Union[BaseChargeRule, Mapping[str, Any]]],
        income_report: Optional[IncomeReport] = None,
        *,
        month: int,
        year: int,
    ) -> MonthlyPayment:
        """
        Evaluate a contract's charge rules for one month.

        Args:
            config: Payment configuration (guarantee, income basis)
            rules: Charge rules, typed or as stored rows. Inactive rules and
                rules whose validity window misses the month are skipped.
            income_report: Declared income for the period, if any
            month: Target month (1-12)
            year: Target year

        Returns:
            MonthlyPayment with per-kind subtotals, guarantee outcome and breakdown

        Raises:
            InvalidConfiguration: malformed minimum guarantee
            InvalidRule: a rule is missing a parameter its kind requires
        """
        validate_configuration(config)
        typed_rules = [parse_charge_rule(rule) for rule in rules]

        subtotals = {field: ZERO for field in SUBTOTAL_FIELDS.values()}
        breakdown: List[BreakdownEntry] = []
        excluded: List[Dict[str, Any]] = []

        for rule in typed_rules:
            if not rule.is_active:
                excluded.append({"rule_id": rule.id, "rule_name": rule.name, "reason": "inactive"})
                continue
            if not applies_to_period(rule, month, year):
                excluded.append({"rule_id": rule.id, "rule_name": rule.name, "reason": "outside validity window"})
                continue

            kind = ChargeKind(rule.charge_type)
            if not config.kind_enabled(kind):
                logger.warning(
                    f"Contract {config.contract_id}: rule '{rule.name}' is {kind.value} "
                    f"but the configuration does not flag that charge kind"
                )

            contribution = calculate_contribution(rule, income_report, config.income_basis)
            subtotals[SUBTOTAL_FIELDS[kind]] += contribution.amount
            breakdown.append(
                BreakdownEntry(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    charge_type=kind,
                    contribution=contribution.amount,
                    note=contribution.note,
                )
            )

        subtotal = sum(subtotals.values(), ZERO)

        guarantee_applied = False
        adjustment = ZERO
        total = subtotal

        if config.has_minimum_guarantee:
            floor = to_money(config.minimum_guarantee_amount)
            if floor > subtotal:
                guarantee_applied = True
                adjustment = floor - subtotal
                total = floor

        payment = MonthlyPayment(
            contract_id=config.contract_id,
            payment_month=month,
            payment_year=year,
            income_report_id=income_report.id if income_report is not None else None,
            subtotal=subtotal,
            minimum_guarantee_applied=guarantee_applied,
            minimum_guarantee_adjustment=adjustment,
            total_amount=total,
            breakdown=breakdown,
            calculation_inputs=self._snapshot_inputs(
                config, typed_rules, income_report, month, year, excluded
            ),
            **subtotals,
        )

        logger.info(
            f"Contract {config.contract_id} {year}-{month:02d}: "
            f"fixed={payment.fixed_amount}, percentage={payment.percentage_amount}, "
            f"per_unit={payment.per_unit_amount}, space={payment.space_amount}, "
            f"subtotal={subtotal}, guarantee_applied={guarantee_applied}, total={total}"
        )

        return payment

    @staticmethod
    def _snapshot_inputs(
        config: PaymentConfiguration,
        rules: List[ChargeRule],
        income_report: Optional[IncomeReport],
        month: int,
        year: int,
        excluded: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """JSON-safe record of everything the calculation depended on."""
        report = None
        if income_report is not None:
            report = income_report.model_dump(
                mode="json",
                include={"id", "gross_income", "net_income", "units_sold", "is_verified"},
            )

        return {
            "period": {"month": month, "year": year},
            "config": config.model_dump(
                mode="json",
                include={"id", "has_minimum_guarantee", "minimum_guarantee_amount", "income_basis"},
            ),
            "rules": [rule.model_dump(mode="json") for rule in rules],
            "income_report": report,
            "excluded_rules": excluded,
        }
