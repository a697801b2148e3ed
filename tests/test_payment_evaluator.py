"""
Unit tests for the concession Payment Rule Evaluator.
"""

import pytest
from datetime import date
from decimal import Decimal

from models.concession import (
    FixedCharge,
    IncomeBasis,
    IncomeReport,
    PaymentConfiguration,
    PercentageCharge,
    PerAreaCharge,
    PerUnitCharge,
)
from services.payments.evaluator import (
    InvalidConfiguration,
    InvalidRule,
    PaymentRuleEvaluator,
    parse_charge_rule,
)


# Test Data Fixtures

@pytest.fixture
def evaluator():
    return PaymentRuleEvaluator()


@pytest.fixture
def plain_config():
    """Contract without minimum guarantee."""
    return PaymentConfiguration(id=1, contract_id=12, has_fixed_payment=True)


@pytest.fixture
def guaranteed_config():
    """Contract with a 1000.00 monthly minimum guarantee."""
    return PaymentConfiguration(
        id=2,
        contract_id=12,
        has_fixed_payment=True,
        has_percentage_payment=True,
        has_minimum_guarantee=True,
        minimum_guarantee_amount=Decimal("1000"),
    )


@pytest.fixture
def march_report():
    """March 2025 income report: 2000 gross, 1500 net, 40 parking units."""
    return IncomeReport(
        id=41,
        contract_id=12,
        report_month=3,
        report_year=2025,
        gross_income=Decimal("2000"),
        net_income=Decimal("1500"),
        units_sold={"parking": Decimal("40")},
    )


# Documented examples

def test_single_fixed_rule(evaluator, plain_config):
    """One fixed rule of 1000, no guarantee -> total 1000.00."""
    rules = [FixedCharge(id=1, name="Base rent", fixed_amount=Decimal("1000"))]

    payment = evaluator.evaluate(plain_config, rules, month=3, year=2025)

    assert payment.fixed_amount == Decimal("1000.00")
    assert payment.subtotal == Decimal("1000.00")
    assert payment.total_amount == Decimal("1000.00")
    assert payment.minimum_guarantee_applied is False
    assert str(payment.total_amount) == "1000.00"


def test_percentage_rule_on_gross_income(evaluator, plain_config):
    """10% of 5000 gross income -> 500.00."""
    report = IncomeReport(
        id=5, contract_id=12, report_month=3, report_year=2025, gross_income=Decimal("5000")
    )
    rules = [PercentageCharge(id=2, name="Sales share", percentage=Decimal("10"))]

    payment = evaluator.evaluate(plain_config, rules, report, month=3, year=2025)

    assert payment.percentage_amount == Decimal("500.00")
    assert payment.total_amount == Decimal("500.00")
    assert payment.income_report_id == 5


def test_minimum_guarantee_tops_up_shortfall(evaluator, guaranteed_config, march_report):
    """300 fixed + 5% of 2000 = 400; guarantee 1000 adds 600."""
    rules = [
        FixedCharge(id=1, name="Base rent", fixed_amount=Decimal("300")),
        PercentageCharge(id=2, name="Sales share", percentage=Decimal("5")),
    ]

    payment = evaluator.evaluate(guaranteed_config, rules, march_report, month=3, year=2025)

    assert payment.fixed_amount == Decimal("300.00")
    assert payment.percentage_amount == Decimal("100.00")
    assert payment.subtotal == Decimal("400.00")
    assert payment.minimum_guarantee_applied is True
    assert payment.minimum_guarantee_adjustment == Decimal("600.00")
    assert payment.total_amount == Decimal("1000.00")


def test_per_area_rule(evaluator, plain_config):
    """50 m² at 20/m² -> 1000.00, independent of income."""
    rules = [PerAreaCharge(id=3, name="Kiosk space", space_m2=Decimal("50"), per_m2_amount=Decimal("20"))]

    payment = evaluator.evaluate(plain_config, rules, month=3, year=2025)

    assert payment.space_amount == Decimal("1000.00")
    assert payment.total_amount == Decimal("1000.00")


def test_per_unit_rule(evaluator, plain_config, march_report):
    """40 parking units at 15 -> 600.00."""
    rules = [PerUnitCharge(id=4, name="Parking", unit_type="parking", per_unit_amount=Decimal("15"))]

    payment = evaluator.evaluate(plain_config, rules, march_report, month=3, year=2025)

    assert payment.per_unit_amount == Decimal("600.00")
    assert payment.total_amount == Decimal("600.00")


# Properties

def test_fixed_only_ignores_income_report(evaluator, plain_config, march_report):
    """Fixed-only rule sets total the flat amounts with or without a report."""
    rules = [
        FixedCharge(name="Base rent", fixed_amount=Decimal("250.50")),
        FixedCharge(name="Maintenance fee", fixed_amount=Decimal("49.50")),
    ]

    with_report = evaluator.evaluate(plain_config, rules, march_report, month=3, year=2025)
    without_report = evaluator.evaluate(plain_config, rules, month=3, year=2025)

    for payment in (with_report, without_report):
        assert payment.subtotal == Decimal("300.00")
        assert payment.total_amount == payment.subtotal


def test_missing_income_report_contributes_zero(evaluator, plain_config):
    """Income-based rules without a report yield zero, not an error."""
    rules = [
        PercentageCharge(id=2, name="Sales share", percentage=Decimal("10")),
        PerUnitCharge(id=4, name="Parking", unit_type="parking", per_unit_amount=Decimal("15")),
    ]

    payment = evaluator.evaluate(plain_config, rules, None, month=3, year=2025)

    assert payment.subtotal == Decimal("0.00")
    assert payment.total_amount == Decimal("0.00")
    assert payment.income_report_id is None
    assert all(entry.contribution == Decimal("0.00") for entry in payment.breakdown)
    assert all(entry.note == "no income report for period" for entry in payment.breakdown)


def test_unreported_unit_type_contributes_zero(evaluator, plain_config, march_report):
    rules = [PerUnitCharge(name="Boat rental", unit_type="boats", per_unit_amount=Decimal("30"))]

    payment = evaluator.evaluate(plain_config, rules, march_report, month=3, year=2025)

    assert payment.per_unit_amount == Decimal("0.00")
    assert payment.breakdown[0].note == "no 'boats' units reported"


def test_guarantee_not_applied_when_subtotal_covers_it(evaluator, guaranteed_config, march_report):
    rules = [FixedCharge(name="Base rent", fixed_amount=Decimal("1200"))]

    payment = evaluator.evaluate(guaranteed_config, rules, march_report, month=3, year=2025)

    assert payment.minimum_guarantee_applied is False
    assert payment.minimum_guarantee_adjustment == Decimal("0.00")
    assert payment.total_amount == payment.subtotal == Decimal("1200.00")


def test_guarantee_exactly_met_is_not_applied(evaluator, guaranteed_config):
    rules = [FixedCharge(name="Base rent", fixed_amount=Decimal("1000.00"))]

    payment = evaluator.evaluate(guaranteed_config, rules, month=3, year=2025)

    assert payment.minimum_guarantee_applied is False
    assert payment.total_amount == Decimal("1000.00")


@pytest.mark.parametrize("fixed_amount", ["0", "1", "999.99", "1000", "1000.01", "25000"])
def test_guarantee_is_a_floor(evaluator, guaranteed_config, fixed_amount):
    rules = [FixedCharge(name="Base rent", fixed_amount=Decimal(fixed_amount))]

    payment = evaluator.evaluate(guaranteed_config, rules, month=3, year=2025)

    assert payment.total_amount >= Decimal("1000.00")
    assert payment.total_amount >= payment.subtotal
    if payment.subtotal >= Decimal("1000"):
        assert payment.total_amount == payment.subtotal


def test_no_guarantee_never_applies(evaluator):
    """A guarantee amount without the flag is ignored."""
    config = PaymentConfiguration(
        contract_id=12, has_minimum_guarantee=False, minimum_guarantee_amount=Decimal("5000")
    )
    rules = [FixedCharge(name="Base rent", fixed_amount=Decimal("10"))]

    payment = evaluator.evaluate(config, rules, month=3, year=2025)

    assert payment.minimum_guarantee_applied is False
    assert payment.total_amount == payment.subtotal == Decimal("10.00")


def test_evaluation_is_deterministic(evaluator, guaranteed_config, march_report):
    """Same inputs produce byte-identical output."""
    rules = [
        FixedCharge(id=1, name="Base rent", fixed_amount=Decimal("300")),
        PercentageCharge(id=2, name="Sales share", percentage=Decimal("5")),
        PerUnitCharge(id=4, name="Parking", unit_type="parking", per_unit_amount=Decimal("15")),
    ]

    first = evaluator.evaluate(guaranteed_config, rules, march_report, month=3, year=2025)
    second = evaluator.evaluate(guaranteed_config, rules, march_report, month=3, year=2025)

    assert first.model_dump_json() == second.model_dump_json()


def test_contributions_rounded_half_up_before_summing(evaluator, plain_config):
    """Each 0.125 percentage share rounds to 0.13 before the sum."""
    report = IncomeReport(contract_id=12, report_month=3, report_year=2025, gross_income=Decimal("12.50"))
    rules = [
        PercentageCharge(name="Share A", percentage=Decimal("1")),
        PercentageCharge(name="Share B", percentage=Decimal("1")),
    ]

    payment = evaluator.evaluate(plain_config, rules, report, month=3, year=2025)

    assert [entry.contribution for entry in payment.breakdown] == [Decimal("0.13"), Decimal("0.13")]
    assert payment.percentage_amount == Decimal("0.26")


def test_net_income_basis(evaluator, march_report):
    config = PaymentConfiguration(contract_id=12, income_basis=IncomeBasis.NET)
    rules = [PercentageCharge(name="Sales share", percentage=Decimal("10"))]

    payment = evaluator.evaluate(config, rules, march_report, month=3, year=2025)

    assert payment.percentage_amount == Decimal("150.00")


def test_net_income_basis_without_net_figure(evaluator):
    config = PaymentConfiguration(contract_id=12, income_basis="net")
    report = IncomeReport(contract_id=12, report_month=3, report_year=2025, gross_income=Decimal("900"))
    rules = [PercentageCharge(name="Sales share", percentage=Decimal("10"))]

    payment = evaluator.evaluate(config, rules, report, month=3, year=2025)

    assert payment.percentage_amount == Decimal("0.00")
    assert payment.breakdown[0].note == "net income not reported"


def test_inactive_and_out_of_window_rules_are_skipped(evaluator, plain_config):
    rules = [
        FixedCharge(id=1, name="Current rent", fixed_amount=Decimal("100")),
        FixedCharge(id=2, name="Old rent", fixed_amount=Decimal("80"), is_active=False),
        FixedCharge(id=3, name="Expired surcharge", fixed_amount=Decimal("50"),
                    end_date=date(2025, 2, 28)),
        FixedCharge(id=4, name="Summer surcharge", fixed_amount=Decimal("40"),
                    start_date=date(2025, 6, 1)),
        FixedCharge(id=5, name="Mid-month surcharge", fixed_amount=Decimal("10"),
                    start_date=date(2025, 3, 15), end_date=date(2025, 4, 15)),
    ]

    payment = evaluator.evaluate(plain_config, rules, month=3, year=2025)

    assert payment.total_amount == Decimal("110.00")
    assert [entry.rule_id for entry in payment.breakdown] == [1, 5]

    excluded = payment.calculation_inputs["excluded_rules"]
    assert {item["rule_id"]: item["reason"] for item in excluded} == {
        2: "inactive",
        3: "outside validity window",
        4: "outside validity window",
    }


def test_breakdown_lists_each_rule(evaluator, plain_config, march_report):
    rules = [
        FixedCharge(id=1, name="Base rent", fixed_amount=Decimal("300")),
        PerAreaCharge(id=3, name="Terrace", space_m2=Decimal("12.5"), per_m2_amount=Decimal("8")),
    ]

    payment = evaluator.evaluate(plain_config, rules, march_report, month=3, year=2025)

    assert [(e.rule_name, e.charge_type.value, e.contribution) for e in payment.breakdown] == [
        ("Base rent", "fixed", Decimal("300.00")),
        ("Terrace", "per_m2", Decimal("100.00")),
    ]


def test_calculation_inputs_snapshot(evaluator, guaranteed_config, march_report):
    rules = [FixedCharge(id=1, name="Base rent", fixed_amount=Decimal("300"))]

    payment = evaluator.evaluate(guaranteed_config, rules, march_report, month=3, year=2025)
    inputs = payment.calculation_inputs

    assert inputs["period"] == {"month": 3, "year": 2025}
    assert inputs["config"]["has_minimum_guarantee"] is True
    assert inputs["config"]["income_basis"] == "gross"
    assert inputs["income_report"]["id"] == 41
    assert inputs["rules"][0]["name"] == "Base rent"


# Stored rows and validation errors

def test_evaluates_stored_rows(evaluator, plain_config, march_report):
    """Rules loaded as database rows are coerced to their typed kind."""
    rows = [
        {
            "id": 1, "payment_config_id": 1, "charge_type": "fixed", "name": "Base rent",
            "fixed_amount": Decimal("300.00"), "percentage": None, "unit_type": None,
            "is_active": True, "start_date": None, "end_date": None,
        },
        {
            "id": 2, "payment_config_id": 1, "charge_type": "per_unit", "name": "Parking",
            "per_unit_amount": Decimal("15.00"), "unit_type": "parking",
            "is_active": True, "start_date": None, "end_date": None,
        },
    ]

    payment = evaluator.evaluate(plain_config, rows, march_report, month=3, year=2025)

    assert payment.total_amount == Decimal("900.00")


def test_per_unit_rule_without_unit_type_is_invalid(evaluator, plain_config):
    rows = [{"id": 7, "charge_type": "per_unit", "name": "Parking",
             "per_unit_amount": Decimal("15"), "unit_type": None}]

    with pytest.raises(InvalidRule) as exc_info:
        evaluator.evaluate(plain_config, rows, month=3, year=2025)

    assert "Parking" in str(exc_info.value)
    assert "unit_type" in str(exc_info.value)


def test_per_area_rule_without_area_is_invalid():
    with pytest.raises(InvalidRule) as exc_info:
        parse_charge_rule({"charge_type": "per_m2", "name": "Kiosk", "per_m2_amount": "20"})

    assert "space_m2" in str(exc_info.value)


def test_per_area_rule_without_rate_is_invalid():
    with pytest.raises(InvalidRule):
        parse_charge_rule({"charge_type": "per_m2", "name": "Kiosk", "space_m2": "50"})


def test_unknown_charge_type_is_invalid():
    with pytest.raises(InvalidRule):
        parse_charge_rule({"charge_type": "per_visitor", "name": "Entrance fee"})


def test_guarantee_without_amount_is_invalid(evaluator):
    config = PaymentConfiguration(contract_id=12, has_minimum_guarantee=True)

    with pytest.raises(InvalidConfiguration):
        evaluator.evaluate(config, [], month=3, year=2025)


def test_negative_guarantee_is_invalid(evaluator):
    config = PaymentConfiguration(
        contract_id=12, has_minimum_guarantee=True, minimum_guarantee_amount=Decimal("-1")
    )

    with pytest.raises(InvalidConfiguration):
        evaluator.evaluate(config, [], month=3, year=2025)


def test_no_rules_no_guarantee_is_zero(evaluator, plain_config):
    payment = evaluator.evaluate(plain_config, [], month=3, year=2025)

    assert payment.total_amount == Decimal("0.00")
    assert payment.breakdown == []


def test_guarantee_with_sub_cent_amount_is_invalid(evaluator):
    """A floor that cannot be billed in whole cents is rejected, not rounded down."""
    config = PaymentConfiguration(
        contract_id=12, has_minimum_guarantee=True, minimum_guarantee_amount=Decimal("999.994")
    )

    with pytest.raises(InvalidConfiguration) as exc_info:
        evaluator.evaluate(config, [], month=3, year=2025)

    assert "decimal places" in str(exc_info.value)


def test_guarantee_with_trailing_zero_digits_is_valid(evaluator):
    config = PaymentConfiguration(
        contract_id=12, has_minimum_guarantee=True, minimum_guarantee_amount=Decimal("999.990")
    )

    payment = evaluator.evaluate(config, [], month=3, year=2025)

    assert payment.total_amount == Decimal("999.99")
    assert payment.total_amount >= config.minimum_guarantee_amount


def test_negative_unit_counts_are_rejected():
    """Per-unit contributions can never go negative."""
    with pytest.raises(ValueError):
        IncomeReport(
            contract_id=12, report_month=3, report_year=2025,
            units_sold={"parking": Decimal("-40")},
        )


def test_contributions_are_never_negative(evaluator, march_report):
    config = PaymentConfiguration(contract_id=12)
    rules = [
        FixedCharge(name="Base rent", fixed_amount=Decimal("0")),
        PercentageCharge(name="Sales share", percentage=Decimal("0.01")),
        PerUnitCharge(name="Parking", unit_type="parking", per_unit_amount=Decimal("0.01")),
        PerAreaCharge(name="Kiosk", space_m2=Decimal("0.01"), per_m2_amount=Decimal("0.01")),
    ]

    payment = evaluator.evaluate(config, rules, march_report, month=3, year=2025)

    assert all(entry.contribution >= 0 for entry in payment.breakdown)
    assert payment.total_amount >= 0
