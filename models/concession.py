"""
Pydantic models for concession billing.

A concession contract carries one payment configuration made of charge
rules (fixed, percentage of income, per unit sold, per m² of occupied
space) and an optional minimum guarantee. Concessionaires submit monthly
income reports, and the payment evaluator turns configuration + report
into a MonthlyPayment.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================

class ChargeKind(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    PER_UNIT = "per_unit"
    PER_M2 = "per_m2"


class IncomeBasis(str, Enum):
    """Which declared income figure percentage charges apply to."""
    GROSS = "gross"
    NET = "net"


class PaymentStatus(str, Enum):
    COMPUTED = "computed"
    PAID = "paid"


class ChargeFrequency(str, Enum):
    """How often a charge or bonus is due. Descriptive; evaluation is monthly."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    ONE_TIME = "one_time"


class InvestmentStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BonusType(str, Enum):
    BONUS = "bonus"
    PENALTY = "penalty"


# Money and quantities as stored in NUMERIC(*, 2) columns
Money = Annotated[Decimal, Field(ge=0, decimal_places=2)]
UnitCount = Annotated[Decimal, Field(ge=0)]


# =============================================================================
# CHARGE RULES
# =============================================================================

class BaseChargeRule(BaseModel):
    """Fields shared by every charge rule kind."""

    id: Optional[int] = Field(None, description="Database ID (absent before insert)")
    name: str = Field(..., min_length=1, description="Display name of the charge")
    description: Optional[str] = None
    frequency: ChargeFrequency = Field(
        ChargeFrequency.MONTHLY.value, description="Billing frequency stated in the contract"
    )
    is_active: bool = Field(True, description="Inactive rules are ignored by the evaluator")
    start_date: Optional[date] = Field(None, description="First day the rule applies (inclusive)")
    end_date: Optional[date] = Field(None, description="Last day the rule applies (inclusive)")

    model_config = ConfigDict(use_enum_values=True)

    @model_validator(mode="after")
    def _check_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class FixedCharge(BaseChargeRule):
    charge_type: Literal["fixed"] = "fixed"
    fixed_amount: Decimal = Field(..., ge=0, decimal_places=2, description="Flat amount charged each month")


class PercentageCharge(BaseChargeRule):
    charge_type: Literal["percentage"] = "percentage"
    percentage: Decimal = Field(
        ..., ge=0, le=100, decimal_places=2, description="Share of declared income, 0-100"
    )


class PerUnitCharge(BaseChargeRule):
    charge_type: Literal["per_unit"] = "per_unit"
    per_unit_amount: Decimal = Field(..., ge=0, decimal_places=2, description="Amount charged per unit sold")
    unit_type: str = Field(..., min_length=1, description="Key into IncomeReport.units_sold")


class PerAreaCharge(BaseChargeRule):
    charge_type: Literal["per_m2"] = "per_m2"
    per_m2_amount: Decimal = Field(..., ge=0, decimal_places=2, description="Amount charged per m²")
    space_m2: Decimal = Field(..., ge=0, decimal_places=2, description="Occupied area in m²")


ChargeRule = Annotated[
    Union[FixedCharge, PercentageCharge, PerUnitCharge, PerAreaCharge],
    Field(discriminator="charge_type"),
]


# =============================================================================
# CONFIGURATION AND INCOME
# =============================================================================

class PaymentConfiguration(BaseModel):
    """
    Payment terms of one concession contract.

    The has_* flags describe which charge kinds the contract uses; they are
    informational and do not filter rules during evaluation.
    minimum_guarantee_amount is validated by the evaluator rather than here,
    so a malformed stored configuration surfaces as InvalidConfiguration.
    """

    id: Optional[int] = None
    contract_id: int = Field(..., description="Concession contract ID")
    has_fixed_payment: bool = False
    has_percentage_payment: bool = False
    has_per_unit_payment: bool = False
    has_space_payment: bool = False
    has_minimum_guarantee: bool = False
    minimum_guarantee_amount: Optional[Decimal] = Field(
        None, description="Monthly floor applied when has_minimum_guarantee is set"
    )
    income_basis: IncomeBasis = Field(
        IncomeBasis.GROSS, description="Income figure used by percentage charges"
    )
    notes: Optional[str] = None

    def kind_enabled(self, kind: ChargeKind) -> bool:
        return {
            ChargeKind.FIXED: self.has_fixed_payment,
            ChargeKind.PERCENTAGE: self.has_percentage_payment,
            ChargeKind.PER_UNIT: self.has_per_unit_payment,
            ChargeKind.PER_M2: self.has_space_payment,
        }[kind]


class IncomeReport(BaseModel):
    """A concessionaire's declared income and usage for one month."""

    id: Optional[int] = None
    contract_id: int
    report_month: int = Field(..., ge=1, le=12)
    report_year: int = Field(..., ge=2000, le=2100)
    gross_income: Decimal = Field(Decimal("0"), ge=0)
    net_income: Optional[Decimal] = Field(None, ge=0)
    units_sold: Dict[str, UnitCount] = Field(
        default_factory=dict, description="Units sold per unit type, e.g. {'parking': 40}"
    )
    service_breakdown: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    is_verified: bool = False
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


# =============================================================================
# CALCULATION RESULT
# =============================================================================

class BreakdownEntry(BaseModel):
    """Contribution of a single charge rule to a monthly payment."""

    rule_id: Optional[int] = None
    rule_name: str
    charge_type: ChargeKind
    contribution: Decimal
    note: Optional[str] = Field(None, description="Why the rule contributed zero, when it did")


class MonthlyPayment(BaseModel):
    """
    Amount owed by a concessionaire for one (contract, month, year).

    Produced by PaymentRuleEvaluator; never modified after it is stored,
    except for the settlement fields (status, paid_amount, paid_date).
    """

    contract_id: int
    payment_month: int = Field(..., ge=1, le=12)
    payment_year: int
    income_report_id: Optional[int] = None
    fixed_amount: Decimal = Decimal("0.00")
    percentage_amount: Decimal = Decimal("0.00")
    per_unit_amount: Decimal = Decimal("0.00")
    space_amount: Decimal = Decimal("0.00")
    subtotal: Decimal = Decimal("0.00")
    minimum_guarantee_applied: bool = False
    minimum_guarantee_adjustment: Decimal = Decimal("0.00")
    total_amount: Decimal = Decimal("0.00")
    breakdown: List[BreakdownEntry] = Field(default_factory=list)
    calculation_inputs: Dict[str, Any] = Field(
        default_factory=dict, description="Snapshot of the inputs used, for audit"
    )
    status: PaymentStatus = PaymentStatus.COMPUTED
    paid_amount: Optional[Decimal] = None
    paid_date: Optional[date] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "contract_id": 12,
                "payment_month": 3,
                "payment_year": 2025,
                "income_report_id": 41,
                "fixed_amount": "300.00",
                "percentage_amount": "100.00",
                "per_unit_amount": "0.00",
                "space_amount": "0.00",
                "subtotal": "400.00",
                "minimum_guarantee_applied": True,
                "minimum_guarantee_adjustment": "600.00",
                "total_amount": "1000.00",
                "breakdown": [
                    {"rule_id": 7, "rule_name": "Base rent", "charge_type": "fixed",
                     "contribution": "300.00", "note": None},
                    {"rule_id": 8, "rule_name": "Sales share", "charge_type": "percentage",
                     "contribution": "100.00", "note": None},
                ],
                "status": "computed",
            }
        }
    )


class MonthlyPaymentRecord(MonthlyPayment):
    """A stored MonthlyPayment."""

    id: int
    calculated_by: Optional[int] = None
    calculated_at: Optional[datetime] = None


class MonthlyPaymentListItem(MonthlyPaymentRecord):
    """Stored payment as listed, with the income report it was computed from."""

    income_report: Optional[IncomeReport] = None


# =============================================================================
# INVESTMENTS, BONUSES AND AUTHORIZED SERVICES
# =============================================================================
# Contract obligations kept next to the payment terms. They are records for
# administration and do not enter the monthly payment calculation.

class ContractInvestment(BaseModel):
    """An investment the concessionaire committed to, optionally amortized."""

    id: Optional[int] = None
    contract_id: int
    description: str = Field(..., min_length=1)
    estimated_value: Money
    actual_value: Optional[Money] = None
    deadline_date: Optional[date] = None
    completed_date: Optional[date] = None
    is_amortizable: bool = False
    amortization_months: Optional[int] = Field(None, ge=1)
    monthly_amortization: Optional[Money] = None
    status: InvestmentStatus = InvestmentStatus.PLANNED
    documentation: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InvestmentCreateRequest(BaseModel):
    """Request body for POST /api/contracts/{contract_id}/investments"""

    description: str = Field(..., min_length=1)
    estimated_value: Money
    actual_value: Optional[Money] = None
    deadline_date: Optional[date] = None
    completed_date: Optional[date] = None
    is_amortizable: bool = False
    amortization_months: Optional[int] = Field(None, ge=1)
    monthly_amortization: Optional[Money] = Field(
        None, description="Computed from the investment value when omitted"
    )
    status: InvestmentStatus = InvestmentStatus.PLANNED
    documentation: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Kiosk roof renovation",
                "estimated_value": "24000.00",
                "deadline_date": "2025-09-30",
                "is_amortizable": True,
                "amortization_months": 24,
            }
        }
    )


class InvestmentUpdateRequest(BaseModel):
    """Request body for PUT /api/investments/{investment_id}; only sent fields change."""

    description: Optional[str] = Field(None, min_length=1)
    estimated_value: Optional[Money] = None
    actual_value: Optional[Money] = None
    deadline_date: Optional[date] = None
    completed_date: Optional[date] = None
    is_amortizable: Optional[bool] = None
    amortization_months: Optional[int] = Field(None, ge=1)
    monthly_amortization: Optional[Money] = None
    status: Optional[InvestmentStatus] = None
    documentation: Optional[str] = None
    attachments: Optional[List[str]] = None


class ContractBonus(BaseModel):
    """A bonus granted to, or penalty imposed on, the concessionaire."""

    id: Optional[int] = None
    contract_id: int
    bonus_type: BonusType
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    amount: Money
    frequency: ChargeFrequency = ChargeFrequency.ONE_TIME
    conditions: Optional[str] = None
    evaluation_criteria: Optional[str] = None
    created_at: Optional[datetime] = None


class BonusCreateRequest(BaseModel):
    """Request body for POST /api/contracts/{contract_id}/bonuses"""

    bonus_type: BonusType
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    amount: Money
    frequency: ChargeFrequency = ChargeFrequency.ONE_TIME
    conditions: Optional[str] = None
    evaluation_criteria: Optional[str] = None


class AuthorizedService(BaseModel):
    """A service the concessionaire may offer, with its public rate cap."""

    id: Optional[int] = None
    contract_id: int
    service_name: str = Field(..., min_length=1)
    service_description: Optional[str] = None
    service_category: Optional[str] = None
    can_charge_public: bool = False
    max_public_rate: Optional[Money] = None
    rate_description: Optional[str] = None
    restrictions: Optional[str] = None
    required_permits: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class AuthorizedServiceCreateRequest(BaseModel):
    """Request body for POST /api/contracts/{contract_id}/authorized-services"""

    service_name: str = Field(..., min_length=1)
    service_description: Optional[str] = None
    service_category: Optional[str] = None
    can_charge_public: bool = False
    max_public_rate: Optional[Money] = None
    rate_description: Optional[str] = None
    restrictions: Optional[str] = None
    required_permits: List[str] = Field(default_factory=list)


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class PaymentConfigRequest(BaseModel):
    """Request body for POST /api/contracts/{contract_id}/payment-config"""

    has_fixed_payment: bool = False
    has_percentage_payment: bool = False
    has_per_unit_payment: bool = False
    has_space_payment: bool = False
    has_minimum_guarantee: bool = False
    minimum_guarantee_amount: Optional[Decimal] = Field(None, decimal_places=2)
    income_basis: IncomeBasis = IncomeBasis.GROSS
    notes: Optional[str] = None
    charges: Optional[List[ChargeRule]] = Field(
        None,
        description="New charge rules. When given, they supersede the currently active rules."
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "has_fixed_payment": True,
                "has_percentage_payment": True,
                "has_minimum_guarantee": True,
                "minimum_guarantee_amount": "1000.00",
                "charges": [
                    {"charge_type": "fixed", "name": "Base rent", "fixed_amount": "300.00"},
                    {"charge_type": "percentage", "name": "Sales share", "percentage": "5"},
                ],
            }
        }
    )


class PaymentConfigResponse(BaseModel):
    config: PaymentConfiguration
    charges: List[ChargeRule] = Field(default_factory=list)


class IncomeReportCreateRequest(BaseModel):
    """Request body for POST /api/contracts/{contract_id}/income-reports"""

    report_month: int = Field(..., ge=1, le=12)
    report_year: int = Field(..., ge=2000, le=2100)
    gross_income: Decimal = Field(..., ge=0)
    net_income: Optional[Decimal] = Field(None, ge=0)
    units_sold: Dict[str, UnitCount] = Field(default_factory=dict)
    service_breakdown: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None


class VerifyIncomeReportRequest(BaseModel):
    verified_by: Optional[int] = Field(None, description="User ID of the verifying administrator")


class CalculatePaymentRequest(BaseModel):
    """Request body for POST /api/contracts/{contract_id}/calculate-payment"""

    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    income_report_id: Optional[int] = Field(
        None, description="Income report to use; defaults to the report for the same period"
    )
    calculated_by: Optional[int] = Field(None, description="User ID requesting the calculation")

    model_config = ConfigDict(
        json_schema_extra={"example": {"month": 3, "year": 2025, "income_report_id": 41}}
    )
