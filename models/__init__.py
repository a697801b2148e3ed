"""
Pydantic models for the concession billing system.

This module exports the data models used for payment configurations,
charge rules, income reports and monthly payment calculation.
"""

from .concession import (
    # Enums
    ChargeKind,
    IncomeBasis,
    PaymentStatus,
    ChargeFrequency,
    InvestmentStatus,
    BonusType,
    # Charge rules
    BaseChargeRule,
    FixedCharge,
    PercentageCharge,
    PerUnitCharge,
    PerAreaCharge,
    ChargeRule,
    # Domain models
    PaymentConfiguration,
    IncomeReport,
    BreakdownEntry,
    MonthlyPayment,
    MonthlyPaymentRecord,
    MonthlyPaymentListItem,
    # Contract obligations
    ContractInvestment,
    ContractBonus,
    AuthorizedService,
    # Request/response models
    PaymentConfigRequest,
    PaymentConfigResponse,
    IncomeReportCreateRequest,
    VerifyIncomeReportRequest,
    CalculatePaymentRequest,
    InvestmentCreateRequest,
    InvestmentUpdateRequest,
    BonusCreateRequest,
    AuthorizedServiceCreateRequest,
)

__all__ = [
    # Enums
    "ChargeKind",
    "IncomeBasis",
    "PaymentStatus",
    "ChargeFrequency",
    "InvestmentStatus",
    "BonusType",
    # Charge rules
    "BaseChargeRule",
    "FixedCharge",
    "PercentageCharge",
    "PerUnitCharge",
    "PerAreaCharge",
    "ChargeRule",
    # Domain models
    "PaymentConfiguration",
    "IncomeReport",
    "BreakdownEntry",
    "MonthlyPayment",
    "MonthlyPaymentRecord",
    "MonthlyPaymentListItem",
    # Contract obligations
    "ContractInvestment",
    "ContractBonus",
    "AuthorizedService",
    # Request/response models
    "PaymentConfigRequest",
    "PaymentConfigResponse",
    "IncomeReportCreateRequest",
    "VerifyIncomeReportRequest",
    "CalculatePaymentRequest",
    "InvestmentCreateRequest",
    "InvestmentUpdateRequest",
    "BonusCreateRequest",
    "AuthorizedServiceCreateRequest",
]
