"""
Services for concession billing: payment evaluation and orchestration.
"""

from .concession_billing import (
    ConcessionBillingService,
    ConcessionBillingError,
    PaymentConfigNotFoundError,
    IncomeReportNotFoundError,
    IncomeReportMismatchError,
    IncomeReportAlreadyExistsError,
    PaymentAlreadyExistsError,
)
from .contract_terms import (
    ContractTermsService,
    InvestmentNotFoundError,
    InvalidInvestmentError,
)

__all__ = [
    "ConcessionBillingService",
    "ConcessionBillingError",
    "PaymentConfigNotFoundError",
    "IncomeReportNotFoundError",
    "IncomeReportMismatchError",
    "IncomeReportAlreadyExistsError",
    "PaymentAlreadyExistsError",
    "ContractTermsService",
    "InvestmentNotFoundError",
    "InvalidInvestmentError",
]
