"""
API endpoints for concession hybrid payments.

Provides REST interface for payment configurations, income reports,
monthly payment calculation and the contract terms kept alongside them
(investments, bonuses/penalties, authorized services).
"""

from typing import List, Optional
import logging

from fastapi import APIRouter, HTTPException, Path, Query, Request, status

from middleware.rate_limiter import limit_calculate
from models.concession import (
    AuthorizedService,
    AuthorizedServiceCreateRequest,
    BonusCreateRequest,
    CalculatePaymentRequest,
    ContractBonus,
    ContractInvestment,
    IncomeReport,
    IncomeReportCreateRequest,
    InvestmentCreateRequest,
    InvestmentUpdateRequest,
    MonthlyPayment,
    MonthlyPaymentListItem,
    MonthlyPaymentRecord,
    PaymentConfigRequest,
    PaymentConfigResponse,
    VerifyIncomeReportRequest,
)
from services.concession_billing import (
    ConcessionBillingService,
    ConcessionBillingError,
    IncomeReportAlreadyExistsError,
    IncomeReportMismatchError,
    IncomeReportNotFoundError,
    PaymentAlreadyExistsError,
    PaymentConfigNotFoundError,
)
from services.contract_terms import (
    ContractTermsService,
    InvalidInvestmentError,
    InvestmentNotFoundError,
)
from services.payments.evaluator import (
    InvalidConfiguration,
    InvalidRule,
    PaymentCalculationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Concession Payments"],
    responses={
        400: {"description": "Invalid payment configuration or charge rule"},
        404: {"description": "Resource not found"},
        409: {"description": "Record already exists for the period"},
        500: {"description": "Internal server error"},
    },
)


# Domain error -> (HTTP status, machine-readable error kind)
ERROR_RESPONSES = [
    (InvalidConfiguration, status.HTTP_400_BAD_REQUEST, "InvalidConfiguration"),
    (InvalidRule, status.HTTP_400_BAD_REQUEST, "InvalidRule"),
    (IncomeReportMismatchError, status.HTTP_400_BAD_REQUEST, "IncomeReportMismatch"),
    (InvalidInvestmentError, status.HTTP_400_BAD_REQUEST, "InvalidInvestment"),
    (PaymentConfigNotFoundError, status.HTTP_404_NOT_FOUND, "NotFound"),
    (IncomeReportNotFoundError, status.HTTP_404_NOT_FOUND, "NotFound"),
    (InvestmentNotFoundError, status.HTTP_404_NOT_FOUND, "NotFound"),
    (PaymentAlreadyExistsError, status.HTTP_409_CONFLICT, "PaymentAlreadyExists"),
    (IncomeReportAlreadyExistsError, status.HTTP_409_CONFLICT, "IncomeReportAlreadyExists"),
]


def _domain_error(exc: Exception) -> HTTPException:
    """Translate a billing/evaluator error into an HTTPException."""
    for error_class, status_code, kind in ERROR_RESPONSES:
        if isinstance(exc, error_class):
            return HTTPException(
                status_code=status_code,
                detail={"success": False, "error": kind, "message": str(exc)},
            )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"success": False, "error": type(exc).__name__, "message": str(exc)},
    )


def _internal_error(action: str, exc: Exception) -> HTTPException:
    logger.error(f"{action} failed: {exc}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"success": False, "error": "InternalError", "message": f"{action} failed"},
    )


# =============================================================================
# Payment configuration
# =============================================================================

@router.get("/contracts/{contract_id}/payment-config", response_model=PaymentConfigResponse)
async def get_payment_config(
    contract_id: int = Path(..., description="Concession contract ID")
):
    """
    Get a contract's payment configuration and its active charge rules.
    """
    try:
        service = ConcessionBillingService()
        return service.get_payment_config(contract_id)

    except (PaymentCalculationError, ConcessionBillingError) as e:
        raise _domain_error(e)
    except Exception as e:
        raise _internal_error("Loading payment configuration", e)


@router.post("/contracts/{contract_id}/payment-config", response_model=PaymentConfigResponse)
async def save_payment_config(
    body: PaymentConfigRequest,
    contract_id: int = Path(..., description="Concession contract ID")
):
    """
    Create or update a contract's payment configuration.

    When `charges` is present the current charge rules are superseded: they
    are deactivated (kept for audit) and the new rules inserted.

    **Example Request:**
    ```json
    {
      "has_fixed_payment": true,
      "has_percentage_payment": true,
      "has_minimum_guarantee": true,
      "minimum_guarantee_amount": "1000.00",
      "charges": [
        {"charge_type": "fixed", "name": "Base rent", "fixed_amount": "300.00"},
        {"charge_type": "percentage", "name": "Sales share", "percentage": "5"}
      ]
    }
    ```
    """
    try:
        service = ConcessionBillingService()
        return service.save_payment_config(contract_id, body)

    except (PaymentCalculationError, ConcessionBillingError) as e:
        raise _domain_error(e)
    except Exception as e:
        raise _internal_error("Saving payment configuration", e)


# =============================================================================
# Income reports
# =============================================================================

@router.get("/contracts/{contract_id}/income-reports", response_model=List[IncomeReport])
async def list_income_reports(
    contract_id: int = Path(..., description="Concession contract ID"),
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Filter by report year"),
    month: Optional[int] = Query(None, ge=1, le=12, description="Filter by report month"),
):
    """List a contract's income reports, newest period first."""
    try:
        service = ConcessionBillingService()
        return service.list_income_reports(contract_id, year=year, month=month)

    except Exception as e:
        raise _internal_error("Listing income reports", e)


@router.post(
    "/contracts/{contract_id}/income-reports",
    response_model=IncomeReport,
    status_code=status.HTTP_201_CREATED,
)
async def create_income_report(
    body: IncomeReportCreateRequest,
    contract_id: int = Path(..., description="Concession contract ID")
):
    """
    Submit a concessionaire's income report for one month.

    A contract has at most one report per month; a second submission for
    the same period returns 409.
    """
    try:
        service = ConcessionBillingService()
        return service.create_income_report(contract_id, body)

    except ConcessionBillingError as e:
        raise _domain_error(e)
    except Exception as e:
        raise _internal_error("Creating income report", e)


@router.post("/income-reports/{report_id}/verify", response_model=IncomeReport)
async def verify_income_report(
    body: VerifyIncomeReportRequest,
    report_id: int = Path(..., description="Income report ID")
):
    """Mark an income report as verified by an administrator."""
    try:
        service = ConcessionBillingService()
        return service.verify_income_report(report_id, body.verified_by)

    except ConcessionBillingError as e:
        raise _domain_error(e)
    except Exception as e:
        raise _internal_error("Verifying income report", e)


# =============================================================================
# Monthly payments
# =============================================================================

@router.post(
    "/contracts/{contract_id}/calculate-payment",
    response_model=MonthlyPaymentRecord,
    status_code=status.HTTP_201_CREATED,
)
@limit_calculate
async def calculate_payment(
    request: Request,
    body: CalculatePaymentRequest,
    contract_id: int = Path(..., description="Concession contract ID")
):
    """
    Calculate and store the payment owed for one month.

    Applies every active charge rule valid for the month, then the minimum
    guarantee. Without an income report, percentage and per-unit charges
    contribute zero.

    **Example Request:**
    ```json
    {"month": 3, "year": 2025, "income_report_id": 41}
    ```

    **Errors:**
    - 400 `InvalidConfiguration` / `InvalidRule` / `IncomeReportMismatch`
    - 404 `NotFound` (no payment configuration or income report)
    - 409 `PaymentAlreadyExists`
    """
    try:
        service = ConcessionBillingService()
        return service.calculate_payment(
            contract_id=contract_id,
            month=body.month,
            year=body.year,
            income_report_id=body.income_report_id,
            calculated_by=body.calculated_by,
        )

    except (PaymentCalculationError, ConcessionBillingError) as e:
        logger.warning(f"Payment calculation rejected for contract {contract_id}: {e}")
        raise _domain_error(e)
    except Exception as e:
        raise _internal_error("Payment calculation", e)


@router.get("/contracts/{contract_id}/payment-preview", response_model=MonthlyPayment)
async def preview_payment(
    contract_id: int = Path(..., description="Concession contract ID"),
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    income_report_id: Optional[int] = Query(None, description="Income report to use"),
):
    """Evaluate a month without storing the result."""
    try:
        service = ConcessionBillingService()
        return service.preview_payment(contract_id, month, year, income_report_id)

    except (PaymentCalculationError, ConcessionBillingError) as e:
        raise _domain_error(e)
    except Exception as e:
        raise _internal_error("Payment preview", e)


@router.get("/contracts/{contract_id}/monthly-payments", response_model=List[MonthlyPaymentListItem])
async def list_monthly_payments(
    contract_id: int = Path(..., description="Concession contract ID"),
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Filter by payment year"),
):
    """List a contract's stored monthly payments with their income reports, newest first."""
    try:
        service = ConcessionBillingService()
        return service.list_monthly_payments(contract_id, year=year)

    except Exception as e:
        raise _internal_error("Listing monthly payments", e)


# =============================================================================
# Investments
# =============================================================================

@router.get("/contracts/{contract_id}/investments", response_model=List[ContractInvestment])
async def list_investments(
    contract_id: int = Path(..., description="Concession contract ID")
):
    """List a contract's committed investments, newest first."""
    try:
        service = ContractTermsService()
        return service.list_investments(contract_id)

    except Exception as e:
        raise _internal_error("Listing investments", e)


@router.post(
    "/contracts/{contract_id}/investments",
    response_model=ContractInvestment,
    status_code=status.HTTP_201_CREATED,
)
async def create_investment(
    body: InvestmentCreateRequest,
    contract_id: int = Path(..., description="Concession contract ID")
):
    """
    Record an investment the concessionaire committed to.

    For amortizable investments `amortization_months` is required;
    `monthly_amortization` defaults to the value spread evenly over it.

    **Example Request:**
    ```json
    {
      "description": "Kiosk roof renovation",
      "estimated_value": "24000.00",
      "is_amortizable": true,
      "amortization_months": 24
    }
    ```
    """
    try:
        service = ContractTermsService()
        return service.create_investment(contract_id, body)

    except ConcessionBillingError as e:
        raise _domain_error(e)
    except Exception as e:
        raise _internal_error("Creating investment", e)


@router.put("/investments/{investment_id}", response_model=ContractInvestment)
async def update_investment(
    body: InvestmentUpdateRequest,
    investment_id: int = Path(..., description="Investment ID")
):
    """Update an investment; only the fields sent are changed."""
    try:
        service = ContractTermsService()
        return service.update_investment(investment_id, body)

    except ConcessionBillingError as e:
        raise _domain_error(e)
    except Exception as e:
        raise _internal_error("Updating investment", e)


# =============================================================================
# Bonuses and penalties
# =============================================================================

@router.get("/contracts/{contract_id}/bonuses", response_model=List[ContractBonus])
async def list_bonuses(
    contract_id: int = Path(..., description="Concession contract ID")
):
    try:
        service = ContractTermsService()
        return service.list_bonuses(contract_id)

    except Exception as e:
        raise _internal_error("Listing bonuses", e)


@router.post(
    "/contracts/{contract_id}/bonuses",
    response_model=ContractBonus,
    status_code=status.HTTP_201_CREATED,
)
async def create_bonus(
    body: BonusCreateRequest,
    contract_id: int = Path(..., description="Concession contract ID")
):
    """Record a bonus or a penalty (`bonus_type`) for a contract."""
    try:
        service = ContractTermsService()
        return service.create_bonus(contract_id, body)

    except Exception as e:
        raise _internal_error("Creating bonus", e)


# =============================================================================
# Authorized services
# =============================================================================

@router.get("/contracts/{contract_id}/authorized-services", response_model=List[AuthorizedService])
async def list_authorized_services(
    contract_id: int = Path(..., description="Concession contract ID")
):
    """List the services a concession may offer, by name."""
    try:
        service = ContractTermsService()
        return service.list_authorized_services(contract_id)

    except Exception as e:
        raise _internal_error("Listing authorized services", e)


@router.post(
    "/contracts/{contract_id}/authorized-services",
    response_model=AuthorizedService,
    status_code=status.HTTP_201_CREATED,
)
async def create_authorized_service(
    body: AuthorizedServiceCreateRequest,
    contract_id: int = Path(..., description="Concession contract ID")
):
    try:
        service = ContractTermsService()
        return service.create_authorized_service(contract_id, body)

    except Exception as e:
        raise _internal_error("Creating authorized service", e)
