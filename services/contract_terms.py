"""
Contract terms kept next to the hybrid payment configuration.

Investments the concessionaire committed to (with optional monthly
amortization), bonuses and penalties, and the services the concession
authorizes. These are administrative records; PaymentRuleEvaluator does
not read them.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from db.contract_terms_repository import ContractTermsRepository
from models.concession import (
    AuthorizedService,
    AuthorizedServiceCreateRequest,
    BonusCreateRequest,
    ContractBonus,
    ContractInvestment,
    InvestmentCreateRequest,
    InvestmentUpdateRequest,
)
from services.concession_billing import ConcessionBillingError
from services.payments.charge_rules import to_money

logger = logging.getLogger(__name__)


class InvestmentNotFoundError(ConcessionBillingError):
    """Raised when an investment ID does not exist."""
    pass


class InvalidInvestmentError(ConcessionBillingError):
    """Raised when an amortizable investment lacks its amortization period."""
    pass


def monthly_amortization(value: Decimal, months: int) -> Decimal:
    """Even monthly share of an investment value, rounded half-up to cents."""
    return to_money(Decimal(value) / Decimal(months))


def _apply_amortization(values: Dict[str, Any], recompute: bool) -> Dict[str, Any]:
    """
    Check the amortization fields and fill monthly_amortization.

    The amount is derived from actual_value when known, otherwise from
    estimated_value. An explicitly given amount is kept unless recompute is set.
    """
    if not values.get("is_amortizable"):
        values["amortization_months"] = None
        values["monthly_amortization"] = None
        return values

    months = values.get("amortization_months")
    if not months:
        raise InvalidInvestmentError(
            "An amortizable investment needs amortization_months"
        )

    if recompute or values.get("monthly_amortization") is None:
        basis = values.get("actual_value")
        if basis is None:
            basis = values["estimated_value"]
        values["monthly_amortization"] = monthly_amortization(basis, months)

    return values


# Sent as null in an update, these keep their stored value
REQUIRED_INVESTMENT_FIELDS = {"description", "estimated_value", "is_amortizable", "status", "attachments"}


class ContractTermsService:
    """
    Usage:
        service = ContractTermsService()
        investment = service.create_investment(12, InvestmentCreateRequest(...))
    """

    def __init__(self, repository: Optional[ContractTermsRepository] = None):
        self.repository = repository or ContractTermsRepository()

    # -------------------------------------------------------------------------
    # Investments
    # -------------------------------------------------------------------------

    def list_investments(self, contract_id: int) -> List[ContractInvestment]:
        rows = self.repository.list_investments(contract_id)
        return [ContractInvestment.model_validate(row) for row in rows]

    def create_investment(
        self,
        contract_id: int,
        request: InvestmentCreateRequest
    ) -> ContractInvestment:
        """
        Record an investment commitment.

        Raises:
            InvalidInvestmentError: amortizable without amortization_months
        """
        values = _apply_amortization(request.model_dump(), recompute=False)
        investment = ContractInvestment(contract_id=contract_id, **values)

        row = self.repository.create_investment(
            contract_id, investment.model_dump(mode="json", exclude={"id", "contract_id"})
        )
        return ContractInvestment.model_validate(row)

    def update_investment(
        self,
        investment_id: int,
        request: InvestmentUpdateRequest
    ) -> ContractInvestment:
        """
        Apply a partial update to an investment.

        monthly_amortization is recomputed when the value or the amortization
        period changes, unless the request sets it explicitly.

        Raises:
            InvestmentNotFoundError: unknown investment
            InvalidInvestmentError: amortizable without amortization_months
        """
        row = self.repository.get_investment(investment_id)
        if row is None:
            raise InvestmentNotFoundError(f"Investment {investment_id} not found")

        changes = {
            field: value
            for field, value in request.model_dump(exclude_unset=True).items()
            if value is not None or field not in REQUIRED_INVESTMENT_FIELDS
        }
        current = ContractInvestment.model_validate(row)
        merged = {**current.model_dump(), **changes}

        amortization_inputs = {"estimated_value", "actual_value", "is_amortizable", "amortization_months"}
        recompute = bool(amortization_inputs & changes.keys()) and "monthly_amortization" not in changes
        merged = _apply_amortization(merged, recompute=recompute)

        updated = ContractInvestment.model_validate(merged)
        stored = updated.model_dump(mode="json", exclude={"id", "contract_id", "created_at", "updated_at"})

        row = self.repository.update_investment(investment_id, stored)
        if row is None:
            raise InvestmentNotFoundError(f"Investment {investment_id} not found")

        logger.info(f"Investment {investment_id} updated: {sorted(changes)}")
        return ContractInvestment.model_validate(row)

    # -------------------------------------------------------------------------
    # Bonuses and penalties
    # -------------------------------------------------------------------------

    def list_bonuses(self, contract_id: int) -> List[ContractBonus]:
        return [ContractBonus.model_validate(row) for row in self.repository.list_bonuses(contract_id)]

    def create_bonus(self, contract_id: int, request: BonusCreateRequest) -> ContractBonus:
        row = self.repository.create_bonus(contract_id, request.model_dump(mode="json"))
        return ContractBonus.model_validate(row)

    # -------------------------------------------------------------------------
    # Authorized services
    # -------------------------------------------------------------------------

    def list_authorized_services(self, contract_id: int) -> List[AuthorizedService]:
        rows = self.repository.list_authorized_services(contract_id)
        return [AuthorizedService.model_validate(row) for row in rows]

    def create_authorized_service(
        self,
        contract_id: int,
        request: AuthorizedServiceCreateRequest
    ) -> AuthorizedService:
        row = self.repository.create_authorized_service(contract_id, request.model_dump(mode="json"))
        return AuthorizedService.model_validate(row)
