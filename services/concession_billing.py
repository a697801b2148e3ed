"""
Concession billing orchestrator.

Loads a contract's payment configuration, charge rules and income report,
runs the PaymentRuleEvaluator and stores the resulting MonthlyPayment.
Also manages the configuration and income reports the evaluation reads.
"""

from typing import List, Optional
import logging

from db.concession_repository import ConcessionRepository
from models.concession import (
    IncomeReport,
    IncomeReportCreateRequest,
    MonthlyPayment,
    MonthlyPaymentListItem,
    MonthlyPaymentRecord,
    PaymentConfigRequest,
    PaymentConfigResponse,
    PaymentConfiguration,
)
from services.payments.evaluator import (
    PaymentRuleEvaluator,
    parse_charge_rule,
    validate_configuration,
)

logger = logging.getLogger(__name__)


class ConcessionBillingError(Exception):
    """Base class for concession billing failures outside the evaluator."""
    pass


class PaymentConfigNotFoundError(ConcessionBillingError):
    """Raised when a contract has no payment configuration."""
    pass


class IncomeReportNotFoundError(ConcessionBillingError):
    """Raised when a referenced income report does not exist."""
    pass


class IncomeReportMismatchError(ConcessionBillingError):
    """Raised when an income report belongs to another contract or period."""
    pass


class IncomeReportAlreadyExistsError(ConcessionBillingError):
    """Raised when a contract already has an income report for the period."""
    pass


class PaymentAlreadyExistsError(ConcessionBillingError):
    """Raised when a payment is already stored for the contract and period."""
    pass


class ConcessionBillingService:
    """
    Workflow for calculate_payment():
    1. Load the contract's payment configuration (404 if missing)
    2. Load its active charge rules
    3. Resolve the income report (explicit ID or the period's report, if any)
    4. Evaluate with PaymentRuleEvaluator
    5. Store the MonthlyPayment; (contract, month, year) is unique

    Usage:
        service = ConcessionBillingService()
        payment = service.calculate_payment(contract_id=12, month=3, year=2025)
    """

    def __init__(
        self,
        repository: Optional[ConcessionRepository] = None,
        evaluator: Optional[PaymentRuleEvaluator] = None
    ):
        self.repository = repository or ConcessionRepository()
        self.evaluator = evaluator or PaymentRuleEvaluator()

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def get_payment_config(self, contract_id: int) -> PaymentConfigResponse:
        config = self._load_config(contract_id)
        rows = self.repository.get_charge_rules(config.id)
        return PaymentConfigResponse(
            config=config,
            charges=[parse_charge_rule(row) for row in rows],
        )

    def save_payment_config(
        self,
        contract_id: int,
        request: PaymentConfigRequest
    ) -> PaymentConfigResponse:
        """
        Create or update a payment configuration.

        Raises:
            InvalidConfiguration: guarantee enabled without a valid amount
        """
        values = request.model_dump(exclude={"charges"})
        validate_configuration(PaymentConfiguration(contract_id=contract_id, **values))

        values["income_basis"] = request.income_basis.value
        charges = None
        if request.charges is not None:
            charges = [charge.model_dump(exclude={"id"}) for charge in request.charges]

        saved = self.repository.save_payment_config(contract_id, values, charges)
        return PaymentConfigResponse(
            config=PaymentConfiguration.model_validate(saved["config"]),
            charges=[parse_charge_rule(row) for row in saved["charges"]],
        )

    # -------------------------------------------------------------------------
    # Income reports
    # -------------------------------------------------------------------------

    def create_income_report(
        self,
        contract_id: int,
        request: IncomeReportCreateRequest
    ) -> IncomeReport:
        row = self.repository.create_income_report(
            contract_id, request.model_dump(mode="json")
        )
        if row is None:
            raise IncomeReportAlreadyExistsError(
                f"Contract {contract_id} already has an income report for "
                f"{request.report_year}-{request.report_month:02d}"
            )
        return IncomeReport.model_validate(row)

    def list_income_reports(
        self,
        contract_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None
    ) -> List[IncomeReport]:
        rows = self.repository.list_income_reports(contract_id, year=year, month=month)
        return [IncomeReport.model_validate(row) for row in rows]

    def verify_income_report(
        self,
        report_id: int,
        verified_by: Optional[int] = None
    ) -> IncomeReport:
        row = self.repository.verify_income_report(report_id, verified_by)
        if row is None:
            raise IncomeReportNotFoundError(f"Income report {report_id} not found")
        return IncomeReport.model_validate(row)

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def preview_payment(
        self,
        contract_id: int,
        month: int,
        year: int,
        income_report_id: Optional[int] = None
    ) -> MonthlyPayment:
        """Evaluate a period without storing the result."""
        config = self._load_config(contract_id)
        rules = self.repository.get_charge_rules(config.id)
        income_report = self._resolve_income_report(contract_id, month, year, income_report_id)

        return self.evaluator.evaluate(config, rules, income_report, month=month, year=year)

    def calculate_payment(
        self,
        contract_id: int,
        month: int,
        year: int,
        income_report_id: Optional[int] = None,
        calculated_by: Optional[int] = None
    ) -> MonthlyPaymentRecord:
        """
        Evaluate a period and store the MonthlyPayment.

        Raises:
            PaymentConfigNotFoundError: contract has no payment configuration
            IncomeReportNotFoundError: income_report_id does not exist
            IncomeReportMismatchError: report belongs to another contract/period
            InvalidConfiguration / InvalidRule: from the evaluator
            PaymentAlreadyExistsError: the period was already calculated
        """
        logger.info(
            f"Calculating payment for contract {contract_id}, {year}-{month:02d}"
        )

        payment = self.preview_payment(contract_id, month, year, income_report_id)

        record = payment.model_dump(mode="json")
        record["calculated_by"] = calculated_by

        row = self.repository.insert_monthly_payment(record)
        if row is None:
            raise PaymentAlreadyExistsError(
                f"A payment already exists for contract {contract_id}, {year}-{month:02d}"
            )

        return MonthlyPaymentRecord.model_validate(row)

    def list_monthly_payments(
        self,
        contract_id: int,
        year: Optional[int] = None
    ) -> List[MonthlyPaymentListItem]:
        rows = self.repository.list_monthly_payments(contract_id, year=year)
        return [MonthlyPaymentListItem.model_validate(row) for row in rows]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _load_config(self, contract_id: int) -> PaymentConfiguration:
        row = self.repository.get_payment_config(contract_id)
        if row is None:
            raise PaymentConfigNotFoundError(
                f"No payment configuration for contract {contract_id}"
            )
        return PaymentConfiguration.model_validate(row)

    def _resolve_income_report(
        self,
        contract_id: int,
        month: int,
        year: int,
        income_report_id: Optional[int]
    ) -> Optional[IncomeReport]:
        if income_report_id is None:
            row = self.repository.get_income_report_for_period(contract_id, month, year)
            if row is None:
                logger.info(
                    f"No income report for contract {contract_id} {year}-{month:02d}; "
                    f"income-based charges contribute zero"
                )
                return None
            return IncomeReport.model_validate(row)

        row = self.repository.get_income_report(income_report_id)
        if row is None:
            raise IncomeReportNotFoundError(f"Income report {income_report_id} not found")

        report = IncomeReport.model_validate(row)
        if (report.contract_id, report.report_month, report.report_year) != (contract_id, month, year):
            raise IncomeReportMismatchError(
                f"Income report {income_report_id} covers contract {report.contract_id} "
                f"{report.report_year}-{report.report_month:02d}, not contract {contract_id} "
                f"{year}-{month:02d}"
            )
        return report
