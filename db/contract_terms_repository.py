"""
Repository for contract terms stored alongside the payment configuration.

Handles contract_investment, contract_bonus and contract_authorized_service
records.
"""

from typing import Optional, List, Dict, Any
import logging

import psycopg2
from psycopg2.extras import Json

from db.database import get_db_connection

logger = logging.getLogger(__name__)


INVESTMENT_COLUMNS = (
    "description",
    "estimated_value",
    "actual_value",
    "deadline_date",
    "completed_date",
    "is_amortizable",
    "amortization_months",
    "monthly_amortization",
    "status",
    "documentation",
    "attachments",
)

BONUS_COLUMNS = (
    "bonus_type",
    "name",
    "description",
    "amount",
    "frequency",
    "conditions",
    "evaluation_criteria",
)

AUTHORIZED_SERVICE_COLUMNS = (
    "service_name",
    "service_description",
    "service_category",
    "can_charge_public",
    "max_public_rate",
    "rate_description",
    "restrictions",
    "required_permits",
)

JSON_COLUMNS = {"attachments", "required_permits"}


def _adapt(column: str, value: Any) -> Any:
    if column in JSON_COLUMNS:
        return Json(value or [])
    return value


class ContractTermsRepository:
    """
    Database operations for investments, bonuses/penalties and authorized
    services of a concession contract.

    Rows are returned as dicts (RealDictCursor). Database errors are logged
    and re-raised.
    """

    def _insert(self, table: str, columns, contract_id: int, values: Dict[str, Any]) -> Dict[str, Any]:
        query = f"""
            INSERT INTO {table} (contract_id, {", ".join(columns)})
            VALUES (%s, {", ".join(["%s"] * len(columns))})
            RETURNING *
        """

        with get_db_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(
                    query,
                    (contract_id, *(_adapt(col, values.get(col)) for col in columns))
                )
                return cursor.fetchone()

    def _list(self, table: str, contract_id: int, order_by: str) -> List[Dict[str, Any]]:
        with get_db_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(
                    f"SELECT * FROM {table} WHERE contract_id = %s ORDER BY {order_by}",
                    (contract_id,)
                )
                return cursor.fetchall()

    # -------------------------------------------------------------------------
    # Investments
    # -------------------------------------------------------------------------

    def list_investments(self, contract_id: int) -> List[Dict[str, Any]]:
        """List a contract's investments, newest first."""
        try:
            return self._list("contract_investment", contract_id, "created_at DESC, id DESC")
        except psycopg2.Error as e:
            logger.error(f"Failed to list investments for contract {contract_id}: {e}")
            raise

    def get_investment(self, investment_id: int) -> Optional[Dict[str, Any]]:
        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(
                        "SELECT * FROM contract_investment WHERE id = %s",
                        (investment_id,)
                    )
                    return cursor.fetchone()

        except psycopg2.Error as e:
            logger.error(f"Failed to load investment {investment_id}: {e}")
            raise

    def create_investment(self, contract_id: int, investment: Dict[str, Any]) -> Dict[str, Any]:
        """Insert an investment; values for INVESTMENT_COLUMNS."""
        try:
            row = self._insert("contract_investment", INVESTMENT_COLUMNS, contract_id, investment)
            logger.info(f"Created investment {row['id']} for contract {contract_id}")
            return row

        except psycopg2.Error as e:
            logger.error(f"Failed to create investment for contract {contract_id}: {e}")
            raise

    def update_investment(
        self,
        investment_id: int,
        changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Update the given INVESTMENT_COLUMNS of an investment.

        Returns:
            The updated row, or None if the investment does not exist
        """
        columns = [col for col in INVESTMENT_COLUMNS if col in changes]
        assignments = ", ".join([f"{col} = %s" for col in columns] + ["updated_at = NOW()"])
        query = f"""
            UPDATE contract_investment
            SET {assignments}
            WHERE id = %s
            RETURNING *
        """
        params = [_adapt(col, changes[col]) for col in columns]

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (*params, investment_id))
                    row = cursor.fetchone()

            if row:
                logger.info(f"Updated investment {investment_id}: {', '.join(columns) or 'no fields'}")
            return row

        except psycopg2.Error as e:
            logger.error(f"Failed to update investment {investment_id}: {e}")
            raise

    # -------------------------------------------------------------------------
    # Bonuses and penalties
    # -------------------------------------------------------------------------

    def list_bonuses(self, contract_id: int) -> List[Dict[str, Any]]:
        """List a contract's bonuses and penalties, newest first."""
        try:
            return self._list("contract_bonus", contract_id, "created_at DESC, id DESC")
        except psycopg2.Error as e:
            logger.error(f"Failed to list bonuses for contract {contract_id}: {e}")
            raise

    def create_bonus(self, contract_id: int, bonus: Dict[str, Any]) -> Dict[str, Any]:
        try:
            row = self._insert("contract_bonus", BONUS_COLUMNS, contract_id, bonus)
            logger.info(f"Created {row['bonus_type']} {row['id']} for contract {contract_id}")
            return row

        except psycopg2.Error as e:
            logger.error(f"Failed to create bonus for contract {contract_id}: {e}")
            raise

    # -------------------------------------------------------------------------
    # Authorized services
    # -------------------------------------------------------------------------

    def list_authorized_services(self, contract_id: int) -> List[Dict[str, Any]]:
        """List a contract's authorized services by name."""
        try:
            return self._list("contract_authorized_service", contract_id, "service_name, id")
        except psycopg2.Error as e:
            logger.error(f"Failed to list authorized services for contract {contract_id}: {e}")
            raise

    def create_authorized_service(self, contract_id: int, service: Dict[str, Any]) -> Dict[str, Any]:
        try:
            row = self._insert(
                "contract_authorized_service", AUTHORIZED_SERVICE_COLUMNS, contract_id, service
            )
            logger.info(
                f"Authorized service '{row['service_name']}' ({row['id']}) for contract {contract_id}"
            )
            return row

        except psycopg2.Error as e:
            logger.error(f"Failed to create authorized service for contract {contract_id}: {e}")
            raise
