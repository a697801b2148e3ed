"""
Repository for concession billing database operations.

Handles contract_payment_config, contract_charge, contract_income_report
and contract_monthly_payment records.
"""

from typing import Optional, List, Dict, Any
import logging

import psycopg2
from psycopg2.extras import Json

from db.database import get_db_connection

logger = logging.getLogger(__name__)


CONFIG_COLUMNS = (
    "has_fixed_payment",
    "has_percentage_payment",
    "has_per_unit_payment",
    "has_space_payment",
    "has_minimum_guarantee",
    "minimum_guarantee_amount",
    "income_basis",
    "notes",
)

CHARGE_COLUMNS = (
    "charge_type",
    "name",
    "description",
    "frequency",
    "fixed_amount",
    "percentage",
    "per_unit_amount",
    "unit_type",
    "per_m2_amount",
    "space_m2",
    "is_active",
    "start_date",
    "end_date",
)

PAYMENT_COLUMNS = (
    "contract_id",
    "income_report_id",
    "payment_month",
    "payment_year",
    "fixed_amount",
    "percentage_amount",
    "per_unit_amount",
    "space_amount",
    "subtotal",
    "minimum_guarantee_applied",
    "minimum_guarantee_adjustment",
    "total_amount",
    "breakdown",
    "calculation_inputs",
    "status",
    "calculated_by",
)


class ConcessionRepository:
    """
    Database operations for concession billing.

    Methods return rows as dicts (RealDictCursor). Database errors are
    logged and re-raised; a None return always means "no such row" or,
    for inserts guarded by a unique constraint, "row already exists".
    """

    # -------------------------------------------------------------------------
    # Payment configuration and charge rules
    # -------------------------------------------------------------------------

    def get_payment_config(self, contract_id: int) -> Optional[Dict[str, Any]]:
        """Get the payment configuration of a contract, or None."""
        query = """
            SELECT *
            FROM contract_payment_config
            WHERE contract_id = %s
        """

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (contract_id,))
                    return cursor.fetchone()

        except psycopg2.Error as e:
            logger.error(f"Failed to load payment config for contract {contract_id}: {e}")
            raise

    def get_charge_rules(
        self,
        payment_config_id: int,
        active_only: bool = True
    ) -> List[Dict[str, Any]]:
        """
        Get charge rules of a payment configuration, oldest first.

        Args:
            payment_config_id: contract_payment_config.id
            active_only: Skip superseded/inactive rules
        """
        query = """
            SELECT *
            FROM contract_charge
            WHERE payment_config_id = %s
        """
        if active_only:
            query += " AND is_active"
        query += " ORDER BY created_at, id"

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (payment_config_id,))
                    rows = cursor.fetchall()

            logger.debug(f"Loaded {len(rows)} charge rules for payment config {payment_config_id}")
            return rows

        except psycopg2.Error as e:
            logger.error(f"Failed to load charge rules for payment config {payment_config_id}: {e}")
            raise

    def save_payment_config(
        self,
        contract_id: int,
        config: Dict[str, Any],
        charges: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """
        Create or update a contract's payment configuration.

        When charges is given, the currently active rules are deactivated
        and the new ones inserted, in the same transaction.

        Args:
            contract_id: Contract ID
            config: Values for CONFIG_COLUMNS
            charges: Optional replacement rules, values for CHARGE_COLUMNS

        Returns:
            Dict with 'config' (row) and 'charges' (active rule rows)
        """
        columns = ", ".join(CONFIG_COLUMNS)
        placeholders = ", ".join(["%s"] * len(CONFIG_COLUMNS))
        updates = ", ".join(f"{col} = EXCLUDED.{col}" for col in CONFIG_COLUMNS)

        upsert_query = f"""
            INSERT INTO contract_payment_config (contract_id, {columns})
            VALUES (%s, {placeholders})
            ON CONFLICT (contract_id) DO UPDATE SET
                {updates},
                updated_at = NOW()
            RETURNING *
        """

        charge_query = f"""
            INSERT INTO contract_charge (payment_config_id, {", ".join(CHARGE_COLUMNS)})
            VALUES (%s, {", ".join(["%s"] * len(CHARGE_COLUMNS))})
            RETURNING *
        """

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(
                        upsert_query,
                        (contract_id, *(config.get(col) for col in CONFIG_COLUMNS))
                    )
                    config_row = cursor.fetchone()

                    if charges is not None:
                        cursor.execute(
                            """
                            UPDATE contract_charge
                            SET is_active = FALSE, superseded_at = NOW()
                            WHERE payment_config_id = %s AND is_active
                            """,
                            (config_row['id'],)
                        )
                        superseded = cursor.rowcount

                        for charge in charges:
                            cursor.execute(
                                charge_query,
                                (config_row['id'], *(charge.get(col) for col in CHARGE_COLUMNS))
                            )

                        logger.info(
                            f"Contract {contract_id}: superseded {superseded} charge rules, "
                            f"inserted {len(charges)}"
                        )

                    cursor.execute(
                        """
                        SELECT * FROM contract_charge
                        WHERE payment_config_id = %s AND is_active
                        ORDER BY created_at, id
                        """,
                        (config_row['id'],)
                    )
                    charge_rows = cursor.fetchall()

            logger.info(f"Saved payment config {config_row['id']} for contract {contract_id}")
            return {'config': config_row, 'charges': charge_rows}

        except psycopg2.Error as e:
            logger.error(f"Failed to save payment config for contract {contract_id}: {e}")
            raise

    # -------------------------------------------------------------------------
    # Income reports
    # -------------------------------------------------------------------------

    def get_income_report(self, report_id: int) -> Optional[Dict[str, Any]]:
        """Get an income report by ID, or None."""
        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(
                        "SELECT * FROM contract_income_report WHERE id = %s",
                        (report_id,)
                    )
                    return cursor.fetchone()

        except psycopg2.Error as e:
            logger.error(f"Failed to load income report {report_id}: {e}")
            raise

    def get_income_report_for_period(
        self,
        contract_id: int,
        month: int,
        year: int
    ) -> Optional[Dict[str, Any]]:
        """Get the income report of a contract for one month, or None."""
        query = """
            SELECT *
            FROM contract_income_report
            WHERE contract_id = %s AND report_month = %s AND report_year = %s
        """

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (contract_id, month, year))
                    return cursor.fetchone()

        except psycopg2.Error as e:
            logger.error(
                f"Failed to load income report for contract {contract_id} "
                f"{year}-{month:02d}: {e}"
            )
            raise

    def list_income_reports(
        self,
        contract_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """List a contract's income reports, newest period first."""
        conditions = ["contract_id = %s"]
        params: List[Any] = [contract_id]

        if year is not None:
            conditions.append("report_year = %s")
            params.append(year)
        if month is not None:
            conditions.append("report_month = %s")
            params.append(month)

        query = f"""
            SELECT *
            FROM contract_income_report
            WHERE {" AND ".join(conditions)}
            ORDER BY report_year DESC, report_month DESC
        """

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, tuple(params))
                    return cursor.fetchall()

        except psycopg2.Error as e:
            logger.error(f"Failed to list income reports for contract {contract_id}: {e}")
            raise

    def create_income_report(
        self,
        contract_id: int,
        report: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Insert an income report.

        Returns:
            The new row, or None if the contract already has a report for
            that month/year
        """
        query = """
            INSERT INTO contract_income_report (
                contract_id,
                report_month,
                report_year,
                gross_income,
                net_income,
                units_sold,
                service_breakdown,
                notes
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (contract_id, report_month, report_year) DO NOTHING
            RETURNING *
        """

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(
                        query,
                        (
                            contract_id,
                            report['report_month'],
                            report['report_year'],
                            report['gross_income'],
                            report.get('net_income'),
                            Json(report.get('units_sold') or {}),
                            Json(report.get('service_breakdown') or {}),
                            report.get('notes'),
                        )
                    )
                    row = cursor.fetchone()

            if row:
                logger.info(
                    f"Created income report {row['id']} for contract {contract_id} "
                    f"{report['report_year']}-{report['report_month']:02d}"
                )
            return row

        except psycopg2.Error as e:
            logger.error(f"Failed to create income report for contract {contract_id}: {e}")
            raise

    def verify_income_report(
        self,
        report_id: int,
        verified_by: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        """Mark an income report as verified. Returns the updated row or None."""
        query = """
            UPDATE contract_income_report
            SET is_verified = TRUE, verified_by = %s, verified_at = NOW()
            WHERE id = %s
            RETURNING *
        """

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (verified_by, report_id))
                    row = cursor.fetchone()

            if row:
                logger.info(f"Income report {report_id} verified by user {verified_by}")
            return row

        except psycopg2.Error as e:
            logger.error(f"Failed to verify income report {report_id}: {e}")
            raise

    # -------------------------------------------------------------------------
    # Monthly payments
    # -------------------------------------------------------------------------

    def insert_monthly_payment(self, payment: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Store a computed monthly payment.

        Args:
            payment: JSON-mode dump of a MonthlyPayment plus calculated_by

        Returns:
            The stored row, or None if a payment already exists for the
            contract/month/year
        """
        query = f"""
            INSERT INTO contract_monthly_payment ({", ".join(PAYMENT_COLUMNS)})
            VALUES ({", ".join(["%s"] * len(PAYMENT_COLUMNS))})
            ON CONFLICT (contract_id, payment_month, payment_year) DO NOTHING
            RETURNING *
        """

        values = tuple(
            Json(payment.get(col)) if col in ('breakdown', 'calculation_inputs') else payment.get(col)
            for col in PAYMENT_COLUMNS
        )

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, values)
                    row = cursor.fetchone()

            if row:
                logger.info(
                    f"Stored monthly payment {row['id']} for contract {payment['contract_id']} "
                    f"{payment['payment_year']}-{payment['payment_month']:02d}: "
                    f"total={row['total_amount']}"
                )
            return row

        except psycopg2.Error as e:
            logger.error(
                f"Failed to store monthly payment for contract {payment.get('contract_id')}: {e}"
            )
            raise

    def list_monthly_payments(
        self,
        contract_id: int,
        year: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        List a contract's stored payments, newest period first.

        Each row carries the income report it was computed from under
        'income_report' (None when the period had no report).
        """
        query = """
            SELECT p.*,
                   CASE WHEN r.id IS NULL THEN NULL ELSE row_to_json(r) END AS income_report
            FROM contract_monthly_payment p
            LEFT JOIN contract_income_report r ON r.id = p.income_report_id
            WHERE p.contract_id = %s
        """
        params: List[Any] = [contract_id]
        if year is not None:
            query += " AND p.payment_year = %s"
            params.append(year)
        query += " ORDER BY p.payment_year DESC, p.payment_month DESC"

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, tuple(params))
                    return cursor.fetchall()

        except psycopg2.Error as e:
            logger.error(f"Failed to list monthly payments for contract {contract_id}: {e}")
            raise
