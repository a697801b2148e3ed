"""
Database module for concession billing storage and retrieval.

This module provides database access layer for:
- Payment configurations and charge rules
- Concessionaire income reports
- Calculated monthly payments
- Contract investments, bonuses/penalties and authorized services
"""

from .database import get_db_connection, init_connection_pool, close_connection_pool, health_check
from .concession_repository import ConcessionRepository
from .contract_terms_repository import ContractTermsRepository

__all__ = [
    'get_db_connection',
    'init_connection_pool',
    'close_connection_pool',
    'health_check',
    'ConcessionRepository',
    'ContractTermsRepository',
]
