"""
SQL query module for the record store.

Submodules:
    record_queries: deal/company selection, commitment upserts, task
                    ledger, engagements, CRM tasks and next-step analysis
"""

from revops_triage.sql.record_queries import (
    get_commitment_upsert_query,
    get_companies_query,
    get_deals_query,
    get_latest_task_query,
)


__all__ = [
    "get_commitment_upsert_query",
    "get_companies_query",
    "get_deals_query",
    "get_latest_task_query",
]
