"""
Parameterized SQL for the Postgres record store.

Tables:
    crm_deal            deals synced from the CRM, with stored next-step analysis
    crm_company         companies managed by customer success
    crm_engagement      calls, emails and meetings logged against a record
    crm_task            CRM tasks attached to a record
    hygiene_commitment  one row per record; upserts give last-write-wins
    triage_task         ledger of reminder tasks created per record and kind

All queries use asyncpg positional placeholders ($1, $2, ...).
"""

from typing import Any, List, Optional, Tuple

from revops_triage.models.enums import PipelineType
from revops_triage.models.schemas import RecordFilter


DEAL_COLUMNS = """
    id,
    hubspot_id,
    name,
    owner_id,
    pipeline,
    deal_stage,
    stage_entered_at,
    deal_substage,
    amount,
    close_date,
    lead_source,
    products,
    next_step,
    next_step_updated_at,
    next_step_status,
    next_step_due_date,
    next_step_confidence,
    next_step_action_type,
    next_step_display_message,
    next_step_analyzed_at,
    next_step_analyzed_value,
    created_at,
    last_activity_at,
    next_activity_at
"""

COMPANY_COLUMNS = """
    id,
    hubspot_id,
    name,
    owner_id,
    sentiment,
    auto_renew,
    contract_end_date,
    mrr,
    contract_status,
    qbr_notes,
    health_score_status,
    created_at,
    last_activity_at,
    next_activity_at
"""

CHURNED_CONTRACT_STATUS = "Churned"


def _filter_clauses(
    record_filter: RecordFilter,
    args: List[Any],
) -> List[str]:
    clauses: List[str] = []
    if record_filter.ownerIds:
        args.append(list(record_filter.ownerIds))
        clauses.append(f"owner_id = ANY(${len(args)})")
    if record_filter.recordIds:
        args.append(list(record_filter.recordIds))
        clauses.append(f"id = ANY(${len(args)})")
    return clauses


def get_deals_query(
    record_filter: RecordFilter,
    closed_stages: List[str],
) -> Tuple[str, List[Any]]:
    """
    Select deals matching a filter.

    Args:
        record_filter: Caller-supplied selection.
        closed_stages: Lower-cased stage fragments treated as closed. A deal
            whose stage contains any of them is excluded
            unless record_filter.includeClosed is set. Matches the
            substring rule of resolve_stage_category.

    Returns:
        Tuple of SQL text and positional arguments.
    """
    args: List[Any] = []
    clauses = _filter_clauses(record_filter, args)

    deal_pipelines = [
        p.value for p in (record_filter.pipelines or [PipelineType.SALES, PipelineType.UPSELL])
        if p != PipelineType.CUSTOMER_SUCCESS
    ]
    args.append(deal_pipelines)
    clauses.append(f"pipeline = ANY(${len(args)})")

    if not record_filter.includeClosed:
        args.append([f"%{fragment}%" for fragment in closed_stages])
        clauses.append(f"NOT (LOWER(COALESCE(deal_stage, '')) LIKE ANY(${len(args)}))")

    sql = f"""
SELECT {DEAL_COLUMNS}
FROM crm_deal
WHERE {' AND '.join(clauses)}
ORDER BY created_at, id;
"""
    return sql, args


def get_companies_query(record_filter: RecordFilter) -> Tuple[str, List[Any]]:
    args: List[Any] = []
    clauses = _filter_clauses(record_filter, args)

    if record_filter.excludeChurned:
        args.append(CHURNED_CONTRACT_STATUS)
        clauses.append(f"COALESCE(contract_status, '') <> ${len(args)}")

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    sql = f"""
SELECT {COMPANY_COLUMNS}
FROM crm_company
{where}
ORDER BY created_at, id;
"""
    return sql, args


def wants_companies(record_filter: RecordFilter) -> bool:
    return record_filter.pipelines is None or PipelineType.CUSTOMER_SUCCESS in record_filter.pipelines


def wants_deals(record_filter: RecordFilter) -> bool:
    return record_filter.pipelines is None or any(
        p != PipelineType.CUSTOMER_SUCCESS for p in record_filter.pipelines
    )


# =============================================================================
# Commitments
# =============================================================================

def get_commitment_query() -> str:
    return """
SELECT record_id, due_date, set_at
FROM hygiene_commitment
WHERE record_id = $1;
"""


def get_commitment_upsert_query() -> str:
    """Upsert keyed on record_id; the latest write replaces the due date."""
    return """
INSERT INTO hygiene_commitment (record_id, due_date, set_at)
VALUES ($1, $2, $3)
ON CONFLICT (record_id)
DO UPDATE SET
    due_date = EXCLUDED.due_date,
    set_at = EXCLUDED.set_at
RETURNING record_id, due_date, set_at;
"""


def get_commitment_delete_query() -> str:
    return "DELETE FROM hygiene_commitment WHERE record_id = $1;"


# =============================================================================
# Task Ledger
# =============================================================================

def get_latest_task_query() -> str:
    return """
SELECT task_id, record_id, kind, created_at, issue_signature
FROM triage_task
WHERE record_id = $1 AND kind = $2
ORDER BY created_at DESC
LIMIT 1;
"""


def get_task_insert_query() -> str:
    return """
INSERT INTO triage_task (task_id, record_id, kind, created_at, issue_signature)
VALUES ($1, $2, $3, $4, $5);
"""


# =============================================================================
# Activity, CRM Tasks, Next-Step Analysis
# =============================================================================

def get_engagements_query() -> str:
    return """
SELECT id, type, direction, from_email, occurred_at
FROM crm_engagement
WHERE record_id = $1
ORDER BY occurred_at;
"""


def get_crm_tasks_query() -> str:
    return """
SELECT id, subject, status, due_at
FROM crm_task
WHERE record_id = $1
ORDER BY due_at NULLS LAST, id;
"""


def get_next_step_analysis_update_query() -> str:
    return """
UPDATE crm_deal
SET
    next_step_status = $2,
    next_step_due_date = $3,
    next_step_confidence = $4,
    next_step_action_type = $5,
    next_step_display_message = $6,
    next_step_analyzed_at = $7,
    next_step_analyzed_value = $8
WHERE id = $1;
"""


__all__ = [
    "DEAL_COLUMNS",
    "COMPANY_COLUMNS",
    "CHURNED_CONTRACT_STATUS",
    "get_deals_query",
    "get_companies_query",
    "wants_companies",
    "wants_deals",
    "get_commitment_query",
    "get_commitment_upsert_query",
    "get_commitment_delete_query",
    "get_latest_task_query",
    "get_task_insert_query",
    "get_engagements_query",
    "get_crm_tasks_query",
    "get_next_step_analysis_update_query",
]
