"""
Postgres-backed record store.

Reads deal and company snapshots, activity and CRM tasks, and keeps the
commitment and reminder-task ledgers. Rows are mapped to typed records
here, and this is the only place a stage label is interpreted: the stage
category is resolved once per row and the rules only ever see the enum.

Database errors propagate unchanged; the queue workflows wrap them.

Usage:
    store = PostgresRecordStore()
    deals = await store.fetch_records(RecordFilter(pipelines=[PipelineType.SALES]))
"""

import logging
from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from revops_triage.core.database import get_db_pool
from revops_triage.models.enums import (
    ActivityDirection,
    ActivityType,
    NextStepActionType,
    NextStepStatus,
    PipelineType,
    StageCategory,
    TaskKind,
)
from revops_triage.models.schemas import (
    ActivityEvent,
    Commitment,
    CompanyRecord,
    CrmTask,
    DealRecord,
    ExistingTaskRecord,
    NextStepAnalysis,
    Record,
    RecordFilter,
)
from revops_triage.sql.record_queries import (
    get_commitment_delete_query,
    get_commitment_query,
    get_commitment_upsert_query,
    get_companies_query,
    get_crm_tasks_query,
    get_deals_query,
    get_engagements_query,
    get_latest_task_query,
    get_next_step_analysis_update_query,
    get_task_insert_query,
    wants_companies,
    wants_deals,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Stage Category Resolution
# =============================================================================

# Checked in order; first match wins. Unknown labels are early.
STAGE_CATEGORY_PATTERNS: Sequence[Tuple[StageCategory, Tuple[str, ...]]] = (
    (StageCategory.CLOSED, ("closed won", "closedwon", "closed-won", "closed lost",
                            "closedlost", "closed-lost", "disqualified")),
    (StageCategory.LATE, ("proposal", "negotiation", "contract", "commit")),
    (StageCategory.MID, ("demo", "evaluation", "solution")),
)

CLOSED_STAGE_LABELS: List[str] = list(STAGE_CATEGORY_PATTERNS[0][1])


def resolve_stage_category(stage: Optional[str]) -> StageCategory:
    label = (stage or "").lower()
    for category, patterns in STAGE_CATEGORY_PATTERNS:
        if any(pattern in label for pattern in patterns):
            return category
    return StageCategory.EARLY


# =============================================================================
# Row Mapping
# =============================================================================

def _optional_enum(enum_cls, value: Any):
    """Enum member for value, or None when the column is null or unknown."""
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Ignoring unknown {enum_cls.__name__} value {value!r}")
        return None


def _products(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return list(value)
    return value


def deal_from_row(row: Mapping[str, Any]) -> DealRecord:
    analysis = None
    status = _optional_enum(NextStepStatus, row["next_step_status"])
    if status is not None and row["next_step_analyzed_at"] is not None:
        analysis = NextStepAnalysis(
            status=status,
            dueDate=row["next_step_due_date"],
            confidence=row["next_step_confidence"],
            analyzedAt=row["next_step_analyzed_at"],
            analyzedText=row["next_step_analyzed_value"],
            actionType=_optional_enum(NextStepActionType, row["next_step_action_type"]),
            displayMessage=row["next_step_display_message"],
        )

    return DealRecord(
        id=str(row["id"]),
        externalId=row["hubspot_id"],
        pipeline=PipelineType(row["pipeline"]),
        name=row["name"],
        ownerId=row["owner_id"],
        stage=row["deal_stage"],
        stageCategory=resolve_stage_category(row["deal_stage"]),
        stageEnteredAt=row["stage_entered_at"],
        dealSubstage=row["deal_substage"],
        amount=float(row["amount"]) if row["amount"] is not None else None,
        closeDate=row["close_date"],
        leadSource=row["lead_source"],
        products=_products(row["products"]),
        nextStep=row["next_step"],
        nextStepUpdatedAt=row["next_step_updated_at"],
        nextStepAnalysis=analysis,
        createdAt=row["created_at"],
        lastActivityAt=row["last_activity_at"],
        nextActivityAt=row["next_activity_at"],
    )


def company_from_row(row: Mapping[str, Any]) -> CompanyRecord:
    return CompanyRecord(
        id=str(row["id"]),
        externalId=row["hubspot_id"],
        name=row["name"],
        ownerId=row["owner_id"],
        sentiment=row["sentiment"],
        autoRenew=row["auto_renew"],
        contractEndDate=row["contract_end_date"],
        mrr=float(row["mrr"]) if row["mrr"] is not None else None,
        contractStatus=row["contract_status"],
        qbrNotes=row["qbr_notes"],
        healthScoreStatus=row["health_score_status"],
        createdAt=row["created_at"],
        lastActivityAt=row["last_activity_at"],
        nextActivityAt=row["next_activity_at"],
    )


def activity_from_row(row: Mapping[str, Any]) -> Optional[ActivityEvent]:
    event_type = _optional_enum(ActivityType, row["type"])
    if event_type is None:
        return None
    return ActivityEvent(
        id=str(row["id"]),
        type=event_type,
        direction=_optional_enum(ActivityDirection, row["direction"]),
        fromEmail=row["from_email"],
        occurredAt=row["occurred_at"],
    )


def task_from_row(row: Mapping[str, Any]) -> ExistingTaskRecord:
    return ExistingTaskRecord(
        taskId=row["task_id"],
        recordId=str(row["record_id"]),
        kind=TaskKind(row["kind"]),
        createdAt=row["created_at"],
        issueSignature=frozenset(row["issue_signature"] or []),
    )


def commitment_from_row(row: Mapping[str, Any]) -> Commitment:
    return Commitment(
        recordId=str(row["record_id"]),
        dueDate=row["due_date"],
        setAt=row["set_at"],
    )


# =============================================================================
# Store
# =============================================================================

class PostgresRecordStore:
    """Record store over the shared asyncpg pool."""

    async def fetch_records(self, record_filter: RecordFilter) -> List[Record]:
        pool = await get_db_pool()
        records: List[Record] = []

        async with pool.acquire() as conn:
            if wants_deals(record_filter):
                sql, args = get_deals_query(record_filter, CLOSED_STAGE_LABELS)
                rows = await conn.fetch(sql, *args)
                deals = (deal_from_row(row) for row in rows)
                records.extend(
                    deal for deal in deals
                    if record_filter.includeClosed or deal.stageCategory != StageCategory.CLOSED
                )
            if wants_companies(record_filter):
                sql, args = get_companies_query(record_filter)
                rows = await conn.fetch(sql, *args)
                records.extend(company_from_row(row) for row in rows)

        logger.info(f"Fetched {len(records)} records")
        return records

    async def fetch_commitment(self, record_id: str) -> Optional[Commitment]:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(get_commitment_query(), record_id)
        return commitment_from_row(row) if row else None

    async def write_commitment(self, record_id: str, due_date: date, set_at: datetime) -> Commitment:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(get_commitment_upsert_query(), record_id, due_date, set_at)
        if row is None:
            return Commitment(recordId=record_id, dueDate=due_date, setAt=set_at)
        return commitment_from_row(row)

    async def clear_commitment(self, record_id: str) -> None:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.execute(get_commitment_delete_query(), record_id)

    async def fetch_existing_task(
        self, record_id: str, kind: TaskKind = TaskKind.HYGIENE
    ) -> Optional[ExistingTaskRecord]:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(get_latest_task_query(), record_id, kind.value)
        return task_from_row(row) if row else None

    async def record_task(self, task: ExistingTaskRecord) -> None:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                get_task_insert_query(),
                task.taskId,
                task.recordId,
                task.kind.value,
                task.createdAt,
                sorted(task.issueSignature),
            )

    async def fetch_activity(self, record_id: str) -> List[ActivityEvent]:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(get_engagements_query(), record_id)
        events = (activity_from_row(row) for row in rows)
        return [event for event in events if event is not None]

    async def fetch_crm_tasks(self, record_id: str) -> List[CrmTask]:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(get_crm_tasks_query(), record_id)
        return [
            CrmTask(id=str(row["id"]), subject=row["subject"], status=row["status"], dueAt=row["due_at"])
            for row in rows
        ]

    async def write_next_step_analysis(self, record_id: str, analysis: NextStepAnalysis) -> None:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                get_next_step_analysis_update_query(),
                record_id,
                analysis.status.value,
                analysis.dueDate,
                analysis.confidence,
                analysis.actionType.value if analysis.actionType else None,
                analysis.displayMessage,
                analysis.analyzedAt,
                analysis.analyzedText,
            )


__all__ = [
    "STAGE_CATEGORY_PATTERNS",
    "CLOSED_STAGE_LABELS",
    "resolve_stage_category",
    "deal_from_row",
    "company_from_row",
    "activity_from_row",
    "task_from_row",
    "commitment_from_row",
    "PostgresRecordStore",
]
