"""
Async queue workflows around the pure evaluators.

These functions do the I/O the evaluators deliberately avoid: loading
records and their per-record state, persisting commitments, creating
reminder tasks idempotently, and refreshing next-step analyses.

Task creation follows check -> skip unless forced -> create -> record:

    1. Evaluate the record's current issues
    2. Load the latest task recorded for the same kind
    3. Skip when that task already covers every current issue (unless force)
    4. Create the task through the task sink
    5. Record the new task so the next call sees it

Collaborator failures are raised as UpstreamUnavailable with the original
error chained. Nothing is retried here and no default classification is
substituted. Activity is the one exception: when it cannot be loaded, the
record's touch compliance reports pending, which is the status reserved
for "no data".

Usage:
    result = await evaluate_queue(store, RecordFilter(pipelines=[PipelineType.SALES]))
    outcome = await create_hygiene_task(store, sink, deal, force=False)
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from revops_triage.core.config import Settings, get_settings
from revops_triage.core.errors import TriageError, UpstreamUnavailable
from revops_triage.models.enums import PipelineType, StageCategory, TaskKind
from revops_triage.models.schemas import (
    CommitmentView,
    DealRecord,
    EvaluationResult,
    ExistingTaskRecord,
    NextStepAnalysis,
    Record,
    RecordFilter,
)
from revops_triage.services.business_calendar import to_day
from revops_triage.services.collaborators import DateExtractor, RecordStore, TaskSink
from revops_triage.services.commitments import set_commitment as build_commitment
from revops_triage.services.commitments import view_commitment
from revops_triage.services.exception_aggregator import RecordInputs, evaluate_batch
from revops_triage.services.hygiene import evaluate_hygiene, format_missing_labels, issue_signature
from revops_triage.services.next_step import build_analysis, empty_analysis, needs_analysis
from revops_triage.services.overdue_tasks import check_overdue_tasks
from revops_triage.services.task_idempotency import overdue_signature, should_create


logger = logging.getLogger(__name__)

T = TypeVar("T")

RECORD_STORE = "record_store"
TASK_SINK = "task_sink"
DATE_EXTRACTOR = "date_extractor"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _call(collaborator: str, record_id: Optional[str], awaitable: Awaitable[T]) -> T:
    """Await a collaborator call, converting its failure to UpstreamUnavailable."""
    try:
        return await awaitable
    except TriageError:
        raise
    except Exception as exc:
        logger.warning(f"{collaborator} call failed for record {record_id}: {exc}")
        raise UpstreamUnavailable(collaborator, record_id, str(exc)) from exc


# =============================================================================
# Queue Evaluation
# =============================================================================

def _wants_activity(record: Record) -> bool:
    return (
        isinstance(record, DealRecord)
        and record.pipeline == PipelineType.SALES
        and record.stageCategory != StageCategory.CLOSED
        and record.createdAt is not None
    )


async def load_record_inputs(
    store: RecordStore,
    record: Record,
    load_activity: bool = True,
) -> RecordInputs:
    """Fetch the commitment, latest hygiene task and activity for a record."""
    commitment = await _call(RECORD_STORE, record.id, store.fetch_commitment(record.id))
    hygiene_task = await _call(
        RECORD_STORE, record.id, store.fetch_existing_task(record.id, TaskKind.HYGIENE)
    )

    activity = None
    if load_activity and _wants_activity(record):
        try:
            activity = await store.fetch_activity(record.id)
        except Exception as exc:
            logger.warning(f"Activity unavailable for record {record.id}, touch status pending: {exc}")

    return RecordInputs(
        record=record,
        commitment=commitment,
        hygiene_task=hygiene_task,
        activity=activity,
    )


async def evaluate_queue(
    store: RecordStore,
    record_filter: Optional[RecordFilter] = None,
    now: Optional[datetime] = None,
    load_activity: bool = True,
    settings: Optional[Settings] = None,
) -> EvaluationResult:
    """
    Load records matching a filter and evaluate them as one batch.

    Args:
        store: Record store to read from.
        record_filter: Request-scoped selection; defaults to everything open.
        now: Evaluation time; defaults to the current UTC time.
        load_activity: Fetch engagement data for touch compliance.
        settings: Threshold overrides.

    Returns:
        EvaluationResult for the whole batch.

    Raises:
        UpstreamUnavailable: If records or their commitments/tasks cannot be read.
        BatchEvaluationError: If a record fails evaluation.
    """
    now = now or _utcnow()
    record_filter = record_filter or RecordFilter()

    records = await _call(RECORD_STORE, None, store.fetch_records(record_filter))
    logger.info(f"Evaluating queue of {len(records)} records")

    batch = await asyncio.gather(
        *(load_record_inputs(store, record, load_activity) for record in records)
    )
    return evaluate_batch(list(batch), now, settings or get_settings())


# =============================================================================
# Commitments
# =============================================================================

async def set_commitment(
    store: RecordStore,
    record_id: str,
    due_date: date,
    now: Optional[datetime] = None,
) -> CommitmentView:
    """
    Validate and persist a commitment due date for a record.

    Raises:
        TriageValidationError: If the due date is outside the allowed range.
            Nothing is written in that case.
        UpstreamUnavailable: If the store write fails.
    """
    now = now or _utcnow()
    commitment = build_commitment(record_id, due_date, now)

    stored = await _call(
        RECORD_STORE, record_id, store.write_commitment(record_id, commitment.dueDate, now)
    )
    logger.info(f"Commitment for record {record_id} set to {due_date.isoformat()}")
    return view_commitment(record_id, stored, now)


async def clear_commitment(store: RecordStore, record_id: str) -> None:
    await _call(RECORD_STORE, record_id, store.clear_commitment(record_id))
    logger.info(f"Commitment cleared for record {record_id}")


# =============================================================================
# Idempotent Task Creation
# =============================================================================

async def _create_if_needed(
    store: RecordStore,
    sink: TaskSink,
    record: Record,
    kind: TaskKind,
    signature: frozenset,
    metadata: Dict[str, Any],
    now: datetime,
    force: bool,
) -> Dict[str, Any]:
    existing: Optional[ExistingTaskRecord] = await _call(
        RECORD_STORE, record.id, store.fetch_existing_task(record.id, kind)
    )
    decision = should_create(existing, signature, force=force)

    if not decision.create:
        logger.info(f"Skipping {kind.value} task for record {record.id}: covered by {existing.taskId}")
        return {
            'success': True,
            'skipped': True,
            'reason': f'Existing task {existing.taskId} already covers current issues',
            'taskId': existing.taskId,
            'coversAll': True,
        }

    task_id = await _call(TASK_SINK, record.id, sink.create_task(record.id, signature, metadata))
    try:
        await store.record_task(ExistingTaskRecord(
            taskId=task_id,
            recordId=record.id,
            kind=kind,
            createdAt=now,
            issueSignature=signature,
        ))
    except Exception as exc:
        logger.error(
            f"Created {kind.value} task {task_id} for record {record.id} but could not record it: {exc}"
        )
        raise UpstreamUnavailable(
            RECORD_STORE,
            record.id,
            f"task {task_id} was created but not recorded: {exc}",
            created_task_id=task_id,
        ) from exc

    logger.info(f"Created {kind.value} task {task_id} for record {record.id}")

    return {
        'success': True,
        'skipped': False,
        'taskId': task_id,
        'coversAll': decision.coversAll,
        'supersedes': existing.taskId if existing else None,
        'signature': sorted(signature),
    }


async def create_hygiene_task(
    store: RecordStore,
    sink: TaskSink,
    record: Record,
    now: Optional[datetime] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """
    Create a hygiene reminder unless an earlier one already covers it.

    Args:
        store: Record store holding the task ledger.
        sink: External task sink.
        record: Record to remind about.
        now: Creation time recorded in the ledger.
        force: Create even when the latest task covers every missing field.

    Returns:
        Dict with:
        - success: True when the task was created or skipped
        - skipped: True when nothing was created
        - reason: Why it was skipped
        - taskId: Created task, or the covering task when skipped
        - coversAll: Whether the latest earlier task covered every issue
    """
    now = now or _utcnow()
    if isinstance(record, DealRecord) and record.stageCategory == StageCategory.CLOSED:
        return {
            'success': True,
            'skipped': True,
            'reason': 'Deal is closed',
        }

    hygiene = evaluate_hygiene(record.pipeline, record)
    if hygiene.isCompliant:
        return {
            'success': True,
            'skipped': True,
            'reason': 'Record has no missing fields',
        }

    metadata = {
        'kind': TaskKind.HYGIENE.value,
        'pipeline': record.pipeline.value,
        'recordName': record.name,
        'missingFields': [f.label for f in hygiene.missingFields],
        'subject': f"Update missing fields: {format_missing_labels(hygiene.missingFields)}",
    }
    return await _create_if_needed(
        store, sink, record, TaskKind.HYGIENE,
        issue_signature(hygiene.missingFields), metadata, now, force,
    )


async def create_overdue_reminder(
    store: RecordStore,
    sink: TaskSink,
    record: Record,
    now: Optional[datetime] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """Create a reminder for overdue CRM tasks unless one already covers them."""
    now = now or _utcnow()
    crm_tasks = await _call(RECORD_STORE, record.id, store.fetch_crm_tasks(record.id))
    overdue = check_overdue_tasks(crm_tasks, now)
    if not overdue.hasOverdue:
        return {
            'success': True,
            'skipped': True,
            'reason': 'No overdue tasks',
        }

    metadata = {
        'kind': TaskKind.OVERDUE_REMINDER.value,
        'recordName': record.name,
        'overdueTaskCount': overdue.count,
        'oldestOverdueDays': overdue.oldestOverdueDays,
        'subject': f"{overdue.count} overdue task(s), oldest {overdue.oldestOverdueDays} days",
    }
    signature = overdue_signature(task.id for task in overdue.tasks)
    return await _create_if_needed(
        store, sink, record, TaskKind.OVERDUE_REMINDER, signature, metadata, now, force,
    )


# =============================================================================
# Next-Step Analysis
# =============================================================================

async def refresh_next_step_analysis(
    store: RecordStore,
    extractor: DateExtractor,
    deal: DealRecord,
    now: Optional[datetime] = None,
    force: bool = False,
    freshness_days: Optional[int] = None,
) -> NextStepAnalysis:
    """
    Re-run date extraction for a deal when its analysis is stale.

    A fresh analysis is returned untouched. An empty next step is stored as
    an empty analysis without calling the extractor.

    Raises:
        UpstreamUnavailable: If extraction or the store write fails. The
            stored analysis is left as it was.
    """
    now = now or _utcnow()
    stale = needs_analysis(
        deal.nextStep,
        deal.nextStepAnalysis,
        now,
        next_step_updated_at=deal.nextStepUpdatedAt,
        freshness_days=freshness_days,
    )
    if not force and not stale and deal.nextStepAnalysis is not None:
        return deal.nextStepAnalysis

    text = (deal.nextStep or "").strip()
    if not text:
        analysis = empty_analysis(now)
    else:
        extraction = await _call(
            DATE_EXTRACTOR, deal.id, extractor.extract_due_date(text, to_day(now))
        )
        analysis = build_analysis(extraction, text, now)

    await _call(RECORD_STORE, deal.id, store.write_next_step_analysis(deal.id, analysis))
    logger.info(f"Next step for deal {deal.id} analyzed as {analysis.status.value}")
    return analysis


async def refresh_next_step_analyses(
    store: RecordStore,
    extractor: DateExtractor,
    deals: List[DealRecord],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Refresh every stale analysis in a list of deals, one at a time.

    Failures are counted per deal rather than aborting the run, so one
    extraction outage does not block the remaining deals.
    """
    now = now or _utcnow()
    refreshed = 0
    failed: List[str] = []

    for deal in deals:
        if not needs_analysis(deal.nextStep, deal.nextStepAnalysis, now, deal.nextStepUpdatedAt):
            continue
        try:
            await refresh_next_step_analysis(store, extractor, deal, now=now, force=True)
            refreshed += 1
        except UpstreamUnavailable:
            failed.append(deal.id)

    return {
        'success': not failed,
        'refreshed': refreshed,
        'failed': failed,
    }


__all__ = [
    "load_record_inputs",
    "evaluate_queue",
    "set_commitment",
    "clear_commitment",
    "create_hygiene_task",
    "create_overdue_reminder",
    "refresh_next_step_analysis",
    "refresh_next_step_analyses",
]
