"""
Exception aggregation over a batch of CRM records.

Runs every evaluator over each record and merges the results into one
EvaluationResult for queue and dashboard consumers.

Per record:
    1. Hygiene policy for its pipeline, with commitment and task coverage
    2. Next-step compliance (open deals)
    3. Touch compliance (open sales deals with a creation time)
    4. Deal risk factors, mapped to exceptions
    5. high_value_at_risk when a high-value deal has any other exception
    6. Account risk flags (companies)

Severity Table:
    overdue_next_step   high    (critical on high-value deals)
    past_close_date     high    (critical on high-value deals)
    activity_drought    medium
    no_next_step        medium
    stale_stage         low
    high_value_at_risk  critical

Ordering:
    Records keep their input order regardless of how they were scheduled;
    exceptions within a record follow ExceptionType declaration order.

Failure:
    Any error while evaluating a record aborts the batch with
    BatchEvaluationError. No partial result is returned.

Usage:
    from revops_triage.services.exception_aggregator import RecordInputs, evaluate_batch

    result = evaluate_batch([RecordInputs(record=deal, activity=events)], now)
    result.counts["past_close_date"]
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from revops_triage.core.config import Settings, get_settings
from revops_triage.core.errors import BatchEvaluationError
from revops_triage.models.enums import (
    CommitmentState,
    ExceptionType,
    NextStepCompliance,
    PipelineType,
    RecordKind,
    RiskFactorType,
    Severity,
    StageCategory,
)
from revops_triage.models.schemas import (
    AccountRiskCounts,
    AccountRiskFlags,
    ActivityEvent,
    Commitment,
    CompanyRecord,
    DealRecord,
    EvaluationResult,
    ExistingTaskRecord,
    HygieneCheckResult,
    HygieneQueueEntry,
    NextStepCheckResult,
    QueueSummary,
    Record,
    RecordEvaluation,
    RecordException,
    RiskFactor,
    TouchWindowAnalysis,
)
from revops_triage.services.business_calendar import business_days_between
from revops_triage.services.commitments import hygiene_reason, track_commitment
from revops_triage.services.deal_risk import assess_deal_risk, is_high_value
from revops_triage.services.hygiene import evaluate_hygiene, issue_signature
from revops_triage.services.next_step import check_next_step
from revops_triage.services.task_idempotency import should_create
from revops_triage.services.touch_compliance import analyze_touches, summarize_touches


logger = logging.getLogger(__name__)


# =============================================================================
# Severity Table
# =============================================================================

BASE_SEVERITY: Dict[ExceptionType, Severity] = {
    ExceptionType.OVERDUE_NEXT_STEP: Severity.HIGH,
    ExceptionType.PAST_CLOSE_DATE: Severity.HIGH,
    ExceptionType.ACTIVITY_DROUGHT: Severity.MEDIUM,
    ExceptionType.NO_NEXT_STEP: Severity.MEDIUM,
    ExceptionType.STALE_STAGE: Severity.LOW,
    ExceptionType.HIGH_VALUE_AT_RISK: Severity.CRITICAL,
}

# Escalated to critical when the deal is high value
HIGH_VALUE_CRITICAL = frozenset({
    ExceptionType.OVERDUE_NEXT_STEP,
    ExceptionType.PAST_CLOSE_DATE,
})

FACTOR_EXCEPTIONS: Dict[RiskFactorType, ExceptionType] = {
    RiskFactorType.OVERDUE_NEXT_STEP: ExceptionType.OVERDUE_NEXT_STEP,
    RiskFactorType.PAST_CLOSE_DATE: ExceptionType.PAST_CLOSE_DATE,
    RiskFactorType.ACTIVITY_DROUGHT: ExceptionType.ACTIVITY_DROUGHT,
    RiskFactorType.NO_NEXT_STEP: ExceptionType.NO_NEXT_STEP,
    RiskFactorType.STAGE_AGE: ExceptionType.STALE_STAGE,
}

_TYPE_ORDER = {exception_type: index for index, exception_type in enumerate(ExceptionType)}

AT_RISK_HEALTH_STATUS = "At-Risk"
FLAGGED_SENTIMENT = "Flagged"


@dataclass(frozen=True)
class RecordInputs:
    """
    One record plus the per-record state the store returned for it.

    activity is None when engagement data was not fetched, which makes
    touch compliance report pending instead of zero touches.
    """
    record: Record
    commitment: Optional[Commitment] = None
    hygiene_task: Optional[ExistingTaskRecord] = None
    activity: Optional[List[ActivityEvent]] = None


def severity_for(exception_type: ExceptionType, high_value: bool) -> Severity:
    if high_value and exception_type in HIGH_VALUE_CRITICAL:
        return Severity.CRITICAL
    return BASE_SEVERITY[exception_type]


# =============================================================================
# Per-record Evaluation
# =============================================================================

def build_hygiene_entry(
    record: Record,
    hygiene: HygieneCheckResult,
    commitment: Optional[Commitment],
    hygiene_task: Optional[ExistingTaskRecord],
    now: datetime,
    settings: Optional[Settings] = None,
) -> Optional[HygieneQueueEntry]:
    """
    Hygiene queue entry for a non-compliant record; None when compliant.

    A deal still inside the new-deal grace period is flagged isNewDeal.
    Any other record without a commitment is flagged graceExpired.
    """
    settings = settings or get_settings()
    view = track_commitment(record.id, hygiene, commitment, now)
    if view is None:
        return None

    is_new_deal = (
        record.kind == RecordKind.DEAL
        and record.createdAt is not None
        and business_days_between(record.createdAt, now) <= settings.new_deal_grace_business_days
    )
    signature = issue_signature(hygiene.missingFields)
    decision = should_create(hygiene_task, signature)

    return HygieneQueueEntry(
        recordId=record.id,
        recordName=record.name,
        pipeline=hygiene.pipeline,
        missingFields=hygiene.missingFields,
        signature=sorted(signature),
        commitment=view,
        coversAll=decision.coversAll,
        existingTaskId=hygiene_task.taskId if hygiene_task else None,
        isNewDeal=is_new_deal,
        graceExpired=not is_new_deal and view.state == CommitmentState.NEEDS_COMMITMENT,
        reason=hygiene_reason(hygiene.missingFields, view, now, is_new_deal=is_new_deal),
    )


def account_risk_flags(company: CompanyRecord) -> AccountRiskFlags:
    return AccountRiskFlags(
        recordId=company.id,
        isAtRisk=company.healthScoreStatus == AT_RISK_HEALTH_STATUS,
        isFlagged=company.sentiment == FLAGGED_SENTIMENT,
    )


def evaluate_record(
    inputs: RecordInputs,
    now: datetime,
    settings: Optional[Settings] = None,
) -> RecordEvaluation:
    """
    Run every applicable evaluator over one record.

    Args:
        inputs: The record with its commitment, latest hygiene task and activity.
        now: Evaluation time shared by the whole batch.
        settings: Threshold overrides; defaults to get_settings().

    Returns:
        RecordEvaluation: exceptions in type order plus queue entries.
    """
    settings = settings or get_settings()
    record = inputs.record

    evaluation = RecordEvaluation(recordId=record.id)

    # Closed deals leave every queue, hygiene included
    if isinstance(record, DealRecord) and record.stageCategory == StageCategory.CLOSED:
        return evaluation

    hygiene = evaluate_hygiene(record.pipeline, record)
    evaluation.hygiene = build_hygiene_entry(
        record, hygiene, inputs.commitment, inputs.hygiene_task, now, settings
    )

    if isinstance(record, CompanyRecord):
        evaluation.accountRisk = account_risk_flags(record)
        return evaluation

    next_step = check_next_step(record, now, freshness_days=settings.next_step_freshness_days)
    evaluation.nextStep = next_step

    if record.pipeline == PipelineType.SALES and record.createdAt is not None:
        evaluation.touch = analyze_touches(
            record,
            inputs.activity,
            now,
            target=settings.touch_target,
            window_days=settings.touch_window_business_days,
            internal_email_domain=settings.internal_email_domain,
        )

    risk = assess_deal_risk(record, now, next_step=next_step, settings=settings)
    evaluation.risk = risk
    evaluation.exceptions = _deal_exceptions(record, risk.factors, now, settings)
    return evaluation


def _deal_exceptions(
    deal: DealRecord,
    factors: List[RiskFactor],
    now: datetime,
    settings: Settings,
) -> List[RecordException]:
    high_value = is_high_value(deal, settings)
    exceptions = [
        RecordException(
            recordId=deal.id,
            type=FACTOR_EXCEPTIONS[factor.type],
            severity=severity_for(FACTOR_EXCEPTIONS[factor.type], high_value),
            detail=factor.description,
            detectedAt=now,
        )
        for factor in factors
    ]

    if high_value and exceptions:
        exceptions.append(RecordException(
            recordId=deal.id,
            type=ExceptionType.HIGH_VALUE_AT_RISK,
            severity=BASE_SEVERITY[ExceptionType.HIGH_VALUE_AT_RISK],
            detail=f"High-value deal ({deal.amount:,.0f}) with {len(exceptions)} open exception(s)",
            detectedAt=now,
        ))

    exceptions.sort(key=lambda e: _TYPE_ORDER[e.type])
    return exceptions


def _evaluate_or_fail(inputs: RecordInputs, now: datetime, settings: Settings) -> RecordEvaluation:
    try:
        return evaluate_record(inputs, now, settings)
    except Exception as exc:
        logger.exception(f"Evaluation failed for record {inputs.record.id}")
        raise BatchEvaluationError(inputs.record.id, str(exc)) from exc


# =============================================================================
# Batch Evaluation
# =============================================================================

def evaluate_batch(
    batch: List[RecordInputs],
    now: datetime,
    settings: Optional[Settings] = None,
) -> EvaluationResult:
    """
    Evaluate a batch of records and aggregate the results.

    Batches of at least settings.parallel_batch_threshold records are
    spread over a thread pool; executor.map keeps results in input order.

    Args:
        batch: Records with their per-record state.
        now: Evaluation time applied to every record.
        settings: Threshold overrides; defaults to get_settings().

    Returns:
        EvaluationResult: Only returned when every record was evaluated.

    Raises:
        BatchEvaluationError: If any record could not be evaluated.
    """
    settings = settings or get_settings()

    if len(batch) >= settings.parallel_batch_threshold and settings.max_workers > 1:
        logger.info(f"Evaluating {len(batch)} records on {settings.max_workers} workers")
        with ThreadPoolExecutor(max_workers=settings.max_workers) as executor:
            evaluations = list(executor.map(lambda item: _evaluate_or_fail(item, now, settings), batch))
    else:
        evaluations = [_evaluate_or_fail(item, now, settings) for item in batch]

    return aggregate(evaluations, now)


def aggregate(evaluations: List[RecordEvaluation], now: datetime) -> EvaluationResult:
    """Merge per-record evaluations, preserving their order."""
    counts = {exception_type.value: 0 for exception_type in ExceptionType}
    exceptions: List[RecordException] = []
    critical_count = 0
    hygiene_entries: List[HygieneQueueEntry] = []
    next_steps: List[NextStepCheckResult] = []
    touches: List[TouchWindowAnalysis] = []
    account_risk: List[AccountRiskFlags] = []
    account_counts = AccountRiskCounts()
    summary = QueueSummary()

    for evaluation in evaluations:
        for exception in evaluation.exceptions:
            exceptions.append(exception)
            counts[exception.type.value] += 1
            if exception.severity == Severity.CRITICAL:
                critical_count += 1

        if evaluation.hygiene is not None:
            hygiene_entries.append(evaluation.hygiene)
            summary.hygieneTotal += 1
            if evaluation.hygiene.commitment.state == CommitmentState.ESCALATED:
                summary.hygieneEscalated += 1

        if evaluation.nextStep is not None:
            next_steps.append(evaluation.nextStep)
            if evaluation.nextStep.compliance in (NextStepCompliance.MISSING, NextStepCompliance.OVERDUE):
                summary.nextStepTotal += 1
            if evaluation.nextStep.compliance == NextStepCompliance.OVERDUE:
                summary.nextStepOverdue += 1

        if evaluation.touch is not None:
            touches.append(evaluation.touch)

        flags = evaluation.accountRisk
        if flags is not None:
            account_risk.append(flags)
            account_counts.total += 1
            account_counts.atRisk += int(flags.isAtRisk)
            account_counts.flagged += int(flags.isFlagged)
            account_counts.both += int(flags.isAtRisk and flags.isFlagged)

    result = EvaluationResult(
        evaluatedAt=now,
        recordsEvaluated=len(evaluations),
        exceptions=exceptions,
        counts=counts,
        criticalCount=critical_count,
        hygiene=hygiene_entries,
        nextSteps=next_steps,
        touches=touches,
        touchSummary=summarize_touches(touches),
        accountRisk=account_risk,
        accountRiskCounts=account_counts,
        summary=summary,
    )

    logger.info(
        f"Evaluated {result.recordsEvaluated} records: "
        f"{len(result.exceptions)} exceptions, {summary.hygieneTotal} hygiene issues"
    )
    return result


__all__ = [
    "BASE_SEVERITY",
    "HIGH_VALUE_CRITICAL",
    "FACTOR_EXCEPTIONS",
    "RecordInputs",
    "severity_for",
    "build_hygiene_entry",
    "account_risk_flags",
    "evaluate_record",
    "evaluate_batch",
    "aggregate",
]
