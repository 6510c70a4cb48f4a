"""
Next-step analysis for deals.

The free-text next step on a deal is parsed by an external date-extraction
service; this module only interprets the stored result. It answers two
questions for the queue layer:

1. Compliance: is the next step missing, overdue, compliant, or dated
   so vaguely that there is nothing to hold the owner to?
2. Staleness: does the stored analysis need re-running? That is the case
   when there is no analysis, when the text changed since it was analyzed
   (by content, or by a CRM edit timestamp later than the analysis), or
   when the analysis is older than the freshness window.

An analysis produced from different text is not used for compliance; the
deal shows as awaiting analysis until extraction runs again. awaiting_external
next steps are never overdue whatever date they carry.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from revops_triage.core.config import get_settings
from revops_triage.models.enums import NextStepCompliance, NextStepStatus
from revops_triage.models.schemas import (
    DateExtraction,
    DealRecord,
    NextStepAnalysis,
    NextStepCheckResult,
)
from revops_triage.services.business_calendar import to_day
from revops_triage.services.hygiene import is_missing


logger = logging.getLogger(__name__)

DATED_STATUSES = frozenset({NextStepStatus.DATE_FOUND, NextStepStatus.DATE_INFERRED})

_UNDATED_REASONS = {
    NextStepStatus.NO_DATE: "Next step has no date",
    NextStepStatus.DATE_UNCLEAR: "Next step date is unclear",
    NextStepStatus.UNPARSEABLE: "Next step could not be interpreted",
    NextStepStatus.EMPTY: "Next step awaiting analysis",
}


def _normalize_text(text: Optional[str]) -> str:
    return (text or "").strip()


def text_changed(next_step: Optional[str], analysis: NextStepAnalysis) -> bool:
    return _normalize_text(next_step) != _normalize_text(analysis.analyzedText)


def needs_analysis(
    next_step: Optional[str],
    analysis: Optional[NextStepAnalysis],
    now: datetime,
    next_step_updated_at: Optional[datetime] = None,
    freshness_days: Optional[int] = None,
) -> bool:
    """
    Decide whether date extraction must be re-run for a next step.

    Args:
        next_step: Current next-step text on the deal.
        analysis: Stored analysis, if any.
        now: Evaluation time.
        next_step_updated_at: CRM timestamp of the last next-step edit.
        freshness_days: Maximum analysis age; defaults to settings.

    Returns:
        bool: True when the caller should run extraction again.
    """
    if analysis is None:
        return True
    if text_changed(next_step, analysis):
        return True
    if next_step_updated_at is not None and next_step_updated_at > analysis.analyzedAt:
        return True

    if freshness_days is None:
        freshness_days = get_settings().next_step_freshness_days
    return now - analysis.analyzedAt > timedelta(days=freshness_days)


def _due_reason(days: int) -> str:
    if days == 0:
        return "Next step due today"
    if days == 1:
        return "Next step due tomorrow"
    return f"Next step due in {days} days"


def check_next_step(
    deal: DealRecord,
    now: datetime,
    freshness_days: Optional[int] = None,
) -> NextStepCheckResult:
    """
    Evaluate a deal's next step against today.

    Args:
        deal: Deal snapshot carrying nextStep and its stored analysis.
        now: Evaluation time; due dates compare at day granularity.
        freshness_days: Override for the re-analysis window.

    Returns:
        NextStepCheckResult: compliance, due date, overdue days, and the
        needsAnalysis flag.
    """
    analysis = deal.nextStepAnalysis
    stale = needs_analysis(
        deal.nextStep,
        analysis,
        now,
        next_step_updated_at=deal.nextStepUpdatedAt,
        freshness_days=freshness_days,
    )

    if is_missing(deal.nextStep):
        return NextStepCheckResult(
            recordId=deal.id,
            compliance=NextStepCompliance.MISSING,
            analysisStatus=NextStepStatus.EMPTY,
            needsAnalysis=stale,
            reason="No next step set",
        )

    if analysis is None or text_changed(deal.nextStep, analysis):
        return NextStepCheckResult(
            recordId=deal.id,
            compliance=NextStepCompliance.NO_DATE,
            needsAnalysis=True,
            reason="Next step awaiting analysis",
        )

    status = analysis.status

    if status == NextStepStatus.AWAITING_EXTERNAL:
        return NextStepCheckResult(
            recordId=deal.id,
            compliance=NextStepCompliance.COMPLIANT,
            analysisStatus=status,
            dueDate=analysis.dueDate,
            needsAnalysis=stale,
            reason="Waiting on external party",
        )

    if status in DATED_STATUSES and analysis.dueDate is not None:
        today = to_day(now)
        days_left = (analysis.dueDate - today).days
        if days_left < 0:
            days_overdue = -days_left
            plural = "s" if days_overdue != 1 else ""
            return NextStepCheckResult(
                recordId=deal.id,
                compliance=NextStepCompliance.OVERDUE,
                analysisStatus=status,
                dueDate=analysis.dueDate,
                daysOverdue=days_overdue,
                needsAnalysis=stale,
                reason=f"Next step overdue by {days_overdue} day{plural}",
            )
        return NextStepCheckResult(
            recordId=deal.id,
            compliance=NextStepCompliance.COMPLIANT,
            analysisStatus=status,
            dueDate=analysis.dueDate,
            needsAnalysis=stale,
            reason=_due_reason(days_left),
        )

    return NextStepCheckResult(
        recordId=deal.id,
        compliance=NextStepCompliance.NO_DATE,
        analysisStatus=status,
        needsAnalysis=stale,
        reason=_UNDATED_REASONS.get(status, "Next step has no date"),
    )


def build_analysis(
    extraction: DateExtraction,
    next_step: Optional[str],
    now: datetime,
) -> NextStepAnalysis:
    """Turn an extraction result into the analysis stored on the deal."""
    return NextStepAnalysis(
        status=extraction.status,
        dueDate=extraction.dueDate,
        confidence=extraction.confidence,
        analyzedAt=now,
        analyzedText=_normalize_text(next_step),
        actionType=extraction.actionType,
        displayMessage=extraction.displayMessage,
    )


def empty_analysis(now: datetime) -> NextStepAnalysis:
    """Analysis for a deal with no next-step text; no extraction call needed."""
    return NextStepAnalysis(
        status=NextStepStatus.EMPTY,
        analyzedAt=now,
        analyzedText="",
        displayMessage="No next step set",
    )


__all__ = [
    "DATED_STATUSES",
    "text_changed",
    "needs_analysis",
    "check_next_step",
    "build_analysis",
    "empty_analysis",
]
