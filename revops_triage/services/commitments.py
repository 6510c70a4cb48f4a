"""
Commitment tracking for hygiene violations.

A commitment is the owner's promise to fix a record's missing fields by a
due date. Its state is never stored; it is computed from the due date and
the evaluation time on every read:

    no due date          -> needs_commitment
    today <= due date    -> pending
    today >  due date    -> escalated

Setting or moving the due date is the only human transition and is
validated against the allowed range (by default 1 to 30 days ahead). A
record that became compliant has no commitment to show; the stored row is
simply ignored.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from revops_triage.core.config import get_settings
from revops_triage.core.errors import TriageValidationError
from revops_triage.models.enums import CommitmentState
from revops_triage.models.schemas import (
    Commitment,
    CommitmentView,
    HygieneCheckResult,
    MissingField,
)
from revops_triage.services.business_calendar import business_days_between, days_until, to_day
from revops_triage.services.hygiene import format_missing_labels


logger = logging.getLogger(__name__)


def validate_due_date(
    due_date: date,
    now: datetime,
    min_days: Optional[int] = None,
    max_days: Optional[int] = None,
) -> date:
    """
    Check a commitment due date is inside the allowed window.

    Raises:
        TriageValidationError: If the date is too soon or too far out.
    """
    settings = get_settings()
    if min_days is None:
        min_days = settings.commitment_min_days
    if max_days is None:
        max_days = settings.commitment_max_days

    ahead = days_until(due_date, now)
    if ahead < min_days:
        raise TriageValidationError(
            "dueDate",
            f"must be at least {min_days} day(s) in the future, got {due_date.isoformat()}",
        )
    if ahead > max_days:
        raise TriageValidationError(
            "dueDate",
            f"must be within {max_days} days, got {due_date.isoformat()}",
        )
    return due_date


def set_commitment(record_id: str, due_date: date, now: datetime) -> Commitment:
    """Validate and build the commitment to persist. Replaces any previous one."""
    validate_due_date(due_date, now)
    return Commitment(recordId=record_id, dueDate=due_date, setAt=now)


def commitment_state(commitment: Optional[Commitment], now: datetime) -> CommitmentState:
    if commitment is None or commitment.dueDate is None:
        return CommitmentState.NEEDS_COMMITMENT
    if to_day(now) > commitment.dueDate:
        return CommitmentState.ESCALATED
    return CommitmentState.PENDING


def days_remaining(due_date: date, now: datetime) -> int:
    """
    Business days left until due_date.

    Negative, and never zero, once the date has passed: a commitment due
    yesterday reports -1 even across a weekend.
    """
    today = to_day(now)
    if today > due_date:
        return -max(1, business_days_between(due_date, today))
    return business_days_between(today, due_date)


def view_commitment(
    record_id: str,
    commitment: Optional[Commitment],
    now: datetime,
) -> CommitmentView:
    state = commitment_state(commitment, now)
    due_date = commitment.dueDate if commitment is not None else None
    return CommitmentView(
        recordId=record_id,
        state=state,
        dueDate=due_date,
        daysRemaining=days_remaining(due_date, now) if due_date is not None else None,
    )


def track_commitment(
    record_id: str,
    hygiene: HygieneCheckResult,
    commitment: Optional[Commitment],
    now: datetime,
) -> Optional[CommitmentView]:
    """
    Commitment view for a record, or None when there is nothing to track.

    A compliant record returns None even if a commitment row still exists.
    """
    if hygiene.isCompliant:
        if commitment is not None:
            logger.debug(f"Ignoring commitment for compliant record {record_id}")
        return None
    return view_commitment(record_id, commitment, now)


def hygiene_reason(
    missing_fields: List[MissingField],
    view: CommitmentView,
    now: datetime,
    is_new_deal: bool = False,
) -> str:
    """Queue reason text for a non-compliant record."""
    labels = format_missing_labels(missing_fields)

    if view.dueDate is None:
        if is_new_deal:
            return f"New deal missing: {labels}. Please set a date to complete."
        return f"Missing: {labels}. No commitment set."

    ahead = days_until(view.dueDate, now)
    if ahead < 0:
        overdue = -ahead
        plural = "s" if overdue != 1 else ""
        return f"OVERDUE by {overdue} day{plural}: Still missing {labels}."
    if ahead == 0:
        return f"Missing: {labels}. Due today"
    if ahead == 1:
        return f"Missing: {labels}. Due tomorrow"
    return f"Missing: {labels}. Due in {ahead} days"


__all__ = [
    "validate_due_date",
    "set_commitment",
    "commitment_state",
    "days_remaining",
    "view_commitment",
    "track_commitment",
    "hygiene_reason",
]
