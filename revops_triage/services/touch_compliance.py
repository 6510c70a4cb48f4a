"""
Touch compliance for newly created deals.

Counts outreach (calls and outbound emails) logged in the first business
days after a deal is created and compares it against a target.

Window:
    windowStart = start of the creation day
    windowEnd   = end of the day `touch_window_business_days` business days later

Status, in order:
    - activity not fetched (events is None)  -> pending
    - window open:   on_track if touches >= pro-rated expectation, else behind
    - window closed: on_track if gap == 0, critical if gap >= ceil(target / 2),
                     else behind

Pro-ration: expected = floor(target * elapsed / window_days), where elapsed
is the number of business days of the window already completed before
today. The first day therefore expects nothing and the last day expects the
full target.
"""

import logging
import math
from datetime import datetime, time
from typing import Iterable, List, Optional

from revops_triage.core.config import get_settings
from revops_triage.core.errors import TriageValidationError
from revops_triage.models.enums import ActivityDirection, ActivityType, TouchStatus
from revops_triage.models.schemas import (
    ActivityEvent,
    Record,
    TouchCounts,
    TouchSummary,
    TouchWindowAnalysis,
)
from revops_triage.services.business_calendar import (
    add_business_days,
    business_days_between,
    start_of_day,
)


logger = logging.getLogger(__name__)


def is_outbound_email(event: ActivityEvent, internal_email_domain: Optional[str] = None) -> bool:
    """
    True for emails sent by the team.

    Emails without a direction fall back to the sender address when an
    internal domain is configured.
    """
    if event.type != ActivityType.EMAIL:
        return False
    if event.direction is not None:
        return event.direction == ActivityDirection.OUTBOUND
    if internal_email_domain and event.fromEmail:
        return event.fromEmail.lower().endswith("@" + internal_email_domain.lower())
    return False


def is_touch(event: ActivityEvent, internal_email_domain: Optional[str] = None) -> bool:
    return event.type == ActivityType.CALL or is_outbound_email(event, internal_email_domain)


def touch_window(created_at: datetime, window_days: int):
    """Return (windowStart, windowEnd) for a deal created at created_at."""
    window_start = start_of_day(created_at)
    last_day = add_business_days(created_at, window_days)
    window_end = datetime.combine(last_day, time.max, tzinfo=created_at.tzinfo)
    return window_start, window_end


def pro_rated_expectation(
    target: int,
    window_start: datetime,
    now: datetime,
    window_days: int,
) -> int:
    elapsed = min(business_days_between(window_start, now), window_days)
    return math.floor(target * elapsed / window_days)


def analyze_touches(
    record: Record,
    events: Optional[Iterable[ActivityEvent]],
    now: datetime,
    created_at: Optional[datetime] = None,
    target: Optional[int] = None,
    window_days: Optional[int] = None,
    internal_email_domain: Optional[str] = None,
) -> TouchWindowAnalysis:
    """
    Measure outreach inside a record's post-creation window.

    Args:
        record: Record being measured.
        events: Activity for the record, or None when it was not fetched.
        now: Evaluation time.
        created_at: Window anchor; defaults to record.createdAt.
        target: Expected touches; defaults to settings.touch_target.
        window_days: Window length; defaults to settings.touch_window_business_days.
        internal_email_domain: Outbound fallback domain; defaults to settings.

    Returns:
        TouchWindowAnalysis: counts, gap and status.

    Raises:
        TriageValidationError: If the record has no creation time,
            or the window is shorter than one business day.
    """
    settings = get_settings()
    if target is None:
        target = settings.touch_target
    if window_days is None:
        window_days = settings.touch_window_business_days
    if internal_email_domain is None:
        internal_email_domain = settings.internal_email_domain
    if window_days < 1:
        raise TriageValidationError("windowDays", f"must be at least 1, got {window_days}")

    anchor = created_at or record.createdAt
    if anchor is None:
        raise TriageValidationError("createdAt", f"record {record.id} has no creation time")

    window_start, window_end = touch_window(anchor, window_days)
    window_closed = now >= window_end

    calls = 0
    emails = 0
    last_touch_at: Optional[datetime] = None
    meeting_booked = False

    for event in events or []:
        in_window = window_start <= event.occurredAt <= window_end
        if event.type == ActivityType.MEETING and in_window:
            meeting_booked = True
        if not is_touch(event, internal_email_domain):
            continue
        if last_touch_at is None or event.occurredAt > last_touch_at:
            last_touch_at = event.occurredAt
        if not in_window:
            continue
        if event.type == ActivityType.CALL:
            calls += 1
        else:
            emails += 1

    total = calls + emails
    gap = max(0, target - total)

    if window_closed:
        expected = target
    else:
        expected = pro_rated_expectation(target, window_start, now, window_days)

    if events is None:
        status = TouchStatus.PENDING
    elif not window_closed:
        status = TouchStatus.ON_TRACK if total >= expected else TouchStatus.BEHIND
    elif gap == 0:
        status = TouchStatus.ON_TRACK
    elif gap >= math.ceil(target / 2):
        status = TouchStatus.CRITICAL
    else:
        status = TouchStatus.BEHIND

    return TouchWindowAnalysis(
        recordId=record.id,
        windowStart=window_start,
        windowEnd=window_end,
        windowClosed=window_closed,
        touches=TouchCounts(calls=calls, emails=emails, total=total),
        target=target,
        expected=expected,
        gap=gap,
        status=status,
        lastTouchAt=last_touch_at,
        meetingBooked=meeting_booked,
    )


def summarize_touches(analyses: List[TouchWindowAnalysis]) -> TouchSummary:
    """
    Status counts plus the average touch count.

    The average leaves out pending records (no data) and records that
    already booked a meeting.
    """
    counts = {status.value: 0 for status in TouchStatus}
    meeting_booked = 0
    measured: List[int] = []

    for analysis in analyses:
        counts[analysis.status.value] += 1
        if analysis.meetingBooked:
            meeting_booked += 1
        elif analysis.status != TouchStatus.PENDING:
            measured.append(analysis.touches.total)

    avg = round(sum(measured) / len(measured), 1) if measured else 0.0
    return TouchSummary(counts=counts, meetingBooked=meeting_booked, avgTouches=avg)


__all__ = [
    "is_outbound_email",
    "is_touch",
    "touch_window",
    "pro_rated_expectation",
    "analyze_touches",
    "summarize_touches",
]
