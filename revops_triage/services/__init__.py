"""
Engine services for the RevOps triage system.

Each evaluator is a pure, synchronous module operating on record snapshots
already in memory. I/O lives in record_store (Postgres) and workflows
(async orchestration over the collaborator protocols).

Services:
- business_calendar: business-day deltas and quarter bounds
- hygiene: required-field policies per pipeline
- next_step: next-step compliance and re-analysis staleness
- touch_compliance: outreach cadence in the post-creation window
- commitments: commitment state machine and reason text
- task_idempotency: duplicate-reminder prevention
- deal_risk: stage-age and inactivity risk, stalled deals
- overdue_tasks: overdue CRM task detection
- exception_aggregator: batch evaluation, severity and counts
- collaborators: RecordStore / TaskSink / DateExtractor protocols
- record_store: asyncpg-backed RecordStore
- workflows: async queue evaluation, commitments, task creation
"""

from revops_triage.services.business_calendar import (
    QuarterBounds,
    add_business_days,
    business_days_between,
    quarter_bounds,
    quarter_for,
)
from revops_triage.services.commitments import (
    commitment_state,
    days_remaining,
    track_commitment,
    validate_due_date,
    view_commitment,
)
from revops_triage.services.deal_risk import assess_deal_risk, check_deal_staleness
from revops_triage.services.exception_aggregator import (
    RecordInputs,
    evaluate_batch,
    evaluate_record,
)
from revops_triage.services.hygiene import evaluate_hygiene, issue_signature
from revops_triage.services.next_step import check_next_step, needs_analysis
from revops_triage.services.overdue_tasks import check_overdue_tasks
from revops_triage.services.task_idempotency import should_create
from revops_triage.services.touch_compliance import analyze_touches


__all__ = [
    "QuarterBounds",
    "add_business_days",
    "business_days_between",
    "quarter_bounds",
    "quarter_for",
    "commitment_state",
    "days_remaining",
    "track_commitment",
    "validate_due_date",
    "view_commitment",
    "assess_deal_risk",
    "check_deal_staleness",
    "RecordInputs",
    "evaluate_batch",
    "evaluate_record",
    "evaluate_hygiene",
    "issue_signature",
    "check_next_step",
    "needs_analysis",
    "check_overdue_tasks",
    "should_create",
    "analyze_touches",
]
