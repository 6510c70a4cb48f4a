"""
Enumeration definitions for the triage engine.

All enums inherit from both `str` and `Enum` so pydantic models serialize
them as their plain string values.

Groups:
- Record identity: RecordKind, PipelineType, StageCategory
- Next steps: NextStepStatus, NextStepCompliance
- Touch compliance: TouchStatus, ActivityType, ActivityDirection
- Commitments and tasks: CommitmentState, TaskKind
- Exceptions: ExceptionType, Severity
- Deal risk: RiskLevel, StalledSeverity
"""

from enum import Enum


class RecordKind(str, Enum):
    """CRM object a record was read from."""
    DEAL = "deal"
    COMPANY = "company"


class PipelineType(str, Enum):
    """
    Pipeline a record belongs to. Each pipeline owns a hygiene policy.

    - sales: new-business deals
    - upsell: expansion deals on existing customers
    - customer_success: company records managed by CS
    """
    SALES = "sales"
    UPSELL = "upsell"
    CUSTOMER_SUCCESS = "customer_success"


class StageCategory(str, Enum):
    """
    Coarse deal stage bucket, resolved once when a record is loaded.

    Stage-age limits and risk rules are keyed on this value rather than on
    the free-form stage label.
    """
    EARLY = "early"
    MID = "mid"
    LATE = "late"
    CLOSED = "closed"


class NextStepStatus(str, Enum):
    """
    Result of date extraction over a deal's next-step text.

    - empty: no text present
    - no_date: text present, no date mentioned
    - date_found: explicit date in the text
    - date_inferred: relative date resolved against the analysis day
    - date_unclear: a date is mentioned but could not be pinned down
    - awaiting_external: next action is on the counterparty
    - unparseable: extraction could not interpret the text
    """
    EMPTY = "empty"
    NO_DATE = "no_date"
    DATE_FOUND = "date_found"
    DATE_INFERRED = "date_inferred"
    DATE_UNCLEAR = "date_unclear"
    AWAITING_EXTERNAL = "awaiting_external"
    UNPARSEABLE = "unparseable"


class NextStepCompliance(str, Enum):
    """Queue-facing status derived from a next-step analysis."""
    MISSING = "missing"
    OVERDUE = "overdue"
    COMPLIANT = "compliant"
    NO_DATE = "no_date"


class NextStepActionType(str, Enum):
    """Kind of action a next step describes, when extraction reports one."""
    DEMO = "demo"
    CALL = "call"
    EMAIL = "email"
    PROPOSAL = "proposal"
    MEETING = "meeting"
    FOLLOW_UP = "follow_up"
    CONTRACT = "contract"
    SECURITY_REVIEW = "security_review"
    OTHER = "other"


class TouchStatus(str, Enum):
    """
    Outreach cadence status for the post-creation window.

    pending means activity was not fetched, which differs from zero touches.
    """
    PENDING = "pending"
    ON_TRACK = "on_track"
    BEHIND = "behind"
    CRITICAL = "critical"


class ActivityType(str, Enum):
    """Logged CRM engagement type."""
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    TASK = "task"


class ActivityDirection(str, Enum):
    """Direction of an email engagement."""
    OUTBOUND = "outbound"
    INBOUND = "inbound"


class CommitmentState(str, Enum):
    """
    Hygiene commitment lifecycle.

    needs_commitment -> pending (due date set) -> escalated (due date passed).
    There is no resolved state; a cleared violation drops the commitment.
    """
    NEEDS_COMMITMENT = "needs_commitment"
    PENDING = "pending"
    ESCALATED = "escalated"


class TaskKind(str, Enum):
    """Kind of external reminder task, used to scope idempotency checks."""
    HYGIENE = "hygiene"
    OVERDUE_REMINDER = "overdue_reminder"


class ExceptionType(str, Enum):
    """
    Deal exception types. Declaration order is the output order for the
    exceptions of a single record.
    """
    OVERDUE_NEXT_STEP = "overdue_next_step"
    PAST_CLOSE_DATE = "past_close_date"
    ACTIVITY_DROUGHT = "activity_drought"
    NO_NEXT_STEP = "no_next_step"
    STALE_STAGE = "stale_stage"
    HIGH_VALUE_AT_RISK = "high_value_at_risk"


class Severity(str, Enum):
    """Exception urgency tag."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(str, Enum):
    """Overall deal risk from the number of risk factors present."""
    HEALTHY = "healthy"
    AT_RISK = "at_risk"
    STALE = "stale"


class RiskFactorType(str, Enum):
    """Individual deal risk factor."""
    STAGE_AGE = "stage_age"
    ACTIVITY_DROUGHT = "activity_drought"
    NO_NEXT_STEP = "no_next_step"
    PAST_CLOSE_DATE = "past_close_date"
    OVERDUE_NEXT_STEP = "overdue_next_step"


class StalledSeverity(str, Enum):
    """Inactivity level for stalled deals."""
    WATCH = "watch"
    WARNING = "warning"
    CRITICAL = "critical"


__all__ = [
    "RecordKind",
    "PipelineType",
    "StageCategory",
    "NextStepStatus",
    "NextStepCompliance",
    "NextStepActionType",
    "TouchStatus",
    "ActivityType",
    "ActivityDirection",
    "CommitmentState",
    "TaskKind",
    "ExceptionType",
    "Severity",
    "RiskLevel",
    "RiskFactorType",
    "StalledSeverity",
]
