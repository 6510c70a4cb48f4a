"""
Pydantic models for the triage engine.

Covers the typed CRM record snapshots handed in by the record store, the
per-evaluator results, the persisted commitment and task records, and the
aggregated evaluation output consumed by queue and dashboard layers.

Records are frozen: the engine reads a snapshot, it never mutates one.
Fields a CRM payload leaves blank arrive as None rather than a coerced
default, so hygiene checks see exactly what the CRM holds.

All models use Pydantic v2 syntax with camelCase field names.
"""

from datetime import datetime, date as DateType
from typing import Dict, FrozenSet, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from revops_triage.models.enums import (
    ActivityDirection,
    ActivityType,
    CommitmentState,
    ExceptionType,
    NextStepActionType,
    NextStepCompliance,
    NextStepStatus,
    PipelineType,
    RecordKind,
    RiskFactorType,
    RiskLevel,
    Severity,
    StageCategory,
    StalledSeverity,
    TaskKind,
    TouchStatus,
)


# =============================================================================
# Next Step Analysis (stored alongside the deal)
# =============================================================================


class DateExtraction(BaseModel):
    """Result returned by the external date-extraction service."""

    status: NextStepStatus
    dueDate: Optional[DateType] = None
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    actionType: Optional[NextStepActionType] = None
    displayMessage: Optional[str] = None


class NextStepAnalysis(BaseModel):
    """
    Last stored date-extraction result for a deal's next-step text.

    analyzedText is the exact text that was analyzed, so a later edit of the
    next step can be detected without consulting CRM history.
    """

    model_config = ConfigDict(frozen=True)

    status: NextStepStatus = Field(..., description="Extraction status")
    dueDate: Optional[DateType] = Field(default=None, description="Extracted due date")
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    analyzedAt: datetime = Field(..., description="When extraction last ran")
    analyzedText: Optional[str] = Field(
        default=None,
        description="Next-step text the analysis was produced from"
    )
    actionType: Optional[NextStepActionType] = None
    displayMessage: Optional[str] = None


# =============================================================================
# CRM Records (read-only snapshots from the record store)
# =============================================================================


class CrmRecord(BaseModel):
    """Fields shared by every CRM record kind."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Internal record id")
    externalId: Optional[str] = Field(default=None, description="CRM object id")
    kind: RecordKind
    pipeline: PipelineType
    name: Optional[str] = None
    ownerId: Optional[str] = None
    createdAt: Optional[datetime] = None
    lastActivityAt: Optional[datetime] = None
    nextActivityAt: Optional[datetime] = None


class DealRecord(CrmRecord):
    """
    Deal snapshot for the sales and upsell pipelines.

    stageCategory is resolved from the stage label by the record store and
    is the only stage information the rules look at.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "d-1042",
                "externalId": "9876543210",
                "kind": "deal",
                "pipeline": "sales",
                "name": "Acme Corp - Platform",
                "ownerId": "owner-17",
                "stage": "Discovery",
                "stageCategory": "early",
                "amount": 42000,
                "closeDate": "2026-03-31",
                "leadSource": "Inbound",
                "products": ["Platform"],
                "nextStep": "Send proposal by Friday",
            }
        }
    )

    kind: Literal[RecordKind.DEAL] = RecordKind.DEAL
    pipeline: PipelineType = PipelineType.SALES
    stage: Optional[str] = None
    stageCategory: StageCategory = StageCategory.EARLY
    stageEnteredAt: Optional[datetime] = None
    dealSubstage: Optional[str] = None
    amount: Optional[float] = None
    closeDate: Optional[DateType] = None
    leadSource: Optional[str] = None
    products: Optional[Union[str, List[str]]] = None
    nextStep: Optional[str] = None
    nextStepUpdatedAt: Optional[datetime] = None
    nextStepAnalysis: Optional[NextStepAnalysis] = None


class CompanyRecord(CrmRecord):
    """Company snapshot for the customer-success pipeline."""

    kind: Literal[RecordKind.COMPANY] = RecordKind.COMPANY
    pipeline: PipelineType = PipelineType.CUSTOMER_SUCCESS
    sentiment: Optional[str] = None
    autoRenew: Optional[str] = None
    contractEndDate: Optional[DateType] = None
    mrr: Optional[float] = None
    contractStatus: Optional[str] = None
    qbrNotes: Optional[str] = None
    healthScoreStatus: Optional[str] = None


Record = Union[DealRecord, CompanyRecord]


class RecordFilter(BaseModel):
    """Caller-owned, request-scoped selection passed to the record store."""

    pipelines: Optional[List[PipelineType]] = None
    ownerIds: Optional[List[str]] = None
    recordIds: Optional[List[str]] = None
    includeClosed: bool = False
    excludeChurned: bool = True


# =============================================================================
# Activity and CRM Tasks
# =============================================================================


class ActivityEvent(BaseModel):
    """Logged engagement against a record."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    type: ActivityType
    occurredAt: datetime
    direction: Optional[ActivityDirection] = None
    fromEmail: Optional[str] = None


class CrmTask(BaseModel):
    """CRM task attached to a record, used for overdue-task reminders."""

    id: str
    subject: Optional[str] = None
    status: str = "NOT_STARTED"
    dueAt: Optional[datetime] = None


class OverdueTask(BaseModel):
    id: str
    subject: Optional[str] = None
    dueAt: datetime
    daysOverdue: int


class OverdueTasksResult(BaseModel):
    hasOverdue: bool
    count: int
    oldestOverdueDays: int
    tasks: List[OverdueTask] = Field(default_factory=list)


# =============================================================================
# Evaluator Results
# =============================================================================


class MissingField(BaseModel):
    """A required field left empty by the record."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., description="Record attribute name")
    label: str = Field(..., description="Display label, also the signature element")


class HygieneCheckResult(BaseModel):
    pipeline: PipelineType
    isCompliant: bool
    missingFields: List[MissingField] = Field(default_factory=list)


class NextStepCheckResult(BaseModel):
    """Queue-facing next-step evaluation for one deal."""

    recordId: str
    compliance: NextStepCompliance
    analysisStatus: Optional[NextStepStatus] = None
    dueDate: Optional[DateType] = None
    daysOverdue: Optional[int] = Field(default=None, ge=0)
    needsAnalysis: bool
    reason: str


class TouchCounts(BaseModel):
    calls: int = 0
    emails: int = 0
    total: int = 0


class TouchWindowAnalysis(BaseModel):
    """
    Outreach cadence inside the post-creation window.

    gap is always max(0, target - touches.total). critical only appears
    once the window has closed.
    """

    recordId: str
    windowStart: datetime
    windowEnd: datetime
    windowClosed: bool
    touches: TouchCounts
    target: int
    expected: int = Field(..., description="Touches expected by now, pro-rated while open")
    gap: int = Field(..., ge=0)
    status: TouchStatus
    lastTouchAt: Optional[datetime] = None
    meetingBooked: bool = False


class Commitment(BaseModel):
    """Human-set promise date for fixing a record's hygiene violation."""

    model_config = ConfigDict(frozen=True)

    recordId: str
    dueDate: Optional[DateType] = None
    setAt: Optional[datetime] = None


class CommitmentView(BaseModel):
    """Commitment with its state computed for a given moment."""

    recordId: str
    state: CommitmentState
    dueDate: Optional[DateType] = None
    daysRemaining: Optional[int] = None


class ExistingTaskRecord(BaseModel):
    """Ledger entry for an external reminder task already created."""

    model_config = ConfigDict(frozen=True)

    taskId: str
    recordId: str
    kind: TaskKind = TaskKind.HYGIENE
    createdAt: datetime
    issueSignature: FrozenSet[str] = Field(default_factory=frozenset)


class TaskDecision(BaseModel):
    create: bool
    coversAll: bool


class RiskFactor(BaseModel):
    type: RiskFactorType
    description: str


class DealRiskAssessment(BaseModel):
    recordId: str
    level: RiskLevel
    factors: List[RiskFactor] = Field(default_factory=list)
    stageAgeBusinessDays: Optional[int] = None
    businessDaysSinceActivity: Optional[int] = None


class StalledDealResult(BaseModel):
    recordId: str
    isStalled: bool
    severity: Optional[StalledSeverity] = None
    businessDaysInactive: Optional[int] = None
    aggravatingFactors: List[str] = Field(default_factory=list)


class AccountRiskFlags(BaseModel):
    recordId: str
    isAtRisk: bool
    isFlagged: bool


# =============================================================================
# Aggregated Output
# =============================================================================


class RecordException(BaseModel):
    """Derived exception; produced fresh on every evaluation, never stored."""

    recordId: str
    type: ExceptionType
    severity: Severity
    detail: str
    detectedAt: datetime


class HygieneQueueEntry(BaseModel):
    """One non-compliant record as shown in a hygiene queue."""

    recordId: str
    recordName: Optional[str] = None
    pipeline: PipelineType
    missingFields: List[MissingField]
    signature: List[str] = Field(..., description="Sorted missing-field labels")
    commitment: CommitmentView
    coversAll: bool = Field(..., description="Latest task already covers every missing field")
    existingTaskId: Optional[str] = None
    isNewDeal: bool = False
    graceExpired: bool = False
    reason: str


class TouchSummary(BaseModel):
    counts: Dict[str, int] = Field(default_factory=dict)
    meetingBooked: int = 0
    avgTouches: float = 0.0


class AccountRiskCounts(BaseModel):
    total: int = 0
    atRisk: int = 0
    flagged: int = 0
    both: int = 0


class QueueSummary(BaseModel):
    hygieneTotal: int = 0
    hygieneEscalated: int = 0
    nextStepTotal: int = 0
    nextStepOverdue: int = 0


class RecordEvaluation(BaseModel):
    """Everything the engine derived for a single record."""

    recordId: str
    exceptions: List[RecordException] = Field(default_factory=list)
    hygiene: Optional[HygieneQueueEntry] = None
    nextStep: Optional[NextStepCheckResult] = None
    touch: Optional[TouchWindowAnalysis] = None
    risk: Optional[DealRiskAssessment] = None
    accountRisk: Optional[AccountRiskFlags] = None


class EvaluationResult(BaseModel):
    """
    Output of a completed batch evaluation.

    Only ever built for a batch that finished; a failed batch raises
    instead, so an empty exceptions list always means zero exceptions.
    """

    evaluatedAt: datetime
    recordsEvaluated: int = Field(..., ge=0)
    exceptions: List[RecordException] = Field(default_factory=list)
    counts: Dict[str, int] = Field(default_factory=dict)
    criticalCount: int = 0
    hygiene: List[HygieneQueueEntry] = Field(default_factory=list)
    nextSteps: List[NextStepCheckResult] = Field(default_factory=list)
    touches: List[TouchWindowAnalysis] = Field(default_factory=list)
    touchSummary: TouchSummary = Field(default_factory=TouchSummary)
    accountRisk: List[AccountRiskFlags] = Field(default_factory=list)
    accountRiskCounts: AccountRiskCounts = Field(default_factory=AccountRiskCounts)
    summary: QueueSummary = Field(default_factory=QueueSummary)


__all__ = [
    "DateExtraction",
    "NextStepAnalysis",
    "CrmRecord",
    "DealRecord",
    "CompanyRecord",
    "Record",
    "RecordFilter",
    "ActivityEvent",
    "CrmTask",
    "OverdueTask",
    "OverdueTasksResult",
    "MissingField",
    "HygieneCheckResult",
    "NextStepCheckResult",
    "TouchCounts",
    "TouchWindowAnalysis",
    "Commitment",
    "CommitmentView",
    "ExistingTaskRecord",
    "TaskDecision",
    "RiskFactor",
    "DealRiskAssessment",
    "StalledDealResult",
    "AccountRiskFlags",
    "RecordException",
    "HygieneQueueEntry",
    "TouchSummary",
    "AccountRiskCounts",
    "QueueSummary",
    "RecordEvaluation",
    "EvaluationResult",
]
