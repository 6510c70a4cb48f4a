"""
Models package for the triage engine.

Re-exports enums and pydantic schemas so callers can write:

    from revops_triage.models import DealRecord, ExceptionType
"""

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
from revops_triage.models.schemas import (
    AccountRiskCounts,
    AccountRiskFlags,
    ActivityEvent,
    Commitment,
    CommitmentView,
    CompanyRecord,
    CrmRecord,
    CrmTask,
    DateExtraction,
    DealRecord,
    DealRiskAssessment,
    EvaluationResult,
    ExistingTaskRecord,
    HygieneCheckResult,
    HygieneQueueEntry,
    MissingField,
    NextStepAnalysis,
    NextStepCheckResult,
    OverdueTask,
    OverdueTasksResult,
    QueueSummary,
    Record,
    RecordEvaluation,
    RecordException,
    RecordFilter,
    RiskFactor,
    StalledDealResult,
    TaskDecision,
    TouchCounts,
    TouchSummary,
    TouchWindowAnalysis,
)


__all__ = [
    # Enums
    "ActivityDirection",
    "ActivityType",
    "CommitmentState",
    "ExceptionType",
    "NextStepActionType",
    "NextStepCompliance",
    "NextStepStatus",
    "PipelineType",
    "RecordKind",
    "RiskFactorType",
    "RiskLevel",
    "Severity",
    "StageCategory",
    "StalledSeverity",
    "TaskKind",
    "TouchStatus",
    # Schemas
    "AccountRiskCounts",
    "AccountRiskFlags",
    "ActivityEvent",
    "Commitment",
    "CommitmentView",
    "CompanyRecord",
    "CrmRecord",
    "CrmTask",
    "DateExtraction",
    "DealRecord",
    "DealRiskAssessment",
    "EvaluationResult",
    "ExistingTaskRecord",
    "HygieneCheckResult",
    "HygieneQueueEntry",
    "MissingField",
    "NextStepAnalysis",
    "NextStepCheckResult",
    "OverdueTask",
    "OverdueTasksResult",
    "QueueSummary",
    "Record",
    "RecordEvaluation",
    "RecordException",
    "RecordFilter",
    "RiskFactor",
    "StalledDealResult",
    "TaskDecision",
    "TouchCounts",
    "TouchSummary",
    "TouchWindowAnalysis",
]
