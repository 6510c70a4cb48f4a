"""
Protocol interfaces for the engine's external collaborators.

Structural typing only: any object with matching async methods satisfies a
protocol, so the Postgres store, test fakes and host adapters need no
shared base class.
"""

from datetime import date, datetime
from typing import AbstractSet, Any, Dict, List, Optional, Protocol, runtime_checkable

from revops_triage.models.enums import TaskKind
from revops_triage.models.schemas import (
    ActivityEvent,
    Commitment,
    CrmTask,
    DateExtraction,
    ExistingTaskRecord,
    NextStepAnalysis,
    Record,
    RecordFilter,
)


# ---------------------------------------------------------------------------
# Record Store
# ---------------------------------------------------------------------------

@runtime_checkable
class RecordStore(Protocol):
    """Typed CRM records plus the commitment and task ledgers kept beside them."""

    async def fetch_records(self, record_filter: RecordFilter) -> List[Record]: ...

    async def fetch_commitment(self, record_id: str) -> Optional[Commitment]: ...

    async def write_commitment(self, record_id: str, due_date: date, set_at: datetime) -> Commitment: ...

    async def clear_commitment(self, record_id: str) -> None: ...

    async def fetch_existing_task(
        self, record_id: str, kind: TaskKind = TaskKind.HYGIENE
    ) -> Optional[ExistingTaskRecord]: ...

    async def record_task(self, task: ExistingTaskRecord) -> None: ...

    async def fetch_activity(self, record_id: str) -> List[ActivityEvent]: ...

    async def fetch_crm_tasks(self, record_id: str) -> List[CrmTask]: ...

    async def write_next_step_analysis(self, record_id: str, analysis: NextStepAnalysis) -> None: ...


# ---------------------------------------------------------------------------
# Task Sink
# ---------------------------------------------------------------------------

@runtime_checkable
class TaskSink(Protocol):
    """Creates reminder tasks in the external CRM and returns their id."""

    async def create_task(
        self,
        record_id: str,
        issue_signature: AbstractSet[str],
        metadata: Dict[str, Any],
    ) -> str: ...


# ---------------------------------------------------------------------------
# Date Extraction
# ---------------------------------------------------------------------------

@runtime_checkable
class DateExtractor(Protocol):
    """Parses free-text next steps into a status and due date."""

    async def extract_due_date(self, text: str, reference_date: date) -> DateExtraction: ...


__all__ = ["RecordStore", "TaskSink", "DateExtractor"]
