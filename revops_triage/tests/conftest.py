"""
Pytest configuration and shared fixtures for the triage engine tests.

Provides:
- A fixed evaluation time (Wednesday 2026-01-14 10:00) so business-day
  arithmetic in tests is deterministic
- Deal and company factories with compliant defaults
- In-memory RecordStore, TaskSink and DateExtractor doubles for the async
  workflows
- A mocked asyncpg pool for the Postgres record store
- Settings isolated from any local .env file

Dependencies:
- pytest
- pytest-asyncio
"""

from datetime import date, datetime, timedelta
from typing import Any, AbstractSet, Callable, Dict, Generator, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from revops_triage.core.config import Settings, get_settings
from revops_triage.models import (
    ActivityEvent,
    Commitment,
    CompanyRecord,
    CrmTask,
    DateExtraction,
    DealRecord,
    ExistingTaskRecord,
    NextStepAnalysis,
    PipelineType,
    Record,
    RecordFilter,
    TaskKind,
)


# ============================================================
# PYTEST PLUGINS CONFIGURATION
# ============================================================

pytest_plugins: List[str] = ['pytest_asyncio']


def pytest_configure(config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'scenario: marks end-to-end acceptance scenarios'
    )


# ============================================================
# TIME AND SETTINGS FIXTURES
# ============================================================

# Wednesday
NOW = datetime(2026, 1, 14, 10, 0, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def today() -> date:
    return NOW.date()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch) -> Generator[None, None, None]:
    """
    Keep the cached settings singleton free of local .env overrides.

    Every test starts and ends with an empty get_settings() cache.
    """
    monkeypatch.setitem(Settings.model_config, 'env_file', None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


# ============================================================
# RECORD FACTORIES
# ============================================================

@pytest.fixture
def make_deal() -> Callable[..., DealRecord]:
    """
    Factory for deals that are compliant and healthy unless overridden.

    Usage:
        deal = make_deal(amount=None, pipeline=PipelineType.UPSELL)
    """
    def _make(**overrides: Any) -> DealRecord:
        fields: Dict[str, Any] = {
            'id': 'deal-1',
            'externalId': '1001',
            'pipeline': PipelineType.SALES,
            'name': 'Acme Corp - Platform',
            'ownerId': 'owner-1',
            'stage': 'Discovery',
            'stageEnteredAt': NOW - timedelta(days=3),
            'dealSubstage': 'Qualified',
            'amount': 20000.0,
            'closeDate': NOW.date() + timedelta(days=30),
            'leadSource': 'Inbound',
            'products': ['Platform'],
            'nextStep': 'Send proposal',
            'nextStepAnalysis': NextStepAnalysis(
                status='date_found',
                dueDate=NOW.date() + timedelta(days=2),
                confidence=0.9,
                analyzedAt=NOW - timedelta(hours=2),
                analyzedText='Send proposal',
            ),
            'createdAt': NOW - timedelta(days=30),
            'lastActivityAt': NOW - timedelta(days=1),
            'nextActivityAt': NOW + timedelta(days=1),
        }
        fields.update(overrides)
        return DealRecord(**fields)

    return _make


@pytest.fixture
def make_company() -> Callable[..., CompanyRecord]:
    def _make(**overrides: Any) -> CompanyRecord:
        fields: Dict[str, Any] = {
            'id': 'company-1',
            'externalId': '2001',
            'name': 'Globex',
            'ownerId': 'csm-1',
            'sentiment': 'Positive',
            'autoRenew': 'Yes',
            'contractEndDate': NOW.date() + timedelta(days=200),
            'mrr': 4500.0,
            'contractStatus': 'Active',
            'qbrNotes': 'Expansion discussed',
            'healthScoreStatus': 'Healthy',
            'createdAt': NOW - timedelta(days=400),
            'lastActivityAt': NOW - timedelta(days=2),
        }
        fields.update(overrides)
        return CompanyRecord(**fields)

    return _make


# ============================================================
# COLLABORATOR DOUBLES
# ============================================================

class InMemoryRecordStore:
    """RecordStore double keeping everything in dictionaries."""

    def __init__(self, records: Optional[List[Record]] = None):
        self.records: List[Record] = list(records or [])
        self.commitments: Dict[str, Commitment] = {}
        self.tasks: List[ExistingTaskRecord] = []
        self.activity: Dict[str, List[ActivityEvent]] = {}
        self.crm_tasks: Dict[str, List[CrmTask]] = {}
        self.analyses: Dict[str, NextStepAnalysis] = {}
        self.fail_activity = False

    async def fetch_records(self, record_filter: RecordFilter) -> List[Record]:
        selected = self.records
        if record_filter.pipelines:
            selected = [r for r in selected if r.pipeline in record_filter.pipelines]
        if record_filter.recordIds:
            selected = [r for r in selected if r.id in record_filter.recordIds]
        return list(selected)

    async def fetch_commitment(self, record_id: str) -> Optional[Commitment]:
        return self.commitments.get(record_id)

    async def write_commitment(self, record_id: str, due_date: date, set_at: datetime) -> Commitment:
        commitment = Commitment(recordId=record_id, dueDate=due_date, setAt=set_at)
        self.commitments[record_id] = commitment
        return commitment

    async def clear_commitment(self, record_id: str) -> None:
        self.commitments.pop(record_id, None)

    async def fetch_existing_task(
        self, record_id: str, kind: TaskKind = TaskKind.HYGIENE
    ) -> Optional[ExistingTaskRecord]:
        matching = [t for t in self.tasks if t.recordId == record_id and t.kind == kind]
        return max(matching, key=lambda t: t.createdAt) if matching else None

    async def record_task(self, task: ExistingTaskRecord) -> None:
        self.tasks.append(task)

    async def fetch_activity(self, record_id: str) -> List[ActivityEvent]:
        if self.fail_activity:
            raise ConnectionError('engagements API down')
        return self.activity.get(record_id, [])

    async def fetch_crm_tasks(self, record_id: str) -> List[CrmTask]:
        return self.crm_tasks.get(record_id, [])

    async def write_next_step_analysis(self, record_id: str, analysis: NextStepAnalysis) -> None:
        self.analyses[record_id] = analysis


class RecordingTaskSink:
    """TaskSink double that records every created task."""

    def __init__(self):
        self.created: List[Dict[str, Any]] = []

    async def create_task(
        self,
        record_id: str,
        issue_signature: AbstractSet[str],
        metadata: Dict[str, Any],
    ) -> str:
        task_id = f"task-{len(self.created) + 1}"
        self.created.append({
            'taskId': task_id,
            'recordId': record_id,
            'signature': set(issue_signature),
            'metadata': metadata,
        })
        return task_id


class StubDateExtractor:
    """DateExtractor double returning a fixed extraction."""

    def __init__(self, extraction: Optional[DateExtraction] = None):
        self.extraction = extraction or DateExtraction(status='no_date')
        self.calls: List[str] = []

    async def extract_due_date(self, text: str, reference_date: date) -> DateExtraction:
        self.calls.append(text)
        return self.extraction


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def task_sink() -> RecordingTaskSink:
    return RecordingTaskSink()


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Mock asyncpg pool whose acquire() yields a mock connection.

    Usage:
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetch.return_value = [...]
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.execute = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)

    pool.release = AsyncMock(return_value=None)
    pool.close = AsyncMock(return_value=None)

    return pool
