"""
Tests for batch exception aggregation.
"""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from revops_triage.core.config import Settings
from revops_triage.core.errors import BatchEvaluationError
from revops_triage.models import (
    ActivityEvent,
    ActivityType,
    Commitment,
    CommitmentState,
    ExceptionType,
    ExistingTaskRecord,
    NextStepAnalysis,
    NextStepStatus,
    PipelineType,
    Severity,
    StageCategory,
    TaskKind,
    TouchStatus,
)
from revops_triage.services.exception_aggregator import (
    RecordInputs,
    evaluate_batch,
    evaluate_record,
    severity_for,
)


def _types(exceptions):
    return [e.type for e in exceptions]


@pytest.fixture
def troubled_deal(make_deal, now):
    """Open deal with a past close date, stale stage and overdue next step."""
    return make_deal(
        id='deal-troubled',
        closeDate=now.date() - timedelta(days=3),
        stageEnteredAt=datetime(2025, 11, 3, 9, 0),
        nextStepAnalysis=NextStepAnalysis(
            status=NextStepStatus.DATE_FOUND,
            dueDate=now.date() - timedelta(days=2),
            analyzedAt=now - timedelta(hours=1),
            analyzedText='Send proposal',
        ),
    )


class TestSeverityTable:

    def test_base_severities(self):
        assert severity_for(ExceptionType.PAST_CLOSE_DATE, False) == Severity.HIGH
        assert severity_for(ExceptionType.STALE_STAGE, False) == Severity.LOW
        assert severity_for(ExceptionType.HIGH_VALUE_AT_RISK, False) == Severity.CRITICAL

    def test_high_value_escalation(self):
        assert severity_for(ExceptionType.PAST_CLOSE_DATE, True) == Severity.CRITICAL
        assert severity_for(ExceptionType.OVERDUE_NEXT_STEP, True) == Severity.CRITICAL
        assert severity_for(ExceptionType.ACTIVITY_DROUGHT, True) == Severity.MEDIUM


class TestEvaluateRecord:

    def test_clean_deal_has_no_exceptions(self, make_deal, now):
        evaluation = evaluate_record(RecordInputs(record=make_deal()), now)

        assert evaluation.exceptions == []
        assert evaluation.hygiene is None

    def test_exceptions_follow_type_order(self, troubled_deal, now):
        evaluation = evaluate_record(RecordInputs(record=troubled_deal), now)

        assert _types(evaluation.exceptions) == [
            ExceptionType.OVERDUE_NEXT_STEP,
            ExceptionType.PAST_CLOSE_DATE,
            ExceptionType.STALE_STAGE,
        ]

    def test_high_value_at_risk(self, troubled_deal, now):
        deal = troubled_deal.model_copy(update={'amount': 75000.0})

        evaluation = evaluate_record(RecordInputs(record=deal), now)

        assert _types(evaluation.exceptions)[-1] == ExceptionType.HIGH_VALUE_AT_RISK
        severities = {e.type: e.severity for e in evaluation.exceptions}
        assert severities[ExceptionType.PAST_CLOSE_DATE] == Severity.CRITICAL
        assert severities[ExceptionType.OVERDUE_NEXT_STEP] == Severity.CRITICAL
        assert severities[ExceptionType.STALE_STAGE] == Severity.LOW

    def test_high_value_alone_is_not_an_exception(self, make_deal, now):
        evaluation = evaluate_record(RecordInputs(record=make_deal(amount=500000.0)), now)
        assert evaluation.exceptions == []

    def test_awaiting_external_is_not_overdue(self, make_deal, now):
        text = 'Waiting on customer to sign'
        deal = make_deal(
            nextStep=text,
            nextStepAnalysis=NextStepAnalysis(
                status=NextStepStatus.AWAITING_EXTERNAL,
                dueDate=now.date() - timedelta(days=10),
                analyzedAt=now - timedelta(hours=1),
                analyzedText=text,
            ),
        )

        evaluation = evaluate_record(RecordInputs(record=deal), now)

        assert ExceptionType.OVERDUE_NEXT_STEP not in _types(evaluation.exceptions)

    def test_closed_deal_leaves_every_queue(self, make_deal, now):
        deal = make_deal(
            stage='Closed Won',
            stageCategory=StageCategory.CLOSED,
            closeDate=now.date() - timedelta(days=10),
            amount=None,
        )

        evaluation = evaluate_record(RecordInputs(record=deal), now)

        assert evaluation.exceptions == []
        assert evaluation.nextStep is None
        assert evaluation.hygiene is None

    def test_closed_deal_not_counted_in_hygiene_queue(self, make_deal, now):
        closed = make_deal(id='won', stageCategory=StageCategory.CLOSED, amount=None)
        open_deal = make_deal(id='open', amount=None)

        result = evaluate_batch([RecordInputs(record=closed), RecordInputs(record=open_deal)], now)

        assert [entry.recordId for entry in result.hygiene] == ['open']
        assert result.summary.hygieneTotal == 1

    def test_hygiene_entry(self, make_deal, now):
        deal = make_deal(amount=None, products=None)
        commitment = Commitment(recordId=deal.id, dueDate=now.date() - timedelta(days=1))
        task = ExistingTaskRecord(
            taskId='t-1',
            recordId=deal.id,
            kind=TaskKind.HYGIENE,
            createdAt=now - timedelta(days=5),
            issueSignature=frozenset({'Amount', 'Products', 'Close Date'}),
        )

        entry = evaluate_record(
            RecordInputs(record=deal, commitment=commitment, hygiene_task=task), now
        ).hygiene

        assert entry.signature == ['Amount', 'Products']
        assert entry.commitment.state == CommitmentState.ESCALATED
        assert entry.coversAll is True
        assert entry.existingTaskId == 't-1'
        assert entry.reason == 'OVERDUE by 1 day: Still missing Amount, Products.'

    def test_new_deal_grace(self, make_deal, now):
        fresh = make_deal(createdAt=now - timedelta(days=2), amount=None)
        old = make_deal(amount=None)

        fresh_entry = evaluate_record(RecordInputs(record=fresh), now).hygiene
        old_entry = evaluate_record(RecordInputs(record=old), now).hygiene

        assert fresh_entry.isNewDeal is True
        assert fresh_entry.graceExpired is False
        assert old_entry.isNewDeal is False
        assert old_entry.graceExpired is True
        assert old_entry.commitment.state == CommitmentState.NEEDS_COMMITMENT

    def test_touch_only_for_sales(self, make_deal, now):
        upsell = make_deal(pipeline=PipelineType.UPSELL)
        sales = make_deal(createdAt=now - timedelta(days=2))
        events = [ActivityEvent(type=ActivityType.CALL, occurredAt=now - timedelta(hours=3))]

        assert evaluate_record(RecordInputs(record=upsell, activity=events), now).touch is None
        touch = evaluate_record(RecordInputs(record=sales, activity=events), now).touch
        assert touch.touches.calls == 1

    def test_company_account_risk(self, make_company, now):
        company = make_company(healthScoreStatus='At-Risk', sentiment='Flagged')

        evaluation = evaluate_record(RecordInputs(record=company), now)

        assert evaluation.accountRisk.isAtRisk is True
        assert evaluation.accountRisk.isFlagged is True
        assert evaluation.exceptions == []


class TestEvaluateBatch:

    def test_counts_cover_every_type(self, make_deal, now):
        result = evaluate_batch([RecordInputs(record=make_deal())], now)

        assert result.recordsEvaluated == 1
        assert set(result.counts) == {t.value for t in ExceptionType}
        assert all(count == 0 for count in result.counts.values())

    def test_counts_match_exceptions(self, make_deal, now):
        late = make_deal(id='late', closeDate=now.date() - timedelta(days=1))

        result = evaluate_batch([RecordInputs(record=late)], now)

        assert [e.type for e in result.exceptions] == [ExceptionType.PAST_CLOSE_DATE]
        assert result.counts == {
            t.value: (1 if t == ExceptionType.PAST_CLOSE_DATE else 0) for t in ExceptionType
        }
        assert sum(result.counts.values()) == len(result.exceptions)

    def test_empty_batch_is_a_result(self, now):
        result = evaluate_batch([], now)

        assert result.recordsEvaluated == 0
        assert result.exceptions == []

    def test_aggregates_in_input_order(self, make_deal, make_company, troubled_deal, now):
        batch = [
            RecordInputs(record=troubled_deal),
            RecordInputs(record=make_deal(id='deal-clean')),
            RecordInputs(record=make_deal(id='deal-late', closeDate=now.date() - timedelta(days=1))),
            RecordInputs(record=make_company(sentiment=None, healthScoreStatus='At-Risk')),
        ]

        result = evaluate_batch(batch, now)

        assert [e.recordId for e in result.exceptions] == [
            'deal-troubled', 'deal-troubled', 'deal-troubled', 'deal-late',
        ]
        assert result.counts['past_close_date'] == 2
        assert result.counts['stale_stage'] == 1
        assert result.summary.nextStepOverdue == 1
        assert result.summary.hygieneTotal == 1
        assert result.accountRiskCounts.atRisk == 1
        assert result.touchSummary.counts[TouchStatus.PENDING.value] == 3

    def test_parallel_matches_sequential(self, make_deal, troubled_deal, now):
        batch = [
            RecordInputs(record=troubled_deal.model_copy(update={'id': f'd-{i}'}))
            if i % 3 == 0 else RecordInputs(record=make_deal(id=f'd-{i}'))
            for i in range(30)
        ]
        sequential = Settings(_env_file=None, parallel_batch_threshold=1000)
        parallel = Settings(_env_file=None, parallel_batch_threshold=2, max_workers=4)

        assert (
            evaluate_batch(batch, now, settings=parallel).model_dump()
            == evaluate_batch(batch, now, settings=sequential).model_dump()
        )

    def test_failure_is_not_an_empty_result(self, make_deal, now):
        batch = [RecordInputs(record=make_deal(id='a')), RecordInputs(record=make_deal(id='b'))]

        with patch(
            'revops_triage.services.exception_aggregator.evaluate_hygiene',
            side_effect=RuntimeError('boom'),
        ):
            with pytest.raises(BatchEvaluationError) as exc_info:
                evaluate_batch(batch, now)

        assert exc_info.value.record_id == 'a'
