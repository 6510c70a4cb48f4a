"""
Tests for next-step compliance and re-analysis staleness.
"""

from datetime import timedelta

import pytest

from revops_triage.models import (
    DateExtraction,
    NextStepAnalysis,
    NextStepCompliance,
    NextStepStatus,
)
from revops_triage.services.next_step import (
    build_analysis,
    check_next_step,
    empty_analysis,
    needs_analysis,
)


def _analysis(now, status, text, due_offset=None, age=timedelta(hours=1)):
    return NextStepAnalysis(
        status=status,
        dueDate=now.date() + timedelta(days=due_offset) if due_offset is not None else None,
        analyzedAt=now - age,
        analyzedText=text,
    )


class TestNeedsAnalysis:

    def test_no_analysis(self, now):
        assert needs_analysis('Call CFO', None, now) is True

    def test_fresh_and_unchanged(self, now):
        analysis = _analysis(now, NextStepStatus.NO_DATE, 'Call CFO')
        assert needs_analysis('Call CFO', analysis, now) is False

    def test_whitespace_change_is_not_a_change(self, now):
        analysis = _analysis(now, NextStepStatus.NO_DATE, 'Call CFO')
        assert needs_analysis('  Call CFO ', analysis, now) is False

    def test_text_changed(self, now):
        analysis = _analysis(now, NextStepStatus.NO_DATE, 'Call CFO')
        assert needs_analysis('Call CEO', analysis, now) is True

    def test_crm_edit_after_analysis(self, now):
        analysis = _analysis(now, NextStepStatus.NO_DATE, 'Call CFO')
        assert needs_analysis('Call CFO', analysis, now, next_step_updated_at=now) is True

    def test_older_than_freshness_window(self, now):
        analysis = _analysis(now, NextStepStatus.NO_DATE, 'Call CFO', age=timedelta(days=8))
        assert needs_analysis('Call CFO', analysis, now) is True
        assert needs_analysis('Call CFO', analysis, now, freshness_days=10) is False


class TestCheckNextStep:

    def test_missing_text(self, make_deal, now):
        deal = make_deal(nextStep=None, nextStepAnalysis=None)

        result = check_next_step(deal, now)

        assert result.compliance == NextStepCompliance.MISSING
        assert result.needsAnalysis is True

    def test_dated_future_is_compliant(self, make_deal, now):
        deal = make_deal(nextStepAnalysis=_analysis(now, NextStepStatus.DATE_FOUND, 'Send proposal', 3))

        result = check_next_step(deal, now)

        assert result.compliance == NextStepCompliance.COMPLIANT
        assert result.reason == 'Next step due in 3 days'

    def test_due_today_is_compliant(self, make_deal, now):
        deal = make_deal(nextStepAnalysis=_analysis(now, NextStepStatus.DATE_INFERRED, 'Send proposal', 0))

        result = check_next_step(deal, now)

        assert result.compliance == NextStepCompliance.COMPLIANT
        assert result.reason == 'Next step due today'

    def test_past_date_is_overdue(self, make_deal, now):
        deal = make_deal(nextStepAnalysis=_analysis(now, NextStepStatus.DATE_FOUND, 'Send proposal', -4))

        result = check_next_step(deal, now)

        assert result.compliance == NextStepCompliance.OVERDUE
        assert result.daysOverdue == 4
        assert result.reason == 'Next step overdue by 4 days'

    @pytest.mark.parametrize('due_offset', [-30, -1, 0, 5, None])
    def test_awaiting_external_never_overdue(self, make_deal, now, due_offset):
        """Waiting on the customer is never the owner's overdue next step."""
        text = 'Waiting on customer to sign'
        deal = make_deal(
            nextStep=text,
            nextStepAnalysis=_analysis(now, NextStepStatus.AWAITING_EXTERNAL, text, due_offset),
        )

        result = check_next_step(deal, now)

        assert result.compliance != NextStepCompliance.OVERDUE
        assert result.analysisStatus == NextStepStatus.AWAITING_EXTERNAL

    @pytest.mark.parametrize('status', [
        NextStepStatus.NO_DATE,
        NextStepStatus.DATE_UNCLEAR,
        NextStepStatus.UNPARSEABLE,
    ])
    def test_undated_statuses(self, make_deal, now, status):
        deal = make_deal(nextStepAnalysis=_analysis(now, status, 'Send proposal'))

        result = check_next_step(deal, now)

        assert result.compliance == NextStepCompliance.NO_DATE
        assert result.needsAnalysis is False

    def test_changed_text_ignores_old_due_date(self, make_deal, now):
        """An analysis of different text says nothing about the current next step."""
        deal = make_deal(
            nextStep='Book security review',
            nextStepAnalysis=_analysis(now, NextStepStatus.DATE_FOUND, 'Send proposal', -10),
        )

        result = check_next_step(deal, now)

        assert result.compliance == NextStepCompliance.NO_DATE
        assert result.needsAnalysis is True


class TestBuildAnalysis:

    def test_from_extraction(self, now):
        extraction = DateExtraction(
            status=NextStepStatus.DATE_FOUND,
            dueDate=now.date() + timedelta(days=1),
            confidence=0.8,
        )

        analysis = build_analysis(extraction, ' Demo on Thursday ', now)

        assert analysis.analyzedAt == now
        assert analysis.analyzedText == 'Demo on Thursday'
        assert analysis.dueDate == extraction.dueDate

    def test_empty_analysis(self, now):
        analysis = empty_analysis(now)
        assert analysis.status == NextStepStatus.EMPTY
        assert needs_analysis('', analysis, now) is False
