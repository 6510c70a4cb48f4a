"""
Deal risk assessment and stalled-deal detection.

Risk factors are evaluated against stage-category limits measured in
business days. A deal with one factor is at_risk, two or more is stale.
Closed deals are never at risk.

Stalled detection looks only at inactivity: deals older than the minimum
age that have gone quiet for at least the watch threshold are reported with
a watch / warning / critical severity and the factors that make it worse.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from revops_triage.core.config import Settings, get_settings
from revops_triage.models.enums import (
    NextStepCompliance,
    RiskFactorType,
    RiskLevel,
    StageCategory,
    StalledSeverity,
)
from revops_triage.models.schemas import (
    DealRecord,
    DealRiskAssessment,
    NextStepCheckResult,
    RiskFactor,
    StalledDealResult,
)
from revops_triage.services.business_calendar import business_days_between, to_day
from revops_triage.services.hygiene import is_missing


logger = logging.getLogger(__name__)


def stage_age_limits(settings: Optional[Settings] = None) -> Dict[StageCategory, int]:
    settings = settings or get_settings()
    return {
        StageCategory.EARLY: settings.stale_stage_business_days_early,
        StageCategory.MID: settings.stale_stage_business_days_mid,
        StageCategory.LATE: settings.stale_stage_business_days_late,
    }


def stage_age_business_days(deal: DealRecord, now: datetime) -> Optional[int]:
    """Business days in the current stage; falls back to the creation time."""
    anchor = deal.stageEnteredAt or deal.createdAt
    if anchor is None:
        return None
    return business_days_between(anchor, now)


def business_days_since_activity(deal: DealRecord, now: datetime) -> Optional[int]:
    if deal.lastActivityAt is None:
        return None
    return business_days_between(deal.lastActivityAt, now)


def has_future_activity(deal: DealRecord, now: datetime) -> bool:
    return deal.nextActivityAt is not None and deal.nextActivityAt > now


def is_high_value(deal: DealRecord, settings: Optional[Settings] = None) -> bool:
    settings = settings or get_settings()
    return deal.amount is not None and deal.amount >= settings.high_value_amount


def risk_factors(
    deal: DealRecord,
    now: datetime,
    next_step: Optional[NextStepCheckResult] = None,
    settings: Optional[Settings] = None,
) -> List[RiskFactor]:
    """
    Risk factors present on an open deal, in a fixed order.

    Args:
        deal: Deal snapshot.
        now: Evaluation time.
        next_step: Next-step evaluation, when already computed.
        settings: Threshold overrides; defaults to get_settings().

    Returns:
        List[RiskFactor]: Empty for closed deals.
    """
    settings = settings or get_settings()
    if deal.stageCategory == StageCategory.CLOSED:
        return []

    factors: List[RiskFactor] = []
    drought_limit = settings.activity_drought_business_days

    stage_age = stage_age_business_days(deal, now)
    stage_limit = stage_age_limits(settings).get(deal.stageCategory)
    if stage_age is not None and stage_limit is not None and stage_age > stage_limit:
        factors.append(RiskFactor(
            type=RiskFactorType.STAGE_AGE,
            description=f"{stage_age} business days in stage (limit {stage_limit})",
        ))

    inactive = business_days_since_activity(deal, now)
    if inactive is None:
        age = business_days_between(deal.createdAt, now) if deal.createdAt else None
        if age is not None and age > drought_limit:
            factors.append(RiskFactor(
                type=RiskFactorType.ACTIVITY_DROUGHT,
                description="No activity recorded",
            ))
    elif inactive > drought_limit:
        factors.append(RiskFactor(
            type=RiskFactorType.ACTIVITY_DROUGHT,
            description=f"No activity in {inactive} business days",
        ))

    if is_missing(deal.nextStep) and not has_future_activity(deal, now):
        factors.append(RiskFactor(
            type=RiskFactorType.NO_NEXT_STEP,
            description="No next step and no upcoming activity",
        ))

    if deal.closeDate is not None and deal.closeDate < to_day(now):
        days_past = (to_day(now) - deal.closeDate).days
        factors.append(RiskFactor(
            type=RiskFactorType.PAST_CLOSE_DATE,
            description=f"Close date passed {days_past} day(s) ago",
        ))

    if next_step is not None and next_step.compliance == NextStepCompliance.OVERDUE:
        factors.append(RiskFactor(
            type=RiskFactorType.OVERDUE_NEXT_STEP,
            description=next_step.reason,
        ))

    return factors


def assess_deal_risk(
    deal: DealRecord,
    now: datetime,
    next_step: Optional[NextStepCheckResult] = None,
    settings: Optional[Settings] = None,
) -> DealRiskAssessment:
    factors = risk_factors(deal, now, next_step=next_step, settings=settings)

    if len(factors) >= 2:
        level = RiskLevel.STALE
    elif factors:
        level = RiskLevel.AT_RISK
    else:
        level = RiskLevel.HEALTHY

    return DealRiskAssessment(
        recordId=deal.id,
        level=level,
        factors=factors,
        stageAgeBusinessDays=stage_age_business_days(deal, now),
        businessDaysSinceActivity=business_days_since_activity(deal, now),
    )


def check_deal_staleness(
    deal: DealRecord,
    now: datetime,
    settings: Optional[Settings] = None,
) -> StalledDealResult:
    """
    Classify how long an open deal has gone without activity.

    Deals with no activity at all are measured from their creation time.
    """
    settings = settings or get_settings()
    not_stalled = StalledDealResult(recordId=deal.id, isStalled=False)

    if deal.stageCategory == StageCategory.CLOSED or deal.createdAt is None:
        return not_stalled
    if business_days_between(deal.createdAt, now) < settings.stalled_min_age_business_days:
        return not_stalled

    anchor = deal.lastActivityAt or deal.createdAt
    inactive = business_days_between(anchor, now)
    if inactive < settings.stalled_watch_business_days:
        return not_stalled.model_copy(update={"businessDaysInactive": inactive})

    if inactive >= settings.stalled_critical_business_days:
        severity = StalledSeverity.CRITICAL
    elif inactive >= settings.stalled_warning_business_days:
        severity = StalledSeverity.WARNING
    else:
        severity = StalledSeverity.WATCH

    aggravating: List[str] = []
    if is_missing(deal.nextStep):
        aggravating.append("No next step")
    if not has_future_activity(deal, now):
        aggravating.append("No upcoming activity")
    if deal.closeDate is not None and deal.closeDate < to_day(now):
        aggravating.append("Close date passed")
    if is_high_value(deal, settings):
        aggravating.append("High value deal")

    return StalledDealResult(
        recordId=deal.id,
        isStalled=True,
        severity=severity,
        businessDaysInactive=inactive,
        aggravatingFactors=aggravating,
    )


__all__ = [
    "stage_age_limits",
    "stage_age_business_days",
    "business_days_since_activity",
    "has_future_activity",
    "is_high_value",
    "risk_factors",
    "assess_deal_risk",
    "check_deal_staleness",
]
