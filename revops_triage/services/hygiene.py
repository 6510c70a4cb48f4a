"""
Hygiene policy evaluation.

Each pipeline owns an ordered list of required fields. Evaluation walks the
list in declared order and reports every field the record left empty. The
order drives display; idempotency compares the unordered label set returned
by issue_signature().

A value counts as empty when it is None, a blank string, or an empty
collection. Amount and MRR additionally count as missing when zero, since
the CRM writes 0 for "not filled in" on currency fields.

Usage:
    from revops_triage.services.hygiene import evaluate_hygiene

    result = evaluate_hygiene(PipelineType.UPSELL, deal)
    if not result.isCompliant:
        labels = [f.label for f in result.missingFields]
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Tuple

from revops_triage.models.enums import PipelineType
from revops_triage.models.schemas import HygieneCheckResult, MissingField, Record


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyField:
    """Required field: record attribute, display label, zero-is-missing flag."""
    field: str
    label: str
    zero_is_missing: bool = False


@dataclass(frozen=True)
class HygienePolicy:
    pipeline: PipelineType
    fields: Tuple[PolicyField, ...]


# =============================================================================
# Policies
# =============================================================================

SALES_POLICY = HygienePolicy(
    pipeline=PipelineType.SALES,
    fields=(
        PolicyField("dealSubstage", "Substage"),
        PolicyField("closeDate", "Close Date"),
        PolicyField("amount", "Amount", zero_is_missing=True),
        PolicyField("leadSource", "Lead Source"),
        PolicyField("products", "Products"),
    ),
)

UPSELL_POLICY = HygienePolicy(
    pipeline=PipelineType.UPSELL,
    fields=(
        PolicyField("amount", "Amount", zero_is_missing=True),
        PolicyField("closeDate", "Close Date"),
        PolicyField("products", "Products"),
    ),
)

CUSTOMER_SUCCESS_POLICY = HygienePolicy(
    pipeline=PipelineType.CUSTOMER_SUCCESS,
    fields=(
        PolicyField("sentiment", "Sentiment"),
        PolicyField("autoRenew", "Renewal"),
        PolicyField("contractEndDate", "Contract End Date"),
        PolicyField("mrr", "MRR", zero_is_missing=True),
        PolicyField("contractStatus", "Contract Status"),
        PolicyField("qbrNotes", "QBR Notes"),
    ),
)

HYGIENE_POLICIES: Dict[PipelineType, HygienePolicy] = {
    policy.pipeline: policy
    for policy in (SALES_POLICY, UPSELL_POLICY, CUSTOMER_SUCCESS_POLICY)
}


def get_policy(pipeline: PipelineType) -> HygienePolicy:
    return HYGIENE_POLICIES[pipeline]


# =============================================================================
# Evaluation
# =============================================================================

def is_missing(value: Any, zero_is_missing: bool = False) -> bool:
    """
    Return True when a field value should be treated as not filled in.

    Booleans are never missing: False is a real answer.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    if zero_is_missing and isinstance(value, (int, float)):
        return value == 0
    return False


def evaluate_hygiene(pipeline: PipelineType, record: Record) -> HygieneCheckResult:
    """
    Evaluate a record against its pipeline's hygiene policy.

    Attributes the record type does not declare are read as None, so a
    deal checked against the customer-success policy reports every CS
    field missing rather than failing.

    Args:
        pipeline: Pipeline whose policy applies.
        record: Record snapshot to inspect.

    Returns:
        HygieneCheckResult: isCompliant is True iff missingFields is empty.
    """
    policy = get_policy(pipeline)
    missing: List[MissingField] = []

    for policy_field in policy.fields:
        value = getattr(record, policy_field.field, None)
        if is_missing(value, policy_field.zero_is_missing):
            missing.append(MissingField(field=policy_field.field, label=policy_field.label))

    if missing:
        logger.debug(
            f"Record {record.id} missing {len(missing)} field(s) under {pipeline.value} policy"
        )

    return HygieneCheckResult(
        pipeline=pipeline,
        isCompliant=not missing,
        missingFields=missing,
    )


def issue_signature(missing_fields: Iterable[MissingField]) -> FrozenSet[str]:
    """Unordered label set used for task idempotency comparison."""
    return frozenset(f.label for f in missing_fields)


def format_missing_labels(missing_fields: Iterable[MissingField]) -> str:
    return ", ".join(f.label for f in missing_fields)


__all__ = [
    "PolicyField",
    "HygienePolicy",
    "SALES_POLICY",
    "UPSELL_POLICY",
    "CUSTOMER_SUCCESS_POLICY",
    "HYGIENE_POLICIES",
    "get_policy",
    "is_missing",
    "evaluate_hygiene",
    "issue_signature",
    "format_missing_labels",
]
