"""
Idempotency for external reminder tasks.

Before a reminder is created for a record, the latest task already created
for it is compared with the current issue signature:

- no earlier task: create
- earlier task covers every current issue: skip, unless forced
- current issues include something new: create; the new ledger entry
  supersedes the old one, which is kept

Signatures are unordered string sets. Hygiene signatures are missing-field
labels; overdue-reminder signatures are "task:<id>" entries.
"""

from typing import AbstractSet, Iterable, Optional

from revops_triage.models.schemas import ExistingTaskRecord, TaskDecision


def covers_all(existing: ExistingTaskRecord, current_signature: AbstractSet[str]) -> bool:
    return set(current_signature) <= set(existing.issueSignature)


def should_create(
    existing: Optional[ExistingTaskRecord],
    current_signature: AbstractSet[str],
    force: bool = False,
) -> TaskDecision:
    """
    Decide whether a new external task is needed.

    Args:
        existing: Latest task recorded for the record, if any.
        current_signature: Issues detected now.
        force: Create even when the existing task covers everything.

    Returns:
        TaskDecision: create and coversAll flags.
    """
    if existing is None:
        return TaskDecision(create=True, coversAll=False)

    covered = covers_all(existing, current_signature)
    return TaskDecision(create=force or not covered, coversAll=covered)


def latest_task(tasks: Iterable[ExistingTaskRecord]) -> Optional[ExistingTaskRecord]:
    """Most recently created task; later entries supersede earlier ones."""
    latest: Optional[ExistingTaskRecord] = None
    for task in tasks:
        if latest is None or task.createdAt > latest.createdAt:
            latest = task
    return latest


def overdue_signature(task_ids: Iterable[str]) -> frozenset:
    return frozenset(f"task:{task_id}" for task_id in task_ids)


__all__ = [
    "covers_all",
    "should_create",
    "latest_task",
    "overdue_signature",
]
