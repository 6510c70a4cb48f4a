"""Overdue CRM task detection for reminder queues."""

from datetime import datetime
from typing import Iterable, List

from revops_triage.models.schemas import CrmTask, OverdueTask, OverdueTasksResult
from revops_triage.services.business_calendar import to_day


OPEN_TASK_STATUS = "NOT_STARTED"


def check_overdue_tasks(tasks: Iterable[CrmTask], now: datetime) -> OverdueTasksResult:
    """
    Collect not-started tasks whose due day is before today.

    Tasks are returned most overdue first; ties keep their input order.
    """
    today = to_day(now)
    overdue: List[OverdueTask] = []

    for task in tasks:
        if task.status != OPEN_TASK_STATUS or task.dueAt is None:
            continue
        days = (today - to_day(task.dueAt)).days
        if days > 0:
            overdue.append(OverdueTask(
                id=task.id,
                subject=task.subject,
                dueAt=task.dueAt,
                daysOverdue=days,
            ))

    overdue.sort(key=lambda t: t.daysOverdue, reverse=True)

    return OverdueTasksResult(
        hasOverdue=bool(overdue),
        count=len(overdue),
        oldestOverdueDays=overdue[0].daysOverdue if overdue else 0,
        tasks=overdue,
    )


__all__ = ["OPEN_TASK_STATUS", "check_overdue_tasks"]
