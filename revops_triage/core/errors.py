"""
Error taxonomy for the triage engine.

- TriageValidationError: bad input rejected before anything is written
  (commitment date outside the allowed range, quarter number outside 1-4).
- UpstreamUnavailable: a collaborator (record store, task sink, date
  extraction) failed. The original exception is chained as __cause__.
- BatchEvaluationError: a batch evaluation did not complete. No partial
  result is returned alongside it.

Records whose commitments or tasks no longer match an open violation are
not an error; they are simply left out of the output.
"""

from typing import Optional


class TriageError(Exception):
    """Base class for all engine errors."""


class TriageValidationError(TriageError, ValueError):
    """Input rejected synchronously; nothing was applied."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class UpstreamUnavailable(TriageError):
    """A collaborator call failed and the failure is passed to the caller."""

    def __init__(
        self,
        collaborator: str,
        record_id: Optional[str] = None,
        detail: str = "",
        created_task_id: Optional[str] = None,
    ):
        self.collaborator = collaborator
        self.record_id = record_id
        self.detail = detail
        # Set when the external task exists but the ledger write failed
        self.created_task_id = created_task_id
        target = f" for record {record_id}" if record_id else ""
        suffix = f": {detail}" if detail else ""
        super().__init__(f"{collaborator} unavailable{target}{suffix}")


class BatchEvaluationError(TriageError):
    """Batch evaluation failed on a record; the batch produced no result."""

    def __init__(self, record_id: str, detail: str = ""):
        self.record_id = record_id
        self.detail = detail
        super().__init__(f"evaluation failed at record {record_id}: {detail}")


__all__ = [
    "TriageError",
    "TriageValidationError",
    "UpstreamUnavailable",
    "BatchEvaluationError",
]
