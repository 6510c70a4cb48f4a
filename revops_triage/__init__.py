"""
RevOps Triage Engine.

Classifies CRM deals and companies into work queues: hygiene violations,
stale or overdue next steps, low outreach cadence on new deals, deal risk
exceptions, and commitments owners made to fix them.

Subpackages:
    - core: Configuration, database pool, error taxonomy
    - models: Pydantic schemas and enums
    - services: Evaluators, aggregation, record store and async workflows
    - sql: Parameterized SQL for the record store
"""

__version__ = "1.0.0"
