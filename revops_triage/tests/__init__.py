'''
RevOps Triage Engine Test Suite

Test Modules:
-------------
- test_business_calendar.py: Business-day arithmetic and quarter bounds
  - Weekend skipping, start-inclusive / end-exclusive counts
  - Quarter labels and progress

- test_hygiene.py: Per-pipeline required-field policies
  - Sales / upsell / customer-success field lists
  - Zero amount counts as missing, booleans never do

- test_next_step.py: Next-step compliance and re-analysis decisions
- test_touch_compliance.py: Outbound touches in the post-creation window
  - Pro-rated expectation, pending / on_track / behind / critical
- test_commitments.py: Commitment validation and escalation
- test_task_idempotency.py: Superset-covers rule for reminder tasks
- test_deal_risk.py: Risk factors, stalled deals, overdue CRM tasks
- test_exception_aggregator.py: Per-record exceptions and batch rollup
  - Severity table and high-value escalation
  - Parallel and sequential batches agree
- test_workflows.py: Async queue workflows against in-memory doubles
- test_record_store.py: Row mapping and SQL for the Postgres store
- test_config.py: Settings defaults and environment overrides

Running Tests:
--------------
    pip install -e ".[test]"
    pytest revops_triage/tests/ -v

Test Dependencies:
------------------
- pytest
- pytest-asyncio

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
