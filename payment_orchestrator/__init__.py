"""Payment orchestration service: gateway dispatch, day-bucketed ledger and webhook reconciliation."""

__version__ = "1.0.0"
