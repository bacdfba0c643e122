"""roster-doctor: header reconciliation and validation for client/worker/task sheets."""

__version__ = "0.1.0"
