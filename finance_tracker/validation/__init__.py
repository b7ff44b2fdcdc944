"""Entry validation package."""

from finance_tracker.validation.validator import RecordValidator

__all__ = ["RecordValidator"]
