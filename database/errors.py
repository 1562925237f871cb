"""
Compliance Errors - Exception taxonomy for the ledger and data layer

PURPOSE: Give callers one family of exceptions to catch at the
         ingestion and amendment boundaries

AVIATION ANALOGY: Like the categories on a maintenance discrepancy
report - a paperwork error, a missing aircraft, or a logbook that
doesn't match the fleet list are all handled differently

AUTHOR: Glen Lewis
DATE: 2025
"""

from typing import Optional


class ComplianceError(Exception):
    """
    Base class for every error raised by the toolkit.

    PARAMETERS:
        message: Human-readable description
        record_index: Position of the failing record inside a batch
                      (None when the error is not tied to a batch)
    """

    def __init__(self, message: str, record_index: Optional[int] = None):
        self.message = message
        self.record_index = record_index
        if record_index is not None:
            message = f"Record {record_index}: {message}"
        super().__init__(message)


class ValidationError(ComplianceError):
    """Input failed validation (blank reason, malformed patch, bad score)."""


class NotFoundError(ComplianceError):
    """A referenced result, employee, or program does not exist."""


class ConsistencyError(ComplianceError):
    """
    Results reference employees or programs missing from the supplied
    collections.

    ATTRIBUTES:
        orphans: List of (result_id, employee_id, program_code) tuples
    """

    def __init__(self, message: str, orphans=None):
        super().__init__(message)
        self.orphans = list(orphans or [])


class StaleRecordError(ComplianceError):
    """An amendment was based on an out-of-date version of the record."""
