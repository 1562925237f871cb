"""
Database package for Training Compliance Toolkit

Provides TrainingStore (employees and programs), the domain models,
and the error types. The append-only ResultLedger lives in
database.result_ledger; it grades results, so it is imported from
there directly rather than re-exported here.
"""

from .errors import (
    ComplianceError,
    ValidationError,
    NotFoundError,
    ConsistencyError,
    StaleRecordError,
)
from .training_store import TrainingStore

__all__ = [
    'TrainingStore',
    'ComplianceError',
    'ValidationError',
    'NotFoundError',
    'ConsistencyError',
    'StaleRecordError',
]
