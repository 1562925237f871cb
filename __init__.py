"""
Training Compliance Toolkit
===========================

Tracks employee training results and derives compliance status:
who passed what, which passes are about to expire, and who needs
retraining.

This package provides:
- TrainingStore: Employees and training programs (SQLite)
- ResultLedger: Append-only training results with an audited edit path
- build_matrix: Employee x program compliance matrix
- retraining_targets / expiring_trainings: Worklists derived from the matrix
- ResultImporter: Record a session from an Excel sheet
- ComplianceReports: Progress, retraining, expiring, and KPI reports

Example:
    from database import TrainingStore
    from database.result_ledger import ResultLedger
    from managers import load_snapshot, retraining_targets
    from reports import ComplianceReports
"""

# Version
__version__ = '0.1.0'

# Expose key classes at package level for convenience
from .database import TrainingStore
from .database.result_ledger import ResultLedger
from .managers import (
    build_matrix,
    retraining_targets,
    expiring_trainings,
    load_snapshot,
    ResultImporter
)
from .reports import ComplianceReports

__all__ = [
    # Database
    'TrainingStore',
    'ResultLedger',
    # Managers
    'build_matrix',
    'retraining_targets',
    'expiring_trainings',
    'load_snapshot',
    'ResultImporter',
    # Reports
    'ComplianceReports',
]
