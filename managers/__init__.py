"""
Managers package for Training Compliance Toolkit

Provides the compliance engine:
- Grade classification and pass/fail determination
- Expiry calculation
- Compliance matrix building
- Retraining and expiring worklists
- Snapshot loading and Excel session import
"""

from .grade_classifier import classify_grade, determine_outcome
from .expiry_calculator import compute_expiry
from .compliance_matrix import ComplianceMatrix, build_matrix
from .worklists import retraining_targets, expiring_trainings
from .snapshot import TrainingSnapshot, load_snapshot
from .result_import import ResultImporter

__all__ = [
    'classify_grade',
    'determine_outcome',
    'compute_expiry',
    'ComplianceMatrix',
    'build_matrix',
    'retraining_targets',
    'expiring_trainings',
    'TrainingSnapshot',
    'load_snapshot',
    'ResultImporter',
]
