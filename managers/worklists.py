"""
WORKLISTS MODULE
================
Derive the retraining and expiring-training worklists from a compliance matrix.

Both generators are pure functions over an already-built matrix. They do
not validate and they do not raise for data reasons; the Result Ledger
validated everything when it was written.

Aviation Analogy:
    - Retraining list = crew who busted their last checkride
    - Expiring list = crew whose currency runs out before the next roster
"""

from typing import Callable, Dict, List, Optional

from database.models import (
    ExpiringTraining,
    Outcome,
    RetrainingTarget,
    TrainingProgram,
)
from managers.compliance_matrix import ComplianceMatrix
from managers.expiry_calculator import compute_expiry, days_until


RETRAINING_CATEGORY = 'RETRAINING'


def retraining_targets(matrix: ComplianceMatrix) -> List[RetrainingTarget]:
    """
    Employees whose most recent attempt at a program was a FAIL.

    One entry per materialized cell at most, so the list has no duplicates.
    Order follows the matrix; callers sort for display.
    """
    targets = []
    for cell in matrix:
        if cell.last_result is not Outcome.FAIL:
            continue
        targets.append(RetrainingTarget(
            employee=matrix.employee(cell.employee_id),
            program=matrix.program(cell.program_code),
            last_result=cell.last_record,
        ))
    return targets


def expiring_trainings(matrix: ComplianceMatrix, horizon_days: int,
                       include_expired: bool = False) -> List[ExpiringTraining]:
    """
    Passed trainings that expire within horizon_days of the matrix date.

    PARAMETERS:
        matrix: ComplianceMatrix (its `now` is the reference date)
        horizon_days: Look-ahead window; replaces the matrix warn window
        include_expired: Also list trainings that have already expired.
                         Those rows carry a negative days_until_expiry.

    RETURNS:
        List of ExpiringTraining

    WHY THIS APPROACH:
        The matrix was built with its own warn window, so expiry is
        recomputed here with horizon_days. Only cells whose latest result
        is a PASS on a time-limited program qualify.
    """
    entries = []
    for cell in matrix:
        if cell.last_result is not Outcome.PASS:
            continue

        program = matrix.program(cell.program_code)
        if program.validity_period_days is None:
            continue

        expiry = compute_expiry(cell.last_training_date, program.validity_period_days,
                                matrix.now, horizon_days)

        if not (expiry.is_expiring or (include_expired and expiry.is_expired)):
            continue

        entries.append(ExpiringTraining(
            employee=matrix.employee(cell.employee_id),
            program=program,
            last_pass_date=cell.last_training_date,
            expiration_date=expiry.expiration_date,
            days_until_expiry=days_until(expiry.expiration_date, matrix.now),
        ))
    return entries


# ============================================================================
# PRESENTATION HELPERS
# ============================================================================

_SORT_KEYS: Dict[str, Callable] = {
    'days_until_expiry': lambda e: (e.days_until_expiry, e.employee.employee_name),
    'employee_name': lambda e: (e.employee.employee_name, e.program.program_code),
    'training_date': lambda t: (t.last_result.training_date, t.employee.employee_name),
}


def sort_worklist(entries: List, key: str = 'employee_name') -> List:
    """
    Return entries sorted for display.

    PARAMETERS:
        entries: RetrainingTarget or ExpiringTraining list
        key: 'days_until_expiry' (expiring only), 'training_date'
             (retraining only), or 'employee_name'
    """
    if key not in _SORT_KEYS:
        raise ValueError(f"Unknown sort key: {key}. Valid keys: {list(_SORT_KEYS)}")
    return sorted(entries, key=_SORT_KEYS[key])


def recommended_retraining_programs(target: RetrainingTarget,
                                    programs: List[TrainingProgram],
                                    limit: Optional[int] = 3) -> List[TrainingProgram]:
    """
    Active RETRAINING-category programs aimed at the employee's position.

    EXAMPLE:
        for target in retraining_targets(matrix):
            options = recommended_retraining_programs(target, all_programs)
    """
    matches = [
        p for p in programs
        if p.category == RETRAINING_CATEGORY
        and p.is_active
        and p.targets(target.employee.position)
    ]
    return matches[:limit] if limit is not None else matches
