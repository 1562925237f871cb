"""
COMPLIANCE MATRIX MODULE
========================
Build the employee x program compliance matrix from the Result Ledger.

This is the single place where "current status" is decided. The progress
page, the retraining list, the expiring list, and the KPI report all read
the same matrix, so they can never disagree about who is compliant.

Aviation Analogy:
    Think of this like the crew qualification board in a dispatch office:
    - Rows are crew members, columns are required ratings
    - Each square shows the latest checkride and whether it's still valid
    - Blank squares mean the crew member has never taken that checkride
    The board is rebuilt from the logbooks every time you look at it;
    nobody writes on the board directly.

Rules for a cell:
    - Only pairs with at least one result get a cell (blank = NOT_TAKEN)
    - The latest result wins: highest training_date, ties go to the row
      inserted later in the ledger
    - completion_count counts every result for the pair
    - Expiry is only computed when the latest result is a PASS
"""

import logging
from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from database.errors import ConsistencyError
from database.models import (
    CellStatus,
    ComplianceCell,
    Employee,
    Outcome,
    TrainingProgram,
    TrainingResult,
)
from managers.expiry_calculator import compute_expiry

logger = logging.getLogger(__name__)

CellKey = Tuple[str, str]


class ComplianceMatrix:
    """
    PURPOSE: Read-only view of compliance cells for a set of employees and programs

    The axes keep the order they were requested in. Cells exist only for
    pairs that have results; everything else reads as NOT_TAKEN.

    ATTRIBUTES:
        employees: Row axis (list of Employee)
        programs: Column axis (list of TrainingProgram)
        cells: Dict keyed by (employee_id, program_code)
        now: Reference date the expiry flags were computed against
        warn_window_days: Expiring window used for is_expiring

    EXAMPLE:
        matrix = build_matrix(employees, programs, results, date.today())
        cell = matrix.get("EMP-001", "QIP-001")
        if cell and cell.is_expiring:
            print(f"Renew by {cell.expiration_date}")
    """

    def __init__(self, employees: List[Employee], programs: List[TrainingProgram],
                 cells: Dict[CellKey, ComplianceCell], now: date, warn_window_days: int):
        self.employees = list(employees)
        self.programs = list(programs)
        self.cells = dict(cells)
        self.now = now
        self.warn_window_days = warn_window_days
        self._employees_by_id = {e.employee_id: e for e in self.employees}
        self._programs_by_code = {p.program_code: p for p in self.programs}

    def get(self, employee_id: str, program_code: str) -> Optional[ComplianceCell]:
        """Cell for the pair, or None when the employee never took the program."""
        return self.cells.get((employee_id, program_code))

    def status(self, employee_id: str, program_code: str) -> CellStatus:
        cell = self.get(employee_id, program_code)
        return cell.status if cell else CellStatus.NOT_TAKEN

    def row(self, employee_id: str) -> Dict[str, Optional[ComplianceCell]]:
        """All program columns for one employee, in program order."""
        return {
            p.program_code: self.get(employee_id, p.program_code)
            for p in self.programs
        }

    def employee(self, employee_id: str) -> Optional[Employee]:
        return self._employees_by_id.get(employee_id)

    def program(self, program_code: str) -> Optional[TrainingProgram]:
        return self._programs_by_code.get(program_code)

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[ComplianceCell]:
        return iter(self.cells.values())

    def __contains__(self, key: CellKey) -> bool:
        return key in self.cells

    def __eq__(self, other) -> bool:
        if not isinstance(other, ComplianceMatrix):
            return NotImplemented
        return (self.employees == other.employees
                and self.programs == other.programs
                and self.cells == other.cells
                and self.now == other.now
                and self.warn_window_days == other.warn_window_days)

    def to_dict(self) -> Dict:
        """Nested {employee_id: {program_code: status/cell}} for reports."""
        matrix = {}
        for employee in self.employees:
            matrix[employee.employee_id] = {}
            for program in self.programs:
                cell = self.get(employee.employee_id, program.program_code)
                matrix[employee.employee_id][program.program_code] = (
                    cell.to_dict() if cell else {'status': CellStatus.NOT_TAKEN.value}
                )
        return {
            'as_of': self.now.isoformat(),
            'warn_window_days': self.warn_window_days,
            'employees': [e.to_dict() for e in self.employees],
            'programs': [p.to_dict() for p in self.programs],
            'matrix': matrix,
        }


# ============================================================================
# BUILDER
# ============================================================================

def check_consistency(employees: Iterable[Employee], programs: Iterable[TrainingProgram],
                      results: Iterable[TrainingResult]) -> None:
    """
    Make sure every result points at a supplied employee and program.

    RAISES:
        ConsistencyError: Listing every orphaned (result_id, employee_id,
                          program_code). Dropping them silently would make
                          completion counts wrong.
    """
    employee_ids = {e.employee_id for e in employees}
    program_codes = {p.program_code for p in programs}

    orphans = [
        (r.result_id, r.employee_id, r.program_code)
        for r in results
        if r.employee_id not in employee_ids or r.program_code not in program_codes
    ]

    if orphans:
        preview = ", ".join(o[0] for o in orphans[:5])
        raise ConsistencyError(
            f"{len(orphans)} result(s) reference unknown employees or programs: {preview}",
            orphans=orphans
        )


def build_matrix(employees: Iterable[Employee], programs: Iterable[TrainingProgram],
                 results: Iterable[TrainingResult], now: date,
                 warn_window_days: int = 30, strict: bool = False) -> ComplianceMatrix:
    """
    Build the compliance matrix for employees x programs.

    PURPOSE: Reduce the Result Ledger to one current state per pair

    PARAMETERS:
        employees: Row axis
        programs: Column axis
        results: Ledger slice, in ledger order (ResultLedger.list_results
                 returns rows this way)
        now: Reference date for expiry flags
        warn_window_days: Days ahead that count as expiring
        strict: Raise ConsistencyError when a result references an employee
                or program outside the supplied collections. When False,
                such results are skipped silently, which suits a ledger
                slice deliberately wider than the axes (one employee's
                history against the programs aimed at them). Callers that
                need orphans reported must pass axes that match the slice
                and strict=True, as TrainingSnapshot.build_matrix does.

    RETURNS:
        ComplianceMatrix

    WHY THIS APPROACH:
        One pass over the results keeps the latest record and a count per
        pair, so the cost is O(results + employees x programs). The function
        reads nothing but its arguments, so calling it twice on the same
        inputs gives equal matrices.
    """
    employees = list(employees)
    programs = list(programs)
    results = list(results)

    if strict:
        check_consistency(employees, programs, results)

    employee_ids = {e.employee_id for e in employees}
    programs_by_code = {p.program_code: p for p in programs}

    latest: Dict[CellKey, Tuple[tuple, TrainingResult]] = {}
    counts: Dict[CellKey, int] = {}

    for position, record in enumerate(results):
        if record.employee_id not in employee_ids or record.program_code not in programs_by_code:
            continue

        key = (record.employee_id, record.program_code)
        counts[key] = counts.get(key, 0) + 1

        order = (record.training_date,
                 record.sequence if record.sequence is not None else position)
        current = latest.get(key)
        if current is None or order >= current[0]:
            latest[key] = (order, record)

    cells: Dict[CellKey, ComplianceCell] = {}
    for employee in employees:
        for program in programs:
            key = (employee.employee_id, program.program_code)
            if key not in latest:
                continue
            cells[key] = _make_cell(latest[key][1], program, counts[key],
                                    now, warn_window_days)

    logger.debug("Built compliance matrix: %d employees x %d programs, %d cells",
                 len(employees), len(programs), len(cells))

    return ComplianceMatrix(employees, programs, cells, now, warn_window_days)


def _make_cell(record: TrainingResult, program: TrainingProgram, completion_count: int,
               now: date, warn_window_days: int) -> ComplianceCell:
    """Project the latest result of a pair into a ComplianceCell."""
    expiration_date = None
    is_expired = False
    is_expiring = False

    if record.result is Outcome.PASS and program.validity_period_days is not None:
        expiry = compute_expiry(record.training_date, program.validity_period_days,
                                now, warn_window_days)
        expiration_date = expiry.expiration_date
        is_expired = expiry.is_expired
        is_expiring = expiry.is_expiring

    return ComplianceCell(
        employee_id=record.employee_id,
        program_code=record.program_code,
        last_result=record.result,
        last_record=record,
        last_score=record.score,
        last_grade=record.grade,
        last_training_date=record.training_date,
        completion_count=completion_count,
        expiration_date=expiration_date,
        is_expiring=is_expiring,
        is_expired=is_expired,
    )


def summarize_matrix(matrix: ComplianceMatrix) -> Dict[CellStatus, int]:
    """Count every matrix position by status, NOT_TAKEN included."""
    summary = {status: 0 for status in CellStatus}
    for employee in matrix.employees:
        for program in matrix.programs:
            summary[matrix.status(employee.employee_id, program.program_code)] += 1
    return summary
