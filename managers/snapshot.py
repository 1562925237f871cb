"""
SNAPSHOT MODULE
===============
Fetch employees, programs, and results together and pin them to one date.

The three reads are independent, so they run side by side on a small
thread pool and are joined before anything is built. The snapshot date is
captured once, up front, so every report derived from the snapshot agrees
on what "today" means.

Aviation Analogy:
    Like the dispatcher pulling the crew roster, the fleet list, and the
    training records at the same moment before building the day's board.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from database.models import Employee, TrainingProgram, TrainingResult, parse_date
from managers.compliance_matrix import ComplianceMatrix, build_matrix

if TYPE_CHECKING:
    from database.result_ledger import ResultLedger
    from database.training_store import TrainingStore

logger = logging.getLogger(__name__)


@dataclass
class TrainingSnapshot:
    """Employees, programs, and ledger results read for a single as_of date."""
    employees: List[Employee]
    programs: List[TrainingProgram]
    results: List[TrainingResult]
    as_of: date
    filters: Dict[str, Any] = field(default_factory=dict)
    excluded_results: int = 0

    def build_matrix(self, warn_window_days: int = 30, strict: bool = True) -> ComplianceMatrix:
        """results is already cut to the loaded axes, so strict only trips on a bad snapshot."""
        return build_matrix(self.employees, self.programs, self.results,
                            self.as_of, warn_window_days, strict=strict)


def load_snapshot(store: 'TrainingStore', ledger: 'ResultLedger',
                  employee_filters: Optional[Dict[str, Any]] = None,
                  program_filters: Optional[Dict[str, Any]] = None,
                  as_of=None) -> TrainingSnapshot:
    """
    Load a consistent snapshot for matrix building.

    PARAMETERS:
        store: TrainingStore for employees and programs
        ledger: ResultLedger for results
        employee_filters: Keyword filters for store.list_employees()
        program_filters: Keyword filters for store.list_programs()
        as_of: Reference date (date or 'YYYY-MM-DD'); defaults to today.
               Results dated after it are left out.

    Results are scoped to the loaded axes: a result whose employee or
    program was filtered out (or is inactive) is dropped, so every count
    derived from snapshot.results covers the same population as the
    matrix. The number dropped is kept in excluded_results.

    RETURNS:
        TrainingSnapshot

    EXAMPLE:
        snapshot = load_snapshot(store, ledger, {'building': 'B1'})
        matrix = snapshot.build_matrix(warn_window_days=30)
    """
    as_of = parse_date(as_of) or date.today()
    employee_filters = dict(employee_filters or {})
    program_filters = dict(program_filters or {})

    with ThreadPoolExecutor(max_workers=3) as executor:
        employees_future = executor.submit(store.list_employees, **employee_filters)
        programs_future = executor.submit(store.list_programs, **program_filters)
        results_future = executor.submit(ledger.list_results, end_date=as_of.isoformat())

        employees = employees_future.result()
        programs = programs_future.result()
        ledger_results = results_future.result()

    employee_ids = {e.employee_id for e in employees}
    program_codes = {p.program_code for p in programs}
    results = [r for r in ledger_results
               if r.employee_id in employee_ids and r.program_code in program_codes]

    logger.debug("Loaded snapshot as of %s: %d employees, %d programs, %d results (%d out of scope)",
                 as_of, len(employees), len(programs), len(results),
                 len(ledger_results) - len(results))

    return TrainingSnapshot(
        employees=employees,
        programs=programs,
        results=results,
        as_of=as_of,
        filters={'employees': employee_filters, 'programs': program_filters},
        excluded_results=len(ledger_results) - len(results),
    )
