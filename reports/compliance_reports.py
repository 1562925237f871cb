"""
COMPLIANCE REPORTS MODULE
=========================
Generate training compliance reports from the compliance matrix.

This module provides the reports a training coordinator or auditor asks for:
- Progress matrix: Who has passed, failed, or never taken each program?
- Retraining: Whose latest attempt was a FAIL, and what should they take?
- Expiring: Whose qualification runs out soon (or already has)?
- KPI summary: Headline numbers for the dashboard
- Employee / program completion: Drill-down views

Aviation Analogy:
    Think of these as the training department's morning briefing:
    - Progress matrix = crew qualification board
    - Retraining = crew scheduled for a re-check after a busted checkride
    - Expiring = currency expiring before the next roster period
    Every report reads the same matrix, so they never disagree.
"""

import logging
from collections import Counter
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from config import DEFAULT_SETTINGS
from database.errors import NotFoundError
from database.models import CellStatus, Grade, Outcome, TrainingResult, parse_date
from database.result_ledger import ResultLedger
from database.training_store import TrainingStore
from managers.compliance_matrix import ComplianceMatrix, build_matrix, summarize_matrix
from managers.snapshot import load_snapshot
from managers.worklists import (
    RETRAINING_CATEGORY,
    expiring_trainings,
    recommended_retraining_programs,
    retraining_targets,
    sort_worklist,
)

logger = logging.getLogger(__name__)

# A required program counts as completed while its latest PASS is still valid
COMPLETED_STATUSES = {CellStatus.PASS, CellStatus.EXPIRING}


def _percentage(part: int, whole: int, empty: float = 0.0) -> float:
    return round(part / whole * 100, 1) if whole else empty


class ComplianceReports:
    """
    PURPOSE: Generate training compliance reports

    Each report method returns a plain dict with report_type, report_date,
    filters, and summary keys plus the report rows. The CLI prints them;
    callers can also use them programmatically.

    R EQUIVALENT:
        Like a set of functions that each build a tibble from the same
        joined employees/programs/results data frame.

    ATTRIBUTES:
        store: TrainingStore for employees and programs
        ledger: ResultLedger for results
        settings: Merged settings (warn window, expiring horizon, ...)

    EXAMPLE:
        reports = ComplianceReports(store, ledger)

        kpi = reports.kpi_summary()
        print(f"Completion rate: {kpi['summary']['completion_rate']}%")

        expiring = reports.expiring_report(horizon_days=60)
        for entry in expiring['entries']:
            print(f"  {entry['employee_name']}: {entry['days_until_expiry']} days")
    """

    def __init__(self, store: TrainingStore, ledger: ResultLedger = None,
                 settings: Dict[str, Any] = None):
        """
        Initialize ComplianceReports.

        WHY THIS APPROACH:
            The store and ledger are passed in so reports share one database
            connection with whatever else the caller is doing. This also
            makes testing easy with an in-memory or temp-file store.
        """
        self.store = store
        self.ledger = ledger if ledger else ResultLedger(store)
        self.settings = dict(DEFAULT_SETTINGS)
        self.settings.update(settings or {})

    # =========================================================================
    # MATRIX REPORTS
    # =========================================================================

    def progress_matrix_report(self, building: str = None, department: str = None,
                               position: str = None, line: str = None,
                               category: str = None, as_of=None) -> Dict[str, Any]:
        """
        Report the employee x program status grid.

        PURPOSE: Answer "Where does everyone stand on every program?"

        PARAMETERS:
            building, department, position, line: Employee filters
            category: Program category filter (e.g., 'QIP')
            as_of: Reference date (default: today)

        RETURNS:
            Dict containing:
            - summary: Count of grid positions by status (NOT_TAKEN included)
            - programs: Column headers (program codes, in order)
            - rows: One per employee with a {program_code: status} map
        """
        filters = self._filters(building, department, position, line, category)
        matrix = self._build_matrix(filters, as_of)

        counts = summarize_matrix(matrix)
        positions = len(matrix.employees) * len(matrix.programs)

        rows = []
        for employee in matrix.employees:
            statuses = {}
            for program in matrix.programs:
                statuses[program.program_code] = matrix.status(
                    employee.employee_id, program.program_code).value
            rows.append({
                'employee_id': employee.employee_id,
                'employee_name': employee.employee_name,
                'department': employee.department,
                'position': employee.position,
                'statuses': statuses,
            })

        return {
            'report_type': 'progress_matrix',
            'report_date': datetime.now().isoformat(),
            'as_of': matrix.now.isoformat(),
            'filters': filters,
            'summary': {
                'total_employees': len(matrix.employees),
                'total_programs': len(matrix.programs),
                'by_status': {status.value: count for status, count in counts.items()},
                'pass_percentage': _percentage(
                    counts[CellStatus.PASS] + counts[CellStatus.EXPIRING], positions
                ),
            },
            'programs': [p.program_code for p in matrix.programs],
            'rows': rows,
        }

    def retraining_report(self, building: str = None, department: str = None,
                          position: str = None, line: str = None,
                          category: str = None, as_of=None) -> Dict[str, Any]:
        """
        Report employees whose latest attempt at a program was a FAIL.

        PURPOSE: Build the retraining worklist with suggested courses

        RETURNS:
            Dict containing:
            - summary: Totals and counts by program
            - entries: Oldest failure first, each with recommended_programs

        WHY THIS APPROACH:
            Oldest failures are listed first because they have been waiting
            longest. Recommendations come from the RETRAINING category even
            when the report itself is filtered to another category.
        """
        filters = self._filters(building, department, position, line, category)
        matrix = self._build_matrix(filters, as_of)

        targets = sort_worklist(retraining_targets(matrix), 'training_date')
        retraining_programs = self.store.list_programs(category=RETRAINING_CATEGORY)
        limit = self.settings['recommended_programs_limit']

        entries = []
        for target in targets:
            record = target.last_result
            recommended = recommended_retraining_programs(target, retraining_programs, limit)
            entries.append({
                'employee_id': target.employee.employee_id,
                'employee_name': target.employee.employee_name,
                'department': target.employee.department,
                'position': target.employee.position,
                'program_code': target.program.program_code,
                'program_name': target.program.program_name,
                'result_id': record.result_id,
                'training_date': record.training_date.isoformat(),
                'score': record.score,
                'passing_score': target.program.passing_score,
                'recommended_programs': [p.program_code for p in recommended],
            })

        return {
            'report_type': 'retraining',
            'report_date': datetime.now().isoformat(),
            'as_of': matrix.now.isoformat(),
            'filters': filters,
            'summary': {
                'total': len(entries),
                'employees': len({e['employee_id'] for e in entries}),
                'by_program': dict(Counter(e['program_code'] for e in entries)),
            },
            'entries': entries,
        }

    def expiring_report(self, horizon_days: int = None, include_expired: bool = None,
                        building: str = None, department: str = None,
                        position: str = None, line: str = None,
                        category: str = None, as_of=None) -> Dict[str, Any]:
        """
        Report passed trainings that expire within the horizon.

        PARAMETERS:
            horizon_days: Look-ahead window (default: expiring_horizon_days)
            include_expired: Also list already-expired passes
                             (default: include_expired_in_worklist)
            building, department, position, line, category: Filters
            as_of: Reference date (default: today)

        RETURNS:
            Dict containing:
            - summary: total, expiring, expired
            - entries: Soonest expiration first (expired rows are negative)

        EXAMPLE:
            report = reports.expiring_report(horizon_days=30)
            if report['summary']['total']:
                print(f"{report['summary']['total']} qualifications expire within 30 days")
        """
        if horizon_days is None:
            horizon_days = self.settings['expiring_horizon_days']
        if include_expired is None:
            include_expired = self.settings['include_expired_in_worklist']
        if horizon_days < 0:
            raise ValueError(f"horizon_days must be >= 0, got: {horizon_days}")

        filters = self._filters(building, department, position, line, category)
        matrix = self._build_matrix(filters, as_of)

        expiring = sort_worklist(
            expiring_trainings(matrix, horizon_days, include_expired=include_expired),
            'days_until_expiry'
        )

        entries = []
        for item in expiring:
            entries.append({
                'employee_id': item.employee.employee_id,
                'employee_name': item.employee.employee_name,
                'department': item.employee.department,
                'program_code': item.program.program_code,
                'program_name': item.program.program_name,
                'last_pass_date': item.last_pass_date.isoformat(),
                'expiration_date': item.expiration_date.isoformat(),
                'days_until_expiry': item.days_until_expiry,
                'is_expired': item.is_expired,
            })

        expired = sum(1 for e in entries if e['is_expired'])
        filters.update({'horizon_days': horizon_days, 'include_expired': include_expired})

        return {
            'report_type': 'expiring',
            'report_date': datetime.now().isoformat(),
            'as_of': matrix.now.isoformat(),
            'filters': filters,
            'summary': {
                'total': len(entries),
                'expiring': len(entries) - expired,
                'expired': expired,
            },
            'entries': entries,
        }

    # =========================================================================
    # KPI REPORTS
    # =========================================================================

    def kpi_summary(self, as_of=None) -> Dict[str, Any]:
        """
        Headline training KPIs across all active employees.

        PURPOSE: Dashboard numbers

        RETURNS:
            Dict whose summary contains:
            - total_employees: Active employees
            - monthly_completions: PASS results dated in the as_of month
            - completion_rate: Completed / required (employee, program) pairs.
              Required = active program aimed at the employee's position.
              Completed = latest result is a still-valid PASS.
            - retraining_count: Employees with at least one FAIL cell
            - pass_rate: PASS / attempts (ABSENT is not an attempt)
            - first_time_pass_rate: Pairs whose first attempt was a PASS
            - average_score: Mean of every recorded score
            - expiring_count / expired_count: Required cells in those states
            - grade_distribution: Graded results by grade

        WHY THIS APPROACH:
            Rates are percentages rounded to one decimal. An organization
            with nothing required is reported as 100% complete. Every
            result-based figure counts only results of active employees on
            active programs, the same population the matrix covers.
        """
        snapshot = load_snapshot(self.store, self.ledger, as_of=as_of)
        matrix = snapshot.build_matrix(self.settings['warn_window_days'])
        results = snapshot.results

        required = completed = expiring = expired = 0
        for employee in matrix.employees:
            for program in matrix.programs:
                if not program.targets(employee.position):
                    continue
                required += 1
                status = matrix.status(employee.employee_id, program.program_code)
                if status in COMPLETED_STATUSES:
                    completed += 1
                if status is CellStatus.EXPIRING:
                    expiring += 1
                elif status is CellStatus.EXPIRED:
                    expired += 1

        attempts = [r for r in results if r.result is not Outcome.ABSENT]
        passes = sum(1 for r in attempts if r.result is Outcome.PASS)
        scores = [r.score for r in results if r.score is not None]
        first_attempts = self._first_attempts(results)

        month = (snapshot.as_of.year, snapshot.as_of.month)
        monthly = sum(
            1 for r in results
            if r.result is Outcome.PASS
            and (r.training_date.year, r.training_date.month) == month
        )

        grades = Counter(r.grade for r in results if r.grade is not None)

        return {
            'report_type': 'kpi_summary',
            'report_date': datetime.now().isoformat(),
            'as_of': snapshot.as_of.isoformat(),
            'filters': {},
            'summary': {
                'total_employees': len(matrix.employees),
                'monthly_completions': monthly,
                'required_trainings': required,
                'completed_trainings': completed,
                'completion_rate': _percentage(completed, required, empty=100.0),
                'retraining_count': len({t.employee.employee_id
                                         for t in retraining_targets(matrix)}),
                'total_attempts': len(attempts),
                'pass_rate': _percentage(passes, len(attempts)),
                'first_time_pass_rate': _percentage(
                    sum(1 for r in first_attempts if r.result is Outcome.PASS),
                    len(first_attempts)
                ),
                'average_score': round(sum(scores) / len(scores), 1) if scores else 0.0,
                'expiring_count': expiring,
                'expired_count': expired,
                'grade_distribution': {g.value: grades.get(g, 0) for g in Grade},
            },
        }

    def employee_completion_status(self, employee_id: str, as_of=None) -> Dict[str, Any]:
        """
        Completion status of one employee across their required programs.

        RAISES:
            NotFoundError: Unknown employee
        """
        employee = self.store.get_employee(employee_id)
        if not employee:
            raise NotFoundError(f"Employee '{employee_id}' not found")

        now = parse_date(as_of) or date.today()
        programs = [p for p in self.store.list_programs() if p.targets(employee.position)]
        results = self.ledger.list_results(employee_id=employee_id, end_date=now.isoformat())
        matrix = build_matrix([employee], programs, results, now,
                              self.settings['warn_window_days'])

        details = []
        for program in programs:
            cell = matrix.get(employee_id, program.program_code)
            details.append({
                'program_code': program.program_code,
                'program_name': program.program_name,
                'status': matrix.status(employee_id, program.program_code).value,
                'last_training_date': cell.last_training_date.isoformat() if cell else None,
                'last_score': cell.last_score if cell else None,
                'expiration_date': (cell.expiration_date.isoformat()
                                    if cell and cell.expiration_date else None),
                'attempts': cell.completion_count if cell else 0,
            })

        counts = Counter(d['status'] for d in details)
        completed = sum(counts[s.value] for s in COMPLETED_STATUSES)

        return {
            'report_type': 'employee_completion',
            'report_date': datetime.now().isoformat(),
            'as_of': now.isoformat(),
            'filters': {'employee_id': employee_id},
            'employee': employee.to_dict(),
            'summary': {
                'required_programs': len(programs),
                'completed_programs': completed,
                'completion_rate': _percentage(completed, len(programs), empty=100.0),
                'expiring_count': counts[CellStatus.EXPIRING.value],
                'expired_count': counts[CellStatus.EXPIRED.value],
                'failed_count': counts[CellStatus.FAIL.value],
                'not_taken_count': counts[CellStatus.NOT_TAKEN.value],
            },
            'programs': details,
        }

    def program_completion_status(self, program_code: str, as_of=None) -> Dict[str, Any]:
        """
        Completion status of one program across the employees it targets.

        RETURNS:
            Dict whose summary has target_employees, completed, completion_rate,
            pass_rate (attempts by the targeted active employees), and
            average_score (latest score of each employee who completed it)

        RAISES:
            NotFoundError: Unknown program
        """
        program = self.store.get_program(program_code)
        if not program:
            raise NotFoundError(f"Program '{program_code}' not found")

        now = parse_date(as_of) or date.today()
        employees = [e for e in self.store.list_employees() if program.targets(e.position)]
        target_ids = {e.employee_id for e in employees}
        results = [
            r for r in self.ledger.list_results(program_code=program_code,
                                                end_date=now.isoformat())
            if r.employee_id in target_ids
        ]
        matrix = build_matrix(employees, [program], results, now,
                              self.settings['warn_window_days'], strict=True)

        completed_cells = [
            cell for cell in matrix
            if cell.status in COMPLETED_STATUSES
        ]
        scores = [c.last_score for c in completed_cells if c.last_score is not None]
        attempts = [r for r in results if r.result is not Outcome.ABSENT]
        passes = sum(1 for r in attempts if r.result is Outcome.PASS)
        counts = summarize_matrix(matrix)

        return {
            'report_type': 'program_completion',
            'report_date': datetime.now().isoformat(),
            'as_of': now.isoformat(),
            'filters': {'program_code': program_code},
            'program': program.to_dict(),
            'summary': {
                'target_employees': len(employees),
                'completed': len(completed_cells),
                'completion_rate': _percentage(len(completed_cells), len(employees),
                                               empty=100.0),
                'pass_rate': _percentage(passes, len(attempts)),
                'average_score': round(sum(scores) / len(scores), 1) if scores else 0.0,
                'by_status': {status.value: count for status, count in counts.items()},
            },
        }

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _filters(self, building: str, department: str, position: str,
                 line: str, category: str) -> Dict[str, Optional[str]]:
        return {
            'building': building,
            'department': department,
            'position': position,
            'line': line,
            'category': category,
        }

    def _build_matrix(self, filters: Dict[str, Optional[str]], as_of) -> ComplianceMatrix:
        """Load a snapshot for the filters and build its matrix."""
        employee_filters = {k: v for k, v in filters.items()
                            if k != 'category' and v is not None}
        program_filters = {'category': filters['category']} if filters.get('category') else {}

        snapshot = load_snapshot(self.store, self.ledger, employee_filters,
                                 program_filters, as_of=as_of)
        return snapshot.build_matrix(self.settings['warn_window_days'])

    def _first_attempts(self, results: List[TrainingResult]) -> List[TrainingResult]:
        """
        Earliest non-ABSENT result of every (employee, program) pair.

        Same-day attempts are ordered by ledger sequence.
        """
        first: Dict[tuple, TrainingResult] = {}
        for record in results:
            if record.result is Outcome.ABSENT:
                continue
            key = (record.employee_id, record.program_code)
            current = first.get(key)
            if current is None or (record.training_date, record.sequence or 0) < \
                    (current.training_date, current.sequence or 0):
                first[key] = record
        return list(first.values())
