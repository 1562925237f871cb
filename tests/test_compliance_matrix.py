"""
Unit Tests for the Compliance Matrix Builder

PURPOSE: Test latest-result selection, completion counts, expiry flags,
         and strict consistency checking

AVIATION ANALOGY: Making sure the crew qualification board shows the
latest checkride for every square, never an older one

RUN TESTS:
    python3 -m pytest tests/ -v
"""

import os
import sys
import unittest
from datetime import date

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database.errors import ConsistencyError
from database.models import (
    CellStatus,
    Employee,
    Grade,
    Outcome,
    TrainingProgram,
    TrainingResult,
)
from managers.compliance_matrix import build_matrix, check_consistency, summarize_matrix


def make_employee(employee_id, position='TQC'):
    return Employee(employee_id, f"Employee {employee_id}", department='QIP', position=position)


def make_program(code='QIP-001', validity=365):
    return TrainingProgram(code, f"Program {code}", passing_score=70,
                           grade_aa=95, grade_a=85, grade_b=70,
                           validity_period_days=validity)


def make_result(result_id, employee_id, program_code, training_date, score, outcome,
                grade=None, sequence=None):
    return TrainingResult(result_id, employee_id, program_code, training_date, score,
                          outcome, grade=grade, sequence=sequence)


class TestLatestResult(unittest.TestCase):
    """The cell reflects the chronologically latest result."""

    def setUp(self):
        self.employees = [make_employee('EMP-001'), make_employee('EMP-002')]
        self.programs = [make_program('QIP-001'), make_program('QIP-002', validity=None)]

    def test_pass_then_later_fail(self):
        """A FAIL on 2024-06-01 replaces the 2024-01-10 PASS."""
        results = [
            make_result('R1', 'EMP-001', 'QIP-001', date(2024, 1, 10), 96, Outcome.PASS, Grade.AA, 1),
            make_result('R2', 'EMP-001', 'QIP-001', date(2024, 6, 1), 60, Outcome.FAIL, Grade.C, 2),
        ]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 12, 20))

        cell = matrix.get('EMP-001', 'QIP-001')
        self.assertIs(cell.last_result, Outcome.FAIL)
        self.assertEqual(cell.last_score, 60)
        self.assertEqual(cell.last_grade, Grade.C)
        self.assertEqual(cell.completion_count, 2)
        self.assertIsNone(cell.expiration_date)
        self.assertFalse(cell.is_expiring)
        self.assertEqual(matrix.status('EMP-001', 'QIP-001'), CellStatus.FAIL)

    def test_ledger_order_does_not_matter_for_dates(self):
        """An older result inserted later does not win."""
        results = [
            make_result('R1', 'EMP-001', 'QIP-001', date(2024, 6, 1), 60, Outcome.FAIL, sequence=1),
            make_result('R2', 'EMP-001', 'QIP-001', date(2024, 1, 10), 96, Outcome.PASS, sequence=2),
        ]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 12, 20))
        self.assertEqual(matrix.get('EMP-001', 'QIP-001').last_record.result_id, 'R1')

    def test_same_day_tie_goes_to_later_insertion(self):
        results = [
            make_result('R1', 'EMP-001', 'QIP-001', date(2024, 3, 1), 50, Outcome.FAIL, sequence=1),
            make_result('R2', 'EMP-001', 'QIP-001', date(2024, 3, 1), 80, Outcome.PASS, sequence=2),
        ]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 3, 2))
        self.assertEqual(matrix.get('EMP-001', 'QIP-001').last_record.result_id, 'R2')

    def test_same_day_tie_uses_sequence_not_list_position(self):
        results = [
            make_result('R2', 'EMP-001', 'QIP-001', date(2024, 3, 1), 80, Outcome.PASS, sequence=7),
            make_result('R1', 'EMP-001', 'QIP-001', date(2024, 3, 1), 50, Outcome.FAIL, sequence=3),
        ]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 3, 2))
        self.assertEqual(matrix.get('EMP-001', 'QIP-001').last_record.result_id, 'R2')

    def test_same_day_tie_without_sequence_uses_list_order(self):
        results = [
            make_result('R1', 'EMP-001', 'QIP-001', date(2024, 3, 1), 50, Outcome.FAIL),
            make_result('R2', 'EMP-001', 'QIP-001', date(2024, 3, 1), 80, Outcome.PASS),
        ]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 3, 2))
        self.assertEqual(matrix.get('EMP-001', 'QIP-001').last_record.result_id, 'R2')

    def test_absent_counts_toward_completion_count(self):
        results = [
            make_result('R1', 'EMP-001', 'QIP-001', date(2024, 1, 1), 80, Outcome.PASS, sequence=1),
            make_result('R2', 'EMP-001', 'QIP-001', date(2024, 2, 1), None, Outcome.ABSENT, sequence=2),
        ]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 3, 1))
        cell = matrix.get('EMP-001', 'QIP-001')
        self.assertEqual(cell.completion_count, 2)
        self.assertEqual(cell.status, CellStatus.ABSENT)


class TestMatrixShape(unittest.TestCase):
    """Axes, empty cells, and purity."""

    def setUp(self):
        self.employees = [make_employee('EMP-001'), make_employee('EMP-002')]
        self.programs = [make_program('QIP-001'), make_program('QIP-002', validity=None)]
        self.results = [
            make_result('R1', 'EMP-001', 'QIP-001', date(2024, 1, 10), 96, Outcome.PASS, Grade.AA, 1),
        ]

    def test_untaken_pairs_are_not_materialized(self):
        matrix = build_matrix(self.employees, self.programs, self.results, date(2024, 2, 1))
        self.assertEqual(len(matrix), 1)
        self.assertIsNone(matrix.get('EMP-002', 'QIP-001'))
        self.assertEqual(matrix.status('EMP-002', 'QIP-001'), CellStatus.NOT_TAKEN)
        self.assertNotIn(('EMP-002', 'QIP-001'), matrix)

    def test_axes_keep_employees_without_results(self):
        matrix = build_matrix(self.employees, self.programs, self.results, date(2024, 2, 1))
        self.assertEqual([e.employee_id for e in matrix.employees], ['EMP-001', 'EMP-002'])
        self.assertEqual(list(matrix.row('EMP-002')), ['QIP-001', 'QIP-002'])
        self.assertTrue(all(cell is None for cell in matrix.row('EMP-002').values()))

    def test_build_is_idempotent(self):
        now = date(2024, 12, 20)
        first = build_matrix(self.employees, self.programs, self.results, now)
        second = build_matrix(self.employees, self.programs, self.results, now)
        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_input_lists_are_not_modified(self):
        results = list(self.results)
        build_matrix(self.employees, self.programs, results, date(2024, 2, 1))
        self.assertEqual(results, self.results)

    def test_summary_counts_every_position(self):
        matrix = build_matrix(self.employees, self.programs, self.results, date(2024, 2, 1))
        summary = summarize_matrix(matrix)
        self.assertEqual(summary[CellStatus.PASS], 1)
        self.assertEqual(summary[CellStatus.NOT_TAKEN], 3)
        self.assertEqual(sum(summary.values()), 4)


class TestExpiryInCells(unittest.TestCase):

    def test_scenario_pass_expiring(self):
        """PASS on 2023-01-10, 365-day validity, viewed on 2023-12-20."""
        results = [make_result('R1', 'EMP-001', 'QIP-001', date(2023, 1, 10), 96,
                               Outcome.PASS, Grade.AA, 1)]
        matrix = build_matrix([make_employee('EMP-001')], [make_program()], results,
                              date(2023, 12, 20), warn_window_days=30)
        cell = matrix.get('EMP-001', 'QIP-001')
        self.assertEqual(cell.expiration_date, date(2024, 1, 10))
        self.assertTrue(cell.is_expiring)
        self.assertFalse(cell.is_expired)
        self.assertEqual(cell.status, CellStatus.EXPIRING)

    def test_zero_day_validity_expired_next_day(self):
        results = [make_result('R1', 'EMP-001', 'ZERO', date(2024, 3, 1), 80, Outcome.PASS)]
        program = make_program('ZERO', validity=0)
        matrix = build_matrix([make_employee('EMP-001')], [program], results, date(2024, 3, 2))
        self.assertTrue(matrix.get('EMP-001', 'ZERO').is_expired)

    def test_never_expiring_program(self):
        results = [make_result('R1', 'EMP-001', 'NEW', date(2010, 1, 1), 80, Outcome.PASS)]
        matrix = build_matrix([make_employee('EMP-001')], [make_program('NEW', validity=None)],
                              results, date(2024, 1, 1))
        cell = matrix.get('EMP-001', 'NEW')
        self.assertIsNone(cell.expiration_date)
        self.assertEqual(cell.status, CellStatus.PASS)


class TestConsistency(unittest.TestCase):
    """Orphaned results are surfaced in strict mode."""

    def setUp(self):
        self.employees = [make_employee('EMP-001')]
        self.programs = [make_program('QIP-001')]
        self.results = [
            make_result('R1', 'EMP-001', 'QIP-001', date(2024, 1, 1), 80, Outcome.PASS),
            make_result('R2', 'EMP-999', 'QIP-001', date(2024, 1, 1), 80, Outcome.PASS),
            make_result('R3', 'EMP-001', 'GONE-01', date(2024, 1, 1), 80, Outcome.PASS),
        ]

    def test_strict_raises_with_orphans(self):
        with self.assertRaises(ConsistencyError) as ctx:
            build_matrix(self.employees, self.programs, self.results, date(2024, 2, 1),
                         strict=True)
        orphan_ids = [o[0] for o in ctx.exception.orphans]
        self.assertEqual(orphan_ids, ['R2', 'R3'])

    def test_non_strict_skips_results_outside_axes(self):
        matrix = build_matrix(self.employees, self.programs, self.results, date(2024, 2, 1))
        self.assertEqual(len(matrix), 1)
        self.assertEqual(matrix.get('EMP-001', 'QIP-001').completion_count, 1)

    def test_consistent_inputs_pass(self):
        check_consistency(self.employees, self.programs, self.results[:1])


if __name__ == "__main__":
    unittest.main(verbosity=2)
