"""
Unit Tests for the Retraining and Expiring Worklists

PURPOSE: Test which cells land on each worklist and how they sort

RUN TESTS:
    python3 -m pytest tests/ -v
"""

import os
import sys
import unittest
from datetime import date

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database.models import Employee, Outcome, TrainingProgram, TrainingResult
from managers.compliance_matrix import build_matrix
from managers.worklists import (
    expiring_trainings,
    recommended_retraining_programs,
    retraining_targets,
    sort_worklist,
)


def make_program(code, validity=365, category='QIP', targets=None, active=True):
    return TrainingProgram(code, f"Program {code}", passing_score=70,
                           grade_aa=95, grade_a=85, grade_b=70,
                           validity_period_days=validity, category=category,
                           target_positions=targets or [], is_active=active)


class TestRetrainingTargets(unittest.TestCase):

    def setUp(self):
        self.employees = [
            Employee('EMP-001', 'An', position='TQC'),
            Employee('EMP-002', 'Binh', position='RQC'),
        ]
        self.programs = [make_program('QIP-001'), make_program('QIP-002')]

    def test_latest_fail_is_a_target(self):
        """Scenario: PASS on 2024-01-10 then FAIL on 2024-06-01."""
        results = [
            TrainingResult('R1', 'EMP-001', 'QIP-001', date(2024, 1, 10), 96, Outcome.PASS, sequence=1),
            TrainingResult('R2', 'EMP-001', 'QIP-001', date(2024, 6, 1), 60, Outcome.FAIL, sequence=2),
        ]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 12, 20))
        targets = retraining_targets(matrix)

        self.assertEqual(len(targets), 1)
        self.assertEqual(targets[0].employee.employee_id, 'EMP-001')
        self.assertEqual(targets[0].program.program_code, 'QIP-001')
        self.assertEqual(targets[0].last_result.result_id, 'R2')

    def test_fail_then_pass_is_not_a_target(self):
        results = [
            TrainingResult('R1', 'EMP-001', 'QIP-001', date(2024, 1, 10), 60, Outcome.FAIL, sequence=1),
            TrainingResult('R2', 'EMP-001', 'QIP-001', date(2024, 2, 10), 80, Outcome.PASS, sequence=2),
        ]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 3, 1))
        self.assertEqual(retraining_targets(matrix), [])

    def test_absent_is_not_a_target(self):
        results = [TrainingResult('R1', 'EMP-001', 'QIP-001', date(2024, 1, 10), None,
                                  Outcome.ABSENT)]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 3, 1))
        self.assertEqual(retraining_targets(matrix), [])

    def test_one_entry_per_pair(self):
        results = [
            TrainingResult('R1', 'EMP-001', 'QIP-001', date(2024, 1, 1), 50, Outcome.FAIL, sequence=1),
            TrainingResult('R2', 'EMP-001', 'QIP-001', date(2024, 2, 1), 55, Outcome.FAIL, sequence=2),
            TrainingResult('R3', 'EMP-002', 'QIP-002', date(2024, 1, 5), 40, Outcome.FAIL, sequence=3),
        ]
        matrix = build_matrix(self.employees, self.programs, results, date(2024, 3, 1))
        targets = retraining_targets(matrix)
        pairs = [(t.employee.employee_id, t.program.program_code) for t in targets]
        self.assertEqual(sorted(pairs), [('EMP-001', 'QIP-001'), ('EMP-002', 'QIP-002')])

        ordered = sort_worklist(targets, 'training_date')
        self.assertEqual(ordered[0].last_result.result_id, 'R3')


class TestExpiringTrainings(unittest.TestCase):

    def setUp(self):
        self.employees = [Employee('EMP-001', 'An'), Employee('EMP-002', 'Binh'),
                          Employee('EMP-003', 'Chi')]
        self.programs = [make_program('QIP-001', validity=365), make_program('NEW-001', validity=None)]
        self.results = [
            # expires 2024-01-10: 21 days out on 2023-12-20
            TrainingResult('R1', 'EMP-001', 'QIP-001', date(2023, 1, 10), 96, Outcome.PASS, sequence=1),
            # expires 2023-12-01: already expired
            TrainingResult('R2', 'EMP-002', 'QIP-001', date(2022, 12, 1), 80, Outcome.PASS, sequence=2),
            # expires 2024-06-01: outside a 30-day horizon
            TrainingResult('R3', 'EMP-003', 'QIP-001', date(2023, 6, 2), 80, Outcome.PASS, sequence=3),
            TrainingResult('R4', 'EMP-001', 'NEW-001', date(2015, 1, 1), 80, Outcome.PASS, sequence=4),
        ]
        self.now = date(2023, 12, 20)

    def test_only_expiring_by_default(self):
        matrix = build_matrix(self.employees, self.programs, self.results, self.now)
        entries = expiring_trainings(matrix, horizon_days=30)
        self.assertEqual([e.employee.employee_id for e in entries], ['EMP-001'])
        self.assertEqual(entries[0].days_until_expiry, 21)
        self.assertEqual(entries[0].expiration_date, date(2024, 1, 10))

    def test_include_expired_policy(self):
        matrix = build_matrix(self.employees, self.programs, self.results, self.now)
        entries = sort_worklist(expiring_trainings(matrix, 30, include_expired=True),
                                'days_until_expiry')
        self.assertEqual([e.employee.employee_id for e in entries], ['EMP-002', 'EMP-001'])
        self.assertTrue(entries[0].is_expired)
        self.assertEqual(entries[0].days_until_expiry, -19)

    def test_horizon_overrides_matrix_window(self):
        """The matrix was built with 30 days; a 200-day horizon still finds EMP-003."""
        matrix = build_matrix(self.employees, self.programs, self.results, self.now,
                              warn_window_days=30)
        entries = expiring_trainings(matrix, horizon_days=200)
        self.assertEqual(sorted(e.employee.employee_id for e in entries), ['EMP-001', 'EMP-003'])

    def test_failed_latest_result_never_listed(self):
        results = self.results + [
            TrainingResult('R5', 'EMP-001', 'QIP-001', date(2023, 12, 1), 50, Outcome.FAIL, sequence=5),
        ]
        matrix = build_matrix(self.employees, self.programs, results, self.now)
        entries = expiring_trainings(matrix, 30, include_expired=True)
        self.assertNotIn('EMP-001', [e.employee.employee_id for e in entries])


class TestHelpers(unittest.TestCase):

    def test_unknown_sort_key(self):
        with self.assertRaises(ValueError):
            sort_worklist([], 'score')

    def test_recommended_programs_match_position(self):
        employee = Employee('EMP-001', 'An', position='TQC')
        failed = make_program('QIP-001')
        result = TrainingResult('R1', 'EMP-001', 'QIP-001', date(2024, 1, 1), 50, Outcome.FAIL)
        matrix = build_matrix([employee], [failed], [result], date(2024, 2, 1))
        target = retraining_targets(matrix)[0]

        programs = [
            make_program('RET-001', category='RETRAINING', targets=['TQC', 'RQC']),
            make_program('RET-002', category='RETRAINING', targets=['RQC']),
            make_program('RET-003', category='RETRAINING'),
            make_program('RET-004', category='RETRAINING', active=False),
            make_program('QIP-009'),
        ]
        recommended = recommended_retraining_programs(target, programs)
        self.assertEqual([p.program_code for p in recommended], ['RET-001', 'RET-003'])
        self.assertEqual(len(recommended_retraining_programs(target, programs, limit=1)), 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
