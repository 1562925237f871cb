"""
Unit Tests for the Command-Line Interface

PURPOSE: Drive run.py end to end against a temporary database

RUN TESTS:
    python3 -m pytest tests/ -v
    OR
    python3 tests/test_cli.py
"""

import io
import os
import shutil
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

from openpyxl import Workbook

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import DEFAULT_SETTINGS, load_settings
from database.result_ledger import ResultLedger
from database.training_store import TrainingStore
from run import main


class TestSettings(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def write_settings(self, text):
        path = os.path.join(self.temp_dir, 'settings.yaml')
        with open(path, 'w') as f:
            f.write(text)
        return path

    def test_bundled_settings_match_defaults(self):
        settings = load_settings()
        self.assertEqual(settings['warn_window_days'], 30)
        self.assertEqual(set(settings), set(DEFAULT_SETTINGS))

    def test_file_overrides_defaults(self):
        path = self.write_settings("warn_window_days: 45\nunknown_key: 1\n")
        settings = load_settings(path)
        self.assertEqual(settings['warn_window_days'], 45)
        self.assertEqual(settings['expiring_horizon_days'], 30)
        self.assertNotIn('unknown_key', settings)

    def test_unsupported_regrade_policy(self):
        path = self.write_settings("regrade_on_amend: original\n")
        with self.assertRaises(ValueError):
            load_settings(path)

    def test_explicit_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_settings(os.path.join(self.temp_dir, 'missing.yaml'))


class TestCommandLine(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, 'cli.db')
        self.run_cli('--init')
        self.run_cli('--add-employee', 'EMP-001', '--name', 'Nguyen Van A',
                     '--position', 'TQC', '--building', 'B1')
        self.run_cli('--add-employee', 'EMP-002', '--name', 'Tran Thi B',
                     '--position', 'RQC', '--building', 'B1')

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def run_cli(self, *argv):
        """Run the CLI and return (stdout, stderr, exit_code)."""
        stdout, stderr = io.StringIO(), io.StringIO()
        code = 0
        with redirect_stdout(stdout), redirect_stderr(stderr):
            try:
                main(['--db', self.db_path] + list(argv))
            except SystemExit as e:
                code = e.code
        return stdout.getvalue(), stderr.getvalue(), code

    def write_session(self, rows):
        wb = Workbook()
        ws = wb.active
        ws.append(['Employee ID', 'Program Code', 'Training Date', 'Score'])
        for row in rows:
            ws.append(row)
        path = os.path.join(self.temp_dir, 'session.xlsx')
        wb.save(path)
        return path

    def ledger_results(self):
        store = TrainingStore(self.db_path)
        try:
            return ResultLedger(store).list_results()
        finally:
            store.close()

    def test_uninitialized_database_points_to_init(self):
        self.db_path = os.path.join(self.temp_dir, 'fresh.db')
        out, err, code = self.run_cli('--matrix')

        self.assertEqual(code, 1)
        self.assertEqual(out, '')
        self.assertIn('Database error', err)
        self.assertIn('--init', err)

    def test_list_employees_and_programs(self):
        out, _, code = self.run_cli('--list-employees')
        self.assertEqual(code, 0)
        self.assertIn('EMP-001', out)
        self.assertIn('EMP-002', out)

        out, _, _ = self.run_cli('--list-programs', '--category', 'RETRAINING')
        self.assertIn('RET-001', out)
        self.assertNotIn('QIP-001', out)

    def test_record_and_report(self):
        path = self.write_session([
            ['EMP-001', 'QIP-001', '2023-01-10', 96],
            ['EMP-002', 'QIP-001', '2023-11-01', 50],
        ])
        out, _, code = self.run_cli('--record', path, '--by', 'Trainer Kim',
                                    '--session', 'SES-001')
        self.assertEqual(code, 0)
        self.assertIn('Recorded 2 results', out)

        out, _, _ = self.run_cli('--matrix', '--as-of', '2023-12-20')
        self.assertIn('EXPIRING', out)
        self.assertIn('FAIL', out)

        out, _, _ = self.run_cli('--retraining', '--as-of', '2023-12-20')
        self.assertIn('EMP-002', out)
        self.assertIn('RET-001', out)

        out, _, _ = self.run_cli('--expiring', '--as-of', '2023-12-20')
        self.assertIn('2024-01-10', out)
        self.assertIn('21d left', out)

        out, _, _ = self.run_cli('--kpi', '--as-of', '2023-12-20')
        self.assertIn('Pass rate: 50.0%', out)

    def test_record_requires_evaluator(self):
        path = self.write_session([['EMP-001', 'QIP-001', '2023-01-10', 96]])
        _, err, code = self.run_cli('--record', path)
        self.assertEqual(code, 1)
        self.assertIn('--by required', err)
        self.assertEqual(self.ledger_results(), [])

    def test_bad_sheet_records_nothing(self):
        path = self.write_session([
            ['EMP-001', 'QIP-001', '2023-01-10', 96],
            ['EMP-404', 'QIP-001', '2023-01-10', 80],
        ])
        out, _, code = self.run_cli('--record', path, '--by', 'Trainer Kim')
        self.assertEqual(code, 1)
        self.assertIn("Row 3: Employee 'EMP-404' not found", out)
        self.assertEqual(self.ledger_results(), [])

    def test_amend_and_edit_log(self):
        path = self.write_session([['EMP-001', 'QIP-001', '2023-01-10', 96]])
        self.run_cli('--record', path, '--by', 'Trainer Kim')
        result_id = self.ledger_results()[0].result_id

        _, err, code = self.run_cli('--amend', result_id, '--score', '86')
        self.assertEqual(code, 1)
        self.assertIn('--reason required', err)

        out, _, code = self.run_cli('--amend', result_id, '--score', '86',
                                    '--reason', 'Transcription error', '--by', 'QA Lead')
        self.assertEqual(code, 0)
        self.assertIn('now version 2', out)

        out, _, _ = self.run_cli('--edit-log', result_id)
        self.assertIn('Transcription error', out)
        self.assertIn('96 -> 86', out)

    def test_unknown_result_is_reported(self):
        _, err, code = self.run_cli('--amend', 'RES-MISSING', '--score', '50',
                                    '--reason', 'typo')
        self.assertEqual(code, 1)
        self.assertIn("Result 'RES-MISSING' not found", err)


if __name__ == "__main__":
    unittest.main(verbosity=2)
