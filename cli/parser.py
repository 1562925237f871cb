"""
CLI Argument Parser
===================

Defines all command-line arguments for the Training Compliance Toolkit.

WHY SEPARATE FILE: Keeps argument definitions organized and makes
it easy to see all available commands at a glance.
"""

import argparse

# --expiring given without DAYS: use expiring_horizon_days from settings
USE_CONFIGURED_HORIZON = -1


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser.

    WHY THIS APPROACH: argparse provides robust command-line parsing
    with automatic help generation and type checking.
    """
    parser = argparse.ArgumentParser(
        description="Training Compliance Toolkit - Track training results and compliance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Initialize database and load programs:
    python3 run.py --init

  Add an employee:
    python3 run.py --add-employee EMP-001 --name "Nguyen Van A" --position TQC --building B1

  Record a session from Excel:
    python3 run.py --record "QIP_Session_0110.xlsx" --by "Trainer Kim" --session SES-001

  Amend a result:
    python3 run.py --amend RES-1A2B3C4D5E6F --score 94 --reason "Transcription error" --by "QA Lead"

  Reports:
    python3 run.py --matrix --building B1
    python3 run.py --retraining
    python3 run.py --expiring 60 --include-expired
    python3 run.py --kpi --as-of 2024-12-20
        """
    )

    # ==== GLOBAL OPTIONS ====
    parser.add_argument('--verbose', '-v', action='store_true',
                        help="Enable verbose (DEBUG) logging")
    parser.add_argument('--db', type=str,
                        help="Path to database file (default: database_path setting)")
    parser.add_argument('--config', type=str, metavar='SETTINGS_YAML',
                        help="Settings file (default: config/settings.yaml)")
    parser.add_argument('--as-of', type=str, metavar='YYYY-MM-DD',
                        help="Reference date for reports (default: today)")

    # ==== INITIALIZATION ====
    parser.add_argument('--init', action='store_true',
                        help="Initialize database schema and load program definitions")
    parser.add_argument('--load-programs', nargs='?', const='', metavar='YAML',
                        help="Load or refresh programs from YAML (default: config/programs.yaml)")

    # ==== EMPLOYEE OPERATIONS ====
    parser.add_argument('--add-employee', type=str, metavar='EMPLOYEE_ID',
                        help="Add a new employee")
    parser.add_argument('--name', type=str,
                        help="Employee name (use with --add-employee)")
    parser.add_argument('--hire-date', type=str, metavar='YYYY-MM-DD',
                        help="Hire date (use with --add-employee)")
    parser.add_argument('--list-employees', action='store_true',
                        help="List employees")
    parser.add_argument('--deactivate-employee', type=str, metavar='EMPLOYEE_ID',
                        help="Mark an employee INACTIVE (history is kept)")
    parser.add_argument('--search', type=str,
                        help="Search text for --list-employees / --list-programs")
    parser.add_argument('--all', action='store_true',
                        help="Include inactive employees/programs in lists")

    # ==== PROGRAM OPERATIONS ====
    parser.add_argument('--add-program', type=str, metavar='PROGRAM_CODE',
                        help="Add a new training program")
    parser.add_argument('--program-name', type=str,
                        help="Program name (use with --add-program)")
    parser.add_argument('--passing-score', type=int,
                        help="Passing score 0-100 (use with --add-program)")
    parser.add_argument('--grades', type=int, nargs=3, metavar=('AA', 'A', 'B'),
                        help="Grade thresholds, highest first (use with --add-program)")
    parser.add_argument('--validity-days', type=int,
                        help="Days a PASS stays valid; omit for never expires")
    parser.add_argument('--evaluation-type', type=str, choices=['SCORE', 'PASS_FAIL'],
                        default='SCORE',
                        help="How results are evaluated (use with --add-program)")
    parser.add_argument('--targets', type=str,
                        help="Comma-separated target positions (use with --add-program)")
    parser.add_argument('--list-programs', action='store_true',
                        help="List training programs")

    # ==== RESULT LEDGER ====
    parser.add_argument('--record', type=str, metavar='EXCEL_FILE',
                        help="Record a session's results from an Excel sheet")
    parser.add_argument('--by', type=str, metavar='NAME',
                        help="Evaluator (with --record) or editor (with --amend)")
    parser.add_argument('--session', type=str, metavar='SESSION_ID',
                        help="Session identifier (use with --record)")
    parser.add_argument('--sheet', type=str,
                        help="Worksheet name (use with --record)")
    parser.add_argument('--dry-run', action='store_true',
                        help="Validate without writing (use with --record)")
    parser.add_argument('--results', action='store_true',
                        help="List ledger results (filter with --employee / --program)")
    parser.add_argument('--employee', type=str, metavar='EMPLOYEE_ID',
                        help="Employee filter for --results")
    parser.add_argument('--program', type=str, metavar='PROGRAM_CODE',
                        help="Program filter for --results")

    parser.add_argument('--amend', type=str, metavar='RESULT_ID',
                        help="Amend a result (requires --reason)")
    parser.add_argument('--score', type=int,
                        help="New score (use with --amend)")
    parser.add_argument('--result', type=str, choices=['PASS', 'FAIL', 'ABSENT'],
                        help="New result (use with --amend)")
    parser.add_argument('--remarks', type=str,
                        help="New remarks (use with --amend)")
    parser.add_argument('--reason', type=str,
                        help="Reason for the amendment (required with --amend)")
    parser.add_argument('--expected-version', type=int,
                        help="Refuse the amendment if the result has moved past this version")
    parser.add_argument('--edit-log', nargs='?', const='', metavar='RESULT_ID',
                        help="Show the edit log (optionally for one result)")

    # ==== REPORTS ====
    parser.add_argument('--matrix', action='store_true',
                        help="Show the progress matrix")
    parser.add_argument('--retraining', action='store_true',
                        help="Show the retraining worklist")
    parser.add_argument('--expiring', type=int, nargs='?', const=USE_CONFIGURED_HORIZON,
                        metavar='DAYS',
                        help="Show trainings expiring within DAYS (default: settings)")
    parser.add_argument('--include-expired', action='store_true', default=None,
                        help="Include already-expired trainings (use with --expiring)")
    parser.add_argument('--kpi', action='store_true',
                        help="Show KPI summary")
    parser.add_argument('--employee-status', type=str, metavar='EMPLOYEE_ID',
                        help="Show completion status for one employee")
    parser.add_argument('--program-status', type=str, metavar='PROGRAM_CODE',
                        help="Show completion status for one program")

    # ==== FILTERS ====
    # Also used as field values by --add-employee / --add-program
    parser.add_argument('--building', type=str, help="Building filter")
    parser.add_argument('--department', type=str, help="Department filter")
    parser.add_argument('--position', type=str, help="Position filter")
    parser.add_argument('--line', type=str, help="Production line filter")
    parser.add_argument('--category', type=str, help="Program category filter")

    return parser
