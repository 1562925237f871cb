#!/usr/bin/env python3
"""
TRAINING COMPLIANCE TOOLKIT CLI

PURPOSE: Command-line interface for the training roster, the Result
         Ledger, and the compliance reports built from them

R EQUIVALENT: Like an R package's main script that routes to different
              functions based on command-line arguments

AVIATION ANALOGY: Like the training department's terminal - log a
                  checkride, correct a logbook entry, or pull the
                  currency board

USAGE EXAMPLES:
    # Initialize database and load program definitions
    python3 run.py --init

    # Add an employee
    python3 run.py --add-employee EMP-001 --name "Nguyen Van A" --department QIP \\
        --position TQC --building BUILDING_A_F1 --line LINE-3

    # Record a session from Excel
    python3 run.py --record "QIP_Session_0110.xlsx" --by "Trainer Kim" --session SES-2024-001

    # Amend a result (reason is mandatory)
    python3 run.py --amend RES-1A2B3C4D5E6F --score 94 --reason "Score sheet typo" --by "QA Lead"

    # View the edit log
    python3 run.py --edit-log RES-1A2B3C4D5E6F

    # Reports
    python3 run.py --matrix --building BUILDING_A_F1
    python3 run.py --retraining --department QIP
    python3 run.py --expiring 60 --include-expired
    python3 run.py --kpi --as-of 2024-12-20

AUTHOR: Glen Lewis
DATE: 2025
"""

import logging
import sqlite3
import sys
import os

import yaml

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Import CLI components from cli/ package
from cli import (
    create_parser,
    USE_CONFIGURED_HORIZON,
    print_header,
    print_subheader,
    print_success,
    print_error,
    print_warning,
    print_info,
    print_table_row,
    print_list_item,
    require_args,
    format_date,
    format_count,
    format_percent,
    format_score,
    format_grade,
    format_status,
)

from config import load_settings
from database.errors import ComplianceError
from database.result_ledger import ResultLedger
from database.training_store import TrainingStore
from managers.result_import import ResultImporter
from reports.compliance_reports import ComplianceReports


# ============================================================================
# INITIALIZATION
# ============================================================================

def handle_init(store: TrainingStore, args) -> None:
    """Initialize database and load program definitions."""
    print_info("Initializing Training Compliance Toolkit...")
    store.initialize_schema()
    count = store.load_programs_from_yaml()
    print_info(f"Loaded {format_count(count, 'program definition')}")
    print_success("Initialization complete!")


def handle_load_programs(store: TrainingStore, args) -> None:
    """Load or refresh programs from YAML."""
    count = store.load_programs_from_yaml(args.load_programs or None)
    print_success(f"Loaded {format_count(count, 'program')}")


# ============================================================================
# EMPLOYEES AND PROGRAMS
# ============================================================================

def handle_add_employee(store: TrainingStore, args) -> None:
    """Add a new employee."""
    if not require_args(args, ('name', '--name')):
        sys.exit(1)

    employee = store.create_employee(
        args.add_employee,
        args.name,
        department=args.department or '',
        position=args.position or '',
        building=args.building or '',
        line=args.line or '',
        hire_date=args.hire_date,
    )
    print_success(f"Added employee {employee.employee_id}: {employee.employee_name}")


def handle_list_employees(store: TrainingStore, args) -> None:
    """List employees matching the filters."""
    employees = store.list_employees(
        building=args.building,
        department=args.department,
        position=args.position,
        line=args.line,
        status=None if args.all else 'ACTIVE',
        search=args.search,
    )

    print_header(f"Employees ({len(employees)})")
    if not employees:
        print_info("No employees found")
        return

    for employee in employees:
        marker = "" if employee.is_active else " [INACTIVE]"
        print(f"  {employee.employee_id:<12} {employee.employee_name:<28} "
              f"{employee.department:<10} {employee.position:<18} {employee.building}{marker}")


def handle_deactivate_employee(store: TrainingStore, args) -> None:
    """Move an employee to INACTIVE."""
    employee = store.deactivate_employee(args.deactivate_employee)
    print_success(f"Deactivated {employee.employee_id} ({employee.employee_name})")


def handle_add_program(store: TrainingStore, args) -> None:
    """Add a new training program."""
    if not require_args(args, ('program_name', '--program-name')):
        sys.exit(1)

    if args.evaluation_type == 'PASS_FAIL':
        passing_score = args.passing_score or 0
        grades = args.grades or [0, 0, 0]
    else:
        if not require_args(args, ('passing_score', '--passing-score'), ('grades', '--grades')):
            sys.exit(1)
        passing_score = args.passing_score
        grades = args.grades

    targets = [t.strip() for t in args.targets.split(',')] if args.targets else []

    program = store.create_program(
        args.add_program,
        args.program_name,
        passing_score=passing_score,
        grade_aa=grades[0],
        grade_a=grades[1],
        grade_b=grades[2],
        validity_period_days=args.validity_days,
        category=args.category or 'QIP',
        evaluation_type=args.evaluation_type,
        target_positions=targets,
        changed_by=args.by or 'cli',
    )
    print_success(f"Added program {program.program_code}: {program.program_name}")


def handle_list_programs(store: TrainingStore, args) -> None:
    """List training programs."""
    programs = store.list_programs(category=args.category, show_inactive=args.all,
                                   search=args.search)

    print_header(f"Training Programs ({len(programs)})")
    if not programs:
        print_info("No programs found")
        return

    for program in programs:
        validity = (f"{program.validity_period_days}d"
                    if program.validity_period_days is not None else "no expiry")
        marker = "" if program.is_active else " [INACTIVE]"
        print(f"\n  {program.program_code}: {program.program_name}{marker}")
        print_table_row("Category", program.category, indent=2)
        if program.evaluation_type.value == 'PASS_FAIL':
            print_table_row("Evaluation", "PASS/FAIL", indent=2)
        else:
            print_table_row("Passing", program.passing_score, indent=2)
            print_table_row("Grades", f"AA>={program.grade_aa} A>={program.grade_a} "
                                      f"B>={program.grade_b}", indent=2)
        print_table_row("Validity", validity, indent=2)
        print_table_row("Targets", ", ".join(program.target_positions) or "all positions",
                        indent=2)


# ============================================================================
# RESULT LEDGER
# ============================================================================

def handle_record(ledger: ResultLedger, args) -> None:
    """Record a session's results from an Excel sheet."""
    if not require_args(args, ('by', '--by')):
        sys.exit(1)

    importer = ResultImporter(ledger)
    summary = importer.import_session(args.record, evaluated_by=args.by,
                                      session_id=args.session, sheet_name=args.sheet,
                                      dry_run=args.dry_run)

    print_header("Session Import" + (" (dry run)" if args.dry_run else ""))
    print_table_row("File", summary['file'])
    print_table_row("Session", summary['session_id'] or "-")

    if summary['errors']:
        print_subheader(f"Errors ({len(summary['errors'])}) - nothing was recorded")
        for error in summary['errors']:
            print_list_item(error)
        sys.exit(1)

    print_table_row("Validated", summary['validated'])
    print_table_row("Blank rows skipped", summary['skipped'])
    if args.dry_run:
        print_success("Sheet is valid; run without --dry-run to record it")
    else:
        print_success(f"Recorded {format_count(summary['imported'], 'result')}")


def handle_results(ledger: ResultLedger, args) -> None:
    """List ledger results in ledger order."""
    results = ledger.list_results(employee_id=args.employee, program_code=args.program)

    print_header(f"Training Results ({len(results)})")
    for record in results:
        print(f"  {record.result_id}  {format_date(record.training_date)}  "
              f"{record.employee_id:<12} {record.program_code:<10} "
              f"{format_score(record.score):>5}  {record.result.value:<6} "
              f"{format_grade(record.grade):<2}  v{record.version}")


def handle_amend(ledger: ResultLedger, args) -> None:
    """Amend a result."""
    if not require_args(args, ('reason', '--reason')):
        sys.exit(1)

    patch = {}
    if args.score is not None:
        patch['score'] = args.score
    if args.result is not None:
        patch['result'] = args.result
    if args.remarks is not None:
        patch['remarks'] = args.remarks

    if not patch:
        print_error("Nothing to amend: give --score, --result and/or --remarks")
        sys.exit(1)

    record = ledger.amend_result(args.amend, patch, args.reason,
                                 edited_by=args.by or 'cli',
                                 expected_version=args.expected_version)

    print_success(f"Amended {record.result_id} (now version {record.version})")
    print_table_row("Score", format_score(record.score), indent=1)
    print_table_row("Result", record.result.value, indent=1)
    print_table_row("Grade", format_grade(record.grade), indent=1)


def handle_edit_log(ledger: ResultLedger, args) -> None:
    """Show edit log entries."""
    entries = ledger.get_edit_log(args.edit_log or None)

    title = f"Edit Log: {args.edit_log}" if args.edit_log else "Edit Log"
    print_header(title)
    if not entries:
        print_info("No amendments recorded")
        return

    for entry in entries:
        print(f"\n  [{entry.edited_at}] {entry.result_id} by {entry.edited_by}")
        print_table_row("Reason", entry.edit_reason, indent=2)
        for key in ('score', 'result', 'grade', 'remarks'):
            before = entry.before.get(key)
            after = entry.after.get(key)
            if before != after:
                print_table_row(key.capitalize(), f"{before} -> {after}", indent=2)


# ============================================================================
# REPORTS
# ============================================================================

def _report_filters(args) -> dict:
    return {
        'building': args.building,
        'department': args.department,
        'position': args.position,
        'line': args.line,
        'category': args.category,
        'as_of': args.as_of,
    }


def handle_matrix(reports: ComplianceReports, args) -> None:
    """Show the progress matrix."""
    report = reports.progress_matrix_report(**_report_filters(args))

    print_header(f"Progress Matrix as of {report['as_of']}", width=80)
    codes = report['programs']
    if not report['rows'] or not codes:
        print_info("Nothing to show for these filters")
        return

    print(f"  {'EMPLOYEE':<28}" + "".join(f"{code:<11}" for code in codes))
    for row in report['rows']:
        label = f"{row['employee_id']} {row['employee_name']}"[:27]
        cells = "".join(f"{format_status(row['statuses'][c]):<11}" for c in codes)
        print(f"  {label:<28}{cells}")

    print_subheader("Summary")
    for status, count in report['summary']['by_status'].items():
        print_table_row(status, count, indent=1)
    print_table_row("Passing", format_percent(report['summary']['pass_percentage']), indent=1)


def handle_retraining(reports: ComplianceReports, args) -> None:
    """Show the retraining worklist."""
    report = reports.retraining_report(**_report_filters(args))

    print_header(f"Retraining Required ({report['summary']['total']})")
    if not report['entries']:
        print_success("No one needs retraining")
        return

    for entry in report['entries']:
        print(f"\n  {entry['employee_id']} {entry['employee_name']} - {entry['program_code']}")
        print_table_row("Failed on", entry['training_date'], indent=2)
        print_table_row("Score", f"{format_score(entry['score'])} "
                                 f"(pass: {entry['passing_score']})", indent=2)
        if entry['recommended_programs']:
            print_table_row("Recommended", ", ".join(entry['recommended_programs']), indent=2)


def handle_expiring(reports: ComplianceReports, args) -> None:
    """Show the expiring-training worklist."""
    horizon = None if args.expiring == USE_CONFIGURED_HORIZON else args.expiring
    report = reports.expiring_report(horizon_days=horizon,
                                     include_expired=args.include_expired,
                                     **_report_filters(args))

    summary = report['summary']
    print_header(f"Expiring within {report['filters']['horizon_days']} days "
                 f"({summary['total']})")
    if not report['entries']:
        print_success("No trainings expiring in this window")
        return

    for entry in report['entries']:
        days = entry['days_until_expiry']
        when = f"EXPIRED {-days}d ago" if entry['is_expired'] else f"{days}d left"
        print(f"  {entry['employee_id']:<12} {entry['employee_name']:<28} "
              f"{entry['program_code']:<10} expires {entry['expiration_date']} ({when})")

    if summary['expired']:
        print_warning(f"{format_count(summary['expired'], 'training')} already expired")


def handle_kpi(reports: ComplianceReports, args) -> None:
    """Show the KPI summary."""
    report = reports.kpi_summary(as_of=args.as_of)
    kpi = report['summary']

    print_header(f"Training KPIs as of {report['as_of']}")
    print_table_row("Active employees", kpi['total_employees'])
    print_table_row("Completions this month", kpi['monthly_completions'])
    print_table_row("Completion rate", f"{format_percent(kpi['completion_rate'])} "
                                       f"({kpi['completed_trainings']}/{kpi['required_trainings']})")
    print_table_row("Needing retraining", kpi['retraining_count'])
    print_table_row("Pass rate", format_percent(kpi['pass_rate']))
    print_table_row("First-time pass rate", format_percent(kpi['first_time_pass_rate']))
    print_table_row("Average score", kpi['average_score'])
    print_table_row("Expiring soon", kpi['expiring_count'])
    print_table_row("Expired", kpi['expired_count'])

    print_subheader("Grade distribution")
    for grade, count in kpi['grade_distribution'].items():
        print_table_row(grade, count, indent=1)


def handle_employee_status(reports: ComplianceReports, args) -> None:
    """Show completion status for one employee."""
    report = reports.employee_completion_status(args.employee_status, as_of=args.as_of)
    employee = report['employee']
    summary = report['summary']

    print_header(f"{employee['employee_id']} {employee['employee_name']}")
    print_table_row("Position", employee['position'] or "-")
    print_table_row("Completion", f"{format_percent(summary['completion_rate'])} "
                                  f"({summary['completed_programs']}/{summary['required_programs']})")

    print_subheader("Required programs")
    for program in report['programs']:
        expiry = f", expires {program['expiration_date']}" if program['expiration_date'] else ""
        print_list_item(f"{program['program_code']}: {program['status']}"
                        f" (last {format_date(program['last_training_date'])}{expiry})")


def handle_program_status(reports: ComplianceReports, args) -> None:
    """Show completion status for one program."""
    report = reports.program_completion_status(args.program_status, as_of=args.as_of)
    program = report['program']
    summary = report['summary']

    print_header(f"{program['program_code']} {program['program_name']}")
    print_table_row("Target employees", summary['target_employees'])
    print_table_row("Completed", summary['completed'])
    print_table_row("Completion rate", format_percent(summary['completion_rate']))
    print_table_row("Pass rate", format_percent(summary['pass_rate']))
    print_table_row("Average score", summary['average_score'])


# ============================================================================
# MAIN
# ============================================================================

def main(argv=None):
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print_error(str(e))
        sys.exit(1)

    store = TrainingStore(args.db or settings['database_path'])
    ledger = ResultLedger(store)
    reports = ComplianceReports(store, ledger, settings)

    try:
        # ====================================================================
        # Setup and roster
        # ====================================================================

        if args.init:
            handle_init(store, args)

        elif args.load_programs is not None:
            handle_load_programs(store, args)

        elif args.add_employee:
            handle_add_employee(store, args)

        elif args.list_employees:
            handle_list_employees(store, args)

        elif args.deactivate_employee:
            handle_deactivate_employee(store, args)

        elif args.add_program:
            handle_add_program(store, args)

        elif args.list_programs:
            handle_list_programs(store, args)

        # ====================================================================
        # Result Ledger
        # ====================================================================

        elif args.record:
            handle_record(ledger, args)

        elif args.results:
            handle_results(ledger, args)

        elif args.amend:
            handle_amend(ledger, args)

        elif args.edit_log is not None:
            handle_edit_log(ledger, args)

        # ====================================================================
        # Reports
        # ====================================================================

        elif args.matrix:
            handle_matrix(reports, args)

        elif args.retraining:
            handle_retraining(reports, args)

        elif args.expiring is not None:
            handle_expiring(reports, args)

        elif args.kpi:
            handle_kpi(reports, args)

        elif args.employee_status:
            handle_employee_status(reports, args)

        elif args.program_status:
            handle_program_status(reports, args)

        else:
            parser.print_help()

    except (ComplianceError, ValueError, FileNotFoundError) as e:
        print_error(str(e))
        sys.exit(1)

    except sqlite3.Error as e:
        print_error(f"Database error: {e} (run with --init to create the schema)")
        sys.exit(1)

    finally:
        store.close()


if __name__ == "__main__":
    main()
