"""
CLI Utility Functions
=====================

Output helpers shared by the command handlers in run.py: headers,
status lines, label/value rows, and the display formats for scores,
grades, dates, and compliance statuses.

WHY SEPARATE FILE: Every report prints through these helpers, so the
matrix, the worklists, and the KPI summary all look the same.
"""

import sys
from datetime import date
from typing import Any, Optional, Union

from database.models import CellStatus, Grade

# Short labels so a matrix row fits in a terminal
STATUS_LABELS = {
    CellStatus.PASS: 'PASS',
    CellStatus.FAIL: 'FAIL',
    CellStatus.ABSENT: 'ABSENT',
    CellStatus.EXPIRING: 'EXPIRING',
    CellStatus.EXPIRED: 'EXPIRED',
    CellStatus.NOT_TAKEN: '-',
}


# =============================================================================
# OUTPUT
# =============================================================================

def print_header(title: str, width: int = 60) -> None:
    """
    Print a report title between two rules.

    EXAMPLE:
        print_header("Retraining Required (3)")
        # ============================================================
        # RETRAINING REQUIRED (3)
        # ============================================================
    """
    rule = "=" * width
    print(f"\n{rule}\n{title.upper()}\n{rule}")


def print_subheader(title: str, width: int = 40) -> None:
    print(f"\n{title}\n{'-' * width}")


def print_success(message: str) -> None:
    print(f"✓ {message}")


def print_error(message: str) -> None:
    """Errors go to stderr so report output can still be piped."""
    print(f"Error: {message}", file=sys.stderr)


def print_warning(message: str) -> None:
    print(f"Warning: {message}")


def print_info(message: str) -> None:
    print(message)


def print_table_row(label: str, value: Any, indent: int = 0) -> None:
    """
    Print one "label: value" line of a summary block.

    EXAMPLE:
        print_table_row("Pass rate", format_percent(87.5))
        print_table_row("Score", format_score(94), indent=2)
    """
    print(f"{'  ' * indent}{label}: {value}")


def print_list_item(item: str, indent: int = 0, bullet: str = "•") -> None:
    print(f"{'  ' * indent}{bullet} {item}")


# =============================================================================
# ARGUMENT CHECKS
# =============================================================================

def require_arg(args, arg_name: str, friendly_name: str = None) -> bool:
    """
    Report a missing flag that the chosen command needs.

    Zero is a legitimate value for scores and day counts, so only None,
    an empty string, or an empty list count as missing.

    RETURNS:
        True when present; False after printing an error

    EXAMPLE:
        if not require_arg(args, 'reason', '--reason'):
            sys.exit(1)
    """
    value = getattr(args, arg_name, None)
    if value is None or value == '' or value == []:
        print_error(f"{friendly_name or '--' + arg_name.replace('_', '-')} required")
        return False
    return True


def require_args(args, *arg_specs) -> bool:
    """
    require_arg for several flags; stops at the first one missing.

    Each spec is an attribute name or an (attribute, flag) pair.
    """
    for arg_spec in arg_specs:
        arg_name, friendly_name = arg_spec if isinstance(arg_spec, tuple) else (arg_spec, None)
        if not require_arg(args, arg_name, friendly_name):
            return False
    return True


# =============================================================================
# DISPLAY FORMATS
# =============================================================================

def format_date(value: Union[date, str, None]) -> str:
    """ISO date for a date or date string; "-" when there is none."""
    if value is None:
        return "-"
    return value.isoformat() if isinstance(value, date) else value


def format_score(score: Optional[int]) -> str:
    """Absences have no score."""
    return "-" if score is None else str(score)


def format_grade(grade: Optional[Grade]) -> str:
    return grade.value if grade else "-"


def format_status(status: Union[CellStatus, str]) -> str:
    """Matrix cell label; NOT_TAKEN prints as "-"."""
    return STATUS_LABELS[CellStatus(status)]


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def format_count(count: int, singular: str, plural: str = None) -> str:
    """
    Pluralize a count.

    EXAMPLE:
        format_count(1, "result")  # "1 result"
        format_count(5, "result")  # "5 results"
    """
    return f"{count} {singular if count == 1 else (plural or singular + 's')}"
