"""
CLI Package for Training Compliance Toolkit
===========================================

Structure:
    cli/
    ├── __init__.py     - Package exports (this file)
    ├── parser.py       - argparse flag definitions
    └── utils.py        - Output helpers and display formats

Command handlers live in run.py:
    python3 run.py --help
"""

from .parser import create_parser, USE_CONFIGURED_HORIZON
from .utils import (
    STATUS_LABELS,
    print_header,
    print_subheader,
    print_success,
    print_error,
    print_warning,
    print_info,
    print_table_row,
    print_list_item,
    require_arg,
    require_args,
    format_date,
    format_score,
    format_grade,
    format_status,
    format_percent,
    format_count,
)

__all__ = [
    'create_parser',
    'USE_CONFIGURED_HORIZON',
    'STATUS_LABELS',
    'print_header',
    'print_subheader',
    'print_success',
    'print_error',
    'print_warning',
    'print_info',
    'print_table_row',
    'print_list_item',
    'require_arg',
    'require_args',
    'format_date',
    'format_score',
    'format_grade',
    'format_status',
    'format_percent',
    'format_count',
]
