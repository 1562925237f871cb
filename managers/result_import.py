"""
RESULT IMPORT MODULE
====================
Record a training session's results from an Excel sheet.

This module is useful when:
- A trainer keeps the attendance/score sheet in Excel during the session
- Historical sessions are migrated from spreadsheets

Aviation Analogy:
    Like transcribing the checkride sheets from a sim session into the
    crew records system. The whole sheet goes in at once; if one line is
    illegible, nothing is entered until the sheet is fixed.

Column Matching:
    Columns are found by any of several header names, so "Employee ID",
    "Emp ID", and "Employee Code" all map to the employee field. Header
    matching is case-insensitive.

Atomicity:
    Rows are collected into one batch and handed to
    ResultLedger.record_results(), which writes all of them or none.
"""

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from openpyxl import load_workbook

from database.errors import ComplianceError

if TYPE_CHECKING:
    from database.result_ledger import ResultLedger

logger = logging.getLogger(__name__)


class ResultImporter:
    """
    PURPOSE: Turn a session sheet into one Result Ledger batch

    ATTRIBUTES:
        ledger: ResultLedger the batch is written to

    EXAMPLE:
        importer = ResultImporter(ledger)
        summary = importer.import_session("QIP_Session_0110.xlsx",
                                          evaluated_by="Trainer Kim",
                                          session_id="SES-2024-001")
        print(f"Imported {summary['imported']} results")
    """

    SESSION_COLUMNS = {
        'employee_id': ['Employee ID', 'Emp ID', 'Employee Code', 'Employee'],
        'program_code': ['Program Code', 'Program', 'Training Code', 'Course Code'],
        'training_date': ['Training Date', 'Date', 'Session Date'],
        'score': ['Score', 'Test Score', 'Points'],
        'result': ['Result', 'Outcome', 'Pass/Fail'],
        'remarks': ['Remarks', 'Notes', 'Comments'],
    }

    REQUIRED_COLUMNS = ['employee_id', 'program_code', 'training_date']

    DATE_FORMATS = [
        '%Y-%m-%d',      # 2024-01-10
        '%Y/%m/%d',      # 2024/01/10
        '%m/%d/%Y',      # 01/10/2024
        '%d.%m.%Y',      # 10.01.2024
    ]

    def __init__(self, ledger: 'ResultLedger'):
        self.ledger = ledger

    def import_session(self, excel_path: str, evaluated_by: str,
                       session_id: str = None, sheet_name: str = None,
                       dry_run: bool = False) -> Dict[str, Any]:
        """
        Import one session sheet.

        PARAMETERS:
            excel_path: Path to the .xlsx file
            evaluated_by: Evaluator recorded on every result
            session_id: Optional session the batch belongs to
            sheet_name: Sheet to read (defaults to the active sheet)
            dry_run: Validate the whole batch against the ledger but write nothing

        RETURNS:
            Dict with:
            - imported: Results written (0 on dry run or failure)
            - validated: Rows that passed validation
            - skipped: Blank rows
            - errors: Messages prefixed with the sheet row number
            - result_ids: Ids of the written results

        WHY THIS APPROACH:
            Sheet problems (missing columns, unreadable dates or scores) are
            collected for every row so the trainer can fix them in one go.
            Ledger problems stop at the first bad entry, which is reported
            against its sheet row rather than its batch index.
        """
        summary = {
            'file': str(excel_path),
            'session_id': session_id,
            'dry_run': dry_run,
            'imported': 0,
            'validated': 0,
            'skipped': 0,
            'errors': [],
            'result_ids': [],
        }

        wb = load_workbook(excel_path, data_only=True)
        ws = wb[sheet_name] if sheet_name else wb.active

        column_map = self._find_columns(ws, self.SESSION_COLUMNS)
        missing = [name for name in self.REQUIRED_COLUMNS if name not in column_map]
        if missing:
            summary['errors'].append(f"Missing required columns: {', '.join(missing)}")
            return summary

        entries: List[Dict[str, Any]] = []
        row_numbers: List[int] = []

        for row_num in range(2, ws.max_row + 1):
            employee_id = self._get_cell_value(ws, row_num, column_map.get('employee_id'))
            program_code = self._get_cell_value(ws, row_num, column_map.get('program_code'))
            raw_date = self._get_raw_value(ws, row_num, column_map.get('training_date'))

            if not employee_id and not program_code and raw_date is None:
                summary['skipped'] += 1
                continue

            training_date = self._parse_date(raw_date)
            if raw_date is not None and training_date is None:
                summary['errors'].append(f"Row {row_num}: Invalid date format: {raw_date}")
                continue

            try:
                score = self._parse_score(self._get_raw_value(ws, row_num, column_map.get('score')))
            except ValueError as e:
                summary['errors'].append(f"Row {row_num}: {e}")
                continue

            entry = {
                'employee_id': employee_id,
                'program_code': program_code,
                'training_date': training_date,
                'score': score,
                'remarks': self._get_cell_value(ws, row_num, column_map.get('remarks')) or '',
            }
            result = self._get_cell_value(ws, row_num, column_map.get('result'))
            if result:
                entry['result'] = result.upper()

            entries.append(entry)
            row_numbers.append(row_num)

        if summary['errors']:
            return summary
        if not entries:
            summary['errors'].append("No result rows found")
            return summary

        try:
            if dry_run:
                self.ledger.validate_results(entries)
            else:
                results = self.ledger.record_results(entries, evaluated_by, session_id)
                summary['imported'] = len(results)
                summary['result_ids'] = [r.result_id for r in results]
        except ComplianceError as e:
            if e.record_index is not None:
                summary['errors'].append(f"Row {row_numbers[e.record_index]}: {e.message}")
            else:
                summary['errors'].append(e.message)
            return summary

        summary['validated'] = len(entries)
        logger.info("Session import from %s: %d validated, %d imported",
                    excel_path, summary['validated'], summary['imported'])
        return summary

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _find_columns(self, ws, column_mappings: Dict[str, List[str]]) -> Dict[str, int]:
        """
        Map field names to 1-based column indices using the header row.

        Earlier aliases win over later ones when a sheet has several.
        """
        headers = {}
        for col in range(1, ws.max_column + 1):
            value = ws.cell(row=1, column=col).value
            if value:
                headers[str(value).strip().lower()] = col

        found = {}
        for field_name, aliases in column_mappings.items():
            for alias in aliases:
                if alias.lower() in headers:
                    found[field_name] = headers[alias.lower()]
                    break
        return found

    def _get_raw_value(self, ws, row: int, col: Optional[int]) -> Any:
        if col is None:
            return None
        value = ws.cell(row=row, column=col).value
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def _get_cell_value(self, ws, row: int, col: Optional[int]) -> Optional[str]:
        """Cell value as a stripped string, or None when blank."""
        value = self._get_raw_value(ws, row, col)
        if value is None:
            return None
        if isinstance(value, (datetime, date)):
            return value.strftime('%Y-%m-%d')
        return str(value).strip()

    def _parse_date(self, value: Any) -> Optional[str]:
        """ISO date string from a cell, or None when unreadable."""
        if value is None:
            return None
        if isinstance(value, (datetime, date)):
            return value.strftime('%Y-%m-%d')

        text = str(value).strip()
        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).strftime('%Y-%m-%d')
            except ValueError:
                continue
        return None

    def _parse_score(self, value: Any) -> Optional[float]:
        """
        Numeric score from a cell. Blank means absent.

        Range and whole-number checks are left to the ledger.
        """
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValueError(f"Invalid score: {value}")
        if isinstance(value, (int, float)):
            return value
        try:
            return float(str(value).strip())
        except ValueError:
            raise ValueError(f"Invalid score: {value}") from None
