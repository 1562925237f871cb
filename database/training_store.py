"""
Training Store - Employees and training programs in SQLite

PURPOSE: Data-access layer for the roster (employees) and the course
         catalogue (training programs) that the compliance engine reads

R EQUIVALENT: Like a set of DBI helper functions that wrap the roster and
catalogue tables, returning tibbles filtered by building or department

AVIATION ANALOGY: Like the crew roster and the approved training syllabus
kept by the training department - people come and go (but their files
are never shredded), and syllabus revisions are logged

AUTHOR: Glen Lewis
DATE: 2025
"""

import json
import logging
import os
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from database.errors import NotFoundError, ValidationError
from database.models import (
    Employee,
    EmployeeStatus,
    EvaluationType,
    TrainingProgram,
    parse_date,
)

logger = logging.getLogger(__name__)


# ============================================================================
# DATABASE PATH CONFIGURATION
# ============================================================================

DEFAULT_DB_PATH = "~/projects/data/training_compliance.db"

# Fields that may be changed after creation
EMPLOYEE_UPDATABLE_FIELDS = {
    'employee_name', 'department', 'position', 'building', 'line', 'hire_date', 'status'
}
PROGRAM_UPDATABLE_FIELDS = {
    'program_name', 'program_name_vn', 'program_name_kr', 'category',
    'evaluation_type', 'passing_score', 'grade_aa', 'grade_a', 'grade_b',
    'validity_period_days', 'target_positions', 'tags', 'duration_hours', 'is_active'
}


def _now() -> str:
    return datetime.now().isoformat(timespec='seconds')


class TrainingStore:
    """
    PURPOSE: Manage employees and training programs

    Handles:
    - Employee create/update and soft deactivation (no deletes)
    - Program create/update and soft deactivation with a change log
    - Filtered listing for the compliance matrix axes
    - Loading program definitions from YAML

    PARAMETERS:
        db_path: Path to SQLite database file
                 Default: ~/projects/data/training_compliance.db

    EXAMPLE:
        store = TrainingStore()
        store.initialize_schema()
        store.load_programs_from_yaml()
        store.create_employee("EMP-001", "Nguyen Van A", department="QIP",
                              position="TQC", building="BUILDING_A_F1")
        employees = store.list_employees(building="BUILDING_A_F1")
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """
        Initialize the TrainingStore with a database connection.

        WHY THIS APPROACH: The Result Ledger shares this connection so that
        a batch of results and the foreign keys it references are checked
        inside one database.
        """
        # Expand user path (handles ~/...)
        self.db_path = os.path.expanduser(db_path)

        # Ensure the data directory exists
        if self.db_path != ':memory:':
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # check_same_thread=False lets the snapshot loader read from worker threads
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        # Enable foreign key constraints (off by default in SQLite)
        self.conn.execute("PRAGMA foreign_keys = ON")

        # Serializes access to the shared connection across threads
        self.lock = threading.RLock()

    # ========================================================================
    # SCHEMA INITIALIZATION
    # ========================================================================

    def initialize_schema(self) -> None:
        """
        Run training_schema.sql to create all tables and triggers.

        WHY THIS APPROACH: We keep schema in SQL file for version control
        and audit review, but execute it programmatically for convenience.

        RAISES:
            FileNotFoundError: If training_schema.sql is missing
        """
        schema_path = Path(__file__).parent / "training_schema.sql"

        if not schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        with open(schema_path, 'r') as f:
            schema_sql = f.read()

        # CREATE IF NOT EXISTS makes this idempotent
        with self.lock:
            self.conn.executescript(schema_sql)
            self.conn.commit()

        logger.info("Training schema initialized at %s", self.db_path)

    def load_programs_from_yaml(self, yaml_path: str = None, changed_by: str = 'system') -> int:
        """
        Load program definitions from YAML.

        PURPOSE: Seed or refresh the training catalogue from programs.yaml

        PARAMETERS:
            yaml_path: Path to YAML file. If None, uses config/programs.yaml
            changed_by: Recorded in the program change log

        RETURNS:
            int: Number of programs created or updated

        WHY THIS APPROACH: Existing programs are updated rather than
        replaced. REPLACE would delete the row, which the no-delete trigger
        forbids and which would orphan historical results.
        """
        if yaml_path is None:
            yaml_path = Path(__file__).parent.parent / "config" / "programs.yaml"

        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        count = 0
        for defn in data.get('programs', []):
            defn = dict(defn)
            code = defn.pop('program_code')
            if self.get_program(code):
                self.update_program(code, changed_by=changed_by, **defn)
            else:
                self.create_program(code, changed_by=changed_by, **defn)
            count += 1

        logger.info("Loaded %d program definitions from %s", count, yaml_path)
        return count

    # ========================================================================
    # EMPLOYEE OPERATIONS
    # ========================================================================

    def create_employee(self, employee_id: str, employee_name: str,
                        department: str = '', position: str = '',
                        building: str = '', line: str = '',
                        hire_date: str = None, status: str = 'ACTIVE') -> Employee:
        """
        Add an employee to the roster.

        RAISES:
            ValidationError: If the id is blank, already used, or a field is malformed
        """
        if not employee_id or not str(employee_id).strip():
            raise ValidationError("employee_id is required")
        if not employee_name or not str(employee_name).strip():
            raise ValidationError("employee_name is required")
        if self.get_employee(employee_id):
            raise ValidationError(f"Employee '{employee_id}' already exists")

        status = self._validate_employee_status(status)
        hire_date = self._validate_date(hire_date, 'hire_date')
        now = _now()

        with self.lock:
            self.conn.execute("""
                INSERT INTO employees
                (employee_id, employee_name, department, position, building,
                 line, hire_date, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (employee_id, employee_name, department, position, building,
                  line, hire_date, status, now, now))
            self.conn.commit()

        logger.info("Created employee %s", employee_id)
        return self.get_employee(employee_id)

    def update_employee(self, employee_id: str, **updates) -> Employee:
        """
        Update roster attributes of an employee.

        PARAMETERS:
            employee_id: Employee to update
            **updates: Any of EMPLOYEE_UPDATABLE_FIELDS

        RAISES:
            NotFoundError: Unknown employee
            ValidationError: Unknown field or bad value
        """
        if not self.get_employee(employee_id):
            raise NotFoundError(f"Employee '{employee_id}' not found")

        invalid_fields = set(updates) - EMPLOYEE_UPDATABLE_FIELDS
        if invalid_fields:
            raise ValidationError(
                f"Invalid fields: {sorted(invalid_fields)}. "
                f"Valid: {sorted(EMPLOYEE_UPDATABLE_FIELDS)}"
            )
        if not updates:
            return self.get_employee(employee_id)

        if 'status' in updates:
            updates['status'] = self._validate_employee_status(updates['status'])
        if 'hire_date' in updates:
            updates['hire_date'] = self._validate_date(updates['hire_date'], 'hire_date')

        assignments = ", ".join(f"{name} = ?" for name in updates)
        params = list(updates.values()) + [_now(), employee_id]

        with self.lock:
            self.conn.execute(
                f"UPDATE employees SET {assignments}, updated_at = ? WHERE employee_id = ?",
                params
            )
            self.conn.commit()

        return self.get_employee(employee_id)

    def deactivate_employee(self, employee_id: str) -> Employee:
        """Move an employee to INACTIVE. Their training history stays in the ledger."""
        return self.update_employee(employee_id, status=EmployeeStatus.INACTIVE.value)

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        rows = self._query("SELECT * FROM employees WHERE employee_id = ?", (employee_id,))
        return Employee.from_row(rows[0]) if rows else None

    def list_employees(self, building: str = None, department: str = None,
                       position: str = None, line: str = None,
                       status: Optional[str] = 'ACTIVE',
                       search: str = None) -> List[Employee]:
        """
        List employees matching the filters.

        PARAMETERS:
            building, department, position, line: Exact-match filters
            status: 'ACTIVE' (default), 'INACTIVE', or None for everyone
            search: Case-insensitive match on id or name

        RETURNS:
            List of Employee ordered by employee_id
        """
        query = "SELECT * FROM employees WHERE 1=1"
        params: List[Any] = []

        for column, value in (('building', building), ('department', department),
                              ('position', position), ('line', line),
                              ('status', status)):
            if value is not None:
                query += f" AND {column} = ?"
                params.append(value)

        if search:
            query += " AND (LOWER(employee_id) LIKE ? OR LOWER(employee_name) LIKE ?)"
            pattern = f"%{search.lower()}%"
            params.extend([pattern, pattern])

        query += " ORDER BY employee_id"
        return [Employee.from_row(row) for row in self._query(query, params)]

    # ========================================================================
    # PROGRAM OPERATIONS
    # ========================================================================

    def create_program(self, program_code: str, program_name: str,
                       passing_score: int, grade_aa: int, grade_a: int, grade_b: int,
                       validity_period_days: Optional[int] = None,
                       category: str = 'QIP',
                       program_name_vn: str = '', program_name_kr: str = '',
                       evaluation_type: str = 'SCORE',
                       target_positions: List[str] = None, tags: List[str] = None,
                       duration_hours: float = 0, is_active: bool = True,
                       changed_by: str = 'system') -> TrainingProgram:
        """
        Add a training program to the catalogue.

        PARAMETERS:
            program_code: Unique code (e.g., "QIP-001")
            passing_score: Minimum score for PASS
            grade_aa, grade_a, grade_b: Grade thresholds (aa >= a >= b >= 0)
            validity_period_days: Days a PASS stays valid, None = never expires
            changed_by: Recorded in the program change log

        RAISES:
            ValidationError: Duplicate code or invalid thresholds
        """
        if not program_code or not str(program_code).strip():
            raise ValidationError("program_code is required")
        if self.get_program(program_code):
            raise ValidationError(f"Program '{program_code}' already exists")

        fields = {
            'program_name': program_name,
            'program_name_vn': program_name_vn or '',
            'program_name_kr': program_name_kr or '',
            'category': category,
            'evaluation_type': evaluation_type,
            'passing_score': passing_score,
            'grade_aa': grade_aa,
            'grade_a': grade_a,
            'grade_b': grade_b,
            'validity_period_days': validity_period_days,
            'target_positions': list(target_positions or []),
            'tags': list(tags or []),
            'duration_hours': duration_hours or 0,
            'is_active': bool(is_active),
        }
        self._validate_program(fields)
        now = _now()

        with self.lock:
            self.conn.execute("""
                INSERT INTO training_programs
                (program_code, program_name, program_name_vn, program_name_kr,
                 category, evaluation_type, passing_score, grade_aa, grade_a, grade_b,
                 validity_period_days, target_positions, tags, duration_hours,
                 is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (program_code, fields['program_name'], fields['program_name_vn'],
                  fields['program_name_kr'], fields['category'], fields['evaluation_type'],
                  fields['passing_score'], fields['grade_aa'], fields['grade_a'],
                  fields['grade_b'], fields['validity_period_days'],
                  json.dumps(fields['target_positions']), json.dumps(fields['tags']),
                  fields['duration_hours'], fields['is_active'], now, now))

            self._log_program_change(program_code, 'CREATE', changed_by,
                                     before=None, after=fields)
            self.conn.commit()

        logger.info("Created program %s", program_code)
        return self.get_program(program_code)

    def update_program(self, program_code: str, changed_by: str = 'system',
                       **updates) -> TrainingProgram:
        """
        Update a program's attributes.

        Historical results keep the grade they were given; new thresholds
        only apply to results recorded or amended from now on.

        RAISES:
            NotFoundError: Unknown program
            ValidationError: Unknown field or thresholds out of order
        """
        program = self.get_program(program_code)
        if not program:
            raise NotFoundError(f"Program '{program_code}' not found")

        invalid_fields = set(updates) - PROGRAM_UPDATABLE_FIELDS
        if invalid_fields:
            raise ValidationError(
                f"Invalid fields: {sorted(invalid_fields)}. "
                f"Valid: {sorted(PROGRAM_UPDATABLE_FIELDS)}"
            )

        before = program.to_dict()
        before.pop('program_code')
        after = dict(before)
        after.update(updates)
        after['target_positions'] = list(after.get('target_positions') or [])
        after['tags'] = list(after.get('tags') or [])
        after['is_active'] = bool(after['is_active'])
        self._validate_program(after)

        if after == before:
            return program

        with self.lock:
            self.conn.execute("""
                UPDATE training_programs
                SET program_name = ?, program_name_vn = ?, program_name_kr = ?,
                    category = ?, evaluation_type = ?, passing_score = ?,
                    grade_aa = ?, grade_a = ?, grade_b = ?, validity_period_days = ?,
                    target_positions = ?, tags = ?, duration_hours = ?, is_active = ?,
                    updated_at = ?
                WHERE program_code = ?
            """, (after['program_name'], after['program_name_vn'], after['program_name_kr'],
                  after['category'], after['evaluation_type'], after['passing_score'],
                  after['grade_aa'], after['grade_a'], after['grade_b'],
                  after['validity_period_days'], json.dumps(after['target_positions']),
                  json.dumps(after['tags']), after['duration_hours'], after['is_active'],
                  _now(), program_code))

            action = 'DEACTIVATE' if before['is_active'] and not after['is_active'] else 'UPDATE'
            self._log_program_change(program_code, action, changed_by,
                                     before=before, after=after)
            self.conn.commit()

        return self.get_program(program_code)

    def deactivate_program(self, program_code: str, changed_by: str = 'system') -> TrainingProgram:
        """Soft delete: the program leaves the active catalogue, its results stay."""
        return self.update_program(program_code, changed_by=changed_by, is_active=False)

    def get_program(self, program_code: str) -> Optional[TrainingProgram]:
        rows = self._query("SELECT * FROM training_programs WHERE program_code = ?",
                           (program_code,))
        return TrainingProgram.from_row(rows[0]) if rows else None

    def list_programs(self, category: str = None, show_inactive: bool = False,
                      search: str = None, tag: str = None) -> List[TrainingProgram]:
        """
        List training programs.

        PARAMETERS:
            category: Exact category filter (e.g., 'QIP')
            show_inactive: Include deactivated programs
            search: Case-insensitive match on code or any localized name
            tag: Only programs carrying this tag

        RETURNS:
            List of TrainingProgram ordered by program_code
        """
        query = "SELECT * FROM training_programs WHERE 1=1"
        params: List[Any] = []

        if category:
            query += " AND category = ?"
            params.append(category)
        if not show_inactive:
            query += " AND is_active = 1"
        if search:
            query += """ AND (LOWER(program_code) LIKE ? OR LOWER(program_name) LIKE ?
                         OR LOWER(program_name_vn) LIKE ? OR LOWER(program_name_kr) LIKE ?)"""
            pattern = f"%{search.lower()}%"
            params.extend([pattern] * 4)

        query += " ORDER BY program_code"
        programs = [TrainingProgram.from_row(row) for row in self._query(query, params)]

        if tag:
            programs = [p for p in programs if tag in p.tags]
        return programs

    def get_program_change_log(self, program_code: str = None) -> List[Dict[str, Any]]:
        """Program change history, oldest first."""
        query = "SELECT * FROM program_change_log"
        params: List[Any] = []
        if program_code:
            query += " WHERE program_code = ?"
            params.append(program_code)
        query += " ORDER BY log_id"

        history = []
        for row in self._query(query, params):
            entry = dict(row)
            entry['before_data'] = json.loads(entry['before_data']) if entry['before_data'] else None
            entry['after_data'] = json.loads(entry['after_data']) if entry['after_data'] else None
            history.append(entry)
        return history

    # ========================================================================
    # INTERNAL HELPERS
    # ========================================================================

    def _query(self, query: str, params=()) -> List[sqlite3.Row]:
        with self.lock:
            cursor = self.conn.cursor()
            cursor.execute(query, tuple(params))
            return cursor.fetchall()

    def _log_program_change(self, program_code: str, action: str, changed_by: str,
                            before: Optional[Dict], after: Optional[Dict]) -> None:
        """Append to program_change_log. Caller commits."""
        self.conn.execute("""
            INSERT INTO program_change_log
            (program_code, action, changed_by, before_data, after_data, changed_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (program_code, action, changed_by,
              json.dumps(before) if before is not None else None,
              json.dumps(after) if after is not None else None,
              _now()))

    def _validate_program(self, fields: Dict[str, Any]) -> None:
        """
        Check program fields before they are written.

        RAISES:
            ValidationError: On the first problem found
        """
        if not fields.get('program_name'):
            raise ValidationError("program_name is required")
        if not fields.get('category'):
            raise ValidationError("category is required")

        try:
            evaluation_type = EvaluationType(fields['evaluation_type'])
        except ValueError:
            raise ValidationError(
                f"Invalid evaluation_type: {fields['evaluation_type']}. "
                f"Valid: {[e.value for e in EvaluationType]}"
            ) from None
        fields['evaluation_type'] = evaluation_type.value

        for name in ('passing_score', 'grade_aa', 'grade_a', 'grade_b'):
            value = fields.get(name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValidationError(f"{name} must be an integer, got: {value!r}")

        if not 0 <= fields['passing_score'] <= 100:
            raise ValidationError(f"passing_score must be 0-100, got: {fields['passing_score']}")

        if not fields['grade_aa'] >= fields['grade_a'] >= fields['grade_b'] >= 0:
            raise ValidationError(
                "Grade thresholds must satisfy grade_aa >= grade_a >= grade_b >= 0, got: "
                f"{fields['grade_aa']}/{fields['grade_a']}/{fields['grade_b']}"
            )

        validity = fields.get('validity_period_days')
        if validity is not None and (not isinstance(validity, int)
                                     or isinstance(validity, bool) or validity < 0):
            raise ValidationError(
                f"validity_period_days must be a non-negative integer or empty, got: {validity!r}"
            )

    def _validate_employee_status(self, status) -> str:
        try:
            return EmployeeStatus(status).value
        except ValueError:
            raise ValidationError(
                f"Invalid status: {status}. Valid: {[s.value for s in EmployeeStatus]}"
            ) from None

    def _validate_date(self, value, field_name: str) -> Optional[str]:
        try:
            parsed = parse_date(value)
        except ValueError:
            raise ValidationError(f"{field_name} must be YYYY-MM-DD, got: {value!r}") from None
        return parsed.isoformat() if parsed else None

    def close(self) -> None:
        """Close database connection."""
        self.conn.close()
