"""
Training Data Model - Records shared by the ledger, the engine, and reports

PURPOSE: Define employees, training programs, training results, and the
         derived compliance records as typed Python objects

R EQUIVALENT: Like defining S4 classes with validity checks, or tibble
column specs that every function agrees on

AVIATION ANALOGY: Like the standard forms in a crew training department -
the pilot record, the course syllabus, the checkride result sheet. Every
office reads the same forms, so everyone agrees on what "current" means.

AUTHOR: Glen Lewis
DATE: 2025
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================================
# ENUMS
# ============================================================================

class Grade(str, Enum):
    """Score bucket derived from a program's thresholds (C < B < A < AA)."""
    AA = 'AA'
    A = 'A'
    B = 'B'
    C = 'C'

    @property
    def rank(self) -> int:
        return _GRADE_RANK[self]


_GRADE_RANK = {Grade.C: 0, Grade.B: 1, Grade.A: 2, Grade.AA: 3}


class Outcome(str, Enum):
    """Outcome of a single training attempt."""
    PASS = 'PASS'
    FAIL = 'FAIL'
    ABSENT = 'ABSENT'


class EmployeeStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'


class EvaluationType(str, Enum):
    """SCORE programs derive the outcome from the score; PASS_FAIL programs don't."""
    SCORE = 'SCORE'
    PASS_FAIL = 'PASS_FAIL'


class CellStatus(str, Enum):
    """Display status of one employee against one program."""
    PASS = 'PASS'
    FAIL = 'FAIL'
    ABSENT = 'ABSENT'
    EXPIRING = 'EXPIRING'
    EXPIRED = 'EXPIRED'
    NOT_TAKEN = 'NOT_TAKEN'


# ============================================================================
# CONVERSION HELPERS
# ============================================================================

def parse_date(value: Any) -> Optional[date]:
    """
    Convert an ISO string, date, or datetime to a calendar date.

    RETURNS:
        date, or None when value is None or blank

    RAISES:
        ValueError: If a string is not a valid YYYY-MM-DD date
    """
    if value is None:
        return None
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    return date.fromisoformat(text[:10])


def _serialize(value: Any) -> Any:
    """Make a value JSON friendly (enums to values, dates to ISO)."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    return value


def _load_json_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return list(json.loads(value))


# ============================================================================
# EMPLOYEES AND PROGRAMS
# ============================================================================

@dataclass
class Employee:
    """
    A person on the training roster.

    Employees are never deleted; leaving the site moves status to INACTIVE.
    """
    employee_id: str
    employee_name: str
    department: str = ''
    position: str = ''
    building: str = ''
    line: str = ''
    hire_date: Optional[date] = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    updated_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status is EmployeeStatus.ACTIVE

    @classmethod
    def from_row(cls, row) -> 'Employee':
        data = dict(row)
        return cls(
            employee_id=data['employee_id'],
            employee_name=data['employee_name'],
            department=data.get('department') or '',
            position=data.get('position') or '',
            building=data.get('building') or '',
            line=data.get('line') or '',
            hire_date=parse_date(data.get('hire_date')),
            status=EmployeeStatus(data.get('status') or 'ACTIVE'),
            updated_at=data.get('updated_at'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'employee_id': self.employee_id,
            'employee_name': self.employee_name,
            'department': self.department,
            'position': self.position,
            'building': self.building,
            'line': self.line,
            'hire_date': _serialize(self.hire_date),
            'status': self.status.value,
            'updated_at': self.updated_at,
        }


@dataclass(frozen=True)
class GradeThresholds:
    """Minimum scores for AA, A, and B. Anything below b is grade C."""
    aa: int
    a: int
    b: int


@dataclass
class TrainingProgram:
    """
    A mandatory training course with its scoring rules.

    validity_period_days is None when a pass never expires.
    """
    program_code: str
    program_name: str
    passing_score: int
    grade_aa: int
    grade_a: int
    grade_b: int
    validity_period_days: Optional[int] = None
    category: str = 'QIP'
    program_name_vn: str = ''
    program_name_kr: str = ''
    is_active: bool = True
    evaluation_type: EvaluationType = EvaluationType.SCORE
    target_positions: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    duration_hours: float = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def thresholds(self) -> GradeThresholds:
        return GradeThresholds(aa=self.grade_aa, a=self.grade_a, b=self.grade_b)

    @property
    def expires(self) -> bool:
        return self.validity_period_days is not None

    def display_name(self, locale: str = 'en') -> str:
        """Localized program name, falling back to English when blank."""
        names = {
            'vi': self.program_name_vn,
            'ko': self.program_name_kr,
        }
        return names.get(locale) or self.program_name

    def targets(self, position: str) -> bool:
        """True when the program applies to this position (empty list = everyone)."""
        return not self.target_positions or position in self.target_positions

    @classmethod
    def from_row(cls, row) -> 'TrainingProgram':
        data = dict(row)
        return cls(
            program_code=data['program_code'],
            program_name=data['program_name'],
            program_name_vn=data.get('program_name_vn') or '',
            program_name_kr=data.get('program_name_kr') or '',
            category=data.get('category') or '',
            passing_score=data['passing_score'],
            grade_aa=data['grade_aa'],
            grade_a=data['grade_a'],
            grade_b=data['grade_b'],
            validity_period_days=data.get('validity_period_days'),
            is_active=bool(data.get('is_active', 1)),
            evaluation_type=EvaluationType(data.get('evaluation_type') or 'SCORE'),
            target_positions=_load_json_list(data.get('target_positions')),
            tags=_load_json_list(data.get('tags')),
            duration_hours=data.get('duration_hours') or 0,
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'program_code': self.program_code,
            'program_name': self.program_name,
            'program_name_vn': self.program_name_vn,
            'program_name_kr': self.program_name_kr,
            'category': self.category,
            'passing_score': self.passing_score,
            'grade_aa': self.grade_aa,
            'grade_a': self.grade_a,
            'grade_b': self.grade_b,
            'validity_period_days': self.validity_period_days,
            'is_active': self.is_active,
            'evaluation_type': self.evaluation_type.value,
            'target_positions': list(self.target_positions),
            'tags': list(self.tags),
            'duration_hours': self.duration_hours,
        }


# ============================================================================
# LEDGER RECORDS
# ============================================================================

@dataclass
class TrainingResult:
    """
    One training attempt in the Result Ledger.

    Only score, result, grade, and remarks ever change after creation,
    and only through an amendment that writes an EditLogEntry.
    """
    result_id: str
    employee_id: str
    program_code: str
    training_date: date
    score: Optional[int]
    result: Outcome
    grade: Optional[Grade] = None
    evaluated_by: str = ''
    remarks: str = ''
    session_id: Optional[str] = None
    sequence: Optional[int] = None
    version: int = 1
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> 'TrainingResult':
        data = dict(row)
        return cls(
            result_id=data['result_id'],
            employee_id=data['employee_id'],
            program_code=data['program_code'],
            training_date=parse_date(data['training_date']),
            score=data.get('score'),
            result=Outcome(data['result']),
            grade=Grade(data['grade']) if data.get('grade') else None,
            evaluated_by=data.get('evaluated_by') or '',
            remarks=data.get('remarks') or '',
            session_id=data.get('session_id'),
            sequence=data.get('seq'),
            version=data.get('version') or 1,
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            updated_by=data.get('updated_by'),
        )

    def mutable_snapshot(self) -> Dict[str, Any]:
        """The amendable fields, as written to the Edit Log."""
        return {
            'score': self.score,
            'result': self.result.value,
            'grade': self.grade.value if self.grade else None,
            'remarks': self.remarks,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'result_id': self.result_id,
            'employee_id': self.employee_id,
            'program_code': self.program_code,
            'training_date': self.training_date.isoformat(),
            'score': self.score,
            'result': self.result.value,
            'grade': self.grade.value if self.grade else None,
            'evaluated_by': self.evaluated_by,
            'remarks': self.remarks,
            'session_id': self.session_id,
            'version': self.version,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'updated_by': self.updated_by,
        }


@dataclass(frozen=True)
class EditLogEntry:
    """Append-only audit record of one amendment."""
    log_id: int
    result_id: str
    before: Dict[str, Any]
    after: Dict[str, Any]
    edit_reason: str
    edited_by: str
    edited_at: str

    @classmethod
    def from_row(cls, row) -> 'EditLogEntry':
        data = dict(row)
        return cls(
            log_id=data['log_id'],
            result_id=data['result_id'],
            before=json.loads(data['before_data']),
            after=json.loads(data['after_data']),
            edit_reason=data['edit_reason'],
            edited_by=data['edited_by'],
            edited_at=data['edited_at'],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'log_id': self.log_id,
            'result_id': self.result_id,
            'before': dict(self.before),
            'after': dict(self.after),
            'edit_reason': self.edit_reason,
            'edited_by': self.edited_by,
            'edited_at': self.edited_at,
        }


# ============================================================================
# DERIVED RECORDS
# ============================================================================
# These are never stored. They are recomputed from the ledger every time.
# ============================================================================

@dataclass(frozen=True)
class ComplianceCell:
    """Current standing of one employee against one program."""
    employee_id: str
    program_code: str
    last_result: Outcome
    last_record: TrainingResult
    last_score: Optional[int]
    last_grade: Optional[Grade]
    last_training_date: date
    completion_count: int
    expiration_date: Optional[date] = None
    is_expiring: bool = False
    is_expired: bool = False

    @property
    def status(self) -> CellStatus:
        if self.last_result is Outcome.PASS:
            if self.is_expired:
                return CellStatus.EXPIRED
            if self.is_expiring:
                return CellStatus.EXPIRING
            return CellStatus.PASS
        if self.last_result is Outcome.FAIL:
            return CellStatus.FAIL
        return CellStatus.ABSENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'employee_id': self.employee_id,
            'program_code': self.program_code,
            'status': self.status.value,
            'last_result': self.last_result.value,
            'last_result_id': self.last_record.result_id,
            'last_score': self.last_score,
            'last_grade': self.last_grade.value if self.last_grade else None,
            'last_training_date': self.last_training_date.isoformat(),
            'expiration_date': _serialize(self.expiration_date),
            'is_expiring': self.is_expiring,
            'is_expired': self.is_expired,
            'completion_count': self.completion_count,
        }


@dataclass(frozen=True)
class RetrainingTarget:
    """An employee whose latest attempt at a program was a FAIL."""
    employee: Employee
    program: TrainingProgram
    last_result: TrainingResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            'employee': self.employee.to_dict(),
            'program': self.program.to_dict(),
            'last_result': self.last_result.to_dict(),
        }


@dataclass(frozen=True)
class ExpiringTraining:
    """A passed, time-limited qualification near (or past) its expiration."""
    employee: Employee
    program: TrainingProgram
    last_pass_date: date
    expiration_date: date
    days_until_expiry: int

    @property
    def is_expired(self) -> bool:
        return self.days_until_expiry < 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'employee': self.employee.to_dict(),
            'program': self.program.to_dict(),
            'last_pass_date': self.last_pass_date.isoformat(),
            'expiration_date': self.expiration_date.isoformat(),
            'days_until_expiry': self.days_until_expiry,
        }
