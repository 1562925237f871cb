"""
RESULT LEDGER MODULE
====================
Append-only store of training results with an audited amendment path.

This module handles:
- Recording a session's results as one all-or-nothing batch
- Amending score/result/remarks with a mandatory reason
- The Edit Log: before/after snapshots of every amendment
- Filtered reads in ledger (insertion) order

Aviation Analogy:
    Think of this like a pilot logbook kept in ink:
    - Entries are only ever added, never torn out
    - A mistake is corrected by a signed, dated correction entry that
      says what was wrong and why, not by erasing the original
    - The logbook page order never changes, even after corrections

No-delete policy:
    There is no delete method. The schema backs this up with triggers that
    abort any DELETE on training_results and any UPDATE or DELETE on
    result_edit_log.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from database.errors import NotFoundError, StaleRecordError, ValidationError
from database.models import (
    EditLogEntry,
    EvaluationType,
    Outcome,
    TrainingProgram,
    TrainingResult,
    parse_date,
)
from database.training_store import TrainingStore
from managers.grade_classifier import determine_outcome, grade_for_result

logger = logging.getLogger(__name__)


# Fields an amendment may change, and fields it must never touch
AMENDABLE_FIELDS = {'score', 'result', 'remarks'}
IMMUTABLE_FIELDS = {
    'result_id', 'employee_id', 'program_code', 'training_date',
    'session_id', 'evaluated_by', 'grade', 'sequence', 'version', 'created_at'
}
ENTRY_FIELDS = {'employee_id', 'program_code', 'training_date', 'score', 'result', 'remarks'}

MIN_SCORE = 0
MAX_SCORE = 100


def _now() -> str:
    return datetime.now().isoformat(timespec='seconds')


class ResultLedger:
    """
    PURPOSE: Durable, append-only ledger of training results

    ATTRIBUTES:
        store: TrainingStore used to resolve employees and programs
        conn: Shared SQLite connection (owned by the store)

    EXAMPLE:
        store = TrainingStore()
        ledger = ResultLedger(store)

        results = ledger.record_results(
            [{'employee_id': 'EMP-001', 'program_code': 'QIP-001',
              'training_date': '2024-01-10', 'score': 96}],
            evaluated_by='Trainer Kim',
            session_id='SES-2024-001'
        )

        ledger.amend_result(results[0].result_id, {'score': 94},
                            reason='Transcription error on score sheet',
                            edited_by='QA Manager')
    """

    def __init__(self, store: TrainingStore):
        """
        Initialize the ledger on top of a TrainingStore.

        WHY THIS APPROACH:
            Sharing the store's connection means the foreign keys a batch
            references and the batch itself live in one transaction scope,
            the same way ComplianceReports shares one manager's connection.
        """
        self.store = store
        self.conn = store.conn
        self.lock = store.lock

    # =========================================================================
    # INSERTION
    # =========================================================================

    def record_results(self, entries: Iterable[Mapping[str, Any]], evaluated_by: str,
                       session_id: str = None) -> List[TrainingResult]:
        """
        Record a batch of results for one training session.

        PURPOSE: Add new ledger rows. Never changes or removes existing rows.

        PARAMETERS:
            entries: Dicts with employee_id, program_code, training_date,
                     score (None = absent), and optionally result and remarks.
                     For SCORE programs the result may be left out and is
                     derived from the passing score. PASS_FAIL programs need
                     an explicit result.
            evaluated_by: Evaluator recorded on every row
            session_id: Optional session the batch belongs to

        RETURNS:
            List of TrainingResult, one per entry, in input order

        RAISES:
            ValidationError: Malformed entry (record_index says which one)
            NotFoundError: Entry references an unknown employee or program

        WHY THIS APPROACH:
            The whole batch is validated before anything is written, then
            inserted inside one transaction. Either every result lands or
            none do, so a half-recorded session can never skew compliance.
        """
        if not evaluated_by or not str(evaluated_by).strip():
            raise ValidationError("evaluated_by is required")

        prepared = self.validate_results(entries)
        created_at = _now()
        result_ids = []

        with self.lock:
            try:
                for row in prepared:
                    result_id = self._new_result_id()
                    self.conn.execute("""
                        INSERT INTO training_results
                        (result_id, session_id, employee_id, program_code, training_date,
                         score, result, grade, evaluated_by, remarks, version, created_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                    """, (result_id, session_id, row['employee_id'], row['program_code'],
                          row['training_date'], row['score'], row['result'], row['grade'],
                          evaluated_by, row['remarks'], created_at))
                    result_ids.append(result_id)
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise

        logger.info("Recorded %d result(s) for session %s", len(result_ids), session_id)
        return [self.get_result(result_id) for result_id in result_ids]

    def validate_results(self, entries: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """
        Validate a batch without writing it.

        RETURNS:
            The normalized rows record_results would insert

        RAISES:
            ValidationError / NotFoundError for the first bad entry
        """
        entries = list(entries)
        if not entries:
            raise ValidationError("No results to record")

        programs: Dict[str, TrainingProgram] = {}
        seen_pairs = set()
        prepared = []

        for index, entry in enumerate(entries):
            try:
                row = self._prepare_entry(index, entry, programs)
                pair = (row['employee_id'], row['program_code'])
                if pair in seen_pairs:
                    raise ValidationError(
                        f"Duplicate entry for employee '{pair[0]}' and program '{pair[1]}'",
                        record_index=index
                    )
            except (ValidationError, NotFoundError) as e:
                logger.warning("Rejected result batch: %s", e)
                raise

            seen_pairs.add(pair)
            prepared.append(row)

        return prepared

    # =========================================================================
    # AMENDMENT
    # =========================================================================

    def amend_result(self, result_id: str, patch: Mapping[str, Any], reason: str,
                     edited_by: str = 'system',
                     expected_version: Optional[int] = None) -> TrainingResult:
        """
        Amend score, result, and/or remarks of an existing result.

        PURPOSE: Correct a ledger row in place, with a permanent audit entry

        PARAMETERS:
            result_id: Result to amend
            patch: Any of {'score', 'result', 'remarks'}
            reason: Why the change is being made (required, non-blank)
            edited_by: Who is making the change
            expected_version: Version the editor loaded. When given and the
                              row has moved on, the amendment is refused.

        RETURNS:
            The amended TrainingResult

        RAISES:
            ValidationError: Blank reason, empty/malformed patch, or an
                             attempt to change an immutable field
            NotFoundError: Unknown result_id
            StaleRecordError: Row changed since expected_version

        WHY THIS APPROACH:
            Grade is recomputed with the program's CURRENT thresholds
            (policy: regrade_on_amend = current). The UPDATE is guarded by
            the version column so two editors can't silently overwrite
            each other.
        """
        if reason is None or not str(reason).strip():
            raise ValidationError("An edit reason is required to amend a result")

        patch = self._validate_patch(patch)

        record = self.get_result(result_id)
        if not record:
            raise NotFoundError(f"Result '{result_id}' not found")

        if expected_version is not None and expected_version != record.version:
            raise StaleRecordError(
                f"Result '{result_id}' is at version {record.version}, "
                f"amendment was based on version {expected_version}"
            )

        program = self.store.get_program(record.program_code)
        if not program:
            raise NotFoundError(f"Program '{record.program_code}' not found")

        new_score = patch.get('score', record.score)
        new_result = patch.get('result', record.result)
        new_remarks = patch.get('remarks', record.remarks)
        if new_result is Outcome.ABSENT and new_score is not None:
            raise ValidationError("An ABSENT result cannot carry a score")
        new_grade = grade_for_result(new_score, new_result, program.thresholds)

        before = record.mutable_snapshot()
        after = {
            'score': new_score,
            'result': new_result.value,
            'grade': new_grade.value if new_grade else None,
            'remarks': new_remarks,
        }
        edited_at = _now()

        with self.lock:
            try:
                cursor = self.conn.execute("""
                    UPDATE training_results
                    SET score = ?, result = ?, grade = ?, remarks = ?,
                        version = version + 1, updated_at = ?, updated_by = ?
                    WHERE result_id = ? AND version = ?
                """, (after['score'], after['result'], after['grade'], after['remarks'],
                      edited_at, edited_by, result_id, record.version))

                if cursor.rowcount == 0:
                    raise StaleRecordError(
                        f"Result '{result_id}' was changed by another editor; reload and retry"
                    )

                self.conn.execute("""
                    INSERT INTO result_edit_log
                    (result_id, before_data, after_data, edit_reason, edited_by, edited_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (result_id, json.dumps(before), json.dumps(after),
                      str(reason).strip(), edited_by, edited_at))

                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise

        logger.info("Amended result %s by %s: %s -> %s", result_id, edited_by, before, after)
        return self.get_result(result_id)

    # =========================================================================
    # READS
    # =========================================================================

    def get_result(self, result_id: str) -> Optional[TrainingResult]:
        rows = self._query("SELECT * FROM training_results WHERE result_id = ?", (result_id,))
        return TrainingResult.from_row(rows[0]) if rows else None

    def list_results(self, employee_id: str = None, program_code: str = None,
                     start_date: str = None, end_date: str = None,
                     result: str = None, grade: str = None,
                     session_id: str = None) -> List[TrainingResult]:
        """
        List results in ledger order (oldest insertion first).

        PARAMETERS:
            employee_id, program_code, session_id: Exact-match filters
            start_date, end_date: Inclusive training_date range (YYYY-MM-DD)
            result: 'PASS', 'FAIL', or 'ABSENT'
            grade: 'AA', 'A', 'B', or 'C'

        RETURNS:
            List of TrainingResult

        WHY THIS APPROACH:
            Ledger order is what the matrix builder uses to break
            same-day ties, so every read returns rows in that order.
        """
        query = "SELECT * FROM training_results WHERE 1=1"
        params: List[Any] = []

        for column, value in (('employee_id', employee_id), ('program_code', program_code),
                              ('result', result), ('grade', grade),
                              ('session_id', session_id)):
            if value is not None:
                query += f" AND {column} = ?"
                params.append(value.value if hasattr(value, 'value') else value)

        if start_date:
            query += " AND training_date >= ?"
            params.append(parse_date(start_date).isoformat())
        if end_date:
            query += " AND training_date <= ?"
            params.append(parse_date(end_date).isoformat())

        query += " ORDER BY seq"
        return [TrainingResult.from_row(row) for row in self._query(query, params)]

    def get_edit_log(self, result_id: str = None) -> List[EditLogEntry]:
        """Edit Log entries, oldest first, optionally for one result."""
        query = "SELECT * FROM result_edit_log"
        params: List[Any] = []
        if result_id:
            query += " WHERE result_id = ?"
            params.append(result_id)
        query += " ORDER BY log_id"
        return [EditLogEntry.from_row(row) for row in self._query(query, params)]

    def count(self) -> int:
        """Number of rows in the ledger."""
        return self._query("SELECT COUNT(*) AS count FROM training_results")[0]['count']

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _query(self, query: str, params=()) -> list:
        with self.lock:
            cursor = self.conn.cursor()
            cursor.execute(query, tuple(params))
            return cursor.fetchall()

    def _new_result_id(self) -> str:
        return f"RES-{uuid.uuid4().hex[:12].upper()}"

    def _prepare_entry(self, index: int, entry: Mapping[str, Any],
                       programs: Dict[str, TrainingProgram]) -> Dict[str, Any]:
        """
        Validate one batch entry and compute its result and grade.

        RAISES:
            ValidationError / NotFoundError tagged with record_index
        """
        if not isinstance(entry, Mapping):
            raise ValidationError(f"Expected a mapping, got {type(entry).__name__}",
                                  record_index=index)

        unknown = set(entry) - ENTRY_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {sorted(unknown)}", record_index=index)

        employee_id = entry.get('employee_id')
        program_code = entry.get('program_code')
        if not employee_id:
            raise ValidationError("employee_id is required", record_index=index)
        if not program_code:
            raise ValidationError("program_code is required", record_index=index)

        if not self.store.get_employee(employee_id):
            raise NotFoundError(f"Employee '{employee_id}' not found", record_index=index)

        if program_code not in programs:
            program = self.store.get_program(program_code)
            if not program:
                raise NotFoundError(f"Program '{program_code}' not found", record_index=index)
            programs[program_code] = program
        program = programs[program_code]

        if not program.is_active:
            raise ValidationError(f"Program '{program_code}' is inactive", record_index=index)

        try:
            training_date = parse_date(entry.get('training_date'))
        except ValueError:
            training_date = None
        if training_date is None:
            raise ValidationError(
                f"training_date must be YYYY-MM-DD, got: {entry.get('training_date')!r}",
                record_index=index
            )

        score = self._validate_score(entry.get('score'), index)

        if entry.get('result') is not None:
            result = self._validate_outcome(entry['result'], index)
        elif program.evaluation_type is EvaluationType.PASS_FAIL:
            raise ValidationError(
                f"Program '{program_code}' is PASS_FAIL; result is required",
                record_index=index
            )
        else:
            result = determine_outcome(score, program.passing_score)

        if result is Outcome.ABSENT and score is not None:
            raise ValidationError("An ABSENT result cannot carry a score", record_index=index)

        remarks = entry.get('remarks') or ''
        grade = grade_for_result(score, result, program.thresholds)

        return {
            'employee_id': employee_id,
            'program_code': program_code,
            'training_date': training_date.isoformat(),
            'score': score,
            'result': result.value,
            'grade': grade.value if grade else None,
            'remarks': str(remarks),
        }

    def _validate_patch(self, patch: Mapping[str, Any]) -> Dict[str, Any]:
        """Check an amendment patch and normalize its values."""
        if not isinstance(patch, Mapping) or not patch:
            raise ValidationError("Amendment patch must be a non-empty mapping")

        immutable = set(patch) & IMMUTABLE_FIELDS
        if immutable:
            raise ValidationError(f"Fields cannot be amended: {sorted(immutable)}")

        unknown = set(patch) - AMENDABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown fields: {sorted(unknown)}. Amendable: {sorted(AMENDABLE_FIELDS)}"
            )

        normalized = {}
        if 'score' in patch:
            normalized['score'] = self._validate_score(patch['score'])
        if 'result' in patch:
            if patch['result'] is None:
                raise ValidationError("result cannot be empty")
            normalized['result'] = self._validate_outcome(patch['result'])
        if 'remarks' in patch:
            normalized['remarks'] = str(patch['remarks'] or '')
        return normalized

    def _validate_score(self, score: Any, index: Optional[int] = None) -> Optional[int]:
        if score is None:
            return None
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ValidationError(f"score must be a number, got: {score!r}", record_index=index)
        if isinstance(score, float):
            if not score.is_integer():
                raise ValidationError(f"score must be a whole number, got: {score}",
                                      record_index=index)
            score = int(score)
        if not MIN_SCORE <= score <= MAX_SCORE:
            raise ValidationError(f"score must be {MIN_SCORE}-{MAX_SCORE}, got: {score}",
                                  record_index=index)
        return score

    def _validate_outcome(self, value: Any, index: Optional[int] = None) -> Outcome:
        try:
            return Outcome(value.upper() if isinstance(value, str) else value)
        except ValueError:
            raise ValidationError(
                f"Invalid result: {value!r}. Valid: {[o.value for o in Outcome]}",
                record_index=index
            ) from None
