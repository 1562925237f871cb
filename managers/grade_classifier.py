"""
GRADE CLASSIFIER MODULE
=======================
Turn a numeric score into a grade (AA/A/B/C) and an outcome (PASS/FAIL/ABSENT).

Aviation Analogy:
    Like a checkride grading sheet: the examiner writes down a number,
    and the sheet's printed bands decide whether that's "exceeds
    standards", "meets standards", or "unsatisfactory". The bands
    belong to the course, not to the examiner.

All functions here are pure. Out-of-range scores are classified with the
same comparisons (no clamping); range checks live in the Result Ledger.
"""

from typing import Optional

from database.models import Grade, GradeThresholds, Outcome


def classify_grade(score: Optional[int], thresholds: GradeThresholds) -> Optional[Grade]:
    """
    Map a score to a grade using a program's thresholds.

    PARAMETERS:
        score: Numeric score, or None when the employee has no score
        thresholds: GradeThresholds with aa >= a >= b

    RETURNS:
        Grade, or None when score is None

    EXAMPLE:
        classify_grade(96, GradeThresholds(aa=95, a=85, b=70))  # Grade.AA
        classify_grade(69, GradeThresholds(aa=95, a=85, b=70))  # Grade.C
    """
    if score is None:
        return None
    if score >= thresholds.aa:
        return Grade.AA
    if score >= thresholds.a:
        return Grade.A
    if score >= thresholds.b:
        return Grade.B
    return Grade.C


def determine_outcome(score: Optional[int], passing_score: int) -> Outcome:
    """
    Derive PASS/FAIL/ABSENT for a score-evaluated program.

    A missing score means the employee did not sit the evaluation.
    """
    if score is None:
        return Outcome.ABSENT
    return Outcome.PASS if score >= passing_score else Outcome.FAIL


def grade_for_result(score: Optional[int], outcome: Outcome,
                     thresholds: GradeThresholds) -> Optional[Grade]:
    """Grade stored on a ledger row: only set for a scored PASS or FAIL."""
    if outcome is Outcome.ABSENT:
        return None
    return classify_grade(score, thresholds)
