"""Percentage and letter-grade computation for grade records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from .errors import DivideByZeroInput, ValidationError

GRADE_BANDS: List[Tuple[float, str]] = [
    (97.0, "A+"),
    (93.0, "A"),
    (90.0, "A-"),
    (87.0, "B+"),
    (83.0, "B"),
    (80.0, "B-"),
    (77.0, "C+"),
    (73.0, "C"),
    (70.0, "C-"),
    (60.0, "D"),
]
FAILING_GRADE = "F"
INCOMPLETE_GRADE = "I"

LETTER_GRADES: Tuple[str, ...] = tuple(letter for _, letter in GRADE_BANDS) + (
    FAILING_GRADE,
    INCOMPLETE_GRADE,
)


@dataclass(frozen=True)
class GradeResult:
    percentage: float
    letter_grade: str


def letter_for_percentage(percentage: float) -> str:
    """Return the letter band for a percentage; the first threshold met wins."""

    for threshold, letter in GRADE_BANDS:
        if percentage >= threshold:
            return letter
    return FAILING_GRADE


def _as_marks(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError("Marks must be numeric.", {field: "Marks must be numeric."})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(
            "Marks must be numeric.", {field: "Marks must be numeric."}
        ) from None
    if number != number or number in (float("inf"), float("-inf")):
        raise ValidationError("Marks must be numeric.", {field: "Marks must be numeric."})
    if number < 0:
        raise ValidationError(
            "Marks cannot be negative.", {field: "Marks cannot be negative."}
        )
    return number


def compute_grade(marks_earned: Any, marks_possible: Any) -> GradeResult | None:
    """Compute the percentage and letter grade for a pair of marks.

    Returns ``None`` when either value is absent so callers leave the derived
    fields unset instead of grading a missing mark as zero.
    """

    if marks_earned is None or marks_possible is None:
        return None

    earned = _as_marks(marks_earned, "marks_earned")
    possible = _as_marks(marks_possible, "marks_possible")

    if possible == 0:
        raise DivideByZeroInput(
            "Total marks must be greater than zero.",
            {"marks_possible": "Total marks must be greater than zero."},
        )
    if earned > possible:
        raise ValidationError(
            "Marks earned cannot exceed total marks.",
            {"marks_earned": "Marks earned cannot exceed total marks."},
        )

    percentage = earned / possible * 100
    return GradeResult(percentage=percentage, letter_grade=letter_for_percentage(percentage))


def apply_grade(document: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Recompute the derived fields of a grade document before it is written.

    Returns the fields to ``$set`` and the fields to ``$unset``. Callers run
    this on every write that touches ``marks_earned`` or ``marks_possible``.
    """

    result = compute_grade(document.get("marks_earned"), document.get("marks_possible"))
    if result is None:
        return {}, ["percentage", "letter_grade"]
    return {
        "percentage": result.percentage,
        "letter_grade": result.letter_grade,
    }, []


__all__ = [
    "GRADE_BANDS",
    "LETTER_GRADES",
    "INCOMPLETE_GRADE",
    "GradeResult",
    "letter_for_percentage",
    "compute_grade",
    "apply_grade",
]
