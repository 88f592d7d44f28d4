"""
Grade computation engine for a student grade tracker.

Turns graded assignments and a category weighting scheme into a course
percentage, a letter grade and a per-category breakdown, with what-if
projection over hypothetical future scores.
"""

from .backend_logic import (
    DEFAULT_GRADE_SCALE,
    CategoryTotals,
    aggregate_category,
    category_weight_total,
    check_category_weights,
    compute_course_grade,
    drop_lowest_scores,
    grade_course,
    map_letter_grade,
    project_what_if,
    required_score_for_target,
    round_1dp_half_up,
)
from .models import (
    Assignment,
    AssignmentStatus,
    Category,
    CategoryResult,
    GradeBand,
    GradeResult,
    GradingModel,
)

__version__ = "0.1.0"

__all__ = [
    "Assignment",
    "AssignmentStatus",
    "Category",
    "CategoryResult",
    "CategoryTotals",
    "DEFAULT_GRADE_SCALE",
    "GradeBand",
    "GradeResult",
    "GradingModel",
    "aggregate_category",
    "category_weight_total",
    "check_category_weights",
    "compute_course_grade",
    "drop_lowest_scores",
    "grade_course",
    "map_letter_grade",
    "project_what_if",
    "required_score_for_target",
    "round_1dp_half_up",
]
