import logging
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Union

import numpy as np

from .models import (
    Assignment,
    AssignmentStatus,
    Category,
    CategoryResult,
    GradeBand,
    GradeResult,
    GradingModel,
)

logger = logging.getLogger(__name__)

DEFAULT_GRADE_SCALE = (
    GradeBand("A", 90),
    GradeBand("B", 80),
    GradeBand("C", 70),
    GradeBand("D", 60),
    GradeBand("F", 0),
)

WHAT_IF_TITLE = "What-If Assignment"

ScaleLike = Sequence[Union[GradeBand, Mapping[str, Any]]]
HypotheticalLike = Union[Assignment, Mapping[str, Any]]


# ------------------------
# Helpers
# ------------------------
def round_1dp_half_up(x: float, places: int = 1) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(x)).quantize(quantum, rounding=ROUND_HALF_UP))


def _graded_in(assignments: Iterable[Assignment], category_id: str) -> List[Assignment]:
    return [a for a in assignments if a.category_id == category_id and a.is_graded]


def _points_sum(assignments: Sequence[Assignment], field: str) -> float:
    if not assignments:
        return 0.0
    return float(np.sum([getattr(a, field) for a in assignments], dtype=float))


class CategoryTotals(NamedTuple):
    earned: float
    possible: float
    percentage: float
    assignment_count: int


# ------------------------
# Category aggregation
# ------------------------
def drop_lowest_scores(graded: Sequence[Assignment], drop_lowest: int) -> List[Assignment]:
    """
    Remove the ``drop_lowest`` weakest non-extra-credit assignments.

    Ranking is by earned/total fraction (zero-point work counts as 0%),
    ties keep their input order. At least one regular assignment always
    survives, and extra credit is never dropped.
    """
    regular = [a for a in graded if not a.extra_credit]
    bonus = [a for a in graded if a.extra_credit]

    drop_count = max(0, min(int(drop_lowest), len(regular) - 1))
    if drop_count == 0:
        return regular + bonus

    fractions = np.array([a.fraction for a in regular], dtype=float)
    order = np.argsort(fractions, kind="stable")
    kept = [regular[i] for i in order[drop_count:]]

    logger.debug(
        "Dropped %d of %d assignments: %s",
        drop_count,
        len(regular),
        [regular[i].id for i in order[:drop_count]],
    )
    return kept + bonus


def aggregate_category(assignments: Iterable[Assignment], category: Category) -> CategoryTotals:
    """
    Earned / possible points and capped percentage for one category.

    Only graded assignments count. Extra credit adds to earned but never to
    possible, so ``earned`` may exceed ``possible``; the percentage is capped
    at 100 while the raw sums are reported as-is.
    """
    graded = _graded_in(assignments, category.id)
    if not graded:
        return CategoryTotals(0.0, 0.0, 0.0, 0)

    if category.drop_lowest > 0:
        counted = drop_lowest_scores(graded, category.drop_lowest)
    else:
        counted = graded

    earned = _points_sum(counted, "earned_points")
    possible = _points_sum([a for a in counted if not a.extra_credit], "total_points")

    percentage = (earned / possible) * 100 if possible > 0 else 0.0
    return CategoryTotals(earned, possible, min(percentage, 100.0), len(counted))


# ------------------------
# Course grade
# ------------------------
def _points_grade(assignments: Sequence[Assignment], scale: Optional[ScaleLike]) -> GradeResult:
    graded = [a for a in assignments if a.is_graded]
    total_earned = _points_sum(graded, "earned_points")
    total_possible = _points_sum([a for a in graded if not a.extra_credit], "total_points")

    final = (total_earned / total_possible) * 100 if total_possible > 0 else 0.0
    final = min(final, 100.0)
    return GradeResult(
        final_percentage=final,
        letter_grade=map_letter_grade(final, scale),
        categories=(),
        total_earned=total_earned,
        total_possible=total_possible,
        is_rescaled=False,
    )


def compute_course_grade(
    assignments: Iterable[Assignment],
    categories: Iterable[Category],
    grading_model: Union[GradingModel, str] = GradingModel.WEIGHTED,
    rescale_mode: bool = True,
    scale: Optional[ScaleLike] = None,
) -> GradeResult:
    """
    Final percentage, letter grade and per-category breakdown for a course.

    Points model: total earned over total possible, categories ignored.

    Weighted model: sum of category percentage * weight / 100. With
    ``rescale_mode`` a category that has no graded work is left out of the
    weight total, and if the remaining weights sum to less than 100 every
    weight, contribution and the final percentage are scaled by
    100 / total_weight. The final percentage is capped at 100.
    """
    model = GradingModel.parse(grading_model)
    assignments = list(assignments)

    if model is GradingModel.POINTS:
        return _points_grade(assignments, scale)

    included = []
    total_weight = 0.0
    final = 0.0

    for category in categories:
        totals = aggregate_category(assignments, category)
        has_graded = any(a.category_id == category.id and a.is_graded for a in assignments)

        # no graded work yet means "not applicable", not 0%
        if rescale_mode and not has_graded:
            logger.debug("Category %r has no graded work; excluded from weights", category.id)
            continue

        contribution = totals.percentage * category.weight / 100
        included.append((category, totals, contribution))
        total_weight += category.weight
        final += contribution

    scale_factor = 1.0
    if rescale_mode and 0 < total_weight < 100:
        scale_factor = 100.0 / total_weight
        final *= scale_factor
        logger.debug("Rescaling %.4g%% of weight by factor %.6g", total_weight, scale_factor)

    results = tuple(
        CategoryResult(
            category_id=category.id,
            category_name=category.name,
            weight=category.weight * scale_factor,
            earned=totals.earned,
            possible=totals.possible,
            percentage=totals.percentage,
            contribution=contribution * scale_factor,
            assignment_count=totals.assignment_count,
        )
        for category, totals, contribution in included
    )

    final = min(final, 100.0)
    return GradeResult(
        final_percentage=final,
        letter_grade=map_letter_grade(final, scale),
        categories=results,
        total_earned=float(sum(r.earned for r in results)),
        total_possible=float(sum(r.possible for r in results)),
        is_rescaled=bool(rescale_mode and total_weight < 100),
    )


# ------------------------
# Letter grades
# ------------------------
def map_letter_grade(percentage: float, scale: Optional[ScaleLike] = None) -> str:
    bands = [GradeBand.coerce(b) for b in (DEFAULT_GRADE_SCALE if scale is None else scale)]
    if not bands:
        return "F"

    ordered = sorted(bands, key=lambda b: b.min, reverse=True)
    for band in ordered:
        if percentage >= band.min:
            return band.label

    # nothing matched: fall back to the lowest band
    return ordered[-1].label


# ------------------------
# What-if projection
# ------------------------
def _as_hypothetical(entry: HypotheticalLike, index: int) -> Assignment:
    whatif_id = f"whatif-{index}"
    if isinstance(entry, Assignment):
        return replace(entry, id=whatif_id, status=AssignmentStatus.GRADED)

    record = {k: v for k, v in entry.items() if k not in ("id", "status")}
    if not record.get("title"):
        record.pop("title", None)
    return Assignment.from_record(record, default_id=whatif_id, default_title=WHAT_IF_TITLE)


def project_what_if(
    assignments: Iterable[Assignment],
    hypotheticals: Iterable[HypotheticalLike],
    categories: Iterable[Category],
    grading_model: Union[GradingModel, str] = GradingModel.WEIGHTED,
    rescale_mode: bool = True,
    scale: Optional[ScaleLike] = None,
) -> GradeResult:
    """
    Course grade as if ``hypotheticals`` were already graded.

    Each hypothetical needs at least ``category_id``, ``earned_points`` and
    ``total_points``. The caller's assignment list is left untouched.
    """
    combined = list(assignments)
    combined.extend(_as_hypothetical(h, i) for i, h in enumerate(hypotheticals))
    return compute_course_grade(combined, categories, grading_model, rescale_mode, scale)


def required_score_for_target(
    assignments: Sequence[Assignment],
    categories: Sequence[Category],
    target_percentage: float,
    category_id: str,
    total_points: float,
    grading_model: Union[GradingModel, str] = GradingModel.WEIGHTED,
    rescale_mode: bool = True,
    tol: float = 1e-3,
) -> Optional[float]:
    """
    Find the minimum score on one future assignment worth ``total_points``
    in ``category_id`` that lifts the projected final percentage to
    ``target_percentage``.

    Returns None if the target is out of reach even with full marks.
    """
    if total_points <= 0:
        return None

    # helper: projected final percentage if the new assignment scores s
    def projected(score: float) -> float:
        hypothetical = {
            "category_id": category_id,
            "earned_points": score,
            "total_points": total_points,
        }
        return project_what_if(
            assignments, [hypothetical], categories, grading_model, rescale_mode
        ).final_percentage

    if projected(total_points) < target_percentage:
        return None  # impossible even with a perfect score
    if projected(0.0) >= target_percentage:
        return 0.0

    lo, hi = 0.0, float(total_points)
    # Binary search for the minimal score such that projected >= target
    while hi - lo > tol:
        mid = (lo + hi) / 2.0
        if projected(mid) >= target_percentage:
            hi = mid
        else:
            lo = mid

    return hi


# ------------------------
# Course records
# ------------------------
def category_weight_total(categories: Iterable[Category]) -> float:
    return float(sum(c.weight for c in categories))


def check_category_weights(categories: Iterable[Category], tol: float = 1e-9) -> bool:
    """True when the weights add up to 100; otherwise log a warning."""
    total = category_weight_total(categories)
    if abs(total - 100.0) > tol:
        logger.warning("Category weights sum to %s%%, expected 100%%", total)
        return False
    return True


def grade_course(
    course: Mapping[str, Any],
    assignments: Iterable[Union[Assignment, Mapping[str, Any]]],
    rescale_mode: bool = True,
    scale: Optional[ScaleLike] = None,
) -> GradeResult:
    """
    course: course row with ``grading_model`` and a ``categories`` JSON list
    assignments: Assignment objects or raw assignment rows
    """
    model = GradingModel.parse(
        course.get("grading_model") or course.get("gradingModel") or GradingModel.WEIGHTED
    )
    raw_categories = course.get("categories")
    if not isinstance(raw_categories, list):
        raw_categories = []
    categories = [Category.from_record(c) for c in raw_categories]

    records = [a if isinstance(a, Assignment) else Assignment.from_record(a) for a in assignments]

    if model is GradingModel.WEIGHTED:
        check_category_weights(categories)

    return compute_course_grade(records, categories, model, rescale_mode, scale)
