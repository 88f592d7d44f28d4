from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union


# ------------------------
# Enums
# ------------------------
class GradingModel(Enum):
    WEIGHTED = "weighted"
    POINTS = "points"

    @classmethod
    def parse(cls, value: Union["GradingModel", str]) -> "GradingModel":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown grading model {value!r}. Expected: weighted, points."
            ) from None


class AssignmentStatus(Enum):
    GRADED = "graded"
    PENDING = "pending"
    MISSING = "missing"

    @classmethod
    def parse(cls, value: Union["AssignmentStatus", str, None]) -> "AssignmentStatus":
        if value is None:
            return cls.GRADED
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown assignment status {value!r}. Expected: graded, pending, missing."
            ) from None


# ------------------------
# Record helpers
# ------------------------
def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First non-None value among ``keys`` (snake_case first, then aliases)."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


def _as_float(value: Any, field: str) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a number (got {value!r}).") from None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "y", "1")
    return bool(value)


# ------------------------
# Input records
# ------------------------
@dataclass(frozen=True)
class Category:
    id: str
    name: str
    weight: float
    drop_lowest: int = 0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Category":
        """
        Build a Category from a course JSON entry or extraction preview.

        Accepts ``drop_lowest`` or ``dropLowest``; a missing name falls back
        to the id.
        """
        cat_id = str(_pick(record, "id", default=""))
        drop = _pick(record, "drop_lowest", "dropLowest", default=0)
        try:
            drop_lowest = int(float(drop))
        except (TypeError, ValueError):
            raise ValueError(f"drop_lowest must be an integer (got {drop!r}).") from None
        return cls(
            id=cat_id,
            name=str(_pick(record, "name", default=cat_id)),
            weight=_as_float(_pick(record, "weight"), "weight"),
            drop_lowest=drop_lowest,
        )


@dataclass(frozen=True)
class Assignment:
    id: str
    title: str
    category_id: str
    earned_points: float
    total_points: float
    extra_credit: bool = False
    status: AssignmentStatus = AssignmentStatus.GRADED

    @property
    def is_graded(self) -> bool:
        return self.status is AssignmentStatus.GRADED

    @property
    def fraction(self) -> float:
        # zero-point work sorts as 0%
        if self.total_points > 0:
            return self.earned_points / self.total_points
        return 0.0

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        *,
        default_id: str = "",
        default_title: str = "",
    ) -> "Assignment":
        """
        Build an Assignment from a database row, CSV row or what-if entry.

        Both snake_case (``earned_points``) and camelCase (``earnedPoints``)
        keys are understood, as is ``category`` for the category id.
        """
        return cls(
            id=str(_pick(record, "id", default=default_id)),
            title=str(_pick(record, "title", default=default_title)),
            category_id=str(_pick(record, "category_id", "categoryId", "category", default="")),
            earned_points=_as_float(
                _pick(record, "earned_points", "earnedPoints"), "earned_points"
            ),
            total_points=_as_float(
                _pick(record, "total_points", "totalPoints"), "total_points"
            ),
            extra_credit=_as_bool(_pick(record, "extra_credit", "extraCredit", default=False)),
            status=AssignmentStatus.parse(_pick(record, "status")),
        )


@dataclass(frozen=True)
class GradeBand:
    label: str
    min: float

    @classmethod
    def coerce(cls, band: Union["GradeBand", Mapping[str, Any]]) -> "GradeBand":
        if isinstance(band, cls):
            return band
        return cls(label=str(band["label"]), min=float(band["min"]))


# ------------------------
# Results
# ------------------------
@dataclass(frozen=True)
class CategoryResult:
    category_id: str
    category_name: str
    weight: float
    earned: float
    possible: float
    percentage: float
    contribution: float
    assignment_count: int


@dataclass(frozen=True)
class GradeResult:
    final_percentage: float
    letter_grade: str
    categories: Tuple[CategoryResult, ...]
    total_earned: float
    total_possible: float
    is_rescaled: bool

    def category(self, category_id: str) -> Optional[CategoryResult]:
        for result in self.categories:
            if result.category_id == category_id:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["categories"] = list(data["categories"])
        return data
