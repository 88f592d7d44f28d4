import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd
import yaml

from .backend_logic import round_1dp_half_up
from .models import Assignment, Category, GradeBand, GradeResult

logger = logging.getLogger(__name__)

COLUMN_ALIASES = {
    "category": "category_id",
    "categoryid": "category_id",
    "earned": "earned_points",
    "earnedpoints": "earned_points",
    "score": "earned_points",
    "total": "total_points",
    "totalpoints": "total_points",
    "possible": "total_points",
    "out_of": "total_points",
    "extracredit": "extra_credit",
    "droplowest": "drop_lowest",
    "drop": "drop_lowest",
}

ASSIGNMENT_COLUMNS = ["id", "title", "category_id", "earned_points", "total_points", "extra_credit", "status"]
CATEGORY_COLUMNS = ["id", "name", "weight", "drop_lowest"]


# ------------------------
# CSV helpers
# ------------------------

def _normalise_cols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [re.sub(r"[\s\-]+", "_", str(c).strip().lower()) for c in df.columns]
    renames = {
        src: dst for src, dst in COLUMN_ALIASES.items()
        if src in df.columns and dst not in df.columns
    }
    if renames:
        df = df.rename(columns=renames)
    return df


def read_csv_upload(uploaded_file) -> pd.DataFrame:
    # read everything as text; numbers are coerced at the record boundary
    df = pd.read_csv(uploaded_file, dtype=str, skipinitialspace=True)
    return _normalise_cols(df)


def _require(df: pd.DataFrame, required: set, expected: str) -> None:
    missing = required - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns: {sorted(missing)}. Expected: {expected}.")


def validate_assignments_csv(df: pd.DataFrame) -> pd.DataFrame:
    df = _normalise_cols(df)
    _require(df, {"earned_points", "total_points"}, "Earned Points, Total Points")
    return df[[c for c in ASSIGNMENT_COLUMNS if c in df.columns]].copy()


def validate_categories_csv(df: pd.DataFrame) -> pd.DataFrame:
    df = _normalise_cols(df)
    _require(df, {"id", "weight"}, "Id, Weight")
    return df[[c for c in CATEGORY_COLUMNS if c in df.columns]].copy()


def _row_record(row: pd.Series) -> Dict[str, Any]:
    return {key: (None if pd.isna(value) else value) for key, value in row.items()}


def parse_assignments(df: pd.DataFrame) -> List[Assignment]:
    """
    Rows without total points are skipped. A row with no earned points and
    no status is treated as not graded yet.
    """
    rows = []
    for n, (_, row) in enumerate(df.iterrows(), start=1):
        record = _row_record(row)
        if record.get("total_points") is None:
            logger.debug("Skipping assignment row %d: no total points", n)
            continue
        if record.get("earned_points") is None and record.get("status") is None:
            record["status"] = "pending"
        rows.append(Assignment.from_record(record, default_id=f"row-{n}"))
    return rows


def parse_categories(df: pd.DataFrame) -> List[Category]:
    rows = []
    for _, row in df.iterrows():
        record = _row_record(row)
        if record.get("weight") is None:
            continue
        rows.append(Category.from_record(record))
    return rows


# ------------------------
# Grade scales
# ------------------------

def parse_grade_scale(text: str) -> List[GradeBand]:
    """
    Accepts lines like:
      A: 90
      A- = 87.5
      B+ 85%
    Returns bands sorted by min desc.
    """
    bands: Dict[str, GradeBand] = {}
    if not text or not text.strip():
        return []

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue

        m = re.match(r"^([A-Za-z][A-Za-z\+\-]*)\s*[:=]?\s*(-?\d+(?:\.\d+)?)\s*%?$", line)
        if not m:
            raise ValueError(f"Invalid line: {line}")

        label = m.group(1).upper()
        # keep last occurrence if repeated
        bands[label] = GradeBand(label, float(m.group(2)))

    return sorted(bands.values(), key=lambda b: b.min, reverse=True)


def load_grade_scale(path: Union[str, Path]) -> List[GradeBand]:
    """
    YAML either as a mapping under ``grade_bands`` (label -> min) or as a
    list of ``{label, min}`` entries.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if isinstance(data, dict) and isinstance(data.get("grade_bands"), dict):
        bands = [GradeBand(str(label), float(lo)) for label, lo in data["grade_bands"].items()]
    elif isinstance(data, list):
        try:
            bands = [GradeBand.coerce(entry) for entry in data]
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid grade band in {path}: {e}") from e
    else:
        raise ValueError(f"{path}: expected 'grade_bands' mapping or a list of {{label, min}}")

    logger.info("Loaded %d grade bands from %s", len(bands), path)
    return sorted(bands, key=lambda b: b.min, reverse=True)


# ------------------------
# Tables
# ------------------------

def breakdown_frame(result: GradeResult) -> pd.DataFrame:
    columns = ["Category", "Weight (%)", "Earned", "Possible", "Grade (%)", "Contribution (%)", "Assignments"]
    rows = [
        {
            "Category": c.category_name,
            "Weight (%)": round_1dp_half_up(c.weight),
            "Earned": c.earned,
            "Possible": c.possible,
            "Grade (%)": round_1dp_half_up(c.percentage),
            "Contribution (%)": round_1dp_half_up(c.contribution),
            "Assignments": c.assignment_count,
        }
        for c in result.categories
    ]
    return pd.DataFrame(rows, columns=columns)
