import io

import pandas as pd
import pytest

from grade_tracker import Assignment, AssignmentStatus, Category, GradeBand, compute_course_grade
from grade_tracker.io_csv import (
    breakdown_frame,
    load_grade_scale,
    parse_assignments,
    parse_categories,
    parse_grade_scale,
    read_csv_upload,
    validate_assignments_csv,
    validate_categories_csv,
)

ASSIGNMENTS_CSV = """Title,Category,Earned,Total,Extra Credit,Status
HW1,hw,18,20,,graded
HW2,hw,16,20,no,
Bonus,hw,2,2,yes,
Exam 1,exams,,50,,
Broken,exams,10,,,
"""

CATEGORIES_CSV = """ID,Name,Weight,Drop Lowest
hw,Homework,30,1
exams,Exams,70,
quizzes,Quizzes,,
"""


@pytest.fixture
def assignments_df():
    return validate_assignments_csv(read_csv_upload(io.StringIO(ASSIGNMENTS_CSV)))


@pytest.fixture
def categories_df():
    return validate_categories_csv(read_csv_upload(io.StringIO(CATEGORIES_CSV)))


def test_columns_normalised(assignments_df):
    assert list(assignments_df.columns) == [
        "title", "category_id", "earned_points", "total_points", "extra_credit", "status"
    ]


def test_parse_assignments(assignments_df):
    rows = parse_assignments(assignments_df)

    assert [a.title for a in rows] == ["HW1", "HW2", "Bonus", "Exam 1"]
    assert [a.id for a in rows] == ["row-1", "row-2", "row-3", "row-4"]
    assert rows[0].earned_points == 18
    assert rows[1].extra_credit is False
    assert rows[2].extra_credit is True
    assert rows[3].status is AssignmentStatus.PENDING


def test_parse_categories(categories_df):
    cats = parse_categories(categories_df)
    assert cats == [Category("hw", "Homework", 30.0, 1), Category("exams", "Exams", 70.0, 0)]


def test_csv_round_through_engine(assignments_df, categories_df):
    result = compute_course_grade(parse_assignments(assignments_df), parse_categories(categories_df))
    # HW2 (80%) dropped, HW1 + bonus = 20/20; exams pending so rescaled
    assert result.final_percentage == pytest.approx(100.0)
    assert result.is_rescaled is True


def test_validate_assignments_missing_columns():
    df = pd.DataFrame([{"Title": "HW1", "Earned": 5}])
    with pytest.raises(ValueError, match="total_points"):
        validate_assignments_csv(df)


def test_validate_categories_missing_weight():
    df = pd.DataFrame([{"id": "hw", "name": "Homework"}])
    with pytest.raises(ValueError, match="weight"):
        validate_categories_csv(df)


def test_parse_grade_scale():
    bands = parse_grade_scale("B: 80\nA = 90%\n\nC 70\nF: 0\nB: 82\n")
    assert bands == [GradeBand("A", 90), GradeBand("B", 82), GradeBand("C", 70), GradeBand("F", 0)]


def test_parse_grade_scale_empty():
    assert parse_grade_scale("   ") == []


def test_parse_grade_scale_invalid_line():
    with pytest.raises(ValueError, match="Invalid line"):
        parse_grade_scale("A: ninety")


def test_load_grade_scale_mapping(tmp_path):
    path = tmp_path / "scale.yml"
    path.write_text("grade_bands:\n  Pass: 50\n  Distinction: 70\n  Fail: 0\n", encoding="utf-8")

    bands = load_grade_scale(path)

    assert [b.label for b in bands] == ["Distinction", "Pass", "Fail"]


def test_load_grade_scale_list(tmp_path):
    path = tmp_path / "scale.yaml"
    path.write_text("- {label: S, min: 60}\n- {label: U, min: 0}\n", encoding="utf-8")
    assert load_grade_scale(path) == [GradeBand("S", 60), GradeBand("U", 0)]


def test_load_grade_scale_rejects_other_shapes(tmp_path):
    path = tmp_path / "scale.yaml"
    path.write_text("just a string\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_grade_scale(path)


def test_breakdown_frame():
    categories = [Category("hw", "Homework", 30), Category("exams", "Exams", 70)]
    assignments = [Assignment("1", "HW1", "hw", 18, 20), Assignment("2", "HW2", "hw", 16, 20)]
    frame = breakdown_frame(compute_course_grade(assignments, categories))

    assert list(frame["Category"]) == ["Homework"]
    assert frame.loc[0, "Weight (%)"] == 100.0
    assert frame.loc[0, "Grade (%)"] == 85.0
    assert frame.loc[0, "Assignments"] == 2


def test_breakdown_frame_points_model_is_empty():
    frame = breakdown_frame(compute_course_grade([Assignment("1", "A", "x", 1, 2)], [], "points"))
    assert frame.empty
    assert "Grade (%)" in frame.columns
