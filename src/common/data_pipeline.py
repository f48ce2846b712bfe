# ABOUTME: Builds canonical student, assessment, error, and exam records from table files.
# ABOUTME: Loads a directory of canonical CSVs into the in-memory repository.

import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import typer

from .errors import InvalidInput
from .repository import InMemoryRepository
from .schemas import (
    ASSESSMENT_KINDS,
    ERROR_CATEGORIES,
    MEDICAL_SYSTEMS,
    AssessmentRecord,
    ErrorEvent,
    Student,
    UpcomingExam,
)
from .settings import InstitutionSettings, load_settings_by_institution

logger = logging.getLogger(__name__)

STUDENTS_FILE = "students.csv"
ASSESSMENTS_FILE = "assessments.csv"
ERRORS_FILE = "error_events.csv"
EXAMS_FILE = "exams.csv"
SETTINGS_FILE = "institution_settings.yaml"

REQUIRED_COLUMNS = {
    STUDENTS_FILE: ["student_id", "institution_id"],
    ASSESSMENTS_FILE: ["assessment_id", "student_id", "kind", "date_taken"],
    ERRORS_FILE: ["assessment_id", "category", "system"],
    EXAMS_FILE: ["exam_id", "student_id", "name", "scheduled_date"],
}

app = typer.Typer(help="Validate canonical table directories.")


def _clean(value):
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    return value


def _optional_str(value) -> Optional[str]:
    value = _clean(value)
    return None if value is None else str(value)


def _optional_float(value) -> Optional[float]:
    value = _clean(value)
    return None if value is None else float(value)


def _optional_int(value) -> Optional[int]:
    value = _clean(value)
    return None if value is None else int(value)


def _weight_or_default(value, default: float = 1.0) -> float:
    weight = _optional_float(value)
    return default if weight is None else weight


def _as_bool(value) -> bool:
    value = _clean(value)
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return bool(value)


def _read_table(data_dir: Path, name: str, required: bool = True) -> pd.DataFrame:
    path = data_dir / name
    if not path.exists():
        if required:
            raise InvalidInput(f"Missing required table {path}")
        return pd.DataFrame(columns=REQUIRED_COLUMNS[name])
    df = pd.read_csv(path, dtype={"student_id": str, "assessment_id": str, "exam_id": str, "institution_id": str})
    missing = [c for c in REQUIRED_COLUMNS[name] if c not in df.columns]
    if missing:
        raise InvalidInput(f"{path} is missing column(s): {', '.join(missing)}")
    return df


def _parse_timestamps(df: pd.DataFrame, column: str, source: str) -> pd.DataFrame:
    df = df.copy()
    df[column] = pd.to_datetime(df[column], utc=True, errors="coerce")
    bad = df[df[column].isna()]
    if not bad.empty:
        raise InvalidInput(f"{source}: unparseable {column} in row(s) {', '.join(str(i) for i in bad.index)}")
    return df


def _check_error_links(errors_df: pd.DataFrame, assessments_df: pd.DataFrame) -> None:
    known = set(assessments_df["assessment_id"].astype(str))
    orphans = errors_df[~errors_df["assessment_id"].astype(str).isin(known)]
    if not orphans.empty:
        rows = ", ".join(f"{idx} ({aid})" for idx, aid in orphans["assessment_id"].items())
        raise InvalidInput(f"{ERRORS_FILE}: unknown assessment_id in row(s) {rows}")


def build_error_events(errors_df: pd.DataFrame) -> Dict[str, List[ErrorEvent]]:
    """Group error rows by assessment id, rejecting unknown vocabulary values."""

    grouped: Dict[str, List[ErrorEvent]] = {}
    for idx, row in errors_df.iterrows():
        category = str(row["category"]).strip().lower()
        system = str(row["system"]).strip().lower()
        if category not in ERROR_CATEGORIES:
            raise InvalidInput(f"{ERRORS_FILE} row {idx}: unknown error category '{category}'")
        if system not in MEDICAL_SYSTEMS:
            raise InvalidInput(f"{ERRORS_FILE} row {idx}: unknown system '{system}'")
        grouped.setdefault(str(row["assessment_id"]), []).append(
            ErrorEvent(
                category=category,
                system=system,
                topic=_optional_str(row.get("topic")),
                question_ref=_optional_str(row.get("question_ref")),
                reflection=_optional_str(row.get("reflection")),
            )
        )
    return grouped


def build_assessments(assessments_df: pd.DataFrame, errors: Dict[str, List[ErrorEvent]]) -> List[AssessmentRecord]:
    records: List[AssessmentRecord] = []
    for idx, row in assessments_df.iterrows():
        kind = str(row["kind"]).strip().lower()
        if kind not in ASSESSMENT_KINDS:
            raise InvalidInput(f"{ASSESSMENTS_FILE} row {idx}: unknown assessment kind '{kind}'")
        fraction = _optional_float(row.get("fraction_correct"))
        if fraction is not None and not 0.0 <= fraction <= 1.0:
            raise InvalidInput(f"{ASSESSMENTS_FILE} row {idx}: fraction_correct must be within [0, 1]")
        assessment_id = str(row["assessment_id"])
        records.append(
            AssessmentRecord(
                assessment_id=assessment_id,
                student_id=str(row["student_id"]),
                kind=kind,
                date_taken=row["date_taken"].to_pydatetime(),
                name=_optional_str(row.get("name")) or "",
                score=_optional_float(row.get("score")),
                fraction_correct=fraction,
                question_count=_optional_int(row.get("question_count")),
                notes=_optional_str(row.get("notes")),
                errors=tuple(errors.get(assessment_id, [])),
            )
        )
    return records


def build_students(students_df: pd.DataFrame) -> List[Student]:
    return [
        Student(
            student_id=str(row["student_id"]),
            institution_id=str(row["institution_id"]),
            user_id=_optional_str(row.get("user_id")),
            full_name=_optional_str(row.get("full_name")) or "",
            class_year=_optional_int(row.get("class_year")),
            current_clerkship=_optional_str(row.get("current_clerkship")),
            has_accommodations=_as_bool(row.get("has_accommodations")),
        )
        for _, row in students_df.iterrows()
    ]


def build_exams(exams_df: pd.DataFrame) -> List[UpcomingExam]:
    return [
        UpcomingExam(
            exam_id=str(row["exam_id"]),
            student_id=str(row["student_id"]),
            name=str(row["name"]),
            scheduled_date=row["scheduled_date"].to_pydatetime(),
            content_weight=_weight_or_default(row.get("content_weight")),
            exam_type_code=_optional_str(row.get("exam_type_code")),
            outcome=_optional_str(row.get("outcome")),
        )
        for _, row in exams_df.iterrows()
    ]


def load_canonical_tables(
    data_dir: Path,
    default_settings: Optional[InstitutionSettings] = None,
) -> InMemoryRepository:
    """
    Read canonical tables from data_dir into a fresh in-memory repository.

    students.csv, assessments.csv, and exams.csv are required; error_events.csv
    and institution_settings.yaml are optional. Institutions without an entry
    in institution_settings.yaml use default_settings, and entries are merged
    over them.
    """

    data_dir = Path(data_dir)
    students_df = _read_table(data_dir, STUDENTS_FILE)
    assessments_df = _parse_timestamps(_read_table(data_dir, ASSESSMENTS_FILE), "date_taken", ASSESSMENTS_FILE)
    errors_df = _read_table(data_dir, ERRORS_FILE, required=False)
    exams_df = _parse_timestamps(_read_table(data_dir, EXAMS_FILE), "scheduled_date", EXAMS_FILE)

    assessments = build_assessments(assessments_df, build_error_events(errors_df))
    _check_error_links(errors_df, assessments_df)

    repo = InMemoryRepository(default_settings)
    for student in build_students(students_df):
        repo.add_student(student)
    for assessment in assessments:
        repo.add_assessment(assessment)
    for exam in build_exams(exams_df):
        repo.add_exam(exam)

    settings_path = data_dir / SETTINGS_FILE
    if settings_path.exists():
        for institution_id, settings in load_settings_by_institution(settings_path, repo.default_settings).items():
            repo.save_institution_settings(institution_id, settings)

    logger.info(
        "Loaded %d students, %d assessments, %d exams from %s",
        len(repo.students),
        len(assessments_df),
        len(exams_df),
        data_dir,
    )
    return repo


@app.command()
def check(
    data_dir: Path = typer.Option(..., exists=True, file_okay=False, help="Directory of canonical tables."),
) -> None:
    typer.echo(f"[data] Loading canonical tables from {data_dir}")
    try:
        repo = load_canonical_tables(data_dir)
    except InvalidInput as exc:
        raise typer.BadParameter(str(exc), param_hint="--data-dir") from exc
    assessments = sum(len(v) for v in repo.assessments.values())
    exams = sum(len(v) for v in repo.exams.values())
    typer.echo(f"[data] Students={len(repo.students)} Assessments={assessments} Exams={exams}")


if __name__ == "__main__":
    app()
