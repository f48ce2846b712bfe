# ABOUTME: Provides a CLI that scores students and builds study plans from canonical tables.
# ABOUTME: Prints risk profiles, weekly plans, what-if projections, and cohort summaries.

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from src.common.data_pipeline import load_canonical_tables
from src.common.errors import RiskEngineError
from src.common.policy import Principal
from src.common.schemas import utcnow
from src.common.service import StudentRiskService
from src.common.settings import load_institution_settings
from src.plan_allocator.simulation import ExamDateChange
from src.risk_scorer.cohort import build_cohort_frame
from src.risk_scorer.scoring import explain_risk_score

console = Console()
app = typer.Typer(help="Score exam risk and allocate study time from canonical tables.")

CLI_USER = "risk-cli"
DEFAULT_CONFIG = Path("configs/institution_default.yaml")


def _open_service(data_dir: Path, config: Path) -> StudentRiskService:
    defaults = load_institution_settings(config) if config.exists() else None
    if defaults is None:
        console.print(f"[yellow]No settings file at {config}; using built-in defaults[/yellow]")
    return StudentRiskService(load_canonical_tables(data_dir, default_settings=defaults))


def _admin_for(service: StudentRiskService, student_id: str) -> Principal:
    student = service.repository.get_student(student_id)
    institution_id = student.institution_id if student is not None else ""
    return Principal(user_id=CLI_USER, role="admin", institution_id=institution_id)


def _print_profile(profile, components) -> None:
    console.print(f"[bold]Student:[/] {profile.student_id}")
    console.print(f"[bold]Risk score:[/] {profile.overall_risk_score:.1f} ({profile.risk_tier})")
    recent = "n/a" if profile.recent_performance is None else f"{profile.recent_performance:.0%}"
    console.print(f"[bold]Trend:[/] {profile.trend_direction}  [bold]Recent performance:[/] {recent}")
    console.print(f"[bold]Errors analyzed:[/] {profile.total_errors_analyzed}")

    component_table = Table(show_header=True, header_style="bold magenta")
    component_table.add_column("Component")
    component_table.add_column("Points", justify="right")
    for name, value in components.items():
        component_table.add_row(name, f"{value:.2f}")
    console.print(component_table)

    error_table = Table(show_header=True, header_style="bold magenta")
    error_table.add_column("Error category")
    error_table.add_column("Count", justify="right")
    for category, count in profile.error_counts.items():
        error_table.add_row(category, str(count))
    console.print(error_table)

    if profile.system_weaknesses:
        system_table = Table(show_header=True, header_style="bold magenta")
        system_table.add_column("System")
        system_table.add_column("Errors", justify="right")
        for system, count in sorted(profile.system_weaknesses.items(), key=lambda kv: kv[1], reverse=True):
            system_table.add_row(system, str(count))
        console.print(system_table)


@app.command()
def profile(
    data_dir: Path = typer.Option(..., "--data-dir", exists=True, file_okay=False, help="Directory of canonical tables."),
    student_id: str = typer.Option(..., "--student-id", help="Student identifier in the canonical tables."),
    as_of: Optional[datetime] = typer.Option(None, "--as-of", help="Reference time for the 30-day window."),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Default institution settings YAML."),
) -> None:
    """
    Compute and print a student's risk profile with its score breakdown.
    """
    typer.echo(f"[risk] Loading canonical tables from {data_dir}")
    try:
        service = _open_service(data_dir, config)
        principal = _admin_for(service, student_id)
        result = service.recalculate_risk_profile(principal, student_id, reference_time=as_of)
        components = explain_risk_score(service.repository.list_assessments(student_id), reference_time=as_of)
        actions = service.top_actions(principal, student_id, reference_time=as_of)
        settings = service.get_institution_settings(principal, principal.institution_id)
    except RiskEngineError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    console.rule("[bold blue]Risk Profile[/bold blue]")
    _print_profile(result, components)
    for alert in service.repository.list_alerts(student_id):
        color = "red" if alert.severity == "critical" else "yellow" if alert.severity == "warning" else "cyan"
        console.print(f"[{color}]{alert.title} ({alert.severity})[/{color}]")
    if actions:
        console.print("[bold]Top actions:[/]")
        for number, action in enumerate(actions, start=1):
            console.print(f"  {number}. {action}")
    if settings.disclaimer_text:
        console.print(f"[dim]{settings.disclaimer_text}[/dim]")


@app.command()
def plan(
    data_dir: Path = typer.Option(..., "--data-dir", exists=True, file_okay=False, help="Directory of canonical tables."),
    student_id: str = typer.Option(..., "--student-id", help="Student identifier in the canonical tables."),
    weekly_hours: Optional[float] = typer.Option(None, "--weekly-hours", help="Hours per week; defaults to institution settings."),
    start_date: datetime = typer.Option(..., "--start-date", help="First day of the plan."),
    daily_cap: Optional[float] = typer.Option(None, "--daily-cap", help="Daily hour cap stored on the plan."),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Default institution settings YAML."),
) -> None:
    """
    Score the student, then generate and print a week-by-week study plan.
    """
    typer.echo(f"[plan] Loading canonical tables from {data_dir}")
    try:
        service = _open_service(data_dir, config)
        principal = _admin_for(service, student_id)
        service.recalculate_risk_profile(principal, student_id, reference_time=start_date)
        study_plan = service.generate_study_plan(
            principal,
            student_id,
            start_date=start_date,
            weekly_hours_available=weekly_hours,
            daily_hours_cap=daily_cap,
        )
    except RiskEngineError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    console.rule(f"[bold blue]{study_plan.title}[/bold blue]")
    console.print(
        f"[bold]Weeks:[/] {len(study_plan.weeks)}  [bold]Hours/week:[/] {study_plan.weekly_hours_available:g}"
        f"  [bold]Ends:[/] {study_plan.end_date.date().isoformat()}"
    )

    allocation_table = Table(show_header=True, header_style="bold magenta")
    allocation_table.add_column("Exam")
    allocation_table.add_column("Weeks until", justify="right")
    allocation_table.add_column("Hours/week", justify="right")
    for allocation in study_plan.exam_allocations:
        allocation_table.add_row(
            allocation["exam_name"],
            str(allocation["weeks_until_exam"]),
            f"{allocation['allocated_weekly_hours']:.1f}",
        )
    console.print(allocation_table)

    week_table = Table(show_header=True, header_style="bold magenta")
    week_table.add_column("Week", justify="right")
    week_table.add_column("Hours", justify="right")
    week_table.add_column("Questions", justify="right")
    week_table.add_column("Systems")
    week_table.add_column("Error focus")
    for week in study_plan.weeks:
        week_table.add_row(
            str(week.week_number),
            f"{week.allocated_hours:.1f}",
            str(week.target_questions),
            ", ".join(week.focus_systems),
            ", ".join(week.focus_error_categories),
        )
    console.print(week_table)


@app.command()
def simulate(
    data_dir: Path = typer.Option(..., "--data-dir", exists=True, file_okay=False, help="Directory of canonical tables."),
    student_id: str = typer.Option(..., "--student-id", help="Student identifier in the canonical tables."),
    hours_change: Optional[float] = typer.Option(None, "--hours-change", help="Change in weekly study hours."),
    exam_id: Optional[str] = typer.Option(None, "--exam-id", help="Exam to move."),
    new_date: Optional[datetime] = typer.Option(None, "--new-date", help="New date for --exam-id."),
    as_of: Optional[datetime] = typer.Option(None, "--as-of", help="Reference time for the projection."),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Default institution settings YAML."),
) -> None:
    """
    Project how moving an exam or changing weekly hours would shift risk.
    """
    if (exam_id is None) != (new_date is None):
        raise typer.BadParameter("--exam-id and --new-date must be given together", param_hint="--exam-id")

    typer.echo(f"[plan] Loading canonical tables from {data_dir}")
    try:
        service = _open_service(data_dir, config)
        principal = _admin_for(service, student_id)
        service.recalculate_risk_profile(principal, student_id, reference_time=as_of)
        start = as_of or utcnow()
        study_plan = service.generate_study_plan(principal, student_id, start_date=start)
        change = ExamDateChange(exam_id=exam_id, new_date=new_date) if exam_id is not None else None
        result = service.simulate_adjustment(
            principal,
            study_plan.plan_id,
            exam_date_change=change,
            hours_change=hours_change,
            reference_time=as_of,
        )
    except RiskEngineError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    console.rule("[bold blue]What-if Projection[/bold blue]")
    console.print(f"[bold]Projected risk change:[/] {result.projected_risk_change:+.1f}")
    for message in result.recommendations:
        console.print(f"  - {message}")
    if result.weekly_hour_impact:
        console.print(
            "[bold]Weekly hour impact:[/] " + ", ".join(f"{delta:+.1f}" for delta in result.weekly_hour_impact)
        )
    console.print(f"[dim]{result.advisory_note}[/dim]")


@app.command()
def cohort(
    data_dir: Path = typer.Option(..., "--data-dir", exists=True, file_okay=False, help="Directory of canonical tables."),
    institution_id: str = typer.Option(..., "--institution-id", help="Institution to summarize."),
    class_year: Optional[int] = typer.Option(None, "--class-year", help="Only students of this class year."),
    output: Optional[Path] = typer.Option(None, "--output", help="Optional parquet path for the per-student frame."),
    as_of: Optional[datetime] = typer.Option(None, "--as-of", help="Reference time for the 30-day window."),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Default institution settings YAML."),
) -> None:
    """
    Score every student of an institution and print the tier distribution.
    """
    typer.echo(f"[risk] Loading canonical tables from {data_dir}")
    try:
        service = _open_service(data_dir, config)
        principal = Principal(user_id=CLI_USER, role="admin", institution_id=institution_id)
        students = service.repository.list_students(institution_id)
        for student in students:
            service.recalculate_risk_profile(principal, student.student_id, reference_time=as_of)
        summary = service.cohort_summary(principal, institution_id, class_year=class_year, reference_time=as_of)
        clerkships = service.clerkship_comparisons(principal, institution_id)
    except RiskEngineError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    console.rule(f"[bold blue]Cohort {institution_id}[/bold blue]")
    console.print(f"[bold]Students:[/] {summary.total_students}  [bold]Average risk:[/] {summary.average_risk_score:.1f}")

    tier_table = Table(show_header=True, header_style="bold magenta")
    tier_table.add_column("Tier")
    tier_table.add_column("Students", justify="right")
    tier_table.add_column("Share", justify="right")
    for share in summary.distribution:
        tier_table.add_row(share.risk_tier, str(share.count), f"{share.percentage:.1f}%")
    console.print(tier_table)

    if clerkships:
        clerkship_table = Table(show_header=True, header_style="bold magenta")
        clerkship_table.add_column("Clerkship")
        clerkship_table.add_column("Students", justify="right")
        clerkship_table.add_column("Average risk", justify="right")
        clerkship_table.add_column("Top error")
        for stats in clerkships:
            clerkship_table.add_row(
                stats.clerkship_name,
                str(stats.student_count),
                f"{stats.average_risk_score:.1f}",
                stats.top_error_type or "-",
            )
        console.print(clerkship_table)

    if output is not None:
        frame = build_cohort_frame(students, service.repository.risk_profiles)
        if class_year is not None:
            frame = frame[frame["class_year"] == class_year]
        output.parent.mkdir(parents=True, exist_ok=True)
        frame.to_parquet(output, index=False)
        console.print(f"[bold]Saved {len(frame):,} rows to {output}[/bold]")


if __name__ == "__main__":
    app()
