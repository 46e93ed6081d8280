"""CLI commands for the tutoring engine.

Commands:
- init-db: Create the SQLite schema
- add-student / students: Register and list students
- record: Record a progress update
- report: Analytics report and scorecard
- lesson: Generate a lesson at the student's difficulty
- chat: Interactive tutoring session
- score: Share of curriculum topics completed
- topics / discover-topics / complete-topic: Curriculum topics
- history: Recent progress events
- purge-expired: Delete progress events past retention
"""

from pathlib import Path

import typer
from rich.console import Console

from schooltutor.config.app_config import load_app_config
from schooltutor.core.adaptation import DIFFICULTY_WINDOW, calculate_difficulty
from schooltutor.core.errors import (
    InvalidRequestError,
    SessionNotFoundError,
    StudentNotFoundError,
    TopicNotFoundError,
    TutorError,
)
from schooltutor.core.generator import GenerationTier, generate_content
from schooltutor.core.models import Engagement, StudentProfile, generate_student_id
from schooltutor.db.database import init_db
from schooltutor.utils.text_utils import truncate
from schooltutor.web.services import (
    get_curriculum_service,
    get_content_generator,
    get_profile_store,
    get_progress_service,
    get_progress_store,
    get_tutor_engine,
)

app = typer.Typer(
    name="tutor",
    help="Adaptive tutoring and progress analytics for school students.",
    no_args_is_help=True,
)

console = Console()

EXIT_WORDS = {"exit", "quit", "bye"}


def _load_student_or_exit(student_id: str) -> StudentProfile:
    """Load an active student, or exit with a helpful error."""
    try:
        return get_profile_store().get_active(student_id)
    except StudentNotFoundError as e:
        console.print(f"[red]✗ {e}[/red]")
        students = get_profile_store().list()
        if students:
            console.print("\nStudents available:")
            for s in students:
                console.print(f"  - {s.student_id}  {s.name}")
        raise typer.Exit(code=1)


def _tier_style(tier: GenerationTier) -> str:
    return {
        GenerationTier.REMOTE: "green",
        GenerationTier.TEMPLATE: "yellow",
        GenerationTier.STATIC: "red",
    }[tier]


@app.command(name="init-db")
def init_database() -> None:
    """Create the database schema."""
    path = init_db(Path(load_app_config().storage.db_path))
    console.print(f"[green]✓ Database ready:[/green] {path}")


@app.command(name="add-student")
def add_student(
    name: str = typer.Argument(..., help="Student name"),
    grade: str = typer.Option("", "--grade", "-g", help="Grade, e.g. 8 or 'Grade 8'"),
    board: str = typer.Option("", "--board", "-b", help="Education board, e.g. CBSE"),
    country: str = typer.Option("", "--country", help="Country"),
    school: str = typer.Option("", "--school", help="School name"),
    subjects: str = typer.Option("", "--subjects", "-s", help="Comma-separated subjects"),
    pace: str = typer.Option("medium", "--pace", help="Learning pace: slow, medium, fast"),
    with_topics: bool = typer.Option(True, "--topics/--no-topics", help="Seed curriculum topics"),
) -> None:
    """Register a new student."""
    name = name.strip()
    if not name:
        console.print("[red]✗ Name is required[/red]")
        raise typer.Exit(code=1)
    if pace not in ("slow", "medium", "fast"):
        console.print(f"[red]✗ Invalid pace '{pace}' (slow, medium, fast)[/red]")
        raise typer.Exit(code=1)

    store = get_profile_store()
    existing = store.find_by_name(name)
    if existing:
        console.print(f"[yellow]⚠ '{name}' already exists with ID {existing.student_id}[/yellow]")
        raise typer.Exit(code=1)

    profile = StudentProfile(
        student_id=generate_student_id(),
        name=name,
        grade=grade,
        board=board,
        country=country,
        school=school,
        subjects=[s.strip() for s in subjects.split(",") if s.strip()],
        learning_pace=pace,
    )
    store.put(profile)

    console.print(f"[green]✓ Student registered:[/green] {profile.name}")
    console.print(f"  ID: {profile.student_id}")
    console.print(f"  Profile completeness: {profile.profile_completeness}%")
    if with_topics:
        created = get_curriculum_service().discover_topics(profile)
        console.print(f"  Curriculum topics: {len(created)}")


@app.command()
def students(
    all_students: bool = typer.Option(False, "--all", "-a", help="Include inactive students"),
) -> None:
    """List registered students."""
    from rich.table import Table

    profiles = get_profile_store().list(active_only=not all_students)
    if not profiles:
        console.print("[dim]No students registered. Use 'tutor add-student'.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Grade", justify="center")
    table.add_column("Board")
    table.add_column("Subjects")
    table.add_column("Active", justify="center")

    for p in profiles:
        table.add_row(
            p.student_id,
            p.name,
            p.grade or "-",
            p.board or "-",
            ", ".join(p.subjects) or "-",
            "✓" if p.is_active else "✗",
        )

    console.print(table)


@app.command()
def record(
    student_id: str = typer.Argument(..., help="Student ID"),
    subject: str = typer.Argument(..., help="Subject"),
    score: float | None = typer.Option(None, "--score", help="Performance score 0-100"),
    minutes: float | None = typer.Option(None, "--minutes", "-m", help="Time spent (minutes)"),
    participation: float | None = typer.Option(None, "--participation", help="Participation 0-100"),
    completed: bool | None = typer.Option(None, "--completed/--not-completed", help="Activity completed"),
    activity: str | None = typer.Option(None, "--activity", help="Activity description"),
) -> None:
    """Record a progress update for a student."""
    engagement = None
    if participation is not None:
        engagement = Engagement(participation=participation, score=participation)

    try:
        result = get_progress_service().record_progress(
            student_id=student_id,
            subject=subject,
            activity=activity,
            score=score,
            engagement=engagement,
            time_spent=minutes,
            completed=completed,
        )
    except (InvalidRequestError, StudentNotFoundError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print("[green]✓ Progress recorded[/green]")
    console.print(f"  Engagement score: {result['engagement_score']}")
    if result["knowledge_level"]:
        console.print(f"  Knowledge level ({subject}): {result['knowledge_level']['level']}")


@app.command()
def report(
    student_id: str = typer.Argument(..., help="Student ID"),
    period: str = typer.Option("30d", "--period", "-p", help="Period: 7d, 30d, 90d"),
) -> None:
    """Show the analytics report and scorecard for a student."""
    from rich.table import Table

    profile = _load_student_or_exit(student_id)
    service = get_progress_service()
    analytics = service.get_analytics(student_id, period=period)
    card = service.get_scorecard(student_id, period=period)

    console.print(f"\n[bold]{profile.name}[/bold] - last {analytics['period']}")
    console.print(
        f"Overall grade: [bold]{card['overall_grade']}[/bold] ({card['overall_score']})"
    )

    overview = analytics["overview"]
    console.print(
        f"Sessions: {overview['total_sessions']}  "
        f"Time: {overview['total_time_spent']} min  "
        f"Streak: {overview['streak_days']} days"
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("Category", style="cyan")
    table.add_column("Score", justify="center")
    table.add_column("Trend", justify="center")
    for name, category in card["categories"].items():
        table.add_row(name.replace("_", " ").title(), str(category["score"]), category["trend"])
    console.print(table)

    subjects = analytics["subjects"]
    if subjects:
        subject_table = Table(show_header=True, header_style="bold")
        subject_table.add_column("Subject", style="cyan")
        subject_table.add_column("Sessions", justify="center")
        subject_table.add_column("Average", justify="center")
        subject_table.add_column("Time (min)", justify="center")
        for subject, data in subjects.items():
            subject_table.add_row(
                subject,
                str(data["total_sessions"]),
                str(data["average_performance"]),
                str(data["total_time_spent"]),
            )
        console.print(subject_table)

    recs = service.get_recommendations(student_id)
    if recs["recommendations"]:
        console.print("\n[bold]Recommendations[/bold]")
        for rec in recs["recommendations"]:
            title = rec.get("title") or rec["message"]
            detail = rec.get("description") or rec["action"]
            console.print(f"  • {title}: {detail}")


@app.command()
def lesson(
    student_id: str = typer.Argument(..., help="Student ID"),
    subject: str = typer.Argument(..., help="Subject"),
    topic: str = typer.Argument(..., help="Topic"),
) -> None:
    """Generate a lesson at the difficulty suited to the student."""
    profile = _load_student_or_exit(student_id)
    history = get_progress_store().query(
        student_id, subject=subject, limit=DIFFICULTY_WINDOW, outcomes_only=True
    )
    difficulty = calculate_difficulty(history)

    with console.status("[bold blue]Generating lesson...[/bold blue]"):
        content = generate_content(
            profile,
            subject,
            topic,
            difficulty=difficulty,
            request_context={"record": True},
            generator=get_content_generator(),
        )

    style = _tier_style(content.tier)
    console.print(f"[dim]difficulty: {difficulty}[/dim]  [{style}]source: {content.tier.value}[/{style}]\n")
    console.print(content.text, markup=False)


@app.command()
def chat(
    student_id: str = typer.Argument(..., help="Student ID"),
    subject: str = typer.Argument(..., help="Subject"),
    topic: str = typer.Argument(..., help="Topic"),
) -> None:
    """Start an interactive tutoring session. Type 'exit' to finish."""
    _load_student_or_exit(student_id)
    engine = get_tutor_engine()

    try:
        session = engine.start_session(student_id, subject, topic)
    except TutorError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[dim]Session {session.id}[/dim]\n")
    console.print(session.turns[-1].content, markup=False)

    while True:
        text = typer.prompt("\nYou").strip()
        if not text:
            continue
        if text.lower() in EXIT_WORDS:
            break

        try:
            with console.status("[bold blue]Thinking...[/bold blue]"):
                reply = engine.send_message(session.id, text)
        except SessionNotFoundError:
            console.print("[yellow]⚠ Session expired.[/yellow]")
            return

        if reply.phase_changed:
            console.print(f"[magenta]→ {reply.session.state.current_phase.value}[/magenta]")
        console.print(f"\n{reply.turn.content}", markup=False)

    summary = engine.end_session(session.id)
    if summary is None:
        return

    console.print("\n[green]✓ Session finished[/green]")
    console.print(f"  Phase reached: {summary['final_phase']}")
    console.print(f"  Time spent: {summary['time_spent']} min")
    if summary["performance"]:
        console.print(f"  Score: {summary['performance']['score']}")


@app.command()
def score(student_id: str = typer.Argument(..., help="Student ID")) -> None:
    """Share of curriculum topics completed, overall and per subject."""
    _load_student_or_exit(student_id)
    result = get_curriculum_service().student_score(student_id)
    console.print(
        f"Score: {result['score']}% "
        f"({result['completed_topics']}/{result['total_topics']} topics completed)"
    )
    for subject, entry in result["subject_breakdown"].items():
        console.print(
            f"  {subject}: {entry['score']}% "
            f"({entry['completed_topics']}/{entry['total_topics']})"
        )


@app.command()
def topics(
    student_id: str = typer.Argument(..., help="Student ID"),
    subject: str | None = typer.Option(None, "--subject", "-s", help="Only this subject"),
) -> None:
    """List the student's curriculum topics."""
    from rich.table import Table

    _load_student_or_exit(student_id)
    rows = get_curriculum_service().list_topics(student_id, subject=subject)
    if not rows:
        console.print("[dim]No topics yet. Use 'tutor discover-topics'.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Subject")
    table.add_column("Ch.", justify="right")
    table.add_column("Topic")
    table.add_column("Level")
    table.add_column("Done", justify="center")

    for t in rows:
        done = f"[green]✓ {t.completion_score:.0f}[/green]" if t.is_completed else "[dim]-[/dim]"
        table.add_row(t.topic_id, t.subject, str(t.chapter), t.name, t.difficulty, done)

    console.print(table)


@app.command(name="discover-topics")
def discover_topics(student_id: str = typer.Argument(..., help="Student ID")) -> None:
    """Seed topics for subjects that have none yet."""
    profile = _load_student_or_exit(student_id)
    created = get_curriculum_service().discover_topics(profile)
    console.print(f"[green]✓ {len(created)} topic(s) added[/green]")


@app.command(name="complete-topic")
def complete_topic(
    student_id: str = typer.Argument(..., help="Student ID"),
    topic_id: str = typer.Argument(..., help="Topic ID (see 'tutor topics')"),
    topic_score: float | None = typer.Option(None, "--score", help="Score 0-100 (default 100)"),
) -> None:
    """Mark a curriculum topic completed."""
    _load_student_or_exit(student_id)
    try:
        topic = get_curriculum_service().complete_topic(student_id, topic_id, score=topic_score)
    except (TopicNotFoundError, InvalidRequestError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Completed:[/green] {topic.name} ({topic.completion_score:.0f})")


@app.command(name="purge-expired")
def purge_expired() -> None:
    """Delete progress events past the retention period."""
    removed = get_progress_store().purge_expired()
    console.print(f"[green]✓ Removed {removed} expired event(s)[/green]")


@app.command()
def history(
    student_id: str = typer.Argument(..., help="Student ID"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of events"),
) -> None:
    """Show the most recent progress events for a student."""
    _load_student_or_exit(student_id)
    for event in get_progress_store().query(student_id, limit=limit):
        score = f"{event.score:.0f}" if event.score is not None else "-"
        detail = truncate(event.activity or event.notes or "", 60)
        console.print(
            f"[dim]{event.timestamp}[/dim] [cyan]{event.event_type.value}[/cyan] "
            f"{event.subject} score={score} {detail}"
        )


if __name__ == "__main__":
    app()
