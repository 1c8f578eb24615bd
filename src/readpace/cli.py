"""Command-line interface for readpace.

Built with Typer for commands and Rich for output.
"""

import json
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from .config import get_config
from .content import ContentManager
from .db import get_db
from .db.schemas import Language, ReadingMode, XPEventType
from .errors import ReadPaceError
from .log import configure_logging
from .quiz import QuizManager
from .reading import PlaybackState, SessionManager, StateChange, build_units
from .stats import AnalyticsPeriod, ReadingAnalytics, period_start
from .xp import XPAward, XPManager

# Create the main app
app = typer.Typer(
    name="readpace",
    help="Speed-reading trainer with comprehension quizzes and XP.",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def format_duration(duration_ms: int) -> str:
    """Format milliseconds as e.g. '1m 05s' or '12.3s'."""
    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs:02d}s"


def progress_bar(percent: float, width: int = 20) -> str:
    """Text progress bar."""
    filled = int(width * min(100.0, percent) / 100)
    return "█" * filled + "░" * (width - filled)


def show_award(award: Optional[XPAward]) -> None:
    """Print an XP award and any level-up."""
    if award is None:
        return
    console.print(
        f"[bold yellow]+{award.transaction.amount} XP[/bold yellow] "
        f"[dim]{award.transaction.description}[/dim]"
    )
    if award.level_up:
        console.print(f"[bold magenta]Level up! You are now level {award.level_after}.[/bold magenta]")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level (default: READPACE_LOG_LEVEL or WARNING)"
    ),
) -> None:
    """Read faster, check comprehension, earn XP."""
    config = get_config()
    errors = config.validate()
    if errors:
        for error in errors:
            print_error(error)
        raise typer.Exit(1)
    configure_logging(log_level or config.log_level)


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"readpace version {__version__}")


# ============================================================================
# Content Commands
# ============================================================================


@app.command()
def add(
    text: Optional[str] = typer.Argument(None, help="Text to read (or use --file)"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read text from a UTF-8 file"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title (default: first line)"),
    language: Language = typer.Option(Language.EN, "--language", "-l", help="Content language"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Owner user ID"),
) -> None:
    """Add reading content by pasting text or uploading a file."""
    if not text and not file:
        print_error("Provide text or --file")
        raise typer.Exit(1)

    manager = ContentManager(get_db())
    try:
        if file:
            content = manager.create_from_file(
                file, language=language, title=title, created_by_user_id=user
            )
        else:
            content = manager.create_content(
                text, language=language, title=title, created_by_user_id=user
            )
    except OSError as e:
        print_error(f"Cannot read {file}: {e}")
        raise typer.Exit(1)
    except ReadPaceError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added: {content.title} ({content.word_count} words)")
    print_info(f"ID: {content.id}")


@app.command()
def contents(
    limit: int = typer.Option(10, "--limit", "-n", help="Max items to show"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Only this user's content"),
) -> None:
    """List recently added content."""
    items = ContentManager(get_db()).get_recent_content(user_id=user, limit=limit)
    if not items:
        console.print("[dim]No content yet. Add some with 'readpace add'.[/dim]")
        return

    table = Table(title="Reading Content", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Words", justify="right")
    table.add_column("Lang", justify="center")
    table.add_column("Source", style="yellow")

    for item in items:
        table.add_row(item.id, item.title or "-", str(item.word_count), item.language, item.source)

    console.print(table)


# ============================================================================
# Reading Commands
# ============================================================================


@app.command()
def read(
    content_id: str = typer.Argument(..., help="ID of the content to read"),
    mode: ReadingMode = typer.Option(ReadingMode.WORD, "--mode", "-m", help="Reading mode"),
    pace: int = typer.Option(300, "--pace", "-p", help="Pace in words per minute"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", "-c", help="Words per chunk"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Reader, to earn XP"),
    device: Optional[str] = typer.Option(None, "--device", help="Device ID for analytics"),
) -> None:
    """Read content at a fixed pace. Press Ctrl-C to pause."""
    db = get_db()
    config = get_config()
    sessions = SessionManager(db, config)

    if mode == ReadingMode.CHUNK and chunk_size is None:
        chunk_size = 3

    try:
        content = ContentManager(db).get_content(content_id)
        units = build_units(content.text, mode, chunk_size)
    except (ReadPaceError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    done = threading.Event()

    with Live(console=console, refresh_per_second=20, transient=True) as live:

        def render(change: StateChange) -> None:
            if change.state == PlaybackState.COMPLETED:
                done.set()
                return
            if change.position < len(units):
                live.update(
                    Panel(
                        f"[bold]{units[change.position].text}[/bold]",
                        subtitle=f"{change.pace_wpm} WPM · {change.progress_percent:.0f}%",
                    )
                )

        try:
            started = sessions.start_session(
                content.id,
                mode,
                pace,
                chunk_size=chunk_size,
                user_id=user,
                device_id=device,
                on_change=render,
            )
            sessions.play(started.id)
            while not done.is_set():
                try:
                    done.wait(0.1)
                except KeyboardInterrupt:
                    sessions.pause(started.id)
                    live.stop()
                    if typer.confirm("Paused. Resume reading?", default=True):
                        live.start()
                        sessions.play(started.id)
                    else:
                        sessions.finish_session(started.id)
                        done.set()
        except ReadPaceError as e:
            print_error(str(e))
            raise typer.Exit(1)
        finally:
            sessions.shutdown()

    session = sessions.get_session(started.id)

    table = Table(title="Session Complete", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Words read", f"{session.words_read} / {content.word_count}")
    table.add_row("Time", format_duration(session.duration_ms))
    table.add_row("Speed", f"{session.computed_wpm:.0f} WPM")
    console.print(table)
    print_info(f"Session ID: {session.id}")

    if user:
        xp = XPManager(db, config)
        show_award(xp.update_streak(user).award)
        show_award(xp.award_session_xp(user, session))


@app.command()
def quiz(
    session_id: str = typer.Argument(..., help="Session the questions are about"),
    questions_file: Optional[Path] = typer.Option(
        None, "--questions", "-q", help="JSON file with generated questions"
    ),
    answers: Optional[str] = typer.Option(
        None, "--answers", "-a", help="Comma-separated option indexes, e.g. 0,2,1,3,0"
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Reader, to earn XP"),
) -> None:
    """Answer comprehension questions for a session."""
    db = get_db()
    config = get_config()
    manager = QuizManager(db, config)

    try:
        if questions_file:
            raw = json.loads(questions_file.read_text(encoding="utf-8"))
            manager.save_questions(session_id, raw)
        questions = manager.get_questions(session_id)

        if answers is None:
            chosen = []
            for question in questions:
                console.print(f"\n[bold]{question.index}. {question.prompt}[/bold]")
                for i, option in enumerate(question.options):
                    console.print(f"  [cyan]{i}[/cyan]) {option}")
                chosen.append(typer.prompt("Answer", type=int))
        else:
            chosen = [int(a) for a in answers.split(",") if a.strip()]

        result = manager.grade_answers(session_id, chosen)
    except (OSError, json.JSONDecodeError) as e:
        print_error(f"Cannot load questions: {e}")
        raise typer.Exit(1)
    except ValueError:
        print_error("Answers must be comma-separated integers")
        raise typer.Exit(1)
    except ReadPaceError as e:
        print_error(str(e))
        raise typer.Exit(1)

    for question, ok in zip(questions, result.correct):
        mark = "[green]✓[/green]" if ok else "[red]✗[/red]"
        console.print(f"{mark} {question.index}. {question.prompt}")

    style = "green" if result.passed else "yellow"
    console.print(
        Panel(
            f"[bold {style}]{result.score_percent}%[/bold {style}] "
            f"({result.correct_count}/{result.total_questions} correct)",
            title="Comprehension",
        )
    )

    record = db.get_session_record(session_id)
    reader = user or (record.user_id if record else None)
    if reader:
        show_award(XPManager(db, config).award_quiz_xp(reader, result))


# ============================================================================
# XP Commands
# ============================================================================


@app.command()
def xp(
    user: str = typer.Argument(..., help="User ID"),
    amount: int = typer.Argument(..., help="XP to award"),
    event_type: XPEventType = typer.Option(
        XPEventType.CHALLENGE, "--type", "-t", help="Event kind"
    ),
    description: str = typer.Option("", "--description", "-d", help="Reason for the award"),
) -> None:
    """Record an XP award for a user."""
    try:
        award = XPManager(get_db()).record_xp(user, amount, event_type, description)
    except ReadPaceError as e:
        print_error(str(e))
        raise typer.Exit(1)

    show_award(award)
    print_info(f"Total XP: {award.total_xp}")


@app.command()
def level(
    user: str = typer.Argument(..., help="User ID"),
) -> None:
    """Show a user's level and progress."""
    try:
        profile = XPManager(get_db()).get_profile(user)
    except ReadPaceError as e:
        print_error(str(e))
        raise typer.Exit(1)

    progress = profile.progress
    lines = [
        f"[bold]Level {progress.level}[/bold]",
        f"Total XP: {profile.total_xp}",
        f"[{progress_bar(progress.progress_percent)}] {progress.progress_percent:.0f}%",
        f"{progress.current_xp} / {progress.xp_for_next_level} XP toward level {progress.level + 1}",
    ]
    if profile.streak_days:
        lines.append(f"Streak: {profile.streak_days} days")
    console.print(Panel("\n".join(lines), title=profile.display_name or profile.user_id))

    if profile.recent_transactions:
        table = Table(title="Recent XP", show_header=True, header_style="bold magenta")
        table.add_column("When", style="dim")
        table.add_column("Kind", style="yellow")
        table.add_column("XP", justify="right", style="green")
        table.add_column("Description")
        for t in profile.recent_transactions:
            table.add_row(
                t.created_at.strftime("%Y-%m-%d %H:%M"),
                t.event_type.value,
                f"+{t.amount}",
                t.description,
            )
        console.print(table)


# ============================================================================
# History and Statistics Commands
# ============================================================================


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", "-n", help="Max sessions to show"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Only this user's sessions"),
    completed: bool = typer.Option(False, "--completed", help="Only completed sessions"),
) -> None:
    """Show recent reading sessions."""
    sessions = SessionManager(get_db(), get_config()).get_recent_sessions(
        limit=limit, completed_only=completed, user_id=user
    )
    if not sessions:
        console.print("[dim]No reading sessions yet.[/dim]")
        return

    table = Table(title="Reading History", show_header=True, header_style="bold magenta")
    table.add_column("Started", style="dim")
    table.add_column("Mode", style="yellow")
    table.add_column("Pace", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("WPM", justify="right", style="green")

    for s in sessions:
        table.add_row(
            s.started_at.strftime("%Y-%m-%d %H:%M"),
            s.mode.value,
            str(s.pace_wpm),
            str(s.words_read),
            format_duration(s.duration_ms),
            f"{s.computed_wpm:.0f}" if s.is_completed else "[dim]active[/dim]",
        )

    console.print(table)


PERIOD_LABELS = {
    AnalyticsPeriod.TODAY: "Today",
    AnalyticsPeriod.WEEK: "Last 7 Days",
    AnalyticsPeriod.MONTH: "This Month",
    AnalyticsPeriod.ALL: "All Time",
}


@app.command()
def stats(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Only this user's sessions"),
    device: Optional[str] = typer.Option(None, "--device", help="Only this device's sessions"),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Limit to the last N days"),
    period: Optional[AnalyticsPeriod] = typer.Option(
        None, "--period", "-p", help="Preset period: today, week, month, all"
    ),
    mode: Optional[ReadingMode] = typer.Option(None, "--mode", "-m", help="Only this mode"),
    export: Optional[Path] = typer.Option(
        None, "--export", "-e", help="Write completed sessions to this CSV file"
    ),
) -> None:
    """Show reading statistics."""
    if days is not None and period is not None:
        print_error("Use either --days or --period, not both")
        raise typer.Exit(1)

    analytics = ReadingAnalytics(get_db())

    if export is not None:
        if days is not None:
            start = datetime.now(timezone.utc) - timedelta(days=days)
        else:
            start = period_start(period) if period else None
        console.print(f"[dim]Exporting to {export}...[/dim]")
        try:
            count = analytics.export_csv_file(export, user_id=user, device_id=device, start=start)
        except OSError as e:
            print_error(f"Export failed: {e}")
            raise typer.Exit(1)
        print_success(f"Exported {count} sessions to {export}")
        return

    if days is not None:
        detailed = analytics.get_detailed_analytics(user_id=user, device_id=device, days=days)
        summary = detailed.summary
        period_label = f"Last {days} Days"
    elif period is not None:
        detailed = None
        summary = analytics.get_summary_for_period(period, user_id=user, device_id=device)
        period_label = PERIOD_LABELS[period]
    else:
        detailed = None
        summary = analytics.get_summary(user_id=user, device_id=device, mode=mode)
        period_label = "All Time"

    if summary.sessions_count == 0:
        console.print("[dim]No completed sessions yet.[/dim]")
        return

    table = Table(title=f"Reading Summary ({period_label})", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Sessions", str(summary.sessions_count))
    table.add_row("Time reading", format_duration(summary.total_time_ms))
    table.add_row("Words read", str(summary.total_words_read))
    table.add_row("Average score", f"{summary.average_score_percent:.0f}%")
    for mode_name, wpm in sorted(summary.average_wpm_by_mode.items()):
        table.add_row(f"Average WPM ({mode_name})", f"{wpm:.0f}")
    console.print(table)

    if detailed and detailed.daily_stats:
        console.print()
        daily = Table(title="Daily", show_header=True, header_style="bold magenta")
        daily.add_column("Date")
        daily.add_column("Sessions", justify="right")
        daily.add_column("Time", justify="right")
        daily.add_column("WPM", justify="right", style="green")
        daily.add_column("Score", justify="right")
        for day in detailed.daily_stats:
            daily.add_row(
                day.date,
                str(day.sessions_count),
                format_duration(day.total_time_ms),
                f"{day.average_wpm:.0f}",
                f"{day.average_score:.0f}%",
            )
        console.print(daily)

    if detailed and len(detailed.mode_comparison) > 1:
        console.print()
        modes = Table(title="By Mode", show_header=True, header_style="bold magenta")
        modes.add_column("Mode", style="yellow")
        modes.add_column("Sessions", justify="right")
        modes.add_column("WPM", justify="right", style="green")
        modes.add_column("Score", justify="right")
        modes.add_column("Time", justify="right")
        for m in detailed.mode_comparison:
            modes.add_row(
                m.mode,
                str(m.sessions_count),
                f"{m.average_wpm:.0f}",
                f"{m.average_score:.0f}%",
                format_duration(m.total_time_ms),
            )
        console.print(modes)


if __name__ == "__main__":
    app()
