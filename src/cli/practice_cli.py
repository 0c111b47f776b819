"""
Practice: terminal front end for the adaptive practice engine.

Commands:
- practice topics   - List topics in a CAM file
- practice study    - Run an interactive practice session
- practice stats    - Show XP, concepts tracked and topic bands
- practice history  - Show recent session summaries
- practice export   - Write all practice data to a JSON file
- practice import   - Load practice data from an export file
- practice reset    - Clear all practice data
"""

import json
import random
import sys
import time
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config import Settings, get_settings
from src.practice.answers import strip_answer_data
from src.practice.content import load_cam, load_question_bank
from src.practice.engine import QuizEngine
from src.practice.errors import PracticeError
from src.practice.export_manager import generate_export_filename, merge_progress
from src.practice.proficiency import get_band_message
from src.practice.types import (
    EnrichedQuestion,
    QuestionType,
    SelectionStrategy,
    SessionStatus,
    SessionSummary,
    TimeMode,
)
from src.storage import UserProgress, get_storage_adapter


# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="practice",
    help="Adaptive curriculum practice in the terminal",
    no_args_is_help=True,
)
console = Console()


STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "difficulty": {
        "familiarity": "green",
        "application": "yellow",
        "exam_style": "magenta",
    },
}

SKIP_INPUTS = {"s", "skip"}
QUIT_INPUTS = {"q", "quit"}


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr (and a rotating file when configured)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="5 MB",
            retention=3,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
        )


def style_difficulty(difficulty: str) -> str:
    color = STYLES["difficulty"].get(difficulty, "white")
    return f"[{color}]{difficulty}[/{color}]"


def _build_engine(
    cam_path: Optional[Path] = None,
    seed: Optional[int] = None,
) -> QuizEngine:
    settings = get_settings()
    cam = load_cam(cam_path) if cam_path else None
    return QuizEngine(
        storage=get_storage_adapter(settings),
        user_id=settings.user_id,
        cam=cam,
        rng=random.Random(seed) if seed is not None else None,
    )


# =============================================================================
# Question Display and Input
# =============================================================================

def display_question(question: EnrichedQuestion, view: dict[str, Any], index: int, total: int) -> None:
    """Show a question panel with its type-specific choices."""
    header = (
        f"Question {index}/{total}  |  {style_difficulty(question.difficulty.value)}"
        f"  |  {question.question_type.value}"
    )
    content = question.question_text

    if question.question_type == QuestionType.MCQ and view.get("options"):
        content += "\n\n" + "\n".join(
            f"  {chr(65 + i)}. {option}" for i, option in enumerate(view["options"])
        )
    elif question.question_type == QuestionType.TRUE_FALSE:
        content += "\n\n  [bold]T[/bold]rue / [bold]F[/bold]alse"
    elif question.question_type == QuestionType.ORDERING:
        content += "\n\n" + "\n".join(
            f"  {i + 1}. {item}" for i, item in enumerate(view["ordering_items_shuffled"])
        )
    elif question.question_type == QuestionType.MATCH:
        lefts = view["match_left"]
        rights = view["match_right_shuffled"]
        content += "\n\n" + "\n".join(f"  {i + 1}. {left}" for i, left in enumerate(lefts))
        content += "\n\n" + "\n".join(f"  {chr(97 + i)}. {right}" for i, right in enumerate(rights))

    console.print(Panel(content, title=header, title_align="left", border_style="cyan", padding=(1, 2)))


def _position(token: str, size: int) -> int:
    """Zero-based index for a 1-based number typed by the learner."""
    index = int(token) - 1
    if not 0 <= index < size:
        raise ValueError(f"Position out of range: {token}")
    return index


def _letter_position(letter: str, size: int) -> int:
    """Zero-based index for an option letter (a, b, ...)."""
    index = ord(letter.lower()) - ord("a")
    if not 0 <= index < size:
        raise ValueError(f"Letter out of range: {letter}")
    return index


def read_answer(question: EnrichedQuestion, view: dict[str, Any]) -> Any:
    """
    Read the learner's answer in the shape the checker expects.

    Returns "skip" / "quit" sentinels for the control inputs.
    """
    raw = Prompt.ask("[dim]Answer ('s' skip, 'q' quit)[/dim]").strip()
    lowered = raw.lower()
    if lowered in SKIP_INPUTS:
        return "skip"
    if lowered in QUIT_INPUTS:
        return "quit"

    if question.question_type == QuestionType.MCQ:
        options = view.get("options") or []
        if len(lowered) == 1 and 0 <= ord(lowered) - 97 < len(options):
            return options[ord(lowered) - 97]
        return raw

    if question.question_type == QuestionType.TRUE_FALSE:
        return {"t": "true", "f": "false"}.get(lowered, raw)

    if question.question_type == QuestionType.ORDERING:
        items = view["ordering_items_shuffled"]
        try:
            positions = [_position(token, len(items)) for token in raw.replace(",", " ").split()]
        except ValueError:
            return raw
        return [items[p] for p in positions]

    if question.question_type == QuestionType.MATCH:
        # "1a 2c 3b" pairs each left number with a right letter
        lefts = view["match_left"]
        rights = view["match_right_shuffled"]
        answer: dict[str, str] = {}
        for token in raw.replace(",", " ").split():
            try:
                left = lefts[_position(token[:-1], len(lefts))]
                right = rights[_letter_position(token[-1], len(rights))]
            except ValueError:
                continue
            answer[left] = right
        return answer

    return raw


def format_answer(answer: Any) -> str:
    if isinstance(answer, dict):
        return ", ".join(f"{left} -> {right}" for left, right in answer.items())
    if isinstance(answer, list):
        return " > ".join(str(item) for item in answer)
    return str(answer)


def _display_session_summary(summary: SessionSummary) -> None:
    accuracy = (
        f"{summary.questions_correct / summary.questions_answered * 100:.0f}%"
        if summary.questions_answered
        else "-"
    )
    lines = [
        f"[bold]Session {summary.status.value.replace('_', ' ').title()}[/bold]\n",
        f"Answered: {summary.questions_answered}/{summary.total_questions}",
        f"Correct: {summary.questions_correct}  ({accuracy})",
        f"Skipped: {summary.questions_skipped}",
        f"XP earned: {summary.xp_earned}",
        f"Time: {summary.time_elapsed_ms / 1000:.0f}s",
    ]
    for difficulty, breakdown in summary.by_difficulty.items():
        lines.append(f"  {style_difficulty(difficulty)}: {breakdown.correct}/{breakdown.answered}")

    console.print(Panel("\n".join(lines), title="Summary", border_style="green"))


# =============================================================================
# Commands
# =============================================================================

@app.command()
def topics(
    cam_path: Path = typer.Option(..., "--cam", "-c", help="CAM JSON file"),
) -> None:
    """List the topics in a CAM file."""
    try:
        cam = load_cam(cam_path)
    except PracticeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{cam.board.upper()} class {cam.class_level} {cam.subject}")
    table.add_column("Theme")
    table.add_column("Topic ID")
    table.add_column("Topic")
    table.add_column("Concepts", justify="right")

    for theme in cam.themes:
        for topic in theme.topics:
            table.add_row(theme.theme_name, topic.topic_id, topic.topic_name, str(len(topic.concepts)))

    console.print(table)


@app.command()
def study(
    cam_path: Path = typer.Option(..., "--cam", "-c", help="CAM JSON file"),
    bank_path: Path = typer.Option(..., "--bank", "-b", help="Question bank JSON file"),
    topic_id: Optional[str] = typer.Option(None, "--topic", "-t", help="Topic ID (defaults to the bank's topic)"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Maximum questions in the session"),
    strategy: SelectionStrategy = typer.Option(SelectionStrategy.ADAPTIVE, "--strategy", "-s", help="Selection strategy"),
    time_mode: TimeMode = typer.Option(TimeMode.UNLIMITED, "--time-mode", "-m", help="Time limit"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for reproducible selection"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Start without confirmation"),
) -> None:
    """Start an interactive practice session."""
    try:
        engine = _build_engine(cam_path, seed)
        bank = load_question_bank(bank_path)
        engine.register_question_bank(bank.topic_id, bank)
        session = engine.create_session(
            topic_id or bank.topic_id,
            time_mode=time_mode,
            question_count=count,
            strategy=strategy,
        )
    except PracticeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    try:
        if not session.questions:
            console.print("[yellow]No eligible questions for this topic.[/yellow]")
            raise typer.Exit(0)

        console.print(f"\n[bold cyan]{session.config.topic_name}[/bold cyan]")
        console.print(f"  Questions: {len(session.questions)}")
        console.print(f"  Time: {time_mode.value}")
        if not yes and not Confirm.ask("Start session?", default=True):
            raise typer.Exit(0)

        summary = _run_session(engine)
        _display_session_summary(summary)
    finally:
        engine.close()


def _run_session(engine: QuizEngine) -> SessionSummary:
    rng = random.Random()
    engine.start_session()
    started = time.monotonic()

    try:
        while True:
            session = engine.session
            question = engine.get_current_question()
            if session is None or session.status != SessionStatus.IN_PROGRESS or question is None:
                break

            elapsed_ms = int((time.monotonic() - started) * 1000)
            if engine.is_session_timed_out(elapsed_ms):
                console.print("\n[yellow]Time's up![/yellow]")
                return engine.handle_timeout(elapsed_ms)
            engine.update_session_time(elapsed_ms)

            view = strip_answer_data(question, rng)
            display_question(question, view, question.order_in_session + 1, len(session.questions))
            if question.hint:
                console.print(f"[dim]Hint: {question.hint}[/dim]")

            asked = time.monotonic()
            answer = read_answer(question, view)
            if answer == "quit":
                console.print("\n[yellow]Ending session early.[/yellow]")
                engine.update_session_time(int((time.monotonic() - started) * 1000))
                return engine.end_session(completed=False)

            # Answers given after the limit are not scored
            elapsed_ms = int((time.monotonic() - started) * 1000)
            if engine.is_session_timed_out(elapsed_ms):
                console.print("\n[yellow]Time's up![/yellow]")
                return engine.handle_timeout(elapsed_ms)

            if answer == "skip":
                engine.skip_question()
                console.print("[dim]Skipped[/dim]\n")
                continue

            feedback = engine.submit_answer(answer, int((time.monotonic() - asked) * 1000))
            if feedback.is_correct:
                console.print(f"[{STYLES['correct']}]Correct! +{feedback.xp_earned} XP[/]")
            else:
                console.print(
                    f"[{STYLES['incorrect']}]Incorrect.[/] Answer: {format_answer(feedback.correct_answer)}"
                )
            if feedback.explanation:
                console.print(f"[dim]{feedback.explanation}[/dim]")
            if feedback.mastery_achieved:
                next_level = feedback.new_difficulty.value if feedback.new_difficulty else "top level"
                console.print(f"[{STYLES['info']}]Mastered! Moving on to {next_level}.[/]")
            console.print()

    except KeyboardInterrupt:
        console.print("\n\n[yellow]Session interrupted.[/yellow]")
        return engine.end_session(completed=False)

    engine.update_session_time(int((time.monotonic() - started) * 1000))
    return engine.end_session(completed=True)


@app.command()
def stats(
    cam_path: Optional[Path] = typer.Option(None, "--cam", "-c", help="CAM JSON file for topic bands"),
) -> None:
    """Show XP, tracked concepts and topic proficiency."""
    try:
        engine = _build_engine(cam_path)
    except PracticeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    try:
        storage_stats = engine.get_storage_stats()

        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="dim")
        table.add_column("Value", style="bold")
        table.add_row("Total XP", str(storage_stats.total_xp))
        table.add_row("Concepts tracked", str(storage_stats.concepts_tracked))
        table.add_row("Topics tracked", str(storage_stats.topics_tracked))
        table.add_row("Sessions", str(storage_stats.sessions_count))
        console.print("\n[bold cyan]Practice Statistics[/bold cyan]")
        console.print(table)

        topics_list = engine.get_all_topics()
        if topics_list:
            band_table = Table(title="Topic Proficiency")
            band_table.add_column("Topic")
            band_table.add_column("Band")
            band_table.add_column("Next step", style="dim")
            for topic in topics_list:
                proficiency = engine.get_topic_proficiency(topic.topic_id)
                band_table.add_row(topic.topic_name, proficiency.label, get_band_message(proficiency.band))
            console.print(band_table)
    finally:
        engine.close()


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", "-l", help="Number of sessions to show"),
) -> None:
    """Show recent practice sessions."""
    sessions = get_storage_adapter(get_settings()).load_session_history()[:limit]
    if not sessions:
        console.print("[dim]No sessions yet.[/dim]")
        return

    table = Table(title="Recent Sessions")
    table.add_column("Date")
    table.add_column("Topic")
    table.add_column("Status")
    table.add_column("Correct", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("XP", justify="right")

    for summary in sessions:
        when = (summary.completed_at or summary.started_at or "?")[:16].replace("T", " ")
        table.add_row(
            when,
            summary.topic_name or summary.topic_id,
            summary.status.value,
            f"{summary.questions_correct}/{summary.questions_answered}",
            str(summary.questions_skipped),
            str(summary.xp_earned),
        )

    console.print(table)


@app.command("export")
def export_cmd(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
) -> None:
    """Export progress, session history and settings to JSON."""
    engine = _build_engine()
    try:
        export = engine.export_data()
    finally:
        engine.close()

    target = output or Path(generate_export_filename())
    target.write_text(json.dumps(export, indent=2), encoding="utf-8")
    console.print(f"[green]Exported practice data to {target}[/green]")


@app.command("import")
def import_cmd(
    path: Path = typer.Argument(..., help="Export file to import"),
    merge: bool = typer.Option(False, "--merge", help="Merge with existing progress instead of replacing it"),
) -> None:
    """Import practice data from an export file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Could not read {path}: {e}[/red]")
        raise typer.Exit(1)

    engine = _build_engine()
    try:
        if merge and isinstance(data, dict) and isinstance(data.get("data"), dict) and data["data"].get("progress"):
            try:
                imported = UserProgress.from_dict(data["data"]["progress"])
            except (KeyError, TypeError, ValueError) as e:
                console.print(f"[red]Invalid progress data: {e}[/red]")
                raise typer.Exit(1)
            data["data"]["progress"] = merge_progress(engine.progress, imported).to_dict()

        result = engine.import_data(data, overwrite=True)
    finally:
        engine.close()

    if not result.success:
        for error in result.errors:
            console.print(f"[red]{error}[/red]")
        raise typer.Exit(1)

    parts = ", ".join(name for name, ok in result.imported.items() if ok) or "nothing"
    console.print(f"[green]Imported {parts}.[/green]")


@app.command()
def reset(
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Clear all practice data for a fresh start."""
    if not confirm and not Confirm.ask("Delete ALL practice data? This cannot be undone!", default=False):
        raise typer.Exit(0)

    engine = _build_engine()
    try:
        cleared = engine.clear_all_data()
    finally:
        engine.close()

    if not cleared:
        console.print("[red]Could not clear practice data.[/red]")
        raise typer.Exit(1)
    console.print("[green]All practice data has been cleared.[/green]")


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
