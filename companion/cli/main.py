"""
Typer CLI for the Campus Companion review service.

Commands:
    companion db init            - Initialize database tables
    companion analytics          - Show learning analytics for a user
    companion queue              - Show the spaced review queue for a user
    companion xp show            - Show local XP, level and streak
    companion xp award           - Award XP for a review of a given quality
    companion xp reset-streak    - Reset the local study streak

Usage:
    companion --help
    companion analytics --user alice
    companion queue --user alice --limit 10
    companion xp award --quality 4
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from companion import __version__
from companion.db.database import init_db
from companion.errors import CompanionError
from companion.gamification.ports import JsonFileKeyValueStore
from companion.gamification.xp import GamificationState, GamificationStore, xp_reward
from companion.log import configure_logging
from companion.review.queue_builder import summarize_queue
from companion.service import ReviewService
from config import get_settings

app = typer.Typer(help="Campus Companion CLI: review analytics and spaced review")
console = Console()


def _service() -> ReviewService:
    return ReviewService.from_settings(get_settings())


def _user(user: Optional[str]) -> str:
    return user or get_settings().default_user_id


async def _with_service(fn):
    service = _service()
    try:
        return await fn(service)
    finally:
        await service.close()


# ========================================
# Database Commands
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    logger.info("Initializing database tables...")
    try:
        init_db()
    except SQLAlchemyError as e:
        rprint(f"[red]✗[/red] Database initialization failed: {e}")
        raise typer.Exit(code=1)
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Analytics
# ========================================


@app.command("analytics")
def analytics(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id (default from settings)"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Show accuracy summary, topic performance and recent activity."""
    user_id = _user(user)
    try:
        report = asyncio.run(_with_service(lambda s: s.get_analytics(user_id)))
    except CompanionError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps(report.to_dict()))
        return

    summary = report.summary
    rprint(f"\n[bold]Analytics for {user_id}[/bold]")
    rprint(
        f"  Quizzes: [cyan]{summary.total_quizzes_taken}[/cyan]  "
        f"Questions: [cyan]{summary.total_questions_answered}[/cyan]  "
        f"Accuracy: [cyan]{summary.overall_accuracy}%[/cyan]  "
        f"Avg time/question: [cyan]{summary.avg_time_per_question}s[/cyan]"
    )
    rprint(f"  Streak: [cyan]{report.streak.current}[/cyan] day(s) (longest {report.streak.longest})\n")

    if report.topic_performance:
        table = Table(title="Topic Performance")
        table.add_column("Topic")
        table.add_column("Accuracy", justify="right")
        table.add_column("Attempts", justify="right")
        table.add_column("Status")
        styles = {"strength": "[green]Strength[/green]", "improve": "[red]Improve[/red]"}
        for topic in report.topic_performance:
            table.add_row(
                topic.topic,
                f"{topic.accuracy}%",
                str(topic.attempt_count),
                styles.get(topic.classification, "[dim]-[/dim]"),
            )
        console.print(table)

    if report.recent_activity:
        table = Table(title="Recent Activity")
        table.add_column("When")
        table.add_column("Quiz")
        table.add_column("Topic")
        table.add_column("Score", justify="right")
        for activity in report.recent_activity:
            table.add_row(
                activity.date,
                activity.quiz_title,
                activity.topic,
                f"{activity.score}/{activity.max_score} ({activity.accuracy}%)",
            )
        console.print(table)
    elif not report.topic_performance:
        rprint("[yellow]No completed quizzes yet[/yellow]")


# ========================================
# Review Queue
# ========================================


@app.command("queue")
def queue(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id (default from settings)"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum items"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Show the questions to review next."""
    user_id = _user(user)
    limit = min(limit, get_settings().max_queue_limit)
    try:
        items = asyncio.run(_with_service(lambda s: s.get_review_queue(user_id, limit)))
    except CompanionError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(
            json.dumps({"items": [i.to_dict() for i in items], "counts": summarize_queue(items)})
        )
        return

    if not items:
        rprint("[green]Nothing to review right now[/green]")
        return

    table = Table(title=f"Review Queue ({len(items)})")
    table.add_column("#", justify="right")
    table.add_column("Label")
    table.add_column("Topic")
    table.add_column("Question")
    table.add_column("Accuracy", justify="right")
    table.add_column("Mastery")
    for index, item in enumerate(items, start=1):
        stat = item.stat
        prompt = item.question.prompt if item.question is not None else stat.question_text
        mastery = stat.mastery
        table.add_row(
            str(index),
            f"[{item.label.color}]{item.label.value}[/{item.label.color}]",
            stat.topic,
            prompt[:60] + ("..." if len(prompt) > 60 else ""),
            f"{round(stat.accuracy)}%",
            f"[{mastery.color}]{mastery.display_name}[/{mastery.color}]",
        )
    console.print(table)

    counts = summarize_queue(items)
    rprint(
        "  ".join(f"{label}: [cyan]{count}[/cyan]" for label, count in counts.items() if label != "total")
    )


# ========================================
# Gamification
# ========================================

xp_app = typer.Typer(help="Local XP, level and streak")
app.add_typer(xp_app, name="xp")


def _xp_store() -> GamificationStore:
    return GamificationStore(JsonFileKeyValueStore(get_settings().gamification_state_path))


def _print_state(state: GamificationState) -> None:
    rprint(
        f"Level [bold cyan]{state.level}[/bold cyan]  "
        f"XP [cyan]{state.xp}/100[/cyan]  "
        f"Total [cyan]{state.total_xp}[/cyan]  "
        f"Streak [cyan]{state.streak}[/cyan]"
    )


@xp_app.command("show")
def xp_show() -> None:
    """Show current XP progress."""
    _print_state(_xp_store().load())


@xp_app.command("award")
def xp_award(
    quality: Optional[int] = typer.Option(None, "--quality", "-q", min=0, max=5, help="SM-2 quality 0-5"),
    amount: Optional[int] = typer.Option(None, "--amount", "-a", min=0, help="Explicit XP amount"),
    broken: bool = typer.Option(False, "--broken", help="Session did not continue; reset streak"),
) -> None:
    """Award XP for a review (by quality) or an explicit amount."""
    if quality is None and amount is None:
        rprint("[red]✗[/red] Pass --quality or --amount")
        raise typer.Exit(code=1)

    earned = amount if amount is not None else xp_reward(quality)
    state = _xp_store().award(earned, continued=not broken)
    rprint(f"[green]+{earned} XP[/green]")
    _print_state(state)


@xp_app.command("reset-streak")
def xp_reset_streak() -> None:
    """Reset the study streak to zero."""
    state = _xp_store().reset_streak()
    rprint("[yellow]Streak reset[/yellow]")
    _print_state(state)


@app.command("version")
def version() -> None:
    """Show version."""
    rprint(f"[bold]campus-companion[/bold] v{__version__}")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    configure_logging("WARNING", settings.log_file, fmt="<level>{message}</level>")
    app()


if __name__ == "__main__":
    main()
