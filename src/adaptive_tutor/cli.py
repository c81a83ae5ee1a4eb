from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from adaptive_tutor.data_models import ALL_MODES, ContentUnit, LearningMode
from adaptive_tutor.errors import TutorClientError
from adaptive_tutor.learning import AssessmentSession, preferred_mode
from adaptive_tutor.learning.quiz_utils import format_attempt_summary
from adaptive_tutor.system import LearningSystem

app = typer.Typer(help="Adaptive tutor client: topics, study material and quizzes per learning mode.")
console = Console()

T = TypeVar("T")

candidate_paths = [Path.cwd() / ".env"]
module_env = Path(__file__).resolve().parents[2] / ".env"
if module_env not in candidate_paths:
    candidate_paths.append(module_env)
for env_path in candidate_paths:
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)
        break


def _load_system(config: Optional[Path], token: Optional[str]) -> LearningSystem:
    """Instantiate `LearningSystem` with optional config path and bearer token."""
    return LearningSystem.from_config(config, token=token)


def _run(config: Optional[Path], token: Optional[str], work: Callable[[LearningSystem], Awaitable[T]]) -> T:
    """Run one async command against a fresh system, turning client errors into exit codes."""

    async def _main() -> T:
        async with _load_system(config, token) as system:
            return await work(system)

    try:
        return asyncio.run(_main())
    except TutorClientError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _parse_mode(value: Optional[str]) -> Optional[LearningMode]:
    if value is None:
        return None
    try:
        return LearningMode(value.lower())
    except ValueError as exc:
        raise typer.BadParameter("mode must be one of: " + ", ".join(m.value for m in ALL_MODES)) from exc


def _print_content(unit: ContentUnit) -> None:
    console.print(f"[bold]{unit.title or 'Study material'}[/bold] ({unit.learning_mode.value})")
    text = unit.grounding_text()
    if text:
        console.print(text, highlight=False)
    if unit.video_url:
        console.print(f"Video: {unit.video_url}")
    for link in unit.related_video_links:
        console.print(f"- {link.title or link.url}: {link.url}")


@app.command()
def topics(
    subject: str = typer.Argument(...),
    mode: Optional[str] = typer.Option(None, help="Learning mode; defaults to the recommended one."),
    regenerate: bool = typer.Option(False, help="Discard the current list and generate a new one."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
    token: Optional[str] = typer.Option(None, help="Bearer token for the tutoring API."),
):
    """
    List the topics for a subject.

    The list is only shown once the learner has been assessed in every mode; otherwise
    the missing modes are reported.
    """

    async def work(system: LearningSystem) -> None:
        decision = await system.completion.gate_topic_list(subject)
        if not decision.allowed:
            missing = ", ".join(m.value for m in decision.missing_modes)
            console.print(f"[yellow]Complete an assessment in: {missing}[/yellow]")
            return
        learning_mode = _parse_mode(mode) or await system.recommendations.preferred_mode_for(subject)
        if regenerate:
            topic_set = await system.topics.regenerate_topics(subject, learning_mode)
        else:
            topic_set = await system.topics.resolve_topics(subject, learning_mode)
        table = Table(title=f"{subject} ({topic_set.learning_type.value})")
        table.add_column("#", justify="right")
        table.add_column("Topic")
        table.add_column("Description")
        for idx, topic in enumerate(topic_set.topics, start=1):
            table.add_row(str(idx), topic.title, topic.description or "")
        console.print(table)
        if topic_set.is_shared:
            console.print("[dim]Topics shared by other learners of this subject.[/dim]")

    _run(config, token, work)


@app.command()
def content(
    subject: str = typer.Argument(...),
    topic: str = typer.Argument(...),
    mode: str = typer.Option("text", help="visual, audio or text."),
    regenerate: bool = typer.Option(False, help="Ignore the cached copy and generate anew."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
    token: Optional[str] = typer.Option(None, help="Bearer token for the tutoring API."),
):
    """Show the study material for a topic in one mode."""
    learning_mode = _parse_mode(mode)

    async def work(system: LearningSystem) -> None:
        if regenerate:
            unit = await system.content.regenerate_content(subject, topic, learning_mode)
        else:
            unit = await system.content.resolve_content(subject, topic, learning_mode)
        _print_content(unit)

    _run(config, token, work)


@app.command()
def quiz(
    subject: str = typer.Argument(...),
    topic: str = typer.Argument(...),
    mode: str = typer.Option("text", help="visual, audio or text."),
    output: Optional[Path] = typer.Option(None, help="Write the quiz as Markdown to this file."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
    token: Optional[str] = typer.Option(None, help="Bearer token for the tutoring API."),
):
    """Generate a quiz for a topic and export it as Markdown, answers included."""
    learning_mode = _parse_mode(mode)

    async def work(system: LearningSystem) -> None:
        generated = await system.create_quiz(subject, topic, learning_mode)
        markdown = system.quiz_to_markdown(generated, topic=topic)
        if output is None:
            console.print(markdown, highlight=False, markup=False)
            return
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(markdown, encoding="utf-8")
        console.print(f"[green]Saved quiz to {output}[/green]")

    _run(config, token, work)


@app.command()
def recommend(
    subject: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
    token: Optional[str] = typer.Option(None, help="Bearer token for the tutoring API."),
):
    """Show the learning-mode recommendation for a subject."""

    async def work(system: LearningSystem) -> None:
        rec = await system.recommendations.get_recommendation(subject)
        if rec is None:
            console.print(f"No recommendation available; defaulting to {preferred_mode(None).value}.")
            return
        console.print(f"Recommended mode: [bold]{rec.recommended_mode.value}[/bold] ({rec.confidence:.0%})")
        if rec.best_performing_mode:
            console.print(f"Best performing mode: {rec.best_performing_mode.value}")
        if rec.reasoning:
            console.print(rec.reasoning)
        if rec.mode_stats:
            table = Table(title="Per-mode statistics")
            table.add_column("Mode")
            table.add_column("Sessions", justify="right")
            table.add_column("Total score", justify="right")
            table.add_column("Avg focus", justify="right")
            for learning_mode, stats in rec.mode_stats.items():
                table.add_row(
                    learning_mode.value,
                    str(stats.total_sessions),
                    f"{stats.total_score:.1f}",
                    f"{stats.avg_focus:.2f}",
                )
            console.print(table)

    _run(config, token, work)


@app.command()
def check(
    subject: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
    token: Optional[str] = typer.Option(None, help="Bearer token for the tutoring API."),
):
    """Report whether every learning mode has been assessed for a subject."""

    async def work(system: LearningSystem) -> None:
        status = await system.completion.check_completion(subject)
        console.print(f"Completed: {'yes' if status.completed else 'no'}")
        console.print(
            f"Assessed modes: {', '.join(m.value for m in status.completed_modes) or 'none'}"
            f" ({len(status.completed_modes)} of {len(ALL_MODES)})"
        )
        if status.missing_modes:
            console.print(f"Missing: {', '.join(m.value for m in status.missing_modes)}")
        if status.all_scores_zero:
            console.print("[yellow]Every assessment scored zero.[/yellow]")

    _run(config, token, work)


async def _study(session: AssessmentSession, mode: LearningMode) -> None:
    await session.select_mode(mode)
    while True:
        if session.content is not None:
            _print_content(session.content)
        elif session.content_error is not None:
            console.print(f"[red]Could not load content:[/red] {session.content_error}")
        if session.mode is LearningMode.AUDIO:
            while Prompt.ask("Play audio?", choices=["y", "n"], default="n") == "y":
                session.record_audio_play()
        Prompt.ask("Press enter to start the quiz", default="")

        quiz = await session.start_quiz()
        if quiz is None:
            return
        for question in quiz.questions:
            console.print(f"\n[bold]Q{question.id}.[/bold] {question.question}")
            if question.options:
                for idx, option in enumerate(question.options):
                    console.print(f"  {chr(65 + idx)}. {option}")
                letter = Prompt.ask(
                    "Answer", choices=[chr(65 + idx) for idx in range(len(question.options))]
                )
                session.answer(question.id, question.options[ord(letter) - 65])
            else:
                session.answer(question.id, Prompt.ask("Answer"))

        attempt = await session.submit()
        console.print()
        console.print(format_attempt_summary(attempt))
        if session.pending_saves:
            console.print("[yellow]The result could not be saved yet.[/yellow]")
        next_mode = preferred_mode(session.recommendation)
        choice = Prompt.ask(
            f"Continue in {next_mode.value} mode, retry, or quit?",
            choices=["continue", "retry", "quit"],
            default="quit",
        )
        if choice == "continue":
            await session.continue_with_mode(next_mode)
        elif choice == "retry":
            session.retry()
            await session.select_mode(mode)
        else:
            return


@app.command()
def study(
    subject: str = typer.Argument(...),
    topic: str = typer.Argument(...),
    mode: Optional[str] = typer.Option(None, help="Learning mode; defaults to the recommended one."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
    token: Optional[str] = typer.Option(None, help="Bearer token for the tutoring API."),
):
    """
    Study a topic interactively: read or listen, take the quiz, review the result.

    Drives an `AssessmentSession` through its states and prompts for answers with Rich.
    """

    async def work(system: LearningSystem) -> None:
        learning_mode = _parse_mode(mode) or await system.recommendations.preferred_mode_for(subject)
        await _study(system.new_session(subject, topic), learning_mode)

    _run(config, token, work)


@app.command()
def history(
    subject: str = typer.Argument(...),
    limit: int = typer.Option(20, help="Number of attempts to show."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
    token: Optional[str] = typer.Option(None, help="Bearer token for the tutoring API."),
):
    """List recent quiz attempts for a subject."""

    async def work(system: LearningSystem) -> None:
        results = await system.history.history(subject, limit=limit)
        if not results:
            console.print("No quiz attempts yet.")
            return
        table = Table(title=f"Quiz history: {subject}")
        table.add_column("Topic")
        table.add_column("Mode")
        table.add_column("Score", justify="right")
        table.add_column("Completed")
        for entry in results:
            table.add_row(
                str(entry.get("topic", "")),
                str(entry.get("learningType") or entry.get("learning_type") or ""),
                f"{float(entry.get('score') or 0):.0f}%",
                str(entry.get("completedAt") or entry.get("completed_at") or ""),
            )
        console.print(table)

    _run(config, token, work)


@app.command()
def progress(
    subject: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
    token: Optional[str] = typer.Option(None, help="Bearer token for the tutoring API."),
):
    """Show the share of a subject's topics that have a quiz result."""

    async def work(system: LearningSystem) -> None:
        percentage = await system.progress.progress(subject)
        console.print(f"{subject}: {percentage}% of topics completed")

    _run(config, token, work)


if __name__ == "__main__":
    app()
