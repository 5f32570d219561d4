"""Command Line Interface (CLI) output for a grading run."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from question_grader.core.engine import RunOutcome, RunState
from question_grader.utils.logger import get_logger

logger = get_logger()
console = Console()

_STATE_STYLES = {
    RunState.DONE: "bold green",
    RunState.ABORTED: "bold red",
}


def display_welcome(runner_id: Optional[int] = None):
    """Displays a welcome message."""
    title = "Welcome" if runner_id is None else f"Runner {runner_id}"
    console.print(Panel(
        "[bold green]🚀 Coding Question Grader 🚀[/bold green]",
        title=title,
        border_style="blue"
    ))
    console.print("This tool runs every coding question on the platform and checks the code with Gemini AI.")
    console.rule()


def display_farewell():
    """Displays a farewell message."""
    console.rule()
    console.print("[bold cyan]👋 Grading process complete. Exiting.[/bold cyan]")


def display_error(message: str):
    """Displays an error message in a standard format."""
    console.print(Panel(f"[bold red]Error:[/bold red] {message}", title="Error", border_style="red"))


def display_warning(message: str):
    """Displays a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {message}")


def display_success(message: str):
    """Displays a success message."""
    console.print(f"[green]Success:[/green] {message}")


def display_step(step_number: int, description: str):
    """Displays the current step in the process."""
    console.print(f"\n[bold blue]Step {step_number}:[/bold blue] {description}")
    console.rule()


def display_run_summary(outcome: RunOutcome):
    """Displays outcome totals, classifier verdicts and the report location.

    Args:
        outcome: The finished run's outcome.
    """
    summary = outcome.summary
    state_text = Text(outcome.state.value, style=_STATE_STYLES.get(outcome.state, "bold"))
    if outcome.interrupted:
        state_text.append(" (interrupted)", style="yellow")

    console.print("\n[bold]Run Summary:[/bold]")
    console.print(state_text, f"- {outcome.reason}" if outcome.reason else "")

    if summary.total == 0:
        console.print("[yellow]No questions were processed.[/yellow]")
        return

    table = Table(title="Question Results", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Total", str(summary.total))
    table.add_row(Text("Passed", style="green"), str(summary.passed))
    table.add_row(Text("Failed", style="red"), str(summary.failed))
    table.add_row(Text("Skipped", style="yellow"), str(summary.skipped))
    table.add_row("Pass Rate", f"{summary.pass_rate_text}%")
    console.print(table)

    if summary.verdict_counts:
        verdicts = Table(title="Gemini Verdicts", show_header=True, header_style="bold magenta")
        verdicts.add_column("Verdict", style="cyan")
        verdicts.add_column("Count", justify="right")
        for verdict, count in summary.verdict_counts.items():
            verdicts.add_row(verdict, str(count))
        console.print(verdicts)

    if outcome.last_index is not None:
        console.print(f"Last question processed: Q{outcome.last_index}")
    if outcome.report_path:
        console.print(f"Report saved to: [bold]{outcome.report_path}[/bold]")
    logger.debug(f"Summary displayed for {summary.total} questions")
