"""Rich-based display functions for Gmail Declutter."""

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.prompt import Prompt
from rich.table import Table

from .constants import CATEGORY_TITLES
from .models import AnalysisResult, CategoryResult, CategorySummary, DeletionRecord, TrashOutcome

console = Console()


def _age_color(days_ago: int) -> str:
    """Return a Rich color name based on message age."""
    if days_ago > 30:
        return "red"
    if days_ago > 7:
        return "yellow"
    if days_ago <= 1:
        return "green"
    return "white"


def _title(category: str) -> str:
    return CATEGORY_TITLES.get(category, category)


def _details(result: CategoryResult) -> str:
    parts = []
    for key, value in result.attributes().items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(key.replace("_", " "))
        else:
            parts.append(f"{value}")
    return ", ".join(parts)


def display_analysis(result: AnalysisResult, state) -> None:
    """Display per-category counts before and after reconciliation filtering."""
    table = Table(title=f"Analysis #{result.generation}")
    table.add_column("Category")
    table.add_column("Found", justify="right")
    table.add_column("To review", justify="right")
    table.add_column("Skipped", justify="right", style="dim")
    table.add_column("Status")

    total_shown = 0
    for category, report in result.reports.items():
        shown = len(result.view(category, state))
        total_shown += shown
        skipped = report.fetch_errors + report.malformed
        if report.error:
            status = f"[red]{report.error}[/red]"
        else:
            status = "[green]ok[/green]"
        table.add_row(_title(category), str(len(report.results)), str(shown), str(skipped), status)

    console.print(table)
    console.print(
        Panel(
            f"Messages to review: {total_shown}  |  "
            f"Excluded senders: {len(state.excluded)}  |  "
            f"Moved senders: {len(state.moves)}",
            title="Summary",
        )
    )


def display_stats(stats: dict) -> None:
    console.print(
        Panel(
            f"[bold]Account:[/bold] {stats['email']}\n"
            f"[bold]Total messages:[/bold] {stats['total_messages']}\n"
            f"[bold]Cleanable:[/bold] {stats['cleanable']}\n"
            f"[bold]Declutter potential:[/bold] {stats['declutter_potential']}%",
            title="Mailbox",
        )
    )


def display_category(results: list[CategoryResult], category: str) -> None:
    """Display the filtered work queue of one category."""
    table = Table(title=_title(category))
    table.add_column("#", justify="right", style="dim")
    table.add_column("Sender")
    table.add_column("Email")
    table.add_column("Subject")
    table.add_column("Age", justify="right")
    table.add_column("Details")

    for idx, result in enumerate(results, start=1):
        color = _age_color(result.days_ago)
        table.add_row(
            str(idx),
            result.sender,
            result.sender_email,
            result.subject,
            f"[{color}]{result.days_ago}d[/{color}]",
            _details(result),
        )

    console.print(table)
    console.print(f"[dim]{len(results)} messages[/dim]")


def display_summaries(summaries: dict[str, CategorySummary]) -> None:
    """Display cached category summaries without querying Gmail."""
    table = Table(title="Cached Summaries")
    table.add_column("Category")
    table.add_column("Count", justify="right")
    table.add_column("Analyzed")
    table.add_column("Sample")

    for summary in summaries.values():
        sample = "\n".join(s.get("subject", "") for s in summary.sample)
        count = f"[red]{summary.error}[/red]" if summary.error else str(summary.count)
        table.add_row(_title(summary.category), count, summary.analyzed_at, sample)

    console.print(table)


def create_progress(description: str) -> Progress:
    """Create a configured Rich Progress bar."""
    return Progress(
        SpinnerColumn(),
        TextColumn(f"[bold blue]{description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def confirm_trash(count: int, category: str, sender: str | None = None) -> bool:
    """Prompt the user to confirm trashing ``count`` messages."""
    target = f" from {sender}" if sender else ""
    console.print(
        Panel(
            f"[bold]{count} {_title(category)} messages{target} will be moved to trash.[/bold]",
            title="Confirm Trash",
        )
    )
    answer = Prompt.ask('[bold red]Type "TRASH" to confirm[/bold red]', console=console)
    return answer == "TRASH"


def display_trash_outcome(outcome: TrashOutcome) -> None:
    """Summarise a trash batch, distinguishing partial from total failure."""
    succeeded = len(outcome.succeeded_ids)
    total = len(outcome.items)
    fallback = sum(1 for item in outcome.items if item.via == "modify")

    if outcome.status == "applied":
        body = f"[bold green]Moved {succeeded} messages to trash.[/bold green]"
        title = "Done"
    elif outcome.status == "partial":
        body = (
            f"[bold yellow]Moved {succeeded} of {total} messages to trash. "
            f"{len(outcome.failed_ids)} still need attention:[/bold yellow]\n"
            + "\n".join(
                f"  - {item.message_id}: {item.error}" for item in outcome.items if not item.success
            )
        )
        title = "Partially applied"
    else:
        body = f"[bold red]No messages were moved to trash ({total} failed).[/bold red]"
        title = "Failed"

    if fallback:
        body += f"\n[dim]{fallback} messages needed the label fallback.[/dim]"
    if outcome.record is not None:
        body += f"\n[dim]Find them in Gmail: {outcome.record.trash_search_url}[/dim]"

    console.print(Panel(body, title=title))


def display_history(records: list[DeletionRecord], days: int | None = None) -> None:
    """Display deletion history, newest first."""
    window = f" (last {days} days)" if days is not None else ""
    table = Table(title=f"Deletion History{window}")
    table.add_column("When")
    table.add_column("Category")
    table.add_column("Sender")
    table.add_column("Count", justify="right")
    table.add_column("Trash link", style="dim")

    for record in reversed(records):
        sender = record.sender_name or record.sender_email or "-"
        table.add_row(
            record.timestamp,
            _title(record.category),
            sender,
            str(record.count),
            record.trash_search_url,
        )

    console.print(table)
    console.print(f"[bold]Total deleted:[/bold] {sum(r.count for r in records)}")


def display_exclusions(state) -> None:
    if not state.excluded:
        console.print("[dim]No excluded senders.[/dim]")
    else:
        console.print("[bold]Excluded senders:[/bold]")
        for sender in sorted(state.excluded):
            console.print(f"  - {sender}")

    if state.moves:
        console.print("[bold]Moved senders:[/bold]")
        for move in state.moves.values():
            console.print(
                f"  - {move.sender}: {_title(move.source_category)} -> "
                f"{_title(move.target_category)} ({len(move.message_ids)} messages)"
            )


def display_rules(rules) -> None:
    table = Table(title="Automation Rules")
    table.add_column("ID", style="dim")
    table.add_column("Category")
    table.add_column("Older than", justify="right")
    table.add_column("Frequency")
    table.add_column("Last run")
    table.add_column("Processed", justify="right")

    for rule in rules:
        table.add_row(
            rule.id,
            _title(rule.category),
            f"{rule.min_age_days}d",
            rule.frequency,
            rule.last_run or "never",
            str(rule.emails_processed),
        )

    console.print(table)
