"""CLI entry point for Gmail Declutter."""

from __future__ import annotations

import asyncio
import logging

import click
from rich.logging import RichHandler

from . import __version__, constants
from .aggregator import CategoryAggregator, mailbox_stats
from .auth import check_auth, service_factory
from .automation import AutomationRule, RuleStore, apply_rule
from .cache import SummaryCache
from .config import Settings
from .display import (
    confirm_trash,
    console,
    create_progress,
    display_analysis,
    display_category,
    display_exclusions,
    display_history,
    display_rules,
    display_stats,
    display_summaries,
    display_trash_outcome,
)
from .errors import SenderExcludedError, StateSchemaError, Unauthorized
from .executor import TrashExecutor
from .export import export_summaries
from .gmail_client import get_profile
from .history import DeletionLog
from .models import AnalysisResult, SenderInfo
from .reconcile import ReconciliationState, normalize_sender

logger = logging.getLogger(__name__)

CATEGORY_CHOICE = click.Choice(constants.CATEGORIES)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # The discovery client is chatty at DEBUG
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)


def _settings(**overrides) -> Settings:
    try:
        return Settings.from_env(**overrides)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _factory(settings: Settings):
    try:
        return service_factory(settings)
    except (FileNotFoundError, Unauthorized) as e:
        raise click.ClickException(str(e)) from e


def _load_state() -> ReconciliationState:
    try:
        return ReconciliationState.load(constants.STATE_PATH)
    except StateSchemaError as e:
        raise click.ClickException(str(e)) from e


def _run_analysis(factory, settings: Settings, state: ReconciliationState, categories=None) -> AnalysisResult:
    with SummaryCache() as cache:
        aggregator = CategoryAggregator(factory, settings=settings, cache=cache, state=state)
        with console.status("Analyzing your mailbox..."):
            try:
                return asyncio.run(aggregator.analyze(categories))
            except Unauthorized as e:
                raise click.ClickException(f"{e}. Run 'gmail-declutter auth' to sign in again.") from e


def _categories_for_view(category: str, state: ReconciliationState) -> list[str]:
    """The category plus every category that has senders moved into it."""
    sources = [move.source_category for move in state.moved_into(category)]
    return [category] + [c for c in dict.fromkeys(sources) if c != category]


def _report_trashed_before(executor: TrashExecutor) -> None:
    outcome = executor.last_outcome
    if outcome is not None and outcome.succeeded_ids:
        console.print(
            f"[yellow]Moved {len(outcome.succeeded_ids)} messages to trash "
            "before Gmail rejected the credential.[/yellow]"
        )


@click.group()
@click.version_option(version=__version__, prog_name="gmail-declutter")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Gmail Declutter - find temporary codes, promotions and other clutter and trash it."""
    _configure_logging(verbose)


@cli.command()
@click.option("-m", "--max-messages", default=None, type=int, help="Maximum messages per category.")
@click.option("--concurrency", default=None, type=int, help="Concurrent fetches per category.")
@click.option("--rate", default=None, type=float, help="Maximum Gmail requests per second.")
def analyze(max_messages: int | None, concurrency: int | None, rate: float | None) -> None:
    """Analyze every category and show how much can be cleaned up."""
    settings = _settings(total_limit=max_messages, fetch_concurrency=concurrency, requests_per_second=rate)
    factory = _factory(settings)
    state = _load_state()

    result = _run_analysis(factory, settings, state)
    display_analysis(result, state)

    try:
        profile = get_profile(factory())
    except Exception as e:  # noqa: BLE001
        logger.warning("Could not load mailbox profile: %s", e)
        return
    display_stats(mailbox_stats(profile, result.counts()))


@cli.command(name="list")
@click.argument("category", type=CATEGORY_CHOICE)
@click.option("-m", "--max-messages", default=None, type=int, help="Maximum messages to scan.")
@click.option("-s", "--sender", default=None, help="Only show messages from this address.")
@click.option("--unfiltered", is_flag=True, help="Ignore exclusions and moves.")
def list_cmd(category: str, max_messages: int | None, sender: str | None, unfiltered: bool) -> None:
    """List the messages of one category."""
    settings = _settings(total_limit=max_messages)
    factory = _factory(settings)
    state = _load_state()

    result = _run_analysis(factory, settings, state, _categories_for_view(category, state))
    report = result.reports[category]
    if report.error:
        console.print(f"[red]{category} failed: {report.error}[/red]")

    results = result.results(category) if unfiltered else result.view(category, state)
    if sender:
        results = [r for r in results if r.sender_email == normalize_sender(sender)]
    display_category(results, category)


@cli.command()
@click.argument("category", type=CATEGORY_CHOICE)
@click.option("-s", "--sender", default=None, help="Only trash messages from this address.")
@click.option("--older-than", default=None, type=int, help="Only trash messages at least this many days old.")
@click.option("--execute", is_flag=True, help="Actually trash messages (default is dry-run).")
@click.option("-y", "--yes", is_flag=True, help="Skip the confirmation prompt.")
def trash(category: str, sender: str | None, older_than: int | None, execute: bool, yes: bool) -> None:
    """Move the messages of one category to trash."""
    settings = _settings()
    state = _load_state()
    if sender:
        sender = normalize_sender(sender)
        if state.is_excluded(sender):
            raise click.ClickException(f"Sender {sender} is excluded. Run 'gmail-declutter include {sender}' first.")
    factory = _factory(settings)

    result = _run_analysis(factory, settings, state, _categories_for_view(category, state))
    results = result.view(category, state)
    sender_info = None
    if sender:
        results = [r for r in results if r.sender_email == sender]
        sender_info = SenderInfo(email=sender, name=results[0].sender if results else "")
    if older_than is not None:
        results = [r for r in results if r.days_ago >= older_than]

    if not results:
        console.print("[yellow]No messages to trash.[/yellow]")
        return

    display_category(results, category)
    if not execute:
        console.print(
            "\n[yellow][DRY RUN] No messages were trashed. "
            "Use --execute to actually trash messages.[/yellow]"
        )
        return

    if not yes and not confirm_trash(len(results), category, sender):
        console.print("[dim]Cancelled.[/dim]")
        return

    executor = TrashExecutor(factory(), DeletionLog(constants.DELETION_LOG_PATH), state=state, settings=settings)
    with create_progress("Trashing messages") as progress:
        task = progress.add_task("trashing", total=len(results))

        def on_item(num: int, total: int) -> None:
            progress.update(task, completed=num)

        try:
            outcome = executor.trash([r.message_id for r in results], category, sender_info, callback=on_item)
        except SenderExcludedError as e:
            raise click.ClickException(str(e)) from e
        except Unauthorized as e:
            _report_trashed_before(executor)
            raise click.ClickException(str(e)) from e

    display_trash_outcome(outcome)
    if outcome.status == "failed":
        raise click.ClickException("No messages were moved to trash.")


@cli.command()
@click.option("--days", default=None, type=int, help="Only show the last N days (default 30).")
@click.option("--all", "show_all", is_flag=True, help="Show the full history.")
@click.option("-c", "--category", default=None, type=CATEGORY_CHOICE, help="Only show one category.")
def history(days: int | None, show_all: bool, category: str | None) -> None:
    """Show what has been moved to trash."""
    settings = _settings(history_window_days=days)
    window = None if show_all else settings.history_window_days
    log = DeletionLog(constants.DELETION_LOG_PATH)
    records = log.records(days=window, category=category)
    if not records:
        console.print("[dim]No deletions recorded.[/dim]")
        return
    display_history(records, days=window)
    if category is None:
        for name, count in log.by_category(days=window).items():
            console.print(f"  {name}: {count}")
        console.print(f"[dim]About {log.storage_saved_mb(days=window):.1f} MB freed[/dim]")


@cli.command()
@click.argument("sender")
def exclude(sender: str) -> None:
    """Never offer SENDER's messages for cleanup."""
    state = _load_state()
    state.exclude(sender, True)
    console.print(f"[green]{normalize_sender(sender)} excluded from cleanup.[/green]")


@cli.command()
@click.argument("sender")
def include(sender: str) -> None:
    """Allow SENDER's messages to be cleaned up again."""
    state = _load_state()
    if not state.is_excluded(sender):
        console.print(f"[yellow]{normalize_sender(sender)} was not excluded.[/yellow]")
        return
    state.exclude(sender, False)
    console.print(f"[green]{normalize_sender(sender)} is no longer excluded.[/green]")


@cli.command()
def exclusions() -> None:
    """Show excluded and moved senders."""
    display_exclusions(_load_state())


@cli.command()
@click.argument("sender")
@click.argument("source", type=CATEGORY_CHOICE)
@click.argument("target", type=CATEGORY_CHOICE)
def move(sender: str, source: str, target: str) -> None:
    """Show SENDER's SOURCE messages under TARGET until the next full analysis."""
    if source == target:
        raise click.ClickException("Source and target category must differ.")
    settings = _settings()
    factory = _factory(settings)
    state = _load_state()

    result = _run_analysis(factory, settings, state, [source])
    sender = normalize_sender(sender)
    ids = [r.message_id for r in result.view(source, state) if r.sender_email == sender]
    if not ids:
        raise click.ClickException(f"No {source} messages from {sender}.")

    state.record_move(sender, source, target, ids)
    console.print(f"[green]Moved {len(ids)} messages from {sender}: {source} -> {target}.[/green]")


@cli.command()
@click.argument("sender")
def unmove(sender: str) -> None:
    """Undo a move for SENDER."""
    state = _load_state()
    if state.clear_move(sender):
        console.print(f"[green]Move for {normalize_sender(sender)} removed.[/green]")
    else:
        console.print(f"[yellow]No move recorded for {normalize_sender(sender)}.[/yellow]")


@cli.command()
def summary() -> None:
    """Show cached category summaries from the last analysis."""
    with SummaryCache() as cache:
        summaries = cache.load_latest()
    if not summaries:
        console.print("[dim]No analysis cached yet. Run 'analyze' first.[/dim]")
        return
    display_summaries(summaries)


@cli.group(name="rules")
def rules_group() -> None:
    """Manage age-based automation rules."""


@rules_group.command(name="add")
@click.argument("category", type=CATEGORY_CHOICE)
@click.option("--older-than", required=True, type=int, help="Minimum message age in days.")
@click.option(
    "--frequency",
    type=click.Choice(constants.RULE_FREQUENCIES),
    default="daily",
    help="How often the rule is due.",
)
def rules_add(category: str, older_than: int, frequency: str) -> None:
    """Add a rule trashing CATEGORY messages older than N days."""
    try:
        rule = AutomationRule(category=category, min_age_days=older_than, frequency=frequency)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    RuleStore(constants.RULES_PATH).add(rule)
    console.print(f"[green]Rule {rule.id} added.[/green]")


@rules_group.command(name="list")
def rules_list() -> None:
    """Show automation rules."""
    rules = RuleStore(constants.RULES_PATH).load()
    if not rules:
        console.print("[dim]No automation rules.[/dim]")
        return
    display_rules(rules)


@rules_group.command(name="remove")
@click.argument("rule_id")
def rules_remove(rule_id: str) -> None:
    """Remove rule RULE_ID."""
    if not RuleStore(constants.RULES_PATH).remove(rule_id):
        raise click.ClickException(f"No rule with id {rule_id}.")
    console.print(f"[green]Rule {rule_id} removed.[/green]")


@rules_group.command(name="apply")
@click.option("--execute", is_flag=True, help="Actually trash messages (default is dry-run).")
@click.option("--all", "run_all", is_flag=True, help="Run every rule, not only those that are due.")
def rules_apply(execute: bool, run_all: bool) -> None:
    """Run due automation rules."""
    store = RuleStore(constants.RULES_PATH)
    rules = store.load()
    due = [rule for rule in rules if run_all or rule.is_due()]
    if not due:
        console.print("[dim]No rules are due.[/dim]")
        return

    settings = _settings()
    factory = _factory(settings)
    state = _load_state()
    result = _run_analysis(factory, settings, state, sorted({rule.category for rule in due}))

    if not execute:
        for rule in due:
            count = sum(
                1 for r in result.view(rule.category, state) if r.days_ago >= rule.min_age_days
            )
            console.print(f"[yellow][DRY RUN][/yellow] Rule {rule.id}: {count} {rule.category} messages")
        return

    executor = TrashExecutor(factory(), DeletionLog(constants.DELETION_LOG_PATH), state=state, settings=settings)
    try:
        for rule in due:
            outcome = apply_rule(rule, result.view(rule.category, state), executor, state)
            if outcome is None:
                console.print(f"[dim]Rule {rule.id}: nothing to trash.[/dim]")
            else:
                display_trash_outcome(outcome)
    except Unauthorized as e:
        _report_trashed_before(executor)
        raise click.ClickException(str(e)) from e
    finally:
        store.save(rules)


@cli.command(name="export")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Output format.",
)
@click.option("-o", "--output", required=True, help="Output file path.")
def export_cmd(fmt: str, output: str) -> None:
    """Export cached category summaries to CSV or JSON."""
    with SummaryCache() as cache:
        summaries = cache.load_latest()

    if not summaries:
        raise click.ClickException("No cached analysis found. Run 'analyze' first.")

    export_summaries(summaries, format=fmt, output_path=output)
    console.print(f"Results saved to {output}")


@cli.command()
def auth() -> None:
    """Test or reset Gmail authentication."""
    check_auth()


@cli.group(name="cache")
def cache_group() -> None:
    """Manage the summary cache."""


@cache_group.command(name="info")
def cache_info() -> None:
    """Show cache statistics."""
    with SummaryCache() as cache:
        info = cache.get_info()

    if info["last_analysis"] is None:
        console.print("[dim]Cache is empty.[/dim]")
        return

    console.print(f"[bold]Database size:[/bold] {info['db_file_size'] / 1024:.1f} KB")
    console.print(f"[bold]Last analysis:[/bold] {info['last_analysis']}")
    console.print(f"[bold]Runs:[/bold] {info['run_count']}")
    console.print(f"[bold]Category summaries:[/bold] {info['summary_count']}")


@cache_group.command(name="clear")
def cache_clear() -> None:
    """Clear the summary cache."""
    with SummaryCache() as cache:
        cache.clear()
    console.print("[green]Cache cleared.[/green]")
