"""
Command-line interface for the transaction reconciliation engine.
"""

from pathlib import Path
from typing import Optional
import asyncio
import sys

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import load_config, generate_default_config, ReconConfig
from .extraction.workflow import (
    ConfirmationRequired,
    ExtractionFailed,
    ExtractionItem,
    ExtractionWorkflow,
    PackagingResult,
)
from .matching.candidates import CandidateSelector
from .matching.classifier import TransactionClassifier
from .matching.engine import ReconciliationEngine
from .matching.resolver import NO_MATCH_MESSAGE, decide
from .models.context import BusinessContext
from .models.packaging import PackagingData
from .models.transaction import MatchCandidate, MatchOutcome, MatchResolution, PairingKind, Transaction
from .services.file_repository import FileTransactionRepository, summarize_by_kind, transactions_frame
from .services.http_client import ApiClient
from .utils.exceptions import InvalidUnitError
from .utils.logging_config import setup_logging_from_config

console = Console()

SECTION_CHOICE = click.Choice([k.value for k in PairingKind])
MAX_ROWS = 20


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Transaction reconciliation and match resolution tool."""
    pass


@main.command()
@click.argument("export_file", type=click.Path(exists=True, path_type=Path))
@click.option("--section", type=SECTION_CHOICE, default="bank", show_default=True)
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def queues(export_file: Path, section: str, config: Optional[Path], verbose: bool):
    """
    Show the reconciliation work queues for a transaction export.

    EXPORT_FILE: JSON or CSV transaction export
    """
    recon_config = _load(config, verbose)

    try:
        transactions = FileTransactionRepository(export_file).load()
        classifier = TransactionClassifier(recon_config.classification)
        work = classifier.partition(transactions, PairingKind(section))

        _display_kind_summary(transactions, classifier)
        _display_transactions("Needs reconciliation", work.needs_reconciliation)
        _display_transactions("Needs verification", work.needs_verification)
        _display_transactions("Receipts to match", work.receipts_to_match)

    except Exception as e:
        _fail(f"Error reading export: {e}", verbose)


@main.command()
@click.argument("export_file", type=click.Path(exists=True, path_type=Path))
@click.argument("target_id")
@click.option("--section", type=SECTION_CHOICE, default=None, help="Restrict receipts to one section")
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def candidates(
    export_file: Path,
    target_id: str,
    section: Optional[str],
    config: Optional[Path],
    verbose: bool,
):
    """
    List match candidates for one transaction in an export.

    Nothing is reconciled; the outcome shown is what a match would do.

    EXPORT_FILE: JSON or CSV transaction export
    TARGET_ID: Id of the transaction to match
    """
    recon_config = _load(config, verbose)

    try:
        transactions = FileTransactionRepository(export_file).load()
        target = next((t for t in transactions if t.id == target_id), None)
        if target is None:
            _fail(f"Transaction {target_id} not found in {export_file.name}", verbose)

        classifier = TransactionClassifier(recon_config.classification)
        selector = CandidateSelector(classifier, recon_config.matching)
        found = selector.counterparts_for(
            target, transactions, PairingKind(section) if section else None
        )

        _display_candidates(target, found, selector)
        outcome = decide(found)
        if outcome == MatchOutcome.NONE:
            console.print(f"\n[yellow]{NO_MATCH_MESSAGE}[/yellow]")
        elif outcome == MatchOutcome.AUTO:
            console.print(f"\n[green]Outcome: auto-match with {found[0].id}[/green]")
        else:
            console.print(
                f"\n[cyan]Outcome: ambiguous, {len(found)} candidates need an operator choice[/cyan]"
            )

    except Exception as e:
        _fail(f"Error finding candidates: {e}", verbose)


@main.command()
@click.option("--business-id", required=True, envvar="TALLY_BUSINESS_ID", help="Business to reconcile")
@click.option("--section", type=SECTION_CHOICE, default="bank", show_default=True)
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def reconcile(business_id: str, section: str, config: Optional[Path], verbose: bool):
    """Trigger bulk auto-reconcile for a statement section."""
    recon_config = _load(config, verbose)
    context = BusinessContext(business_id=business_id)

    async def run():
        async with ApiClient(recon_config.api) as client:
            engine = ReconciliationEngine(client, client, recon_config)
            return await engine.auto_reconcile(context, PairingKind(section))

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task(f"Reconciling {section} transactions...", total=None)
            summary = asyncio.run(run())
            progress.update(task, completed=True)

        console.print(
            f"[green]Auto-reconcile {summary.kind.value} complete: {summary.matched} matched[/green]"
        )

    except Exception as e:
        _fail(f"Error: {e}", verbose)


@main.command()
@click.argument("target_id")
@click.option("--business-id", required=True, envvar="TALLY_BUSINESS_ID", help="Business to reconcile")
@click.option("--choose", "chosen_id", default=None, help="Candidate to match when several are found")
@click.option("--section", type=SECTION_CHOICE, default=None, help="Restrict receipts to one section")
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def match(
    target_id: str,
    business_id: str,
    chosen_id: Optional[str],
    section: Optional[str],
    config: Optional[Path],
    verbose: bool,
):
    """
    Find matches for one transaction and reconcile when settled.

    TARGET_ID: Id of the bank/card line or receipt to match
    """
    recon_config = _load(config, verbose)
    context = BusinessContext(business_id=business_id)

    async def run() -> MatchResolution:
        async with ApiClient(recon_config.api) as client:
            engine = ReconciliationEngine(client, client, recon_config)
            resolution = await engine.find_matches(
                context, target_id, PairingKind(section) if section else None
            )
            if resolution.needs_operator and chosen_id:
                resolution = await engine.confirm_match(context, resolution, chosen_id)
            return resolution

    try:
        resolution = asyncio.run(run())
        _display_resolution(resolution)
    except Exception as e:
        _fail(f"Error: {e}", verbose)


@main.command()
@click.argument("text")
@click.option("--business-id", required=True, envvar="TALLY_BUSINESS_ID", help="Business the item belongs to")
@click.option("--item-id", default="cli-item", show_default=True, help="Stock item id")
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def extract(text: str, business_id: str, item_id: str, config: Optional[Path], verbose: bool):
    """
    Extract packaging data from an item description.

    TEXT: Free-text item description, e.g. "2 cartons of 12 boxes"
    """
    recon_config = _load(config, verbose)
    context = BusinessContext(business_id=business_id)

    async def run():
        async with ApiClient(recon_config.api) as client:
            workflow = ExtractionWorkflow(client, recon_config.extraction)
            outcome = await workflow.extract_with_confirmation(
                context, ExtractionItem(item_id=item_id, text=text)
            )
            if isinstance(outcome, ConfirmationRequired):
                return _prompt_for_unit(outcome)
            return outcome

    try:
        outcome = asyncio.run(run())
    except Exception as e:
        _fail(f"Error: {e}", verbose)

    if isinstance(outcome, ExtractionFailed):
        console.print(f"[yellow]{outcome.message}[/yellow]")
        console.print("You can continue without packaging data.")
        return

    _display_packaging(outcome)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _load(config: Optional[Path], verbose: bool) -> ReconConfig:
    try:
        recon_config = load_config(config)
        setup_logging_from_config(recon_config.logging, verbose)
    except Exception as e:
        _fail(f"Error loading configuration: {e}", verbose)
    return recon_config


def _fail(message: str, verbose: bool) -> None:
    console.print(f"[red]{message}[/red]")
    if verbose:
        console.print_exception()
    sys.exit(1)


def _prompt_for_unit(required: ConfirmationRequired) -> PackagingResult:
    confirmation = required.confirmation
    console.print(f"[cyan]{confirmation.question}[/cyan]")
    console.print(f"Extracted unit: {confirmation.extracted_unit}")
    while True:
        unit = click.prompt("Unit", default=confirmation.suggested_unit)
        try:
            return confirmation.confirm(unit)
        except InvalidUnitError as e:
            console.print(f"[red]{e}[/red]")


def _display_kind_summary(transactions: list[Transaction], classifier: TransactionClassifier) -> None:
    counts = summarize_by_kind(transactions_frame(transactions, classifier))

    table = Table(title="Transactions by Kind")
    table.add_column("Kind", style="cyan")
    table.add_column("Status")
    table.add_column("Count", justify="right")

    for row in counts.itertuples(index=False):
        table.add_row(row.kind, row.status, str(row.total))

    console.print(table)


def _display_transactions(title: str, transactions: list[Transaction]) -> None:
    table = Table(title=f"{title} ({len(transactions)})")
    table.add_column("Id")
    table.add_column("Date")
    table.add_column("Third Party")
    table.add_column("Amount", justify="right")
    table.add_column("Status")

    for txn in transactions[:MAX_ROWS]:
        table.add_row(
            txn.id,
            txn.transaction_date.date().isoformat() if txn.transaction_date else "-",
            txn.third_party_name or "-",
            f"{txn.amount:,.2f} {txn.currency}",
            txn.reconciliation_status.value,
        )

    console.print(table)

    if len(transactions) > MAX_ROWS:
        console.print(f"... and {len(transactions) - MAX_ROWS} more transactions")


def _display_candidates(
    target: Transaction, found: list[MatchCandidate], selector: CandidateSelector
) -> None:
    table = Table(title=f"Candidates for {target.id} ({target.amount:,.2f} {target.currency})")
    table.add_column("Id")
    table.add_column("Third Party")
    table.add_column("Amount", justify="right")
    table.add_column("Reason")

    for candidate in found:
        txn = candidate.transaction
        table.add_row(
            txn.id,
            txn.third_party_name or "-",
            f"{txn.amount:,.2f} {txn.currency}",
            selector.explain(target, candidate),
        )

    console.print(table)


def _display_resolution(resolution: MatchResolution) -> None:
    if resolution.needs_operator:
        table = Table(title=resolution.message)
        table.add_column("Id")
        table.add_column("Third Party")
        table.add_column("Amount", justify="right")
        for candidate in resolution.candidates:
            txn = candidate.transaction
            table.add_row(txn.id, txn.third_party_name or "-", f"{txn.amount:,.2f} {txn.currency}")
        console.print(table)
        console.print("[cyan]Re-run with --choose ID to match one of these.[/cyan]")
        return

    if resolution.reconcile_triggered:
        console.print(f"[green]{resolution.message}[/green]")
    elif resolution.conflict:
        console.print(f"[yellow]Status conflict: {resolution.message}[/yellow]")
    else:
        console.print(f"[yellow]{resolution.message}[/yellow]")


def _display_packaging(result: PackagingResult) -> None:
    packaging: PackagingData = result.packaging

    table = Table(title=f"Packaging for {result.item_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Order Quantity", f"{packaging.order_quantity:g}")
    table.add_row("Order Level", packaging.order_packaging_level.value)
    table.add_row("Total Primary Packages", f"{packaging.total_primary_packages:g}")
    if packaging.primary is not None:
        table.add_row("Primary", f"{packaging.primary.quantity:g} {packaging.primary.unit}")
    if packaging.secondary is not None:
        table.add_row(
            "Secondary",
            f"{packaging.secondary.description} x{packaging.secondary.primary_packages_per_secondary:g}",
        )
    if packaging.confidence is not None:
        table.add_row("Confidence", f"{packaging.confidence:.0%}")
    table.add_row("Unit Confirmed", "yes" if result.unit_confirmed else "no")
    table.add_row("Attempts", str(result.attempts))

    console.print(table)


if __name__ == "__main__":
    main()
