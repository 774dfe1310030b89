"""
CLI interface for Academic Workflow.

Provides command-line access to routed generation, usage reporting,
literature search and Zotero reconciliation.
"""

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from academic_workflow.config.loader import Settings, load_settings
from academic_workflow.core.budget import BudgetState
from academic_workflow.core.errors import AcademicWorkflowError
from academic_workflow.core.pricing import TaskType
from academic_workflow.core.router import create_router
from academic_workflow.core.structured import Structured, parse_structured
from academic_workflow.references.models import Reference, ResolutionStrategy
from academic_workflow.references.reconciler import create_reconciler
from academic_workflow.search import search_all
from academic_workflow.storage.repository import UsageLedger, initialize_schema

app = typer.Typer()
console = Console()

# Exit codes - WARN is non-failing (0)
EXIT_CODE_PASS = 0
EXIT_CODE_WARN = 0  # Non-failing warning (offline sync, partial search)
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log routing and reconciliation decisions"
    )
):
    """Academic Workflow CLI."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    ctx.obj = {"config": config}
    if ctx.invoked_subcommand is None:
        console.print("Academic Workflow - Use --help to see available commands")


def _settings(ctx: typer.Context) -> Settings:
    path = (ctx.obj or {}).get("config")
    try:
        return load_settings(path)
    except (AcademicWorkflowError, FileNotFoundError, yaml.YAMLError) as e:
        console.print(f"[red]Configuration error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _format_currency(amount: float) -> str:
    return f"${amount:,.4f}"


@app.command()
def status(ctx: typer.Context):
    """Show configured providers, Zotero credentials and ledger location."""
    settings = _settings(ctx)

    table = Table(title="Providers")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("API key")
    for name in ("anthropic", "openai"):
        provider_config = settings.provider_config(name)
        configured = name in settings.configured_providers
        table.add_row(
            name,
            provider_config.model or "default",
            "[green]✓[/]" if configured else "[red]missing[/]"
        )
    console.print(table)

    if settings.zotero.is_configured:
        console.print("[green]✓[/] Zotero credentials configured")
    else:
        console.print("[yellow]![/] Zotero credentials missing - sync runs offline")
    console.print(f"Monthly budget: {_format_currency(settings.budget.monthly)}")
    console.print(f"Usage ledger: {settings.db_path}")

    if not settings.configured_providers:
        console.print("[red]No AI provider API key configured[/]")
        sys.exit(EXIT_CODE_FAIL)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def init(ctx: typer.Context):
    """Initialize the usage ledger database."""
    settings = _settings(ctx)
    try:
        initialize_schema(settings.db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def generate(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Prompt to send"),
    task: str = typer.Option(
        TaskType.RESEARCH.value,
        "--task",
        "-t",
        help="Task type: research, writing, analysis, outline or review"
    ),
    max_tokens: Optional[int] = typer.Option(
        None,
        "--max-tokens",
        help="Maximum output tokens"
    ),
    structured: bool = typer.Option(
        False,
        "--structured",
        help="Parse the reply as JSON"
    )
):
    """
    Route one prompt to the cheapest healthy provider.

    Spend recorded in the ledger this month counts against the budget.
    """
    settings = _settings(ctx)
    try:
        task_type = TaskType(task.lower())
    except ValueError:
        valid_tasks = [t.value for t in TaskType]
        console.print(f"[red]Error:[/] task must be one of: {valid_tasks}")
        sys.exit(EXIT_CODE_FAIL)

    ledger = UsageLedger(settings.db_path)
    try:
        ledger.initialize()
        router = create_router(settings, ledger=ledger)
        router.budget.consumed = ledger.month_to_date_cost()

        options = {"max_tokens": max_tokens} if max_tokens else {}
        result = router.generate_with_failover(prompt, task_type, **options)
    except AcademicWorkflowError as e:
        console.print_json(data=e.to_dict())
        sys.exit(EXIT_CODE_FAIL)
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    output = result.to_dict()
    if structured:
        parsed = parse_structured(result.content)
        if isinstance(parsed, Structured):
            output["data"] = parsed.data
        else:
            console.print("[yellow]Reply did not contain JSON; showing raw text[/]")
    console.print_json(data=output)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def usage(ctx: typer.Context):
    """Show recorded usage per provider and this month's budget status."""
    settings = _settings(ctx)
    ledger = UsageLedger(settings.db_path)
    try:
        ledger.initialize()
        totals = ledger.totals_by_provider()
        spent = ledger.month_to_date_cost()
    except Exception as e:
        console.print(f"[red]Error reading usage ledger:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not totals:
        console.print("\n[bold yellow]No AI usage recorded yet[/]")
        console.print("Run `academic-workflow generate` to route a prompt.\n")
    else:
        table = Table(title="Usage by provider")
        table.add_column("Provider")
        table.add_column("Requests", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("Cost", justify="right")
        for provider, row in totals.items():
            table.add_row(
                provider,
                str(row["total_requests"]),
                f"{row['total_tokens']:,}",
                _format_currency(row["total_cost"])
            )
        console.print(table)

    budget = BudgetState(monthly_limit=settings.budget.monthly, consumed=spent).status()
    console.print(
        f"Budget: {_format_currency(budget.used)} of {_format_currency(budget.budget)} "
        f"({budget.percentage:.1f}%), {_format_currency(budget.remaining)} remaining"
    )
    sys.exit(EXIT_CODE_PASS)


@app.command()
def research(
    query: str = typer.Argument(..., help="Search query"),
    limit: int = typer.Option(5, "--limit", "-l", help="Results per source"),
    bibtex: bool = typer.Option(False, "--bibtex", help="Print BibTeX entries")
):
    """Search Semantic Scholar, CrossRef and arXiv."""
    try:
        result = search_all(query, max_results=limit)
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title=f"{result.count} references")
    table.add_column("Year", justify="right")
    table.add_column("Title")
    table.add_column("Authors")
    table.add_column("Source")
    for ref in result.references:
        authors = ", ".join(ref.authors[:3]) + (" et al." if len(ref.authors) > 3 else "")
        table.add_row(str(ref.year or "n.d."), ref.title, authors, ref.source)
    console.print(table)

    for source, error in result.errors.items():
        if error:
            console.print(f"[yellow]{source} failed:[/] {error}")
    console.print(f"Search cost: {_format_currency(result.cost)}")

    if bibtex:
        console.print(result.to_dict(include_bibtex=True)["bibtex"], markup=False)

    if result.count == 0 and any(result.errors.values()):
        sys.exit(EXIT_CODE_FAIL)
    sys.exit(EXIT_CODE_PASS)


def _read_references(path: Path) -> List[Reference]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("references", [])
    if not isinstance(data, list):
        raise ValueError("expected a list of references")
    return [Reference.from_dict(item) for item in data if isinstance(item, dict)]


@app.command()
def sync(
    ctx: typer.Context,
    references_json: Path = typer.Argument(..., help="JSON file of local references"),
    resolve: Optional[str] = typer.Option(
        None,
        "--resolve",
        help="Settle every conflict with: use-local, use-remote or merge"
    )
):
    """
    Reconcile local references with the Zotero library.

    Conflicts are reported, never applied, unless --resolve is given.
    """
    settings = _settings(ctx)
    strategy = None
    if resolve is not None:
        try:
            strategy = ResolutionStrategy(resolve)
        except ValueError:
            valid = [s.value for s in ResolutionStrategy]
            console.print(f"[red]Error:[/] --resolve must be one of: {valid}")
            sys.exit(EXIT_CODE_FAIL)

    try:
        local_refs = _read_references(references_json)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error reading {references_json}:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    reconciler = create_reconciler(settings)
    result = reconciler.reconcile(local_refs)
    console.print_json(data=result.to_dict())

    if result.is_offline:
        console.print(f"[yellow]Offline:[/] {result.error}")
        sys.exit(EXIT_CODE_WARN)

    if strategy is not None and result.conflicts:
        try:
            for conflict in result.conflicts:
                reconciler.resolve_conflict(conflict, strategy)
        except Exception as e:
            console.print(f"[red]Error resolving conflicts:[/] {str(e)}")
            sys.exit(EXIT_CODE_FAIL)
        console.print(f"[green]✓[/] Resolved {len(result.conflicts)} conflict(s) with {strategy.value}")

    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
