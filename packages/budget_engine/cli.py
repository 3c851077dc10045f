"""CLI for the ``budget_engine`` package.

Every command reads transactions from a JSON file (a list of transaction
objects, or an object with a ``transactions`` list), runs one engine
operation, and prints a table or, with ``--json``, a JSON document.
Budget limits, alert configurations, and alerts live in the configured store
(``BUDGET_ENGINE_STORE_DIR`` or ``BUDGET_ENGINE_DATABASE_URL``). A ``.env``
in the working directory is loaded before any command runs.
"""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from pydantic_core import to_jsonable_python
from rich.console import Console
from rich.table import Table

from . import api
from .logging_setup import configure_logging, level_from_name
from .models import (
    BUDGET_LIMIT_ADAPTER,
    Transaction,
    parse_transactions,
    to_money,
)
from .settings import EngineSettings
from .store import Repository

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="budget-engine",
    no_args_is_help=True,
    add_completion=False,
    help="Project recurring transactions, forecast budgets, find duplicates, and raise alerts.",
)


# ---- Small helpers ------------------------------------------------------------


def _fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _settings() -> EngineSettings:
    try:
        return EngineSettings.from_env()
    except ValueError as e:
        raise _fail(str(e)) from e


def _load_transactions(path: Path) -> list[Transaction]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise _fail(f"cannot read {path}: {e}") from e
    if isinstance(data, dict):
        data = data.get("transactions")
    if not isinstance(data, list):
        raise _fail(f"{path} must contain a list of transactions")
    return parse_transactions(r for r in data if isinstance(r, dict))


def _as_of(value: str | None) -> date:
    if value is None:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got {value!r}") from e


def _emit_json(value: Any) -> None:
    typer.echo(json.dumps(to_jsonable_python(value), indent=2, ensure_ascii=False))


def _money(value: Decimal | None) -> str:
    return "-" if value is None else f"{value:,.2f}"


TransactionsFile = Annotated[
    Path,
    typer.Argument(help="JSON file with transactions", dir_okay=False, file_okay=True),
]
AsOfOption = Annotated[
    str | None, typer.Option("--as-of", help="Evaluation date (YYYY-MM-DD); default today")
]
IncomeOption = Annotated[float, typer.Option("--income", help="Monthly income", min=0)]
JsonOption = Annotated[bool, typer.Option("--json", help="Print JSON instead of a table")]


# ---- Commands -------------------------------------------------------------------


@app.command("project")
def project_cmd(
    path: TransactionsFile, as_of: AsOfOption = None, as_json: JsonOption = False
) -> None:
    """Show the projected occurrences of recurring transactions for a month."""

    target = _as_of(as_of)
    projected = api.project_recurring_transactions(
        _load_transactions(path), target, settings=_settings()
    )
    if as_json:
        _emit_json(projected)
        return

    table = Table(title=f"Projected {target:%Y-%m}")
    for col in ("id", "date", "description", "amount", "type"):
        table.add_column(col)
    for t in projected:
        table.add_row(t.id, t.date.isoformat(), t.description, _money(t.amount), t.type.value)
    console.print(table)


@app.command("budget-status")
def budget_status_cmd(
    path: TransactionsFile, as_of: AsOfOption = None, as_json: JsonOption = False
) -> None:
    """Show consumption and month-end forecast for every active budget limit."""

    settings = _settings()
    target = _as_of(as_of)
    view = api.merged_view(_load_transactions(path), target, settings=settings)
    limits = Repository(settings.open_store()).budget_limits()
    statuses = api.calculate_budget_status(view, limits, target)
    if as_json:
        _emit_json(statuses)
        return

    table = Table(title=f"Budget status {target:%Y-%m}")
    for col in ("limit", "scope", "spent", "cap", "used %", "projected", "will exceed"):
        table.add_column(col)
    for s in statuses:
        scope = s.category.value if s.category else (s.card_issuer or "global")
        table.add_row(
            s.limit_id,
            scope,
            _money(s.spent),
            _money(s.limit),
            f"{s.percentage_used:.0f}",
            _money(s.projected_spend),
            "yes" if s.will_exceed else "no",
        )
    console.print(table)


@app.command("overspend")
def overspend_cmd(
    path: TransactionsFile,
    income: IncomeOption,
    as_of: AsOfOption = None,
    as_json: JsonOption = False,
) -> None:
    """Forecast whether this month's expenses will exceed income."""

    target = _as_of(as_of)
    view = api.merged_view(_load_transactions(path), target, settings=_settings())
    forecast = api.calculate_overspend_projection(view, to_money(income), target)
    if as_json:
        _emit_json(forecast)
        return
    if not forecast.will_overspend:
        console.print("[green]On track:[/green] projected spend stays within income.")
        return
    console.print(
        f"[red]Overspend projected[/red] by {_money(forecast.projected_overspend_amount)} "
        f"around {forecast.projected_overspend_date}; "
        f"daily limit {_money(forecast.recommended_daily_limit)} "
        f"(category at risk: {forecast.category_at_risk or '-'})."
    )


@app.command("duplicates")
def duplicates_cmd(path: TransactionsFile, as_json: JsonOption = False) -> None:
    """List probable duplicate groups."""

    groups = api.find_duplicate_groups(_load_transactions(path))
    if as_json:
        _emit_json(groups)
        return
    if not groups:
        console.print("No probable duplicates found.")
        return

    table = Table(title="Probable duplicates")
    for col in ("original", "duplicate", "similarity", "reasons"):
        table.add_column(col)
    for g in groups:
        for c in g.duplicates:
            table.add_row(
                f"{g.original.id} ({g.original.description})",
                f"{c.transaction.id} ({c.transaction.description})",
                f"{c.similarity:.0%}",
                "; ".join(c.reasons),
            )
    console.print(table)


@app.command("alerts")
def alerts_cmd(
    path: TransactionsFile,
    income: IncomeOption,
    as_of: AsOfOption = None,
    save: Annotated[bool, typer.Option("--save", help="Merge new alerts into the store")] = False,
    as_json: JsonOption = False,
) -> None:
    """Evaluate alert rules; with --save, persist the new alerts."""

    settings = _settings()
    target = _as_of(as_of)
    transactions = _load_transactions(path)
    store = settings.open_store()
    if save:
        alerts = api.process_and_save_alerts(
            transactions, to_money(income), target, store=store, settings=settings
        )
    else:
        repo = Repository(store)
        alerts = api.generate_alerts(
            api.merged_view(transactions, target, settings=settings),
            to_money(income),
            target,
            repo.alert_configurations(),
            limits=repo.budget_limits(),
            invoices=repo.imported_invoices(),
        )
    if as_json:
        _emit_json([a.model_dump(mode="json") for a in alerts])
        return

    table = Table(title=f"Alerts {target:%Y-%m}")
    for col in ("severity", "title", "message"):
        table.add_column(col)
    for a in alerts:
        table.add_row(a.severity.value, a.title, a.message)
    console.print(table)


@app.command("adjustments")
def adjustments_cmd(
    path: TransactionsFile,
    income: IncomeOption,
    savings_target: Annotated[
        float | None, typer.Option("--savings-target", help="Monthly amount to free up", min=0)
    ] = None,
    as_of: AsOfOption = None,
    as_json: JsonOption = False,
) -> None:
    """Suggest cuts on discretionary categories."""

    suggestions = api.generate_budget_adjustments(
        _load_transactions(path),
        to_money(income),
        to_money(savings_target) if savings_target is not None else None,
        as_of=_as_of(as_of),
    )
    if as_json:
        _emit_json(suggestions)
        return
    if not suggestions:
        console.print("No adjustments worth suggesting.")
        return
    for s in suggestions:
        console.print(f"[bold]{s.category.value}[/bold]: {s.rationale}")


@app.command("set-limit")
def set_limit_cmd(
    limit_id: Annotated[str, typer.Option("--id", help="Limit identifier")],
    amount: Annotated[float, typer.Option("--amount", help="Monthly limit")],
    category: Annotated[str | None, typer.Option(help="Scope to one category")] = None,
    card: Annotated[str | None, typer.Option(help="Scope to one card issuer")] = None,
) -> None:
    """Create or replace a budget limit in the store."""

    if category and card:
        raise _fail("use either --category or --card, not both")
    record: dict[str, Any] = {"id": limit_id, "monthly_limit": str(to_money(amount))}
    if category:
        record.update(type="category", category=category)
    elif card:
        record.update(type="card", card_issuer=card)
    else:
        record["type"] = "global"
    try:
        limit = BUDGET_LIMIT_ADAPTER.validate_python(record)
    except ValidationError as e:
        raise _fail(f"invalid limit: {e.errors()[0]['msg']}") from e

    Repository(_settings().open_store()).save_budget_limit(limit)
    console.print(
        f"Saved {limit.type} limit [bold]{limit.id}[/bold] ({_money(limit.monthly_limit)})."
    )


@app.callback()
def _root(
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="DEBUG, INFO, WARNING, ... (default: env or INFO)"),
    ] = None,
) -> None:
    """Loads ``.env`` from the working directory and configures logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    if log_level is not None and level_from_name(log_level) is None:
        raise typer.BadParameter(f"unknown log level {log_level!r}", param_hint="--log-level")
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    app()
