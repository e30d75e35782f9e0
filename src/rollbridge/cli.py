# src/rollbridge/cli.py
"""rollbridge command line interface.

Entry point for both long-running services and for the operator queries
against the record store.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from rollbridge import __version__
from rollbridge.contracts.enums import TxState
from rollbridge.contracts.errors import ConfigurationError, ManualReviewRequired, StateConflictError
from rollbridge.core.config import BridgeSettings, load_settings

if TYPE_CHECKING:
    from rollbridge.contracts.records import ProofBundleRecord, TxRecord
    from rollbridge.core.store import BridgeDB

__all__ = ["app"]

app = typer.Typer(
    name="rollbridge",
    help="rollbridge: L1 deposit ingestion and proof settlement for a rollup.",
    no_args_is_help=True,
)
deposit_app = typer.Typer(help="Deposit ingestion service.", no_args_is_help=True)
settle_app = typer.Typer(help="Settlement service.", no_args_is_help=True)
records_app = typer.Typer(help="Query and resolve stored records.", no_args_is_help=True)
app.add_typer(deposit_app, name="deposit")
app.add_typer(settle_app, name="settle")
app.add_typer(records_app, name="records")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"rollbridge version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Raises:
        typer.Exit: If an explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(False, "--no-dotenv", help="Skip loading .env file."),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose/debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Output structured JSON logs."),
) -> None:
    """rollbridge: L1 deposit ingestion and proof settlement for a rollup."""
    from rollbridge.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")
    ctx.obj = {"verbose": verbose, "json_logs": json_logs}

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


def _load_or_exit(settings: str) -> BridgeSettings:
    """Load settings; every config problem is exit code 1 with a message on stderr."""
    settings_path = Path(settings).expanduser()
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def _open_db(settings: str | None, database: str | None) -> BridgeDB:
    from rollbridge.core.store import BridgeDB

    if database is not None:
        return BridgeDB(database, create_tables=False)
    if settings is not None:
        return BridgeDB(_load_or_exit(settings).database.url, create_tables=False)
    typer.echo("Error: either --settings or --database is required.", err=True)
    raise typer.Exit(1)


def _apply_logging(ctx: typer.Context, config: BridgeSettings) -> None:
    """Settings file logging section, overridden by the global CLI flags."""
    from rollbridge.core.logging import configure_logging

    flags = ctx.obj or {}
    level = "DEBUG" if flags.get("verbose") else config.logging.level
    configure_logging(json_output=bool(flags.get("json_logs")) or config.logging.json_output, level=level)


_SETTINGS_OPTION = typer.Option(..., "--settings", "-s", help="Path to settings YAML file.")
_OPTIONAL_SETTINGS_OPTION = typer.Option(None, "--settings", "-s", help="Path to settings YAML file.")
_DATABASE_OPTION = typer.Option(None, "--database", "-d", help="Database URL (overrides the settings file).")
_JSON_OPTION = typer.Option(False, "--json", help="Output as JSON.")


# === Services ===


@deposit_app.command("serve")
def deposit_serve(ctx: typer.Context, settings: str = _SETTINGS_OPTION) -> None:
    """Install the admin account, backfill recent blocks, then poll for deposits."""
    from rollbridge.engine.context import ServiceContext
    from rollbridge.engine.deposit import DepositExecutor, EventIngestor

    config = _load_or_exit(settings)
    _apply_logging(ctx, config)
    try:
        service_ctx = ServiceContext.for_deposit(config)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    try:
        EventIngestor(service_ctx, DepositExecutor(service_ctx)).serve()
    except (ManualReviewRequired, StateConflictError) as e:
        typer.echo(f"Deposit service stopped: {e}", err=True)
        raise typer.Exit(2) from None
    finally:
        service_ctx.close()


@settle_app.command("serve")
def settle_serve(
    ctx: typer.Context,
    settings: str = _SETTINGS_OPTION,
    once: bool = typer.Option(False, "--once", help="Run a single settlement cycle and exit."),
) -> None:
    """Settle proof bundles against the L1 contract."""
    from rollbridge.engine.context import ServiceContext
    from rollbridge.engine.settlement import SettlementService

    config = _load_or_exit(settings)
    _apply_logging(ctx, config)
    try:
        service_ctx = ServiceContext.for_settlement(config)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    try:
        service = SettlementService(service_ctx)
        if once:
            outcome = service.try_settle()
            typer.echo(f"Cycle outcome: {outcome.value}")
        else:
            service.serve()
    except ManualReviewRequired as e:
        typer.echo(f"Settlement service stopped: {e}", err=True)
        raise typer.Exit(2) from None
    except Exception as e:
        # Only reachable with --once; serve() logs and continues.
        typer.echo(f"Settlement cycle failed: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        service_ctx.close()


# === Records ===


def _tx_to_dict(record: TxRecord) -> dict[str, Any]:
    return {
        "tx_hash": record.tx_hash,
        "state": record.state.value,
        "l1_token": str(record.l1_token),
        "l1_account": record.l1_account,
        "pid_1": str(record.account.pid_1),
        "pid_2": str(record.account.pid_2),
        "amount": str(record.amount),
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def _bundle_to_dict(record: ProofBundleRecord) -> dict[str, Any]:
    return {
        "merkle_root": record.merkle_root,
        "task_id": record.task_id,
        "settle_status": record.settle_status.value if record.settle_status else None,
        "settle_tx_hash": record.settle_tx_hash,
        "withdrawals": [{"address": w.address, "amount": str(w.amount)} for w in record.withdrawals],
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }


def _emit(items: list[dict[str, Any]], json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps(items, indent=2))
        return
    for item in items:
        typer.echo("  ".join(f"{k}={v}" for k, v in item.items() if k != "withdrawals"))
        for w in item.get("withdrawals", []):
            typer.echo(f"    withdrawal {w['address']} {w['amount']}")


@records_app.command("bundle")
def records_bundle(
    task_id: str = typer.Option(..., "--task-id", help="Proof task id."),
    settings: str | None = _OPTIONAL_SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Show the proof bundle for a task id."""
    from rollbridge.core.store import BundleStore

    with _open_db(settings, database) as db:
        bundle = BundleStore(db).find_by_task_id(task_id)
    if bundle is None:
        typer.echo(f"No bundle for task {task_id}", err=True)
        raise typer.Exit(1)
    _emit([_bundle_to_dict(bundle)], json_output)


@records_app.command("bundles")
def records_bundles(
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="How many bundles to show."),
    settings: str | None = _OPTIONAL_SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Show the most recent proof bundles, newest first."""
    from rollbridge.core.store import BundleStore

    with _open_db(settings, database) as db:
        bundles = BundleStore(db).latest(limit)
    _emit([_bundle_to_dict(b) for b in bundles], json_output)


@records_app.command("tx")
def records_tx(
    tx_hash: str = typer.Argument(..., help="L1 transaction hash."),
    settings: str | None = _OPTIONAL_SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """Show one deposit record."""
    from rollbridge.core.store import TxStore

    with _open_db(settings, database) as db:
        record = TxStore(db).get(tx_hash)
    if record is None:
        typer.echo(f"No deposit record for {tx_hash}", err=True)
        raise typer.Exit(1)
    _emit([_tx_to_dict(record)], json_output)


@records_app.command("txs")
def records_txs(
    state: TxState = typer.Option(..., "--state", help="Deposit state to list."),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1),
    settings: str | None = _OPTIONAL_SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
    json_output: bool = _JSON_OPTION,
) -> None:
    """List deposit records in one state."""
    from rollbridge.core.store import TxStore

    with _open_db(settings, database) as db:
        records = TxStore(db).list_by_state(state, limit=limit)
    _emit([_tx_to_dict(r) for r in records], json_output)


@records_app.command("resolve")
def records_resolve(
    tx_hash: str = typer.Argument(..., help="L1 transaction hash of the escalated deposit."),
    state: TxState = typer.Option(..., "--state", help="completed if the funding happened, failed if not."),
    settings: str | None = _OPTIONAL_SETTINGS_OPTION,
    database: str | None = _DATABASE_OPTION,
) -> None:
    """Resolve a deposit that was escalated while in-progress."""
    from rollbridge.core.store import TxStore

    with _open_db(settings, database) as db:
        try:
            record = TxStore(db).resolve_manually(tx_hash, state)
        except (StateConflictError, ValueError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from None
    typer.echo(f"{record.tx_hash} resolved as {record.state.value}")


if __name__ == "__main__":
    app()
