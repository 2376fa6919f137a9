# ruff: noqa: I001
"""CLI for the ``bank_buckets`` package.

A Typer console interface over :mod:`bank_buckets.api`. Environment variables
(notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs; ``--database-url`` overrides the
environment. Every command opens one session scope, so its store writes commit
together or not at all.

Errors are printed to stderr as ``Error: ...`` and exit with status 1.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from typer.models import ArgumentInfo, OptionInfo

from .errors import BankBucketsError
from .logging_setup import configure_logging
from .models import Bucket
from .persistence import LedgerStore
from .reports import format_money

# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    raise typer.Exit(1)


def _database_url(ctx: typer.Context) -> str:
    url = (ctx.obj or {}).get("database_url") or os.getenv("DATABASE_URL")
    if not url:
        _fail("DATABASE_URL is not set (use --database-url or a .env file).")
    return url


@contextmanager
def _ledger(ctx: typer.Context) -> Iterator[LedgerStore]:
    """Open a store inside a session scope; domain/DB errors become CLI errors."""

    # Local import keeps `--help` fast and free of engine side effects
    from db.client import session_scope

    url = _database_url(ctx)
    try:
        with session_scope(database_url=url) as session:
            yield LedgerStore(session)
    except BankBucketsError as e:
        _fail(str(e))
    except SQLAlchemyError as e:
        _fail(f"database operation failed: {e}")


def _confirm(prompt: str, yes: bool) -> None:
    if not yes and not typer.confirm(prompt, default=False):
        typer.echo("Aborted.")
        raise typer.Exit(1)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
YES_OPTION: OptionInfo = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt.")
MODE_OPTION: OptionInfo = typer.Option(
    "keyword",
    "--mode",
    help="Balance mode: 'keyword' (keyword fan-out) or 'classified' (one bucket per transaction).",
)
OUTPUT_OPTION: OptionInfo = typer.Option(
    None, "--output", "-o", help="Write to this file instead of stdout.", dir_okay=False
)
ACCOUNT_OPTION: OptionInfo = typer.Option(None, "--account", help="Account number.")
PATHS_ARGUMENT: ArgumentInfo = typer.Argument(
    ..., help="Statement files (.csv or .pdf), imported in the given order.", dir_okay=False
)


def _emit(text: str, output: Path | None) -> None:
    if output is None:
        typer.echo(text, nl=False)
        return
    try:
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        _fail(f"could not write {output}: {e}")
    typer.echo(f"Wrote {output}")


def _echo_bucket(bucket: Bucket) -> None:
    typer.echo(f"{bucket.id}\t{bucket.name}\t{', '.join(bucket.keywords)}")


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statements, sort transactions into per-account buckets and "
        "report bucket balances. Loads DATABASE_URL from a local .env."
    ),
)


@app.callback()
def _root(
    ctx: typer.Context,
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    log_level: str | None = typer.Option(
        None, help="Log level (falls back to BANK_BUCKETS_LOG_LEVEL, then INFO)."
    ),
) -> None:
    """Root command: load ``.env`` and configure logging once."""

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(log_level)

    ctx.obj = {"database_url": database_url}


@app.command("init-db")
def init_db_cmd(ctx: typer.Context) -> None:
    """Create or upgrade the ledger tables (Alembic ``upgrade head``)."""

    from db.migrate import upgrade

    url = _database_url(ctx)
    try:
        upgrade(url)
    except SQLAlchemyError as e:
        _fail(f"migration failed: {e}")
    typer.echo("Database is up to date.")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    paths: Annotated[list[Path], PATHS_ARGUMENT],
    *,
    year: int | None = typer.Option(
        None, help="Year for PDF dates printed without one (default: statement header, then today)."
    ),
    debug: bool = typer.Option(False, help="Print the PDF parser debug trace."),
) -> None:
    """Parse statements and merge them into the ledger, one file at a time."""

    from .api import import_statements

    with _ledger(ctx) as store:
        report = import_statements(store, paths, default_year=year)

    for f in report.files:
        typer.echo(
            f"{Path(f.path).name}: {f.parsed} parsed, {f.stats.unique} new, "
            f"{f.stats.duplicates} duplicates ({f.stats.total} total)"
        )
        if debug and f.debug_log:
            typer.echo(f.debug_log)
    for err in report.errors:
        print(f"Error: {err}", file=sys.stderr)
    if report.errors:
        raise typer.Exit(1)


@app.command("accounts")
def accounts_cmd(ctx: typer.Context) -> None:
    """List accounts detected in the ledger, most active first."""

    from .accounts import is_valid_account
    from .api import account_suggestions

    with _ledger(ctx) as store:
        suggestions = account_suggestions(store)

    if not suggestions:
        typer.echo("No transactions imported yet.")
        return
    for s in suggestions:
        status = "saved" if s.is_saved else "suggested"
        if not is_valid_account(s):
            status = "unidentified"
        kind = s.account_type or "-"
        bsb = s.bsb or "-"
        typer.echo(
            f"{s.account_number}\t{s.account_name}\tBSB {bsb}\t{kind}\t"
            f"{s.transaction_count} tx\t${format_money(s.balance)}\t[{status}]"
        )


@app.command("save-account")
def save_account_cmd(
    ctx: typer.Context,
    account_number: str,
    *,
    name: str | None = typer.Option(None, help="Display name (default 'Account <number>')."),
    bsb: str | None = typer.Option(None, help="BSB, e.g. 123-456."),
    account_type: str | None = typer.Option(
        None, "--type", help="Account type: 'savings' or 'day_to_day'."
    ),
) -> None:
    """Save (and confirm) account metadata."""

    from pydantic import ValidationError

    from .api import save_account
    from .models import SavedAccount

    try:
        account = SavedAccount(
            account_number=account_number, account_name=name, bsb=bsb, account_type=account_type
        )
    except ValidationError as e:
        _fail(f"invalid account details: {e.errors()[0]['msg']}")

    with _ledger(ctx) as store:
        save_account(store, account)
    typer.echo(f"Saved account {account.account_number}.")


@app.command("merge-accounts")
def merge_accounts_cmd(
    ctx: typer.Context,
    source: str,
    target: str,
    *,
    yes: bool = YES_OPTION,
) -> None:
    """Move SOURCE's transactions and buckets to TARGET and forget SOURCE."""

    from .api import merge_accounts

    _confirm(f"Merge account {source} into {target}? This cannot be undone.", yes)
    with _ledger(ctx) as store:
        result = merge_accounts(store, source, target)
    typer.echo(
        f"Merged successfully. {result.transactions_moved} transactions and "
        f"{result.buckets_moved} buckets moved."
    )


@app.command("delete-account")
def delete_account_cmd(
    ctx: typer.Context,
    account_number: str,
    *,
    yes: bool = YES_OPTION,
) -> None:
    """Forget a saved account with its buckets and classifications."""

    from .api import delete_saved_account

    _confirm(
        f"Delete account {account_number}? Transactions are kept, but its buckets "
        "and classifications are removed.",
        yes,
    )
    with _ledger(ctx) as store:
        delete_saved_account(store, account_number)
    typer.echo(f"Deleted account {account_number}.")


@app.command("add-bucket")
def add_bucket_cmd(
    ctx: typer.Context,
    name: str,
    *,
    account: str = typer.Option(..., "--account", help="Account the bucket belongs to."),
    keyword: list[str] | None = typer.Option(
        None,
        "--keyword",
        "-k",
        help="Extra keyword to match (repeatable; the name is always first).",
    ),
) -> None:
    """Create a bucket for an account."""

    from .api import add_bucket

    with _ledger(ctx) as store:
        bucket = add_bucket(store, name, account, keyword or None)
    _echo_bucket(bucket)


@app.command("buckets")
def buckets_cmd(ctx: typer.Context) -> None:
    """List buckets with their account and keywords."""

    with _ledger(ctx) as store:
        buckets = store.get_buckets()
    if not buckets:
        typer.echo("No buckets defined.")
    for b in buckets:
        typer.echo(f"{b.id}\t{b.account_number}\t{b.name}\t{', '.join(b.keywords)}")


@app.command("rename-bucket")
def rename_bucket_cmd(ctx: typer.Context, bucket_id: str, name: str) -> None:
    """Rename a bucket; a keyword equal to the old name follows the rename."""

    from .api import rename_bucket

    with _ledger(ctx) as store:
        _echo_bucket(rename_bucket(store, bucket_id, name))


@app.command("add-keyword")
def add_keyword_cmd(ctx: typer.Context, bucket_id: str, keyword: str) -> None:
    """Add a matching keyword to a bucket."""

    from .api import add_bucket_keyword

    with _ledger(ctx) as store:
        _echo_bucket(add_bucket_keyword(store, bucket_id, keyword))


@app.command("update-keyword")
def update_keyword_cmd(
    ctx: typer.Context, bucket_id: str, keyword: str, new_keyword: str
) -> None:
    """Replace one of a bucket's keywords."""

    from .api import update_bucket_keyword

    with _ledger(ctx) as store:
        _echo_bucket(update_bucket_keyword(store, bucket_id, keyword, new_keyword))


@app.command("remove-keyword")
def remove_keyword_cmd(ctx: typer.Context, bucket_id: str, keyword: str) -> None:
    """Remove a keyword from a bucket (the name keyword included)."""

    from .api import remove_bucket_keyword

    with _ledger(ctx) as store:
        _echo_bucket(remove_bucket_keyword(store, bucket_id, keyword))


@app.command("delete-bucket")
def delete_bucket_cmd(
    ctx: typer.Context,
    bucket_id: str,
    *,
    yes: bool = YES_OPTION,
) -> None:
    """Delete a bucket, its classifications and its starting allocation."""

    from .api import delete_bucket

    _confirm(
        "Delete this bucket? This also removes all transaction classifications for it.", yes
    )
    with _ledger(ctx) as store:
        removed = delete_bucket(store, bucket_id)
    typer.echo(f"Deleted bucket {bucket_id} ({removed} classifications removed).")


@app.command("suggest-buckets")
def suggest_buckets_cmd(
    ctx: typer.Context,
    *,
    account: str | None = ACCOUNT_OPTION,
    accept: bool = typer.Option(
        False, help="Create every suggested bucket for --account."
    ),
) -> None:
    """Suggest buckets from recurring transaction descriptions."""

    from .api import accept_bucket_suggestions, bucket_suggestions

    if accept and not account:
        _fail("--accept requires --account")

    with _ledger(ctx) as store:
        suggestions = bucket_suggestions(store, account)
        if accept:
            accept_bucket_suggestions(store, account)

    if not suggestions:
        typer.echo("No recurring patterns found.")
        return
    for s in suggestions:
        typer.echo(f"{s.name}\t{s.match_count} matches\tkeywords: {', '.join(s.keywords)}")
        for ex in s.examples:
            typer.echo(f"    e.g. {ex}")
    if accept:
        typer.echo(f"Created {len(suggestions)} buckets for account {account}.")


@app.command("set-allocation")
def set_allocation_cmd(
    ctx: typer.Context,
    bucket_id: str,
    amount: str,
    *,
    date: str | None = typer.Option(
        None, "--date", help="Allocation date (YYYY-MM-DD); earlier transactions are ignored."
    ),
) -> None:
    """Set a bucket's starting balance, optionally anchored at a date."""

    from pydantic import ValidationError

    from .api import set_starting_allocation

    try:
        value = Decimal(amount.replace(",", "").replace("$", ""))
    except InvalidOperation:
        _fail(f"invalid amount: {amount!r}")
    if not value.is_finite():
        _fail(f"invalid amount: {amount!r}")

    try:
        with _ledger(ctx) as store:
            alloc = set_starting_allocation(store, bucket_id, value, date)
    except ValidationError as e:
        _fail(f"invalid date: {e.errors()[0]['msg']}")
    since = f" from {alloc.date}" if alloc.date else ""
    typer.echo(f"Starting allocation for {bucket_id}: ${format_money(alloc.amount)}{since}")


@app.command("classify")
def classify_cmd(
    ctx: typer.Context,
    *,
    account: str | None = ACCOUNT_OPTION,
    auto_only: bool = typer.Option(
        False, "--auto-only", help="Only run keyword auto-assignment, no prompts."
    ),
) -> None:
    """Auto-assign by keyword, then classify the rest interactively."""

    from .api import auto_assign
    from .buckets import unclassified_transactions
    from .term_ui import SKIP_SENTINEL, select_bucket

    with _ledger(ctx) as store:
        assigned = auto_assign(store)
        typer.echo(f"Auto-assigned {assigned} transactions by keyword.")
        if auto_only:
            return

        classifications = store.get_transaction_classifications()
        buckets = store.get_buckets()
        pending = [
            tx
            for tx in unclassified_transactions(store.get_transactions(), classifications)
            if account is None or tx.account_number == account
        ]
        typer.echo(f"{len(pending)} transactions left to classify.")

        for tx in pending:
            choices = [b for b in buckets if b.account_number == tx.account_number]
            if not choices:
                continue
            typer.echo(
                f"\n{tx.transaction_date or '????-??-??'}  {tx.match_description}  "
                f"${format_money(tx.signed_amount)}  ({tx.account_number})"
            )
            picked = select_bucket([b.name for b in choices])
            if picked is None:
                break
            if picked == SKIP_SENTINEL:
                continue
            bucket = next(b for b in choices if b.name == picked)
            classifications[tx.transaction_id] = bucket.id

        store.save_transaction_classifications(classifications)


def _balances_for(ctx: typer.Context, mode: str):
    from .api import bucket_balances

    if mode not in ("keyword", "classified"):
        _fail(f"unknown mode {mode!r} (expected 'keyword' or 'classified')")
    with _ledger(ctx) as store:
        return store.get_buckets(), bucket_balances(store, mode=mode)


@app.command("balances")
def balances_cmd(
    ctx: typer.Context,
    *,
    mode: str = MODE_OPTION,
) -> None:
    """Print bucket balances and their total."""

    from .reports import format_balance_summary

    buckets, balances = _balances_for(ctx, mode)
    if not buckets:
        typer.echo("No buckets defined.")
        return
    typer.echo(format_balance_summary(buckets, balances), nl=False)


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    *,
    mode: str = MODE_OPTION,
    output: Path | None = OUTPUT_OPTION,
) -> None:
    """Export bucket balances as ``Bucket Name,Balance`` CSV."""

    from .reports import export_balances_csv

    buckets, balances = _balances_for(ctx, mode)
    if not buckets:
        _fail("no buckets to export")
    _emit(export_balances_csv(buckets, balances), output)


@app.command("diagnostics")
def diagnostics_cmd(
    ctx: typer.Context,
    *,
    output: Path | None = OUTPUT_OPTION,
) -> None:
    """Export a per-transaction diagnostics CSV."""

    from .reports import diagnostics_csv

    with _ledger(ctx) as store:
        text = diagnostics_csv(
            store.get_transactions(),
            buckets=store.get_buckets(),
            classifications=store.get_transaction_classifications(),
            saved_accounts=store.get_saved_accounts(),
            starting_allocations=store.get_starting_allocations(),
        )
    _emit(text, output)


@app.command("reset")
def reset_cmd(
    ctx: typer.Context,
    *,
    yes: bool = YES_OPTION,
) -> None:
    """Clear imported transactions, confirmations and classifications."""

    from .api import reset

    _confirm(
        "Clear all imported data? Saved accounts, buckets and starting "
        "allocations are kept.",
        yes,
    )
    with _ledger(ctx) as store:
        reset(store)
    typer.echo("Ledger reset.")


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m bank_buckets.cli`
    app()
