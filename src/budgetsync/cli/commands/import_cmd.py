"""Statement import command."""

import click

from budgetsync.adapters.csv_statement import CsvStatementProvider
from budgetsync.cli.error_handling import handle_domain_error
from budgetsync.cli.resolution import parse_account_or_exit, parse_date_or_exit
from budgetsync.domain.errors import DomainError
from budgetsync.domain.import_service import ImportService


@click.command("import")
@click.argument("statement", type=click.Path(exists=True, dir_okay=False))
@click.option("--account", required=True, help="Account reference as bank-account (e.g., fio-2000123456)")
@click.option("--start-date", required=True, help="First day to import (YYYY-MM-DD or relative)")
@click.option("--end-date", default="today", show_default=True, help="Last day to import")
@click.pass_context
def import_statement(ctx, statement: str, account: str, start_date: str, end_date: str):
    """Import transactions from a bank statement CSV file."""
    db = ctx.obj["db"]
    account_id = parse_account_or_exit(ctx, account)
    start = parse_date_or_exit(ctx, start_date, "start date")
    end = parse_date_or_exit(ctx, end_date, "end date")

    provider = CsvStatementProvider(statement)
    service = ImportService(db, provider)

    try:
        batch = service.import_transactions(account_id, start, end)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\nImport {batch.id} complete:")
    click.echo(f"  Imported: {batch.transaction_count} transactions")
    click.echo(f"  Skipped: {batch.duplicate_count} duplicates")
    if provider.errors:
        click.echo(f"  Errors: {len(provider.errors)}")
        for error in provider.errors:
            click.echo(f"    {error}", err=True)


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_statement)
