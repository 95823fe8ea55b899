"""Statistics and import history commands."""

import click

from budgetsync.domain.statistics import StatisticsService


@click.command("stats")
@click.option("--account", help="Only count transactions of this account")
@click.pass_context
def stats(ctx, account: str | None):
    """Show how many transactions are at each workflow stage."""
    db = ctx.obj["db"]
    statistics = StatisticsService(db).get_statistics(account)

    click.echo(f"Total:       {statistics.total}")
    click.echo(f"Imported:    {statistics.imported}")
    click.echo(f"Categorized: {statistics.categorized}")
    click.echo(f"Submitted:   {statistics.submitted}")
    click.echo(f"Duplicates:  {statistics.duplicate}")


@click.command("batches")
@click.option("--account", help="Only batches of this account")
@click.pass_context
def batches(ctx, account: str | None):
    """List import batches."""
    db = ctx.obj["db"]
    import_batches = db.list_import_batches(account)
    if not import_batches:
        click.echo("No import batches found.")
        return

    for batch in import_batches:
        line = (
            f"{batch.id}  {batch.start_date} to {batch.end_date}  {batch.status}  "
            f"{batch.transaction_count} imported, {batch.duplicate_count} duplicates"
        )
        if batch.error_message:
            line += f"  ({batch.error_message})"
        click.echo(line)


def register_commands(cli):
    """Register statistics commands with main CLI."""
    cli.add_command(stats)
    cli.add_command(batches)
