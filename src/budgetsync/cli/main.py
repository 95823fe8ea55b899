"""Main CLI entry point."""

import click
from budgetsync.config import LOG_LEVEL_ENV
from budgetsync.database.factories import create_sqlite_database
from budgetsync.logging_setup import configure_logging

# Import and register all commands at module level
from budgetsync.cli.commands import (
    import_cmd,
    categorize,
    submission,
    stats,
    category,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides BUDGETSYNC_DB_PATH environment variable)",
    envvar="BUDGETSYNC_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    envvar=LOG_LEVEL_ENV,
    help="Logging verbosity (overrides BUDGETSYNC_LOG_LEVEL environment variable)",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """budgetsync - Bank transaction import and categorization.

    Import bank statements, categorize transactions with keyword rules or by
    hand, and check which ones are ready to be submitted to the budget ledger.
    """
    ctx.ensure_object(dict)
    configure_logging(log_level)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
import_cmd.register_commands(cli)
categorize.register_commands(cli)
submission.register_commands(cli)
stats.register_commands(cli)
category.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
