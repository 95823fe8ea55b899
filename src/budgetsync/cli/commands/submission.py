"""Submission readiness command."""

import click

from budgetsync.cli.resolution import parse_transaction_ids_or_exit
from budgetsync.domain.submission import validate_for_submission


@click.command("validate")
@click.argument("transaction_ids", nargs=-1, required=True)
@click.pass_context
def validate(ctx, transaction_ids: tuple[str, ...]):
    """Check whether transactions are ready for submission to the ledger."""
    db = ctx.obj["db"]
    ids = parse_transaction_ids_or_exit(ctx, transaction_ids)

    states = []
    missing = []
    for transaction_id in ids:
        state = db.get_processing_state(transaction_id)
        if state is None:
            missing.append(transaction_id)
        else:
            states.append(state)

    result = validate_for_submission(states)
    for state in result.valid_transactions:
        click.echo(f"✓ {state.transaction_id}: ready ({state.effective_category}, {state.effective_payee_name})")
    for state, reason in result.invalid_transactions:
        click.echo(f"✗ {state.transaction_id}: {reason}")
    for transaction_id in missing:
        click.echo(f"✗ {transaction_id}: not found")

    invalid_count = len(result.invalid_transactions) + len(missing)
    click.echo(f"\nResults: {len(result.valid_transactions)} ready, {invalid_count} not ready")
    if invalid_count:
        ctx.exit(1)


def register_commands(cli):
    """Register submission commands with main CLI."""
    cli.add_command(validate)
