"""CLI helpers turning option strings into domain values."""

from __future__ import annotations

from datetime import date

import click

from budgetsync.cli.error_handling import handle_domain_error
from budgetsync.domain.entities import AccountId, TransactionId
from budgetsync.domain.errors import ValidationError
from budgetsync.utils.date_parser import parse_date


def parse_date_or_exit(ctx: click.Context, value: str, label: str) -> date:
    """Parse a date option, or exit with a CLI error."""
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def parse_account_or_exit(ctx: click.Context, account: str) -> AccountId:
    """Parse a ``bank-account`` reference, or exit with a CLI error."""
    try:
        return AccountId.from_string(account)
    except ValidationError as e:
        handle_domain_error(ctx, e)


def parse_transaction_ids_or_exit(ctx: click.Context, values: tuple[str, ...]) -> list[TransactionId]:
    """Parse ``account:id`` references, dropping repeats but keeping order."""
    ids: list[TransactionId] = []
    for value in values:
        try:
            transaction_id = TransactionId.from_string(value)
        except ValidationError as e:
            handle_domain_error(ctx, e)
        if transaction_id not in ids:
            ids.append(transaction_id)
    return ids
