"""Categorization commands."""

import click

from budgetsync.cli.error_handling import handle_domain_error
from budgetsync.cli.resolution import parse_transaction_ids_or_exit
from budgetsync.domain.categorization import CategorizationService, KeywordCategorizationProvider
from budgetsync.domain.entities import TransactionFilter
from budgetsync.domain.errors import DomainError
from budgetsync.utils.amount_parser import parse_amount


def _parse_rules(ctx: click.Context, rules: tuple[str, ...]) -> dict[str, str]:
    parsed = {}
    for rule in rules:
        pattern, sep, category = rule.partition("=")
        if not sep or not pattern.strip() or not category.strip():
            click.echo(f"Error: Invalid rule '{rule}'. Expected PATTERN=CATEGORY", err=True)
            ctx.exit(1)
        parsed[pattern.strip()] = category.strip()
    return parsed


@click.command("categorize")
@click.argument("transaction_ids", nargs=-1)
@click.option("--rule", "rules", multiple=True, help="Keyword rule as PATTERN=CATEGORY (repeatable)")
@click.option("--account", help="Only categorize imported transactions of this account")
@click.pass_context
def categorize(ctx, transaction_ids: tuple[str, ...], rules: tuple[str, ...], account: str | None):
    """Categorize transactions using keyword rules.

    Without IDs every transaction still in Imported status is categorized.
    Transactions matching no rule get the default category.

    Examples:
        budgetsync categorize --rule Albert=groceries --rule Shell=fuel
        budgetsync categorize fio-2000:101 fio-2000:102 --rule Albert=groceries
    """
    db = ctx.obj["db"]
    service = CategorizationService(db, KeywordCategorizationProvider(_parse_rules(ctx, rules)))
    service.ensure_default_category()

    if transaction_ids:
        result = service.categorize_transactions(parse_transaction_ids_or_exit(ctx, transaction_ids))
    else:
        result = service.categorize_imported(account_id=account)

    click.echo(f"\nCategorized: {result.categorized_count}")
    if result.average_confidence is not None:
        click.echo(f"Average confidence: {result.average_confidence.value:.2f}")
    if result.failures:
        click.echo(f"Failed: {result.failed_count}")
        for failure in result.failures:
            click.echo(f"  ✗ {failure.transaction_id}: {failure.reason}", err=True)
        ctx.exit(1)


@click.command("recategorize")
@click.argument("transaction_id")
@click.argument("category")
@click.option("--payee", help="Payee name override")
@click.option("--memo", help="Memo override")
@click.pass_context
def recategorize(ctx, transaction_id: str, category: str, payee: str | None, memo: str | None):
    """Manually set the category of a transaction."""
    db = ctx.obj["db"]
    service = CategorizationService(db, KeywordCategorizationProvider({}))
    (parsed_id,) = parse_transaction_ids_or_exit(ctx, (transaction_id,))

    try:
        state = service.update_category(parsed_id, category, memo=memo, payee_name=payee)
    except DomainError as e:
        handle_domain_error(ctx, e)
    if state is None:
        click.echo(f"Error: Transaction {parsed_id} not found", err=True)
        ctx.exit(1)
    click.echo(f"Transaction {parsed_id} categorized as '{state.effective_category}'")


@click.command("bulk-categorize")
@click.argument("category")
@click.option("--account", help="Only transactions of this account")
@click.option("--description-contains", help="Case-sensitive text in description or message")
@click.option("--min-amount", type=str, help="Minimum amount (inclusive)")
@click.option("--max-amount", type=str, help="Maximum amount (inclusive)")
@click.option("--memo", help="Memo override")
@click.option("--payee", help="Payee name override")
@click.pass_context
def bulk_categorize(
    ctx,
    category: str,
    account: str | None,
    description_contains: str | None,
    min_amount: str | None,
    max_amount: str | None,
    memo: str | None,
    payee: str | None,
):
    """Set CATEGORY on every matching transaction that is not yet submitted."""
    db = ctx.obj["db"]
    service = CategorizationService(db, KeywordCategorizationProvider({}))

    try:
        transaction_filter = TransactionFilter(
            account_id=account,
            description_contains=description_contains,
            min_amount=parse_amount(min_amount) if min_amount is not None else None,
            max_amount=parse_amount(max_amount) if max_amount is not None else None,
        )
    except ValueError as e:
        click.echo(f"Error: Invalid amount: {e}", err=True)
        ctx.exit(1)

    count = service.bulk_update_category(transaction_filter, category, memo=memo, payee_name=payee)
    click.echo(f"Updated {count} transaction{'s' if count != 1 else ''} to '{category}'")


def register_commands(cli):
    """Register categorization commands with main CLI."""
    cli.add_command(categorize)
    cli.add_command(recategorize)
    cli.add_command(bulk_categorize)
