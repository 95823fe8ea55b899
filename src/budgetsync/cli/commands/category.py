"""Category management commands."""

import click

from budgetsync.domain.entities import Category


@click.group()
def category_group():
    """Manage categories."""
    pass


@category_group.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include inactive categories")
@click.pass_context
def list_categories(ctx, show_all: bool):
    """List categories."""
    db = ctx.obj["db"]
    categories = db.list_categories(active_only=not show_all)
    if not categories:
        click.echo("No categories found. Use 'category add' to create one.")
        return

    click.echo("\nCategories:")
    for category in categories:
        external = f" -> {category.external_id}" if category.external_id else ""
        inactive = " (inactive)" if not category.active else ""
        click.echo(f"  {category.name} (ID: {category.id}){external}{inactive}")


@category_group.command("add")
@click.argument("category_id")
@click.argument("name")
@click.option("--external-id", help="Category ID in the ledger")
@click.option("--parent", "parent_id", help="Parent category ID")
@click.option("--inactive", is_flag=True, help="Create the category as inactive")
@click.pass_context
def add_category(ctx, category_id: str, name: str, external_id: str | None, parent_id: str | None, inactive: bool):
    """Create or replace a category."""
    db = ctx.obj["db"]
    if parent_id is not None and db.get_category(parent_id) is None:
        click.echo(f"Error: Parent category '{parent_id}' not found", err=True)
        ctx.exit(1)

    db.save_category(
        Category(id=category_id, name=name, external_id=external_id, parent_id=parent_id, active=not inactive)
    )
    click.echo(f"Saved category '{name}' (ID: {category_id})")


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")
