# Overview: Flask CLI command groups for bootstrap and stock inspection.

# backend/clothstock/cli.py
# Run from backend/ with FLASK_APP=wsgi.py:
#
#   flask system init                 create tables, seed categories/sizes, create operator
#   flask system reset-db --yes       drop and recreate every table (dev only)
#   flask stock summary [--category-id N] [--keyword TEXT]
#   flask stock movements [--variant-id N] [--limit N]

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services.auth_service import ensure_operator, PasswordValidationError
from .services.catalog_service import seed_defaults
from .services import ledger_service

RULE = "=" * 72


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """Database bootstrap."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Prepare a fresh or existing database. Safe to re-run.

    Missing tables are created, categories and sizes are seeded only into
    empty tables, and the operator from ADMIN_EMAIL / ADMIN_PASSWORD is
    created if absent. Change the default password before going live.
    """
    db.create_all()
    click.echo("PASS Tables ready")

    seeded = seed_defaults()
    click.echo(f"PASS Seeded {seeded['categories']} categories, {seeded['sizes']} sizes")

    cfg = current_app.config
    try:
        operator, created = ensure_operator(cfg["ADMIN_EMAIL"], cfg["ADMIN_PASSWORD"])
    except PasswordValidationError as e:
        raise click.ClickException(f"ADMIN_PASSWORD rejected: {e}") from e

    verb = "Created operator" if created else "Operator already exists"
    click.echo(f"PASS {verb}: {operator.email}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@with_appcontext
def reset_db(yes):
    """Drop every table and create the schema again. All data is lost."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)

    db.drop_all()
    db.create_all()
    click.echo("PASS Schema recreated. Run 'flask system init' next.")


@click.group('stock')
def stock_group():
    """Read-only stock reports."""


@stock_group.command('summary')
@click.option('--category-id', type=int, help='Restrict to one category')
@click.option('--keyword', help='Substring of product name or base code')
@with_appcontext
def stock_summary(category_id, keyword):
    """Units and cost value on hand, overall and by category."""
    summary = ledger_service.get_stock_summary(category_id=category_id, keyword=keyword)
    totals = summary["totals"]

    click.echo(RULE)
    click.echo(f"STOCK SUMMARY  (as of {summary['updated_at']})")
    click.echo(RULE)
    for label, value in (
        ("Units on hand", totals["total_qty"]),
        ("Stock value", _money(totals["total_cost_cents"])),
        ("Products in stock", totals["product_count"]),
        ("Variants in stock", totals["variant_count"]),
    ):
        click.echo(f"{label + ':':<18} {value}")

    if summary["categories"]:
        click.echo("-" * 72)
        click.echo(f"{'Category':<24} {'Qty':>8} {'Value':>14} {'Products':>10} {'Variants':>10}")
        for row in summary["categories"]:
            click.echo(
                f"{row['category_name']:<24} {row['total_qty']:>8} "
                f"{_money(row['total_cost_cents']):>14} {row['product_count']:>10} {row['variant_count']:>10}"
            )
    click.echo(RULE)


@stock_group.command('movements')
@click.option('--variant-id', type=int, help='Restrict to one variant')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def stock_movements(variant_id, limit):
    """Latest stock movements first."""
    rows = ledger_service.list_movements(variant_id=variant_id, limit=limit)
    if not rows:
        click.echo("No movements found.")
        return

    click.echo(f"{'ID':<6} {'When':<21} {'Type':<7} {'Qty':>6}  {'SKU':<28} Note")
    for m in rows:
        click.echo(
            f"{m['id']:<6} {m['created_at'] or '':<21} {m['type']:<7} {m['qty']:>6}  "
            f"{m['variant']['sku']:<28} {m['note'] or ''}"
        )


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
