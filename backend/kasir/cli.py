# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/kasir/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Database:
# - python -m flask db upgrade
#   Apply Alembic migrations (preferred for real databases).
# - python -m flask system init-db
#   Create any missing tables straight from the models (dev shortcut).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Reports:
# - python -m flask reports summary --days 7
#   Print the dashboard statistics as JSON.
# - python -m flask catalog low-stock
#   List active products at or below their minimum stock.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import reporting_service
from .services.reporting_service import ReportError


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (existing data is kept)."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destroying all data')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        raise click.UsageError("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('summary')
@click.option('--days', default=7, show_default=True, type=int, help='Window size in days')
@with_appcontext
def summary(days):
    """Print dashboard statistics for the last N days."""
    try:
        result = reporting_service.summarize(days)
    except ReportError as exc:
        raise click.BadParameter(str(exc), param_hint='--days')
    click.echo(json.dumps(result, indent=2))


@click.group('catalog')
def catalog_group():
    """Catalog inspection commands."""


@catalog_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active products with stock at or below min_stock."""
    products = reporting_service.low_stock_products()
    if not products:
        click.echo("No low-stock products")
        return
    for p in products:
        click.echo(f"{p.sku:<16} {p.name:<40} stock={p.stock:<6} min={p.min_stock}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(reports_group)
    app.cli.add_command(catalog_group)
