# Overview: Flask CLI command groups for maintenance and back-office inspection.

# backend/salonpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Promotions:
# - python -m flask promotions list --branch branch-1 [--active]
#   List a branch's promotions with usage.
#
# Deposits:
# - python -m flask deposits daily-total --branch branch-1 --date 2024-03-01 [--paid-only]
#   Show what was rung up for the day.
# - python -m flask deposits classify 100.99 100.00
#   Classify a declared amount against a sales total.

import click
from flask.cli import with_appcontext

from .errors import SalonPosError
from .extensions import db
from .services import deposit_service, promotions_service


@click.group('system')
def system_group():
    """System maintenance commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('promotions')
def promotions_group():
    """Promotion inspection commands."""


@promotions_group.command('list')
@click.option('--branch', 'branch_id', required=True, help='Branch ID')
@click.option('--active', 'active_only', is_flag=True, help='Only promotions flagged active')
@with_appcontext
def list_promotions_cli(branch_id, active_only):
    """
    List promotions for a branch.

    Example:
        flask promotions list --branch branch-1
    """
    promotions = promotions_service.list_promotions(branch_id, active_only)

    if not promotions:
        click.echo("No promotions found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Code':<16} {'Title':<28} {'Discount':<12} {'Usage':<12} {'Active':<8} {'Ends'}")
    click.echo("="*100)

    for promo in promotions:
        if promo.discount_type == "percentage":
            discount = f"{promo.discount_value}%"
        else:
            discount = f"{promo.discount_value} off"
        if promo.usage_type == "one-time":
            usage = f"{len(promo.used_by)} clients"
        else:
            usage = f"{promo.usage_count}/{promo.max_uses or '-'}"
        click.echo(
            f"{promo.id:<5} {promo.promotion_code:<16} {promo.title[:27]:<28} {discount:<12} "
            f"{usage:<12} {'Yes' if promo.is_active else 'No':<8} {promo.end_date:%Y-%m-%d}"
        )

    click.echo("="*100)
    click.echo(f"Total: {len(promotions)} promotions\n")


@click.group('deposits')
def deposits_group():
    """Deposit reconciliation commands."""


@deposits_group.command('daily-total')
@click.option('--branch', 'branch_id', required=True, help='Branch ID')
@click.option('--date', 'day', required=True, help='Business date (YYYY-MM-DD)')
@click.option('--paid-only', is_flag=True, help='Exclude in-service invoices')
@with_appcontext
def daily_total_cli(branch_id, day, paid_only):
    """
    Show the daily sales total used for deposit reconciliation.

    Example:
        flask deposits daily-total --branch branch-1 --date 2024-03-01
    """
    try:
        total = deposit_service.compute_daily_sales_total(
            branch_id, day, include_unpaid=False if paid_only else None
        )
    except SalonPosError as e:
        raise click.ClickException(e.message)

    click.echo(f"Branch {branch_id} on {day}: {total}")


@deposits_group.command('classify')
@click.argument('amount')
@click.argument('sales_total')
@with_appcontext
def classify_cli(amount, sales_total):
    """
    Classify a declared deposit amount against a sales total.

    Example:
        flask deposits classify 102.00 100.00
    """
    from flask import current_app

    try:
        result = deposit_service.classify_deposit(
            amount,
            sales_total,
            current_app.config.get("DEPOSIT_TOLERANCE"),
            current_app.config.get("DEPOSIT_MISMATCH_THRESHOLD"),
        )
    except SalonPosError as e:
        raise click.ClickException(e.message)

    click.echo(f"Status:     {result.status}")
    click.echo(f"Difference: {result.difference}")
    click.echo(f"Message:    {result.message}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(promotions_group)
    app.cli.add_command(deposits_group)
