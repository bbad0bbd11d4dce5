# Overview: Flask CLI command groups for bootstrap and ledger inspection.

# backend/matepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: default payment methods and discount tiers.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection:
# - python -m flask ledger show [--method cash]
#   Print the per payment method cash drawer balances.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import DiscountSettings, DISCOUNT_SETTINGS_ID, PaymentMethod
from .services.cash_register_service import compute_ledger


DEFAULT_PAYMENT_METHODS = [
    ("efectivo", "Efectivo"),
    ("transferencia", "Transferencia"),
    ("tarjeta", "Tarjeta"),
]

DEFAULT_DISCOUNTS = {
    "tier1_quantity": 6,
    "tier1_discount": 10,
    "tier2_quantity": 12,
    "tier2_discount": 15,
}


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Seed the register configuration.

    Creates (skipping anything that already exists):
    - Payment methods: efectivo, transferencia, tarjeta
    - Discount tiers: 6+ units 10% off, 12+ units 15% off
    """
    click.echo("START Initializing register...")

    for code, name in DEFAULT_PAYMENT_METHODS:
        existing = db.session.query(PaymentMethod).filter_by(code=code).first()
        if existing:
            click.echo(f"WARN  Payment method '{code}' already exists, skipping...")
            continue
        db.session.add(PaymentMethod(code=code, name=name, active=True))
        click.echo(f"PASS Created payment method: {code} ({name})")

    if db.session.get(DiscountSettings, DISCOUNT_SETTINGS_ID) is None:
        db.session.add(DiscountSettings(id=DISCOUNT_SETTINGS_ID, **DEFAULT_DISCOUNTS))
        click.echo("PASS Created default discount tiers")
    else:
        click.echo("WARN  Discount settings already exist, skipping...")

    db.session.commit()
    click.echo("DONE Register initialized.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('ledger')
def ledger_group():
    """Cash drawer inspection commands."""


@ledger_group.command('show')
@click.option('--method', default=None, help='Only this payment method code')
@with_appcontext
def show_ledger(method):
    """Print the derived ledger (completed sales - withdrawals + incomes)."""
    snapshot = compute_ledger(method)

    if not snapshot.rows:
        click.echo("No sales or cash movements found.")
        return

    click.echo("\n" + "="*92)
    click.echo(f"{'Method':<20} {'Sales':>12} {'#':>5} {'Withdrawals':>13} {'Incomes':>12} {'Available':>12} {'%':>8}")
    click.echo("="*92)

    for row in snapshot.rows:
        click.echo(
            f"{row.name:<20} {row.total_sales:>12} {row.number_of_sales:>5} "
            f"{row.total_withdrawals:>13} {row.total_incomes:>12} {row.available:>12} {row.percentage:>8}"
        )

    click.echo("-"*92)
    click.echo(f"{'NET AVAILABLE':<20} {snapshot.net_available:>70}")
    click.echo("="*92 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
