"""
CLI Commands for maintenance tasks.

These commands can be run manually or via cron jobs:

# Approval expiry (hourly, when the in-process scheduler is disabled)
5 * * * * cd /app && flask approvals expire-stale

# Ledger verification (daily at 3 AM)
0 3 * * * cd /app && flask ledger verify
"""

import sys
import click
from flask.cli import with_appcontext
from ..services.maintenance_service import maintenance_service


@click.group('approvals')
def approvals_cli():
    """Approval request commands."""
    pass


@approvals_cli.command('expire-stale')
@click.option('--dry-run', is_flag=True, help='Count without updating')
@with_appcontext
def expire_stale(dry_run):
    """Mark PENDING approval requests past their expiry as EXPIRED."""
    result = maintenance_service.expire_stale_approvals(dry_run=dry_run)
    prefix = '[DRY RUN] ' if dry_run else ''
    click.echo(f"{prefix}Expired approval requests: {result['expired']}")


@click.group('ledger')
def ledger_cli():
    """Points ledger commands."""
    pass


@ledger_cli.command('verify')
@with_appcontext
def verify():
    """
    Check balances against the transaction log.

    Exits with status 1 when any inconsistency is found.
    """
    result = maintenance_service.verify_ledger()

    click.echo(f"Enrollments checked: {result['checked']}")
    for entry in result['balance_mismatches']:
        click.echo(
            f"  Balance mismatch: customer {entry['customer_id']} program {entry['program_id']} "
            f"balance={entry['current_points']} ledger={entry['ledger_total']}"
        )
    for entry in result['card_mismatches']:
        click.echo(
            f"  Card mismatch: card {entry['card_id']} "
            f"card={entry['card_points']} balance={entry['current_points']}"
        )
    for entry in result['missing_cards']:
        click.echo(f"  Missing card: customer {entry['customer_id']} program {entry['program_id']}")
    for entry in result['unapplied_approvals']:
        click.echo(
            f"  Approved but not applied: request {entry['request_id']} "
            f"(customer {entry['customer_id']}, program {entry['program_id']})"
        )

    if result['ok']:
        click.echo('Ledger OK')
    else:
        click.echo('Ledger has inconsistencies')
        sys.exit(1)


def init_app(app):
    """Register commands with Flask app."""
    app.cli.add_command(approvals_cli)
    app.cli.add_command(ledger_cli)
