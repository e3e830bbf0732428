"""
CLI Commands for Loyalty Hub.

Provides Flask CLI commands for scheduled tasks and administration.

Usage:
    flask approvals expire-stale           # Expire PENDING requests past their expiry
    flask approvals expire-stale --dry-run # Count only
    flask ledger verify                    # Report balance/card inconsistencies
"""
from .maintenance import init_app as init_maintenance_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_maintenance_commands(app)
