"""
CLI Commands for Giya.

Usage:
    flask admin create --email admin@example.com --password secret123

    flask maintenance expire-offers [--dry-run]   # Deactivate expired deals/punch cards
    flask maintenance recount-punches             # Repair punch counters
"""
from .admin import init_app as init_admin_commands
from .maintenance import init_app as init_maintenance_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_admin_commands(app)
    init_maintenance_commands(app)
