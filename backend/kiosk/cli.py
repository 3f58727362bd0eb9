# Overview: Flask CLI command groups for bootstrap and kiosk maintenance.

# backend/kiosk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "kiosk:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: tables, default settings, joint options, preroll grid, admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username admin --email admin@kiosk.local --password "Password123" --role admin
#
# Loyalty:
# - python -m flask points list-pending
# - python -m flask points approve 12 13
# - python -m flask points discard 14
#
# Crypto payments:
# - python -m flask crypto refresh-all
#   Re-check payments still waiting/confirming/sending and settle paid ones.
#
# Kiosk:
# - python -m flask kiosk sweep-sessions
#   Expire abandoned sessions whose deadline has passed.
# - python -m flask kiosk preload-assets
#   Download remote menu images into the image cache.
#
# Catalog defaults:
# - python -m flask prerolls seed [--reset]
# - python -m flask joints seed

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import KioskSetting, User
from .services import (
    asset_cache,
    checkout_service,
    crypto_service,
    joint_option_service,
    kiosk_session_service,
    pending_points_service,
    preroll_service,
    settings_service,
)
from .services.auth_service import create_user, PasswordValidationError
from .services.customer_service import PointsError
from .services.pending_points_service import PendingPointsError


CLI_PROCESSED_BY = "cli"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-password', default='Password123', help='Password for the default admin user')
@with_appcontext
def init_system(admin_password):
    """
    Initialize the kiosk backend.

    Creates:
    - All tables (when missing)
    - Default settings (transaction prefix, non-member payment methods, ...)
    - Default joint builder options and preroll grid (when empty)
    - User: admin/admin@kiosk.local

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing kiosk backend...")

    db.create_all()
    click.echo("PASS Tables ready")

    created = 0
    for key, value in settings_service.DEFAULTS.items():
        if db.session.query(KioskSetting).filter_by(key=key).first() is None:
            settings_service.set_setting(key, value)
            created += 1
    if db.session.query(KioskSetting).filter_by(key=settings_service.SETTING_TRANSACTION_PREFIX).first() is None:
        settings_service.set_setting(settings_service.SETTING_TRANSACTION_PREFIX, settings_service.get_transaction_prefix())
        created += 1
    db.session.commit()
    click.echo(f"PASS Default settings: {created} created")

    click.echo(f"PASS Joint options: {joint_option_service.seed_default_options()} created")
    prerolls = preroll_service.seed_default_data()
    click.echo(f"PASS Preroll grid: {'created' if prerolls['created'] else 'already present'}")

    if db.session.query(User).filter_by(username="admin").first() is None:
        try:
            create_user("admin", "admin@kiosk.local", admin_password, role="admin")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed: {str(e)}")
            return
        click.echo("PASS Created user: admin (admin@kiosk.local)")
    else:
        click.echo("PASS Using existing admin user")

    click.echo("DONE Kiosk backend initialized")


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


@click.group('users')
def users_group():
    """Back-office user commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'staff']), default='staff', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a back-office user.

    Password must be 8+ characters with an uppercase letter, a lowercase
    letter and a digit.
    """
    try:
        create_user(username=username, email=email, password=password, role=role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return
    click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<8} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<8} {active_str}")
    click.echo("=" * 80 + "\n")


@click.group('points')
def points_group():
    """Pending points review."""


@points_group.command('list-pending')
@click.option('--customer-id', type=int, help='Filter by customer')
@with_appcontext
def list_pending_cli(customer_id):
    entries = pending_points_service.list_pending(customer_id=customer_id)
    if not entries:
        click.echo("No pending points.")
        return
    for e in entries:
        click.echo(
            f"{e['id']:<6} {e['customer_name'] or '-':<25} {e['points_amount']:>7} "
            f"{e['transaction_code'] or '-':<20} {e['reason'] or ''}"
        )


@points_group.command('approve')
@click.argument('ids', nargs=-1, type=int, required=True)
@with_appcontext
def approve_cli(ids):
    for result in pending_points_service.batch_approve(list(ids), processed_by=CLI_PROCESSED_BY):
        if result["success"]:
            click.echo(f"PASS Approved {result['id']}")
        else:
            click.echo(f"FAIL {result['id']}: {result['error']}")


@points_group.command('discard')
@click.argument('ids', nargs=-1, type=int, required=True)
@with_appcontext
def discard_cli(ids):
    for result in pending_points_service.batch_discard(list(ids), processed_by=CLI_PROCESSED_BY):
        if result["success"]:
            click.echo(f"PASS Discarded {result['id']}")
        else:
            click.echo(f"FAIL {result['id']}: {result['error']}")


@click.group('crypto')
def crypto_group():
    """Crypto payment maintenance."""


@crypto_group.command('refresh-all')
@with_appcontext
def refresh_all_cli():
    results = crypto_service.refresh_all(settle=checkout_service.settle_crypto_payment)
    click.echo(
        f"PASS Checked {results['total']} payments: {results['updated']} updated, "
        f"{results['skipped']} unchanged, {results['errors']} errors"
    )


@click.group('kiosk')
def kiosk_group():
    """Kiosk maintenance."""


@kiosk_group.command('sweep-sessions')
@with_appcontext
def sweep_sessions_cli():
    expired = kiosk_session_service.sweep_expired()
    click.echo(f"PASS Expired {expired} abandoned sessions")


@kiosk_group.command('preload-assets')
@with_appcontext
def preload_assets_cli():
    results = asset_cache.preload_menu()
    click.echo(
        f"PASS {results['total']} menu assets: {results['fetched']} fetched, {results['cached']} cached, "
        f"{results['local']} local, {results['failed']} failed"
    )


@click.group('prerolls')
def prerolls_group():
    """Preroll catalog commands."""


@prerolls_group.command('seed')
@click.option('--reset', is_flag=True, help='Wipe existing preroll data first')
@with_appcontext
def seed_prerolls_cli(reset):
    result = preroll_service.seed_default_data(reset=reset)
    if result["created"]:
        click.echo("PASS Seeded default preroll grid")
    else:
        click.echo("SKIP Preroll data already present (use --reset to replace it)")


@click.group('joints')
def joints_group():
    """Joint builder option commands."""


@joints_group.command('seed')
@with_appcontext
def seed_joints_cli():
    created = joint_option_service.seed_default_options()
    if created:
        click.echo(f"PASS Seeded {created} joint options")
    else:
        click.echo("SKIP Joint options already present")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(points_group)
    app.cli.add_command(crypto_group)
    app.cli.add_command(kiosk_group)
    app.cli.add_command(prerolls_group)
    app.cli.add_command(joints_group)
