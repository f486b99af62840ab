# Overview: Flask CLI command groups for bootstrap, inspection and admin decisions.

# backend/tracker/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to tracker (PowerShell: $env:FLASK_APP="tracker").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables and the default admin / manager / employee users (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username alice --role employee
# - python -m flask users set-status alice deactive
#
# Items:
# - python -m flask items list [--status used] [--all]
# - python -m flask items add --material "Drill" --serial SN-001 --actor admin
# - python -m flask items history 1
#
# Requests:
# - python -m flask requests list
# - python -m flask requests approve 7 --actor admin
# - python -m flask requests reject 8 --actor admin

import click
from flask.cli import with_appcontext

from .errors import TrackerError
from .extensions import db
from .models.users import ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER, VALID_ROLES, VALID_USER_STATUSES
from .models.items import VALID_ITEM_STATUSES
from .services import arbitration_service, history_service, item_service, request_queue_service, user_service
from .services.concurrency import run_in_transaction


def _actor(username: str):
    user = user_service.find_by_username(username)
    if user is None:
        raise click.ClickException(f"User '{username}' not found")
    return user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and default users: admin, manager, employee.

    Safe to run repeatedly; existing users are left alone.
    """
    click.echo("START Initializing material tracker...")
    db.create_all()

    for username, role in (("admin", ROLE_ADMIN), ("manager", ROLE_MANAGER), ("employee", ROLE_EMPLOYEE)):
        if user_service.find_by_username(username) is not None:
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        run_in_transaction(lambda: user_service.create_user(username, role))
        click.echo(f"PASS Created user: {username} with role '{role}'")

    click.echo("DONE Material tracker initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        raise click.ClickException("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User directory commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and status."""
    users = user_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Username':<24} {'Role':<10} {'Status'}")
    click.echo("="*60)
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<24} {user.role:<10} {user.status}")
    click.echo("="*60 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Unique username')
@click.option('--role', type=click.Choice(VALID_ROLES), default=ROLE_EMPLOYEE, show_default=True)
@with_appcontext
def create_user(username, role):
    """Create a user."""
    try:
        user = run_in_transaction(lambda: user_service.create_user(username, role))
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@users_group.command('set-status')
@click.argument('username')
@click.argument('status', type=click.Choice(VALID_USER_STATUSES))
@with_appcontext
def set_user_status(username, status):
    """Activate or deactivate a user."""
    user = _actor(username)
    user_id = user.id
    run_in_transaction(lambda: user_service.update_user(user_id, status=status))
    click.echo(f"PASS {username} is now {status}")


@click.group('items')
def items_group():
    """Item inspection and admin actions."""


@items_group.command('list')
@click.option('--status', type=click.Choice(VALID_ITEM_STATUSES), help='Filter by status')
@click.option('--all', 'include_archived', is_flag=True, help='Include archived items')
@with_appcontext
def list_items(status, include_archived):
    """List items, newest first."""
    items = item_service.list_items(status=status, include_archived=include_archived)
    if not items:
        click.echo("No items found.")
        return

    names = user_service.username_map(item.last_used_by for item in items)
    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Serial':<18} {'Material':<30} {'Status':<12} {'Borrower'}")
    click.echo("="*90)
    for item in items:
        borrower = names.get(item.last_used_by, "-")
        click.echo(f"{item.id:<5} {item.serial_number:<18} {item.material[:30]:<30} {item.status:<12} {borrower}")
    click.echo("="*90 + "\n")


@items_group.command('add')
@click.option('--material', required=True)
@click.option('--serial', 'serial_number', required=True)
@click.option('--description', default=None)
@click.option('--actor', 'actor_name', required=True, help='Username performing the action')
@with_appcontext
def add_item(material, serial_number, description, actor_name):
    """Register a new item."""
    try:
        item = arbitration_service.create_item(_actor(actor_name), material, serial_number, description)
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created item {item.id}: {item.material} ({item.serial_number})")


@items_group.command('history')
@click.argument('item_id', type=int)
@with_appcontext
def item_history(item_id):
    """Show the audit trail for an item, newest first."""
    try:
        item_service.get_item(item_id)
    except TrackerError as e:
        raise click.ClickException(str(e))

    entries = history_service.list_for_item(item_id)
    names = user_service.username_map(e.performed_by for e in entries)
    for entry in entries:
        click.echo(
            f"{entry.timestamp:%Y-%m-%d %H:%M:%S}  {entry.action:<17} "
            f"{names.get(entry.performed_by, '?'):<16} {entry.details or ''}"
        )


@click.group('requests')
def requests_group():
    """Pending request inspection and decisions."""


@requests_group.command('list')
@with_appcontext
def list_requests():
    """List open requests, newest first."""
    pending = request_queue_service.list_all()
    if not pending:
        click.echo("No pending requests.")
        return

    names = user_service.username_map(r.requested_by for r in pending)
    for req in pending:
        conflict = " (conflict)" if request_queue_service.has_conflicting_requests(req.item_id) else ""
        click.echo(f"#{req.id:<5} item {req.item_id:<5} {req.type:<7} by {names.get(req.requested_by, '?')}{conflict}")


@requests_group.command('approve')
@click.argument('request_id', type=int)
@click.option('--actor', 'actor_name', required=True, help='Approving admin username')
@with_appcontext
def approve_request(request_id, actor_name):
    """Approve a request; all competing requests for the item are rejected."""
    try:
        item = arbitration_service.approve_request(request_id, _actor(actor_name))
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Item {item.id} is now {item.status}")


@requests_group.command('reject')
@click.argument('request_id', type=int)
@click.option('--actor', 'actor_name', required=True, help='Rejecting admin username')
@with_appcontext
def reject_request(request_id, actor_name):
    """Reject a single request."""
    try:
        arbitration_service.reject_request(request_id, _actor(actor_name))
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Request {request_id} rejected")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(items_group)
    app.cli.add_command(requests_group)
