# Overview: Flask CLI command groups for bootstrap and reference data.

# backend/retailcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to retailcore (PowerShell: $env:FLASK_APP="retailcore").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Membership tiers:
# - python -m flask tiers seed
#   Create the default tiers (Bronze, Silver, Gold, Platinum) if missing.
# - python -m flask tiers set Gold 15000
#   Create or update a tier's points multiplier in basis points (15000 = 1.5x).
# - python -m flask tiers list
#   List tiers with their multipliers.
#
# Members:
# - python -m flask members next-id
#   Print the member id the next registration would receive.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import MembershipTier
from .services import identifier_service


DEFAULT_TIERS = {
    "Bronze": 10000,
    "Silver": 12500,
    "Gold": 15000,
    "Platinum": 20000,
}


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping all data.')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        raise click.UsageError("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("Database reset complete.")


@click.group('tiers')
def tiers_group():
    """Membership tier reference data."""


@tiers_group.command('seed')
@with_appcontext
def seed_tiers():
    """Create default tiers that do not exist yet."""
    created = 0
    for name, multiplier_bps in DEFAULT_TIERS.items():
        if db.session.get(MembershipTier, name) is None:
            db.session.add(MembershipTier(tier_name=name, points_multiplier_bps=multiplier_bps))
            created += 1
    db.session.commit()
    click.echo(f"Seeded {created} tier(s).")


@tiers_group.command('set')
@click.argument('name')
@click.argument('multiplier_bps', type=click.IntRange(min=0))
@with_appcontext
def set_tier(name, multiplier_bps):
    """Create or update a tier's points multiplier (basis points)."""
    tier = db.session.get(MembershipTier, name)
    if tier is None:
        tier = MembershipTier(tier_name=name)
        db.session.add(tier)
    tier.points_multiplier_bps = multiplier_bps
    db.session.commit()
    click.echo(f"{name}: {tier.points_multiplier}x")


@tiers_group.command('list')
@with_appcontext
def list_tiers():
    tiers = db.session.query(MembershipTier).order_by(MembershipTier.points_multiplier_bps).all()
    if not tiers:
        click.echo("No tiers defined. Run `flask tiers seed`.")
        return
    for tier in tiers:
        click.echo(f"{tier.tier_name:<12} {tier.points_multiplier}x")


@click.group('members')
def members_group():
    """Member inspection commands."""


@members_group.command('next-id')
@with_appcontext
def next_member_id():
    click.echo(identifier_service.allocate_member_id())


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(tiers_group)
    app.cli.add_command(members_group)
