#!/usr/bin/env python3
"""
Pick'em Scoring Management CLI

This script provides command-line management functionality for the scoring service.
"""

import logging

import click
from flask.cli import with_appcontext
from flask_migrate import upgrade

from pickem import create_app, db
from pickem.models import Game, League, LeagueMember, Pick, Score, ScoredWeek, User
from pickem.models.game import GAME_STATUS_FINAL
from pickem.services.scheduler_service import scheduler_service
from pickem.services.scoring_service import ScoringEngine
from pickem.utils.errors import ScoringError


@click.group()
def cli():
    """Pick'em Scoring Management CLI"""
    pass


# Scoring Commands
@cli.group()
def scores():
    """Score computation commands"""
    pass


@scores.command()
@click.argument("league_id", type=int)
@click.argument("week", type=int)
@with_appcontext
def compute(league_id, week):
    """Recompute stored scores for one league week"""
    try:
        result = ScoringEngine().compute_week_scores(league_id, week)
    except (ScoringError, ValueError) as e:
        click.echo(f"❌ {e}")
        raise SystemExit(1)

    if not result.scored:
        click.echo(f"⚠️  Week {week} has no finished games yet, nothing stored")
        return

    click.echo(f"✅ League {league_id}, week {week}: scored {len(result.scores)} users")
    for user_id, points in sorted(result.scores.items()):
        click.echo(f"   user {user_id}: {points} points")
    if result.skipped_picks:
        click.echo(f"⚠️  Skipped picks with missing games: {result.skipped_picks}")


@scores.command()
@click.option("--user", "username", required=True, help="Requesting username")
@click.option("--league", "league_id", type=int, help="League to recalculate")
@click.option("--week", type=int, help="Week to recalculate (default: all weeks)")
@click.option("--all-leagues", is_flag=True, help="Every league the user belongs to")
@with_appcontext
def recalculate(username, league_id, week, all_leagues):
    """Recalculate scores as a given user"""
    requester = User.query.filter_by(username=username).first()
    if not requester:
        click.echo(f"❌ User {username} not found")
        raise SystemExit(1)

    try:
        summary = ScoringEngine().recalculate_scores(
            requester.id, league_id=league_id, week=week, all_leagues=all_leagues
        )
    except (ScoringError, ValueError) as e:
        click.echo(f"❌ {e}")
        raise SystemExit(1)

    for unit in summary["units"]:
        line = f"   league {unit['league_id']} week {unit['week']}: {unit['status']}"
        if unit["status"] == "failed":
            line += f" ({unit['error']})"
        click.echo(line)

    click.echo(
        f"✅ {summary['scored']} scored, {summary['not_scoreable']} not scoreable, "
        f"{summary['failed']} failed"
    )
    if summary["failed"]:
        raise SystemExit(1)


@scores.command()
@click.argument("league_id", type=int)
@click.argument("week", type=int)
@with_appcontext
def diagnose(league_id, week):
    """Compare per-pick points with the stored weekly scores"""
    engine = ScoringEngine()
    league = db.session.get(League, league_id)
    if not league:
        click.echo(f"❌ League {league_id} not found")
        raise SystemExit(1)

    stored = Score.get_week_points(league_id, week)
    mismatches = 0

    for member in league.get_members():
        details = engine.get_user_picks_details(league_id, week, member.user_id)
        expected = details["total_points"]
        actual = stored.get(member.user_id)

        if actual is None and not details["details"]:
            continue

        status = "OK"
        if (actual or 0) != expected:
            status = "MISMATCH"
            mismatches += 1
        click.echo(
            f"   {member.user.username}: picks={len(details['details'])} "
            f"detail_points={expected} stored={actual} {status}"
        )

    if mismatches:
        click.echo(f"⚠️  {mismatches} mismatches, run 'scores compute {league_id} {week}'")
    else:
        click.echo("✅ Stored scores match pick details")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except Exception as e:
        click.echo(f"❌ Error initializing database: {str(e)}")
        logging.error(f"Database init failed: {e}")


@db_cmd.command()
@with_appcontext
def reset():
    """DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except Exception as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


@db_cmd.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    try:
        upgrade(revision=revision)
        click.echo(f"✅ Migrations applied to {revision}")
    except Exception as e:
        click.echo(f"❌ Error applying migrations: {str(e)}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("Pick'em Scoring Status")
    click.echo("=" * 40)

    try:
        db.session.execute(db.text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except Exception as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    click.echo(f"Users: {User.query.count()}")
    click.echo(f"Leagues: {League.query.count()} ({LeagueMember.query.count()} memberships)")

    game_count = Game.query.count()
    final_count = Game.query.filter_by(status=GAME_STATUS_FINAL).count()
    click.echo(f"Games: {final_count}/{game_count} final")
    click.echo(f"Picks: {Pick.query.count()}")
    click.echo(f"Scores: {Score.query.count()}")
    click.echo(f"Scored weeks: {ScoredWeek.query.count()}")

    scheduler = scheduler_service.get_status()
    click.echo(f"Scheduler: {'running' if scheduler['is_running'] else 'stopped'}")
    for job in scheduler["jobs"]:
        click.echo(f"   {job['name']}: next run {job['next_run']}")
    stats = scheduler["stats"]
    if stats["total_runs"]:
        click.echo(
            f"   runs: {stats['successful_runs']}/{stats['total_runs']} ok, "
            f"last run {stats['last_run']}"
        )
        if stats["last_error"]:
            click.echo(f"   last error: {stats['last_error']}")


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        cli()
