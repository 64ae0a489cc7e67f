"""CLI commands for ClauseBase API."""

import json

import click

from clausebase_api.db.base import Base
from clausebase_api.db.seed import seed_all
from clausebase_api.db.session import SessionLocal, engine
from clausebase_api.errors import ClauseBaseError
from clausebase_api.ledger.proof import ProofService


@click.group()
def cli():
    """ClauseBase API CLI."""
    pass


@cli.command("init-db")
def init_db():
    """Create all tables (development shortcut for alembic upgrade head)."""
    import clausebase_api.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo("✓ Tables created.")


@cli.command()
def seed():
    """Seed initial data."""
    click.echo("Seeding initial data...")
    db = SessionLocal()
    try:
        seed_all(db)
        click.echo("✓ Seed data created.")
    except Exception as e:
        click.echo(f"✗ Error seeding data: {e}", err=True)
        db.rollback()
    finally:
        db.close()


@cli.command("reconcile-anchors")
@click.option("--limit", default=100, show_default=True, help="Maximum versions to retry.")
def reconcile_anchors(limit: int):
    """Retry ledger anchoring for merged versions without a transaction hash."""
    db = SessionLocal()
    try:
        results = ProofService(db).reconcile(limit=limit)
        anchored = sum(1 for result in results if result.tx_hash)
        click.echo(f"Reconciled {len(results)} versions: {anchored} anchored, {len(results) - anchored} failed.")
        for result in results:
            if result.error:
                click.echo(f"  {result.content_ref}: {result.error}", err=True)
    finally:
        db.close()


@cli.command("verify-proof")
@click.argument("version_id")
def verify_proof(version_id: str):
    """Recompute a merged version's content hash and check its recorded proof."""
    db = SessionLocal()
    try:
        result = ProofService(db).verify_proof(version_id)
    except ClauseBaseError as e:
        raise click.ClickException(e.message)
    finally:
        db.close()

    click.echo(json.dumps(result, indent=2))
    if not result["valid"]:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
