"""CLI commands for TOKENDROP API."""

import sys
from typing import Optional

import click

from tokendrop_api.db.seed import seed_all
from tokendrop_api.db.session import SessionLocal
from tokendrop_api.errors import DistributionError
from tokendrop_api.ledger.store import LedgerStore
from tokendrop_api.reports.export import export_filename, render_csv


@click.group()
def cli():
    """TOKENDROP API CLI."""
    pass


@cli.command()
@click.option("--user-id", default="demo-operator", show_default=True, help="Identity provider subject")
@click.option("--email", default="operator@example.com", show_default=True)
def seed(user_id: str, email: str):
    """Seed a demo organization and operator."""
    click.echo("Seeding initial data...")
    db = SessionLocal()
    try:
        organization = seed_all(db, user_id=user_id, email=email)
        click.echo(f"✓ Organization '{organization.name}' (id={organization.id}) with member {user_id}.")
    except Exception as e:
        click.echo(f"✗ Error seeding data: {e}", err=True)
        db.rollback()
        sys.exit(1)
    finally:
        db.close()


@cli.command("verify-chain")
@click.option("--org-id", type=int, required=True)
def verify_chain(org_id: int):
    """Verify an organization's ledger hash chain."""
    db = SessionLocal()
    try:
        is_valid, error = LedgerStore(db).verify_chain(org_id)
    finally:
        db.close()
    if is_valid:
        click.echo(f"✓ Ledger chain for org {org_id} is intact.")
    else:
        click.echo(f"✗ Ledger chain for org {org_id} is broken: {error}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--org-id", type=int, required=True)
@click.option("--start", default=None, help="YYYY-MM-DD, tenant local date")
@click.option("--end", default=None, help="YYYY-MM-DD, tenant local date")
@click.option("--output", type=click.Path(dir_okay=False), default=None, help="Defaults to the range-encoded file name")
def export(org_id: int, start: Optional[str], end: Optional[str], output: Optional[str]):
    """Export an organization's ledger to CSV."""
    db = SessionLocal()
    try:
        store = LedgerStore(db)
        events = store.query_range(org_id, start, end)
        content = render_csv(events, store.local_tz)
    except DistributionError as e:
        click.echo(f"✗ {e.message}", err=True)
        sys.exit(1)
    finally:
        db.close()

    path = output or export_filename(start, end)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    click.echo(f"✓ Wrote {len(events)} events to {path}")


if __name__ == "__main__":
    cli()
