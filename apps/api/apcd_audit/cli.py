"""CLI commands for the APCD audit integrity service."""

import sys

import click

from apcd_audit.audit.exceptions import InvalidRange, StorageUnavailable
from apcd_audit.audit.service import AuditIntegrityService
from apcd_audit.audit.status import ChainStatusCache
from apcd_audit.audit.store import SqlAlchemyLedgerStore
from apcd_audit.db.session import SessionLocal

EXIT_INVALID_CHAIN = 1
EXIT_BAD_INPUT = 2
EXIT_STORAGE = 3


def _run(operation):
    """Run an operation against a fresh session and print its JSON result."""
    db = SessionLocal()
    try:
        service = AuditIntegrityService(SqlAlchemyLedgerStore(db), ChainStatusCache())
        result = operation(service)
    except InvalidRange as e:
        click.echo(f"✗ Invalid range: {e}", err=True)
        sys.exit(EXIT_BAD_INPUT)
    except StorageUnavailable as e:
        click.echo(f"✗ Audit ledger unavailable: {e}", err=True)
        sys.exit(EXIT_STORAGE)
    finally:
        db.close()

    click.echo(result.model_dump_json(indent=2))
    return result


@click.group()
def cli():
    """APCD audit integrity CLI."""
    pass


@cli.command()
@click.option("--start", "start_sequence", type=int, default=None, help="First sequence (inclusive)")
@click.option("--end", "end_sequence", type=int, default=None, help="Last sequence (inclusive)")
def verify(start_sequence, end_sequence):
    """Verify the audit hash chain (whole chain by default)."""
    result = _run(lambda service: service.verify(start_sequence, end_sequence))
    if not result.is_valid:
        sys.exit(EXIT_INVALID_CHAIN)


@cli.command("verify-recent")
@click.option("--hours", type=int, default=None, help="Hours to look back (default: 24)")
def verify_recent(hours):
    """Verify records written in the last N hours."""
    result = _run(lambda service: service.verify_recent(hours))
    if not result.is_valid:
        sys.exit(EXIT_INVALID_CHAIN)


@cli.command()
def status():
    """Show ledger size (verification status is per-process)."""
    _run(lambda service: service.get_status())


if __name__ == "__main__":
    cli()
