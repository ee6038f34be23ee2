"""Tests for the audit integrity CLI."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from apcd_audit.audit.exceptions import StorageUnavailable
from apcd_audit.cli import EXIT_BAD_INPUT, EXIT_INVALID_CHAIN, EXIT_STORAGE, cli

from conftest import tamper_payload


@pytest.fixture
def runner(db):
    """CLI runner whose sessions come from the test database."""
    with patch("apcd_audit.cli.SessionLocal", return_value=db):
        yield CliRunner()


def test_verify_valid_chain(runner, chain):
    """Intact chain prints the result and exits 0."""
    result = runner.invoke(cli, ["verify"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["is_valid"] is True
    assert data["last_sequence"] == "5"


def test_verify_tampered_chain_exits_nonzero(runner, db, chain):
    """Findings make the command fail."""
    tamper_payload(db, 2, {"tampered": True})
    result = runner.invoke(cli, ["verify", "--start", "1", "--end", "5"])
    assert result.exit_code == EXIT_INVALID_CHAIN


def test_verify_invalid_range(runner, chain):
    """Bad bounds exit with the input error code."""
    result = runner.invoke(cli, ["verify", "--start", "4", "--end", "2"])
    assert result.exit_code == EXIT_BAD_INPUT


def test_verify_recent(runner, chain):
    """Recent-window verification over old records checks nothing."""
    result = runner.invoke(cli, ["verify-recent", "--hours", "1"])
    assert result.exit_code == 0
    assert json.loads(result.output)["records_checked"] == 0


def test_status(runner, chain):
    """Status reports ledger size."""
    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 0
    assert json.loads(result.output)["total_records"] == 5


@patch("apcd_audit.cli.SqlAlchemyLedgerStore.aggregate")
def test_storage_unavailable(mock_aggregate, runner):
    """Ledger outages exit with the storage error code."""
    mock_aggregate.side_effect = StorageUnavailable("connection refused")
    result = runner.invoke(cli, ["status"])
    assert result.exit_code == EXIT_STORAGE
