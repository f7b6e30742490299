"""Tests for the operational CLI."""

import json

import pytest

from estimate_ledger.cli import LedgerCli


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


def test_no_command_prints_help(capsys):
    assert LedgerCli().run([]) == 1
    assert "estimate-ledger" in capsys.readouterr().out


def test_init_db_is_idempotent(database_url, capsys):
    cli = LedgerCli()

    assert cli.run(["--database-url", database_url, "init-db"]) == 0
    assert "Seeded sequences: estimate, invoice" in capsys.readouterr().out

    assert cli.run(["--database-url", database_url, "init-db"]) == 0
    assert "Sequences already configured." in capsys.readouterr().out


def test_sequences_json(database_url, capsys):
    cli = LedgerCli()
    cli.run(["--database-url", database_url, "init-db"])
    capsys.readouterr()

    assert cli.run(["--database-url", database_url, "sequences", "--json"]) == 0
    assert json.loads(capsys.readouterr().out) == {"estimate": 0, "invoice": 1000}


def test_overdue_report_empty(database_url, capsys):
    cli = LedgerCli()
    cli.run(["--database-url", database_url, "init-db"])
    capsys.readouterr()

    code = cli.run(
        ["--database-url", database_url, "overdue", "--as-of", "2026-10-18", "--json"]
    )

    assert code == 0
    assert json.loads(capsys.readouterr().out) == []
