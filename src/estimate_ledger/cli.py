"""Estimate Ledger Command Line Interface.

Provides operational tools for:
- Schema creation and sequence seeding
- Sequence inspection
- Overdue invoice reports

Usage:
    estimate-ledger init-db
    estimate-ledger sequences
    estimate-ledger overdue --as-of 2024-06-30 --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, TypeVar

from estimate_ledger.config import get_settings
from estimate_ledger.database import create_session_factory, get_engine
from estimate_ledger.errors import LedgerError
from estimate_ledger.ledger import EstimateLedger, bootstrap

T = TypeVar("T")


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


class LedgerCli:
    """Estimate Ledger Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="estimate-ledger",
            description="Estimate ledger operational tools",
        )
        parser.add_argument(
            "--database-url",
            help="Database URL (default: DATABASE_URL from the environment)",
        )
        parser.add_argument(
            "--verbose",
            "-v",
            action="store_true",
            help="Enable debug logging",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # init-db command
        subparsers.add_parser(
            "init-db",
            help="Create tables and seed number sequences",
        )

        # sequences command
        sequences = subparsers.add_parser(
            "sequences",
            help="Show the last issued number of each sequence",
        )
        sequences.add_argument("--json", action="store_true", help="Output JSON")

        # overdue command
        overdue = subparsers.add_parser(
            "overdue",
            help="List sent invoices past their due date",
        )
        overdue.add_argument(
            "--as-of",
            type=parse_date,
            default=None,
            help="Reference date (ISO format, default today)",
        )
        overdue.add_argument("--json", action="store_true", help="Output JSON")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        logging.basicConfig(
            level=logging.DEBUG if parsed.verbose else logging.WARNING,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], Awaitable[int]]] = {
            "init-db": self._cmd_init_db,
            "sequences": self._cmd_sequences,
            "overdue": self._cmd_overdue,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return asyncio.run(handler(parsed))
        except LedgerError as e:
            print(f"ERROR: {e.message}", file=sys.stderr)
            return 1

    async def _with_ledger(
        self,
        args: argparse.Namespace,
        action: Callable[[EstimateLedger], Awaitable[T]],
    ) -> T:
        engine = get_engine(args.database_url)
        try:
            ledger = EstimateLedger(create_session_factory(engine), settings=get_settings())
            return await action(ledger)
        finally:
            await engine.dispose()

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        engine = get_engine(args.database_url)
        try:
            seeded = await bootstrap(engine, create_session_factory(engine), get_settings())
        finally:
            await engine.dispose()

        print("Schema ready.")
        if seeded:
            print(f"Seeded sequences: {', '.join(seeded)}")
        else:
            print("Sequences already configured.")
        return 0

    async def _cmd_sequences(self, args: argparse.Namespace) -> int:
        sequences = await self._with_ledger(args, lambda ledger: ledger.current_sequences())

        if args.json:
            print(json.dumps(sequences, indent=2))
            return 0

        if not sequences:
            print("No sequences configured. Run: estimate-ledger init-db")
            return 1
        for sequence_type, current in sequences.items():
            print(f"{sequence_type:<12} {current}")
        return 0

    async def _cmd_overdue(self, args: argparse.Namespace) -> int:
        as_of = args.as_of or date.today()
        invoices = await self._with_ledger(
            args, lambda ledger: ledger.list_overdue_invoices(as_of)
        )

        rows: list[dict[str, Any]] = [
            {
                "invoice_number": inv.invoice_number,
                "client_id": str(inv.client_id),
                "title": inv.title,
                "due_date": inv.due_date.isoformat(),
                "days_overdue": (as_of - inv.due_date).days,
                "outstanding_amount": str(inv.outstanding_amount),
            }
            for inv in invoices
        ]

        if args.json:
            print(json.dumps(rows, indent=2))
            return 0

        print(f"Overdue invoices as of {as_of.isoformat()}: {len(rows)}")
        for row in rows:
            print(
                f"  {row['invoice_number']:<12} due {row['due_date']} "
                f"({row['days_overdue']} days)  outstanding {row['outstanding_amount']}"
            )
        return 0


def main() -> int:
    """CLI entry point."""
    cli = LedgerCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
