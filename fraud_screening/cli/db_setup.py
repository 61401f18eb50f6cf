"""
Database setup commands for the Fraud Screening service.

Supports:
- init: Create the fraud_detection table and its indexes (idempotent)
- verify: Check DB connectivity and that the table exists

Usage:
    uv run db-init
    uv run db-verify
    uv run db-init --admin-url postgresql://... --schema-file db/fraud_detection_schema.sql

Environment Variables:
- DATABASE_URL_ADMIN: Connection with DDL permissions (primary)
- DATABASE_URL_APP: Fallback
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path

import psycopg

TABLE_NAME = "fraud_detection"
DEFAULT_SCHEMA_FILE = Path(__file__).resolve().parents[2] / "db" / "fraud_detection_schema.sql"


@dataclass
class SetupResult:
    """Result of a setup step."""

    success: bool
    message: str
    details: str | None = None


def to_libpq_url(url: str) -> str:
    """Strip SQLAlchemy driver suffixes so psycopg accepts the URL."""
    for driver in ("+asyncpg", "+psycopg"):
        url = url.replace(f"postgresql{driver}://", "postgresql://", 1)
    return url


class DatabaseSetup:
    """Handles database setup for the Fraud Screening service."""

    def __init__(self, admin_url: str, schema_file: Path = DEFAULT_SCHEMA_FILE):
        self.admin_url = to_libpq_url(admin_url)
        self.schema_file = schema_file

    def _load_schema(self) -> str:
        if not self.schema_file.exists():
            raise FileNotFoundError(f"SQL file not found: {self.schema_file}")
        return self.schema_file.read_text(encoding="utf-8")

    def _execute_sql(self, conn: psycopg.Connection, sql_content: str) -> SetupResult:
        try:
            conn.execute(sql_content)
            conn.commit()
            return SetupResult(success=True, message="Schema applied")
        except psycopg.Error as e:
            conn.rollback()
            return SetupResult(
                success=False,
                message="Schema creation failed",
                details=f"{type(e).__name__}: {e}",
            )

    def init(self) -> int:
        """Apply the schema."""
        print("Initializing database schema...")
        schema_sql = self._load_schema()

        try:
            with psycopg.connect(self.admin_url, autocommit=False) as conn:
                result = self._execute_sql(conn, schema_sql)
        except psycopg.Error as e:
            print(f"ERROR: Database connection failed: {e}")
            return 1

        if not result.success:
            print(f"ERROR: {result.message}: {result.details}")
            return 1

        print("Database initialization complete.")
        return 0

    def verify(self) -> int:
        """Verify the table exists."""
        print("Verifying database setup...")

        try:
            with psycopg.connect(self.admin_url, autocommit=True) as conn:
                print("  [OK] Database connection")
                row = conn.execute(
                    "SELECT to_regclass(%s) IS NOT NULL",
                    (TABLE_NAME,),
                ).fetchone()
        except psycopg.Error as e:
            print(f"ERROR: {e}")
            return 1

        if not row or not row[0]:
            print(f"ERROR: Missing table: {TABLE_NAME}")
            return 1

        print(f"  [OK] Table exists: {TABLE_NAME}")
        return 0


def resolve_admin_url(cli_url: str | None) -> str | None:
    return cli_url or os.getenv("DATABASE_URL_ADMIN") or os.getenv("DATABASE_URL_APP")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fraud Screening - Database Setup")
    parser.add_argument("command", nargs="?", choices=["init", "verify"])
    parser.add_argument("--admin-url", help="Admin database URL (overrides env var)")
    parser.add_argument(
        "--schema-file",
        type=Path,
        default=DEFAULT_SCHEMA_FILE,
        help="Path to the schema DDL",
    )
    return parser


def run_command(default_command: str, argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    admin_url = resolve_admin_url(args.admin_url)
    if not admin_url:
        print("ERROR: DATABASE_URL_ADMIN is required")
        print("Set it as environment variable or via --admin-url")
        return 2

    setup = DatabaseSetup(admin_url=admin_url, schema_file=args.schema_file)
    command = args.command or default_command
    return setup.init() if command == "init" else setup.verify()


def init() -> None:
    """Console entry point: db-init."""
    sys.exit(run_command("init"))


def verify() -> None:
    """Console entry point: db-verify."""
    sys.exit(run_command("verify"))


if __name__ == "__main__":
    sys.exit(run_command("init"))
