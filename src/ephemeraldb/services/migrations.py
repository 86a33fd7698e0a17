"""Schema migrations for a freshly started test database."""

import logging
import re
from importlib import resources
from pathlib import Path
from typing import List, Optional, Union

import pymysql

from ephemeraldb.constants import VERSION_TABLE
from ephemeraldb.errors import MigrationError
from ephemeraldb.errors_catalog import actionable_error
from ephemeraldb.models import ConnectionEndpoint, Credentials, Migration, MigrationBundle, SchemaState

MIGRATION_FILENAME = re.compile(r"^(\d+)_(.+)\.sql$")
ANNOTATION = re.compile(r"^--\s*\+goose\s+(\w+)", re.IGNORECASE)
UP_ANNOTATION = re.compile(r"^\s*--\s*\+goose\s+up\b", re.IGNORECASE | re.MULTILINE)


def split_statements(sql: str) -> List[str]:
    """Split a goose-style migration into the statements of its Up section.

    Files without annotations are treated as Up-only. Statements end at a
    line terminated by ``;`` unless wrapped in StatementBegin/StatementEnd.
    """
    in_up = UP_ANNOTATION.search(sql) is None
    in_block = False
    statements: List[str] = []
    buffer: List[str] = []

    def flush():
        statement = "\n".join(buffer).strip().rstrip(";").strip()
        buffer.clear()
        if statement:
            statements.append(statement)

    for line in sql.splitlines():
        stripped = line.strip()
        match = ANNOTATION.match(stripped)
        if match:
            keyword = match.group(1).lower()
            if keyword == "up":
                in_up = True
            elif keyword == "down":
                flush()
                in_up = False
            elif keyword == "statementbegin":
                in_block = True
            elif keyword == "statementend":
                in_block = False
                if in_up:
                    flush()
            continue

        if not in_up:
            continue
        if not in_block and (not stripped or stripped.startswith("--")):
            continue

        buffer.append(line)
        if not in_block and stripped.endswith(";"):
            flush()

    if in_up:
        flush()
    return statements


def load_bundle(directory: Optional[Union[str, Path]] = None, logger=None) -> MigrationBundle:
    """Read ``NNNNN_name.sql`` files from ``directory`` or the packaged bundle."""
    source = Path(directory) if directory is not None else resources.files("ephemeraldb") / "migrations"

    migrations = []
    for entry in source.iterdir():
        if not entry.name.endswith(".sql"):
            continue
        match = MIGRATION_FILENAME.match(entry.name)
        if not match:
            if logger is not None:
                logger.warning("Ignoring migration with invalid file name: %s", entry.name)
            continue
        migrations.append(
            Migration(
                version=int(match.group(1)),
                name=match.group(2),
                sql=entry.read_text(encoding="utf-8"),
            )
        )

    try:
        return MigrationBundle(migrations)
    except ValueError as exc:
        raise MigrationError(str(exc)) from exc


class MigrationService:
    """Applies a migration bundle in ascending version order and reports the schema version."""

    def __init__(
        self,
        logger,
        console,
        bundle: MigrationBundle,
        database: str,
        quiet: bool = True,
        connect=pymysql.connect,
        connect_timeout: int = 5,
    ):
        self.logger = logger
        self.console = console
        self.bundle = bundle
        self.database = database
        self.quiet = quiet
        self.connect = connect
        self.connect_timeout = connect_timeout

    def _progress(self, message: str, *args):
        self.logger.log(logging.DEBUG if self.quiet else logging.INFO, message, *args)

    def ensure_version_table(self, cursor):
        cursor.execute(
            f"CREATE TABLE IF NOT EXISTS {VERSION_TABLE} ("
            "id serial NOT NULL, "
            "version_id bigint NOT NULL, "
            "is_applied boolean NOT NULL, "
            "tstamp timestamp NULL DEFAULT now(), "
            "PRIMARY KEY(id))"
        )
        cursor.execute(f"SELECT COUNT(*) FROM {VERSION_TABLE}")
        row = cursor.fetchone()
        if not row or not row[0]:
            self._record_version(cursor, 0)

    def get_db_version(self, cursor) -> int:
        cursor.execute(f"SELECT MAX(version_id) FROM {VERSION_TABLE} WHERE is_applied = TRUE")
        row = cursor.fetchone()
        if not row or row[0] is None:
            return 0
        return int(row[0])

    @staticmethod
    def _record_version(cursor, version: int):
        cursor.execute(
            f"INSERT INTO {VERSION_TABLE} (version_id, is_applied) VALUES (%s, %s)",
            (version, True),
        )

    def _apply_one(self, connection, cursor, migration: Migration):
        self._progress("Applying migration %s: %s", migration.version, migration.name)
        try:
            for statement in split_statements(migration.sql):
                cursor.execute(statement)
            self._record_version(cursor, migration.version)
            connection.commit()
        except pymysql.MySQLError as exc:
            connection.rollback()
            raise MigrationError(
                f"{actionable_error('migration_failed', version=migration.version, name=migration.name)}\n{exc}"
            ) from exc

    def apply_migrations(self, endpoint: ConnectionEndpoint, credentials: Credentials) -> SchemaState:
        if not len(self.bundle):
            raise MigrationError("Migration bundle is empty; nothing to bootstrap the schema with.")

        self.console.print("[blue]Applying schema migrations...[/blue]")

        try:
            connection = self.connect(
                host=endpoint.host,
                port=endpoint.port,
                user=credentials.username,
                password=credentials.password,
                database=self.database,
                connect_timeout=self.connect_timeout,
                autocommit=False,
            )
        except pymysql.MySQLError as exc:
            raise MigrationError(f"Could not connect to {endpoint.address} to migrate: {exc}") from exc

        try:
            with connection.cursor() as cursor:
                self.ensure_version_table(cursor)
                connection.commit()

                current = self.get_db_version(cursor)
                pending = self.bundle.pending(current)
                self._progress("Schema at version %s, %s migration(s) pending", current, len(pending))

                for migration in pending:
                    self._apply_one(connection, cursor, migration)

                version = self.get_db_version(cursor)
        except pymysql.MySQLError as exc:
            raise MigrationError(f"Failed to read schema version: {exc}") from exc
        finally:
            connection.close()

        if version <= 0:
            raise MigrationError(f"Migrations finished but schema version is {version}.")

        self.console.print(f"[green]Schema migrated to version {version}.[/green]")
        self.logger.info("Schema migrated to version %s", version)
        return SchemaState(version=version)
