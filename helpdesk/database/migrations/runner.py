from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

from database.base import Database

LOGGER = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent

MIGRATION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    id TEXT PRIMARY KEY,
    checksum TEXT NOT NULL,
    applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


@dataclass(frozen=True, slots=True)
class Migration:
    id: str
    sql: str

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.sql.encode("utf-8")).hexdigest()


def discover_migrations(path: Path = MIGRATIONS_DIR) -> list[Migration]:
    """Numbered ``.sql`` files in lexical order."""
    return [Migration(id=item.name, sql=item.read_text(encoding="utf-8")) for item in sorted(path.glob("*.sql"))]


async def run_migrations(database: Database, migrations_path: Path = MIGRATIONS_DIR) -> list[str]:
    await database.executescript(MIGRATION_TABLE_SQL)
    rows = await database.fetchall("SELECT id, checksum FROM schema_migrations;")
    recorded = {row["id"]: row["checksum"] for row in rows}

    applied: list[str] = []
    for migration in discover_migrations(migrations_path):
        known = recorded.get(migration.id)
        if known is not None:
            if known != migration.checksum:
                LOGGER.warning("Applied migration changed on disk. migration=%s", migration.id)
            continue
        LOGGER.info("Applying migration. migration=%s driver=%s", migration.id, database.driver)
        await database.executescript(migration.sql)
        await database.execute(
            "INSERT INTO schema_migrations(id, checksum) VALUES (?, ?);",
            [migration.id, migration.checksum],
        )
        applied.append(migration.id)
    return applied
