from __future__ import annotations

import argparse
import sqlite3
from pathlib import Path

from veo_relay.storage.postgres import PostgresTaskStore
from veo_relay.storage.sqlite import DB_FILENAME

COLUMNS = (
    "id",
    "client_id",
    "local_id",
    "api_task_id",
    "prompt",
    "model",
    "aspect_ratio",
    "image_name",
    "status",
    "progress",
    "video_url",
    "error_message",
    "created_at",
    "updated_at",
)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Copy video tasks from the SQLite task DB into a PostgreSQL database."
    )
    parser.add_argument(
        "--sqlite-path",
        type=Path,
        default=Path("data") / DB_FILENAME,
        help=f"Path to source SQLite database file (default: data/{DB_FILENAME}).",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        required=True,
        help="PostgreSQL connection URL.",
    )
    return parser.parse_args()


def _load_rows(sqlite_path: Path) -> list[sqlite3.Row]:
    if not sqlite_path.exists():
        raise FileNotFoundError(f"SQLite file not found: {sqlite_path}")
    conn = sqlite3.connect(sqlite_path)
    conn.row_factory = sqlite3.Row
    try:
        return conn.execute(f"SELECT {', '.join(COLUMNS)} FROM tasks ORDER BY id").fetchall()
    finally:
        conn.close()


def migrate(*, sqlite_path: Path, database_url: str) -> int:
    rows = _load_rows(sqlite_path)

    # Creates the target table with the same layout the service uses.
    PostgresTaskStore(database_url).migrate()

    import psycopg

    placeholders = ", ".join(
        "%s::timestamptz" if column.endswith("_at") else "%s" for column in COLUMNS
    )
    updates = ",\n                    ".join(
        f"{column} = EXCLUDED.{column}" for column in COLUMNS if column != "id"
    )
    with psycopg.connect(database_url) as conn:
        for row in rows:
            conn.execute(
                f"""
                INSERT INTO tasks ({', '.join(COLUMNS)})
                VALUES ({placeholders})
                ON CONFLICT (id) DO UPDATE
                SET {updates}
                """,
                tuple(row[column] for column in COLUMNS),
            )
        # Keep new inserts from reusing migrated ids.
        conn.execute(
            """
            SELECT setval(
                pg_get_serial_sequence('tasks', 'id'),
                GREATEST((SELECT COALESCE(MAX(id), 0) FROM tasks), 1)
            )
            """
        )
        conn.commit()

    return len(rows)


def main() -> None:
    args = _parse_args()
    migrated = migrate(sqlite_path=args.sqlite_path, database_url=args.database_url)
    print(f"Migrated {migrated} task row(s) from {args.sqlite_path} to PostgreSQL database.")


if __name__ == "__main__":
    main()
