"""SQLite index of scanned files."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

SCHEMA = """
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    size INTEGER NOT NULL,
    modified_at TIMESTAMP NOT NULL,
    indexed_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    file_hash TEXT
);
"""

_COLUMNS = "id, path, name, size, modified_at, indexed_at, file_hash"

_UPSERT = """
INSERT INTO files (path, name, size, modified_at, file_hash, indexed_at)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(path) DO UPDATE SET
    name = excluded.name,
    size = excluded.size,
    modified_at = excluded.modified_at,
    file_hash = excluded.file_hash,
    indexed_at = excluded.indexed_at
"""


@dataclass
class File:
    """A file record in the index."""

    path: str = ""
    name: str = ""
    size: int = 0
    modified_at: datetime = datetime.min
    file_hash: str = ""
    id: int = 0
    indexed_at: datetime = datetime.min


@dataclass
class SearchCriteria:
    """Filters for an advanced file search; unset fields do not filter."""

    name_pattern: str = ""
    min_size: int | None = None
    max_size: int | None = None
    modified_after: datetime | None = None
    modified_before: datetime | None = None
    search_dir: str = ""
    file_types: list[str] = field(default_factory=list)


def _parse_time(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return datetime.min
    return datetime.min


def _row_to_file(row: tuple) -> File:
    file_id, path, name, size, modified_at, indexed_at, file_hash = row
    return File(
        id=file_id,
        path=path,
        name=name,
        size=size,
        modified_at=_parse_time(modified_at),
        indexed_at=_parse_time(indexed_at),
        file_hash=file_hash or "",
    )


class Database:
    """File index stored in SQLite.

    With no connection given, init_db opens ~/.fman/fman.db and creates
    the table.
    """

    def __init__(self, connection: sqlite3.Connection | None = None) -> None:
        self.connection = connection

    def __enter__(self) -> Database:
        self.init_db()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def init_db(self) -> None:
        """Open the default database and create the table, unless already open."""
        if self.connection is not None:
            return
        db_dir = Path.home() / ".fman"
        db_dir.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(db_dir / "fman.db")
        self.connection = connection
        connection.executescript(SCHEMA)
        connection.commit()

    def _connection(self) -> sqlite3.Connection:
        if self.connection is None:
            raise sqlite3.ProgrammingError("database is not initialised")
        return self.connection

    def _select(self, query: str, args: list | tuple = ()) -> list[File]:
        rows = self._connection().execute(query, args).fetchall()
        return [_row_to_file(row) for row in rows]

    def upsert_file(self, file: File) -> None:
        """Insert a file record, or update the one with the same path."""
        connection = self._connection()
        connection.execute(
            _UPSERT,
            (
                file.path,
                file.name,
                file.size,
                file.modified_at.isoformat(),
                file.file_hash,
                datetime.now().isoformat(),
            ),
        )
        connection.commit()

    def find_files_by_name(self, name_pattern: str) -> list[File]:
        """Files whose name contains the pattern (case-insensitive for ASCII)."""
        return self._select(
            f"SELECT {_COLUMNS} FROM files WHERE name LIKE ?",
            (f"%{name_pattern}%",),
        )

    def find_files_with_hashes(self, search_dir: str, min_size: int) -> list[File]:
        """Files that have a hash and at least min_size bytes, optionally under a directory."""
        query = (
            f"SELECT {_COLUMNS} FROM files "
            "WHERE file_hash IS NOT NULL AND file_hash != '' AND size >= ?"
        )
        args: list = [min_size]
        if search_dir:
            query += " AND path LIKE ?"
            args.append(search_dir + "%")
        return self._select(query, args)

    def find_files_by_advanced_criteria(self, criteria: SearchCriteria) -> list[File]:
        """Files matching every set criterion, newest modification first."""
        conditions: list[str] = []
        args: list = []

        if criteria.name_pattern:
            conditions.append("name LIKE ?")
            args.append(f"%{criteria.name_pattern}%")
        if criteria.min_size is not None:
            conditions.append("size >= ?")
            args.append(criteria.min_size)
        if criteria.max_size is not None:
            conditions.append("size <= ?")
            args.append(criteria.max_size)
        if criteria.modified_after is not None:
            conditions.append("modified_at > ?")
            args.append(criteria.modified_after.isoformat())
        if criteria.modified_before is not None:
            conditions.append("modified_at < ?")
            args.append(criteria.modified_before.isoformat())
        if criteria.search_dir:
            conditions.append("path LIKE ?")
            args.append(criteria.search_dir + "%")
        if criteria.file_types:
            type_conditions = []
            for ext in criteria.file_types:
                type_conditions.append("name LIKE ?")
                args.append("%" + ext)
            conditions.append("(" + " OR ".join(type_conditions) + ")")

        query = f"SELECT {_COLUMNS} FROM files WHERE 1=1"
        if conditions:
            query += " AND " + " AND ".join(conditions)
        query += " ORDER BY modified_at DESC"
        return self._select(query, args)

    def close(self) -> None:
        """Close the connection if one is open."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None