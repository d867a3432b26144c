"""SQLite storage over aiosqlite.

Records are plain dicts keyed by column name. ``id`` and ``*_id`` integers
come back as strings, and the JSON document columns (``slots``,
``time_tracking``) come back decoded.

Queries use a small filter language shared with the in-memory test double::

    user_id = "42" && start_at < "2025-12-31T11:00:00.000000+00:00"
    is_archived = "0" && (assigner_id = "7" || receiver_id = "7")

Comparisons are ``field <op> "literal"`` with ``= != < > <= >= ~`` (``~`` is
a substring match). Literals may be single or double quoted and use
backslash escapes as produced by :func:`sanitize_param`.
"""

import asyncio
import json
import logging
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from opsdesk.core.config import settings


logger = logging.getLogger(__name__)

FilterValue = str | int | float | bool | None

_JSON_COLUMNS = {"slots", "time_tracking"}
_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_COMPARISON = re.compile(r"""(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])((?:\\.|(?!\3).)*)\3""")
_ESCAPED_CHAR = re.compile(r"\\(.)")
_JSON_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f"}
_SORT = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)(?:\s+(ASC|DESC))?$", re.IGNORECASE)
_SQL_OPERATORS = {"=": "=", "!=": "!=", ">": ">", "<": "<", ">=": ">=", "<=": "<=", "~": "LIKE"}
_DEFAULT_ORDER = "id ASC"


class DatabaseError(Exception):
    """Raised when a storage operation fails."""


class RecordNotFoundError(KeyError):
    """Raised when a record does not exist."""


def _require_identifiers(*names: str) -> None:
    for name in names:
        if not _IDENTIFIER.match(name):
            msg = f"Invalid identifier: {name!r}. Only letters, digits and underscores are allowed."
            raise ValueError(msg)


def _not_found(collection: str, record_id: str) -> RecordNotFoundError:
    return RecordNotFoundError(f"Record not found in {collection}: {record_id}")


# Filter language


def sanitize_param(value: FilterValue) -> str:
    """Escape a value for embedding between double quotes in a filter."""
    return json.dumps(str(value), ensure_ascii=False)[1:-1]


def unescape_param(raw: str) -> str:
    """Reverse sanitize_param for a quoted filter literal."""
    return _ESCAPED_CHAR.sub(lambda m: _JSON_ESCAPES.get(m.group(1), m.group(1)), raw)


def split_top_level(expression: str, separator: str) -> list[str]:
    """Split on separator outside quoted literals and parentheses."""
    parts = []
    current = ""
    depth = 0
    quote: str | None = None
    escaped = False

    for char in expression:
        current += char
        if escaped:
            escaped = False
        elif quote:
            if char == "\\":
                escaped = True
            elif char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0 and current.endswith(separator):
            parts.append(current[: -len(separator)].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())
    return parts


def parse_comparison(comparison: str) -> tuple[str, str]:
    """Translate one ``field <op> "literal"`` into a SQL condition and its parameter.

    The literal is always bound as text; numeric columns convert it through
    their affinity, and text columns keep values like "007" intact.

    Raises:
        ValueError: If the comparison is malformed
    """
    match = _COMPARISON.fullmatch(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, op, _, raw = match.groups()
    literal = unescape_param(raw)
    if op == "~":
        pattern = literal.replace("%", "\\%").replace("_", "\\_")
        return f"{field} LIKE ? ESCAPE '\\'", f"%{pattern}%"
    return f"{field} {_SQL_OPERATORS[op]} ?", literal


def parse_filter(filter_query: str) -> tuple[str, list[str]]:
    """Translate a filter expression into a SQL WHERE clause (without WHERE) and parameters.

    Raises:
        ValueError: If any comparison is malformed
    """
    if not filter_query:
        return "", []

    conditions: list[str] = []
    params: list[str] = []
    for part in split_top_level(filter_query, "&&"):
        if part.startswith("(") and part.endswith(")"):
            group = [parse_comparison(option) for option in split_top_level(part[1:-1], "||")]
            conditions.append(f"({' OR '.join(cond for cond, _ in group)})")
            params.extend(value for _, value in group)
        else:
            cond, value = parse_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate ``+field``, ``-field`` or ``field ASC|DESC`` into an ORDER BY clause.

    Anything else falls back to id order.
    """
    text = (sort or "").strip()
    if not text:
        return _DEFAULT_ORDER
    if text[0] in "+-":
        text = f"{text[1:]} {'DESC' if text[0] == '-' else 'ASC'}"

    match = _SORT.match(text)
    if match is None:
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return _DEFAULT_ORDER
    return f"{match.group(1)} {(match.group(2) or 'ASC').upper()}"


# Row encoding


def _encode(value: Any) -> Any:  # noqa: ANN401
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _decode_row(columns: list[str], row: tuple[Any, ...]) -> dict[str, Any]:
    record = dict(zip(columns, row, strict=True))
    for key, value in record.items():
        if isinstance(value, int) and not isinstance(value, bool) and (key == "id" or key.endswith("_id")):
            record[key] = str(value)
        elif key in _JSON_COLUMNS and isinstance(value, str) and value:
            record[key] = json.loads(value)
    return record


# Connections


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


def get_db_path(db_path: str | None = None) -> Path:
    """Resolved SQLite file path (defaults to SQLITE_DB_PATH)."""
    return Path(db_path or settings.sqlite_db_path).resolve()


def _connection_key(db_path: str | None) -> tuple[int, int, str]:
    return threading.get_ident(), id(asyncio.get_running_loop()), str(get_db_path(db_path))


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Cached connection for the current thread, event loop and database file."""
    key = _connection_key(db_path)
    cached = _db_connections.get(key)
    if cached is not None:
        return cached

    async with _db_lock:
        if key in _db_connections:
            return _db_connections[key]

        path = Path(key[2])
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")
        _db_connections[key] = conn

    logger.info("Opened SQLite connection", extra={"db_path": str(path)})
    return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached connection for the current thread, event loop and database file."""
    key = _connection_key(db_path)
    async with _db_lock:
        conn = _db_connections.pop(key, None)
    if conn is None:
        return

    try:
        await conn.close()
    except aiosqlite.Error as e:
        logger.warning("Error closing SQLite connection", extra={"db_path": key[2], "error": str(e)})
    else:
        logger.info("Closed SQLite connection", extra={"db_path": key[2]})


async def init_db(*, db_path: str | None = None) -> None:
    """Create every registered module's tables and indexes."""
    from opsdesk.core import schema

    await schema.init_db(db_path=db_path)


# CRUD


@contextmanager
def _storage_errors(action: str, collection: str, **context: Any) -> Iterator[None]:  # noqa: ANN401
    """Surface driver and input failures as DatabaseError; RecordNotFoundError passes through."""
    try:
        yield
    except RecordNotFoundError:
        raise
    except (aiosqlite.Error, ValueError, TypeError) as e:
        if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
            logger.error("Table not found", extra={"collection": collection})
            msg = f"Table '{collection}' does not exist. Call init_db() first."
            raise DatabaseError(msg) from e
        logger.error(f"{action}_failed", extra={"collection": collection, "error": str(e), **context})
        msg = f"Failed to {action.replace('_', ' ')} in {collection}: {e}"
        raise DatabaseError(msg) from e


async def _fetch(query: str, params: list[Any] | tuple[Any, ...]) -> list[dict[str, Any]]:
    conn = await get_connection()
    cursor = await conn.execute(query, params)
    rows = await cursor.fetchall()
    columns = [description[0] for description in cursor.description]
    return [_decode_row(columns, row) for row in rows]


async def _write(query: str, params: list[Any]) -> aiosqlite.Cursor:
    conn = await get_connection()
    cursor = await conn.execute(query, params)
    await conn.commit()
    return cursor


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a record by id.

    Raises:
        RecordNotFoundError: If no such record exists
        DatabaseError: On storage failure
    """
    with _storage_errors("get_record", collection, record_id=record_id):
        _require_identifiers(collection)
        if not str(record_id).isdigit():
            raise _not_found(collection, record_id)

        rows = await _fetch(f"SELECT * FROM {collection} WHERE id = ?", (int(record_id),))  # noqa: S608
        if not rows:
            raise _not_found(collection, record_id)
        return rows[0]


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a record and return it as stored (with id, created and updated)."""
    with _storage_errors("create_record", collection):
        _require_identifiers(collection, *data)
        columns = list(data)
        query = (
            f"INSERT INTO {collection} ({', '.join(columns)}) "  # noqa: S608
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        cursor = await _write(query, [_encode(data[column]) for column in columns])
        record_id = str(cursor.lastrowid)

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Overwrite the given columns of a record and return the stored result.

    Raises:
        ValueError: If data is empty
        RecordNotFoundError: If no such record exists
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    with _storage_errors("update_record", collection, record_id=record_id):
        _require_identifiers(collection, *data)
        if not str(record_id).isdigit():
            raise _not_found(collection, record_id)
        assignments = ", ".join(f"{column} = ?" for column in data)
        cursor = await _write(
            f"UPDATE {collection} SET {assignments}, updated = datetime('now') WHERE id = ?",  # noqa: S608
            [*(_encode(value) for value in data.values()), int(record_id)],
        )
        if cursor.rowcount == 0:
            raise _not_found(collection, record_id)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def upsert_record(*, collection: str, data: dict[str, Any], conflict_fields: list[str]) -> dict[str, Any]:
    """Insert a record, or update the one sharing every conflict field value.

    conflict_fields must be covered by a UNIQUE constraint.
    """
    with _storage_errors("upsert_record", collection, conflict_fields=conflict_fields):
        _require_identifiers(collection, *data, *conflict_fields)
        columns = list(data)
        updates = [f"{column} = excluded.{column}" for column in columns if column not in conflict_fields]
        updates.append("updated = datetime('now')")
        await _write(
            f"INSERT INTO {collection} ({', '.join(columns)}) "  # noqa: S608
            f"VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT ({', '.join(conflict_fields)}) DO UPDATE SET {', '.join(updates)}",
            [_encode(data[column]) for column in columns],
        )

        match_clause = " AND ".join(f"{field} = ?" for field in conflict_fields)
        rows = await _fetch(
            f"SELECT * FROM {collection} WHERE {match_clause} LIMIT 1",  # noqa: S608
            [_encode(data[field]) for field in conflict_fields],
        )

    logger.debug("Upserted record", extra={"collection": collection, "record_id": rows[0]["id"]})
    return rows[0]


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by id.

    Raises:
        RecordNotFoundError: If no such record exists
    """
    with _storage_errors("delete_record", collection, record_id=record_id):
        _require_identifiers(collection)
        if not str(record_id).isdigit():
            raise _not_found(collection, record_id)
        cursor = await _write(f"DELETE FROM {collection} WHERE id = ?", [int(record_id)])  # noqa: S608
        if cursor.rowcount == 0:
            raise _not_found(collection, record_id)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List one page of records matching filter_query, ordered by sort."""
    with _storage_errors("list_records", collection, filter_query=filter_query):
        _require_identifiers(collection)
        where, params = parse_filter(filter_query)
        query = (
            f"SELECT * FROM {collection} {f'WHERE {where}' if where else ''} "  # noqa: S608
            f"ORDER BY {parse_sort(sort)} LIMIT ? OFFSET ?"
        )
        records = await _fetch(query, [*params, per_page, (page - 1) * per_page])

    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records
