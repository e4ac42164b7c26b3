"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from famsched.core.config import Constants, settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when a database operation fails."""


class RecordNotFoundError(KeyError):
    """Raised when a record does not exist."""


def _validate_identifier(name: str) -> None:
    """Validate that a table or column name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", name):
        msg = f"Invalid identifier: {name}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _encode_value(val: Any) -> Any:
    """Convert a Python value into something SQLite can bind."""
    if isinstance(val, datetime):
        return val.isoformat()
    if isinstance(val, dict | list):
        return json.dumps(val)
    return val


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.fullmatch(
        r"""(\w+)\s*(!=|>=|<=|=|>|<)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, sql_op, _, raw_value = match.groups()
    return f"{field} {sql_op} ?", _parse_value(raw_value)


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse ``field = "value"`` comparisons joined by ``&&`` into a SQL WHERE clause and parameters."""
    if not filter_query:
        return "", []

    conditions = []
    params = []
    for part in filter_query.split("&&"):
        cond, value = _parse_single_comparison(part.strip())
        conditions.append(cond)
        params.append(value)

    return " AND ".join(conditions), params


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute("PRAGMA busy_timeout = 5000")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            conn = _db_connections.pop(cache_key, None)
            if conn is not None:
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
                )
    except Exception as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from famsched.core import schema

    await schema.init_db(db_path=db_path)


def _row_to_dict(cursor: aiosqlite.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    columns = [description[0] for description in cursor.description]
    return dict(zip(columns, row, strict=True))


def _wrap_error(operation: str, collection: str, e: Exception) -> DatabaseError:
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        logger.error("Table not found", extra={"collection": collection})
        return DatabaseError(f"Table '{collection}' does not exist. Call init_db() first.")
    logger.error(f"{operation}_failed", extra={"collection": collection, "error": str(e)})
    return DatabaseError(f"Failed to {operation.replace('_', ' ')} in {collection}: {e}")


async def insert_if_absent(*, collection: str, data: dict[str, Any], key_field: str) -> bool:
    """Insert a record unless one with the same key exists.

    Returns:
        True if this call inserted the row, False if the key was already present
    """
    try:
        _validate_identifier(collection)
        _validate_identifier(key_field)
        for column in data:
            _validate_identifier(column)
        conn = await get_connection()

        columns_str = ", ".join(data)
        placeholders_str = ", ".join("?" for _ in data)
        values = [_encode_value(val) for val in data.values()]

        query = (
            f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str}) "  # noqa: S608 - identifiers are validated
            f"ON CONFLICT ({key_field}) DO NOTHING"
        )
        cursor = await conn.execute(query, values)
        await conn.commit()

        inserted = cursor.rowcount == 1
        logger.info(
            "Inserted record" if inserted else "Record already present",
            extra={"collection": collection, "record_id": str(data.get(key_field))},
        )
        return inserted
    except Exception as e:
        raise _wrap_error("insert_record", collection, e) from e


async def upsert_record(*, collection: str, data: dict[str, Any], key_field: str) -> dict[str, Any]:
    """Insert a record or overwrite every given column of the existing row with the same key."""
    try:
        _validate_identifier(collection)
        _validate_identifier(key_field)
        for column in data:
            _validate_identifier(column)
        conn = await get_connection()

        columns_str = ", ".join(data)
        placeholders_str = ", ".join("?" for _ in data)
        values = [_encode_value(val) for val in data.values()]
        update_clause = ", ".join(f"{column} = excluded.{column}" for column in data if column != key_field)

        conflict_action = f"DO UPDATE SET {update_clause}" if update_clause else "DO NOTHING"
        query = (
            f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str}) "  # noqa: S608 - identifiers are validated
            f"ON CONFLICT ({key_field}) {conflict_action}"
        )
        await conn.execute(query, values)
        await conn.commit()

        record_id = str(data[key_field])
        logger.info("Upserted record", extra={"collection": collection, "record_id": record_id})
        return await get_record(collection=collection, record_id=record_id, key_field=key_field)
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        raise _wrap_error("upsert_record", collection, e) from e


async def get_record(*, collection: str, record_id: str, key_field: str = "id") -> dict[str, Any]:
    """Fetch a single record by key, raising RecordNotFoundError if not found."""
    try:
        _validate_identifier(collection)
        _validate_identifier(key_field)
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE {key_field} = ?"  # noqa: S608 - identifiers are validated
        cursor = await conn.execute(query, (record_id,))
        row = await cursor.fetchone()

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return _row_to_dict(cursor, row)
    except RecordNotFoundError:
        raise
    except Exception as e:
        raise _wrap_error("get_record", collection, e) from e


async def update_record(
    *, collection: str, record_id: str, data: dict[str, Any], key_field: str = "id"
) -> dict[str, Any]:
    """Update a record by key and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    try:
        _validate_identifier(collection)
        _validate_identifier(key_field)
        for column in data:
            _validate_identifier(column)
        conn = await get_connection()

        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_encode_value(val) for val in data.values()]
        values.append(record_id)

        query = f"UPDATE {collection} SET {set_clause} WHERE {key_field} = ?"  # noqa: S608 - identifiers are validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await get_record(collection=collection, record_id=record_id, key_field=key_field)
    except RecordNotFoundError:
        raise
    except Exception as e:
        raise _wrap_error("update_record", collection, e) from e


async def delete_record(*, collection: str, record_id: str, key_field: str = "id") -> None:
    """Delete a record by key, raising RecordNotFoundError if not found."""
    try:
        _validate_identifier(collection)
        _validate_identifier(key_field)
        conn = await get_connection()

        query = f"DELETE FROM {collection} WHERE {key_field} = ?"  # noqa: S608 - identifiers are validated
        cursor = await conn.execute(query, (record_id,))
        await conn.commit()

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    except RecordNotFoundError:
        raise
    except Exception as e:
        raise _wrap_error("delete_record", collection, e) from e


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination.

    Sort accepts a column name with an optional ``-`` prefix for descending order.
    """
    try:
        _validate_identifier(collection)
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        safe_sort = "rowid ASC"
        if sort:
            sort_pattern = re.match(r"^(-?)([A-Za-z_][A-Za-z0-9_]*)$", sort.strip())
            if sort_pattern:
                direction = "DESC" if sort_pattern.group(1) else "ASC"
                safe_sort = f"{sort_pattern.group(2)} {direction}, rowid ASC"
            else:
                logger.warning("Invalid sort parameter, using default", extra={"sort": sort})

        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {safe_sort} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        records = [_row_to_dict(cursor, row) for row in rows]

        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except Exception as e:
        raise _wrap_error("list_records", collection, e) from e




async def list_all_records(*, collection: str, filter_query: str = "", sort: str = "") -> list[dict[str, Any]]:
    """Read every matching record, one page of ``BULK_READ_LIMIT`` rows at a time.

    Paging stops at the first page shorter than the limit.
    """
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection,
            page=page,
            per_page=Constants.BULK_READ_LIMIT,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(batch)
        if len(batch) < Constants.BULK_READ_LIMIT:
            return records
        page += 1
