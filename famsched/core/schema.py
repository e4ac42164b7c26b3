"""SQLite schema management (code-first approach)."""

import logging

import aiosqlite

from famsched.core import db_client


logger = logging.getLogger(__name__)


# Central list of all tables in the schema
COLLECTIONS = [
    "tasks",
    "push_subscriptions",
    "reminder_dispatches",
]

TABLE_SCHEMAS: dict[str, str] = {
    # Tasks are written by the schedule editor; rows may carry legacy column
    # names (text/day/time/type/is_weekly/require_confirmation) alongside the
    # current ones, so most columns stay nullable.
    "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        title TEXT,
        text TEXT,
        event_date TEXT,
        day TEXT,
        event_time TEXT,
        time TEXT,
        child TEXT NOT NULL DEFAULT '',
        event_type TEXT,
        type TEXT,
        is_recurring INTEGER,
        is_weekly INTEGER,
        recurring_template_id TEXT,
        completed INTEGER NOT NULL DEFAULT 0,
        notified INTEGER NOT NULL DEFAULT 0,
        send_notification INTEGER NOT NULL DEFAULT 1,
        needs_ack INTEGER,
        require_confirmation INTEGER,
        updated_at TEXT NOT NULL DEFAULT (datetime('now'))
    )""",
    "push_subscriptions": """CREATE TABLE IF NOT EXISTS push_subscriptions (
        endpoint TEXT PRIMARY KEY,
        p256dh TEXT NOT NULL,
        auth TEXT NOT NULL,
        user_name TEXT,
        receive_all INTEGER NOT NULL DEFAULT 0,
        watch_children TEXT,
        reminder_lead_minutes INTEGER NOT NULL DEFAULT 10,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        updated_at TEXT NOT NULL DEFAULT (datetime('now'))
    )""",
    "reminder_dispatches": """CREATE TABLE IF NOT EXISTS reminder_dispatches (
        dispatch_key TEXT PRIMARY KEY,
        sent_at TEXT NOT NULL DEFAULT (datetime('now'))
    )""",
}

# Columns added after the first release; older databases get them via ALTER TABLE.
ADDED_COLUMNS: dict[str, dict[str, str]] = {
    "tasks": {
        "completed": "INTEGER NOT NULL DEFAULT 0",
        "notified": "INTEGER NOT NULL DEFAULT 0",
        "send_notification": "INTEGER NOT NULL DEFAULT 1",
        "needs_ack": "INTEGER",
        "require_confirmation": "INTEGER",
        "recurring_template_id": "TEXT",
        "updated_at": "TEXT",
    },
    "push_subscriptions": {
        "user_name": "TEXT",
        "receive_all": "INTEGER NOT NULL DEFAULT 0",
        "watch_children": "TEXT",
        "reminder_lead_minutes": "INTEGER NOT NULL DEFAULT 10",
    },
}

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_pending ON tasks (completed, send_notification, notified)",
]


async def _existing_columns(conn: aiosqlite.Connection, table: str) -> set[str]:
    cursor = await conn.execute(f"PRAGMA table_info({table})")
    rows = await cursor.fetchall()
    return {row[1] for row in rows}


async def init_db(*, db_path: str | None = None) -> None:
    """Create tables, add missing columns and indexes (idempotent)."""
    logger.info("Starting SQLite schema sync...")
    conn = await db_client.get_connection(db_path=db_path)

    for table in COLLECTIONS:
        await conn.execute(TABLE_SCHEMAS[table])

        existing = await _existing_columns(conn, table)
        for column, definition in ADDED_COLUMNS.get(table, {}).items():
            if column not in existing:
                await conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
                logger.info("Added column %s.%s", table, column)

    for index in INDEXES:
        await conn.execute(index)

    await conn.commit()
    logger.info("SQLite schema sync complete")
