"""Dispatch deduplication backed by the reminder_dispatches table."""

import logging
from datetime import UTC, datetime

from famsched.core import db_client
from famsched.core.errors import ErrorCategory
from famsched.core.logging import span
from famsched.domain.dispatch import DispatchRecord


logger = logging.getLogger(__name__)

COLLECTION = "reminder_dispatches"


async def was_dispatched(dispatch_key: str) -> bool:
    """Return True if a reminder was already delivered under this key."""
    with span("dispatch_service.was_dispatched"):
        try:
            await db_client.get_record(collection=COLLECTION, record_id=dispatch_key, key_field="dispatch_key")
        except KeyError:
            return False
        return True


async def mark_dispatched(dispatch_key: str, *, sent_at: datetime | None = None) -> bool:
    """Record a successful delivery.

    A duplicate key is a silent no-op, so two overlapping sweeps delivering the
    same reminder never raise.

    Returns:
        True if this call created the record, False if it already existed
    """
    with span("dispatch_service.mark_dispatched"):
        record = DispatchRecord(dispatch_key=dispatch_key, sent_at=sent_at or datetime.now(UTC))
        created = await db_client.insert_if_absent(
            collection=COLLECTION,
            data=record.to_row(),
            key_field="dispatch_key",
        )
        if not created:
            logger.info(
                "Dispatch already recorded by a concurrent sweep",
                extra={"dispatch_key": dispatch_key, "category": ErrorCategory.IDEMPOTENCY_RACE.value},
            )
        return created
