"""Task store access for the reminder engine.

Tasks are created and edited by the schedule UI. This service only reads them,
flags them as notified, and marks them completed on acknowledgement.
"""

import logging
from datetime import UTC, datetime

from pydantic import ValidationError

from famsched.core import db_client
from famsched.core.logging import span
from famsched.domain.task import Task


logger = logging.getLogger(__name__)

COLLECTION = "tasks"


async def list_reminder_candidates(*, include_notified: bool = True) -> list[Task]:
    """Bulk-load tasks that may still need a reminder.

    The store filter is only a pre-selection; the sweep re-checks every flag.
    Rows that cannot be normalized are logged and dropped.

    Args:
        include_notified: Keep tasks whose notified flag is already set

    Returns:
        Normalized tasks
    """
    with span("task_service.list_reminder_candidates"):
        filter_query = 'completed = "false" && send_notification = "true"'
        if not include_notified:
            filter_query += ' && notified = "false"'

        rows = await db_client.list_all_records(collection=COLLECTION, filter_query=filter_query)

        tasks: list[Task] = []
        for row in rows:
            try:
                tasks.append(Task.from_row(row))
            except ValidationError as e:
                logger.warning("Skipping malformed task row", extra={"task_id": row.get("id"), "error": str(e)})
        return tasks


async def get_task(task_id: str) -> Task:
    """Fetch one task by ID.

    Raises:
        KeyError: If the task does not exist
    """
    with span("task_service.get_task"):
        row = await db_client.get_record(collection=COLLECTION, record_id=task_id)
        return Task.from_row(row)


async def mark_notified(task_id: str) -> None:
    """Flag a task as having reached at least one recipient."""
    with span("task_service.mark_notified"):
        await db_client.update_record(
            collection=COLLECTION,
            record_id=task_id,
            data={"notified": True, "updated_at": datetime.now(UTC)},
        )
        logger.info("Task marked notified", extra={"task_id": task_id})


async def mark_completed(task_id: str) -> tuple[Task, bool]:
    """Mark a task completed.

    Returns:
        The task as it was before the update, and whether it was already completed

    Raises:
        KeyError: If the task does not exist
    """
    with span("task_service.mark_completed"):
        task = await get_task(task_id)
        already_completed = task.completed
        if not already_completed:
            await db_client.update_record(
                collection=COLLECTION,
                record_id=task_id,
                data={"completed": True, "updated_at": datetime.now(UTC)},
            )
            logger.info("Task marked completed", extra={"task_id": task_id})
        return task, already_completed
