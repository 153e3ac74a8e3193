"""
Recurring task rollover.

When a recurring task is completed the next occurrence is created with the
due date advanced by the task's frequency, unless an identical task already
exists for that date.
"""

import calendar
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional, Dict, Any, Union

from .database import TrackerDatabase

logger = logging.getLogger(__name__)

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")


def _add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_due_date(due_date: Union[str, date], frequency: str) -> date:
    """
    Advance a due date by one period.

    Month and year steps clamp to the last day of the target month, so
    2024-01-31 monthly becomes 2024-02-29.

    Args:
        due_date: ISO date string (a datetime string is truncated to its date) or date
        frequency: One of FREQUENCIES

    Raises:
        ValueError: For an unknown frequency or an unparseable date
    """
    if isinstance(due_date, datetime):
        current = due_date.date()
    elif isinstance(due_date, date):
        current = due_date
    else:
        current = date.fromisoformat(str(due_date)[:10])

    if frequency == "daily":
        return current + timedelta(days=1)
    if frequency == "weekly":
        return current + timedelta(weeks=1)
    if frequency == "monthly":
        return _add_months(current, 1)
    if frequency == "yearly":
        return _add_months(current, 12)
    raise ValueError(f"Unknown frequency '{frequency}'. Expected one of: {', '.join(FREQUENCIES)}")


def spawn_next_occurrence(db: TrackerDatabase, task: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Create the next occurrence of a recurring task.

    Args:
        db: TrackerDatabase instance
        task: Stored task row

    Returns:
        The created task, or None when the task is not recurring, has no due
        date, or the next occurrence already exists
    """
    if not task.get("recurring") or not task.get("due_date"):
        return None

    next_due = next_due_date(task["due_date"], task.get("frequency") or "monthly").isoformat()
    if db.check_task_exists(task["title"], next_due, task["responsible_id"]):
        logger.info(f"Next occurrence of task {task['id']} on {next_due} already exists")
        return None

    created = db.create_task({
        "id": uuid.uuid4().hex,
        "title": task["title"],
        "responsible": task["responsible"],
        "responsible_id": task["responsible_id"],
        "due_date": next_due,
        "notes": task.get("notes"),
        "recurring": True,
        "frequency": task.get("frequency") or "monthly",
    })
    logger.info(f"Created next occurrence {created['id']} of task {task['id']} due {next_due}")
    return created
