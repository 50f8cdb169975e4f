from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError

from tasktracker.errors import PersistenceError
from tasktracker.models import TaskStatus
from tasktracker.repository import find_all_tasks, from_storage_time
from tasktracker.schemas import TaskStatsResponse

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 60 * 60


def _hours(delta) -> float:
    return delta.total_seconds() / SECONDS_PER_HOUR


def _valid_instant(value: Optional[datetime]) -> bool:
    """Present and strictly after the Unix epoch."""
    return value is not None and from_storage_time(value).timestamp() > 0


def compute_task_stats(
    tasks: Iterable[Mapping],
    now: Optional[datetime] = None,
) -> TaskStatsResponse:
    """
    Aggregate statistics over a set of task records.

    ``tasks`` holds mappings with ``status``, ``start_time`` and ``end_time``
    keys. Times for pending tasks are measured against ``now`` (current UTC
    time when omitted).
    """
    if now is None:
        now = datetime.now(timezone.utc)
    now = from_storage_time(now)

    tasks = list(tasks)
    total = len(tasks)
    completed = [t for t in tasks if t["status"] == TaskStatus.FINISHED]
    pending = [t for t in tasks if t["status"] == TaskStatus.PENDING]

    completed_percentage = len(completed) / total * 100 if total else 0.0
    pending_percentage = len(pending) / total * 100 if total else 0.0

    time_lapsed = 0.0
    balance_time = 0.0
    for task in pending:
        if not (_valid_instant(task["start_time"]) and _valid_instant(task["end_time"])):
            continue
        start = from_storage_time(task["start_time"])
        end = from_storage_time(task["end_time"])
        time_lapsed += max(0.0, _hours(now - start))
        balance_time += max(0.0, _hours(end - now))

    # Sign is preserved: an inverted interval lowers the average.
    durations = [
        _hours(from_storage_time(t["end_time"]) - from_storage_time(t["start_time"]))
        for t in completed
        if t["start_time"] is not None and t["end_time"] is not None
    ]
    average_completion_time = sum(durations) / len(durations) if durations else 0.0

    return TaskStatsResponse(
        total_tasks=total,
        completed_percentage=completed_percentage,
        pending_percentage=pending_percentage,
        time_lapsed=time_lapsed,
        balance_time=balance_time,
        average_completion_time=average_completion_time,
    )


def task_stats_service(session) -> TaskStatsResponse:
    """Service function to compute statistics over every stored task."""
    logger.debug("Computing task statistics")

    try:
        rows = find_all_tasks(session)
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching tasks for statistics: {e}", exc_info=True)
        raise PersistenceError("Failed to fetch statistics.")

    stats = compute_task_stats(row._mapping for row in rows)
    logger.debug(
        f"Statistics over {stats.total_tasks} task(s): "
        f"{stats.completed_percentage:.2f}% finished, {stats.pending_percentage:.2f}% pending"
    )
    return stats
