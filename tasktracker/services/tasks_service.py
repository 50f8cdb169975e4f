import uuid
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from tasktracker.errors import NotFoundError, PersistenceError, ValidationError
from tasktracker.schemas import (
    TaskCreateRequest,
    TaskUpdateRequest,
    TaskResponse,
    TaskDeleteResponse,
)
from tasktracker.models import SORTABLE_COLUMNS, DEFAULT_SORT_FIELD
from tasktracker.repository import (
    from_storage_time,
    get_task_by_id,
    insert_task,
    find_tasks,
    update_task,
    delete_task,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "start_time", "end_time", "priority", "status")


def _to_response(row) -> TaskResponse:
    task = row._mapping
    return TaskResponse(
        id=task["id"],
        title=task["title"],
        start_time=from_storage_time(task["start_time"]),
        end_time=from_storage_time(task["end_time"]),
        priority=task["priority"],
        status=task["status"],
        created_at=from_storage_time(task["created_at"]),
        updated_at=from_storage_time(task["updated_at"]),
    )


def create_task_service(session, payload: TaskCreateRequest) -> TaskResponse:
    """Service function to create a new task."""
    missing = [name for name in REQUIRED_FIELDS if getattr(payload, name) is None]
    if missing:
        logger.warning(f"Task creation rejected, missing fields: {missing}")
        raise ValidationError("All fields are required.")

    task_id = uuid.uuid4().hex
    logger.info(f"Creating task {task_id}: {payload.title!r} ({payload.priority}, {payload.status})")

    try:
        row = insert_task(
            session=session,
            task_id=task_id,
            title=payload.title,
            start_time=payload.start_time,
            end_time=payload.end_time,
            priority=payload.priority,
            status=payload.status,
        )
    except SQLAlchemyError as e:
        logger.error(f"Database error creating task {task_id}: {e}", exc_info=True)
        raise PersistenceError("Failed to create task.")

    logger.info(f"Task {task_id} created successfully")
    return _to_response(row)


def get_task_service(session, task_id: str) -> TaskResponse:
    """Service function to get a task by ID."""
    logger.debug(f"Fetching task: {task_id}")

    try:
        row = get_task_by_id(session, task_id)
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching task {task_id}: {e}", exc_info=True)
        raise PersistenceError("Failed to fetch task.")

    if not row:
        logger.debug(f"Task {task_id} not found")
        raise NotFoundError("Task not found.")

    return _to_response(row)


def list_tasks_service(
    session,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: Optional[str] = None,
) -> List[TaskResponse]:
    """Service function to list tasks with optional filters and sort field."""
    sort_field = sort_by or DEFAULT_SORT_FIELD
    if sort_field not in SORTABLE_COLUMNS:
        logger.warning(f"Rejected unknown sort field: {sort_field!r}")
        raise ValidationError(
            f"Cannot sort by '{sort_field}'. Allowed: {', '.join(SORTABLE_COLUMNS)}."
        )

    filters = {}
    if priority:
        filters["priority"] = priority
    if status:
        filters["status"] = status

    logger.debug(f"Listing tasks (filters: {filters}, sort: {sort_field})")

    try:
        rows = find_tasks(session, filters, SORTABLE_COLUMNS[sort_field])
    except SQLAlchemyError as e:
        logger.error(f"Database error listing tasks: {e}", exc_info=True)
        raise PersistenceError("Failed to fetch tasks.")

    logger.debug(f"Found {len(rows)} task(s)")
    return [_to_response(row) for row in rows]


def update_task_service(session, task_id: str, payload: TaskUpdateRequest) -> TaskResponse:
    """
    Service function to update a task.

    Only the fields present in the payload are written, the rest keep their
    stored values.
    """
    values = payload.model_dump(exclude_none=True)
    logger.info(f"Updating task {task_id}: {sorted(values)}")

    try:
        row = update_task(session, task_id, values)
    except SQLAlchemyError as e:
        logger.error(f"Database error updating task {task_id}: {e}", exc_info=True)
        raise PersistenceError("Failed to update task.")

    if not row:
        logger.warning(f"Task {task_id} not found for update")
        raise NotFoundError("Task not found.")

    return _to_response(row)


def delete_task_service(session, task_id: str) -> TaskDeleteResponse:
    """Service function to delete a task."""
    logger.info(f"Deleting task {task_id}")

    try:
        deleted = delete_task(session, task_id)
    except SQLAlchemyError as e:
        logger.error(f"Database error deleting task {task_id}: {e}", exc_info=True)
        raise PersistenceError("Failed to delete task.")

    if not deleted:
        logger.warning(f"Task {task_id} not found for delete")
        raise NotFoundError("Task not found.")

    return TaskDeleteResponse(message="Task deleted successfully.")
