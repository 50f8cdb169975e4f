from datetime import datetime, timezone

from sqlalchemy import (
    create_engine,
    text,
    select,
    update,
    insert,
    delete,
)
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import SQLAlchemyError
import logging

from tasktracker.config import DATABASE_URL
from tasktracker.models import tasks

logger = logging.getLogger(__name__)

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def build_engine(database_url: str = DATABASE_URL):
    """Create the engine for the task store."""
    kwargs = {}
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Needed for FastAPI's threadpool
        connect_args["check_same_thread"] = False
        if database_url in IN_MEMORY_URLS:
            # One shared connection, or every session sees an empty database
            kwargs["poolclass"] = StaticPool

    return create_engine(
        database_url,
        connect_args=connect_args,
        future=True,
        **kwargs,
    )


def build_session_factory(engine):
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        future=True,
    )


def enable_wal(engine):
    """Enable Write-Ahead Logging for file-backed SQLite."""
    url = str(engine.url)
    if not url.startswith("sqlite") or url in IN_MEMORY_URLS:
        return
    try:
        with engine.connect() as conn:
            conn.execute(text("PRAGMA journal_mode=WAL;"))
            conn.commit()
            logger.info("WAL mode enabled successfully")
    except Exception as e:
        logger.error(f"Failed to enable WAL mode: {e}", exc_info=True)
        raise


def to_storage_time(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_storage_time(value):
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def insert_task(
    session,
    task_id: str,
    title: str,
    start_time: datetime,
    end_time: datetime,
    priority: str,
    status: str,
):
    """
    Insert a task and return the stored row.
    """
    try:
        session.execute(
            insert(tasks).values(
                id=task_id,
                title=title,
                start_time=to_storage_time(start_time),
                end_time=to_storage_time(end_time),
                priority=priority,
                status=status,
            )
        )
        session.commit()
        logger.debug(f"Task {task_id} inserted")
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database error inserting task {task_id}: {e}", exc_info=True)
        raise

    return get_task_by_id(session, task_id)


def get_task_by_id(session, task_id: str):
    stmt = select(tasks).where(tasks.c.id == task_id)
    result = session.execute(stmt).first()
    return result


def find_tasks(session, filters: dict, sort_column):
    """Equality filter on the given columns, ascending sort on one column."""
    stmt = select(tasks)
    for column_name, value in filters.items():
        stmt = stmt.where(tasks.c[column_name] == value)
    stmt = stmt.order_by(sort_column.asc())
    return session.execute(stmt).all()


def find_all_tasks(session):
    stmt = select(tasks)
    result = session.execute(stmt).all()
    return result


def update_task(session, task_id: str, values: dict):
    """
    Write the given columns of a task.
    Returns the updated row, or None if the task does not exist.
    """
    if not values:
        return get_task_by_id(session, task_id)

    for key in ("start_time", "end_time"):
        if key in values:
            values[key] = to_storage_time(values[key])

    try:
        result = session.execute(
            update(tasks)
            .where(tasks.c.id == task_id)
            .values(**values)
        )
        if result.rowcount == 0:
            session.rollback()
            logger.debug(f"Task {task_id} not found for update")
            return None

        session.commit()
        logger.debug(f"Task {task_id} updated: {sorted(values)}")
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database error updating task {task_id}: {e}", exc_info=True)
        raise

    return get_task_by_id(session, task_id)


def delete_task(session, task_id: str) -> bool:
    """
    Delete a task.
    Returns True if a row was removed, False if the task did not exist.
    """
    try:
        result = session.execute(
            delete(tasks).where(tasks.c.id == task_id)
        )
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database error deleting task {task_id}: {e}", exc_info=True)
        raise

    if result.rowcount == 0:
        logger.debug(f"Task {task_id} not found for delete")
        return False

    logger.debug(f"Task {task_id} deleted")
    return True
