from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
import logging
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tasktracker.schemas import (
    TaskCreateRequest,
    TaskUpdateRequest,
    TaskResponse,
    TaskDeleteResponse,
    TaskStatsResponse,
)

from tasktracker.services.tasks_service import (
    create_task_service,
    get_task_service,
    list_tasks_service,
    update_task_service,
    delete_task_service,
)
from tasktracker.services.stats_service import task_stats_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_session(request: Request):
    """One session per request, from the app's session factory."""
    with request.app.state.session_factory() as session:
        yield session


@router.get("/db-health")
def db_health(session=Depends(get_session)):
    """Database health check endpoint."""
    try:
        session.execute(text("SELECT 1"))
        logger.debug("Database health check passed")
        return {"db": "ok"}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection failed"
        )


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task_api(payload: TaskCreateRequest, session=Depends(get_session)):
    """API endpoint to create a new task."""
    logger.info(f"POST /tasks - Creating task: {payload.title!r}")
    return create_task_service(session, payload)


@router.get("/tasks", response_model=List[TaskResponse])
def list_tasks_api(
    priority: Optional[str] = None,
    task_status: Optional[str] = Query(None, alias="status"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    session=Depends(get_session),
):
    """API endpoint to list tasks, optionally filtered and sorted."""
    logger.debug(f"GET /tasks - priority={priority} status={task_status} sortBy={sort_by}")
    return list_tasks_service(
        session,
        priority=priority,
        status=task_status,
        sort_by=sort_by,
    )


# Must stay above the /tasks/{task_id} routes.
@router.get("/tasks/stats", response_model=TaskStatsResponse)
def task_stats_api(session=Depends(get_session)):
    """API endpoint for aggregate task statistics."""
    logger.debug("GET /tasks/stats")
    return task_stats_service(session)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task_api(task_id: str, session=Depends(get_session)):
    """API endpoint to get a task by ID."""
    logger.debug(f"GET /tasks/{task_id}")
    return get_task_service(session, task_id)


@router.put("/tasks/{task_id}", response_model=TaskResponse)
def update_task_api(task_id: str, payload: TaskUpdateRequest, session=Depends(get_session)):
    """API endpoint to update a task. Omitted fields are left unchanged."""
    logger.info(f"PUT /tasks/{task_id}")
    return update_task_service(session, task_id, payload)


@router.delete("/tasks/{task_id}", response_model=TaskDeleteResponse)
def delete_task_api(task_id: str, session=Depends(get_session)):
    """API endpoint to delete a task."""
    logger.info(f"DELETE /tasks/{task_id}")
    return delete_task_service(session, task_id)
