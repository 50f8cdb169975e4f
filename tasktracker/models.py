from sqlalchemy import (
    Table,
    Column,
    String,
    DateTime,
    MetaData,
    func,
)

metadata = MetaData()

class TaskStatus:
    PENDING = "Pending"
    FINISHED = "Finished"
    CANCELLED = "Cancelled"


tasks = Table(
    "tasks",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("start_time", DateTime, nullable=False),
    Column("end_time", DateTime, nullable=False),
    Column("priority", String, nullable=False, index=True),
    Column("status", String, nullable=False, index=True),
    Column("created_at", DateTime, server_default=func.now()),
    Column(
        "updated_at",
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
    ),
)

# Public (JSON) field name -> column, for sortable fields.
SORTABLE_COLUMNS = {
    "title": tasks.c.title,
    "startTime": tasks.c.start_time,
    "endTime": tasks.c.end_time,
    "priority": tasks.c.priority,
    "status": tasks.c.status,
    "createdAt": tasks.c.created_at,
    "updatedAt": tasks.c.updated_at,
}

DEFAULT_SORT_FIELD = "startTime"
