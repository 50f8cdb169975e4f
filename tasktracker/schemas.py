from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskCreateRequest(CamelModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    # Every field is optional here so a missing value reaches the service's
    # presence check (400) instead of failing request parsing.
    title: Optional[str] = Field(None, examples=["Write report"])
    start_time: Optional[datetime] = Field(None, examples=["2024-05-01T09:00:00Z"])
    end_time: Optional[datetime] = Field(None, examples=["2024-05-01T17:00:00Z"])
    priority: Optional[str] = Field(None, examples=["High"])
    status: Optional[str] = Field(None, examples=["Pending"])

    @field_validator("*", mode="before")
    @classmethod
    def falsy_as_missing(cls, value):
        """Empty strings, 0, false and null all count as not supplied."""
        return value if value else None


class TaskUpdateRequest(TaskCreateRequest):
    pass


class TaskResponse(CamelModel):
    id: str
    title: str
    start_time: datetime
    end_time: datetime
    priority: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TaskDeleteResponse(BaseModel):
    message: str


class TaskStatsResponse(CamelModel):
    total_tasks: int
    completed_percentage: float
    pending_percentage: float
    time_lapsed: float
    balance_time: float
    average_completion_time: float
