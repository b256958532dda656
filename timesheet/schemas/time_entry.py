from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TimeEntryCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    taskId: int
    entry_date: date = Field(alias="date")
    # bounds are checked in time_entry_service
    hours: int = 0
    minutes: int = 0
    project: Optional[str] = None
    project_code: Optional[int] = None
    country: Optional[str] = None
    remarks: Optional[str] = None
    client: Optional[str] = None


class TimeEntryUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    taskId: Optional[int] = None
    entry_date: Optional[date] = Field(default=None, alias="date")
    hours: Optional[int] = None
    minutes: Optional[int] = None
    project: Optional[str] = None
    country: Optional[str] = None
    remarks: Optional[str] = None
    client: Optional[str] = None


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    user_name: Optional[str]
    user_dept: Optional[str]
    user_email: Optional[str]
    project_name: Optional[str]
    project_code: Optional[int]
    location: Optional[str]
    remarks: Optional[str]
    client: Optional[str]
    entry_date: date
    hours: int
    minutes: int
    created_at: Optional[datetime] = None


class TimeEntryDeleteResponse(BaseModel):
    message: str
    deleted: TimeEntryResponse
