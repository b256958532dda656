from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class AssignmentCreate(BaseModel):
    user_id: int
    project_id: int
    # bounds and range order are checked in assignment_service
    allocation_hours: int
    start_date: date
    end_date: date


class AssignmentUpdate(BaseModel):
    allocation_hours: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    project_id: int
    allocation_hours: int
    start_date: date
    end_date: date
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AssignmentMutationResponse(BaseModel):
    success: bool = True
    message: str
    data: AssignmentResponse


class ProjectAllocation(BaseModel):
    id: int
    project_id: int
    project_name: str
    project_code: Optional[int] = None
    project_client: Optional[str] = None
    project_location: Optional[str] = None
    allocation_hours: int
    start_date: date
    end_date: date
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    user_name: str
    user_email: str
    user_dept: str
    total_allocation: int
    projects: List[ProjectAllocation]


class AssignmentsOnDateResponse(BaseModel):
    success: bool = True
    data: List[UserAllocationResponse]


class UserAssignmentsResponse(BaseModel):
    success: bool = True
    user_id: int
    total_allocation: int
    assignments: List[ProjectAllocation]


class PtoDay(BaseModel):
    user_id: int
    day: int
    hours: int


class PtoSaveRequest(BaseModel):
    month: int
    year: int
    assignments: List[PtoDay]


class PtoSaveResponse(BaseModel):
    success: bool = True
    users: int
    assignments_deleted: int
    assignments_clipped: int
    entries_deleted: int
    assignments_created: int
    entries_created: int
