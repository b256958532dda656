from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Response

from timesheet.core.authorization import Role, require_role
from timesheet.core.exceptions import DomainError, ValidationError
from timesheet.database import SessionLocal
from timesheet.deps.auth import require_auth
from timesheet.deps.errors import to_http_exception
from timesheet.schemas.assignment import (
    AssignmentCreate,
    AssignmentMutationResponse,
    AssignmentResponse,
    AssignmentsOnDateResponse,
    AssignmentUpdate,
    PtoSaveRequest,
    PtoSaveResponse,
    UserAssignmentsResponse,
)
from timesheet.services import assignment_service, pto_reconciliation

router = APIRouter(
    prefix="/assignments",
    tags=["Assignments"],
)


@router.get("", response_model=AssignmentsOnDateResponse)
def list_assignments(
    date: Optional[date] = None,
    _auth: tuple[str, str] = Depends(require_auth),
):
    rows = assignment_service.list_assignments_on(date)
    return {"success": True, "data": rows}


@router.get("/user/{user_id}", response_model=UserAssignmentsResponse)
def list_user_assignments(
    user_id: int,
    _auth: tuple[str, str] = Depends(require_auth),
):
    try:
        data = assignment_service.list_user_assignments(user_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return {"success": True, **data}


@router.post("", response_model=AssignmentMutationResponse, status_code=201)
def create_assignment(
    payload: AssignmentCreate,
    response: Response,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        row, merged = assignment_service.create_or_merge_assignment(
            user_id=payload.user_id,
            project_id=payload.project_id,
            allocation_hours=payload.allocation_hours,
            start_date=payload.start_date,
            end_date=payload.end_date,
            db=db,
        )
        db.commit()
        db.refresh(row)
    except DomainError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    if merged:
        response.status_code = 200
        message = "Assignment merged successfully"
    else:
        message = "Assignment created successfully"

    return {
        "success": True,
        "message": message,
        "data": AssignmentResponse.model_validate(row),
    }


@router.put("/{assignment_id}", response_model=AssignmentMutationResponse)
def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdate,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        row = assignment_service.update_assignment(
            assignment_id,
            allocation_hours=payload.allocation_hours,
            start_date=payload.start_date,
            end_date=payload.end_date,
            db=db,
        )
        db.commit()
        db.refresh(row)
        return {
            "success": True,
            "message": "Assignment updated successfully",
            "data": AssignmentResponse.model_validate(row),
        }
    except DomainError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.delete("/{assignment_id}", response_model=AssignmentMutationResponse)
def delete_assignment(
    assignment_id: int,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        row = assignment_service.delete_assignment(assignment_id, db=db)
        deleted = AssignmentResponse.model_validate(row)
        db.commit()
        return {
            "success": True,
            "message": "Assignment deleted successfully",
            "data": deleted,
        }
    except DomainError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post("/pto", response_model=PtoSaveResponse)
def save_pto_assignments(
    payload: PtoSaveRequest,
    _role=Depends(require_role(Role.MANAGER)),
):
    if not payload.assignments:
        raise to_http_exception(ValidationError("assignments must not be empty", field="assignments"))

    try:
        result = pto_reconciliation.save_pto_assignments(
            [row.model_dump() for row in payload.assignments],
            month=payload.month,
            year=payload.year,
        )
    except DomainError as exc:
        raise to_http_exception(exc) from exc

    return {"success": True, **result}
