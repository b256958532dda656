from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Request

from timesheet.core.exceptions import DomainError
from timesheet.database import SessionLocal
from timesheet.deps.auth import require_auth
from timesheet.deps.errors import to_http_exception
from timesheet.schemas.time_entry import (
    TimeEntryCreate,
    TimeEntryDeleteResponse,
    TimeEntryResponse,
    TimeEntryUpdate,
)
from timesheet.services import time_entry_service

router = APIRouter(
    prefix="/time_entries",
    tags=["Time Entries"],
)


@router.post("", response_model=TimeEntryResponse, status_code=201)
def create_time_entry(
    payload: TimeEntryCreate,
    request: Request,
    _auth: tuple[str, str] = Depends(require_auth),
):
    db = SessionLocal()
    try:
        entry = time_entry_service.create_time_entry(
            request.state.user_email,
            payload.taskId,
            payload.entry_date,
            hours=payload.hours,
            minutes=payload.minutes,
            project=payload.project,
            project_code=payload.project_code,
            country=payload.country,
            remarks=payload.remarks,
            client=payload.client,
            db=db,
        )
        db.commit()
        db.refresh(entry)
        return entry
    except DomainError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("", response_model=list[TimeEntryResponse])
def list_time_entries(
    date: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    _auth: tuple[str, str] = Depends(require_auth),
):
    return time_entry_service.list_time_entries(entry_date=date, start=start, end=end)


@router.get("/user/me", response_model=list[TimeEntryResponse])
def list_my_time_entries(
    request: Request,
    start: Optional[date] = None,
    end: Optional[date] = None,
    _auth: tuple[str, str] = Depends(require_auth),
):
    try:
        return time_entry_service.list_user_time_entries(request.state.user_email, start=start, end=end)
    except DomainError as exc:
        raise to_http_exception(exc) from exc


@router.put("/{entry_id}", response_model=TimeEntryResponse)
def update_time_entry(
    entry_id: int,
    payload: TimeEntryUpdate,
    request: Request,
    _auth: tuple[str, str] = Depends(require_auth),
):
    changes = payload.model_dump(exclude_unset=True)
    if "taskId" in changes:
        changes["task_id"] = changes.pop("taskId")

    db = SessionLocal()
    try:
        entry = time_entry_service.update_time_entry(
            entry_id,
            request.state.user_email,
            db=db,
            **changes,
        )
        db.commit()
        db.refresh(entry)
        return entry
    except DomainError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.delete("/{entry_id}", response_model=TimeEntryDeleteResponse)
def delete_time_entry(
    entry_id: int,
    request: Request,
    _auth: tuple[str, str] = Depends(require_auth),
):
    db = SessionLocal()
    try:
        entry = time_entry_service.delete_time_entry(entry_id, request.state.user_email, db=db)
        deleted = TimeEntryResponse.model_validate(entry)
        db.commit()
        return {"message": "Time entry deleted", "deleted": deleted}
    except DomainError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
