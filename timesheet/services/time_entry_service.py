from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from timesheet.core.exceptions import NotFound, PermissionDenied, ValidationError
from timesheet.database import SessionLocal
from timesheet.models.time_entry import TimeEntry
from timesheet.models.user import User
from timesheet.services.catalog import Catalog
from timesheet.services.pto_sync import sync_time_entry_to_assignment

logger = logging.getLogger(__name__)

_UNSET = object()


def _get_user_by_email(db: Session, user_email: str) -> User:
    if not user_email:
        raise PermissionDenied("User authentication required")
    user = db.query(User).filter(User.email == user_email).first()
    if user is None:
        raise NotFound("User", user_email)
    return user


def _get_owned_entry(db: Session, entry_id: int, user: User, action: str) -> TimeEntry:
    entry = db.query(TimeEntry).filter(TimeEntry.id == int(entry_id)).first()
    if entry is None:
        raise NotFound("Time entry", entry_id)
    if entry.user_email != user.email:
        raise PermissionDenied(f"You can only {action} your own time entries")
    return entry


def _validate_duration(hours: Optional[int], minutes: Optional[int]) -> None:
    if hours is not None and int(hours) < 0:
        raise ValidationError("hours must not be negative", field="hours")
    if minutes is not None and (int(minutes) < 0 or int(minutes) > 59):
        raise ValidationError("minutes must be between 0 and 59", field="minutes")


def create_time_entry(
    user_email: str,
    task_id: int,
    entry_date: date,
    *,
    hours: int = 0,
    minutes: int = 0,
    project: Optional[str] = None,
    project_code: Optional[int] = None,
    country: Optional[str] = None,
    remarks: Optional[str] = None,
    client: Optional[str] = None,
    db: Optional[Session] = None,
    catalog: Optional[Catalog] = None,
) -> TimeEntry:
    """
    Record hours for the authenticated user. User name/dept/email are copied
    onto the entry as they are right now.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    If db is None, this function manages its own session + commit.
    """
    if task_id is None or entry_date is None:
        raise ValidationError("taskId and date are required")
    _validate_duration(hours, minutes)

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        user = _get_user_by_email(db, user_email)

        entry = TimeEntry(
            task_id=int(task_id),
            user_name=user.name,
            user_dept=user.dept,
            user_email=user.email,
            project_name=project or None,
            project_code=project_code,
            location=country or None,
            remarks=remarks or None,
            client=client or "",
            entry_date=entry_date,
            hours=int(hours or 0),
            minutes=int(minutes or 0),
        )
        db.add(entry)
        db.flush()

        sync_time_entry_to_assignment(
            user.email,
            entry.entry_date,
            entry.hours,
            entry.task_id,
            keep_entry_id=entry.id,
            db=db,
            catalog=catalog,
        )

        if owns_db:
            db.commit()
            db.refresh(entry)

        logger.info(
            "Time entry created",
            extra={"time_entry_id": entry.id, "task_id": entry.task_id, "entry_date": entry.entry_date},
        )
        return entry
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def update_time_entry(
    entry_id: int,
    user_email: str,
    *,
    task_id=_UNSET,
    hours=_UNSET,
    minutes=_UNSET,
    project=_UNSET,
    country=_UNSET,
    remarks=_UNSET,
    entry_date=_UNSET,
    client=_UNSET,
    db: Optional[Session] = None,
    catalog: Optional[Catalog] = None,
) -> TimeEntry:
    """
    Edit one of the caller's own entries. Only the fields passed are changed.

    The old date is synced with zero hours before the new date is synced, so
    moving a leave entry to another day does not leave its old PTO row behind.
    """
    _validate_duration(
        None if hours is _UNSET else hours,
        None if minutes is _UNSET else minutes,
    )

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        user = _get_user_by_email(db, user_email)
        entry = _get_owned_entry(db, entry_id, user, "update")

        old_date, old_task_id = entry.entry_date, entry.task_id

        if task_id is not _UNSET and task_id is not None:
            entry.task_id = int(task_id)
        if entry_date is not _UNSET and entry_date is not None:
            entry.entry_date = entry_date
        if hours is not _UNSET:
            entry.hours = int(hours or 0)
        if minutes is not _UNSET:
            entry.minutes = int(minutes or 0)
        if project is not _UNSET:
            entry.project_name = project
        if country is not _UNSET:
            entry.location = country
        if remarks is not _UNSET:
            entry.remarks = remarks
        if client is not _UNSET:
            entry.client = client
        db.flush()

        sync_time_entry_to_assignment(
            user.email, old_date, 0, old_task_id, keep_entry_id=entry.id, db=db, catalog=catalog
        )
        sync_time_entry_to_assignment(
            user.email,
            entry.entry_date,
            entry.hours,
            entry.task_id,
            keep_entry_id=entry.id,
            db=db,
            catalog=catalog,
        )

        if owns_db:
            db.commit()
            db.refresh(entry)

        logger.info(
            "Time entry updated",
            extra={"time_entry_id": entry.id, "task_id": entry.task_id, "entry_date": entry.entry_date},
        )
        return entry
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def delete_time_entry(
    entry_id: int,
    user_email: str,
    *,
    db: Optional[Session] = None,
    catalog: Optional[Catalog] = None,
) -> TimeEntry:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        user = _get_user_by_email(db, user_email)
        entry = _get_owned_entry(db, entry_id, user, "delete")

        db.delete(entry)
        db.flush()

        sync_time_entry_to_assignment(
            user.email, entry.entry_date, 0, entry.task_id, db=db, catalog=catalog
        )

        if owns_db:
            db.commit()

        logger.info("Time entry deleted", extra={"time_entry_id": entry.id, "task_id": entry.task_id})
        return entry
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def list_time_entries(
    entry_date: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[TimeEntry]:
    db = SessionLocal()
    try:
        q = db.query(TimeEntry)
        if entry_date is not None:
            q = q.filter(TimeEntry.entry_date == entry_date)
        elif start is not None and end is not None:
            q = q.filter(TimeEntry.entry_date >= start, TimeEntry.entry_date <= end)

        return q.order_by(TimeEntry.entry_date.desc(), TimeEntry.created_at.desc(), TimeEntry.id.desc()).all()
    finally:
        db.close()


def list_user_time_entries(
    user_email: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[TimeEntry]:
    db = SessionLocal()
    try:
        user = _get_user_by_email(db, user_email)
        q = db.query(TimeEntry).filter(TimeEntry.user_email == user.email)
        if start is not None and end is not None:
            q = q.filter(TimeEntry.entry_date >= start, TimeEntry.entry_date <= end)

        return q.order_by(TimeEntry.entry_date.desc(), TimeEntry.created_at.desc(), TimeEntry.id.desc()).all()
    finally:
        db.close()
