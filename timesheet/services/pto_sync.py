from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterator, Optional, Set, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from timesheet.core.exceptions import NotFound, SyncFailure, ValidationError
from timesheet.database import SessionLocal
from timesheet.models.assignment import Assignment
from timesheet.models.project import Project
from timesheet.models.time_entry import AUTO_SYNC_MARKER, TimeEntry
from timesheet.models.user import User
from timesheet.services.capacity import lock_user
from timesheet.services.catalog import Catalog, default_catalog

logger = logging.getLogger(__name__)

SATURDAY = 5


@dataclass(frozen=True)
class DeletedAssignment:
    """Last-known state of an assignment row that no longer exists."""

    id: int
    user_id: int
    project_id: int
    allocation_hours: int
    start_date: date
    end_date: date

    @classmethod
    def capture(cls, row: Assignment) -> "DeletedAssignment":
        return cls(
            id=int(row.id),
            user_id=int(row.user_id),
            project_id=int(row.project_id),
            allocation_hours=int(row.allocation_hours),
            start_date=row.start_date,
            end_date=row.end_date,
        )


def iter_weekdays(start: date, end: date) -> Iterator[date]:
    day = start
    while day <= end:
        if day.weekday() < SATURDAY:
            yield day
        day += timedelta(days=1)


def synced_entry(user: User, project: Project, task_id: int, day: date, hours: int) -> TimeEntry:
    return TimeEntry(
        task_id=int(task_id),
        user_name=user.name,
        user_dept=user.dept,
        user_email=user.email,
        project_name=project.name,
        project_code=project.code,
        location=project.location,
        client=project.client,
        remarks=AUTO_SYNC_MARKER,
        entry_date=day,
        hours=int(hours),
        minutes=0,
    )


def _clear_synced_entries(
    db: Session,
    user_email: str,
    task_id: int,
    start: date,
    end: date,
    keep_entry_id: Optional[int] = None,
) -> int:
    q = db.query(TimeEntry).filter(
        TimeEntry.user_email == user_email,
        TimeEntry.task_id == int(task_id),
        TimeEntry.entry_date >= start,
        TimeEntry.entry_date <= end,
        TimeEntry.remarks == AUTO_SYNC_MARKER,
    )
    if keep_entry_id is not None:
        q = q.filter(TimeEntry.id != int(keep_entry_id))
    return q.delete(synchronize_session=False)


def _synced_days(db: Session, user_email: str, task_id: int, start: date, end: date) -> Set[date]:
    rows = (
        db.query(TimeEntry.entry_date)
        .filter(
            TimeEntry.user_email == user_email,
            TimeEntry.task_id == int(task_id),
            TimeEntry.entry_date >= start,
            TimeEntry.entry_date <= end,
            TimeEntry.remarks == AUTO_SYNC_MARKER,
        )
        .all()
    )
    return {r[0] for r in rows}


def _rematerialize_neighbours(
    db: Session,
    user: User,
    project: Project,
    task_id: int,
    window: Tuple[date, date],
    skip_assignment_id: int,
) -> int:
    # Other PTO rows of this user lost their mirrored entries inside the
    # window when it was cleared; write them back on days without an
    # auto-synced entry. Manual leave entries are ignored here, as in the
    # expansion of the synced row itself.
    win_start, win_end = window
    neighbours = (
        db.query(Assignment)
        .filter(
            Assignment.user_id == user.id,
            Assignment.project_id == project.id,
            Assignment.id != int(skip_assignment_id),
            Assignment.start_date <= win_end,
            Assignment.end_date >= win_start,
            Assignment.allocation_hours > 0,
        )
        .order_by(Assignment.start_date.asc(), Assignment.id.asc())
        .all()
    )
    if not neighbours:
        return 0

    occupied = _synced_days(db, user.email, task_id, win_start, win_end)
    created = 0
    for row in neighbours:
        for day in iter_weekdays(max(row.start_date, win_start), min(row.end_date, win_end)):
            if day in occupied:
                continue
            db.add(synced_entry(user, project, task_id, day, row.allocation_hours))
            occupied.add(day)
            created += 1
    return created


def sync_assignment_to_entries(
    db: Session,
    assignment: Any,
    *,
    deleted: bool = False,
    window: Optional[Tuple[date, date]] = None,
    keep_entry_id: Optional[int] = None,
    catalog: Optional[Catalog] = None,
) -> Optional[Dict[str, int]]:
    """
    Mirror a PTO assignment into daily leave entries.

    ``assignment`` is either a live Assignment row or a DeletedAssignment
    snapshot. Auto-synced entries of the user inside ``window`` (at least the
    assignment's own range) are replaced: one entry per weekday carrying the
    full allocation_hours, unless ``deleted`` is set or the row holds zero
    hours. Manual leave entries are left alone and do not suppress the
    synced ones, so a day may hold both. Returns None when the project is not
    the PTO project.

    Runs inside the caller's transaction; it only flushes.
    """
    catalog = catalog or default_catalog()

    project = db.get(Project, int(assignment.project_id))
    if project is None:
        if deleted:
            return None
        raise NotFound("Project", assignment.project_id)

    if not catalog.is_pto_project(project.category, project.name):
        return None

    task_id = catalog.require_leave_task_id(db)

    user = db.get(User, int(assignment.user_id))
    if user is None:
        raise NotFound("User", assignment.user_id)

    win_start, win_end = window or (assignment.start_date, assignment.end_date)
    win_start = min(win_start, assignment.start_date)
    win_end = max(win_end, assignment.end_date)

    try:
        removed = _clear_synced_entries(db, user.email, task_id, win_start, win_end, keep_entry_id)

        created = 0
        hours = int(assignment.allocation_hours or 0)
        if not deleted and hours > 0:
            for day in iter_weekdays(assignment.start_date, assignment.end_date):
                db.add(synced_entry(user, project, task_id, day, hours))
                created += 1
            db.flush()

        created += _rematerialize_neighbours(
            db,
            user,
            project,
            task_id,
            (win_start, win_end),
            skip_assignment_id=assignment.id,
        )
        db.flush()
    except SQLAlchemyError as exc:
        raise SyncFailure(
            f"Failed to sync PTO assignment {assignment.id} to time entries",
            assignment_id=assignment.id,
        ) from exc

    logger.info(
        "PTO assignment synced to time entries",
        extra={
            "assignment_id": assignment.id,
            "user_id": user.id,
            "deleted": deleted,
            "window_start": win_start,
            "window_end": win_end,
            "entries_removed": removed,
            "entries_created": created,
        },
    )
    return {"removed": removed, "created": created}


def sync_time_entry_to_assignment(
    user_email: str,
    entry_date: date,
    hours: int,
    task_id: Any,
    *,
    keep_entry_id: Optional[int] = None,
    db: Optional[Session] = None,
    catalog: Optional[Catalog] = None,
) -> Optional[Assignment]:
    """
    Keep the PTO calendar in agreement with a leave entry on one day.

    PTO rows of the user starting or ending on ``entry_date`` are replaced by
    a single-day row holding ``hours`` (none when hours is 0). No capacity
    check runs here. ``keep_entry_id`` is the entry that triggered the sync;
    it survives the cleanup of mirrored entries.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    If db is None, this function manages its own session + commit.
    """
    if entry_date is None or not user_email:
        raise ValidationError("user_email and entry_date are required")

    catalog = catalog or default_catalog()

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        leave_task_id = catalog.find_leave_task_id(db)
        if leave_task_id is None or task_id is None or str(task_id) != str(leave_task_id):
            return None

        project = catalog.require_pto_project(db)

        user = db.query(User).filter(User.email == user_email).first()
        if user is None:
            raise NotFound("User", user_email)
        lock_user(db, user.id)

        stale = (
            db.query(Assignment)
            .filter(
                Assignment.user_id == user.id,
                Assignment.project_id == project.id,
                or_(Assignment.start_date == entry_date, Assignment.end_date == entry_date),
            )
            .all()
        )
        for row in stale:
            snapshot = DeletedAssignment.capture(row)
            db.delete(row)
            db.flush()
            sync_assignment_to_entries(
                db,
                snapshot,
                deleted=True,
                keep_entry_id=keep_entry_id,
                catalog=catalog,
            )

        created = None
        if int(hours or 0) > 0:
            created = Assignment(
                user_id=user.id,
                project_id=project.id,
                allocation_hours=int(hours),
                start_date=entry_date,
                end_date=entry_date,
            )
            db.add(created)
            db.flush()

        logger.info(
            "Leave entry synced to PTO assignment",
            extra={
                "user_id": user.id,
                "entry_date": entry_date,
                "hours": int(hours or 0),
                "assignments_removed": len(stale),
                "assignment_id": None if created is None else created.id,
            },
        )

        if owns_db:
            db.commit()

        return created
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()
