from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from timesheet.core.exceptions import CapacityExceeded, NotFound, ValidationError
from timesheet.database import SessionLocal
from timesheet.models.assignment import MAX_ALLOCATION_HOURS, Assignment
from timesheet.models.project import Project
from timesheet.models.user import User
from timesheet.services.capacity import ensure_capacity, lock_user
from timesheet.services.catalog import Catalog
from timesheet.services.pto_sync import DeletedAssignment, sync_assignment_to_entries

logger = logging.getLogger(__name__)


def _validate_hours(allocation_hours: Any) -> int:
    if allocation_hours is None:
        raise ValidationError("allocation_hours is required", field="allocation_hours")
    if isinstance(allocation_hours, bool):
        raise ValidationError("allocation_hours must be a whole number of hours", field="allocation_hours")
    try:
        hours = int(allocation_hours)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "allocation_hours must be a whole number of hours", field="allocation_hours"
        ) from exc
    if hours != allocation_hours and not isinstance(allocation_hours, str):
        raise ValidationError("allocation_hours must be a whole number of hours", field="allocation_hours")
    if hours < 0 or hours > MAX_ALLOCATION_HOURS:
        raise ValidationError(
            f"allocation_hours must be between 0 and {MAX_ALLOCATION_HOURS}",
            field="allocation_hours",
        )
    return hours


def _validate_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date is None:
        raise ValidationError("start_date is required", field="start_date")
    if end_date is None:
        raise ValidationError("end_date is required", field="end_date")
    if start_date > end_date:
        raise ValidationError("Start date must be before or equal to end date", field="start_date")


def _get_assignment(db: Session, assignment_id: int) -> Assignment:
    row = db.query(Assignment).filter(Assignment.id == int(assignment_id)).first()
    if row is None:
        raise NotFound("Assignment", assignment_id)
    return row


def create_or_merge_assignment(
    user_id: int,
    project_id: int,
    allocation_hours: int,
    start_date: date,
    end_date: date,
    *,
    db: Optional[Session] = None,
    catalog: Optional[Catalog] = None,
) -> Tuple[Assignment, bool]:
    """
    Allocate a user to a project, merging into an existing (user, project) row.

    Returns (assignment, merged). A merge adds the hours together and widens
    the date range to cover both requests. Capacity is checked before anything
    is written.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    If db is None, this function manages its own session + commit.
    """
    if user_id is None or project_id is None:
        raise ValidationError("user_id and project_id are required")
    hours = _validate_hours(allocation_hours)
    _validate_range(start_date, end_date)

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        lock_user(db, user_id)
        if db.get(Project, int(project_id)) is None:
            raise NotFound("Project", project_id)

        existing = (
            db.query(Assignment)
            .filter(
                Assignment.user_id == int(user_id),
                Assignment.project_id == int(project_id),
            )
            .order_by(Assignment.id.asc())
            .first()
        )

        if existing is None:
            ensure_capacity(db, user_id, start_date, end_date, hours)

            row = Assignment(
                user_id=int(user_id),
                project_id=int(project_id),
                allocation_hours=hours,
                start_date=start_date,
                end_date=end_date,
            )
            db.add(row)
            db.flush()
            window = (start_date, end_date)
            merged = False
        else:
            merged_hours = int(existing.allocation_hours) + hours
            merged_start = min(existing.start_date, start_date)
            merged_end = max(existing.end_date, end_date)

            ensure_capacity(
                db,
                user_id,
                merged_start,
                merged_end,
                merged_hours,
                exclude_assignment_id=existing.id,
                merged=True,
            )

            window = (existing.start_date, existing.end_date)
            existing.allocation_hours = merged_hours
            existing.start_date = merged_start
            existing.end_date = merged_end
            db.flush()
            row = existing
            merged = True

        sync_assignment_to_entries(db, row, window=window, catalog=catalog)

        if owns_db:
            db.commit()
            db.refresh(row)

        logger.info(
            "Assignment merged" if merged else "Assignment created",
            extra={
                "assignment_id": row.id,
                "user_id": row.user_id,
                "project_id": row.project_id,
                "allocation_hours": row.allocation_hours,
                "start_date": row.start_date,
                "end_date": row.end_date,
            },
        )
        return row, merged
    except CapacityExceeded as exc:
        if owns_db:
            db.rollback()
        logger.info(
            "Assignment rejected: capacity exceeded",
            extra={"user_id": user_id, "project_id": project_id, **exc.context()},
        )
        raise
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def update_assignment(
    assignment_id: int,
    allocation_hours: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    *,
    db: Optional[Session] = None,
    catalog: Optional[Catalog] = None,
) -> Assignment:
    """
    Change hours and/or range of an assignment. Omitted fields keep their
    current values. When only one end of the range is passed, start <= end is
    checked against the stored other end, after the row is loaded and the
    user locked. The capacity check runs against the final range with the
    row itself excluded.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    If db is None, this function manages its own session + commit.
    """
    if allocation_hours is not None:
        _validate_hours(allocation_hours)
    if start_date is not None and end_date is not None:
        _validate_range(start_date, end_date)

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        row = _get_assignment(db, assignment_id)
        lock_user(db, row.user_id)
        # re-read under the user lock
        db.refresh(row)

        final_hours = _validate_hours(allocation_hours if allocation_hours is not None else row.allocation_hours)
        final_start = start_date or row.start_date
        final_end = end_date or row.end_date
        _validate_range(final_start, final_end)

        ensure_capacity(
            db,
            row.user_id,
            final_start,
            final_end,
            final_hours,
            exclude_assignment_id=row.id,
        )

        window = (min(row.start_date, final_start), max(row.end_date, final_end))

        row.allocation_hours = final_hours
        row.start_date = final_start
        row.end_date = final_end
        db.flush()

        sync_assignment_to_entries(db, row, window=window, catalog=catalog)

        if owns_db:
            db.commit()
            db.refresh(row)

        logger.info(
            "Assignment updated",
            extra={
                "assignment_id": row.id,
                "user_id": row.user_id,
                "allocation_hours": row.allocation_hours,
                "start_date": row.start_date,
                "end_date": row.end_date,
            },
        )
        return row
    except CapacityExceeded as exc:
        if owns_db:
            db.rollback()
        logger.info(
            "Assignment update rejected: capacity exceeded",
            extra={"assignment_id": assignment_id, **exc.context()},
        )
        raise
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def delete_assignment(
    assignment_id: int,
    *,
    db: Optional[Session] = None,
    catalog: Optional[Catalog] = None,
) -> Assignment:
    """
    Remove an assignment and, for PTO rows, the entries mirrored from it.
    Returns the deleted row with its last-known values.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    If db is None, this function manages its own session + commit.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        row = _get_assignment(db, assignment_id)
        lock_user(db, row.user_id)

        snapshot = DeletedAssignment.capture(row)
        db.delete(row)
        db.flush()

        sync_assignment_to_entries(db, snapshot, deleted=True, catalog=catalog)

        if owns_db:
            db.commit()

        logger.info(
            "Assignment deleted",
            extra={
                "assignment_id": snapshot.id,
                "user_id": snapshot.user_id,
                "project_id": snapshot.project_id,
            },
        )
        return row
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


@dataclass
class UserAllocation:
    user_id: int
    user_name: str
    user_email: str
    user_dept: str
    total_allocation: int = 0
    projects: List[Dict[str, Any]] = field(default_factory=list)


def _assignment_row(a: Assignment, p: Project) -> Dict[str, Any]:
    return {
        "id": a.id,
        "project_id": a.project_id,
        "project_name": p.name,
        "project_code": p.code,
        "project_client": p.client,
        "project_location": p.location,
        "allocation_hours": a.allocation_hours,
        "start_date": a.start_date,
        "end_date": a.end_date,
        "created_at": a.created_at,
        "updated_at": a.updated_at,
    }


def list_assignments_on(day: Optional[date] = None) -> List[UserAllocation]:
    """Assignments active on ``day`` (default today), grouped by user."""
    target = day or date.today()

    db = SessionLocal()
    try:
        rows = (
            db.query(Assignment, User, Project)
            .join(User, User.id == Assignment.user_id)
            .join(Project, Project.id == Assignment.project_id)
            .filter(Assignment.start_date <= target, Assignment.end_date >= target)
            .order_by(User.name.asc(), Project.name.asc(), Assignment.id.asc())
            .all()
        )

        grouped: Dict[int, UserAllocation] = {}
        for a, u, p in rows:
            bucket = grouped.get(u.id)
            if bucket is None:
                bucket = UserAllocation(
                    user_id=u.id,
                    user_name=u.name,
                    user_email=u.email,
                    user_dept=u.dept,
                )
                grouped[u.id] = bucket
            bucket.projects.append(_assignment_row(a, p))
            bucket.total_allocation += int(a.allocation_hours)

        return list(grouped.values())
    finally:
        db.close()


def list_user_assignments(user_id: int) -> Dict[str, Any]:
    db = SessionLocal()
    try:
        if db.get(User, int(user_id)) is None:
            raise NotFound("User", user_id)

        rows = (
            db.query(Assignment, Project)
            .join(Project, Project.id == Assignment.project_id)
            .filter(Assignment.user_id == int(user_id))
            .order_by(Project.name.asc(), Assignment.start_date.asc())
            .all()
        )
        assignments = [_assignment_row(a, p) for a, p in rows]
        return {
            "user_id": int(user_id),
            "total_allocation": sum(int(a["allocation_hours"]) for a in assignments),
            "assignments": assignments,
        }
    finally:
        db.close()
