from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from timesheet.core.exceptions import SyncFailure, ValidationError
from timesheet.database import SessionLocal
from timesheet.models.assignment import MAX_ALLOCATION_HOURS, Assignment
from timesheet.models.time_entry import AUTO_SYNC_MARKER, TimeEntry
from timesheet.models.user import User
from timesheet.services.capacity import lock_user
from timesheet.services.catalog import Catalog, default_catalog
from timesheet.services.pto_sync import synced_entry

logger = logging.getLogger(__name__)


def _field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _normalize_rows(rows: Iterable[Any], month: int, year: int) -> List[Dict[str, Any]]:
    days_in_month = calendar.monthrange(year, month)[1]
    # a later row for the same user and day replaces an earlier one
    normalized: Dict[tuple, Dict[str, Any]] = {}
    for i, row in enumerate(rows):
        user_id = _field(row, "user_id")
        day = _field(row, "day")
        hours = _field(row, "hours")

        if user_id is None or day is None or hours is None:
            raise ValidationError(f"assignments[{i}] requires user_id, day and hours")
        try:
            user_id, day, hours = int(user_id), int(day), int(hours)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"assignments[{i}] fields must be integers") from exc

        if day < 1 or day > days_in_month:
            raise ValidationError(f"assignments[{i}].day must be between 1 and {days_in_month}", field="day")
        if hours < 0 or hours > MAX_ALLOCATION_HOURS:
            raise ValidationError(
                f"assignments[{i}].hours must be between 0 and {MAX_ALLOCATION_HOURS}", field="hours"
            )

        normalized[(user_id, day)] = {"user_id": user_id, "day": date(year, month, day), "hours": hours}
    return list(normalized.values())


def _clip_to_outside(db: Session, row: Assignment, month_start: date, month_end: date) -> bool:
    """
    Trim ``row`` down to the days it covers outside the month. A row that
    runs past both ends is split in two. Returns False when nothing is left,
    i.e. the row lies wholly inside the month.
    """
    before = row.start_date < month_start
    after = row.end_date > month_end
    if not before and not after:
        return False

    if before and after:
        db.add(
            Assignment(
                user_id=row.user_id,
                project_id=row.project_id,
                allocation_hours=row.allocation_hours,
                start_date=month_end + timedelta(days=1),
                end_date=row.end_date,
            )
        )
    if before:
        row.end_date = month_start - timedelta(days=1)
    else:
        row.start_date = month_end + timedelta(days=1)
    return True


def save_pto_assignments(
    rows: Iterable[Any],
    month: int,
    year: int,
    *,
    db: Optional[Session] = None,
    catalog: Optional[Catalog] = None,
) -> Dict[str, int]:
    """
    Replace a month of PTO for every user named in ``rows``.

    Each row is ``{user_id, day, hours}``. For those users, PTO assignments
    lying inside the month are removed and ones crossing a month edge are
    clipped to their days outside it, so their mirrored entries there stay
    valid. Auto-synced leave entries dated in the month are removed, then one
    single-day assignment plus one matching entry is written per row with
    hours > 0. Days missing from ``rows`` end up empty. Capacity and merge
    rules do not apply here.

    If db is provided, this function will NOT commit/close. Caller owns the transaction.
    If db is None, this function manages its own session + commit.
    """
    if month is None or year is None:
        raise ValidationError("month and year are required")
    month, year = int(month), int(year)
    if month < 1 or month > 12:
        raise ValidationError("month must be between 1 and 12", field="month")
    if year < 1 or year > 9999:
        raise ValidationError("year is out of range", field="year")

    wanted = _normalize_rows(rows, month, year)
    catalog = catalog or default_catalog()

    month_start = date(year, month, 1)
    month_end = date(year, month, calendar.monthrange(year, month)[1])

    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        # Resolve both catalog rows before anything is deleted.
        project = catalog.require_pto_project(db)
        task_id = catalog.require_leave_task_id(db)

        users: Dict[int, User] = {}
        for user_id in sorted({r["user_id"] for r in wanted}):
            users[user_id] = lock_user(db, user_id)

        result = {
            "users": len(users),
            "assignments_deleted": 0,
            "assignments_clipped": 0,
            "entries_deleted": 0,
            "assignments_created": 0,
            "entries_created": 0,
        }
        if not users:
            return result

        overlapping = (
            db.query(Assignment)
            .filter(
                Assignment.user_id.in_(list(users)),
                Assignment.project_id == project.id,
                Assignment.start_date <= month_end,
                Assignment.end_date >= month_start,
            )
            .order_by(Assignment.id.asc())
            .all()
        )
        for row in overlapping:
            if _clip_to_outside(db, row, month_start, month_end):
                result["assignments_clipped"] += 1
            else:
                db.delete(row)
                result["assignments_deleted"] += 1
        result["entries_deleted"] = (
            db.query(TimeEntry)
            .filter(
                TimeEntry.user_email.in_([u.email for u in users.values()]),
                TimeEntry.task_id == task_id,
                TimeEntry.remarks == AUTO_SYNC_MARKER,
                TimeEntry.entry_date >= month_start,
                TimeEntry.entry_date <= month_end,
            )
            .delete(synchronize_session=False)
        )

        for r in wanted:
            if r["hours"] <= 0:
                continue
            user = users[r["user_id"]]
            db.add(
                Assignment(
                    user_id=user.id,
                    project_id=project.id,
                    allocation_hours=r["hours"],
                    start_date=r["day"],
                    end_date=r["day"],
                )
            )
            db.add(synced_entry(user, project, task_id, r["day"], r["hours"]))
            result["assignments_created"] += 1
            result["entries_created"] += 1

        try:
            db.flush()
        except SQLAlchemyError as exc:
            raise SyncFailure(f"Failed to write PTO for {year}-{month:02d}") from exc

        if owns_db:
            db.commit()

        logger.info(
            "PTO month reconciled",
            extra={"year": year, "month": month, **result},
        )
        return result
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()
