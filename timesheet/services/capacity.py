from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from timesheet.core.exceptions import CapacityExceeded, NotFound
from timesheet.models.assignment import MAX_ALLOCATION_HOURS, Assignment
from timesheet.models.user import User


def lock_user(db: Session, user_id: int) -> User:
    """
    Row-lock the user for the rest of the transaction.

    Every allocation write for a user goes through this lock, so the capacity
    read and the write that follows cannot interleave with another request
    for the same user. On SQLite FOR UPDATE is not emitted; writers are
    serialized by the database file lock instead.
    """
    user = (
        db.query(User)
        .filter(User.id == int(user_id))
        .with_for_update()
        .first()
    )
    if user is None:
        raise NotFound("User", user_id)
    return user


def max_overlapping_allocation(
    db: Session,
    user_id: int,
    start_date: date,
    end_date: date,
    exclude_assignment_id: Optional[int] = None,
) -> int:
    """
    Largest per-day sum of allocation_hours over [start_date, end_date].

    Fetches the user's assignments overlapping the range in one query, then
    sweeps their boundaries: daily totals only change where an assignment
    starts or ends, so the range is never walked day by day.
    """
    q = db.query(Assignment.allocation_hours, Assignment.start_date, Assignment.end_date).filter(
        Assignment.user_id == int(user_id),
        Assignment.start_date <= end_date,
        Assignment.end_date >= start_date,
    )
    if exclude_assignment_id is not None:
        q = q.filter(Assignment.id != int(exclude_assignment_id))

    deltas: Dict[date, int] = {}
    for hours, a_start, a_end in q.all():
        if not hours:
            continue
        first = max(a_start, start_date)
        after_last = min(a_end, end_date) + timedelta(days=1)
        deltas[first] = deltas.get(first, 0) + int(hours)
        deltas[after_last] = deltas.get(after_last, 0) - int(hours)

    running = 0
    peak = 0
    for day in sorted(deltas):
        running += deltas[day]
        if running > peak:
            peak = running
    return peak


def ensure_capacity(
    db: Session,
    user_id: int,
    start_date: date,
    end_date: date,
    requested_hours: int,
    *,
    exclude_assignment_id: Optional[int] = None,
    merged: bool = False,
) -> int:
    """Raise CapacityExceeded if requested_hours does not fit; return the max of the others."""
    current_max = max_overlapping_allocation(
        db,
        user_id,
        start_date,
        end_date,
        exclude_assignment_id=exclude_assignment_id,
    )
    if current_max + int(requested_hours) > MAX_ALLOCATION_HOURS:
        raise CapacityExceeded(
            current_max,
            requested_hours,
            cap=MAX_ALLOCATION_HOURS,
            merged=merged,
        )
    return current_max
