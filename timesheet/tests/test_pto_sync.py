from datetime import date

import pytest

from timesheet import database
from timesheet.core.exceptions import SetupIncomplete, SyncFailure
from timesheet.models.assignment import Assignment
from timesheet.models.time_entry import AUTO_SYNC_MARKER, TimeEntry
from timesheet.services import assignment_service, pto_sync
from timesheet.services.pto_sync import iter_weekdays

# 2024-01-01 is a Monday.
MON, FRI, SUN = date(2024, 1, 1), date(2024, 1, 5), date(2024, 1, 7)


def test_iter_weekdays_skips_weekends():
    assert list(iter_weekdays(MON, SUN)) == [date(2024, 1, d) for d in range(1, 6)]
    assert list(iter_weekdays(date(2024, 1, 6), date(2024, 1, 7))) == []


def test_pto_assignment_is_mirrored_on_weekdays(user_factory, pto_project, read_leave_entries):
    user = user_factory()

    assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, SUN)

    assert read_leave_entries(user.email) == [
        (date(2024, 1, d), 8, AUTO_SYNC_MARKER) for d in range(1, 6)
    ]


def test_mirrored_entries_carry_user_and_project_snapshot(user_factory, pto_project, leave_task):
    user = user_factory(name="Dana", dept="Finance")

    assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, MON)

    session = database.SessionLocal()
    try:
        entry = session.query(TimeEntry).filter(TimeEntry.user_email == user.email).one()
    finally:
        session.close()

    assert entry.task_id == leave_task
    assert entry.user_name == "Dana"
    assert entry.user_dept == "Finance"
    assert entry.project_name == "PTO"
    assert entry.project_code == 9000
    assert entry.minutes == 0


def test_regular_project_creates_no_entries(user_factory, project_factory, leave_task, read_leave_entries):
    user = user_factory()
    project = project_factory()

    assignment_service.create_or_merge_assignment(user.id, project.id, 8, MON, FRI)

    assert read_leave_entries(user.email) == []


def test_zero_hour_pto_assignment_creates_no_entries(user_factory, pto_project, read_leave_entries):
    user = user_factory()

    assignment_service.create_or_merge_assignment(user.id, pto_project.id, 0, MON, FRI)

    assert read_leave_entries(user.email) == []


def test_merge_rewrites_entries_over_the_merged_range(user_factory, pto_project, read_leave_entries):
    user = user_factory()

    assignment_service.create_or_merge_assignment(user.id, pto_project.id, 4, MON, date(2024, 1, 2))
    assignment_service.create_or_merge_assignment(user.id, pto_project.id, 4, date(2024, 1, 4), FRI)

    assert read_leave_entries(user.email) == [
        (date(2024, 1, d), 8, AUTO_SYNC_MARKER) for d in range(1, 6)
    ]


def test_shrinking_update_drops_entries_outside_the_new_range(user_factory, pto_project, read_leave_entries):
    user = user_factory()
    row, _ = assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, FRI)

    assignment_service.update_assignment(row.id, allocation_hours=6, end_date=date(2024, 1, 3))

    assert read_leave_entries(user.email) == [
        (date(2024, 1, d), 6, AUTO_SYNC_MARKER) for d in range(1, 4)
    ]


def test_moving_update_clears_the_old_days(user_factory, pto_project, read_leave_entries):
    user = user_factory()
    row, _ = assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, FRI)

    assignment_service.update_assignment(row.id, start_date=date(2024, 1, 15), end_date=date(2024, 1, 16))

    assert read_leave_entries(user.email) == [
        (date(2024, 1, 15), 8, AUTO_SYNC_MARKER),
        (date(2024, 1, 16), 8, AUTO_SYNC_MARKER),
    ]


def test_delete_removes_only_its_own_entries(user_factory, pto_project, leave_task, read_leave_entries):
    user = user_factory()
    row, _ = assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, FRI)

    session = database.SessionLocal()
    try:
        session.add(
            Assignment(
                user_id=user.id,
                project_id=pto_project.id,
                allocation_hours=4,
                start_date=date(2024, 1, 10),
                end_date=date(2024, 1, 10),
            )
        )
        session.add(
            TimeEntry(
                task_id=leave_task,
                user_email=user.email,
                entry_date=date(2024, 1, 10),
                hours=4,
                minutes=0,
                remarks=AUTO_SYNC_MARKER,
            )
        )
        session.commit()
    finally:
        session.close()

    assignment_service.delete_assignment(row.id)

    assert read_leave_entries(user.email) == [(date(2024, 1, 10), 4, AUTO_SYNC_MARKER)]


def test_delete_restores_entries_of_an_overlapping_pto_row(user_factory, pto_project, read_leave_entries):
    user = user_factory()
    row, _ = assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, FRI)

    session = database.SessionLocal()
    try:
        session.add(
            Assignment(
                user_id=user.id,
                project_id=pto_project.id,
                allocation_hours=4,
                start_date=date(2024, 1, 3),
                end_date=date(2024, 1, 3),
            )
        )
        session.commit()
    finally:
        session.close()

    assignment_service.delete_assignment(row.id)

    assert read_leave_entries(user.email) == [(date(2024, 1, 3), 4, AUTO_SYNC_MARKER)]


def test_manual_leave_entries_survive_forward_sync(user_factory, pto_project, leave_task, read_leave_entries):
    user = user_factory()

    session = database.SessionLocal()
    try:
        session.add(
            TimeEntry(
                task_id=leave_task,
                user_email=user.email,
                entry_date=date(2024, 1, 2),
                hours=2,
                minutes=0,
                remarks="doctor",
            )
        )
        session.commit()
    finally:
        session.close()

    row, _ = assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, FRI)
    assignment_service.delete_assignment(row.id)

    assert read_leave_entries(user.email) == [(date(2024, 1, 2), 2, "doctor")]


def test_missing_leave_task_blocks_pto_writes(user_factory, project_factory, read_assignments):
    user = user_factory()
    pto = project_factory(name="PTO", category="pto")

    with pytest.raises(SetupIncomplete):
        assignment_service.create_or_merge_assignment(user.id, pto.id, 8, MON, FRI)

    assert read_assignments(user.id, pto.id) == []


def test_overlapping_pto_row_is_restored_next_to_a_manual_entry(
    user_factory, pto_project, leave_task, read_leave_entries
):
    user = user_factory()
    row, _ = assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, FRI)

    session = database.SessionLocal()
    try:
        session.add(
            Assignment(
                user_id=user.id,
                project_id=pto_project.id,
                allocation_hours=4,
                start_date=date(2024, 1, 3),
                end_date=date(2024, 1, 3),
            )
        )
        session.add(
            TimeEntry(
                task_id=leave_task,
                user_email=user.email,
                entry_date=date(2024, 1, 3),
                hours=2,
                minutes=0,
                remarks="doctor",
            )
        )
        session.commit()
    finally:
        session.close()

    assignment_service.delete_assignment(row.id)

    assert read_leave_entries(user.email) == [
        (date(2024, 1, 3), 2, "doctor"),
        (date(2024, 1, 3), 4, AUTO_SYNC_MARKER),
    ]


def _broken_entry(user, project, task_id, day, hours):
    # entry_date is NOT NULL
    return TimeEntry(task_id=int(task_id), user_email=user.email, entry_date=None, hours=int(hours))


def test_failed_mirror_write_rolls_back_the_new_assignment(
    user_factory, pto_project, read_assignments, read_leave_entries, monkeypatch
):
    user = user_factory()
    monkeypatch.setattr(pto_sync, "synced_entry", _broken_entry)

    with pytest.raises(SyncFailure) as excinfo:
        assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, FRI)

    assert excinfo.value.kind == "sync_failure"
    assert read_assignments(user.id, pto_project.id) == []
    assert read_leave_entries(user.email) == []


def test_failed_mirror_write_leaves_the_update_undone(
    user_factory, pto_project, read_assignments, read_leave_entries, monkeypatch
):
    user = user_factory()
    row, _ = assignment_service.create_or_merge_assignment(user.id, pto_project.id, 8, MON, FRI)
    monkeypatch.setattr(pto_sync, "synced_entry", _broken_entry)

    with pytest.raises(SyncFailure) as excinfo:
        assignment_service.update_assignment(row.id, allocation_hours=4)

    assert excinfo.value.assignment_id == row.id
    assert read_assignments(user.id, pto_project.id) == [(8, MON, FRI)]
    assert read_leave_entries(user.email) == [
        (date(2024, 1, d), 8, AUTO_SYNC_MARKER) for d in range(1, 6)
    ]
