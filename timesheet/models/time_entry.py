from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Index, Integer, String

from timesheet.database import Base

AUTO_SYNC_MARKER = "Auto-synced from PTO assignment"


class TimeEntry(Base):
    __tablename__ = "time_entries"

    __table_args__ = (
        Index("ix_time_entries_user_task_date", "user_email", "task_id", "entry_date"),
    )

    id = Column(Integer, primary_key=True, index=True)

    task_id = Column(Integer, nullable=False, index=True)

    # Snapshots taken at write time; later renames do not flow back here.
    user_name = Column(String, nullable=True, index=True)
    user_dept = Column(String, nullable=True)
    user_email = Column(String, nullable=True, index=True)
    project_name = Column(String, nullable=True)
    project_code = Column(Integer, nullable=True, index=True)

    location = Column(String, nullable=True)
    remarks = Column(String, nullable=True)
    client = Column(String, nullable=True)

    entry_date = Column(Date, nullable=False, index=True)
    hours = Column(Integer, nullable=False, default=0)
    minutes = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
