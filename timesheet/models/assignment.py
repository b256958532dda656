from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer

from timesheet.database import Base

MAX_ALLOCATION_HOURS = 160


class Assignment(Base):
    __tablename__ = "user_projects"

    # No unique (user_id, project_id): single-day PTO rows share a pair.
    __table_args__ = (
        CheckConstraint(
            f"allocation_hours >= 0 AND allocation_hours <= {MAX_ALLOCATION_HOURS}",
            name="ck_user_projects_allocation_hours",
        ),
        CheckConstraint("start_date <= end_date", name="ck_user_projects_date_order"),
        Index("ix_user_projects_user_date_range", "user_id", "start_date", "end_date"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    allocation_hours = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
