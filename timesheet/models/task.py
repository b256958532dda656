from sqlalchemy import Column, Integer, String

from timesheet.database import Base


class Task(Base):
    __tablename__ = "tasks"

    task_id = Column(Integer, primary_key=True, index=True)
    task_name = Column(String, nullable=False, index=True)
    task_dept = Column(String, nullable=True)
