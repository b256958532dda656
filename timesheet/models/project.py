from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from timesheet.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    code = Column(Integer, nullable=False, index=True)
    location = Column(String, nullable=False, default="")
    client = Column(String, nullable=False, default="")
    category = Column(String, nullable=False, default="project")  # project|pto
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
