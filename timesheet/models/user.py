from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from timesheet.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    dept = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
