import os
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from timesheet.core.exceptions import SetupIncomplete
from timesheet.models.project import Project
from timesheet.models.task import Task


def _env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


@dataclass(frozen=True)
class Catalog:
    """Resolves the well-known PTO project and leave/holiday task by name.

    Identifiers are looked up on every call, so renumbered catalog rows are
    picked up without a restart.
    """

    pto_project_name: str = "PTO"
    pto_project_category: str = "pto"
    leave_task_name: str = "Leave/Holiday"

    @classmethod
    def from_env(cls) -> "Catalog":
        return cls(
            pto_project_name=_env("PTO_PROJECT_NAME", "PTO"),
            pto_project_category=_env("PTO_PROJECT_CATEGORY", "pto"),
            leave_task_name=_env("LEAVE_TASK_NAME", "Leave/Holiday"),
        )

    def is_pto_project(self, category: Optional[str], name: Optional[str]) -> bool:
        if category and category.strip().lower() == self.pto_project_category.lower():
            return True
        return bool(name) and name.strip().lower() == self.pto_project_name.lower()

    def find_pto_project(self, db: Session) -> Optional[Project]:
        by_category = (
            db.query(Project)
            .filter(func.lower(Project.category) == self.pto_project_category.lower())
            .order_by(Project.id.asc())
            .first()
        )
        if by_category is not None:
            return by_category

        return (
            db.query(Project)
            .filter(func.lower(Project.name) == self.pto_project_name.lower())
            .order_by(Project.id.asc())
            .first()
        )

    def find_leave_task_id(self, db: Session) -> Optional[int]:
        row = (
            db.query(Task.task_id)
            .filter(func.lower(Task.task_name) == self.leave_task_name.lower())
            .order_by(Task.task_id.asc())
            .first()
        )
        return None if row is None else int(row[0])

    def require_pto_project(self, db: Session) -> Project:
        project = self.find_pto_project(db)
        if project is None:
            raise SetupIncomplete("PTO project")
        return project

    def require_leave_task_id(self, db: Session) -> int:
        task_id = self.find_leave_task_id(db)
        if task_id is None:
            raise SetupIncomplete("Leave/Holiday task")
        return task_id


def default_catalog() -> Catalog:
    return Catalog.from_env()
