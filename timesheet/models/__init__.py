from timesheet.models.assignment import Assignment
from timesheet.models.project import Project
from timesheet.models.task import Task
from timesheet.models.time_entry import TimeEntry
from timesheet.models.user import User

__all__ = [
    "Assignment",
    "Project",
    "Task",
    "TimeEntry",
    "User",
]
