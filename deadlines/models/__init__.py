from deadlines.models.user import User
from deadlines.models.project import Project
from deadlines.models.todo import Todo

__all__ = [
    "User",
    "Project",
    "Todo",
]
