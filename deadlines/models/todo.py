"""
Todo model - deadlines tracked by a team
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey

from deadlines.database import Base
from deadlines.models.base import utc_now


class Todo(Base):
    __tablename__ = "todos"

    id = Column(Integer, primary_key=True, index=True)
    text = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    due_date = Column(DateTime(timezone=True), nullable=True)

    # Tenant partition key, every query filters on it
    team_id = Column(String, nullable=False, index=True)

    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    assigned_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
