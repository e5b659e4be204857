"""
Project model - team-scoped labels that todos can be filed under
"""
from sqlalchemy import Column, Integer, String, DateTime

from deadlines.database import Base
from deadlines.models.base import utc_now


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=False, default="#4f46e5")
    team_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
