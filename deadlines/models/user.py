"""
User model - rows mirrored from the identity provider
"""
from sqlalchemy import Column, String, DateTime

from deadlines.database import Base
from deadlines.models.base import utc_now


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
