"""User model."""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
import uuid

from database import Base


class User(Base):
    """Practice account that owns sessions, responses and jobs."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
