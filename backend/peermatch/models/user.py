"""
User Model - Identity row owned by the auth subsystem

This service only reads users: to resolve the authenticated identity and to
show peer usernames in match and active-user listings.
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from peermatch.database import Base
import uuid


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(320), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    def summary(self) -> dict:
        return {"id": self.id, "username": self.username}
