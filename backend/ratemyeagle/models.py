"""SQLAlchemy models – professors, their ratings, and the student forum."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, comparable across Postgres and SQLite."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Professor(Base):
    __tablename__ = "professors"

    id = Column(String(36), primary_key=True, default=_new_id)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    title = Column(String(128), nullable=False)
    department = Column(String(128), nullable=False)
    email = Column(String(256))
    office_location = Column(String(256))
    courses = Column(Text)
    bio = Column(Text)
    created_by = Column(String(64))
    created_at = Column(DateTime, default=utcnow, nullable=False)

    ratings = relationship("ProfessorRating", back_populates="professor", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_professors_department", "department"),
        Index("ix_professors_created_at", "created_at"),
    )


class ProfessorRating(Base):
    __tablename__ = "professor_ratings"

    id = Column(String(36), primary_key=True, default=_new_id)
    professor_id = Column(String(36), ForeignKey("professors.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=False)
    course_code = Column(String(32), nullable=False)
    is_online = Column(Boolean, nullable=False, default=False)
    rating = Column(Integer, nullable=False)          # 1-5
    difficulty = Column(Integer, nullable=False)      # 1-5
    would_take_again = Column(Boolean, nullable=False)
    for_credit = Column(Boolean)
    used_textbooks = Column(Boolean)
    attendance_mandatory = Column(Boolean)
    grade = Column(String(32))
    tags = Column(JSON, nullable=False, default=list)
    review = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    professor = relationship("Professor", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("professor_id", "user_id", name="uq_rating_professor_user"),
        Index("ix_ratings_user", "user_id"),
    )


class ForumMessage(Base):
    """Chat line in the student forum; expires after the retention window."""
    __tablename__ = "forum_messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False)
    username = Column(String(256), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_forum_messages_created", "created_at"),
    )
