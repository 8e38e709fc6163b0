from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from database import Base
import config


def _utcnow():
    return datetime.now(timezone.utc)


# ------------------------------------------------------------------
# User Model
# ------------------------------------------------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    name = Column(String(120))
    email = Column(String(255), index=True)
    role = Column(String(20), default=config.ROLE_INTERN)  # INTERN / ADMIN / SUPER_ADMIN

    created_at = Column(DateTime, default=_utcnow)

    # Relationships
    applications = relationship("Application", back_populates="user")
    submissions = relationship("Submission", back_populates="user")
    deadline_adjustments = relationship("DeadlineAdjustment", back_populates="user")


# ------------------------------------------------------------------
# LearningPath Model (ordered curriculum of Tasks)
# ------------------------------------------------------------------

class LearningPath(Base):
    __tablename__ = "learning_paths"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)

    created_at = Column(DateTime, default=_utcnow)

    # Ties on `order` fall back to insertion order (id)
    tasks = relationship(
        "Task",
        back_populates="learning_path",
        order_by="[Task.order, Task.id]",
        cascade="all, delete-orphan",
    )
    internships = relationship("Internship", back_populates="learning_path")


# ------------------------------------------------------------------
# Task Model
# ------------------------------------------------------------------

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    learning_path_id = Column(Integer, ForeignKey("learning_paths.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    content = Column(JSON, nullable=True)  # free-form payload rendered by the UI

    order = Column(Integer, nullable=False, default=1)
    deadline_offset = Column(Integer, nullable=False, default=7)  # days from internship start

    created_at = Column(DateTime, default=_utcnow)

    # Relationships
    learning_path = relationship("LearningPath", back_populates="tasks")
    submissions = relationship("Submission", back_populates="task")
    deadline_adjustments = relationship(
        "DeadlineAdjustment",
        back_populates="task",
        cascade="all, delete-orphan",
    )


# ------------------------------------------------------------------
# Internship Model
# ------------------------------------------------------------------

class Internship(Base):
    __tablename__ = "internships"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    capacity = Column(Integer, nullable=True)

    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    learning_path_id = Column(Integer, ForeignKey("learning_paths.id"), nullable=True)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    learning_path = relationship("LearningPath", back_populates="internships")
    applications = relationship(
        "Application",
        back_populates="internship",
        cascade="all, delete-orphan",
    )


# ------------------------------------------------------------------
# Application Model (User applies to Internship)
# ------------------------------------------------------------------

class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("user_id", "internship_id", name="uq_application_user_internship"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    internship_id = Column(Integer, ForeignKey("internships.id"), nullable=False, index=True)
    status = Column(String(20), default=config.APPLICATION_PENDING)  # PENDING / ACCEPTED / REJECTED

    feedback = Column(Text, nullable=True)
    applied_at = Column(DateTime, default=_utcnow)
    reviewed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="applications")
    internship = relationship("Internship", back_populates="applications")


# ------------------------------------------------------------------
# Submission Model (one live submission per user and task)
# ------------------------------------------------------------------

class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="uq_submission_user_task"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)

    github_url = Column(String(500), nullable=True)
    status = Column(String(20), default=config.SUBMISSION_PENDING)  # PENDING / APPROVED / REJECTED / REQUIRES_CHANGES

    feedback = Column(Text, nullable=True)
    admin_comment = Column(Text, nullable=True)
    submitted_at = Column(DateTime, default=_utcnow)
    reviewed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="submissions")
    task = relationship("Task", back_populates="submissions")


# ------------------------------------------------------------------
# DeadlineAdjustment Model (per-intern override of Task.deadline_offset)
# ------------------------------------------------------------------

class DeadlineAdjustment(Base):
    __tablename__ = "deadline_adjustments"
    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="uq_deadline_adjustment_user_task"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)

    new_deadline_offset = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    adjusted_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="deadline_adjustments")
    task = relationship("Task", back_populates="deadline_adjustments")
