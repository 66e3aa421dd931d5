from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, DateTime, Float,
    UniqueConstraint, Index, JSON,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
import enum

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ReviewStatus(str, enum.Enum):
    in_review = "in_review"
    changes_requested = "changes_requested"
    approved = "approved"


class VersionStatus(str, enum.Enum):
    active = "active"
    superseded = "superseded"
    approved = "approved"
    changes_requested = "changes_requested"


class ActionType(str, enum.Enum):
    approve = "approve"
    request_changes = "request-changes"


class Policy(str, enum.Enum):
    soft = "soft"
    strict = "strict"


# ---------------------------
# USER MODEL
# ---------------------------
class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, index=True, nullable=False)
    username = Column(String, index=True)
    hashed_password = Column(String(1024), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_superuser = Column(Boolean, default=False, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)


# ---------------------------
# PROJECTS / TASKS (owned by the outer CRUD layer)
# ---------------------------
class Project(Base):
    __tablename__ = "project"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    review_limit = Column(Integer, nullable=True, default=3)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    reviews = relationship("Review", back_populates="project")


class Task(Base):
    __tablename__ = "task"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("project.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, default="todo", nullable=False)      # todo|in_progress|done
    priority = Column(String, default="medium", nullable=False)  # low|medium|high
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# ---------------------------
# REVIEW CONTAINER
# ---------------------------
class Review(Base):
    __tablename__ = "review"
    __table_args__ = (
        UniqueConstraint("project_id", "title", name="uq_review_project_title"),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("project.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String, nullable=False)
    status = Column(
        SAEnum(ReviewStatus, name="review_status", values_callable=_enum_values),
        default=ReviewStatus.in_review,
        nullable=False,
    )
    policy = Column(
        SAEnum(Policy, name="review_policy", values_callable=_enum_values),
        default=Policy.soft,
        nullable=False,
    )
    review_limit = Column(Integer, nullable=True)  # NULL = unlimited
    revisions_used = Column(Integer, default=0, nullable=False)
    unread_count = Column(Integer, default=0, nullable=False)
    current_version_id = Column(
        Integer,
        ForeignKey("review_version.id", ondelete="SET NULL", use_alter=True, name="fk_review_current_version"),
        nullable=True,
    )
    token = Column(String(64), unique=True, index=True, nullable=False)
    is_token_active = Column(Boolean, default=True, nullable=False)
    pin_code = Column(String(32), nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="reviews")
    versions = relationship(
        "ReviewVersion",
        back_populates="review",
        foreign_keys="ReviewVersion.review_id",
        order_by="ReviewVersion.version_number.desc()",
    )


class ReviewVersion(Base):
    __tablename__ = "review_version"
    __table_args__ = (
        UniqueConstraint("review_id", "version_number", name="uq_review_version_number"),
        Index("ix_review_version_retention", "file_deleted", "retention_expires_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("review.id", ondelete="CASCADE"), index=True, nullable=False)
    project_id = Column(Integer, ForeignKey("project.id", ondelete="CASCADE"), index=True, nullable=False)
    version_number = Column(Integer, nullable=False)
    file_url = Column(String, nullable=False)
    file_path = Column(String, nullable=False)  # relative to STORAGE_ROOT
    original_filename = Column(String, nullable=True)
    token = Column(String(64), unique=True, index=True, nullable=False)
    is_token_active = Column(Boolean, default=True, nullable=False)
    status = Column(
        SAEnum(VersionStatus, name="review_version_status", values_callable=_enum_values),
        default=VersionStatus.active,
        nullable=False,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    original_size_bytes = Column(Integer, nullable=True)
    compressed_size_bytes = Column(Integer, nullable=True)
    compression_ratio = Column(Float, nullable=True)
    retention_expires_at = Column(DateTime(timezone=True), nullable=True)
    file_deleted = Column(Boolean, default=False, nullable=False)
    file_deleted_at = Column(DateTime(timezone=True), nullable=True)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    review = relationship("Review", back_populates="versions", foreign_keys=[review_id])


class ReviewAction(Base):
    """Append-only audit row for every approve / request-changes event."""
    __tablename__ = "review_action"

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("review.id", ondelete="CASCADE"), index=True, nullable=False)
    version_id = Column(Integer, ForeignKey("review_version.id", ondelete="CASCADE"), index=True, nullable=False)
    action_type = Column(
        SAEnum(ActionType, name="review_action_type", values_callable=_enum_values),
        nullable=False,
    )
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class ReviewComment(Base):
    __tablename__ = "review_comment"

    id = Column(Integer, primary_key=True, index=True)
    version_id = Column(Integer, ForeignKey("review_version.id", ondelete="CASCADE"), index=True, nullable=False)
    review_id = Column(Integer, ForeignKey("review.id", ondelete="CASCADE"), index=True, nullable=False)
    page_number = Column(Integer, nullable=False, default=1)
    x = Column(Float, nullable=False, default=0.0)
    y = Column(Float, nullable=False, default=0.0)
    width = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    type = Column(String(32), nullable=False, default="comment")  # comment|pin|area|...
    content = Column(Text, nullable=False)
    created_by = Column(String, nullable=True)     # internal author
    author_name = Column(String, nullable=True)    # public author
    author_email = Column(String, nullable=True)
    screenshot_url = Column(String, nullable=True)
    # relation only; a reply never owns its parent
    parent_id = Column(Integer, ForeignKey("review_comment.id", ondelete="SET NULL"), nullable=True, index=True)
    is_resolved = Column(Boolean, default=False, nullable=False)
    resolved_by = Column(String, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ---------------------------
# ACTIVITY / NOTIFICATIONS (delivery happens elsewhere)
# ---------------------------
class ActivityLog(Base):
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    entity_type = Column(String(32), nullable=False)   # e.g. "project"
    entity_id = Column(Integer, nullable=False, index=True)
    action = Column(String(64), nullable=False)        # e.g. "review_version_uploaded"
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Notification(Base):
    __tablename__ = "notification"

    id = Column(Integer, primary_key=True)
    type = Column(String(32), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
