"""review baseline

Revision ID: 3f9c2a7d41e0
Revises: 
Create Date: 2026-10-18 09:12:40.114205

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9c2a7d41e0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REVIEW_STATUS = ("in_review", "changes_requested", "approved")
VERSION_STATUS = ("active", "superseded", "approved", "changes_requested")
ACTION_TYPE = ("approve", "request-changes")
POLICY = ("soft", "strict")


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("hashed_password", sa.String(length=1024), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_superuser", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_username", "user", ["username"])

    op.create_table(
        "project",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("review_limit", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "task",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("priority", sa.String(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_task_project_id", "task", ["project_id"])

    op.create_table(
        "review",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("status", sa.Enum(*REVIEW_STATUS, name="review_status"), nullable=False),
        sa.Column("policy", sa.Enum(*POLICY, name="review_policy"), nullable=False),
        sa.Column("review_limit", sa.Integer(), nullable=True),
        sa.Column("revisions_used", sa.Integer(), nullable=False),
        sa.Column("unread_count", sa.Integer(), nullable=False),
        sa.Column("current_version_id", sa.Integer(), nullable=True),
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("is_token_active", sa.Boolean(), nullable=False),
        sa.Column("pin_code", sa.String(length=32), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("project_id", "title", name="uq_review_project_title"),
    )
    op.create_index("ix_review_project_id", "review", ["project_id"])
    op.create_index("ix_review_token", "review", ["token"], unique=True)

    op.create_table(
        "review_version",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("review_id", sa.Integer(), sa.ForeignKey("review.id", ondelete="CASCADE"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("file_url", sa.String(), nullable=False),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("original_filename", sa.String(), nullable=True),
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("is_token_active", sa.Boolean(), nullable=False),
        sa.Column("status", sa.Enum(*VERSION_STATUS, name="review_version_status"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("original_size_bytes", sa.Integer(), nullable=True),
        sa.Column("compressed_size_bytes", sa.Integer(), nullable=True),
        sa.Column("compression_ratio", sa.Float(), nullable=True),
        sa.Column("retention_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("file_deleted", sa.Boolean(), nullable=False),
        sa.Column("file_deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("review_id", "version_number", name="uq_review_version_number"),
    )
    op.create_index("ix_review_version_review_id", "review_version", ["review_id"])
    op.create_index("ix_review_version_project_id", "review_version", ["project_id"])
    op.create_index("ix_review_version_token", "review_version", ["token"], unique=True)
    op.create_index("ix_review_version_retention", "review_version", ["file_deleted", "retention_expires_at"])

    # review <-> review_version is circular; close the loop once both exist
    op.create_foreign_key(
        "fk_review_current_version", "review", "review_version",
        ["current_version_id"], ["id"], ondelete="SET NULL",
    )

    op.create_table(
        "review_action",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("review_id", sa.Integer(), sa.ForeignKey("review.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version_id", sa.Integer(), sa.ForeignKey("review_version.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action_type", sa.Enum(*ACTION_TYPE, name="review_action_type"), nullable=False),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_review_action_review_id", "review_action", ["review_id"])
    op.create_index("ix_review_action_version_id", "review_action", ["version_id"])

    op.create_table(
        "review_comment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("version_id", sa.Integer(), sa.ForeignKey("review_version.id", ondelete="CASCADE"), nullable=False),
        sa.Column("review_id", sa.Integer(), sa.ForeignKey("review.id", ondelete="CASCADE"), nullable=False),
        sa.Column("page_number", sa.Integer(), nullable=False),
        sa.Column("x", sa.Float(), nullable=False),
        sa.Column("y", sa.Float(), nullable=False),
        sa.Column("width", sa.Float(), nullable=True),
        sa.Column("height", sa.Float(), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("author_name", sa.String(), nullable=True),
        sa.Column("author_email", sa.String(), nullable=True),
        sa.Column("screenshot_url", sa.String(), nullable=True),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("review_comment.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=False),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_review_comment_version_id", "review_comment", ["version_id"])
    op.create_index("ix_review_comment_review_id", "review_comment", ["review_id"])
    op.create_index("ix_review_comment_parent_id", "review_comment", ["parent_id"])

    op.create_table(
        "activity_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_activity_log_entity_id", "activity_log", ["entity_id"])

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("notification")
    op.drop_table("activity_log")
    op.drop_table("review_comment")
    op.drop_table("review_action")
    op.drop_constraint("fk_review_current_version", "review", type_="foreignkey")
    op.drop_table("review_version")
    op.drop_table("review")
    op.drop_table("task")
    op.drop_table("project")
    op.drop_table("user")
    for name in ("review_action_type", "review_version_status", "review_policy", "review_status"):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
