from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import Policy, ReviewStatus, VersionStatus


# =========================
# VERSION SCHEMAS
# =========================
class VersionBrief(BaseModel):
    id: int
    version_number: int
    status: VersionStatus
    token: str
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class VersionRead(VersionBrief):
    review_id: int
    project_id: int
    file_url: str
    original_filename: Optional[str] = None
    is_token_active: bool
    original_size_bytes: Optional[int] = None
    compressed_size_bytes: Optional[int] = None
    compression_ratio: Optional[float] = None
    retention_expires_at: Optional[datetime] = None
    file_deleted: bool = False
    last_accessed_at: Optional[datetime] = None
    created_by: Optional[str] = None


# =========================
# REVIEW (CONTAINER) SCHEMAS
# =========================
class ReviewRead(BaseModel):
    id: int
    project_id: int
    title: str
    status: ReviewStatus
    policy: Policy
    review_limit: Optional[int] = None
    revisions_used: int
    unread_count: int
    current_version_id: Optional[int] = None
    token: str
    is_token_active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReviewSummary(ReviewRead):
    project_name: Optional[str] = None
    current_status: Optional[VersionStatus] = None
    version_number: Optional[int] = None
    version_token: Optional[str] = None
    has_pin: bool = False


class ReviewDetail(ReviewSummary):
    versions: List[VersionBrief] = []


class UploadResponse(BaseModel):
    review_id: int
    version_id: int
    version_number: int
    ratio: float
    over_budget: bool = False
    warning: Optional[str] = None


# =========================
# ACTION SCHEMAS
# =========================
class ActionRequest(BaseModel):
    action: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    version_id: Optional[int] = Field(default=None, alias="versionId")

    model_config = ConfigDict(populate_by_name=True)


class PublicActorRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class ActionResponse(BaseModel):
    status: VersionStatus
    review_status: ReviewStatus
    revisions_used: int
    over_budget: bool = False
    warning: Optional[str] = None


# =========================
# PUBLIC TOKEN VIEWS
# =========================
class TokenViewRead(BaseModel):
    container_id: int
    version_id: int
    project_name: Optional[str] = None
    is_current: bool
    requires_pin: bool
    review: ReviewRead
    version: VersionRead
    all_versions: List[VersionBrief] = []


class VersionViewRead(BaseModel):
    review_id: int
    project_id: int
    project_name: Optional[str] = None
    title: str
    is_current: bool
    version: VersionRead


class PinRequest(BaseModel):
    pin_code: Optional[str] = None


class PinCheckRequest(BaseModel):
    pin: Optional[str] = None


class TokenStateRequest(BaseModel):
    active: bool


# =========================
# COMMENT SCHEMAS
# =========================
class CommentBase(BaseModel):
    page_number: int = 1
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = None
    height: Optional[float] = None
    type: str = "comment"
    content: str = ""
    parent_id: Optional[int] = None


class CommentCreate(CommentBase):
    created_by: Optional[str] = None
    screenshot: Optional[str] = None


class PublicCommentCreate(CommentBase):
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    screenshot: Optional[str] = None


class CommentUpdate(BaseModel):
    content: Optional[str] = None
    is_resolved: Optional[bool] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None


class ResolveRequest(BaseModel):
    resolved_by: Optional[str] = None


class CommentRead(CommentBase):
    id: int
    version_id: int
    review_id: int
    created_by: Optional[str] = None
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    screenshot_url: Optional[str] = None
    is_resolved: bool = False
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CommentNodeRead(CommentRead):
    replies: List["CommentNodeRead"] = []


class ConvertTaskResponse(BaseModel):
    task_id: int
    comment_id: int
    title: str


class ReviewInfo(BaseModel):
    review_id: int
    project_name: Optional[str] = None
    title: str
    version: Optional[int] = None
    status: ReviewStatus
    revisions_used: int
    review_limit: Optional[int] = None
    created_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None


class ReviewExport(BaseModel):
    review_info: ReviewInfo
    feedback: List[CommentNodeRead] = []


class VersionInfo(BaseModel):
    version_id: int
    review_id: int
    project_name: Optional[str] = None
    title: str
    version_number: int
    status: VersionStatus
    original_filename: Optional[str] = None
    created_at: Optional[datetime] = None


class VersionExport(BaseModel):
    version_info: VersionInfo
    comments: List[CommentRead] = []


class PurgeResponse(BaseModel):
    purged: List[int] = []
    missing_files: int = 0


CommentNodeRead.model_rebuild()
