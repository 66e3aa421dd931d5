from .schemas import CommentNodeRead, CommentRead, ReviewDetail, ReviewRead, ReviewSummary, VersionBrief
from .services.processor import ArtifactLayout, PdfProcessor

LAYOUT = ArtifactLayout()
PROCESSOR = PdfProcessor(layout=LAYOUT)


def get_processor():
    return PROCESSOR


def get_layout():
    return LAYOUT


def review_summary(review, project_name, current) -> ReviewSummary:
    return ReviewSummary(
        **ReviewRead.model_validate(review).model_dump(),
        project_name=project_name,
        current_status=current.status if current else None,
        version_number=current.version_number if current else None,
        version_token=current.token if current else None,
        has_pin=bool(review.pin_code),
    )


def review_detail(review, project_name, current, versions) -> ReviewDetail:
    summary = review_summary(review, project_name, current)
    return ReviewDetail(
        **summary.model_dump(),
        versions=[VersionBrief.model_validate(v) for v in versions],
    )


def comment_tree(nodes) -> list[CommentNodeRead]:
    return [
        CommentNodeRead(
            **CommentRead.model_validate(node.comment).model_dump(),
            replies=comment_tree(node.replies),
        )
        for node in nodes
    ]


__all__ = ["LAYOUT", "PROCESSOR", "get_processor", "get_layout", "review_summary", "review_detail", "comment_tree"]
