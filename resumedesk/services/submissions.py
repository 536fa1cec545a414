# resumedesk/services/submissions.py
"""
Submission intake.

Creates resume-service requests. File references are opaque object-store keys
or URLs produced by the upload step; this module never sees file bytes.
Status moves forward only, NEW -> IN_PROGRESS -> QA -> DELIVERED.
"""
from typing import List, Optional, Union
from urllib.parse import urlparse
import logging

from sqlalchemy.orm import Session

from resumedesk.core import errors
from resumedesk.core.config import settings
from resumedesk.db.models import Language, OrderStatus, Submission, SubmissionStatus, SUBMISSION_PIPELINE
from resumedesk.repositories import orders as orders_repo
from resumedesk.repositories import submissions as submissions_repo

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _check_linked_order(db: Session, user_id: str, order_id: str) -> None:
    order = orders_repo.get_order(db, order_id)
    if order is None or order.user_id != user_id:
        raise errors.ValidationError("Order not found")
    if settings.REQUIRE_PAID_ORDER_FOR_SUBMISSION and order.status != OrderStatus.PAID:
        raise errors.ValidationError("Order has not been paid")


def create_submission(
    db: Session,
    user_id: str,
    role_target: Optional[str],
    language: Union[str, Language] = Language.EN,
    order_id: Optional[str] = None,
    industry: Optional[str] = None,
    job_ad_url: Optional[str] = None,
    job_ad_text: Optional[str] = None,
    notes: Optional[str] = None,
    cv_file_url: Optional[str] = None,
    cover_letter_file_url: Optional[str] = None,
) -> Submission:
    role_target = _clean(role_target)
    job_ad_url = _clean(job_ad_url)
    job_ad_text = _clean(job_ad_text)
    order_id = _clean(order_id)

    if not role_target:
        raise errors.ValidationError("Target role is required")
    if not job_ad_url and not job_ad_text:
        raise errors.ValidationError("Either job URL or job description text must be provided")
    if job_ad_url and not _is_http_url(job_ad_url):
        raise errors.ValidationError("Job URL must be a valid http(s) URL")
    try:
        language = Language(getattr(language, "value", language))
    except ValueError as exc:
        raise errors.ValidationError(f"Unsupported language: {language}") from exc

    if order_id:
        _check_linked_order(db, user_id, order_id)

    submission = submissions_repo.insert_submission(
        db,
        user_id=user_id,
        order_id=order_id,
        role_target=role_target,
        industry=_clean(industry),
        language=language,
        job_ad_url=job_ad_url,
        job_ad_text=job_ad_text,
        notes=_clean(notes),
        cv_file_url=_clean(cv_file_url),
        cover_letter_file_url=_clean(cover_letter_file_url),
    )
    logger.info("Submission %s created for user %s (order=%s)", submission.id, user_id, order_id)
    return submission


def get_user_submission(db: Session, submission_id: str, user_id: str) -> Submission:
    submission = submissions_repo.get_submission(db, submission_id)
    # never reveal that another user's submission exists
    if submission is None or submission.user_id != user_id:
        raise errors.SubmissionNotFound()
    return submission


def list_user_submissions(db: Session, user_id: str) -> List[Submission]:
    return submissions_repo.list_submissions_for_user(db, user_id)


def advance_submission_status(db: Session, submission_id: str, new_status: Union[str, SubmissionStatus]) -> Submission:
    """Move a submission to a later fulfillment stage. Used by the fulfillment process."""
    try:
        new_status = SubmissionStatus(getattr(new_status, "value", new_status))
    except ValueError as exc:
        raise errors.ValidationError(f"Unknown submission status: {new_status}") from exc

    earlier = SUBMISSION_PIPELINE[:SUBMISSION_PIPELINE.index(new_status)]
    if not submissions_repo.advance_status(db, submission_id, new_status, earlier):
        submission = submissions_repo.get_submission(db, submission_id)
        if submission is None:
            raise errors.SubmissionNotFound()
        db.refresh(submission)
        raise errors.ValidationError(
            f"Cannot move submission from {submission.status.value} to {new_status.value}"
        )
    submission = submissions_repo.get_submission(db, submission_id)
    db.refresh(submission)
    logger.info("Submission %s moved to %s", submission_id, new_status.value)
    return submission
