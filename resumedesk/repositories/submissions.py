# resumedesk/repositories/submissions.py
from typing import Optional, List, Sequence
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from resumedesk.core import errors
from resumedesk.db.models import Submission, SubmissionStatus


def _now():
    return datetime.now(timezone.utc)


def insert_submission(db: Session, **fields) -> Submission:
    submission = Submission(status=SubmissionStatus.NEW, **fields)
    db.add(submission)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise errors.InternalError("Failed to persist submission") from exc
    db.refresh(submission)
    return submission


def get_submission(db: Session, submission_id: str) -> Optional[Submission]:
    return db.get(Submission, submission_id)


def list_submissions_for_user(db: Session, user_id: str) -> List[Submission]:
    stmt = select(Submission).where(Submission.user_id == user_id).order_by(Submission.created_at.desc())
    return list(db.execute(stmt).scalars())


def advance_status(
    db: Session,
    submission_id: str,
    new_status: SubmissionStatus,
    allowed_from: Sequence[SubmissionStatus],
) -> bool:
    # set status=? where id=? and status in (earlier stages)
    stmt = (
        update(Submission)
        .where(Submission.id == submission_id, Submission.status.in_(list(allowed_from)))
        .values(status=new_status, updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    try:
        res = db.execute(stmt)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise errors.InternalError("Failed to persist submission") from exc
    return res.rowcount == 1
