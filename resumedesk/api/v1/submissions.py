# resumedesk/api/v1/submissions.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from resumedesk.api.v1.auth import get_current_user
from resumedesk.api.v1.schemas import SubmissionCreate, SubmissionOut
from resumedesk.db.models import User
from resumedesk.db.session import get_db
from resumedesk.services import submissions as intake

router = APIRouter()


@router.get("/submissions", response_model=List[SubmissionOut])
def list_submissions(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return intake.list_user_submissions(db, user.id)


@router.post("/submissions", response_model=SubmissionOut, status_code=201)
def create_submission(
    payload: SubmissionCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return intake.create_submission(db, user.id, **payload.model_dump())


@router.get("/submissions/{submission_id}", response_model=SubmissionOut)
def get_submission(submission_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return intake.get_user_submission(db, submission_id, user.id)
