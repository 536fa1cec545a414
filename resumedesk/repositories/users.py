# resumedesk/repositories/users.py

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from resumedesk.core import errors
from resumedesk.db.models import User

_PROFILE_FIELDS = ("email", "first_name", "last_name", "profile_image_url")


def upsert_user(db: Session, user_id: str, **profile) -> User:
    """
    Insert or refresh the local mirror of an identity-provider user.
    Two first requests for the same subject may race on the insert; the loser
    falls back to updating the row the winner created.
    """
    values = {k: v for k, v in profile.items() if k in _PROFILE_FIELDS}
    for attempt in range(2):
        user = db.get(User, user_id)
        if user is None:
            user = User(id=user_id, **values)
            db.add(user)
        else:
            for key, value in values.items():
                setattr(user, key, value)
        try:
            db.commit()
            db.refresh(user)
            return user
        except IntegrityError as exc:
            db.rollback()
            if attempt:
                raise errors.InternalError("Failed to persist user") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise errors.InternalError("Failed to persist user") from exc
    raise errors.InternalError("Failed to persist user")
