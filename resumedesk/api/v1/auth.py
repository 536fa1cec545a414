# resumedesk/api/v1/auth.py
from fastapi import APIRouter, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from resumedesk.api.v1.schemas import UserOut
from resumedesk.core import errors
from resumedesk.core.security import decode_access_token
from resumedesk.db.models import User
from resumedesk.db.session import get_db
from resumedesk.repositories.users import upsert_user

router = APIRouter()

# auto_error=False so a missing header becomes our 401, not FastAPI's 403
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Verify the provider token and refresh the local user mirror.
    The mirror is upserted on every authenticated request. Declared sync so
    FastAPI runs the upsert in its threadpool.
    """
    if credentials is None or not credentials.credentials:
        raise errors.Unauthenticated()
    claims = decode_access_token(credentials.credentials)
    return upsert_user(
        db,
        claims.sub,
        email=claims.email,
        first_name=claims.first_name,
        last_name=claims.last_name,
        profile_image_url=claims.avatar_url,
    )


@router.get("/auth/user", response_model=UserOut)
def read_current_user(user: User = Depends(get_current_user)):
    return user


@router.get("/auth/health")
async def auth_health():
    return {"status": "ok", "provider": "supabase"}
