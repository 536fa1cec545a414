# resumedesk/api/v1/uploads.py
"""
Protected upload endpoints.
- POST /upload stores the CV / cover letter (S3/R2, local disk when storage is degraded)
- POST /uploads/presign hands out a presigned PUT URL for direct uploads
- GET /files/{key} serves a caller's own file
The returned keys are what submissions reference in cvFileUrl / coverLetterFileUrl.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse, RedirectResponse

from resumedesk.api.v1.auth import get_current_user
from resumedesk.api.v1.schemas import PresignIn, PresignOut, UploadOut
from resumedesk.core import errors
from resumedesk.core.config import settings
from resumedesk.db.models import User
from resumedesk.services import storage

router = APIRouter()

PRESIGN_EXPIRES = 15 * 60  # 15 minutes


async def _store(file: Optional[UploadFile], user: User) -> Optional[str]:
    if file is None or not file.filename:
        return None
    if not storage.is_allowed_upload(file):
        raise errors.ValidationError(f"Unsupported file type: {file.filename}")
    if file.size is not None and file.size > settings.UPLOAD_MAX_BYTES:
        raise errors.ValidationError(f"File too large: {file.filename}")
    return await storage.store_file(file, user.id)


@router.post("/upload", response_model=UploadOut)
async def upload(
    cv: Optional[UploadFile] = File(None),
    coverLetter: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
):
    if cv is None and coverLetter is None:
        raise errors.ValidationError("No files uploaded")
    return UploadOut(files={"cv": await _store(cv, user), "coverLetter": await _store(coverLetter, user)})


@router.post("/uploads/presign", response_model=PresignOut)
async def presign(req: PresignIn, user: User = Depends(get_current_user)):
    key = storage.build_key(user.id, req.filename)
    upload_url = await storage.async_generate_presigned_put_url(key, req.content_type, expires_in=PRESIGN_EXPIRES)
    if not upload_url:
        raise errors.ServiceUnavailable("Object storage is not configured")
    return PresignOut(upload_url=upload_url, storage_key=key, expires_in=PRESIGN_EXPIRES)


@router.get("/files/{key:path}")
async def get_file(key: str, user: User = Depends(get_current_user)):
    if not storage.key_belongs_to(key, user.id):
        raise errors.NotFound("File not found")
    url = storage.generate_presigned_url(key)
    if url:
        return RedirectResponse(url)
    path = storage.local_path_for(key)
    if path is None:
        raise errors.NotFound("File not found")
    return FileResponse(path)


@router.get("/storage/status")
def storage_status():
    return storage.storage_status()
