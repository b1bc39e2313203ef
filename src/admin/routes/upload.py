"""Admin route for presigned S3 image uploads: POST /api/s3-presign.

Flow:
  1. Admin UI calls POST /api/s3-presign with {id, kind}.
  2. Lambda returns a presigned POST (url + form fields) scoped to one object key.
  3. Browser uploads the JPEG directly to S3 (Lambda never sees image bytes).
  4. Admin UI PATCHes the returned publicUrl onto the venue via /api/venues-update.
"""

from fastapi import APIRouter, Depends

from shared.auth import require_admin
from shared.config import Settings, get_settings
from shared.models import UploadGrant, UploadGrantRequest, json_body
from shared.s3 import grant_upload

router = APIRouter()


@router.post("/api/s3-presign")
def presign_upload(
    _: dict = Depends(require_admin),
    req: UploadGrantRequest = Depends(json_body(UploadGrantRequest)),
    settings: Settings = Depends(get_settings),
):
    upload = UploadGrant(**grant_upload(req.id, req.kind, settings))
    return {"ok": True, "upload": upload.model_dump()}
