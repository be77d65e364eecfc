from __future__ import annotations

from fastapi import APIRouter

from ..infrastructure.storage.images import presign_image_upload, validate_image_file
from ..responses import success
from ..schemas import PresignedUrlRequest, parse_body

router = APIRouter(tags=["uploads"])


@router.post("/uploads/presigned-url")
def create_presigned_url(body: dict):
    req = parse_body(PresignedUrlRequest, body)
    validate_image_file(req.fileName, req.fileType, req.fileSize)
    return success(presign_image_upload(req.fileName, req.fileType, item_id=req.itemId))
