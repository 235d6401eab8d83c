"""
NoteForge Backend - Image Upload Routes
========================================

POST /api/uploads         multipart `file` → {url}   (session required)
GET  /api/uploads/{path}  the stored image

Uploaded images are what the editor inserts on drop and paste.
"""

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import FileResponse

from noteforge.dependencies import get_file_service, require_session
from noteforge.schemas.content import ErrorResponse, UploadResponse
from noteforge.services.file_service import FileService, FileServiceUploader
from noteforge.services.session_gate import UserSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/uploads", tags=["Uploads"])


@router.post(
    "",
    status_code=201,
    response_model=UploadResponse,
    responses={
        400: {"description": "Invalid file type or size", "model": ErrorResponse},
        401: {"description": "No valid session", "model": ErrorResponse},
        500: {"description": "Storage failure", "model": ErrorResponse},
    },
    summary="Upload an image for the editor",
)
async def upload_image(
    request: Request,
    file: UploadFile = File(..., description="PNG, JPEG, GIF or WebP image"),
    file_service: FileService = Depends(get_file_service),
    session: UserSession = Depends(require_session),
) -> UploadResponse:
    content = await file.read()
    declared = request.headers.get("content-length")
    file_service.validate_size(int(declared) if declared and declared.isdigit() else None, len(content))
    uploader = FileServiceUploader(file_service)
    url = await uploader.upload(content, file.filename, file.content_type or "")
    logger.info("User %s uploaded %s", session.user_id, url)
    return UploadResponse(url=url)


@router.get(
    "/{file_path:path}",
    response_class=FileResponse,
    responses={
        400: {"description": "Invalid path", "model": ErrorResponse},
        404: {"description": "No such upload", "model": ErrorResponse},
    },
    summary="Serve an uploaded image",
)
async def serve_upload(
    file_path: str,
    file_service: FileService = Depends(get_file_service),
) -> FileResponse:
    full_path = file_service.resolve_stored_path(file_path)
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
