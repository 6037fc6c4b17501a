"""
Inkling: OCR Route Handler
==========================

What:  POST /api/ocr, the only endpoint that does real work.

Request Flow:
    1. Client sends multipart/form-data with a single `image` file
    2. Missing field → 400 {"error": "No image provided"}
    3. TranscriptionService validates, calls the engine, stamps the result
    4. 200 {"success": true, "text": ..., "timestamp": ...}

The field is declared optional so a missing part reaches our own 400 body
instead of FastAPI's generic 422.
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, UploadFile

from inkling.exceptions import ValidationError
from inkling.schemas.ocr import ErrorResponse, OCRResponse
from inkling.services.transcription_service import transcription_service
from inkling.services.upload_service import NO_IMAGE_MESSAGE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["OCR"])


@router.post(
    "/ocr",
    response_model=OCRResponse,
    responses={
        200: {"description": "Image transcribed", "model": OCRResponse},
        400: {"description": "No image, or not an image", "model": ErrorResponse},
        413: {"description": "Image larger than the upload limit", "model": ErrorResponse},
        500: {"description": "Transcription engine failed", "model": ErrorResponse},
    },
    summary="Transcribe the text in an image",
)
async def transcribe_image(
    image: Optional[UploadFile] = File(
        default=None,
        description="Photo or scan of handwritten/printed notes (image/*, max 50 MiB)",
    ),
) -> OCRResponse:
    if image is None:
        raise ValidationError(message=NO_IMAGE_MESSAGE, field="image")

    try:
        content = await image.read()
        logger.info(
            "Received OCR request: filename=%s, type=%s, size=%d bytes",
            image.filename or "unknown",
            image.content_type,
            len(content),
        )
        return await transcription_service.transcribe_upload(
            content_type=image.content_type,
            content=content,
            content_length=image.size,
        )
    finally:
        await image.close()
