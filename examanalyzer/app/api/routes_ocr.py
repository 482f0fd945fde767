"""
OCR API Routes - transcribe a photographed handwritten answer.
"""

import logging

import requests
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from examanalyzer.app.core.ai.providers import MissingCredentialsError
from examanalyzer.app.core.ocr import OCRError, get_ocr_engine
from examanalyzer.app.settings import load_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OCR"])


class HandwritingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field("", alias="imageData")  # base64, data URL prefix optional


@router.post("/ocr/handwriting")
def ocr_handwriting(payload: HandwritingRequest):
    if not payload.image_data.strip():
        raise HTTPException(status_code=400, detail="Image data is required")

    try:
        engine = get_ocr_engine(load_settings())
    except (MissingCredentialsError, OCRError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        text = engine.read_page(payload.image_data)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid image data")
    except (OCRError, requests.RequestException) as e:
        logger.error("[ERROR] Handwriting OCR failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    logger.info("[OK] Handwriting OCR extracted %s characters", len(text))
    return {"text": text}
