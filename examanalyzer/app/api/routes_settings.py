"""
Settings API Routes - AI provider, OCR provider and database configuration.
Settings are stored in ~/.examanalyzer/settings.json
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from examanalyzer.app.db.database import (
    get_database_url,
    init_database,
    reset_engine,
    check_connection,
)
from examanalyzer.app.settings import SECRET_KEYS, load_settings, mask_secret, save_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Settings"])


class SettingsModel(BaseModel):
    ai_provider: Optional[str] = None
    ai_api_key: Optional[str] = None
    ai_model: Optional[str] = None
    custom_endpoint: Optional[str] = None
    custom_model: Optional[str] = None
    azure_openai_endpoint: Optional[str] = None
    azure_openai_deployment: Optional[str] = None
    azure_openai_api_version: Optional[str] = None
    # OCR Settings
    ocr_provider: Optional[str] = None
    azure_ocr_endpoint: Optional[str] = None
    azure_ocr_key: Optional[str] = None
    google_vision_key: Optional[str] = None
    custom_ocr_endpoint: Optional[str] = None
    custom_ocr_key: Optional[str] = None
    # Database settings
    database_url: Optional[str] = None
    enable_history: Optional[bool] = None


def masked_settings(settings: dict) -> dict:
    masked = settings.copy()
    for key in SECRET_KEYS:
        masked[key + "_set"] = bool(masked.get(key))
        if masked.get(key):
            masked[key] = mask_secret(masked[key])
    return masked


@router.get("/settings")
def get_settings():
    """Current settings with API keys masked."""
    return masked_settings(load_settings())


@router.put("/settings")
def update_settings(payload: SettingsModel):
    """
    Update application settings.
    Only fields present in the request are changed.
    """
    current = load_settings()
    previous_url = current.get("database_url", "")

    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            current[key] = value

    try:
        save_settings(current)
    except IOError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save settings: {e}")

    if current.get("database_url", "") != previous_url:
        logger.info("[OK] Database URL changed, reinitializing engine")
        reset_engine()
        init_database()

    return {
        "success": True,
        "message": "Settings saved successfully",
        "settings": masked_settings(current),
    }


@router.get("/database/status")
def get_database_status():
    """Current database type and connection check."""
    settings = load_settings()
    return {
        "database_url_configured": bool(settings.get("database_url")),
        "using_default_sqlite": get_database_url().startswith("sqlite"),
        "connection": check_connection(),
        "enable_history": settings.get("enable_history", True),
    }


@router.post("/database/test")
def test_database_connection(database_url: str = ""):
    """Test a database URL before saving it; defaults to the current one."""
    return check_connection(database_url.strip() or get_database_url())
