"""
User-configurable settings: AI provider, OCR provider, database.
Settings are stored in ~/.examanalyzer/settings.json (or $EXAMANALYZER_HOME/settings.json)
and read fresh on every request so edits apply without a restart.
"""

import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def get_data_home() -> Path:
    return Path(os.getenv("EXAMANALYZER_HOME") or Path.home() / ".examanalyzer")


def get_settings_file() -> Path:
    return get_data_home() / "settings.json"


DEFAULT_SETTINGS = {
    # AI Settings
    "ai_provider": "openai",  # "openai" | "azure" | "anthropic" | "google" | "custom"
    "ai_api_key": "",
    "ai_model": "",
    "custom_endpoint": "",
    "custom_model": "",
    "azure_openai_endpoint": "",
    "azure_openai_deployment": "",
    "azure_openai_api_version": "",
    # OCR Settings
    "ocr_provider": "azure",  # "azure" | "google" | "custom"
    "azure_ocr_endpoint": "",
    "azure_ocr_key": "",
    "google_vision_key": "",
    "custom_ocr_endpoint": "",
    "custom_ocr_key": "",
    # Database settings
    "database_url": "",
    "enable_history": True,
}

SECRET_KEYS = ("ai_api_key", "azure_ocr_key", "google_vision_key", "custom_ocr_key")


def load_settings() -> dict:
    """Load settings from JSON file, return defaults if not found."""
    settings_file = get_settings_file()
    if not settings_file.exists():
        return DEFAULT_SETTINGS.copy()

    try:
        with open(settings_file, "r") as f:
            saved = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning("[WARN] Unreadable settings file %s (%s), using defaults", settings_file, e)
        return DEFAULT_SETTINGS.copy()

    # Merge with defaults to handle new fields
    result = DEFAULT_SETTINGS.copy()
    result.update(saved)
    return result


def save_settings(settings: dict) -> None:
    """Save settings to JSON file. IOError propagates to the caller."""
    settings_file = get_settings_file()
    settings_file.parent.mkdir(parents=True, exist_ok=True)
    with open(settings_file, "w") as f:
        json.dump(settings, f, indent=2)


def mask_secret(value: str) -> str:
    """Show first 7 and last 4 chars of long keys, *** otherwise."""
    if len(value) > 12:
        return value[:7] + "..." + value[-4:]
    return "***"
