"""Project configuration loaded from JSON files under ``config/``.

- config/settings.json: pipeline tunables (see `Settings`)
- config/dependencies.json: external tool paths (tesseract)

Missing files fall back to built-in defaults.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

import pytesseract

from .errors import ConfigurationError
from .logger import get_logger

logger = get_logger(__name__)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
CONFIG_DIR = os.path.join(PROJECT_ROOT, "config")
SETTINGS_PATH = os.path.join(CONFIG_DIR, "settings.json")
DEPENDENCIES_PATH = os.path.join(CONFIG_DIR, "dependencies.json")


@dataclass(frozen=True)
class Settings:
    max_image_dimension: int = 2000
    max_concurrent_translations: int = 10
    cache_size: int = 1000
    default_ocr_language: str = "en"
    ocr_mode: str = "raw"
    tesseract_psm: int = 3
    pivot_language: Optional[str] = None
    request_timeout: Optional[float] = 60.0
    log_level: str = "INFO"
    log_json: bool = False


def _resolve_path(base: str, relative: str) -> str:
    return os.path.abspath(os.path.join(base, relative))


def _read_json(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a JSON object in {path}")
    return data


def load_settings(path: str = SETTINGS_PATH) -> Settings:
    """Load `Settings` from JSON, keeping defaults for absent keys."""
    if not os.path.exists(path):
        return Settings()

    data = _read_json(path)
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("unknown settings ignored", keys=unknown, path=path)

    settings = replace(Settings(), **{k: v for k, v in data.items() if k in known})
    if settings.ocr_mode not in ("raw", "auto"):
        raise ConfigurationError(f"ocr_mode must be 'raw' or 'auto', got {settings.ocr_mode!r}")
    if settings.max_image_dimension <= 0:
        raise ConfigurationError("max_image_dimension must be positive")
    if settings.max_concurrent_translations <= 0:
        raise ConfigurationError("max_concurrent_translations must be positive")
    return settings


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def configure_dependencies(path: str = DEPENDENCIES_PATH) -> Optional[str]:
    """Point pytesseract at the executable from config/dependencies.json.

    Returns the configured tesseract path, or None when the default on PATH is used.
    """
    if not os.path.exists(path):
        logger.debug("dependencies.json not found, using tesseract from PATH", path=path)
        return None

    deps = _read_json(path)
    tess_rel = deps.get("tesseract_path")
    if not tess_rel:
        return None

    tess_abs = _resolve_path(PROJECT_ROOT, tess_rel)
    if not os.path.exists(tess_abs):
        logger.warning("tesseract path from config does not exist", path=tess_abs)
        return None

    pytesseract.pytesseract.tesseract_cmd = tess_abs
    logger.info("tesseract configured", path=tess_abs)
    return tess_abs
