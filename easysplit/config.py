# easysplit/config.py
import os
import sys
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv
from loguru import logger

ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "application/pdf")
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    try:
        return float(raw) if raw else default
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


@dataclass
class Settings:
    api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model_name: str = DEFAULT_GEMINI_MODEL
    max_upload_size_mb: float = 10
    compress_target_size_mb: float = 2
    allowed_content_types: Tuple[str, ...] = field(default=ALLOWED_CONTENT_TYPES)
    prompt_missing_tax: bool = True
    prompt_missing_tip: bool = True
    log_level: str = "INFO"

    @property
    def max_upload_size_bytes(self) -> int:
        return int(self.max_upload_size_mb * 1024 * 1024)

    @property
    def compress_target_size_bytes(self) -> int:
        return int(self.compress_target_size_mb * 1024 * 1024)


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """Read settings from the environment, after loading a .env file if there is one.

    Variables already set in the environment win over the .env file.
    """
    load_dotenv(dotenv_path)
    return Settings(
        api_key=os.getenv("API_KEY") or None,
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        gemini_model_name=os.environ.get("GEMINI_MODEL_NAME", DEFAULT_GEMINI_MODEL),
        max_upload_size_mb=_env_float("MAX_UPLOAD_SIZE_MB", 10),
        compress_target_size_mb=_env_float("COMPRESS_TARGET_SIZE_MB", 2),
        prompt_missing_tax=_env_bool("PROMPT_MISSING_TAX", True),
        prompt_missing_tip=_env_bool("PROMPT_MISSING_TIP", True),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )


def get_gemini_config(settings: Settings) -> Tuple[str, str]:
    if not settings.gemini_api_key:
        raise ValueError("GEMINI_API_KEY environment variable not set. This key is required for genai.Client().")
    return settings.gemini_api_key, settings.gemini_model_name


def configure_logging(level: str = "INFO") -> None:
    """Send loguru output to stderr at the given level, replacing the default sink."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
