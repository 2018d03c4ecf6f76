"""Configuration for flythrough capture runs, read from environment variables."""

import os
from pathlib import Path
from typing import Optional

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Environment
ENV = os.getenv("ENV", "development")
DEBUG = os.getenv("DEBUG", "False").lower() == "true"

# Paths
LOGS_DIR = Path(os.getenv("LOGS_DIR", PROJECT_ROOT / "logs"))

# Capture settings
# Seconds to wait after a view change before reading pixels back.
SETTLE_DELAY = float(os.getenv("FLYTHROUGH_SETTLE_DELAY", "0.1"))
# Upper bound when the display reports render completion itself.
RENDER_TIMEOUT = float(os.getenv("FLYTHROUGH_RENDER_TIMEOUT", "5.0"))
DEFAULT_FPS = int(os.getenv("FLYTHROUGH_FPS", "24"))
DEFAULT_SECONDS_PER_TRANSITION = float(os.getenv("FLYTHROUGH_SECONDS_PER_TRANSITION", "2.0"))
DEFAULT_USE_EASING = os.getenv("FLYTHROUGH_USE_EASING", "true").lower() == "true"

# Export settings
STILL_EXTENSIONS = {
    ".tif": "TIFF",
    ".tiff": "TIFF",
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".raw": "RAW",
}
MOVIE_EXTENSIONS = (".avi", ".mp4", ".mov", ".mkv", ".webm")
DEFAULT_MOVIE_EXTENSION = os.getenv("FLYTHROUGH_MOVIE_EXTENSION", ".avi")
MOVIE_CODEC: Optional[str] = os.getenv("FLYTHROUGH_MOVIE_CODEC", None)
_movie_quality = os.getenv("FLYTHROUGH_MOVIE_QUALITY", None)
MOVIE_QUALITY: Optional[float] = float(_movie_quality) if _movie_quality else None
JPEG_QUALITY = int(os.getenv("FLYTHROUGH_JPEG_QUALITY", "85"))

# Logging settings
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "false").lower() == "true"

__all__ = [
    "PROJECT_ROOT",
    "ENV",
    "DEBUG",
    "LOGS_DIR",
    "SETTLE_DELAY",
    "RENDER_TIMEOUT",
    "DEFAULT_FPS",
    "DEFAULT_SECONDS_PER_TRANSITION",
    "DEFAULT_USE_EASING",
    "STILL_EXTENSIONS",
    "MOVIE_EXTENSIONS",
    "DEFAULT_MOVIE_EXTENSION",
    "MOVIE_CODEC",
    "MOVIE_QUALITY",
    "JPEG_QUALITY",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_TO_FILE",
]
