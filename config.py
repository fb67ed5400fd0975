from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


def load_dotenv(path: str = ".env") -> None:
    if not os.path.exists(path):
        return

    try:
        with open(path, "r", encoding="utf-8") as env_file:
            for raw_line in env_file:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue

                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip("'").strip('"')
                if key:
                    os.environ.setdefault(key, value)
    except OSError:
        logger.exception("Failed to read %s", path)


load_dotenv()

API_BASE_URL = os.environ.get("LPMS_API_URL", "http://127.0.0.1:8000").rstrip("/")
API_TOKEN = os.environ.get("LPMS_API_TOKEN", "")
API_TIMEOUT_SECONDS = float(os.environ.get("LPMS_API_TIMEOUT_SECONDS", "5"))

DEFAULT_THEME = os.environ.get("LPMS_DEFAULT_THEME", "dark")
THEME_STORAGE_KEY = os.environ.get("LPMS_THEME_STORAGE_KEY", "vite-ui-theme")

CORS_ALLOWED_ORIGINS = {
    origin.strip()
    for origin in os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if origin.strip()
}
