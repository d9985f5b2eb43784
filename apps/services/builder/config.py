"""
Builder Configuration Module

Centralizes path constants for the builder service. Remote URLs, TTLs and
provider settings live in libs/core/config.py.
"""

import logging
import pathlib

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from libs.core.config import get_settings  # noqa: E402

logger = logging.getLogger("uvicorn.error")

settings = get_settings()

# =============================================================================
# Path Constants
# =============================================================================

DATA_DIR = pathlib.Path(settings.data_dir)
PUBLIC_DIR = pathlib.Path(settings.public_dir)

SCHEMAS_DIR = PUBLIC_DIR / "schemas"
PINEUI_DIR = PUBLIC_DIR / "pineui"
INDEX_HTML = PUBLIC_DIR / "index.html"

MANIFEST_FILE = DATA_DIR / "projects.json"
PROMPT_FILE = DATA_DIR / "PROMPT.md"
DESIGN_FILE = DATA_DIR / "DESIGN.md"


def ensure_dirs() -> None:
    """Create data/public directories and an empty manifest."""
    for d in (SCHEMAS_DIR, PINEUI_DIR, DATA_DIR):
        d.mkdir(parents=True, exist_ok=True)
    if not MANIFEST_FILE.exists():
        MANIFEST_FILE.write_text("[]", encoding="utf-8")


ensure_dirs()


def read_design_guide() -> str:
    """Read the optional local design guide (empty when absent)."""
    try:
        if DESIGN_FILE.exists():
            return DESIGN_FILE.read_text(encoding="utf-8")
    except OSError as err:
        logger.warning(f"[Config] Failed to read {DESIGN_FILE}: {err}")
    return ""
