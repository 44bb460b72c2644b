"""
Centralized filesystem paths for runtime data.
"""
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent

# Templates shipped with the repository (read-only defaults)
BUNDLED_TEMPLATES_DIR = PROJECT_ROOT / "default_templates"


def get_data_dir() -> Path:
    """
    Return runtime data directory.

    Priority:
    1. DISCIPLINE_COACH_DATA_DIR env var
    2. <project_root>/data
    """
    raw = os.getenv("DISCIPLINE_COACH_DATA_DIR", "").strip()
    if raw:
        return Path(raw).expanduser()
    return PROJECT_ROOT / "data"


DATA_DIR = get_data_dir()
USER_TEMPLATES_DIR = DATA_DIR / "templates"
AUDIO_DIR = DATA_DIR / "audio"
PREFERENCES_PATH = DATA_DIR / "preferences.yaml"
