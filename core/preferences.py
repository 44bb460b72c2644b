"""
Persisted audio preferences (global mute switch and volume).
Stored as YAML at data/preferences.yaml.
"""
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import yaml

from core.config_manager import config
from core.exceptions import ConfigError
from core.paths import PREFERENCES_PATH


def clamp_volume(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class AudioPreferences:
    audio_enabled: bool = True
    global_volume: float = 0.7

    def __post_init__(self):
        self.global_volume = clamp_volume(self.global_volume)

    def effective_volume(self, context_multiplier: float) -> float:
        """Global volume scaled by the context multiplier, clamped to [0, 1]."""
        return clamp_volume(self.global_volume * context_multiplier)


def load_preferences(path: Optional[Path] = None) -> AudioPreferences:
    """读取偏好设置；文件不存在时返回配置中的默认值。"""
    prefs_path = path or PREFERENCES_PATH
    defaults = AudioPreferences(
        audio_enabled=config.DEFAULT_AUDIO_ENABLED,
        global_volume=config.DEFAULT_VOLUME,
    )
    if not prefs_path.exists():
        return defaults

    try:
        with open(prefs_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        raise ConfigError(f"Cannot read preferences: {e}", str(prefs_path)) from e

    try:
        volume = float(data.get("global_volume", defaults.global_volume))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"global_volume must be a number: {e}", str(prefs_path)) from e

    return AudioPreferences(
        audio_enabled=bool(data.get("audio_enabled", defaults.audio_enabled)),
        global_volume=volume,
    )


def save_preferences(prefs: AudioPreferences, path: Optional[Path] = None) -> None:
    prefs_path = path or PREFERENCES_PATH
    prefs_path.parent.mkdir(parents=True, exist_ok=True)
    with open(prefs_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(asdict(prefs), f, allow_unicode=True, sort_keys=False)
