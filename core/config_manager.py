"""
Configuration Manager for Discipline Coach.

集中管理系统常量和配置参数。
所有经验值必须显式声明并可配置。

使用方式:
    from core.config_manager import config
    interval = config.CHECK_INTERVAL_SECONDS
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from core.exceptions import ConfigError


CONFIG_DIR = Path(__file__).parent.parent / "config"
RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"


@dataclass
class SystemConfig:
    """
    系统运行时常量配置。

    所有值均为经验值，可根据用户实际情况调整。
    调整建议已在注释中说明。
    """

    # === 轮询与触发 ===

    # 轮询间隔（秒）
    # 经验值依据：≤ 30 秒保证分钟级事件不会连续两次被漏掉
    # 调整建议：不要超过 30
    CHECK_INTERVAL_SECONDS: float = 30.0

    # 已触发记录保留时长（分钟）
    # 超过该时长的记录被清理，次日同一事件可再次触发
    TRIGGER_RETENTION_MINUTES: int = 60

    # 首次轮询的补偿窗口（分钟）
    # 经验值依据：只补发刚刚错过的事件，而不是从午夜开始全部补发
    FIRST_POLL_CATCHUP_MINUTES: int = 1

    # === 设备唤醒 ===

    # Critical 事件临时唤醒时长（秒）
    TEMPORARY_WAKE_SECONDS: int = 30

    # 会话期间保持唤醒的上限（小时）
    SESSION_WAKE_HOURS: int = 12

    # === 界面 ===

    # 即将到来事件的展示窗口（分钟）
    UPCOMING_WINDOW_MINUTES: int = 180

    # === 音频 ===

    # 默认全局音量 [0, 1]
    # 调整建议：安静环境可降至 0.5
    DEFAULT_VOLUME: float = 0.7

    # 默认是否启用音频
    DEFAULT_AUDIO_ENABLED: bool = True

    # 按场景覆盖音量系数，如 {"library": 0.1}
    # 未配置的场景使用 Context 自带的默认系数
    CONTEXT_VOLUME_OVERRIDES: dict = None

    def __post_init__(self):
        if self.CONTEXT_VOLUME_OVERRIDES is None:
            self.CONTEXT_VOLUME_OVERRIDES = {}

    def context_volume(self, context) -> float:
        """Return the volume multiplier for a context, honouring overrides."""
        override = self.CONTEXT_VOLUME_OVERRIDES.get(context.identifier)
        if override is None:
            return context.default_volume_multiplier
        return float(override)


def _load_runtime_config(path: Optional[Path] = None) -> dict:
    """加载运行时配置覆盖（如果存在）。"""
    config_path = path or RUNTIME_CONFIG_PATH
    if not config_path.exists():
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        raise ConfigError(f"Cannot read runtime config: {e}", str(config_path)) from e

    if not isinstance(data, dict):
        raise ConfigError("Runtime config must be a mapping", str(config_path))
    return data


def get_config(path: Optional[Path] = None) -> SystemConfig:
    """
    获取系统配置实例。

    优先级：runtime.yaml > 默认值
    """
    base = SystemConfig()
    overrides = _load_runtime_config(path)

    for key, value in overrides.items():
        if hasattr(base, key):
            setattr(base, key, value)

    return base


# 全局配置实例
config = get_config()
