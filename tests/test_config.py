import pytest

from core.config_manager import SystemConfig, get_config
from core.exceptions import ConfigError
from core.models import Context


def test_defaults_without_runtime_file(tmp_path):
    cfg = get_config(tmp_path / "missing.yaml")
    assert cfg.CHECK_INTERVAL_SECONDS == 30.0
    assert cfg.TRIGGER_RETENTION_MINUTES == 60
    assert cfg.CONTEXT_VOLUME_OVERRIDES == {}


def test_runtime_yaml_overrides_known_keys(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text(
        "CHECK_INTERVAL_SECONDS: 10\nUNKNOWN_KEY: 1\nCONTEXT_VOLUME_OVERRIDES:\n  gym: 0.2\n",
        encoding="utf-8",
    )
    cfg = get_config(path)
    assert cfg.CHECK_INTERVAL_SECONDS == 10
    assert not hasattr(cfg, "UNKNOWN_KEY")
    assert cfg.context_volume(Context.GYM) == 0.2
    assert cfg.context_volume(Context.HOME) == 1.0


def test_invalid_runtime_yaml_raises_config_error(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        get_config(path)
    assert str(path) in excinfo.value.get_user_message()


def test_context_volume_falls_back_to_context_default():
    assert SystemConfig().context_volume(Context.LIBRARY) == 0.0
