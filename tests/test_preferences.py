import pytest

from core.exceptions import ConfigError
from core.preferences import AudioPreferences, clamp_volume, load_preferences, save_preferences


def test_volume_is_clamped():
    assert clamp_volume(1.7) == 1.0
    assert clamp_volume(-0.2) == 0.0
    assert AudioPreferences(global_volume=3).global_volume == 1.0
    assert AudioPreferences(global_volume=0.5).effective_volume(0.3) == pytest.approx(0.15)


def test_missing_file_returns_defaults(tmp_path):
    prefs = load_preferences(tmp_path / "preferences.yaml")
    assert prefs.audio_enabled is True
    assert prefs.global_volume == pytest.approx(0.7)


def test_save_and_load(tmp_path):
    path = tmp_path / "nested" / "preferences.yaml"
    save_preferences(AudioPreferences(audio_enabled=False, global_volume=0.25), path)

    loaded = load_preferences(path)
    assert loaded == AudioPreferences(audio_enabled=False, global_volume=0.25)


def test_non_numeric_volume_raises_config_error(tmp_path):
    path = tmp_path / "preferences.yaml"
    path.write_text("global_volume: loud\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_preferences(path)
