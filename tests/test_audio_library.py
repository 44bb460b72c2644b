import zipfile

import pytest

from core.audio_library import AudioLibrary
from core.exceptions import AudioAssetMissing, LookupMiss
from core.models import EventKind


def test_find_prefers_extension_order(tmp_path):
    (tmp_path / "bedtime.wav").write_bytes(b"w")
    (tmp_path / "bedtime.flac").write_bytes(b"f")
    library = AudioLibrary(tmp_path)

    assert library.find("bedtime").name == "bedtime.flac"
    assert library.has_audio_for(EventKind.BEDTIME)
    assert library.find("wake_up") is None


def test_require_raises_lookup_miss(tmp_path):
    with pytest.raises(AudioAssetMissing) as excinfo:
        AudioLibrary(tmp_path).require("no_coffee")
    assert isinstance(excinfo.value, LookupMiss)
    assert excinfo.value.audio_key == "no_coffee"


def test_import_zip_keeps_only_known_audio(tmp_path):
    archive = tmp_path / "bundle.zip"
    with zipfile.ZipFile(archive, "w") as bundle:
        bundle.writestr("sounds/wake_up.mp3", b"1")
        bundle.writestr("no_coffee.ogg", b"2")
        bundle.writestr("readme.txt", b"3")
        bundle.writestr("unknown_key.mp3", b"4")

    library = AudioLibrary(tmp_path / "audio")
    assert library.import_zip(archive) == 2
    assert library.find("wake_up").read_bytes() == b"1"
    assert EventKind.NO_COFFEE not in library.missing_kinds()
    assert EventKind.BEDTIME in library.missing_kinds()

    assert library.clear() == 2
    assert library.find("wake_up") is None
