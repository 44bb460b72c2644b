"""
Audio Library for Discipline Coach.

Maps event kinds to installed audio files ('<audio_key>.<ext>') and imports
audio bundles from zip archives. Missing assets are a LookupMiss: callers
fall back to the system sound instead of failing.
"""
import zipfile
from pathlib import Path, PurePosixPath
from typing import List, Optional

from core.exceptions import AudioAssetMissing
from core.logger import get_logger
from core.models import EventKind
from core.paths import AUDIO_DIR

logger = get_logger("audio_library")

# 按优先级查找
SUPPORTED_EXTENSIONS = (".flac", ".mp3", ".wav", ".ogg")

KNOWN_AUDIO_KEYS = frozenset(kind.audio_key for kind in EventKind)


class AudioLibrary:
    """Audio assets stored in a flat directory."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory or AUDIO_DIR)

    def find(self, audio_key: str) -> Optional[Path]:
        for extension in SUPPORTED_EXTENSIONS:
            candidate = self.directory / f"{audio_key}{extension}"
            if candidate.is_file():
                return candidate
        return None

    def require(self, audio_key: str) -> Path:
        path = self.find(audio_key)
        if path is None:
            raise AudioAssetMissing(audio_key)
        return path

    def has_audio_for(self, kind: EventKind) -> bool:
        return self.find(kind.audio_key) is not None

    def missing_kinds(self) -> List[EventKind]:
        return [kind for kind in EventKind if not self.has_audio_for(kind)]

    def import_zip(self, archive: Path) -> int:
        """
        Extract supported audio files named after a known audio key.

        Directory structure inside the archive is ignored; other entries are
        skipped. Returns the number of files imported.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        imported = 0
        with zipfile.ZipFile(archive) as bundle:
            for info in bundle.infolist():
                if info.is_dir():
                    continue
                filename = PurePosixPath(info.filename).name
                if not _is_valid_audio_filename(filename):
                    logger.debug("Skipping %s from %s", info.filename, archive)
                    continue
                (self.directory / filename).write_bytes(bundle.read(info))
                imported += 1
        logger.info("Imported %d audio files from %s", imported, archive)
        return imported

    def clear(self) -> int:
        if not self.directory.is_dir():
            return 0
        removed = 0
        for path in self.directory.iterdir():
            if path.is_file():
                path.unlink()
                removed += 1
        return removed


def _is_valid_audio_filename(filename: str) -> bool:
    path = PurePosixPath(filename)
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        return False
    return path.stem in KNOWN_AUDIO_KEYS
