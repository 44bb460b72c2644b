"""
Audio Player for Discipline Coach.

BaseAudioPlayer is the seam the trigger engine plays alert sounds through.
BellAudioPlayer is the headless implementation: it resolves the asset in the
AudioLibrary, records what is playing, and rings the terminal bell (the
"system sound") when no asset is installed.
"""
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import click

from core.alert_policy import AlertTier
from core.audio_library import AudioLibrary
from core.logger import get_logger

logger = get_logger("audio_player")


class BaseAudioPlayer(ABC):
    """Base class for alert sound output."""

    @abstractmethod
    def play(self, audio_key: str, tier: AlertTier, volume: float) -> None:
        """Start playing the sound for an audio key. Must not block."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop any in-flight playback. Safe to call when idle."""
        pass


class BellAudioPlayer(BaseAudioPlayer):
    """Terminal bell based player."""

    def __init__(self, library: AudioLibrary, ring_bell: bool = True):
        self.library = library
        self.ring_bell = ring_bell
        self._lock = threading.Lock()
        self._current: Optional[Path] = None

    @property
    def current(self) -> Optional[Path]:
        return self._current

    def play(self, audio_key: str, tier: AlertTier, volume: float) -> None:
        self.stop()
        asset = self.library.find(audio_key)
        if asset is None:
            logger.warning("No audio asset for '%s', using system sound", audio_key)
            self._system_sound()
            return

        usage = "alarm" if tier is AlertTier.CRITICAL else "notification"
        with self._lock:
            self._current = asset
        logger.info("Playing %s as %s at volume %.2f", asset.name, usage, volume)
        self._system_sound()

    def stop(self) -> None:
        with self._lock:
            if self._current is not None:
                logger.debug("Stopped %s", self._current.name)
            self._current = None

    def _system_sound(self) -> None:
        if self.ring_bell:
            click.echo("\a", nl=False)
