"""Subprocess-based audio playback for cue files and synthesized replies."""

import sys
import shlex
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from ..exceptions import PlaybackError

logger = logging.getLogger(__name__)


@dataclass
class CueSet:
    """Paths of the fixed sound cues."""
    startup: Path
    greeting: Path
    end: Path
    sorry: Path

    @classmethod
    def from_directory(cls, resources_dir: Path) -> "CueSet":
        resources_dir = Path(resources_dir)
        return cls(
            startup=resources_dir / "start.wav",
            greeting=resources_dir / "hi.wav",
            end=resources_dir / "end_spot.wav",
            sorry=resources_dir / "sorry.wav",
        )


class AudioPlayer:
    """Plays audio through the platform's command line player.

    Linux uses ``aplay -D <device>``, other platforms use sox's ``play``.
    """

    def __init__(self, speaker_device: str = "default", platform: Optional[str] = None):
        self.speaker_device = speaker_device
        self.platform = platform or sys.platform

    def _file_command(self, path: Path) -> List[str]:
        if self.platform.startswith("linux"):
            return ["aplay", "-D", self.speaker_device, str(path)]
        return ["play", str(path)]

    def _stream_command(self) -> List[str]:
        if self.platform.startswith("linux"):
            return ["aplay", "-D", self.speaker_device, "-t", "wav", "-"]
        return ["play", "-t", "wav", "-"]

    def play_file(self, path: Path) -> None:
        """Play a sound file and wait for it to finish."""
        command = self._file_command(path)
        logger.debug(f"Playing {path}")
        try:
            completed = subprocess.run(command, stdout=subprocess.DEVNULL,
                                       stderr=subprocess.PIPE, check=False)
        except OSError as e:
            raise PlaybackError(f"Could not run {command[0]}: {e}") from e
        if completed.returncode != 0:
            raise PlaybackError(f"{command[0]} exited with {completed.returncode} playing {path}: "
                                f"{completed.stderr.decode(errors='replace').strip()}")

    def play_stream(self, chunks: Iterable[bytes]) -> int:
        """Pipe audio chunks into the player's stdin and wait for playback to end.

        Returns:
            Number of bytes written to the player
        """
        command = self._stream_command()
        try:
            player = subprocess.Popen(command, stdin=subprocess.PIPE,
                                      stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as e:
            raise PlaybackError(f"Could not run {command[0]}: {e}") from e

        written = 0
        try:
            for chunk in chunks:
                player.stdin.write(chunk)
                written += len(chunk)
        except BrokenPipeError as e:
            raise PlaybackError(f"{command[0]} closed its input early") from e
        finally:
            try:
                player.stdin.close()
            except BrokenPipeError:
                logger.debug("Player input already closed")
            player.wait()

        logger.debug(f"Streamed {written} bytes to {command[0]}")
        return written

    def run_setup_commands(self, commands: Iterable[str]) -> None:
        """Run mixer or device setup commands synchronously, logging failures."""
        for command in commands:
            args = shlex.split(command)
            if not args:
                continue
            logger.info(f"Running setup command: {command}")
            try:
                completed = subprocess.run(args, stdout=subprocess.DEVNULL,
                                           stderr=subprocess.PIPE, check=False)
            except OSError as e:
                logger.warning(f"Setup command failed to start: {command}: {e}")
                continue
            if completed.returncode != 0:
                logger.warning(f"Setup command exited with {completed.returncode}: {command}")
