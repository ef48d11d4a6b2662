"""Custom notification sound playback.

Only absolute paths to readable .wav files are played, through the platform's
stock command line player. Playback runs in the background and a second
request while a sound is still playing is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import List, Optional

LOGGER = logging.getLogger(__name__)


def player_command(path: str, platform: str = sys.platform) -> List[str]:
    if platform == "win32":
        escaped = path.replace("'", "''")
        return [
            "powershell",
            "-NoProfile",
            "-Command",
            f"(New-Object Media.SoundPlayer '{escaped}').PlaySync()",
        ]
    if platform == "darwin":
        return ["afplay", path]
    return ["aplay", "-q", path]


def validate_sound_path(path: str) -> Optional[str]:
    """Return the resolved path if it is an absolute, readable .wav file."""

    if not os.path.isabs(path) or os.path.splitext(path)[1].lower() != ".wav":
        LOGGER.warning("Invalid custom sound path: %s", path)
        return None
    resolved = os.path.realpath(path)
    if not os.access(resolved, os.R_OK):
        LOGGER.warning("Custom sound file not found: %s", resolved)
        return None
    return resolved


class CustomSoundPlayer:
    """SoundPlayer that shells out to the platform audio player."""

    def __init__(self, platform: str = sys.platform) -> None:
        self._platform = platform
        self._task: Optional[asyncio.Task] = None

    @property
    def is_playing(self) -> bool:
        return self._task is not None and not self._task.done()

    def play(self, path: str) -> None:
        resolved = validate_sound_path(path)
        if resolved is None:
            return
        if self.is_playing:
            LOGGER.info("Sound already playing, skipping")
            return
        self._task = asyncio.get_running_loop().create_task(self._play(resolved))

    async def _play(self, path: str) -> None:
        command = player_command(path, self._platform)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            try:
                returncode = await process.wait()
            except asyncio.CancelledError:
                process.terminate()
                raise
        except OSError as exc:
            LOGGER.warning("Failed to play custom sound with %s: %s", command[0], exc)
            return
        if returncode != 0:
            LOGGER.warning("Sound player %s exited with %s", command[0], returncode)

    async def aclose(self) -> None:
        """Stop a sound that is still playing."""

        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
