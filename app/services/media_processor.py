# app/services/media_processor.py
"""
Media Processor
Turns an uploaded video into a silent, left-half-cropped video plus an mp3 audio track
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from app.core.config import Settings
from app.core.exceptions import MediaProcessingError

logger = logging.getLogger(__name__)


@dataclass
class ProcessedMedia:
    video_path: str
    audio_path: str

    @property
    def paths(self) -> List[str]:
        return [self.video_path, self.audio_path]


class MediaProcessor:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.temp_dir = Path(settings.MEDIA_TEMP_DIR)

    async def process(self, content: bytes, filename: Optional[str] = None) -> ProcessedMedia:
        """
        Args:
            content: raw uploaded video bytes
            filename: original name, only used for logging

        Returns:
            ProcessedMedia with the final video (no audio) and audio paths

        Raises:
            MediaProcessingError: any ffmpeg step failed or timed out; every file
                created by this call has been removed
        """
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        stem = f"{int(asyncio.get_running_loop().time() * 1000)}-{uuid.uuid4().hex[:8]}"
        original = self.temp_dir / f"{stem}-original.mp4"
        cropped = self.temp_dir / f"{stem}-cropped.mp4"
        audio = self.temp_dir / f"{stem}-audio.mp3"
        final_video = self.temp_dir / f"{stem}-video.mp4"

        intermediates = [original, cropped]
        outputs = [audio, final_video]

        logger.info(f"Processing video {filename or stem} ({len(content)} bytes)")
        try:
            await asyncio.to_thread(original.write_bytes, content)

            # crop the left half of the frame
            await self._run_ffmpeg(
                ["-i", str(original), "-vf", "crop=iw/2:ih:0:0", "-c:a", "copy", str(cropped)],
                timeout=self.settings.VIDEO_CROP_TIMEOUT_SECONDS,
                step="crop",
            )
            await self._run_ffmpeg(
                ["-i", str(cropped), "-vn", "-acodec", "libmp3lame", "-q:a", "2", str(audio)],
                timeout=self.settings.AUDIO_EXTRACT_TIMEOUT_SECONDS,
                step="extract audio",
            )
            await self._run_ffmpeg(
                ["-i", str(cropped), "-c:v", "copy", "-an", str(final_video)],
                timeout=self.settings.VIDEO_CROP_TIMEOUT_SECONDS,
                step="remove audio",
            )
        except BaseException:
            self.cleanup([*intermediates, *outputs])
            raise

        self.cleanup(intermediates)
        logger.info(f"Video processed: {final_video.name}, {audio.name}")
        return ProcessedMedia(video_path=str(final_video), audio_path=str(audio))

    async def _run_ffmpeg(self, args: List[str], *, timeout: float, step: str) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.settings.FFMPEG_BINARY, "-y", "-loglevel", "error", *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MediaProcessingError(f"ffmpeg could not be started ({step}): {e}") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise MediaProcessingError(f"ffmpeg {step} timed out after {timeout}s") from e

        if proc.returncode != 0:
            detail = (stderr or b"").decode("utf-8", errors="replace").strip()[-500:]
            raise MediaProcessingError(f"ffmpeg {step} failed (exit {proc.returncode}): {detail}")

    def cleanup(self, paths: Iterable[Optional[os.PathLike | str]]) -> None:
        """Remove files; missing files and OS errors are only logged."""
        for path in paths:
            if not path:
                continue
            try:
                Path(path).unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove temp file {path}: {e}")
