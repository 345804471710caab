"""Audio format conversion through an external ffmpeg binary.

The storage core never depends on this module. Conversion is a blocking
call with a narrow contract: (input path, target format) -> output path,
or a ConversionUnavailableError / ConversionError. Converted files land in
a scratch directory outside the managed roots and are removed by the
caller through ``cleanup`` once sent.
"""
import logging
import os
import shutil
import subprocess
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from vinyl_vault.errors import ConversionError, ConversionUnavailableError, ValidationError
from vinyl_vault.files.naming import random_hex

logger = logging.getLogger(__name__)


class AudioFormat(str, Enum):
    WAV = "wav"
    AIFF = "aiff"
    FLAC = "flac"
    ALAC = "alac"
    MP3 = "mp3"
    OPUS = "opus"

    @property
    def extension(self) -> str:
        # ALAC lives in an MP4 container.
        return "m4a" if self is AudioFormat.ALAC else self.value


_CODEC_ARGS = {
    AudioFormat.AIFF: ["-acodec", "pcm_s16be", "-f", "aiff"],
    AudioFormat.WAV: ["-acodec", "pcm_s16le", "-f", "wav"],
    AudioFormat.FLAC: ["-acodec", "flac", "-compression_level", "5"],
    AudioFormat.ALAC: ["-acodec", "alac", "-f", "mp4"],
    AudioFormat.MP3: ["-acodec", "libmp3lame", "-b:a", "320k", "-ar", "44100"],
    AudioFormat.OPUS: ["-acodec", "libopus", "-b:a", "192k", "-vbr", "on"],
}


def parse_format(value: str) -> AudioFormat:
    try:
        return AudioFormat(value.lower().lstrip("."))
    except ValueError:
        allowed = ", ".join(f.value for f in AudioFormat)
        raise ValidationError("format", f"unsupported format: {value} (allowed: {allowed})") from None


class ConversionService:
    """Runs ffmpeg to transcode a file into ``temp_dir``."""

    def __init__(
        self,
        temp_dir: Union[str, Path],
        ffmpeg_binary: str = "ffmpeg",
        timeout_seconds: int = 600,
    ) -> None:
        self._temp_dir = Path(temp_dir).absolute()
        self._ffmpeg = ffmpeg_binary
        self._timeout = timeout_seconds

    @property
    def temp_dir(self) -> Path:
        return self._temp_dir

    def supported_formats(self) -> List[AudioFormat]:
        return list(AudioFormat)

    def _ffmpeg_path(self) -> Optional[str]:
        return shutil.which(self._ffmpeg)

    def is_available(self) -> bool:
        return self._ffmpeg_path() is not None

    def build_args(self, input_path: Path, output_path: Path, fmt: AudioFormat) -> List[str]:
        return ["-i", str(input_path), "-y", *_CODEC_ARGS[fmt], str(output_path)]

    def convert(self, input_path: Union[str, Path], target_format: Union[str, AudioFormat]) -> Path:
        """Transcode ``input_path`` into ``target_format``.

        Returns:
            Path of the converted file inside ``temp_dir``.

        Raises:
            ValidationError: Unknown target format.
            ConversionUnavailableError: ffmpeg is not installed.
            ConversionError: ffmpeg failed, timed out or wrote nothing.
        """
        fmt = target_format if isinstance(target_format, AudioFormat) else parse_format(target_format)
        ffmpeg = self._ffmpeg_path()
        if ffmpeg is None:
            logger.warning("ffmpeg not found (binary=%s); conversion unavailable", self._ffmpeg)
            raise ConversionUnavailableError(
                "ffmpeg not found in system PATH. Install ffmpeg to enable audio conversion"
            )

        input_path = Path(input_path)
        if not input_path.is_file():
            raise ConversionError(f"input file does not exist: {input_path}")

        try:
            self._temp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConversionError(f"failed to create temp directory: {exc}") from exc

        # Random part keeps concurrent conversions of the same track apart.
        output_path = self._temp_dir / f"{input_path.stem}_{random_hex(8)}_converted.{fmt.extension}"
        cmd = [ffmpeg, *self.build_args(input_path, output_path, fmt)]
        logger.info("Converting %s to %s", input_path.name, fmt.value)

        try:
            subprocess.run(
                cmd,
                capture_output=True,
                check=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.CalledProcessError as exc:
            logger.error("ffmpeg conversion failed for %s: %s", input_path, exc.stderr)
            self.cleanup(output_path)
            raise ConversionError(f"ffmpeg conversion failed: {exc.stderr}") from exc
        except subprocess.TimeoutExpired as exc:
            logger.error("ffmpeg timed out after %ss for %s", self._timeout, input_path)
            self.cleanup(output_path)
            raise ConversionError("ffmpeg conversion timed out") from exc
        except OSError as exc:
            raise ConversionUnavailableError(f"failed to run ffmpeg: {exc}") from exc

        if not output_path.is_file():
            raise ConversionError("conversion failed: output file not created")
        return output_path

    def cleanup(self, path: Union[str, Path, None]) -> None:
        """Remove a converted file. Refuses anything outside ``temp_dir``."""
        if not path:
            return
        candidate = Path(os.path.abspath(path))
        if self._temp_dir not in candidate.parents:
            raise ConversionError("refusing to delete file outside temp directory")
        try:
            candidate.unlink(missing_ok=True)
        except OSError as exc:
            raise ConversionError(f"failed to cleanup temp file: {exc}") from exc
