"""External audio transcoding (ffmpeg)."""
from .service import AudioFormat, ConversionService, parse_format

__all__ = ["AudioFormat", "ConversionService", "parse_format"]
