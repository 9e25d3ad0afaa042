"""Streaming object downloads."""

from blobstream.download.range_translator import translate_read_range
from blobstream.download.read_source import ObjectReadSource

__all__ = ["ObjectReadSource", "translate_read_range"]
