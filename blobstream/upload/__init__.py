"""Simple and resumable object uploads."""

from blobstream.upload.chunker import chunk_budget, iter_chunks, write_chunks
from blobstream.upload.resumable_session import ResumableUploadSession

__all__ = ["ResumableUploadSession", "chunk_budget", "iter_chunks", "write_chunks"]
