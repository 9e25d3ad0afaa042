"""Transports carrying unary and streaming storage RPCs."""

from blobstream.transport.base import ReadStream, Transport, WriteStream
from blobstream.transport.memory import InMemoryTransport

__all__ = ["InMemoryTransport", "ReadStream", "Transport", "WriteStream"]
