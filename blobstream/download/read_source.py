"""Pull-based byte source over a GetObjectMedia stream."""

from __future__ import annotations

import logging
from collections.abc import Callable

from blobstream.checksums import crc32c
from blobstream.exceptions import ChecksumMismatchError, StorageError
from blobstream.metadata import object_metadata_from_wire
from blobstream.models import ObjectMetadata
from blobstream.transport.base import ReadStream
from blobstream.wire import GetObjectMediaResponse

logger = logging.getLogger(__name__)


class ObjectReadSource:
    """Expose a server-streaming read as a sequence of buffers.

    The stream is created on the first ``read`` so building a source has no
    side effects. Each call returns the content of exactly one frame; frames
    are never merged or split.
    """

    def __init__(
        self,
        create_stream: Callable[[], ReadStream] | None,
        operation: str = "read_object",
    ) -> None:
        """Initialize the read source.

        Args:
            create_stream: Factory opening the stream. ``None`` builds a
                source that is already at end of data.
            operation: Name reported on errors raised by this source.
        """
        self._create_stream = create_stream
        self._operation = operation
        self._stream: ReadStream | None = None
        self._error: StorageError | None = None
        self._exhausted = create_stream is None
        self.metadata: ObjectMetadata | None = None

    @property
    def is_open(self) -> bool:
        """Whether the underlying stream has been opened and not yet ended."""
        return self._stream is not None and not self._exhausted

    async def read(self) -> bytes | None:
        """Wait for the next frame.

        Returns:
            The frame's content, or None at end of data.

        Raises:
            StorageError: The stream's error. Once raised, every later call
                raises it again.
        """
        if self._error is not None:
            raise self._error
        if self._exhausted:
            return None

        try:
            if self._stream is None:
                self._stream = self._create_stream()  # type: ignore[misc]
            frame = await self._stream.read_next()
        except StorageError as e:
            self._error = e.annotate(self._operation)
            self._exhausted = True
            raise self._error

        if frame is None:
            self._exhausted = True
            return None
        return self._accept(frame)

    def _accept(self, frame: GetObjectMediaResponse) -> bytes:
        if frame.metadata is not None and self.metadata is None:
            self.metadata = object_metadata_from_wire(frame.metadata)
        data = frame.checksummed_data
        if data.crc32c is not None and crc32c(data.content) != data.crc32c:
            self._error = ChecksumMismatchError(
                "Received frame does not match its CRC32C",
                operation=self._operation,
            )
            self._exhausted = True
            logger.warning("%s", self._error)
            raise self._error
        return data.content

    async def close(self) -> None:
        """Stop reading and cancel the stream if it is open."""
        stream, self._stream = self._stream, None
        self._exhausted = True
        if stream is not None:
            await stream.cancel()

    async def __aenter__(self) -> ObjectReadSource:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __aiter__(self) -> ObjectReadSource:
        return self

    async def __anext__(self) -> bytes:
        data = await self.read()
        if data is None:
            raise StopAsyncIteration
        return data
