"""Split payloads into frames and stream them to an InsertObject call."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import replace

from blobstream.checksums import crc32c
from blobstream.const import CHUNK_SIZE_QUANTUM, MAX_WRITE_REQUEST_SIZE
from blobstream.exceptions import OutOfRangeError, RpcError
from blobstream.models import Chunk
from blobstream.sampled_logger import make_frame_logger
from blobstream.transport.base import WriteStream
from blobstream.wire import ChecksummedData, WriteObjectRequest, WriteObjectResponse

logger = logging.getLogger(__name__)

_log_frame = make_frame_logger(
    "Transfer #%d frame: key=%s offset=%d size=%d final=%s", target_logger=logger
)


def chunk_budget() -> int:
    """Return the payload size allowed in one frame.

    The message ceiling also covers checksums and the object spec, so one
    quantum is held back as headroom.
    """
    return MAX_WRITE_REQUEST_SIZE - CHUNK_SIZE_QUANTUM


def iter_chunks(
    payload: bytes, budget: int, start_offset: int = 0
) -> Iterator[Chunk]:
    """Yield ``payload[start_offset:]`` as consecutive chunks.

    At least one chunk is produced, so an empty payload yields a single empty
    chunk marked ``is_last``.

    Args:
        payload: Complete object content.
        budget: Maximum content size of a chunk.
        start_offset: Absolute offset of the first chunk.

    Raises:
        ValueError: If ``budget`` is not positive.
        OutOfRangeError: If ``start_offset`` is outside the payload.
    """
    if budget <= 0:
        raise ValueError(f"budget must be a positive integer, got {budget}")
    size = len(payload)
    if start_offset < 0 or start_offset > size:
        raise OutOfRangeError(
            f"Start offset {start_offset} outside payload of {size} bytes"
        )

    view = memoryview(payload)
    offset = start_offset
    while True:
        n = min(size - offset, budget)
        content = bytes(view[offset : offset + n])
        yield Chunk(
            content=content,
            offset=offset,
            crc32c=crc32c(content),
            is_last=offset + n >= size,
        )
        offset += n
        if offset >= size:
            return


async def write_chunks(
    stream: WriteStream,
    chunks: Iterable[Chunk],
    first_frame: WriteObjectRequest,
    *,
    finalize: bool,
    operation: str,
    transfer_key: str,
) -> WriteObjectResponse:
    """Send chunks over ``stream`` in order and return the call's response.

    ``first_frame`` supplies the fields sent once per stream (object spec or
    upload id, whole-object checksums) plus the common parameters repeated on
    every frame. The last chunk sets ``finish_write`` and the transport's last
    message flag when ``finalize`` is true; neither is set otherwise.

    The loop stops at the first rejected write and reports the call status.
    Nothing is retried here.

    Raises:
        RpcError: The call status, annotated with ``operation``.
    """
    template = first_frame
    completed = False
    try:
        for chunk in chunks:
            is_last = finalize and chunk.is_last
            frame = replace(
                template,
                write_offset=chunk.offset,
                checksummed_data=ChecksummedData(
                    content=chunk.content, crc32c=chunk.crc32c
                ),
                finish_write=is_last,
            )
            _log_frame(
                transfer_key,
                template is first_frame,
                chunk.is_last,
                transfer_key,
                chunk.offset,
                len(chunk.content),
                is_last,
            )
            if not await stream.write(frame, is_last=is_last):
                logger.warning(
                    "%s: transport rejected frame at offset %d for %s",
                    operation,
                    chunk.offset,
                    transfer_key,
                )
                break
            template = replace(
                template,
                insert_object_spec=None,
                upload_id=None,
                object_checksums=None,
            )

        response = await stream.finish()
        completed = True
        return response
    except RpcError as e:
        completed = True
        await stream.cancel()
        raise e.annotate(operation)
    finally:
        _log_frame.discard(transfer_key)
        if not completed:
            # Cancelled or failed outside the transport; abandon the call.
            await stream.cancel()
