import logging
import math

import pytest

from blobstream.checksums import crc32c
from blobstream.const import CHUNK_SIZE_QUANTUM, MAX_WRITE_REQUEST_SIZE
from blobstream.exceptions import OutOfRangeError, RpcError, StatusCode
from blobstream.transport.base import WriteStream
from blobstream.upload import chunker
from blobstream.upload.chunker import chunk_budget, iter_chunks, write_chunks
from blobstream.wire import (
    InsertObjectSpec,
    ObjectChecksums,
    WireObject,
    WriteObjectRequest,
    WriteObjectResponse,
)


class RecordingStream(WriteStream):
    """Write stream that records frames and accepts a fixed number of them."""

    def __init__(self, accept: int | None = None, error: RpcError | None = None):
        self.frames: list[WriteObjectRequest] = []
        self.last_flags: list[bool] = []
        self.accept = accept
        self.error = error
        self.cancelled = False
        self.finished = False

    async def write(self, frame, *, is_last=False):
        if self.accept is not None and len(self.frames) >= self.accept:
            return False
        self.frames.append(frame)
        self.last_flags.append(is_last)
        return True

    async def finish(self):
        self.finished = True
        if self.error is not None:
            raise self.error
        size = sum(len(f.checksummed_data.content) for f in self.frames)
        return WriteObjectResponse(committed_size=size)

    async def cancel(self):
        self.cancelled = True


def _first_frame() -> WriteObjectRequest:
    return WriteObjectRequest(
        insert_object_spec=InsertObjectSpec(resource=WireObject("b", "o")),
        object_checksums=ObjectChecksums(crc32c=1, md5_hash=b"x"),
    )


def test_chunk_budget_leaves_one_quantum_of_headroom():
    assert chunk_budget() == MAX_WRITE_REQUEST_SIZE - CHUNK_SIZE_QUANTUM
    assert chunk_budget() % CHUNK_SIZE_QUANTUM == 0


@pytest.mark.parametrize("size", [0, 1, 9, 10, 11, 30, 31])
def test_iter_chunks_covers_payload_exactly_once(size):
    """Chunks are contiguous, ordered and reassemble the payload."""
    budget = 10
    payload = bytes(i % 251 for i in range(size))

    chunks = list(iter_chunks(payload, budget))

    assert len(chunks) == math.ceil(max(size, 1) / budget)
    assert b"".join(c.content for c in chunks) == payload
    expected_offset = 0
    for chunk in chunks:
        assert chunk.offset == expected_offset
        assert len(chunk.content) <= budget
        assert chunk.crc32c == crc32c(chunk.content)
        expected_offset += len(chunk.content)
    assert [c.is_last for c in chunks] == [False] * (len(chunks) - 1) + [True]


def test_iter_chunks_empty_payload_yields_single_terminal_chunk():
    chunks = list(iter_chunks(b"", 10))

    assert len(chunks) == 1
    assert chunks[0].content == b""
    assert chunks[0].offset == 0
    assert chunks[0].is_last


def test_iter_chunks_starts_at_offset():
    """Bytes below the start offset are never produced."""
    payload = bytes(range(25))

    chunks = list(iter_chunks(payload, 10, start_offset=12))

    assert [c.offset for c in chunks] == [12, 22]
    assert b"".join(c.content for c in chunks) == payload[12:]


def test_iter_chunks_start_at_end_yields_empty_terminal_chunk():
    chunks = list(iter_chunks(b"abc", 10, start_offset=3))

    assert len(chunks) == 1
    assert chunks[0].content == b""
    assert chunks[0].offset == 3
    assert chunks[0].is_last


def test_iter_chunks_is_lazy():
    chunks = iter_chunks(bytes(100), 10)

    first = next(chunks)

    assert first.offset == 0
    assert not first.is_last


@pytest.mark.parametrize("budget", [0, -1])
def test_iter_chunks_rejects_non_positive_budget(budget):
    with pytest.raises(ValueError):
        list(iter_chunks(b"abc", budget))


@pytest.mark.parametrize("start_offset", [-1, 4])
def test_iter_chunks_rejects_offset_outside_payload(start_offset):
    with pytest.raises(OutOfRangeError):
        list(iter_chunks(b"abc", 10, start_offset=start_offset))


class TestWriteChunks:
    """Streaming chunks over a write stream."""

    @pytest.mark.asyncio
    async def test_spec_only_on_first_frame_and_flags_only_on_last(self):
        """The object spec and checksums go once; end-of-data goes last."""
        stream = RecordingStream()

        response = await write_chunks(
            stream,
            iter_chunks(bytes(25), 10),
            _first_frame(),
            finalize=True,
            operation="insert_object_media",
            transfer_key="b/o",
        )

        assert response.committed_size == 25
        assert len(stream.frames) == 3
        first, *rest = stream.frames
        assert first.insert_object_spec is not None
        assert first.object_checksums is not None
        for frame in rest:
            assert frame.insert_object_spec is None
            assert frame.upload_id is None
            assert frame.object_checksums is None
        assert [f.finish_write for f in stream.frames] == [False, False, True]
        assert stream.last_flags == [False, False, True]
        assert [f.write_offset for f in stream.frames] == [0, 10, 20]
        assert not stream.cancelled

    @pytest.mark.asyncio
    async def test_without_finalize_no_frame_ends_the_write(self):
        stream = RecordingStream()

        await write_chunks(
            stream,
            iter_chunks(bytes(25), 10),
            WriteObjectRequest(upload_id="u"),
            finalize=False,
            operation="upload_chunk",
            transfer_key="u",
        )

        assert not any(f.finish_write for f in stream.frames)
        assert not any(stream.last_flags)
        assert stream.frames[0].upload_id == "u"
        assert stream.frames[1].upload_id is None

    @pytest.mark.asyncio
    async def test_rejected_write_stops_loop_and_reports_status(self):
        """A rejected frame ends the loop; the call status is raised."""
        stream = RecordingStream(
            accept=1, error=RpcError("gone", StatusCode.UNAVAILABLE)
        )

        with pytest.raises(RpcError) as exc_info:
            await write_chunks(
                stream,
                iter_chunks(bytes(25), 10),
                _first_frame(),
                finalize=True,
                operation="insert_object_media",
                transfer_key="b/o",
            )

        assert exc_info.value.code == StatusCode.UNAVAILABLE
        assert exc_info.value.operation == "insert_object_media"
        assert len(stream.frames) == 1
        assert stream.finished
        assert stream.cancelled

    @pytest.mark.asyncio
    async def test_failure_outside_transport_cancels_stream(self):
        stream = RecordingStream()

        def exploding_chunks():
            yield from iter_chunks(bytes(10), 10)
            raise RuntimeError("source failed")

        with pytest.raises(RuntimeError):
            await write_chunks(
                stream,
                exploding_chunks(),
                _first_frame(),
                finalize=False,
                operation="upload_chunk",
                transfer_key="u",
            )

        assert stream.cancelled
        assert not stream.finished

    @pytest.mark.asyncio
    async def test_abandoned_transfer_is_forgotten_by_frame_log(self, caplog):
        """A transfer that never sends its last frame leaves no log state."""
        stream = RecordingStream(
            accept=1, error=RpcError("gone", StatusCode.UNAVAILABLE)
        )
        before = chunker._log_frame.active_transfers

        with caplog.at_level(logging.DEBUG, logger="blobstream.upload.chunker"):
            with pytest.raises(RpcError):
                await write_chunks(
                    stream,
                    iter_chunks(bytes(25), 10),
                    _first_frame(),
                    finalize=True,
                    operation="insert_object_media",
                    transfer_key="b/abandoned",
                )

        assert chunker._log_frame.active_transfers == before
