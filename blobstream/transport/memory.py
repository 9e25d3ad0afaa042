"""In-process storage service emulator.

``InMemoryTransport`` implements the transport interface against a dict-backed
object store. It enforces the parts of the protocol the client depends on
(contiguous write offsets, per-frame CRC32C, first-frame-only object specs,
``finish_write`` on the last frame of simple uploads, persisted prefixes for
resumable uploads) and supports one-shot fault injection so callers can
exercise failure paths without a network.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field, replace
from typing import Any

from blobstream.checksums import crc32c, md5_hash
from blobstream.config_manager.client_config import TransportConfig
from blobstream.const import (
    MAX_READ_CHUNK_SIZE,
    METHOD_DELETE_OBJECT,
    METHOD_GET_OBJECT_MEDIA,
    METHOD_INSERT_OBJECT,
    METHOD_QUERY_WRITE_STATUS,
    METHOD_START_RESUMABLE_WRITE,
)
from blobstream.exceptions import RpcError, StatusCode
from blobstream.transport.base import ReadStream, Transport, WriteStream
from blobstream.wire import (
    ChecksummedData,
    CommonObjectRequestParams,
    DeleteObjectRequest,
    GetObjectMediaRequest,
    GetObjectMediaResponse,
    InsertObjectSpec,
    ObjectChecksums,
    QueryWriteStatusRequest,
    QueryWriteStatusResponse,
    StartResumableWriteRequest,
    StartResumableWriteResponse,
    WireObject,
    WriteObjectRequest,
    WriteObjectResponse,
)

logger = logging.getLogger(__name__)


@dataclass
class StoredObject:
    resource: WireObject
    data: bytes
    encryption_key_sha256: str = ""


@dataclass
class UploadState:
    """Server side state of a resumable upload."""

    spec: InsertObjectSpec
    encryption: CommonObjectRequestParams | None = None
    data: bytearray = field(default_factory=bytearray)
    complete: bool = False
    resource: WireObject | None = None


@dataclass
class _Fault:
    code: StatusCode
    message: str
    after_frames: int


class InMemoryTransport(Transport):
    """Transport backed by an in-process object store."""

    def __init__(
        self,
        config: TransportConfig | None = None,
        read_chunk_size: int = MAX_READ_CHUNK_SIZE,
    ) -> None:
        """Initialize the emulator.

        Args:
            config: Channel settings; only recorded, nothing is dialed.
            read_chunk_size: Maximum content size of a GetObjectMedia frame.
        """
        super().__init__(
            config or TransportConfig(endpoint="localhost", insecure=True)
        )
        self.read_chunk_size = read_chunk_size
        self.objects: dict[tuple[str, str], StoredObject] = {}
        self.uploads: dict[str, UploadState] = {}
        self.calls: list[tuple[str, Any]] = []
        self._faults: dict[str, deque[_Fault]] = defaultdict(deque)
        self._generation = 0

    def inject_fault(
        self,
        method: str,
        code: StatusCode,
        message: str = "injected fault",
        *,
        after_frames: int = 0,
    ) -> None:
        """Make the next call of ``method`` fail.

        For streaming calls the failure happens once ``after_frames`` frames
        have been exchanged; unary calls fail immediately.
        """
        self._faults[method].append(_Fault(code, message, after_frames))

    def _take_fault(self, method: str) -> _Fault | None:
        faults = self._faults.get(method)
        if faults:
            return faults.popleft()
        return None

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    async def unary(self, method: str, request: Any) -> Any:
        """Dispatch a unary call."""
        self.calls.append((method, request))
        await asyncio.sleep(0)
        fault = self._take_fault(method)
        if fault is not None:
            raise RpcError(fault.message, fault.code)

        if method == METHOD_START_RESUMABLE_WRITE:
            return self._start_resumable_write(request)
        if method == METHOD_QUERY_WRITE_STATUS:
            return self._query_write_status(request)
        if method == METHOD_DELETE_OBJECT:
            return self._delete_object(request)
        raise RpcError(f"{method} is not supported", StatusCode.UNIMPLEMENTED)

    def client_stream(self, method: str) -> WriteStream:
        """Open an InsertObject stream."""
        if method != METHOD_INSERT_OBJECT:
            raise RpcError(f"{method} is not supported", StatusCode.UNIMPLEMENTED)
        return _InMemoryWriteStream(self, self._take_fault(method))

    def server_stream(self, method: str, request: Any) -> ReadStream:
        """Open a GetObjectMedia stream."""
        self.calls.append((method, request))
        if method != METHOD_GET_OBJECT_MEDIA:
            raise RpcError(f"{method} is not supported", StatusCode.UNIMPLEMENTED)
        return _InMemoryReadStream(self, request, self._take_fault(method))

    def _start_resumable_write(
        self, request: StartResumableWriteRequest
    ) -> StartResumableWriteResponse:
        resource = request.insert_object_spec.resource
        if not resource.bucket or not resource.name:
            raise RpcError(
                "bucket and object name are required", StatusCode.INVALID_ARGUMENT
            )
        upload_id = uuid.uuid4().hex
        self.uploads[upload_id] = UploadState(
            spec=request.insert_object_spec,
            encryption=request.common_object_request_params,
        )
        logger.debug(
            "Started upload %s for %s/%s", upload_id, resource.bucket, resource.name
        )
        return StartResumableWriteResponse(upload_id=upload_id)

    def _query_write_status(
        self, request: QueryWriteStatusRequest
    ) -> QueryWriteStatusResponse:
        upload = self.uploads.get(request.upload_id)
        if upload is None:
            raise RpcError(
                f"Unknown upload {request.upload_id!r}", StatusCode.NOT_FOUND
            )
        return QueryWriteStatusResponse(
            committed_size=len(upload.data),
            complete=upload.complete,
            resource=upload.resource,
        )

    def _delete_object(self, request: DeleteObjectRequest) -> None:
        key = (request.bucket, request.object)
        stored = self.objects.get(key)
        if stored is None or (
            request.generation is not None
            and request.generation != stored.resource.generation
        ):
            raise RpcError(
                f"No such object: {request.bucket}/{request.object}",
                StatusCode.NOT_FOUND,
            )
        _check_preconditions(request, stored)
        del self.objects[key]

    def commit_object(
        self,
        spec: InsertObjectSpec,
        data: bytes,
        checksums: ObjectChecksums | None,
        encryption: CommonObjectRequestParams | None,
    ) -> WireObject:
        """Validate and store a finished write, returning the new resource."""
        resource = spec.resource
        key = (resource.bucket, resource.name)
        _check_preconditions(spec, self.objects.get(key))

        expected_crc = checksums.crc32c if checksums else None
        if expected_crc is None:
            expected_crc = resource.crc32c
        actual_crc = crc32c(data)
        if expected_crc is not None and expected_crc != actual_crc:
            raise RpcError("Object CRC32C mismatch", StatusCode.INVALID_ARGUMENT)

        expected_md5 = (checksums.md5_hash if checksums else b"") or resource.md5_hash
        actual_md5 = md5_hash(data)
        if expected_md5 and expected_md5 != actual_md5:
            raise RpcError("Object MD5 mismatch", StatusCode.INVALID_ARGUMENT)

        stored_resource = replace(
            resource,
            generation=self._next_generation(),
            metageneration=1,
            size=len(data),
            crc32c=actual_crc,
            md5_hash=actual_md5,
            metadata=dict(resource.metadata),
        )
        self.objects[key] = StoredObject(
            resource=stored_resource,
            data=bytes(data),
            encryption_key_sha256=(
                encryption.encryption_key_sha256 if encryption else ""
            ),
        )
        return stored_resource


def _check_preconditions(conditions: Any, stored: StoredObject | None) -> None:
    """Evaluate generation preconditions against the live object."""
    generation = stored.resource.generation if stored else 0
    metageneration = stored.resource.metageneration if stored else 0
    failed = False
    if conditions.if_generation_match is not None:
        failed |= conditions.if_generation_match != generation
    if conditions.if_generation_not_match is not None:
        failed |= conditions.if_generation_not_match == generation
    if conditions.if_metageneration_match is not None:
        failed |= (
            stored is None or conditions.if_metageneration_match != metageneration
        )
    if conditions.if_metageneration_not_match is not None:
        failed |= (
            stored is None
            or conditions.if_metageneration_not_match == metageneration
        )
    if failed:
        raise RpcError("Precondition failed", StatusCode.FAILED_PRECONDITION)


class _InMemoryWriteStream(WriteStream):
    """Server side of one InsertObject call."""

    def __init__(self, server: InMemoryTransport, fault: _Fault | None) -> None:
        self._server = server
        self._fault = fault
        self._frames = 0
        self._error: RpcError | None = None
        self._closed = False
        self._finished = False
        self._spec: InsertObjectSpec | None = None
        self._upload: UploadState | None = None
        self._encryption: CommonObjectRequestParams | None = None
        self._checksums: ObjectChecksums | None = None
        self._buffer = bytearray()
        self._next_offset = 0

    def _fail(self, message: str, code: StatusCode) -> bool:
        if self._error is None:
            self._error = RpcError(message, code)
        return False

    async def write(self, frame: WriteObjectRequest, *, is_last: bool = False) -> bool:
        """Receive one frame."""
        self._server.calls.append((METHOD_INSERT_OBJECT, frame))
        await asyncio.sleep(0)
        if self._error is not None or self._closed:
            return self._fail(
                "Write after stream closed", StatusCode.FAILED_PRECONDITION
            )
        if self._fault is not None and self._frames >= self._fault.after_frames:
            return self._fail(self._fault.message, self._fault.code)

        first = self._frames == 0
        self._frames += 1
        has_first_message = (
            frame.insert_object_spec is not None or frame.upload_id is not None
        )
        if first and not has_first_message:
            return self._fail(
                "First frame must name the object or upload",
                StatusCode.INVALID_ARGUMENT,
            )
        if not first and has_first_message:
            return self._fail(
                "Only the first frame may carry the object spec",
                StatusCode.INVALID_ARGUMENT,
            )
        if not first and frame.object_checksums is not None:
            return self._fail(
                "Object checksums are only accepted on the first frame",
                StatusCode.INVALID_ARGUMENT,
            )

        if first:
            self._checksums = frame.object_checksums
            self._encryption = frame.common_object_request_params
            if frame.upload_id is not None:
                upload = self._server.uploads.get(frame.upload_id)
                if upload is None:
                    return self._fail(
                        f"Unknown upload {frame.upload_id!r}", StatusCode.NOT_FOUND
                    )
                if upload.complete:
                    return self._fail(
                        "Upload already finalized", StatusCode.FAILED_PRECONDITION
                    )
                self._upload = upload
                self._spec = upload.spec
                self._encryption = upload.encryption
                self._next_offset = frame.write_offset
                if frame.write_offset > len(upload.data):
                    return self._fail(
                        f"Write offset {frame.write_offset} beyond persisted size "
                        f"{len(upload.data)}",
                        StatusCode.OUT_OF_RANGE,
                    )
            else:
                self._spec = frame.insert_object_spec
                if frame.write_offset != 0:
                    return self._fail(
                        "Simple uploads start at offset 0", StatusCode.INVALID_ARGUMENT
                    )

        if frame.write_offset != self._next_offset:
            return self._fail(
                f"Expected offset {self._next_offset}, got {frame.write_offset}",
                StatusCode.INVALID_ARGUMENT,
            )
        data = frame.checksummed_data
        if data.crc32c is not None and data.crc32c != crc32c(data.content):
            return self._fail("Frame CRC32C mismatch", StatusCode.INVALID_ARGUMENT)

        self._next_offset += len(data.content)
        if self._upload is not None:
            # Bytes below the persisted size were already received.
            skip = max(0, len(self._upload.data) - frame.write_offset)
            self._upload.data.extend(data.content[skip:])
        else:
            self._buffer.extend(data.content)

        if frame.finish_write:
            self._finished = True
        if is_last:
            self._closed = True
        return True

    async def finish(self) -> WriteObjectResponse:
        """Complete the call and return the response."""
        await asyncio.sleep(0)
        self._closed = True
        if self._error is not None:
            raise self._error
        if self._spec is None:
            raise RpcError("No frames were sent", StatusCode.INVALID_ARGUMENT)

        if self._upload is not None:
            if not self._finished:
                return WriteObjectResponse(committed_size=len(self._upload.data))
            resource = self._server.commit_object(
                self._spec, bytes(self._upload.data), self._checksums, self._encryption
            )
            self._upload.complete = True
            self._upload.resource = resource
            return WriteObjectResponse(committed_size=resource.size, resource=resource)

        if not self._finished:
            raise RpcError(
                "Stream closed without finish_write", StatusCode.INVALID_ARGUMENT
            )
        resource = self._server.commit_object(
            self._spec, bytes(self._buffer), self._checksums, self._encryption
        )
        return WriteObjectResponse(committed_size=resource.size, resource=resource)

    async def cancel(self) -> None:
        """Drop the call; persisted resumable bytes are kept."""
        self._closed = True
        if self._error is None:
            self._error = RpcError("Cancelled", StatusCode.CANCELLED)


class _InMemoryReadStream(ReadStream):
    """Server side of one GetObjectMedia call."""

    def __init__(
        self,
        server: InMemoryTransport,
        request: GetObjectMediaRequest,
        fault: _Fault | None,
    ) -> None:
        self._server = server
        self._request = request
        self._fault = fault
        self._frames: deque[GetObjectMediaResponse] | None = None
        self._sent = 0
        self._cancelled = False

    def _build_frames(self) -> deque[GetObjectMediaResponse]:
        request = self._request
        stored = self._server.objects.get((request.bucket, request.object))
        if stored is None or (
            request.generation is not None
            and request.generation != stored.resource.generation
        ):
            raise RpcError(
                f"No such object: {request.bucket}/{request.object}",
                StatusCode.NOT_FOUND,
            )
        _check_preconditions(request, stored)
        if stored.encryption_key_sha256:
            params = request.common_object_request_params
            expected_sha = stored.encryption_key_sha256
            if params is None or params.encryption_key_sha256 != expected_sha:
                raise RpcError(
                    "Object is encrypted with a different key",
                    StatusCode.INVALID_ARGUMENT,
                )

        size = len(stored.data)
        if request.read_offset < 0:
            start = max(0, size + request.read_offset)
        else:
            start = request.read_offset
        if start > size:
            raise RpcError(
                f"Offset {start} beyond object size {size}", StatusCode.OUT_OF_RANGE
            )
        end = size if request.read_limit == 0 else min(size, start + request.read_limit)

        frames: deque[GetObjectMediaResponse] = deque()
        position = start
        while True:
            stop = min(end, position + self._server.read_chunk_size)
            content = stored.data[position:stop]
            frames.append(
                GetObjectMediaResponse(
                    checksummed_data=ChecksummedData(
                        content=content, crc32c=crc32c(content)
                    )
                )
            )
            position += len(content)
            if position >= end:
                break
        frames[0].metadata = stored.resource
        frames[0].object_checksums = ObjectChecksums(
            crc32c=stored.resource.crc32c, md5_hash=stored.resource.md5_hash
        )
        return frames

    async def read_next(self) -> GetObjectMediaResponse | None:
        """Return the next frame, or None at end of stream."""
        await asyncio.sleep(0)
        if self._cancelled:
            raise RpcError("Cancelled", StatusCode.CANCELLED)
        if self._fault is not None and self._sent >= self._fault.after_frames:
            raise RpcError(self._fault.message, self._fault.code)
        if self._frames is None:
            self._frames = self._build_frames()
        if not self._frames:
            return None
        self._sent += 1
        return self._frames.popleft()

    async def cancel(self) -> None:
        """Stop the stream."""
        self._cancelled = True
