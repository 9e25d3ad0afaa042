"""Resumable upload sessions.

A session is identified by a server-issued upload id. The server is the only
source of truth for how many bytes are committed: the session learns the
committed size from QueryWriteStatus and from the status returned when a write
stream finishes, and resumes writing from exactly that offset.
"""

from __future__ import annotations

import logging
import weakref
from collections.abc import Iterator
from dataclasses import replace
from typing import TYPE_CHECKING

from blobstream.const import CHUNK_SIZE_QUANTUM, METHOD_INSERT_OBJECT
from blobstream.exceptions import (
    InvalidArgumentError,
    OutOfRangeError,
    ResumptionInconsistencyError,
    RpcError,
    SessionClosedError,
    StorageError,
)
from blobstream.metadata import object_metadata_from_wire
from blobstream.models import (
    Chunk,
    ObjectMetadata,
    ResumableUploadResponse,
    SessionState,
    TransferResult,
)
from blobstream.upload.chunker import chunk_budget, iter_chunks, write_chunks
from blobstream.wire import WireObject, WriteObjectRequest

if TYPE_CHECKING:
    from blobstream.client import StorageStreamClient

logger = logging.getLogger(__name__)


class ResumableUploadSession:
    """Client handle for one resumable upload.

    The session keeps a weak reference to the client that created it; the
    client must stay alive for as long as the session is used. Only one write
    may be in flight per session.
    """

    def __init__(
        self,
        client: StorageStreamClient,
        session_id: str,
        user_project: str | None = None,
        quota_user: str | None = None,
    ) -> None:
        """Initialize the session handle without contacting the server.

        Args:
            client: Client whose transport carries the session's calls.
            session_id: Upload id issued by StartResumableWrite.
            user_project: Project billed for the session's requests.
            quota_user: Quota attribution key for the session's requests.
        """
        self._client_ref = weakref.ref(client)
        self._session_id = session_id
        self._user_project = user_project
        self._quota_user = quota_user
        self._committed_size = 0
        self._state = SessionState.ACTIVE
        self._metadata: ObjectMetadata | None = None
        self._in_use = False

    @property
    def session_id(self) -> str:
        """Opaque upload id; pass it to ``restore_resumable_session``."""
        return self._session_id

    @property
    def committed_size(self) -> int:
        """Bytes the server last reported as committed."""
        return self._committed_size

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state == SessionState.DONE

    @property
    def metadata(self) -> ObjectMetadata | None:
        """Metadata of the finalized object once the session is done."""
        return self._metadata

    def _client(self) -> StorageStreamClient:
        client = self._client_ref()
        if client is None:
            raise SessionClosedError(
                f"Client for upload session {self._session_id} no longer exists"
            )
        return client

    def _apply_status(
        self, committed_size: int, complete: bool, resource: WireObject | None
    ) -> None:
        """Record server-reported progress.

        Raises:
            ResumptionInconsistencyError: If the committed size went backwards.
        """
        if committed_size < self._committed_size:
            self._state = SessionState.FAILED
            logger.error(
                "Upload session %s committed size regressed from %d to %d",
                self._session_id,
                self._committed_size,
                committed_size,
            )
            raise ResumptionInconsistencyError(
                f"Committed size regressed from {self._committed_size} "
                f"to {committed_size}"
            )
        self._committed_size = committed_size
        if complete:
            self._state = SessionState.DONE
            if resource is not None:
                self._metadata = object_metadata_from_wire(resource)
            logger.info(
                "Upload session %s complete: %d bytes",
                self._session_id,
                committed_size,
            )

    def _response(self) -> ResumableUploadResponse:
        return ResumableUploadResponse(
            committed_size=self._committed_size,
            state=self._state,
            metadata=self._metadata,
        )

    def _result(self, error: StorageError | None = None) -> TransferResult:
        return TransferResult(
            state=self._state,
            committed_size=self._committed_size,
            session_id=self._session_id,
            metadata=self._metadata,
            error=error,
        )

    def _check_writable(self) -> None:
        if self._state != SessionState.ACTIVE:
            raise SessionClosedError(
                f"Upload session {self._session_id} is {self._state.value}"
            )
        if self._in_use:
            raise SessionClosedError(
                f"Upload session {self._session_id} already has a write in progress"
            )

    async def query(self) -> ResumableUploadResponse:
        """Fetch the committed size and completion state from the server.

        Safe to call any number of times; it never changes the object.

        Raises:
            SessionClosedError: If the session has failed.
            ResumptionInconsistencyError: If the committed size regressed.
            RpcError: If the status call fails.
        """
        if self._state == SessionState.FAILED:
            raise SessionClosedError(f"Upload session {self._session_id} has failed")
        response = await self._client().query_write_status(
            self._session_id,
            user_project=self._user_project,
            quota_user=self._quota_user,
        )
        self._apply_status(
            response.committed_size, response.complete, response.resource
        )
        return self._response()

    async def resume(self, payload: bytes) -> TransferResult:
        """Finish the upload of ``payload`` from the committed offset.

        ``payload`` is the complete object. Bytes below ``committed_size`` are
        skipped, so calling this after a disconnect (and a ``query``) never
        retransmits acknowledged data.

        Returns:
            The transfer outcome. Transport failures are reported in
            ``TransferResult.error`` and leave the session active.

        Raises:
            SessionClosedError: If the session is done, failed or busy.
            OutOfRangeError: If ``payload`` is shorter than the committed size.
        """
        self._check_writable()
        if len(payload) < self._committed_size:
            raise OutOfRangeError(
                f"Payload of {len(payload)} bytes is shorter than the "
                f"{self._committed_size} bytes already committed"
            )
        logger.info(
            "Resuming upload session %s at offset %d of %d",
            self._session_id,
            self._committed_size,
            len(payload),
        )
        return await self._write(payload, self._committed_size, finalize=True)

    async def upload(self, payload: bytes) -> TransferResult:
        """Upload the complete object ``payload`` and finalize the session."""
        return await self.resume(payload)

    async def upload_chunk(self, data: bytes) -> TransferResult:
        """Append ``data`` at the committed offset without finalizing.

        Args:
            data: Next piece of the object; its size must be a multiple of
                the chunk quantum.

        Raises:
            InvalidArgumentError: If ``data`` is not quantum aligned.
            SessionClosedError: If the session is done, failed or busy.
        """
        self._check_writable()
        if len(data) % CHUNK_SIZE_QUANTUM != 0:
            raise InvalidArgumentError(
                f"Chunk of {len(data)} bytes is not a multiple of "
                f"{CHUNK_SIZE_QUANTUM}"
            )
        if not data:
            return self._result()
        return await self._write(
            data, 0, finalize=False, base_offset=self._committed_size
        )

    async def upload_final_chunk(self, data: bytes) -> TransferResult:
        """Append ``data`` at the committed offset and finalize the object."""
        self._check_writable()
        return await self._write(
            data, 0, finalize=True, base_offset=self._committed_size
        )

    async def _write(
        self,
        payload: bytes,
        start_offset: int,
        *,
        finalize: bool,
        base_offset: int = 0,
    ) -> TransferResult:
        """Stream ``payload[start_offset:]``; payload byte 0 maps to ``base_offset``."""
        client = self._client()
        self._in_use = True
        try:
            chunks = iter_chunks(payload, chunk_budget(), start_offset)
            if base_offset:
                chunks = _shift(chunks, base_offset)
            first_frame = WriteObjectRequest(
                upload_id=self._session_id,
                common_request_params=client.common_request_params(
                    self._user_project, self._quota_user
                ),
            )
            response = await write_chunks(
                client.transport.client_stream(METHOD_INSERT_OBJECT),
                chunks,
                first_frame,
                finalize=finalize,
                operation="upload_chunk",
                transfer_key=self._session_id,
            )
        except RpcError as e:
            e.annotate("upload_chunk")
            logger.warning(
                "Upload session %s write failed at committed size %d: %s",
                self._session_id,
                self._committed_size,
                e,
            )
            return self._result(e)
        finally:
            self._in_use = False

        try:
            self._apply_status(
                response.committed_size,
                response.resource is not None,
                response.resource,
            )
        except ResumptionInconsistencyError as e:
            return self._result(e.annotate("upload_chunk"))
        return self._result()


def _shift(chunks: Iterator[Chunk], base_offset: int) -> Iterator[Chunk]:
    """Move chunk offsets from payload-relative to object-absolute."""
    for chunk in chunks:
        yield replace(chunk, offset=chunk.offset + base_offset)
