"""Streaming storage client.

``StorageStreamClient`` binds the upload and download engine to a transport:
simple uploads stream the whole payload over one InsertObject call, resumable
uploads go through ``ResumableUploadSession`` and downloads return a lazily
opened ``ObjectReadSource``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from blobstream.checksums import crc32c, md5_hash
from blobstream.config_manager.client_config import ClientConfig, TransportConfig
from blobstream.const import (
    METHOD_DELETE_OBJECT,
    METHOD_GET_OBJECT_MEDIA,
    METHOD_INSERT_OBJECT,
    METHOD_QUERY_WRITE_STATUS,
    METHOD_START_RESUMABLE_WRITE,
)
from blobstream.download.range_translator import translate_read_range
from blobstream.download.read_source import ObjectReadSource
from blobstream.exceptions import RpcError, StatusCode, UnimplementedError
from blobstream.metadata import (
    apply_conditions,
    build_object_spec,
    common_object_request_params,
    common_request_params,
    decode_crc32c,
    decode_md5,
    object_metadata_from_wire,
)
from blobstream.models import (
    ObjectMetadata,
    ObjectWriteRequest,
    ReadObjectRequest,
    ResumableUploadRequest,
    ResumableUploadResponse,
    SessionState,
    WriteConditions,
)
from blobstream.transport.base import ReadStream, Transport, WriteStream
from blobstream.upload.chunker import chunk_budget, iter_chunks, write_chunks
from blobstream.upload.resumable_session import ResumableUploadSession
from blobstream.wire import (
    CommonRequestParams,
    DeleteObjectRequest,
    GetObjectMediaRequest,
    ObjectChecksums,
    QueryWriteStatusRequest,
    QueryWriteStatusResponse,
    StartResumableWriteRequest,
    WriteObjectRequest,
)

logger = logging.getLogger(__name__)


class StorageStreamClient:
    """Object uploads and downloads over a streaming RPC transport.

    Sessions created by this client hold only a weak reference to it, so the
    client must outlive them.
    """

    def __init__(self, transport: Transport, config: ClientConfig | None = None):
        """Initialize the client.

        Args:
            transport: Connected transport to the storage service.
            config: Client configuration; defaults are used when omitted.
        """
        self._transport = transport
        self._config = config or ClientConfig()

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        transport_factory: Callable[[TransportConfig], Transport],
    ) -> StorageStreamClient:
        """Build a client whose transport is created from ``config``."""
        transport_config = config.transport_config()
        logger.info(
            "Connecting to %s (insecure=%s)",
            transport_config.endpoint,
            transport_config.insecure,
        )
        return cls(transport_factory(transport_config), config)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def config(self) -> ClientConfig:
        return self._config

    def common_request_params(
        self, user_project: str | None = None, quota_user: str | None = None
    ) -> CommonRequestParams | None:
        """Request-level parameters, falling back to the client config."""
        return common_request_params(
            user_project or self._config.user_project,
            quota_user or self._config.quota_user,
        )

    def _open_write_stream(self, operation: str) -> WriteStream:
        try:
            return self._transport.client_stream(METHOD_INSERT_OBJECT)
        except RpcError as e:
            raise e.annotate(operation)

    async def insert_object_media(self, request: ObjectWriteRequest) -> ObjectMetadata:
        """Create an object from an in-memory payload in a single stream.

        The payload is sent in frames below the message size ceiling. The
        first frame carries the object spec and the whole-object checksums;
        caller-supplied checksums take precedence over computed ones.

        Raises:
            InvalidArgumentError: If a caller-supplied checksum is malformed.
            RpcError: If the stream fails; no retry is attempted.
        """
        operation = "insert_object_media"
        contents = request.contents
        spec = build_object_spec(request)
        checksums = ObjectChecksums(
            crc32c=(
                decode_crc32c(request.crc32c_value)
                if request.crc32c_value
                else crc32c(contents)
            ),
            md5_hash=(
                decode_md5(request.md5_hash_value)
                if request.md5_hash_value
                else md5_hash(contents)
            ),
        )
        first_frame = WriteObjectRequest(
            insert_object_spec=spec,
            object_checksums=checksums,
            common_object_request_params=common_object_request_params(
                request.encryption_key
            ),
            common_request_params=self.common_request_params(
                request.user_project, request.quota_user
            ),
        )
        response = await write_chunks(
            self._open_write_stream(operation),
            iter_chunks(contents, chunk_budget()),
            first_frame,
            finalize=True,
            operation=operation,
            transfer_key=f"{request.bucket_name}/{request.object_name}",
        )
        if response.resource is None:
            raise RpcError(
                "InsertObject finished without an object resource",
                StatusCode.INTERNAL,
                operation,
            )
        logger.info(
            "Inserted %s/%s: %d bytes",
            request.bucket_name,
            request.object_name,
            len(contents),
        )
        return object_metadata_from_wire(response.resource)

    async def create_resumable_session(
        self, request: ResumableUploadRequest
    ) -> ResumableUploadSession:
        """Start a resumable upload, or restore the one the request names.

        An empty ``use_resumable_session`` starts a new session.

        Raises:
            RpcError: If the start (or restore) call fails.
        """
        if request.use_resumable_session:
            return await self.restore_resumable_session(
                request.use_resumable_session,
                user_project=request.user_project,
                quota_user=request.quota_user,
            )

        start_request = StartResumableWriteRequest(
            insert_object_spec=build_object_spec(request),
            common_object_request_params=common_object_request_params(
                request.encryption_key
            ),
            common_request_params=self.common_request_params(
                request.user_project, request.quota_user
            ),
        )
        try:
            response = await self._transport.unary(
                METHOD_START_RESUMABLE_WRITE, start_request
            )
        except RpcError as e:
            raise e.annotate("create_resumable_session")
        logger.info(
            "Started upload session %s for %s/%s",
            response.upload_id,
            request.bucket_name,
            request.object_name,
        )
        return ResumableUploadSession(
            self,
            response.upload_id,
            user_project=request.user_project,
            quota_user=request.quota_user,
        )

    async def restore_resumable_session(
        self,
        session_id: str,
        *,
        user_project: str | None = None,
        quota_user: str | None = None,
    ) -> ResumableUploadSession:
        """Rebuild a session handle and synchronize it with the server.

        Raises:
            RpcError: If the status query fails; no session is returned.
        """
        session = ResumableUploadSession(
            self, session_id, user_project=user_project, quota_user=quota_user
        )
        await session.query()
        logger.info(
            "Restored upload session %s at %d bytes (%s)",
            session_id,
            session.committed_size,
            session.state.value,
        )
        return session

    async def query_write_status(
        self,
        upload_id: str,
        *,
        user_project: str | None = None,
        quota_user: str | None = None,
    ) -> QueryWriteStatusResponse:
        """Issue QueryWriteStatus for ``upload_id``."""
        request = QueryWriteStatusRequest(
            upload_id=upload_id,
            common_request_params=self.common_request_params(user_project, quota_user),
        )
        try:
            return await self._transport.unary(METHOD_QUERY_WRITE_STATUS, request)
        except RpcError as e:
            raise e.annotate("query_resumable_upload")

    async def query_resumable_upload(self, session_id: str) -> ResumableUploadResponse:
        """Report the status of a session without building a handle."""
        response = await self.query_write_status(session_id)
        return ResumableUploadResponse(
            committed_size=response.committed_size,
            state=SessionState.DONE if response.complete else SessionState.ACTIVE,
            metadata=(
                object_metadata_from_wire(response.resource)
                if response.resource is not None
                else None
            ),
        )

    def read_object(self, request: ReadObjectRequest) -> ObjectReadSource:
        """Prepare a read of the requested object range.

        Nothing is sent until the returned source is first read.

        Raises:
            OutOfRangeError: If ``read_last`` is zero.
            InvalidArgumentError: If ``read_range`` is malformed.
        """
        read_range = translate_read_range(
            read_range=request.read_range,
            read_last=request.read_last,
            read_from_offset=request.read_from_offset,
        )
        if read_range.empty:
            return ObjectReadSource(None)

        media_request = GetObjectMediaRequest(
            bucket=request.bucket_name,
            object=request.object_name,
            generation=request.generation,
            read_offset=read_range.offset,
            read_limit=read_range.limit,
            common_object_request_params=common_object_request_params(
                request.encryption_key
            ),
            common_request_params=self.common_request_params(
                request.user_project, request.quota_user
            ),
        )
        apply_conditions(media_request, request.conditions)

        def create_stream() -> ReadStream:
            return self._transport.server_stream(METHOD_GET_OBJECT_MEDIA, media_request)

        return ObjectReadSource(create_stream)

    async def delete_object(
        self,
        bucket_name: str,
        object_name: str,
        *,
        generation: int | None = None,
        conditions: WriteConditions | None = None,
        user_project: str | None = None,
        quota_user: str | None = None,
    ) -> None:
        """Delete an object, or one generation of it."""
        request = DeleteObjectRequest(
            bucket=bucket_name,
            object=object_name,
            generation=generation,
            common_request_params=self.common_request_params(user_project, quota_user),
        )
        apply_conditions(request, conditions or WriteConditions())
        try:
            await self._transport.unary(METHOD_DELETE_OBJECT, request)
        except RpcError as e:
            raise e.annotate("delete_object")

    # Operations the streaming transport does not carry.

    async def get_object_metadata(self, *args: object, **kwargs: object) -> None:
        raise _unimplemented("get_object_metadata")

    async def list_objects(self, *args: object, **kwargs: object) -> None:
        raise _unimplemented("list_objects")

    async def copy_object(self, *args: object, **kwargs: object) -> None:
        raise _unimplemented("copy_object")

    async def compose_object(self, *args: object, **kwargs: object) -> None:
        raise _unimplemented("compose_object")

    async def rewrite_object(self, *args: object, **kwargs: object) -> None:
        raise _unimplemented("rewrite_object")

    async def update_object(self, *args: object, **kwargs: object) -> None:
        raise _unimplemented("update_object")

    async def patch_object(self, *args: object, **kwargs: object) -> None:
        raise _unimplemented("patch_object")


def _unimplemented(operation: str) -> UnimplementedError:
    return UnimplementedError(
        "Not supported by the streaming client", operation=operation
    )
