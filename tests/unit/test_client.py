"""End-to-end tests for StorageStreamClient over the in-process emulator."""

import pytest
import pytest_asyncio

from blobstream.checksums import crc32c, crc32c_to_base64, md5_hash, md5_to_base64
from blobstream.client import StorageStreamClient
from blobstream.config_manager import ClientConfig, TransportConfig
from blobstream.const import (
    CHUNK_SIZE_QUANTUM,
    METHOD_GET_OBJECT_MEDIA,
    METHOD_INSERT_OBJECT,
)
from blobstream.exceptions import (
    InvalidArgumentError,
    OutOfRangeError,
    RpcError,
    StatusCode,
    UnimplementedError,
)
from blobstream.models import (
    EncryptionKey,
    ObjectWriteRequest,
    ReadObjectRequest,
    ResumableUploadRequest,
    SessionState,
    WriteConditions,
)
from blobstream.transport.memory import InMemoryTransport

Q = CHUNK_SIZE_QUANTUM


async def _read_all(source) -> bytes:
    return b"".join([data async for data in source])


class TestInsertObjectMedia:
    """Simple uploads."""

    @pytest.mark.asyncio
    async def test_payload_is_split_into_budgeted_frames(
        self, client, transport, payload, one_quantum_budget, written_frames
    ):
        """Spec and checksums ride the first frame, end-of-data the last."""
        metadata = await client.insert_object_media(
            ObjectWriteRequest("bucket", "object", contents=payload)
        )

        frames = written_frames()
        assert len(frames) == 3
        assert [len(f.checksummed_data.content) for f in frames] == [Q, Q, Q]
        assert [f.write_offset for f in frames] == [0, Q, 2 * Q]
        assert frames[0].insert_object_spec.resource.name == "object"
        assert frames[0].object_checksums.crc32c == crc32c(payload)
        assert frames[0].object_checksums.md5_hash == md5_hash(payload)
        for frame in frames[1:]:
            assert frame.insert_object_spec is None
            assert frame.object_checksums is None
        assert [f.finish_write for f in frames] == [False, False, True]

        assert metadata.size == len(payload)
        assert metadata.crc32c == crc32c_to_base64(crc32c(payload))
        assert metadata.md5_hash == md5_to_base64(md5_hash(payload))
        assert metadata.generation > 0
        assert transport.objects[("bucket", "object")].data == payload

    @pytest.mark.asyncio
    async def test_default_budget_keeps_frames_under_ceiling(
        self, client, written_frames
    ):
        contents = bytes(5 * 1024 * 1024)

        await client.insert_object_media(
            ObjectWriteRequest("bucket", "big", contents=contents)
        )

        frames = written_frames()
        assert len(frames) == 3
        assert all(len(f.checksummed_data.content) <= 7 * Q for f in frames)

    @pytest.mark.asyncio
    async def test_empty_object_sends_one_terminal_frame(
        self, client, transport, written_frames
    ):
        metadata = await client.insert_object_media(ObjectWriteRequest("b", "empty"))

        frames = written_frames()
        assert len(frames) == 1
        assert frames[0].finish_write
        assert frames[0].insert_object_spec is not None
        assert metadata.size == 0
        assert transport.objects[("b", "empty")].data == b""

    @pytest.mark.asyncio
    async def test_caller_checksum_is_sent_and_verified(self, client):
        with pytest.raises(RpcError) as exc_info:
            await client.insert_object_media(
                ObjectWriteRequest(
                    "bucket", "object", contents=b"data", crc32c_value="AAAAAA=="
                )
            )

        assert exc_info.value.code == StatusCode.INVALID_ARGUMENT
        assert exc_info.value.operation == "insert_object_media"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fields", [{"crc32c_value": "!!"}, {"md5_hash_value": "not-a-digest"}]
    )
    async def test_malformed_caller_checksum_is_rejected_locally(
        self, client, transport, fields
    ):
        with pytest.raises(InvalidArgumentError):
            await client.insert_object_media(
                ObjectWriteRequest("bucket", "object", contents=b"x", **fields)
            )

        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_stream_failure_is_raised_without_retry(
        self, client, transport, payload, one_quantum_budget, written_frames
    ):
        transport.inject_fault(
            METHOD_INSERT_OBJECT, StatusCode.UNAVAILABLE, after_frames=1
        )

        with pytest.raises(RpcError) as exc_info:
            await client.insert_object_media(
                ObjectWriteRequest("bucket", "object", contents=payload)
            )

        assert exc_info.value.code == StatusCode.UNAVAILABLE
        assert len(written_frames()) == 2
        assert ("bucket", "object") not in transport.objects

    @pytest.mark.asyncio
    async def test_generation_precondition(self, client):
        request = ObjectWriteRequest(
            "bucket",
            "object",
            contents=b"v1",
            conditions=WriteConditions(if_generation_match=0),
        )
        await client.insert_object_media(request)

        with pytest.raises(RpcError) as exc_info:
            await client.insert_object_media(request)

        assert exc_info.value.code == StatusCode.FAILED_PRECONDITION

    @pytest.mark.asyncio
    async def test_object_fields_reach_the_spec(self, client, written_frames):
        metadata = await client.insert_object_media(
            ObjectWriteRequest(
                "bucket",
                "object",
                contents=b"{}",
                predefined_acl="publicRead",
                content_type="application/json",
                metadata={"owner": "ops"},
            )
        )

        spec = written_frames()[0].insert_object_spec
        assert spec.predefined_acl == "OBJECT_ACL_PUBLIC_READ"
        assert metadata.content_type == "application/json"
        assert metadata.metadata == {"owner": "ops"}

    @pytest.mark.asyncio
    async def test_bucket_only_acl_is_rejected_locally(self, client, transport):
        with pytest.raises(InvalidArgumentError):
            await client.insert_object_media(
                ObjectWriteRequest(
                    "bucket", "object", predefined_acl="publicReadWrite"
                )
            )

        assert transport.calls == []


class TestCommonRequestParams:
    """Billing and quota parameters."""

    @pytest.mark.asyncio
    async def test_config_values_are_sent_on_every_frame(
        self, transport, payload, one_quantum_budget, written_frames
    ):
        client = StorageStreamClient(
            transport, ClientConfig(user_project="proj", quota_user="config-user")
        )

        await client.insert_object_media(
            ObjectWriteRequest(
                "bucket", "object", contents=payload, quota_user="request-user"
            )
        )

        for frame in written_frames():
            assert frame.common_request_params.user_project == "proj"
            assert frame.common_request_params.quota_user == "request-user"

    def test_nothing_set_sends_no_params(self, client):
        assert client.common_request_params() is None


class TestReadObject:
    """Downloads and range handling."""

    @pytest_asyncio.fixture
    async def stored(self, client):
        """Store a small object and return its content."""
        contents = b"0123456789"
        await client.insert_object_media(
            ObjectWriteRequest("bucket", "object", contents=contents)
        )
        return contents

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "options, expected",
        [
            ({}, b"0123456789"),
            ({"read_range": (2, 5)}, b"234"),
            ({"read_last": 3}, b"789"),
            ({"read_from_offset": 6}, b"6789"),
            ({"read_range": (0, 8), "read_from_offset": 5}, b"567"),
        ],
    )
    async def test_ranges(self, client, stored, options, expected):
        source = client.read_object(ReadObjectRequest("bucket", "object", **options))

        assert await _read_all(source) == expected

    @pytest.mark.asyncio
    async def test_range_past_end_sends_nothing(self, client, transport, stored):
        source = client.read_object(
            ReadObjectRequest(
                "bucket", "object", read_range=(0, 4), read_from_offset=9
            )
        )

        assert await source.read() is None
        assert not any(m == METHOD_GET_OBJECT_MEDIA for m, _ in transport.calls)

    def test_zero_suffix_is_rejected_before_sending(self, client, transport):
        with pytest.raises(OutOfRangeError):
            client.read_object(ReadObjectRequest("bucket", "object", read_last=0))

        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_missing_object(self, client):
        source = client.read_object(ReadObjectRequest("bucket", "missing"))

        with pytest.raises(RpcError) as exc_info:
            await source.read()

        assert exc_info.value.code == StatusCode.NOT_FOUND
        assert exc_info.value.operation == "read_object"

    @pytest.mark.asyncio
    async def test_offset_beyond_object(self, client, stored):
        source = client.read_object(
            ReadObjectRequest("bucket", "object", read_range=(20, 30))
        )

        with pytest.raises(RpcError) as exc_info:
            await source.read()

        assert exc_info.value.code == StatusCode.OUT_OF_RANGE

    @pytest.mark.asyncio
    async def test_encrypted_object_needs_its_key(self, client):
        key = EncryptionKey(key="a2V5", sha256="c2hh")
        await client.insert_object_media(
            ObjectWriteRequest("bucket", "secret", contents=b"s3", encryption_key=key)
        )

        with pytest.raises(RpcError) as exc_info:
            await _read_all(client.read_object(ReadObjectRequest("bucket", "secret")))
        assert exc_info.value.code == StatusCode.INVALID_ARGUMENT

        source = client.read_object(
            ReadObjectRequest("bucket", "secret", encryption_key=key)
        )
        assert await _read_all(source) == b"s3"


class TestOtherOperations:
    """Delete, status queries and unsupported calls."""

    @pytest.mark.asyncio
    async def test_delete_object(self, client, transport):
        await client.insert_object_media(
            ObjectWriteRequest("bucket", "object", contents=b"x")
        )

        await client.delete_object("bucket", "object")

        assert ("bucket", "object") not in transport.objects

    @pytest.mark.asyncio
    async def test_delete_missing_object(self, client):
        with pytest.raises(RpcError) as exc_info:
            await client.delete_object("bucket", "missing")

        assert exc_info.value.code == StatusCode.NOT_FOUND
        assert exc_info.value.operation == "delete_object"

    @pytest.mark.asyncio
    async def test_delete_with_failed_precondition(self, client, transport):
        await client.insert_object_media(
            ObjectWriteRequest("bucket", "object", contents=b"x")
        )

        with pytest.raises(RpcError) as exc_info:
            await client.delete_object(
                "bucket",
                "object",
                conditions=WriteConditions(if_metageneration_match=7),
            )

        assert exc_info.value.code == StatusCode.FAILED_PRECONDITION
        assert ("bucket", "object") in transport.objects

    @pytest.mark.asyncio
    async def test_query_resumable_upload(self, client, payload):
        session = await client.create_resumable_session(
            ResumableUploadRequest("bucket", "object")
        )
        await session.upload_chunk(payload[:Q])

        status = await client.query_resumable_upload(session.session_id)

        assert status.committed_size == Q
        assert status.state == SessionState.ACTIVE
        assert status.metadata is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "operation",
        [
            "get_object_metadata",
            "list_objects",
            "copy_object",
            "compose_object",
            "rewrite_object",
            "update_object",
            "patch_object",
        ],
    )
    async def test_unsupported_operations(self, client, transport, operation):
        with pytest.raises(UnimplementedError) as exc_info:
            await getattr(client, operation)("bucket", "object")

        assert exc_info.value.code == StatusCode.UNIMPLEMENTED
        assert exc_info.value.operation == operation
        assert transport.calls == []


def test_from_config_builds_transport_from_endpoint_override():
    seen: list[TransportConfig] = []

    def factory(config: TransportConfig) -> InMemoryTransport:
        seen.append(config)
        return InMemoryTransport(config)

    client = StorageStreamClient.from_config(
        ClientConfig(endpoint="localhost:9000"), factory
    )

    assert seen == [TransportConfig(endpoint="localhost:9000", insecure=True)]
    assert client.transport.config == seen[0]
