"""Wire messages exchanged with the storage service.

These mirror the RPC request and response messages field by field. Optional
scalar fields use ``None`` for "not set" so that they survive a round trip
through transports that distinguish presence.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CommonRequestParams:
    """Parameters shared by every request."""

    user_project: str | None = None
    quota_user: str | None = None


@dataclass
class CommonObjectRequestParams:
    """Customer-supplied encryption parameters for object requests."""

    encryption_algorithm: str = ""
    encryption_key: str = ""
    encryption_key_sha256: str = ""


@dataclass
class WireObject:
    """Object resource as carried on the wire."""

    bucket: str
    name: str
    generation: int = 0
    metageneration: int = 0
    size: int = 0
    content_type: str = ""
    content_encoding: str = ""
    crc32c: int | None = None
    md5_hash: bytes = b""
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class InsertObjectSpec:
    """Destination and preconditions of an object write."""

    resource: WireObject
    predefined_acl: str | None = None
    if_generation_match: int | None = None
    if_generation_not_match: int | None = None
    if_metageneration_match: int | None = None
    if_metageneration_not_match: int | None = None


@dataclass
class ChecksummedData:
    """A slice of object content with its CRC32C."""

    content: bytes = b""
    crc32c: int | None = None


@dataclass
class ObjectChecksums:
    """Checksums for a complete object."""

    crc32c: int | None = None
    md5_hash: bytes = b""


@dataclass
class WriteObjectRequest:
    """One frame of an InsertObject stream.

    Exactly one of ``insert_object_spec`` or ``upload_id`` is set on the first
    frame of a stream and neither on later frames.
    """

    write_offset: int = 0
    upload_id: str | None = None
    insert_object_spec: InsertObjectSpec | None = None
    checksummed_data: ChecksummedData = field(default_factory=ChecksummedData)
    object_checksums: ObjectChecksums | None = None
    finish_write: bool = False
    common_object_request_params: CommonObjectRequestParams | None = None
    common_request_params: CommonRequestParams | None = None


@dataclass
class WriteObjectResponse:
    """Final status of an InsertObject stream.

    ``resource`` is set once the write is finalized, otherwise
    ``committed_size`` reports the persisted prefix.
    """

    committed_size: int = 0
    resource: WireObject | None = None


@dataclass
class StartResumableWriteRequest:
    insert_object_spec: InsertObjectSpec
    common_object_request_params: CommonObjectRequestParams | None = None
    common_request_params: CommonRequestParams | None = None


@dataclass
class StartResumableWriteResponse:
    upload_id: str


@dataclass
class QueryWriteStatusRequest:
    upload_id: str
    common_request_params: CommonRequestParams | None = None


@dataclass
class QueryWriteStatusResponse:
    committed_size: int = 0
    complete: bool = False
    resource: WireObject | None = None


@dataclass
class GetObjectMediaRequest:
    """Request to stream object content.

    A negative ``read_offset`` counts from the end of the object and a
    ``read_limit`` of zero means "until the end".
    """

    bucket: str
    object: str
    generation: int | None = None
    read_offset: int = 0
    read_limit: int = 0
    if_generation_match: int | None = None
    if_generation_not_match: int | None = None
    if_metageneration_match: int | None = None
    if_metageneration_not_match: int | None = None
    common_object_request_params: CommonObjectRequestParams | None = None
    common_request_params: CommonRequestParams | None = None


@dataclass
class GetObjectMediaResponse:
    """One frame of a GetObjectMedia stream."""

    checksummed_data: ChecksummedData = field(default_factory=ChecksummedData)
    object_checksums: ObjectChecksums | None = None
    metadata: WireObject | None = None


@dataclass
class DeleteObjectRequest:
    bucket: str
    object: str
    generation: int | None = None
    if_generation_match: int | None = None
    if_generation_not_match: int | None = None
    if_metageneration_match: int | None = None
    if_metageneration_not_match: int | None = None
    common_request_params: CommonRequestParams | None = None
