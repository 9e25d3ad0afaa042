"""Models used by the streaming storage client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from blobstream.exceptions import StorageError


class SessionState(str, Enum):
    """Lifecycle states for a resumable upload session.

    State transitions:
    - start / restore -> ACTIVE
    - ACTIVE -> ACTIVE (query, partial write, recoverable transport error)
    - ACTIVE -> DONE (server reports the upload finalized)
    - ACTIVE -> FAILED (server reports a committed size regression)

    DONE and FAILED are terminal.
    """

    ACTIVE = "active"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class WriteConditions:
    """Preconditions evaluated by the server before an object write."""

    if_generation_match: int | None = None
    if_generation_not_match: int | None = None
    if_metageneration_match: int | None = None
    if_metageneration_not_match: int | None = None


@dataclass(frozen=True)
class EncryptionKey:
    """Customer-supplied encryption key, base64 encoded."""

    key: str
    sha256: str
    algorithm: str = "AES256"


@dataclass(frozen=True)
class ObjectWriteRequest:
    """Single-shot object creation with the full payload in memory."""

    bucket_name: str
    object_name: str
    contents: bytes = b""
    conditions: WriteConditions = field(default_factory=WriteConditions)
    predefined_acl: str | None = None
    encryption_key: EncryptionKey | None = None
    content_type: str | None = None
    content_encoding: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    crc32c_value: str | None = None
    md5_hash_value: str | None = None
    user_project: str | None = None
    quota_user: str | None = None


@dataclass(frozen=True)
class ResumableUploadRequest:
    """Describes the object a resumable session will create.

    ``use_resumable_session`` names an existing session to restore. An empty
    string is treated the same as ``None`` and starts a new session.
    """

    bucket_name: str
    object_name: str
    conditions: WriteConditions = field(default_factory=WriteConditions)
    predefined_acl: str | None = None
    encryption_key: EncryptionKey | None = None
    content_type: str | None = None
    content_encoding: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    crc32c_value: str | None = None
    md5_hash_value: str | None = None
    user_project: str | None = None
    quota_user: str | None = None
    use_resumable_session: str | None = None


@dataclass(frozen=True)
class ReadObjectRequest:
    """Download request.

    ``read_range`` is an absolute ``(begin, end)`` pair with ``end``
    exclusive, ``read_last`` requests the final N bytes and
    ``read_from_offset`` sets a minimum start offset.
    """

    bucket_name: str
    object_name: str
    generation: int | None = None
    read_range: tuple[int, int] | None = None
    read_last: int | None = None
    read_from_offset: int | None = None
    conditions: WriteConditions = field(default_factory=WriteConditions)
    encryption_key: EncryptionKey | None = None
    user_project: str | None = None
    quota_user: str | None = None


@dataclass(frozen=True)
class Chunk:
    """One frame worth of payload."""

    content: bytes
    offset: int
    crc32c: int
    is_last: bool


@dataclass(frozen=True)
class ReadRange:
    """Offset and limit understood by the read stream.

    A negative offset counts back from the end of the object and a limit of
    zero means unbounded. ``empty`` marks a range that selects no bytes.
    """

    offset: int = 0
    limit: int = 0
    empty: bool = False


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata of a stored object."""

    bucket: str
    name: str
    generation: int = 0
    metageneration: int = 0
    size: int = 0
    content_type: str = ""
    content_encoding: str = ""
    crc32c: str = ""
    md5_hash: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ResumableUploadResponse:
    """Server-reported status of a resumable session."""

    committed_size: int
    state: SessionState
    metadata: ObjectMetadata | None = None


@dataclass
class TransferResult:
    """Outcome of writing through a resumable session.

    On failure ``session_id`` together with ``committed_size`` is the
    continuation point for a later resume.
    """

    state: SessionState
    committed_size: int
    session_id: str
    metadata: ObjectMetadata | None = None
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        """Whether the write completed without error."""
        return self.error is None
