from .client import StorageStreamClient
from .config_manager import ClientConfig, ConfigManager, TransportConfig
from .download.read_source import ObjectReadSource
from .exceptions import (
    ChecksumMismatchError,
    InvalidArgumentError,
    OutOfRangeError,
    ResumptionInconsistencyError,
    RpcError,
    SessionClosedError,
    StatusCode,
    StorageError,
    UnimplementedError,
)
from .models import (
    EncryptionKey,
    ObjectMetadata,
    ObjectWriteRequest,
    ReadObjectRequest,
    ResumableUploadRequest,
    ResumableUploadResponse,
    SessionState,
    TransferResult,
    WriteConditions,
)
from .transport.memory import InMemoryTransport
from .upload.resumable_session import ResumableUploadSession

__version__ = "0.3.0"

__all__ = [
    "ChecksumMismatchError",
    "InvalidArgumentError",
    "OutOfRangeError",
    "ResumptionInconsistencyError",
    "RpcError",
    "SessionClosedError",
    "StatusCode",
    "StorageError",
    "UnimplementedError",
    "ClientConfig",
    "ConfigManager",
    "EncryptionKey",
    "InMemoryTransport",
    "ObjectMetadata",
    "ObjectReadSource",
    "ObjectWriteRequest",
    "ReadObjectRequest",
    "ResumableUploadRequest",
    "ResumableUploadResponse",
    "ResumableUploadSession",
    "SessionState",
    "StorageStreamClient",
    "TransferResult",
    "TransportConfig",
    "WriteConditions",
]
