import pytest

from blobstream.client import StorageStreamClient
from blobstream.const import CHUNK_SIZE_QUANTUM, METHOD_INSERT_OBJECT
from blobstream.transport.memory import InMemoryTransport
from blobstream.wire import WriteObjectRequest


@pytest.fixture
def transport():
    """In-process storage emulator."""
    return InMemoryTransport()


@pytest.fixture
def client(transport):
    """Client bound to the in-process emulator."""
    return StorageStreamClient(transport)


@pytest.fixture
def one_quantum_budget(monkeypatch):
    """Shrink the frame budget to one quantum so small payloads span frames."""
    for module in ("blobstream.client", "blobstream.upload.resumable_session"):
        monkeypatch.setattr(f"{module}.chunk_budget", lambda: CHUNK_SIZE_QUANTUM)
    return CHUNK_SIZE_QUANTUM


@pytest.fixture
def payload():
    """Three quanta of non-repeating-per-frame bytes."""
    return bytes(range(256)) * (3 * CHUNK_SIZE_QUANTUM // 256)


@pytest.fixture
def written_frames(transport):
    """Return the InsertObject frames the emulator received so far."""

    def _frames() -> list[WriteObjectRequest]:
        return [
            request
            for method, request in transport.calls
            if method == METHOD_INSERT_OBJECT
        ]

    return _frames
