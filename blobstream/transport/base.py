"""Abstract transport used by the streaming storage client.

A transport provides three call shapes: unary calls, client-streaming calls
that accept a sequence of frames and answer once, and server-streaming calls
that answer with a sequence of frames. Non-OK statuses are raised as
``RpcError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from blobstream.config_manager.client_config import TransportConfig


class WriteStream(ABC):
    """Writable half of a client-streaming call."""

    @abstractmethod
    async def write(self, frame: Any, *, is_last: bool = False) -> bool:
        """Send one frame.

        ``is_last`` marks the final message at the transport level, i.e. the
        client half-closes the stream after this frame.

        Returns:
            False if the stream is broken and the status must be collected
            with ``finish``.
        """
        ...

    @abstractmethod
    async def finish(self) -> Any:
        """Half-close the stream and wait for the response.

        Raises:
            RpcError: If the call ended with a non-OK status.
        """
        ...

    @abstractmethod
    async def cancel(self) -> None:
        """Abandon the call without waiting for a response."""
        ...


class ReadStream(ABC):
    """Readable half of a server-streaming call."""

    @abstractmethod
    async def read_next(self) -> Any | None:
        """Wait for the next frame.

        Returns:
            The frame, or None once the server has closed the stream.

        Raises:
            RpcError: If the call ended with a non-OK status.
        """
        ...

    @abstractmethod
    async def cancel(self) -> None:
        """Stop receiving and release the call."""
        ...


class Transport(ABC):
    """Connected channel to the storage service."""

    def __init__(self, config: TransportConfig) -> None:
        """Initialize the transport.

        Args:
            config: Endpoint and channel security settings.
        """
        self.config = config

    @abstractmethod
    async def unary(self, method: str, request: Any) -> Any:
        """Issue a unary call and return its response."""
        ...

    @abstractmethod
    def client_stream(self, method: str) -> WriteStream:
        """Open a client-streaming call."""
        ...

    @abstractmethod
    def server_stream(self, method: str, request: Any) -> ReadStream:
        """Open a server-streaming call for ``request``."""
        ...
