"""Pydantic models for blobstream client configuration."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

from blobstream.const import DEFAULT_ENDPOINT


class TransportConfig(BaseModel):
    """Explicit channel settings handed to a transport constructor.

    Attributes:
        endpoint: host (and optional port) of the storage service.
        insecure: when true, open a plaintext channel without credentials.
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str = DEFAULT_ENDPOINT
    insecure: bool = False


class ClientConfig(BaseModel):
    """Configuration options for a streaming storage client.

    Attributes:
        endpoint: override for the service endpoint, typically an emulator.
        credentials: ``"default"`` for application default credentials or
            ``"anonymous"`` for unauthenticated access.
        user_project: project billed for requests, when set.
        quota_user: quota attribution key, when set.
    """

    endpoint: str | None = None
    credentials: Literal["default", "anonymous"] = "default"
    user_project: str | None = None
    quota_user: str | None = None

    def transport_config(self) -> TransportConfig:
        """Derive the channel settings for this configuration.

        An endpoint override points at an emulator or test server, which is
        reached over an insecure channel, as are anonymous clients.
        """
        if self.endpoint:
            return TransportConfig(endpoint=self.endpoint, insecure=True)
        return TransportConfig(
            endpoint=DEFAULT_ENDPOINT,
            insecure=self.credentials == "anonymous",
        )
