"""Client configuration loading."""

from blobstream.config_manager.client_config import ClientConfig, TransportConfig
from blobstream.config_manager.config import ConfigManager
from blobstream.config_manager.profiles import (
    ProfileAlreadyExist,
    ProfileManager,
    ProfileNotFound,
)

__all__ = [
    "ClientConfig",
    "ConfigManager",
    "ProfileAlreadyExist",
    "ProfileManager",
    "ProfileNotFound",
    "TransportConfig",
]
