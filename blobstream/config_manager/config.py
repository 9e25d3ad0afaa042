"""Resolve client configuration from profile, environment, and overrides."""

from __future__ import annotations

import os
from typing import Any

from blobstream.config_manager.client_config import ClientConfig
from blobstream.config_manager.profiles import ProfileManager

_ENV_MAP: dict[str, str] = {
    "endpoint": "BLOBSTREAM_GRPC_ENDPOINT",
    "credentials": "BLOBSTREAM_CREDENTIALS",
    "user_project": "BLOBSTREAM_USER_PROJECT",
    "quota_user": "BLOBSTREAM_QUOTA_USER",
}


class ConfigManager:
    """Build effective client configuration from profile, env, and overrides."""

    def __init__(
        self,
        profile_manager: ProfileManager | None = None,
        profile: str | None = None,
    ) -> None:
        """Initialise ConfigManager.

        Args:
            profile_manager: ProfileManager instance
            profile: Name of the profile to load as the base configuration.
        """
        self.profile_manager = profile_manager or ProfileManager()
        self.profile = profile

    def _read_env_overrides(self) -> dict[str, Any]:
        """Read configuration overrides from environment variables.

        Empty values are ignored so an exported but blank variable does not
        switch the client onto an insecure channel.
        """
        overrides: dict[str, Any] = {}
        for field_name, env_var_name in _ENV_MAP.items():
            env_value = os.getenv(env_var_name)
            if env_value:
                overrides[field_name] = env_value
        return overrides

    def resolve_effective_config(
        self, overrides: dict[str, Any] | None = None
    ) -> ClientConfig:
        """Resolve the effective client configuration.

        Args:
            overrides: Optional explicit overrides with the highest precedence.

        Returns:
            The resolved ``ClientConfig``.
        """
        base_config = self.profile_manager.get_profile(self.profile)
        merged = {**base_config.model_dump(), **self._read_env_overrides()}
        if overrides is not None:
            merged.update(overrides)
        return ClientConfig(**merged)
