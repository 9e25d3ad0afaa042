"""Named client configurations stored as YAML files."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from blobstream.config_manager.client_config import ClientConfig
from blobstream.const import CONFIG_DIR, PROFILES_DIR_NAME

logger = logging.getLogger(__name__)

_PROFILE_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")


class ProfileNotFound(Exception):
    """Raised when no stored profile has the requested name."""


class ProfileAlreadyExist(Exception):
    """Raised when creating a profile whose name is taken."""


class ProfileManager:
    """Read and write client profiles, one YAML file per profile."""

    def __init__(self, home_path: Path | None = None) -> None:
        """Initialise ProfileManager.

        Args:
            home_path: Directory holding ``.blobstream``; the user's home
                directory when omitted.
        """
        config_dir = home_path / ".blobstream" if home_path else CONFIG_DIR
        self.profiles_dir = config_dir / PROFILES_DIR_NAME

    def _path(self, profile: str) -> Path:
        if not _PROFILE_NAME.match(profile):
            raise ValueError(f"Invalid profile name: {profile!r}")
        return self.profiles_dir / f"{profile}.yaml"

    def _save(self, path: Path, config: ClientConfig, mode: str = "w") -> None:
        self.profiles_dir.mkdir(parents=True, exist_ok=True)
        with path.open(mode) as f:
            yaml.safe_dump(config.model_dump(), f, sort_keys=True)

    def list_profiles(self) -> list[str]:
        """Names of the stored profiles, sorted."""
        if not self.profiles_dir.is_dir():
            return []
        return sorted(path.stem for path in self.profiles_dir.glob("*.yaml"))

    def get_profile(self, profile: str | None = None) -> ClientConfig:
        """Load the named profile.

        ``None`` selects the built-in defaults without touching the disk.

        Raises:
            ProfileNotFound: If no file exists for ``profile``.
        """
        if profile is None:
            return ClientConfig()

        path = self._path(profile)
        if not path.is_file():
            raise ProfileNotFound(
                f"No profile named {profile!r} in {self.profiles_dir}"
            )
        values = yaml.safe_load(path.read_text()) or {}
        return ClientConfig.model_validate(values)

    def create_profile(self, profile: str) -> ClientConfig:
        """Store a profile holding the default configuration.

        Raises:
            ProfileAlreadyExist: If ``profile`` is already stored.
        """
        config = ClientConfig()
        try:
            self._save(self._path(profile), config, mode="x")
        except FileExistsError as exc:
            raise ProfileAlreadyExist(f"Profile {profile!r} exists") from exc
        logger.info("Created profile %s", profile)
        return config

    def update_profile(self, profile: str, updates: dict[str, Any]) -> ClientConfig:
        """Apply ``updates`` to a stored profile; ``None`` values are skipped.

        Raises:
            ProfileNotFound: If no file exists for ``profile``.
        """
        values = self.get_profile(profile).model_dump()
        values.update({k: v for k, v in updates.items() if v is not None})
        config = ClientConfig.model_validate(values)
        self._save(self._path(profile), config)
        return config

    def delete_profile(self, profile: str) -> None:
        """Remove a stored profile.

        Raises:
            ProfileNotFound: If no file exists for ``profile``.
        """
        try:
            self._path(profile).unlink()
        except FileNotFoundError as exc:
            raise ProfileNotFound(f"No profile named {profile!r}") from exc
