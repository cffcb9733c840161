"""Profile storage for Meta app credentials and access tokens.

Profiles live in ~/.meta-ads-cli/config.json with restrictive file
permissions. A store handle is opened once per process and passed to
whatever needs it.

Note: Secrets are stored in plaintext and protected by file permissions
(0o600) only.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import time
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Default storage directory
DEFAULT_CONFIG_DIR = Path.home() / ".meta-ads-cli"
CONFIG_FILENAME = "config.json"
BACKUP_SUFFIX = ".bak"

# Keys written by the earlier Node.js release of meta-ads-cli
LEGACY_PROFILE_KEYS = {
    "appId": "client_id",
    "appSecret": "client_secret",
    "accessToken": "access_token",
    "tokenExpiry": "token_expiry",
    "adAccountId": "default_account_id",
}


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass
class Profile:
    """A named set of Meta app credentials plus the token issued for them."""

    name: str
    client_id: str
    client_secret: str
    access_token: str | None = None
    token_expiry: int | None = None  # ms since epoch
    default_account_id: str | None = None  # act_XXXXXXXXX

    def set_token(self, access_token: str, token_expiry: int) -> None:
        """Assign the token and its expiry together."""
        self.access_token = access_token
        self.token_expiry = token_expiry

    def clear_token(self) -> None:
        self.access_token = None
        self.token_expiry = None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def is_expired(self, at_ms: int | None = None) -> bool:
        if self.token_expiry is None:
            return True
        return (now_ms() if at_ms is None else at_ms) >= self.token_expiry

    def days_until_expiry(self, at_ms: int | None = None) -> int | None:
        """Whole days left on the token, rounded; None when there is no token."""
        if self.token_expiry is None:
            return None
        remaining = self.token_expiry - (now_ms() if at_ms is None else at_ms)
        return round(remaining / (1000 * 60 * 60 * 24))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        """Create from dictionary.

        Accepts the camelCase keys of older config files and ignores keys
        this version does not know (such as ``isActive``).

        Raises:
            TypeError: If a required field is missing
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            key = LEGACY_PROFILE_KEYS.get(key, key)
            if key in known:
                values[key] = value
        return cls(**values)


@dataclass
class StoreData:
    """Complete on-disk structure."""

    profiles: dict[str, Profile] = field(default_factory=dict)
    active_profile: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "profiles": {name: p.to_dict() for name, p in self.profiles.items()},
            "active_profile": self.active_profile,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoreData":
        """Create from dictionary, skipping profiles that cannot be read."""
        profiles = {}
        for name, raw in (data.get("profiles") or {}).items():
            try:
                profiles[name] = Profile.from_dict({"name": name, **raw})
            except (TypeError, ValueError) as e:
                logger.warning("Skipping unreadable profile %r: %s", name, e)

        active = data.get("active_profile", data.get("activeProfile"))
        if active not in profiles:
            active = None
        return cls(profiles=profiles, active_profile=active)


class CredentialStore:
    """File-backed profile store.

    Usage:
        with CredentialStore.open() as store:
            store.save(Profile(name="default", client_id="123", client_secret="s3cret"))
            profile = store.get()          # active profile
            store.set_active("default")

    Every mutation is written through to disk immediately. Profiles handed
    out by ``get`` and ``list`` are copies; changes only persist via ``save``.
    """

    def __init__(self, config_dir: Path | str | None = None):
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self.config_file = self.config_dir / CONFIG_FILENAME
        self._data: StoreData | None = None

    @classmethod
    def open(cls, config_dir: Path | str | None = None) -> "CredentialStore":
        """Open the store at ``config_dir`` and load its contents."""
        store = cls(config_dir)
        store._data = store._load()
        return store

    def close(self) -> None:
        self._data = None

    @property
    def is_open(self) -> bool:
        return self._data is not None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _require_data(self) -> StoreData:
        if self._data is None:
            raise RuntimeError("Credential store is closed")
        return self._data

    def _load(self) -> StoreData:
        if not self.config_file.exists():
            return StoreData()

        try:
            with open(self.config_file) as f:
                raw = json.load(f)
            data = StoreData.from_dict(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, AttributeError) as e:
            logger.warning("Could not load profiles from %s: %s", self.config_file, e)
            self._backup()
            return StoreData()

        if len(data.profiles) != len(raw.get("profiles") or {}):
            self._backup()
        return data

    def _backup(self) -> None:
        """Keep a copy of a file that did not load cleanly before it is rewritten."""
        backup = self.config_file.with_name(self.config_file.name + BACKUP_SUFFIX)
        shutil.copyfile(self.config_file, backup)
        os.chmod(backup, 0o600)
        logger.warning("Saved a copy of the unreadable profile file to %s", backup)

    def _write(self) -> None:
        data = self._require_data()
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Created with restrictive permissions (contains client_secret) and
        # swapped in whole so the previous file survives a failed write
        tmp_file = self.config_file.with_name(self.config_file.name + ".tmp")
        fd = os.open(tmp_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data.to_dict(), f, indent=2)
            os.chmod(tmp_file, 0o600)
            os.replace(tmp_file, self.config_file)
        except Exception:
            tmp_file.unlink(missing_ok=True)
            raise

    @property
    def active_name(self) -> str | None:
        return self._require_data().active_profile

    def get(self, name: str | None = None) -> Profile | None:
        """Get a profile by name, or the active profile when no name is given."""
        data = self._require_data()
        name = name or data.active_profile
        if not name or name not in data.profiles:
            return None
        return replace(data.profiles[name])

    def save(self, profile: Profile) -> None:
        """Insert or replace a profile; the first saved profile becomes active."""
        data = self._require_data()
        data.profiles[profile.name] = replace(profile)
        if not data.active_profile:
            data.active_profile = profile.name
        self._write()
        logger.debug("Saved profile %s", profile.name)

    def delete(self, name: str) -> None:
        """Remove a profile, promoting another one if it was active."""
        data = self._require_data()
        if name not in data.profiles:
            raise ConfigurationError(f'Profile "{name}" not found')

        del data.profiles[name]
        if data.active_profile == name:
            remaining = list(data.profiles)
            data.active_profile = remaining[0] if remaining else None
        self._write()
        logger.debug("Deleted profile %s (active now %s)", name, data.active_profile)

    def set_active(self, name: str) -> None:
        data = self._require_data()
        if name not in data.profiles:
            raise ConfigurationError(f'Profile "{name}" not found')
        data.active_profile = name
        self._write()

    def list(self) -> list[Profile]:
        return [replace(p) for p in self._require_data().profiles.values()]
