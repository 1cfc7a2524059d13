"""
Registry configuration loader.

Configuration is a small TOML file:

    [registry]
    admin = "system:admin"
    enforce_grant_expiry = true
    revoke_previous_owner = false

    [storage]
    data_dir = ".assetledger"

Lookup order: explicit path, $ASSETLEDGER_CONFIG, <data_dir>/config.toml,
built-in defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from .access import DEFAULT_ADMIN, AccessPolicy

CONFIG_ENV_VAR = "ASSETLEDGER_CONFIG"
CONFIG_FILENAME = "config.toml"
DEFAULT_DATA_DIR = Path(".assetledger")


@dataclass(frozen=True)
class RegistryConfig:
    admin: str = DEFAULT_ADMIN
    enforce_grant_expiry: bool = True
    revoke_previous_owner: bool = False
    data_dir: Path = DEFAULT_DATA_DIR
    source: Path | None = None  # file the values came from, if any

    @property
    def policy(self) -> AccessPolicy:
        return AccessPolicy(
            enforce_expiry=self.enforce_grant_expiry,
            revoke_previous_owner=self.revoke_previous_owner,
        )


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _coerce_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false")
    return value


def parse_config(data: dict[str, Any], *, source: Path | None = None) -> RegistryConfig:
    """Build a RegistryConfig from parsed TOML data."""
    registry = _coerce_dict(data.get("registry"))
    storage = _coerce_dict(data.get("storage"))

    admin = str(registry.get("admin", DEFAULT_ADMIN)).strip()
    if not admin:
        raise ValueError("registry.admin must not be empty")

    data_dir = storage.get("data_dir")
    return RegistryConfig(
        admin=admin,
        enforce_grant_expiry=_coerce_bool(registry, "enforce_grant_expiry", True),
        revoke_previous_owner=_coerce_bool(registry, "revoke_previous_owner", False),
        data_dir=Path(data_dir) if isinstance(data_dir, str) and data_dir.strip() else DEFAULT_DATA_DIR,
        source=source,
    )


def find_config(explicit: Path | None = None, *, data_dir: Path | None = None) -> Path | None:
    """Resolve which config file applies, if any."""
    if explicit is not None:
        if not explicit.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
        return explicit

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = Path(env_path)
        if not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to a missing file: {path}")
        return path

    candidate = (data_dir or DEFAULT_DATA_DIR) / CONFIG_FILENAME
    return candidate if candidate.exists() else None


def load_config(path: Path | None = None, *, data_dir: Path | None = None) -> RegistryConfig:
    """
    Load configuration.

    Args:
        path: Explicit config file (must exist)
        data_dir: Data directory override; also where config.toml is looked up

    Raises:
        FileNotFoundError: explicit or $ASSETLEDGER_CONFIG path missing
        ValueError: TOML is malformed or a value has the wrong type
    """
    config_path = find_config(path, data_dir=data_dir)
    if config_path is None:
        config = RegistryConfig()
    else:
        with open(config_path, "rb") as f:
            try:
                data = tomllib.load(f)
            except Exception as e:
                raise ValueError(f"Failed to parse config TOML: {e}") from e
        config = parse_config(data, source=config_path)

    if data_dir is not None:
        config = RegistryConfig(
            admin=config.admin,
            enforce_grant_expiry=config.enforce_grant_expiry,
            revoke_previous_owner=config.revoke_previous_owner,
            data_dir=data_dir,
            source=config.source,
        )
    return config
