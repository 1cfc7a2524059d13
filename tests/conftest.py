"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from assetledger.access import AccessPolicy
from assetledger.config import CONFIG_ENV_VAR, RegistryConfig
from assetledger.registry import Registry

from .helpers import ADMIN, register_spec_pdf


@pytest.fixture(autouse=True)
def _isolated_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


@pytest.fixture
def registry() -> Registry:
    """Empty registry with the default access policy."""
    return Registry.create(admin=ADMIN)


@pytest.fixture
def lenient_registry() -> Registry:
    """Registry where write checks ignore grant expiry."""
    return Registry.create(admin=ADMIN, policy=AccessPolicy(enforce_expiry=False))


@pytest.fixture
def asset_id(registry: Registry) -> int:
    """Asset 1, owned by alice, registered at sequence 1."""
    return register_spec_pdf(registry)


@pytest.fixture
def config(tmp_path: Path) -> RegistryConfig:
    return RegistryConfig(admin=ADMIN, data_dir=tmp_path / ".assetledger")
