"""Shared fixtures for AuroraID tests."""

from __future__ import annotations

import logging

import pytest

from auroraid.core.config import IdentityConfig, StoreConfig
from auroraid.core.device.fingerprint import DeviceFingerprint
from auroraid.core.identity.service import IdentityService
from auroraid.db.kv_store import MemoryStore


ABANDON_PHRASE = " ".join(["abandon"] * 11 + ["about"])
ABANDON_ETH_ADDRESS = "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"
LEGAL_PHRASE = "legal winner thank year wave sausage worth useful legal winner thank yellow"


class FixedCollector:
    """Fingerprint collector returning a constant fingerprint."""

    def __init__(self, fingerprint: DeviceFingerprint) -> None:
        self.fingerprint = fingerprint
        self.calls = 0

    def collect(self) -> DeviceFingerprint:
        self.calls += 1
        return self.fingerprint


@pytest.fixture
def fingerprint():
    return DeviceFingerprint(
        user_agent="Mozilla/5.0 (X11; Linux x86_64)",
        screen_resolution="1920x1080",
        timezone="Europe/Berlin",
        language="en-US",
        platform="Linux x86_64",
        hardware_concurrency=8,
        device_memory=16,
    )


@pytest.fixture
def collector(fingerprint):
    return FixedCollector(fingerprint)


@pytest.fixture
def memory_config():
    return IdentityConfig(store=StoreConfig(backend="memory"))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def service(store, memory_config, collector):
    return IdentityService(store, memory_config, collector=collector)


@pytest.fixture
def restore_root_logger():
    """Undo handler/level changes made by configure_root_logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
