"""
AuroraID Device Module
======================

Environment fingerprinting and DeviceId derivation.

Components:
- fingerprint.py: Collect attributes, derive and validate DeviceIds
"""

from auroraid.core.device.fingerprint import (
    DeviceFingerprint,
    FingerprintCollector,
    derive_device_id,
    digest_to_device_id,
    get_device_fingerprint,
    is_valid_device_id,
)

__all__ = [
    "DeviceFingerprint",
    "FingerprintCollector",
    "derive_device_id",
    "digest_to_device_id",
    "get_device_fingerprint",
    "is_valid_device_id",
]
