"""
AuroraID Identity Module
========================

Device-bound wallet lifecycle on top of a key-value store.

Components:
- IdentityService: Generate, load, regenerate, pair and delete wallets
- load_wallet_record: The completeness check for stored records
- WalletStatus: Public view of a DeviceId's wallet
"""

from auroraid.core.identity.records import WalletStatus, load_wallet_record
from auroraid.core.identity.service import (
    ACTIVE_DEVICE_KEY,
    IdentityService,
    IdentityState,
    generation_entropy,
    is_companion_record,
    pairing_device_id,
)

__all__ = [
    "ACTIVE_DEVICE_KEY",
    "IdentityService",
    "IdentityState",
    "WalletStatus",
    "generation_entropy",
    "is_companion_record",
    "load_wallet_record",
    "pairing_device_id",
]
