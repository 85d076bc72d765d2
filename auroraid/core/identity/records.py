"""
Wallet Records
==============

The single completeness check for persisted wallet records.

A stored record is usable only if every field a Wallet needs is present
and in its canonical format. Anything else is reported as corrupt,
together with the list of offending fields, so the caller can decide to
regenerate.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from auroraid.core.crypto import hd
from auroraid.core.crypto.mnemonic import Mnemonic, validate_mnemonic
from auroraid.core.crypto.wallet import (
    ChainType,
    Wallet,
    is_valid_address,
    is_valid_private_key,
    is_valid_public_key,
)
from auroraid.core.errors import CorruptStoredRecordError, UnsupportedChainTypeError


logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("address", "publicKey", "privateKey", "mnemonic", "chainType")


@dataclass(frozen=True, slots=True)
class WalletStatus:
    """Public view of whether a DeviceId has a usable wallet."""
    is_generated: bool
    address: Optional[str] = None
    public_key: Optional[str] = None

    @classmethod
    def from_wallet(cls, wallet: Wallet) -> "WalletStatus":
        return cls(True, wallet.address, wallet.public_key)

    @classmethod
    def missing(cls) -> "WalletStatus":
        return cls(False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isGenerated": self.is_generated,
            "address": self.address,
            "publicKey": self.public_key,
        }


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _keys_match(private_key: str, public_key: str) -> bool:
    try:
        derived = hd.public_key_from_private(bytes.fromhex(private_key[2:]), compressed=True)
        stored = hd.load_public_key(bytes.fromhex(public_key[2:])).format(compressed=True)
    except ValueError:
        return False
    return hmac.compare_digest(derived, stored)


def load_wallet_record(device_id: str, raw: Any) -> Wallet:
    """
    Validate a stored record and build the Wallet it describes.

    Args:
        device_id: Key the record was stored under
        raw: Decoded value from the key-value store

    Returns:
        Wallet rebuilt from the record

    Raises:
        CorruptStoredRecordError: Listing every missing or invalid field
    """
    if not isinstance(raw, dict):
        raise CorruptStoredRecordError(device_id, REQUIRED_FIELDS)

    bad: list[str] = []

    try:
        chain = ChainType.parse(raw.get("chainType"))
    except UnsupportedChainTypeError:
        chain = None
        bad.append("chainType")

    address = raw.get("address")
    if chain is None or not is_valid_address(address, chain):
        bad.append("address")

    public_key = raw.get("publicKey")
    if chain is None or not is_valid_public_key(public_key, chain):
        bad.append("publicKey")

    private_key = raw.get("privateKey")
    if not is_valid_private_key(private_key):
        bad.append("privateKey")

    phrase = raw.get("mnemonic")
    if not isinstance(phrase, str) or not validate_mnemonic(phrase).is_valid:
        bad.append("mnemonic")

    stored_device = raw.get("deviceId")
    if stored_device not in (None, device_id):
        bad.append("deviceId")

    generation = raw.get("generation", 0)
    if not isinstance(generation, int) or isinstance(generation, bool) or generation < 0:
        bad.append("generation")

    if not bad and not _keys_match(private_key, public_key):
        bad.append("publicKey")

    if bad:
        logger.warning("Stored record for device %s failed validation: %s", device_id, ", ".join(bad))
        raise CorruptStoredRecordError(device_id, bad)

    now = datetime.now(timezone.utc)
    created_at = _parse_timestamp(raw.get("createdAt")) or now
    updated_at = _parse_timestamp(raw.get("updatedAt")) or created_at

    return Wallet(
        address=address,
        public_key=public_key,
        private_key=private_key,
        chain_type=chain,
        mnemonic=Mnemonic.from_phrase(phrase),
        device_id=device_id,
        created_at=created_at,
        updated_at=updated_at,
        generation=generation,
        companion_of=raw.get("companionOf"),
    )
