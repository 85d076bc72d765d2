"""
Wallet Derivation
=================

Turns a validated mnemonic into a chain-specific keypair and address.

Supported chains and BIP44 paths:
    ethereum  m/44'/60'/0'/0/0    EIP-55 address, 0x04-prefixed public key
    polkadot  m/44'/354'/0'/0/0   SS58 (prefix 0) of BLAKE2b-256(pubkey)
    kusama    m/44'/434'/0'/0/0   SS58 (prefix 2) of BLAKE2b-256(pubkey)

All chains use secp256k1 (ECDSA) keys. Seed and path derivation plus the
EIP-55 and SS58 encodings come from ``bip_utils``; signing and recovery
use ``coincurve``. This module validates inputs and assembles the Wallet
record.

Security Notes:
- Wallet repr never shows the private key or mnemonic
- Backend failures are wrapped in DerivationFailureError; a placeholder
  key is never substituted
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final, Optional

from bip_utils import EthAddrDecoder, EthAddrEncoder, SS58ChecksumError, SS58Decoder, SS58Encoder
from Crypto.Hash import keccak

from auroraid.core.crypto import hd
from auroraid.core.crypto.mnemonic import Mnemonic, check_mnemonic
from auroraid.core.errors import (
    DerivationFailureError,
    InternalConsistencyError,
    UnsupportedChainTypeError,
    ValidationFailure,
)


logger = logging.getLogger(__name__)

_ETH_ADDRESS_RE: Final[re.Pattern[str]] = re.compile(r"^0x[0-9a-fA-F]{40}$")
_ETH_PUBLIC_KEY_RE: Final[re.Pattern[str]] = re.compile(r"^0x04[0-9a-f]{128}$")
_COMPRESSED_PUBLIC_KEY_RE: Final[re.Pattern[str]] = re.compile(r"^0x0[23][0-9a-f]{64}$")
_PRIVATE_KEY_RE: Final[re.Pattern[str]] = re.compile(r"^0x[0-9a-f]{64}$")
_SIGNATURE_RE: Final[re.Pattern[str]] = re.compile(r"^0x[0-9a-fA-F]{130}$")

_ETH_MESSAGE_PREFIX: Final[bytes] = b"\x19Ethereum Signed Message:\n"


class ChainType(Enum):
    """Supported chains. Values are the persisted names."""
    ETHEREUM = "ethereum"
    POLKADOT = "polkadot"
    KUSAMA = "kusama"

    @classmethod
    def parse(cls, value: "ChainType | str | None") -> "ChainType":
        """
        Parse a chain name. Empty/None means Ethereum, as in the stored
        records produced before chain selection existed.

        Raises:
            UnsupportedChainTypeError: For any other value
        """
        if isinstance(value, ChainType):
            return value
        if value is None or value == "":
            return cls.ETHEREUM
        if not isinstance(value, str):
            raise UnsupportedChainTypeError(value)
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise UnsupportedChainTypeError(value) from None

    @property
    def derivation_path(self) -> str:
        return _DERIVATION_PATHS[self]

    @property
    def is_substrate(self) -> bool:
        return self in (ChainType.POLKADOT, ChainType.KUSAMA)


_DERIVATION_PATHS: Final[dict[ChainType, str]] = {
    ChainType.ETHEREUM: "m/44'/60'/0'/0/0",
    ChainType.POLKADOT: "m/44'/354'/0'/0/0",
    ChainType.KUSAMA: "m/44'/434'/0'/0/0",
}

_SS58_NETWORK_PREFIX: Final[dict[ChainType, int]] = {
    ChainType.POLKADOT: 0,
    ChainType.KUSAMA: 2,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Wallet:
    """
    Wallet bound to one DeviceId.

    Created on first successful derivation, replaced only by a full
    regeneration, removed only by explicit deletion.
    """
    address: str
    public_key: str
    private_key: str
    chain_type: ChainType
    mnemonic: Mnemonic
    device_id: str
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    generation: int = 0
    companion_of: Optional[str] = None

    def __repr__(self) -> str:
        """Safe representation without secrets."""
        return (
            f"Wallet(address={self.address!r}, chain={self.chain_type.value}, "
            f"device_id={self.device_id!r}, generation={self.generation})"
        )

    __str__ = __repr__

    def to_record(self) -> dict[str, Any]:
        """JSON-serializable form persisted in the key-value store."""
        return {
            "address": self.address,
            "publicKey": self.public_key,
            "privateKey": self.private_key,
            "chainType": self.chain_type.value,
            "mnemonic": self.mnemonic.phrase,
            "deviceId": self.device_id,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "generation": self.generation,
            "companionOf": self.companion_of,
        }

    def redacted(self, reveal_mnemonic: bool = False) -> dict[str, Any]:
        """Display-safe mapping: never includes the private key."""
        data = self.to_record()
        data.pop("privateKey")
        if not reveal_mnemonic:
            data["mnemonic"] = "[HIDDEN]"
        return data

    def with_timestamps(self, created_at: datetime, updated_at: datetime) -> "Wallet":
        return replace(self, created_at=created_at, updated_at=updated_at)


@dataclass(frozen=True, slots=True)
class SignatureCheck:
    """Result of a signature verification."""
    success: bool
    message: str


def keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


def ethereum_address(uncompressed_public_key: bytes) -> str:
    """EIP-55 checksummed address of a 65-byte uncompressed public key."""
    if len(uncompressed_public_key) != 65 or uncompressed_public_key[0] != 0x04:
        raise ValueError("Expected a 65-byte uncompressed public key")
    return EthAddrEncoder.EncodeKey(uncompressed_public_key)


def ss58_encode(account_id: bytes, network_prefix: int) -> str:
    """Encode a 32-byte account id in SS58."""
    if len(account_id) != 32:
        raise ValueError("SS58 account id must be 32 bytes")
    return SS58Encoder.Encode(account_id, network_prefix)


def ss58_decode(address: str) -> tuple[int, bytes]:
    """
    Decode an SS58 address into (network_prefix, account_id).

    Raises:
        ValueError: If the address is malformed or the checksum is wrong
    """
    if not address:
        raise ValueError("Empty SS58 address")
    try:
        prefix, account_id = SS58Decoder.Decode(address)
    except SS58ChecksumError as exc:
        raise ValueError("SS58 checksum mismatch") from exc
    except IndexError as exc:
        raise ValueError("SS58 address is too short") from exc
    if len(account_id) != 32:
        raise ValueError("SS58 account id must be 32 bytes")
    return prefix, account_id


def substrate_address(compressed_public_key: bytes, chain_type: ChainType) -> str:
    account_id = hashlib.blake2b(compressed_public_key, digest_size=32).digest()
    return ss58_encode(account_id, _SS58_NETWORK_PREFIX[chain_type])


def is_valid_address(address: str, chain_type: ChainType | str) -> bool:
    """
    Check an address against the chain's canonical encoding.

    Ethereum addresses must carry a correct EIP-55 checksum.
    """
    chain = ChainType.parse(chain_type)
    if not isinstance(address, str):
        return False
    if chain is ChainType.ETHEREUM:
        if _ETH_ADDRESS_RE.fullmatch(address) is None:
            return False
        try:
            EthAddrDecoder.DecodeAddr(address)
        except ValueError:
            return False
        return True
    try:
        prefix, _ = ss58_decode(address)
    except ValueError:
        return False
    return prefix == _SS58_NETWORK_PREFIX[chain]


def is_valid_public_key(public_key: str, chain_type: ChainType | str) -> bool:
    chain = ChainType.parse(chain_type)
    if not isinstance(public_key, str):
        return False
    pattern = _COMPRESSED_PUBLIC_KEY_RE if chain.is_substrate else _ETH_PUBLIC_KEY_RE
    return pattern.fullmatch(public_key) is not None


def is_valid_private_key(private_key: str) -> bool:
    return isinstance(private_key, str) and _PRIVATE_KEY_RE.fullmatch(private_key) is not None


def derive_wallet(
    mnemonic: Mnemonic | str,
    chain_type: ChainType | str,
    device_id: str,
    *,
    generation: int = 0,
    companion_of: Optional[str] = None,
) -> Wallet:
    """
    Derive the wallet for a mnemonic on a chain.

    Args:
        mnemonic: 12-word mnemonic (Mnemonic or phrase)
        chain_type: One of ChainType
        device_id: DeviceId the wallet is bound to
        generation: Regeneration counter recorded with the wallet
        companion_of: Local DeviceId when the wallet comes from pairing

    Returns:
        Wallet record with fresh timestamps

    Raises:
        UnsupportedChainTypeError: Before any derivation work
        ValidationFailure: If the mnemonic is invalid
        DerivationFailureError: If the crypto backend fails
    """
    chain = ChainType.parse(chain_type)
    validated = check_mnemonic(mnemonic)

    try:
        hd.ensure_backend()
        private_key = hd.derive_private_key(validated.phrase, chain.derivation_path)
        if chain is ChainType.ETHEREUM:
            public_bytes = hd.public_key_from_private(private_key, compressed=False)
            address = ethereum_address(public_bytes)
        else:
            public_bytes = hd.public_key_from_private(private_key, compressed=True)
            address = substrate_address(public_bytes, chain)
    except InternalConsistencyError:
        raise
    except Exception as exc:
        logger.error(
            "Key derivation failed for device %s on %s: %s",
            device_id, chain.value, type(exc).__name__,
        )
        raise DerivationFailureError(
            f"Key derivation failed on {chain.value}: {type(exc).__name__}"
        ) from exc

    public_key = "0x" + public_bytes.hex()
    if not is_valid_address(address, chain) or not is_valid_public_key(public_key, chain):
        raise DerivationFailureError(f"Derived {chain.value} keys do not match the canonical format")

    now = _utcnow()
    return Wallet(
        address=address,
        public_key=public_key,
        private_key="0x" + private_key.hex(),
        chain_type=chain,
        mnemonic=validated,
        device_id=device_id,
        created_at=now,
        updated_at=now,
        generation=generation,
        companion_of=companion_of,
    )


def _message_digest(message: str | bytes, chain: ChainType) -> bytes:
    data = message.encode("utf-8") if isinstance(message, str) else message
    if chain is ChainType.ETHEREUM:
        return keccak256(_ETH_MESSAGE_PREFIX + str(len(data)).encode("ascii") + data)
    return hashlib.blake2b(data, digest_size=32).digest()


def _parse_private_key(private_key: str) -> bytes:
    if not is_valid_private_key(private_key):
        raise ValidationFailure("Invalid private key format")
    return bytes.fromhex(private_key[2:])


def sign_message(
    private_key: str,
    message: str | bytes,
    chain_type: ChainType | str = ChainType.ETHEREUM,
) -> str:
    """
    Sign a message with a 65-byte recoverable ECDSA signature (0x-hex).

    Ethereum uses the EIP-191 personal message digest and a 27/28 ``v``
    byte; Substrate chains sign BLAKE2b-256(message) with a 0/1 recovery id.
    """
    chain = ChainType.parse(chain_type)
    secret = _parse_private_key(private_key)
    digest = _message_digest(message, chain)
    hd.ensure_backend()
    signature = bytearray(hd.PrivateKey(secret).sign_recoverable(digest, hasher=None))
    if chain is ChainType.ETHEREUM:
        signature[64] += 27
    return "0x" + signature.hex()


def verify_signature(
    public_key: str,
    message: str | bytes,
    signature: str,
    chain_type: ChainType | str = ChainType.ETHEREUM,
) -> SignatureCheck:
    """
    Verify a signature by recovering the signer key and comparing it with
    ``public_key`` (compressed or uncompressed 0x-hex).
    """
    chain = ChainType.parse(chain_type)
    if not isinstance(signature, str) or _SIGNATURE_RE.fullmatch(signature) is None:
        return SignatureCheck(False, "Invalid signature format")
    if not isinstance(public_key, str) or not public_key.startswith("0x"):
        return SignatureCheck(False, "Public key must start with 0x prefix")

    try:
        expected = hd.load_public_key(bytes.fromhex(public_key[2:]))
    except ValueError:
        return SignatureCheck(False, "Invalid public key")

    raw = bytearray(bytes.fromhex(signature[2:]))
    if raw[64] >= 27:
        raw[64] -= 27
    if raw[64] > 3:
        return SignatureCheck(False, "Invalid recovery id")

    try:
        recovered = hd.PublicKey.from_signature_and_message(
            bytes(raw), _message_digest(message, chain), hasher=None
        )
    except Exception:
        # coincurve reports unrecoverable signatures with a bare Exception
        return SignatureCheck(False, "Signature is invalid")

    if hmac.compare_digest(recovered.format(compressed=True), expected.format(compressed=True)):
        return SignatureCheck(True, "Signature is valid")
    return SignatureCheck(False, "Signature is invalid")
