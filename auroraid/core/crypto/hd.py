"""
Hierarchical Deterministic Key Derivation
=========================================

BIP39 seed stretching and BIP32 private child derivation on secp256k1.

Primitives:
    - BIP39 seed generation via ``bip_utils`` (Bip39SeedGenerator)
    - BIP32 path derivation via ``bip_utils`` (Bip32Slip10Secp256k1)
    - secp256k1 key serialisation and recovery via ``coincurve``

The backend is initialised lazily, exactly once, behind a lock. The first
initialisation runs a known-answer test (private key 1 must map to the
curve generator) so a broken native build fails loudly before any key is
handed out.
"""

from __future__ import annotations

import threading
from typing import Final

from bip_utils import Bip32Slip10Secp256k1, Bip39SeedGenerator
from coincurve import PrivateKey, PublicKey

from auroraid.core.errors import InternalConsistencyError
from auroraid.core.memory.zeroization import secure_zero


# Compressed encoding of the secp256k1 generator G
_GENERATOR_COMPRESSED: Final[str] = (
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)

_backend_ready = False
_backend_lock = threading.Lock()


def ensure_backend() -> None:
    """Initialise the secp256k1 backend once. Safe to call from any thread."""
    global _backend_ready
    if _backend_ready:
        return
    with _backend_lock:
        if _backend_ready:
            return
        generator = PrivateKey((1).to_bytes(32, "big")).public_key.format(compressed=True)
        if generator.hex() != _GENERATOR_COMPRESSED:
            raise InternalConsistencyError("secp256k1 backend failed its known-answer test")
        _backend_ready = True


def is_backend_ready() -> bool:
    return _backend_ready


def mnemonic_to_seed(phrase: str, passphrase: str = "") -> bytearray:
    """
    Stretch a mnemonic phrase into a 64-byte BIP39 seed.

    The caller owns the returned buffer and should wipe it after use.
    """
    return bytearray(Bip39SeedGenerator(phrase).Generate(passphrase))


def derive_private_key(phrase: str, path: str, passphrase: str = "") -> bytes:
    """Derive the 32-byte private key at ``path`` (e.g. ``m/44'/60'/0'/0/0``)."""
    ensure_backend()
    seed = mnemonic_to_seed(phrase, passphrase)
    try:
        node = Bip32Slip10Secp256k1.FromSeed(bytes(seed)).DerivePath(path)
    finally:
        secure_zero(seed)
    return node.PrivateKey().Raw().ToBytes()


def public_key_from_private(private_key: bytes, compressed: bool) -> bytes:
    ensure_backend()
    return PrivateKey(private_key).public_key.format(compressed=compressed)


def load_public_key(data: bytes) -> PublicKey:
    ensure_backend()
    return PublicKey(data)
