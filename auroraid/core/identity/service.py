"""
Identity Service
================

Orchestrates the device-bound identity lifecycle:

    fingerprint -> DeviceId -> entropy -> mnemonic -> wallet -> store

Lifecycle per DeviceId:
    UNINITIALIZED --generate--> GENERATING --> READY
    READY --regenerate (confirmed)--> GENERATING --> READY

Entropy:
    generation 0   SHA-256(device_id)[:16]
    generation n   HKDF-SHA256(SHA-256(device_id), info="auroraid-regeneration-n")[:16]

Usage:
    config = IdentityConfig.load()
    service = IdentityService(open_store(config), config)
    wallet = service.generate_wallet(service.current_device_id())

WARNING:
- The wallet is a pure function of the DeviceId, and the DeviceId is a
  pure function of observable device attributes. Anyone who can
  reproduce those attributes can reproduce the wallet.
- Stored records hold the mnemonic and private key. Protect the store.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Final, Iterator, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from auroraid.core.config import IdentityConfig
from auroraid.core.crypto import wallet as wallet_ops
from auroraid.core.crypto.mnemonic import (
    ENTROPY_BYTES,
    Mnemonic,
    entropy_to_mnemonic,
    validate_mnemonic,
)
from auroraid.core.crypto.wallet import ChainType, SignatureCheck, Wallet, derive_wallet
from auroraid.core.device.fingerprint import (
    FingerprintCollector,
    derive_device_id,
    digest_to_device_id,
    is_valid_device_id,
)
from auroraid.core.errors import (
    CompanionRecordCorruptError,
    CorruptStoredRecordError,
    InternalConsistencyError,
    InvalidDeviceIdError,
    PairedWalletRegenerationError,
    RegenerationInProgressError,
    RegenerationNotConfirmedError,
    WalletNotFoundError,
)
from auroraid.core.identity.records import WalletStatus, load_wallet_record
from auroraid.core.memory.zeroization import secure_zero
from auroraid.core.pairing.decoder import WordStatus, decode_pairing_frame
from auroraid.db.kv_store import KeyValueStore


logger = logging.getLogger(__name__)

ACTIVE_DEVICE_KEY: Final[str] = "active_device_id"
REGENERATION_INFO_PREFIX: Final[str] = "auroraid-regeneration-"


class IdentityState(Enum):
    UNINITIALIZED = "uninitialized"
    GENERATING = "generating"
    READY = "ready"


def generation_entropy(device_id: str, generation: int = 0) -> bytearray:
    """
    Entropy for a DeviceId at a regeneration counter.

    The caller owns the returned buffer and must zeroize it.
    """
    if generation < 0:
        raise ValueError("generation must be non-negative")
    base = hashlib.sha256(device_id.encode("ascii")).digest()
    if generation == 0:
        return bytearray(base[:ENTROPY_BYTES])
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=ENTROPY_BYTES,
        salt=None,
        info=f"{REGENERATION_INFO_PREFIX}{generation}".encode("ascii"),
    )
    return bytearray(hkdf.derive(base))


def pairing_device_id(mnemonic: Mnemonic) -> str:
    """DeviceId-format key for a wallet recovered through pairing."""
    return digest_to_device_id(hashlib.sha256(mnemonic.phrase.encode("utf-8")).digest())


def _stored_generation(raw: Any) -> int:
    if isinstance(raw, dict):
        value = raw.get("generation")
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
    return 0


def _companion_mnemonic(device_id: str, raw: Any) -> Optional[Mnemonic]:
    """Stored mnemonic of a paired record, if it still hashes to the record key."""
    if not isinstance(raw, dict):
        return None
    phrase = raw.get("mnemonic")
    if not isinstance(phrase, str) or not validate_mnemonic(phrase).is_valid:
        return None
    mnemonic = Mnemonic.from_phrase(phrase)
    if pairing_device_id(mnemonic) != device_id:
        return None
    return mnemonic


def is_companion_record(device_id: str, raw: Any) -> bool:
    """True for records written by pairing, even when partly corrupt."""
    if isinstance(raw, dict) and raw.get("companionOf"):
        return True
    return _companion_mnemonic(device_id, raw) is not None


class IdentityService:
    """
    Device-bound wallet management.

    One instance owns the store. Writes for the same DeviceId are
    serialized by a per-device lock; a regeneration that finds the lock
    held is rejected instead of queued.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[IdentityConfig] = None,
        collector: Optional[FingerprintCollector] = None,
    ) -> None:
        self._store = store
        self._config = config or IdentityConfig()
        self._collector = collector or FingerprintCollector(
            screen_resolution=self._config.wallet.screen_resolution
        )
        self._locks: dict[str, threading.Lock] = {}
        self._states: dict[str, IdentityState] = {}
        self._registry_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"IdentityService(store={self._store!r})"

    # -- locking and state ---------------------------------------------

    def _lock_for(self, device_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(device_id, threading.Lock())

    @contextmanager
    def _device_lock(self, device_id: str) -> Iterator[None]:
        lock = self._lock_for(device_id)
        with lock:
            yield

    def _set_state(self, device_id: str, state: IdentityState) -> None:
        with self._registry_lock:
            self._states[device_id] = state

    def state(self, device_id: str) -> IdentityState:
        """Lifecycle state of a DeviceId."""
        with self._registry_lock:
            current = self._states.get(device_id)
        if current is IdentityState.GENERATING:
            return current
        if self.check_wallet_status(device_id).is_generated:
            return IdentityState.READY
        return IdentityState.UNINITIALIZED

    # -- device id -----------------------------------------------------

    @staticmethod
    def validate_device_id(device_id: object) -> bool:
        return is_valid_device_id(device_id)

    @staticmethod
    def _require_device_id(device_id: object) -> str:
        if not is_valid_device_id(device_id):
            raise InvalidDeviceIdError()
        return device_id

    def current_device_id(self) -> str:
        """Return the stored active DeviceId, deriving and storing it on first use."""
        with self._registry_lock:
            stored = self._store.get(ACTIVE_DEVICE_KEY)
            if is_valid_device_id(stored):
                return stored
            if stored is not None:
                logger.warning("Stored active device ID is malformed; deriving a new one")

            device_id = derive_device_id(self._collector.collect())
            self._store.set(ACTIVE_DEVICE_KEY, device_id)
            logger.info("Active device ID established: %s", device_id)
            return device_id

    # -- wallet lifecycle ----------------------------------------------

    def _derive(
        self,
        device_id: str,
        chain: ChainType,
        generation: int,
    ) -> Wallet:
        entropy = generation_entropy(device_id, generation)
        try:
            mnemonic = entropy_to_mnemonic(entropy)
        finally:
            secure_zero(entropy)
        return derive_wallet(mnemonic, chain, device_id, generation=generation)

    def _persist(self, wallet: Wallet) -> Wallet:
        """Write the record and re-read it through the completeness check."""
        self._store.set(wallet.device_id, wallet.to_record())
        try:
            return load_wallet_record(wallet.device_id, self._store.get(wallet.device_id))
        except CorruptStoredRecordError as exc:
            logger.critical("Record for device %s unreadable right after writing it", wallet.device_id)
            raise CorruptStoredRecordError(wallet.device_id, exc.missing, fatal=True) from exc

    def _repair_companion(
        self,
        device_id: str,
        raw: Any,
        exc: CorruptStoredRecordError,
    ) -> Wallet:
        """
        Rebuild a corrupt paired record from its own mnemonic.

        Paired wallets never fall back to fingerprint entropy. Without a
        usable mnemonic the record is removed and the user must pair again.
        Caller holds the device lock.
        """
        mnemonic = _companion_mnemonic(device_id, raw)
        if mnemonic is None:
            self._store.remove(device_id)
            with self._registry_lock:
                self._states.pop(device_id, None)
            logger.error(
                "Paired record %s is corrupt beyond repair (%s); removed",
                device_id, ", ".join(exc.missing),
            )
            raise CompanionRecordCorruptError(device_id, exc.missing) from exc

        companion_of = raw.get("companionOf")
        if not is_valid_device_id(companion_of):
            companion_of = self.current_device_id()

        logger.warning(
            "Rebuilding paired record %s from its stored mnemonic (%s)",
            device_id, ", ".join(exc.missing),
        )
        wallet = self._persist(
            derive_wallet(mnemonic, ChainType.ETHEREUM, device_id, companion_of=companion_of)
        )
        self._set_state(device_id, IdentityState.READY)
        return wallet

    def get_wallet(self, device_id: str) -> Optional[Wallet]:
        """
        Load the stored wallet for a DeviceId.

        Returns:
            The Wallet, or None when nothing is stored

        Raises:
            InvalidDeviceIdError: If device_id is malformed
            CorruptStoredRecordError: If the record fails validation
        """
        self._require_device_id(device_id)
        raw = self._store.get(device_id)
        if raw is None:
            return None
        return load_wallet_record(device_id, raw)

    def generate_wallet(
        self,
        device_id: str,
        chain_type: ChainType | str | None = None,
    ) -> Wallet:
        """
        Return the wallet for a DeviceId, creating it on first call.

        An existing complete record is returned unchanged, whatever
        ``chain_type`` asks for. A corrupt record is deleted and the
        wallet derived again once. A corrupt paired record is rebuilt
        from its own mnemonic instead, or removed when that is unusable.

        Raises:
            InvalidDeviceIdError: If device_id is malformed
            UnsupportedChainTypeError: If chain_type is unknown
            DerivationFailureError: If key derivation fails (retryable)
            PersistenceFailureError: If the store fails (retryable)
            CorruptStoredRecordError: With fatal=True if the rewritten
                record is still unreadable
            CompanionRecordCorruptError: If a paired record cannot be
                rebuilt and the hardware device must be paired again
        """
        self._require_device_id(device_id)
        chain = ChainType.parse(chain_type or self._config.wallet.default_chain_type)

        with self._device_lock(device_id):
            raw = self._store.get(device_id)
            generation = 0
            if raw is not None:
                try:
                    wallet = load_wallet_record(device_id, raw)
                except CorruptStoredRecordError as exc:
                    if is_companion_record(device_id, raw):
                        return self._repair_companion(device_id, raw, exc)
                    logger.warning(
                        "Discarding corrupt record for device %s (%s)",
                        device_id, ", ".join(exc.missing),
                    )
                    generation = _stored_generation(raw)
                    self._store.remove(device_id)
                else:
                    self._set_state(device_id, IdentityState.READY)
                    return wallet

            self._set_state(device_id, IdentityState.GENERATING)
            try:
                wallet = self._persist(self._derive(device_id, chain, generation))
            except Exception:
                self._set_state(device_id, IdentityState.UNINITIALIZED)
                raise

            self._set_state(device_id, IdentityState.READY)
            logger.info(
                "Wallet generated for device %s on %s (generation %d)",
                device_id, chain.value, generation,
            )
            return wallet

    def regenerate_wallet(
        self,
        device_id: str,
        *,
        confirmed: bool = False,
        chain_type: ChainType | str | None = None,
    ) -> Wallet:
        """
        Replace the wallet of a DeviceId with the next generation.

        The previous mnemonic and keys are gone afterwards, so callers
        must obtain explicit user confirmation first.

        Raises:
            RegenerationNotConfirmedError: Without confirmed=True
            RegenerationInProgressError: If another write for the same
                DeviceId is running
            PairedWalletRegenerationError: If the record came from pairing
        """
        self._require_device_id(device_id)
        if not confirmed:
            raise RegenerationNotConfirmedError(device_id)

        lock = self._lock_for(device_id)
        if not lock.acquire(blocking=False):
            raise RegenerationInProgressError(device_id)
        try:
            raw = self._store.get(device_id)
            if raw is not None and is_companion_record(device_id, raw):
                raise PairedWalletRegenerationError(device_id)
            previous: Optional[Wallet] = None
            if raw is not None:
                try:
                    previous = load_wallet_record(device_id, raw)
                except CorruptStoredRecordError:
                    logger.warning("Regenerating over a corrupt record for device %s", device_id)

            if chain_type is not None:
                chain = ChainType.parse(chain_type)
            elif previous is not None:
                chain = previous.chain_type
            else:
                chain = ChainType.parse(self._config.wallet.default_chain_type)
            generation = (previous.generation if previous else _stored_generation(raw)) + 1

            prior_state = IdentityState.READY if previous else IdentityState.UNINITIALIZED
            self._set_state(device_id, IdentityState.GENERATING)
            try:
                fresh = self._derive(device_id, chain, generation)
                if previous is not None:
                    fresh = fresh.with_timestamps(previous.created_at, fresh.updated_at)
                wallet = self._persist(fresh)
            except Exception:
                self._set_state(device_id, prior_state)
                raise

            self._set_state(device_id, IdentityState.READY)
            logger.info("Wallet regenerated for device %s (generation %d)", device_id, generation)
            return wallet
        finally:
            lock.release()

    def decrypt_and_generate_mnemonic(self, raw_input: str) -> Wallet:
        """
        Decode a hardware pairing frame and store the companion wallet.

        The wallet is keyed by the pairing identifier derived from the
        recovered phrase and linked to the active local DeviceId. The
        local wallet is never modified.

        Raises:
            PairingError: If the frame cannot be decoded
        """
        result = decode_pairing_frame(raw_input)
        pairing_id = pairing_device_id(result.mnemonic)
        local_id = self.current_device_id()
        if pairing_id == local_id:
            raise InternalConsistencyError("Pairing identifier collides with the local device ID")

        with self._device_lock(pairing_id):
            existing = self._store.get(pairing_id)
            wallet = derive_wallet(
                result.mnemonic, ChainType.ETHEREUM, pairing_id, companion_of=local_id
            )
            if existing is not None:
                try:
                    previous = load_wallet_record(pairing_id, existing)
                except CorruptStoredRecordError:
                    logger.warning("Replacing corrupt companion record %s", pairing_id)
                else:
                    wallet = wallet.with_timestamps(previous.created_at, wallet.updated_at)

            stored = self._persist(wallet)

        self._set_state(pairing_id, IdentityState.READY)
        logger.info(
            "Companion wallet %s stored for device %s (%d word(s) de-obfuscated)",
            pairing_id, local_id,
            sum(1 for r in result.recoveries if r.status is WordStatus.RECOVERED),
        )
        return stored

    def check_wallet_status(self, device_id: str) -> WalletStatus:
        """Report whether a complete wallet is stored. Corrupt records count as absent."""
        if not is_valid_device_id(device_id):
            return WalletStatus.missing()
        raw = self._store.get(device_id)
        if raw is None:
            return WalletStatus.missing()
        try:
            return WalletStatus.from_wallet(load_wallet_record(device_id, raw))
        except CorruptStoredRecordError:
            return WalletStatus.missing()

    def delete_wallet(self, device_id: str) -> bool:
        """Remove the wallet record. Returns False if nothing was stored."""
        self._require_device_id(device_id)
        with self._device_lock(device_id):
            existed = self._store.get(device_id) is not None
            self._store.remove(device_id)
            with self._registry_lock:
                self._states.pop(device_id, None)
        if existed:
            logger.info("Wallet deleted for device %s", device_id)
        return existed

    # -- signatures ----------------------------------------------------

    def _require_wallet(self, device_id: str) -> Wallet:
        wallet = self.get_wallet(device_id)
        if wallet is None:
            raise WalletNotFoundError(device_id)
        return wallet

    def sign_message(self, device_id: str, message: str | bytes) -> str:
        """Sign with the stored wallet of a DeviceId."""
        wallet = self._require_wallet(device_id)
        return wallet_ops.sign_message(wallet.private_key, message, wallet.chain_type)

    def verify_signature(
        self,
        device_id: str,
        message: str | bytes,
        signature: str,
    ) -> SignatureCheck:
        """Verify a signature against the stored wallet's public key."""
        wallet = self._require_wallet(device_id)
        return wallet_ops.verify_signature(
            wallet.public_key, message, signature, wallet.chain_type
        )
