"""
Identity Error Taxonomy
=======================

Typed errors raised by the identity subsystem.

Validation failures describe bad input (a malformed pairing frame, an
unknown word, a wrong checksum) and are expected in normal operation:
callers catch them and show an actionable message. Retryable failures
wrap errors coming from the crypto backend or the key-value store.

Security Notes:
- Messages never include private keys or mnemonic phrases
- Offending tokens from pairing input are included (they are not secret
  until recovered into a valid mnemonic)
"""

from __future__ import annotations

from typing import Optional, Sequence


class IdentityError(Exception):
    """Base class for all identity subsystem errors."""

    retryable: bool = False


class ValidationFailure(IdentityError, ValueError):
    """Input failed validation. Never fatal for the caller."""


class InvalidDeviceIdError(ValidationFailure):
    """Device ID is not 10 lowercase alphanumeric characters."""

    def __init__(self, message: str = "Device ID must be exactly 10 characters of [a-z0-9]"):
        super().__init__(message)


class InvalidEntropyLengthError(ValidationFailure):
    """Entropy buffer has the wrong size."""

    def __init__(self, length: int, expected: int = 16):
        self.length = length
        self.expected = expected
        super().__init__(f"Entropy must be exactly {expected} bytes, got {length}")


class ChecksumMismatchError(ValidationFailure):
    """Mnemonic words are valid individually but the checksum does not match."""

    def __init__(self, message: str = "Mnemonic checksum mismatch"):
        super().__init__(message)


class WordCountMismatchError(ValidationFailure):
    """Wrong number of mnemonic words."""

    def __init__(self, observed: int, expected: int = 12):
        self.observed = observed
        self.expected = expected
        super().__init__(f"Expected exactly {expected} words, got {observed}")


class InvalidWordError(ValidationFailure):
    """A word is not in the mnemonic dictionary."""

    def __init__(self, token: str, tokens: Optional[Sequence[str]] = None):
        self.token = token
        self.tokens = tuple(tokens) if tokens else (token,)
        super().__init__(f"Invalid mnemonic word(s): {', '.join(self.tokens)}")


class UnsupportedChainTypeError(ValidationFailure):
    """Chain type is not one of the supported chains."""

    def __init__(self, chain_type: object):
        self.chain_type = chain_type
        super().__init__(f"Unsupported chain type: {chain_type!r}")


class PairingError(ValidationFailure):
    """Base class for pairing frame decoding failures."""


class MalformedFrameError(PairingError):
    """Pairing frame is missing its start or end marker."""


class InvalidCharsetError(PairingError):
    """Pairing payload contains characters other than letters and whitespace."""

    def __init__(self, message: str = "Pairing payload may only contain letters and whitespace"):
        super().__init__(message)


class PairingWordCountError(PairingError, WordCountMismatchError):
    """Pairing payload does not hold exactly 12 tokens."""


class PairingInvalidWordError(PairingError, InvalidWordError):
    """A pairing token is neither a dictionary word nor shift-decodable to one."""


class PairingChecksumError(PairingError, ChecksumMismatchError):
    """All recovered pairing words are valid but form a bad checksum."""


class RetryableError(IdentityError):
    """Transient failure; the operation may be retried."""

    retryable = True


class DerivationFailureError(RetryableError):
    """The external key derivation primitive failed."""


class PersistenceFailureError(RetryableError):
    """The key-value store failed to read, write or remove a record."""


class CorruptStoredRecordError(IdentityError):
    """A stored wallet record failed the completeness check."""

    def __init__(
        self,
        device_id: str,
        missing: Sequence[str] = (),
        fatal: bool = False,
        message: Optional[str] = None,
    ):
        self.device_id = device_id
        self.missing = tuple(missing)
        self.fatal = fatal
        if message is None:
            detail = f" (missing/invalid: {', '.join(self.missing)})" if self.missing else ""
            prefix = "Stored record is still corrupt after regeneration" if fatal else "Corrupt stored record"
            message = f"{prefix} for device {device_id}{detail}"
        super().__init__(message)


class InternalConsistencyError(IdentityError):
    """A freshly generated value failed its own self-check. Always fatal."""


class RegenerationInProgressError(IdentityError):
    """A regeneration for the same device is already running."""

    def __init__(self, device_id: str):
        self.device_id = device_id
        super().__init__(f"Regeneration already in progress for device {device_id}")


class RegenerationNotConfirmedError(IdentityError):
    """Regeneration was requested without explicit user confirmation."""

    def __init__(self, device_id: str):
        self.device_id = device_id
        super().__init__(
            f"Regenerating the wallet for device {device_id} replaces its keys; "
            f"pass confirmed=True after the user has confirmed"
        )


class WalletNotFoundError(IdentityError):
    """No usable wallet is stored for the DeviceId."""

    def __init__(self, device_id: str):
        self.device_id = device_id
        super().__init__(f"No wallet stored for device {device_id}")


class CompanionRecordCorruptError(CorruptStoredRecordError):
    """A paired wallet record is corrupt and its mnemonic cannot be recovered."""

    def __init__(self, device_id: str, missing: Sequence[str] = ()):
        super().__init__(
            device_id,
            missing,
            message=(
                f"Paired wallet record for device {device_id} is corrupt and was removed; "
                f"pair the hardware device again"
            ),
        )


class PairedWalletRegenerationError(IdentityError):
    """Regeneration was requested for a wallet that came from pairing."""

    def __init__(self, device_id: str):
        self.device_id = device_id
        super().__init__(
            f"Device {device_id} holds a paired wallet; pair the hardware device "
            f"again instead of regenerating"
        )
