"""
Hardware Pairing Decoder
========================

Decodes the text a paired hardware input device types into the host.

Frame format:
    zczc <12 whitespace separated alphabetic tokens> nnnn

Each token is either a literal BIP39 word or the word with every letter
shifted forward 3 places (a->d, x->a). The decoder does not know which
encoding the device used, so every token is tried both ways:

    token in dictionary            -> LITERAL
    token shifted back 3 in dict   -> RECOVERED
    otherwise                      -> INVALID

Decoding steps, each with its own error:
    1. framing   -> MalformedFrameError
    2. charset   -> InvalidCharsetError
    3. count     -> PairingWordCountError (reports the observed count)
    4. per word  -> PairingInvalidWordError (names the offending token)
    5. checksum  -> PairingChecksumError
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Final, Iterable, Optional

from auroraid.core.crypto.mnemonic import (
    WORD_COUNT,
    Mnemonic,
    is_dictionary_word,
    validate_mnemonic,
)
from auroraid.core.errors import (
    ChecksumMismatchError,
    InvalidCharsetError,
    MalformedFrameError,
    PairingChecksumError,
    PairingInvalidWordError,
    PairingWordCountError,
)
from auroraid.utils.validators import ValidationError, validate_text_safe


logger = logging.getLogger(__name__)

START_MARKER: Final[str] = "zczc"
END_MARKER: Final[str] = "nnnn"
SHIFT: Final[int] = 3
MAX_FRAME_LENGTH: Final[int] = 4096

_PAYLOAD_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z\s]*$")


class WordStatus(Enum):
    """How a pairing token was resolved."""
    LITERAL = "literal"
    RECOVERED = "recovered"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class WordRecovery:
    """Tagged per-token result."""
    token: str
    status: WordStatus
    word: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.status is not WordStatus.INVALID


@dataclass(frozen=True)
class PairingResult:
    """Successful decode: the mnemonic plus how each word was obtained."""
    mnemonic: Mnemonic
    recoveries: tuple[WordRecovery, ...]

    @property
    def obfuscated(self) -> bool:
        """True when at least one word needed de-obfuscation."""
        return any(r.status is WordStatus.RECOVERED for r in self.recoveries)

    def __repr__(self) -> str:
        recovered = sum(1 for r in self.recoveries if r.status is WordStatus.RECOVERED)
        return f"PairingResult(words={len(self.recoveries)}, recovered={recovered})"


def shift_word(word: str, offset: int) -> str:
    """Rotate each a-z letter of ``word`` by ``offset`` (mod 26)."""
    return "".join(
        chr((ord(c) - ord("a") + offset) % 26 + ord("a")) if "a" <= c <= "z" else c
        for c in word.lower()
    )


def deobfuscate_word(word: str) -> str:
    """Shift back 3 letters, wrapping a->x."""
    return shift_word(word, -SHIFT)


def obfuscate_word(word: str) -> str:
    """Shift forward 3 letters, as the hardware device does."""
    return shift_word(word, SHIFT)


def recover_word(token: str) -> WordRecovery:
    """Resolve one token, preferring the literal reading."""
    lowered = token.lower()
    if is_dictionary_word(lowered):
        return WordRecovery(token, WordStatus.LITERAL, lowered)
    shifted = deobfuscate_word(lowered)
    if is_dictionary_word(shifted):
        return WordRecovery(token, WordStatus.RECOVERED, shifted)
    return WordRecovery(token, WordStatus.INVALID)


def extract_payload(raw: str) -> str:
    """
    Check framing and charset and return the interior payload.

    Raises:
        MalformedFrameError: Input is not text, or a marker is missing
        InvalidCharsetError: Payload holds anything but letters/whitespace
    """
    try:
        validate_text_safe(raw, max_length=MAX_FRAME_LENGTH, field_name="pairing input")
    except ValidationError as exc:
        raise MalformedFrameError(str(exc)) from exc

    cleaned = raw.strip()
    if len(cleaned) < len(START_MARKER) + len(END_MARKER):
        raise MalformedFrameError(
            f"Pairing input must start with '{START_MARKER}' and end with '{END_MARKER}'"
        )
    if cleaned[:len(START_MARKER)].lower() != START_MARKER:
        raise MalformedFrameError(f"Pairing input must start with '{START_MARKER}'")
    if cleaned[-len(END_MARKER):].lower() != END_MARKER:
        raise MalformedFrameError(f"Pairing input must end with '{END_MARKER}'")

    payload = cleaned[len(START_MARKER):-len(END_MARKER)]
    if not _PAYLOAD_RE.fullmatch(payload):
        raise InvalidCharsetError()
    return payload


def decode_pairing_frame(raw: str) -> PairingResult:
    """
    Decode a pairing frame into a checksum-valid 12-word mnemonic.

    Args:
        raw: Text as received from the hardware device

    Returns:
        PairingResult with the mnemonic and per-word recovery tags

    Raises:
        PairingError: One of the subclasses listed in the module docstring
    """
    payload = extract_payload(raw)

    tokens = payload.split()
    if len(tokens) != WORD_COUNT:
        raise PairingWordCountError(len(tokens), WORD_COUNT)

    recoveries = tuple(recover_word(t) for t in tokens)
    invalid = [r.token for r in recoveries if not r.is_valid]
    if invalid:
        logger.info("Pairing frame rejected: %d unrecognised token(s)", len(invalid))
        raise PairingInvalidWordError(invalid[0], invalid)

    words = tuple(r.word for r in recoveries)
    validation = validate_mnemonic(words)
    if not validation.is_valid:
        if any(isinstance(e, ChecksumMismatchError) for e in validation.errors):
            raise PairingChecksumError("Recovered words do not form a valid mnemonic checksum")
        raise validation.errors[0]

    result = PairingResult(Mnemonic(words), recoveries)
    logger.debug("Pairing frame decoded (%r)", result)
    return result


def encode_pairing_frame(mnemonic: Mnemonic | Iterable[str], obfuscate: bool = True) -> str:
    """Build a frame the way the hardware device sends it."""
    words = mnemonic.words if isinstance(mnemonic, Mnemonic) else tuple(mnemonic)
    body = " ".join(obfuscate_word(w) if obfuscate else w for w in words)
    return f"{START_MARKER} {body} {END_MARKER}"
