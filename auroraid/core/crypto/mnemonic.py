"""
BIP39 Mnemonic Derivation
=========================

Converts 128-bit entropy into a checksummed 12-word mnemonic and
validates mnemonics against the BIP39 English dictionary.

Layout (12 words):
    | 128 bits entropy | 4 bits checksum |  -> 132 bits -> 12 x 11-bit indices
    checksum = first 4 bits of SHA-256(entropy)

The dictionary itself is the official BIP39 English list shipped with
the ``mnemonic`` distribution. It is loaded once, under a lock, and
checked for size and uniqueness before use.

Security Notes:
- Mnemonic objects never print their words in repr/str
- Entropy is copied into a bytearray and wiped after encoding
"""

from __future__ import annotations

import hashlib
import threading
import unicodedata
from dataclasses import dataclass, field
from typing import Final, Iterable, Optional, Sequence

from mnemonic import Mnemonic as _Bip39Reference

from auroraid.core.errors import (
    ChecksumMismatchError,
    InternalConsistencyError,
    InvalidEntropyLengthError,
    InvalidWordError,
    ValidationFailure,
    WordCountMismatchError,
)
from auroraid.core.memory.zeroization import zeroizing


ENTROPY_BYTES: Final[int] = 16
ENTROPY_BITS: Final[int] = ENTROPY_BYTES * 8
CHECKSUM_BITS: Final[int] = ENTROPY_BITS // 32
WORD_COUNT: Final[int] = 12
BITS_PER_WORD: Final[int] = 11
DICTIONARY_SIZE: Final[int] = 2048

_wordlist: Optional[tuple[str, ...]] = None
_word_index: dict[str, int] = {}
_wordlist_lock = threading.Lock()


def _load_wordlist() -> tuple[str, ...]:
    words = tuple(_Bip39Reference("english").wordlist)
    if len(words) != DICTIONARY_SIZE:
        raise InternalConsistencyError(
            f"BIP39 dictionary must hold {DICTIONARY_SIZE} words, got {len(words)}"
        )
    if len(set(words)) != DICTIONARY_SIZE:
        raise InternalConsistencyError("BIP39 dictionary contains duplicate words")
    if words[0] != "abandon" or words[-1] != "zoo":
        raise InternalConsistencyError("BIP39 dictionary is not the English list")
    return words


def get_wordlist() -> tuple[str, ...]:
    """Return the 2048-word dictionary, loading it on first use."""
    global _wordlist
    if _wordlist is None:
        with _wordlist_lock:
            if _wordlist is None:
                words = _load_wordlist()
                _word_index.update({w: i for i, w in enumerate(words)})
                _wordlist = words
    return _wordlist


def word_index(word: str) -> Optional[int]:
    """Dictionary index of ``word``, or None if it is not a BIP39 word."""
    get_wordlist()
    return _word_index.get(word)


def is_dictionary_word(word: str) -> bool:
    return word_index(word) is not None


def _checksum(entropy: bytes | bytearray) -> int:
    return hashlib.sha256(entropy).digest()[0] >> (8 - CHECKSUM_BITS)


@dataclass(frozen=True)
class Mnemonic:
    """
    Ordered 12-word mnemonic.

    Construction only checks shape (12 dictionary words); use
    ``check_mnemonic`` or ``validate_mnemonic`` for the checksum.
    """
    words: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.words) != WORD_COUNT:
            raise WordCountMismatchError(len(self.words), WORD_COUNT)
        invalid = [w for w in self.words if not is_dictionary_word(w)]
        if invalid:
            raise InvalidWordError(invalid[0], invalid)

    @classmethod
    def from_phrase(cls, phrase: str) -> "Mnemonic":
        """Build from a space separated phrase (whitespace and case normalised)."""
        normalized = unicodedata.normalize("NFKD", phrase).lower()
        return cls(tuple(normalized.split()))

    @property
    def phrase(self) -> str:
        return " ".join(self.words)

    def __iter__(self):
        return iter(self.words)

    def __len__(self) -> int:
        return len(self.words)

    def __repr__(self) -> str:
        return f"Mnemonic(words={len(self.words)}, phrase=[REDACTED])"

    __str__ = __repr__


@dataclass(frozen=True)
class MnemonicValidation:
    """Outcome of ``validate_mnemonic``: never raised, always returned."""
    is_valid: bool
    errors: tuple[ValidationFailure, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return self.is_valid

    @property
    def messages(self) -> list[str]:
        return [str(e) for e in self.errors]


def entropy_to_mnemonic(entropy: bytes | bytearray) -> Mnemonic:
    """
    Encode exactly 16 bytes of entropy as a 12-word mnemonic.

    Raises:
        InvalidEntropyLengthError: If entropy is not 16 bytes
    """
    if len(entropy) != ENTROPY_BYTES:
        raise InvalidEntropyLengthError(len(entropy), ENTROPY_BYTES)

    wordlist = get_wordlist()
    with zeroizing(entropy) as buf:
        bits = (int.from_bytes(buf, "big") << CHECKSUM_BITS) | _checksum(buf)

    indices = [
        (bits >> (BITS_PER_WORD * (WORD_COUNT - 1 - i))) & (DICTIONARY_SIZE - 1)
        for i in range(WORD_COUNT)
    ]
    return Mnemonic(tuple(wordlist[i] for i in indices))


def _split_bits(indices: Sequence[int]) -> tuple[int, int]:
    total = 0
    for idx in indices:
        total = (total << BITS_PER_WORD) | idx
    return total >> CHECKSUM_BITS, total & ((1 << CHECKSUM_BITS) - 1)


def _as_words(words: Mnemonic | str | Iterable[str]) -> list[str]:
    if isinstance(words, Mnemonic):
        return list(words.words)
    if isinstance(words, str):
        return unicodedata.normalize("NFKD", words).lower().split()
    return [str(w).lower() for w in words]


def validate_mnemonic(words: Mnemonic | str | Iterable[str]) -> MnemonicValidation:
    """
    Validate word count, dictionary membership and checksum.

    Returns every problem found instead of raising. The checksum is only
    checked once the count and all words are valid.
    """
    word_list = _as_words(words)
    errors: list[ValidationFailure] = []

    if len(word_list) != WORD_COUNT:
        errors.append(WordCountMismatchError(len(word_list), WORD_COUNT))

    unknown = [w for w in word_list if not is_dictionary_word(w)]
    if unknown:
        errors.append(InvalidWordError(unknown[0], unknown))

    if errors:
        return MnemonicValidation(False, tuple(errors))

    entropy_int, checksum = _split_bits([_word_index[w] for w in word_list])
    with zeroizing(entropy_int.to_bytes(ENTROPY_BYTES, "big")) as entropy:
        expected = _checksum(entropy)

    if checksum != expected:
        return MnemonicValidation(False, (ChecksumMismatchError(),))

    return MnemonicValidation(True)


def check_mnemonic(words: Mnemonic | str | Iterable[str]) -> Mnemonic:
    """
    Raising form of ``validate_mnemonic``.

    Returns:
        The validated Mnemonic

    Raises:
        The first ValidationFailure found
    """
    result = validate_mnemonic(words)
    if not result.is_valid:
        raise result.errors[0]
    if isinstance(words, Mnemonic):
        return words
    return Mnemonic(tuple(_as_words(words)))


def mnemonic_to_entropy(words: Mnemonic | str | Iterable[str]) -> bytes:
    """Decode a valid mnemonic back to its 16 entropy bytes."""
    mnemonic = check_mnemonic(words)
    entropy_int, _ = _split_bits([_word_index[w] for w in mnemonic.words])
    return entropy_int.to_bytes(ENTROPY_BYTES, "big")
