"""
Tests for the hardware pairing decoder.
"""

from __future__ import annotations

import pytest

from auroraid.core.crypto.mnemonic import Mnemonic
from auroraid.core.errors import (
    ChecksumMismatchError,
    InvalidCharsetError,
    InvalidWordError,
    MalformedFrameError,
    PairingChecksumError,
    PairingError,
    PairingInvalidWordError,
    PairingWordCountError,
    WordCountMismatchError,
)
from auroraid.core.pairing.decoder import (
    WordStatus,
    decode_pairing_frame,
    deobfuscate_word,
    encode_pairing_frame,
    obfuscate_word,
    recover_word,
    shift_word,
)
from auroraid.utils.validators import ValidationError, validate_text_safe

from conftest import ABANDON_PHRASE, LEGAL_PHRASE


def frame(body: str) -> str:
    return f"zczc {body} nnnn"


class TestShift:

    def test_obfuscate(self):
        assert obfuscate_word("abandon") == "dedqgrq"
        assert obfuscate_word("xyz") == "abc"

    def test_deobfuscate_wraps(self):
        assert deobfuscate_word("abc") == "xyz"
        assert deobfuscate_word("dedqgrq") == "abandon"

    def test_lowercases(self):
        assert deobfuscate_word("DERXW") == "about"

    def test_arbitrary_offset(self):
        assert shift_word("hello", 26) == "hello"
        assert shift_word("hello", 1) == "ifmmp"


class TestRecoverWord:

    def test_literal(self):
        r = recover_word("Abandon")
        assert r.status is WordStatus.LITERAL
        assert r.word == "abandon"
        assert r.is_valid

    def test_recovered(self):
        r = recover_word("derxw")
        assert r.status is WordStatus.RECOVERED
        assert r.word == "about"
        assert r.token == "derxw"

    def test_invalid(self):
        r = recover_word("qqqqq")
        assert r.status is WordStatus.INVALID
        assert r.word is None
        assert not r.is_valid


class TestDecodeSuccess:

    def test_plain_frame(self):
        result = decode_pairing_frame(frame(ABANDON_PHRASE))
        assert result.mnemonic.phrase == ABANDON_PHRASE
        assert all(r.status is WordStatus.LITERAL for r in result.recoveries)
        assert not result.obfuscated

    def test_obfuscated_frame(self):
        raw = encode_pairing_frame(Mnemonic.from_phrase(LEGAL_PHRASE))
        assert "legal" not in raw
        result = decode_pairing_frame(raw)
        assert result.mnemonic.phrase == LEGAL_PHRASE
        assert all(r.status is WordStatus.RECOVERED for r in result.recoveries)
        assert result.obfuscated

    def test_mixed_frame(self):
        words = ABANDON_PHRASE.split()
        words[0] = obfuscate_word(words[0])
        words[11] = obfuscate_word(words[11])
        result = decode_pairing_frame(frame(" ".join(words)))
        assert result.mnemonic.phrase == ABANDON_PHRASE
        statuses = [r.status for r in result.recoveries]
        assert statuses.count(WordStatus.RECOVERED) == 2

    def test_markers_case_insensitive_and_whitespace_tolerant(self):
        raw = "  ZCZC\t" + ABANDON_PHRASE.replace(" ", "  \n") + "\tNnNn \r\n"
        assert decode_pairing_frame(raw).mnemonic.phrase == ABANDON_PHRASE

    @pytest.mark.parametrize("separator", ["\x0b", "\x0c"])
    def test_vertical_tab_and_form_feed_separate_words(self, separator):
        raw = "zczc" + separator + ABANDON_PHRASE.replace(" ", separator) + " nnnn"
        assert decode_pairing_frame(raw).mnemonic.phrase == ABANDON_PHRASE

    def test_uppercase_words(self):
        assert decode_pairing_frame(frame(ABANDON_PHRASE.upper())).mnemonic.phrase == ABANDON_PHRASE

    def test_plain_encoding(self):
        raw = encode_pairing_frame(ABANDON_PHRASE.split(), obfuscate=False)
        assert raw == frame(ABANDON_PHRASE)

    def test_repr_hides_words(self):
        result = decode_pairing_frame(frame(ABANDON_PHRASE))
        assert "abandon" not in repr(result)


class TestDecodeFailures:

    @pytest.mark.parametrize("raw", [
        ABANDON_PHRASE,
        "zczc " + ABANDON_PHRASE,
        ABANDON_PHRASE + " nnnn",
        "nnnn " + ABANDON_PHRASE + " zczc",
        "zczc",
        "",
        "   ",
    ])
    def test_malformed(self, raw):
        with pytest.raises(MalformedFrameError):
            decode_pairing_frame(raw)

    @pytest.mark.parametrize("raw", [None, 42, b"zczc nnnn"])
    def test_non_string_is_malformed(self, raw):
        with pytest.raises(MalformedFrameError):
            decode_pairing_frame(raw)

    def test_nul_byte_is_malformed(self):
        with pytest.raises(MalformedFrameError):
            decode_pairing_frame(frame(ABANDON_PHRASE.replace(" ", "\x00", 1)))

    def test_oversized_is_malformed(self):
        with pytest.raises(MalformedFrameError):
            decode_pairing_frame(frame("abandon " * 1000))

    @pytest.mark.parametrize("body", [
        ABANDON_PHRASE.replace("about", "about1"),
        ABANDON_PHRASE.replace(" ", "-"),
        ABANDON_PHRASE + " !",
        "abandón " * 12,
    ])
    def test_charset(self, body):
        with pytest.raises(InvalidCharsetError):
            decode_pairing_frame(frame(body))

    @pytest.mark.parametrize("count", [0, 1, 11, 13, 24])
    def test_word_count(self, count):
        with pytest.raises(PairingWordCountError) as exc_info:
            decode_pairing_frame(frame(" ".join(["abandon"] * count)))
        assert exc_info.value.observed == count
        assert isinstance(exc_info.value, WordCountMismatchError)

    def test_empty_payload(self):
        with pytest.raises(PairingWordCountError) as exc_info:
            decode_pairing_frame("zczcnnnn")
        assert exc_info.value.observed == 0

    def test_invalid_word_named(self):
        words = ABANDON_PHRASE.split()
        words[4] = "qqqqq"
        words[9] = "zzzzzz"
        with pytest.raises(PairingInvalidWordError) as exc_info:
            decode_pairing_frame(frame(" ".join(words)))
        assert exc_info.value.token == "qqqqq"
        assert exc_info.value.tokens == ("qqqqq", "zzzzzz")
        assert isinstance(exc_info.value, InvalidWordError)

    def test_checksum_distinct_from_word_errors(self):
        with pytest.raises(PairingChecksumError) as exc_info:
            decode_pairing_frame(frame(" ".join(["abandon"] * 12)))
        assert isinstance(exc_info.value, ChecksumMismatchError)
        assert not isinstance(exc_info.value, InvalidWordError)

    def test_all_failures_are_pairing_errors(self):
        for raw in ("nope", frame("abc1"), frame("abandon"), frame("qqqqq " * 12)):
            with pytest.raises(PairingError):
                decode_pairing_frame(raw)


class TestValidateTextSafe:

    def test_returns_value(self):
        assert validate_text_safe("hello\tworld\n") == "hello\tworld\n"

    def test_rejects_control_characters(self):
        with pytest.raises(ValidationError):
            validate_text_safe("abc\x00def")

    @pytest.mark.parametrize("separator", ["\x0b", "\x0c", "\r\n"])
    def test_whitespace_controls_allowed(self, separator):
        assert validate_text_safe(f"abc{separator}def") == f"abc{separator}def"

    def test_allow_empty(self):
        assert validate_text_safe("", allow_empty=True) == ""
        with pytest.raises(ValidationError):
            validate_text_safe("")

    def test_field_name_in_message(self):
        with pytest.raises(ValidationError, match="frame"):
            validate_text_safe("x" * 20, max_length=10, field_name="frame")
