"""
Tests for DeviceId derivation (auroraid.core.device.fingerprint).
"""

from __future__ import annotations

import hashlib
import time

import pytest

from auroraid.core.device.fingerprint import (
    DEVICE_ID_ALPHABET,
    DeviceFingerprint,
    FingerprintCollector,
    derive_device_id,
    digest_to_device_id,
    get_device_fingerprint,
    is_valid_device_id,
)


class TestIsValidDeviceId:

    @pytest.mark.parametrize("value", ["abcdefghij", "0123456789", "a1b2c3d4e5"])
    def test_accepts_lowercase_alphanumeric(self, value):
        assert is_valid_device_id(value)

    @pytest.mark.parametrize("value", [
        "", "abc", "abcdefghijk", "ABCDEFGHIJ", "abcde-ghij", "abcdefghi ", "abcdéfghij",
    ])
    def test_rejects_bad_format(self, value):
        assert not is_valid_device_id(value)

    @pytest.mark.parametrize("value", [None, 1234567890, b"abcdefghij"])
    def test_rejects_non_strings(self, value):
        assert not is_valid_device_id(value)


class TestDeriveDeviceId:

    def test_empty_fingerprint(self):
        # sha256("") = e3b0c442 98fc1c14 9afb...
        assert derive_device_id(DeviceFingerprint()) == "bwgu80skaz"

    def test_matches_manual_mapping(self, fingerprint):
        canonical = "".join(c for c in "".join(fingerprint.values()) if c.isascii() and c.isalnum())
        digest = hashlib.sha256(canonical.lower().encode()).digest()
        expected = "".join(DEVICE_ID_ALPHABET[b % 36] for b in digest[:10])
        assert derive_device_id(fingerprint) == expected

    def test_deterministic(self, fingerprint):
        assert derive_device_id(fingerprint) == derive_device_id(fingerprint)

    def test_output_always_valid(self, fingerprint):
        assert is_valid_device_id(derive_device_id(fingerprint))

    def test_punctuation_and_case_ignored(self):
        a = DeviceFingerprint(user_agent="Mozilla/5.0", timezone="Europe/Berlin")
        b = DeviceFingerprint(user_agent="mozilla50", timezone="europeberlin")
        assert derive_device_id(a) == derive_device_id(b)

    def test_missing_attributes_skipped(self):
        a = DeviceFingerprint(user_agent="agent", language="en")
        b = DeviceFingerprint(user_agent="agent", screen_resolution=None, language="en")
        assert derive_device_id(a) == derive_device_id(b)

    def test_different_attributes_differ(self, fingerprint):
        other = DeviceFingerprint(user_agent="something else")
        assert derive_device_id(fingerprint) != derive_device_id(other)


class TestDigestMapping:

    def test_uses_first_ten_bytes(self):
        digest = bytes(range(32))
        assert digest_to_device_id(digest) == "0123456789"

    def test_wraps_modulo_36(self):
        assert digest_to_device_id(bytes([36, 71, 255] + [0] * 7)) == "0z30000000"

    def test_short_digest_rejected(self):
        with pytest.raises(ValueError):
            digest_to_device_id(b"short")


class TestCollector:

    def test_collects_fingerprint(self):
        fp = FingerprintCollector(screen_resolution="1280x720").collect()
        assert fp.screen_resolution == "1280x720"
        assert fp.user_agent
        assert is_valid_device_id(derive_device_id(fp))

    def test_screen_skipped_by_default(self):
        assert get_device_fingerprint().screen_resolution is None

    def test_repr_hides_values(self, fingerprint):
        text = repr(fingerprint)
        assert "Berlin" not in text
        assert "attributes=7" in text


class TestTimezone:

    @pytest.fixture
    def missing(self, tmp_path):
        return tmp_path / "absent"

    @pytest.mark.parametrize("tz,expected", [
        ("Europe/Berlin", "Europe/Berlin"),
        (":America/New_York", "America/New_York"),
        ("/usr/share/zoneinfo/Asia/Tokyo", "Asia/Tokyo"),
    ])
    def test_tz_variable(self, missing, tz, expected):
        assert FingerprintCollector._timezone({"TZ": tz}, missing, missing) == expected

    def test_localtime_link(self, tmp_path, missing):
        zone = tmp_path / "zoneinfo" / "Europe" / "Paris"
        zone.parent.mkdir(parents=True)
        zone.write_bytes(b"TZif")
        link = tmp_path / "localtime"
        link.symlink_to(zone)
        assert FingerprintCollector._timezone({}, link, missing) == "Europe/Paris"

    def test_timezone_file(self, tmp_path, missing):
        tz_file = tmp_path / "timezone"
        tz_file.write_text("Europe/Lisbon\n")
        assert FingerprintCollector._timezone({}, missing, tz_file) == "Europe/Lisbon"

    @pytest.mark.parametrize("seconds_west,expected", [
        (-3600, "UTC+01:00"),
        (18000, "UTC-05:00"),
        (-19800, "UTC+05:30"),
        (0, "UTC+00:00"),
    ])
    def test_standard_offset_fallback(self, monkeypatch, missing, seconds_west, expected):
        monkeypatch.setattr(time, "timezone", seconds_west)
        assert FingerprintCollector._timezone({}, missing, missing) == expected

    def test_fallback_ignores_daylight_saving(self, monkeypatch, missing):
        monkeypatch.setattr(time, "timezone", -3600)
        monkeypatch.setattr(time, "daylight", 1)
        monkeypatch.setattr(time, "tzname", ("CET", "CEST"))
        assert FingerprintCollector._timezone({}, missing, missing) == "UTC+01:00"
