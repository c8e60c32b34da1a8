"""Tests for identity normalization and masking."""

import pytest

from verification_engine.errors import InvalidIdentity
from verification_engine.services.identity import (
    IdentityKind,
    IdentityNormalizer,
    mask_email,
    mask_phone,
    normalize_phone_e164,
)


class TestNormalizePhone:
    @pytest.mark.parametrize(
        "raw",
        ["+91 98765 43210", "+91-98765-43210", "9876543210", "919876543210", "0091 9876543210", "(+91) 98765.43210"],
    )
    def test_variants_map_to_one_form(self, raw):
        assert normalize_phone_e164(raw, "+91") == "+919876543210"

    def test_other_country_code_kept(self):
        assert normalize_phone_e164("+1 (555) 000-1111", "+91") == "+15550001111"

    def test_default_country_code_is_configurable(self):
        assert normalize_phone_e164("5550001111", "+1") == "+15550001111"


class TestNormalizer:
    def setup_method(self):
        self.normalize = IdentityNormalizer("+91")

    def test_email_is_lowercased_and_trimmed(self):
        identity = self.normalize("  Alice.Smith@Example.COM ")
        assert identity.value == "alice.smith@example.com"
        assert identity.kind is IdentityKind.EMAIL

    def test_phone(self):
        identity = self.normalize("98765 43210")
        assert identity.value == "+919876543210"
        assert identity.kind is IdentityKind.PHONE

    def test_deterministic(self):
        assert self.normalize("+91 98765 43210") == self.normalize("9876543210")

    @pytest.mark.parametrize("raw", ["", "   ", "not-an-email@", "@example.com", "abc", "+0123"])
    def test_invalid(self, raw):
        with pytest.raises(InvalidIdentity):
            self.normalize(raw)


class TestMasking:
    def test_mask_phone_keeps_last_four(self):
        assert mask_phone("+919876543210") == "+********3210"

    def test_mask_email(self):
        assert mask_email("alice@example.com") == "al***@example.com"

    def test_mask_email_short_local_part_fully_hidden(self):
        assert mask_email("a@example.com") == "*@example.com"
        assert mask_email("ab@example.com") == "*@example.com"
        assert mask_email("abc@example.com") == "ab***@example.com"
