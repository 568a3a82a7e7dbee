"""Tests for recipient address normalization."""

import pytest

from messaging.address import AddressCheck, normalize_address


class TestNormalizeAddress:
    def test_digits_get_default_domain(self):
        assert normalize_address("5551234567") == AddressCheck(
            True, "5551234567@s.whatsapp.net"
        )

    def test_whitespace_is_trimmed(self):
        check = normalize_address(" 5551234567 ")
        assert check.ok is True
        assert check.normalized == "5551234567@s.whatsapp.net"

    def test_suffix_appended_exactly_once(self):
        check = normalize_address("123")
        assert check.normalized.count("@s.whatsapp.net") == 1

    @pytest.mark.parametrize(
        "address",
        ["5551234567@s.whatsapp.net", "120363000000000000@g.us", "x@y"],
    )
    def test_qualified_address_unchanged(self, address):
        assert normalize_address(address) == AddressCheck(True, address)

    @pytest.mark.parametrize("text", ["abc", "+5551234567", "555-123", "", "   ", None])
    def test_rejects_everything_else(self, text):
        assert normalize_address(text) == AddressCheck(False, None)

    def test_custom_domain(self):
        check = normalize_address("42", default_domain="c.us")
        assert check.normalized == "42@c.us"

    def test_non_string_input_is_stringified(self):
        assert normalize_address(5551234567).normalized == "5551234567@s.whatsapp.net"
