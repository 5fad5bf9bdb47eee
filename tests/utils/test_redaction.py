"""Tests for log and error-message redaction helpers."""

import pytest

from karat.utils.redaction import (
    REDACTED,
    mask_phone,
    redact_for_logging,
    sanitize_error_message,
)


class TestRedactForLogging:
    def test_sensitive_keys(self):
        result = redact_for_logging(
            {"supplier": {"name": "Shree", "gst_number": "x"}, "api_key": "sk", "amount": 10}
        )
        assert result["api_key"] == REDACTED
        assert result["supplier"] == {"name": "Shree", "gst_number": REDACTED}
        assert result["amount"] == 10

    def test_gstin_and_container_keys(self):
        result = redact_for_logging({"firm_gstin": "27ABC", "headers": {"a": "b"}})
        assert result == {"firm_gstin": REDACTED, "headers": REDACTED}

    def test_phone_keys_are_masked(self):
        result = redact_for_logging({"supplier": {"phone": "+91 98200 12345"}})
        assert result["supplier"]["phone"] == "********2345"

    def test_tokens_used_is_not_a_secret(self):
        assert redact_for_logging({"tokens_used": 42}) == {"tokens_used": 42}

    def test_lists_of_dicts(self):
        result = redact_for_logging({"items": [{"password": "p"}, "plain"]})
        assert result["items"] == [{"password": REDACTED}, "plain"]

    def test_input_not_mutated(self):
        original = {"token": "t"}
        redact_for_logging(original)
        assert original == {"token": "t"}


class TestMaskPhone:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("9820012345", "******2345"),
            ("98-200", "*8200"),
            ("12", REDACTED),
            (None, None),
        ],
    )
    def test_mask(self, raw, expected):
        assert mask_phone(raw) == expected


class TestSanitizeErrorMessage:
    def test_none_passes_through(self):
        assert sanitize_error_message(None) is None

    def test_key_value_secrets(self):
        text = sanitize_error_message("connect failed password=hunter2 host=db")
        assert "hunter2" not in text
        assert "host=db" in text

    def test_bearer_tokens(self):
        text = sanitize_error_message("401 with Authorization: Bearer abc.def")
        assert "abc.def" not in text

    def test_gstin_and_mobile_numbers(self):
        text = sanitize_error_message(
            "duplicate customer 9876543210 for firm 27ABCDE1234F1Z5"
        )
        assert text == f"duplicate customer ******3210 for firm {REDACTED}"

    def test_truncates(self):
        text = sanitize_error_message("x" * 50, max_length=20)
        assert len(text) == 20
        assert text.endswith("...")

    def test_plain_messages_unchanged(self):
        msg = "User settings not found. Please configure firm details in settings."
        assert sanitize_error_message(msg) == msg
