"""Tests for small shared helpers."""

from __future__ import annotations

from custom_components.wifipool.wifipool.util import (
    as_float,
    clamp_int,
    mask_body,
    redact_email,
)


def test_as_float_accepts_finite_numbers_only():
    assert as_float(7) == 7.0
    assert as_float(" 7.25 ") == 7.25
    assert as_float(True) is None
    assert as_float("") is None
    assert as_float("abc") is None
    assert as_float(float("nan")) is None
    assert as_float(float("inf")) is None
    assert as_float(None) is None


def test_clamp_int_bounds_and_default():
    assert clamp_int(5, minimum=15, maximum=600, default=60) == 15
    assert clamp_int("900", minimum=15, maximum=600, default=60) == 600
    assert clamp_int(120, minimum=15, maximum=600, default=60) == 120
    assert clamp_int(None, minimum=15, maximum=600, default=60) == 60


def test_redact_email_keeps_two_leading_characters():
    assert redact_email("john.doe@example.com") == "jo***@ex***.com"
    assert redact_email("") == ""


def test_mask_body_hides_password_and_email():
    body = {"email": "john.doe@example.com", "password": "secret", "namespace": "default"}

    masked = mask_body(body)

    assert masked == {
        "email": "jo***@ex***.com",
        "password": "***",
        "namespace": "default",
    }
    # Input is untouched.
    assert body["password"] == "secret"
    assert mask_body(None) is None
    assert mask_body({"domain": "d"}) == {"domain": "d"}
