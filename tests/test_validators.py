import pytest

from src.utils.validators import (
    NormalizationError,
    callback_url_problem,
    is_valid_email,
    is_valid_national_id,
    normalize_phone_number,
)


@pytest.mark.parametrize(
    "raw",
    ["0712345678", "712345678", "254712345678", "+254 712 345 678", "0712-345-678"],
)
def test_normalize_phone_number_accepts_kenyan_formats(raw):
    assert normalize_phone_number(raw) == "254712345678"


@pytest.mark.parametrize("raw", ["12345", "", "07123456789", "2547123456", "abc", "+1 555 0100"])
def test_normalize_phone_number_rejects_bad_input(raw):
    with pytest.raises(NormalizationError):
        normalize_phone_number(raw)


def test_normalize_phone_number_is_idempotent():
    once = normalize_phone_number("0712345678")
    assert normalize_phone_number(once) == once


def test_email_and_national_id():
    assert is_valid_email("jane@example.com")
    assert not is_valid_email("jane@")
    assert not is_valid_email(None)
    assert is_valid_national_id("12345678")
    assert not is_valid_national_id("1234567")
    assert not is_valid_national_id("12345678a")


def test_callback_url_problem_accepts_public_https():
    assert callback_url_problem("https://portal.example.com/api/payment-callback") is None


@pytest.mark.parametrize(
    "url",
    [
        None,
        "",
        "http://portal.example.com/callback",
        "https://localhost/callback",
        "https://127.0.0.1/callback",
        "https://192.168.1.10/callback",
        "https://myapp.local/callback",
        "https://intranet/callback",
    ],
)
def test_callback_url_problem_rejects_unreachable(url):
    assert callback_url_problem(url)
