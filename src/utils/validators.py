"""
Input validators shared by the API layer and the payment client.

Phone numbers are normalized to the M-Pesa format: country prefix 254
followed by a 9-digit subscriber number, no symbols.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Optional
from urllib.parse import urlparse

COUNTRY_PREFIX = "254"
PHONE_PATTERN = re.compile(r"^254[0-9]{9}$")
EMAIL_PATTERN = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")
NATIONAL_ID_PATTERN = re.compile(r"^[0-9]{8}$")
# Registrations accept any readable contact number, not only M-Pesa numbers.
CONTACT_PHONE_PATTERN = re.compile(r"^[0-9+\-\s()]{10,20}$")

_LOCAL_HOSTNAMES = {"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"}
_LOCAL_SUFFIXES = (".localhost", ".local", ".internal", ".test", ".invalid")


class NormalizationError(ValueError):
    pass


def normalize_phone_number(raw: str) -> str:
    """
    Normalize a Kenyan mobile number to 254XXXXXXXXX.

    >>> normalize_phone_number("0712 345 678")
    '254712345678'
    """
    digits = re.sub(r"\D", "", raw or "")

    if digits.startswith("0"):
        candidate = COUNTRY_PREFIX + digits[1:]
    elif digits.startswith(COUNTRY_PREFIX):
        candidate = digits
    elif len(digits) == 9:
        candidate = COUNTRY_PREFIX + digits
    else:
        raise NormalizationError(f"Unrecognized phone number format: {raw!r}")

    if not PHONE_PATTERN.fullmatch(candidate):
        raise NormalizationError(f"Phone number must be 254 followed by 9 digits: {raw!r}")
    return candidate


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and bool(EMAIL_PATTERN.match(value.strip()))


def is_valid_national_id(value: Optional[str]) -> bool:
    return bool(value) and bool(NATIONAL_ID_PATTERN.fullmatch(value.strip()))


def is_valid_contact_phone(value: Optional[str]) -> bool:
    return bool(value) and bool(CONTACT_PHONE_PATTERN.fullmatch(value.strip()))


def callback_url_problem(url: Optional[str]) -> Optional[str]:
    """
    Return a description of why ``url`` cannot receive provider callbacks,
    or None when it looks publicly reachable over HTTPS.
    """
    if not url:
        return "callback URL is not configured"

    parsed = urlparse(url.strip())
    if parsed.scheme != "https":
        return f"callback URL must use https, got {parsed.scheme or 'no scheme'!r}"

    host = (parsed.hostname or "").lower()
    if not host:
        return "callback URL has no host"

    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        ip = None

    if ip is not None:
        if ip.is_loopback or ip.is_private or ip.is_link_local or ip.is_unspecified or ip.is_reserved:
            return f"callback host {host} is not publicly reachable"
        return None

    if host in _LOCAL_HOSTNAMES or host.endswith(_LOCAL_SUFFIXES):
        return f"callback host {host} is not publicly reachable"
    if "." not in host:
        return f"callback host {host} is not a fully qualified domain"
    return None
