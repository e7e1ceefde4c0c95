#!/usr/bin/env python3
"""
Check the configured M-Pesa Daraja credentials.

Prints the (masked) configuration, validates the callback URL and requests
an OAuth access token. No STK push is sent.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from src.error_handler import PaymentProviderError
from src.integrations.clients.real_http.daraja import DarajaClient
from src.utils.config_loader import load_settings, mask_secret
from src.utils.validators import callback_url_problem


def main() -> int:
    daraja = load_settings().daraja

    print("M-Pesa Daraja configuration:")
    print(f"  environment:     {daraja.environment.value} ({daraja.base_url})")
    print(f"  consumer key:    {mask_secret(daraja.consumer_key)}")
    print(f"  consumer secret: {mask_secret(daraja.consumer_secret)}")
    print(f"  shortcode:       {daraja.business_shortcode}")
    print(f"  passkey:         {mask_secret(daraja.passkey)}")
    print(f"  callback url:    {daraja.callback_url or '<missing>'}")

    if daraja.uses_sandbox_shortcode:
        print("⚠️  Using the sandbox short code 174379")

    problem = callback_url_problem(daraja.callback_url)
    if problem:
        print(f"❌ Callback URL: {problem}")
    else:
        print("✅ Callback URL looks reachable")

    if not daraja.passkey:
        print("❌ DARAJA_PASSKEY is not set")

    try:
        token = asyncio.run(DarajaClient(daraja).fetch_access_token())
    except PaymentProviderError as e:
        print(f"❌ Access token request failed: {e.details}", file=sys.stderr)
        if e.provider_message:
            print(f"   provider said: {e.provider_message}", file=sys.stderr)
        return 1

    print(f"✅ Access token obtained (expires in {token.expires_in or '?'}s)")
    return 0 if not problem and daraja.passkey else 2


if __name__ == "__main__":
    sys.exit(main())
