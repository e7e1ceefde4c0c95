"""
Real M-Pesa Daraja HTTP Client.

Used when Daraja consumer credentials are configured (INTEGRATIONS_MODE=real).

Every STK push fetches a fresh OAuth token: tokens are never cached or
reused between calls. Neither call is retried; the caller decides whether
to start a whole new payment attempt.
"""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import httpx

from src.error_handler import (
    ConfigurationError,
    CredentialsError,
    PaymentRequestRejected,
    UpstreamAuthError,
    UpstreamUnavailable,
    ValidationError,
)
from src.integrations.contracts.interfaces import AccessToken, PushPaymentProvider, StkPushRequest, StkPushResponse
from src.integrations.contracts.payments import TRANSACTION_TYPE, validate_stk_push_request
from src.integrations.policy.response_wrappers import (
    STK_SUCCESS_CODE,
    IntegrationResponseError,
    normalize_access_token_response,
    normalize_stk_push_response,
    stk_error_message,
    stk_response_code,
)
from src.utils.config_loader import DarajaConfig
from src.utils.validators import callback_url_problem

logger = logging.getLogger(__name__)

# Daraja expects timestamps in Kenyan local time (EAT, UTC+3, no DST).
EAT = timezone(timedelta(hours=3), "EAT")


def daraja_timestamp(now: datetime) -> str:
    return now.strftime("%Y%m%d%H%M%S")


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode("utf-8")).decode("ascii")


def basic_auth_header(consumer_key: str, consumer_secret: str) -> str:
    token = base64.b64encode(f"{consumer_key}:{consumer_secret}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class DarajaClient(PushPaymentProvider):
    def __init__(
        self,
        config: DarajaConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config
        self.timeout_seconds = config.timeout_seconds
        self._transport = transport
        self._clock = clock or (lambda: datetime.now(EAT))

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)

    async def fetch_access_token(self) -> AccessToken:
        if not self.config.consumer_key or not self.config.consumer_secret:
            raise CredentialsError("Daraja consumer key/secret are not configured.")

        headers = {"Authorization": basic_auth_header(self.config.consumer_key, self.config.consumer_secret)}
        try:
            async with self._client() as client:
                response = await client.get(self.config.oauth_url, headers=headers)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable("Timed out requesting Daraja access token.") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"Could not reach Daraja OAuth endpoint: {exc}") from exc

        if response.status_code >= 500:
            raise UpstreamUnavailable(f"Daraja OAuth endpoint returned HTTP {response.status_code}.")
        if response.status_code >= 400:
            raise UpstreamAuthError(
                f"Daraja rejected client credentials (HTTP {response.status_code}).",
                provider_message=_safe_text(response),
            )

        try:
            return normalize_access_token_response(_json_body(response))
        except IntegrationResponseError as exc:
            raise UpstreamAuthError("Daraja OAuth response did not contain an access token.") from exc

    async def initiate_stk_push(self, request: StkPushRequest) -> StkPushResponse:
        errors = validate_stk_push_request(request)
        if errors:
            raise ValidationError("; ".join(errors))

        problem = callback_url_problem(self.config.callback_url)
        if problem:
            raise ConfigurationError(f"Refusing to send STK push: {problem}.")
        if not self.config.passkey:
            raise CredentialsError("Daraja passkey is not configured.")

        token = await self.fetch_access_token()

        timestamp = daraja_timestamp(self._clock())
        payload = self.build_payload(request, timestamp)
        headers = {
            "Authorization": f"Bearer {token.token}",
            "Content-Type": "application/json",
        }

        try:
            async with self._client() as client:
                response = await client.post(self.config.stk_push_url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable("Timed out sending STK push.") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"Could not reach Daraja STK push endpoint: {exc}") from exc

        if response.status_code >= 500:
            raise UpstreamUnavailable(
                f"Daraja STK push endpoint returned HTTP {response.status_code}.",
                provider_message=_safe_text(response),
            )

        body = _json_body(response)
        if response.status_code in (401, 403):
            raise UpstreamAuthError(
                f"Daraja rejected the bearer token (HTTP {response.status_code}).",
                provider_message=stk_error_message(body),
            )
        if response.status_code >= 400:
            raise PaymentRequestRejected(
                f"Daraja rejected the STK push (HTTP {response.status_code}).",
                provider_message=stk_error_message(body),
            )

        code = stk_response_code(body)
        if code != STK_SUCCESS_CODE:
            raise PaymentRequestRejected(
                f"Daraja did not accept the STK push (ResponseCode={code!r}).",
                provider_message=stk_error_message(body),
            )

        try:
            result = normalize_stk_push_response(body)
        except IntegrationResponseError as exc:
            raise UpstreamUnavailable(f"Unexpected STK push response: {exc}") from exc

        logger.info(
            "STK push accepted: checkout_request_id=%s merchant_request_id=%s account_reference=%s",
            result.checkout_request_id,
            result.merchant_request_id,
            request.account_reference,
        )
        return result

    def build_payload(self, request: StkPushRequest, timestamp: str) -> Dict[str, Any]:
        shortcode = self.config.business_shortcode
        return {
            "BusinessShortCode": shortcode,
            "Password": stk_password(shortcode, self.config.passkey or "", timestamp),
            "Timestamp": timestamp,
            "TransactionType": TRANSACTION_TYPE,
            "Amount": request.amount,
            "PartyA": request.phone_number,
            "PartyB": shortcode,
            "PhoneNumber": request.phone_number,
            "CallBackURL": self.config.callback_url,
            "AccountReference": request.account_reference,
            "TransactionDesc": request.description,
        }


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _safe_text(response: httpx.Response, limit: int = 500) -> str:
    try:
        return response.text[:limit]
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return ""
