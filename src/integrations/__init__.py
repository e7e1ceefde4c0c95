"""
Integrations layer.
This package contains all code used to communicate with external systems:
- M-Pesa Daraja (OAuth access token + STK push)

Key rule:
- API routes MUST NOT call external APIs directly.
- Routes call policy services (under src/integrations/policy), which call
  integration clients (under src/integrations/clients).
- We use the MOCK client during development and swap to the REAL_HTTP client
  when Daraja credentials are configured.

Switching implementations:
- The selection of mock vs real clients happens in ONE place (src/api/main.py).
"""

from .contracts.interfaces import (
    AccessToken,
    CallbackResult,
    PaymentStatus,
    PushPaymentProvider,
    RegistrationTopic,
    RequestStatus,
    ServiceType,
    StkPushRequest,
    StkPushResponse,
)
from .contracts.payments import (
    CallbackPayloadError,
    account_reference_for,
    parse_stk_callback,
    validate_stk_push_request,
)

__all__ = [
    # interfaces
    "AccessToken", "CallbackResult", "PaymentStatus", "PushPaymentProvider",
    "RegistrationTopic", "RequestStatus", "ServiceType", "StkPushRequest", "StkPushResponse",
    # payments
    "CallbackPayloadError", "account_reference_for", "parse_stk_callback",
    "validate_stk_push_request",
]
