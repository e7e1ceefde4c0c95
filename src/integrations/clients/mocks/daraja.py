"""
M-Pesa Daraja - MOCK client.

Mock implementation for development and testing. Does NOT make any network
calls. Accepts or rejects STK pushes according to ``accept_rate`` and can
build the callback body the provider would later POST back, so the whole
initiate → callback flow can be exercised locally.
"""

import logging
import random
import uuid
from typing import Any, Dict, List, Optional

from src.error_handler import PaymentRequestRejected, ValidationError
from src.integrations.contracts.interfaces import AccessToken, PushPaymentProvider, StkPushRequest, StkPushResponse
from src.integrations.contracts.payments import validate_stk_push_request

logger = logging.getLogger(__name__)


class DarajaMockClient(PushPaymentProvider):
    """
    Parameters
    ----------
    accept_rate:
        Probability (0–1) that an STK push is accepted. Default 1.0.
    """

    def __init__(self, accept_rate: float = 1.0):
        self._accept_rate = accept_rate
        self.token_requests = 0
        # Every push that reached the "provider", accepted or not.
        self.pushes: List[StkPushRequest] = []
        self._accepted: Dict[str, StkPushRequest] = {}

        logger.info("[DARAJA MOCK] Client initialised (accept_rate=%.0f%%)", accept_rate * 100)

    def _should_accept(self) -> bool:
        return random.random() < self._accept_rate

    async def fetch_access_token(self) -> AccessToken:
        self.token_requests += 1
        return AccessToken(token=f"mock-{uuid.uuid4().hex}", expires_in=3599)

    async def initiate_stk_push(self, request: StkPushRequest) -> StkPushResponse:
        errors = validate_stk_push_request(request)
        if errors:
            raise ValidationError("; ".join(errors))

        await self.fetch_access_token()
        self.pushes.append(request)
        logger.info("[DARAJA MOCK] STK push phone=%s amount=%s ref=%s",
                    request.phone_number, request.amount, request.account_reference)

        if not self._should_accept():
            raise PaymentRequestRejected(
                "Mock provider rejected the STK push.",
                provider_message="The initiator information is invalid.",
            )

        checkout_id = f"ws_CO_{uuid.uuid4().hex[:20].upper()}"
        merchant_id = f"{random.randint(10000, 99999)}-{random.randint(1000000, 9999999)}-1"
        self._accepted[checkout_id] = request
        return StkPushResponse(
            checkout_request_id=checkout_id,
            merchant_request_id=merchant_id,
            response_code="0",
            response_description="Success. Request accepted for processing",
            customer_message="Success. Request accepted for processing",
        )

    def build_callback(
        self,
        checkout_request_id: str,
        result_code: int = 0,
        result_desc: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return the JSON body Daraja would POST to the callback URL."""
        callback: Dict[str, Any] = {
            "MerchantRequestID": f"{random.randint(10000, 99999)}-{random.randint(1000000, 9999999)}-1",
            "CheckoutRequestID": checkout_request_id,
            "ResultCode": result_code,
            "ResultDesc": result_desc
            or ("The service request is processed successfully." if result_code == 0 else "Request cancelled by user"),
        }
        request = self._accepted.get(checkout_request_id)
        if result_code == 0:
            callback["CallbackMetadata"] = {
                "Item": [
                    {"Name": "Amount", "Value": request.amount if request else 1},
                    {"Name": "MpesaReceiptNumber", "Value": f"Q{uuid.uuid4().hex[:9].upper()}"},
                    {"Name": "TransactionDate", "Value": 20240101120000},
                    {"Name": "PhoneNumber", "Value": int(request.phone_number) if request else 254700000000},
                ]
            }
        return {"Body": {"stkCallback": callback}}
