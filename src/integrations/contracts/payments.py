"""
Payment contracts.

Request/response shapes for the M-Pesa STK push flow:
- the provider-shaped callback body posted to /payment-callback
- validation helpers shared by the real client and the mock client

Both clients/mocks/daraja.py and clients/real_http/daraja.py build their
requests from these helpers so the payload rules live in one place.
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from src.integrations.contracts.interfaces import CallbackResult, StkPushRequest
from src.utils.validators import PHONE_PATTERN

TRANSACTION_TYPE = "CustomerPayBillOnline"
ACCOUNT_REFERENCE_MAX_LENGTH = 12


# ---------------------------------------------------------------------------
# Callback payload
# ---------------------------------------------------------------------------


class CallbackMetadataItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    Name: str
    Value: Optional[Union[int, float, str]] = None


class CallbackMetadataModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    Item: List[CallbackMetadataItem] = Field(default_factory=list)


class StkCallback(BaseModel):
    model_config = ConfigDict(extra="allow")

    MerchantRequestID: str = ""
    CheckoutRequestID: str = Field(min_length=1)
    ResultCode: int
    ResultDesc: str = ""
    CallbackMetadata: Optional[CallbackMetadataModel] = None


class StkCallbackBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    stkCallback: StkCallback


class StkCallbackEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    Body: StkCallbackBody


class CallbackPayloadError(ValueError):
    pass


def parse_stk_callback(payload: Any) -> CallbackResult:
    """
    Validate the nested callback shape and flatten it.

    Raises CallbackPayloadError when Body.stkCallback is absent or malformed.
    """
    if not isinstance(payload, dict):
        raise CallbackPayloadError("Callback payload must be a JSON object")
    try:
        envelope = StkCallbackEnvelope.model_validate(payload)
    except PydanticValidationError as exc:
        problems = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        raise CallbackPayloadError(f"Missing or invalid callback fields: {problems}") from exc

    cb = envelope.Body.stkCallback
    items = {item.Name: item.Value for item in (cb.CallbackMetadata.Item if cb.CallbackMetadata else [])}
    amount = items.get("Amount")
    receipt = items.get("MpesaReceiptNumber")
    txn_date = items.get("TransactionDate")
    phone = items.get("PhoneNumber")

    return CallbackResult(
        checkout_request_id=cb.CheckoutRequestID,
        merchant_request_id=cb.MerchantRequestID,
        result_code=cb.ResultCode,
        result_desc=cb.ResultDesc,
        amount=int(amount) if isinstance(amount, (int, float)) else None,
        mpesa_receipt_number=str(receipt) if receipt is not None else None,
        transaction_date=str(txn_date) if txn_date is not None else None,
        phone_number=str(phone) if phone is not None else None,
    )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def validate_stk_push_request(request: StkPushRequest) -> List[str]:
    """
    Return a list of validation errors.
    Empty list means the request is valid.
    """
    errors: List[str] = []

    if not PHONE_PATTERN.fullmatch(request.phone_number or ""):
        errors.append(f"phone_number '{request.phone_number}' is not in 254XXXXXXXXX format")
    if isinstance(request.amount, bool) or not isinstance(request.amount, int) or request.amount <= 0:
        errors.append("amount must be a positive integer")
    if not request.account_reference:
        errors.append("account_reference is required")
    elif len(request.account_reference) > ACCOUNT_REFERENCE_MAX_LENGTH:
        errors.append(f"account_reference must be at most {ACCOUNT_REFERENCE_MAX_LENGTH} characters")
    if not request.description:
        errors.append("description is required")

    return errors


def account_reference_for(service_request_id: str) -> str:
    return f"SR{str(service_request_id)[-8:]}"
