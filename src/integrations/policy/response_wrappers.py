from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from src.integrations.contracts.interfaces import AccessToken, StkPushResponse

STK_SUCCESS_CODE = "0"


class IntegrationResponseError(ValueError):
    def __init__(self, message: str, *, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.payload = payload or {}


class AccessTokenResponseModel(BaseModel):
    access_token: str = Field(min_length=1)
    expires_in: Optional[int] = None


class StkPushResponseModel(BaseModel):
    checkout_request_id: str = Field(min_length=1)
    merchant_request_id: str = ""
    response_code: str
    response_description: str = ""
    customer_message: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)


def normalize_access_token_response(raw: Dict[str, Any]) -> AccessToken:
    model = _build_model(
        AccessTokenResponseModel,
        {
            "access_token": _first_non_empty(raw, "access_token", "accessToken"),
            "expires_in": _coerce_optional_int(raw.get("expires_in")),
        },
        raw,
    )
    return AccessToken(token=model.access_token, expires_in=model.expires_in)


def stk_response_code(raw: Dict[str, Any]) -> Optional[str]:
    """ResponseCode as a string; the provider sends either "0" or 0."""
    code = _first_non_empty(raw, "ResponseCode", "responseCode", default="")
    code = str(code).strip()
    return code or None


def stk_error_message(raw: Dict[str, Any]) -> Optional[str]:
    message = _first_non_empty(
        raw,
        "errorMessage",
        "ResponseDescription",
        "CustomerMessage",
        "ResultDesc",
        default="",
    )
    return str(message) or None


def normalize_stk_push_response(raw: Dict[str, Any]) -> StkPushResponse:
    """Build a StkPushResponse from an accepted (ResponseCode 0) provider body."""
    code = stk_response_code(raw)
    if code != STK_SUCCESS_CODE:
        raise IntegrationResponseError(f"STK push was not accepted (ResponseCode={code!r}).", payload=raw)

    model = _build_model(
        StkPushResponseModel,
        {
            "checkout_request_id": str(_first_non_empty(raw, "CheckoutRequestID", "checkoutRequestId")),
            "merchant_request_id": str(_first_non_empty(raw, "MerchantRequestID", "merchantRequestId", default="")),
            "response_code": code,
            "response_description": str(_first_non_empty(raw, "ResponseDescription", default="")),
            "customer_message": str(_first_non_empty(raw, "CustomerMessage", default="")),
            "raw": raw,
        },
        raw,
    )
    return StkPushResponse(
        checkout_request_id=model.checkout_request_id,
        merchant_request_id=model.merchant_request_id,
        response_code=model.response_code,
        response_description=model.response_description,
        customer_message=model.customer_message,
        raw=model.raw,
    )


def _first_non_empty(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    if default is not None:
        return default
    raise IntegrationResponseError(f"Missing required field. Checked keys: {', '.join(keys)}", payload=data)


def _coerce_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise IntegrationResponseError(f"Invalid integer value: {value!r}") from exc


def _build_model(model_type, payload: Dict[str, Any], raw: Dict[str, Any]):
    try:
        return model_type(**payload)
    except ValidationError as exc:
        raise IntegrationResponseError(f"Response validation failed: {exc}", payload=raw) from exc
