"""Callback parsing, provider response normalization and the mock client."""

import pytest

from src.error_handler import ValidationError
from src.integrations.clients.mocks.daraja import DarajaMockClient
from src.integrations.contracts.interfaces import StkPushRequest
from src.integrations.contracts.payments import (
    CallbackPayloadError,
    account_reference_for,
    parse_stk_callback,
    validate_stk_push_request,
)
from src.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    normalize_access_token_response,
    normalize_stk_push_response,
    stk_response_code,
)

SUCCESS_CALLBACK = {
    "Body": {
        "stkCallback": {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": "ws_CO_191220191020363925",
            "ResultCode": 0,
            "ResultDesc": "The service request is processed successfully.",
            "CallbackMetadata": {
                "Item": [
                    {"Name": "Amount", "Value": 500.00},
                    {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
                    {"Name": "Balance"},
                    {"Name": "TransactionDate", "Value": 20191219102115},
                    {"Name": "PhoneNumber", "Value": 254712345678},
                ]
            },
        }
    }
}


def test_parse_success_callback():
    result = parse_stk_callback(SUCCESS_CALLBACK)
    assert result.succeeded
    assert result.checkout_request_id == "ws_CO_191220191020363925"
    assert result.amount == 500
    assert result.mpesa_receipt_number == "NLJ7RT61SV"
    assert result.transaction_date == "20191219102115"
    assert result.phone_number == "254712345678"


def test_parse_failure_callback_without_metadata():
    payload = {
        "Body": {
            "stkCallback": {
                "MerchantRequestID": "29115-34620561-1",
                "CheckoutRequestID": "ws_CO_1",
                "ResultCode": 1032,
                "ResultDesc": "Request cancelled by user",
            }
        }
    }
    result = parse_stk_callback(payload)
    assert not result.succeeded
    assert result.result_code == 1032
    assert result.mpesa_receipt_number is None


@pytest.mark.parametrize("payload", [None, "x", {}, {"Body": {"stkCallback": {"CheckoutRequestID": ""}}}])
def test_parse_rejects_malformed(payload):
    with pytest.raises(CallbackPayloadError):
        parse_stk_callback(payload)


def test_validate_stk_push_request():
    ok = StkPushRequest("254712345678", 500, "SR12345678", "KRA - PIN Registration")
    assert validate_stk_push_request(ok) == []

    bad = StkPushRequest("0712345678", 0, "SR1234567890123", "")
    assert len(validate_stk_push_request(bad)) == 4


def test_account_reference_uses_last_eight_characters():
    assert account_reference_for("0f8c2b9e-1111-2222-3333-44445555abcd") == "SR5555abcd"


def test_response_wrappers():
    assert normalize_access_token_response({"access_token": "abc", "expires_in": "3599"}).expires_in == 3599
    with pytest.raises(IntegrationResponseError):
        normalize_access_token_response({"expires_in": "3599"})

    assert stk_response_code({"ResponseCode": 0}) == "0"
    assert stk_response_code({}) is None
    with pytest.raises(IntegrationResponseError):
        normalize_stk_push_response({"ResponseCode": "1", "CheckoutRequestID": "ws_CO_1"})


@pytest.mark.asyncio
async def test_mock_client_round_trip():
    client = DarajaMockClient()
    response = await client.initiate_stk_push(StkPushRequest("254712345678", 300, "SR12345678", "SHA - SHA Registration"))

    assert response.checkout_request_id.startswith("ws_CO_")
    assert client.token_requests == 1

    result = parse_stk_callback(client.build_callback(response.checkout_request_id))
    assert result.succeeded
    assert result.amount == 300
    assert result.phone_number == "254712345678"


@pytest.mark.asyncio
async def test_mock_client_validates_requests():
    with pytest.raises(ValidationError):
        await DarajaMockClient().initiate_stk_push(StkPushRequest("0712", 300, "SR1", "x"))
