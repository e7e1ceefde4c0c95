import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from src.api.dependencies import get_payment_service, verify_callback_source
from src.integrations.contracts.payments import CallbackPayloadError, parse_stk_callback

logger = logging.getLogger(__name__)

api = APIRouter()
payments_api = api


@api.post("/initiate-payment", tags=["Payments"])
async def initiate_payment(payload: dict = Body(...), payments=Depends(get_payment_service)):
    data = await payments.initiate_payment(payload.get("serviceRequestId"), payload.get("phoneNumber"))
    return {
        "success": True,
        "message": "Payment initiated. Please check your phone to complete the payment.",
        "data": data,
    }


@api.post("/payment-callback", tags=["Payments"], dependencies=[Depends(verify_callback_source)])
@api.post("/mpesa/callback", tags=["Payments"], dependencies=[Depends(verify_callback_source)])
async def payment_callback(payload: Any = Body(...), payments=Depends(get_payment_service)):
    try:
        result = parse_stk_callback(payload)
    except CallbackPayloadError as exc:
        logger.warning("Invalid payment callback: %s", exc)
        return JSONResponse(status_code=400, content={"error": "Invalid callback data", "details": str(exc)})

    record = await payments.reconcile_callback(result)
    if record is None:
        return JSONResponse(status_code=404, content={"error": "Service request not found"})

    return {"success": True, "message": "Callback processed successfully"}


@api.get("/payment-status/{request_id}", tags=["Payments"])
async def get_payment_status(request_id: str, payments=Depends(get_payment_service)):
    return {"success": True, "data": await payments.payment_status(request_id)}
