"""
Service request endpoints: public submission and lookup, plus operator
listing, status changes and deletion (X-API-KEY protected).
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from src.api.dependencies import api_key_protection, get_service_requests

api = APIRouter()


def serialize_service_request(record: Any) -> Dict[str, Any]:
    return {
        "id": record.id,
        "serviceType": record.service_type,
        "subService": record.sub_service,
        "fullName": record.full_name,
        "email": record.email,
        "phone": record.phone,
        "nationalId": record.national_id,
        "serviceDetails": record.service_details,
        "amount": record.amount,
        "paymentReference": record.payment_reference,
        "paymentStatus": record.payment_status,
        "mpesaReceiptNumber": record.mpesa_receipt_number,
        "status": record.status,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "updatedAt": record.updated_at.isoformat() if record.updated_at else None,
    }


@api.post("/service-request", tags=["Service Requests"])
async def submit_service_request(payload: dict = Body(...), service=Depends(get_service_requests)):
    record = await service.submit(payload)
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "message": "Service request submitted successfully",
            "data": {
                "id": record.id,
                "serviceType": record.service_type,
                "subService": record.sub_service,
                "amount": record.amount,
                "status": record.status,
            },
        },
    )


@api.get("/service-request/{request_id}", tags=["Service Requests"])
async def get_service_request(request_id: str, service=Depends(get_service_requests)):
    record = await service.get(request_id)
    return {"success": True, "data": serialize_service_request(record)}


@api.get("/service-requests", tags=["Service Requests"], dependencies=[Depends(api_key_protection)])
async def list_service_requests(service=Depends(get_service_requests)):
    records = await service.list()
    return {
        "success": True,
        "count": len(records),
        "data": [serialize_service_request(r) for r in records],
    }


@api.put("/service-request/{request_id}/status", tags=["Service Requests"], dependencies=[Depends(api_key_protection)])
async def update_service_request_status(
    request_id: str,
    payload: dict = Body(...),
    service=Depends(get_service_requests),
):
    record = await service.update_status(request_id, payload.get("status"))
    return {
        "success": True,
        "message": "Service request status updated",
        "data": serialize_service_request(record),
    }


@api.delete("/service-request/{request_id}", tags=["Service Requests"], dependencies=[Depends(api_key_protection)])
async def delete_service_request(request_id: str, service=Depends(get_service_requests)):
    await service.delete(request_id)
    return {"success": True, "message": "Service request deleted successfully"}
