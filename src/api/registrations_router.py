"""
Contact registrations: public sign-up, operator listing and deletion
(X-API-KEY protected).
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from src.api.dependencies import api_key_protection, get_registrations

api = APIRouter()


def serialize_registration(record: Any) -> Dict[str, Any]:
    return {
        "id": record.id,
        "fullname": record.fullname,
        "email": record.email,
        "phone": record.phone,
        "location": record.location,
        "service": record.service,
        "message": record.message,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "updatedAt": record.updated_at.isoformat() if record.updated_at else None,
    }


@api.post("/register", tags=["Registrations"])
async def register(payload: dict = Body(...), service=Depends(get_registrations)):
    record = await service.register(payload)
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "message": "Registration successful!",
            "data": {"id": record.id, "fullname": record.fullname, "email": record.email},
        },
    )


@api.get("/registrations", tags=["Registrations"], dependencies=[Depends(api_key_protection)])
async def list_registrations(service=Depends(get_registrations)):
    records = await service.list()
    return {
        "success": True,
        "count": len(records),
        "data": [serialize_registration(r) for r in records],
    }


@api.delete("/register/{registration_id}", tags=["Registrations"], dependencies=[Depends(api_key_protection)])
async def delete_registration(registration_id: str, service=Depends(get_registrations)):
    record = await service.delete(registration_id)
    return {
        "success": True,
        "message": "User registration deleted successfully.",
        "data": serialize_registration(record),
    }
