from fastapi import APIRouter, Body, Depends

from src.api.dependencies import api_key_protection, get_pricing_service

api = APIRouter()


@api.get("/service-pricing", tags=["Pricing"])
async def get_service_pricing(pricing=Depends(get_pricing_service)):
    return {"success": True, "data": await pricing.combined_pricing()}


@api.put("/service-pricing", tags=["Pricing"], dependencies=[Depends(api_key_protection)])
async def update_service_pricing(payload: dict = Body(...), pricing=Depends(get_pricing_service)):
    service_type = payload.get("serviceType")
    sub_service = payload.get("subService")
    old_price, new_price = await pricing.update_price(service_type, sub_service, payload.get("price"))
    return {
        "success": True,
        "message": "Price updated successfully",
        "data": {
            "serviceType": service_type,
            "subService": sub_service,
            "oldPrice": old_price,
            "newPrice": new_price,
        },
    }
