"""
Service request lifecycle: submission (priced once, from the pricing
resolver), lookup, operator status changes and deletion.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from src.error_handler import NotFoundError, ValidationError
from src.integrations.contracts.interfaces import PaymentStatus, RequestStatus, ServiceType
from src.integrations.policy.pricing_service import PricingService
from src.utils.validators import (
    NormalizationError,
    is_valid_email,
    is_valid_national_id,
    normalize_phone_number,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "serviceType": "Service type is required",
    "subService": "Sub-service is required",
    "fullName": "Full name is required",
    "email": "Email is required",
    "phone": "Phone number is required",
    "nationalId": "National ID is required",
    "serviceDetails": "Service details are required",
}

# Statuses an operator may only set once the request has been paid for.
_PAID_ONLY_STATUSES = {RequestStatus.PROCESSING.value, RequestStatus.COMPLETED.value}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list)):
        return not value
    return False


def validate_submission(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check a submission and return the cleaned, store-ready fields
    (without amount). Raises ValidationError listing every bad field.
    """
    missing = {name: message for name, message in REQUIRED_FIELDS.items() if _is_blank(body.get(name))}
    if missing:
        raise ValidationError("Please fill in all required fields.", fields=missing)

    problems: Dict[str, str] = {}

    service_type = str(body["serviceType"]).strip()
    if service_type not in {s.value for s in ServiceType}:
        problems["serviceType"] = "Please select a valid service type"

    full_name = str(body["fullName"]).strip()
    if len(full_name) < 2:
        problems["fullName"] = "Full name must be at least 2 characters"

    email = str(body["email"]).strip()
    if not is_valid_email(email):
        problems["email"] = "Please enter a valid email"

    phone = None
    try:
        phone = normalize_phone_number(str(body["phone"]))
    except NormalizationError:
        problems["phone"] = "Please enter a valid Kenyan phone number (254XXXXXXXXX)"

    national_id = str(body["nationalId"]).strip()
    if not is_valid_national_id(national_id):
        problems["nationalId"] = "Please enter a valid 8-digit National ID"

    details = body["serviceDetails"]
    if not isinstance(details, dict):
        problems["serviceDetails"] = "Service details must be an object"

    if problems:
        raise ValidationError(", ".join(problems.values()), error="Validation Error", fields=problems)

    return {
        "service_type": service_type,
        "sub_service": str(body["subService"]).strip(),
        "full_name": full_name,
        "email": email,
        "phone": phone,
        "national_id": national_id,
        "service_details": details,
    }


class ServiceRequestService:
    def __init__(self, db: Any, pricing: PricingService) -> None:
        self.db = db
        self.pricing = pricing

    async def submit(self, body: Dict[str, Any]):
        data = validate_submission(body)
        # Amount is resolved here, once, and never taken from the client.
        data["amount"] = await self.pricing.require_price(data["service_type"], data["sub_service"])
        record = await self.db.create_service_request(data)
        logger.info(
            "Service request %s submitted: %s - %s (KES %s)",
            record.id,
            record.service_type,
            record.sub_service,
            record.amount,
        )
        return record

    async def get(self, request_id: str):
        record = await self.db.get_service_request(request_id)
        if not record:
            raise NotFoundError("Service request not found.")
        return record

    async def list(self) -> List[Any]:
        return await self.db.list_service_requests(descending=True)

    async def update_status(self, request_id: str, status: Optional[str]):
        allowed = [s.value for s in RequestStatus]
        if not status or status not in allowed:
            raise ValidationError(f"Status must be one of: {', '.join(allowed)}", error="Invalid status")

        record = await self.get(request_id)
        if status in _PAID_ONLY_STATUSES and record.payment_status != PaymentStatus.COMPLETED.value:
            raise ValidationError(
                f"Cannot mark request as {status} before payment is completed.",
                error="Payment not completed",
            )

        updated = await self.db.update_service_request(record.id, {"status": status})
        if not updated:
            raise NotFoundError("Service request not found.")
        logger.info("Service request %s status: %s -> %s", record.id, record.status, status)
        return updated

    async def delete(self, request_id: str) -> None:
        if not await self.db.delete_service_request(request_id):
            raise NotFoundError("Service request not found.")
        logger.info("Deleted service request %s", request_id)
