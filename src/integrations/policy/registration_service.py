"""
Contact registrations: people asking to be contacted about HELB, exams,
KUCCPS placement, projects or visas. One registration per email address.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from src.error_handler import DuplicateError, NotFoundError, ValidationError
from src.integrations.contracts.interfaces import RegistrationTopic
from src.utils.validators import is_valid_contact_phone, is_valid_email

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "fullname": "Full name is required",
    "email": "Email is required",
    "phone": "Phone number is required",
    "location": "Location is required",
    "service": "Service selection is required",
}

MAX_MESSAGE_LENGTH = 500


def validate_registration(body: Dict[str, Any]) -> Dict[str, Any]:
    missing = {
        name: message
        for name, message in REQUIRED_FIELDS.items()
        if body.get(name) is None or not str(body.get(name)).strip()
    }
    if missing:
        raise ValidationError("Please fill in all required fields.", fields=missing)

    problems: Dict[str, str] = {}

    fullname = str(body["fullname"]).strip()
    if len(fullname) < 2:
        problems["fullname"] = "Full name must be at least 2 characters"

    email = str(body["email"]).strip().lower()
    if not is_valid_email(email):
        problems["email"] = "Please enter a valid email"

    phone = str(body["phone"]).strip()
    if not is_valid_contact_phone(phone):
        problems["phone"] = "Please enter a valid phone number"

    location = str(body["location"]).strip()
    if len(location) < 2:
        problems["location"] = "Location must be at least 2 characters"

    service = str(body["service"]).strip().lower()
    if service not in {t.value for t in RegistrationTopic}:
        problems["service"] = "Please select a valid service"

    message = body.get("message")
    message = str(message).strip() if message is not None else None
    if message and len(message) > MAX_MESSAGE_LENGTH:
        problems["message"] = f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters"

    if problems:
        raise ValidationError(", ".join(problems.values()), error="Validation Error", fields=problems)

    return {
        "fullname": fullname,
        "email": email,
        "phone": phone,
        "location": location,
        "service": service,
        "message": message or None,
    }


class RegistrationService:
    def __init__(self, db: Any) -> None:
        self.db = db

    async def register(self, body: Dict[str, Any]):
        data = validate_registration(body)
        if await self.db.find_registration_by_email(data["email"]):
            raise DuplicateError("A registration with this email already exists.")
        record = await self.db.create_registration(data)
        logger.info("Registration %s created for service %s", record.id, record.service)
        return record

    async def list(self) -> List[Any]:
        return await self.db.list_registrations()

    async def delete(self, registration_id: str):
        record = await self.db.delete_registration(registration_id)
        if not record:
            raise NotFoundError("User registration not found.")
        logger.info("Deleted registration %s", registration_id)
        return record
