"""
Lightweight in-memory PostgresDB replacement for local development.

This provides the same async interface as src.database.postgres_real so the
API can run (and be tested) without a real database. It is NOT intended for
production use: data lives only as long as the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
import uuid

from src.error_handler import DuplicateError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ServiceRequest:
    id: str
    service_type: str
    sub_service: str
    full_name: str
    email: str
    phone: str
    national_id: str
    service_details: Dict[str, Any]
    amount: int
    payment_reference: Optional[str] = None
    payment_status: str = "pending"
    mpesa_receipt_number: Optional[str] = None
    status: str = "submitted"
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass
class PaymentAttempt:
    id: str
    service_request_id: str
    checkout_request_id: str
    merchant_request_id: str
    phone_number: str
    amount: int
    status: str = "pending"
    result_code: Optional[int] = None
    result_desc: Optional[str] = None
    mpesa_receipt_number: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass
class ServicePricing:
    id: str
    service_type: str
    sub_service: str
    price: int
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass
class Registration:
    id: str
    fullname: str
    email: str
    phone: str
    location: str
    service: str
    message: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


class PostgresDB:
    """
    In-memory stand-in for the Postgres-backed data access layer.
    """

    def __init__(self) -> None:
        self._requests: Dict[str, ServiceRequest] = {}
        self._attempts: Dict[str, PaymentAttempt] = {}
        self._pricing: Dict[Tuple[str, str], ServicePricing] = {}
        self._registrations: Dict[str, Registration] = {}

    # ------------------------------------------------------------------ #
    # Schema / lifecycle
    # ------------------------------------------------------------------ #
    async def create_tables(self) -> None:
        """
        No-op for the in-memory implementation. Kept for compatibility
        with the startup hook in `src/api/main.py`.
        """
        return None

    async def close(self) -> None:
        return None

    # ------------------------------------------------------------------ #
    # Service requests
    # ------------------------------------------------------------------ #
    async def create_service_request(self, data: Dict[str, Any]) -> ServiceRequest:
        now = _utcnow()
        record = ServiceRequest(
            id=str(uuid.uuid4()),
            service_type=data["service_type"],
            sub_service=data["sub_service"],
            full_name=data["full_name"],
            email=data["email"],
            phone=data["phone"],
            national_id=data["national_id"],
            service_details=dict(data.get("service_details") or {}),
            amount=int(data["amount"]),
            created_at=now,
            updated_at=now,
        )
        self._requests[record.id] = record
        return record

    async def get_service_request(self, request_id: str) -> Optional[ServiceRequest]:
        return self._requests.get(str(request_id))

    async def find_service_request_by_reference(self, payment_reference: str) -> Optional[ServiceRequest]:
        for record in self._requests.values():
            if record.payment_reference == payment_reference:
                return record
        return None

    async def list_service_requests(self, descending: bool = True) -> List[ServiceRequest]:
        records = sorted(self._requests.values(), key=lambda r: r.created_at)
        return records[::-1] if descending else records

    async def update_service_request(self, request_id: str, updates: Dict[str, Any]) -> Optional[ServiceRequest]:
        record = self._requests.get(str(request_id))
        if not record:
            return None
        for k, v in (updates or {}).items():
            if hasattr(record, k):
                setattr(record, k, v)
        record.updated_at = _utcnow()
        return record

    async def delete_service_request(self, request_id: str) -> bool:
        record = self._requests.pop(str(request_id), None)
        if not record:
            return False
        for key in [k for k, a in self._attempts.items() if a.service_request_id == record.id]:
            del self._attempts[key]
        return True

    # ------------------------------------------------------------------ #
    # Payment attempts
    # ------------------------------------------------------------------ #
    async def record_payment_attempt(
        self,
        service_request_id: str,
        *,
        checkout_request_id: str,
        merchant_request_id: str,
        phone_number: str,
        amount: int,
    ) -> Optional[ServiceRequest]:
        """Store a new attempt and point the request's payment_reference at it."""
        record = self._requests.get(str(service_request_id))
        if not record:
            return None
        if checkout_request_id in self._attempts:
            raise DuplicateError(f"Payment attempt {checkout_request_id} already recorded.")

        now = _utcnow()
        self._attempts[checkout_request_id] = PaymentAttempt(
            id=str(uuid.uuid4()),
            service_request_id=record.id,
            checkout_request_id=checkout_request_id,
            merchant_request_id=merchant_request_id,
            phone_number=phone_number,
            amount=amount,
            created_at=now,
            updated_at=now,
        )
        record.payment_reference = checkout_request_id
        record.payment_status = "pending"
        record.updated_at = now
        return record

    async def get_payment_attempt(self, checkout_request_id: str) -> Optional[PaymentAttempt]:
        return self._attempts.get(checkout_request_id)

    async def update_payment_attempt(self, checkout_request_id: str, updates: Dict[str, Any]) -> Optional[PaymentAttempt]:
        attempt = self._attempts.get(checkout_request_id)
        if not attempt:
            return None
        for k, v in (updates or {}).items():
            if hasattr(attempt, k):
                setattr(attempt, k, v)
        attempt.updated_at = _utcnow()
        return attempt

    async def list_payment_attempts(self, service_request_id: str) -> List[PaymentAttempt]:
        attempts = [a for a in self._attempts.values() if a.service_request_id == str(service_request_id)]
        attempts.sort(key=lambda a: a.created_at)
        return attempts

    # ------------------------------------------------------------------ #
    # Pricing overrides
    # ------------------------------------------------------------------ #
    async def count_pricing(self) -> int:
        return len(self._pricing)

    async def get_pricing(self, service_type: str, sub_service: str) -> Optional[ServicePricing]:
        return self._pricing.get((service_type, sub_service))

    async def list_pricing(self) -> List[ServicePricing]:
        return list(self._pricing.values())

    async def insert_pricing_entries(self, entries: Iterable[Tuple[str, str, int]]) -> int:
        batch = list(entries)
        keys = [(st, ss) for st, ss, _ in batch]
        if len(set(keys)) != len(keys) or any(k in self._pricing for k in keys):
            raise DuplicateError("This service pricing already exists.")
        for st, ss, price in batch:
            self._pricing[(st, ss)] = ServicePricing(id=str(uuid.uuid4()), service_type=st, sub_service=ss, price=int(price))
        return len(batch)

    async def upsert_pricing(self, service_type: str, sub_service: str, price: int) -> ServicePricing:
        existing = self._pricing.get((service_type, sub_service))
        if existing:
            existing.price = int(price)
            existing.updated_at = _utcnow()
            return existing
        entry = ServicePricing(id=str(uuid.uuid4()), service_type=service_type, sub_service=sub_service, price=int(price))
        self._pricing[(service_type, sub_service)] = entry
        return entry

    # ------------------------------------------------------------------ #
    # Registrations
    # ------------------------------------------------------------------ #
    async def create_registration(self, data: Dict[str, Any]) -> Registration:
        if any(r.email == data["email"] for r in self._registrations.values()):
            raise DuplicateError("A registration with this email already exists.")
        now = _utcnow()
        record = Registration(
            id=str(uuid.uuid4()),
            fullname=data["fullname"],
            email=data["email"],
            phone=data["phone"],
            location=data["location"],
            service=data["service"],
            message=data.get("message"),
            created_at=now,
            updated_at=now,
        )
        self._registrations[record.id] = record
        return record

    async def find_registration_by_email(self, email: str) -> Optional[Registration]:
        for record in self._registrations.values():
            if record.email == email:
                return record
        return None

    async def list_registrations(self) -> List[Registration]:
        records = sorted(self._registrations.values(), key=lambda r: r.created_at)
        return records[::-1]

    async def delete_registration(self, registration_id: str) -> Optional[Registration]:
        return self._registrations.pop(str(registration_id), None)
