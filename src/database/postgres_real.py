"""
Real Postgres-backed DB for production when DATABASE_URL is set.
Implements the same interface as src.database.postgres (in-memory stub).
"""

from __future__ import annotations

import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.database.models import Base, PaymentAttempt, Registration, ServicePricing, ServiceRequest, utcnow
from src.error_handler import DuplicateError, PersistenceError


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes ('psql \'...\'', extra quotes, whitespace) and pick the async driver."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    if s.startswith("postgres://"):
        s = s.replace("postgres://", "postgresql+psycopg://", 1)
    elif s.startswith("postgresql://"):
        s = s.replace("postgresql://", "postgresql+psycopg://", 1)
    return s


class PostgresDB:
    """
    Postgres data access using SQLAlchemy's asyncio extension. Use when
    DATABASE_URL is set.
    """

    def __init__(self, connection_string: str) -> None:
        connection_string = _normalize_connection_string(connection_string)
        engine_kwargs: Dict[str, Any] = {"pool_pre_ping": True}
        if connection_string.startswith("postgresql"):
            engine_kwargs.update(pool_size=5, max_overflow=10, pool_recycle=1800)
        self.engine = create_async_engine(connection_string, **engine_kwargs)
        self.SessionLocal = async_sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        s = self.SessionLocal()
        try:
            yield s
            await s.commit()
        except IntegrityError as exc:
            await s.rollback()
            raise DuplicateError("Record violates a uniqueness constraint.") from exc
        except SQLAlchemyError as exc:
            await s.rollback()
            raise PersistenceError("Database operation failed.") from exc
        except Exception:
            await s.rollback()
            raise
        finally:
            await s.close()

    # ------------------------------------------------------------------ #
    # Service requests
    # ------------------------------------------------------------------ #
    async def create_service_request(self, data: Dict[str, Any]) -> ServiceRequest:
        now = utcnow()
        async with self._session() as s:
            r = ServiceRequest(
                id=str(uuid4()),
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
            s.add(r)
            await s.flush()
            await s.refresh(r)
            return r

    async def get_service_request(self, request_id: str) -> Optional[ServiceRequest]:
        async with self._session() as s:
            stmt = select(ServiceRequest).where(ServiceRequest.id == str(request_id))
            return (await s.execute(stmt)).scalar_one_or_none()

    async def find_service_request_by_reference(self, payment_reference: str) -> Optional[ServiceRequest]:
        async with self._session() as s:
            stmt = select(ServiceRequest).where(ServiceRequest.payment_reference == payment_reference)
            return (await s.execute(stmt)).scalars().first()

    async def list_service_requests(self, descending: bool = True) -> List[ServiceRequest]:
        async with self._session() as s:
            col = ServiceRequest.created_at
            stmt = select(ServiceRequest).order_by(col.desc() if descending else col.asc())
            return list((await s.execute(stmt)).scalars().all())

    async def update_service_request(self, request_id: str, updates: Dict[str, Any]) -> Optional[ServiceRequest]:
        async with self._session() as s:
            stmt = select(ServiceRequest).where(ServiceRequest.id == str(request_id))
            r = (await s.execute(stmt)).scalar_one_or_none()
            if not r:
                return None
            for k, v in (updates or {}).items():
                if hasattr(r, k):
                    setattr(r, k, v)
            r.updated_at = utcnow()
            s.add(r)
            await s.flush()
            await s.refresh(r)
            return r

    async def delete_service_request(self, request_id: str) -> bool:
        async with self._session() as s:
            stmt = select(ServiceRequest).where(ServiceRequest.id == str(request_id))
            r = (await s.execute(stmt)).scalar_one_or_none()
            if not r:
                return False
            attempts = await s.execute(select(PaymentAttempt).where(PaymentAttempt.service_request_id == r.id))
            for a in attempts.scalars().all():
                await s.delete(a)
            await s.delete(r)
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
        now = utcnow()
        async with self._session() as s:
            stmt = select(ServiceRequest).where(ServiceRequest.id == str(service_request_id))
            r = (await s.execute(stmt)).scalar_one_or_none()
            if not r:
                return None
            s.add(
                PaymentAttempt(
                    id=str(uuid4()),
                    service_request_id=r.id,
                    checkout_request_id=checkout_request_id,
                    merchant_request_id=merchant_request_id,
                    phone_number=phone_number,
                    amount=amount,
                    created_at=now,
                    updated_at=now,
                )
            )
            r.payment_reference = checkout_request_id
            r.payment_status = "pending"
            r.updated_at = now
            await s.flush()
            await s.refresh(r)
            return r

    async def get_payment_attempt(self, checkout_request_id: str) -> Optional[PaymentAttempt]:
        async with self._session() as s:
            stmt = select(PaymentAttempt).where(PaymentAttempt.checkout_request_id == checkout_request_id)
            return (await s.execute(stmt)).scalar_one_or_none()

    async def update_payment_attempt(self, checkout_request_id: str, updates: Dict[str, Any]) -> Optional[PaymentAttempt]:
        async with self._session() as s:
            stmt = select(PaymentAttempt).where(PaymentAttempt.checkout_request_id == checkout_request_id)
            a = (await s.execute(stmt)).scalar_one_or_none()
            if not a:
                return None
            for k, v in (updates or {}).items():
                if hasattr(a, k):
                    setattr(a, k, v)
            a.updated_at = utcnow()
            await s.flush()
            await s.refresh(a)
            return a

    async def list_payment_attempts(self, service_request_id: str) -> List[PaymentAttempt]:
        async with self._session() as s:
            stmt = (
                select(PaymentAttempt)
                .where(PaymentAttempt.service_request_id == str(service_request_id))
                .order_by(PaymentAttempt.created_at.asc())
            )
            return list((await s.execute(stmt)).scalars().all())

    # ------------------------------------------------------------------ #
    # Pricing overrides
    # ------------------------------------------------------------------ #
    async def count_pricing(self) -> int:
        async with self._session() as s:
            return int((await s.execute(select(func.count()).select_from(ServicePricing))).scalar_one())

    async def get_pricing(self, service_type: str, sub_service: str) -> Optional[ServicePricing]:
        async with self._session() as s:
            stmt = select(ServicePricing).where(
                ServicePricing.service_type == service_type,
                ServicePricing.sub_service == sub_service,
            )
            return (await s.execute(stmt)).scalar_one_or_none()

    async def list_pricing(self) -> List[ServicePricing]:
        async with self._session() as s:
            return list((await s.execute(select(ServicePricing))).scalars().all())

    async def insert_pricing_entries(self, entries: Iterable[Tuple[str, str, int]]) -> int:
        now = utcnow()
        batch = [
            ServicePricing(id=str(uuid4()), service_type=st, sub_service=ss, price=int(p), created_at=now, updated_at=now)
            for st, ss, p in entries
        ]
        async with self._session() as s:
            s.add_all(batch)
            await s.flush()
        return len(batch)

    async def upsert_pricing(self, service_type: str, sub_service: str, price: int) -> ServicePricing:
        now = utcnow()
        async with self._session() as s:
            stmt = select(ServicePricing).where(
                ServicePricing.service_type == service_type,
                ServicePricing.sub_service == sub_service,
            )
            entry = (await s.execute(stmt)).scalar_one_or_none()
            if entry:
                entry.price = int(price)
                entry.updated_at = now
            else:
                entry = ServicePricing(
                    id=str(uuid4()),
                    service_type=service_type,
                    sub_service=sub_service,
                    price=int(price),
                    created_at=now,
                    updated_at=now,
                )
                s.add(entry)
            await s.flush()
            await s.refresh(entry)
            return entry

    # ------------------------------------------------------------------ #
    # Registrations
    # ------------------------------------------------------------------ #
    async def create_registration(self, data: Dict[str, Any]) -> Registration:
        now = utcnow()
        async with self._session() as s:
            r = Registration(
                id=str(uuid4()),
                fullname=data["fullname"],
                email=data["email"],
                phone=data["phone"],
                location=data["location"],
                service=data["service"],
                message=data.get("message"),
                created_at=now,
                updated_at=now,
            )
            s.add(r)
            await s.flush()
            await s.refresh(r)
            return r

    async def find_registration_by_email(self, email: str) -> Optional[Registration]:
        async with self._session() as s:
            stmt = select(Registration).where(Registration.email == email)
            return (await s.execute(stmt)).scalar_one_or_none()

    async def list_registrations(self) -> List[Registration]:
        async with self._session() as s:
            stmt = select(Registration).order_by(Registration.created_at.desc())
            return list((await s.execute(stmt)).scalars().all())

    async def delete_registration(self, registration_id: str) -> Optional[Registration]:
        async with self._session() as s:
            stmt = select(Registration).where(Registration.id == str(registration_id))
            r = (await s.execute(stmt)).scalar_one_or_none()
            if not r:
                return None
            await s.delete(r)
            return r
