"""
Payment orchestration for service requests.

initiate_payment sends an STK push for an existing, unpaid request and
records the attempt. reconcile_callback applies the provider's asynchronous
result to the request that owns the correlation id (CheckoutRequestID).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from src.error_handler import (
    ConfigurationError,
    DuplicateError,
    NotFoundError,
    PaymentProviderError,
    PersistenceError,
    ValidationError,
)
from src.integrations.contracts.interfaces import (
    CallbackResult,
    PaymentStatus,
    PushPaymentProvider,
    RequestStatus,
    StkPushRequest,
)
from src.integrations.contracts.payments import account_reference_for
from src.integrations.policy.response_wrappers import IntegrationResponseError
from src.utils.validators import NormalizationError, normalize_phone_number

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, db: Any, provider: PushPaymentProvider) -> None:
        self.db = db
        self.provider = provider

    async def initiate_payment(self, service_request_id: Optional[str], phone_number: Optional[str]) -> Dict[str, Any]:
        service_request_id = "" if service_request_id is None else str(service_request_id)
        phone_number = "" if phone_number is None else str(phone_number)
        missing = {}
        if not (service_request_id or "").strip():
            missing["serviceRequestId"] = "Service request ID is required"
        if not (phone_number or "").strip():
            missing["phoneNumber"] = "Phone number is required"
        if missing:
            raise ValidationError("Service request ID and phone number are required.", fields=missing)

        try:
            normalized_phone = normalize_phone_number(phone_number)
        except NormalizationError:
            raise ValidationError(
                "Please enter a valid Kenyan phone number (e.g. 0712345678, 712345678 or 254712345678).",
                error="Invalid phone number",
                fields={"phoneNumber": "Invalid phone number format"},
            )

        record = await self.db.get_service_request(service_request_id.strip())
        if not record:
            raise NotFoundError("Service request not found.")
        if record.payment_status == PaymentStatus.COMPLETED.value:
            raise ValidationError(
                "This service request has already been paid for.",
                error="Payment already completed",
            )
        if record.status == RequestStatus.CANCELLED.value:
            raise ValidationError("This service request has been cancelled.", error="Request cancelled")

        push = StkPushRequest(
            phone_number=normalized_phone,
            amount=int(record.amount),
            account_reference=account_reference_for(record.id),
            description=f"{record.service_type} - {record.sub_service}",
        )

        try:
            response = await self.provider.initiate_stk_push(push)
        except PaymentProviderError as exc:
            exc.context["service_request_id"] = record.id
            raise
        except (ConfigurationError, IntegrationResponseError) as exc:
            wrapped = PaymentProviderError(f"STK push could not be sent: {exc}")
            wrapped.context["service_request_id"] = record.id
            raise wrapped from exc

        correlation_id = response.checkout_request_id
        try:
            updated = await self.db.record_payment_attempt(
                record.id,
                checkout_request_id=correlation_id,
                merchant_request_id=response.merchant_request_id,
                phone_number=normalized_phone,
                amount=push.amount,
            )
        except (PersistenceError, DuplicateError) as exc:
            logger.error(
                "STK push %s accepted by provider but could not be stored for service request %s: %s",
                correlation_id,
                record.id,
                exc,
            )
            raise PersistenceError(
                "Payment was initiated but could not be recorded. Please contact support."
            ) from exc
        if updated is None:
            logger.error(
                "STK push %s accepted by provider but service request %s no longer exists",
                correlation_id,
                record.id,
            )
            raise PersistenceError("Payment was initiated but could not be recorded. Please contact support.")

        logger.info(
            "Payment initiated for service request %s: correlation_id=%s amount=%s",
            record.id,
            correlation_id,
            push.amount,
        )
        return {
            "correlationId": correlation_id,
            "merchantId": response.merchant_request_id,
            "amount": push.amount,
            "phoneNumber": normalized_phone,
        }

    async def reconcile_callback(self, result: CallbackResult):
        """
        Apply a parsed callback. Returns the updated service request, or
        None when no request owns the correlation id (nothing is changed).
        """
        correlation_id = result.checkout_request_id

        attempt = await self.db.get_payment_attempt(correlation_id)
        if attempt is not None:
            record = await self.db.get_service_request(attempt.service_request_id)
        else:
            record = await self.db.find_service_request_by_reference(correlation_id)
        if record is None:
            logger.warning("Callback for unknown correlation id %s (ResultCode=%s)", correlation_id, result.result_code)
            return None

        outcome = PaymentStatus.COMPLETED.value if result.succeeded else PaymentStatus.FAILED.value
        if attempt is not None:
            await self.db.update_payment_attempt(
                correlation_id,
                {
                    "status": outcome,
                    "result_code": result.result_code,
                    "result_desc": result.result_desc,
                    "mpesa_receipt_number": result.mpesa_receipt_number,
                },
            )

        is_current = record.payment_reference == correlation_id
        updates: Dict[str, Any] = {}
        if result.succeeded:
            updates["payment_status"] = PaymentStatus.COMPLETED.value
            if record.status == RequestStatus.SUBMITTED.value:
                updates["status"] = RequestStatus.PROCESSING.value
            if result.mpesa_receipt_number:
                updates["mpesa_receipt_number"] = result.mpesa_receipt_number
            if not is_current:
                logger.info("Superseded attempt %s succeeded; completing service request %s", correlation_id, record.id)
        elif is_current:
            if await self._paid_by_other_attempt(record.id, correlation_id):
                logger.warning(
                    "Attempt %s failed but service request %s was already paid by another attempt",
                    correlation_id,
                    record.id,
                )
            else:
                updates["payment_status"] = PaymentStatus.FAILED.value
        else:
            logger.info("Ignoring failure of superseded attempt %s for service request %s", correlation_id, record.id)

        if updates:
            record = await self.db.update_service_request(record.id, updates) or record

        logger.info(
            "Callback processed for service request %s: correlation_id=%s ResultCode=%s (%s)",
            record.id,
            correlation_id,
            result.result_code,
            result.result_desc,
        )
        return record

    async def _paid_by_other_attempt(self, service_request_id: str, correlation_id: str) -> bool:
        attempts = await self.db.list_payment_attempts(service_request_id)
        return any(
            a.status == PaymentStatus.COMPLETED.value and a.checkout_request_id != correlation_id
            for a in attempts
        )

    async def payment_status(self, service_request_id: str) -> Dict[str, Any]:
        record = await self.db.get_service_request(service_request_id)
        if not record:
            raise NotFoundError("Service request not found.")
        return {
            "id": record.id,
            "paymentStatus": record.payment_status,
            "status": record.status,
            "paymentReference": record.payment_reference,
            "amount": record.amount,
            "mpesaReceiptNumber": record.mpesa_receipt_number,
        }
