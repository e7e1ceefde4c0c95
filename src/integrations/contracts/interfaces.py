from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ServiceType(str, Enum):
    KRA = "KRA"
    SHA = "SHA"
    NSSF = "NSSF"
    NTSA = "NTSA"
    HELB = "HELB"
    GHRIS = "GHRIS"
    TSC = "TSC"
    OS_SOFTWARE = "OS_SOFTWARE"
    COMPUTER_REPAIR = "COMPUTER_REPAIR"
    CYBER_CAFE = "CYBER_CAFE"
    ONLINE_SHOPPING = "ONLINE_SHOPPING"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class RequestStatus(str, Enum):
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RegistrationTopic(str, Enum):
    HELB = "helb"
    EXAM = "exam"
    KUCCPS = "kuccps"
    PROJECT = "project"
    VISA = "visa"
    OTHER = "other"


class DarajaEnvironment(str, Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"


# ---------------------------------------------------------------------------
# Shared data models
# ---------------------------------------------------------------------------

@dataclass
class AccessToken:
    token: str
    expires_in: Optional[int] = None     # seconds, as reported by the provider
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class StkPushRequest:
    phone_number: str                    # 254XXXXXXXXX, already normalized
    amount: int
    account_reference: str
    description: str


@dataclass
class StkPushResponse:
    checkout_request_id: str             # correlation id
    merchant_request_id: str
    response_code: str
    response_description: str = ""
    customer_message: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CallbackResult:
    checkout_request_id: str
    merchant_request_id: str
    result_code: int
    result_desc: str
    amount: Optional[int] = None
    mpesa_receipt_number: Optional[str] = None
    transaction_date: Optional[str] = None
    phone_number: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result_code == 0


# ---------------------------------------------------------------------------
# Abstract provider interface
# ---------------------------------------------------------------------------

class PushPaymentProvider(ABC):
    """Every push-to-phone payment client must implement this interface."""

    @abstractmethod
    async def fetch_access_token(self) -> AccessToken:
        """Exchange client credentials for a short-lived bearer token."""

    @abstractmethod
    async def initiate_stk_push(self, request: StkPushRequest) -> StkPushResponse:
        """Ask the provider to prompt the payer's phone for PIN entry."""
