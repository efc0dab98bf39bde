from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from pydantic import Field

from .base import DBSerializableModel, utcnow
from .plan import PlanType


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    PIX = "pix"
    CARD = "card"


# Gateway event names that mean the charge was paid.
CONFIRMATION_EVENTS = frozenset({"PAYMENT_RECEIVED", "PAYMENT_CONFIRMED"})

_GATEWAY_STATUS_MAP: Dict[str, PaymentStatus] = {
    "PAYMENT_RECEIVED": PaymentStatus.CONFIRMED,
    "PAYMENT_CONFIRMED": PaymentStatus.CONFIRMED,
    "completed": PaymentStatus.CONFIRMED,
}


def normalize_gateway_status(raw: str) -> PaymentStatus:
    """
    Map a gateway event name (or a status written by the admin tooling) to
    the normalized status. Unknown values raise ValueError.
    """
    if raw in _GATEWAY_STATUS_MAP:
        return _GATEWAY_STATUS_MAP[raw]
    return PaymentStatus(raw.lower())


class Transaction(DBSerializableModel):
    """
    One payment attempt. `pix_key_id` is the gateway's charge key and the
    only join key between webhook events and ledger rows.
    """

    collection_name: ClassVar[str] = "transactions"

    id: Optional[str] = Field(default=None)
    user_id: str
    plan_id: str
    plan_name: str
    plan_price: int
    plan_type: PlanType
    payment_method: PaymentMethod = PaymentMethod.PIX
    pix_key_id: Optional[str] = None
    pix_address_key: Optional[str] = None
    pix_qr_code: Optional[str] = None
    pix_payload: Optional[str] = None
    pix_expiration_date: Optional[datetime] = None
    status: PaymentStatus = PaymentStatus.PENDING
    gateway_status: Optional[str] = Field(
        default=None, description="Raw gateway event name kept for audit."
    )
    gateway_payment_id: Optional[str] = None
    gateway_payload: Optional[Dict[str, Any]] = None
    payment_confirmed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def is_open(self, as_of: datetime) -> bool:
        """Pending and not yet past its PIX expiration."""
        if self.status is not PaymentStatus.PENDING:
            return False
        return self.pix_expiration_date is None or self.pix_expiration_date > as_of
