from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import Field

from .base import DBSerializableModel, utcnow


class LedgerEventType(str, Enum):
    CHARGE_CREATED = "charge_created"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PACKAGE_CREDITED = "package_credited"
    TIP_PURCHASED = "tip_purchased"
    ERROR = "error"


class LedgerEntry(DBSerializableModel):
    """
    Structured audit entry persisted to DB and mirrored to the file log.
    """

    collection_name: ClassVar[str] = "audit_ledger"

    id: Optional[str] = Field(default=None)
    event_type: LedgerEventType
    user_id: Optional[str] = None
    correlation_id: Optional[str] = Field(
        default=None,
        description="Gateway key or transaction id tying related entries together.",
    )
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
