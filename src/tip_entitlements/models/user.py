from __future__ import annotations

from datetime import datetime
from typing import ClassVar, List, Optional

from pydantic import BaseModel, Field, model_validator

from .base import DBSerializableModel, utcnow


class Package(BaseModel):
    """
    A purchased bundle of tip credits, embedded in the owning user document.

    Packages are appended by payment confirmation and only ever decremented
    by tip purchases; exhausted packages stay as history.
    """

    id: str = Field(description="Plan id the package was bought from.")
    name: str
    tips_included: int = Field(ge=0)
    tips_remaining: int = Field(ge=0)
    purchased_at: datetime = Field(default_factory=utcnow)
    transaction_id: Optional[str] = Field(
        default=None,
        description="Transaction that paid for this package; idempotency key for crediting.",
    )
    last_used_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _remaining_within_included(self) -> "Package":
        if self.tips_remaining > self.tips_included:
            raise ValueError("tips_remaining cannot exceed tips_included")
        return self


class UserAccount(DBSerializableModel):
    """
    Per-user entitlement state.

    `version` is bumped on every conditional write so concurrent
    read-modify-write cycles on `packages` / `purchased_tips` are detected
    instead of silently overwriting each other.
    """

    collection_name: ClassVar[str] = "users"

    id: Optional[str] = Field(default=None)
    email: str
    display_name: Optional[str] = None
    packages: List[Package] = Field(default_factory=list)
    purchased_tips: List[str] = Field(default_factory=list)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def first_package_with_credit(self) -> Optional[Package]:
        for package in self.packages:
            if package.tips_remaining > 0:
                return package
        return None

    def has_credited_transaction(self, transaction_id: str) -> bool:
        return any(p.transaction_id == transaction_id for p in self.packages)
