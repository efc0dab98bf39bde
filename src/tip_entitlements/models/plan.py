from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import ClassVar, List, Optional

from pydantic import Field, model_validator

from .base import DBSerializableModel, utcnow


class PlanType(str, Enum):
    PACKAGE = "package"
    SUBSCRIPTION = "subscription"


class Plan(DBSerializableModel):
    """
    Catalog entry shared across users. Read-only from the service's point of
    view; prices are integer centavos.
    """

    collection_name: ClassVar[str] = "plans"

    id: Optional[str] = Field(default=None)
    name: str
    type: PlanType
    price: int = Field(ge=0, description="Price in minor currency units (centavos).")
    currency: str = "BRL"
    tips_included: Optional[int] = Field(
        default=None, description="Number of tip credits granted (package plans only)."
    )
    duration: Optional[int] = Field(
        default=None, description="Length in days (subscription plans only)."
    )
    features: List[str] = Field(default_factory=list)
    is_popular: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_type_fields(self) -> "Plan":
        if self.type is PlanType.PACKAGE and not self.tips_included:
            raise ValueError("package plans must include at least one tip")
        return self

    @property
    def price_in_reais(self) -> float:
        return round(self.price / 100, 2)
