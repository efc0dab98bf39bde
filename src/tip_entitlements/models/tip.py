from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .base import DBSerializableModel, utcnow


def normalize_match_date(value: str | datetime | date) -> str:
    """
    Reduce a match time (ISO string, datetime or date) to `YYYY-MM-DD`.
    Tips are filtered by exact equality on this normalized string.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return date.fromisoformat(text[:10]).isoformat()


class Odds(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    house: str
    value: float
    is_best: bool = False


class Tip(DBSerializableModel):
    """
    Prediction content. Owned by the tips admin; the entitlement code only
    looks at `id` and `is_premium`.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    collection_name: ClassVar[str] = "tips"

    id: Optional[str] = Field(default=None)
    category: str = "football"
    league: str
    teams: str
    match_time: str
    match_date: Optional[str] = None
    prediction: str
    confidence: int = 0
    is_premium: bool = False
    description: str = ""
    odds: List[Odds] = Field(default_factory=list)
    status: str = "active"
    result: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _derive_match_date(self) -> "Tip":
        if self.match_date is None:
            self.match_date = normalize_match_date(self.match_time)
        return self


class TipPurchase(DBSerializableModel):
    """
    Audit record of one credit spent on one tip. The id is derived from
    (user, tip) so the record can only ever exist once per pair.
    """

    collection_name: ClassVar[str] = "tip_purchases"

    id: Optional[str] = Field(default=None)
    user_id: str
    tip_id: str
    purchased_at: datetime = Field(default_factory=utcnow)
    package_id: str
    package_name: str
    transaction_id: Optional[str] = None

    @staticmethod
    def make_id(user_id: str, tip_id: str) -> str:
        return f"{user_id}:{tip_id}"
