from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from ..db.base import BaseDBManager
from ..exceptions import NotFoundError, ValidationError
from ..models.api_models import CreateTipRequest
from ..models.tip import Tip, normalize_match_date


class TipService:
    """Tip content store used by the admin form and the access checks."""

    _REQUIRED = ("league", "teams", "match_time", "prediction")

    def __init__(self, db: BaseDBManager) -> None:
        self._db = db

    async def create_tip(self, data: CreateTipRequest, created_by: Optional[str] = None) -> Tip:
        missing = [name for name in self._REQUIRED if not getattr(data, name)]
        if missing:
            raise ValidationError(f"missing required fields: {', '.join(missing)}", missing=missing)
        try:
            tip = Tip(
                category=data.category or "football",
                league=data.league,
                teams=data.teams,
                match_time=data.match_time,
                prediction=data.prediction,
                confidence=data.confidence,
                is_premium=data.is_premium,
                description=data.description,
                odds=data.odds,
                created_by=created_by,
            )
        except ValueError as exc:
            raise ValidationError(f"invalid tip: {exc}") from exc
        return await self._db.add_tip(tip)

    async def get_tip(self, tip_id: str) -> Tip:
        tip = await self._db.get_tip(tip_id)
        if tip is None:
            raise NotFoundError("Tip", tip_id)
        return tip

    async def get_tips_by_date(self, day: str | date | datetime) -> List[Tip]:
        try:
            match_date = normalize_match_date(day)
        except ValueError as exc:
            raise ValidationError(f"invalid date: {day}") from exc
        return list(await self._db.get_tips_by_match_date(match_date))
