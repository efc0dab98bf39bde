from __future__ import annotations

from ..exceptions import AccessDeniedError, NotFoundError, ValidationError
from ..models.api_models import AccessResult
from .tip_service import TipService
from .user_service import UserService


class AccessGate:
    """Decides whether a tip's content may be shown to a user. Read-only."""

    def __init__(self, tips: TipService, users: UserService) -> None:
        self._tips = tips
        self._users = users

    async def check_access(self, user_id: str | None, tip_id: str) -> AccessResult:
        tip = await self._tips.get_tip(tip_id)

        if not tip.is_premium:
            return AccessResult(tip=tip, has_access=True, reason="free")

        if not user_id:
            raise ValidationError("user email is required for premium tips")
        user = await self._users.get_user_by_email(user_id)
        if tip_id not in user.purchased_tips:
            raise AccessDeniedError(user_id, tip_id)
        return AccessResult(tip=tip, has_access=True, reason="purchased")

    async def has_access(self, user_id: str | None, tip_id: str) -> bool:
        try:
            return (await self.check_access(user_id, tip_id)).has_access
        except (AccessDeniedError, NotFoundError, ValidationError):
            return False
