from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field

from .base import ApiModel
from .plan import PlanType
from .tip import Odds, Tip


class CreatePixRequest(ApiModel):
    plan_id: Optional[str] = None
    user_id: Optional[str] = None


class ChargeResult(ApiModel):
    """PIX charge handed back to the checkout page."""

    id: str = Field(description="Gateway charge key (pixQrCodeId).")
    encoded_image: str
    payload: str
    expiration_date: datetime
    transaction_id: str

    @property
    def external_key(self) -> str:
        return self.id


class WebhookPayment(ApiModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    pix_qr_code_id: Optional[str] = None


class WebhookEvent(ApiModel):
    """Gateway callback body: `{event, payment: {pixQrCodeId, id, ...}}`."""

    model_config = ConfigDict(extra="allow")

    event: Optional[str] = None
    payment: Optional[WebhookPayment] = None

    @property
    def charge_key(self) -> Optional[str]:
        return self.payment.pix_qr_code_id if self.payment else None


class TransactionResult(ApiModel):
    transaction_id: str
    status: Optional[str] = None
    user_updated: bool = False
    already_credited: bool = False
    error: Optional[str] = None


class WebhookResult(ApiModel):
    success: bool = True
    message: str
    event: Optional[str] = None
    pix_key_id: Optional[str] = None
    processed: bool = False
    updated_transactions: int = 0
    results: List[TransactionResult] = Field(default_factory=list)


class UpdateStatusRequest(ApiModel):
    pix_key_id: Optional[str] = None
    status: str = "completed"


class PurchaseTipRequest(ApiModel):
    user_id: Optional[str] = None
    tip_id: Optional[str] = None


class PackageUsed(ApiModel):
    id: str
    name: str
    tips_remaining: int


class PurchaseResult(ApiModel):
    success: bool = True
    message: str = "Tip purchased"
    purchase_id: str
    package_used: PackageUsed


class AccessResult(ApiModel):
    success: bool = True
    tip: Tip
    has_access: bool
    reason: str


class PurchasedTip(ApiModel):
    id: str
    category: str
    league: str
    teams: str
    match_time: str
    prediction: str
    confidence: int = 0
    is_premium: bool
    odds: List[Odds] = Field(default_factory=list)
    status: str = "active"
    result: Optional[str] = None
    purchased_at: datetime
    price: int = 0
    plan_name: str
    package_id: str


class PurchasedTipsResponse(ApiModel):
    success: bool = True
    tips: List[PurchasedTip] = Field(default_factory=list)
    total: int = 0


class CreateTipRequest(ApiModel):
    category: str = "football"
    league: Optional[str] = None
    teams: Optional[str] = None
    match_time: Optional[str] = None
    prediction: Optional[str] = None
    confidence: int = 0
    is_premium: bool = False
    description: str = ""
    odds: List[Odds] = Field(default_factory=list)


class CreateUserRequest(ApiModel):
    email: str
    display_name: Optional[str] = None


class PlanResponse(ApiModel):
    id: str
    name: str
    type: PlanType
    price: int
    currency: str
    tips_included: Optional[int] = None
    duration: Optional[int] = None
    features: List[str] = Field(default_factory=list)
    is_popular: bool = False


class ErrorResponse(ApiModel):
    detail: str
    code: str
