from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..exceptions import NotFoundError, ValidationError
from ..models.api_models import (
    AccessResult,
    ChargeResult,
    CreatePixRequest,
    CreateTipRequest,
    CreateUserRequest,
    ErrorResponse,
    PlanResponse,
    PurchasedTipsResponse,
    PurchaseResult,
    PurchaseTipRequest,
    UpdateStatusRequest,
    WebhookEvent,
    WebhookResult,
)
from ..models.base import utcnow
from ..models.tip import Tip
from ..models.user import UserAccount
from .dependencies import ServiceContainer, get_container


ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}

payments_router = APIRouter(prefix="/asaas", tags=["payments"], responses=ERROR_RESPONSES)
tips_router = APIRouter(prefix="/tips", tags=["tips"], responses=ERROR_RESPONSES)
catalog_router = APIRouter(tags=["catalog"], responses=ERROR_RESPONSES)


@payments_router.post("/pix", response_model=ChargeResult)
async def create_pix(
    payload: CreatePixRequest, services: ServiceContainer = Depends(get_container)
) -> ChargeResult:
    return await services.charges.create_charge(payload.plan_id or "", payload.user_id or "")


@payments_router.post("/webhook", response_model=WebhookResult)
async def asaas_webhook(
    payload: WebhookEvent, services: ServiceContainer = Depends(get_container)
) -> WebhookResult:
    return await services.confirmations.handle_event(payload)


@payments_router.get("/webhook")
async def webhook_health() -> dict:
    return {"success": True, "message": "Webhook endpoint is up", "timestamp": utcnow().isoformat()}


@payments_router.post("/pix/update-status")
async def update_pix_status(
    payload: UpdateStatusRequest, services: ServiceContainer = Depends(get_container)
) -> dict:
    if not payload.pix_key_id:
        raise ValidationError("pixKeyId is required")
    updated = await services.transactions.update_status_by_external_key(
        payload.pix_key_id, payload.status
    )
    return {
        "success": True,
        "pixKeyId": payload.pix_key_id,
        "newStatus": payload.status,
        "updatedTransactions": len(updated),
    }


@payments_router.get("/pix/update-status")
async def get_pix_status(
    pix_key_id: Optional[str] = Query(default=None, alias="pixKeyId"),
    services: ServiceContainer = Depends(get_container),
) -> dict:
    if not pix_key_id:
        raise ValidationError("pixKeyId is required")
    transactions = await services.transactions.find_by_external_key(pix_key_id)
    if not transactions:
        raise NotFoundError("Transaction", pix_key_id)
    return {
        "success": True,
        "pixKeyId": pix_key_id,
        "transactions": [
            tx.model_dump(mode="json", exclude={"gateway_payload", "pix_qr_code"})
            for tx in transactions
        ],
    }


@tips_router.post("/purchase", response_model=PurchaseResult)
async def purchase_tip(
    payload: PurchaseTipRequest, services: ServiceContainer = Depends(get_container)
) -> PurchaseResult:
    return await services.entitlements.purchase_tip(payload.user_id or "", payload.tip_id or "")


@tips_router.get("/purchased", response_model=PurchasedTipsResponse)
async def purchased_tips(
    email: Optional[str] = None, services: ServiceContainer = Depends(get_container)
) -> PurchasedTipsResponse:
    if not email:
        raise ValidationError("user email is required")
    tips = await services.purchased.list_purchased(email)
    return PurchasedTipsResponse(tips=tips, total=len(tips))


@tips_router.get("/{tip_id}", response_model=AccessResult)
async def get_tip(
    tip_id: str,
    email: Optional[str] = None,
    services: ServiceContainer = Depends(get_container),
) -> AccessResult:
    return await services.access.check_access(email, tip_id)


@tips_router.post("", status_code=status.HTTP_201_CREATED)
async def create_tip(
    payload: CreateTipRequest, services: ServiceContainer = Depends(get_container)
) -> dict:
    tip = await services.tips.create_tip(payload)
    return {"success": True, "id": tip.id}


@tips_router.get("", response_model=List[Tip])
async def tips_by_date(
    date: Optional[str] = None, services: ServiceContainer = Depends(get_container)
) -> List[Tip]:
    if not date:
        raise ValidationError("date is required")
    return await services.tips.get_tips_by_date(date)


@catalog_router.get("/plans", response_model=List[PlanResponse])
async def list_plans(services: ServiceContainer = Depends(get_container)) -> List[PlanResponse]:
    plans = await services.plans.list_plans()
    return [PlanResponse.model_validate(p.model_dump()) for p in plans]


@catalog_router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: CreateUserRequest, services: ServiceContainer = Depends(get_container)
) -> dict:
    user: UserAccount = await services.users.create_user(payload.email, payload.display_name)
    return {"success": True, "id": user.id, "email": user.email}
