"""
Exception hierarchy for the entitlement service.

Every error carries a stable `code` and the HTTP status the API maps it to,
so the routes never have to translate errors one by one.
"""

from __future__ import annotations

from typing import Any, Optional


class TipBillingError(Exception):
    """Base exception for all entitlement and payment errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)


class ValidationError(TipBillingError):
    """Missing or malformed input; nothing was mutated."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(TipBillingError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, key: Optional[str]) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}", entity=entity, key=key)


class GatewayError(TipBillingError):
    """The payment provider rejected or failed the call; no charge should be assumed."""

    code = "GATEWAY_ERROR"
    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
    ) -> None:
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        super().__init__(message, upstream_status=upstream_status)


class NoCreditError(TipBillingError):
    code = "NO_CREDIT"
    status_code = 400

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__("No package with available tips", user_id=user_id)


class AlreadyPurchasedError(TipBillingError):
    code = "ALREADY_PURCHASED"
    status_code = 400

    def __init__(self, user_id: str, tip_id: str) -> None:
        self.user_id = user_id
        self.tip_id = tip_id
        super().__init__("This tip was already purchased", user_id=user_id, tip_id=tip_id)


class AccessDeniedError(TipBillingError):
    code = "ACCESS_DENIED"
    status_code = 403

    def __init__(self, user_id: str, tip_id: str) -> None:
        self.user_id = user_id
        self.tip_id = tip_id
        super().__init__(
            "You do not have access to this premium tip", user_id=user_id, tip_id=tip_id
        )


class MalformedEventError(TipBillingError):
    code = "MALFORMED_EVENT"
    status_code = 400


class ConcurrentUpdateError(TipBillingError):
    """Conditional write kept losing the race; the caller may retry the request."""

    code = "CONCURRENT_UPDATE"
    status_code = 409

    def __init__(self, user_id: str, attempts: int) -> None:
        self.user_id = user_id
        self.attempts = attempts
        super().__init__(
            f"Could not update user {user_id} after {attempts} attempts",
            user_id=user_id,
            attempts=attempts,
        )
