from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..exceptions import TipBillingError
from ..models.api_models import ErrorResponse
from .dependencies import ServiceContainer, build_container
from .router import catalog_router, payments_router, tips_router


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


async def handle_billing_error(request: Request, exc: TipBillingError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed: %s",
        exc.message,
        extra={"path": request.url.path, "code": exc.code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=exc.message, code=exc.code).model_dump(),
    )


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    services = container or build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await services.db.ensure_indexes()
        yield
        await services.gateway.aclose()

    app = FastAPI(title="Tip entitlements", lifespan=lifespan)
    app.state.container = services
    app.add_exception_handler(TipBillingError, handle_billing_error)  # type: ignore[arg-type]
    app.include_router(payments_router)
    app.include_router(tips_router)
    app.include_router(catalog_router)
    return app
