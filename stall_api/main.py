from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from stall_api import deps
from stall_api.errors import StallApiError
from stall_api.logging_config import configure_logging
from stall_api.routers.auth_callback import router as auth_router
from stall_api.routers.stalls import router as stalls_router
from stall_api.settings import Settings, get_settings

configure_logging(get_settings().log_level)

logger = logging.getLogger("stall_api")

APP_VERSION = "1.0.0"

app = FastAPI(title="Stall Submissions API", version=APP_VERSION)
app.include_router(stalls_router)
app.include_router(auth_router)


@app.exception_handler(StallApiError)
async def stall_api_error_handler(request: Request, exc: StallApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(
            "%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details or "no details"
        )
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_body(), status_code=exc.status_code)


@app.get("/healthz")
def healthz(settings: Settings = Depends(deps.get_settings_dep)):
    # Avoid secrets: only report which collaborators are selected.
    return JSONResponse(
        {
            "ok": True,
            "service": "stall-api",
            "version": APP_VERSION,
            "auth_provider": settings.auth_provider,
            "store_backend": settings.store_backend,
        }
    )
