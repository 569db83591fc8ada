from __future__ import annotations

import logging
import traceback
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tripmap.api import cache, directions, health, places
from tripmap.providers import close_directions_provider, close_places_provider
from tripmap.services.cache import close_cache, get_cache
from tripmap.utils.errors import AppError
from tripmap.utils.settings import get_settings

LOGGER = logging.getLogger(__name__)

settings = get_settings()
app = FastAPI(title="Tripmap Routing API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    get_cache()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_directions_provider()
    await close_places_provider()
    close_cache()


@app.middleware("http")
async def structured_error_middleware(request: Request, call_next):
    correlation_id = str(uuid.uuid4())
    request.state.correlation_id = correlation_id

    try:
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response
    except AppError as exc:
        LOGGER.warning("%s failed (%s): %s details=%s", exc.stage, exc.error_code, exc.message, exc.details)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error_code": exc.error_code,
                "message": exc.message,
                "details": exc.details,
                "correlation_id": correlation_id,
            },
            headers={"X-Correlation-ID": correlation_id},
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
        return JSONResponse(
            status_code=500,
            content={
                "error_code": "INTERNAL_ERROR",
                "message": "Unexpected server error",
                "details": {"type": type(exc).__name__},
                "correlation_id": correlation_id,
            },
            headers={"X-Correlation-ID": correlation_id},
        )


app.include_router(health.router)
app.include_router(directions.router)
app.include_router(places.router)
app.include_router(cache.router)
