from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from tripmap.services.cache import get_cache
from tripmap.utils.settings import get_settings

router = APIRouter(tags=["health"])


def _check_cache_ready() -> dict[str, Any]:
    try:
        stats = get_cache().stats()
        return {"status": "ready", "backend": stats["backend"], "keys": stats["keys"]}
    except Exception as exc:  # noqa: BLE001
        return {"status": "unready", "detail": str(exc)}


def _check_google_ready() -> dict[str, Any]:
    settings = get_settings()
    if not settings.google_maps_api_key:
        return {"status": "unready", "detail": "GOOGLE_MAPS_API_KEY is not configured"}
    return {"status": "ready"}


def _build_readiness_report() -> dict[str, Any]:
    checks = {
        "cache": _check_cache_ready(),
        "google": _check_google_ready(),
    }
    ready = all(check["status"] in {"ready", "skipped"} for check in checks.values())
    return {"status": "ok" if ready else "degraded", "ready": ready, "checks": checks}


@router.get("/api/v1/health")
def health() -> dict[str, Any]:
    settings = get_settings()
    return {
        "status": "ok",
        "env": settings.app_env,
        "cache_backend": settings.cache_backend,
        "cache_persistence": bool(settings.cache_persistence),
        "google_key_configured": bool(settings.google_maps_api_key),
    }


@router.get("/health/live")
def health_live() -> dict[str, Any]:
    settings = get_settings()
    return {"status": "ok", "env": settings.app_env}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    report = _build_readiness_report()
    status_code = 200 if report["ready"] else 503
    return JSONResponse(status_code=status_code, content=report)
