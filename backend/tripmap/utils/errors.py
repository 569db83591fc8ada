from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class AppError(Exception):
    message: str
    error_code: str = "APP_ERROR"
    status_code: int = 400
    details: Any = None
    stage: str = "API"

    def __str__(self) -> str:
        return self.message


@dataclass
class InvalidInputError(AppError):
    error_code: str = "INVALID_INPUT"
    status_code: int = 400
    stage: str = "ROUTING"


@dataclass
class ProviderError(AppError):
    """Raised when the upstream provider answers with anything but a usable result."""

    error_code: str = "PROVIDER_ERROR"
    status_code: int = 502
    stage: str = "PROVIDER"


@dataclass
class MismatchedRouteShapeError(AppError):
    error_code: str = "ROUTE_SHAPE_MISMATCH"
    status_code: int = 500
    stage: str = "ROUTING"
