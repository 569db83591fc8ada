from __future__ import annotations

from fastapi import APIRouter, Depends

from tripmap.models import DayRoute, Route, Stop
from tripmap.providers.google_directions import GoogleDirectionsProvider, get_directions_provider
from tripmap.schemas.api import (
    DayFailureOut,
    DayRouteOut,
    DirectionsRequest,
    DrivingMetricOut,
    ItineraryDirectionsResponse,
    ItineraryIn,
    LegOut,
    RouteOut,
)
from tripmap.services.fallback import describe_fallback
from tripmap.services.itinerary_routes import apply_driving_metrics, compute_itinerary_routes

router = APIRouter(prefix="/api/v1", tags=["directions"])


def _route_out(route: Route) -> RouteOut:
    return RouteOut(
        legs=[LegOut(origin_index=leg.origin_index, distance_m=leg.distance_m, duration_s=leg.duration_s) for leg in route.legs],
        encoded_path=route.encoded_path,
        is_fallback=route.is_fallback,
    )


def _day_route_out(item: DayRoute) -> DayRouteOut:
    return DayRouteOut(
        day_index=item.day_index,
        color=item.color,
        stop_uids=[stop.uid for stop in item.stops],
        route=_route_out(item.route),
        description=describe_fallback(item.stops) if item.route.is_fallback else None,
    )


@router.post("/itineraries/directions", response_model=ItineraryDirectionsResponse)
async def itinerary_directions(
    payload: ItineraryIn,
    provider: GoogleDirectionsProvider = Depends(get_directions_provider),
) -> ItineraryDirectionsResponse:
    result = await compute_itinerary_routes(payload, provider)
    return ItineraryDirectionsResponse(
        routes=[_day_route_out(item) for item in result.routes],
        metrics={
            uid: DrivingMetricOut(
                stop_uid=metric.stop_uid,
                minutes_from_previous=metric.minutes_from_previous,
                meters_from_previous=metric.meters_from_previous,
            )
            for uid, metric in result.metrics_by_uid.items()
        },
        skipped_days=result.skipped,
        failures=[
            DayFailureOut(day_index=item.day_index, error_code=item.error_code, message=item.message)
            for item in result.failures
        ],
        fallback_count=result.fallback_count,
        itinerary=apply_driving_metrics(payload, result),
    )


@router.post("/directions", response_model=RouteOut)
async def directions(
    payload: DirectionsRequest,
    provider: GoogleDirectionsProvider = Depends(get_directions_provider),
) -> RouteOut:
    stops = [
        Stop(uid=item.uid, name=item.name, lat=item.lat, lng=item.lng, role=item.role, is_day_end=item.is_day_end)
        for item in payload.stops
    ]
    route = await provider.route(stops, mode=payload.mode)
    return _route_out(route)
