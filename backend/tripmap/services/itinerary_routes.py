from __future__ import annotations

import logging

from tripmap.models import DayFailure, DayRoute, DrivingMetric, ItineraryRoutes
from tripmap.providers.google_directions import GoogleDirectionsProvider
from tripmap.schemas.api import ItineraryIn
from tripmap.services.connector import connect_days
from tripmap.services.metrics import extract_driving_metrics
from tripmap.services.segmentation import segment_days, stop_uid
from tripmap.utils.errors import MismatchedRouteShapeError, ProviderError

LOGGER = logging.getLogger(__name__)

DAY_COLORS = (
    "#3B82F6",  # blue
    "#10B981",  # green
    "#F59E0B",  # yellow
    "#EF4444",  # red
    "#8B5CF6",  # purple
    "#F97316",  # orange
    "#06B6D4",  # cyan
    "#84CC16",  # lime
    "#EC4899",  # pink
    "#6B7280",  # gray
    "#14B8A6",  # teal
    "#F43F5E",  # rose
    "#8B5A3C",  # brown
    "#2563EB",  # indigo
    "#DC2626",  # dark red
)


def day_color(day_index: int) -> str:
    return DAY_COLORS[day_index % len(DAY_COLORS)]


async def compute_itinerary_routes(
    itinerary: ItineraryIn,
    provider: GoogleDirectionsProvider,
    *,
    mode: str = "driving",
) -> ItineraryRoutes:
    """Route every day of an itinerary, one day after another.

    Each day after the first starts from where the previous day ended, so days
    are never routed concurrently. A day that fails is recorded in
    ``failures`` and the remaining days are still routed.
    """
    result = ItineraryRoutes()
    stops_by_day = segment_days(itinerary)
    if not stops_by_day:
        LOGGER.info("No days with routable stops found in itinerary")
        return result

    for day in connect_days(stops_by_day):
        day_number = day.day_index + 1
        if len(day.stops) < 2:
            LOGGER.info("Day %s: only %s stop(s), skipping directions", day_number, len(day.stops))
            result.skipped.append(day.day_index)
            continue

        try:
            route = await provider.route(day.stops, mode=mode)
            metrics = extract_driving_metrics(route, day.stops)
        except (ProviderError, MismatchedRouteShapeError) as exc:
            LOGGER.warning("Day %s: route calculation failed (%s): %s", day_number, exc.error_code, exc.message)
            result.failures.append(DayFailure(day_index=day.day_index, error_code=exc.error_code, message=exc.message))
            continue

        if route.is_fallback:
            LOGGER.warning("Day %s: no driving route found, using straight-line fallback", day_number)
        if day.connector is None:
            first = day.stops[0]
            result.metrics_by_uid[first.uid] = DrivingMetric(first.uid, 0, 0.0)
        for metric in metrics:
            result.metrics_by_uid[metric.stop_uid] = metric

        result.routes.append(
            DayRoute(day_index=day.day_index, color=day_color(day.day_index), route=route, stops=day.stops)
        )

    LOGGER.info(
        "Directions calculation completed - %s driving routes, %s straight-line fallbacks, %s failed, %s skipped",
        len(result.routes) - result.fallback_count,
        result.fallback_count,
        len(result.failures),
        len(result.skipped),
    )
    return result


def apply_driving_metrics(itinerary: ItineraryIn, result: ItineraryRoutes) -> ItineraryIn:
    days = []
    for day in itinerary.days:
        stops = []
        for position, stop in enumerate(day.stops):
            metric = result.metrics_by_uid.get(stop_uid(stop, day.day_index, position))
            if metric is None:
                stops.append(stop.model_copy())
                continue
            stops.append(
                stop.model_copy(
                    update={
                        "drive_minutes_from_previous": metric.minutes_from_previous,
                        "drive_meters_from_previous": metric.meters_from_previous,
                    }
                )
            )
        days.append(day.model_copy(update={"stops": stops}))
    return itinerary.model_copy(update={"days": days})
