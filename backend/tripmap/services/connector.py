from __future__ import annotations

import dataclasses
from typing import Mapping, Sequence

from tripmap.models import ConnectedDay, Stop


def find_day_end_stop(stops: Sequence[Stop]) -> Stop | None:
    """Where a day's route ends.

    1. the stop flagged ``is_day_end``
    2. otherwise the last stop that is not lodging
    3. otherwise the last stop
    """
    if not stops:
        return None
    for stop in stops:
        if stop.is_day_end:
            return stop
    for stop in reversed(stops):
        if stop.role != "lodging":
            return stop
    return stops[-1]


def connect_days(stops_by_day: Mapping[int, Sequence[Stop]]) -> list[ConnectedDay]:
    connected: list[ConnectedDay] = []
    previous: Sequence[Stop] | None = None
    for day_index in sorted(stops_by_day):
        native = tuple(stops_by_day[day_index])
        end_stop = find_day_end_stop(previous) if previous else None
        if end_stop is not None:
            connector = dataclasses.replace(end_stop)
            connected.append(ConnectedDay(day_index=day_index, stops=(connector, *native), connector=connector))
        else:
            connected.append(ConnectedDay(day_index=day_index, stops=native))
        if native:
            previous = native
    return connected
