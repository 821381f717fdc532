"""Distance travelled by users, computed from their location history."""

from __future__ import annotations

import dataclasses
import json
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any

from .db import DBClient
from .model import Location, LocationInfo
from .validation import ValidationError, validate_datetime, validate_username

log = logging.getLogger(__name__)

LOCATION_HISTORY_COLLECTION = "location-history"
EARTH_RADIUS_KM = 6371

_RFC3339 = re.compile(
    r"\A(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))\Z",
    re.ASCII,
)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)


def _parse_rfc3339(value: str) -> datetime:
    match = _RFC3339.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"cannot parse {value!r} as an RFC 3339 time")
    year, month, day, hour, minute, second, fraction, zulu, sign, off_h, off_m = match.groups()
    if zulu:
        tz = timezone.utc
    else:
        if int(off_h) > 23 or int(off_m) > 59:
            raise ValueError(f"time zone offset out of range in {value!r}")
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        tz = timezone(-offset if sign == "-" else offset)
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), microsecond, tzinfo=tz
    )


def _unix_millis(moment: datetime) -> int:
    return (moment - _EPOCH) // _MILLISECOND


def degrees_to_radians(d: float) -> float:
    return d * math.pi / 180


def calculate_distance(start: Location, end: Location, current_distance: float) -> float:
    """Haversine distance in km from start to end, added to current_distance.

    A start without coordinates yields 0.
    """
    if not start.coordinates:
        return 0.0

    start_lon = degrees_to_radians(start.coordinates[0])
    start_lat = degrees_to_radians(start.coordinates[1])
    end_lon = degrees_to_radians(end.coordinates[0])
    end_lat = degrees_to_radians(end.coordinates[1])

    diff_lon = end_lon - start_lon
    diff_lat = end_lat - start_lat

    a = math.sin(diff_lat / 2) ** 2 + math.cos(start_lat) * math.cos(end_lat) * math.sin(diff_lon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a)) + current_distance


class LocationHistoryService:
    """Stores location updates and answers distance queries."""

    def __init__(self, db: DBClient) -> None:
        self.db = db

    def calculate_user_distance(self, username: str, start: str, end: str) -> float:
        """Distance in km travelled by username between two RFC 3339 times."""
        parsed_start = _parse_rfc3339(start)
        initial_distance = self.get_first_after(username, _unix_millis(parsed_start))
        parsed_end = _parse_rfc3339(end)

        if parsed_end < parsed_start:
            log.info("end time '%s' is before start time '%s' for username '%s'", end, start, username)
            return 0.0

        final_distance = self.get_last_before(username, _unix_millis(parsed_end))
        return final_distance - initial_distance

    def get_first_after(self, username: str, date: int) -> float:
        """Total distance at the first location at or after date (ms)."""
        return self._get_date(username, date, before=False)

    def get_last_before(self, username: str, date: int) -> float:
        """Total distance at the last location at or before date (ms)."""
        return self._get_date(username, date, before=True)

    def _get_date(self, username: str, date: int, *, before: bool) -> float:
        comparator = "$lte" if before else "$gte"
        documents = self.db.find(
            LOCATION_HISTORY_COLLECTION,
            {"username": username, "timestamp": {comparator: date}},
            {"distance": 1},
            {"timestamp": -1 if before else 1},
            1,
            1,
        )
        if not documents:
            return 0.0
        return float(documents[0].get("distance") or 0)

    def find_current(self, username: str) -> tuple[Location, float] | None:
        """The latest location and total distance of username, or None."""
        documents = self.db.find(
            LOCATION_HISTORY_COLLECTION,
            {"username": username},
            {"location": 1, "distance": 1},
            {"timestamp": -1},
            1,
            1,
        )
        if not documents:
            return None
        document = documents[0]
        return Location.from_document(document.get("location")), float(document.get("distance") or 0)

    def update_user_location(self, info: LocationInfo) -> None:
        """Store a location, with the total distance travelled up to it."""
        current = self.find_current(info.username)
        if current is None:
            distance = 0.0
        else:
            current_location, current_distance = current
            distance = calculate_distance(current_location, info.location, current_distance)

        record = dataclasses.replace(info, distance=distance)
        self.db.save_or_replace_document(
            LOCATION_HISTORY_COLLECTION,
            record,
            {"username": record.username, "timestamp": record.timestamp},
        )

    def handle_distance_request(self, body: bytes) -> tuple[int, Any]:
        """Handle a JSON body {username, start, end}; return (status, payload)."""
        try:
            data = json.loads(body)
        except ValueError as exc:
            log.info("error decoding request body: %s", exc)
            return 400, None
        if data is None:
            data = {}
        if not isinstance(data, dict):
            log.info("request body is not an object")
            return 400, None

        fields: dict[str, str] = {}
        for name in ("username", "start", "end"):
            value = data.get(name)
            if value is None:
                value = ""
            if not isinstance(value, str):
                log.info("field '%s' must be a string", name)
                return 400, None
            fields[name] = value

        try:
            validate_username(fields["username"])
            validate_datetime(fields["start"])
            validate_datetime(fields["end"])
        except ValidationError as exc:
            log.info("validation error for request data: %s", exc)
            return 400, None

        try:
            distance = self.calculate_user_distance(fields["username"], fields["start"], fields["end"])
        except Exception:
            log.exception(
                "error calculating user distance for username '%s' and date range '%s' - '%s'",
                fields["username"],
                fields["start"],
                fields["end"],
            )
            return 500, None

        return 200, {"distance": distance}