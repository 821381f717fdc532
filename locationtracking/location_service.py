"""Current user locations: updates and proximity search."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from .db import DBClient
from .history_client import GRPCClient
from .model import Location, LocationInfo
from .validation import (
    ValidationError,
    require_non_negative_number,
    require_positive_int,
    validate_coordinates,
    validate_username,
)

log = logging.getLogger(__name__)

LOCATION_COLLECTION = "location"


def _parse_float(text: str) -> float:
    if text != text.strip() or "_" in text:
        raise ValueError(f"invalid number: {text!r}")
    return float(text)


def extract_coordinates(coordinates_string: str) -> list[float]:
    """Parse "latitude,longitude" into [longitude, latitude]; spaces are ignored."""
    coordinates = [_parse_float(part) for part in coordinates_string.replace(" ", "").split(",")]
    coordinates.reverse()

    if len(coordinates) < 2:
        raise ValueError(f"expected latitude and longitude, got {coordinates_string!r}")
    if coordinates[0] < -180 or coordinates[0] > 180:
        raise ValueError(f"longitude out of range: {coordinates[0]:f}")
    if coordinates[1] < -90 or coordinates[1] > 90:
        raise ValueError(f"latitude out of range: {coordinates[1]:f}")
    return coordinates


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _decode_object(body: bytes) -> dict | None:
    """Decode the first JSON value of body; None if it is not a JSON object."""
    try:
        text = body.decode("utf-8").lstrip(" \t\r\n")
        data, _ = json.JSONDecoder(parse_constant=_reject_constant).raw_decode(text)
    except ValueError as exc:
        log.info("error decoding request body: %s", exc)
        return None
    if data is None:
        return {}
    if not isinstance(data, dict):
        log.info("error decoding request body: not a JSON object")
        return None
    return data


def _string(data: dict, name: str) -> str:
    value = data.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value


def _number(data: dict, name: str) -> float:
    value = data.get(name)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    return float(value)


def _integer(data: dict, name: str) -> int:
    value = data.get(name)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    return value


class LocationService:
    """Keeps each user's latest location and forwards updates to the history service."""

    def __init__(self, db: DBClient, history_client: GRPCClient) -> None:
        self.db = db
        self.history_client = history_client

    def update_user_location(self, username: str, coordinates: list[float]) -> LocationInfo:
        """Store the user's location now and send it on to the history service."""
        info = LocationInfo(
            username=username,
            location=Location(type="Point", coordinates=list(coordinates)),
            timestamp=time.time_ns() // 1_000_000,
        )
        self.db.save_or_replace_document(LOCATION_COLLECTION, info, {"username": info.username})
        self.history_client.update_user_location(info)
        return info

    def search_user_location(
        self, coordinates: list[float], distance: float, page_number: int, page_size: int
    ) -> list[str]:
        """Usernames of users within distance of coordinates, one page at a time."""
        target = Location(type="Point", coordinates=list(coordinates))
        return self.find_near(target, distance, page_number, page_size)

    def find_near(self, target: Location, distance: float, page_number: int, page_size: int) -> list[str]:
        documents = self.db.find(
            LOCATION_COLLECTION,
            {"location": {"$near": {"$geometry": target.to_document(), "$maxDistance": distance}}},
            {"username": 1},
            {"username": 1},
            page_number,
            page_size,
        )
        return [document.get("username", "") or "" for document in documents]

    def handle_update_request(self, body: bytes) -> tuple[int, Any]:
        """Handle a JSON body {username, coordinates}; return (status, payload)."""
        data = _decode_object(body)
        if data is None:
            return 400, None

        try:
            username = validate_username(_string(data, "username"))
            coordinates_string = validate_coordinates(_string(data, "coordinates"))
        except ValidationError as exc:
            log.info("validation error for input data: %s", exc)
            return 400, None

        try:
            coordinates = extract_coordinates(coordinates_string)
        except ValueError as exc:
            log.error("error extracting coordinates '%s': %s", coordinates_string, exc)
            return 500, None

        try:
            self.update_user_location(username, coordinates)
        except Exception:
            log.exception(
                "error updating user location for username '%s' and coordinates '%s'", username, coordinates
            )
            return 500, None
        return 200, None

    def handle_search_request(self, body: bytes) -> tuple[int, Any]:
        """Handle a JSON body {coordinates, distance, pageNumber, pageSize}."""
        data = _decode_object(body)
        if data is None:
            return 400, None

        try:
            coordinates_string = validate_coordinates(_string(data, "coordinates"))
            distance = require_non_negative_number("distance", _number(data, "distance"))
            page_number = require_positive_int("pageNumber", _integer(data, "pageNumber"))
            page_size = require_positive_int("pageSize", _integer(data, "pageSize"))
        except ValidationError as exc:
            log.info("validation error for input data: %s", exc)
            return 400, None

        try:
            coordinates = extract_coordinates(coordinates_string)
        except ValueError as exc:
            log.info("error extracting coordinates '%s': %s", coordinates_string, exc)
            return 400, None

        try:
            usernames = self.search_user_location(coordinates, distance, page_number, page_size)
        except Exception:
            log.exception(
                "error searching user locations for coordinates '%s' and distance '%f'", coordinates, distance
            )
            return 500, None
        return 200, {"usernames": usernames}