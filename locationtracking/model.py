"""Documents stored for a user's location."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass
class Location:
    """A GeoJSON point: coordinates are longitude, latitude."""

    type: str = "Point"
    coordinates: list[float] = field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        return {"type": self.type, "coordinates": list(self.coordinates)}

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> "Location":
        document = document or {}
        return cls(
            type=document.get("type", "") or "",
            coordinates=[float(c) for c in document.get("coordinates") or []],
        )


@dataclass
class LocationInfo:
    """A user's location at a moment, with the distance travelled so far in km."""

    username: str = ""
    location: Location = field(default_factory=Location)
    distance: float = 0.0
    timestamp: int = 0

    def to_document(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "location": self.location.to_document(),
            "distance": self.distance,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> "LocationInfo":
        document = document or {}
        return cls(
            username=document.get("username", "") or "",
            location=Location.from_document(document.get("location")),
            distance=float(document.get("distance", 0) or 0),
            timestamp=int(document.get("timestamp", 0) or 0),
        )