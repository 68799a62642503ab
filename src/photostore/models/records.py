"""Plain value objects handed out by the store.

The ORM rows never leave the repository; callers get these frozen
dataclasses instead, so a detached session can never surprise them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from photostore.errors import MalformedRecordError


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        lat = float(self.latitude)
        lon = float(self.longitude)
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"latitude out of range: {lat}")
        if not -180.0 <= lon <= 180.0:
            raise ValueError(f"longitude out of range: {lon}")
        # normalize ints and numeric strings to float
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lon)

    @classmethod
    def coerce(cls, value: Union["Coordinates", Mapping[str, Any], tuple, list, None]) -> Optional["Coordinates"]:
        """Accept Coordinates, a ``(lat, lon)`` pair or a latitude/longitude mapping."""
        if value is None or isinstance(value, Coordinates):
            return value
        if isinstance(value, Mapping):
            return cls(value["latitude"], value["longitude"])
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls(value[0], value[1])
        raise TypeError(f"cannot interpret {value!r} as coordinates")


@dataclass(frozen=True)
class PhotoRecord:
    id: int
    uri: Optional[str]
    coordinates: Optional[Coordinates] = None

    @property
    def latitude(self) -> Optional[float]:
        return self.coordinates.latitude if self.coordinates else None

    @property
    def longitude(self) -> Optional[float]:
        return self.coordinates.longitude if self.coordinates else None

    @property
    def is_malformed(self) -> bool:
        return not self.uri

    def validate(self) -> "PhotoRecord":
        """Return self, or raise MalformedRecordError when the uri is missing."""
        if self.is_malformed:
            raise MalformedRecordError(f"photo record {self.id} has no uri")
        return self


@dataclass(frozen=True)
class LegacyEntry:
    """Row without location data: every v1 row, and v2 rows captured without a fix."""

    id: int
    uri: Optional[str]

    def to_record(self) -> PhotoRecord:
        return PhotoRecord(id=self.id, uri=self.uri)


@dataclass(frozen=True)
class GeoTaggedEntry:
    id: int
    uri: Optional[str]
    coordinates: Coordinates

    def to_record(self) -> PhotoRecord:
        return PhotoRecord(id=self.id, uri=self.uri, coordinates=self.coordinates)


def entry_from_row(id: int, uri: Optional[str], latitude: Optional[float] = None, longitude: Optional[float] = None) -> Union[LegacyEntry, GeoTaggedEntry]:
    """Pick the row variant for a raw ``photos`` row.

    A coordinate pair is only meaningful when both halves are present; a row
    carrying just one of them (or an out-of-range pair) is read as untagged.
    """
    if latitude is None or longitude is None:
        return LegacyEntry(id=id, uri=uri)
    try:
        coords = Coordinates(latitude, longitude)
    except ValueError:
        return LegacyEntry(id=id, uri=uri)
    return GeoTaggedEntry(id=id, uri=uri, coordinates=coords)
