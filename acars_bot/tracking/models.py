# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Data model for flight tracking.

FlightSnapshot is one record of one poll, read-only.
FlightState is what the detector remembers about a flight between polls.
FlightEvent is what the detector hands to the notifier.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..utils.errors import MalformedRecord


class Phase(str, Enum):
    GROUND = 'ground'
    AIRBORNE = 'airborne'


class VerticalPhase(str, Enum):
    CLIMB = 'climb'
    CRUISE = 'cruise'
    DESCENT = 'descent'
    UNKNOWN = 'unknown'


class EventKind(str, Enum):
    TRACKING_STARTED = 'tracking_started'
    TAKEOFF = 'takeoff'
    LANDING = 'landing'
    CRASH = 'crash'
    UPDATE = 'update'


class Trigger(str, Enum):
    """Reasons an ordinary update event was emitted."""
    HEARTBEAT = 'heartbeat'
    ALTITUDE = 'altitude'
    SPEED = 'speed'
    POSITION = 'position'
    VERTICAL_PHASE = 'vertical_phase'


# Keys tried in order when resolving a record's identity
IDENTITY_KEYS = ('id', 'uuid', 'callsign')

NUMERIC_FIELDS = {
    'altitude': 'altitude',
    'latitude': 'latitude',
    'longitude': 'longitude',
    'speed': 'speed',
    'heading': 'heading',
    'altitude_agl': 'altitude_agl',
}

VERTICAL_SPEED_KEYS = ('vertical_speed_fpm', 'vertical_speed')


def to_number(value: Any, name: str) -> Optional[float]:
    """
    Coerce a telemetry value to float.

    None, empty strings and NaN mean "unknown" and return None.
    Anything that is present but not numeric raises MalformedRecord.
    """
    if value is None:
        return None

    # bool is an int subclass but never a valid reading
    if isinstance(value, bool):
        raise MalformedRecord(f"Field '{name}' has boolean value {value!r}")

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            raise MalformedRecord(f"Field '{name}' is not numeric: {value!r}")
    else:
        raise MalformedRecord(f"Field '{name}' has unexpected type {type(value).__name__}")

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def resolve_identity(record: Dict[str, Any]) -> Optional[str]:
    """Return the first non-empty identity (id, uuid, then callsign)."""
    for key in IDENTITY_KEYS:
        value = record.get(key)
        if value is None or isinstance(value, bool):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _text(record: Dict[str, Any], *keys) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


@dataclass(frozen=True)
class FlightSnapshot:
    """One active flight as reported by a single poll."""
    id: str
    altitude: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    vertical_speed: Optional[float] = None

    # Descriptive passthrough, never used for detection
    callsign: Optional[str] = None
    aircraft_type: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    altitude_agl: Optional[float] = None
    engine_type: Optional[str] = None
    engine_model: Optional[str] = None
    engine_count: Optional[str] = None
    engines: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'FlightSnapshot':
        """
        Build a snapshot from a raw telemetry row.

        Raises:
            MalformedRecord: record is not a mapping, has no identity,
                or carries a non-numeric value in a numeric field.
        """
        if not isinstance(record, dict):
            raise MalformedRecord(f"Expected a mapping, got {type(record).__name__}")

        flight_id = resolve_identity(record)
        if not flight_id:
            raise MalformedRecord("Record has no id, uuid or callsign")

        numbers = {
            attr: to_number(record.get(key), key)
            for attr, key in NUMERIC_FIELDS.items()
        }

        vertical_speed = None
        for key in VERTICAL_SPEED_KEYS:
            vertical_speed = to_number(record.get(key), key)
            if vertical_speed is not None:
                break

        heading = numbers['heading']
        if heading is not None:
            heading = heading % 360

        return cls(
            id=flight_id,
            altitude=numbers['altitude'],
            latitude=numbers['latitude'],
            longitude=numbers['longitude'],
            speed=numbers['speed'],
            heading=heading,
            vertical_speed=vertical_speed,
            callsign=_text(record, 'callsign'),
            aircraft_type=_text(record, 'aircraft_type', 'aircraft'),
            origin=_text(record, 'origin'),
            destination=_text(record, 'destination'),
            altitude_agl=numbers['altitude_agl'],
            engine_type=_text(record, 'engine_type'),
            engine_model=_text(record, 'engine_model'),
            engine_count=_text(record, 'engine_count'),
            engines=_text(record, 'engines'),
            raw=dict(record),
        )

    @property
    def display_name(self) -> str:
        return self.callsign or self.id

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class FlightState:
    """Last-known derived state of one tracked flight."""
    flight_id: str
    phase: Phase
    vertical_phase: VerticalPhase
    last_poll_at: datetime
    last_notified_at: datetime
    last_altitude: Optional[float] = None
    last_latitude: Optional[float] = None
    last_longitude: Optional[float] = None
    last_speed: Optional[float] = None
    last_heading: Optional[float] = None
    last_vertical_speed: Optional[float] = None
    altitude_history: List[Tuple[datetime, float]] = field(default_factory=list)
    crash_detected: bool = False

    @property
    def has_position(self) -> bool:
        return self.last_latitude is not None and self.last_longitude is not None


@dataclass
class FlightEvent:
    """A notification-worthy change for one flight in one poll cycle."""
    kind: EventKind
    flight_id: str
    snapshot: FlightSnapshot
    state: FlightState
    occurred_at: datetime
    triggers: List[Trigger] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
