# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Flight tracking - polls active flights and turns telemetry into events.

Pipeline per cycle: fetch snapshot -> detect events -> notify -> persist.
"""

from .detector import FlightEventDetector
from .models import (
    EventKind,
    FlightEvent,
    FlightSnapshot,
    FlightState,
    Phase,
    Trigger,
    VerticalPhase,
)
from .store import FlightStateStore
from .tracker import FlightTracker

__all__ = [
    'EventKind',
    'FlightEvent',
    'FlightEventDetector',
    'FlightSnapshot',
    'FlightState',
    'FlightStateStore',
    'FlightTracker',
    'Phase',
    'Trigger',
    'VerticalPhase',
]
