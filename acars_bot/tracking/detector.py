# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Flight Event Detector - the flight tracking state machine.

Compares each poll snapshot against the remembered state of every flight
and decides what is worth announcing:

- first sighting           -> TRACKING_STARTED
- rapid descent            -> CRASH (pre-empts everything else for that flight)
- ground <-> airborne      -> TAKEOFF / LANDING
- heartbeat, altitude, speed, position or vertical-phase change
                           -> one consolidated UPDATE per flight per cycle

Flights missing from a snapshot are forgotten. Telemetry values that are
unknown in a snapshot never overwrite values we already know.
"""

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from ..config import TrackerSettings
from .geo import haversine_nm
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

logger = logging.getLogger(__name__)


def _sticky(current, previous):
    return current if current is not None else previous


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class FlightEventDetector:
    """Turns consecutive telemetry snapshots into flight events."""

    def __init__(self, settings: Optional[TrackerSettings] = None,
                 store: Optional[FlightStateStore] = None):
        self.settings = settings or TrackerSettings()
        self.store = store if store is not None else FlightStateStore()
        self.consecutive_empty_polls = 0

    # ------------------------------------------------------------------
    # Derivations
    # ------------------------------------------------------------------

    def phase_for(self, altitude: Optional[float]) -> Phase:
        """Airborne strictly above the airborne threshold; unknown altitude is ground."""
        if altitude is not None and altitude > self.settings.airborne_altitude_ft:
            return Phase.AIRBORNE
        return Phase.GROUND

    def vertical_phase_for(self, vertical_speed: Optional[float],
                           current: VerticalPhase) -> VerticalPhase:
        """
        Classify vertical speed with hysteresis.

        Between the cruise band and the climb/descent thresholds the
        current classification is kept so the phase does not flap.
        """
        if vertical_speed is None:
            return current
        if vertical_speed > self.settings.climb_threshold_fpm:
            return VerticalPhase.CLIMB
        if vertical_speed < self.settings.descent_threshold_fpm:
            return VerticalPhase.DESCENT
        if abs(vertical_speed) <= self.settings.cruise_band_fpm:
            return VerticalPhase.CRUISE
        return current

    @staticmethod
    def vertical_speed_for(snapshot: FlightSnapshot, previous_altitude: Optional[float],
                           elapsed_seconds: float) -> Optional[float]:
        """Reported vertical speed, or one derived from the altitude change (fpm)."""
        if snapshot.vertical_speed is not None:
            return snapshot.vertical_speed
        if snapshot.altitude is None or previous_altitude is None or elapsed_seconds <= 0:
            return None
        return _round_half_up((snapshot.altitude - previous_altitude) / elapsed_seconds * 60)

    def prune_history(self, history: List[Tuple[datetime, float]], now: datetime):
        cutoff = now - self.settings.history_window
        return [(ts, alt) for ts, alt in history if ts >= cutoff]

    def check_crash(self, history: List[Tuple[datetime, float]], altitude: float,
                    now: datetime) -> Optional[dict]:
        """
        Look for a rapid descent within the crash window.

        Returns the descent details when the highest altitude seen inside
        the window is at least crash_descent_ft above the current one.
        """
        window_start = now - self.settings.crash_window
        recent = [(ts, alt) for ts, alt in history if ts >= window_start]
        if not recent:
            return None

        peak_at, peak_altitude = max(recent, key=lambda sample: sample[1])
        descent = peak_altitude - altitude
        if descent < self.settings.crash_descent_ft:
            return None

        seconds = (now - peak_at).total_seconds()
        rate = _round_half_up(descent / seconds * 60) if seconds > 0 else None
        return {
            'descent_ft': descent,
            'rate_fpm': rate,
            'peak_altitude_ft': peak_altitude,
            'seconds': seconds,
        }

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------

    def process(self, snapshots: Iterable[FlightSnapshot], now: datetime) -> List[FlightEvent]:
        """
        Run one detection cycle.

        Args:
            snapshots: every active flight from this poll (may be empty)
            now: timestamp of the poll

        Returns:
            Events in snapshot order. The store is updated in place.
        """
        current = []
        seen = set()
        for snapshot in snapshots:
            flight_id = getattr(snapshot, 'id', None)
            if not flight_id:
                logger.warning("Dropping flight record without identity")
                continue
            if flight_id in seen:
                logger.warning(f"Duplicate flight {flight_id} in snapshot, keeping the first")
                continue
            seen.add(flight_id)
            current.append(snapshot)

        if not current:
            self.consecutive_empty_polls += 1
            if self.consecutive_empty_polls >= self.settings.empty_polls_before_reset:
                if len(self.store):
                    logger.info(f"No active flights, clearing {len(self.store)} tracked flight(s)")
                self.store.clear()
            else:
                logger.info(f"Empty snapshot {self.consecutive_empty_polls}/"
                            f"{self.settings.empty_polls_before_reset}, keeping tracked flights")
            return []
        self.consecutive_empty_polls = 0

        events = []
        for snapshot in current:
            previous = self.store.get(snapshot.id)
            if previous is None:
                state, flight_events = self._start_tracking(snapshot, now)
            else:
                state, flight_events = self._advance(previous, snapshot, now)
            self.store.put(state)
            events.extend(flight_events)

        for flight_id in self.store.ids():
            if flight_id not in seen:
                self.store.remove(flight_id)
                logger.info(f"Flight {flight_id} no longer active, stopped tracking")

        return events

    def _start_tracking(self, snapshot: FlightSnapshot, now: datetime):
        history = [(now, snapshot.altitude)] if snapshot.altitude is not None else []
        state = FlightState(
            flight_id=snapshot.id,
            phase=self.phase_for(snapshot.altitude),
            vertical_phase=self.vertical_phase_for(snapshot.vertical_speed, VerticalPhase.UNKNOWN),
            last_poll_at=now,
            last_notified_at=now,
            last_altitude=snapshot.altitude,
            last_latitude=snapshot.latitude,
            last_longitude=snapshot.longitude,
            last_speed=snapshot.speed,
            last_heading=snapshot.heading,
            last_vertical_speed=snapshot.vertical_speed,
            altitude_history=history,
        )
        logger.info(f"Started tracking {snapshot.display_name} ({state.phase.value})")
        event = FlightEvent(EventKind.TRACKING_STARTED, snapshot.id, snapshot, state, now)
        return state, [event]

    def _advance(self, previous: FlightState, snapshot: FlightSnapshot, now: datetime):
        settings = self.settings
        altitude = snapshot.altitude
        elapsed = (now - previous.last_poll_at).total_seconds()
        vertical_speed = self.vertical_speed_for(snapshot, previous.last_altitude, elapsed)

        history = list(previous.altitude_history)
        if altitude is not None:
            history.append((now, altitude))
        history = self.prune_history(history, now)

        # Work on a copy; the store only sees the finished state
        state = replace(
            previous,
            last_altitude=_sticky(altitude, previous.last_altitude),
            last_latitude=_sticky(snapshot.latitude, previous.last_latitude),
            last_longitude=_sticky(snapshot.longitude, previous.last_longitude),
            last_speed=_sticky(snapshot.speed, previous.last_speed),
            last_heading=_sticky(snapshot.heading, previous.last_heading),
            last_vertical_speed=_sticky(vertical_speed, previous.last_vertical_speed),
            last_poll_at=now,
            altitude_history=history,
        )
        # Phase follows this poll's altitude only; a missing reading counts as ground
        phase = self.phase_for(altitude)
        vertical_phase = self.vertical_phase_for(vertical_speed, previous.vertical_phase)

        if previous.crash_detected:
            # Silent until the flight drops out of the snapshot
            state.phase = phase
            state.vertical_phase = vertical_phase
            return state, []

        events = []

        if altitude is not None:
            crash = self.check_crash(history, altitude, now)
            if crash:
                state.crash_detected = True
                state.phase = phase
                state.vertical_phase = vertical_phase
                state.last_notified_at = now
                logger.warning(f"Possible crash: {snapshot.display_name} descended "
                               f"{crash['descent_ft']:.0f} ft in {crash['seconds']:.0f}s")
                events.append(FlightEvent(EventKind.CRASH, snapshot.id, snapshot, state, now,
                                          details=crash))
                return state, events

        if previous.phase == Phase.GROUND and phase == Phase.AIRBORNE:
            logger.info(f"Takeoff: {snapshot.display_name}")
            events.append(FlightEvent(EventKind.TAKEOFF, snapshot.id, snapshot, state, now))
            state.last_notified_at = now
        elif previous.phase == Phase.AIRBORNE and phase == Phase.GROUND:
            logger.info(f"Landing: {snapshot.display_name}")
            events.append(FlightEvent(EventKind.LANDING, snapshot.id, snapshot, state, now))
            state.last_notified_at = now
        state.phase = phase

        triggers = []
        reasons = []
        details = {}

        if phase == Phase.AIRBORNE and now - state.last_notified_at >= settings.heartbeat_interval:
            triggers.append(Trigger.HEARTBEAT)
            reasons.append("Periodic update")

        if altitude is not None and previous.last_altitude is not None:
            delta = altitude - previous.last_altitude
            details['altitude_change_ft'] = delta
            if abs(delta) >= settings.altitude_threshold_ft:
                triggers.append(Trigger.ALTITUDE)
                verb = "Climbed" if delta > 0 else "Descended"
                reasons.append(f"{verb} {abs(delta):,.0f} ft")

        if snapshot.speed is not None and previous.last_speed is not None:
            delta = snapshot.speed - previous.last_speed
            details['speed_change_kts'] = delta
            if abs(delta) >= settings.speed_threshold_kts:
                triggers.append(Trigger.SPEED)
                verb = "Accelerated" if delta > 0 else "Decelerated"
                reasons.append(f"{verb} {abs(delta):,.0f} kts")

        if snapshot.has_position and previous.has_position:
            distance = haversine_nm(previous.last_latitude, previous.last_longitude,
                                    snapshot.latitude, snapshot.longitude)
            details['distance_nm'] = distance
            if distance >= settings.position_threshold_nm:
                triggers.append(Trigger.POSITION)
                reasons.append(f"Moved {distance:.1f} nm")

        if vertical_phase != previous.vertical_phase and phase == Phase.AIRBORNE:
            triggers.append(Trigger.VERTICAL_PHASE)
            reasons.append(f"{previous.vertical_phase.value.title()} → {vertical_phase.value.title()}")
        state.vertical_phase = vertical_phase

        if triggers and phase == Phase.AIRBORNE:
            state.last_notified_at = now
            events.append(FlightEvent(EventKind.UPDATE, snapshot.id, snapshot, state, now,
                                      triggers=triggers, reasons=reasons, details=details))
            logger.debug(f"Update for {snapshot.display_name}: {', '.join(reasons)}")

        return state, events
