"""Tests for the flight tracking state machine."""

from datetime import timedelta

import pytest

from acars_bot.config import TrackerSettings
from acars_bot.tracking import (
    EventKind,
    FlightEventDetector,
    FlightSnapshot,
    Phase,
    Trigger,
    VerticalPhase,
)
from conftest import at, snap


def kinds(events):
    return [event.kind for event in events]


# ----------------------------------------------------------------------
# First sighting
# ----------------------------------------------------------------------

def test_first_sighting_above_threshold_is_airborne(detector):
    events = detector.process([snap(altitude=1000)], at(0))

    assert kinds(events) == [EventKind.TRACKING_STARTED]
    state = detector.store.get('ACA101')
    assert state.phase == Phase.AIRBORNE
    assert state.vertical_phase == VerticalPhase.UNKNOWN
    assert state.altitude_history == [(at(0), 1000)]
    assert state.last_notified_at == at(0)


def test_first_sighting_without_altitude_is_ground(detector):
    detector.process([snap()], at(0))

    state = detector.store.get('ACA101')
    assert state.phase == Phase.GROUND
    assert state.altitude_history == []


def test_threshold_altitude_itself_is_ground(detector):
    detector.process([snap(altitude=500)], at(0))
    assert detector.store.get('ACA101').phase == Phase.GROUND


def test_first_sighting_emits_nothing_but_tracking_started(detector):
    events = detector.process([snap(altitude=35000, speed=480, vertical_speed=-3000,
                                    latitude=45.0, longitude=-73.0)], at(0))
    assert kinds(events) == [EventKind.TRACKING_STARTED]


# ----------------------------------------------------------------------
# Takeoff and landing
# ----------------------------------------------------------------------

def test_takeoff_emitted_once(detector):
    detector.process([snap(altitude=400)], at(0))
    events = detector.process([snap(altitude=1000)], at(60))

    assert kinds(events).count(EventKind.TAKEOFF) == 1
    assert kinds(events)[0] == EventKind.TAKEOFF
    state = detector.store.get('ACA101')
    assert state.phase == Phase.AIRBORNE
    assert state.last_notified_at == at(60)

    events = detector.process([snap(altitude=1100)], at(90))
    assert EventKind.TAKEOFF not in kinds(events)


def test_landing(detector):
    detector.process([snap(altitude=1000)], at(0))
    events = detector.process([snap(altitude=300)], at(60))

    assert kinds(events) == [EventKind.LANDING]
    assert detector.store.get('ACA101').phase == Phase.GROUND


def test_missing_altitude_counts_as_ground(detector):
    detector.process([snap(altitude=30000)], at(0))
    events = detector.process([snap()], at(30))

    assert kinds(events) == [EventKind.LANDING]
    state = detector.store.get('ACA101')
    assert state.phase == Phase.GROUND
    assert state.last_altitude == 30000


# ----------------------------------------------------------------------
# Crash detection
# ----------------------------------------------------------------------

def test_rapid_descent_is_a_crash(detector):
    detector.process([snap(altitude=15000)], at(0))
    events = detector.process([snap(altitude=4000)], at(45))

    assert kinds(events) == [EventKind.CRASH]
    details = events[0].details
    assert details['descent_ft'] == 11000
    assert details['peak_altitude_ft'] == 15000
    assert details['seconds'] == 45
    assert details['rate_fpm'] == 14667
    assert detector.store.get('ACA101').crash_detected is True


def test_same_descent_spread_over_longer_period_is_not_a_crash(detector):
    detector.process([snap(altitude=15000)], at(0))
    events = detector.process([snap(altitude=4000)], at(90))

    assert EventKind.CRASH not in kinds(events)
    assert detector.store.get('ACA101').crash_detected is False


def test_steady_descent_with_intermediate_samples_is_not_a_crash(detector):
    detector.process([snap(altitude=15000)], at(0))
    first = detector.process([snap(altitude=9500)], at(45))
    second = detector.process([snap(altitude=4000)], at(90))

    assert EventKind.CRASH not in kinds(first + second)


def test_crash_pre_empts_update_triggers(detector):
    detector.process([snap(altitude=15000, speed=250, latitude=40.0, longitude=-74.0)], at(0))
    events = detector.process([snap(altitude=3000, speed=400, latitude=40.5, longitude=-74.0)], at(30))

    assert kinds(events) == [EventKind.CRASH]


def test_crashed_flight_stays_silent(detector):
    detector.process([snap(altitude=15000)], at(0))
    detector.process([snap(altitude=4000)], at(45))

    events = detector.process([snap(altitude=200, speed=20, latitude=41.0, longitude=-74.0)], at(105))
    assert events == []
    events = detector.process([snap(altitude=200)], at(600))
    assert events == []


def test_crash_flag_cleared_once_flight_is_forgotten(detector):
    detector.process([snap(altitude=15000)], at(0))
    detector.process([snap(altitude=4000)], at(45))
    detector.process([], at(105))

    events = detector.process([snap(altitude=4000)], at(165))
    assert kinds(events) == [EventKind.TRACKING_STARTED]
    assert detector.store.get('ACA101').crash_detected is False


def test_check_crash_ignores_samples_outside_window(detector):
    history = [(at(0), 20000), (at(50), 12000)]
    assert detector.check_crash(history, 4000, at(100)) is None
    assert detector.check_crash(history, 2000, at(100))['descent_ft'] == 10000


def test_history_pruned_to_window(detector):
    for seconds, altitude in ((0, 30000), (60, 30100), (120, 30200), (180, 30300)):
        detector.process([snap(altitude=altitude)], at(seconds))

    history = detector.store.get('ACA101').altitude_history
    assert [ts for ts, _ in history] == [at(60), at(120), at(180)]


# ----------------------------------------------------------------------
# Update triggers
# ----------------------------------------------------------------------

def test_position_change_beyond_threshold_triggers_update(detector):
    detector.process([snap(altitude=30000, vertical_speed=0, latitude=40.0, longitude=-74.0)], at(0))
    events = detector.process([snap(altitude=30000, vertical_speed=0, latitude=40.2, longitude=-74.0)], at(60))

    assert kinds(events) == [EventKind.UPDATE]
    assert events[0].triggers == [Trigger.POSITION]
    assert events[0].reasons == ["Moved 12.0 nm"]
    assert events[0].details['distance_nm'] == pytest.approx(12.0, abs=0.1)


def test_small_position_change_does_not_trigger(detector):
    detector.process([snap(altitude=30000, vertical_speed=0, latitude=40.0, longitude=-74.0)], at(0))
    events = detector.process([snap(altitude=30000, vertical_speed=0, latitude=40.01, longitude=-74.0)], at(60))

    assert events == []


def test_altitude_change_triggers_update(detector):
    detector.process([snap(altitude=30000, vertical_speed=2500)], at(0))
    events = detector.process([snap(altitude=32500, vertical_speed=2500)], at(60))

    assert kinds(events) == [EventKind.UPDATE]
    assert events[0].triggers == [Trigger.ALTITUDE]
    assert events[0].reasons == ["Climbed 2,500 ft"]
    assert events[0].details['altitude_change_ft'] == 2500


def test_descent_reason_wording(detector):
    detector.process([snap(altitude=30000, vertical_speed=-3000)], at(0))
    events = detector.process([snap(altitude=27000, vertical_speed=-3000)], at(60))

    assert events[0].reasons == ["Descended 3,000 ft"]


def test_speed_change_triggers_update(detector):
    detector.process([snap(altitude=30000, vertical_speed=0, speed=250)], at(0))
    events = detector.process([snap(altitude=30000, vertical_speed=0, speed=310)], at(60))

    assert events[0].triggers == [Trigger.SPEED]
    assert events[0].reasons == ["Accelerated 60 kts"]


def test_speed_change_below_threshold_ignored(detector):
    detector.process([snap(altitude=30000, vertical_speed=0, speed=250)], at(0))
    assert detector.process([snap(altitude=30000, vertical_speed=0, speed=299)], at(60)) == []


def test_multiple_triggers_consolidate_into_one_update(detector):
    detector.process([snap(altitude=30000, vertical_speed=3000, speed=250, latitude=40.0, longitude=-74.0)], at(0))
    events = detector.process([snap(altitude=33000, vertical_speed=3000, speed=320, latitude=40.3,
                                    longitude=-74.0)], at(60))

    assert kinds(events) == [EventKind.UPDATE]
    assert events[0].triggers == [Trigger.ALTITUDE, Trigger.SPEED, Trigger.POSITION]
    assert len(events[0].reasons) == 3


def test_heartbeat_after_interval(detector):
    detector.process([snap(altitude=30000, vertical_speed=0)], at(0))
    assert detector.process([snap(altitude=30000, vertical_speed=0)], at(60)) == []

    events = detector.process([snap(altitude=30000, vertical_speed=0)], at(120))
    assert kinds(events) == [EventKind.UPDATE]
    assert events[0].triggers == [Trigger.HEARTBEAT]
    assert events[0].reasons == ["Periodic update"]

    # Heartbeat clock restarts from the last notification
    assert detector.process([snap(altitude=30000, vertical_speed=0)], at(180)) == []


def test_threshold_update_resets_heartbeat(detector):
    detector.process([snap(altitude=30000, vertical_speed=0)], at(0))
    detector.process([snap(altitude=33000, vertical_speed=0)], at(90))

    assert detector.process([snap(altitude=33000, vertical_speed=0)], at(150)) == []
    events = detector.process([snap(altitude=33000, vertical_speed=0)], at(210))
    assert events[0].triggers == [Trigger.HEARTBEAT]


def test_ground_flights_get_no_updates(detector):
    detector.process([snap(altitude=0, speed=10)], at(0))

    assert detector.process([snap(altitude=0, speed=70)], at(60)) == []
    assert detector.process([snap(altitude=0, speed=70)], at(600)) == []


def test_vertical_phase_change_triggers_update(detector):
    detector.process([snap(altitude=30000, vertical_speed=0)], at(0))
    assert detector.store.get('ACA101').vertical_phase == VerticalPhase.CRUISE

    events = detector.process([snap(altitude=30000, vertical_speed=-1500)], at(60))

    assert events[0].triggers == [Trigger.VERTICAL_PHASE]
    assert events[0].reasons == ["Cruise → Descent"]
    assert detector.store.get('ACA101').vertical_phase == VerticalPhase.DESCENT


def test_leaving_unknown_vertical_phase_triggers_update(detector):
    detector.process([snap(altitude=30000)], at(0))
    events = detector.process([snap(altitude=30000, vertical_speed=1500)], at(60))

    assert kinds(events) == [EventKind.UPDATE]
    assert events[0].triggers == [Trigger.VERTICAL_PHASE]
    assert events[0].reasons == ["Unknown → Climb"]
    assert detector.store.get('ACA101').vertical_phase == VerticalPhase.CLIMB


def test_derived_vertical_speed_classifies_unknown_flight(detector):
    detector.process([snap(altitude=30000)], at(0))
    events = detector.process([snap(altitude=30000)], at(60))

    assert events[0].reasons == ["Unknown → Cruise"]
    assert detector.process([snap(altitude=30000)], at(90)) == []


def test_vertical_phase_change_on_ground_is_silent(detector):
    detector.process([snap(altitude=0)], at(0))
    assert detector.process([snap(altitude=0, vertical_speed=0)], at(60)) == []
    assert detector.store.get('ACA101').vertical_phase == VerticalPhase.CRUISE


def test_vertical_phase_hysteresis(detector):
    detector.process([snap(altitude=30000, vertical_speed=0)], at(0))

    assert detector.process([snap(altitude=30000, vertical_speed=350)], at(30)) == []
    assert detector.process([snap(altitude=30000, vertical_speed=-350)], at(60)) == []
    assert detector.store.get('ACA101').vertical_phase == VerticalPhase.CRUISE


@pytest.mark.parametrize('vertical_speed, current, expected', [
    (501, VerticalPhase.CRUISE, VerticalPhase.CLIMB),
    (500, VerticalPhase.CRUISE, VerticalPhase.CRUISE),
    (-501, VerticalPhase.CLIMB, VerticalPhase.DESCENT),
    (200, VerticalPhase.CLIMB, VerticalPhase.CRUISE),
    (-200, VerticalPhase.DESCENT, VerticalPhase.CRUISE),
    (300, VerticalPhase.DESCENT, VerticalPhase.DESCENT),
    (None, VerticalPhase.CLIMB, VerticalPhase.CLIMB),
])
def test_vertical_phase_for(detector, vertical_speed, current, expected):
    assert detector.vertical_phase_for(vertical_speed, current) == expected


def test_vertical_speed_derived_from_altitude():
    derive = FlightEventDetector.vertical_speed_for
    assert derive(snap(altitude=31000), 30000, 120) == 500
    assert derive(snap(altitude=30005), 30000, 60) == 5
    assert derive(snap(altitude=30000, vertical_speed=-800), 20000, 60) == -800
    assert derive(snap(altitude=30000), None, 60) is None
    assert derive(snap(altitude=30000), 29000, 0) is None


# ----------------------------------------------------------------------
# Sticky values, eviction and empty snapshots
# ----------------------------------------------------------------------

def test_missing_values_do_not_overwrite_known_values(detector):
    detector.process([snap(altitude=30000, latitude=40.0, longitude=-74.0, speed=450, heading=90)], at(0))
    events = detector.process([snap()], at(60))

    assert kinds(events) == [EventKind.LANDING]
    state = detector.store.get('ACA101')
    assert state.last_altitude == 30000
    assert (state.last_latitude, state.last_longitude) == (40.0, -74.0)
    assert state.last_speed == 450
    assert state.last_heading == 90
    assert state.last_poll_at == at(60)


def test_sticky_position_used_for_later_distance(detector):
    detector.process([snap(altitude=30000, vertical_speed=0, latitude=40.0, longitude=-74.0)], at(0))
    detector.process([snap(altitude=30000, vertical_speed=0)], at(30))
    events = detector.process([snap(altitude=30000, vertical_speed=0, latitude=40.2, longitude=-74.0)], at(60))

    assert events[0].triggers == [Trigger.POSITION]


def test_absent_flight_is_evicted(detector):
    detector.process([snap('A', altitude=1000), snap('B', altitude=1000)], at(0))
    detector.process([snap('A', altitude=1000)], at(60))

    assert 'A' in detector.store
    assert 'B' not in detector.store


def test_returning_flight_starts_over(detector):
    detector.process([snap('A', altitude=1000), snap('B', altitude=1000)], at(0))
    detector.process([snap('A', altitude=1000)], at(60))
    events = detector.process([snap('A', altitude=1000), snap('B', altitude=1000)], at(90))

    assert [(e.flight_id, e.kind) for e in events] == [('B', EventKind.TRACKING_STARTED)]


def test_empty_snapshot_clears_store(detector):
    detector.process([snap('A', altitude=1000), snap('B', altitude=0)], at(0))
    assert detector.process([], at(60)) == []
    assert len(detector.store) == 0


def test_empty_polls_before_reset():
    detector = FlightEventDetector(TrackerSettings(empty_polls_before_reset=2))
    detector.process([snap(altitude=1000)], at(0))

    detector.process([], at(60))
    assert 'ACA101' in detector.store
    assert detector.consecutive_empty_polls == 1

    # A non-empty poll resets the count
    detector.process([snap(altitude=1000)], at(120))
    detector.process([], at(180))
    assert 'ACA101' in detector.store

    detector.process([], at(240))
    assert len(detector.store) == 0


def test_records_without_identity_and_duplicates_are_dropped(detector):
    events = detector.process([
        FlightSnapshot(id='', altitude=1000),
        snap('A', altitude=1000),
        snap('A', altitude=0),
    ], at(0))

    assert [e.flight_id for e in events] == ['A']
    assert detector.store.get('A').phase == Phase.AIRBORNE


def test_events_follow_snapshot_order(detector):
    events = detector.process([snap('C'), snap('A'), snap('B')], at(0))
    assert [e.flight_id for e in events] == ['C', 'A', 'B']


def test_stored_state_not_mutated_by_later_cycles(detector):
    detector.process([snap(altitude=30000)], at(0))
    first = detector.store.get('ACA101')
    detector.process([snap(altitude=33000)], at(60))

    assert first.last_altitude == 30000
    assert detector.store.get('ACA101').last_altitude == 33000


def test_custom_thresholds():
    detector = FlightEventDetector(TrackerSettings(altitude_threshold_ft=500,
                                                   heartbeat_interval=timedelta(hours=1)))
    detector.process([snap(altitude=30000, vertical_speed=600)], at(0))
    events = detector.process([snap(altitude=30600, vertical_speed=600)], at(60))

    assert events[0].triggers == [Trigger.ALTITUDE]
