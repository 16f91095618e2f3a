# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Flight Tracker - one poll cycle: fetch -> detect -> notify.

The detector persists state as it goes, so by the time notifications are
sent the store already reflects this poll. A failed fetch leaves the store
untouched and the next scheduled cycle simply tries again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..utils.errors import SourceUnavailable
from .detector import FlightEventDetector
from .models import FlightEvent

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CycleResult:
    """Summary of one completed poll cycle."""
    started_at: datetime
    flights: int
    events: List[FlightEvent] = field(default_factory=list)
    delivered: int = 0
    failed: int = 0


class FlightTracker:
    """Runs poll cycles against a telemetry source and a notifier."""

    def __init__(self, source, notifier, detector: Optional[FlightEventDetector] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.source = source
        self.notifier = notifier
        self.detector = detector or FlightEventDetector()
        self.clock = clock
        self.last_result: Optional[CycleResult] = None
        self.last_error: Optional[str] = None

    @property
    def store(self):
        return self.detector.store

    async def run_cycle(self) -> Optional[CycleResult]:
        """
        Run one poll cycle.

        Returns:
            CycleResult, or None when the telemetry source was unavailable.
        """
        started_at = self.clock()
        try:
            snapshots = await self.source.fetch_active_flights()
        except SourceUnavailable as e:
            self.last_error = str(e)
            logger.error(f"Flight poll aborted, telemetry unavailable: {e}")
            return None

        events = self.detector.process(snapshots, started_at)
        result = CycleResult(started_at=started_at, flights=len(snapshots), events=events)

        for event in events:
            try:
                delivered = await self.notifier.notify(event)
            except Exception as e:
                logger.error(f"Notifier raised for {event.kind.value} on {event.flight_id}: {e}",
                             exc_info=True)
                delivered = False
            if delivered:
                result.delivered += 1
            else:
                result.failed += 1

        self.last_result = result
        self.last_error = None
        logger.info(f"Flight poll: {result.flights} active, {len(self.store)} tracked, "
                    f"{len(events)} event(s), {result.failed} failed")
        return result
