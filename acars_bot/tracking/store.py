# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""In-memory table of tracked flights, keyed by flight identity."""

from typing import Dict, Iterator, List, Optional

from .models import FlightState


class FlightStateStore:
    """
    Single-writer state table.

    Only the FlightEventDetector that owns an instance writes to it.
    Other components may read it (e.g. the /flight_status command).
    """

    def __init__(self):
        self._states: Dict[str, FlightState] = {}

    def get(self, flight_id: str) -> Optional[FlightState]:
        return self._states.get(flight_id)

    def put(self, state: FlightState):
        self._states[state.flight_id] = state

    def remove(self, flight_id: str) -> Optional[FlightState]:
        return self._states.pop(flight_id, None)

    def clear(self):
        self._states.clear()

    def ids(self) -> List[str]:
        return list(self._states)

    def states(self) -> List[FlightState]:
        return list(self._states.values())

    def __contains__(self, flight_id) -> bool:
        return flight_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[FlightState]:
        return iter(list(self._states.values()))
