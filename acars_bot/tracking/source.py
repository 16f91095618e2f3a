# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Telemetry source - reads the active flights table from Supabase.

Talks to the PostgREST endpoint directly with aiohttp; every call returns
the full list of active flights, there is no paging or filtering.
"""

import asyncio
import logging
from typing import List, Optional

import aiohttp

from ..config import SupabaseSettings
from ..utils.errors import MalformedRecord, SourceUnavailable
from .models import FlightSnapshot

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15


def parse_records(records: list) -> List[FlightSnapshot]:
    """Parse raw rows, skipping (and logging) the ones that are malformed."""
    snapshots = []
    for index, record in enumerate(records):
        try:
            snapshots.append(FlightSnapshot.from_record(record))
        except MalformedRecord as e:
            logger.warning(f"Skipping flight record #{index}: {e}")
    return snapshots


class SupabaseFlightSource:
    """Fetches the active_flights table over the Supabase REST API."""

    def __init__(self, settings: SupabaseSettings, session: Optional[aiohttp.ClientSession] = None):
        self.settings = settings
        self.session = session

    @property
    def url(self) -> str:
        return f"{self.settings.url}/rest/v1/{self.settings.flights_table}"

    @property
    def headers(self) -> dict:
        return {
            'apikey': self.settings.anon_key,
            'Authorization': f"Bearer {self.settings.anon_key}",
            'Accept': 'application/json',
        }

    async def fetch_raw(self) -> list:
        """
        Fetch the raw rows.

        Raises:
            SourceUnavailable: on transport errors, timeouts, non-200
                responses or a payload that is not a JSON list.
        """
        if not self.settings.configured:
            raise SourceUnavailable("Supabase is not configured (SUPABASE_URL / SUPABASE_ANON_KEY)")
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

        try:
            async with self.session.get(self.url, headers=self.headers, params={'select': '*'},
                                        timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise SourceUnavailable(f"HTTP {resp.status} from Supabase: {body[:200]}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceUnavailable(f"Error fetching active flights: {e}") from e
        except ValueError as e:
            raise SourceUnavailable(f"Invalid JSON from Supabase: {e}") from e

        if not isinstance(data, list):
            raise SourceUnavailable(f"Expected a list of flights, got {type(data).__name__}")
        return data

    async def fetch_active_flights(self) -> List[FlightSnapshot]:
        records = await self.fetch_raw()
        snapshots = parse_records(records)
        logger.debug(f"Fetched {len(records)} flight record(s), {len(snapshots)} usable")
        return snapshots

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
