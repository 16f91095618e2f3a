# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Great-circle helpers."""

from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_NM = 3440.0


def haversine_nm(lat1, lon1, lat2, lon2):
    """Calculate great circle distance in nautical miles between two points."""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Clamp against float drift for antipodal points
    return 2 * EARTH_RADIUS_NM * asin(sqrt(min(1.0, a)))
