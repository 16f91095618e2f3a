# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Exception types shared across the bot.

None of these are fatal to the process: the poll scheduler, notifier and
command handlers catch them, log them and carry on.
"""


class AcarsError(Exception):
    """Base class for all ACARS Bot errors."""


class SourceUnavailable(AcarsError):
    """The telemetry fetch failed or returned a malformed payload."""


class MalformedRecord(AcarsError):
    """A single flight record could not be parsed and was skipped."""


class DeliveryFailure(AcarsError):
    """A notification could not be delivered to Discord."""


class AnnouncementError(AcarsError):
    """An announcement was rejected before it reached Discord."""
