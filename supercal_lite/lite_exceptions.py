"""Custom exception hierarchy for supercal_lite.

Only hard failures are raised. Recoverable problems met while decoding
calendar text (incomplete events, unknown RRULE parts, unparseable dates)
are logged and skipped instead.
"""


class SuperCalError(Exception):
    """Base exception for all supercal_lite errors."""


class CalendarDecodeError(SuperCalError):
    """Calendar text could not be scanned as lines at all.

    Raised when:
    - The input is None or not a text/bytes object
    - Bytes input is not valid UTF-8

    Individual malformed properties never raise this error.
    """


class RecurrenceRuleError(SuperCalError):
    """An RRULE value could not be interpreted.

    Raised by the RRULE parser helper for an empty rule string. The ICS
    decoder catches it and leaves the event non-recurring.
    """


class SnapshotError(SuperCalError):
    """Base exception for JSON snapshot import problems."""


class SnapshotFormatError(SnapshotError):
    """Snapshot document is not valid JSON or does not hold calendar data.

    Raised when:
    - The text is not valid JSON
    - The top level is not an object
    - Neither events nor categories are present
    - Events or categories fail model validation
    """


class SnapshotVersionError(SnapshotError):
    """Snapshot was written by a version older than the minimum supported one."""
