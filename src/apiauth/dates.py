"""Date header values in the format partner implementations expect.

Dates are converted through the ``Etc/GMT`` zone and rendered with the
literal ``GMT`` suffix, matching Ruby's ``Time#httpdate`` byte for byte.
``email.utils`` writes English day and month names whatever the process
locale.
"""

import email.utils
import logging
import zoneinfo
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

REFERENCE_ZONE = "Etc/GMT"


def _load_reference_zone() -> zoneinfo.ZoneInfo:
    try:
        return zoneinfo.ZoneInfo(REFERENCE_ZONE)
    except zoneinfo.ZoneInfoNotFoundError:
        logger.critical(
            "Cannot load time zone %s; no Date header can be produced", REFERENCE_ZONE
        )
        raise


GMT = _load_reference_zone()


def http_date() -> str:
    """Return a Date header value for the current time."""
    return http_date_for(datetime.now(GMT))


def http_date_for(moment: datetime) -> str:
    """Convert a datetime to GMT and format it as an RFC 1123 date.

    Args:
        moment: The instant to format. Naive values are taken as local time.

    Returns:
        A string such as ``"Thu, 19 Mar 2015 19:34:03 GMT"``.
    """
    # usegmt requires the tzinfo to be exactly timezone.utc
    t = moment.astimezone(GMT).replace(tzinfo=timezone.utc)
    return email.utils.format_datetime(t, usegmt=True)
