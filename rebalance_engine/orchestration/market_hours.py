"""US equity market hours."""

from datetime import datetime, time
from typing import Optional

import pytz

EASTERN_TZ = pytz.timezone("US/Eastern")

MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)


def is_market_open(dt: Optional[datetime] = None) -> bool:
    """Check if the NYSE regular session is open.

    Holidays are not considered.

    Args:
        dt: Datetime to check (default: now in US/Eastern). Naive values
            are taken as US/Eastern wall-clock time.

    Returns:
        True if market is open

    Example:
        >>> if is_market_open():
        ...     orchestrator.execute(recommendation)
    """
    if dt is None:
        dt = datetime.now(EASTERN_TZ)
    elif dt.tzinfo is None:
        dt = EASTERN_TZ.localize(dt)
    else:
        dt = dt.astimezone(EASTERN_TZ)

    if dt.weekday() >= 5:  # Saturday=5, Sunday=6
        return False

    return MARKET_OPEN <= dt.time() <= MARKET_CLOSE
