"""Pure award rules: amounts, watch thresholds and ledger reason text.

Nothing here touches the database or the network, so every rule can be
exercised directly in unit tests.
"""

from __future__ import annotations

from typing import Optional

from ..platform.config import settings
from .errors import InvalidBoostError


def view_award_amount() -> int:
    return int(settings.VIEW_AWARD_CREDITS)


def qualifies_for_award(
    elapsed: float,
    total_duration: Optional[float],
    min_seconds: Optional[float] = None,
    min_fraction: Optional[float] = None,
) -> bool:
    """True when `elapsed` seconds cross either the absolute or the fractional threshold.

    The fractional rule only applies when the video's duration is known.
    """
    if elapsed is None or elapsed < 0:
        return False
    if min_seconds is None:
        min_seconds = settings.VIEW_MIN_WATCH_SECONDS
    if min_fraction is None:
        min_fraction = settings.VIEW_MIN_WATCH_FRACTION
    if elapsed >= min_seconds:
        return True
    if total_duration and total_duration > 0:
        return elapsed >= total_duration * min_fraction
    return False


def purchase_award_amount(package) -> int:
    return int(package.credits) + int(package.bonus)


def validate_boost_amount(amount: int) -> int:
    minimum = int(settings.BOOST_MIN_CREDITS)
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidBoostError("Boost amount must be a whole number of credits")
    if amount < minimum:
        raise InvalidBoostError(f"Minimum boost is {minimum} credits")
    return amount


def view_award_reason(event_key: str, video_id: str) -> str:
    return f"Watched video {video_id} ({event_key})"


def purchase_reason(event_key: str, package_id: str) -> str:
    return f"Purchased {package_id} package ({event_key})"


def boost_reason(video_id: str, event_key: Optional[str] = None) -> str:
    if event_key:
        return f"Boosted video {video_id} ({event_key})"
    return f"Boosted video {video_id}"
