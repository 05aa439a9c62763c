"""
Pricing policy - per-unit rates and booking totals.

Members, their family and their batchmates pay the member rate; every other
guest pays the guest rate. Rooms are charged per night (part nights round up),
services per event day.
"""
import logging
import math
from datetime import datetime
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

COST_DERIVED = "derived"
COST_SUPPLIED = "supplied"
COST_OVERRIDE = "override"


def rate(resource: Dict, booking_for: str, relation: Optional[str]) -> float:
    """Per-night (room) or per-day (service) price for this occupant."""
    price = resource.get("price") or {}
    if booking_for == "Self" or relation == "Batchmate":
        return float(price.get("member", 0))
    return float(price.get("guest", 0))


def nights_between(check_in: datetime, check_out: datetime) -> int:
    seconds = (check_out - check_in).total_seconds()
    return max(1, math.ceil(seconds / SECONDS_PER_DAY))


def room_cost(resource: Dict, booking_for: str, relation: Optional[str], check_in: datetime, check_out: datetime) -> float:
    return rate(resource, booking_for, relation) * nights_between(check_in, check_out)


def service_cost(resource: Dict, booking_for: str, relation: Optional[str], duration_days: int) -> float:
    return rate(resource, booking_for, relation) * max(1, int(duration_days))


def booking_cost(resource: Dict, booking: Dict) -> float:
    """Cost of a stored booking against a resource's current price table"""
    if booking.get("booking_type") == "service":
        return service_cost(resource, booking["booking_for"], booking.get("relation"), booking.get("duration_days") or 1)
    return room_cost(resource, booking["booking_for"], booking.get("relation"), booking["check_in"], booking["check_out"])


def resolve_cost(derived: Optional[float], supplied: Optional[float]) -> Tuple[float, str]:
    """
    Pick the booking total and record where it came from.

    A derived cost always wins. Without one the caller's figure is trusted
    but flagged so it can be audited.
    """
    if derived is not None:
        if supplied is not None and round(supplied, 2) != round(derived, 2):
            logger.info("Ignoring supplied cost %.2f in favour of derived %.2f", supplied, derived)
        return round(derived, 2), COST_DERIVED
    if supplied is not None:
        logger.warning("⚠️  Using caller-supplied cost %.2f without a priced resource", supplied)
        return round(supplied, 2), COST_SUPPLIED
    return 0.0, COST_SUPPLIED
