"""
Resource assignment: validate a candidate room/service for a booking and price it.

Shared by booking creation and admin confirmation so both apply the same
checks. Callers must hold the resource lock.
"""
import logging
from typing import Dict, FrozenSet, Optional, Tuple

from sporti.database.db_operations import DBOperations, to_object_id
from sporti.services import pricing
from sporti.services.availability import RESOURCE_KINDS, ensure_bookable, find_conflict, resource_label
from sporti.utils.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def booking_category(booking: Dict) -> Optional[str]:
    if booking.get("booking_type") == "service":
        return booking.get("service_type")
    return booking.get("room_type")


def canonical_id(kind: str, resource_id: str) -> str:
    """The id as bookings and lock keys store it (lowercase hex)"""
    object_id = to_object_id(resource_id)
    if object_id is None:
        raise NotFoundError(RESOURCE_KINDS[kind]["label"], resource_id)
    return str(object_id)


async def load_resource(ops: DBOperations, kind: str, resource_id: str, session=None) -> Dict:
    kind_info = RESOURCE_KINDS[kind]
    resource = await ops.get_by_id(kind_info["collection"], resource_id, session=session)
    if not resource:
        raise NotFoundError(kind_info["label"], resource_id)
    return resource


async def assign_resource(
    ops: DBOperations,
    booking: Dict,
    resource_id: str,
    blocking: FrozenSet[str],
    session=None,
) -> Tuple[Dict, float]:
    """
    Check that `resource_id` can take `booking` and compute its cost.

    `booking` only needs booking_type, site, the category field, dates,
    booking_for and relation; its `_id` (when present) is excluded from the
    overlap query. Nothing is written here.
    """
    kind = booking["booking_type"]
    resource = await load_resource(ops, kind, resource_id, session=session)
    ensure_bookable(kind, resource, booking_category(booking), booking.get("site"))

    exclude = str(booking["_id"]) if booking.get("_id") else None
    conflict = await find_conflict(
        ops, str(resource["_id"]), booking["check_in"], booking["check_out"], blocking,
        exclude_booking_id=exclude, session=session,
    )
    if conflict:
        label = resource_label(kind, resource)
        logger.info("%s already booked by %s for %s..%s", label, conflict.get("booking_code"),
                    booking["check_in"], booking["check_out"])
        raise ConflictError(f"{label} is already booked for the selected dates")

    total_cost = pricing.booking_cost(resource, booking)
    return resource, total_cost
