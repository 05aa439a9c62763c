"""
Availability checks for rooms and services.

Overlap is half-open: [a1, a2) and [b1, b2) collide iff a1 < b2 and a2 > b1,
so a check-out and the next check-in may share a day. Which booking statuses
block a slot differs per call site, so callers always pass a blocking set.
"""
import logging
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from sporti.config.database import Collections
from sporti.database.db_operations import DBOperations, to_object_id
from sporti.utils.exceptions import ConflictError

logger = logging.getLogger(__name__)

# A new request reserves the slot as soon as it is submitted
CREATE_BLOCKING: FrozenSet[str] = frozenset({"confirmed", "pending"})
# Only one of several pending requests can be confirmed, so they do not block confirmation
CONFIRM_BLOCKING: FrozenSet[str] = frozenset({"confirmed", "completed"})

RESOURCE_KINDS = {
    "room": {"collection": Collections.ROOMS, "category_field": "category", "label": "Room"},
    "service": {"collection": Collections.SERVICES, "category_field": "service_type", "label": "Service"},
}


def resource_label(kind: str, resource: Dict) -> str:
    if kind == "room":
        return f"Room {resource.get('room_number', resource.get('_id'))}"
    return f"Service {resource.get('name', resource.get('_id'))}"


def overlap_query(
    resource_id: str,
    check_in: datetime,
    check_out: datetime,
    blocking: FrozenSet[str],
    exclude_booking_id: Optional[str] = None,
) -> Dict:
    query = {
        "resource_id": str(resource_id),
        "status": {"$in": sorted(blocking)},
        "check_in": {"$lt": check_out},
        "check_out": {"$gt": check_in},
    }
    if exclude_booking_id:
        query["_id"] = {"$ne": to_object_id(exclude_booking_id)}
    return query


async def find_conflict(
    ops: DBOperations,
    resource_id: str,
    check_in: datetime,
    check_out: datetime,
    blocking: FrozenSet[str],
    exclude_booking_id: Optional[str] = None,
    session=None,
) -> Optional[Dict]:
    """First booking in `blocking` that overlaps the range, if any"""
    if not blocking:
        raise ValueError("blocking status set must not be empty")
    query = overlap_query(resource_id, check_in, check_out, blocking, exclude_booking_id)
    return await ops.get_one(Collections.BOOKINGS, query, session=session)


async def is_available(
    ops: DBOperations,
    resource_id: str,
    check_in: datetime,
    check_out: datetime,
    blocking: FrozenSet[str],
    exclude_booking_id: Optional[str] = None,
) -> bool:
    conflict = await find_conflict(ops, resource_id, check_in, check_out, blocking, exclude_booking_id)
    return conflict is None


def ensure_bookable(kind: str, resource: Dict, category: Optional[str], site: Optional[str]) -> None:
    """Reject blocked resources and ones that do not match the requested category/site"""
    label = resource_label(kind, resource)
    if resource.get("is_blocked"):
        raise ConflictError(f"{label} is unavailable")
    category_field = RESOURCE_KINDS[kind]["category_field"]
    if category is not None and resource.get(category_field) != category:
        raise ConflictError(f"{label} does not match the selected site or {category_field.replace('_', ' ')}")
    if site is not None and resource.get("site") != site:
        raise ConflictError(f"{label} does not match the selected site or {category_field.replace('_', ' ')}")


async def available_resources(
    ops: DBOperations,
    kind: str,
    check_in: datetime,
    check_out: datetime,
    blocking: FrozenSet[str],
    site: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Dict]:
    """Unblocked resources of `kind` with no blocking booking in the range"""
    kind_info = RESOURCE_KINDS[kind]
    resource_filter: Dict = {"is_blocked": {"$ne": True}}
    if site:
        resource_filter["site"] = site
    if category:
        resource_filter[kind_info["category_field"]] = category
    resources = await ops.get_all(kind_info["collection"], resource_filter, limit=None)

    busy_ids = set(await ops.distinct(
        Collections.BOOKINGS,
        "resource_id",
        {
            "booking_type": kind,
            "resource_id": {"$ne": None},
            "status": {"$in": sorted(blocking)},
            "check_in": {"$lt": check_out},
            "check_out": {"$gt": check_in},
        },
    ))
    return [r for r in resources if str(r["_id"]) not in busy_ids]
