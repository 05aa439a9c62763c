"""
Resource occupancy cache.

`occupied`, `occupied_by`, `occupied_from` and `occupied_until` on a room or
service mirror the earliest confirmed/completed booking that still holds it
(not yet checked out). The bookings collection is the source of truth; these
helpers derive the cache from it, either for a write that is about to be
committed or to audit and repair every resource.
"""
import logging
from typing import Dict, List, Optional

from sporti.config.database import Collections
from sporti.database.db_operations import DBOperations
from sporti.services.availability import RESOURCE_KINDS

logger = logging.getLogger(__name__)

HOLDING_STATUSES = ("confirmed", "completed")

EMPTY_OCCUPANCY = {
    "occupied": False,
    "occupied_by": None,
    "occupied_from": None,
    "occupied_until": None,
}


def is_holding(booking: Dict) -> bool:
    return (
        booking.get("resource_id") is not None
        and booking.get("status") in HOLDING_STATUSES
        and not booking.get("checked_out_at")
    )


def occupancy_fields(holder: Optional[Dict]) -> Dict:
    if holder is None:
        return dict(EMPTY_OCCUPANCY)
    return {
        "occupied": True,
        "occupied_by": str(holder["_id"]),
        "occupied_from": holder["check_in"],
        "occupied_until": holder["check_out"],
    }


def occupancy_snapshot(resource: Dict) -> Dict:
    return {key: resource.get(key, EMPTY_OCCUPANCY[key]) for key in EMPTY_OCCUPANCY}


async def occupancy_update(
    ops: DBOperations,
    resource_id: str,
    pending_booking: Optional[Dict] = None,
    session=None,
) -> Dict:
    """
    Occupancy fields for `resource_id` once `pending_booking` is committed.

    `pending_booking` is the post-transition state of the booking being
    written; its stored version is ignored in favour of it.
    """
    query: Dict = {
        "resource_id": str(resource_id),
        "status": {"$in": list(HOLDING_STATUSES)},
        "checked_out_at": None,
    }
    if pending_booking is not None and pending_booking.get("_id") is not None:
        query["_id"] = {"$ne": pending_booking["_id"]}
    holders: List[Dict] = await ops.get_all(
        Collections.BOOKINGS, query, limit=1, sort=[("check_in", 1)], session=session
    )
    candidates = holders[:1]
    if (
        pending_booking is not None
        and str(pending_booking.get("resource_id")) == str(resource_id)
        and is_holding(pending_booking)
    ):
        candidates.append(pending_booking)
    holder = min(candidates, key=lambda b: b["check_in"]) if candidates else None
    return occupancy_fields(holder)


async def reconcile_occupancy(ops: DBOperations, repair: bool = False) -> List[Dict]:
    """
    Compare every resource's cache with the bookings collection.

    Returns one entry per drifted resource; with `repair` the cache is
    rewritten from the bookings.
    """
    drift = []
    for kind, kind_info in RESOURCE_KINDS.items():
        resources = await ops.get_all(kind_info["collection"], {}, limit=None)
        for resource in resources:
            resource_id = str(resource["_id"])
            expected = await occupancy_update(ops, resource_id)
            actual = occupancy_snapshot(resource)
            if actual == expected:
                continue
            drift.append({
                "kind": kind,
                "resource_id": resource_id,
                "cached": actual,
                "expected": expected,
            })
            logger.warning("Occupancy drift on %s %s: cached=%s expected=%s", kind, resource_id, actual, expected)
            if repair:
                await ops.update(kind_info["collection"], resource_id, dict(expected))
    return drift
