"""
Booking statistics - read-only aggregations for the admin dashboard
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sporti.config.database import Collections
from sporti.database.db_operations import DBOperations
from sporti.utils.helpers import serialize_docs


def build_match(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    booking_type: Optional[str] = None,
    status: Optional[str] = None,
    site: Optional[str] = None,
    payment_status: Optional[str] = None,
    booking_for: Optional[str] = None,
    is_member: Optional[bool] = None,
) -> Dict[str, Any]:
    match: Dict[str, Any] = {}
    if start_date and end_date:
        match["created_at"] = {"$gte": start_date, "$lte": end_date}
    if booking_type:
        match["booking_type"] = booking_type
    if status:
        match["status"] = status
    if site:
        match["site"] = site
    if payment_status:
        match["payment_status"] = payment_status
    if booking_for:
        match["booking_for"] = booking_for
    if is_member is True:
        match["user_id"] = {"$ne": None}
    elif is_member is False:
        match["user_id"] = None
    return match


def _group_by(field: str, match: Dict, total_key: str = "revenue") -> List[Dict]:
    return [
        {"$match": match},
        {"$group": {"_id": f"${field}", "count": {"$sum": 1}, total_key: {"$sum": "$total_cost"}}},
        {"$sort": {"_id": 1}},
    ]


def _monthly(match: Dict, total_key: str = "revenue") -> List[Dict]:
    return [
        {"$match": match},
        {
            "$group": {
                "_id": {"month": {"$month": "$created_at"}, "year": {"$year": "$created_at"}},
                "count": {"$sum": 1},
                total_key: {"$sum": "$total_cost"},
            }
        },
        {"$sort": {"_id.year": 1, "_id.month": 1}},
    ]


async def booking_stats(ops: DBOperations, match: Dict) -> Dict[str, Any]:
    """Counts and revenue by status, type, site, category and payment state"""
    total_revenue = await ops.aggregate(Collections.BOOKINGS, [
        {"$match": {**match, "payment_status": "paid"}},
        {"$group": {"_id": None, "total": {"$sum": "$total_cost"}}},
    ])
    average = await ops.aggregate(Collections.BOOKINGS, [
        {"$match": match},
        {"$group": {"_id": None, "avg": {"$avg": "$total_cost"}, "count": {"$sum": 1}}},
    ])
    return {
        "status_counts": await ops.aggregate(Collections.BOOKINGS, _group_by("status", match)),
        "type_counts": await ops.aggregate(Collections.BOOKINGS, _group_by("booking_type", match)),
        "monthly_bookings": await ops.aggregate(Collections.BOOKINGS, _monthly(match)),
        "location_counts": await ops.aggregate(Collections.BOOKINGS, _group_by("site", match)),
        "guest_vs_self_counts": await ops.aggregate(Collections.BOOKINGS, _group_by("booking_for", match)),
        "payment_status_counts": await ops.aggregate(
            Collections.BOOKINGS, _group_by("payment_status", match, total_key="amount")
        ),
        "total_revenue": total_revenue[0]["total"] if total_revenue else 0,
        "average_booking_value": round(average[0]["avg"]) if average and average[0].get("avg") is not None else 0,
    }


async def cancellation_stats(ops: DBOperations, match: Dict) -> Dict[str, Any]:
    """Cancelled bookings grouped by month, type and site, plus the list itself"""
    match = {**match, "status": "cancelled"}
    cancellations = await ops.get_all(
        Collections.BOOKINGS, match, limit=1000, sort=[("created_at", -1)]
    )
    fields = (
        "_id", "booking_code", "application_no", "booking_type", "site", "total_cost",
        "remarks", "created_at", "payment_status", "occupant_details", "officer_details",
    )
    return {
        "monthly_cancellations": await ops.aggregate(Collections.BOOKINGS, _monthly(match, total_key="revenue_lost")),
        "type_cancellations": await ops.aggregate(
            Collections.BOOKINGS, _group_by("booking_type", match, total_key="revenue_lost")
        ),
        "location_cancellations": await ops.aggregate(
            Collections.BOOKINGS, _group_by("site", match, total_key="revenue_lost")
        ),
        "cancellations": serialize_docs([{k: doc.get(k) for k in fields} for doc in cancellations]),
    }
