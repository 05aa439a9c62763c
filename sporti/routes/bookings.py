from fastapi import APIRouter, Depends, Query, status
from typing import Dict, Literal, Optional
from datetime import datetime

from sporti.config.database import Collections
from sporti.config.settings import settings
from sporti.database.db_operations import DBOperations
from sporti.dependencies import get_db_ops, get_lifecycle
from sporti.models.booking import (
    BookingResponse,
    PaymentUpdate,
    RoomBookingCreate,
    ServiceBookingCreate,
    StatusUpdate,
)
from sporti.services import stats
from sporti.services.booking_lifecycle import BookingLifecycle
from sporti.utils.auth import get_current_user, get_optional_user, is_admin, require_admin
from sporti.utils.exceptions import AuthorizationError
from sporti.utils.helpers import serialize_doc, serialize_docs, to_utc_naive

router = APIRouter(prefix="/bookings", tags=["Bookings"])

SORTABLE_FIELDS = {"created_at", "check_in", "check_out", "total_cost", "status", "application_no"}


@router.post("/room", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_room_booking(
    booking: RoomBookingCreate,
    current_user: Optional[Dict] = Depends(get_optional_user),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """Request a room. Members and officer-sponsored guests land in pending; admins confirm directly."""
    created = await lifecycle.create_room_booking(booking, current_user)
    return serialize_doc(created)


@router.post("/service", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_service_booking(
    booking: ServiceBookingCreate,
    current_user: Dict = Depends(get_current_user),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """Book a function hall, conference room or other service"""
    created = await lifecycle.create_service_booking(booking, current_user)
    return serialize_doc(created)


@router.get("/")
async def get_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    booking_type: Optional[Literal["room", "service"]] = None,
    site: Optional[str] = None,
    payment_status: Optional[str] = None,
    booking_for: Optional[str] = None,
    is_member: Optional[bool] = None,
    application_no: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sort: str = "created_at",
    order: Literal["asc", "desc"] = "desc",
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    """List bookings with filters and pagination"""
    filter_query = stats.build_match(
        booking_type=booking_type,
        status=status_filter,
        site=site,
        payment_status=payment_status,
        booking_for=booking_for,
        is_member=is_member,
    )
    if application_no:
        filter_query["application_no"] = application_no

    sort_field = sort if sort in SORTABLE_FIELDS else "created_at"
    bookings = await ops.get_all(
        Collections.BOOKINGS,
        filter_query,
        skip=(page - 1) * limit,
        limit=limit,
        sort=[(sort_field, 1 if order == "asc" else -1)],
    )
    count = await ops.count(Collections.BOOKINGS, filter_query)
    return {"count": count, "page": page, "limit": limit, "bookings": serialize_docs(bookings)}


@router.get("/my")
async def get_my_bookings(
    current_user: Dict = Depends(get_current_user),
    ops: DBOperations = Depends(get_db_ops),
):
    """Bookings made by the signed-in member"""
    bookings = await ops.get_all(
        Collections.BOOKINGS, {"user_id": current_user["sub"]}, limit=500, sort=[("created_at", -1)]
    )
    return {"count": len(bookings), "bookings": serialize_docs(bookings)}


@router.get("/stats")
async def get_booking_stats(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    booking_type: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    site: Optional[str] = None,
    payment_status: Optional[str] = None,
    booking_for: Optional[str] = None,
    is_member: Optional[bool] = None,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    match = stats.build_match(
        start_date=to_utc_naive(start_date),
        end_date=to_utc_naive(end_date),
        booking_type=booking_type,
        status=status_filter,
        site=site,
        payment_status=payment_status,
        booking_for=booking_for,
        is_member=is_member,
    )
    return {"stats": await stats.booking_stats(ops, match)}


@router.get("/cancellations")
async def get_cancellation_stats(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    booking_type: Optional[str] = None,
    site: Optional[str] = None,
    is_member: Optional[bool] = None,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    match = stats.build_match(
        start_date=to_utc_naive(start_date),
        end_date=to_utc_naive(end_date),
        booking_type=booking_type,
        site=site,
        is_member=is_member,
    )
    return {"stats": await stats.cancellation_stats(ops, match)}


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user: Dict = Depends(get_current_user),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    booking = await lifecycle.get_booking(booking_id)
    if not is_admin(current_user) and booking.get("user_id") != current_user.get("sub"):
        raise AuthorizationError("Not authorized to view this booking")
    return serialize_doc(booking)


@router.put("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    update: StatusUpdate,
    current_user: Dict = Depends(require_admin),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    """Confirm (optionally assigning a room), reject, cancel or complete a booking"""
    updated = await lifecycle.update_status(
        booking_id,
        update.status,
        resource_id=update.room_id,
        total_cost=update.total_cost,
        remarks=update.remarks,
    )
    return serialize_doc(updated)


@router.put("/{booking_id}/payment", response_model=BookingResponse)
async def update_payment_status(
    booking_id: str,
    update: PaymentUpdate,
    current_user: Dict = Depends(require_admin),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    updated = await lifecycle.update_payment(booking_id, update.payment_status)
    return serialize_doc(updated)


@router.put("/{booking_id}/checkin", response_model=BookingResponse)
async def check_in_booking(
    booking_id: str,
    current_user: Dict = Depends(require_admin),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    updated = await lifecycle.check_in(booking_id)
    return serialize_doc(updated)


@router.put("/{booking_id}/checkout", response_model=BookingResponse)
async def check_out_booking(
    booking_id: str,
    current_user: Dict = Depends(require_admin),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    updated = await lifecycle.check_out(booking_id)
    return serialize_doc(updated)
