from fastapi import APIRouter, Depends, status
from typing import Dict, List, Optional
from datetime import datetime

from sporti.config.database import Collections
from sporti.database.db_operations import DBOperations, to_object_id
from sporti.dependencies import get_db_ops
from sporti.models.resource import RoomCategory, RoomCreate, RoomResponse, RoomUpdate, Site
from sporti.services.availability import CREATE_BLOCKING, available_resources
from sporti.services.occupancy import EMPTY_OCCUPANCY
from sporti.utils.auth import require_admin
from sporti.utils.exceptions import ConflictError, NotFoundError, ValidationError
from sporti.utils.helpers import serialize_doc, serialize_docs, to_utc_naive

router = APIRouter(prefix="/rooms", tags=["Rooms"])


@router.post("/", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    room: RoomCreate,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    """Create a room; room numbers are unique within a site"""
    existing = await ops.get_one(Collections.ROOMS, {"room_number": room.room_number, "site": room.site})
    if existing:
        raise ValidationError("Room already exists")

    room_dict = room.model_dump(mode="json")
    room_dict["is_blocked"] = False
    room_dict.update(EMPTY_OCCUPANCY)
    created = await ops.create(Collections.ROOMS, room_dict)
    return serialize_doc(created)


@router.get("/", response_model=List[RoomResponse])
async def get_rooms(
    site: Optional[Site] = None,
    category: Optional[RoomCategory] = None,
    ops: DBOperations = Depends(get_db_ops),
):
    filter_query = {}
    if site:
        filter_query["site"] = site
    if category:
        filter_query["category"] = category

    rooms = await ops.get_all(Collections.ROOMS, filter_query, limit=1000)
    sorted_rooms = sorted(rooms, key=lambda r: (r.get("site", ""), r.get("room_number", "")))
    return serialize_docs(sorted_rooms)


@router.get("/available", response_model=List[RoomResponse])
async def get_available_rooms(
    check_in: datetime,
    check_out: datetime,
    site: Optional[Site] = None,
    category: Optional[RoomCategory] = None,
    ops: DBOperations = Depends(get_db_ops),
):
    """Unblocked rooms with no pending or confirmed booking in the range"""
    check_in, check_out = to_utc_naive(check_in), to_utc_naive(check_out)
    if check_in >= check_out:
        raise ValidationError("check_in must be before check_out")
    rooms = await available_resources(
        ops, "room", check_in, check_out, CREATE_BLOCKING, site=site, category=category
    )
    return serialize_docs(sorted(rooms, key=lambda r: (r.get("site", ""), r.get("room_number", ""))))


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(room_id: str, ops: DBOperations = Depends(get_db_ops)):
    room = await ops.get_by_id(Collections.ROOMS, room_id)
    if not room:
        raise NotFoundError("Room", room_id)
    return serialize_doc(room)


@router.put("/{room_id}", response_model=RoomResponse)
async def update_room(
    room_id: str,
    room_update: RoomUpdate,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    """Update room details. Occupancy and blocking have their own flows."""
    update_data = room_update.model_dump(mode="json", exclude_unset=True)
    if not update_data:
        raise ValidationError("No fields to update")

    updated = await ops.update(Collections.ROOMS, room_id, update_data)
    if not updated:
        raise NotFoundError("Room", room_id)
    return serialize_doc(updated)


@router.put("/{room_id}/block", response_model=RoomResponse)
async def toggle_room_block(
    room_id: str,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    """Block or unblock a room for new bookings"""
    room = await ops.get_by_id(Collections.ROOMS, room_id)
    if not room:
        raise NotFoundError("Room", room_id)
    updated = await ops.update(Collections.ROOMS, room_id, {"is_blocked": not room.get("is_blocked", False)})
    return serialize_doc(updated)


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: str,
    current_user: Dict = Depends(require_admin),
    ops: DBOperations = Depends(get_db_ops),
):
    """Delete a room that no booking has ever referenced"""
    object_id = to_object_id(room_id)
    if object_id is None:
        raise NotFoundError("Room", room_id)
    if await ops.count(Collections.BOOKINGS, {"resource_id": str(object_id)}):
        raise ConflictError("Room is referenced by bookings and cannot be deleted; block it instead")
    deleted = await ops.delete(Collections.ROOMS, room_id)
    if not deleted:
        raise NotFoundError("Room", room_id)
