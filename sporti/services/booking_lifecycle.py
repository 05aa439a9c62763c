"""
Booking lifecycle - creation, status transitions, payment and stay tracking.

Every write that touches a room or service runs under that resource's lock
and re-checks availability inside it, then commits the resource occupancy
write and the booking write together (see `_commit`). Notifications go out
only after the commit and can never fail the request.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from sporti.config.database import Collections
from sporti.config.settings import Settings
from sporti.database.db_operations import DBOperations
from sporti.domain.booking_state import (
    PAYMENT_STATUSES,
    RELEASING_STATUSES,
    TARGET_STATUSES,
    assert_booking_transition,
)
from sporti.models.booking import RoomBookingCreate, ServiceBookingCreate
from sporti.services import pricing
from sporti.services.assignment import assign_resource, canonical_id, load_resource
from sporti.services.availability import CONFIRM_BLOCKING, CREATE_BLOCKING, RESOURCE_KINDS
from sporti.services.notifications import NotificationDispatcher, status_message
from sporti.services.occupancy import occupancy_snapshot, occupancy_update
from sporti.services.resource_lock import Lease, ResourceLocks
from sporti.utils.auth import is_admin
from sporti.utils.exceptions import (
    AuthenticationError,
    ConflictError,
    ConsistencyError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from sporti.utils.helpers import generate_application_no, generate_booking_code

logger = logging.getLogger(__name__)

CODE_ATTEMPTS = 5


class BookingLifecycle:
    """Room and service bookings from request to check-out."""

    def __init__(
        self,
        ops: DBOperations,
        notifier: NotificationDispatcher,
        locks: ResourceLocks,
        config: Settings,
    ) -> None:
        self.ops = ops
        self.notifier = notifier
        self.locks = locks
        self.config = config

    # ─── helpers ─────────────────────────────────────────────────────────────

    async def get_booking(self, booking_id: str) -> Dict:
        booking = await self.ops.get_by_id(Collections.BOOKINGS, booking_id)
        if not booking:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _new_booking(self, actor: Optional[Dict], **fields) -> Dict:
        member = actor is not None
        booking = {
            "_id": ObjectId(),
            "booking_code": generate_booking_code(),
            "application_no": generate_application_no(),
            "resource_id": None,
            "user_id": actor.get("sub") if member else None,
            "user_email": actor.get("email") if member else None,
            "booked_by_role": actor.get("role") if member else None,
            "officer_details": None,
            "total_cost": 0.0,
            "cost_source": pricing.COST_SUPPLIED,
            "status": "pending",
            "payment_status": "pending",
            "remarks": None,
            "checked_in_at": None,
            "checked_out_at": None,
        }
        booking.update(fields)
        return booking

    async def _commit(
        self,
        booking: Dict,
        changes: Optional[Dict] = None,
        guard: Optional[Dict] = None,
        resource_kind: Optional[str] = None,
        resource_id: Optional[str] = None,
        occupancy: Optional[Dict] = None,
        previous_occupancy: Optional[Dict] = None,
        lease: Optional[Lease] = None,
    ) -> Dict:
        """
        Write the resource occupancy (if any) and then the booking.

        `changes is None` inserts `booking` as a new document; otherwise the
        stored booking is updated with `changes` provided it still matches
        `guard`. With transactions enabled both writes share one. Without
        them a failed booking write rolls the occupancy back and surfaces as
        ConsistencyError for operator follow-up.
        Writes made under a resource lock pass its `lease`, which is checked
        before anything is written.
        """
        booking_id = str(booking["_id"])
        collection = RESOURCE_KINDS[resource_kind]["collection"] if resource_kind else None
        if lease is not None:
            await self.locks.verify(lease)
        async with self.ops.transaction() as session:
            if occupancy is not None:
                written = await self.ops.update(collection, resource_id, dict(occupancy), session=session)
                if written is None:
                    raise NotFoundError(RESOURCE_KINDS[resource_kind]["label"], resource_id)
            try:
                if changes is None:
                    saved = await self._insert_booking(booking, session)
                else:
                    saved = await self.ops.update(
                        Collections.BOOKINGS, booking_id, changes, guard=guard, session=session
                    )
            except PyMongoError as exc:
                if session is not None or occupancy is None:
                    raise
                await self._compensate(collection, resource_id, previous_occupancy, booking_id)
                logger.error(
                    "❌ Booking write failed after resource write: booking=%s resource=%s error=%s",
                    booking_id, resource_id, exc,
                )
                raise ConsistencyError(booking_id, resource_id) from exc
            if saved is None:
                if session is None and occupancy is not None:
                    await self._compensate(collection, resource_id, previous_occupancy, booking_id)
                raise ConflictError("Booking was modified by another request, please retry", status_code=409)
        return saved

    async def _insert_booking(self, booking: Dict, session) -> Dict:
        for attempt in range(CODE_ATTEMPTS):
            try:
                return await self.ops.create(Collections.BOOKINGS, booking, session=session)
            except DuplicateKeyError:
                if attempt == CODE_ATTEMPTS - 1 or session is not None:
                    raise
                booking["booking_code"] = generate_booking_code()
                booking["application_no"] = generate_application_no()
        raise RuntimeError("unreachable")

    async def _compensate(self, collection: str, resource_id: str, previous: Optional[Dict], booking_id: str) -> None:
        if previous is None:
            return
        try:
            await self.ops.update(collection, resource_id, dict(previous))
            logger.warning("Restored occupancy of resource %s after failed write of booking %s", resource_id, booking_id)
        except PyMongoError as exc:
            logger.error(
                "❌ Could not restore occupancy: booking=%s resource=%s error=%s",
                booking_id, resource_id, exc,
            )
            raise ConsistencyError(booking_id, resource_id) from exc

    # ─── creation ────────────────────────────────────────────────────────────

    async def create_room_booking(self, payload: RoomBookingCreate, actor: Optional[Dict]) -> Dict:
        """Record a room request; admins confirm and occupy in the same step."""
        admin = is_admin(actor)
        member = actor is not None

        if not member and payload.officer_details is None:
            raise ValidationError("Valid officer details are required for non-member bookings")
        resource_required = member and (
            payload.booking_for == "Self" or payload.relation == "Batchmate" or admin
        )
        if resource_required and not payload.room_id:
            raise ValidationError("Room ID is required")

        booking = self._new_booking(
            actor,
            booking_type="room",
            site=payload.site,
            room_type=payload.room_type,
            booking_for=payload.booking_for,
            relation=payload.relation,
            occupant_details=payload.occupant_details.model_dump(mode="json"),
            check_in=payload.check_in,
            check_out=payload.check_out,
        )
        if not member:
            booking["officer_details"] = payload.officer_details.model_dump(mode="json")

        if not payload.room_id:
            booking["total_cost"], booking["cost_source"] = pricing.resolve_cost(None, payload.total_cost)
            saved = await self._commit(booking)
            logger.info("📝 Booking %s requested without a room (pending assignment)", saved["booking_code"])
            await self.notifier.notify_submission(saved)
            return saved

        return await self._create_with_resource(booking, "room", payload.room_id, payload.total_cost, admin)

    async def create_service_booking(self, payload: ServiceBookingCreate, actor: Optional[Dict]) -> Dict:
        """Book a hall/conference room for `duration_days` from the event date."""
        if actor is None:
            raise AuthenticationError("Authentication required for service booking")
        admin = is_admin(actor)
        service = await load_resource(self.ops, "service", payload.service_id)
        if payload.guest_count and payload.guest_count > service.get("capacity", 0):
            raise ValidationError(
                f"Guest count {payload.guest_count} exceeds capacity {service.get('capacity')} of {service.get('name')}"
            )

        booking = self._new_booking(
            actor,
            booking_type="service",
            site=service["site"],
            service_type=service["service_type"],
            booking_for=payload.booking_for,
            relation=payload.relation,
            occupant_details=payload.occupant_details.model_dump(mode="json") if payload.occupant_details else None,
            check_in=payload.event_date,
            check_out=payload.event_date + timedelta(days=payload.duration_days),
            duration_days=payload.duration_days,
            guest_count=payload.guest_count,
        )
        return await self._create_with_resource(booking, "service", payload.service_id, payload.total_cost, admin)

    async def _create_with_resource(
        self, booking: Dict, kind: str, resource_id: str, supplied_cost: Optional[float], admin: bool
    ) -> Dict:
        resource_id = canonical_id(kind, resource_id)
        async with self.locks.hold(resource_id) as lease:
            resource, derived = await assign_resource(self.ops, booking, resource_id, CREATE_BLOCKING)
            booking["resource_id"] = resource_id
            booking["total_cost"], booking["cost_source"] = pricing.resolve_cost(derived, supplied_cost)
            if admin:
                booking["status"] = "confirmed"
                occupancy = await occupancy_update(self.ops, resource_id, pending_booking=booking)
                saved = await self._commit(
                    booking,
                    resource_kind=kind,
                    resource_id=resource_id,
                    occupancy=occupancy,
                    previous_occupancy=occupancy_snapshot(resource),
                    lease=lease,
                )
            else:
                # Pending requests reserve through the availability query only
                saved = await self._commit(booking, lease=lease)

        logger.info("📝 Booking %s created (%s) on %s %s", saved["booking_code"], saved["status"], kind, resource_id)
        if saved["status"] == "confirmed":
            await self.notifier.notify_confirmation(saved, resource)
        else:
            await self.notifier.notify_submission(saved)
        return saved

    # ─── transitions ─────────────────────────────────────────────────────────

    async def update_status(
        self,
        booking_id: str,
        status: str,
        resource_id: Optional[str] = None,
        total_cost: Optional[float] = None,
        remarks: Optional[str] = None,
    ) -> Dict:
        if status not in TARGET_STATUSES:
            raise ValidationError("Invalid status")
        if total_cost is not None and total_cost < 0:
            raise ValidationError("total_cost must not be negative")

        booking = await self.get_booking(booking_id)
        assert_booking_transition(booking["status"], status)
        held = booking.get("resource_id")

        if status == "confirmed":
            if resource_id:
                resource_id = canonical_id(booking["booking_type"], resource_id)
            if resource_id and held and resource_id != held:
                raise ValidationError("Booking already has a resource assigned")
            target = held or resource_id
            if not target:
                raise ValidationError("A room must be assigned before confirming this booking")
            async with self.locks.hold(target) as lease:
                saved, resource = await self._confirm(booking_id, status, target, total_cost, remarks, lease)
            await self.notifier.notify_confirmation(saved, resource)
            return saved

        if status in RELEASING_STATUSES and held:
            async with self.locks.hold(held) as lease:
                saved = await self._release(booking_id, status, total_cost, remarks, lease)
        else:
            changes = self._manual_fields(status, total_cost, remarks)
            if status == "completed" and booking["status"] == "confirmed":
                changes["checked_in_at"] = datetime.utcnow()
            saved = await self._commit(booking, changes, guard={"status": booking["status"]})

        logger.info("🔄 Booking %s: %s → %s", saved["booking_code"], booking["status"], status)
        await self.notifier.notify_status_change(saved, status_message(status))
        return saved

    def _manual_fields(self, status: str, total_cost: Optional[float], remarks: Optional[str]) -> Dict:
        changes: Dict = {"status": status}
        if remarks:
            changes["remarks"] = remarks
        if total_cost is not None:
            changes["total_cost"] = round(float(total_cost), 2)
            changes["cost_source"] = pricing.COST_OVERRIDE
        return changes

    async def _confirm(self, booking_id, status, resource_id, total_cost, remarks, lease):
        # Re-read under the lock so the checks see the latest state
        booking = await self.get_booking(booking_id)
        assert_booking_transition(booking["status"], status)
        kind = booking["booking_type"]

        resource, derived = await assign_resource(self.ops, booking, resource_id, CONFIRM_BLOCKING)
        resource_id = str(resource["_id"])
        changes = {
            "status": status,
            "resource_id": resource_id,
            "total_cost": round(derived, 2),
            "cost_source": pricing.COST_DERIVED,
        }
        changes.update(self._manual_fields(status, total_cost, remarks))

        occupancy = await occupancy_update(self.ops, resource_id, pending_booking={**booking, **changes})
        saved = await self._commit(
            booking,
            changes,
            guard={"status": booking["status"]},
            resource_kind=kind,
            resource_id=resource_id,
            occupancy=occupancy,
            previous_occupancy=occupancy_snapshot(resource),
            lease=lease,
        )
        logger.info("✅ Booking %s confirmed on %s %s", saved["booking_code"], kind, resource_id)
        return saved, resource

    async def _release(self, booking_id, status, total_cost, remarks, lease):
        booking = await self.get_booking(booking_id)
        assert_booking_transition(booking["status"], status)
        kind = booking["booking_type"]
        resource_id = booking["resource_id"]
        resource = await load_resource(self.ops, kind, resource_id)

        changes = self._manual_fields(status, total_cost, remarks)
        occupancy = await occupancy_update(self.ops, resource_id, pending_booking={**booking, **changes})
        return await self._commit(
            booking,
            changes,
            guard={"status": booking["status"]},
            resource_kind=kind,
            resource_id=resource_id,
            occupancy=occupancy,
            previous_occupancy=occupancy_snapshot(resource),
            lease=lease,
        )

    # ─── payment ─────────────────────────────────────────────────────────────

    async def update_payment(self, booking_id: str, payment_status: str) -> Dict:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationError("Invalid payment status")
        booking = await self.get_booking(booking_id)
        saved = await self.ops.update(Collections.BOOKINGS, booking_id, {"payment_status": payment_status})
        if saved is None:
            raise NotFoundError("Booking", booking_id)
        logger.info("💰 Booking %s payment %s → %s", saved["booking_code"], booking.get("payment_status"), payment_status)
        if payment_status == "paid" and booking.get("payment_status") != "paid":
            await self.notifier.notify_payment_confirmed(saved)
        return saved

    # ─── stay ────────────────────────────────────────────────────────────────

    async def check_in(self, booking_id: str) -> Dict:
        """Guest arrives: confirmed → completed. The resource stays occupied."""
        booking = await self.get_booking(booking_id)
        if booking["status"] != "confirmed":
            raise PreconditionError("Booking must be confirmed to check-in")
        if not booking.get("resource_id"):
            raise PreconditionError("Room must be assigned to check-in")

        saved = await self._commit(
            booking,
            {"status": "completed", "checked_in_at": datetime.utcnow()},
            guard={"status": "confirmed"},
        )
        logger.info("🛎️  Booking %s checked in", saved["booking_code"])
        await self.notifier.notify_check_in(saved)
        return saved

    async def check_out(self, booking_id: str) -> Dict:
        """Guest leaves: the resource is released once; repeat calls are no-ops."""
        booking = await self.get_booking(booking_id)
        if booking["status"] != "completed":
            raise PreconditionError("Booking must be checked-in to check-out")
        if booking.get("checked_out_at"):
            return booking

        resource_id = booking.get("resource_id")
        if not resource_id:
            saved = await self._commit(
                booking,
                {"checked_out_at": datetime.utcnow()},
                guard={"status": "completed", "checked_out_at": None},
            )
        else:
            async with self.locks.hold(resource_id) as lease:
                booking = await self.get_booking(booking_id)
                if booking.get("checked_out_at"):
                    return booking
                kind = booking["booking_type"]
                resource = await load_resource(self.ops, kind, resource_id)
                changes = {"checked_out_at": datetime.utcnow()}
                occupancy = await occupancy_update(self.ops, resource_id, pending_booking={**booking, **changes})
                saved = await self._commit(
                    booking,
                    changes,
                    guard={"status": "completed", "checked_out_at": None},
                    resource_kind=kind,
                    resource_id=resource_id,
                    occupancy=occupancy,
                    previous_occupancy=occupancy_snapshot(resource),
                    lease=lease,
                )

        logger.info("👋 Booking %s checked out", saved["booking_code"])
        await self.notifier.notify_check_out(saved)
        return saved
