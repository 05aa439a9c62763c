from datetime import datetime

import pytest
from pymongo.errors import OperationFailure

from conftest import ADMIN, MEMBER, day, room_request
from sporti.config.database import Collections
from sporti.models.booking import ServiceBookingCreate
from sporti.services import pricing
from sporti.utils.exceptions import (
    AuthenticationError,
    ConflictError,
    ConsistencyError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)


async def reload(ops, collection, doc):
    return await ops.get_by_id(collection, str(doc["_id"]))


# ─── creation ────────────────────────────────────────────────────────────────

async def test_member_request_is_pending_and_priced(lifecycle, ops, notifier, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)

    assert booking["status"] == "pending"
    assert booking["total_cost"] == 3000
    assert booking["cost_source"] == pricing.COST_DERIVED
    assert booking["resource_id"] == str(room["_id"])
    assert booking["user_id"] == MEMBER["sub"]
    assert booking["booking_code"].startswith("SPT")
    assert booking["application_no"].startswith("SPRT")
    # pending requests do not flip the occupancy flag
    assert (await reload(ops, Collections.ROOMS, room))["occupied"] is False
    assert notifier.events() == ["submission"]


async def test_admin_booking_is_confirmed_and_occupies(lifecycle, ops, notifier, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)

    assert booking["status"] == "confirmed"
    assert booking["total_cost"] == 3000
    stored = await reload(ops, Collections.ROOMS, room)
    assert stored["occupied"] is True
    assert stored["occupied_by"] == str(booking["_id"])
    assert stored["occupied_from"] == day("2024-06-01")
    assert stored["occupied_until"] == day("2024-06-03")
    assert notifier.events() == ["confirmation"]


async def test_overlapping_request_is_rejected(lifecycle, ops, make_room):
    room = await make_room()
    first = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    before = await reload(ops, Collections.ROOMS, room)

    with pytest.raises(ConflictError) as exc:
        await lifecycle.create_room_booking(
            room_request(str(room["_id"]), check_in="2024-06-02", check_out="2024-06-04"), MEMBER
        )

    assert exc.value.status_code == 400
    assert "Room 101 is already booked" in exc.value.detail
    after = await reload(ops, Collections.ROOMS, room)
    assert after["occupied_by"] == before["occupied_by"] == str(first["_id"])
    assert await ops.count(Collections.BOOKINGS) == 1


async def test_back_to_back_stays_do_not_conflict(lifecycle, make_room):
    room = await make_room()
    await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    second = await lifecycle.create_room_booking(
        room_request(str(room["_id"]), check_in="2024-06-03", check_out="2024-06-05"), ADMIN
    )
    assert second["status"] == "confirmed"


async def test_pending_request_holds_dates_against_new_requests(lifecycle, make_room):
    room = await make_room()
    await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)
    with pytest.raises(ConflictError):
        await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)


async def test_unknown_room_is_not_found(lifecycle):
    with pytest.raises(NotFoundError):
        await lifecycle.create_room_booking(room_request("5f1d7f1c2b3a4c5d6e7f8a9b"), MEMBER)


async def test_category_mismatch_is_rejected(lifecycle, make_room):
    room = await make_room(category="VIP", member=3000, guest=3500)
    with pytest.raises(ConflictError, match="does not match"):
        await lifecycle.create_room_booking(room_request(str(room["_id"]), room_type="Standard"), MEMBER)


async def test_member_self_booking_needs_a_room(lifecycle):
    with pytest.raises(ValidationError, match="Room ID is required"):
        await lifecycle.create_room_booking(room_request(None), MEMBER)


async def test_non_member_needs_officer_details(lifecycle):
    with pytest.raises(ValidationError, match="officer details"):
        await lifecycle.create_room_booking(room_request(None, booking_for="Guest", relation="Friend"), None)


async def test_non_member_request_waits_for_assignment(lifecycle, notifier):
    booking = await lifecycle.create_room_booking(
        room_request(None, booking_for="Guest", relation="Friend", officer=True, total_cost=1800), None
    )
    assert booking["status"] == "pending"
    assert booking["resource_id"] is None
    assert booking["user_id"] is None
    assert booking["officer_details"]["designation"] == "DCP"
    assert booking["total_cost"] == 1800
    assert booking["cost_source"] == pricing.COST_SUPPLIED
    assert notifier.events() == ["submission"]


# ─── deferred assignment ─────────────────────────────────────────────────────

async def test_deferred_guest_booking_is_priced_on_confirmation(lifecycle, ops, notifier, make_room):
    booking = await lifecycle.create_room_booking(
        room_request(None, booking_for="Guest", relation="Friend"), MEMBER
    )
    assert booking["status"] == "pending"
    assert booking["resource_id"] is None
    assert booking["total_cost"] == 0

    room = await make_room("102")
    confirmed = await lifecycle.update_status(str(booking["_id"]), "confirmed", resource_id=str(room["_id"]))

    assert confirmed["status"] == "confirmed"
    assert confirmed["resource_id"] == str(room["_id"])
    assert confirmed["total_cost"] == 4000  # 2 nights at the guest rate
    assert confirmed["cost_source"] == pricing.COST_DERIVED
    stored = await reload(ops, Collections.ROOMS, room)
    assert stored["occupied"] is True
    assert stored["occupied_by"] == str(booking["_id"])
    assert notifier.events() == ["submission", "confirmation"]


async def test_batchmate_pays_member_rate(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(
        room_request(str(room["_id"]), booking_for="Guest", relation="Batchmate"), MEMBER
    )
    assert booking["total_cost"] == 3000


async def test_confirm_without_any_room_is_rejected(lifecycle):
    booking = await lifecycle.create_room_booking(
        room_request(None, booking_for="Guest", relation="Friend"), MEMBER
    )
    with pytest.raises(ValidationError, match="must be assigned"):
        await lifecycle.update_status(str(booking["_id"]), "confirmed")


async def test_confirm_cannot_swap_the_bound_room(lifecycle, make_room):
    room = await make_room("101")
    other = await make_room("102")
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)
    with pytest.raises(ValidationError):
        await lifecycle.update_status(str(booking["_id"]), "confirmed", resource_id=str(other["_id"]))


async def test_failed_confirmation_changes_nothing(lifecycle, ops, notifier, make_room):
    room = await make_room()
    holder = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    waiting = await lifecycle.create_room_booking(
        room_request(None, booking_for="Guest", relation="Friend", check_in="2024-06-02", check_out="2024-06-04"),
        MEMBER,
    )

    with pytest.raises(ConflictError, match="already booked"):
        await lifecycle.update_status(str(waiting["_id"]), "confirmed", resource_id=str(room["_id"]))

    stored = await reload(ops, Collections.BOOKINGS, waiting)
    assert stored["status"] == "pending"
    assert stored["resource_id"] is None
    assert (await reload(ops, Collections.ROOMS, room))["occupied_by"] == str(holder["_id"])
    assert notifier.events() == ["confirmation", "submission"]


async def test_one_of_two_pending_requests_can_be_confirmed(lifecycle, make_room):
    room = await make_room()
    first = await lifecycle.create_room_booking(
        room_request(None, booking_for="Guest", relation="Friend"), MEMBER
    )
    second = await lifecycle.create_room_booking(
        room_request(None, booking_for="Guest", relation="Relative"), MEMBER
    )
    await lifecycle.update_status(str(first["_id"]), "confirmed", resource_id=str(room["_id"]))
    with pytest.raises(ConflictError):
        await lifecycle.update_status(str(second["_id"]), "confirmed", resource_id=str(room["_id"]))


async def test_confirm_with_manual_cost_and_remarks(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)
    confirmed = await lifecycle.update_status(
        str(booking["_id"]), "confirmed", total_cost=2500, remarks="Long-stay discount"
    )
    assert confirmed["total_cost"] == 2500
    assert confirmed["cost_source"] == pricing.COST_OVERRIDE
    assert confirmed["remarks"] == "Long-stay discount"


# ─── release ─────────────────────────────────────────────────────────────────

async def test_cancel_releases_the_room(lifecycle, ops, notifier, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)

    cancelled = await lifecycle.update_status(str(booking["_id"]), "cancelled", remarks="Plans changed")

    assert cancelled["status"] == "cancelled"
    assert cancelled["remarks"] == "Plans changed"
    stored = await reload(ops, Collections.ROOMS, room)
    assert stored["occupied"] is False
    assert stored["occupied_by"] is None
    assert notifier.events() == ["confirmation", "status"]

    again = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    assert again["status"] == "confirmed"


async def test_cancel_keeps_later_holder_on_the_cache(lifecycle, ops, make_room):
    room = await make_room()
    early = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    late = await lifecycle.create_room_booking(
        room_request(str(room["_id"]), check_in="2024-06-10", check_out="2024-06-12"), ADMIN
    )
    assert (await reload(ops, Collections.ROOMS, room))["occupied_by"] == str(early["_id"])

    await lifecycle.update_status(str(early["_id"]), "cancelled")

    stored = await reload(ops, Collections.ROOMS, room)
    assert stored["occupied_by"] == str(late["_id"])
    assert stored["occupied_from"] == day("2024-06-10")


async def test_reject_frees_the_requested_dates(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)
    rejected = await lifecycle.update_status(str(booking["_id"]), "rejected")
    assert rejected["status"] == "rejected"

    retry = await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)
    assert retry["status"] == "pending"


@pytest.mark.parametrize("target", ["completed", "cancelled"])
async def test_pending_cannot_skip_confirmation(lifecycle, make_room, target):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)
    with pytest.raises(ValidationError, match="Invalid booking transition"):
        await lifecycle.update_status(str(booking["_id"]), target)


async def test_cancelled_booking_cannot_be_reconfirmed(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    await lifecycle.update_status(str(booking["_id"]), "cancelled")
    with pytest.raises(ValidationError):
        await lifecycle.update_status(str(booking["_id"]), "confirmed")


async def test_unknown_status_and_booking(lifecycle):
    with pytest.raises(ValidationError, match="Invalid status"):
        await lifecycle.update_status("5f1d7f1c2b3a4c5d6e7f8a9b", "pending")
    with pytest.raises(NotFoundError):
        await lifecycle.update_status("5f1d7f1c2b3a4c5d6e7f8a9b", "confirmed")


# ─── payment ─────────────────────────────────────────────────────────────────

async def test_payment_notifies_once(lifecycle, notifier, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)

    paid = await lifecycle.update_payment(str(booking["_id"]), "paid")
    await lifecycle.update_payment(str(booking["_id"]), "paid")

    assert paid["payment_status"] == "paid"
    assert notifier.events().count("payment") == 1


async def test_invalid_payment_status(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    with pytest.raises(ValidationError):
        await lifecycle.update_payment(str(booking["_id"]), "refunded")


# ─── stay ────────────────────────────────────────────────────────────────────

async def test_check_in_requires_confirmation(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)
    with pytest.raises(PreconditionError, match="confirmed"):
        await lifecycle.check_in(str(booking["_id"]))


async def test_check_out_requires_check_in(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    with pytest.raises(PreconditionError, match="checked-in"):
        await lifecycle.check_out(str(booking["_id"]))


async def test_stay_from_check_in_to_check_out(lifecycle, ops, notifier, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)

    checked_in = await lifecycle.check_in(str(booking["_id"]))
    assert checked_in["status"] == "completed"
    assert isinstance(checked_in["checked_in_at"], datetime)
    assert (await reload(ops, Collections.ROOMS, room))["occupied"] is True

    checked_out = await lifecycle.check_out(str(booking["_id"]))
    assert checked_out["status"] == "completed"
    assert isinstance(checked_out["checked_out_at"], datetime)
    stored = await reload(ops, Collections.ROOMS, room)
    assert stored["occupied"] is False

    repeat = await lifecycle.check_out(str(booking["_id"]))
    assert repeat["checked_out_at"] == checked_out["checked_out_at"]
    assert notifier.events() == ["confirmation", "check-in", "check-out"]


async def test_completed_booking_can_be_marked_completed_again(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    await lifecycle.update_status(str(booking["_id"]), "completed")
    again = await lifecycle.update_status(str(booking["_id"]), "completed")
    assert again["status"] == "completed"
    assert again["checked_in_at"] is not None


# ─── services ────────────────────────────────────────────────────────────────

async def test_service_booking_spans_duration(lifecycle, ops, make_service):
    hall = await make_service()
    payload = ServiceBookingCreate(
        service_id=str(hall["_id"]), event_date="2024-07-10", duration_days=2, guest_count=40
    )
    booking = await lifecycle.create_service_booking(payload, ADMIN)

    assert booking["booking_type"] == "service"
    assert booking["status"] == "confirmed"
    assert booking["check_in"] == day("2024-07-10")
    assert booking["check_out"] == day("2024-07-12")
    assert booking["total_cost"] == 4000
    assert (await reload(ops, Collections.SERVICES, hall))["occupied"] is True


async def test_service_booking_needs_a_member(lifecycle, make_service):
    hall = await make_service()
    payload = ServiceBookingCreate(service_id=str(hall["_id"]), event_date="2024-07-10")
    with pytest.raises(AuthenticationError):
        await lifecycle.create_service_booking(payload, None)


async def test_service_capacity_is_enforced(lifecycle, make_service):
    hall = await make_service(capacity=30)
    payload = ServiceBookingCreate(service_id=str(hall["_id"]), event_date="2024-07-10", guest_count=31)
    with pytest.raises(ValidationError, match="exceeds capacity"):
        await lifecycle.create_service_booking(payload, MEMBER)


# ─── consistency ─────────────────────────────────────────────────────────────

async def test_failed_booking_write_restores_room(lifecycle, ops, notifier, make_room, monkeypatch):
    room = await make_room()

    async def broken_insert(booking, session):
        raise OperationFailure("write failed")

    monkeypatch.setattr(lifecycle, "_insert_booking", broken_insert)

    with pytest.raises(ConsistencyError) as exc:
        await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)

    assert exc.value.status_code == 500
    assert exc.value.resource_id == str(room["_id"])
    stored = await reload(ops, Collections.ROOMS, room)
    assert stored["occupied"] is False
    assert stored["occupied_by"] is None
    assert await ops.count(Collections.BOOKINGS) == 0
    assert notifier.events() == []


async def test_stale_status_guard_rolls_back_occupancy(lifecycle, ops, make_room, monkeypatch):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)
    real_get = lifecycle.get_booking
    calls = {"n": 0}

    async def racing_get(booking_id):
        found = await real_get(booking_id)
        calls["n"] += 1
        if calls["n"] == 2:
            # another request rejects the booking between the re-read and the write
            await ops.update(Collections.BOOKINGS, booking_id, {"status": "rejected"})
        return found

    monkeypatch.setattr(lifecycle, "get_booking", racing_get)

    with pytest.raises(ConflictError) as exc:
        await lifecycle.update_status(str(booking["_id"]), "confirmed")

    assert exc.value.status_code == 409
    assert (await reload(ops, Collections.ROOMS, room))["occupied"] is False


# ─── resource id forms ───────────────────────────────────────────────────────

async def confirmed_on(ops, room):
    return await ops.count(Collections.BOOKINGS, {"resource_id": str(room["_id"]), "status": "confirmed"})


async def test_uppercase_room_id_still_conflicts_on_create(lifecycle, ops, make_room):
    room = await make_room()
    await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)

    with pytest.raises(ConflictError, match="already booked"):
        await lifecycle.create_room_booking(
            room_request(str(room["_id"]).upper(), check_in="2024-06-02", check_out="2024-06-04"), ADMIN
        )
    assert await confirmed_on(ops, room) == 1


async def test_uppercase_room_id_still_conflicts_on_confirm(lifecycle, ops, make_room):
    room = await make_room()
    await lifecycle.create_room_booking(room_request(str(room["_id"])), ADMIN)
    waiting = await lifecycle.create_room_booking(
        room_request(None, booking_for="Guest", relation="Friend", check_in="2024-06-02", check_out="2024-06-04"),
        MEMBER,
    )

    with pytest.raises(ConflictError, match="already booked"):
        await lifecycle.update_status(str(waiting["_id"]), "confirmed", resource_id=str(room["_id"]).upper())
    assert await confirmed_on(ops, room) == 1


async def test_created_booking_stores_lowercase_room_id(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"]).upper()), MEMBER)
    assert booking["resource_id"] == str(room["_id"])


async def test_confirm_accepts_bound_room_in_any_case(lifecycle, make_room):
    room = await make_room()
    booking = await lifecycle.create_room_booking(room_request(str(room["_id"])), MEMBER)
    confirmed = await lifecycle.update_status(
        str(booking["_id"]), "confirmed", resource_id=str(room["_id"]).upper()
    )
    assert confirmed["status"] == "confirmed"
    assert confirmed["resource_id"] == str(room["_id"])


async def test_malformed_room_id_is_not_found(lifecycle):
    with pytest.raises(NotFoundError):
        await lifecycle.create_room_booking(room_request("room-101"), MEMBER)
