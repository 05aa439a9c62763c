from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest
from mongomock_motor import AsyncMongoMockClient

from sporti.config.database import Collections, DatabaseConfig
from sporti.config.settings import Settings
from sporti.database.db_operations import DBOperations
from sporti.models.booking import RoomBookingCreate
from sporti.services.booking_lifecycle import BookingLifecycle
from sporti.services.occupancy import EMPTY_OCCUPANCY
from sporti.services.resource_lock import ResourceLocks

ADMIN = {"sub": "admin-1", "role": "admin", "email": "desk@sporti.club"}
MEMBER = {"sub": "member-1", "role": "member", "email": "member@example.com"}

OCCUPANT = {
    "name": "Ravi Kumar",
    "phone_number": "9876543210",
    "gender": "Male",
    "location": "Bengaluru",
}
OFFICER = {
    "name": "A. Sharma",
    "phone_number": "9123456780",
    "designation": "DCP",
}


class RecordingNotifier:
    """Stands in for NotificationDispatcher and records what would be sent"""

    def __init__(self):
        self.calls: List[Tuple[str, str]] = []

    def events(self) -> List[str]:
        return [event for event, _ in self.calls]

    async def notify_submission(self, booking: Dict) -> bool:
        self.calls.append(("submission", booking["booking_code"]))
        return True

    async def notify_confirmation(self, booking: Dict, resource: Optional[Dict] = None) -> bool:
        self.calls.append(("confirmation", booking["booking_code"]))
        return True

    async def notify_status_change(self, booking: Dict, message: str) -> bool:
        self.calls.append(("status", booking["booking_code"]))
        return True

    async def notify_payment_confirmed(self, booking: Dict) -> bool:
        self.calls.append(("payment", booking["booking_code"]))
        return True

    async def notify_check_in(self, booking: Dict) -> bool:
        self.calls.append(("check-in", booking["booking_code"]))
        return True

    async def notify_check_out(self, booking: Dict) -> bool:
        self.calls.append(("check-out", booking["booking_code"]))
        return True

    async def close(self) -> None:
        pass


@pytest.fixture
def test_settings():
    config = Settings()
    config.RESOURCE_LOCK_WAIT_SECONDS = 0.2
    config.RESOURCE_LOCK_POLL_SECONDS = 0.01
    config.MONGO_TRANSACTIONS = False
    config.SENDGRID_API_KEY = None
    config.SMS_API_URL = None
    config.SMS_API_KEY = None
    return config


@pytest.fixture
def db(test_settings):
    config = DatabaseConfig(test_settings)
    config.attach(AsyncMongoMockClient(), "sporti_test")
    return config


@pytest.fixture
def ops(db):
    return DBOperations(db)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def locks(ops, test_settings):
    return ResourceLocks(ops, test_settings)


@pytest.fixture
def lifecycle(ops, notifier, locks, test_settings):
    return BookingLifecycle(ops, notifier, locks, test_settings)


@pytest.fixture
def make_room(ops):
    async def _make_room(
        room_number: str = "101",
        category: str = "Standard",
        site: str = "SPORTI-1",
        member: float = 1500,
        guest: float = 2000,
        is_blocked: bool = False,
    ) -> Dict:
        return await ops.create(Collections.ROOMS, {
            "room_number": room_number,
            "category": category,
            "floor": "FIRST FLOOR",
            "site": site,
            "price": {"member": member, "guest": guest},
            "facilities": [],
            "description": "",
            "is_blocked": is_blocked,
            **EMPTY_OCCUPANCY,
        })
    return _make_room


@pytest.fixture
def make_service(ops):
    async def _make_service(
        name: str = "Conference Room",
        service_type: str = "Conference Room",
        site: str = "SPORTI-1",
        capacity: int = 50,
        member: float = 2000,
        guest: float = 3500,
    ) -> Dict:
        return await ops.create(Collections.SERVICES, {
            "name": name,
            "service_type": service_type,
            "site": site,
            "capacity": capacity,
            "price": {"member": member, "guest": guest},
            "facilities": [],
            "is_blocked": False,
            **EMPTY_OCCUPANCY,
        })
    return _make_service


def room_request(
    room_id: Optional[str] = None,
    check_in: str = "2024-06-01",
    check_out: str = "2024-06-03",
    booking_for: str = "Self",
    relation: str = "Self",
    site: str = "SPORTI-1",
    room_type: str = "Standard",
    officer: bool = False,
    **extra,
) -> RoomBookingCreate:
    data = {
        "room_id": room_id,
        "check_in": check_in,
        "check_out": check_out,
        "site": site,
        "room_type": room_type,
        "booking_for": booking_for,
        "relation": relation,
        "occupant_details": dict(OCCUPANT),
    }
    if officer:
        data["officer_details"] = dict(OFFICER)
    data.update(extra)
    return RoomBookingCreate(**data)


def day(value: str) -> datetime:
    return datetime.fromisoformat(value)
