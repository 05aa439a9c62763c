import asyncio
import argparse
import os
import sys

# Ensure usage of the current directory for imports
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from sporti.config.database import db_config, Collections
from sporti.database.db_operations import db_ops
from sporti.services.occupancy import EMPTY_OCCUPANCY

ROOM_PRICES = {
    "Standard": {"member": 1500, "guest": 2000},
    "VIP": {"member": 3000, "guest": 3500},
    "Family": {"member": 2000, "guest": 2500},
}

ROOM_LAYOUT = {
    "SPORTI-1": {
        "GROUND FLOOR": {
            "Standard": ["102", "103", "104", "105", "106"],
        },
        "FIRST FLOOR": {
            "Standard": ["204", "205", "206", "207", "208", "209", "210", "211"],
            "VIP": ["201", "202"],
            "Family": ["203"],
        },
    },
    "SPORTI-2": {
        "GROUND FLOOR": {
            "VIP": ["01", "02", "03"],
        },
        "FIRST FLOOR": {
            "Standard": [str(n) for n in range(101, 115)],
        },
    },
}

ROOM_FACILITIES = ["Air Conditioning", "TV", "Wi-Fi", "Attached Bathroom"]

SERVICES = [
    {
        "name": "Main Function Hall",
        "service_type": "Main Function Hall",
        "site": "SPORTI-1",
        "capacity": 200,
        "price": {"member": 5000, "guest": 8000},
        "description": "Large function hall for events and celebrations",
        "facilities": ["Sound System", "Projector", "Catering Area", "Air Conditioning"],
    },
    {
        "name": "Conference Room",
        "service_type": "Conference Room",
        "site": "SPORTI-1",
        "capacity": 50,
        "price": {"member": 2000, "guest": 3500},
        "description": "Professional conference room for meetings",
        "facilities": ["Projector", "Video Conferencing", "Whiteboard", "Air Conditioning"],
    },
    {
        "name": "Barbeque Area",
        "service_type": "Barbeque Area",
        "site": "SPORTI-1",
        "capacity": 30,
        "price": {"member": 1500, "guest": 2500},
        "description": "Outdoor barbeque area for small gatherings",
        "facilities": ["Barbeque Equipment", "Seating Area", "Lighting"],
    },
    {
        "name": "Conference Room",
        "service_type": "Conference Room",
        "site": "SPORTI-2",
        "capacity": 40,
        "price": {"member": 1800, "guest": 3000},
        "description": "Modern conference room for meetings",
        "facilities": ["Projector", "Video Conferencing", "Whiteboard", "Air Conditioning"],
    },
    {
        "name": "Training Room",
        "service_type": "Training Room",
        "site": "SPORTI-2",
        "capacity": 60,
        "price": {"member": 2500, "guest": 4000},
        "description": "Spacious training room for workshops and seminars",
        "facilities": ["Projector", "Sound System", "Whiteboard", "Air Conditioning", "Flexible Seating"],
    },
]


def build_rooms():
    rooms = []
    for site, floors in ROOM_LAYOUT.items():
        for floor, categories in floors.items():
            for category, numbers in categories.items():
                for room_number in numbers:
                    rooms.append({
                        "room_number": room_number,
                        "category": category,
                        "floor": floor,
                        "site": site,
                        "price": dict(ROOM_PRICES[category]),
                        "facilities": list(ROOM_FACILITIES),
                        "description": f"{category} room in {site}, {floor}",
                    })
    return rooms


async def seed_data():
    print("🌱 Starting database seeding...")

    try:
        await db_config.connect_db()
        await db_config.ensure_indexes()

        created_rooms = 0
        for room in build_rooms():
            existing = await db_ops.get_one(Collections.ROOMS, {"site": room["site"], "room_number": room["room_number"]})
            if existing:
                continue
            await db_ops.create(Collections.ROOMS, {**room, "is_blocked": False, **EMPTY_OCCUPANCY})
            created_rooms += 1
        print(f"✅ Rooms created: {created_rooms}")

        created_services = 0
        for service in SERVICES:
            existing = await db_ops.get_one(Collections.SERVICES, {"site": service["site"], "name": service["name"]})
            if existing:
                print(f"⚠️ Service already exists: {service['name']} ({service['site']})")
                continue
            await db_ops.create(Collections.SERVICES, {**service, "is_blocked": False, **EMPTY_OCCUPANCY})
            created_services += 1
        print(f"✅ Services created: {created_services}")

    finally:
        await db_config.close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed SPORTI rooms and services")
    parser.parse_args()
    asyncio.run(seed_data())
