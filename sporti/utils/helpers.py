"""
Helper utility functions
"""
import random
import string
from bson import ObjectId
from typing import Any, Dict, List, Optional
from datetime import date, datetime, time
import pytz

from sporti.config.settings import settings

LOCAL_TZ = pytz.timezone(settings.TIMEZONE)


def to_utc_naive(value: Any) -> Any:
    """Normalise a date/datetime/ISO string to the naive UTC datetime Mongo stores"""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(pytz.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise ValueError(f"Unsupported date value: {value!r}")


def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        return value.astimezone(LOCAL_TZ).isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(item) for item in value]
    return value


def serialize_doc(doc: Optional[Dict]) -> Optional[Dict]:
    """Convert MongoDB document to JSON-serializable format"""
    if doc is None:
        return None
    return {key: _serialize_value(value) for key, value in doc.items()}


def serialize_docs(docs: List[Dict]) -> List[Dict]:
    """Convert list of MongoDB documents to JSON-serializable format"""
    return [serialize_doc(doc) for doc in docs]


def generate_booking_code(now: Optional[datetime] = None) -> str:
    """SPT + last 6 digits of the epoch millis + 3 random base-36 chars"""
    now = now or datetime.utcnow()
    millis = str(int(now.replace(tzinfo=pytz.utc).timestamp() * 1000))[-6:]
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=3))
    return f"SPT{millis}{suffix}"


def generate_application_no(now: Optional[datetime] = None) -> str:
    """SPRT + YYYYMMDD + 4 random digits"""
    now = now or datetime.utcnow()
    return f"SPRT{now.strftime('%Y%m%d')}{random.randint(1000, 9999)}"
