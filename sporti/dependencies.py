"""
Process-wide collaborators, built once from the settings and injected into routes
"""
from sporti.config.settings import settings
from sporti.database.db_operations import DBOperations, db_ops
from sporti.services.booking_lifecycle import BookingLifecycle
from sporti.services.notifications import NotificationDispatcher
from sporti.services.resource_lock import ResourceLocks

notifier = NotificationDispatcher(settings)
resource_locks = ResourceLocks(db_ops, settings)
booking_lifecycle = BookingLifecycle(db_ops, notifier, resource_locks, settings)


def get_db_ops() -> DBOperations:
    return db_ops


def get_lifecycle() -> BookingLifecycle:
    return booking_lifecycle
